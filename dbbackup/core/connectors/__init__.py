"""Database and storage connector contracts and registry."""

from .base import DatabaseConnector, StorageConnector  # noqa: F401
