"""Pydantic schemas for the configuration document."""

from .config import (
    AppConfig,
    DatabaseBackendConfig,
    NotificationConfig,
    StorageBackendConfig,
)  # noqa: F401
