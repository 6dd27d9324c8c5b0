"""Configuration-driven database backup and restore."""

__version__ = "0.1.0"
