"""Base classes for database and storage connectors."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import ClassVar, List, Tuple

from dbbackup.domain.errors import DatabaseConnectionError
from dbbackup.schemas.config import DatabaseBackendConfig, StorageBackendConfig


class DatabaseConnector(ABC):
    """Base class for all database connectors.

    A connector owns one driver session between `connect()` and
    `disconnect()`. `backup()` and `restore()` may only run while connected.
    """

    # Attribute names on DatabaseBackendConfig, checked in this order
    required_fields: ClassVar[Tuple[str, ...]] = ("host", "database_name", "username", "password")
    default_port: ClassVar[int] = 0

    def __init__(self, name: str, config: DatabaseBackendConfig):
        """Initialize connector with its type tag and bound config."""
        self.name = name
        self.config = config
        self._session = None
        self._logger = logging.getLogger(type(self).__module__)

    @property
    def host(self) -> str:
        return str(self.config.host)

    @property
    def port(self) -> int:
        return int(self.config.port or self.default_port)

    @property
    def database(self) -> str:
        return str(self.config.database_name)

    @property
    def user(self) -> str:
        return str(self.config.username)

    @property
    def password(self) -> str:
        return str(self.config.password)

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> None:
        """Open a session; no-op when already connected."""
        if self.is_connected:
            return
        try:
            self._session = await self._open_session()
        except DatabaseConnectionError:
            raise
        except Exception as exc:
            self._logger.warning("%s_connect_failed | host=%s error=%s", self.name, self.host, exc)
            raise DatabaseConnectionError(f"Failed to connect to {self.name} at {self.host}: {exc}", cause=exc) from exc
        self._logger.info("%s_connected | host=%s port=%s database=%s", self.name, self.host, self.port, self.database)

    async def disconnect(self) -> None:
        """Close the session; safe to call when never connected; never raises."""
        session, self._session = self._session, None
        if session is None:
            return
        try:
            await self._close_session(session)
        except Exception as exc:
            self._logger.warning("%s_disconnect_failed | host=%s error=%s", self.name, self.host, exc)

    def _require_connected(self, operation: str) -> None:
        if not self.is_connected:
            raise DatabaseConnectionError(f"{self.name} {operation} requires an open connection")

    @abstractmethod
    async def _open_session(self):
        """Create and verify a driver session."""
        pass

    @abstractmethod
    async def _close_session(self, session) -> None:
        pass

    @abstractmethod
    async def backup(self, destination_path: str) -> None:
        """Write a complete artifact to `destination_path` or nothing at all."""
        pass

    @abstractmethod
    async def restore(self, source_path: str) -> None:
        """Replace the database contents with the artifact at `source_path`."""
        pass


class StorageConnector(ABC):
    """Base class for all storage connectors."""

    # Attribute names on StorageBackendConfig, checked in this order
    required_fields: ClassVar[Tuple[str, ...]] = ("local_path",)

    def __init__(self, name: str, config: StorageBackendConfig):
        self.name = name
        self.config = config
        self._logger = logging.getLogger(type(self).__module__)

    @property
    def local_path(self) -> str:
        """Working directory used for artifacts of the current run."""
        return os.path.abspath(os.path.expanduser(str(self.config.local_path)))

    @abstractmethod
    async def save_backup(self, local_path: str, remote_key: str) -> None:
        """Store the artifact at `local_path` under `remote_key`."""
        pass

    @abstractmethod
    async def load_backup(self, remote_key: str, local_path: str) -> None:
        """Fetch `remote_key` into `local_path`, overwriting it."""
        pass

    @abstractmethod
    async def list_backups(self, prefix: str = "") -> List[str]:
        """Return stored keys starting with `prefix`, sorted ascending."""
        pass

    def is_stored_at(self, local_path: str, remote_key: str) -> bool:
        """True when the stored object for `remote_key` is the file at `local_path`."""
        return False
