"""Connector registry.

- Every `DatabaseType` / `StorageType` member maps to exactly one connector
  class given as `module:ClassName`; the mapping is checked for completeness
  on import, so a new tag without a connector fails fast.
- Connector modules are imported lazily: a missing cloud SDK only breaks the
  storage type that needs it.
"""

from __future__ import annotations

import importlib
import logging
from enum import Enum
from typing import Dict, List, Type, TypeVar, Union

from dbbackup.core.connectors.base import DatabaseConnector, StorageConnector
from dbbackup.domain.enums import DatabaseType, StorageType


logger = logging.getLogger(__name__)

DATABASE_CONNECTORS: Dict[DatabaseType, str] = {
    DatabaseType.MYSQL: "dbbackup.plugins.mysql.plugin:MySQLConnector",
    DatabaseType.POSTGRESQL: "dbbackup.plugins.postgresql.plugin:PostgreSQLConnector",
    DatabaseType.MONGODB: "dbbackup.plugins.mongodb.plugin:MongoDBConnector",
}

STORAGE_CONNECTORS: Dict[StorageType, str] = {
    StorageType.LOCAL: "dbbackup.plugins.local.plugin:LocalStorageConnector",
    StorageType.GOOGLE_CLOUD: "dbbackup.plugins.gcs.plugin:GoogleCloudStorageConnector",
    StorageType.AWS_S3: "dbbackup.plugins.s3.plugin:S3StorageConnector",
    StorageType.AZURE_BLOB: "dbbackup.plugins.azure_blob.plugin:AzureBlobStorageConnector",
}

T = TypeVar("T")


def _check_exhaustive(mapping: Dict, enum_cls: Type[Enum]) -> None:
    missing = [member.value for member in enum_cls if member not in mapping]
    if missing:
        raise RuntimeError(f"No connector registered for {enum_cls.__name__}: {missing}")


_check_exhaustive(DATABASE_CONNECTORS, DatabaseType)
_check_exhaustive(STORAGE_CONNECTORS, StorageType)


def _import_class(path: str, base: Type[T]) -> Type[T]:
    module_name, _, class_name = path.partition(":")
    module = importlib.import_module(module_name)
    cls = getattr(module, class_name)
    if not (isinstance(cls, type) and issubclass(cls, base)):
        raise TypeError(f"{path} is not a {base.__name__}")
    logger.debug("connector_loaded | path=%s", path)
    return cls


def _to_enum(enum_cls: Type[Enum], tag: Union[str, Enum]):
    if isinstance(tag, enum_cls):
        return tag
    try:
        return enum_cls(tag)
    except ValueError:
        raise KeyError(f"Unknown {enum_cls.__name__} tag: {tag}") from None


def get_database_connector_class(tag: Union[str, DatabaseType]) -> Type[DatabaseConnector]:
    """Return the connector class for a database type tag.

    Raises KeyError if the tag is unknown.
    """
    db_type = _to_enum(DatabaseType, tag)
    return _import_class(DATABASE_CONNECTORS[db_type], DatabaseConnector)


def get_storage_connector_class(tag: Union[str, StorageType]) -> Type[StorageConnector]:
    """Return the connector class for a storage type tag.

    Raises KeyError if the tag is unknown.
    """
    storage_type = _to_enum(StorageType, tag)
    return _import_class(STORAGE_CONNECTORS[storage_type], StorageConnector)


def list_connectors() -> List[dict]:
    """Return the registry as `{"category", "type", "connector"}` items."""
    items: List[dict] = []
    for db_type, path in DATABASE_CONNECTORS.items():
        items.append({"category": "database", "type": db_type.value, "connector": path})
    for storage_type, path in STORAGE_CONNECTORS.items():
        items.append({"category": "storage", "type": storage_type.value, "connector": path})
    return items
