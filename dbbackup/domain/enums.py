from __future__ import annotations

from enum import Enum


class DatabaseType(str, Enum):
    MYSQL = "MySql"
    POSTGRESQL = "PostgreSql"
    MONGODB = "MongoDb"


class StorageType(str, Enum):
    LOCAL = "Local"
    GOOGLE_CLOUD = "GoogleCloud"
    AWS_S3 = "AwsS3"
    AZURE_BLOB = "AzureBlob"


class JobCommand(str, Enum):
    BACKUP = "backup"
    RESTORE = "restore"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PipelineStage(str, Enum):
    PENDING = "pending"
    DOWNLOADED = "downloaded"
    CONNECTED = "connected"
    DUMPED = "dumped"
    RESTORED = "restored"
    UPLOADED = "uploaded"


class ConfigErrorReason(str, Enum):
    NO_BACKENDS_CONFIGURED = "no_backends_configured"
    INVALID_SELECTION = "invalid_selection"
    NO_MATCHING_CONFIG = "no_matching_config"
    MISSING_FIELD = "missing_field"
    CONSTRUCTION_FAILED = "construction_failed"


class RestoreFailureKind(str, Enum):
    PARTIAL = "partial"
    UNKNOWN = "unknown"
