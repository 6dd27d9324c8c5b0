"""Domain exceptions for dbbackup.

Configuration and resolution failures (`ConfigLoadError`, `ConfigError`) are
fatal and surface to the operator before any pipeline stage runs. Failures
raised by connectors during a run derive from `PipelineError` and are caught
at the orchestrator boundary, where they become a `failed` job status.
"""

from __future__ import annotations

from typing import Optional

from dbbackup.domain.enums import ConfigErrorReason, RestoreFailureKind


class DbBackupError(RuntimeError):
    """Base exception for all dbbackup failures."""


class ConfigLoadError(DbBackupError):
    """Raised when the configuration document cannot be read or parsed."""


class ConfigError(DbBackupError):
    """Raised when connectors cannot be resolved from configuration."""

    def __init__(
        self,
        reason: ConfigErrorReason,
        message: str,
        *,
        field: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.field = field
        self.cause = cause

    def __str__(self) -> str:
        return f"{self.reason.value}: {self.args[0]}"


class PipelineError(DbBackupError):
    """Base for failures raised by connectors while a job is running."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class DatabaseConnectionError(PipelineError):
    """Raised when a database session cannot be established."""


class BackupError(PipelineError):
    """Raised when dumping the database to an artifact fails."""


class RestoreError(PipelineError):
    """Raised when loading an artifact back into the database fails.

    `kind` is `PARTIAL` only when the engine itself reported that some of the
    artifact was applied before the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: RestoreFailureKind = RestoreFailureKind.UNKNOWN,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.kind = kind


class StorageError(PipelineError):
    """Raised when a storage backend cannot save or load an artifact."""

    def __init__(
        self,
        message: str,
        *,
        not_found: bool = False,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.not_found = not_found
