"""Schemas for the JSON configuration document.

Keys use the PascalCase spelling operators already write in their config
files (`Databases`, `Storage`, `DatabaseName`, ...). Every connector field is
optional at this layer; which ones are required depends on the selected
`Type` and is enforced by the backend resolver so that a missing field is
reported by name instead of as a generic validation failure.
"""

from __future__ import annotations

from typing import List, Optional, Union
from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)


class DatabaseBackendConfig(_ConfigModel):
    """One entry of the `Databases` list."""

    type: Optional[str] = Field(None, alias="Type", description="Database type tag, e.g. 'MySql'")
    host: Optional[str] = Field(None, alias="Host", description="Database host name")
    port: Optional[int] = Field(None, alias="Port", ge=1, le=65535, description="Port (engine default if omitted)")
    database_name: Optional[str] = Field(None, alias="DatabaseName", description="Database to back up")
    username: Optional[str] = Field(None, alias="Username", description="Login user")
    password: Optional[str] = Field(None, alias="Password", description="Login password")


class StorageBackendConfig(_ConfigModel):
    """One storage entry; fields used depend on `Type`."""

    type: Optional[str] = Field(None, alias="Type", description="Storage type tag, e.g. 'Local'")
    local_path: Optional[str] = Field(None, alias="LocalPath", description="Working directory / local destination")
    credentials_file_path: Optional[str] = Field(
        None, alias="CredentialsFilePath", description="Google service account JSON file"
    )
    bucket_name: Optional[str] = Field(None, alias="BucketName", description="GCS or S3 bucket")
    access_key: Optional[str] = Field(None, alias="AccessKey", description="AWS access key id")
    secret_key: Optional[str] = Field(None, alias="SecretKey", description="AWS secret access key")
    region: Optional[str] = Field(None, alias="Region", description="AWS region")
    endpoint_url: Optional[str] = Field(None, alias="EndpointUrl", description="S3-compatible endpoint override")
    connection_string: Optional[str] = Field(None, alias="ConnectionString", description="Azure storage connection string")
    container_name: Optional[str] = Field(None, alias="ContainerName", description="Azure blob container")


class NotificationConfig(_ConfigModel):
    webhook_url: Optional[str] = Field(None, alias="WebhookUrl", description="HTTP endpoint receiving run results")


class AppConfig(_ConfigModel):
    """Root configuration document."""

    databases: List[DatabaseBackendConfig] = Field(default_factory=list, alias="Databases")
    storage: List[StorageBackendConfig] = Field(default_factory=list, alias="Storage")
    database_type: Optional[str] = Field(None, alias="DatabaseType", description="Explicit database selector")
    storage_type: Optional[str] = Field(None, alias="StorageType", description="Explicit storage selector")
    restore_key: Optional[str] = Field(None, alias="RestoreKey", description="Backup key to restore (default: newest)")
    keep_working_file: bool = Field(False, alias="KeepWorkingFile", description="Leave the working file for inspection")
    notification: NotificationConfig = Field(default_factory=NotificationConfig, alias="Notification")

    @field_validator("databases", "storage", mode="before")
    @classmethod
    def _as_list(cls, value: Union[None, dict, list]) -> list:
        # A single `Storage` object is the common case; `null` means none
        if value is None:
            return []
        if isinstance(value, dict):
            return [value]
        return value

    def secret_values(self) -> List[str]:
        """Values that must be masked in logs."""
        values: List[str] = []
        for db in self.databases:
            if db.password:
                values.append(db.password)
                # connection URIs carry the percent-encoded form
                if quote_plus(db.password) != db.password:
                    values.append(quote_plus(db.password))
        for st in self.storage:
            for secret in (st.secret_key, st.connection_string, st.access_key):
                if secret:
                    values.append(secret)
        return values
