from __future__ import annotations

import asyncio
import os
from typing import List

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient

from dbbackup.core.connectors.base import StorageConnector
from dbbackup.core.connectors.dump_utils import atomic_destination
from dbbackup.domain.errors import StorageError


class AzureBlobStorageConnector(StorageConnector):
    """Stores artifacts as block blobs in an Azure Storage container.

    A block blob upload only becomes visible once the block list commits, so
    a failed upload leaves any previous blob untouched.
    """

    required_fields = ("local_path", "connection_string", "container_name")

    def __init__(self, name: str, config) -> None:
        super().__init__(name=name, config=config)
        self.container_name = str(config.container_name)
        service = BlobServiceClient.from_connection_string(str(config.connection_string))
        self._container = service.get_container_client(self.container_name)

    def _upload(self, local_path: str, remote_key: str) -> None:
        blob_client = self._container.get_blob_client(remote_key)
        with open(local_path, "rb") as fh:
            blob_client.upload_blob(fh, overwrite=True)

    def _download(self, remote_key: str, local_path: str) -> None:
        blob_client = self._container.get_blob_client(remote_key)
        with open(local_path, "wb") as fh:
            blob_client.download_blob().readinto(fh)

    async def save_backup(self, local_path: str, remote_key: str) -> None:
        if not os.path.isfile(local_path):
            raise StorageError(f"Artifact not found: {local_path}")
        self._logger.info("azure_upload_start | container=%s blob=%s source=%s", self.container_name, remote_key, local_path)
        try:
            await asyncio.to_thread(self._upload, local_path, remote_key)
        except (AzureError, OSError) as exc:
            self._logger.error("azure_upload_failed | container=%s blob=%s error=%s", self.container_name, remote_key, exc)
            raise StorageError(f"Error uploading to {self.container_name}/{remote_key}: {exc}", cause=exc) from exc
        self._logger.info("azure_upload_success | container=%s blob=%s", self.container_name, remote_key)

    async def load_backup(self, remote_key: str, local_path: str) -> None:
        self._logger.info(
            "azure_download_start | container=%s blob=%s destination=%s", self.container_name, remote_key, local_path
        )
        try:
            with atomic_destination(local_path) as tmp_path:
                await asyncio.to_thread(self._download, remote_key, tmp_path)
        except ResourceNotFoundError as exc:
            raise StorageError(
                f"Backup not found: {self.container_name}/{remote_key}", not_found=True, cause=exc
            ) from exc
        except (AzureError, OSError) as exc:
            self._logger.error("azure_download_failed | container=%s blob=%s error=%s", self.container_name, remote_key, exc)
            raise StorageError(f"Error downloading {self.container_name}/{remote_key}: {exc}", cause=exc) from exc
        self._logger.info("azure_download_success | container=%s blob=%s destination=%s", self.container_name, remote_key, local_path)

    async def list_backups(self, prefix: str = "") -> List[str]:
        try:
            names = await asyncio.to_thread(
                lambda: [blob.name for blob in self._container.list_blobs(name_starts_with=prefix or None)]
            )
        except AzureError as exc:
            raise StorageError(f"Error listing {self.container_name}/{prefix}: {exc}", cause=exc) from exc
        return sorted(names)
