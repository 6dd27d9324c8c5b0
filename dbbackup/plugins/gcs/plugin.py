from __future__ import annotations

import asyncio
import os
from typing import List

import requests
from google.api_core.exceptions import GoogleAPIError, NotFound
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage

from dbbackup.core.connectors.base import StorageConnector
from dbbackup.core.connectors.dump_utils import atomic_destination
from dbbackup.domain.errors import StorageError

# Auth refresh and HTTP transport failures are raised outside GoogleAPIError
_TRANSPORT_ERRORS = (GoogleAPIError, GoogleAuthError, requests.exceptions.RequestException)


class GoogleCloudStorageConnector(StorageConnector):
    """Stores artifacts as objects in a Google Cloud Storage bucket.

    Authenticates with a service account JSON file. Object uploads are atomic
    on the GCS side: a failed upload never replaces the existing object.
    """

    required_fields = ("local_path", "credentials_file_path", "bucket_name")

    def __init__(self, name: str, config) -> None:
        super().__init__(name=name, config=config)
        credentials_path = os.path.expanduser(str(config.credentials_file_path))
        if not os.path.isfile(credentials_path):
            raise FileNotFoundError(f"Google Cloud credentials file not found: {credentials_path}")
        self.bucket_name = str(config.bucket_name)
        self._client = storage.Client.from_service_account_json(credentials_path)
        self._bucket = self._client.bucket(self.bucket_name)

    async def save_backup(self, local_path: str, remote_key: str) -> None:
        if not os.path.isfile(local_path):
            raise StorageError(f"Artifact not found: {local_path}")
        blob = self._bucket.blob(remote_key)
        self._logger.info("gcs_upload_start | bucket=%s key=%s source=%s", self.bucket_name, remote_key, local_path)
        try:
            await asyncio.to_thread(blob.upload_from_filename, local_path)
        except (*_TRANSPORT_ERRORS, OSError) as exc:
            self._logger.error("gcs_upload_failed | bucket=%s key=%s error=%s", self.bucket_name, remote_key, exc)
            raise StorageError(f"Error uploading to gs://{self.bucket_name}/{remote_key}: {exc}", cause=exc) from exc
        self._logger.info("gcs_upload_success | uri=gs://%s/%s", self.bucket_name, remote_key)

    async def load_backup(self, remote_key: str, local_path: str) -> None:
        blob = self._bucket.blob(remote_key)
        self._logger.info("gcs_download_start | bucket=%s key=%s destination=%s", self.bucket_name, remote_key, local_path)
        try:
            with atomic_destination(local_path) as tmp_path:
                await asyncio.to_thread(blob.download_to_filename, tmp_path)
        except NotFound as exc:
            raise StorageError(
                f"Backup not found: gs://{self.bucket_name}/{remote_key}", not_found=True, cause=exc
            ) from exc
        except (*_TRANSPORT_ERRORS, OSError) as exc:
            self._logger.error("gcs_download_failed | bucket=%s key=%s error=%s", self.bucket_name, remote_key, exc)
            raise StorageError(f"Error downloading gs://{self.bucket_name}/{remote_key}: {exc}", cause=exc) from exc
        self._logger.info("gcs_download_success | uri=gs://%s/%s destination=%s", self.bucket_name, remote_key, local_path)

    async def list_backups(self, prefix: str = "") -> List[str]:
        try:
            blobs = await asyncio.to_thread(
                lambda: [blob.name for blob in self._client.list_blobs(self.bucket_name, prefix=prefix)]
            )
        except _TRANSPORT_ERRORS as exc:
            raise StorageError(f"Error listing gs://{self.bucket_name}/{prefix}: {exc}", cause=exc) from exc
        return sorted(blobs)
