from __future__ import annotations

import asyncio
import os
from typing import Any, Dict, List

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from dbbackup.core.connectors.base import StorageConnector
from dbbackup.core.connectors.dump_utils import atomic_destination
from dbbackup.domain.errors import StorageError

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class S3StorageConnector(StorageConnector):
    """Stores artifacts in an AWS S3 (or S3-compatible) bucket.

    `EndpointUrl` points the client at MinIO and similar services. S3 PUTs
    are atomic: readers see the old object or the complete new one.
    """

    required_fields = ("local_path", "access_key", "secret_key", "bucket_name")

    def __init__(self, name: str, config) -> None:
        super().__init__(name=name, config=config)
        self.bucket_name = str(config.bucket_name)
        client_kwargs: Dict[str, Any] = {
            "aws_access_key_id": config.access_key,
            "aws_secret_access_key": config.secret_key,
        }
        if config.region:
            client_kwargs["region_name"] = config.region
        if config.endpoint_url:
            client_kwargs["endpoint_url"] = config.endpoint_url
        self._client = boto3.client("s3", **client_kwargs)

    async def save_backup(self, local_path: str, remote_key: str) -> None:
        if not os.path.isfile(local_path):
            raise StorageError(f"Artifact not found: {local_path}")
        self._logger.info("s3_upload_start | bucket=%s key=%s source=%s", self.bucket_name, remote_key, local_path)
        try:
            await asyncio.to_thread(self._client.upload_file, local_path, self.bucket_name, remote_key)
        except (S3UploadFailedError, BotoCoreError, ClientError, OSError) as exc:
            self._logger.error("s3_upload_failed | bucket=%s key=%s error=%s", self.bucket_name, remote_key, exc)
            raise StorageError(f"Error uploading to s3://{self.bucket_name}/{remote_key}: {exc}", cause=exc) from exc
        self._logger.info("s3_upload_success | uri=s3://%s/%s", self.bucket_name, remote_key)

    async def load_backup(self, remote_key: str, local_path: str) -> None:
        self._logger.info("s3_download_start | bucket=%s key=%s destination=%s", self.bucket_name, remote_key, local_path)
        try:
            with atomic_destination(local_path) as tmp_path:
                await asyncio.to_thread(self._client.download_file, self.bucket_name, remote_key, tmp_path)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                raise StorageError(
                    f"Backup not found: s3://{self.bucket_name}/{remote_key}", not_found=True, cause=exc
                ) from exc
            self._logger.error("s3_download_failed | bucket=%s key=%s error=%s", self.bucket_name, remote_key, exc)
            raise StorageError(f"Error downloading s3://{self.bucket_name}/{remote_key}: {exc}", cause=exc) from exc
        except (BotoCoreError, OSError) as exc:
            self._logger.error("s3_download_failed | bucket=%s key=%s error=%s", self.bucket_name, remote_key, exc)
            raise StorageError(f"Error downloading s3://{self.bucket_name}/{remote_key}: {exc}", cause=exc) from exc
        self._logger.info("s3_download_success | uri=s3://%s/%s destination=%s", self.bucket_name, remote_key, local_path)

    def _list_keys(self, prefix: str) -> List[str]:
        keys: List[str] = []
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
            for obj in page.get("Contents", []):
                keys.append(obj["Key"])
        return keys

    async def list_backups(self, prefix: str = "") -> List[str]:
        try:
            keys = await asyncio.to_thread(self._list_keys, prefix)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Error listing s3://{self.bucket_name}/{prefix}: {exc}", cause=exc) from exc
        return sorted(keys)
