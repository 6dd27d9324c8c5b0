from __future__ import annotations

import asyncio
import os
import shutil
from typing import List

from dbbackup.core.connectors.base import StorageConnector
from dbbackup.core.connectors.dump_utils import PARTIAL_SUFFIX, atomic_destination
from dbbackup.domain.errors import StorageError

CHUNK_SIZE = 1024 * 1024


async def copy_file(source: str, destination: str, *, chunk_size: int = CHUNK_SIZE) -> int:
    """Copy in chunks, yielding to the loop between chunks; atomic on the destination."""
    copied = 0
    with atomic_destination(destination) as tmp_path:
        with open(source, "rb") as src, open(tmp_path, "wb") as dst:
            for chunk in iter(lambda: src.read(chunk_size), b""):
                dst.write(chunk)
                copied += len(chunk)
                await asyncio.sleep(0)
        shutil.copystat(source, tmp_path)
    return copied


def _same_file(a: str, b: str) -> bool:
    return os.path.realpath(a) == os.path.realpath(b)


class LocalStorageConnector(StorageConnector):
    """Keeps artifacts in `LocalPath` on the local filesystem.

    The working file of a backup run already lives in `LocalPath`, so saving it
    under its own name is a no-op and the orchestrator must not delete it.
    """

    def _key_path(self, remote_key: str) -> str:
        if not remote_key or os.path.basename(remote_key) != remote_key:
            raise StorageError(f"Invalid backup key for local storage: {remote_key!r}")
        return os.path.join(self.local_path, remote_key)

    def is_stored_at(self, local_path: str, remote_key: str) -> bool:
        try:
            return _same_file(local_path, self._key_path(remote_key))
        except StorageError:
            return False

    async def save_backup(self, local_path: str, remote_key: str) -> None:
        destination = self._key_path(remote_key)
        if not os.path.isfile(local_path):
            raise StorageError(f"Artifact not found: {local_path}")
        if _same_file(local_path, destination):
            self._logger.info("local_save_in_place | path=%s", destination)
            return
        try:
            copied = await copy_file(local_path, destination)
        except OSError as exc:
            raise StorageError(f"Failed to copy {local_path} to {destination}: {exc}", cause=exc) from exc
        self._logger.info("local_save_success | source=%s destination=%s bytes=%s", local_path, destination, copied)

    async def load_backup(self, remote_key: str, local_path: str) -> None:
        source = self._key_path(remote_key)
        if not os.path.isfile(source):
            raise StorageError(f"Backup not found: {source}", not_found=True)
        if _same_file(source, local_path):
            self._logger.info("local_load_in_place | path=%s", source)
            return
        try:
            copied = await copy_file(source, local_path)
        except OSError as exc:
            raise StorageError(f"Failed to copy {source} to {local_path}: {exc}", cause=exc) from exc
        self._logger.info("local_load_success | source=%s destination=%s bytes=%s", source, local_path, copied)

    async def list_backups(self, prefix: str = "") -> List[str]:
        if not os.path.isdir(self.local_path):
            return []
        keys = [
            entry
            for entry in os.listdir(self.local_path)
            if entry.startswith(prefix)
            and not entry.endswith(PARTIAL_SUFFIX)
            and os.path.isfile(os.path.join(self.local_path, entry))
        ]
        return sorted(keys)
