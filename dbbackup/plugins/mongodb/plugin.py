from __future__ import annotations

import contextlib
import json
import os
import re
import tempfile
from typing import Iterator, List, Optional, Tuple
from urllib.parse import quote_plus

from dbbackup.core.connectors.base import DatabaseConnector
from dbbackup.core.connectors.dump_utils import atomic_destination, run_tool
from dbbackup.domain.enums import RestoreFailureKind
from dbbackup.domain.errors import BackupError, DatabaseConnectionError, RestoreError

_RESTORE_SUMMARY = re.compile(
    r"(?P<ok>\d+) document\(s\) restored successfully\.\s*(?P<failed>\d+) document\(s\) failed to restore"
)


def parse_restore_summary(output: str) -> Optional[Tuple[int, int]]:
    """Return (restored, failed) document counts from mongorestore output."""
    match = None
    for match in _RESTORE_SUMMARY.finditer(output or ""):
        pass
    if match is None:
        return None
    return int(match.group("ok")), int(match.group("failed"))


class MongoDBConnector(DatabaseConnector):
    """MongoDB connector using archive files.

    Research notes:
    - `mongodump --archive=<file>` writes the whole database into a single
      archive; `mongorestore --archive --drop` replaces the collections.
    - mongorestore prints "N document(s) restored successfully. M document(s)
      failed to restore." which is the only engine in this tool that reports a
      partially applied restore.
    - pymongo's `AsyncMongoClient` is used for the session opened by `connect()`.
    - The tools read the password from a temporary `--config` YAML file so it
      never shows up in the process list.
    """

    default_port = 27017

    @property
    def uri(self) -> str:
        host = self.host if not self.config.port else f"{self.host}:{self.config.port}"
        return f"mongodb://{quote_plus(self.user)}:{quote_plus(self.password)}@{host}"

    async def _open_session(self):
        try:
            from pymongo import AsyncMongoClient  # type: ignore
        except Exception as exc:  # pragma: no cover - environment dependent
            self._logger.warning("pymongo_not_available | error=%s", exc)
            raise DatabaseConnectionError("MongoDB driver (pymongo) is not available. Please install it.", cause=exc) from exc

        client = AsyncMongoClient(self.uri, serverSelectionTimeoutMS=10000)
        try:
            reply = await client.admin.command("ping")
        except Exception:
            await client.close()
            raise
        if not reply or float(reply.get("ok", 0)) != 1.0:
            await client.close()
            raise DatabaseConnectionError(f"Unexpected ping response from MongoDB at {self.host}")
        return client

    async def _close_session(self, session) -> None:
        await session.close()

    def _client_args(self) -> List[str]:
        args = [f"--host={self.host}", f"--username={self.user}", "--authenticationDatabase=admin"]
        if self.config.port:
            args.append(f"--port={self.config.port}")
        return args

    @contextlib.contextmanager
    def _credentials_file(self) -> Iterator[str]:
        """Yield a 0600 YAML file holding the password for `--config`."""
        fd, path = tempfile.mkstemp(prefix="dbbackup-mongo-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w") as fh:
                fh.write(f"password: {json.dumps(self.password)}\n")
            yield path
        finally:
            with contextlib.suppress(FileNotFoundError):
                os.remove(path)

    async def backup(self, destination_path: str) -> None:
        self._require_connected("backup")
        self._logger.info(
            "mongodb_backup_start | host=%s database=%s artifact=%s",
            self.host,
            self.database,
            destination_path,
        )
        try:
            with atomic_destination(destination_path) as tmp_path, self._credentials_file() as secrets:
                cmd = [
                    "mongodump",
                    *self._client_args(),
                    f"--config={secrets}",
                    f"--db={self.database}",
                    f"--archive={tmp_path}",
                ]
                result = await run_tool(cmd, logger=self._logger)
                if result.returncode != 0:
                    raise BackupError(f"mongodump failed: {result.stderr}")
        except OSError as exc:
            self._logger.error("mongodump_exec_error | host=%s error=%s", self.host, exc)
            raise BackupError(f"mongodump could not run: {exc}", cause=exc) from exc

        self._logger.info(
            "mongodb_backup_success | artifact=%s bytes=%s",
            destination_path,
            os.path.getsize(destination_path),
        )

    async def restore(self, source_path: str) -> None:
        self._require_connected("restore")
        if not source_path or not os.path.isfile(source_path):
            raise RestoreError(f"Artifact not found: {source_path}")

        cmd = [
            "mongorestore",
            *self._client_args(),
            f"--nsInclude={self.database}.*",
            "--drop",
            f"--archive={source_path}",
        ]
        self._logger.info(
            "mongodb_restore_start | host=%s database=%s artifact=%s",
            self.host,
            self.database,
            source_path,
        )
        try:
            with self._credentials_file() as secrets:
                result = await run_tool([*cmd, f"--config={secrets}"], logger=self._logger)
        except OSError as exc:
            self._logger.error("mongorestore_exec_error | host=%s error=%s", self.host, exc)
            raise RestoreError(f"mongorestore could not run: {exc}", cause=exc) from exc

        summary = parse_restore_summary(result.stderr) or parse_restore_summary(result.stdout)
        if result.returncode != 0 or (summary and summary[1] > 0):
            kind = RestoreFailureKind.UNKNOWN
            if summary and summary[0] > 0 and summary[1] > 0:
                kind = RestoreFailureKind.PARTIAL
            detail = f"{summary[0]} restored, {summary[1]} failed" if summary else result.stderr
            raise RestoreError(f"mongorestore failed: {detail}", kind=kind)

        self._logger.info(
            "mongodb_restore_success | artifact=%s restored=%s",
            source_path,
            summary[0] if summary else "unknown",
        )
