from __future__ import annotations

import os

from dbbackup.core.connectors.base import DatabaseConnector
from dbbackup.core.connectors.dump_utils import atomic_destination, base_env, run_tool
from dbbackup.domain.errors import BackupError, DatabaseConnectionError, RestoreError


class MySQLConnector(DatabaseConnector):
    """MySQL connector.

    Research notes:
    - `mysqldump` is the standard utility to export a MySQL database; the
      client binaries are expected on PATH.
    - `aiomysql` is used for the session opened by `connect()`.
    - The password is handed to the client tools through `MYSQL_PWD` so it
      never shows up in the process list.
    """

    default_port = 3306

    async def _open_session(self):
        try:
            import aiomysql  # type: ignore
        except Exception as exc:  # pragma: no cover - environment dependent
            self._logger.warning("aiomysql_not_available | error=%s", exc)
            raise DatabaseConnectionError("MySQL driver (aiomysql) is not available. Please install it.", cause=exc) from exc

        conn = await aiomysql.connect(
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password,
            db=self.database,
        )
        try:
            async with conn.cursor() as cur:
                await cur.execute("SELECT 1")
                row = await cur.fetchone()
        except Exception:
            conn.close()
            raise
        if not row or row[0] != 1:
            conn.close()
            raise DatabaseConnectionError(f"Unexpected response from MySQL at {self.host}")
        return conn

    async def _close_session(self, session) -> None:
        session.close()

    def _tool_env(self):
        return base_env(MYSQL_PWD=self.password)

    def _client_args(self):
        return ["-h", self.host, "-P", str(self.port), "-u", self.user]

    async def backup(self, destination_path: str) -> None:
        self._require_connected("backup")
        cmd = [
            "mysqldump",
            *self._client_args(),
            "--single-transaction",
            "--routines",
            "--triggers",
            self.database,
        ]
        self._logger.info(
            "mysql_backup_start | host=%s database=%s artifact=%s",
            self.host,
            self.database,
            destination_path,
        )
        try:
            with atomic_destination(destination_path) as tmp_path:
                result = await run_tool(cmd, env=self._tool_env(), stdout_path=tmp_path, logger=self._logger)
                if result.returncode != 0:
                    raise BackupError(f"mysqldump failed: {result.stderr}")
        except OSError as exc:
            self._logger.error("mysqldump_exec_error | host=%s error=%s", self.host, exc)
            raise BackupError(f"mysqldump could not run: {exc}", cause=exc) from exc

        self._logger.info(
            "mysql_backup_success | artifact=%s bytes=%s",
            destination_path,
            os.path.getsize(destination_path),
        )

    async def restore(self, source_path: str) -> None:
        """Import the SQL dump by piping it into the mysql client."""
        self._require_connected("restore")
        if not source_path or not os.path.isfile(source_path):
            raise RestoreError(f"Artifact not found: {source_path}")

        cmd = ["mysql", *self._client_args(), self.database]
        self._logger.info(
            "mysql_restore_start | host=%s database=%s artifact=%s",
            self.host,
            self.database,
            source_path,
        )
        try:
            result = await run_tool(cmd, env=self._tool_env(), stdin_path=source_path, logger=self._logger)
        except OSError as exc:
            self._logger.error("mysql_restore_exec_error | host=%s error=%s", self.host, exc)
            raise RestoreError(f"mysql could not run: {exc}", cause=exc) from exc

        # mysql stops at the first failing statement; earlier ones stay applied
        # but the client does not report how many, so the kind stays UNKNOWN.
        if result.returncode != 0:
            raise RestoreError(f"mysql restore failed: {result.stderr}")

        self._logger.info(
            "mysql_restore_success | artifact=%s bytes=%s",
            source_path,
            os.path.getsize(source_path),
        )
