from __future__ import annotations

import os

from dbbackup.core.connectors.base import DatabaseConnector
from dbbackup.core.connectors.dump_utils import atomic_destination, base_env, run_tool
from dbbackup.domain.errors import BackupError, DatabaseConnectionError, RestoreError


class PostgreSQLConnector(DatabaseConnector):
    """PostgreSQL connector.

    Research notes:
    - `pg_dump` exports a single database as a plain SQL script; `--clean
      --if-exists` makes the script drop objects before recreating them so a
      restore replaces the current contents.
    - `psql --single-transaction -v ON_ERROR_STOP=1` applies the script
      atomically: a failure rolls everything back.
    - `asyncpg` is used for the session opened by `connect()`.
    SQL dumps are written with `PGPASSWORD` in the child environment.
    """

    default_port = 5432

    async def _open_session(self):
        # Import locally so the module remains importable without the driver
        try:
            import asyncpg  # type: ignore
        except Exception as exc:  # pragma: no cover - environment dependent
            self._logger.warning("asyncpg_not_available | error=%s", exc)
            raise DatabaseConnectionError("PostgreSQL driver (asyncpg) is not available. Please install it.", cause=exc) from exc

        conn = await asyncpg.connect(
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password,
            database=self.database,
        )
        try:
            value = await conn.fetchval("SELECT 1")
        except Exception:
            await conn.close()
            raise
        if value != 1:
            await conn.close()
            raise DatabaseConnectionError(f"Unexpected response from PostgreSQL at {self.host}")
        return conn

    async def _close_session(self, session) -> None:
        await session.close()

    def _tool_env(self):
        return base_env(PGPASSWORD=self.password)

    def _client_args(self):
        return ["-h", self.host, "-p", str(self.port), "-U", self.user]

    async def backup(self, destination_path: str) -> None:
        self._require_connected("backup")
        cmd = [
            "pg_dump",
            *self._client_args(),
            "--clean",
            "--if-exists",
            "--no-owner",
            "--no-acl",
            self.database,
        ]
        self._logger.info(
            "postgresql_backup_start | host=%s database=%s artifact=%s",
            self.host,
            self.database,
            destination_path,
        )
        try:
            with atomic_destination(destination_path) as tmp_path:
                result = await run_tool(cmd, env=self._tool_env(), stdout_path=tmp_path, logger=self._logger)
                if result.returncode != 0:
                    raise BackupError(f"pg_dump failed: {result.stderr}")
        except OSError as exc:
            self._logger.error("pg_dump_exec_error | host=%s error=%s", self.host, exc)
            raise BackupError(f"pg_dump could not run: {exc}", cause=exc) from exc

        self._logger.info(
            "postgresql_backup_success | artifact=%s bytes=%s",
            destination_path,
            os.path.getsize(destination_path),
        )

    async def restore(self, source_path: str) -> None:
        self._require_connected("restore")
        if not source_path or not os.path.isfile(source_path):
            raise RestoreError(f"Artifact not found: {source_path}")

        cmd = [
            "psql",
            *self._client_args(),
            "-d",
            self.database,
            "--single-transaction",
            "-v",
            "ON_ERROR_STOP=1",
            "-f",
            source_path,
        ]
        self._logger.info(
            "postgresql_restore_start | host=%s database=%s artifact=%s",
            self.host,
            self.database,
            source_path,
        )
        try:
            result = await run_tool(cmd, env=self._tool_env(), logger=self._logger)
        except OSError as exc:
            self._logger.error("psql_exec_error | host=%s error=%s", self.host, exc)
            raise RestoreError(f"psql could not run: {exc}", cause=exc) from exc

        if result.returncode != 0:
            raise RestoreError(f"psql restore failed: {result.stderr}")

        self._logger.info(
            "postgresql_restore_success | artifact=%s bytes=%s",
            source_path,
            os.path.getsize(source_path),
        )
