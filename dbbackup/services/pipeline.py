"""Backup/restore pipeline orchestration.

Responsibilities:
- Drive the stage sequence for one `BackupJob`
  (backup: connect -> dump -> upload; restore: download -> connect -> restore)
- Always disconnect exactly once and clean up the working file, on every exit
  path including failures and cancellation
- Log and notify exactly one terminal status per run
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional

from dbbackup.core.connectors.base import DatabaseConnector, StorageConnector
from dbbackup.core.connectors.dump_utils import PARTIAL_SUFFIX, file_sha256
from dbbackup.core.logging import get_masking_filter, log_event
from dbbackup.core.notifier import Notifier
from dbbackup.domain.enums import JobCommand, JobStatus, PipelineStage
from dbbackup.domain.errors import PipelineError, StorageError
from dbbackup.domain.job import BACKUP_KEY_PREFIX, BackupJob


_logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Run one backup or restore against resolved connectors.

    Connector errors (`PipelineError`) and unexpected exceptions raised inside
    a stage end the run as `failed`; they never escape `run()`. No stage is
    retried.
    """

    def __init__(
        self,
        database: DatabaseConnector,
        storage: StorageConnector,
        *,
        logger: Optional[logging.Logger] = None,
        notifier: Optional[Notifier] = None,
        keep_working_file: bool = False,
    ) -> None:
        self.database = database
        self.storage = storage
        self.logger = logger or _logger
        self.notifier = notifier
        self.keep_working_file = keep_working_file
        self._step = "init"

    async def run(self, job: BackupJob) -> BackupJob:
        label = job.command.value
        job.start()
        self.logger.info("Starting %s process...", label)
        log_event(
            self.logger,
            "job_started",
            command=label,
            database=self.database.name,
            storage=self.storage.name,
            working_file=job.working_file_path,
        )

        error: Optional[BaseException] = None
        cancelled = False
        try:
            if job.command is JobCommand.BACKUP:
                await self._run_backup(job)
            else:
                await self._run_restore(job)
        except asyncio.CancelledError:
            cancelled = True
            task = asyncio.current_task()
            if task is not None and hasattr(task, "uncancel"):
                task.uncancel()
        except PipelineError as exc:
            error = exc
        except Exception as exc:  # Catch-all failures inside a stage -> failed
            self.logger.exception("Unexpected error during %s | step=%s", label, self._step)
            error = exc
        finally:
            await self._disconnect(job)
            self._cleanup(job)

        if cancelled:
            job.cancel(self._step)
        elif error is not None:
            job.fail(self._step, str(error) or type(error).__name__)
        else:
            job.succeed()

        self._report(job)
        return job

    async def _run_backup(self, job: BackupJob) -> None:
        self._step = "connect"
        await self.database.connect()
        job.advance(PipelineStage.CONNECTED)

        self._step = "backup"
        await self.database.backup(job.working_file_path)
        job.advance(PipelineStage.DUMPED)
        digest = await asyncio.to_thread(file_sha256, job.working_file_path)
        log_event(
            self.logger,
            "artifact_ready",
            path=job.working_file_path,
            bytes=os.path.getsize(job.working_file_path),
            sha256=digest,
        )

        self._step = "upload"
        await self.storage.save_backup(job.working_file_path, str(job.remote_key))
        job.advance(PipelineStage.UPLOADED)

    async def _run_restore(self, job: BackupJob) -> None:
        self._step = "select_backup"
        if not job.remote_key:
            job.remote_key = await self._latest_backup_key()

        self._step = "download"
        await self.storage.load_backup(job.remote_key, job.working_file_path)
        job.advance(PipelineStage.DOWNLOADED)

        self._step = "connect"
        await self.database.connect()
        job.advance(PipelineStage.CONNECTED)

        self._step = "restore"
        await self.database.restore(job.working_file_path)
        job.advance(PipelineStage.RESTORED)

    async def _latest_backup_key(self) -> str:
        keys = await self.storage.list_backups(BACKUP_KEY_PREFIX)
        if not keys:
            raise StorageError(f"No backups found in {self.storage.name} storage", not_found=True)
        self.logger.info("Selected latest backup %s", keys[-1])
        return keys[-1]

    async def _disconnect(self, job: BackupJob) -> None:
        # Shielded so a second cancellation cannot skip releasing the session
        try:
            await asyncio.shield(self.database.disconnect())
        except asyncio.CancelledError:
            job.warn("disconnect interrupted by cancellation")
            self.logger.warning("Disconnect interrupted by cancellation")
        except Exception as exc:
            job.warn(f"disconnect failed: {exc}")
            self.logger.warning("Disconnect failed: %s", exc)

    def _cleanup(self, job: BackupJob) -> None:
        path = job.working_file_path
        if self.keep_working_file:
            self.logger.info("Keeping working file %s for inspection", path)
            return
        if job.remote_key and self.storage.is_stored_at(path, job.remote_key):
            return
        for candidate in (path, f"{path}{PARTIAL_SUFFIX}"):
            try:
                os.remove(candidate)
            except FileNotFoundError:
                continue
            except OSError as exc:
                job.warn(f"cleanup failed for {candidate}: {exc}")
                self.logger.warning("Could not remove working file %s: %s", candidate, exc)
            else:
                self.logger.debug("working_file_removed | path=%s", candidate)

    def _message(self, job: BackupJob) -> str:
        label = job.command.value.capitalize()
        if job.status is JobStatus.SUCCEEDED:
            message = f"{label} process completed successfully."
            if job.remote_key:
                message += f" Key: {job.remote_key}."
        elif job.status is JobStatus.CANCELLED:
            message = f"{label} process cancelled during {job.failed_stage}."
        else:
            message = f"{label} process failed during {job.failed_stage}: {job.error_message}"
        if job.warnings:
            message += " Warnings: " + "; ".join(job.warnings)
        return get_masking_filter().mask(message)

    def _report(self, job: BackupJob) -> None:
        label = job.command.value.capitalize()
        if job.status is JobStatus.SUCCEEDED:
            self.logger.info("%s process completed successfully.", label)
        elif job.status is JobStatus.CANCELLED:
            self.logger.warning("%s process cancelled during %s.", label, job.failed_stage)
        else:
            self.logger.error("%s process failed during %s: %s", label, job.failed_stage, job.error_message)

        log_event(
            self.logger,
            "job_finished",
            command=job.command.value,
            status=job.status.value,
            stage=job.stage.value,
            failed_stage=job.failed_stage,
            remote_key=job.remote_key,
            warnings=len(job.warnings),
            duration_sec=job.duration_sec,
        )

        if self.notifier is None:
            return
        # Never let notification issues affect the job result
        try:
            self.notifier.send_notification(self._message(job))
        except Exception as exc:
            self.logger.warning("Notification failed: %s", exc)
