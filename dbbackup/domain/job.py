"""Transient per-run job state mutated by the pipeline orchestrator."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from dbbackup.domain.enums import JobCommand, JobStatus, PipelineStage

BACKUP_KEY_PREFIX = "backup-"
TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S"

STAGE_ORDER: Dict[JobCommand, Tuple[PipelineStage, ...]] = {
    JobCommand.BACKUP: (
        PipelineStage.PENDING,
        PipelineStage.CONNECTED,
        PipelineStage.DUMPED,
        PipelineStage.UPLOADED,
    ),
    JobCommand.RESTORE: (
        PipelineStage.PENDING,
        PipelineStage.DOWNLOADED,
        PipelineStage.CONNECTED,
        PipelineStage.RESTORED,
    ),
}

_TERMINAL = {JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELLED}


def working_file_name(now: Optional[datetime] = None) -> str:
    """Return `backup-<timestamp>` where the timestamp sorts to the second.

    The timestamp is always UTC; naive datetimes are taken as UTC.
    """
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return f"{BACKUP_KEY_PREFIX}{moment.strftime(TIMESTAMP_FORMAT)}"


@dataclass
class BackupJob:
    command: JobCommand
    working_file_path: str
    remote_key: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    stage: PipelineStage = PipelineStage.PENDING
    failed_stage: Optional[str] = None
    error_message: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        command: JobCommand,
        local_path: str,
        *,
        remote_key: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "BackupJob":
        working = os.path.join(local_path, working_file_name(now))
        if remote_key is None and command is JobCommand.BACKUP:
            remote_key = os.path.basename(working)
        return cls(command=command, working_file_path=working, remote_key=remote_key)

    @property
    def is_terminal(self) -> bool:
        return self.status in _TERMINAL

    def start(self) -> None:
        if self.status is not JobStatus.PENDING:
            raise RuntimeError(f"job already started (status={self.status.value})")
        self.status = JobStatus.RUNNING
        self.started_at = datetime.now(timezone.utc)

    def advance(self, stage: PipelineStage) -> None:
        """Move to the next stage; stages must be reached in order."""
        if self.status is not JobStatus.RUNNING:
            raise RuntimeError(f"cannot advance a job in status {self.status.value}")
        order = STAGE_ORDER[self.command]
        current = order.index(self.stage)
        if current + 1 >= len(order) or order[current + 1] is not stage:
            raise RuntimeError(
                f"invalid {self.command.value} transition {self.stage.value} -> {stage.value}"
            )
        self.stage = stage

    def succeed(self) -> None:
        self._finish(JobStatus.SUCCEEDED)

    def fail(self, stage: str, message: str) -> None:
        self.failed_stage = stage
        self.error_message = message
        self._finish(JobStatus.FAILED)

    def cancel(self, stage: str) -> None:
        self.failed_stage = stage
        self.error_message = "cancelled"
        self._finish(JobStatus.CANCELLED)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def _finish(self, status: JobStatus) -> None:
        if self.is_terminal:
            raise RuntimeError(f"job already finished (status={self.status.value})")
        self.status = status
        self.finished_at = datetime.now(timezone.utc)

    @property
    def duration_sec(self) -> Optional[float]:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None
