from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

import pytest

from dbbackup.domain.enums import ConfigErrorReason, JobCommand, JobStatus, PipelineStage, RestoreFailureKind
from dbbackup.domain.errors import ConfigError, PipelineError, RestoreError, StorageError
from dbbackup.domain.job import BackupJob, working_file_name


NOW = datetime(2026, 10, 17, 8, 30, 5)


def test_working_file_name_is_sortable_timestamp():
    assert working_file_name(NOW) == "backup-20261017T083005"
    assert working_file_name(datetime(2026, 1, 2, 3, 4, 5)) < working_file_name(NOW)


def test_working_file_name_orders_across_dst_fall_back():
    edt = timezone(timedelta(hours=-4))
    est = timezone(timedelta(hours=-5))
    # 05:30Z is 01:30 EDT; 06:10Z is 01:10 EST, after the clocks went back
    earlier = datetime(2026, 11, 1, 1, 30, tzinfo=edt)
    later = datetime(2026, 11, 1, 1, 10, tzinfo=est)

    names = [working_file_name(later), working_file_name(earlier)]

    assert working_file_name(earlier) == "backup-20261101T053000"
    assert max(names) == working_file_name(later) == "backup-20261101T061000"


def test_working_file_name_defaults_to_utc_now():
    before = datetime.now(timezone.utc).replace(microsecond=0)
    name = working_file_name()
    stamp = datetime.strptime(name[len("backup-"):], "%Y%m%dT%H%M%S").replace(tzinfo=timezone.utc)
    assert before <= stamp <= datetime.now(timezone.utc)


def test_backup_job_uses_working_file_name_as_key(tmp_path):
    job = BackupJob.create(JobCommand.BACKUP, str(tmp_path), now=NOW)

    assert job.working_file_path == os.path.join(str(tmp_path), "backup-20261017T083005")
    assert job.remote_key == "backup-20261017T083005"
    assert job.status is JobStatus.PENDING
    assert job.stage is PipelineStage.PENDING


def test_restore_job_keeps_requested_key(tmp_path):
    assert BackupJob.create(JobCommand.RESTORE, str(tmp_path), now=NOW).remote_key is None
    job = BackupJob.create(JobCommand.RESTORE, str(tmp_path), remote_key="backup-1", now=NOW)
    assert job.remote_key == "backup-1"


def test_stages_advance_in_order(tmp_path):
    job = BackupJob.create(JobCommand.RESTORE, str(tmp_path), now=NOW)
    job.start()
    job.advance(PipelineStage.DOWNLOADED)
    job.advance(PipelineStage.CONNECTED)

    with pytest.raises(RuntimeError):
        job.advance(PipelineStage.UPLOADED)

    job.advance(PipelineStage.RESTORED)
    job.succeed()
    assert job.is_terminal
    assert job.duration_sec is not None and job.duration_sec >= 0


def test_backup_cannot_skip_stage(tmp_path):
    job = BackupJob.create(JobCommand.BACKUP, str(tmp_path), now=NOW)
    job.start()
    with pytest.raises(RuntimeError):
        job.advance(PipelineStage.DUMPED)


def test_advance_requires_running(tmp_path):
    job = BackupJob.create(JobCommand.BACKUP, str(tmp_path), now=NOW)
    with pytest.raises(RuntimeError):
        job.advance(PipelineStage.CONNECTED)


def test_single_terminal_state(tmp_path):
    job = BackupJob.create(JobCommand.BACKUP, str(tmp_path), now=NOW)
    job.start()
    job.fail("backup", "dump broke")

    assert job.status is JobStatus.FAILED
    assert job.failed_stage == "backup"
    with pytest.raises(RuntimeError):
        job.succeed()
    with pytest.raises(RuntimeError):
        job.cancel("backup")
    assert job.status is JobStatus.FAILED


def test_cancel_records_stage(tmp_path):
    job = BackupJob.create(JobCommand.BACKUP, str(tmp_path), now=NOW)
    job.start()
    job.cancel("upload")

    assert job.status is JobStatus.CANCELLED
    assert job.failed_stage == "upload"


def test_start_twice_rejected(tmp_path):
    job = BackupJob.create(JobCommand.BACKUP, str(tmp_path), now=NOW)
    job.start()
    with pytest.raises(RuntimeError):
        job.start()


def test_error_types():
    err = ConfigError(ConfigErrorReason.MISSING_FIELD, "MySql requires Host", field="Host")
    assert str(err) == "missing_field: MySql requires Host"
    assert err.field == "Host"

    restore = RestoreError("boom")
    assert restore.kind is RestoreFailureKind.UNKNOWN
    assert isinstance(restore, PipelineError)

    cause = OSError("disk")
    storage = StorageError("gone", not_found=True, cause=cause)
    assert storage.not_found and storage.cause is cause
