import os

import pytest

from dbbackup.domain.errors import StorageError
from dbbackup.plugins.local import LocalStorageConnector
from dbbackup.plugins.local.plugin import copy_file
from dbbackup.schemas.config import StorageBackendConfig


def _storage(path):
    config = StorageBackendConfig.model_validate({"Type": "Local", "LocalPath": str(path)})
    return LocalStorageConnector(name="Local", config=config)


@pytest.mark.asyncio
async def test_copy_file_small_chunks(tmp_path):
    src = tmp_path / "src"
    src.write_bytes(b"0123456789" * 10)
    copied = await copy_file(str(src), str(tmp_path / "dst"), chunk_size=7)
    assert copied == 100
    assert (tmp_path / "dst").read_bytes() == src.read_bytes()


@pytest.mark.asyncio
async def test_round_trip_is_byte_identical(tmp_path):
    store_dir = tmp_path / "store"
    storage = _storage(store_dir)
    work = tmp_path / "work"
    work.mkdir()
    payload = bytes(range(256)) * 1000
    (work / "backup-1").write_bytes(payload)

    await storage.save_backup(str(work / "backup-1"), "backup-1")
    await storage.load_backup("backup-1", str(work / "restored"))

    assert (store_dir / "backup-1").read_bytes() == payload
    assert (work / "restored").read_bytes() == payload


@pytest.mark.asyncio
async def test_save_in_place_is_noop(tmp_path):
    storage = _storage(tmp_path)
    artifact = tmp_path / "backup-1"
    artifact.write_bytes(b"dump")

    await storage.save_backup(str(artifact), "backup-1")

    assert storage.is_stored_at(str(artifact), "backup-1")
    assert not storage.is_stored_at(str(artifact), "backup-2")
    assert os.listdir(tmp_path) == ["backup-1"]


@pytest.mark.asyncio
async def test_save_missing_source(tmp_path):
    with pytest.raises(StorageError) as excinfo:
        await _storage(tmp_path).save_backup(str(tmp_path / "nope"), "backup-1")
    assert excinfo.value.not_found is False


@pytest.mark.asyncio
async def test_load_missing_key_is_not_found(tmp_path):
    with pytest.raises(StorageError) as excinfo:
        await _storage(tmp_path).load_backup("backup-missing", str(tmp_path / "out"))
    assert excinfo.value.not_found is True
    assert not (tmp_path / "out").exists()


@pytest.mark.asyncio
@pytest.mark.parametrize("key", ["", "../escape", "nested/backup-1"])
async def test_keys_with_path_components_rejected(tmp_path, key):
    artifact = tmp_path / "a"
    artifact.write_bytes(b"x")
    with pytest.raises(StorageError, match="Invalid backup key"):
        await _storage(tmp_path / "store").save_backup(str(artifact), key)


@pytest.mark.asyncio
async def test_list_backups_sorted_and_filtered(tmp_path):
    for name in ("backup-20261016T000000", "backup-20261015T000000", "backup-20261017T000000.partial", "notes.txt"):
        (tmp_path / name).write_bytes(b"x")
    (tmp_path / "backup-dir").mkdir()
    storage = _storage(tmp_path)

    assert await storage.list_backups("backup-") == ["backup-20261015T000000", "backup-20261016T000000"]
    assert await _storage(tmp_path / "missing").list_backups() == []
