from __future__ import annotations

import pytest

from dbbackup.core.config import load_config
from dbbackup.domain.errors import ConfigLoadError


def test_load_config_reads_aliases(write_config, mysql_local_config):
    mysql_local_config["KeepWorkingFile"] = True
    mysql_local_config["Notification"] = {"WebhookUrl": "https://hooks.example.com/x"}
    config = load_config(write_config(mysql_local_config))

    assert len(config.databases) == 1
    db = config.databases[0]
    assert (db.type, db.host, db.database_name, db.username, db.password) == ("MySql", "db1", "app", "u", "p")
    assert db.port is None
    # A single Storage object becomes a one-element list
    assert [s.type for s in config.storage] == ["Local"]
    assert config.keep_working_file is True
    assert config.notification.webhook_url == "https://hooks.example.com/x"
    assert config.restore_key is None


def test_storage_list_and_null_sections(write_config, tmp_path):
    config = load_config(
        write_config(
            {
                "Databases": None,
                "Storage": [
                    {"Type": "Local", "LocalPath": str(tmp_path)},
                    {"Type": "AwsS3", "LocalPath": str(tmp_path), "BucketName": "b"},
                ],
            }
        )
    )
    assert config.databases == []
    assert [s.type for s in config.storage] == ["Local", "AwsS3"]


def test_secret_values(write_config, tmp_path):
    config = load_config(
        write_config(
            {
                "Databases": [{"Type": "MySql", "Password": "hunter2"}],
                "Storage": {"Type": "AwsS3", "AccessKey": "AKIA1", "SecretKey": "s3cr3t"},
            }
        )
    )
    assert set(config.secret_values()) == {"hunter2", "AKIA1", "s3cr3t"}


def test_secret_values_include_url_encoded_password(write_config):
    config = load_config(write_config({"Databases": [{"Type": "MongoDb", "Password": "p@ss:w"}], "Storage": {"Type": "Local"}}))
    assert set(config.secret_values()) == {"p@ss:w", "p%40ss%3Aw"}


def test_missing_file(tmp_path):
    with pytest.raises(ConfigLoadError, match="not found"):
        load_config(str(tmp_path / "nope.json"))


def test_malformed_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigLoadError, match="Malformed"):
        load_config(str(path))


def test_root_must_be_object(write_config):
    with pytest.raises(ConfigLoadError, match="JSON object"):
        load_config(write_config([1, 2]))


def test_schema_violation(write_config):
    with pytest.raises(ConfigLoadError, match="Invalid configuration"):
        load_config(write_config({"Databases": [{"Type": "MySql", "Port": "not-a-port"}]}))
