"""Shared fixtures for the backuper tests."""

import threading

import pytest

import config
from uploader import UploadError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the host's AWS/DB variables from leaking into config loading."""
    for var in config.ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def valid_document(tmp_path):
    return {
        "access_key_id": "AKIAEXAMPLE",
        "secret_access_key": "s3cr3t",
        "region": "us-east-1",
        "bucket": "backups-bucket",
        "db_user": "backup",
        "db_password": "hunter2",
        "db_name": "orders",
        "interval": 3600,
        "backup_dir": str(tmp_path / "backups"),
    }


@pytest.fixture
def make_config(valid_document):
    def _make(**overrides):
        return config.Config(**{**valid_document, **overrides})

    return _make


class FakeDumper:
    def __init__(self, ok=True, content=b"-- MySQL dump\n"):
        self.ok = ok
        self.content = content
        self.calls = []

    def dump(self, dump_file):
        self.calls.append(dump_file)
        with open(dump_file, "wb") as f:
            f.write(self.content)
        return self.ok


class FakeUploader:
    def __init__(self, fail=False, on_upload=None):
        self.fail = fail
        self.on_upload = on_upload
        self.calls = []

    def upload(self, local_file, key):
        self.calls.append((local_file, key))
        if self.on_upload:
            self.on_upload(local_file)
        if self.fail:
            raise UploadError("connection reset")


class StopAfterWaits(threading.Event):
    """Event that records wait timeouts and stops the loop after ``limit`` waits."""

    def __init__(self, limit=1, journal=None):
        super().__init__()
        self.limit = limit
        self.waits = []
        self.journal = journal

    def wait(self, timeout=None):
        self.waits.append(timeout)
        if self.journal is not None:
            self.journal.append("wait")
        if len(self.waits) >= self.limit:
            self.set()
        return self.is_set()


@pytest.fixture
def fake_dumper():
    return FakeDumper()


@pytest.fixture
def fake_uploader():
    return FakeUploader()
