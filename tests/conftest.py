"""Shared fixtures."""

import os
from datetime import date, timedelta

import pytest
from loguru import logger

from backupdb.utils.datatypes import DatabaseHost

UNPREFIXED_VARS = (
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "ONEDRIVE_REMOTE",
    "ONEDRIVE_PATH",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, tmp_path_factory, monkeypatch):
    """Run every test without VGX_DB_* variables and without a BackupDB.env in reach."""
    for key in list(os.environ):
        if key.startswith("VGX_DB_"):
            monkeypatch.delenv(key)
    for key in UNPREFIXED_VARS:
        monkeypatch.delenv(key, raising=False)
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    yield
    # the CLI binds loguru to the stderr of a CliRunner
    logger.remove()


@pytest.fixture
def today():
    return date.today()


@pytest.fixture
def yesterday(today):
    return today - timedelta(days=1)


@pytest.fixture
def db_host():
    return DatabaseHost(host="db1.example.com", user="backup", password="s3cret")
