"""Tests for the storage backends."""

import shutil
import subprocess
from datetime import date, timedelta
from unittest.mock import call, patch

import git
import pytest
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import ClientError
from git import Repo

from backupdb.exceptions import ConfigurationError, StorageError
from backupdb.storage.backends.base import StorageType
from backupdb.storage.backends.git_repo import GitBackend
from backupdb.storage.backends.onedrive import OneDriveBackend
from backupdb.storage.backends.s3 import S3Backend
from backupdb.utils.converters import dump_file_name

DAY = date(2025, 8, 6)

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout,
                                       stderr=stderr)


class TestGitBackendValidation:
    """Test validating the git configuration."""

    @pytest.mark.parametrize("url", ["", "git@github.com:YourUsername/DBBackups.git"])
    def test_repository_not_configured(self, url):
        backend = GitBackend(url)
        with patch("backupdb.storage.backends.git_repo.check_command"):
            with pytest.raises(ConfigurationError, match="VGX_DB_GIT_REPO"):
                backend.validate()

    def test_git_missing(self):
        backend = GitBackend("git@example.com:backups.git")
        with patch("backupdb.utils.files.shutil.which", return_value=None):
            with pytest.raises(ConfigurationError, match="'git' not found"):
                backend.validate()

    def test_connection_failure(self):
        backend = GitBackend("git@example.com:backups.git")
        with patch("backupdb.storage.backends.git_repo.check_command"), \
                patch("backupdb.storage.backends.git_repo.git.cmd.Git") as git_cmd:
            git_cmd.return_value.ls_remote.side_effect = git.exc.GitCommandError(
                "ls-remote", 128)
            with pytest.raises(ConfigurationError, match="Git connection failed"):
                backend.validate(test_connection=True)

    def test_summary(self):
        backend = GitBackend("git@example.com:backups.git", retention_days=7)
        assert backend.storage_type == StorageType.GIT
        assert backend.summary()["Git Repository"] == "git@example.com:backups.git"


@requires_git
class TestGitBackend:
    """Test the git backend against local repositories."""

    @pytest.fixture
    def remote(self, tmp_path):
        path = tmp_path / "remote.git"
        Repo.init(path, bare=True)
        return path

    def _commit_messages(self, remote):
        output = Repo(remote).git.log("--all", "--format=%s")
        return [x for x in output.splitlines() if x]

    def test_validate_with_connection(self, remote):
        GitBackend(str(remote)).validate(test_connection=True)

    def test_prepare_replaces_plain_directory(self, tmp_path, remote):
        backup_dir = tmp_path / "backups"
        backup_dir.mkdir()
        (backup_dir / "stale.sql.gz").write_bytes(b"x")

        GitBackend(str(remote)).prepare(backup_dir)

        assert (backup_dir / ".git").is_dir()
        assert not (backup_dir / "stale.sql.gz").exists()

    def test_prepare_keeps_existing_clone(self, tmp_path, remote):
        backup_dir = tmp_path / "backups"
        backend = GitBackend(str(remote))
        backend.prepare(backup_dir)
        (backup_dir / "local.sql.gz").write_bytes(b"x")

        backend.prepare(backup_dir)

        assert (backup_dir / "local.sql.gz").exists()

    def test_prepare_clone_failure(self, tmp_path):
        backend = GitBackend(str(tmp_path / "does-not-exist.git"))
        with pytest.raises(StorageError, match="Failed to clone"):
            backend.prepare(tmp_path / "backups")

    def test_upload_commits_and_pushes(self, tmp_path, remote):
        backup_dir = tmp_path / "backups"
        backend = GitBackend(str(remote))
        backend.prepare(backup_dir)
        (backup_dir / dump_file_name(DAY, "shop")).write_bytes(b"dump")

        backend.upload(backup_dir, DAY)

        assert self._commit_messages(remote) == ["Database backup: 20250806"]

    def test_upload_without_changes(self, tmp_path, remote):
        backup_dir = tmp_path / "backups"
        backend = GitBackend(str(remote))
        backend.prepare(backup_dir)
        (backup_dir / dump_file_name(DAY, "shop")).write_bytes(b"dump")
        backend.upload(backup_dir, DAY)

        backend.upload(backup_dir, DAY + timedelta(days=1))

        assert len(self._commit_messages(remote)) == 1

    def test_upload_commits_deleted_backups(self, tmp_path, remote):
        backup_dir = tmp_path / "backups"
        backend = GitBackend(str(remote), retention_days=3)
        backend.prepare(backup_dir)
        old = backup_dir / dump_file_name(DAY - timedelta(days=10), "shop")
        old.write_bytes(b"old dump")
        backend.upload(backup_dir, DAY - timedelta(days=10))

        assert backend.apply_retention(backup_dir, DAY) == [old]
        backend.upload(backup_dir, DAY)

        messages = self._commit_messages(remote)
        assert messages[0] == "Database backup: 20250806"
        files = Repo(backup_dir).git.ls_tree("-r", "--name-only", "HEAD")
        assert old.name not in files

    def test_upload_not_a_repository(self, tmp_path):
        with pytest.raises(StorageError, match="Not a git repository"):
            GitBackend("git@example.com:backups.git").upload(tmp_path, DAY)


class TestS3Backend:
    """Test the S3 backend with a mocked boto3."""

    @pytest.fixture
    def boto3(self):
        with patch("backupdb.storage.backends.s3.boto3") as boto3:
            yield boto3

    def _backend(self, **kwargs):
        defaults = dict(s3_bucket="backups", s3_access_key_id="key",
                        s3_secret_access_key="secret")
        defaults.update(kwargs)
        return S3Backend(**defaults)

    def test_missing_bucket(self):
        with pytest.raises(ConfigurationError, match="VGX_DB_S3_BUCKET"):
            self._backend(s3_bucket="").validate()

    def test_missing_credentials(self):
        backend = S3Backend(s3_bucket="backups")
        with pytest.raises(ConfigurationError, match="AWS_ACCESS_KEY_ID"):
            backend.validate()

    def test_credentials_from_environment(self, monkeypatch):
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "key")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secret")
        S3Backend(s3_bucket="backups").validate()

    def test_connection_test(self, boto3):
        backend = self._backend(s3_endpoint="https://s3.us-west-004.backblazeb2.com",
                                s3_region="us-west-004")
        backend.validate(test_connection=True)

        boto3.resource.assert_called_once_with(
            "s3",
            endpoint_url="https://s3.us-west-004.backblazeb2.com",
            region_name="us-west-004",
            aws_access_key_id="key",
            aws_secret_access_key="secret",
        )
        bucket = boto3.resource.return_value.Bucket.return_value
        bucket.meta.client.head_bucket.assert_called_once_with(Bucket="backups")

    def test_connection_failure(self, boto3):
        bucket = boto3.resource.return_value.Bucket.return_value
        bucket.meta.client.head_bucket.side_effect = ClientError(
            {"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadBucket")
        with pytest.raises(ConfigurationError, match="S3 connection failed"):
            self._backend().validate(test_connection=True)

    def test_upload_keys(self, boto3, tmp_path):
        (tmp_path / "20250806_shop.sql.gz").write_bytes(b"x")
        (tmp_path / "db2").mkdir()
        (tmp_path / "db2" / "20250806_blog.sql.gz").write_bytes(b"y")

        self._backend(s3_prefix="backups/").upload(tmp_path, DAY)

        bucket = boto3.resource.return_value.Bucket.return_value
        assert bucket.upload_file.call_count == 2
        bucket.upload_file.assert_has_calls([
            call(str(tmp_path / "20250806_shop.sql.gz"), "backups/20250806/20250806_shop.sql.gz"),
            call(str(tmp_path / "db2" / "20250806_blog.sql.gz"),
                 "backups/20250806/db2/20250806_blog.sql.gz"),
        ], any_order=True)

    def test_upload_failure(self, boto3, tmp_path):
        (tmp_path / "20250806_shop.sql.gz").write_bytes(b"x")
        bucket = boto3.resource.return_value.Bucket.return_value
        bucket.upload_file.side_effect = S3UploadFailedError("boom")
        with pytest.raises(StorageError, match="20250806_shop.sql.gz"):
            self._backend().upload(tmp_path, DAY)

    def test_summary_defaults_to_aws(self):
        summary = self._backend().summary()
        assert summary["S3 Endpoint"] == "AWS Default"
        assert summary["S3 Prefix"] == "DatabaseBackups/"


class TestOneDriveBackend:
    """Test the rclone based OneDrive backend."""

    def test_remote_not_configured(self):
        with patch("backupdb.storage.backends.onedrive.check_command"):
            with pytest.raises(ConfigurationError, match="ONEDRIVE_REMOTE"):
                OneDriveBackend("").validate()

    def test_remote_found(self):
        with patch("backupdb.storage.backends.onedrive.check_command"), \
                patch("backupdb.storage.backends.onedrive.subprocess.run",
                      return_value=completed(stdout="onedrive:\nother:\n")) as run:
            OneDriveBackend("onedrive").validate(test_connection=True)
        assert run.call_args.args[0] == ["rclone", "listremotes"]

    def test_remote_missing(self):
        with patch("backupdb.storage.backends.onedrive.check_command"), \
                patch("backupdb.storage.backends.onedrive.subprocess.run",
                      return_value=completed(stdout="onedrive-business:\n")):
            with pytest.raises(ConfigurationError, match="rclone config"):
                OneDriveBackend("onedrive").validate(test_connection=True)

    def test_upload_only_archives(self, tmp_path):
        (tmp_path / "20250806_shop.sql.gz").write_bytes(b"x")
        (tmp_path / "db2").mkdir()
        (tmp_path / "db2" / "20250806_blog.sql.gz").write_bytes(b"y")
        (tmp_path / "notes.txt").write_text("skip me")

        with patch("backupdb.storage.backends.onedrive.subprocess.run",
                   return_value=completed()) as run:
            OneDriveBackend("onedrive", "/DatabaseBackups/").upload(tmp_path, DAY)

        commands = [x.args[0] for x in run.call_args_list]
        assert commands == [
            ["rclone", "mkdir", "onedrive:/DatabaseBackups/20250806"],
            ["rclone", "copy", str(tmp_path / "20250806_shop.sql.gz"),
             "onedrive:/DatabaseBackups/20250806"],
            ["rclone", "mkdir", "onedrive:/DatabaseBackups/20250806/db2"],
            ["rclone", "copy", str(tmp_path / "db2" / "20250806_blog.sql.gz"),
             "onedrive:/DatabaseBackups/20250806/db2"],
        ]

    def test_upload_failure(self, tmp_path):
        (tmp_path / "20250806_shop.sql.gz").write_bytes(b"x")

        def rclone(cmd, **kwargs):
            return completed(returncode=1 if cmd[1] == "copy" else 0, stderr="quota exceeded")

        with patch("backupdb.storage.backends.onedrive.subprocess.run", side_effect=rclone):
            with pytest.raises(StorageError, match="Failed to upload: 20250806_shop.sql.gz"):
                OneDriveBackend("onedrive").upload(tmp_path, DAY)
