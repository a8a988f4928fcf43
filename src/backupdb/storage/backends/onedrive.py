import subprocess
from datetime import date
from pathlib import Path, PurePosixPath
from typing import Dict, List

from loguru import logger

from backupdb.exceptions import ConfigurationError, StorageError
from backupdb.storage.backends.base import Backend, StorageType
from backupdb.utils.converters import format_date
from backupdb.utils.files import check_command


class OneDriveBackend(Backend):
    """
    OneDrive backend. Uploads the compressed dumps with rclone.
    The remote has to be configured with `rclone config` beforehand.
    """

    storage_type = StorageType.ONEDRIVE

    def __init__(self, remote: str, path: str = '/DatabaseBackups'):
        """
        :param remote: name of the rclone remote
        :param path: folder on OneDrive
        """
        self.remote = remote
        self.path = path

    @staticmethod
    def _rclone(*args: str) -> subprocess.CompletedProcess:
        return subprocess.run(['rclone', *args], capture_output=True, text=True)

    def validate(self, test_connection: bool = False) -> None:
        check_command('rclone')
        if not self.remote:
            raise ConfigurationError(
                'OneDrive remote not configured. Set ONEDRIVE_REMOTE environment variable.')
        if test_connection:
            logger.info('Testing OneDrive connection...')
            if f'{self.remote}:' not in self.list_remotes():
                raise ConfigurationError(
                    f"OneDrive remote '{self.remote}' not found. Run: rclone config")

    def list_remotes(self) -> List[str]:
        result = self._rclone('listremotes')
        if result.returncode != 0:
            raise ConfigurationError(f'rclone listremotes failed: {result.stderr.strip()}')
        return [x.strip() for x in result.stdout.splitlines() if x.strip()]

    def target_dir(self, today: date) -> str:
        """
        <remote>:<path>/<YYYYMMDD>
        """
        return f'{self.remote}:{self.path.rstrip("/")}/{format_date(today)}'

    def upload(self, backup_dir: Path, today: date) -> None:
        logger.info('Uploading to OneDrive...')
        target = self.target_dir(today)
        for path in sorted(backup_dir.rglob('*.gz')):
            if not path.is_file():
                continue
            relative = path.relative_to(backup_dir)
            target_dir = str(PurePosixPath(target, *relative.parent.parts))
            # mkdir fails harmlessly if the folder exists
            self._rclone('mkdir', target_dir)
            logger.info(f'Uploading: {relative.as_posix()}')
            result = self._rclone('copy', str(path), target_dir)
            if result.returncode != 0:
                raise StorageError(
                    f'Failed to upload: {relative.as_posix()} ({result.stderr.strip()})')
        logger.success('OneDrive upload completed.')

    def summary(self) -> Dict[str, str]:
        return {
            'OneDrive Remote': self.remote,
            'OneDrive Path': self.path,
        }
