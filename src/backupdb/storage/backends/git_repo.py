import shutil
from datetime import date
from pathlib import Path
from typing import Dict, List

import git
from git import Repo
from loguru import logger

from backupdb.backup import clean_old_backups
from backupdb.exceptions import ConfigurationError, StorageError
from backupdb.storage.backends.base import Backend, StorageType
from backupdb.utils.converters import format_date
from backupdb.utils.files import check_command

PLACEHOLDER = 'YourUsername'


class GitBackend(Backend):
    """
    Git backend. The backup directory is a clone of the backup repository.
    """

    storage_type = StorageType.GIT

    def __init__(self, repo_url: str, retention_days: int = -1):
        """
        :param repo_url: url of the remote repository
        :param retention_days: -1 never deletes, 0 keeps only today's dumps
        """
        self.repo_url = repo_url
        self.retention_days = retention_days

    def validate(self, test_connection: bool = False) -> None:
        check_command('git')
        if not self.repo_url or PLACEHOLDER in self.repo_url:
            raise ConfigurationError(
                'Git repository not configured. Set VGX_DB_GIT_REPO environment variable.')
        if test_connection:
            logger.info('Testing Git connection...')
            try:
                git.cmd.Git().ls_remote(self.repo_url)
            except git.exc.GitCommandError as e:
                logger.debug(f'git ls-remote failed: {e}')
                raise ConfigurationError(
                    'Git connection failed. Check repository URL and SSH keys.') from e

    def prepare(self, backup_dir: Path) -> None:
        """
        Clone the repository into the backup dir.
        A backup dir that is not a repository is removed first.
        """
        if backup_dir.is_dir() and not (backup_dir / '.git').is_dir():
            logger.info('Removing existing backup directory for Git setup...')
            shutil.rmtree(backup_dir)
        if not (backup_dir / '.git').is_dir():
            logger.info('Cloning Git repository...')
            try:
                Repo.clone_from(self.repo_url, backup_dir)
            except git.exc.GitCommandError as e:
                raise StorageError(f'Failed to clone Git repository: {e}') from e

    def apply_retention(self, backup_dir: Path, today: date) -> List[Path]:
        return clean_old_backups(backup_dir, self.retention_days, today)

    def upload(self, backup_dir: Path, today: date) -> None:
        logger.info('Uploading to Git repository...')
        try:
            repo = Repo(backup_dir)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
            raise StorageError(f'Not a git repository: {backup_dir}') from e

        logger.info('Updating Git repository...')
        try:
            repo.remote('origin').pull()
        except (git.exc.GitCommandError, ValueError) as e:
            # empty remotes have nothing to pull
            logger.warning(f'git pull failed: {e}')

        if not repo.is_dirty(untracked_files=True):
            logger.info('No changes to commit.')
            return

        logger.info('Changes detected. Committing...')
        repo.git.add(A=True)
        repo.index.commit(f'Database backup: {format_date(today)}')
        try:
            branch = repo.active_branch.name
        except TypeError as e:
            raise StorageError('HEAD is detached, cannot push the backup.') from e
        try:
            repo.remote('origin').push(branch).raise_if_error()
        except (git.exc.GitCommandError, ValueError) as e:
            raise StorageError(f'git push failed: {e}') from e
        logger.success('Git upload completed.')

    def summary(self) -> Dict[str, str]:
        return {
            'Git Repository': self.repo_url,
            'Git Retention Days': str(self.retention_days),
        }
