"""
Dumps databases and decides which dumps are kept.
"""
import os
import shutil
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Iterable, List, Optional

from loguru import logger

from backupdb.exceptions import DumpError
from backupdb.mysql.client import Client
from backupdb.utils.converters import dump_file_name, parse_dump_file_name
from backupdb.utils.datatypes import BackupSummary, DatabaseHost, DumpResult
from backupdb.utils.files import gzip_file, same_content


def backup_database(client: Client, database: str, backup_dir: Path, today: date,
                    incremental: bool = True) -> DumpResult:
    """
    Dump a database and keep the compressed dump if it differs from yesterday's.
    :param client: mysql client of the host
    :param database: name of the database
    :param backup_dir: local backup directory
    :param today: day of the backup run
    :param incremental: compare with yesterday's dump
    :return: what happened to the dump
    """
    backup_file = backup_dir / dump_file_name(today, database, compressed=False)
    logger.info(f'Backing up database: {database} from {client.host.host}')

    try:
        client.dump(database, backup_file)
    except DumpError as e:
        logger.error(f'mysqldump failed for {e.database}: {e.message}')
        _remove_partial(backup_file)
        return DumpResult.FAILED
    except OSError as e:
        logger.error(f'Could not write dump of {database}: {e}')
        _remove_partial(backup_file)
        return DumpResult.FAILED

    if backup_file.stat().st_size == 0:
        logger.warning(f'Backup file is empty, skipping: {database}')
        os.remove(backup_file)
        return DumpResult.EMPTY

    if incremental:
        yesterday_file = backup_dir / dump_file_name(today - timedelta(days=1), database)
        if yesterday_file.is_file():
            logger.info("Comparing with yesterday's backup...")
            try:
                unchanged = same_content(backup_file, yesterday_file)
            except (OSError, EOFError) as e:
                # unreadable archives (truncated, lfs pointers) count as changed
                logger.warning(f"Cannot read yesterday's backup {yesterday_file.name}: {e}")
                unchanged = False
            if unchanged:
                logger.info(f'No changes detected in {database}, skipping.')
                os.remove(backup_file)
                return DumpResult.UNCHANGED

    try:
        gzip_file(backup_file)
    except OSError as e:
        logger.error(f'Could not compress dump of {database}: {e}')
        _remove_partial(backup_file)
        _remove_partial(Path(f'{backup_file}.gz'))
        return DumpResult.FAILED
    logger.success(f'Database backup created: {database}')
    return DumpResult.CREATED


def _remove_partial(path: Path):
    if path.exists():
        os.remove(path)


def run_backups(hosts: Iterable[DatabaseHost], backup_dir: Path, today: date,
                incremental: bool = True,
                excluded_databases: Optional[Iterable[str]] = None) -> BackupSummary:
    """
    Back up all databases of all hosts.
    Unreachable hosts and failed dumps are logged and skipped.
    :param hosts: database hosts
    :param backup_dir: local backup directory. Created if missing.
    :param today: day of the backup run
    :param incremental: skip dumps identical to yesterday's
    :param excluded_databases: schemas that are never dumped
    :return: summary of the run
    """
    backup_dir.mkdir(parents=True, exist_ok=True)
    summary = BackupSummary()
    for host in hosts:
        client = Client(host, excluded_databases)
        logger.info(f'Processing database host: {host.host}')
        if not client.test_connection():
            logger.error(f'Cannot connect to database: {host.host}')
            summary.unreachable_hosts.append(host)
            continue
        try:
            databases = client.list_databases()
        except RuntimeError as e:
            logger.error(str(e))
            summary.unreachable_hosts.append(host)
            continue
        for database in databases:
            result = backup_database(client, database, backup_dir, today, incremental)
            if result == DumpResult.FAILED:
                logger.error(f'Failed to backup database: {database}')
            summary.add(database, result)
    logger.info(f'Backups finished: {summary}')
    return summary


def _backup_day(path: Path) -> date:
    """
    Day of a backup file. Taken from the name, mtime for foreign names.
    """
    try:
        return parse_dump_file_name(path)['date']
    except ValueError:
        return datetime.fromtimestamp(path.stat().st_mtime).date()


def clean_old_backups(backup_dir: Path, retention_days: int, today: date) -> List[Path]:
    """
    Remove compressed dumps older than retention_days.
    -1 disables the cleanup, 0 only keeps today's dumps.
    :param backup_dir: local backup directory
    :param retention_days: days to keep
    :param today: day of the backup run
    :return: deleted files
    """
    if retention_days < 0 or not backup_dir.is_dir():
        return []
    deleted = []
    for path in sorted(backup_dir.rglob('*.sql.gz')):
        if '.git' in path.relative_to(backup_dir).parts or not path.is_file():
            continue
        if (today - _backup_day(path)).days > retention_days:
            logger.info(f'Deleting old backup: {path.name} (Max {retention_days} days)')
            os.remove(path)
            deleted.append(path)
    logger.info(f'Cleaned up old backups (older than {retention_days} days)')
    return deleted


def cleanup_local_backups(backup_dir: Path, enabled: bool = True) -> bool:
    """
    Delete the whole local backup directory after an upload.
    :return: True if the directory was deleted
    """
    if not enabled or not backup_dir.is_dir():
        return False
    shutil.rmtree(backup_dir)
    logger.warning(f'Deleted entire backup directory: {backup_dir}')
    return True
