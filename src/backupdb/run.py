"""
Creates MySQL backups with mysqldump and uploads them to Git, S3 or OneDrive.
"""
import sys
import time
from datetime import date, datetime
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import List, Optional

import click
from dynaconf import Dynaconf
from loguru import logger

from backupdb.backup import cleanup_local_backups, run_backups
from backupdb.exceptions import ConfigurationError, StorageError
from backupdb.mysql.client import Client
from backupdb.storage.backends.base import Backend, StorageType
from backupdb.storage.backends.git_repo import GitBackend
from backupdb.storage.backends.onedrive import OneDriveBackend
from backupdb.storage.backends.s3 import S3Backend
from backupdb.utils.config import (find_env_file, get_backup_dir, get_excluded_databases,
                                   get_int, get_onedrive_setting, get_str, parse_config,
                                   parse_hosts)
from backupdb.utils.converters import to_bool
from backupdb.utils.datatypes import DatabaseHost
from backupdb.utils.files import check_command
from backupdb.utils.logging import setup_logging

PACKAGE_NAME = 'backupdb'
RULER = '=' * 70

EPILOG = """
\b
STORAGE TYPES (VGX_DB_STORAGE_TYPE):
  git       Git repository (default)
  s3        AWS S3 or S3-compatible (Backblaze B2, Wasabi, MinIO)
  onedrive  Microsoft OneDrive through rclone

\b
CONFIGURATION:
  Environment variables, optionally loaded from --env-file,
  ./BackupDB.env or $HOME/BackupDB.env.

\b
  Git:       VGX_DB_GIT_REPO, VGX_DB_GIT_RETENTION_DAYS (-1 = never delete)
  S3:        VGX_DB_S3_BUCKET, VGX_DB_S3_PREFIX, VGX_DB_S3_ENDPOINT_URL,
             VGX_DB_S3_REGION, AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY
  OneDrive:  ONEDRIVE_REMOTE, ONEDRIVE_PATH
  Database:  VGX_DB_HOSTS, VGX_DB_USERS, VGX_DB_PASSWORDS, VGX_DB_PORTS
  General:   VGX_DB_OPATH, VGX_DB_DELETE_LOCAL_BACKUPS,
             VGX_DB_INCREMENTAL_BACKUPS, VGX_DB_LOG_DIR

\b
EXAMPLES:
  backupdb --test                    Test configuration
  backupdb --debug                   Run backup with debug logging
  VGX_DB_STORAGE_TYPE=s3 backupdb    Use S3 storage
"""


def get_version() -> str:
    try:
        return version(PACKAGE_NAME)
    except PackageNotFoundError:
        return 'unknown'


def create_backend(settings: Dynaconf) -> Backend:
    """
    Create the storage backend selected by VGX_DB_STORAGE_TYPE.
    :param settings: Dynaconf settings
    :return: backend
    """
    storage_type = StorageType(get_str(settings, 'STORAGE_TYPE', StorageType.GIT.value))
    match storage_type:
        case StorageType.GIT:
            return GitBackend(
                repo_url=get_str(settings, 'GIT_REPO'),
                retention_days=get_int(settings, 'GIT_RETENTION_DAYS', -1),
            )
        case StorageType.S3:
            return S3Backend(
                s3_bucket=get_str(settings, 'S3_BUCKET'),
                s3_prefix=get_str(settings, 'S3_PREFIX', 'DatabaseBackups/'),
                s3_endpoint=get_str(settings, 'S3_ENDPOINT_URL') or None,
                s3_region=get_str(settings, 'S3_REGION') or None,
            )
        case StorageType.ONEDRIVE:
            return OneDriveBackend(
                remote=get_onedrive_setting(settings, 'REMOTE'),
                path=get_onedrive_setting(settings, 'PATH', '/DatabaseBackups'),
            )
        case _:
            raise ConfigurationError(f'Unsupported storage type: {storage_type}')


def validate_config(backend: Backend, hosts: List[DatabaseHost],
                    test_connection: bool = False) -> None:
    """
    Validate the storage and the database configuration.
    :param backend: storage backend
    :param hosts: database hosts
    :param test_connection: also connect to the storage and every database
    :raises ConfigurationError: if anything is missing
    """
    logger.info('Validating configuration...')
    backend.validate(test_connection)
    check_command('mysql')
    check_command('mysqldump')
    if test_connection:
        logger.info('Testing database connections...')
        for host in hosts:
            logger.info(f'Testing connection to database: {host.host}')
            if not Client(host).test_connection():
                raise ConfigurationError(f'Cannot connect to database: {host.host}')
        logger.success('All database connections successful!')
    logger.success('Configuration validation passed!')


def show_config(backend: Backend, backup_dir: Path, hosts: List[DatabaseHost]):
    logger.info('Configuration Summary:')
    lines = {
        'Storage Type': backend.storage_type.value,
        'Backup Directory': str(backup_dir),
        **backend.summary(),
        'Database Hosts': ' '.join(x.host for x in hosts),
        'Database Users': ' '.join(x.user for x in hosts),
    }
    for key, value in lines.items():
        click.echo(f'  {key}: {value}')
    click.echo()


def fail(message: str, hint: Optional[str] = None):
    logger.error(message)
    if hint:
        logger.error(hint)
    sys.exit(1)


@click.command(context_settings={'help_option_names': ['-h', '--help']}, epilog=EPILOG)
@click.option('-t', '--test', '--test-config', 'test_mode', is_flag=True, default=False,
              help='Test the configuration and all connections, then exit.')
@click.option('-d', '--debug', is_flag=True, default=False,
              help='Debug mode (verbose logging).')
@click.option('--dry-run', is_flag=True, default=False,
              help='Show what would be done without dumping or uploading anything.')
@click.option('-e', '--env-file', type=click.Path(dir_okay=False, path_type=Path),
              default=None,
              help='Env file with the configuration. '
                   'Defaults to ./BackupDB.env or ~/BackupDB.env if present.')
@click.version_option(None, '-v', '--version', package_name=PACKAGE_NAME,
                      message='%(prog)s v%(version)s\nMulti-storage database backup tool')
def main(test_mode, debug, dry_run, env_file):
    """
    Back up all MySQL databases and upload them to Git, S3 or OneDrive.
    Dumps identical to yesterday's are skipped.
    """
    start = time.monotonic()
    setup_logging(verbose=test_mode or dry_run, debug=debug)

    click.echo(RULER)
    click.echo(f'DATABASE BACKUP TOOL v{get_version()}')
    click.echo(f'Starting at {datetime.now():%c}')
    click.echo(RULER)

    try:
        settings = parse_config(find_env_file(env_file))
        log_dir = get_str(settings, 'LOG_DIR')
        if log_dir:
            setup_logging(test_mode or dry_run, debug, Path(log_dir),
                          get_str(settings, 'LOG_LEVEL', 'INFO'))
        backup_dir = get_backup_dir(settings)
        backend = create_backend(settings)
        hosts = parse_hosts(settings)
    except (ConfigurationError, ValueError) as e:
        fail(str(e), 'Configuration validation failed. Use --help for setup instructions.')

    show_config(backend, backup_dir, hosts)

    try:
        validate_config(backend, hosts)
    except ConfigurationError as e:
        fail(str(e), 'Configuration validation failed. Use --help for setup instructions.')

    if test_mode:
        logger.info('Running connection tests...')
        try:
            validate_config(backend, hosts, test_connection=True)
        except ConfigurationError as e:
            fail(str(e), 'Configuration test failed.')
        logger.success('Configuration test passed! Ready for backups.')
        return

    if dry_run:
        logger.info('DRY RUN MODE - No actual backups will be performed')
        logger.info(f'Would backup databases from: {" ".join(x.host for x in hosts)}')
        logger.info(f'Would upload to: {backend.storage_type.value}')
        return

    logger.info('Starting backup process...')
    today = date.today()
    try:
        backend.prepare(backup_dir)
    except StorageError as e:
        fail(str(e), 'Backup process failed.')

    backend.apply_retention(backup_dir, today)
    summary = run_backups(
        hosts, backup_dir, today,
        incremental=to_bool(settings('INCREMENTAL_BACKUPS', default=True)),
        excluded_databases=get_excluded_databases(settings),
    )
    if summary.has_failures:
        logger.warning(f'Some databases were not backed up: {summary}')

    try:
        backend.upload(backup_dir, today)
    except StorageError as e:
        fail(str(e), 'Upload process failed.')

    cleanup_local_backups(backup_dir, to_bool(settings('DELETE_LOCAL_BACKUPS', default=True)))
    logger.info('Backup process completed successfully!')

    click.echo(RULER)
    click.echo(f'SUCCESS: Backup process completed successfully at {datetime.now():%c}')
    click.echo(f'Total execution time: {int(time.monotonic() - start)} seconds')
    click.echo(RULER)


if __name__ == '__main__':
    main()
