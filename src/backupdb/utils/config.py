"""
config handling for dynaconf
"""
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from dynaconf import Dynaconf, ValidationError, Validator
from loguru import logger

from backupdb.exceptions import ConfigurationError
from backupdb.mysql.client import DEFAULT_EXCLUDED_DATABASES
from backupdb.storage.backends.base import StorageType
from backupdb.utils.converters import split_list
from backupdb.utils.datatypes import DEFAULT_PORT, DatabaseHost

ENVVAR_PREFIX = 'VGX_DB'
ENV_FILE_NAME = 'BackupDB.env'
DEFAULT_BACKUP_DIR = '~/DBBackup/'
STR_MARKER = '@str '


def find_env_file(explicit: Optional[Path] = None) -> Optional[Path]:
    """
    Locate the env file.
    An explicit path wins, then ./BackupDB.env and ~/BackupDB.env.
    :param explicit: path given on the command line
    :return: path or None
    """
    if explicit:
        return Path(explicit)
    for candidate in (Path.cwd() / ENV_FILE_NAME, Path.home() / ENV_FILE_NAME):
        if candidate.is_file():
            return candidate
    return None


def _retention_days_valid(value) -> bool:
    try:
        return int(value) >= -1
    except (TypeError, ValueError):
        return False


def parse_config(env_file: Optional[Path] = None) -> Dynaconf:
    """
    Parse the config from the environment.
    Values of the env file are exported to the environment first and take
    precedence over already set variables.
    :param env_file: optional .env style file
    :return: Dynaconf settings
    """
    if env_file:
        if not os.path.isfile(env_file):
            raise ConfigurationError(f'Env file {env_file} does not exist!')
        load_dotenv(env_file, override=True)
        logger.debug(f'Loaded environment from {env_file}')

    settings = Dynaconf(
        envvar_prefix=ENVVAR_PREFIX,
        validators=[
            Validator('STORAGE_TYPE', default=StorageType.GIT.value,
                      is_in=[x.value for x in StorageType]),
            Validator('OPATH', default=DEFAULT_BACKUP_DIR),
            Validator('DELETE_LOCAL_BACKUPS', default=True),
            Validator('GIT_RETENTION_DAYS', default=-1, condition=_retention_days_valid,
                      messages={'condition': f'{ENVVAR_PREFIX}_GIT_RETENTION_DAYS must be an '
                                             'integer of -1 or greater, got {value}'}),
            Validator('INCREMENTAL_BACKUPS', default=True),
            Validator('GIT_REPO', default='git@github.com:YourUsername/DBBackups.git'),
            Validator('S3_BUCKET', default=''),
            Validator('S3_PREFIX', default='DatabaseBackups/'),
            Validator('S3_ENDPOINT_URL', default=''),
            Validator('S3_REGION', default=''),
            Validator('HOSTS', default='localhost'),
            Validator('USERS', default='root'),
            Validator('PASSWORDS', default='password'),
            Validator('PORTS', default=''),
            Validator('EXCLUDED_DATABASES', default=','.join(DEFAULT_EXCLUDED_DATABASES)),
            Validator('LOG_LEVEL', default='INFO'),
        ]
    )
    try:
        settings.validators.validate()
    except ValidationError as e:
        raise ConfigurationError(f'Invalid configuration: {e}') from e
    return settings


def get_int(settings: Dynaconf, key: str, default: int) -> int:
    """
    Read an integer setting.
    :raises ConfigurationError: if the value is not an integer
    """
    value = settings(key, default=default)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f'{ENVVAR_PREFIX}_{key} must be an integer, got {value!r}')


def get_str(settings: Dynaconf, key: str, default: str = '') -> str:
    """
    Read a string setting. Empty values fall back to the default.
    """
    value = settings(key, default=default)
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def get_list(settings: Dynaconf, key: str) -> List[str]:
    """
    Read a comma separated setting exactly as it was written.
    dynaconf parses env values as toml (1e5 -> 100000.0), which would alter
    passwords, so the environment is read first.
    :param key: setting without the VGX_DB_ prefix
    :return: list of entries
    """
    value = os.environ.get(f'{ENVVAR_PREFIX}_{key}')
    if value is None:
        return split_list(settings(key))
    if value.startswith(STR_MARKER):
        value = value[len(STR_MARKER):]
    return split_list(value)


def get_backup_dir(settings: Dynaconf) -> Path:
    """
    Local backup directory with ~ and $VARS expanded.
    """
    raw = get_str(settings, 'OPATH', DEFAULT_BACKUP_DIR)
    return Path(os.path.expandvars(os.path.expanduser(raw)))


def get_onedrive_setting(settings: Dynaconf, key: str, default: str = '') -> str:
    """
    OneDrive settings are read from VGX_DB_ONEDRIVE_* or the unprefixed ONEDRIVE_* variables.
    :param key: REMOTE or PATH
    """
    value = get_str(settings, f'ONEDRIVE_{key}')
    return value or os.environ.get(f'ONEDRIVE_{key}') or default


def parse_hosts(settings: Dynaconf) -> List[DatabaseHost]:
    """
    Build the list of database hosts from the comma separated settings.
    Hosts, users and passwords must have the same length. Ports are optional:
    none means 3306 for every host, one value applies to every host.
    :param settings: Dynaconf settings
    :return: list of hosts
    """
    hosts = get_list(settings, 'HOSTS') or ['localhost']
    users = get_list(settings, 'USERS') or ['root']
    passwords = get_list(settings, 'PASSWORDS') or ['password']
    ports = get_list(settings, 'PORTS')

    for key, values in (('HOSTS', hosts), ('USERS', users)):
        if '' in values:
            raise ConfigurationError(
                f'{ENVVAR_PREFIX}_{key} contains an empty entry: {",".join(values)!r}')
    if len(hosts) != len(users) or len(hosts) != len(passwords):
        raise ConfigurationError(
            'Database configuration mismatch. Hosts, users, and passwords must have the '
            f'same length (hosts={len(hosts)}, users={len(users)}, '
            f'passwords={len(passwords)}).')
    if not ports:
        ports = [str(DEFAULT_PORT)]
    if len(ports) == 1:
        ports = ports * len(hosts)
    elif len(ports) != len(hosts):
        raise ConfigurationError(
            f'Database configuration mismatch. Got {len(ports)} ports for {len(hosts)} hosts.')
    try:
        ports = [int(x) for x in ports]
    except ValueError:
        raise ConfigurationError(f'Invalid port in {ENVVAR_PREFIX}_PORTS: {ports}')

    return [DatabaseHost(host=h, user=u, password=p, port=port)
            for h, u, p, port in zip(hosts, users, passwords, ports)]


def get_excluded_databases(settings: Dynaconf) -> List[str]:
    return [x for x in get_list(settings, 'EXCLUDED_DATABASES') if x]
