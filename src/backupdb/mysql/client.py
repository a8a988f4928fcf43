"""
MySQL client / db actions / interactions
Wraps the mysql and mysqldump binaries.
"""
import os
import subprocess
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from loguru import logger

from backupdb.exceptions import DumpError
from backupdb.utils.datatypes import DatabaseHost

DEFAULT_EXCLUDED_DATABASES = ('mysql', 'information_schema', 'performance_schema', 'sys')

MYSQLDUMP_OPTIONS = ('--add-drop-table', '--allow-keywords', '--skip-dump-date', '-c')

CONNECT_TIMEOUT = 10


class Client:
    """
    MySQL client for one host. Uses the mysql command line tools.
    """

    def __init__(self, host: DatabaseHost,
                 excluded_databases: Optional[Iterable[str]] = None):
        """
        :param host: connection data
        :param excluded_databases: schemas that are never dumped.
            mysql, information_schema, performance_schema and sys by default
        """
        self.host = host
        self.excluded_databases = set(
            DEFAULT_EXCLUDED_DATABASES if excluded_databases is None else excluded_databases)

    def __str__(self):
        return str(self.host)

    @property
    def _env(self) -> Dict[str, str]:
        """
        Environment for child processes. The password never shows up in the process list.
        """
        env = os.environ.copy()
        env['MYSQL_PWD'] = self.host.password
        return env

    def _connection_args(self) -> List[str]:
        return ['-h', self.host.host, '-P', str(self.host.port), '-u', self.host.user]

    def _mysql(self, query: str, *extra: str) -> subprocess.CompletedProcess:
        cmd = ['mysql', *self._connection_args(),
               f'--connect-timeout={CONNECT_TIMEOUT}', *extra, '-e', query]
        return subprocess.run(cmd, capture_output=True, text=True, env=self._env)

    def test_connection(self) -> bool:
        """
        Check whether we can log in.
        :return: True if SELECT 1 succeeded
        """
        logger.debug(f'Testing connection to {self}')
        result = self._mysql('SELECT 1;')
        if result.returncode != 0:
            logger.debug(f'Connection to {self} failed: {result.stderr.strip()}')
        return result.returncode == 0

    def list_databases(self) -> List[str]:
        """
        Get all databases of the host except the excluded system schemas.
        :return: list of database names
        """
        result = self._mysql('SHOW DATABASES;', '-N', '-B')
        if result.returncode != 0:
            raise RuntimeError(f'SHOW DATABASES failed on {self}: {result.stderr.strip()}')
        databases = [x.strip() for x in result.stdout.splitlines() if x.strip()]
        return [x for x in databases if x not in self.excluded_databases]

    def dump(self, database: str, target: Path) -> None:
        """
        Dump the database with mysqldump into target.
        :param database: name of the database
        :param target: output file. Overwritten if it exists.
        :raises DumpError: if mysqldump fails
        """
        cmd = ['mysqldump', *MYSQLDUMP_OPTIONS, *self._connection_args(), database]
        logger.debug(f'Running: {" ".join(cmd)}')
        with open(target, 'wb') as f:
            result = subprocess.run(cmd, stdout=f, stderr=subprocess.PIPE, env=self._env)
        if result.returncode != 0:
            raise DumpError(database, result.stderr.decode(errors='replace').strip())
