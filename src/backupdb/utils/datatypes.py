"""
Contains classes representing database hosts and backup results.
"""
from enum import Enum
from typing import Dict, List

DEFAULT_PORT = 3306


class DatabaseHost:
    """
    Connection data of one MySQL server.
    """

    def __init__(self, host: str, user: str, password: str, port: int = DEFAULT_PORT):
        """
        :param host: hostname or ip
        :param user: user for mysql/mysqldump
        :param password: password of the user
        :param port: default: 3306
        """
        self.host = host
        self.user = user
        self.password = password
        self.port = port

    def __str__(self):
        return f'{self.user}@{self.host}:{self.port}'

    def __repr__(self):
        return f'DatabaseHost({self})'

    def __eq__(self, other):
        if not isinstance(other, DatabaseHost):
            return NotImplemented
        return ((self.host, self.user, self.password, self.port)
                == (other.host, other.user, other.password, other.port))


class DumpResult(Enum):
    """
    Outcome of a single database backup.
    """
    CREATED = 'created'
    UNCHANGED = 'unchanged'
    EMPTY = 'empty'
    FAILED = 'failed'


class BackupSummary:
    """
    Collects the results of a backup run.
    """

    def __init__(self):
        self.results: Dict[DumpResult, List[str]] = {x: [] for x in DumpResult}
        self.unreachable_hosts: List[DatabaseHost] = []

    def add(self, database: str, result: DumpResult):
        self.results[result].append(database)

    def count(self, result: DumpResult) -> int:
        return len(self.results[result])

    @property
    def has_failures(self) -> bool:
        """
        True if a host was unreachable or a dump failed.
        """
        return bool(self.unreachable_hosts or self.results[DumpResult.FAILED])

    def __str__(self):
        return (f'{self.count(DumpResult.CREATED)} created, '
                f'{self.count(DumpResult.UNCHANGED)} unchanged, '
                f'{self.count(DumpResult.EMPTY)} empty, '
                f'{self.count(DumpResult.FAILED)} failed, '
                f'{len(self.unreachable_hosts)} unreachable hosts')
