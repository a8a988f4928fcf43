from abc import ABC, abstractmethod
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Dict, List


class StorageType(Enum):
    """
    Represents supported storage backends.
    """
    GIT = 'git'
    S3 = 's3'
    ONEDRIVE = 'onedrive'


class Backend(ABC):
    """
    ABC for backend implementations.
    Implements how to validate, prepare and upload the local backup directory.
    """

    storage_type: StorageType

    @abstractmethod
    def validate(self, test_connection: bool = False) -> None:
        """
        Check the configuration of the backend.
        :param test_connection: also check that the remote is reachable
        :raises ConfigurationError: on invalid config or failed connection test
        """
        pass

    def prepare(self, backup_dir: Path) -> None:
        """
        Prepare the local backup directory before dumps are written.
        :param backup_dir: local backup directory
        """
        pass

    def apply_retention(self, backup_dir: Path, today: date) -> List[Path]:
        """
        Delete old backups. Nothing is deleted by default.
        :return: deleted files
        """
        return []

    @abstractmethod
    def upload(self, backup_dir: Path, today: date) -> None:
        """
        Upload the backup directory.
        :param backup_dir: local backup directory
        :param today: day of the backup run
        :raises StorageError: if the upload fails
        """
        pass

    @abstractmethod
    def summary(self) -> Dict[str, str]:
        """
        Returns the settings of the backend for the configuration printout.
        """
        pass
