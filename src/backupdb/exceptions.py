"""
Exceptions raised by backupdb.
"""


class BackupDBError(Exception):
    """
    Base class for all errors of this tool.
    """


class ConfigurationError(BackupDBError):
    """
    Invalid or incomplete configuration, a missing binary or a failed connection test.
    """


class DumpError(BackupDBError):
    """
    mysqldump failed for a database.
    """

    def __init__(self, database: str, message: str):
        """
        :param database: name of the database
        :param message: error output of mysqldump
        """
        super().__init__(f'Dump of {database} failed: {message}')
        self.database = database
        self.message = message


class StorageError(BackupDBError):
    """
    Uploading to or preparing a storage backend failed.
    """
