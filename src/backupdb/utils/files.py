"""
file helpers: compression, change detection and binary lookups
"""
import gzip
import os
import shutil
from pathlib import Path

from loguru import logger

from backupdb.exceptions import ConfigurationError

CHUNK_SIZE = 1024 * 1024


def gzip_file(source: Path, level: int = 9) -> Path:
    """
    Compress the given file to <source>.gz and delete the source.
    An existing archive is overwritten.
    :param source: plain file
    :param level: gzip compression level
    :return: path of the archive
    """
    target = Path(f'{source}.gz')
    with open(source, 'rb') as f_in, gzip.open(target, 'wb', compresslevel=level) as f_out:
        shutil.copyfileobj(f_in, f_out, CHUNK_SIZE)
    os.remove(source)
    logger.debug(f'Compressed {source} -> {target}')
    return target


def same_content(plain: Path, gzipped: Path) -> bool:
    """
    Compare a plain file with the decompressed content of a gzip archive.
    :param plain: uncompressed file
    :param gzipped: gzip archive
    :return: True if the content is byte-identical
    """
    with open(plain, 'rb') as f_plain, gzip.open(gzipped, 'rb') as f_gz:
        while True:
            a = f_plain.read(CHUNK_SIZE)
            b = f_gz.read(CHUNK_SIZE)
            if a != b:
                return False
            if not a:
                return True


def check_command(cmd: str):
    """
    Make sure that a required binary is on the PATH.
    :param cmd: name of the binary
    :raises ConfigurationError: if it is missing
    """
    if shutil.which(cmd) is None:
        raise ConfigurationError(f"Required command '{cmd}' not found. Please install it.")
