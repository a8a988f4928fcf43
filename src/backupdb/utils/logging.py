import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = '<level>[{level}] {message}</level>'
FILE_FORMAT = '{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}'


def console_level(verbose: bool = False, debug: bool = False) -> str:
    """
    Quiet runs only report warnings and errors.
    """
    if debug:
        return 'DEBUG'
    if verbose:
        return 'INFO'
    return 'WARNING'


def setup_logging(verbose: bool = False, debug: bool = False,
                  log_dir: Optional[Path] = None, log_level: str = 'INFO'):
    logger.remove()
    logger.add(sys.stderr,
               format=CONSOLE_FORMAT,
               level=console_level(verbose, debug),
               backtrace=debug,
               diagnose=debug)
    if not log_dir:
        return
    if not os.path.isdir(log_dir):
        os.makedirs(log_dir, exist_ok=True)
    logger.add(Path(log_dir) / 'backupdb.log',
               format=FILE_FORMAT,
               rotation='00:00',
               retention='14 days',
               level=log_level,
               backtrace=True,
               diagnose=True)
