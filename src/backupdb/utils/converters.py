"""
helpers for converting values from one format to a different one
"""
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, List

DATE_FORMAT = '%Y%m%d'

DUMP_FILE_PATTERN = re.compile(r'^(\d{8})_(.+)\.sql(\.gz)?$')

TRUE_VALUES = ('true', '1', 'yes', 'on')


def parse_date(value: str) -> date:
    """
    Convert the given date string to a date object.
    Format: DATE_FORMAT
    :param value: date to parse
    :return: parsed date
    """
    return datetime.strptime(value, DATE_FORMAT).date()


def format_date(value: date) -> str:
    """
    Convert the given date object to the correct string.
    :param value: date or datetime object
    :return: formatted date
    """
    return value.strftime(DATE_FORMAT)


def dump_file_name(day: date, database: str, compressed: bool = True) -> str:
    """
    File name of a dump.
    <YYYYMMDD>_<database>.sql.gz
    :param day: day of the dump
    :param database: name of the database
    :param compressed: whether to append .gz
    :return: file name
    """
    name = f'{format_date(day)}_{database}.sql'
    return f'{name}.gz' if compressed else name


def parse_dump_file_name(file_path: str or Path) -> dict:
    """
    Parse the given file_path.
    <YYYYMMDD>_<database>.sql[.gz]
    :param file_path:
    :return: Dictionary with keys: date, database, compressed
    """
    match = DUMP_FILE_PATTERN.match(Path(file_path).name)
    if not match:
        raise ValueError(f'Invalid file name: {file_path}')
    return {
        'date': parse_date(match.group(1)),
        'database': match.group(2),
        'compressed': match.group(3) is not None,
    }


def split_list(value: Any) -> List[str]:
    """
    Split a comma separated value into its parts.
    dynaconf parses env vars as toml, so single values may arrive as int/bool/list.
    :param value: raw value
    :return: list of stripped strings. A trailing comma does not add an entry,
             other empty entries are kept.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(x).strip() for x in value]
    if isinstance(value, bool):
        value = str(value).lower()
    value = str(value)
    if value.strip() == '':
        return []
    parts = [x.strip() for x in value.split(',')]
    if parts[-1] == '':
        parts.pop()
    return parts


def to_bool(value: Any) -> bool:
    """
    Interpret a config value as a flag.
    :param value: raw value
    :return: True for true/1/yes/on
    """
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES
