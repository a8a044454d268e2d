import logging
import os
from datetime import datetime
from pathlib import Path


logger = logging.getLogger(__name__)

# Maximum size of an input file in bytes
SIZE_LIMIT = 10 * 1024 * 1024
# Maximum number of lines of an input file
LINE_LIMIT = 10000


class FileInputError(ValueError):
    """An input file can not be compared; the message is meant for the user."""


def _get_env_limit(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        limit = int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got '{value}'.") from e
    if limit < 0:
        raise ValueError(f"{name} must not be negative, got {limit}.")
    return limit


def get_size_limit() -> int:
    return _get_env_limit("SDIFF_SIZE_LIMIT", SIZE_LIMIT)


def get_line_limit() -> int:
    return _get_env_limit("SDIFF_LINE_LIMIT", LINE_LIMIT)


def open_file(path: str | Path, size_limit: int | None = None) -> Path:
    """
    Checks that `path` is an existing, readable regular file within the size limit.

    Raises:
        FileInputError: with a message naming the file and the problem.
    """
    path = Path(path)
    if size_limit is None:
        size_limit = get_size_limit()

    if not path.exists():
        raise FileInputError(f"{path.name} does not exist.")
    if not path.is_file():
        raise FileInputError(f"{path.name} is not a normal file.")
    if not os.access(path, os.R_OK):
        raise FileInputError(f"{path.name} is not readable.")
    if path.stat().st_size > size_limit:
        raise FileInputError(f"{path.name} exceeds size limit ({size_limit} bytes).")
    return path


def read_lines(
    path: str | Path,
    encoding: str = 'utf-8',
    size_limit: int | None = None,
    line_limit: int | None = None,
) -> list[str]:
    """
    Reads a text file as a list of lines without their terminators.

    `\\n`, `\\r\\n` and `\\r` all end a line; a missing newline at the end of
    the file makes no difference.
    """
    path = open_file(path, size_limit)
    if line_limit is None:
        line_limit = get_line_limit()

    lines = []
    try:
        with open(path, encoding=encoding, newline=None) as f:
            for line in f:
                lines.append(line.rstrip('\n'))
                if len(lines) > line_limit:
                    raise FileInputError(f"{path.name} exceeds line limit ({line_limit} lines).")
    except UnicodeDecodeError as e:
        raise FileInputError(f"{path.name} is not a {encoding} text file.") from e

    logger.debug(f"Read {len(lines)} lines from {path}")
    return lines


def file_timestamp(path: str | Path) -> str:
    """Last modification time of `path` in local time, as used in unified headers."""
    mtime = os.stat(path).st_mtime
    return datetime.fromtimestamp(mtime).astimezone().strftime('%Y-%m-%d %H:%M:%S.%f %z')
