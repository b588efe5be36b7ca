"""Helpers for locating message files inside an Exim spool input directory."""

from __future__ import annotations

import string
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from exim_spool.errors import NotADirectory, NotAFile
from exim_spool.readers.spool_ids import HEADER_FILE_RE, data_file_name, header_file_name


_SPLIT_DIRECTORY_NAMES = frozenset(string.ascii_letters + string.digits)


@dataclass(frozen=True)
class SpoolPaths:
    """Validated locations of the two files making up one spool entry."""

    directory: Path
    header_path: Path
    data_path: Path


@dataclass(frozen=True)
class SpoolEntry:
    message_id: str
    directory: Path


def resolve_spool_paths(directory: Path, message_id: str) -> SpoolPaths:
    """Return the ``-H``/``-D`` paths for ``message_id`` beneath ``directory``.

    Missing entries raise ``FileNotFoundError``; entries of the wrong type
    raise ``NotADirectory`` or ``NotAFile``.
    """

    directory = Path(directory)
    if not directory.exists():
        raise FileNotFoundError(f"Spool directory not found: {directory}")
    if not directory.is_dir():
        raise NotADirectory(directory)

    header_path = directory / header_file_name(message_id)
    data_path = directory / data_file_name(message_id)
    for path in (header_path, data_path):
        _check_regular_file(path)

    return SpoolPaths(directory=directory, header_path=header_path, data_path=data_path)


def _check_regular_file(path: Path) -> None:
    if not path.exists():
        raise FileNotFoundError(f"Spool file not found: {path}")
    if not path.is_file():
        raise NotAFile(path)


def iter_spool_entries(directory: Path) -> Iterator[SpoolEntry]:
    """Yield spool entries found in ``directory`` and its split sub-directories.

    Exim's ``split_spool_directory`` option spreads messages over
    sub-directories named by a single base-62 character, so one level of
    those is searched as well as the directory itself.
    """

    directory = Path(directory)
    if not directory.exists():
        raise FileNotFoundError(f"Spool directory not found: {directory}")
    if not directory.is_dir():
        raise NotADirectory(directory)

    yield from _entries_in(directory)
    for child in sorted(directory.iterdir(), key=lambda item: item.name):
        if len(child.name) == 1 and child.name in _SPLIT_DIRECTORY_NAMES and child.is_dir():
            yield from _entries_in(child)


def _entries_in(directory: Path) -> Iterator[SpoolEntry]:
    found: list[str] = []
    for child in directory.iterdir():
        match = HEADER_FILE_RE.fullmatch(child.name)
        if match is None or not child.is_file():
            continue
        found.append(match.group(1))
    for message_id in sorted(found):
        yield SpoolEntry(message_id=message_id, directory=directory)


def iter_message_ids(directory: Path) -> Iterator[str]:
    for entry in iter_spool_entries(directory):
        yield entry.message_id


__all__ = [
    "SpoolEntry",
    "SpoolPaths",
    "iter_message_ids",
    "iter_spool_entries",
    "resolve_spool_paths",
]
