"""Exim message identifiers and the spool file names derived from them."""

from __future__ import annotations

import re

from exim_spool.errors import InvalidIdentifier

_ID_PATTERN = r"(?:[^\W_]{6}-){2}[^\W_]{2}"

MESSAGE_ID_RE = re.compile(_ID_PATTERN, re.ASCII)
HEADER_FILE_RE = re.compile(rf"({_ID_PATTERN})-H", re.ASCII)
DATA_FILE_RE = re.compile(rf"({_ID_PATTERN})-D", re.ASCII)


def is_message_id(value: str) -> bool:
    return MESSAGE_ID_RE.fullmatch(value) is not None


def validate_message_id(value: str) -> str:
    """Return ``value`` unchanged or raise ``InvalidIdentifier``."""

    if not is_message_id(value):
        raise InvalidIdentifier(value)
    return value


def header_file_name(message_id: str) -> str:
    return f"{message_id}-H"


def data_file_name(message_id: str) -> str:
    return f"{message_id}-D"


def message_id_from_file_name(name: str) -> str | None:
    """Return the message id encoded in a ``-H`` or ``-D`` file name."""

    match = HEADER_FILE_RE.fullmatch(name) or DATA_FILE_RE.fullmatch(name)
    if match is None:
        return None
    return match.group(1)


__all__ = [
    "DATA_FILE_RE",
    "HEADER_FILE_RE",
    "MESSAGE_ID_RE",
    "data_file_name",
    "header_file_name",
    "is_message_id",
    "message_id_from_file_name",
    "validate_message_id",
]
