"""Helpers for writing reconstituted spool messages to disk."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import BinaryIO, Iterable

FILE_MODE = 0o640


def format_headers(headers: Iterable[bytes]) -> bytes:
    """Return the header block: each header on its own line, then a blank line."""

    return b"".join(header + b"\n" for header in headers) + b"\n"


def write_message(
    target: Path,
    *,
    headers: Iterable[bytes] | None,
    body: BinaryIO,
) -> Path:
    """Write ``headers`` (unless ``None``) and the ``body`` stream to ``target``.

    The file is created if needed and truncated otherwise, and synced to
    disk before returning.
    """

    fd = os.open(target, os.O_CREAT | os.O_TRUNC | os.O_WRONLY, FILE_MODE)
    with os.fdopen(fd, "wb") as handle:
        if headers is not None:
            handle.write(format_headers(headers))
        shutil.copyfileobj(body, handle)
        handle.flush()
        os.fsync(handle.fileno())
    return target


__all__ = ["FILE_MODE", "format_headers", "write_message"]
