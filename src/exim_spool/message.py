"""Locked, parsed view of a single Exim spool entry."""

from __future__ import annotations

import errno
import fcntl
import logging
import os
import struct
import threading
from contextlib import ExitStack
from pathlib import Path
from typing import BinaryIO

from exim_spool.errors import LockUnavailable, SpoolFormatError
from exim_spool.readers.header_file import SpoolHeader, parse_header_file
from exim_spool.readers.spool_dir import SpoolPaths, resolve_spool_paths
from exim_spool.readers.spool_ids import data_file_name, header_file_name, validate_message_id
from exim_spool.writers import eml_file

logger = logging.getLogger(__name__)

_LOCK_CONTENTION = (errno.EACCES, errno.EAGAIN)

# Open file description locks belong to the handle rather than the process,
# and conflict with the fcntl record locks Exim takes.
_OFD_SETLK = getattr(fcntl, "F_OFD_SETLK", None)
_FLOCK = struct.Struct("hhqqi4x")  # struct flock: type, whence, start, len, pid


class Message:
    """A spool entry whose ``-H`` and ``-D`` files stay locked until ``close()``.

    Build instances with ``Message.open``. The two file handles are shared
    by every read operation, so those operations take an instance lock
    before repositioning them.
    """

    def __init__(
        self,
        message_id: str,
        paths: SpoolPaths,
        spool: SpoolHeader,
        header_handle: BinaryIO,
        data_handle: BinaryIO,
    ) -> None:
        self.message_id = message_id
        self.header_path = paths.header_path
        self.data_path = paths.data_path
        self.spool = spool
        self._header_handle = header_handle
        self._data_handle = data_handle
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def open(cls, directory: Path | str, message_id: str) -> Message:
        """Validate, lock and parse the spool entry ``message_id`` in ``directory``.

        Either a fully parsed, locked message is returned or every lock and
        handle acquired along the way is released before the error propagates.
        """

        validate_message_id(message_id)
        paths = resolve_spool_paths(Path(directory), message_id)

        with ExitStack() as stack:
            data_handle = _acquire(stack, paths.data_path)
            header_handle = _acquire(stack, paths.header_path)
            _check_data_file(data_handle, data_file_name(message_id), paths.data_path)
            spool = parse_header_file(
                header_handle, header_file_name(message_id), paths.header_path
            )
            message = cls(message_id, paths, spool, header_handle, data_handle)
            stack.pop_all()
        return message

    @property
    def closed(self) -> bool:
        return self._closed

    def body(self) -> bytes:
        """Return the message body stored in the data file."""

        with self._lock:
            return self._rewind_body().read()

    def as_bytes(self) -> bytes:
        """Return the headers, a blank line and the body."""

        with self._lock:
            body = self._rewind_body().read()
        return eml_file.format_headers(self.spool.headers) + body

    def as_string(self) -> str:
        return self.as_bytes().decode("utf-8", errors="surrogateescape")

    def write_to(self, target: Path | str, *, body_only: bool = False) -> Path:
        """Write the message (or only its body) to ``target`` and sync it."""

        headers = None if body_only else self.spool.headers
        with self._lock:
            return eml_file.write_message(
                Path(target), headers=headers, body=self._rewind_body()
            )

    def close(self) -> None:
        """Release both file locks and close the files; later calls do nothing."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
            # Every handle is unlocked and closed even if an earlier step fails.
            with ExitStack() as stack:
                for path, handle in (
                    (self.data_path, self._data_handle),
                    (self.header_path, self._header_handle),
                ):
                    stack.callback(logger.debug, "Released %s", path)
                    stack.callback(handle.close)
                    stack.callback(_set_lock, handle, fcntl.F_UNLCK)

    def _rewind_body(self) -> BinaryIO:
        if self._closed:
            raise ValueError("I/O operation on closed spool message")
        handle = self._data_handle
        handle.seek(0)
        handle.readline()  # data file name
        return handle

    def __enter__(self) -> Message:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "locked"
        return f"<Message {self.message_id} ({state})>"


def _acquire(stack: ExitStack, path: Path) -> BinaryIO:
    handle = stack.enter_context(path.open("r+b"))
    handle.seek(0)
    try:
        _set_lock(handle, fcntl.F_WRLCK)
    except OSError as exc:
        if exc.errno in _LOCK_CONTENTION:
            raise LockUnavailable(path) from exc
        raise
    stack.callback(_set_lock, handle, fcntl.F_UNLCK)
    logger.debug("Locked %s", path)
    return handle


def _set_lock(handle: BinaryIO, lock_type: int) -> None:
    """Take (``F_WRLCK``) or drop (``F_UNLCK``) a non-blocking whole-file lock."""

    if _OFD_SETLK is None:
        operation = fcntl.LOCK_UN if lock_type == fcntl.F_UNLCK else fcntl.LOCK_EX | fcntl.LOCK_NB
        fcntl.lockf(handle, operation)
        return
    fcntl.fcntl(handle, _OFD_SETLK, _FLOCK.pack(lock_type, os.SEEK_SET, 0, 0, 0))


def _check_data_file(handle: BinaryIO, expected_name: str, path: Path) -> None:
    line = handle.readline()
    if line.split() != [expected_name.encode("ascii")]:
        raise SpoolFormatError(path, reason=f"first line {line[:40]!r} does not name the file")


__all__ = ["Message"]
