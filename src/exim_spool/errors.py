"""Error kinds raised while locating, locking and parsing Exim spool entries."""

from __future__ import annotations

from pathlib import Path


class SpoolError(Exception):
    """Base class for spool entry failures; ``path`` names the offending entry."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = path


class InvalidIdentifier(SpoolError, ValueError):
    def __init__(self, message_id: str) -> None:
        super().__init__(f"Invalid exim id: {message_id}")
        self.message_id = message_id


class NotADirectory(SpoolError):
    def __init__(self, path: Path | str) -> None:
        super().__init__(f"The path: {path} is not a directory", path)


class NotAFile(SpoolError):
    def __init__(self, path: Path | str) -> None:
        super().__init__(f"The path: {path} is not a regular file", path)


class LockUnavailable(SpoolError):
    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Spool file is locked by another process: {path}", path)


class SpoolFormatError(SpoolError):
    """Structural violation of the header or data file grammar."""

    def __init__(
        self,
        path: Path | str,
        *,
        section: str | None = None,
        reason: str | None = None,
    ) -> None:
        message = f"Format error in spool file: {path}"
        details = [part for part in (section, reason) if part]
        if details:
            message = f"{message} ({': '.join(details)})"
        super().__init__(message, path)
        self.section = section
        self.reason = reason


__all__ = [
    "InvalidIdentifier",
    "LockUnavailable",
    "NotADirectory",
    "NotAFile",
    "SpoolError",
    "SpoolFormatError",
]
