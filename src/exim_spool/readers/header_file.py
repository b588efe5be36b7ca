"""Parser for Exim ``-H`` spool header files.

The header file is not line oriented end to end. Its fixed-position
envelope lines are followed by dash-prefixed control variables, some of
which carry an explicit byte count so their values may contain newlines,
then the non-recipient tree, the recipient list, a blank separator line
and finally the message headers. Each header is stored as a record whose
prefix gives the byte length of the header text (for example
``023F From: a@example.com``), so folded headers span several lines.

The sections are consumed strictly in order by ``HeaderFileParser``; any
deviation raises ``SpoolFormatError`` naming the file and the section.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Callable

from exim_spool.errors import SpoolFormatError

logger = logging.getLogger(__name__)

NO_NON_RECIPIENTS = b"XX\n"
SUPPRESSED_FLAG = b"*"

_ACL_MARKERS = {
    b"-acl": "acl",
    b"-aclc": "acl_connection",
    b"-aclm": "acl_message",
}
_NON_RECIPIENT_MARKERS = (b"N", b"Y")
_HEADER_PREFIX_RE = re.compile(rb"(\d+)(.) ")


class Section(Enum):
    FILE_ID = "file id"
    OWNERSHIP = "ownership"
    SENDER = "sender"
    TIMING = "timing"
    CONTROL_VARS = "control variables"
    NON_RECIPIENTS = "non-recipients"
    RECIPIENT_COUNT = "recipient count"
    RECIPIENTS = "recipients"
    SEPARATOR = "separator"
    HEADERS = "headers"


@dataclass
class SpoolHeader:
    """Everything recorded in a spool header file."""

    file_id: str = ""
    user: str = ""
    uid: int = 0
    gid: int = 0
    sender: str = ""
    received: int = 0
    warning_count: int = 0
    acl: dict[str, bytes] = field(default_factory=dict)
    acl_connection: dict[str, bytes] = field(default_factory=dict)
    acl_message: dict[str, bytes] = field(default_factory=dict)
    dash_vars: dict[str, str] = field(default_factory=dict)
    non_recipients: list[str] = field(default_factory=list)
    recipient_count: int = 0
    recipients: list[str] = field(default_factory=list)
    headers: list[bytes] = field(default_factory=list)
    raw_headers: list[bytes] = field(default_factory=list)

    @property
    def received_at(self) -> datetime:
        return datetime.fromtimestamp(self.received, tz=timezone.utc)


class HeaderFileParser:
    """Single-pass parser over a binary header file stream.

    ``stream`` must support ``readline()`` and ``read(n)``; it is read from
    its current position and left at end of file on success.
    """

    def __init__(self, stream: BinaryIO, expected_name: str, path: Path | str) -> None:
        self._stream = stream
        self._expected_name = expected_name.encode("ascii")
        self._path = path
        self._section = Section.FILE_ID
        self._pending: bytes | None = None
        self._result = SpoolHeader()

    def parse(self) -> SpoolHeader:
        steps: tuple[tuple[Section, Callable[[], None]], ...] = (
            (Section.FILE_ID, self._parse_file_id),
            (Section.OWNERSHIP, self._parse_ownership),
            (Section.SENDER, self._parse_sender),
            (Section.TIMING, self._parse_timing),
            (Section.CONTROL_VARS, self._parse_control_vars),
            (Section.NON_RECIPIENTS, self._parse_non_recipients),
            (Section.RECIPIENT_COUNT, self._parse_recipient_count),
            (Section.RECIPIENTS, self._parse_recipients),
            (Section.SEPARATOR, self._parse_separator),
            (Section.HEADERS, self._parse_headers),
        )
        for section, handler in steps:
            self._section = section
            handler()

        result = self._result
        logger.debug(
            "Parsed %s: %d recipients, %d headers",
            self._path,
            len(result.recipients),
            len(result.headers),
        )
        return result

    # Sections

    def _parse_file_id(self) -> None:
        (token,) = self._tokens(1)
        if token != self._expected_name:
            raise self._error(f"file name {token!r} does not match")
        self._result.file_id = _text(token)

    def _parse_ownership(self) -> None:
        user, uid, gid = self._tokens(3)
        self._result.user = _text(user)
        self._result.uid = self._integer(uid)
        self._result.gid = self._integer(gid)

    def _parse_sender(self) -> None:
        (token,) = self._tokens(1)
        self._result.sender = _text(token.lstrip(b"<").rstrip(b">"))

    def _parse_timing(self) -> None:
        received, warnings = self._tokens(2)
        self._result.received = self._integer(received)
        self._result.warning_count = self._integer(warnings)

    def _parse_control_vars(self) -> None:
        while True:
            line = self._require_line()
            if not line.startswith(b"-"):
                # First line of the non-recipients section.
                self._pending = line
                return

            marker = line.split(None, 1)[0]
            scope = _ACL_MARKERS.get(marker)
            if scope is not None:
                self._parse_acl(line, getattr(self._result, scope))
                continue

            self._result.dash_vars[_text(marker)] = _text(line.rstrip(b"\n"))

    def _parse_acl(self, line: bytes, target: dict[str, bytes]) -> None:
        parts = line.split()
        if len(parts) != 3:
            raise self._error(f"malformed ACL variable line {line!r}")
        name = _text(parts[1])
        size = self._integer(parts[2])
        if size < 0:
            raise self._error(f"negative ACL value length for {name}")

        value = self._read_exact(size)
        if self._stream.read(1) != b"\n":
            raise self._error(f"ACL variable {name} is not terminated")
        target[name] = value

    def _parse_non_recipients(self) -> None:
        line = self._require_line()
        if line == NO_NON_RECIPIENTS:
            self._result.non_recipients = [""]
            return

        self._result.non_recipients = [_text(line.rstrip(b"\n"))]
        # Only one further line is inspected for a status-marked entry.
        following = self._require_line()
        if following.startswith(_NON_RECIPIENT_MARKERS):
            self._result.non_recipients.append(_text(following.rstrip(b"\n")))
        else:
            self._pending = following

    def _parse_recipient_count(self) -> None:
        (token,) = self._tokens(1)
        count = self._integer(token)
        if count < 1:
            raise self._error(f"invalid recipient count {count}")
        self._result.recipient_count = count

    def _parse_recipients(self) -> None:
        first = self._require_line()
        if first == b"\n":
            raise self._error("missing first recipient")
        recipients = [_text(first.rstrip(b"\n"))]
        for _ in range(self._result.recipient_count - 1):
            recipients.append(_text(self._require_line().rstrip(b"\n")))
        self._result.recipients = recipients

    def _parse_separator(self) -> None:
        line = self._require_line()
        if line != b"\n":
            raise self._error(f"expected blank line before headers, got {line!r}")

    def _parse_headers(self) -> None:
        while True:
            line = self._stream.readline()
            if not line:
                return

            match = _HEADER_PREFIX_RE.match(line)
            if match is None:
                raise self._error(f"malformed header record {line[:40]!r}")
            prefix_width = match.end()
            total = prefix_width + int(match.group(1))
            if len(line) > total:
                raise self._error("header record longer than its declared length")
            if len(line) < total:
                line += self._read_exact(total - len(line))

            if match.group(2) == SUPPRESSED_FLAG:
                continue
            self._result.headers.append(line[prefix_width:].rstrip(b"\n"))
            self._result.raw_headers.append(line.rstrip(b"\n"))

    # Primitives

    def _require_line(self) -> bytes:
        if self._pending is not None:
            line, self._pending = self._pending, None
            return line
        line = self._stream.readline()
        if not line.endswith(b"\n"):
            raise self._error("unexpected end of file")
        return line

    def _tokens(self, count: int) -> list[bytes]:
        tokens = self._require_line().split()
        if len(tokens) != count:
            raise self._error(f"expected {count} fields, found {len(tokens)}")
        return tokens

    def _integer(self, token: bytes) -> int:
        try:
            return int(token)
        except ValueError:
            raise self._error(f"expected an integer, found {token!r}") from None

    def _read_exact(self, size: int) -> bytes:
        data = self._stream.read(size)
        if len(data) != size:
            raise self._error(f"short read: wanted {size} bytes, got {len(data)}")
        return data

    def _error(self, reason: str) -> SpoolFormatError:
        return SpoolFormatError(self._path, section=self._section.value, reason=reason)


def parse_header_file(stream: BinaryIO, expected_name: str, path: Path | str) -> SpoolHeader:
    """Parse a header file stream whose first line must read ``expected_name``."""

    return HeaderFileParser(stream, expected_name, path).parse()


def _text(value: bytes) -> str:
    return value.decode("utf-8", errors="surrogateescape")


__all__ = [
    "HeaderFileParser",
    "Section",
    "SpoolHeader",
    "parse_header_file",
]
