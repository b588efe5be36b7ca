"""Fixtures for building Exim spool entries on disk."""

from pathlib import Path
from typing import Iterable, Sequence

import pytest

MESSAGE_ID = "1eXn2s-0008DG-EX"
SENDER = "andrew@kudusoft.home.topdog-software.com"
BODY = b"This is a test mailing\n\n"

SAMPLE_HEADERS: list[tuple[str, str]] = [
    (
        "P",
        "Received: from [192.168.1.52] (helo=alcazar.home.topdog-software.com)\n"
        "\tby alcazar.home.topdog-software.com with esmtp (Exim 4.90_1)\n"
        "\t(envelope-from <andrew@kudusoft.home.topdog-software.com>)\n"
        "\tid 1eXn2s-0008DG-EX\n"
        "\tfor andrew@example.com; Sat, 06 Jan 2018 13:53:50 +0200\n",
    ),
    ("I", "Message-Id: <E1eXn2s-0008DG-EX@alcazar.home.topdog-software.com>\n"),
    ("F", "From: Andrew Colin Kissa <andrew@kudusoft.home.topdog-software.com>\n"),
    ("T", "To: andrew@example.com\n"),
    (" ", "Subject: Test mailing\n"),
    ("*", "Bcc: hidden@example.com\n"),
    (" ", "Date: Sat, 06 Jan 2018 13:53:50 +0200\n"),
]


def header_record(flag: str, text: str) -> bytes:
    data = text.encode("utf-8")
    return f"{len(data):03d}{flag} ".encode("ascii") + data


def acl_line(marker: str, name: str, value: bytes) -> bytes:
    return f"{marker} {name} {len(value)}\n".encode("ascii") + value + b"\n"


DEFAULT_CONTROL: list[bytes] = [
    b"-helo_name alcazar.home.topdog-software.com\n",
    b"-host_address 192.168.1.52.54066\n",
    b"-interface_address 192.168.1.1.25\n",
    acl_line("-aclm", "0", b"quarantine\nreason: spam"),
    b"-received_protocol esmtp\n",
    b"-body_linecount 2\n",
]


class SpoolFactory:
    """Write ``-H``/``-D`` pairs beneath ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def header_file(
        self,
        message_id: str = MESSAGE_ID,
        *,
        ownership: bytes = b"exim 93 93\n",
        sender: str = f"<{SENDER}>",
        timing: bytes = b"1515239630 0\n",
        control: Iterable[bytes] = DEFAULT_CONTROL,
        non_recipients: bytes = b"XX\n",
        recipient_count: int | None = None,
        recipients: Sequence[str] = ("andrew@example.com",),
        separator: bytes = b"\n",
        headers: Iterable[tuple[str, str]] = SAMPLE_HEADERS,
    ) -> bytes:
        count = len(recipients) if recipient_count is None else recipient_count
        return b"".join(
            [
                f"{message_id}-H\n".encode("ascii"),
                ownership,
                f"{sender}\n".encode("utf-8", errors="surrogateescape"),
                timing,
                b"".join(control),
                non_recipients,
                f"{count}\n".encode("ascii"),
                b"".join(f"{recipient}\n".encode("utf-8") for recipient in recipients),
                separator,
                b"".join(header_record(flag, text) for flag, text in headers),
            ]
        )

    def data_file(self, message_id: str = MESSAGE_ID, body: bytes = BODY) -> bytes:
        return f"{message_id}-D\n".encode("ascii") + body

    def write(
        self,
        message_id: str = MESSAGE_ID,
        *,
        header: bytes | None = None,
        data: bytes | None = None,
        directory: Path | None = None,
    ) -> Path:
        target = directory or self.root
        target.mkdir(parents=True, exist_ok=True)
        if header is None:
            header = self.header_file(message_id)
        if data is None:
            data = self.data_file(message_id)
        (target / f"{message_id}-H").write_bytes(header)
        (target / f"{message_id}-D").write_bytes(data)
        return target


@pytest.fixture
def spool(tmp_path: Path) -> SpoolFactory:
    return SpoolFactory(tmp_path / "input")
