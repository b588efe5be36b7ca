"""Scan an Exim spool directory and summarize every queued message."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from tqdm import tqdm

from exim_spool.errors import SpoolError
from exim_spool.message import Message
from exim_spool.readers import spool_dir

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MessageSummary:
    message_id: str
    directory: Path
    sender: str
    received: int
    recipient_count: int
    recipients: list[str]
    header_count: int
    body_size: int


@dataclass(slots=True)
class ScanFailure:
    message_id: str
    directory: Path
    error: str
    detail: str


@dataclass(slots=True)
class ScanReport:
    messages: list[MessageSummary] = field(default_factory=list)
    failures: list[ScanFailure] = field(default_factory=list)

    @property
    def total_messages(self) -> int:
        return len(self.messages) + len(self.failures)

    @property
    def total_recipients(self) -> int:
        return sum(summary.recipient_count for summary in self.messages)


def scan_spool(directory: Path, *, show_progress: bool = True) -> ScanReport:
    """Open each spool entry beneath ``directory`` and record what it holds.

    Entries that cannot be opened are recorded as failures; the scan
    carries on with the next entry.
    """

    entries = list(spool_dir.iter_spool_entries(directory))
    report = ScanReport()

    progress = tqdm(
        total=len(entries),
        disable=not show_progress,
        unit="msg",
        desc="Scanning Spool",
    )
    for entry in entries:
        try:
            with Message.open(entry.directory, entry.message_id) as message:
                report.messages.append(_summarize(message, entry.directory))
        except (SpoolError, OSError) as exc:
            logger.warning("Failed to read spool entry %s: %s", entry.message_id, exc)
            report.failures.append(
                ScanFailure(
                    message_id=entry.message_id,
                    directory=entry.directory,
                    error=type(exc).__name__,
                    detail=str(exc),
                )
            )
        progress.update(1)
    progress.close()

    return report


def _summarize(message: Message, directory: Path) -> MessageSummary:
    spool = message.spool
    return MessageSummary(
        message_id=message.message_id,
        directory=directory,
        sender=spool.sender,
        received=spool.received,
        recipient_count=spool.recipient_count,
        recipients=list(spool.recipients),
        header_count=len(spool.headers),
        body_size=len(message.body()),
    )


def report_to_dict(report: ScanReport, spool_directory: Path) -> dict:
    timestamp = datetime.now(timezone.utc).isoformat()
    return {
        "generated_at": timestamp,
        "spool_directory": str(spool_directory),
        "summary": {
            "total_messages": report.total_messages,
            "readable_messages": len(report.messages),
            "failed_messages": len(report.failures),
            "total_recipients": report.total_recipients,
        },
        "messages": [
            {
                "message_id": summary.message_id,
                "directory": str(summary.directory),
                "sender": summary.sender,
                "received": datetime.fromtimestamp(summary.received, tz=timezone.utc).isoformat(),
                "recipient_count": summary.recipient_count,
                "recipients": summary.recipients,
                "header_count": summary.header_count,
                "body_size": summary.body_size,
            }
            for summary in report.messages
        ],
        "failures": [
            {
                "message_id": failure.message_id,
                "directory": str(failure.directory),
                "error": failure.error,
                "detail": failure.detail,
            }
            for failure in report.failures
        ],
    }


def write_report(report_path: Path, report: ScanReport, spool_directory: Path) -> None:
    report_path.parent.mkdir(parents=True, exist_ok=True)
    data = report_to_dict(report, spool_directory)
    report_path.write_text(json.dumps(data, indent=2), encoding="utf-8")


__all__ = [
    "MessageSummary",
    "ScanFailure",
    "ScanReport",
    "report_to_dict",
    "scan_spool",
    "write_report",
]
