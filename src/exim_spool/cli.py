"""Command-line interface for inspecting Exim spool entries."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable

from exim_spool import scan as spool_scan
from exim_spool.errors import SpoolError
from exim_spool.message import Message


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="exim-spool",
        description="Read Exim spool files and reconstitute the queued messages.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Increase logging verbosity for troubleshooting.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    show_parser = subparsers.add_parser(
        "show",
        help="Show the envelope, recipients and header count of a queued message.",
    )
    _add_entry_arguments(show_parser)
    show_parser.set_defaults(handler=_handle_show)

    body_parser = subparsers.add_parser(
        "body",
        help="Write the body of a queued message to standard output.",
    )
    _add_entry_arguments(body_parser)
    body_parser.set_defaults(handler=_handle_body)

    export_parser = subparsers.add_parser(
        "export",
        help="Write a queued message to a file in RFC 5322 (.eml) form.",
    )
    _add_entry_arguments(export_parser)
    export_parser.add_argument(
        "target",
        type=Path,
        help="Destination file; created if missing and overwritten otherwise.",
    )
    export_parser.add_argument(
        "--body-only",
        action="store_true",
        help="Write only the message body, without headers.",
    )
    export_parser.set_defaults(handler=_handle_export)

    scan_parser = subparsers.add_parser(
        "scan",
        help="Read every message in a spool directory and report unreadable entries.",
    )
    scan_parser.add_argument(
        "spool_dir",
        type=Path,
        help="Path to the Exim spool input directory.",
    )
    scan_parser.add_argument(
        "--report",
        type=Path,
        help="Optional path to write a JSON report of the scanned messages.",
    )
    scan_parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the progress bar output during the scan.",
    )
    scan_parser.set_defaults(handler=_handle_scan)

    return parser


def _add_entry_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "spool_dir",
        type=Path,
        help="Path to the Exim spool input directory holding the message files.",
    )
    parser.add_argument(
        "message_id",
        help="Exim message id, e.g. 1eXn2s-0008DG-EX.",
    )


Handler = Callable[[argparse.Namespace], int]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)

    args.spool_dir = args.spool_dir.resolve()
    if args.command == "export":
        args.target = args.target.resolve()
    elif args.command == "scan":
        if args.report is not None:
            args.report = args.report.resolve()

    return args


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    handler: Handler = args.handler
    try:
        return handler(args)
    except SpoolError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


def _printable(value: str) -> str:
    # Undecodable spool bytes are carried as lone surrogates; show them escaped.
    return value.encode("utf-8", errors="backslashreplace").decode("utf-8")


def _handle_show(args: argparse.Namespace) -> int:
    with Message.open(args.spool_dir, args.message_id) as message:
        spool = message.spool
        print(f"Message {message.message_id}")
        print(f"  Owner:      {_printable(spool.user)} (uid {spool.uid}, gid {spool.gid})")
        print(f"  Sender:     <{_printable(spool.sender)}>")
        print(f"  Received:   {spool.received_at.isoformat()}")
        print(f"  Warnings:   {spool.warning_count}")
        print(f"  Headers:    {len(spool.headers)}")
        print(f"  Recipients: {spool.recipient_count}")
        for recipient in spool.recipients:
            print(f"    {_printable(recipient)}")
    return 0


def _handle_body(args: argparse.Namespace) -> int:
    with Message.open(args.spool_dir, args.message_id) as message:
        body = message.body()
    sys.stdout.buffer.write(body)
    sys.stdout.flush()
    return 0


def _handle_export(args: argparse.Namespace) -> int:
    with Message.open(args.spool_dir, args.message_id) as message:
        target = message.write_to(args.target, body_only=args.body_only)
    print(f"Message {args.message_id} written to {target}")
    return 0


def _handle_scan(args: argparse.Namespace) -> int:
    report = spool_scan.scan_spool(args.spool_dir, show_progress=not args.no_progress)

    print(
        "Scan complete: "
        f"{len(report.messages)} readable messages, "
        f"{len(report.failures)} unreadable, "
        f"{report.total_recipients} pending recipients."
    )
    if report.failures:
        id_width = max(len(failure.message_id) for failure in report.failures)
        print("Unreadable entries:")
        for failure in report.failures:
            detail = _printable(failure.detail)
            print(f"  {failure.message_id.ljust(id_width)}  {failure.error}: {detail}")

    if args.report is not None:
        spool_scan.write_report(args.report, report, args.spool_dir)
        print(f"Report written to {args.report}")

    return 0


if __name__ == "__main__":  # pragma: no cover - manual execution entry point
    raise SystemExit(main())
