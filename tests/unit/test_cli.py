"""Tests for the exim-spool CLI argument parsing and commands."""

import json
from pathlib import Path

import pytest
from conftest import BODY, MESSAGE_ID

from exim_spool import cli


def test_parse_args_resolves_paths_for_export(spool, tmp_path: Path, monkeypatch) -> None:
    directory = spool.write()
    monkeypatch.chdir(tmp_path)

    args = cli.parse_args(["export", str(directory), MESSAGE_ID, "out.eml", "--body-only"])

    assert args.command == "export"
    assert args.spool_dir == directory.resolve()
    assert args.message_id == MESSAGE_ID
    assert args.target == tmp_path.resolve() / "out.eml"
    assert args.body_only is True
    assert args.verbose is False


def test_parse_args_requires_command() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args([])


def test_show_command_prints_envelope(spool, capsys: pytest.CaptureFixture[str]) -> None:
    directory = spool.write()

    exit_code = cli.main(["show", str(directory), MESSAGE_ID])

    captured = capsys.readouterr().out
    assert exit_code == 0
    assert f"Message {MESSAGE_ID}" in captured
    assert "exim (uid 93, gid 93)" in captured
    assert "<andrew@kudusoft.home.topdog-software.com>" in captured
    assert "2018-01-06T11:53:50+00:00" in captured
    assert "Headers:    6" in captured
    assert "    andrew@example.com" in captured


def test_show_command_escapes_undecodable_sender(
    spool, capsys: pytest.CaptureFixture[str]
) -> None:
    directory = spool.write(header=spool.header_file(sender="<caf\udce9@example.com>"))

    exit_code = cli.main(["show", str(directory), MESSAGE_ID])

    captured = capsys.readouterr().out
    assert exit_code == 0
    assert "Sender:     <caf\\udce9@example.com>" in captured


def test_body_command_writes_raw_body(
    spool, capsysbinary: pytest.CaptureFixture[bytes]
) -> None:
    directory = spool.write()

    exit_code = cli.main(["body", str(directory), MESSAGE_ID])

    assert exit_code == 0
    assert capsysbinary.readouterr().out == BODY


def test_export_command_writes_file(spool, tmp_path: Path, capsys) -> None:
    directory = spool.write()
    target = tmp_path / "message.eml"

    exit_code = cli.main(["export", str(directory), MESSAGE_ID, str(target)])

    assert exit_code == 0
    assert "written to" in capsys.readouterr().out
    content = target.read_bytes()
    assert content.startswith(b"Received: ")
    assert content.endswith(b"\n\n" + BODY)


def test_invalid_id_reports_error(spool, capsys: pytest.CaptureFixture[str]) -> None:
    directory = spool.write()

    exit_code = cli.main(["show", str(directory), "bogus"])

    assert exit_code == 1
    assert "Invalid exim id: bogus" in capsys.readouterr().err


def test_missing_directory_raises_file_not_found(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        cli.main(["show", str(tmp_path / "missing"), MESSAGE_ID])


def test_scan_command_generates_report(
    spool, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    directory = spool.write()
    spool.write("1cGaid-0000sq-9g", data=b"mismatch-D\n")
    report_path = tmp_path / "scan.json"

    exit_code = cli.main(
        ["scan", str(directory), "--report", str(report_path), "--no-progress"]
    )

    captured = capsys.readouterr().out
    assert exit_code == 0
    assert "Scan complete: 1 readable messages, 1 unreadable" in captured
    assert "1cGaid-0000sq-9g  SpoolFormatError" in captured
    assert report_path.exists()
    data = json.loads(report_path.read_text())
    assert data["summary"]["failed_messages"] == 1
