"""Tests for the deadrop command line."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from deadrop.cli import EXIT_INVALID_INPUT, EXIT_OK, EXIT_STORE_ERROR, main
from deadrop.core.settings import get_settings


def run(capsys: pytest.CaptureFixture[str], db_path: Path, *args: str) -> tuple[int, str, str]:
    code = main(["--db", str(db_path), *args])
    captured = capsys.readouterr()
    return code, captured.out, captured.err


def test_send_check_inbox_flow(capsys, db_path: Path) -> None:
    code, out, _ = run(capsys, db_path, "send", "--to", "cody", "--from", "larry", "--subject", "Update", "--body", "done")
    assert code == EXIT_OK
    assert out.strip() == "✓ Message sent to cody (ID: 1)"

    code, out, _ = run(capsys, db_path, "inbox", "--agent", "cody")
    assert code == EXIT_OK
    assert "📬 Inbox for cody (1 total, 1 unread):" in out
    assert "[1] ● From: larry" in out
    assert "Subject: Update" in out

    code, out, _ = run(capsys, db_path, "check", "--agent", "cody")
    assert code == EXIT_OK
    assert "📬 1 new message(s):" in out
    assert "[1] From: larry" in out
    assert "Message: done" in out

    code, out, _ = run(capsys, db_path, "check", "--agent", "cody")
    assert out.strip() == "📭 No new messages"

    code, out, _ = run(capsys, db_path, "inbox", "--agent", "cody")
    assert "[1] ✓ From: larry" in out
    assert "Read: " in out

    code, out, _ = run(capsys, db_path, "inbox", "--agent", "cody", "--unread")
    assert out.strip() == "📭 No unread messages"


def test_empty_inbox(capsys, db_path: Path) -> None:
    code, out, _ = run(capsys, db_path, "inbox", "--agent", "nobody")
    assert code == EXIT_OK
    assert out.strip() == "📭 Empty inbox"


def test_json_output_uses_external_record_shape(capsys, db_path: Path) -> None:
    code, out, _ = run(capsys, db_path, "--json", "send", "--to", "cody", "--from", "larry", "--body", "x")
    assert code == EXIT_OK
    assert json.loads(out) == {"id": 1, "to": "cody"}

    code, out, _ = run(capsys, db_path, "--json", "check", "--agent", "cody")
    records = json.loads(out)
    assert len(records) == 1
    assert records[0]["from"] == "larry"
    assert records[0]["subject"] is None
    assert records[0]["read_at"] is not None


def test_empty_field_exits_with_invalid_input(capsys, db_path: Path) -> None:
    code, out, err = run(capsys, db_path, "send", "--to", "cody", "--from", "", "--body", "x")
    assert code == EXIT_INVALID_INPUT
    assert out == ""
    assert "❌ Error sending message:" in err

    code, out, _ = run(capsys, db_path, "inbox", "--agent", "cody")
    assert out.strip() == "📭 Empty inbox"


def test_store_error_exits_with_failure(capsys, tmp_path: Path) -> None:
    corrupt = tmp_path / "corrupt.sqlite"
    corrupt.write_bytes(b"garbage" * 1000)

    code, _, err = run(capsys, corrupt, "check", "--agent", "cody")
    assert code == EXIT_STORE_ERROR
    assert "❌ Error checking messages:" in err


def test_init_and_doctor(capsys, db_path: Path) -> None:
    code, out, _ = run(capsys, db_path, "init")
    assert code == EXIT_OK
    assert f"Store ready at {db_path}" in out
    assert db_path.exists()

    code, out, _ = run(capsys, db_path, "--json", "doctor")
    assert code == EXIT_OK
    assert json.loads(out) == {"path": str(db_path), "status": "ok"}


def test_default_path_comes_from_environment(capsys, tmp_path: Path, monkeypatch) -> None:
    target = tmp_path / "from-env" / "deadrop.sqlite"
    monkeypatch.setenv("DEADROP_DB", str(target))

    assert main(["send", "--to", "cody", "--from", "larry", "--body", "x"]) == EXIT_OK
    capsys.readouterr()
    assert target.exists()


def test_schedule_cron(capsys, db_path: Path) -> None:
    code, out, _ = run(capsys, db_path, "schedule", "--agent", "cody", "--every", "10")
    assert code == EXIT_OK
    assert f"*/10 * * * * deadrop --db {db_path} check --agent cody" in out


def test_schedule_systemd(capsys, db_path: Path) -> None:
    code, out, _ = run(capsys, db_path, "schedule", "--agent", "cody", "--format", "systemd", "--every", "90")
    assert code == EXIT_OK
    assert "# deadrop-check-cody.timer" in out
    assert "OnUnitActiveSec=90min" in out
    assert "ExecStart=deadrop --db" in out
    assert not db_path.exists()


def test_schedule_rejects_unrepresentable_cron_interval(capsys, db_path: Path) -> None:
    code, _, err = run(capsys, db_path, "schedule", "--agent", "cody", "--every", "90")
    assert code == EXIT_INVALID_INPUT
    assert "cron cannot run every 90 minutes" in err


def test_missing_required_option_is_a_usage_error(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["send", "--to", "cody"])
    assert excinfo.value.code == 2


def test_invalid_configuration_is_reported_without_traceback(capsys, db_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("DEADROP_LOG_LEVEL", "LOUD")
    get_settings.cache_clear()

    code, out, err = run(capsys, db_path, "inbox", "--agent", "cody")
    assert code == EXIT_INVALID_INPUT
    assert out == ""
    assert "❌ Error showing inbox: invalid configuration:" in err
    assert "DEADROP_LOG_LEVEL" in err
    assert "Traceback" not in err
    assert not db_path.exists()
