"""Text rendering for the command line.

Turns message records into the human-readable summaries printed by the CLI,
and builds static scheduler snippets that run ``deadrop check`` periodically.
"""

from __future__ import annotations

import re
import shlex
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from deadrop.schemas.message import MessageRecord

READ_MARK = "✓"
UNREAD_MARK = "●"
MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * MINUTES_PER_HOUR

_UNIT_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


def format_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


def render_sent(to_agent: str, message_id: int) -> str:
    return f"✓ Message sent to {to_agent} (ID: {message_id})"


def render_message(record: MessageRecord, *, inbox: bool = False) -> str:
    """Render one message block.

    Inbox listings mark each message read or unread and show when it was read.
    """
    status = f" {READ_MARK if record.is_read else UNREAD_MARK}" if inbox else ""
    lines = [f"[{record.id}]{status} From: {record.from_agent}"]
    if record.subject:
        lines.append(f"Subject: {record.subject}")
    lines.append(f"Time: {format_time(record.created_at)}")
    if inbox and record.read_at is not None:
        lines.append(f"Read: {format_time(record.read_at)}")
    lines.append(f"Message: {record.body}")
    lines.append("---")
    return "\n".join(lines)


def render_drained(records: Sequence[MessageRecord]) -> str:
    if not records:
        return "📭 No new messages"
    blocks = [f"📬 {len(records)} new message(s):"]
    blocks.extend(f"\n{render_message(record)}" for record in records)
    return "\n".join(blocks)


def render_inbox(agent: str, records: Sequence[MessageRecord], *, unread_only: bool = False) -> str:
    if not records:
        return "📭 No unread messages" if unread_only else "📭 Empty inbox"
    unread = sum(1 for record in records if not record.is_read)
    blocks = [f"📬 Inbox for {agent} ({len(records)} total, {unread} unread):"]
    blocks.extend(f"\n{render_message(record, inbox=True)}" for record in records)
    return "\n".join(blocks)


def check_command(agent: str, db_path: Path | None = None, executable: str = "deadrop") -> str:
    """Return the shell command a scheduler should run to drain ``agent``."""
    parts = [executable]
    if db_path is not None:
        parts += ["--db", str(db_path)]
    parts += ["check", "--agent", agent]
    return shlex.join(parts)


def cron_expression(every_minutes: int) -> str:
    """Return a cron schedule firing every ``every_minutes`` minutes.

    Raises:
        ValueError: The interval cannot be expressed as a single cron entry.
    """
    if 1 <= every_minutes < MINUTES_PER_HOUR:
        return f"*/{every_minutes} * * * *"
    if every_minutes == MINUTES_PER_DAY:
        return "0 0 * * *"
    if 0 < every_minutes < MINUTES_PER_DAY and every_minutes % MINUTES_PER_HOUR == 0:
        return f"0 */{every_minutes // MINUTES_PER_HOUR} * * *"
    raise ValueError(
        f"cron cannot run every {every_minutes} minutes; use 1-59, whole hours, or 1440"
    )


def unit_name(agent: str) -> str:
    slug = _UNIT_UNSAFE.sub("-", agent).strip("-") or "agent"
    return f"deadrop-check-{slug}"


def render_cron(agent: str, every_minutes: int, db_path: Path | None = None) -> str:
    command = check_command(agent, db_path)
    return "\n".join(
        [
            f"# deadrop: drain the inbox of {agent} every {every_minutes} minute(s)",
            f"{cron_expression(every_minutes)} {command}",
        ]
    )


def render_systemd(agent: str, every_minutes: int, db_path: Path | None = None) -> str:
    """Return a oneshot service and its timer, separated by file-name comments."""
    if every_minutes < 1:
        raise ValueError("interval must be at least one minute")
    name = unit_name(agent)
    command = check_command(agent, db_path)
    return f"""\
# {name}.service
[Unit]
Description=Drain the deadrop inbox of {agent}

[Service]
Type=oneshot
ExecStart={command}

# {name}.timer
[Unit]
Description=Run {name}.service every {every_minutes} minute(s)

[Timer]
OnBootSec={every_minutes}min
OnUnitActiveSec={every_minutes}min
Unit={name}.service

[Install]
WantedBy=timers.target
"""
