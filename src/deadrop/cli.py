"""Command-line interface for the deadrop message store."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from deadrop import __version__
from deadrop.core.settings import Settings, get_settings
from deadrop.services import render
from deadrop.services.store import DeadropError, InvalidInput, MessageStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STORE_ERROR = 1
EXIT_INVALID_INPUT = 2

Handler = Callable[[argparse.Namespace, Settings], Any]


def _emit(args: argparse.Namespace, text: str, payload: Any) -> None:
    if args.json:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        print(text)


def _describe_settings_error(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(item) for item in error['loc'])}: {error['msg']}" for error in exc.errors()
    )


def _open_store(args: argparse.Namespace, settings: Settings) -> MessageStore:
    return MessageStore(args.db or settings.db_path, settings)


def cmd_send(args: argparse.Namespace, settings: Settings) -> None:
    with _open_store(args, settings) as store:
        message_id = store.deposit(args.sender, args.to, args.body, subject=args.subject)
    _emit(args, render.render_sent(args.to, message_id), {"id": message_id, "to": args.to})


def cmd_check(args: argparse.Namespace, settings: Settings) -> None:
    with _open_store(args, settings) as store:
        records = store.drain_unread(args.agent)
    _emit(args, render.render_drained(records), [record.to_external() for record in records])


def cmd_inbox(args: argparse.Namespace, settings: Settings) -> None:
    with _open_store(args, settings) as store:
        records = store.list_inbox(args.agent, unread_only=args.unread)
    _emit(
        args,
        render.render_inbox(args.agent, records, unread_only=args.unread),
        [record.to_external() for record in records],
    )


def cmd_init(args: argparse.Namespace, settings: Settings) -> None:
    with _open_store(args, settings) as store:
        revision = store.schema_revision
        path = store.path
    _emit(
        args,
        f"Store ready at {path} (schema revision {revision})",
        {"path": str(path), "revision": revision},
    )


def cmd_doctor(args: argparse.Namespace, settings: Settings) -> None:
    with _open_store(args, settings) as store:
        store.verify_integrity()
        path = store.path
    _emit(args, f"Store at {path} is healthy", {"path": str(path), "status": "ok"})


def cmd_schedule(args: argparse.Namespace, settings: Settings) -> None:
    db_path = Path(args.db).expanduser() if args.db else None
    builder = render.render_cron if args.format == "cron" else render.render_systemd
    try:
        snippet = builder(args.agent, args.every, db_path)
    except ValueError as exc:
        raise InvalidInput(str(exc)) from exc
    _emit(args, snippet.rstrip("\n"), {"format": args.format, "snippet": snippet})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deadrop",
        description="SQLite-backed message queue for reliable agent-to-agent communication",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--db",
        default=None,
        help="Store file (default: $DEADROP_DB or ~/.openclaw/workspace/deadrop.sqlite)",
    )
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    send = subparsers.add_parser("send", help="Send a message to another agent")
    send.add_argument("--to", required=True, metavar="AGENT", help="recipient agent name")
    send.add_argument("--from", dest="sender", required=True, metavar="AGENT", help="sender agent name")
    send.add_argument("--subject", default=None, help="message subject")
    send.add_argument("--body", required=True, help="message body")
    send.set_defaults(handler=cmd_send, verb="sending message")

    check = subparsers.add_parser("check", help="Check for new messages and mark them as read")
    check.add_argument("--agent", required=True, help="agent name to check messages for")
    check.set_defaults(handler=cmd_check, verb="checking messages")

    inbox = subparsers.add_parser("inbox", help="List all messages in inbox")
    inbox.add_argument("--agent", required=True, help="agent name to show inbox for")
    inbox.add_argument("--unread", action="store_true", help="show only unread messages")
    inbox.set_defaults(handler=cmd_inbox, verb="showing inbox")

    init = subparsers.add_parser("init", help="Create the store and apply migrations")
    init.set_defaults(handler=cmd_init, verb="initializing store")

    doctor = subparsers.add_parser("doctor", help="Run an integrity check over the store")
    doctor.set_defaults(handler=cmd_doctor, verb="checking store")

    schedule = subparsers.add_parser(
        "schedule",
        help="Print a scheduler snippet that runs 'check' periodically",
    )
    schedule.add_argument("--agent", required=True, help="agent whose inbox is drained")
    schedule.add_argument("--every", type=int, default=15, metavar="MINUTES", help="interval (default: %(default)s)")
    schedule.add_argument("--format", choices=("cron", "systemd"), default="cron", help="snippet format")
    schedule.set_defaults(handler=cmd_schedule, verb="building schedule")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = get_settings()
    except ValidationError as exc:
        print(f"❌ Error {args.verb}: invalid configuration: {_describe_settings_error(exc)}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    handler: Handler = args.handler
    try:
        handler(args, settings)
    except InvalidInput as exc:
        print(f"❌ Error {args.verb}: {exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except DeadropError as exc:
        logger.debug("%s failed", args.command, exc_info=True)
        print(f"❌ Error {args.verb}: {exc}", file=sys.stderr)
        return EXIT_STORE_ERROR
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
