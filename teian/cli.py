"""
Teian management CLI and daemon.

Usage:
    python -m teian suggest add alice "Please add a dark theme"
    python -m teian suggest list --order ua
    python -m teian alias add alice cat_ears nekomimi --comment "more common"
    python -m teian alias update 3 --status approved
    python -m teian quota charge alice 1048576
    python -m teian run                     # daily quota reset daemon

Every command opens the store from settings (or --db), runs one operation and
closes it again. `run` keeps the store open until SIGINT/SIGTERM.
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from typing import Iterable, Optional

from loguru import logger
from pydantic import ValidationError

from .db import open_store
from .errors import StorageUnavailableError, TeianError
from .models import Alias, AliasStatus, Suggestion
from .query import SortOrder, search_records
from .repositories import AliasRepository, QuotaLedger, SuggestionRepository
from .scheduler import QuotaResetScheduler
from .schemas import AliasCreate, AliasUpdate, SuggestionCreate


def setup_logging(settings_obj):
    logger.remove()
    serialize = str(settings_obj.log_format or "text").strip().lower() == "json"
    logger.add(sys.stderr, level=settings_obj.log_level.upper(), serialize=serialize)


def _non_negative_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer") from None
    if n < 0:
        raise argparse.ArgumentTypeError(f"{value!r} must not be negative")
    return n


def _fmt_suggestion(s: Suggestion) -> str:
    return f"{s.id:>6}  {s.created:%Y-%m-%d %H:%M:%S}  {s.username:<16}  {s.text}"


def _fmt_alias(a: Alias) -> str:
    line = f"{a.id:>6}  {a.created:%Y-%m-%d %H:%M:%S}  {a.username:<16}  {a.status.name:<8}  {a.old} -> {a.new}"
    if a.comment:
        line += f"  # {a.comment}"
    return line


def _emit(records: Iterable, as_json: bool, fmt):
    for r in records:
        if as_json:
            print(json.dumps(r.model_dump(mode="json"), ensure_ascii=False))
        else:
            print(fmt(r))


# -----------------------------------------------------------------------------
# Suggestions


def cmd_suggest(args, store, settings_obj) -> int:
    repo = SuggestionRepository(store)

    if args.action == "add":
        data = SuggestionCreate(username=args.user, text=args.text)
        sugg = repo.create(data.username, data.text)
        print(f"Created suggestion {sugg.id}")
    elif args.action == "list":
        suggs = repo.of_user(args.of) if args.of else repo.all()
        _emit(search_records(suggs, args.user, args.text, args.order), args.json, _fmt_suggestion)
    elif args.action == "delete":
        repo.delete(args.user, args.id)
        print(f"Deleted suggestion {args.id}")
    elif args.action == "clear":
        removed = repo.delete_all()
        print(f"Deleted suggestions of {removed} users")
    return 0


# -----------------------------------------------------------------------------
# Aliases


def cmd_alias(args, store, settings_obj) -> int:
    repo = AliasRepository(store)

    if args.action == "add":
        data = AliasCreate(username=args.user, old=args.old, new=args.new, comment=args.comment)
        alias = repo.create(data.username, data.old, data.new, data.comment)
        print(f"Created alias {alias.id}")
    elif args.action == "list":
        aliases = repo.of_user(args.of) if args.of else repo.all()
        _emit(search_records(aliases, args.user, args.text, args.order), args.json, _fmt_alias)
    elif args.action == "show":
        _emit([repo.get_by_id(args.id)], args.json, _fmt_alias)
    elif args.action == "search":
        if args.query:
            aliases = repo.search(args.query)
        else:
            aliases = repo.search_advanced(old=args.old, new=args.new, username=args.user, comment=args.comment)
        _emit(aliases, args.json, _fmt_alias)
    elif args.action == "update":
        current = repo.get_by_id(args.id)
        data = AliasUpdate(
            old=current.old if args.old is None else args.old,
            new=current.new if args.new is None else args.new,
            comment=current.comment if args.comment is None else args.comment,
            status=current.status if args.status is None else args.status,
        )
        alias = repo.update(args.id, data.to_patch())
        print(f"Updated alias {alias.id} ({alias.status.name.lower()})")
    elif args.action == "delete":
        repo.delete(args.id)
        print(f"Deleted alias {args.id}")
    elif args.action == "clear":
        removed = repo.delete_all()
        print(f"Deleted {removed} aliases")
    return 0


# -----------------------------------------------------------------------------
# Quota


def cmd_quota(args, store, settings_obj) -> int:
    ledger = QuotaLedger(store, cap=settings_obj.quota.cap_bytes)

    if args.action == "charge":
        remaining = ledger.charge(args.user, args.bytes)
        print(f"{args.user}: {remaining} bytes remaining")
    elif args.action == "show":
        usage = ledger.usage(args.user)
        print(f"{args.user}: used {usage} of {ledger.cap} bytes ({max(ledger.cap - usage, 0)} remaining)")
    elif args.action == "reset":
        removed = ledger.reset_all()
        print(f"Reset upload quota of {removed} users")
    return 0


# -----------------------------------------------------------------------------
# Daemon


def cmd_run(args, settings_obj, stop_event: Optional[threading.Event] = None) -> int:
    """
    Hold the store open and run the daily quota reset until signalled.

    Returns:
        0 on a clean shutdown, 1 if the store could not be opened
    """
    try:
        store = open_store(settings_obj, path=args.db)
    except StorageUnavailableError as exc:
        logger.critical(f"Could not open store: {exc}")
        return 1

    stop = stop_event if stop_event is not None else threading.Event()

    def _handle_signal(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        stop.set()

    previous = {sig: signal.signal(sig, _handle_signal) for sig in (signal.SIGINT, signal.SIGTERM)}

    quota = settings_obj.quota
    reset = None
    try:
        if quota.reset_enabled:
            ledger = QuotaLedger(store, cap=quota.cap_bytes)
            reset = QuotaResetScheduler(ledger, quota.reset_hour, quota.reset_minute, quota.reset_second)
            reset.start()
        else:
            logger.warning("Daily quota reset is disabled")

        logger.info("Teian daemon running")
        while not stop.wait(1.0):
            pass
    finally:
        if reset is not None:
            reset.shutdown()
        store.close()
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    logger.info("Teian daemon stopped")
    return 0


# -----------------------------------------------------------------------------
# Argument parsing


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="teian", description="Suggestion and tag alias store")
    parser.add_argument("--db", default=None, help="store file (default: settings db_file)")
    sub = parser.add_subparsers(dest="command")

    # suggest
    suggest = sub.add_parser("suggest", help="Manage suggestions")
    s_sub = suggest.add_subparsers(dest="action", required=True)
    p = s_sub.add_parser("add", help="Add a suggestion")
    p.add_argument("user")
    p.add_argument("text")
    p = s_sub.add_parser("list", help="List suggestions")
    p.add_argument("--of", default="", help="only this user's suggestions (exact)")
    p.add_argument("--user", default="", help="username contains")
    p.add_argument("--text", default="", help="text contains")
    p.add_argument("--order", default=SortOrder.DATE_DESC.value, help="ua, ud, da or dd (default dd)")
    p.add_argument("--json", action="store_true", help="one JSON object per line")
    p = s_sub.add_parser("delete", help="Delete one suggestion")
    p.add_argument("user")
    p.add_argument("id", type=int)
    s_sub.add_parser("clear", help="Delete every suggestion")

    # alias
    alias = sub.add_parser("alias", help="Manage tag alias proposals")
    a_sub = alias.add_subparsers(dest="action", required=True)
    p = a_sub.add_parser("add", help="Propose a tag alias")
    p.add_argument("user")
    p.add_argument("old")
    p.add_argument("new")
    p.add_argument("--comment", default="")
    p = a_sub.add_parser("list", help="List aliases")
    p.add_argument("--of", default="", help="only this user's aliases (exact)")
    p.add_argument("--user", default="", help="username contains")
    p.add_argument("--text", default="", help="comment contains")
    p.add_argument("--order", default=SortOrder.DATE_DESC.value, help="ua, ud, da or dd (default dd)")
    p.add_argument("--json", action="store_true", help="one JSON object per line")
    p = a_sub.add_parser("show", help="Show one alias")
    p.add_argument("id", type=int)
    p.add_argument("--json", action="store_true")
    p = a_sub.add_parser("search", help="Search aliases by tag, or by field with the options")
    p.add_argument("query", nargs="?", default="")
    p.add_argument("--old", default="")
    p.add_argument("--new", default="")
    p.add_argument("--user", default="")
    p.add_argument("--comment", default="")
    p.add_argument("--json", action="store_true")
    p = a_sub.add_parser("update", help="Review an alias; omitted fields keep their value")
    p.add_argument("id", type=int)
    p.add_argument("--old", default=None)
    p.add_argument("--new", default=None)
    p.add_argument("--comment", default=None)
    p.add_argument("--status", default=None, choices=[s.name.lower() for s in AliasStatus])
    p = a_sub.add_parser("delete", help="Delete one alias")
    p.add_argument("id", type=int)
    a_sub.add_parser("clear", help="Delete every alias")

    # quota
    quota = sub.add_parser("quota", help="Upload quota accounting")
    q_sub = quota.add_subparsers(dest="action", required=True)
    p = q_sub.add_parser("charge", help="Charge an upload against a user's quota")
    p.add_argument("user")
    p.add_argument("bytes", type=_non_negative_int)
    p = q_sub.add_parser("show", help="Show a user's usage")
    p.add_argument("user")
    q_sub.add_parser("reset", help="Reset every user's usage")

    sub.add_parser("run", help="Run the daemon (daily quota reset)")
    return parser


_COMMANDS = {
    "suggest": cmd_suggest,
    "alias": cmd_alias,
    "quota": cmd_quota,
}


def main(argv: Optional[list] = None) -> int:
    from config import settings

    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(settings)

    if args.command is None:
        parser.print_help()
        return 0
    if args.command == "run":
        return cmd_run(args, settings)

    try:
        with open_store(settings, path=args.db) as store:
            return _COMMANDS[args.command](args, store, settings)
    except ValidationError as exc:
        for err in exc.errors():
            field = ".".join(str(loc) for loc in err["loc"])
            print(f"error: {field}: {err['msg']}", file=sys.stderr)
        return 2
    except TeianError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
