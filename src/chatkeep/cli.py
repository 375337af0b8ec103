#!/usr/bin/env python3
"""
Chatwork log keeper.

Lists rooms, fetches a room's messages for a date range, manages the
auto-save watch-list and runs auto-save passes. `autosave` is meant to be
run from cron; `serve` starts the local JSON endpoints.

Usage:
    chatkeep rooms [--token <token>]
    chatkeep fetch <room_id> <YYYY-MM-DD> <YYYY-MM-DD> [--single] [--output <file>]
    chatkeep watch <room_id> [--interval <days>] | chatkeep unwatch <room_id>
    chatkeep logs [--show <id>]
    chatkeep autosave
    chatkeep serve [--host <host>] [--port <port>] [--no-startup-save]
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional

from chatkeep.errors import ChatkeepError
from chatkeep.utils.cfg import engine
from chatkeep.utils.style import ansi
from chatkeep.utils.logs import report
from chatkeep.archive.scheduler import FAILED, SAVED
from chatkeep.archive.session import ArchiveSession
from chatkeep.connectors.chatwork.client import PAGE_CAP

logger = report.settings(__file__)


def _rooms(session: ArchiveSession, args) -> None:
    rooms = session.rooms(args.token)
    print(f"🔍 {ansi.green}{len(rooms)}{ansi.reset} rooms")
    for room in rooms:
        marker = " ⏰" if session.watch_list.is_watched(room.id) else ""
        print(f"  {ansi.grey}{room.id:>12}{ansi.reset}  {room.name}{marker}")


def _fetch(session: ArchiveSession, args) -> None:
    result, entry = session.fetch(
        args.room, args.start, args.end, token=args.token, windowed=False if args.single else None,
    )
    if args.output:
        out = Path(args.output)
        if out.is_dir():
            out = out / entry.filename
        out.write_text(result.text + "\n", encoding="utf-8")
        print(f"✅ Saved {ansi.green}{result.count}{ansi.reset} messages → {ansi.cyan}{out}{ansi.reset}")
    else:
        print(result.text)
        print(f"✅ {ansi.green}{result.count}{ansi.reset} messages ({len(result.windows)} request(s))",
              file=sys.stderr)
    if result.truncated:
        print(f"⚠️  {ansi.yellow}Only the latest {PAGE_CAP} messages are available from the Chatwork API"
              f"{ansi.reset}", file=sys.stderr)


def _watch(session: ArchiveSession, args) -> None:
    entry = session.watch(args.room, args.name, args.interval)
    print(f"⏰ Auto-saving {ansi.cyan}{entry.room_name}{ansi.reset} every "
          f"{ansi.yellow}{entry.interval_days}{ansi.reset} day(s) "
          f"({len(session.watch_list)}/{session.watch_list.cap})")


def _unwatch(session: ArchiveSession, args) -> None:
    if session.unwatch(args.room):
        print(f"🗑️  Auto-save disabled for room {ansi.cyan}{args.room}{ansi.reset}")
    else:
        print(f"⚠️  Room {args.room} was not on the watch-list")


def _logs(session: ArchiveSession, args) -> None:
    if args.show:
        entry = session.logs.get(args.show)
        if entry is None:
            raise ChatkeepError(f"No saved log {args.show}")
        print(entry.formatted_content)
        return
    for entry in session.logs.list():
        kind = f"{ansi.magenta}auto{ansi.reset}" if entry.is_auto_save else "manual"
        print(f"  {ansi.grey}{entry.id:<28}{ansi.reset} {entry.saved_at:%Y-%m-%d %H:%M} "
              f"{entry.room_name} {entry.start_date}..{entry.end_date} "
              f"({entry.message_count}) {kind}")


def _autosave(session: ArchiveSession, args) -> int:
    outcomes = session.auto_save(args.token)
    for outcome in outcomes:
        if outcome.status == SAVED:
            print(f"✅ {outcome.room_name}: {ansi.green}{outcome.entry.message_count}{ansi.reset} messages "
                  f"{outcome.window[0]}..{outcome.window[1]}")
        elif outcome.status == FAILED:
            print(f"❌ {outcome.room_name}: {ansi.red}{outcome.error}{ansi.reset}")
        else:
            print(f"{ansi.grey}·  {outcome.room_name}: up to date{ansi.reset}")
    saved = sum(1 for o in outcomes if o.status == SAVED)
    print(f"💾 {saved} auto-save(s) completed")
    return 1 if any(o.status == FAILED for o in outcomes) else 0


def _serve(session: ArchiveSession, args) -> None:
    from chatkeep.server import create_app  # flask only needed here

    app = create_app(session, run_auto_save=not args.no_startup_save)
    host = args.host or session.config.server.host
    port = args.port or session.config.server.port
    print(f"🚀 Serving on {ansi.cyan}http://{host}:{port}{ansi.reset}")
    app.run(host=host, port=port)


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for every sub-command."""
    parser = argparse.ArgumentParser(prog="chatkeep", description="Keep local copies of Chatwork room history")
    parser.add_argument("--config", type=Path, default=None, help="INI file (default config/chatkeep.ini)")
    parser.add_argument("--token", default=None, help="Chatwork API token (remembered once given)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("rooms", help="List rooms visible to the token")

    fetch = sub.add_parser("fetch", help="Fetch a room's messages for a date range")
    fetch.add_argument("room")
    fetch.add_argument("start", help="YYYY-MM-DD")
    fetch.add_argument("end", help="YYYY-MM-DD")
    fetch.add_argument("--single", action="store_true", help="One request instead of 30-day windows")
    fetch.add_argument("--output", "-o", default=None, help="Write to a file (or into a directory)")

    watch = sub.add_parser("watch", help="Add a room to the auto-save watch-list")
    watch.add_argument("room")
    watch.add_argument("--name", default=None)
    watch.add_argument("--interval", type=int, default=None, help="Days between catch-ups")

    unwatch = sub.add_parser("unwatch", help="Remove a room from the watch-list")
    unwatch.add_argument("room")

    logs = sub.add_parser("logs", help="List saved logs")
    logs.add_argument("--show", default=None, metavar="ID", help="Print one saved transcript")

    sub.add_parser("autosave", help="Run one auto-save pass")

    serve = sub.add_parser("serve", help="Start the local JSON endpoints")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--no-startup-save", action="store_true", help="Skip the auto-save pass at startup")
    return parser


_COMMANDS = {
    "rooms": _rooms,
    "fetch": _fetch,
    "watch": _watch,
    "unwatch": _unwatch,
    "logs": _logs,
    "autosave": _autosave,
    "serve": _serve,
}


def main(argv: Optional[List[str]] = None, session: Optional[ArchiveSession] = None) -> int:
    """Entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)
    logger.info("Command %s", args.command)
    try:
        if session is None:
            session = ArchiveSession.from_config(engine.load(args.config))
        code = _COMMANDS[args.command](session, args)
    except ChatkeepError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"❌ {ansi.red}{exc}{ansi.reset}", file=sys.stderr)
        return 1
    return code or 0


def autosave_main(argv: Optional[List[str]] = None, session: Optional[ArchiveSession] = None) -> int:
    """Cron entry: global options such as --config and --token, then one auto-save pass."""
    args = sys.argv[1:] if argv is None else argv
    return main([*args, "autosave"], session=session)


def run_main():
    """Console script wrapper."""
    sys.exit(main())


if __name__ == "__main__":
    run_main()
