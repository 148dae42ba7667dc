"""
triage/cli.py
Command-line interface for SOS Triage.

USAGE:
  sos-triage analyze "trapped under rubble, child bleeding" --age 7
  sos-triage submit --name Ana --age 34 --phone 5551234567 --coords "12.97,77.59" \\
                    --message "Flood water rising, elderly mother cannot walk"
  sos-triage queue                 # list requests waiting offline
  sos-triage queue --clear
  sos-triage sync                  # probe the store and drain the queue now
  sos-triage board --spam hide --priority critical
  sos-triage serve --port 8765

Settings come from triage_config.json in the current directory, or in the
directory given with --config.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from triage.config import load_config
from triage.intake import ValidationError, validate_submission
from triage.remote.base import StoreError

logger = logging.getLogger(__name__)

GREEN  = '\033[92m'
YELLOW = '\033[93m'
RED    = '\033[91m'
CYAN   = '\033[96m'
RESET  = '\033[0m'
BOLD   = '\033[1m'

PRIORITY_COLORS = {
    'critical': RED,
    'high':     YELLOW,
    'spam':     CYAN,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog        = 'sos-triage',
        description = 'SOS Triage — emergency request scoring with offline queueing',
        formatter_class = argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        '--config', '-c',
        type    = Path,
        default = None,
        help    = 'Directory containing triage_config.json (default: current directory)',
    )
    parser.add_argument(
        '--verbose', '-v',
        action  = 'store_true',
        help    = 'Enable debug logging',
    )
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('analyze', help='Score a message without storing it')
    p.add_argument('message')
    p.add_argument('--age',   default=None)
    p.add_argument('--phone', default='')
    p.add_argument('--name',  default='')

    p = sub.add_parser('submit', help='Submit an SOS request (queued if offline)')
    p.add_argument('--name',    required=True)
    p.add_argument('--age',     required=True)
    p.add_argument('--phone',   required=True)
    p.add_argument('--coords',  required=True, help='Location, e.g. "12.97,77.59"')
    p.add_argument('--message', required=True)

    p = sub.add_parser('queue', help='Show the offline queue')
    p.add_argument('--clear', action='store_true', help='Discard every queued request')

    sub.add_parser('sync', help='Probe connectivity and drain the offline queue')

    p = sub.add_parser('board', help='Responder board')
    p.add_argument('--query',    '-q', default='')
    p.add_argument('--category',       default='')
    p.add_argument('--priority',       default='')
    p.add_argument('--spam',           default='hide', choices=['hide', 'only', 'show'])

    p = sub.add_parser('serve', help='Run the HTTP API')
    p.add_argument('--host', default=None, help='Host to bind (default: api_host from config)')
    p.add_argument('--port', type=int, default=None, help='Port to bind (default: api_port from config)')

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # ── LOGGING SETUP ────────────────────────────────────────
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level   = log_level,
        format  = '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt = '%H:%M:%S',
    )

    config = load_config(args.config)

    if args.command == 'analyze':
        return _cmd_analyze(args)

    from triage.api import TriageService
    try:
        service = TriageService(config)
    except ValueError as e:
        _print(f"{RED}Error: invalid config: {e}{RESET}")
        return 1

    try:
        if args.command == 'submit':
            return _cmd_submit(service, args)
        if args.command == 'queue':
            return _cmd_queue(service, args)
        if args.command == 'sync':
            return _cmd_sync(service)
        if args.command == 'board':
            return _cmd_board(service, args)
        if args.command == 'serve':
            from triage.api import serve
            serve(args.host or config['api_host'], args.port or config['api_port'], config)
            return 0
    except StoreError as e:
        _print(f"{RED}Error: remote store unavailable: {e}{RESET}")
        return 2
    return 1


# ── COMMANDS ─────────────────────────────────────────────────

def _cmd_analyze(args) -> int:
    from triage.scorer import analyze
    result = analyze(args.message, args.age, args.phone, args.name)
    _print(f"Priority  : {_colored(result.priority)}")
    _print(f"Category  : {CYAN}{result.category}{RESET}")
    _print(f"Score     : {result.score:.2f}")
    _print(f"Reasoning : {result.reasoning}")
    return 0


def _cmd_submit(service, args) -> int:
    try:
        validate_submission(args.name, args.age, args.phone, args.message, args.coords)
    except ValidationError as e:
        _print(f"{RED}Error: {e}{RESET}")
        return 1
    if service.local_mode:
        return _refuse_local_mode(service)

    async def _run():
        # Replay anything already queued first so the new request lands behind it
        await service.sync_now()
        return await service.submit(
            name=args.name, age=args.age, phone=args.phone,
            message=args.message, coords=args.coords,
        )

    try:
        outcome = asyncio.run(_run())
    except ValidationError as e:
        _print(f"{RED}Error: {e}{RESET}")
        return 1

    mark = _ok if outcome.status == 'submitted' else _warn
    mark(outcome.message)
    _print(f"  id       : {outcome.request_id}")
    _print(f"  priority : {_colored(outcome.priority)}")
    return 0


def _cmd_queue(service, args) -> int:
    if args.clear:
        count = service.clear_queue()
        _ok(f"{count} queued request(s) discarded")
        return 0

    items = service.queued()
    if not items:
        _ok("Offline queue is empty")
        return 0
    _print(f"\n{BOLD}{len(items)} request(s) waiting to sync:{RESET}")
    for item in items:
        _print(f"  {item.id}  {_colored(item.priority):<20} {item.name} @ {item.coords}")
    return 0


def _cmd_sync(service) -> int:
    if service.local_mode:
        return _refuse_local_mode(service)
    queued = len(service.queued())
    _step(f"Checking connectivity ({queued} queued)...")
    summary = asyncio.run(service.sync_now())
    if not service.coordinator.online:
        _warn("Remote store unreachable — queue kept for the next attempt")
        return 2
    if summary is None:
        if queued:
            _warn(f"0 of {queued} requests synced. Remaining will retry automatically.")
            return 2
        _ok("Nothing to sync")
        return 0
    (_ok if summary.complete else _warn)(summary.message)
    return 0 if summary.complete else 2


def _cmd_board(service, args) -> int:
    board = service.board(
        query=args.query, category=args.category,
        priority=args.priority, spam=args.spam,
    )
    k = board.kpis
    _print(f"\n{BOLD}Total {k.total}  Pending {k.pending}  "
           f"Resolved {k.resolved}  {RED}Critical {k.critical}{RESET}")

    _print(f"\n{BOLD}Pending ({len(board.pending)}){RESET}")
    for r in board.pending:
        _print(f"  {r.priority_score:.2f}  {_colored(r.priority):<20} "
               f"[{r.category}] {r.name}, {r.age} @ {r.coords}")
        _print(f"        {r.message}")
        _print(f"        {r.reasoning}")

    _print(f"\n{BOLD}Resolved ({len(board.resolved)}){RESET}")
    for r in board.resolved:
        _print(f"  {r.id}  {r.name} @ {r.coords}  resolved {r.resolved_at or '?'}")
    _print("")
    return 0


def _refuse_local_mode(service) -> int:
    # The in-memory store does not outlive this process
    _print(f"{RED}Error: no database_url configured; "
           f"{len(service.queued())} queued request(s) are kept until one is set{RESET}")
    return 1


# ── PRINT HELPERS ────────────────────────────────────────────

def _colored(priority: str) -> str:
    return f"{PRIORITY_COLORS.get(priority, GREEN)}{priority}{RESET}"

def _step(msg):  _print(f"  {CYAN}→{RESET} {msg}")
def _ok(msg):    _print(f"  {GREEN}✓{RESET} {msg}")
def _warn(msg):  _print(f"  {YELLOW}⚠{RESET} {msg}")
def _print(msg): print(msg)


if __name__ == '__main__':
    sys.exit(main())
