"""caddy CLI - drive the decision core from a terminal.

Commands:
  - Route one utterance:  `caddy route "enter score for hole 5" --course "Pebble Beach"`
  - Show normalization:   `caddy normalize "one fifty with my 7i"`
  - Inspect miss history: `caddy patterns --db shots.db --club 7-iron`
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from caddycore.config import CaddySettings, load_settings
from caddycore.conversation.context import RoundState, SessionContext
from caddycore.errors import CaddyError, describe_error
from caddycore.llm.openai_client import OpenAICompatibleClient
from caddycore.memory.persistent import SQLiteMissRepository
from caddycore.memory.store import MissPatternStore
from caddycore.nlu.classifier import InputMode
from caddycore.pipeline import CaddyPipeline, reply_text
from caddycore.routing.orchestrator import ConfirmationRequired, Navigate
from caddycore.routing.prerequisites import SessionPrerequisiteChecker
from caddycore.text.normalize import normalize_text


# ANSI colors
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    CYAN = "\033[36m"
    YELLOW = "\033[33m"


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="caddy", description="Golf caddy intent decision core")
    p.add_argument("--config", default=None, help="Path to caddy-settings.yaml")
    p.add_argument("--debug", action="store_true", help="Verbose logging")
    subs = p.add_subparsers(dest="command")

    route = subs.add_parser("route", help="Classify and route one utterance")
    route.add_argument("text")
    route.add_argument("--voice", action="store_true", help="Use the voice latency budget")
    route.add_argument("--offline", action="store_true", help="Skip the remote classifier")
    route.add_argument("--json", action="store_true", help="Print the full outcome as JSON")
    route.add_argument("--course", default=None, help="Start a round at this course first")
    route.add_argument("--hole", type=int, default=1, help="Current hole for --course")
    route.add_argument("--recovery-data", action="store_true", help="Treat recovery data as present")
    route.add_argument("--db", default=None, help="Miss history database for pattern queries")

    norm = subs.add_parser("normalize", help="Show how input is normalized")
    norm.add_argument("text")

    pat = subs.add_parser("patterns", help="Show miss patterns from the shot history")
    pat.add_argument("--db", default=None, help="SQLite database path")
    pat.add_argument("--club", default=None)
    pat.add_argument("--pressure", choices=["yes", "no"], default=None)
    pat.add_argument("--refresh", action="store_true", help="Store the recomputed patterns")
    return p


def _cmd_normalize(args: argparse.Namespace) -> int:
    result = normalize_text(args.text)
    print(result.normalized)
    for mod in result.applied_modifications:
        print(f"  {Colors.DIM}{mod}{Colors.RESET}")
    return 0


def _open_store(settings: CaddySettings, db_path: Optional[str]) -> MissPatternStore:
    repo = SQLiteMissRepository(db_path or settings.memory.db_path)
    return MissPatternStore(repo, settings.memory)


def _cmd_route(args: argparse.Namespace, settings: CaddySettings) -> int:
    session = SessionContext(capacity=settings.session.history_capacity)
    if args.course:
        session.start_round(RoundState(course_name=args.course, current_hole=args.hole))

    client = None
    if not args.offline:
        cfg = settings.classifier
        client = OpenAICompatibleClient(
            base_url=cfg.base_url,
            model=cfg.model,
            api_key=cfg.api_key,
            timeout_seconds=cfg.voice_timeout_seconds if args.voice else cfg.text_timeout_seconds,
        )

    has_recovery = bool(args.recovery_data)
    checker = SessionPrerequisiteChecker(session, has_recovery_data=lambda: has_recovery)
    store = _open_store(settings, args.db) if args.db else None
    pipeline = CaddyPipeline.from_settings(
        settings, llm_client=client, checker=checker, session=session, store=store,
    )

    mode = InputMode.VOICE if args.voice else InputMode.TEXT
    outcome = pipeline.handle_sync(args.text, input_mode=mode, online=not args.offline)

    if args.json:
        print(json.dumps(outcome.to_dict(), indent=2, sort_keys=True, ensure_ascii=False))
        return 0

    result = outcome.result
    tag = f"{Colors.YELLOW}[offline]{Colors.RESET} " if outcome.used_fallback else ""
    print(f"{tag}{Colors.BOLD}{result.kind}{Colors.RESET}: {reply_text(result)}")
    if isinstance(result, Navigate):
        print(f"  {Colors.CYAN}{result.route}{Colors.RESET}")
    if isinstance(result, ConfirmationRequired):
        for suggestion in result.suggestions:
            print(f"  - {suggestion.value}")
    for pattern in outcome.patterns:
        print(f"  {pattern.direction.value}: {pattern.frequency} shots, confidence {pattern.confidence:.2f}")
    return 0


def _cmd_patterns(args: argparse.Namespace, settings: CaddySettings) -> int:
    store = _open_store(settings, args.db)
    pressure = None if args.pressure is None else args.pressure == "yes"
    if args.refresh:
        patterns = store.refresh_patterns(args.club, pressure)
    else:
        patterns = store.get_patterns(args.club, pressure)
    if not patterns:
        print("No miss patterns yet.")
        return 0
    for pattern in patterns:
        print(
            f"{pattern.direction.value:<9} freq={pattern.frequency:<3} "
            f"share={pattern.share:.0%} confidence={pattern.confidence:.2f} "
            f"last={pattern.last_occurrence.date().isoformat()}"
        )
    return 0


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    if args.command is None:
        parser.print_help()
        return 2

    if args.command == "normalize":
        return _cmd_normalize(args)

    try:
        settings = load_settings(args.config)
        if args.command == "route":
            return _cmd_route(args, settings)
        return _cmd_patterns(args, settings)
    except CaddyError as e:
        print(describe_error(e).message, file=sys.stderr)
        logging.getLogger(__name__).debug("command failed", exc_info=True)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
