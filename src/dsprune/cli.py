from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from collections.abc import Iterable
from pathlib import Path

from dsprune import __version__
from dsprune.classifier import Classifier
from dsprune.errors import PruneError, resolve_root
from dsprune.models import Ruleset
from dsprune.pruner import Pruner, PruneOptions
from dsprune.report import render_problems, render_summary, report_to_json
from dsprune.rules import DEFAULT_RULESET, load_ruleset, ruleset_to_dict


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dsprune",
        description=(
            "Delete textures, audio, video and other client-only files from a game "
            "installation that will only run a dedicated server."
        ),
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Installation directory (default: current directory)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Classify and report without deleting anything",
    )
    parser.add_argument("--verbose", action="store_true", help="Print every per-file decision")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument(
        "--rules",
        type=Path,
        default=None,
        help="JSON ruleset to use instead of the built-in one",
    )
    parser.add_argument(
        "--dump-rules",
        action="store_true",
        help="Print the active ruleset as JSON and exit",
    )
    parser.add_argument(
        "--no-archives",
        action="store_true",
        help="Do not rewrite .iwd archives to drop removable members",
    )
    parser.add_argument(
        "--no-bulk",
        action="store_true",
        help="Classify every file even inside directories removed wholesale",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Iterable[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        ruleset = load_ruleset(args.rules) if args.rules is not None else DEFAULT_RULESET
        if args.dump_rules:
            print(json.dumps(ruleset_to_dict(ruleset), indent=2))
            return 0
        root = resolve_root(args.path)
    except PruneError as exc:
        raise SystemExit(str(exc)) from exc

    options = PruneOptions(
        dry_run=args.dry_run,
        verbose=args.verbose and not args.json,
        archives=not args.no_archives,
        bulk_directories=not args.no_bulk,
    )
    report = _run_interruptible(root, ruleset, options)

    if args.json:
        print(report_to_json(report))
        return 0
    if not args.verbose:
        problems = render_problems(report)
        if problems:
            print(problems)
    print(render_summary(report))
    return 0


def _run_interruptible(root: Path, ruleset: Ruleset, options: PruneOptions):
    pruner = Pruner(root, Classifier(ruleset), options)

    def _handle_sigint(signum, frame):
        if pruner.stop_requested:
            raise KeyboardInterrupt
        print("\nStopping after the current entry... press Ctrl+C again to abort.", file=sys.stderr)
        pruner.request_stop()

    previous = signal.signal(signal.SIGINT, _handle_sigint)
    try:
        return pruner.run()
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)


if __name__ == "__main__":
    raise SystemExit(main())
