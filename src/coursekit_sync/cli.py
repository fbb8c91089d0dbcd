"""Command-line entry point for coursekit-sync.

Subcommands:

- ``init``   -- write a starter ``.coursekit/config.yml``.
- ``diff``   -- show what a publish would change.
- ``status`` -- diff summary plus target-vs-ledger conflicts.
- ``push``   -- publish source content into the target.
- ``validate`` -- check source front matter before a push.

Exit codes: 0 success, 1 error or invalid front matter (``validate``),
2 conflicts (``status``) or writes blocked by conflicts (``push``).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from . import __version__
from .config import Config, load_config
from .config_loader import ensure_config, load_hierarchical_config
from .config_schema import UnifiedConfig, build_config
from .logger import setup_logging
from .sync.engine import PublishEngine
from .sync.errors import LedgerError
from .sync.reporter import (
    conflicts_to_json,
    diff_to_json,
    format_conflict_report,
    format_diff_report,
    format_publish_report,
    format_validation_report,
    report_to_json,
    validation_to_json,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFLICTS = 2


def format_error(error_type: str, message: str, corrective_action: str) -> str:
    """Build an error message with a corrective action.

    Examples:
        >>> format_error("invalid_config", "No sources configured", "Add one.")
        'Error (invalid_config): No sources configured\\n\\nAction: Add one.'
    """
    return f"Error ({error_type}): {message}\n\nAction: {corrective_action}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coursekit-sync",
        description="Publish course content from source repositories to the platform",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create a starter config in .coursekit/config.yml
  coursekit-sync init

  # Preview what would change
  coursekit-sync diff --type lessons

  # Check the target for hand edits since the last publish
  coursekit-sync status

  # Publish one course, overwriting conflicting target edits
  coursekit-sync push --namespace intro-python --force

  # Check lesson front matter before pushing
  coursekit-sync validate --type lessons

Exit codes: 0 ok, 1 error, 2 conflicts.
        """,
    )
    parser.add_argument(
        "--config",
        help="Config file path (takes precedence over COURSEKIT_CONFIG and .coursekit/config.yml)",
    )
    parser.add_argument(
        "--target",
        help="Target root directory (takes precedence over COURSEKIT_TARGET and config files)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"coursekit-sync version {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create a starter config file")

    scope = argparse.ArgumentParser(add_help=False)
    scope.add_argument(
        "--type",
        dest="content_type",
        help="Content type to process (default: every configured type)",
    )
    scope.add_argument("--namespace", help="Only process this namespace")
    scope.add_argument(
        "--json", action="store_true", help="Print JSON instead of text"
    )

    diff_parser = subparsers.add_parser(
        "diff", parents=[scope], help="Show source-vs-target differences"
    )
    diff_parser.add_argument(
        "--all", action="store_true", help="Include unchanged items"
    )

    subparsers.add_parser(
        "status",
        parents=[scope],
        help="Show diff summary and conflicts with the last publish",
    )

    push_parser = subparsers.add_parser(
        "push", parents=[scope], help="Publish source content to the target"
    )
    push_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be done"
    )
    push_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite target items that changed since the last publish",
    )

    subparsers.add_parser(
        "validate",
        parents=[scope],
        help="Check source front matter against the content type schema",
    )

    return parser


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _engines(config: Config, content_type: str | None) -> list[PublishEngine]:
    types = [content_type] if content_type else list(config.content_types)
    return [PublishEngine(config, t) for t in types]


def _emit(args: argparse.Namespace, texts: list[str], payload: dict) -> None:
    if args.json:
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print("\n\n".join(texts))


def cmd_diff(args: argparse.Namespace, config: Config) -> int:
    texts: list[str] = []
    payload: dict = {}
    for engine in _engines(config, args.content_type):
        result = engine.diff(args.namespace, include_unchanged=args.all)
        texts.append(format_diff_report(result))
        payload[engine.content_type] = diff_to_json(result)
    _emit(args, texts, payload)
    return EXIT_OK


def cmd_status(args: argparse.Namespace, config: Config) -> int:
    texts: list[str] = []
    payload: dict = {}
    has_conflicts = False
    for engine in _engines(config, args.content_type):
        diff = engine.diff(args.namespace)
        conflicts = engine.check_conflicts(args.namespace)
        has_conflicts = has_conflicts or conflicts.has_conflicts
        texts.append(
            format_diff_report(diff) + "\n\n" + format_conflict_report(conflicts)
        )
        payload[engine.content_type] = {
            "diff": diff_to_json(diff),
            "conflicts": conflicts_to_json(conflicts),
        }
    _emit(args, texts, payload)
    return EXIT_CONFLICTS if has_conflicts else EXIT_OK


def cmd_push(args: argparse.Namespace, config: Config) -> int:
    texts: list[str] = []
    payload: dict = {}
    blocked = errors = False
    for engine in _engines(config, args.content_type):
        report = engine.run(
            dry_run=args.dry_run, force=args.force, namespace=args.namespace
        )
        blocked = blocked or bool(report.blocked)
        errors = errors or bool(report.errors)
        texts.append(format_publish_report(report))
        if report.blocked and not args.dry_run:
            texts.append(format_conflict_report(report.conflicts))
        payload[engine.content_type] = report_to_json(report)
    _emit(args, texts, payload)
    if errors:
        return EXIT_ERROR
    return EXIT_CONFLICTS if blocked else EXIT_OK


def cmd_validate(args: argparse.Namespace, config: Config) -> int:
    texts: list[str] = []
    payload: dict = {}
    valid = True
    for engine in _engines(config, args.content_type):
        schema = engine.type_config.front_matter_schema
        if args.content_type is None and schema is None:
            texts.append(
                f"No front-matter schema for '{engine.content_type}'; skipped."
            )
            continue
        report = engine.validate(args.namespace)
        valid = valid and report.valid
        texts.append(format_validation_report(report))
        payload[engine.content_type] = validation_to_json(report)
    _emit(args, texts, payload)
    return EXIT_OK if valid else EXIT_ERROR


COMMANDS = {
    "diff": cmd_diff,
    "status": cmd_status,
    "push": cmd_push,
    "validate": cmd_validate,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _load_unified(args: argparse.Namespace) -> UnifiedConfig:
    raw = load_hierarchical_config(args.config)
    return build_config(raw)


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the command and return the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv()

    if args.command == "init":
        setup_logging(
            debug=args.debug,
            log_file=args.log_file,
            debug_format=args.log_format,
        )
        path, created = ensure_config(Path(args.config) if args.config else None)
        if created:
            print(f"Created {path}")
        else:
            print(f"Config already exists: {path}")
        return EXIT_OK

    try:
        unified = _load_unified(args)
    except FileNotFoundError as exc:
        print(
            format_error(
                "config_not_found",
                str(exc),
                "Check the --config path or run 'coursekit-sync init'.",
            ),
            file=sys.stderr,
        )
        return EXIT_ERROR
    except (yaml.YAMLError, ValidationError, ValueError) as exc:
        print(
            format_error(
                "invalid_config",
                str(exc),
                "Fix the config file and re-run.",
            ),
            file=sys.stderr,
        )
        return EXIT_ERROR

    setup_logging(
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        debug_format=args.log_format,
        level=unified.logging.level,
    )

    try:
        config = load_config(unified, target=args.target, debug=args.debug)
        if config.debug and not args.debug:
            logging.getLogger().setLevel(logging.DEBUG)
        return COMMANDS[args.command](args, config)
    except LedgerError as exc:
        logger.error("%s", exc)
        print(
            format_error(
                "ledger_error",
                str(exc),
                "Restore the ledger from version control, or delete it "
                "and re-run push with --force to rebuild it.",
            ),
            file=sys.stderr,
        )
        return EXIT_ERROR
    except ValueError as exc:
        print(
            format_error(
                "invalid_config",
                str(exc),
                "Check --target, --type and the config file.",
            ),
            file=sys.stderr,
        )
        return EXIT_ERROR
    except OSError as exc:
        logger.exception("I/O error")
        print(
            format_error(
                "io_error",
                str(exc),
                "Check file permissions and paths, then re-run.",
            ),
            file=sys.stderr,
        )
        return EXIT_ERROR


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    run()
