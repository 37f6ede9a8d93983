"""pixeldiag — detect issues in captured ad-tech beacon traffic."""

import json
import logging
import sys
from argparse import ArgumentParser

from pixeldiag.config import Config
from pixeldiag.models import IssueType

logger = logging.getLogger(__name__)


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="pixeldiag",
        description="Detect timeouts, failures, duplicate and out-of-order beacons in request captures.",
    )
    parser.add_argument(
        "--config",
        help="YAML config file (thresholds, placement params, server)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze capture file(s) and report issues")
    analyze.add_argument(
        "files",
        nargs="+",
        help="Capture file path(s) or glob pattern(s): JSON array, {\"requests\": [...]} or NDJSON",
    )
    analyze.add_argument(
        "--output",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    analyze.add_argument(
        "--color",
        action="store_true",
        help="Colorize output by severity (ANSI)",
    )
    analyze.add_argument(
        "--summary",
        action="store_true",
        help="Show the issue summary instead of individual issues",
    )
    analyze.add_argument(
        "--export",
        action="store_true",
        help="Print the full session export document (JSON)",
    )
    analyze.add_argument(
        "--issue-type",
        action="append",
        choices=[t.value for t in IssueType],
        help="Only report requests carrying this issue type (repeatable)",
    )
    analyze.add_argument(
        "--search",
        help="Only report requests whose payloads match this text",
    )
    analyze.add_argument(
        "--regex",
        action="store_true",
        help="Treat --search as a regular expression",
    )
    analyze.add_argument(
        "--now",
        type=float,
        help="Reference time in ms since epoch for timeout checks (default: now)",
    )

    serve = sub.add_parser("serve", help="Run the HTTP ingest/analysis API")
    serve.add_argument("--host", help="Bind address (default from config)")
    serve.add_argument("--port", type=int, help="Port (default from config)")
    return parser


def run_analyze(args, config: Config) -> int:
    """Load captures into a fresh store, run every pass, print the result."""
    from pixeldiag.app import build_store
    from pixeldiag.formatter import export_session, get_formatter
    from pixeldiag.reader import expand_paths, load_records
    from pixeldiag.summary import format_summary_json, format_summary_text

    try:
        records = load_records(expand_paths(args.files))
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    store = build_store(config, auto_analyze=False)
    for record in records:
        # Issues are recomputed from scratch for each run
        record.issues.clear()
        store.start(record, now=args.now)
    store.analyze()
    logger.info("Analyzed %d request(s)", len(store))

    if args.export:
        print(json.dumps(export_session(store.snapshot()), indent=2))
        return 0

    if args.summary:
        summary = store.summary()
        if args.output == "json":
            print(format_summary_json(summary))
        else:
            print(format_summary_text(summary))
        return 0

    issue_types = [IssueType(t) for t in args.issue_type] if args.issue_type else None
    formatter = get_formatter(output_format=args.output, color=args.color)
    for record in store.filter(
        issue_types=issue_types,
        only_issues=True,
        query=args.search,
        use_regex=args.regex,
    ):
        print(formatter(record))
    return 0


def run_serve(args, config: Config) -> int:
    from pixeldiag.app import create_app

    server = config["server"]
    app = create_app(config)
    app.run(
        host=args.host or server["host"],
        port=args.port or server["port"],
        debug=server["debug"],
    )
    return 0


def main():
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else (logging.INFO if args.command == "serve" else logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
        stream=sys.stderr,
    )

    config = Config(args.config)
    if args.command == "serve":
        sys.exit(run_serve(args, config))
    sys.exit(run_analyze(args, config))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        sys.exit(0)
    except BrokenPipeError:
        sys.exit(0)
