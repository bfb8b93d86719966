#!/usr/bin/env python3
"""
Humsana CLI
===========

Run the interlock MCP server or inspect its state from a terminal.

Usage:
    humsana [serve]                 # Run the stdio MCP server (default)
    humsana state                   # Show the current user state and fatigue
    humsana check COMMAND           # Check a command without running it
    humsana audit [--limit N]       # Show recent overrides and blocks
    humsana reviews                 # List blocked edits saved for review

All output goes to stderr; stdout is reserved for the MCP protocol.
"""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv
from rich.markup import escape

from humsana import __version__
from humsana.audit import AuditSink
from humsana.config import HumsanaPaths, InterlockConfig
from humsana.interlock import build_context, check_command
from humsana.output import (
    console,
    create_table,
    print_error,
    print_info,
    print_key_value_table,
    print_muted,
    print_panel,
    print_success,
    print_warning,
    setup_rich_logging,
)
from humsana.state import load_user_state


def cmd_serve(args: argparse.Namespace) -> int:
    from humsana.server import run

    paths = HumsanaPaths.from_env()
    config = InterlockConfig.load(paths.config_file)
    logging.getLogger(__name__).info(
        "Humsana interlock v%s starting (mode=%s, home=%s)",
        __version__, config.execution_mode.value, paths.home,
    )
    run()
    return 0


def cmd_state(args: argparse.Namespace) -> int:
    state = asyncio.run(load_user_state(HumsanaPaths.from_env()))
    data = state.to_dict()

    print_key_value_table(
        {
            "State": f"{state.state_label} ({state.state})",
            **{key.replace("_", " ").title(): value for key, value in data["metrics"].items()},
            "Fatigue category": state.fatigue.category.value,
        },
        title="User State",
    )
    print_key_value_table(state.recommendations.to_dict(), title="Recommendations")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    ctx = asyncio.run(build_context())
    check = check_command(ctx, args.command_string)

    if check.is_blocked:
        print_error(check.message)
        print_muted(check.override_instruction)
    elif check.assessment.is_dangerous:
        print_warning(check.message)
    else:
        print_success(check.message)

    if check.assessment.matched_patterns:
        print_info(ctx.classifier.format_assessment(check.assessment))
    print_muted(f"Fatigue: {check.fatigue.level}% ({check.fatigue.category.value}), "
                f"threshold {ctx.config.fatigue_threshold}%, mode {ctx.mode}")
    return 1 if check.is_blocked else 0


def cmd_audit(args: argparse.Namespace) -> int:
    sink = AuditSink(HumsanaPaths.from_env())
    entries = sink.read_entries(limit=args.limit)

    if not entries:
        print_info("No audit entries recorded.")
        return 0

    table = create_table(title="Interlock Audit Log", columns=["Timestamp", "Outcome", "Action", "Override Reason"])
    for entry in entries:
        table.add_row(
            entry.timestamp,
            entry.outcome,
            escape(entry.action_description),
            escape(entry.override_reason or "-"),
        )
    console.print(table)
    return 0


def cmd_reviews(args: argparse.Namespace) -> int:
    sink = AuditSink(HumsanaPaths.from_env())
    snapshots = sink.list_snapshots()

    if not snapshots:
        print_info("No edits pending review.")
        return 0

    table = create_table(title=f"Pending Reviews ({len(snapshots)})", columns=["File", "Size"])
    for snapshot in snapshots:
        table.add_row(snapshot.name, f"{snapshot.stat().st_size} bytes")
    console.print(table)
    print_panel(f"Review folder: {sink.review_dir}", title="Location")
    return 0


def main() -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="humsana",
        description="Cognitive interlock that gates risky commands and file rewrites on fatigue",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"humsana {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("serve", help="Run the stdio MCP server (default)")
    subparsers.add_parser("state", help="Show the current user state")

    check_parser = subparsers.add_parser("check", help="Check whether a command would be blocked")
    check_parser.add_argument("command_string", metavar="COMMAND", help="Shell command to check")

    audit_parser = subparsers.add_parser("audit", help="Show recent audit entries")
    audit_parser.add_argument("--limit", "-n", type=int, default=20, help="Max entries to show")

    subparsers.add_parser("reviews", help="List blocked edits saved for review")

    args = parser.parse_args()
    setup_rich_logging(logging.DEBUG if args.verbose else logging.INFO)

    commands = {
        "serve": cmd_serve,
        "state": cmd_state,
        "check": cmd_check,
        "audit": cmd_audit,
        "reviews": cmd_reviews,
    }

    handler = commands.get(args.command or "serve")
    if handler:
        return handler(args)
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
