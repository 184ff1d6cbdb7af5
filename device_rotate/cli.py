#!/usr/bin/env python3
"""
device-rotate - open a page under a rotation of emulated devices, wait for
SDKs to initialize, and save a screenshot plus page-health signals on a
fixed interval.

Usage Examples:
  device-rotate run https://your-test-url.example
  device-rotate run https://your-test-url.example --interval-ms 30000 --max-iterations 10
  device-rotate run https://your-test-url.example --headful --output-dir shots
  device-rotate profiles

First time only:
  pip install -e .
  playwright install chromium

Safety note: this does NOT change your public IP. It is device, user-agent
and viewport emulation only.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from device_rotate.config import LOG_LEVEL, RunSettings
from device_rotate.logging_setup import setup_logging
from device_rotate.runner import (
    EXIT_FAILURE,
    EXIT_OK,
    UsageError,
    load_rotation,
    run_device_rotation,
    validate_target_url,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="device-rotate",
        description="Rotate a page through emulated device profiles and capture screenshots.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s run https://example.com
  %(prog)s run https://example.com --interval-ms 30000 --settle-ms 5000 --max-iterations 10
  %(prog)s profiles
        """,
    )
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Start the device rotation loop.")
    # Optional at the argparse level so a missing URL exits 1 with our own message.
    run.add_argument("target_url", nargs="?", help="Page to test (must start with http:// or https://)")
    run.add_argument("--interval-ms", type=int, help="Pause between iterations in ms.")
    run.add_argument("--settle-ms", type=int, help="Wait after load for SDKs to initialize, in ms.")
    run.add_argument("--nav-timeout-ms", type=int, help="Timeout for each navigation step in ms.")
    run.add_argument("--max-iterations", type=int, help="Stop after this many iterations.")
    run.add_argument("--output-dir", help="Directory for screenshots (created if missing).")
    run.add_argument("--not-found-marker", action="append", dest="not_found_markers", metavar="TEXT",
                     help="Text that marks a not-found page. Repeatable; replaces the built-in list.")
    headless = run.add_mutually_exclusive_group()
    headless.add_argument("--headless", dest="headless", action="store_true", default=None,
                          help="Run the browser headless.")
    headless.add_argument("--headful", dest="headless", action="store_false", default=None,
                          help="Show the browser window (needs a display).")
    run.add_argument("--no-full-page", dest="full_page", action="store_false", default=None,
                     help="Capture the viewport only.")
    run.add_argument("--log-file", help="Also append logs to this file.")
    run.add_argument("--verbose", "-v", action="store_true", help="Debug logging.")

    sub.add_parser("profiles", help="List the device rotation.")
    return parser


def settings_from_args(args: argparse.Namespace) -> RunSettings:
    return RunSettings.from_env().with_overrides(
        interval_ms=args.interval_ms,
        settle_ms=args.settle_ms,
        nav_timeout_ms=args.nav_timeout_ms,
        max_iterations=args.max_iterations,
        output_dir=args.output_dir,
        headless=args.headless,
        full_page=args.full_page,
        not_found_markers=args.not_found_markers,
    )


def cmd_profiles() -> int:
    try:
        profiles = asyncio.run(load_rotation())
    except Exception as e:
        print(f"Error: could not load device profiles: {e}", file=sys.stderr)
        return EXIT_FAILURE
    for i, p in enumerate(profiles):
        vp = f"{p.viewport['width']}x{p.viewport['height']}" if p.viewport else "default"
        kind = "mobile" if p.is_mobile else "desktop"
        print(f"{i}: {p.name:<16} {vp:<10} x{p.device_scale_factor:<6} {kind}")
    return EXIT_OK


def cmd_run(args: argparse.Namespace) -> int:
    try:
        target_url = validate_target_url(args.target_url)
    except UsageError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Usage: device-rotate run <TEST_URL>", file=sys.stderr)
        return EXIT_FAILURE

    if args.max_iterations is not None and args.max_iterations < 1:
        print("Error: --max-iterations must be >= 1", file=sys.stderr)
        return EXIT_FAILURE

    try:
        settings = settings_from_args(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    setup_logging("DEBUG" if args.verbose else LOG_LEVEL, args.log_file)
    try:
        return asyncio.run(run_device_rotation(target_url, settings))
    except Exception as e:
        # Playwright failed to start (missing browser binaries, driver crash).
        print(f"Error: could not start browser automation: {e}", file=sys.stderr)
        return EXIT_FAILURE


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "run":
        return cmd_run(args)
    if args.command == "profiles":
        return cmd_profiles()
    parser.print_help()
    return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
