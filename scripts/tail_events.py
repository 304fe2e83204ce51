#!/usr/bin/env python3
"""Follow the OSC Monitor event feed in a terminal.

Usage:
  uv run python scripts/tail_events.py --url http://localhost:12393 --hide-internal --mute acme
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

from loguru import logger

from osc_monitor.config_manager import FeedConfig, read_yaml, validate_config
from osc_monitor.events import PlatformEvent
from osc_monitor.feed import EventFeedPoller


def format_event(event: PlatformEvent) -> str:
    when = datetime.fromtimestamp(event.timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")
    suffix = "" if event.attributed else "  (tenant not in source log)"
    return f"{when}  {event.emoji}  {event.description}{suffix}"


def print_events(events: list[PlatformEvent]) -> None:
    # Callbacks receive newest first; print oldest first so the terminal reads top-down
    for event in reversed(events):
        print(format_event(event), flush=True)


def load_feed_config(path: str) -> FeedConfig:
    if not Path(path).exists():
        return FeedConfig()
    return validate_config(read_yaml(path)).feed_config


async def follow(args: argparse.Namespace) -> int:
    feed_config = load_feed_config(args.config)
    poller = EventFeedPoller(
        args.url,
        interval_sec=args.interval or feed_config.poll_interval_sec,
        on_new_events=print_events,
        muted=args.mute,
        hide_internal=args.hide_internal,
        internal_tenants=feed_config.internal_tenants,
    )
    await poller.load_initial()
    for _ in range(args.backfill_pages):
        if not poller.state.cursor.has_more:
            break
        print_events(poller.state.visible(await poller.load_older()))
    await poller.start()
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await poller.stop()


def main() -> int:
    parser = argparse.ArgumentParser(description="Follow the OSC Monitor event feed")
    parser.add_argument("--url", default="http://localhost:12393", help="Server base URL")
    parser.add_argument("--config", default="conf.yaml", help="Config file for feed defaults")
    parser.add_argument("--interval", type=int, help="Poll interval in seconds")
    parser.add_argument("--mute", action="append", default=[], help="Hide a tenant (repeatable)")
    parser.add_argument("--hide-internal", action="store_true", help="Hide internal tenants")
    parser.add_argument(
        "--backfill-pages", type=int, default=0, help="Older pages to print before following"
    )
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="WARNING")
    try:
        return asyncio.run(follow(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
