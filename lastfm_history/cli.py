#!/usr/bin/env python3
"""Print a Last.fm user's now playing track and listening history."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import UTC, datetime
from email.utils import format_datetime
from itertools import islice
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .client import Client
from .config import API_KEY_ENV_VAR, USERNAME_ENV_VAR, load_config
from .errors import ConfigError, LastFmError, MissingCredential
from .models import RecordedTrack

logger = logging.getLogger(__name__)


def _parse_bound(value: str) -> int:
    """Accept Unix seconds or an ISO-8601 date/datetime (UTC when no offset is given)."""

    text = value.strip()
    if text.lstrip("-").isdigit():
        return int(text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not a Unix timestamp or ISO-8601 date: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return int(parsed.timestamp())


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from exc
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0: {value!r}")
    return number


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch Last.fm listening history")
    parser.add_argument("--config", type=str, default=None, help="Path to a YAML config file")
    parser.add_argument(
        "--user",
        type=str,
        default=None,
        help=f"Last.fm username (default: config file or {USERNAME_ENV_VAR})",
    )
    parser.add_argument("--from", dest="from_", type=_parse_bound, default=None, help="Only tracks played after this time")
    parser.add_argument("--to", type=_parse_bound, default=None, help="Only tracks played before this time")
    parser.add_argument("--limit", type=_non_negative_int, default=None, help="Maximum number of history records to print")
    parser.add_argument("--now-playing", action="store_true", help="Only print the track currently playing")
    parser.add_argument("--max-retries", type=_non_negative_int, default=None, help="Attempts per page before giving up (default: 5)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def format_track(track: RecordedTrack) -> str:
    return f"{format_datetime(track.played_at)}: {track.artist.name} - {track.name}"


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    load_dotenv()

    try:
        config = load_config(Path(args.config) if args.config else None)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    if args.user:
        config.username = args.user
    if args.max_retries is not None:
        config.max_retries = args.max_retries

    if not config.username:
        print(f"No username given: pass --user or set {USERNAME_ENV_VAR}", file=sys.stderr)
        return 2

    try:
        client = Client.from_config(config)
    except MissingCredential:
        print(f"{API_KEY_ENV_VAR} is not set (environment, .env file or config)", file=sys.stderr)
        return 2

    try:
        now_playing = client.now_playing()
        if now_playing is not None:
            print(f"Now playing: {now_playing.artist.name} - {now_playing.name}")
        if args.now_playing:
            return 0

        with client.recent_tracks(args.from_, args.to) as stream:
            print(f"Total tracks: {stream.total_tracks}")
            for track in islice(stream, args.limit):
                print(format_track(track))
    except LastFmError as exc:
        logger.error("Error fetching data: %s", exc)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
