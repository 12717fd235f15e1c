from __future__ import annotations

import logging
import os
from datetime import UTC, datetime
from typing import Optional, Union

import requests

from .config import (
    API_KEY_ENV_VAR,
    DEFAULT_BASE_URL,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_READ_TIMEOUT,
    ClientConfig,
    build_session,
)
from .errors import MissingCredential
from .fetcher import PageFetcher, PageQuery, Timeout
from .models import NowPlayingTrack
from .retry import RetryStrategy
from .stream import HISTORY_PAGE_SIZE, HistoryStream

logger = logging.getLogger(__name__)

Bound = Union[int, datetime]


def mask_api_key(api_key: str) -> str:
    return api_key[:3] + "*" * max(len(api_key) - 3, 0)


def _to_unix(value: Optional[Bound]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return int(value.timestamp())
    return int(value)


class Client:
    """Last.fm client for a single user's now playing track and listening history."""

    def __init__(
        self,
        api_key: str,
        username: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[requests.Session] = None,
        retry_strategy: Optional[RetryStrategy] = None,
        timeout: Optional[Timeout] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key must not be empty")
        if not username:
            raise ValueError("username must not be empty")
        self.api_key = api_key
        self.username = username
        self.base_url = base_url
        self.session = session or build_session()
        self.fetcher = PageFetcher(
            self.session,
            base_url=base_url,
            retry_strategy=retry_strategy,
            timeout=timeout if timeout is not None else (DEFAULT_CONNECT_TIMEOUT, DEFAULT_READ_TIMEOUT),
        )

    @property
    def retry_strategy(self) -> RetryStrategy:
        return self.fetcher.retry_strategy

    @classmethod
    def from_env(cls, username: str, **options) -> "Client":
        """Build a client reading the API key from ``LASTFM_API_KEY``."""

        api_key = os.environ.get(API_KEY_ENV_VAR)
        if not api_key:
            raise MissingCredential(API_KEY_ENV_VAR)
        return cls(api_key, username, **options)

    @classmethod
    def from_config(cls, config: ClientConfig, **options) -> "Client":
        if not config.api_key:
            raise MissingCredential(API_KEY_ENV_VAR)
        if not config.username:
            raise ValueError("username is not configured")
        options.setdefault("base_url", config.base_url)
        options.setdefault("timeout", config.timeout)
        options.setdefault("retry_strategy", config.retry_strategy())
        if "session" not in options:
            options["session"] = build_session(config)
        return cls(config.api_key, config.username, **options)

    def now_playing(self) -> Optional[NowPlayingTrack]:
        """Return the track the user is currently playing, if any."""

        page = self.fetcher.fetch(PageQuery(api_key=self.api_key, username=self.username, limit=1))
        if page.tracks and isinstance(page.tracks[0], NowPlayingTrack):
            return page.tracks[0]
        return None

    def all_tracks(self) -> HistoryStream:
        return self.recent_tracks()

    def recent_tracks(self, from_: Optional[Bound] = None, to: Optional[Bound] = None) -> HistoryStream:
        """Fetch the first history page and return a stream seeded with it.

        ``from_`` and ``to`` are Unix seconds or datetimes (naive ones are
        taken as UTC). ``total_tracks`` is available on the returned stream
        before iteration starts.
        """

        lower = _to_unix(from_)
        upper = _to_unix(to)
        query = PageQuery(
            api_key=self.api_key,
            username=self.username,
            limit=HISTORY_PAGE_SIZE,
            from_=lower,
            to=upper,
        )
        page = self.fetcher.fetch(query)
        logger.info("Listening history of %s: %s tracks reported", self.username, page.total_tracks)
        return HistoryStream.from_page(
            self.fetcher,
            page,
            self.api_key,
            self.username,
            from_=lower,
            to=upper,
        )

    def __repr__(self) -> str:
        return (
            f"Client(api_key={mask_api_key(self.api_key)!r}, username={self.username!r}, "
            f"base_url={self.base_url!r}, retry_strategy={self.retry_strategy!r})"
        )


__all__ = ["Client", "mask_api_key"]
