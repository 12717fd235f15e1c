from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

import requests

from .config import DEFAULT_BASE_URL, DEFAULT_CONNECT_TIMEOUT, DEFAULT_READ_TIMEOUT
from .decoding import decode_page_response
from .errors import (
    CancellationRequested,
    LastFmError,
    MalformedPage,
    RemoteFailure,
    RetriableRemoteFailure,
    TooManyRetries,
    TransportError,
)
from .models import Page, PageResponse, RemoteError
from .retry import JitteredBackoff, RetryStrategy

logger = logging.getLogger(__name__)

RECENT_TRACKS_METHOD = "user.getrecenttracks"

Timeout = Union[float, Tuple[float, float]]


@dataclass(frozen=True)
class PageQuery:
    api_key: str
    username: str
    limit: int
    from_: Optional[int] = None
    to: Optional[int] = None

    def params(self) -> List[Tuple[str, str]]:
        params = [
            ("method", RECENT_TRACKS_METHOD),
            ("user", self.username),
            ("format", "json"),
            ("extended", "1"),
            ("limit", str(self.limit)),
            ("api_key", self.api_key),
        ]
        if self.from_ is not None:
            params.append(("from", str(self.from_)))
        if self.to is not None:
            params.append(("to", str(self.to)))
        return params

    def describe(self) -> str:
        bounds = []
        if self.from_ is not None:
            bounds.append(f"from={self.from_}")
        if self.to is not None:
            bounds.append(f"to={self.to}")
        suffix = f" ({', '.join(bounds)})" if bounds else ""
        return f"Fetch {self.limit} recent tracks of {self.username}{suffix}"


def _read_response(response: requests.Response) -> PageResponse:
    try:
        payload = response.json()
    except ValueError as exc:
        if response.status_code == 429 or response.status_code >= 500:
            raise TransportError(f"HTTP {response.status_code} with a non-JSON body") from exc
        raise MalformedPage(f"Response body is not JSON (HTTP {response.status_code})") from exc
    return decode_page_response(payload)


class PageFetcher:
    """Fetches single pages of a user's recent tracks, retrying transient failures."""

    def __init__(
        self,
        session: requests.Session,
        *,
        base_url: str = DEFAULT_BASE_URL,
        retry_strategy: Optional[RetryStrategy] = None,
        timeout: Timeout = (DEFAULT_CONNECT_TIMEOUT, DEFAULT_READ_TIMEOUT),
    ) -> None:
        self.session = session
        self.base_url = base_url
        self.retry_strategy = retry_strategy or JitteredBackoff()
        self.timeout = timeout

    def _wait(self, seconds: float, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is None:
            if seconds > 0:
                time.sleep(seconds)
            return
        cancelled = cancel_event.wait(seconds) if seconds > 0 else cancel_event.is_set()
        if cancelled:
            raise CancellationRequested("Fetch cancelled by the consumer")

    def fetch(self, query: PageQuery, cancel_event: Optional[threading.Event] = None) -> Page:
        description = query.describe()
        params = query.params()
        errors: List[LastFmError] = []
        attempt = 0

        while True:
            delay = self.retry_strategy.should_retry_after(attempt)
            if delay is None:
                if errors:
                    logger.error("%s failed after %s attempts: %s", description, attempt, errors[-1])
                raise TooManyRetries(errors)
            if errors:
                logger.warning(
                    "%s failed (attempt %s): %s. Retrying in %.1fs",
                    description,
                    attempt,
                    errors[-1],
                    delay,
                )
            self._wait(delay, cancel_event)

            try:
                response = self.session.get(self.base_url, params=params, timeout=self.timeout)
                outcome = _read_response(response)
            except requests.RequestException as exc:
                error = TransportError(str(exc))
                error.__cause__ = exc
                errors.append(error)
                attempt += 1
                continue
            except TransportError as exc:
                errors.append(exc)
                attempt += 1
                continue

            if isinstance(outcome, RemoteError):
                logger.error("Last.fm error %s: %s", outcome.code, outcome.message)
                if not outcome.is_retriable():
                    raise RemoteFailure(outcome.code, outcome.message)
                errors.append(RetriableRemoteFailure(outcome.code, outcome.message))
                attempt += 1
                continue

            logger.debug(
                "%s: %s tracks received (total %s)", description, len(outcome.tracks), outcome.total_tracks
            )
            return outcome


__all__ = ["PageQuery", "PageFetcher", "RECENT_TRACKS_METHOD"]
