"""Lazy, cursor-driven iteration over a user's listening history.

Last.fm pages go backwards in time: each page is requested with ``to`` set
to the timestamp of the oldest record already seen, and the end of history
is signalled by an empty page rather than by an explicit flag.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Iterator, List, Optional

from .errors import CancellationRequested
from .fetcher import PageFetcher, PageQuery
from .models import Page, RecordedTrack

logger = logging.getLogger(__name__)

HISTORY_PAGE_SIZE = 200


class StreamState(enum.Enum):
    BUFFERED = "buffered"
    EXHAUSTED = "exhausted"


class HistoryStream(Iterator[RecordedTrack]):
    """Iterator of ``RecordedTrack``s, newest first, fetching pages on demand.

    Now playing entries never enter the buffer: they carry no timestamp and
    would break the cursor. ``total_tracks`` is the count reported by the
    first page fetched and is informational only.

    ``cancel`` may be called from another thread; a backoff wait in progress
    is aborted and no further request is made.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        api_key: str,
        username: str,
        *,
        from_: Optional[int] = None,
        to: Optional[int] = None,
        page_size: int = HISTORY_PAGE_SIZE,
    ) -> None:
        self._fetcher = fetcher
        self._api_key = api_key
        self.username = username
        self.from_ = from_
        self._to = to
        self._page_size = page_size
        # oldest first, so pop() hands out the newest record
        self._buffer: List[RecordedTrack] = []
        self._cancel_event = threading.Event()
        self._lock = threading.Lock()
        self._pages_loaded = 0
        self.total_tracks: Optional[int] = None
        self.state = StreamState.BUFFERED

    @classmethod
    def from_page(
        cls,
        fetcher: PageFetcher,
        page: Page,
        api_key: str,
        username: str,
        *,
        from_: Optional[int] = None,
        to: Optional[int] = None,
        page_size: int = HISTORY_PAGE_SIZE,
    ) -> "HistoryStream":
        stream = cls(fetcher, api_key, username, from_=from_, to=to, page_size=page_size)
        stream._load(page)
        return stream

    @property
    def cursor(self) -> Optional[int]:
        return self._to

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def _finish(self) -> None:
        self.state = StreamState.EXHAUSTED
        self._buffer = []

    def _load(self, page: Page) -> None:
        if self._pages_loaded == 0:
            self.total_tracks = page.total_tracks
        self._pages_loaded += 1

        recorded = page.recorded_tracks()
        if self._pages_loaded > 1 and self._to is not None:
            # `to` is inclusive, records at the cursor were already yielded
            recorded = [track for track in recorded if track.timestamp < self._to]
        if not recorded:
            logger.info("Listening history of %s exhausted", self.username)
            self._finish()
            return

        self._buffer = list(reversed(recorded))
        self._to = recorded[-1].timestamp
        logger.debug(
            "Buffered %s tracks of %s, next page before %s", len(recorded), self.username, self._to
        )

    def _next_query(self) -> PageQuery:
        return PageQuery(
            api_key=self._api_key,
            username=self.username,
            limit=self._page_size,
            from_=self.from_,
            to=self._to,
        )

    def __iter__(self) -> "HistoryStream":
        return self

    def __next__(self) -> RecordedTrack:
        while self.state is StreamState.BUFFERED:
            if self._cancel_event.is_set():
                self._finish()
                break
            if self._buffer:
                return self._buffer.pop()

            try:
                page = self._fetcher.fetch(self._next_query(), cancel_event=self._cancel_event)
            except CancellationRequested:
                logger.info("Listening history stream of %s cancelled", self.username)
                self._finish()
                break
            except Exception:
                self._finish()
                raise
            with self._lock:
                if self._cancel_event.is_set():
                    self._finish()
                    break
                self._load(page)

        raise StopIteration

    def cancel(self) -> None:
        self._cancel_event.set()

    def close(self) -> None:
        self.cancel()
        with self._lock:
            self._finish()

    def __enter__(self) -> "HistoryStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"HistoryStream(username={self.username!r}, state={self.state.value}, "
            f"total_tracks={self.total_tracks}, buffered={len(self._buffer)}, cursor={self._to})"
        )


__all__ = ["HistoryStream", "StreamState", "HISTORY_PAGE_SIZE"]
