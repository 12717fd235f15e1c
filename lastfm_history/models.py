from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

IMAGE_SIZES: Tuple[str, ...] = ("small", "medium", "large", "extralarge")

# 11: service offline, 16: temporary processing error, 29: rate limit exceeded
RETRIABLE_ERROR_CODES = frozenset({11, 16, 29})


@dataclass(frozen=True)
class ImageSet:
    small: Optional[str] = None
    medium: Optional[str] = None
    large: Optional[str] = None
    extralarge: Optional[str] = None

    def to_payload(self) -> List[Dict[str, str]]:
        images = []
        for size in IMAGE_SIZES:
            url = getattr(self, size)
            if url is not None:
                images.append({"#text": url, "size": size})
        return images


@dataclass(frozen=True)
class Artist:
    name: str
    url: str
    image: ImageSet = field(default_factory=ImageSet)

    def to_payload(self) -> Dict[str, Any]:
        return {"name": self.name, "url": self.url, "image": self.image.to_payload()}


@dataclass(frozen=True)
class NowPlayingTrack:
    artist: Artist
    name: str
    album: str
    url: str
    image: ImageSet = field(default_factory=ImageSet)

    def to_payload(self) -> Dict[str, Any]:
        payload = _track_payload(self)
        payload["@attr"] = {"nowplaying": "true"}
        return payload


@dataclass(frozen=True)
class RecordedTrack:
    artist: Artist
    name: str
    album: str
    url: str
    played_at: datetime
    image: ImageSet = field(default_factory=ImageSet)

    @property
    def timestamp(self) -> int:
        return int(self.played_at.timestamp())

    def to_payload(self) -> Dict[str, Any]:
        payload = _track_payload(self)
        payload["date"] = {
            "uts": str(self.timestamp),
            "#text": self.played_at.strftime("%d %b %Y, %H:%M"),
        }
        return payload


Track = Union[NowPlayingTrack, RecordedTrack]


def _track_payload(track: Track) -> Dict[str, Any]:
    return {
        "artist": track.artist.to_payload(),
        "name": track.name,
        "image": track.image.to_payload(),
        "album": {"#text": track.album},
        "url": track.url,
    }


@dataclass(frozen=True)
class Page:
    total_tracks: int
    tracks: Tuple[Track, ...] = ()

    def recorded_tracks(self) -> List[RecordedTrack]:
        return [track for track in self.tracks if isinstance(track, RecordedTrack)]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "recenttracks": {
                "@attr": {"total": str(self.total_tracks)},
                "track": [track.to_payload() for track in self.tracks],
            }
        }


@dataclass(frozen=True)
class RemoteError:
    code: int
    message: str

    def is_retriable(self) -> bool:
        return self.code in RETRIABLE_ERROR_CODES

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


PageResponse = Union[Page, RemoteError]


__all__ = [
    "IMAGE_SIZES",
    "RETRIABLE_ERROR_CODES",
    "ImageSet",
    "Artist",
    "NowPlayingTrack",
    "RecordedTrack",
    "Track",
    "Page",
    "RemoteError",
    "PageResponse",
]
