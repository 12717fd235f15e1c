"""Decoders turning Last.fm ``user.getrecenttracks`` JSON into model objects.

The API wraps scalars in ``{"#text": ...}`` objects, ships images as a list
keyed by ``size``, encodes booleans and numbers as strings and reports errors
in the same envelope as successful pages, so every field is extracted
explicitly and every failure names the field that was missing.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, List, Mapping, Sequence, Tuple

from .errors import DecodeError, InvalidTimestamp, MalformedPage, MissingField
from .models import (
    IMAGE_SIZES,
    Artist,
    ImageSet,
    NowPlayingTrack,
    Page,
    PageResponse,
    RecordedTrack,
    RemoteError,
    Track,
)

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1
_U64_MAX = 2**64 - 1

Path = Tuple[str, ...]


def _require_object(raw: Mapping[str, Any], key: str, path: Path) -> Mapping[str, Any]:
    value = raw.get(key)
    if not isinstance(value, Mapping):
        raise MissingField(key, path)
    return value


def _require_str(raw: Mapping[str, Any], key: str, path: Path) -> str:
    value = raw.get(key)
    if not isinstance(value, str):
        raise MissingField(key, path)
    return value


def _parse_integer(value: Any) -> int:
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"expected an integer or a numeric string, got {type(value).__name__}")
    return int(value)


def decode_image_set(raw: Any, path: Path = ()) -> ImageSet:
    if not isinstance(raw, list):
        raise MissingField("image", path)

    found = {}
    for index, item in enumerate(raw):
        item_path = path + ("image", str(index))
        if not isinstance(item, Mapping):
            raise MissingField("size", item_path)
        size = _require_str(item, "size", item_path)
        url = _require_str(item, "#text", item_path)
        if size in IMAGE_SIZES:
            found[size] = url or None
    return ImageSet(**found)


def decode_artist(raw: Any, path: Path = ()) -> Artist:
    if not isinstance(raw, Mapping):
        raise MissingField("artist", path)
    artist_path = path + ("artist",)
    return Artist(
        name=_require_str(raw, "name", artist_path),
        url=_require_str(raw, "url", artist_path),
        image=decode_image_set(raw.get("image"), artist_path),
    )


def is_now_playing(raw: Mapping[str, Any]) -> bool:
    attr = raw.get("@attr")
    if not isinstance(attr, Mapping):
        return False
    return attr.get("nowplaying") == "true"


def decode_timestamp(raw: Mapping[str, Any], path: Path = ()) -> datetime:
    date = _require_object(raw, "date", path)
    if "uts" not in date:
        raise MissingField("uts", path + ("date",))
    uts = date["uts"]
    try:
        seconds = _parse_integer(uts)
    except ValueError as exc:
        raise InvalidTimestamp(uts, str(exc)) from exc
    if not _I64_MIN <= seconds <= _I64_MAX:
        raise InvalidTimestamp(uts, "outside the signed 64-bit range")
    try:
        return datetime.fromtimestamp(seconds, tz=UTC)
    except (OverflowError, OSError, ValueError) as exc:
        raise InvalidTimestamp(uts, str(exc)) from exc


def decode_track(raw: Any) -> Track:
    if not isinstance(raw, Mapping):
        raise MissingField("track")

    artist = decode_artist(raw.get("artist"))
    name = _require_str(raw, "name", ())
    image = decode_image_set(raw.get("image"))
    album = _require_str(_require_object(raw, "album", ()), "#text", ("album",))
    url = _require_str(raw, "url", ())

    if is_now_playing(raw):
        return NowPlayingTrack(artist=artist, name=name, album=album, url=url, image=image)

    return RecordedTrack(
        artist=artist,
        name=name,
        album=album,
        url=url,
        played_at=decode_timestamp(raw),
        image=image,
    )


def _decode_total(recent: Mapping[str, Any]) -> int:
    attr = _require_object(recent, "@attr", ("recenttracks",))
    if "total" not in attr:
        raise MissingField("total", ("recenttracks", "@attr"))
    try:
        total = _parse_integer(attr["total"])
    except ValueError as exc:
        raise MalformedPage(f"cannot parse total {attr['total']!r}: {exc}") from exc
    if not 0 <= total <= _U64_MAX:
        raise MalformedPage(f"total {total} is not an unsigned 64-bit count")
    return total


def _decode_track_list(recent: Mapping[str, Any]) -> List[Track]:
    if "track" not in recent:
        raise MissingField("track", ("recenttracks",))
    raw_tracks = recent["track"]
    if isinstance(raw_tracks, Mapping):
        raw_tracks = [raw_tracks]
    if not isinstance(raw_tracks, list):
        raise MalformedPage("field recenttracks.track is not an array")

    tracks: List[Track] = []
    for index, raw_track in enumerate(raw_tracks):
        try:
            tracks.append(decode_track(raw_track))
        except DecodeError as exc:
            raise MalformedPage(f"cannot decode track #{index}: {exc}") from exc
    return tracks


def decode_page(payload: Any) -> Page:
    """Decode a successful ``recenttracks`` payload, raising ``MalformedPage`` otherwise."""

    if not isinstance(payload, Mapping):
        raise MalformedPage(f"expected a JSON object, got {type(payload).__name__}")
    try:
        recent = _require_object(payload, "recenttracks", ())
        total = _decode_total(recent)
        tracks = _decode_track_list(recent)
    except MalformedPage:
        raise
    except DecodeError as exc:
        raise MalformedPage(f"cannot decode recent tracks page: {exc}") from exc
    return Page(total_tracks=total, tracks=tuple(tracks))


def decode_remote_error(payload: Mapping[str, Any]) -> RemoteError:
    try:
        code = _parse_integer(payload.get("error"))
    except ValueError as exc:
        raise MalformedPage(f"cannot parse error code {payload.get('error')!r}: {exc}") from exc
    if code < 0:
        raise MalformedPage(f"error code {code} is negative")
    message = payload.get("message")
    if not isinstance(message, str):
        raise MalformedPage(f"error {code} carries no message")
    return RemoteError(code=code, message=message)


def decode_page_response(payload: Any) -> PageResponse:
    """Decode either a page or the error envelope Last.fm returns in its place.

    The page shape is checked first because its required fields are the more
    specific set; anything that is neither raises ``MalformedPage``.
    """

    if not isinstance(payload, Mapping):
        raise MalformedPage(f"expected a JSON object, got {type(payload).__name__}")
    if "recenttracks" in payload:
        return decode_page(payload)
    if "error" in payload:
        return decode_remote_error(payload)
    keys: Sequence[str] = sorted(str(key) for key in payload)
    raise MalformedPage(f"response is neither a recent tracks page nor an error (keys: {keys})")


__all__ = [
    "decode_image_set",
    "decode_artist",
    "decode_timestamp",
    "decode_track",
    "decode_page",
    "decode_remote_error",
    "decode_page_response",
    "is_now_playing",
]
