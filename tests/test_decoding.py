from datetime import UTC, datetime

import pytest

from lastfm_history.decoding import (
    decode_image_set,
    decode_page,
    decode_page_response,
    decode_track,
    is_now_playing,
)
from lastfm_history.errors import InvalidTimestamp, MalformedPage, MissingField
from lastfm_history.models import ImageSet, NowPlayingTrack, Page, RecordedTrack, RemoteError

from payloads import error_payload, image_payload, page_payload, track_payload


def test_decode_image_set_single_size():
    image_set = decode_image_set([{"#text": "https://url1.com", "size": "small"}])
    assert image_set == ImageSet(small="https://url1.com")


def test_decode_image_set_all_sizes():
    image_set = decode_image_set(image_payload("https://u"))
    assert image_set.small == "https://u/34s.png"
    assert image_set.medium == "https://u/64s.png"
    assert image_set.large == "https://u/174s.png"
    assert image_set.extralarge == "https://u/300x300.png"


@pytest.mark.parametrize(
    "sizes",
    [
        [],
        ["large"],
        ["extralarge", "small"],
        ["medium", "small", "large"],
        ["small", "medium", "large", "extralarge"],
    ],
)
def test_decode_image_set_sets_exactly_present_sizes(sizes):
    raw = [{"#text": f"https://img/{size}", "size": size} for size in sizes]
    image_set = decode_image_set(raw)
    for size in ("small", "medium", "large", "extralarge"):
        expected = f"https://img/{size}" if size in sizes else None
        assert getattr(image_set, size) == expected


def test_decode_image_set_ignores_unknown_sizes_and_keeps_last_duplicate():
    raw = [
        {"#text": "https://a", "size": "mega"},
        {"#text": "https://first", "size": "large"},
        {"#text": "https://second", "size": "large"},
    ]
    assert decode_image_set(raw) == ImageSet(large="https://second")


def test_decode_image_set_empty_url_is_absent():
    assert decode_image_set([{"#text": "", "size": "small"}]) == ImageSet()


@pytest.mark.parametrize(
    "item,missing",
    [
        ({"size": "small"}, "#text"),
        ({"#text": "blah"}, "size"),
        ({"#text": None, "size": "small"}, "#text"),
    ],
)
def test_decode_image_set_missing_fields(item, missing):
    with pytest.raises(MissingField) as excinfo:
        decode_image_set([{"#text": "https://ok", "size": "medium"}, item])
    assert excinfo.value.field == missing
    assert str(excinfo.value) == f"missing field `image.1.{missing}`"


def test_decode_recorded_track():
    track = decode_track(track_payload("Blue Monday", 1676284092, artist="New Order", album="Substance"))

    assert isinstance(track, RecordedTrack)
    assert track.name == "Blue Monday"
    assert track.album == "Substance"
    assert track.artist.name == "New Order"
    assert track.artist.url == "https://www.last.fm/music/New Order"
    assert track.artist.image.small == "https://img.example/artist/34s.png"
    assert track.image.extralarge == "https://img.example/300x300.png"
    assert track.url == "https://www.last.fm/music/New Order/_/Blue Monday"
    assert track.played_at == datetime(2023, 2, 13, 10, 28, 12, tzinfo=UTC)
    assert track.timestamp == 1676284092


def test_decode_now_playing_track_needs_no_date():
    track = decode_track(track_payload("Live", uts=None, now_playing=True))

    assert isinstance(track, NowPlayingTrack)
    assert track.name == "Live"
    assert not hasattr(track, "played_at")


def test_now_playing_wins_even_with_a_date():
    raw = track_payload("Live")
    raw["@attr"] = {"nowplaying": "true"}
    assert isinstance(decode_track(raw), NowPlayingTrack)


@pytest.mark.parametrize(
    "attr",
    [
        {"nowplaying": "false"},
        {"nowplaying": True},
        {"nowplaying": "TRUE"},
        {},
        {"rank": "1"},
        "true",
        None,
    ],
)
def test_other_markers_decode_as_recorded(attr):
    raw = track_payload("Old")
    if attr is not None:
        raw["@attr"] = attr
    assert is_now_playing(raw) is False
    assert isinstance(decode_track(raw), RecordedTrack)


def test_not_now_playing_without_date_fails():
    raw = track_payload("Broken", uts=None)
    with pytest.raises(MissingField) as excinfo:
        decode_track(raw)
    assert excinfo.value.field == "date"


def test_date_without_uts_fails():
    raw = track_payload("Broken")
    raw["date"] = {"#text": "13 Feb 2023, 10:28"}
    with pytest.raises(MissingField) as excinfo:
        decode_track(raw)
    assert excinfo.value.field == "uts"
    assert excinfo.value.path == ("date",)


@pytest.mark.parametrize("uts", ["yesterday", "1.5", "", None, True, str(2**63), "99999999999999999"])
def test_invalid_uts(uts):
    raw = track_payload("Broken")
    raw["date"]["uts"] = uts
    with pytest.raises(InvalidTimestamp):
        decode_track(raw)


def test_integer_uts_is_accepted():
    raw = track_payload("Numeric")
    raw["date"]["uts"] = 0
    track = decode_track(raw)
    assert track.played_at == datetime(1970, 1, 1, tzinfo=UTC)


@pytest.mark.parametrize(
    "mutate,missing",
    [
        (lambda raw: raw.pop("artist"), "artist"),
        (lambda raw: raw.__setitem__("artist", "New Order"), "artist"),
        (lambda raw: raw["artist"].pop("name"), "name"),
        (lambda raw: raw["artist"].pop("url"), "url"),
        (lambda raw: raw["artist"].pop("image"), "image"),
        (lambda raw: raw.pop("name"), "name"),
        (lambda raw: raw.__setitem__("name", 42), "name"),
        (lambda raw: raw.pop("image"), "image"),
        (lambda raw: raw.pop("album"), "album"),
        (lambda raw: raw.__setitem__("album", "Substance"), "album"),
        (lambda raw: raw["album"].pop("#text"), "#text"),
        (lambda raw: raw.pop("url"), "url"),
        (lambda raw: raw.__setitem__("date", "13 Feb 2023"), "date"),
    ],
)
def test_decode_track_names_missing_field(mutate, missing):
    raw = track_payload("Song")
    mutate(raw)
    with pytest.raises(MissingField) as excinfo:
        decode_track(raw)
    assert excinfo.value.field == missing


def test_artist_errors_carry_their_path():
    raw = track_payload("Song")
    del raw["artist"]["name"]
    with pytest.raises(MissingField) as excinfo:
        decode_track(raw)
    assert excinfo.value.qualified_name == "artist.name"


def test_decode_track_rejects_non_objects():
    with pytest.raises(MissingField):
        decode_track(["not", "a", "track"])


@pytest.mark.parametrize(
    "raw",
    [
        track_payload("Recorded", 1700000000, artist="A", album="B"),
        track_payload("Playing", uts=None, now_playing=True, artist="C", album=""),
    ],
)
def test_track_payload_round_trip(raw):
    track = decode_track(raw)
    assert decode_track(track.to_payload()) == track


def test_decode_page():
    payload = page_payload(
        [
            track_payload("Now", uts=None, now_playing=True),
            track_payload("Newest", 1700000300),
            track_payload("Middle", 1700000200),
            track_payload("Oldest", 1700000100),
        ],
        total=3,
    )

    page = decode_page_response(payload)

    assert isinstance(page, Page)
    assert page.total_tracks == 3
    assert [track.name for track in page.tracks] == ["Now", "Newest", "Middle", "Oldest"]
    assert [track.name for track in page.recorded_tracks()] == ["Newest", "Middle", "Oldest"]


def test_decode_empty_page():
    page = decode_page(page_payload([], total=1234))
    assert page == Page(total_tracks=1234, tracks=())


def test_decode_page_accepts_single_track_object():
    payload = page_payload([])
    payload["recenttracks"]["track"] = track_payload("Only", 1700000000)
    payload["recenttracks"]["@attr"]["total"] = "1"

    page = decode_page(payload)
    assert [track.name for track in page.tracks] == ["Only"]


def test_page_payload_round_trip():
    page = decode_page(page_payload([track_payload("A", 1700000100), track_payload("B", 1700000000)], total=40))
    assert decode_page(page.to_payload()) == page


@pytest.mark.parametrize(
    "payload",
    [
        {"recenttracks": "nope"},
        {"recenttracks": {"track": []}},
        {"recenttracks": {"@attr": {"total": "12"}}},
        {"recenttracks": {"@attr": {}, "track": []}},
        {"recenttracks": {"@attr": {"total": "many"}, "track": []}},
        {"recenttracks": {"@attr": {"total": "-1"}, "track": []}},
        {"recenttracks": {"@attr": {"total": str(2**64)}, "track": []}},
        {"recenttracks": {"@attr": {"total": "1"}, "track": "Song"}},
    ],
)
def test_malformed_pages(payload):
    with pytest.raises(MalformedPage):
        decode_page_response(payload)


def test_bad_track_inside_page_is_malformed_page():
    broken = track_payload("Broken")
    del broken["url"]
    payload = page_payload([track_payload("Fine"), broken])

    with pytest.raises(MalformedPage) as excinfo:
        decode_page_response(payload)

    assert "track #1" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, MissingField)
    assert excinfo.value.__cause__.field == "url"


def test_decode_remote_error():
    outcome = decode_page_response(error_payload(29, "Rate limit exceeded"))
    assert outcome == RemoteError(code=29, message="Rate limit exceeded")


def test_page_shape_is_checked_before_error_shape():
    payload = page_payload([track_payload("Song")])
    payload["error"] = 8
    payload["message"] = "ignored"
    assert isinstance(decode_page_response(payload), Page)


@pytest.mark.parametrize(
    "payload",
    [
        [],
        "error",
        {},
        {"message": "no code"},
        {"error": "eleven", "message": "x"},
        {"error": 6},
    ],
)
def test_unrecognized_envelopes(payload):
    with pytest.raises(MalformedPage):
        decode_page_response(payload)


@pytest.mark.parametrize("code,retriable", [(11, True), (16, True), (29, True), (4, False), (10, False), (26, False)])
def test_remote_error_classification(code, retriable):
    assert RemoteError(code=code, message="x").is_retriable() is retriable
