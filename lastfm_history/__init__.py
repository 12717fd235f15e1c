"""Fetch a Last.fm user's listening history and currently playing track."""

from .client import Client
from .config import ClientConfig, build_session, load_config
from .errors import (
    CancellationRequested,
    ConfigError,
    DecodeError,
    InvalidTimestamp,
    LastFmError,
    MalformedPage,
    MissingCredential,
    MissingField,
    RemoteFailure,
    RetriableRemoteFailure,
    TooManyRetries,
    TransportError,
)
from .models import Artist, ImageSet, NowPlayingTrack, Page, RecordedTrack, RemoteError, Track
from .retry import FixedDelay, JitteredBackoff, NoRetry, RetryStrategy
from .stream import HistoryStream

__all__ = [
    "Client",
    "ClientConfig",
    "build_session",
    "load_config",
    "HistoryStream",
    "RetryStrategy",
    "JitteredBackoff",
    "FixedDelay",
    "NoRetry",
    "Artist",
    "ImageSet",
    "NowPlayingTrack",
    "RecordedTrack",
    "Track",
    "Page",
    "RemoteError",
    "LastFmError",
    "DecodeError",
    "MissingField",
    "InvalidTimestamp",
    "MalformedPage",
    "ConfigError",
    "RemoteFailure",
    "RetriableRemoteFailure",
    "TransportError",
    "TooManyRetries",
    "MissingCredential",
    "CancellationRequested",
]
