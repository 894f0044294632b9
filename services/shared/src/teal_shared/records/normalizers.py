"""Normalizers that convert raw rows from each source export format into PlayRecord."""

import logging
from datetime import UTC, datetime
from urllib.parse import quote_plus

from teal_shared.records.constants import (
    LASTFM_DOMAIN,
    LASTFM_UTC_TIME_FORMAT,
    MIN_SPOTIFY_PLAY_MS,
    SPOTIFY_DOMAIN,
    SUBMISSION_CLIENT_AGENT,
)
from teal_shared.records.models import PlayArtist, PlayRecord

logger = logging.getLogger(__name__)


def format_played_time(played_at: datetime) -> str:
    """Render an instant as ISO 8601 UTC with a ``Z`` suffix."""
    if played_at.tzinfo is None:
        played_at = played_at.replace(tzinfo=UTC)
    return played_at.astimezone(UTC).isoformat().replace("+00:00", "Z")


def _blank_to_none(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def lastfm_track_url(artist_name: str, track_name: str) -> str:
    return f"https://www.last.fm/music/{quote_plus(artist_name)}/_/{quote_plus(track_name)}"


def normalize_lastfm_row(row: dict[str, str]) -> PlayRecord | None:
    """Normalize a row from a Last.fm CSV export.

    Expected columns:
        uts: str (Unix seconds)
        utc_time: str (e.g. "15 Jan 2023, 10:30"), used when uts is empty
        artist, artist_mbid, album, album_mbid, track, track_mbid: str

    Returns None if the row is missing an artist, a track or a usable timestamp.
    """
    artist_name = _blank_to_none(row.get("artist"))
    track_name = _blank_to_none(row.get("track"))

    if not track_name or not artist_name:
        return None

    uts = _blank_to_none(row.get("uts"))
    utc_time = _blank_to_none(row.get("utc_time"))
    try:
        if uts is not None:
            played_at = datetime.fromtimestamp(int(uts), tz=UTC)
        elif utc_time is not None:
            played_at = datetime.strptime(utc_time, LASTFM_UTC_TIME_FORMAT).replace(tzinfo=UTC)
        else:
            return None
    except (ValueError, OverflowError, OSError):
        logger.warning("Skipping Last.fm row with unparseable timestamp: uts=%r utc_time=%r", uts, utc_time)
        return None

    return PlayRecord(
        track_name=track_name,
        artists=[PlayArtist(artist_name=artist_name, artist_mb_id=_blank_to_none(row.get("artist_mbid")))],
        release_name=_blank_to_none(row.get("album")),
        release_mb_id=_blank_to_none(row.get("album_mbid")),
        recording_mb_id=_blank_to_none(row.get("track_mbid")),
        played_time=format_played_time(played_at),
        origin_url=lastfm_track_url(artist_name, track_name),
        submission_client_agent=SUBMISSION_CLIENT_AGENT,
        music_service_base_domain=LASTFM_DOMAIN,
    )


def normalize_spotify_record(raw: dict[str, object]) -> PlayRecord | None:
    """Normalize a record from Spotify Extended Streaming History.

    Expected fields:
        ts: str (ISO 8601 datetime, e.g. "2023-01-15T10:30:00Z")
        ms_played: int
        master_metadata_track_name: str | None
        master_metadata_album_artist_name: str | None
        master_metadata_album_album_name: str | None
        spotify_track_uri: str | None

    Returns None for podcasts and other entries without track/artist names,
    and for plays shorter than MIN_SPOTIFY_PLAY_MS.
    """
    track_name = _blank_to_none(raw.get("master_metadata_track_name"))
    artist_name = _blank_to_none(raw.get("master_metadata_album_artist_name"))

    if not track_name or not artist_name:
        return None

    ms_played = raw.get("ms_played", 0)
    if not isinstance(ms_played, int) or ms_played < MIN_SPOTIFY_PLAY_MS:
        return None

    ts_str = raw.get("ts")
    if not isinstance(ts_str, str):
        return None

    try:
        played_at = datetime.fromisoformat(ts_str.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Skipping Spotify record with unparseable timestamp: %s", ts_str)
        return None

    origin_url = None
    track_uri = raw.get("spotify_track_uri")
    if isinstance(track_uri, str) and track_uri.startswith("spotify:track:"):
        origin_url = f"https://open.spotify.com/track/{track_uri.removeprefix('spotify:track:')}"

    return PlayRecord(
        track_name=track_name,
        artists=[PlayArtist(artist_name=artist_name)],
        release_name=_blank_to_none(raw.get("master_metadata_album_album_name")),
        played_time=format_played_time(played_at),
        origin_url=origin_url,
        submission_client_agent=SUBMISSION_CLIENT_AGENT,
        music_service_base_domain=SPOTIFY_DOMAIN,
    )
