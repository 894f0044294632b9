"""Constants for source export parsing."""

import re

# Filename patterns for format detection
SPOTIFY_EXTENDED_PATTERN = re.compile(
    r"(endsong_\d+\.json|Streaming_History_Audio_.*\.json)$",
    re.IGNORECASE,
)
LASTFM_CSV_PATTERN = re.compile(r"\.csv$", re.IGNORECASE)

LASTFM_UTC_TIME_FORMAT = "%d %b %Y, %H:%M"

# Plays shorter than this are skips, not listens
MIN_SPOTIFY_PLAY_MS = 30_000

# Provenance written into every record
SUBMISSION_CLIENT_AGENT = "teal-importer/0.1.0"
LASTFM_DOMAIN = "last.fm"
SPOTIFY_DOMAIN = "spotify.com"

# Record key delimiter; must not plausibly occur inside an artist or track name
RECORD_KEY_DELIMITER = "|||"

DEFAULT_MAX_RECORDS = 5_000_000
