"""Deduplication keys for play records."""

from teal_shared.records.constants import RECORD_KEY_DELIMITER
from teal_shared.records.models import PlayRecord


def normalize_key_field(value: str) -> str:
    return value.lower().strip()


def create_record_key(record: PlayRecord) -> str:
    """Fingerprint a play as ``artist|||track|||playedTime``.

    Artist and track are lower-cased and trimmed; the played time is used
    verbatim. Two records are the same listening event iff their keys match.
    """
    return RECORD_KEY_DELIMITER.join(
        (
            normalize_key_field(record.artist_name),
            normalize_key_field(record.track_name),
            record.played_time,
        )
    )
