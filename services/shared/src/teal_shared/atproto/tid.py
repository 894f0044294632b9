"""Timestamp identifiers (TIDs) used as record keys.

A TID is 13 characters of base32-sortable text: 11 characters of
microseconds since the Unix epoch followed by a 2-character clock id. The
alphabet is ordered so that lexical order of TIDs matches numeric order.

The clock id is fixed at 0 so the same played time always maps to the same
record key, which keeps re-running an import idempotent at the repo level.
"""

from datetime import UTC, datetime, timedelta

S32_ALPHABET = "234567abcdefghijklmnopqrstuvwxyz"
TID_LENGTH = 13
TIMESTAMP_WIDTH = 11
CLOCK_ID_WIDTH = 2
DEFAULT_CLOCK_ID = 0

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MICROSECOND = timedelta(microseconds=1)
# 53-bit timestamp; the top bit of the 64-bit TID stays clear
_MAX_TIMESTAMP = 2**53 - 1


def s32_encode(value: int) -> str:
    """Encode a non-negative integer in the sortable base32 alphabet (no padding)."""
    if value < 0:
        raise ValueError(f"Cannot s32-encode negative value: {value}")
    if value == 0:
        return S32_ALPHABET[0]
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 32)
        digits.append(S32_ALPHABET[remainder])
    return "".join(reversed(digits))


def tid_from_unix_micros(micros: int, clock_id: int = DEFAULT_CLOCK_ID) -> str:
    """Build a TID from microseconds since the epoch.

    Pre-1970 values clamp to zero and oversized values to the largest
    53-bit timestamp, so the result is always 13 characters and a valid rkey.
    """
    micros = min(max(micros, 0), _MAX_TIMESTAMP)
    timestamp = s32_encode(micros).rjust(TIMESTAMP_WIDTH, S32_ALPHABET[0])
    clock = s32_encode(clock_id % (32**CLOCK_ID_WIDTH)).rjust(CLOCK_ID_WIDTH, S32_ALPHABET[0])
    return timestamp + clock


def tid_from_unix_ms(millis: int, clock_id: int = DEFAULT_CLOCK_ID) -> str:
    """Build a TID from epoch milliseconds; the missing precision is zero."""
    return tid_from_unix_micros(millis * 1000, clock_id)


def tid_from_datetime(dt: datetime, clock_id: int = DEFAULT_CLOCK_ID) -> str:
    """Build a TID from a datetime. Naive datetimes are treated as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return tid_from_unix_micros((dt - _EPOCH) // _ONE_MICROSECOND, clock_id)


def tid_from_iso(iso_string: str, clock_id: int = DEFAULT_CLOCK_ID) -> str:
    """Build a TID from an ISO 8601 timestamp string (``Z`` suffix accepted)."""
    return tid_from_datetime(datetime.fromisoformat(iso_string.replace("Z", "+00:00")), clock_id)
