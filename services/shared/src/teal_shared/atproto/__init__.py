"""AT Protocol client, models and record keys."""

from teal_shared.atproto.client import AtprotoClient
from teal_shared.atproto.exceptions import (
    AtprotoAuthError,
    AtprotoClientError,
    AtprotoRateLimitError,
    AtprotoRequestError,
    AtprotoServerError,
)
from teal_shared.atproto.tid import tid_from_datetime, tid_from_iso

__all__ = [
    "AtprotoClient",
    "AtprotoAuthError",
    "AtprotoClientError",
    "AtprotoRateLimitError",
    "AtprotoRequestError",
    "AtprotoServerError",
    "tid_from_datetime",
    "tid_from_iso",
]
