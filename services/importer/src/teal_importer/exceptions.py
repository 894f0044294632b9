"""Importer exceptions.

Only these propagate to the caller. Write and delete failures are counted
and logged by the publisher and sweeper instead of being raised.
"""


class ImporterError(Exception):
    """Base exception for importer errors."""


class MissingAuthenticationError(ImporterError):
    """No authenticated account is available for repo operations."""

    def __init__(self, detail: str = "No authenticated session found") -> None:
        super().__init__(detail)


class ListingFailedError(ImporterError):
    """A listRecords page failed, so the existing-state snapshot is unusable."""

    def __init__(self, collection: str, fetched: int, detail: str = "") -> None:
        self.collection = collection
        self.fetched = fetched
        super().__init__(
            f"Failed to list {collection} after {fetched} records" + (f": {detail}" if detail else "")
        )


class ConfigurationError(ImporterError):
    """A tunable is outside the range the planner can work with."""
