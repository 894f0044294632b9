"""Pydantic models for AT Protocol XRPC responses.

These are pure data models matching the repo endpoints' JSON structure.
No HTTP or auth dependencies.
"""

from typing import Any

from pydantic import BaseModel, Field

from teal_shared.records.models import PlayRecord

# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class AtprotoSession(BaseModel):
    """Response of com.atproto.server.createSession."""

    did: str
    handle: str
    access_jwt: str = Field(alias="accessJwt")
    refresh_jwt: str | None = Field(default=None, alias="refreshJwt")

    model_config = {"populate_by_name": True}


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class RepoRecord(BaseModel):
    """A single record from com.atproto.repo.listRecords."""

    uri: str
    cid: str
    value: dict[str, Any]


class ListRecordsResponse(BaseModel):
    """One page of com.atproto.repo.listRecords."""

    records: list[RepoRecord] = Field(default_factory=list)
    cursor: str | None = None


class ExistingRecord(BaseModel):
    """A play record already stored in the destination repository."""

    uri: str
    cid: str
    value: PlayRecord

    model_config = {"frozen": True}

    @property
    def rkey(self) -> str:
        """Record key: last path segment of ``at://<did>/<collection>/<rkey>``."""
        return self.uri.rsplit("/", 1)[-1]

    @classmethod
    def from_repo_record(cls, record: RepoRecord) -> "ExistingRecord":
        return cls(uri=record.uri, cid=record.cid, value=PlayRecord.model_validate(record.value))


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


class ApplyWritesResult(BaseModel):
    """Per-operation result of com.atproto.repo.applyWrites."""

    uri: str | None = None
    cid: str | None = None
    validation_status: str | None = Field(default=None, alias="validationStatus")

    model_config = {"populate_by_name": True}


class ApplyWritesResponse(BaseModel):
    """Response of com.atproto.repo.applyWrites.

    ``results`` is optional in the lexicon; older PDS versions omit it.
    """

    results: list[ApplyWritesResult] | None = None
