"""Play record model matching the fm.teal.alpha.feed.play lexicon."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class PlayArtist(BaseModel):
    """Artist credit embedded in a play record."""

    artist_name: str = Field(alias="artistName")
    artist_mb_id: str | None = Field(default=None, alias="artistMbId")

    model_config = {"populate_by_name": True, "frozen": True}


class PlayRecord(BaseModel):
    """A single listening event.

    This is the source-agnostic representation that both the Last.fm CSV and
    the Spotify extended history formats map to, and also the shape of the
    ``value`` of records already stored on the PDS. Field aliases follow the
    lexicon's camelCase names so ``model_validate`` accepts stored values as-is.
    """

    track_name: str = Field(alias="trackName")
    artists: list[PlayArtist] = Field(default_factory=list)
    release_name: str | None = Field(default=None, alias="releaseName")
    release_mb_id: str | None = Field(default=None, alias="releaseMbId")
    recording_mb_id: str | None = Field(default=None, alias="recordingMbId")
    played_time: str = Field(alias="playedTime")  # raw ISO 8601, key material
    origin_url: str | None = Field(default=None, alias="originUrl")
    submission_client_agent: str | None = Field(default=None, alias="submissionClientAgent")
    music_service_base_domain: str | None = Field(default=None, alias="musicServiceBaseDomain")

    model_config = {"populate_by_name": True, "frozen": True}

    @property
    def artist_name(self) -> str:
        """Primary artist name, or an empty string for records without credits."""
        return self.artists[0].artist_name if self.artists else ""

    @property
    def played_at(self) -> datetime:
        """``played_time`` parsed as an aware UTC datetime."""
        played_at = datetime.fromisoformat(self.played_time.replace("Z", "+00:00"))
        if played_at.tzinfo is None:
            return played_at.replace(tzinfo=UTC)
        return played_at.astimezone(UTC)

    def to_record_value(self, record_type: str) -> dict[str, Any]:
        """Serialize to the JSON value written into the repository."""
        value: dict[str, Any] = {"$type": record_type}
        value.update(self.model_dump(by_alias=True, exclude_none=True))
        return value
