"""Directory cache entries and the persisted snapshot format."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, field_validator

from hrdirectory.models.employee import EnrichedEmployeeRecord


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CacheEntry(BaseModel):
    record: EnrichedEmployeeRecord
    fetched_at: datetime

    @field_validator("fetched_at")
    @classmethod
    def _utc_fetched_at(cls, value: datetime) -> datetime:
        return _as_utc(value)


class CacheSnapshot(BaseModel):
    """Serializable image of the point cache. Timestamps are written as ISO-8601."""

    entries: dict[str, CacheEntry] = {}
    last_full_refresh: datetime

    @field_validator("last_full_refresh")
    @classmethod
    def _utc_last_full_refresh(cls, value: datetime) -> datetime:
        return _as_utc(value)


class CacheStats(BaseModel):
    entries: int
    named_lists: list[str]
    full_load_completed: bool
    last_full_refresh: datetime
    full_refresh_due: bool
    policy: str
