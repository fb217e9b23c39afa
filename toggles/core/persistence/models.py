from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from toggles.core.errors import DecodeError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # older writers may have stored naive timestamps; they were always UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class HistoryEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")
    modified_at: datetime
    modified_by: Optional[str] = None
    value: Any = None
    value_overview: str = ""

    @field_validator("modified_at")
    @classmethod
    def as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class SnapshotEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")
    value: Any = None
    modified_at: Optional[datetime] = None
    modified_by: Optional[str] = None
    history: List[HistoryEntry] = Field(default_factory=list)

    @field_validator("modified_at")
    @classmethod
    def as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class Snapshot(BaseModel):
    """
    The persisted document: every modified toggle's current value plus its
    history, stamped with a version and the time of the write.
    """

    model_config = ConfigDict(extra="ignore")
    version: int = Field(default=0, ge=0)
    date: datetime = Field(default_factory=utcnow)
    toggles: Dict[str, SnapshotEntry] = Field(default_factory=dict)

    @field_validator("date")
    @classmethod
    def as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_bytes(self) -> bytes:
        text = json.dumps(self.to_dict(), indent=2, ensure_ascii=False, sort_keys=True)
        return (text + "\n").encode("utf-8")

    @classmethod
    def from_dict(cls, data: Any) -> "Snapshot":
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise DecodeError(f"Snapshot has an invalid structure: {e}") from e

    @classmethod
    def from_bytes(cls, data: bytes) -> "Snapshot":
        try:
            obj = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError(f"Snapshot is not valid JSON: {e}") from e
        if not isinstance(obj, dict):
            raise DecodeError("Snapshot must be a JSON object.")
        return cls.from_dict(obj)
