from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ReloadStatus(str, Enum):
    NEVER = "never"
    NO_DATA = "no_data"
    DATA = "data"
    FAILED = "failed"


@dataclass(frozen=True)
class LastReload:
    """
    Outcome of the most recent reload attempt.

    `reload_date` is the last successful reload and survives later failures,
    so operators can tell how old the in-memory data is.
    """

    status: ReloadStatus = ReloadStatus.NEVER
    reload_date: Optional[datetime] = None
    version: Optional[int] = None
    version_date: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_stale(self) -> bool:
        return self.status in {ReloadStatus.NEVER, ReloadStatus.FAILED}

    def no_data(self, now: datetime) -> "LastReload":
        return LastReload(status=ReloadStatus.NO_DATA, reload_date=now, version=0)

    def data(self, now: datetime, *, version: int, version_date: datetime) -> "LastReload":
        return LastReload(status=ReloadStatus.DATA, reload_date=now, version=version, version_date=version_date)

    def failed(self, now: datetime, error: str) -> "LastReload":
        return replace(self, status=ReloadStatus.FAILED, failed_at=now, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "reload_date": self.reload_date.isoformat() if self.reload_date else None,
            "version": self.version,
            "version_date": self.version_date.isoformat() if self.version_date else None,
            "failed_at": self.failed_at.isoformat() if self.failed_at else None,
            "error": self.error,
            "stale": self.is_stale,
        }
