"""
Persistence backends for toggle snapshots.

`S3Persistence` lives in `toggles.core.persistence.s3` and is imported from
there so that boto3 is only loaded by processes that use it.
"""

from toggles.core.persistence.base import NoPersistence, Persistence, call_with_timeout
from toggles.core.persistence.disk import LocalFilePersistence
from toggles.core.persistence.models import HistoryEntry, Snapshot, SnapshotEntry

__all__ = [
    "Persistence",
    "NoPersistence",
    "LocalFilePersistence",
    "call_with_timeout",
    "Snapshot",
    "SnapshotEntry",
    "HistoryEntry",
]
