from __future__ import annotations

import os
from typing import Optional

from toggles.core.persistence.io import atomic_write_bytes
from toggles.core.errors import BackendError
from toggles.core.persistence.base import Persistence
from toggles.core.persistence.models import Snapshot


class LocalFilePersistence(Persistence):
    """
    Snapshot kept as a JSON file on local disk.

    Saves go through a temp file and an atomic rename; the previous file is
    copied to `backups_dir` first when one is configured.
    """

    def __init__(
        self,
        directory: str,
        *,
        file_name: str = "current.json",
        backups_dir: Optional[str] = None,
        max_backups: int = 10,
    ):
        self.directory = directory
        self.file_name = file_name
        self.backups_dir = backups_dir
        self.max_backups = int(max_backups)

    @property
    def path(self) -> str:
        return os.path.join(self.directory, self.file_name)

    def load(self) -> Optional[Snapshot]:
        try:
            with open(self.path, "rb") as f:
                data = f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise BackendError(f"Unable to read {self.path}: {e}", operation="load", path=self.path) from e
        return Snapshot.from_bytes(data)

    def save(self, snapshot: Snapshot) -> None:
        try:
            atomic_write_bytes(self.path, snapshot.to_bytes(), backups_dir=self.backups_dir, max_backups=self.max_backups)
        except OSError as e:
            raise BackendError(f"Unable to write {self.path}: {e}", operation="save", path=self.path) from e

    def __repr__(self) -> str:
        return f"LocalFilePersistence({self.path!r})"
