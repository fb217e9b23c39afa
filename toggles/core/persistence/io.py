from __future__ import annotations

import json
import os
import shutil
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def backup_file(path: str, backups_dir: str, *, max_backups: int = 10) -> Optional[str]:
    """
    Copy `path` to `<backups_dir>/<name>.<UTC stamp>.bak` and drop all but the
    newest `max_backups` copies. Returns the new copy, or None if `path` does
    not exist yet.
    """
    if not os.path.isfile(path):
        return None
    os.makedirs(backups_dir, exist_ok=True)
    name = os.path.basename(path)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    out = os.path.join(backups_dir, f"{name}.{stamp}.bak")
    shutil.copy2(path, out)

    # stamps sort chronologically, so the oldest copies come first
    copies = sorted(f for f in os.listdir(backups_dir) if f.startswith(f"{name}.") and f.endswith(".bak"))
    for f in copies[: max(0, len(copies) - max_backups)]:
        os.remove(os.path.join(backups_dir, f))
    return out


def atomic_write_bytes(path: str, data: bytes, *, backups_dir: Optional[str] = None, max_backups: int = 10) -> None:
    """
    Write to a temp file in the destination directory, fsync, then rename over
    `path`. A crash before the rename leaves the previous file untouched.
    """
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    if backups_dir:
        backup_file(path, backups_dir, max_backups=max_backups)
    fd, tmp = tempfile.mkstemp(prefix=".tmp_", suffix=".json", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    finally:
        try:
            if os.path.exists(tmp):
                os.remove(tmp)
        except OSError:
            pass


def atomic_write_json(path: str, data: Dict[str, Any], *, backups_dir: Optional[str] = None, max_backups: int = 10) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False, sort_keys=True) + "\n"
    atomic_write_bytes(path, text.encode("utf-8"), backups_dir=backups_dir, max_backups=max_backups)
