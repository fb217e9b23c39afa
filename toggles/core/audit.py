from __future__ import annotations

import json
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ToggleAuditLogger:
    """
    Append-only JSONL record of operator changes.
    """

    path: str = os.path.join("logs", "toggles_audit.jsonl")
    _lock: threading.Lock = threading.Lock()

    def log(
        self,
        *,
        event: str,
        key: str,
        modified_by: Optional[str],
        version: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        payload = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "event": event,
            "key": key,
            "modified_by": modified_by,
            "version": version,
            "details": details or {},
        }
        line = json.dumps(payload, ensure_ascii=False, default=str)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
