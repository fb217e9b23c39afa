from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class UpdateRequest(BaseModel):
    value: Any
    modified_by: Optional[str] = Field(default=None, max_length=256)


class ToggleListResponse(BaseModel):
    toggles: List[Dict[str, Any]]
    last_reload: Dict[str, Any]
    stale: bool
    warning: Optional[str] = None
    version: Optional[int] = None


class ToggleResponse(BaseModel):
    toggle: Dict[str, Any]
    stale: bool
    warning: Optional[str] = None


class ReloadResponse(BaseModel):
    last_reload: Dict[str, Any]
    version: Optional[int] = None
