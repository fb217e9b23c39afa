from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from toggles.core.codec.values import ValueCodec
from toggles.core.persistence.models import HistoryEntry


@dataclass(frozen=True)
class ToggleDefinition:
    key: str
    codec: ValueCodec
    default: Any
    description: str = ""

    def default_json(self) -> Any:
        return self.codec.as_json(self.default)


@dataclass(frozen=True)
class ToggleState:
    """Current value of one toggle as published to readers."""

    value: Any
    raw: Any
    modified_at: Optional[datetime] = None
    modified_by: Optional[str] = None
    history: Tuple[HistoryEntry, ...] = field(default_factory=tuple)

    @classmethod
    def from_default(cls, definition: ToggleDefinition) -> "ToggleState":
        return cls(value=copy.deepcopy(definition.default), raw=definition.default_json())


class ToggleView(BaseModel):
    """Read-only description of one toggle for admin surfaces."""

    model_config = ConfigDict(extra="forbid")
    key: str
    description: str
    format: Dict[str, Any]
    value: Any
    value_overview: str
    default: Any
    modified_at: Optional[datetime] = None
    modified_by: Optional[str] = None
    history: List[HistoryEntry] = Field(default_factory=list)
