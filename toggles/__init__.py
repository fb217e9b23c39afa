"""
Typed runtime toggles kept in sync with a persistence backend.
"""

from toggles.core.codec import (
    BoolValue,
    EnumValue,
    FloatValue,
    IntValue,
    JsonValue,
    ListValue,
    MapValue,
    OptionalValue,
    SetValue,
    StrValue,
    ValueCodec,
)
from toggles.core.errors import (
    BackendError,
    BackendTimeoutError,
    DecodeError,
    SchemaMismatch,
    ToggleError,
    UnknownKeyError,
    ValidationError,
)
from toggles.core.persistence import LocalFilePersistence, NoPersistence, Persistence
from toggles.core.store import Toggle, ToggleDefinition, ToggleSet, ToggleStore
from toggles.core.sync import BackgroundSync

__version__ = "0.1.0"

__all__ = [
    "ToggleStore",
    "ToggleSet",
    "Toggle",
    "ToggleDefinition",
    "BackgroundSync",
    "Persistence",
    "NoPersistence",
    "LocalFilePersistence",
    "ValueCodec",
    "BoolValue",
    "IntValue",
    "FloatValue",
    "StrValue",
    "EnumValue",
    "OptionalValue",
    "ListValue",
    "SetValue",
    "MapValue",
    "JsonValue",
    "ToggleError",
    "DecodeError",
    "ValidationError",
    "BackendError",
    "BackendTimeoutError",
    "UnknownKeyError",
    "SchemaMismatch",
]
