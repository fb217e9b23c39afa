from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional

from toggles.core.codec.formats import format_from_dict
from toggles.core.codec.values import ValueCodec, ValueFormatError, codec_for_format
from toggles.core.errors import SchemaMismatch
from toggles.core.persistence.base import Persistence
from toggles.core.store.definition import ToggleDefinition
from toggles.core.store.manager import ToggleStore, check_default

_MISSING = object()
# attributes ToggleStore.__init__ assigns on the instance
_RESERVED = {"persistence", "logger", "audit_logger", "backend_timeout_seconds", "max_history"}


class Toggle:
    """
    Declares one toggle on a `ToggleSet` subclass:

        class Flags(ToggleSet):
            dark_mode = Toggle(BoolValue(), default=False, description="New theme")

    Reading `flags.dark_mode` returns the live value from the store.
    """

    def __init__(self, codec: ValueCodec, default: Any = _MISSING, *, description: str = "", key: Optional[str] = None):
        if default is _MISSING:
            raise SchemaMismatch("Toggle needs a default value.")
        self.codec = codec
        self.default = default
        self.description = description
        self.key = key
        self.name: Optional[str] = None

    def __set_name__(self, owner, name: str) -> None:
        self.name = name
        if self.key is None:
            self.key = name

    def definition(self) -> ToggleDefinition:
        return ToggleDefinition(key=str(self.key), codec=self.codec, default=self.default, description=self.description)

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return instance.read(self.key)

    def __set__(self, instance, value) -> None:
        raise SchemaMismatch(f"Toggle {self.key!r} is read-only; use update().", key=self.key)


class ToggleSet(ToggleStore):
    """ToggleStore whose definitions come from `Toggle` class attributes."""

    _toggle_definitions: List[ToggleDefinition] = []

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        defs: Dict[str, ToggleDefinition] = {d.key: d for d in cls._toggle_definitions}
        local = set()
        for name, attr in vars(cls).items():
            if not isinstance(attr, Toggle):
                continue
            if hasattr(ToggleStore, name) or name in _RESERVED or name.startswith("_"):
                raise SchemaMismatch(f"Toggle attribute {name!r} clashes with a store attribute.", key=attr.key)
            d = attr.definition()
            if d.key in local:
                raise SchemaMismatch(f"Toggle {d.key!r} is declared twice on {cls.__name__}.", key=d.key)
            local.add(d.key)
            check_default(d)
            defs[d.key] = d
        cls._toggle_definitions = list(defs.values())

    def __init__(self, persistence: Optional[Persistence] = None, **kwargs: Any):
        if not self._toggle_definitions:
            raise SchemaMismatch(f"{type(self).__name__} declares no toggles.")
        super().__init__(self._toggle_definitions, persistence, **kwargs)


def definitions_from_config(entries: Iterable[Any]) -> List[ToggleDefinition]:
    """
    Build definitions from config entries carrying `key`, `format` (a format
    descriptor dict), `default` (JSON) and optional `description`.
    """
    out: List[ToggleDefinition] = []
    seen = set()
    for e in entries:
        key = _get(e, "key")
        if not key:
            raise SchemaMismatch("Toggle entry without a key.")
        if key in seen:
            raise SchemaMismatch(f"Toggle {key!r} is declared twice.", key=key)
        seen.add(key)
        try:
            codec = codec_for_format(format_from_dict(_get(e, "format") or {}))
        except (KeyError, TypeError, ValueError, re.error) as ex:
            raise SchemaMismatch(f"Toggle {key!r} has an invalid format: {ex}", key=key) from ex
        try:
            default = codec.from_json(_get(e, "default"))
        except ValueFormatError as ex:
            raise SchemaMismatch(f"Default for toggle {key!r} does not fit its format: {ex}", key=key) from ex
        out.append(ToggleDefinition(key=key, codec=codec, default=default, description=_get(e, "description") or ""))
    return out


def _get(entry: Any, name: str) -> Any:
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)
