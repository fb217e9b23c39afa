from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class FormatKind(str, Enum):
    BOOL = "bool"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    OPTIONAL = "optional"
    LIST = "list"
    SET = "set"
    MAP = "map"
    JSON = "json"


class StringKind(str, Enum):
    ANY = "any"
    PATTERN = "pattern"
    CHOICES = "choices"


@dataclass(frozen=True)
class StringFormat:
    kind: StringKind = StringKind.ANY
    pattern: Optional[str] = None
    choices: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind.value}
        if self.kind == StringKind.PATTERN:
            out["pattern"] = self.pattern
        elif self.kind == StringKind.CHOICES:
            out["choices"] = list(self.choices)
        return out


ANY_STRING = StringFormat()


@dataclass(frozen=True)
class SerializedFormat:
    """
    Machine-readable description of a toggle value.

    `string` is set for STRING (and describes map keys for MAP), `inner` for
    OPTIONAL/LIST/SET/MAP. `tag` is a human readable type name such as
    "List<int>".
    """

    kind: FormatKind
    tag: str
    string: Optional[StringFormat] = None
    inner: Optional["SerializedFormat"] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind.value, "tag": self.tag}
        if self.kind == FormatKind.STRING:
            out["string"] = (self.string or ANY_STRING).to_dict()
        elif self.kind == FormatKind.MAP:
            out["key"] = (self.string or ANY_STRING).to_dict()
            out["inner"] = self.inner.to_dict() if self.inner else None
        elif self.kind in {FormatKind.OPTIONAL, FormatKind.LIST, FormatKind.SET}:
            out["inner"] = self.inner.to_dict() if self.inner else None
        return out


def string_format_from_dict(raw: Any) -> StringFormat:
    if raw is None:
        return ANY_STRING
    if not isinstance(raw, dict):
        raise ValueError("string format must be an object")
    kind = StringKind(str(raw.get("kind") or "any"))
    if kind == StringKind.PATTERN:
        pattern = raw.get("pattern")
        if not isinstance(pattern, str) or not pattern:
            raise ValueError("pattern string format requires a non-empty 'pattern'")
        return StringFormat(kind=kind, pattern=pattern)
    if kind == StringKind.CHOICES:
        choices = raw.get("choices")
        if not isinstance(choices, list) or not choices or not all(isinstance(c, str) for c in choices):
            raise ValueError("choices string format requires a non-empty list of strings")
        return StringFormat(kind=kind, choices=tuple(choices))
    return ANY_STRING


def format_from_dict(raw: Any) -> SerializedFormat:
    """Parse the output of `SerializedFormat.to_dict()` (the `tag` is optional)."""
    if not isinstance(raw, dict):
        raise ValueError("format must be an object")
    kind = FormatKind(str(raw.get("kind")))
    tag = str(raw.get("tag") or "")
    if kind == FormatKind.STRING:
        return SerializedFormat(kind=kind, tag=tag or "str", string=string_format_from_dict(raw.get("string")))
    if kind in {FormatKind.OPTIONAL, FormatKind.LIST, FormatKind.SET, FormatKind.MAP}:
        if raw.get("inner") is None:
            raise ValueError(f"{kind.value} format requires 'inner'")
        inner = format_from_dict(raw.get("inner"))
        key_fmt = string_format_from_dict(raw.get("key")) if kind == FormatKind.MAP else None
        return SerializedFormat(kind=kind, tag=tag or f"{kind.value.capitalize()}<{inner.tag}>", string=key_fmt, inner=inner)
    return SerializedFormat(kind=kind, tag=tag or kind.value)
