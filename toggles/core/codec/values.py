from __future__ import annotations

import copy
import json
import math
import re
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type

from toggles.core.codec.formats import (
    ANY_STRING,
    FormatKind,
    SerializedFormat,
    StringFormat,
    StringKind,
)

OVERVIEW_MAX_ITEMS = 3


class ValueFormatError(ValueError):
    """
    Raised by a codec when a JSON value does not fit its format.
    `constraint` names what was violated (type, pattern, choices, range, ...).
    """

    def __init__(self, message: str, *, constraint: str = "type"):
        super().__init__(message)
        self.constraint = constraint


def json_kind(raw: Any) -> str:
    if raw is None:
        return "Null"
    if isinstance(raw, bool):
        return "Bool"
    if isinstance(raw, (int, float)):
        return "Number"
    if isinstance(raw, str):
        return "String"
    if isinstance(raw, list):
        return "Array"
    if isinstance(raw, dict):
        return "Object"
    return type(raw).__name__


def _wrong_kind(expected: str, raw: Any) -> ValueFormatError:
    return ValueFormatError(f"wrong JSON kind, got {json_kind(raw)} and was expecting {expected}")


def iter_overview(items: Iterable[str]) -> str:
    parts: List[str] = []
    extra = 0
    for i, item in enumerate(items):
        if i < OVERVIEW_MAX_ITEMS:
            parts.append(item)
        else:
            extra += 1
    text = ", ".join(parts)
    if extra:
        text += f", ... {extra} more"
    return text


class ValueCodec:
    """
    Contract for a toggle value type.

    Subclasses map a Python value to a JSON-compatible value and back, and
    describe the legal values with a `SerializedFormat`. Embedders may add
    their own codecs; anything without a richer format should describe itself
    as `FormatKind.JSON` so editors fall back to raw JSON.
    """

    def as_json(self, value: Any) -> Any:
        raise NotImplementedError

    def from_json(self, raw: Any) -> Any:
        raise NotImplementedError

    def serialized_format(self) -> SerializedFormat:
        return SerializedFormat(kind=FormatKind.JSON, tag=type(self).__name__)

    def validate(self, raw: Any) -> None:
        self.from_json(raw)

    def overview(self, value: Any) -> str:
        return str(value)


class BoolValue(ValueCodec):
    def as_json(self, value: Any) -> Any:
        if not isinstance(value, bool):
            raise _wrong_kind("Bool", value)
        return value

    def from_json(self, raw: Any) -> bool:
        if not isinstance(raw, bool):
            raise _wrong_kind("Bool", raw)
        return raw

    def serialized_format(self) -> SerializedFormat:
        return SerializedFormat(kind=FormatKind.BOOL, tag="bool")

    def overview(self, value: Any) -> str:
        return "true" if value else "false"


class IntValue(ValueCodec):
    def __init__(self, *, minimum: Optional[int] = None, maximum: Optional[int] = None):
        self.minimum = minimum
        self.maximum = maximum

    def as_json(self, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, int):
            raise _wrong_kind("Number::int", value)
        return int(value)

    def from_json(self, raw: Any) -> int:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise _wrong_kind("Number::int", raw)
        if self.minimum is not None and raw < self.minimum:
            raise ValueFormatError(f"{raw} is below the minimum of {self.minimum}", constraint="range")
        if self.maximum is not None and raw > self.maximum:
            raise ValueFormatError(f"{raw} is above the maximum of {self.maximum}", constraint="range")
        return int(raw)

    def serialized_format(self) -> SerializedFormat:
        return SerializedFormat(kind=FormatKind.INTEGER, tag="int")


def _as_float(raw: Any) -> float:
    try:
        out = float(raw)
    except OverflowError as e:
        raise ValueFormatError("number is too large for a float", constraint="finite") from e
    if not math.isfinite(out):
        raise ValueFormatError(f"{raw} is not a finite number", constraint="finite")
    return out


class FloatValue(ValueCodec):
    def as_json(self, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _wrong_kind("Number::float", value)
        return _as_float(value)

    def from_json(self, raw: Any) -> float:
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise _wrong_kind("Number::float", raw)
        return _as_float(raw)

    def serialized_format(self) -> SerializedFormat:
        return SerializedFormat(kind=FormatKind.FLOAT, tag="float")


class StrValue(ValueCodec):
    def __init__(self, *, pattern: Optional[str] = None, choices: Optional[Sequence[str]] = None, tag: str = "str"):
        if pattern is not None and choices is not None:
            raise ValueError("a string format takes either a pattern or choices, not both")
        self.pattern = pattern
        self.choices = tuple(choices) if choices is not None else None
        self.tag = tag
        self._regex = re.compile(pattern) if pattern is not None else None

    def string_format(self) -> StringFormat:
        if self.pattern is not None:
            return StringFormat(kind=StringKind.PATTERN, pattern=self.pattern)
        if self.choices is not None:
            return StringFormat(kind=StringKind.CHOICES, choices=self.choices)
        return ANY_STRING

    def as_json(self, value: Any) -> Any:
        if not isinstance(value, str):
            raise _wrong_kind("String", value)
        return value

    def from_json(self, raw: Any) -> str:
        if not isinstance(raw, str):
            raise _wrong_kind("String", raw)
        if self._regex is not None and self._regex.fullmatch(raw) is None:
            raise ValueFormatError(f"{raw!r} does not match the pattern {self.pattern}", constraint="pattern")
        if self.choices is not None and raw not in self.choices:
            raise ValueFormatError(f"{raw!r} is not one of: {', '.join(self.choices)}", constraint="choices")
        return raw

    def serialized_format(self) -> SerializedFormat:
        return SerializedFormat(kind=FormatKind.STRING, tag=self.tag, string=self.string_format())


class EnumValue(ValueCodec):
    """Python `Enum` members stored by name, described as a choices string."""

    def __init__(self, enum_cls: Type[Enum]):
        self.enum_cls = enum_cls
        self.choices = tuple(m.name for m in enum_cls)

    def string_format(self) -> StringFormat:
        return StringFormat(kind=StringKind.CHOICES, choices=self.choices)

    def as_json(self, value: Any) -> Any:
        if not isinstance(value, self.enum_cls):
            raise _wrong_kind(self.enum_cls.__name__, value)
        return value.name

    def from_json(self, raw: Any) -> Enum:
        if not isinstance(raw, str):
            raise _wrong_kind("String", raw)
        if raw not in self.choices:
            raise ValueFormatError(f"{raw!r} is not one of: {', '.join(self.choices)}", constraint="choices")
        return self.enum_cls[raw]

    def serialized_format(self) -> SerializedFormat:
        return SerializedFormat(kind=FormatKind.STRING, tag=self.enum_cls.__name__, string=self.string_format())

    def overview(self, value: Any) -> str:
        return value.name if isinstance(value, self.enum_cls) else str(value)


class OptionalValue(ValueCodec):
    def __init__(self, inner: ValueCodec):
        self.inner = inner

    def as_json(self, value: Any) -> Any:
        return None if value is None else self.inner.as_json(value)

    def from_json(self, raw: Any) -> Any:
        return None if raw is None else self.inner.from_json(raw)

    def serialized_format(self) -> SerializedFormat:
        f = self.inner.serialized_format()
        return SerializedFormat(kind=FormatKind.OPTIONAL, tag=f"Optional<{f.tag}>", inner=f)

    def overview(self, value: Any) -> str:
        return "None" if value is None else self.inner.overview(value)


class ListValue(ValueCodec):
    def __init__(self, inner: ValueCodec):
        self.inner = inner

    def as_json(self, value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            raise _wrong_kind("Array", value)
        return [self.inner.as_json(item) for item in value]

    def from_json(self, raw: Any) -> List[Any]:
        if not isinstance(raw, list):
            raise _wrong_kind("Array", raw)
        out = []
        for i, item in enumerate(raw):
            try:
                out.append(self.inner.from_json(item))
            except ValueFormatError as e:
                raise ValueFormatError(f"item {i}: {e}", constraint=e.constraint) from e
        return out

    def serialized_format(self) -> SerializedFormat:
        f = self.inner.serialized_format()
        return SerializedFormat(kind=FormatKind.LIST, tag=f"List<{f.tag}>", inner=f)

    def overview(self, value: Any) -> str:
        return f"[{iter_overview(self.inner.overview(v) for v in value)}]"


def _canonical(raw: Any) -> str:
    return json.dumps(raw, sort_keys=True, ensure_ascii=False)


class SetValue(ValueCodec):
    """
    Unordered collection without duplicates. Decodes to a `frozenset`; always
    serializes items in canonical (sorted JSON text) order.
    """

    def __init__(self, inner: ValueCodec):
        self.inner = inner

    def as_json(self, value: Any) -> Any:
        if not isinstance(value, (set, frozenset, list, tuple)):
            raise _wrong_kind("Array", value)
        encoded: Dict[str, Any] = {}
        for item in value:
            raw = self.inner.as_json(item)
            encoded[_canonical(raw)] = raw
        return [encoded[k] for k in sorted(encoded)]

    def from_json(self, raw: Any) -> frozenset:
        if not isinstance(raw, list):
            raise _wrong_kind("Array", raw)
        out = set()
        for i, item in enumerate(raw):
            try:
                out.add(self.inner.from_json(item))
            except ValueFormatError as e:
                raise ValueFormatError(f"item {i}: {e}", constraint=e.constraint) from e
            except TypeError as e:
                raise ValueFormatError(f"item {i} is not hashable: {e}") from e
        return frozenset(out)

    def serialized_format(self) -> SerializedFormat:
        f = self.inner.serialized_format()
        return SerializedFormat(kind=FormatKind.SET, tag=f"Set<{f.tag}>", inner=f)

    def overview(self, value: Any) -> str:
        return f"[{iter_overview(sorted(self.inner.overview(v) for v in value))}]"


class MapValue(ValueCodec):
    def __init__(self, inner: ValueCodec, *, key: Optional[ValueCodec] = None):
        self.inner = inner
        self.key = key or StrValue()
        if self.key.serialized_format().kind != FormatKind.STRING:
            raise ValueError("map keys must use a string codec")

    def as_json(self, value: Any) -> Any:
        if not isinstance(value, dict):
            raise _wrong_kind("Object", value)
        return {self.key.as_json(k): self.inner.as_json(v) for k, v in value.items()}

    def from_json(self, raw: Any) -> Dict[Any, Any]:
        if not isinstance(raw, dict):
            raise _wrong_kind("Object", raw)
        out = {}
        for k, v in raw.items():
            try:
                out[self.key.from_json(k)] = self.inner.from_json(v)
            except ValueFormatError as e:
                raise ValueFormatError(f"entry {k!r}: {e}", constraint=e.constraint) from e
        return out

    def serialized_format(self) -> SerializedFormat:
        fk = self.key.serialized_format()
        fv = self.inner.serialized_format()
        return SerializedFormat(kind=FormatKind.MAP, tag=f"Map<{fk.tag}, {fv.tag}>", string=fk.string, inner=fv)

    def overview(self, value: Any) -> str:
        # group keys sharing the same value
        keys_by_value: Dict[str, List[str]] = {}
        for k, v in value.items():
            keys_by_value.setdefault(self.inner.overview(v), []).append(self.key.overview(k))
        groups = [f"{iter_overview(sorted(keys))}: {v}" for v, keys in sorted(keys_by_value.items())]
        return "{" + iter_overview(groups) + "}"


class JsonValue(ValueCodec):
    """Opaque structured value; editors show it as raw JSON."""

    def __init__(self, tag: str = "json"):
        self.tag = tag

    def as_json(self, value: Any) -> Any:
        try:
            return json.loads(json.dumps(value))
        except (TypeError, ValueError) as e:
            raise ValueFormatError(f"value is not JSON serializable: {e}") from e

    def from_json(self, raw: Any) -> Any:
        try:
            json.dumps(raw, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise ValueFormatError(f"value is not valid JSON: {e}") from e
        return copy.deepcopy(raw)

    def serialized_format(self) -> SerializedFormat:
        return SerializedFormat(kind=FormatKind.JSON, tag=self.tag)

    def overview(self, value: Any) -> str:
        text = json.dumps(value, sort_keys=True)
        return text if len(text) <= 60 else text[:57] + "..."


def codec_for_format(fmt: SerializedFormat) -> ValueCodec:
    """Build the built-in codec described by `fmt`."""
    if fmt.kind == FormatKind.BOOL:
        return BoolValue()
    if fmt.kind == FormatKind.INTEGER:
        return IntValue()
    if fmt.kind == FormatKind.FLOAT:
        return FloatValue()
    if fmt.kind == FormatKind.STRING:
        return _string_codec(fmt.string or ANY_STRING)
    if fmt.kind == FormatKind.JSON:
        return JsonValue()
    if fmt.inner is None:
        raise ValueError(f"{fmt.kind.value} format requires an inner format")
    inner = codec_for_format(fmt.inner)
    if fmt.kind == FormatKind.OPTIONAL:
        return OptionalValue(inner)
    if fmt.kind == FormatKind.LIST:
        return ListValue(inner)
    if fmt.kind == FormatKind.SET:
        return SetValue(inner)
    return MapValue(inner, key=_string_codec(fmt.string or ANY_STRING))


def _string_codec(sf: StringFormat) -> StrValue:
    if sf.kind == StringKind.PATTERN:
        return StrValue(pattern=sf.pattern)
    if sf.kind == StringKind.CHOICES:
        return StrValue(choices=sf.choices)
    return StrValue()
