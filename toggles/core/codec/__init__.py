from toggles.core.codec.formats import (
    FormatKind,
    SerializedFormat,
    StringFormat,
    StringKind,
    format_from_dict,
)
from toggles.core.codec.values import (
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
    ValueFormatError,
    codec_for_format,
)

__all__ = [
    "FormatKind",
    "SerializedFormat",
    "StringFormat",
    "StringKind",
    "format_from_dict",
    "ValueCodec",
    "ValueFormatError",
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
    "codec_for_format",
]
