"""Runtime support for code generated by serdegen."""

from . import bincode, formats, lcs
from .serialization import (
    DeserializationError,
    Deserializer,
    DuplicateKey,
    Enum,
    IntegerOverflow,
    InvalidTag,
    InvalidUtf8,
    MapNotSorted,
    MaxDepthExceeded,
    NonMinimalEncoding,
    SerializationError,
    Serializer,
    Struct,
    TrailingBytes,
    UnexpectedEndOfInput,
    UnknownVariant,
    serde_field,
)

__all__ = [
    "DeserializationError",
    "Deserializer",
    "DuplicateKey",
    "Enum",
    "IntegerOverflow",
    "InvalidTag",
    "InvalidUtf8",
    "MapNotSorted",
    "MaxDepthExceeded",
    "NonMinimalEncoding",
    "SerializationError",
    "Serializer",
    "Struct",
    "TrailingBytes",
    "UnexpectedEndOfInput",
    "UnknownVariant",
    "bincode",
    "formats",
    "lcs",
    "serde_field",
]
