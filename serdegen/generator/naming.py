"""Identifier sanitization and collision tracking for one generation run."""

import keyword
import re
from dataclasses import dataclass, field

from .errors import NameCollision

# "_" is a soft keyword but a legal name
PYTHON_KEYWORDS = (
    frozenset(keyword.kwlist) | frozenset(keyword.softkwlist) | {"self", "cls"}
) - {"_"}

CPP_KEYWORDS = frozenset(
    """alignas alignof and and_eq asm auto bitand bitor bool break case catch char char16_t
    char32_t class compl const constexpr const_cast continue decltype default delete do double
    dynamic_cast else enum explicit export extern false float for friend goto if inline int long
    mutable namespace new noexcept not not_eq nullptr operator or or_eq private protected public
    register reinterpret_cast return short signed sizeof static static_assert static_cast struct
    switch template this thread_local throw true try typedef typeid typename union unsigned using
    virtual void volatile wchar_t while xor xor_eq""".split()
)

RUST_KEYWORDS = frozenset(
    """as async await break const continue crate dyn else enum extern false fn for if impl in let
    loop match mod move mut pub ref return self Self static struct super trait true type union
    unsafe use where while abstract become box do final macro override priv typeof unsized virtual
    yield try _""".split()
)

_INVALID_CHARS = re.compile(r"[^0-9A-Za-z_]")


@dataclass
class NamingContext:
    """Maps registry identifiers to target identifiers.

    A fresh context is created for each generation call. Sanitized names are
    tracked per scope (the container namespace, the fields of a container,
    the variants of an enum). Keywords and names the generated code already
    uses get a trailing underscore; a second identifier landing on an
    already used name raises ``NameCollision``.
    """

    keywords: frozenset[str]
    reserved: frozenset[str] = frozenset()
    field_reserved: frozenset[str] = frozenset()
    variant_reserved: frozenset[str] = frozenset()
    _scopes: dict[str, dict[str, str]] = field(default_factory=dict)

    def sanitize(self, name: str) -> str:
        ident = _INVALID_CHARS.sub("_", name)
        if not ident or ident[0].isdigit():
            ident = "_" + ident
        if ident in self.keywords:
            ident += "_"
        return ident

    def _claim(self, scope: str, name: str, reserved: frozenset[str] = frozenset()) -> str:
        taken = self._scopes.setdefault(scope, {})
        ident = self.sanitize(name)
        if ident in reserved:
            ident += "_"
        for original, existing in taken.items():
            if existing == ident and original != name:
                raise NameCollision(original, name, ident, scope)
        taken[name] = ident
        return ident

    def container(self, name: str) -> str:
        return self._claim("<module>", name, self.reserved)

    def field(self, container: str, name: str) -> str:
        return self._claim(container, name, self.field_reserved)

    def variant(self, enum: str, name: str) -> str:
        return self._claim(f"{enum}::<variants>", name, self.variant_reserved)

    def variant_field(self, enum: str, variant: str, name: str) -> str:
        return self._claim(f"{enum}::{variant}", name, self.field_reserved)


def python_context() -> NamingContext:
    return NamingContext(
        keywords=PYTHON_KEYWORDS,
        reserved=frozenset(
            ["annotations", "len", "range", "_dataclass", "_rt", "_st", "_lcs", "_bincode"]
        ),
        field_reserved=frozenset(
            """INDEX serialize deserialize lcs_serialize lcs_deserialize bincode_serialize
            bincode_deserialize""".split()
        ),
    )


def cpp_context() -> NamingContext:
    return NamingContext(
        keywords=CPP_KEYWORDS,
        reserved=frozenset(["serde"]),
        field_reserved=frozenset(
            """serializer deserializer serialize deserialize lcsSerialize lcsDeserialize
            bincodeSerialize bincodeDeserialize""".split()
        ),
        variant_reserved=frozenset(
            """value serialize deserialize lcsSerialize lcsDeserialize bincodeSerialize
            bincodeDeserialize""".split()
        ),
    )


def rust_context() -> NamingContext:
    return NamingContext(
        keywords=RUST_KEYWORDS,
        reserved=frozenset(
            """serde serde_bytes serde_binary BTreeMap Box Vec Option Some None String Result
            Ok Err Serialize Deserialize Serializer Deserializer""".split()
        ),
    )
