"""Registry of named containers and its JSON interchange form."""

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from .errors import DuplicateName, UnknownReference, ValidationError
from .types import (
    ContainerFormat,
    Enum,
    Format,
    Map,
    Named,
    NewTypeStruct,
    NewTypeVariant,
    Option,
    Primitive,
    PrimitiveKind,
    Seq,
    Struct,
    StructVariant,
    Tuple,
    TupleArray,
    TupleStruct,
    TupleVariant,
    TypeName,
    UnitStruct,
    UnitVariant,
    Variant,
    VariantPayload,
    container_formats,
    references,
)

logger = logging.getLogger(__name__)


class Registry:
    """An insertion-ordered mapping from container name to its definition.

    Generators and the resolver only read from a registry. Once built it is
    treated as immutable input.
    """

    def __init__(self) -> None:
        self._containers: dict[str, ContainerFormat] = {}

    def register(self, name: str, container: ContainerFormat) -> None:
        """Register a container under a unique name."""
        if name in self._containers:
            raise DuplicateName(name, "registry")
        self._containers[name] = container

    def validate(self) -> None:
        """Check that every TypeName resolves to a registered container."""
        for name, container in self._containers.items():
            for path, fmt in container_formats(container):
                for ref, _inline in references(fmt):
                    if ref not in self._containers:
                        raise UnknownReference(ref, name, path)
        logger.debug("validated registry with %d containers", len(self._containers))

    def __getitem__(self, name: str) -> ContainerFormat:
        return self._containers[name]

    def __contains__(self, name: object) -> bool:
        return name in self._containers

    def __iter__(self) -> Iterator[str]:
        return iter(self._containers)

    def __len__(self) -> int:
        return len(self._containers)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Registry):
            return NotImplemented
        return list(self.items()) == list(other.items())

    def items(self) -> Iterator[tuple[str, ContainerFormat]]:
        return iter(self._containers.items())

    def names(self) -> list[str]:
        return list(self._containers)

    # Interchange

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Registry":
        """Build and validate a registry from its interchange document."""
        if not isinstance(data, dict):
            raise ValidationError("registry document must be an object")
        registry = cls()
        for name, value in data.items():
            registry.register(name, container_from_json(value, name))
        registry.validate()
        return registry

    def to_dict(self) -> dict[str, Any]:
        return {name: container_to_json(container) for name, container in self.items()}

    @classmethod
    def loads(cls, text: str) -> "Registry":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"invalid registry document: {e}") from e
        return cls.from_dict(data)

    def dumps(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def load(cls, path: str | Path) -> "Registry":
        with open(path, encoding="utf-8") as f:
            return cls.loads(f.read())


def _single_key(value: Any, path: str) -> tuple[str, Any]:
    if not isinstance(value, dict) or len(value) != 1:
        raise ValidationError(f"{path}: expected an object with a single tag, got {value!r}")
    return next(iter(value.items()))


def _named_list(value: Any, path: str) -> tuple[Named, ...]:
    if not isinstance(value, list):
        raise ValidationError(f"{path}: expected a list of fields")
    fields = []
    for i, item in enumerate(value):
        name, fmt = _single_key(item, f"{path}[{i}]")
        fields.append(Named(name, format_from_json(fmt, f"{path}.{name}")))
    return tuple(fields)


def _format_list(value: Any, path: str) -> tuple[Format, ...]:
    if not isinstance(value, list):
        raise ValidationError(f"{path}: expected a list of formats")
    return tuple(format_from_json(item, f"{path}[{i}]") for i, item in enumerate(value))


def format_from_json(value: Any, path: str = "$") -> Format:
    """Decode a Format from its tagged interchange representation."""
    if isinstance(value, str):
        try:
            return Primitive(PrimitiveKind(value))
        except ValueError:
            raise ValidationError(f"{path}: unknown primitive {value!r}") from None

    tag, content = _single_key(value, path)
    if tag == "TYPENAME":
        if not isinstance(content, str):
            raise ValidationError(f"{path}: TYPENAME expects a string")
        return TypeName(content)
    if tag == "OPTION":
        return Option(format_from_json(content, f"{path}.OPTION"))
    if tag == "SEQ":
        return Seq(format_from_json(content, f"{path}.SEQ"))
    if tag == "MAP":
        if not isinstance(content, dict) or set(content) != {"KEY", "VALUE"}:
            raise ValidationError(f"{path}: MAP expects KEY and VALUE")
        return Map(
            format_from_json(content["KEY"], f"{path}.KEY"),
            format_from_json(content["VALUE"], f"{path}.VALUE"),
        )
    if tag == "TUPLE":
        return Tuple(_format_list(content, f"{path}.TUPLE"))
    if tag == "TUPLEARRAY":
        if not isinstance(content, dict) or set(content) != {"CONTENT", "SIZE"}:
            raise ValidationError(f"{path}: TUPLEARRAY expects CONTENT and SIZE")
        if not isinstance(content["SIZE"], int):
            raise ValidationError(f"{path}: TUPLEARRAY SIZE must be an integer")
        return TupleArray(format_from_json(content["CONTENT"], f"{path}.CONTENT"), content["SIZE"])
    raise ValidationError(f"{path}: unknown format tag {tag!r}")


def format_to_json(fmt: Format) -> Any:
    if isinstance(fmt, Primitive):
        return fmt.kind.value
    if isinstance(fmt, TypeName):
        return {"TYPENAME": fmt.name}
    if isinstance(fmt, Option):
        return {"OPTION": format_to_json(fmt.format)}
    if isinstance(fmt, Seq):
        return {"SEQ": format_to_json(fmt.format)}
    if isinstance(fmt, Map):
        return {"MAP": {"KEY": format_to_json(fmt.key), "VALUE": format_to_json(fmt.value)}}
    if isinstance(fmt, Tuple):
        return {"TUPLE": [format_to_json(f) for f in fmt.formats]}
    if isinstance(fmt, TupleArray):
        return {"TUPLEARRAY": {"CONTENT": format_to_json(fmt.content), "SIZE": fmt.size}}
    raise TypeError(f"not a format: {fmt!r}")


def _payload_from_json(value: Any, path: str) -> VariantPayload:
    if value == "UNIT":
        return UnitVariant()
    tag, content = _single_key(value, path)
    if tag == "NEWTYPE":
        return NewTypeVariant(format_from_json(content, f"{path}.NEWTYPE"))
    if tag == "TUPLE":
        return TupleVariant(_format_list(content, f"{path}.TUPLE"))
    if tag == "STRUCT":
        return StructVariant(_named_list(content, f"{path}.STRUCT"))
    raise ValidationError(f"{path}: unknown variant tag {tag!r}")


def _payload_to_json(payload: VariantPayload) -> Any:
    if isinstance(payload, UnitVariant):
        return "UNIT"
    if isinstance(payload, NewTypeVariant):
        return {"NEWTYPE": format_to_json(payload.format)}
    if isinstance(payload, TupleVariant):
        return {"TUPLE": [format_to_json(f) for f in payload.formats]}
    return {"STRUCT": [{f.name: format_to_json(f.format)} for f in payload.fields]}


def container_from_json(value: Any, path: str = "$") -> ContainerFormat:
    """Decode a ContainerFormat from its tagged interchange representation."""
    if value == "UNITSTRUCT":
        return UnitStruct()
    tag, content = _single_key(value, path)
    if tag == "NEWTYPESTRUCT":
        return NewTypeStruct(format_from_json(content, f"{path}.NEWTYPESTRUCT"))
    if tag == "TUPLESTRUCT":
        return TupleStruct(_format_list(content, f"{path}.TUPLESTRUCT"))
    if tag == "STRUCT":
        return Struct(_named_list(content, f"{path}.STRUCT"))
    if tag == "ENUM":
        if not isinstance(content, dict):
            raise ValidationError(f"{path}: ENUM expects an object of variants")
        variants = []
        for index, entry in content.items():
            try:
                number = int(index)
            except ValueError:
                raise ValidationError(f"{path}: variant index {index!r} is not an integer") from None
            name, payload = _single_key(entry, f"{path}.{index}")
            variants.append(Variant(number, name, _payload_from_json(payload, f"{path}.{name}")))
        return Enum(tuple(variants))
    raise ValidationError(f"{path}: unknown container tag {tag!r}")


def container_to_json(container: ContainerFormat) -> Any:
    if isinstance(container, UnitStruct):
        return "UNITSTRUCT"
    if isinstance(container, NewTypeStruct):
        return {"NEWTYPESTRUCT": format_to_json(container.format)}
    if isinstance(container, TupleStruct):
        return {"TUPLESTRUCT": [format_to_json(f) for f in container.formats]}
    if isinstance(container, Struct):
        return {"STRUCT": [{f.name: format_to_json(f.format)} for f in container.fields]}
    return {
        "ENUM": {
            str(v.index): {v.name: _payload_to_json(v.payload)} for v in container.variants
        }
    }
