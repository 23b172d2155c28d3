"""C++17 code generator for serdegen registries."""

import os
from dataclasses import dataclass, field

from jinja2 import Environment, PackageLoader

from .config import CodeGeneratorConfig, Target
from .errors import UnsupportedShapeForTarget
from .naming import NamingContext
from .registry import Registry
from .resolver import Resolution
from .types import (
    ContainerFormat,
    Enum,
    Format,
    Map,
    NewTypeStruct,
    NewTypeVariant,
    Option,
    Primitive,
    PrimitiveKind,
    Seq,
    Struct,
    StructVariant,
    Tuple,
    TupleStruct,
    TupleVariant,
    TypeName,
    children,
    container_formats,
)

env = Environment(
    loader=PackageLoader("serdegen.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("cpp.hpp.j2")

PRIMITIVE_TYPE_MAP = {
    PrimitiveKind.UNIT: "std::monostate",
    PrimitiveKind.BOOL: "bool",
    PrimitiveKind.I8: "int8_t",
    PrimitiveKind.I16: "int16_t",
    PrimitiveKind.I32: "int32_t",
    PrimitiveKind.I64: "int64_t",
    PrimitiveKind.I128: "serde::int128_t",
    PrimitiveKind.U8: "uint8_t",
    PrimitiveKind.U16: "uint16_t",
    PrimitiveKind.U32: "uint32_t",
    PrimitiveKind.U64: "uint64_t",
    PrimitiveKind.U128: "serde::uint128_t",
    PrimitiveKind.F32: "float",
    PrimitiveKind.F64: "double",
    PrimitiveKind.STR: "std::string",
    PrimitiveKind.BYTES: "std::vector<uint8_t>",
}

ENCODING_CLASSES = {
    "lcs": "Lcs",
    "bincode": "Bincode",
}


@dataclass
class CppField:
    name: str
    type: str


@dataclass
class CppStruct:
    """A struct to declare. Enums hold their variants as nested structs."""

    name: str
    qualified: str
    fields: list[CppField] = field(default_factory=list)
    variants: list["CppStruct"] = field(default_factory=list)
    comment: list[str] = field(default_factory=list)
    index: int | None = None
    is_enum: bool = False

    @property
    def is_variant(self) -> bool:
        return self.index is not None


def _check_shapes(name: str, container: ContainerFormat) -> None:
    if isinstance(container, Enum) and not container.variants:
        raise UnsupportedShapeForTarget(Target.CPP, name, "std::variant needs at least one variant")

    def has_reference(fmt: Format) -> bool:
        return isinstance(fmt, TypeName) or any(has_reference(c) for c in children(fmt))

    def check(fmt: Format) -> None:
        if isinstance(fmt, Map) and has_reference(fmt.key):
            raise UnsupportedShapeForTarget(
                Target.CPP, name, "std::map keys cannot be generated types (no operator<)"
            )
        for child in children(fmt):
            check(child)

    for _path, fmt in container_formats(container):
        check(fmt)


def render(
    registry: Registry,
    resolution: Resolution,
    config: CodeGeneratorConfig,
    naming: NamingContext,
) -> str:
    """Render a registry to a C++17 header.

    Containers are defined in resolver order after forward declarations of
    all of them. References flagged by the resolver are held through
    ``serde::value_ptr``.
    """
    names = {name: naming.container(name) for name in registry}

    def _map_type(fmt: Format, source: str, inline: bool = True) -> str:
        if isinstance(fmt, Primitive):
            return PRIMITIVE_TYPE_MAP[fmt.kind]
        if isinstance(fmt, TypeName):
            if inline and resolution.needs_indirection(source, fmt.name):
                return f"serde::value_ptr<{names[fmt.name]}>"
            return names[fmt.name]
        if isinstance(fmt, Option):
            return f"std::optional<{_map_type(fmt.format, source, inline)}>"
        if isinstance(fmt, Seq):
            return f"std::vector<{_map_type(fmt.format, source, False)}>"
        if isinstance(fmt, Map):
            key = _map_type(fmt.key, source, False)
            value = _map_type(fmt.value, source, False)
            return f"std::map<{key}, {value}>"
        if isinstance(fmt, Tuple):
            return f"std::tuple<{', '.join(_map_type(f, source, inline) for f in fmt.formats)}>"
        return f"std::array<{_map_type(fmt.content, source, inline)}, {fmt.size}>"

    def _struct(name: str, container: ContainerFormat) -> CppStruct:
        ident = names[name]
        comment = config.comments.get(name, "")
        struct = CppStruct(name=ident, qualified=ident, comment=comment.splitlines())
        if isinstance(container, NewTypeStruct):
            struct.fields.append(CppField("value", _map_type(container.format, name)))
        elif isinstance(container, TupleStruct):
            struct.fields.append(CppField("value", _map_type(Tuple(container.formats), name)))
        elif isinstance(container, Struct):
            for f in container.fields:
                struct.fields.append(
                    CppField(naming.field(name, f.name), _map_type(f.format, name))
                )
        elif isinstance(container, Enum):
            struct.is_enum = True
            for variant in container.variants:
                variant_ident = naming.variant(name, variant.name)
                nested = CppStruct(
                    name=variant_ident,
                    qualified=f"{ident}::{variant_ident}",
                    index=variant.index,
                )
                payload = variant.payload
                if isinstance(payload, NewTypeVariant):
                    nested.fields.append(CppField("value", _map_type(payload.format, name)))
                elif isinstance(payload, TupleVariant):
                    nested.fields.append(
                        CppField("value", _map_type(Tuple(payload.formats), name))
                    )
                elif isinstance(payload, StructVariant):
                    for f in payload.fields:
                        nested.fields.append(
                            CppField(
                                naming.variant_field(name, variant.name, f.name),
                                _map_type(f.format, name),
                            )
                        )
                struct.variants.append(nested)
        return struct

    structs = []
    for name in resolution.order:
        container = registry[name]
        _check_shapes(name, container)
        structs.append(_struct(name, container))

    # Variant structs are defined inside their enum but need their own
    # out-of-line definitions.
    definitions = []
    for struct in structs:
        definitions.extend(struct.variants)
        definitions.append(struct)

    return template.render(
        module_name=config.module_name,
        namespace=naming.sanitize(config.module_name),
        structs=structs,
        definitions=definitions,
        serialization=config.serialization,
        encodings=[(enc.value, ENCODING_CLASSES[enc.value]) for enc in config.encodings],
    )


def runtime() -> dict[str, str]:
    """Return the C++ runtime files as a dict of filename -> content."""
    runtimes_dir = os.path.join(os.path.dirname(__file__), "runtimes", "cpp")
    with open(os.path.join(runtimes_dir, "serde.hpp"), encoding="utf-8") as f:
        return {"serde.hpp": f.read()}
