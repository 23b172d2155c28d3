"""Rust code generator for serdegen registries.

Two source shapes are supported. With ``annotations`` the containers derive
``serde::Serialize``/``serde::Deserialize`` and the caller picks the encoding
through a serde data format crate. Otherwise explicit ``impl`` blocks are
generated against the ``serde_binary`` runtime module shipped with serdegen.
"""

import os
from dataclasses import dataclass, field

from jinja2 import Environment, PackageLoader

from .config import CodeGeneratorConfig, Target
from .errors import UnsupportedShapeForTarget
from .naming import NamingContext
from .registry import Registry
from .resolver import Resolution, reference_graph
from .types import (
    FLOAT_KINDS,
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
    TupleArray,
    TupleStruct,
    TupleVariant,
    TypeName,
    UnitStruct,
    UnitVariant,
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

template = env.get_template("rust.rs.j2")

PRIMITIVE_TYPE_MAP = {
    PrimitiveKind.UNIT: "()",
    PrimitiveKind.BOOL: "bool",
    PrimitiveKind.I8: "i8",
    PrimitiveKind.I16: "i16",
    PrimitiveKind.I32: "i32",
    PrimitiveKind.I64: "i64",
    PrimitiveKind.I128: "i128",
    PrimitiveKind.U8: "u8",
    PrimitiveKind.U16: "u16",
    PrimitiveKind.U32: "u32",
    PrimitiveKind.U64: "u64",
    PrimitiveKind.U128: "u128",
    PrimitiveKind.F32: "f32",
    PrimitiveKind.F64: "f64",
    PrimitiveKind.STR: "String",
    PrimitiveKind.BYTES: "Vec<u8>",
}

# std implements comparison and hashing traits for tuples up to this arity
MAX_TUPLE_ARITY = 12
# serde implements Serialize/Deserialize for arrays up to this size
MAX_DERIVE_ARRAY_SIZE = 32

READ = "Deserialize::deserialize(deserializer)?"


@dataclass
class RustField:
    name: str
    type: str
    rename: str | None = None


@dataclass
class RustVariant:
    name: str
    index: int
    declaration: str
    pattern: str
    bindings: list[str]
    constructor: str
    rename: str | None = None


@dataclass
class RustItem:
    name: str
    kind: str
    derives: list[str]
    declaration: str = ""
    fields: list[RustField] = field(default_factory=list)
    variants: list[RustVariant] = field(default_factory=list)
    accessors: list[str] = field(default_factory=list)
    constructor: str = ""
    comment: list[str] = field(default_factory=list)
    rename: str | None = None


def _has_float(fmt: Format, floating: set[str]) -> bool:
    if isinstance(fmt, Primitive):
        return fmt.kind in FLOAT_KINDS
    if isinstance(fmt, TypeName):
        return fmt.name in floating
    return any(_has_float(child, floating) for child in children(fmt))


def _float_containers(registry: Registry) -> set[str]:
    """Return the containers that hold a float, directly or through references."""
    floating: set[str] = set()
    graph = reference_graph(registry)
    changed = True
    while changed:
        changed = False
        for name, container in registry.items():
            if name in floating:
                continue
            formats = (fmt for _path, fmt in container_formats(container))
            if any(_has_float(fmt, floating) for fmt in formats) or any(
                succ in floating for succ in graph[name]
            ):
                floating.add(name)
                changed = True
    return floating


def _positional(path: str, values: list[str]) -> str:
    return f"{path}({', '.join(values)})"


def _named(path: str, names: list[str], values: list[str]) -> str:
    if not names:
        return f"{path} {{}}"
    pairs = ", ".join(f"{n}: {v}" for n, v in zip(names, values))
    return f"{path} {{ {pairs} }}"


def render(
    registry: Registry,
    resolution: Resolution,
    config: CodeGeneratorConfig,
    naming: NamingContext,
) -> str:
    """Render a registry to a Rust module."""
    derive = config.annotations and config.serialization
    explicit = config.serialization and not config.annotations
    names = {name: naming.container(name) for name in registry}
    floating = _float_containers(registry)

    def _check(name: str, fmt: Format) -> None:
        if isinstance(fmt, Map) and _has_float(fmt.key, floating):
            raise UnsupportedShapeForTarget(
                Target.RUST, name, "map keys holding floats have no total order"
            )
        if isinstance(fmt, Tuple) and len(fmt.formats) > MAX_TUPLE_ARITY:
            raise UnsupportedShapeForTarget(
                Target.RUST, name, f"tuples are limited to {MAX_TUPLE_ARITY} elements"
            )
        if derive and isinstance(fmt, TupleArray) and fmt.size > MAX_DERIVE_ARRAY_SIZE:
            raise UnsupportedShapeForTarget(
                Target.RUST,
                name,
                f"serde derive supports arrays of at most {MAX_DERIVE_ARRAY_SIZE} elements",
            )
        for child in children(fmt):
            _check(name, child)

    def _map_type(fmt: Format, source: str, inline: bool = True) -> str:
        if isinstance(fmt, Primitive):
            if derive and fmt.kind == PrimitiveKind.BYTES:
                return "serde_bytes::ByteBuf"
            return PRIMITIVE_TYPE_MAP[fmt.kind]
        if isinstance(fmt, TypeName):
            if inline and resolution.needs_indirection(source, fmt.name):
                return f"Box<{names[fmt.name]}>"
            return names[fmt.name]
        if isinstance(fmt, Option):
            return f"Option<{_map_type(fmt.format, source, inline)}>"
        if isinstance(fmt, Seq):
            return f"Vec<{_map_type(fmt.format, source, False)}>"
        if isinstance(fmt, Map):
            key = _map_type(fmt.key, source, False)
            return f"BTreeMap<{key}, {_map_type(fmt.value, source, False)}>"
        if isinstance(fmt, Tuple):
            items = [_map_type(f, source, inline) for f in fmt.formats]
            if len(items) == 1:
                return f"({items[0]},)"
            return f"({', '.join(items)})"
        return f"[{_map_type(fmt.content, source, inline)}; {fmt.size}]"

    def _rename(original: str, ident: str) -> str | None:
        return original if derive and original != ident else None

    def _derives(name: str) -> list[str]:
        derives = ["Clone", "Debug", "PartialEq"]
        if name not in floating:
            derives.append("Eq")
        derives.append("PartialOrd")
        if name not in floating:
            derives.extend(["Ord", "Hash"])
        if derive:
            derives.extend(["Serialize", "Deserialize"])
        return derives

    def _field_decl(f: RustField, public: bool) -> str:
        prefix = "pub " if public else ""
        attribute = f'#[serde(rename = "{f.rename}")] ' if f.rename else ""
        return f"{attribute}{prefix}{f.name}: {f.type}"

    def _variant(enum: str, ident: str, variant) -> RustVariant:
        variant_ident = naming.variant(enum, variant.name)
        path = f"{ident}::{variant_ident}"
        payload = variant.payload
        formats: list[Format] = []
        field_names: list[str] = []
        fields: list[RustField] = []
        if isinstance(payload, NewTypeVariant):
            formats = [payload.format]
        elif isinstance(payload, TupleVariant):
            formats = list(payload.formats)
        elif isinstance(payload, StructVariant):
            for f in payload.fields:
                field_ident = naming.variant_field(enum, variant.name, f.name)
                field_names.append(field_ident)
                fields.append(
                    RustField(field_ident, _map_type(f.format, enum), _rename(f.name, field_ident))
                )
        bindings = [f"x{i}" for i in range(max(len(formats), len(fields)))]
        reads = [READ] * len(bindings)

        if isinstance(payload, UnitVariant):
            declaration = variant_ident
            pattern = constructor = path
        elif isinstance(payload, StructVariant):
            declarations = ", ".join(_field_decl(f, False) for f in fields)
            declaration = _named(variant_ident, [], [])
            if fields:
                declaration = f"{variant_ident} {{ {declarations} }}"
            pattern = _named(path, field_names, bindings)
            constructor = _named(path, field_names, reads)
        else:
            declaration = _positional(variant_ident, [_map_type(f, enum) for f in formats])
            pattern = _positional(path, bindings)
            constructor = _positional(path, reads)
        return RustVariant(
            name=variant_ident,
            index=variant.index,
            declaration=declaration,
            pattern=pattern,
            bindings=bindings,
            constructor=constructor,
            rename=_rename(variant.name, variant_ident),
        )

    def _item(name: str, container: ContainerFormat) -> RustItem:
        ident = names[name]
        item = RustItem(
            name=ident,
            kind="struct",
            derives=_derives(name),
            comment=config.comments.get(name, "").splitlines(),
            rename=_rename(name, ident),
        )
        if isinstance(container, UnitStruct):
            item.kind = "unit"
            item.declaration = f"pub struct {ident};"
            item.constructor = ident
        elif isinstance(container, NewTypeStruct | TupleStruct):
            formats = (
                [container.format]
                if isinstance(container, NewTypeStruct)
                else list(container.formats)
            )
            types = [f"pub {_map_type(f, name)}" for f in formats]
            item.kind = "tuple"
            item.declaration = f"pub struct {_positional(ident, types)};"
            item.accessors = [str(i) for i in range(len(formats))]
            item.constructor = _positional(ident, [READ] * len(formats))
        elif isinstance(container, Struct):
            for f in container.fields:
                field_ident = naming.field(name, f.name)
                item.fields.append(
                    RustField(field_ident, _map_type(f.format, name), _rename(f.name, field_ident))
                )
            item.accessors = [f.name for f in item.fields]
            item.constructor = _named(
                ident, [f.name for f in item.fields], [READ] * len(item.fields)
            )
        elif isinstance(container, Enum):
            if derive and not container.is_contiguous():
                raise UnsupportedShapeForTarget(
                    Target.RUST,
                    name,
                    "serde derive numbers variants by position; indices must be 0..n-1",
                )
            item.kind = "enum"
            item.variants = [_variant(name, ident, v) for v in container.variants]
        return item

    items = []
    for name in resolution.order:
        container = registry[name]
        for _path, fmt in container_formats(container):
            _check(name, fmt)
        items.append(_item(name, container))

    return template.render(
        module_name=config.module_name,
        items=items,
        derive=derive,
        explicit=explicit,
        encodings=[enc.value for enc in config.encodings],
        field_decl=_field_decl,
    )


def runtime() -> dict[str, str]:
    """Return the Rust runtime files as a dict of filename -> content."""
    runtimes_dir = os.path.join(os.path.dirname(__file__), "runtimes", "rust")
    with open(os.path.join(runtimes_dir, "serde_binary.rs"), encoding="utf-8") as f:
        return {"serde_binary.rs": f.read()}
