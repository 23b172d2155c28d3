"""Python code generator for serdegen registries."""

from dataclasses import dataclass, field
from importlib import resources

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
    TupleArray,
    TupleStruct,
    TupleVariant,
    TypeName,
    Variant,
    children,
    container_formats,
)

RUNTIME_FILES = [
    "__init__.py",
    "formats.py",
    "serialization.py",
    "lcs.py",
    "bincode.py",
]

env = Environment(
    loader=PackageLoader("serdegen.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("python.py.j2")

# Map primitive kinds to Python type annotations
PRIMITIVE_TYPE_MAP = {
    PrimitiveKind.UNIT: "tuple[()]",
    PrimitiveKind.BOOL: "bool",
    PrimitiveKind.I8: "int",
    PrimitiveKind.I16: "int",
    PrimitiveKind.I32: "int",
    PrimitiveKind.I64: "int",
    PrimitiveKind.I128: "int",
    PrimitiveKind.U8: "int",
    PrimitiveKind.U16: "int",
    PrimitiveKind.U32: "int",
    PrimitiveKind.U64: "int",
    PrimitiveKind.U128: "int",
    PrimitiveKind.F32: "float",
    PrimitiveKind.F64: "float",
    PrimitiveKind.STR: "str",
    PrimitiveKind.BYTES: "bytes",
}

INDENT = "    "


@dataclass
class _Field:
    name: str
    fmt: Format
    type_hint: str
    default: str


@dataclass
class _Method:
    signature: str
    body: str
    classmethod: bool = False


@dataclass
class _Class:
    name: str
    base: str
    decorate: bool = True
    comment: str | None = None
    index: int | None = None
    fields: list[_Field] = field(default_factory=list)
    methods: list[_Method] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.comment or self.fields or self.methods) and self.index is None


def _indent(lines: list[str]) -> list[str]:
    return [INDENT + line for line in lines]


def _docstring(text: str | None) -> str | None:
    if text is None:
        return None
    return text.replace("\\", "\\\\").replace('"""', r'\"\"\"')


def _tuple_literal(items: list[str]) -> str:
    if len(items) == 1:
        return f"({items[0]},)"
    return f"({', '.join(items)})"


class _Renderer:
    """Renders one registry. Holds the sanitized container names."""

    def __init__(
        self,
        registry: Registry,
        resolution: Resolution,
        config: CodeGeneratorConfig,
        naming: NamingContext,
    ) -> None:
        self.registry = registry
        self.resolution = resolution
        self.config = config
        self.naming = naming
        self.names = {name: naming.container(name) for name in registry}

    # Shapes

    def check_shapes(self, name: str, container: ContainerFormat) -> None:
        def check(fmt: Format) -> None:
            if isinstance(fmt, Option) and isinstance(fmt.format, Option):
                raise UnsupportedShapeForTarget(
                    Target.PYTHON, name, "nested options cannot be told apart from None"
                )
            if isinstance(fmt, Map) and self.unhashable(fmt.key, set()):
                raise UnsupportedShapeForTarget(
                    Target.PYTHON, name, "map keys must be hashable, not lists or dicts"
                )
            for child in children(fmt):
                check(child)

        for _path, fmt in container_formats(container):
            check(fmt)

    def unhashable(self, fmt: Format, seen: set[str]) -> bool:
        """Whether values of ``fmt`` hold a list or dict anywhere inside."""
        if isinstance(fmt, Seq | Map | TupleArray):
            return True
        if isinstance(fmt, TypeName):
            if fmt.name in seen:
                return False
            seen.add(fmt.name)
            return any(
                self.unhashable(f, seen)
                for _path, f in container_formats(self.registry[fmt.name])
            )
        return any(self.unhashable(child, seen) for child in children(fmt))

    # Type hints and descriptors

    def type_hint(self, fmt: Format) -> str:
        if isinstance(fmt, Primitive):
            return PRIMITIVE_TYPE_MAP[fmt.kind]
        if isinstance(fmt, TypeName):
            return self.names[fmt.name]
        if isinstance(fmt, Option):
            return f"{self.type_hint(fmt.format)} | None"
        if isinstance(fmt, Seq):
            return f"list[{self.type_hint(fmt.format)}]"
        if isinstance(fmt, Map):
            return f"dict[{self.type_hint(fmt.key)}, {self.type_hint(fmt.value)}]"
        if isinstance(fmt, Tuple):
            if not fmt.formats:
                return "tuple[()]"
            return f"tuple[{', '.join(self.type_hint(f) for f in fmt.formats)}]"
        return f"list[{self.type_hint(fmt.content)}]"

    def descriptor(self, fmt: Format) -> str:
        if isinstance(fmt, Primitive):
            return f"_st.{fmt.kind.value}"
        if isinstance(fmt, TypeName):
            ident = self.names[fmt.name]
            return f'_st.TypeName("{ident}", lambda: {ident})'
        if isinstance(fmt, Option):
            return f"_st.Option({self.descriptor(fmt.format)})"
        if isinstance(fmt, Seq):
            return f"_st.Seq({self.descriptor(fmt.format)})"
        if isinstance(fmt, Map):
            return f"_st.Map({self.descriptor(fmt.key)}, {self.descriptor(fmt.value)})"
        if isinstance(fmt, Tuple):
            return f"_st.Tuple({_tuple_literal([self.descriptor(f) for f in fmt.formats])})"
        return f"_st.TupleArray({self.descriptor(fmt.content)}, {fmt.size})"

    def make_field(self, name: str, fmt: Format) -> _Field:
        default = ""
        if self.config.annotations and self.config.serialization:
            default = f" = _rt.serde_field({self.descriptor(fmt)})"
        return _Field(name, fmt, self.type_hint(fmt), default)

    # Explicit codec bodies

    def gen_serialize(self, fmt: Format, expr: str, depth: int = 0) -> list[str]:
        """Generate statements writing ``expr`` to ``serializer``."""
        d = depth
        if isinstance(fmt, Primitive):
            return [f"serializer.serialize_{fmt.kind.value.lower()}({expr})"]
        if isinstance(fmt, TypeName):
            return [f"{expr}.serialize(serializer)"]
        if isinstance(fmt, Option):
            return [
                f"if {expr} is None:",
                f"{INDENT}serializer.serialize_option_tag(False)",
                "else:",
                f"{INDENT}serializer.serialize_option_tag(True)",
                *_indent(self.gen_serialize(fmt.format, expr, d + 1)),
            ]
        if isinstance(fmt, Seq):
            return [
                f"serializer.serialize_len(len({expr}))",
                f"for _item{d} in {expr}:",
                *_indent(self.gen_serialize(fmt.format, f"_item{d}", d + 1)),
            ]
        if isinstance(fmt, Map):
            return [
                f"serializer.serialize_len(len({expr}))",
                f"_offsets{d} = []",
                f"for _key{d}, _value{d} in {expr}.items():",
                f"{INDENT}_offsets{d}.append(serializer.get_buffer_offset())",
                *_indent(self.gen_serialize(fmt.key, f"_key{d}", d + 1)),
                *_indent(self.gen_serialize(fmt.value, f"_value{d}", d + 1)),
                f"serializer.sort_map_entries(_offsets{d})",
            ]
        if isinstance(fmt, Tuple):
            n = len(fmt.formats)
            lines = [
                f"if len({expr}) != {n}:",
                f'{INDENT}raise _rt.SerializationError("expected a tuple of {n} values")',
            ]
            for i, item in enumerate(fmt.formats):
                lines.extend(self.gen_serialize(item, f"{expr}[{i}]", d + 1))
            return lines
        return [
            f"if len({expr}) != {fmt.size}:",
            f'{INDENT}raise _rt.SerializationError("expected an array of {fmt.size} values")',
            f"for _item{d} in {expr}:",
            *_indent(self.gen_serialize(fmt.content, f"_item{d}", d + 1)),
        ]

    def gen_deserialize(self, fmt: Format, target: str, depth: int = 0) -> list[str]:
        """Generate statements reading a value from ``deserializer`` into ``target``."""
        d = depth
        if isinstance(fmt, Primitive):
            return [f"{target} = deserializer.deserialize_{fmt.kind.value.lower()}()"]
        if isinstance(fmt, TypeName):
            return [f"{target} = {self.names[fmt.name]}.deserialize(deserializer)"]
        if isinstance(fmt, Option):
            return [
                "if deserializer.deserialize_option_tag():",
                *_indent(self.gen_deserialize(fmt.format, target, d + 1)),
                "else:",
                f"{INDENT}{target} = None",
            ]
        if isinstance(fmt, Seq):
            return [
                f"{target} = []",
                "for _ in range(deserializer.deserialize_len()):",
                *_indent(self.gen_deserialize(fmt.format, f"_item{d}", d + 1)),
                f"{INDENT}{target}.append(_item{d})",
            ]
        if isinstance(fmt, Map):
            return [
                f"{target} = {{}}",
                f"_previous{d} = None",
                "for _ in range(deserializer.deserialize_len()):",
                f"{INDENT}_start{d} = deserializer.get_buffer_offset()",
                *_indent(self.gen_deserialize(fmt.key, f"_key{d}", d + 1)),
                f"{INDENT}_slice{d} = (_start{d}, deserializer.get_buffer_offset())",
                f"{INDENT}if _previous{d} is not None:",
                f"{INDENT}{INDENT}deserializer.check_that_key_slices_are_increasing"
                f"(_previous{d}, _slice{d})",
                f"{INDENT}_previous{d} = _slice{d}",
                *_indent(self.gen_deserialize(fmt.value, f"_value{d}", d + 1)),
                f"{INDENT}{target}[_key{d}] = _value{d}",
            ]
        if isinstance(fmt, Tuple):
            lines: list[str] = []
            elements = []
            for i, item in enumerate(fmt.formats):
                element = f"_elem{d}_{i}"
                lines.extend(self.gen_deserialize(item, element, d + 1))
                elements.append(element)
            lines.append(f"{target} = {_tuple_literal(elements)}")
            return lines
        return [
            f"{target} = []",
            f"for _ in range({fmt.size}):",
            *_indent(self.gen_deserialize(fmt.content, f"_item{d}", d + 1)),
            f"{INDENT}{target}.append(_item{d})",
        ]

    def _read_fields(self, fields: list[_Field]) -> tuple[list[str], str]:
        lines: list[str] = []
        args = []
        for i, f in enumerate(fields):
            lines.extend(self.gen_deserialize(f.fmt, f"_field{i}"))
            args.append(f"{f.name}=_field{i}")
        return lines, f"cls({', '.join(args)})"

    # Classes

    def struct_fields(self, name: str, container: ContainerFormat) -> list[_Field]:
        if isinstance(container, NewTypeStruct):
            return [self.make_field("value", container.format)]
        if isinstance(container, TupleStruct):
            return [self.make_field("value", Tuple(container.formats))]
        if isinstance(container, Struct):
            return [
                self.make_field(self.naming.field(name, f.name), f.format)
                for f in container.fields
            ]
        return []

    def variant_fields(self, enum: str, variant: Variant) -> list[_Field]:
        payload = variant.payload
        if isinstance(payload, NewTypeVariant):
            return [self.make_field("value", payload.format)]
        if isinstance(payload, TupleVariant):
            return [self.make_field("value", Tuple(payload.formats))]
        if isinstance(payload, StructVariant):
            return [
                self.make_field(self.naming.variant_field(enum, variant.name, f.name), f.format)
                for f in payload.fields
            ]
        return []

    def encoding_methods(self, class_name: str) -> list[_Method]:
        methods = []
        for encoding in self.config.encodings:
            enc = encoding.value
            methods.append(
                _Method(f"{enc}_serialize(self) -> bytes", f"return _{enc}.serialize(self)")
            )
            methods.append(
                _Method(
                    f"{enc}_deserialize(cls, data: bytes) -> {class_name}",
                    f"return _{enc}.deserialize(data, cls)",
                    classmethod=True,
                )
            )
        return methods

    def explicit(self) -> bool:
        return self.config.serialization and not self.config.annotations

    def render_struct(self, name: str, container: ContainerFormat) -> list[_Class]:
        ident = self.names[name]
        fields = self.struct_fields(name, container)
        cls = _Class(
            name=ident,
            base="_rt.Struct" if self.config.serialization else "object",
            comment=_docstring(self.config.comments.get(name)),
            fields=fields,
        )
        if self.explicit():
            write = ["serializer.increase_container_depth()"]
            for f in fields:
                write.extend(self.gen_serialize(f.fmt, f"self.{f.name}"))
            write.append("serializer.decrease_container_depth()")

            read, construct = self._read_fields(fields)
            read = [
                "deserializer.increase_container_depth()",
                *read,
                "deserializer.decrease_container_depth()",
                f"return {construct}",
            ]
            cls.methods.append(
                _Method("serialize(self, serializer: _rt.Serializer) -> None", "\n".join(write))
            )
            cls.methods.append(
                _Method(
                    f"deserialize(cls, deserializer: _rt.Deserializer) -> {ident}",
                    "\n".join(read),
                    classmethod=True,
                )
            )
        if self.config.serialization:
            cls.methods.extend(self.encoding_methods(ident))
        return [cls]

    def render_enum(self, name: str, container: Enum) -> list[_Class]:
        ident = self.names[name]
        base = _Class(
            name=ident,
            base="_rt.Enum" if self.config.serialization else "object",
            decorate=False,
            comment=_docstring(self.config.comments.get(name)),
        )
        classes = [base]
        dispatch: list[str] = []

        for variant in container.variants:
            self.naming.variant(name, variant.name)
            # "Shape::Circle" sanitizes to the class name "Shape__Circle"
            class_name = self.naming.container(f"{name}::{variant.name}")
            fields = self.variant_fields(name, variant)
            cls = _Class(name=class_name, base=ident, fields=fields)
            if self.config.serialization:
                cls.index = variant.index
            classes.append(cls)

            if not self.explicit():
                continue
            write = [
                "serializer.increase_container_depth()",
                f"serializer.serialize_variant_index({variant.index})",
            ]
            for f in fields:
                write.extend(self.gen_serialize(f.fmt, f"self.{f.name}"))
            write.append("serializer.decrease_container_depth()")
            read, construct = self._read_fields(fields)
            cls.methods.append(
                _Method("serialize(self, serializer: _rt.Serializer) -> None", "\n".join(write))
            )
            cls.methods.append(
                _Method(
                    f"deserialize_payload(cls, deserializer: _rt.Deserializer) -> {class_name}",
                    "\n".join([*read, f"return {construct}"]),
                    classmethod=True,
                )
            )
            keyword = "if" if not dispatch else "elif"
            dispatch.append(f"{keyword} index == {variant.index}:")
            dispatch.append(f"{INDENT}value = {class_name}.deserialize_payload(deserializer)")

        if self.explicit():
            unknown = f'raise _rt.UnknownVariant(f"unknown variant index {{index}} for {ident}")'
            if dispatch:
                dispatch.extend(["else:", INDENT + unknown])
            else:
                dispatch.append(unknown)
            read = [
                "deserializer.increase_container_depth()",
                "index = deserializer.deserialize_variant_index()",
                *dispatch,
                "deserializer.decrease_container_depth()",
                "return value",
            ]
            base.methods.append(
                _Method(
                    f"deserialize(cls, deserializer: _rt.Deserializer) -> {ident}",
                    "\n".join(read),
                    classmethod=True,
                )
            )
        if self.config.serialization:
            base.methods.extend(self.encoding_methods(ident))
        return classes

    def classes(self) -> list[_Class]:
        result: list[_Class] = []
        for name in self.resolution.order:
            container = self.registry[name]
            self.check_shapes(name, container)
            if isinstance(container, Enum):
                result.extend(self.render_enum(name, container))
            else:
                result.extend(self.render_struct(name, container))
        return result

    def imports(self) -> list[tuple[str, str]]:
        modules = [("serialization", "_rt")]
        if self.config.annotations:
            modules.append(("formats", "_st"))
        modules.extend((enc.value, f"_{enc.value}") for enc in self.config.encodings)
        return sorted(set(modules))


def render(
    registry: Registry,
    resolution: Resolution,
    config: CodeGeneratorConfig,
    naming: NamingContext,
) -> str:
    """Render a registry to Python source code."""
    renderer = _Renderer(registry, resolution, config, naming)
    return template.render(
        module_name=config.module_name,
        classes=renderer.classes(),
        imports=renderer.imports(),
        serialization=config.serialization,
        runtime_import=config.runtime_import,
    )


def runtime() -> dict[str, str]:
    """Return the Python runtime files as a dict of filename -> content."""
    result: dict[str, str] = {}
    for filename in RUNTIME_FILES:
        content = resources.files("serdegen.runtime").joinpath(filename).read_text()
        result[filename] = content
    return result
