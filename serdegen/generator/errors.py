"""Compile-time errors raised while building registries and generating code."""


class ValidationError(RuntimeError):
    """Raised when a schema or registry is malformed."""


class DuplicateName(ValidationError):
    """Raised when a container, field or variant name is defined twice."""

    def __init__(self, name: str, scope: str | None = None) -> None:
        self.name = name
        self.scope = scope
        where = f" in {scope}" if scope else ""
        super().__init__(f"{name} is already defined{where}")


class UnknownReference(ValidationError):
    """Raised when a TypeName points to a container missing from the registry."""

    def __init__(self, name: str, container: str, path: str = "") -> None:
        self.name = name
        self.container = container
        self.path = path
        location = f"{container}.{path}" if path else container
        super().__init__(f"{location} references undefined container {name}")


class CodegenError(RuntimeError):
    """Raised when a registry cannot be rendered for a target."""


class NameCollision(CodegenError):
    """Raised when two identifiers sanitize to the same target name."""

    def __init__(self, first: str, second: str, sanitized: str, scope: str) -> None:
        self.first = first
        self.second = second
        self.sanitized = sanitized
        self.scope = scope
        super().__init__(
            f"{first} and {second} both map to identifier {sanitized} in {scope}"
        )


class UnsupportedShapeForTarget(CodegenError):
    """Raised when a format cannot be expressed in the target's type system."""

    def __init__(self, target: str, container: str, reason: str) -> None:
        self.target = target
        self.container = container
        self.reason = reason
        super().__init__(f"{target}: {container}: {reason}")
