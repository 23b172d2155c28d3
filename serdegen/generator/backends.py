"""Dispatch table from target language to code generator backend."""

import logging
from collections.abc import Callable
from typing import NamedTuple

from . import cpp, python, rust
from .config import CodeGeneratorConfig, Target
from .naming import NamingContext, cpp_context, python_context, rust_context
from .registry import Registry
from .resolver import Resolution, resolve

logger = logging.getLogger(__name__)


class Backend(NamedTuple):
    """What a target must provide to take part in generation."""

    render: Callable[[Registry, Resolution, CodeGeneratorConfig, NamingContext], str]
    runtime: Callable[[], dict[str, str]]
    naming: Callable[[], NamingContext]
    extension: str


BACKENDS: dict[Target, Backend] = {
    Target.PYTHON: Backend(python.render, python.runtime, python_context, ".py"),
    Target.CPP: Backend(cpp.render, cpp.runtime, cpp_context, ".hpp"),
    Target.RUST: Backend(rust.render, rust.runtime, rust_context, ".rs"),
}


def generate(
    registry: Registry,
    target: Target | str,
    config: CodeGeneratorConfig | None = None,
) -> str:
    """Generate source text for ``target``.

    Validates the registry, resolves it and renders it with a fresh naming
    context. Raises ``ValidationError`` or ``CodegenError`` on failure.
    """
    config = config or CodeGeneratorConfig()
    backend = BACKENDS[Target(target)]
    registry.validate()
    resolution = resolve(registry)
    logger.debug("emission order: %s", ", ".join(resolution.order))
    source = backend.render(registry, resolution, config, backend.naming())
    logger.info(
        "generated %s module %s (%d containers)", target, config.module_name, len(registry)
    )
    return source


def runtime(target: Target | str) -> dict[str, str]:
    """Return the runtime support files of ``target`` as filename -> content."""
    return BACKENDS[Target(target)].runtime()
