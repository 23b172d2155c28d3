"""Command-line interface for serdegen code generation."""

from __future__ import annotations

import json
import logging
import sys
from typing import NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from serdegen.generator import backends
from serdegen.generator.config import CodeGeneratorConfig, Encoding, Target
from serdegen.generator.errors import CodegenError, ValidationError
from serdegen.generator.installer import Installer
from serdegen.generator.parser import load
from serdegen.generator.registry import Registry
from serdegen.generator.resolver import Resolution, reference_graph, resolve
from serdegen.generator.types import Enum, NewTypeStruct, Struct, TupleStruct, UnitStruct

logger = logging.getLogger(__name__)

TARGETS = click.Choice([t.value for t in Target])
ENCODINGS = click.Choice([e.value for e in Encoding])

err_console = Console(stderr=True)


def _fail(error: Exception) -> NoReturn:
    err_console.print(f"[bold red]error:[/bold red] {error}", highlight=False)
    sys.exit(1)


def _load(input_file: str) -> Registry:
    try:
        return load(input_file)
    except (OSError, ValidationError) as e:
        _fail(e)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug output")
def cli(verbose: bool) -> None:
    """Schema compiler for canonical binary serialization."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


@cli.command()
@click.option("--language", "-l", required=True, type=TARGETS, help="Target language")
@click.option("--input", "-i", "input_file", required=True, help="Schema or JSON registry")
@click.option("--output", "-o", "output_dir", required=True, help="Output directory")
@click.option(
    "--encoding",
    "encodings",
    multiple=True,
    type=ENCODINGS,
    help="Encoding to emit entry points for (repeatable, default lcs)",
)
@click.option("--module-name", default=None, help="Generated module or namespace name")
@click.option(
    "--annotations",
    is_flag=True,
    default=None,
    help="Use dataclass metadata (Python) or serde derive (Rust) instead of explicit codecs",
)
@click.option(
    "--serialization/--no-serialization",
    default=None,
    help="Emit codec code or only type declarations",
)
@click.option("--runtime-import", default=None, help="Import path of the Python runtime")
@click.option("--with-runtime", is_flag=True, help="Also install the runtime support files")
@click.option("--config", "config_file", default=None, help="JSON generator config")
def gen(
    language: str,
    input_file: str,
    output_dir: str,
    encodings: tuple[str, ...],
    module_name: str | None,
    annotations: bool | None,
    serialization: bool | None,
    runtime_import: str | None,
    with_runtime: bool,
    config_file: str | None,
) -> None:
    """Generate code from a schema."""
    try:
        config = CodeGeneratorConfig.load(config_file) if config_file else CodeGeneratorConfig()
    except (OSError, ValueError, KeyError) as e:
        _fail(e)

    if encodings:
        config.encodings = [Encoding(e) for e in encodings]
    if module_name is not None:
        config.module_name = module_name
    if annotations is not None:
        config.annotations = annotations
    if serialization is not None:
        config.serialization = serialization
    if runtime_import is not None:
        config.runtime_import = runtime_import

    registry = _load(input_file)
    installer = Installer(output_dir, language)
    try:
        source = backends.generate(registry, language, config)
        path = installer.install_module(config, source)
        if with_runtime:
            installer.install_runtime(config)
    except (ValidationError, CodegenError, OSError) as e:
        _fail(e)
    print(f"Generated {language} module in {path}")


@cli.command()
@click.option("--language", "-l", required=True, type=TARGETS, help="Target language")
@click.option("--output", "-o", "output_dir", default=".", help="Output directory")
@click.option(
    "--runtime-import",
    default="serde_runtime",
    help="Runtime package name (python only)",
)
def runtime(language: str, output_dir: str, runtime_import: str) -> None:
    """Install runtime support code."""
    config = CodeGeneratorConfig(runtime_import=runtime_import)
    installer = Installer(output_dir, language)
    try:
        paths = installer.install_runtime(config)
    except OSError as e:
        _fail(e)
    directory = installer.runtime_dir(config)
    print(f"Generated {language} runtime in {directory} ({len(paths)} files)")


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Schema or JSON registry")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(input_file: str, output_json: bool) -> None:
    """Display containers, emission order and cycles."""
    registry = _load(input_file)
    resolution = resolve(registry)

    if output_json:
        _output_json(registry, resolution)
    else:
        _output_plain(registry, resolution)


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Schema or JSON registry")
def check(input_file: str) -> None:
    """Check that a schema generates for every target."""
    registry = _load(input_file)
    console = Console()
    failed = False
    for target in Target:
        try:
            backends.generate(registry, target)
        except CodegenError as e:
            failed = True
            console.print(f"[red]✗[/red] {target.value}: {e}", highlight=False)
        else:
            console.print(f"[green]✓[/green] {target.value}")
    if failed:
        sys.exit(1)


def _kind(container: object) -> str:
    if isinstance(container, UnitStruct):
        return "unit struct"
    if isinstance(container, NewTypeStruct):
        return "newtype struct"
    if isinstance(container, TupleStruct):
        return "tuple struct"
    if isinstance(container, Struct):
        return "struct"
    if isinstance(container, Enum):
        return "enum"
    raise TypeError(f"not a container: {container!r}")


def _output_json(registry: Registry, resolution: Resolution) -> None:
    """Output registry info as JSON."""
    data = {
        "registry": registry.to_dict(),
        "resolution": resolution.to_dict(),
    }
    print(json.dumps(data, indent=2))


def _output_plain(registry: Registry, resolution: Resolution) -> None:
    """Output registry info using rich text formatting."""
    console = Console()
    boxed = {(edge.source, edge.target) for edge in resolution.indirections}

    console.print("[bold cyan]Containers[/bold cyan]")
    table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    table.add_column("#", style="dim", justify="right")
    table.add_column("Name", style="white")
    table.add_column("Kind", style="dim")
    table.add_column("References", style="yellow")

    graph = reference_graph(registry)
    for position, name in enumerate(resolution.order):
        container = registry[name]
        references = []
        for ref in graph[name]:
            references.append(f"{ref} (boxed)" if (name, ref) in boxed else ref)
        table.add_row(str(position), name, _kind(container), ", ".join(references))

    console.print(table)
    console.print()

    console.print("[bold cyan]Cycles[/bold cyan]")
    if not resolution.cycles:
        console.print("  none")
    for cycle in resolution.cycles:
        console.print("  " + " → ".join([*cycle, cycle[0]]))


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
