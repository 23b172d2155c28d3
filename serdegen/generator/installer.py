"""Writes generated modules and runtime files into a destination tree."""

import contextlib
import logging
import os
import tempfile
from pathlib import Path

from .backends import BACKENDS, runtime
from .config import CodeGeneratorConfig, Target

logger = logging.getLogger(__name__)


def write_atomic(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` so readers see either the old or new file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
        os.replace(tmp, path)
    except OSError:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp)
        raise


class Installer:
    """Lays out generated code for one target.

    Python: ``<dir>/<module>/__init__.py`` with the runtime package beside it.
    C++: ``<dir>/<module>.hpp`` and ``<dir>/serde.hpp``.
    Rust: ``<dir>/<module>.rs`` and ``<dir>/serde_binary.rs``.
    """

    def __init__(self, install_dir: str | Path, target: Target | str) -> None:
        self.install_dir = Path(install_dir)
        self.target = Target(target)

    def module_path(self, config: CodeGeneratorConfig) -> Path:
        if self.target == Target.PYTHON:
            return self.install_dir / config.module_name / "__init__.py"
        return self.install_dir / f"{config.module_name}{BACKENDS[self.target].extension}"

    def runtime_dir(self, config: CodeGeneratorConfig | None = None) -> Path:
        if self.target == Target.PYTHON:
            config = config or CodeGeneratorConfig()
            return self.install_dir.joinpath(*config.runtime_import.split("."))
        return self.install_dir

    def install_module(self, config: CodeGeneratorConfig, source: str) -> Path:
        path = self.module_path(config)
        write_atomic(path, source)
        logger.info("wrote %s", path)
        return path

    def install_runtime(self, config: CodeGeneratorConfig | None = None) -> list[Path]:
        directory = self.runtime_dir(config)
        paths = []
        for filename, content in runtime(self.target).items():
            path = directory / filename
            write_atomic(path, content)
            logger.info("wrote %s", path)
            paths.append(path)
        return paths
