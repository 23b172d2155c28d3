"""Tests for writing generated code to disk"""

import importlib
import os
import sys

from serdegen.generator import CodeGeneratorConfig, Installer, Target, generate, load
from serdegen.generator.installer import write_atomic

FILE_DIR = os.path.dirname(os.path.realpath(__file__))


def describe_write_atomic():
    def creates_parent_directories(expect, tmp_path):
        path = tmp_path / "a" / "b" / "out.txt"
        write_atomic(path, "hello\n")
        expect(path.read_text()) == "hello\n"

    def replaces_existing_files(expect, tmp_path):
        path = tmp_path / "out.txt"
        path.write_text("old")
        write_atomic(path, "new")
        expect(path.read_text()) == "new"
        expect(sorted(p.name for p in tmp_path.iterdir())) == ["out.txt"]


def describe_installer():
    def python_modules_are_packages(expect, tmp_path):
        installer = Installer(tmp_path, Target.PYTHON)
        config = CodeGeneratorConfig(module_name="shapes", runtime_import="pkg.serde_runtime")
        expect(installer.module_path(config)) == tmp_path / "shapes" / "__init__.py"
        expect(installer.runtime_dir(config)) == tmp_path / "pkg" / "serde_runtime"

    def native_modules_are_single_files(expect, tmp_path):
        config = CodeGeneratorConfig(module_name="shapes")
        expect(Installer(tmp_path, "cpp").module_path(config)) == tmp_path / "shapes.hpp"
        expect(Installer(tmp_path, "rust").module_path(config)) == tmp_path / "shapes.rs"
        expect(Installer(tmp_path, "rust").runtime_dir(config)) == tmp_path

    def installs_runtimes(expect, tmp_path):
        paths = Installer(tmp_path, Target.CPP).install_runtime()
        expect(paths) == [tmp_path / "serde.hpp"]
        paths = Installer(tmp_path / "py", Target.PYTHON).install_runtime()
        expect((tmp_path / "py" / "serde_runtime" / "lcs.py") in paths) == True

    def installed_python_code_imports(expect, tmp_path, monkeypatch):
        registry = load(f"{FILE_DIR}/shapes.json")
        config = CodeGeneratorConfig(module_name="installed_shapes", runtime_import="installed_rt")
        installer = Installer(tmp_path, Target.PYTHON)
        installer.install_module(config, generate(registry, Target.PYTHON, config))
        installer.install_runtime(config)

        monkeypatch.syspath_prepend(str(tmp_path))
        try:
            module = importlib.import_module("installed_shapes")
            line = module.Line(value=(module.Point(x=1, y=2), module.Point(x=3, y=4)))
            data = line.lcs_serialize()
            expect(data) == bytes.fromhex("01000000020000000300000004000000")
            expect(module.Line.lcs_deserialize(data)) == line
        finally:
            for name in list(sys.modules):
                if name.split(".")[0] in ("installed_shapes", "installed_rt"):
                    del sys.modules[name]
