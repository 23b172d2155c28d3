"""Settings shared by all backends."""

import json
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from dataclasses_json import DataClassJsonMixin


class Target(StrEnum):
    """Supported target languages."""

    PYTHON = "python"
    CPP = "cpp"
    RUST = "rust"


class Encoding(StrEnum):
    """Binary encodings the generated code can speak.

    LCS is the canonical encoding. Bincode is non-canonical and only
    used for interop with existing bincode peers.
    """

    LCS = "lcs"
    BINCODE = "bincode"


@dataclass
class CodeGeneratorConfig(DataClassJsonMixin):
    """Options for one generation run.

    Attributes:
        module_name: Name of the generated module or namespace.
        encodings: Encodings to emit entry points for.
        serialization: If False, only emit type declarations.
        annotations: Lean on the target's declarative facilities (dataclass
            field metadata, serde derive macros) rather than explicit codec
            bodies. Changes source shape only, never wire bytes.
        runtime_import: Import path of the Python runtime.
        comments: Doc comments keyed by container name.
    """

    module_name: str = "schema"
    encodings: list[Encoding] = field(default_factory=lambda: [Encoding.LCS])
    serialization: bool = True
    annotations: bool = False
    runtime_import: str = "serde_runtime"
    comments: dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls, path: str | Path) -> "CodeGeneratorConfig":
        with open(path, encoding="utf-8") as f:
            return cls.from_dict(json.load(f))
