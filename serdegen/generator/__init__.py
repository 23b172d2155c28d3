"""Schema compiler: format IR, registry, resolver and code generators."""

from .backends import BACKENDS as BACKENDS
from .backends import generate as generate
from .backends import runtime as runtime
from .config import CodeGeneratorConfig as CodeGeneratorConfig
from .config import Encoding as Encoding
from .config import Target as Target
from .errors import *
from .installer import Installer as Installer
from .parser import load as load
from .parser import parse as parse
from .registry import Registry as Registry
from .resolver import Resolution as Resolution
from .resolver import resolve as resolve
from .types import *
