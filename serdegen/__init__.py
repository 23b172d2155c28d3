"""serdegen - Cross-language schema compiler with canonical binary encoding."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("serdegen")
except PackageNotFoundError:
    __version__ = "(local)"
