"""CLI package for running and querying the temperature relay pipeline."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# ``cli.app`` must keep resolving to the module, not the Typer instance;
# tests patch attributes on that module path.

__all__ = []
