"""Chat transport adapters.

Built-in adapters are referenced by name (``shell``); anything else is
treated as a dotted module path whose ``use(robot)`` function returns an
:class:`Adapter`.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

from ..core.exceptions import AdapterError
from .base import Adapter
from .shell import ShellAdapter

if TYPE_CHECKING:
    from ..robot import Robot

BUILTIN_ADAPTERS: dict[str, type[Adapter]] = {
    "shell": ShellAdapter,
}


def create_adapter(name: str, robot: Robot) -> Adapter:
    """Instantiate the adapter called ``name`` for ``robot``.

    Raises:
        AdapterError: If the adapter cannot be found or built.
    """
    adapter_cls = BUILTIN_ADAPTERS.get(name)
    if adapter_cls is not None:
        return adapter_cls(robot)

    try:
        module = importlib.import_module(name)
    except ImportError as exc:
        raise AdapterError(f"Cannot load adapter {name} - {exc}", adapter=name) from exc

    use = getattr(module, "use", None)
    if not callable(use):
        raise AdapterError(f"Adapter module {name} has no use(robot) function", adapter=name)

    adapter = use(robot)
    if not isinstance(adapter, Adapter):
        raise AdapterError(
            f"Adapter module {name} returned {type(adapter).__name__}, expected Adapter",
            adapter=name,
        )
    return adapter


__all__ = [
    "Adapter",
    "BUILTIN_ADAPTERS",
    "ShellAdapter",
    "create_adapter",
]
