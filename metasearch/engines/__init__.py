"""Search engine registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

from metasearch.contracts import Engines

if TYPE_CHECKING:
    from metasearch.contracts import Engine

_REGISTRY: dict[Engines, type] = {}


def register_engine(name: Engines, cls: type) -> None:
    _REGISTRY[Engines(name)] = cls


def get_engine(name: Engines | str, **kwargs) -> "Engine":
    try:
        key = Engines(name)
    except ValueError:
        key = None
    if key not in _REGISTRY:
        available = ", ".join(e.value for e in _REGISTRY) or "(none)"
        raise KeyError(f"Unknown engine {name!r}. Available: {available}")
    return _REGISTRY[key](**kwargs)


def available_engines() -> list[Engines]:
    return list(_REGISTRY)


def load_builtin_engines() -> None:
    """Import bundled engine modules so they register themselves."""
    import metasearch.engines.duckduckgo  # noqa: F401
