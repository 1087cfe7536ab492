"""
Platform name → (config model, driver class) table.

Driver modules fill it in at import time; ``main.py`` imports every module in
``drivers/`` once, then builds one driver per configured instance.
"""

from __future__ import annotations

_REGISTRY: dict[str, tuple[type, type]] = {}


def _qualified(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def register(name: str, config_cls: type, driver_cls: type) -> None:
    """Make *driver_cls* available under the config section *name*.

    Re-registering the same class is a no-op (modules may be re-imported in
    tests); a different class under a taken name is a programming error.
    """
    existing = _REGISTRY.get(name)
    if existing is not None and _qualified(existing[1]) != _qualified(driver_cls):
        raise ValueError(f"Driver name '{name}' already taken by {existing[1].__name__}")
    _REGISTRY[name] = (config_cls, driver_cls)


def all_drivers() -> dict[str, tuple[type, type]]:
    """Snapshot of ``{name: (config_cls, driver_cls)}``."""
    return dict(_REGISTRY)


def platforms() -> list[str]:
    return sorted(_REGISTRY)
