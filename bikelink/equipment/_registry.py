from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from ._base import Equipment

E = TypeVar("E", bound=type[Equipment])

# Type tag -> equipment variant. Populated by @register_equipment.
EQUIPMENT_TYPES: dict[str, type[Equipment]] = {}


def register_equipment(type_tag: str) -> Callable[[E], E]:
    """Class decorator making a variant resolvable under ``type_tag``."""

    def decorator(cls: E) -> E:
        if type_tag in EQUIPMENT_TYPES:
            raise ValueError(f"equipment type {type_tag!r} already registered")
        cls.type_tag = type_tag
        EQUIPMENT_TYPES[type_tag] = cls
        return cls

    return decorator


def equipment_types() -> list[str]:
    """Return the registered type tags."""
    return sorted(EQUIPMENT_TYPES)
