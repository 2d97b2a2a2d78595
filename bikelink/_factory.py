from __future__ import annotations

import logging
from typing import Any

from ._cancellation import CancellationSignal
from ._config import EquipmentConfig
from ._errors import UnsupportedEquipmentType
from .equipment import EQUIPMENT_TYPES, Equipment, equipment_types
from .transport import Transport

LOGGER = logging.getLogger(__name__)


async def resolve(
    equipment_type: str,
    parameter: Any,
    cancellation: CancellationSignal,
    *,
    transport: Transport | None = None,
    config: EquipmentConfig | None = None,
) -> Equipment:
    """Locate equipment of the given type and return a not-yet-connected instance.

    Args:
        equipment_type: Registered type tag (e.g. "28", "ftms", "debug", "device")
        parameter: Variant-specific parameter (maximum level or name filter)
        cancellation: Signal aborting discovery when fired
        transport: Transport override; defaults to the variant's own
        config: Discovery and connection tunables

    Raises:
        UnsupportedEquipmentType: If no variant is registered for the tag
        DiscoveryFailed: If no matching device was found in time
        Cancelled: If the signal fired before discovery completed

    Example:
        >>> signal = CancellationSignal()
        >>> bike = await resolve("28", 24, signal)
        >>> if await bike.connect():
        ...     sample = await bike.read()
    """
    try:
        variant = EQUIPMENT_TYPES[equipment_type]
    except KeyError:
        raise UnsupportedEquipmentType(
            f"unknown equipment type {equipment_type!r}; "
            f"known types: {', '.join(equipment_types())}"
        ) from None

    LOGGER.info("Resolving %s equipment (parameter: %r)", variant.__name__, parameter)
    equipment = await variant.create(
        parameter, cancellation, transport=transport, config=config
    )
    LOGGER.info("Resolved %r", equipment)
    return equipment
