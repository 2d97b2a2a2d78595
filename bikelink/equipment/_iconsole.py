from __future__ import annotations

from enum import IntEnum
from typing import Any

from .._config import EquipmentConfig
from .._identity import EquipmentIdentity
from ..codec import FieldSpec, FixedFrameCodec, SetpointLayout, TelemetryLayout
from ._base import DEFAULT_MAX_LEVEL, level_parameter
from ._gatt import GattEquipment
from ._registry import register_equipment

# Transparent UART service exposed by the iConsole console module.
ICONSOLE_SERVICE_UUID = "49535343-fe7d-4ae5-8fa9-9fafd205e455"
ICONSOLE_NOTIFY_UUID = "49535343-1e4d-4bd9-ba61-23c647249616"
ICONSOLE_WRITE_UUID = "49535343-8841-43f4-a8d4-ecbe34729bb3"

ICONSOLE_NAME_FILTER = "iConsole"
ICONSOLE_MAX_LEVEL = 32


class IconsoleOpcode(IntEnum):
    """First byte of every iConsole frame."""

    TELEMETRY = 0x01
    SET_LEVEL = 0x05


# opcode | cadence u16 | power u16 | speed u16 (0.01 km/h), big-endian
ICONSOLE_TELEMETRY = TelemetryLayout(
    opcode=IconsoleOpcode.TELEMETRY,
    length=7,
    cadence=FieldSpec(offset=1),
    power=FieldSpec(offset=3),
    speed=FieldSpec(offset=5),
    # The console echoes every level command on the notify endpoint.
    ignored_opcodes=frozenset({IconsoleOpcode.SET_LEVEL}),
)


def iconsole_codec(max_level: int = ICONSOLE_MAX_LEVEL) -> FixedFrameCodec:
    """Build the iConsole codec accepting levels ``0..max_level``."""
    if not 0 <= max_level <= ICONSOLE_MAX_LEVEL:
        raise ValueError(f"iConsole max level must be within 0..{ICONSOLE_MAX_LEVEL}")
    return FixedFrameCodec(
        SetpointLayout(IconsoleOpcode.SET_LEVEL, min_level=0, max_level=max_level),
        ICONSOLE_TELEMETRY,
    )


@register_equipment("28")
class Iconsole0028Bike(GattEquipment):
    """iConsole+0028 exercise bike.

    The console offers a single resistance level (0-32), which stands in for
    both target cadence and target power. The factory parameter caps the
    highest level the caller may command.
    """

    command_endpoint = ICONSOLE_WRITE_UUID
    telemetry_endpoint = ICONSOLE_NOTIFY_UUID
    name_filter = ICONSOLE_NAME_FILTER

    @classmethod
    def identity_for(cls, parameter: Any, config: EquipmentConfig) -> EquipmentIdentity:
        return EquipmentIdentity(
            type_tag=cls.type_tag,
            name_filter=config.name_filter or cls.name_filter,
            rssi_threshold=config.rssi_threshold,
            scan_timeout=config.scan_timeout,
        )

    @classmethod
    def codec_for(cls, parameter: Any) -> FixedFrameCodec:
        return iconsole_codec(level_parameter(parameter, DEFAULT_MAX_LEVEL))
