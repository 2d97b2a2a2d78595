"""Equipment variants and the connection state machine they share."""

from ._base import DEFAULT_MAX_LEVEL, ConnectionState, Equipment
from ._debug import DebugBike, SimulatedIconsoleBike
from ._ftms_bike import FtmsBike
from ._gatt import GattEquipment
from ._iconsole import Iconsole0028Bike, IconsoleOpcode, iconsole_codec
from ._non_bluetooth import NonBluetoothDevice
from ._registry import EQUIPMENT_TYPES, equipment_types, register_equipment

__all__ = [
    "DEFAULT_MAX_LEVEL",
    "EQUIPMENT_TYPES",
    "ConnectionState",
    "DebugBike",
    "Equipment",
    "FtmsBike",
    "GattEquipment",
    "Iconsole0028Bike",
    "IconsoleOpcode",
    "NonBluetoothDevice",
    "SimulatedIconsoleBike",
    "equipment_types",
    "iconsole_codec",
    "register_equipment",
]
