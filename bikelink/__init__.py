"""bikelink.

Client-side protocol layer for exercise bikes and trainers reached over BLE.
Discovers equipment, drives its connection lifecycle, encodes setpoint
commands and decodes telemetry behind one uniform API.
"""

from ._cancellation import CancellationSignal
from ._config import EquipmentConfig
from ._errors import (
    Cancelled,
    DiscoveryFailed,
    EquipmentError,
    InvalidSetpoint,
    InvalidState,
    LinkLost,
    MalformedFrame,
    UnsupportedEquipmentType,
)
from ._factory import resolve
from ._identity import EquipmentIdentity
from .codec import TelemetrySample
from .equipment import (
    ConnectionState,
    DebugBike,
    Equipment,
    FtmsBike,
    Iconsole0028Bike,
    NonBluetoothDevice,
    equipment_types,
    register_equipment,
)

__version__ = "0.1.0b1"

__all__ = [
    "CancellationSignal",
    "Cancelled",
    "ConnectionState",
    "DebugBike",
    "DiscoveryFailed",
    "Equipment",
    "EquipmentConfig",
    "EquipmentError",
    "EquipmentIdentity",
    "FtmsBike",
    "Iconsole0028Bike",
    "InvalidSetpoint",
    "InvalidState",
    "LinkLost",
    "MalformedFrame",
    "NonBluetoothDevice",
    "TelemetrySample",
    "UnsupportedEquipmentType",
    "equipment_types",
    "register_equipment",
    "resolve",
]
