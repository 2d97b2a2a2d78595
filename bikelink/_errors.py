"""Error taxonomy shared by every bikelink component."""

from __future__ import annotations


class EquipmentError(Exception):
    """Base class for all bikelink errors."""


class InvalidSetpoint(EquipmentError, ValueError):
    """Raised when a setpoint falls outside the accepted range of the equipment."""


class MalformedFrame(EquipmentError, ValueError):
    """Raised when received bytes do not match the expected frame layout."""


class LinkLost(EquipmentError, ConnectionError):
    """Raised when the transport reports the wireless link is gone."""


class InvalidState(EquipmentError, RuntimeError):
    """Raised when an operation is called in a state that forbids it."""


class UnsupportedEquipmentType(EquipmentError, LookupError):
    """Raised when an equipment type identifier maps to no known variant."""


class DiscoveryFailed(EquipmentError, TimeoutError):
    """Raised when no matching device was found within the discovery policy."""


class Cancelled(EquipmentError):
    """Raised when the cancellation signal fires before an operation completes."""
