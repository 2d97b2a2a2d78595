from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Literal, Protocol

from .._errors import InvalidSetpoint, MalformedFrame

LOGGER = logging.getLogger(__name__)

# Speed travels as an integer number of 0.01 km/h steps.
SPEED_SCALE = 100
SPEED_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class TelemetrySample:
    """One fully decoded telemetry reading."""

    cadence: int
    power: int
    speed: Decimal
    distance: int | None = None
    resistance: int | None = None
    calories: int | None = None
    heart_rate: int | None = None
    elapsed_time: int | None = None

    def __post_init__(self) -> None:
        for item in fields(self):
            value = getattr(self, item.name)
            if value is not None and value < 0:
                raise ValueError(f"{item.name} must be non-negative, got {value}")


def speed_from_raw(raw: int) -> Decimal:
    """Convert a raw 0.01 km/h count to km/h with two decimals."""
    return (Decimal(raw) / SPEED_SCALE).quantize(SPEED_QUANTUM)


@dataclass(frozen=True)
class FieldSpec:
    """Location and scaling of one unsigned integer field in a frame."""

    offset: int
    size: int = 2
    scale: int = 1

    @property
    def end(self) -> int:
        return self.offset + self.size

    def read(self, frame: bytes, byteorder: Literal["big", "little"]) -> int:
        """Extract the raw field value, divided by ``scale``."""
        return int.from_bytes(frame[self.offset : self.end], byteorder) // self.scale


@dataclass(frozen=True)
class SetpointLayout:
    """Opcode and accepted level range for a two-byte setpoint command."""

    opcode: int
    min_level: int
    max_level: int


@dataclass(frozen=True)
class TelemetryLayout:
    """Field table for a fixed-length telemetry frame."""

    opcode: int
    length: int
    cadence: FieldSpec
    power: FieldSpec
    speed: FieldSpec
    byteorder: Literal["big", "little"] = "big"
    ignored_opcodes: frozenset[int] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        for spec in (self.cadence, self.power, self.speed):
            if spec.offset < 1 or spec.end > self.length:
                raise ValueError(f"field {spec} does not fit a {self.length}-byte frame")


class FrameCodec(Protocol):
    """Translation between domain values and wire frames for one variant."""

    def encode_setpoint(self, value: int) -> bytes: ...

    def decode_telemetry(self, data: bytes) -> TelemetrySample | None: ...


def validate_level(value: int, minimum: int, maximum: int) -> int:
    """Return ``value`` if it is an integer within ``[minimum, maximum]``."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidSetpoint(f"setpoint must be an integer, got {value!r}")
    if not minimum <= value <= maximum:
        raise InvalidSetpoint(f"setpoint {value} outside accepted range {minimum}..{maximum}")
    return value


class FixedFrameCodec:
    """Codec for vendor protocols built from fixed-layout frames.

    Setpoints are encoded as ``[opcode, level]``. Telemetry frames start with
    an opcode byte followed by unsigned fields located by the injected
    ``TelemetryLayout``.
    """

    def __init__(self, setpoint: SetpointLayout, telemetry: TelemetryLayout) -> None:
        if not 0 <= setpoint.min_level <= setpoint.max_level <= 0xFF:
            raise ValueError(f"invalid setpoint range in {setpoint}")
        self.setpoint = setpoint
        self.telemetry = telemetry

    def encode_setpoint(self, value: int) -> bytes:
        """Encode a level command, rejecting out-of-range levels."""
        level = validate_level(value, self.setpoint.min_level, self.setpoint.max_level)
        return bytes([self.setpoint.opcode, level])

    def decode_telemetry(self, data: bytes) -> TelemetrySample | None:
        """Decode a telemetry frame.

        Frames whose opcode is listed in ``ignored_opcodes`` (command echoes,
        keep-alives) carry no sample and decode to None.
        """
        frame = bytes(data)
        layout = self.telemetry
        if not frame:
            raise MalformedFrame("empty telemetry frame")
        if frame[0] in layout.ignored_opcodes:
            LOGGER.debug("Ignoring frame with opcode 0x%02x", frame[0])
            return None
        if frame[0] != layout.opcode:
            raise MalformedFrame(
                f"unexpected opcode 0x{frame[0]:02x}, expected 0x{layout.opcode:02x}"
            )
        if len(frame) != layout.length:
            raise MalformedFrame(
                f"telemetry frame is {len(frame)} bytes, expected {layout.length}: {frame.hex()}"
            )

        return TelemetrySample(
            cadence=layout.cadence.read(frame, layout.byteorder),
            power=layout.power.read(frame, layout.byteorder),
            speed=speed_from_raw(layout.speed.read(frame, layout.byteorder)),
        )
