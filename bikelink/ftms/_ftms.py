from __future__ import annotations

from enum import IntEnum
from struct import pack, unpack_from

from .._errors import MalformedFrame
from ..codec import TelemetrySample, speed_from_raw, validate_level


def bt16(uuid16: int) -> str:
    """Convert a 16-bit SIG UUID to a 128-bit UUID string."""
    return f"0000{uuid16:04x}-0000-1000-8000-00805f9b34fb"


# FTMS Service and characteristics
FTMS_SERVICE_UUID = bt16(0x1826)

INDOOR_BIKE_DATA_UUID = bt16(0x2AD2)
FITNESS_MACHINE_CONTROL_POINT_UUID = bt16(0x2AD9)

# FTMS Indoor Bike Data flags (bits indicate which optional fields are present)
BIKE_FLAG_MORE_DATA = 0x0001  # Bit 0: instantaneous speed absent when set
BIKE_FLAG_AVERAGE_SPEED = 0x0002
BIKE_FLAG_CADENCE = 0x0004
BIKE_FLAG_AVERAGE_CADENCE = 0x0008
BIKE_FLAG_DISTANCE = 0x0010
BIKE_FLAG_RESISTANCE = 0x0020
BIKE_FLAG_POWER = 0x0040
BIKE_FLAG_AVERAGE_POWER = 0x0080
BIKE_FLAG_ENERGY = 0x0100
BIKE_FLAG_HEART_RATE = 0x0200
BIKE_FLAG_METABOLIC_EQUIVALENT = 0x0400
BIKE_FLAG_ELAPSED_TIME = 0x0800
BIKE_FLAG_REMAINING_TIME = 0x1000

DEFAULT_MAX_POWER = 2000
MAX_CADENCE = 0xFFFF // 2


class ControlPointOpcode(IntEnum):
    """Fitness Machine Control Point opcodes used by the client."""

    REQUEST_CONTROL = 0x00
    SET_TARGET_POWER = 0x05
    STOP_OR_PAUSE = 0x08
    SET_TARGET_CADENCE = 0x14
    RESPONSE_CODE = 0x80


class ControlPointResult(IntEnum):
    """Fitness Machine Control Point result codes."""

    SUCCESS = 0x01
    OP_CODE_NOT_SUPPORTED = 0x02
    INVALID_PARAMETER = 0x03
    OPERATION_FAILED = 0x04
    CONTROL_NOT_PERMITTED = 0x05


class StopCode(IntEnum):
    """Parameter of the Stop or Pause control point procedure."""

    STOP = 0x01
    PAUSE = 0x02


def encode_request_control() -> bytes:
    """Encode the Request Control procedure."""
    return pack("<B", ControlPointOpcode.REQUEST_CONTROL)


def encode_stop(code: StopCode = StopCode.STOP) -> bytes:
    """Encode the Stop or Pause procedure."""
    return pack("<BB", ControlPointOpcode.STOP_OR_PAUSE, code)


def decode_control_point_response(data: bytes) -> tuple[int, ControlPointResult]:
    """Decode a control point indication into (request opcode, result)."""
    if len(data) < 3 or data[0] != ControlPointOpcode.RESPONSE_CODE:
        raise MalformedFrame(f"not a control point response: {bytes(data).hex()}")
    try:
        result = ControlPointResult(data[2])
    except ValueError as e:
        raise MalformedFrame(f"unknown control point result 0x{data[2]:02x}") from e
    return data[1], result


# Size in bytes of each optional Indoor Bike Data field, in transmission order.
_OPTIONAL_FIELDS: tuple[tuple[int, int], ...] = (
    (BIKE_FLAG_AVERAGE_SPEED, 2),
    (BIKE_FLAG_CADENCE, 2),
    (BIKE_FLAG_AVERAGE_CADENCE, 2),
    (BIKE_FLAG_DISTANCE, 3),
    (BIKE_FLAG_RESISTANCE, 2),
    (BIKE_FLAG_POWER, 2),
    (BIKE_FLAG_AVERAGE_POWER, 2),
    (BIKE_FLAG_ENERGY, 5),
    (BIKE_FLAG_HEART_RATE, 1),
    (BIKE_FLAG_METABOLIC_EQUIVALENT, 1),
    (BIKE_FLAG_ELAPSED_TIME, 2),
    (BIKE_FLAG_REMAINING_TIME, 2),
)


def _split_indoor_bike_data(frame: bytes) -> tuple[int, int | None, dict[int, bytes]]:
    """Split Indoor Bike Data into flags, raw speed and raw optional fields."""
    if len(frame) < 2:
        raise MalformedFrame(f"indoor bike data too short: {frame.hex()}")
    (flags,) = unpack_from("<H", frame, 0)
    pos = 2

    speed_raw = None
    if not flags & BIKE_FLAG_MORE_DATA:
        if len(frame) < pos + 2:
            raise MalformedFrame(f"indoor bike data truncated at speed: {frame.hex()}")
        (speed_raw,) = unpack_from("<H", frame, pos)
        pos += 2

    values: dict[int, bytes] = {}
    for flag, size in _OPTIONAL_FIELDS:
        if not flags & flag:
            continue
        if len(frame) < pos + size:
            raise MalformedFrame(f"indoor bike data truncated at flag 0x{flag:04x}: {frame.hex()}")
        values[flag] = frame[pos : pos + size]
        pos += size

    if pos != len(frame):
        raise MalformedFrame(
            f"indoor bike data has {len(frame) - pos} unexpected trailing bytes: {frame.hex()}"
        )
    return flags, speed_raw, values


class FtmsIndoorBikeCodec:
    """Codec for the standard FTMS Indoor Bike profile.

    Setpoints are target power in watts. Telemetry is the Indoor Bike Data
    characteristic; fragments flagged "More Data" carry no speed and decode
    to None.
    """

    def __init__(self, min_power: int = 0, max_power: int = DEFAULT_MAX_POWER) -> None:
        if not 0 <= min_power <= max_power <= 0x7FFF:
            raise ValueError(f"invalid power range {min_power}..{max_power}")
        self.min_power = min_power
        self.max_power = max_power

    def encode_setpoint(self, value: int) -> bytes:
        """Encode Set Target Power (sint16, 1 W resolution)."""
        watts = validate_level(value, self.min_power, self.max_power)
        return pack("<Bh", ControlPointOpcode.SET_TARGET_POWER, watts)

    def encode_target_cadence(self, rpm: int) -> bytes:
        """Encode Set Target Cadence (uint16, 0.5 rpm resolution)."""
        rpm = validate_level(rpm, 0, MAX_CADENCE)
        return pack("<BH", ControlPointOpcode.SET_TARGET_CADENCE, rpm * 2)

    def decode_telemetry(self, data: bytes) -> TelemetrySample | None:
        """Decode an Indoor Bike Data notification."""
        _, speed_raw, values = _split_indoor_bike_data(bytes(data))
        if speed_raw is None:
            return None

        def unsigned(flag: int) -> int | None:
            raw = values.get(flag)
            return int.from_bytes(raw, "little") if raw is not None else None

        def signed(flag: int) -> int | None:
            raw = values.get(flag)
            return int.from_bytes(raw, "little", signed=True) if raw is not None else None

        cadence_raw = unsigned(BIKE_FLAG_CADENCE)
        power = signed(BIKE_FLAG_POWER)
        resistance = signed(BIKE_FLAG_RESISTANCE)
        energy = values.get(BIKE_FLAG_ENERGY)
        return TelemetrySample(
            cadence=(cadence_raw or 0) // 2,
            power=max(0, power or 0),
            speed=speed_from_raw(speed_raw),
            distance=unsigned(BIKE_FLAG_DISTANCE),
            resistance=max(0, resistance) if resistance is not None else None,
            # Total energy is the first uint16 of the expended energy group.
            calories=int.from_bytes(energy[:2], "little") if energy is not None else None,
            heart_rate=unsigned(BIKE_FLAG_HEART_RATE),
            elapsed_time=unsigned(BIKE_FLAG_ELAPSED_TIME),
        )


def encode_indoor_bike_data(
    *,
    speed_kph: float,
    cadence_rpm: float | None = None,
    power_w: int | None = None,
    heart_rate_bpm: int | None = None,
) -> bytes:
    """Encode Indoor Bike Data with optional cadence, power and heart rate.

    Produces notifications in the layout an FTMS bike sends, for feeding
    ``SimulatedTransport`` sessions.
    """
    flags = 0
    payload = bytearray(pack("<HH", flags, max(0, min(round(speed_kph * 100), 0xFFFF))))
    if cadence_rpm is not None:
        flags |= BIKE_FLAG_CADENCE
        payload += pack("<H", max(0, min(round(cadence_rpm * 2), 0xFFFF)))
    if power_w is not None:
        flags |= BIKE_FLAG_POWER
        payload += pack("<h", max(-32768, min(int(power_w), 32767)))
    if heart_rate_bpm is not None:
        flags |= BIKE_FLAG_HEART_RATE
        payload += pack("<B", max(0, min(int(heart_rate_bpm), 0xFF)))
    payload[0:2] = pack("<H", flags)
    return bytes(payload)
