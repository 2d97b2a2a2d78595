"""Stateless frame codecs shared by the equipment variants."""

from ._frames import (
    FieldSpec,
    FixedFrameCodec,
    FrameCodec,
    SetpointLayout,
    TelemetryLayout,
    TelemetrySample,
    speed_from_raw,
    validate_level,
)

__all__ = [
    "FieldSpec",
    "FixedFrameCodec",
    "FrameCodec",
    "SetpointLayout",
    "TelemetryLayout",
    "TelemetrySample",
    "speed_from_raw",
    "validate_level",
]
