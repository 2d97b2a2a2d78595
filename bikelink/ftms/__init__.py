"""FTMS (Fitness Machine Service) indoor bike codec."""

from ._ftms import (
    FITNESS_MACHINE_CONTROL_POINT_UUID,
    FTMS_SERVICE_UUID,
    INDOOR_BIKE_DATA_UUID,
    ControlPointOpcode,
    ControlPointResult,
    FtmsIndoorBikeCodec,
    StopCode,
    decode_control_point_response,
    encode_indoor_bike_data,
    encode_request_control,
    encode_stop,
)

__all__ = [
    "FITNESS_MACHINE_CONTROL_POINT_UUID",
    "FTMS_SERVICE_UUID",
    "INDOOR_BIKE_DATA_UUID",
    "ControlPointOpcode",
    "ControlPointResult",
    "FtmsIndoorBikeCodec",
    "StopCode",
    "decode_control_point_response",
    "encode_indoor_bike_data",
    "encode_request_control",
    "encode_stop",
]
