from __future__ import annotations

import logging
from typing import Any

from .._config import EquipmentConfig
from .._errors import MalformedFrame
from .._identity import EquipmentIdentity
from ..ftms import (
    FITNESS_MACHINE_CONTROL_POINT_UUID,
    FTMS_SERVICE_UUID,
    INDOOR_BIKE_DATA_UUID,
    ControlPointOpcode,
    ControlPointResult,
    FtmsIndoorBikeCodec,
    decode_control_point_response,
    encode_request_control,
    encode_stop,
)
from ..transport import ConnectionHandle
from ._base import ConnectionState
from ._gatt import GattEquipment
from ._registry import register_equipment

LOGGER = logging.getLogger(__name__)


@register_equipment("ftms")
class FtmsBike(GattEquipment):
    """Indoor bike speaking the standard Fitness Machine Service.

    The factory parameter is an optional advertised-name filter. Levels are
    target power in watts; target cadence is available separately.
    """

    command_endpoint = FITNESS_MACHINE_CONTROL_POINT_UUID
    telemetry_endpoint = INDOOR_BIKE_DATA_UUID
    command_response = True

    @classmethod
    def identity_for(cls, parameter: Any, config: EquipmentConfig) -> EquipmentIdentity:
        name_filter = str(parameter) if parameter else config.name_filter
        return EquipmentIdentity(
            type_tag=cls.type_tag,
            name_filter=name_filter,
            rssi_threshold=config.rssi_threshold,
            service_uuid=FTMS_SERVICE_UUID,
            scan_timeout=config.scan_timeout,
        )

    @classmethod
    def codec_for(cls, parameter: Any) -> FtmsIndoorBikeCodec:
        return FtmsIndoorBikeCodec()

    async def _after_open(self, handle: ConnectionHandle) -> bool:
        """Request control of the machine; the session is declined otherwise."""
        control_point = await self._transport.notifications(handle, self.command_endpoint)
        if not await self._send(handle, encode_request_control()):
            return False

        response = await control_point.poll(self._config.connect_timeout)
        if response is None:
            LOGGER.warning("%r did not answer the control request", self)
            return False
        try:
            opcode, result = decode_control_point_response(response)
        except MalformedFrame as e:
            LOGGER.warning("%r sent an invalid control response: %s", self, e)
            return False

        if opcode != ControlPointOpcode.REQUEST_CONTROL or result is not ControlPointResult.SUCCESS:
            LOGGER.warning("%r refused control: %s", self, result.name)
            return False
        return True

    async def _before_close(self, handle: ConnectionHandle) -> None:
        await self._send(handle, encode_stop())

    async def set_target_cadence(self, rpm: int) -> bool:
        """Command a target cadence in rpm."""
        self._require_state(ConnectionState.CONNECTED, "set target cadence on")
        codec = self._codec
        assert isinstance(codec, FtmsIndoorBikeCodec)
        return await self._write_command(codec.encode_target_cadence(rpm))
