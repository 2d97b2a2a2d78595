"""Tests for the equipment state machine over the simulated transport."""

import asyncio
from decimal import Decimal

import pytest

from bikelink import (
    Cancelled,
    ConnectionState,
    DebugBike,
    FtmsBike,
    Iconsole0028Bike,
    InvalidSetpoint,
    InvalidState,
    LinkLost,
    NonBluetoothDevice,
    TelemetrySample,
    resolve,
)
from bikelink.equipment._iconsole import ICONSOLE_NOTIFY_UUID, ICONSOLE_WRITE_UUID
from bikelink.ftms import (
    FITNESS_MACHINE_CONTROL_POINT_UUID,
    FTMS_SERVICE_UUID,
    INDOOR_BIKE_DATA_UUID,
    encode_indoor_bike_data,
)
from bikelink.transport import SimulatedDevice, SimulatedTransport

TELEMETRY_FRAME = bytes([0x01, 0x00, 0x5A, 0x00, 0xC8, 0x00, 0x64])


async def _iconsole(transport, cancellation, config, parameter=None):
    bike = await resolve("28", parameter, cancellation, transport=transport, config=config)
    assert isinstance(bike, Iconsole0028Bike)
    return bike


@pytest.mark.unit
@pytest.mark.asyncio
async def test_connect_and_disconnect(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    assert bike.state is ConnectionState.DISCONNECTED

    assert await bike.connect() is True
    assert bike.state is ConnectionState.CONNECTED
    assert len(transport.open_handles) == 1

    assert await bike.disconnect() is True
    assert bike.state is ConnectionState.DISCONNECTED
    assert transport.open_handles == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_second_connect_is_invalid(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    assert await bike.connect()
    with pytest.raises(InvalidState):
        await bike.connect()
    assert bike.state is ConnectionState.CONNECTED
    assert len(transport.open_handles) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_disconnect_is_idempotent(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    assert await bike.disconnect() is True
    assert await bike.disconnect() is True
    assert bike.state is ConnectionState.DISCONNECTED
    assert transport.sessions == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_refused_connection_returns_false(
    transport, iconsole_device, cancellation, fast_config
):
    iconsole_device.accept_connections = False
    bike = await _iconsole(transport, cancellation, fast_config)
    assert await bike.connect() is False
    assert bike.state is ConnectionState.DISCONNECTED

    iconsole_device.accept_connections = True
    assert await bike.connect() is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancelled_connect_leaves_no_handle(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    cancellation.fire()
    with pytest.raises(Cancelled):
        await bike.connect()
    assert bike.state is ConnectionState.DISCONNECTED
    assert transport.open_handles == []


class _StubbornTransport(SimulatedTransport):
    """Transport whose open finishes even after being cancelled."""

    async def open(self, candidate):
        try:
            await asyncio.sleep(0.2)
        except asyncio.CancelledError:
            pass
        return await super().open(candidate)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_while_opening_closes_session(iconsole_device, cancellation, fast_config):
    transport = SimulatedTransport(devices=[iconsole_device], connect_delay=0.2)
    bike = await _iconsole(transport, cancellation, fast_config)
    asyncio.get_running_loop().call_later(0.05, cancellation.fire)

    with pytest.raises(Cancelled):
        await bike.connect()
    assert bike.state is ConnectionState.DISCONNECTED
    assert len(transport.sessions) == 1
    assert transport.open_handles == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_while_opening_closes_late_session(iconsole_device, cancellation, fast_config):
    transport = _StubbornTransport(devices=[iconsole_device])
    bike = await _iconsole(transport, cancellation, fast_config)
    asyncio.get_running_loop().call_later(0.05, cancellation.fire)

    with pytest.raises(Cancelled):
        await bike.connect()
    assert bike.state is ConnectionState.DISCONNECTED
    assert len(transport.sessions) == 1
    assert transport.open_handles == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_connect_timeout_closes_session(iconsole_device, cancellation, fast_config):
    transport = SimulatedTransport(devices=[iconsole_device], connect_delay=1.0)
    bike = await _iconsole(transport, cancellation, fast_config)

    assert await bike.connect() is False
    assert bike.state is ConnectionState.DISCONNECTED
    assert transport.open_handles == []
    assert bike.state is ConnectionState.DISCONNECTED
    assert transport.open_handles == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_read_requires_connection(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    with pytest.raises(InvalidState):
        await bike.read()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_read_without_notification_is_no_sample(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    await bike.connect()
    assert await bike.read() is None
    assert bike.state is ConnectionState.CONNECTED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_read_decodes_pending_notification(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    await bike.connect()
    transport.open_handles[0].notify(ICONSOLE_NOTIFY_UUID, TELEMETRY_FRAME)

    assert await bike.read() == TelemetrySample(cadence=90, power=200, speed=Decimal("1.00"))
    assert await bike.read() is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_read_keeps_most_recent_notification(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    await bike.connect()
    session = transport.open_handles[0]
    session.notify(ICONSOLE_NOTIFY_UUID, bytes([0x01, 0, 60, 0, 50, 0, 10]))
    session.notify(ICONSOLE_NOTIFY_UUID, bytes([0x01, 0, 61, 0, 51, 0, 11]))

    sample = await bike.read()
    assert sample is not None
    assert sample.cadence == 61


@pytest.mark.unit
@pytest.mark.asyncio
async def test_malformed_frame_is_dropped(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    await bike.connect()
    session = transport.open_handles[0]

    session.notify(ICONSOLE_NOTIFY_UUID, b"\x01\x02\x03")
    assert await bike.read() is None
    assert bike.state is ConnectionState.CONNECTED

    session.notify(ICONSOLE_NOTIFY_UUID, TELEMETRY_FRAME)
    assert await bike.read() is not None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancelled_read_stays_connected(transport, cancellation, fast_config):
    config = fast_config.model_copy(update={"read_timeout": 2.0})
    bike = await _iconsole(transport, cancellation, config)
    await bike.connect()
    loop = asyncio.get_running_loop()
    loop.call_later(0.05, cancellation.fire)

    started = loop.time()
    with pytest.raises(Cancelled):
        await bike.read()
    assert loop.time() - started < 1.0
    assert bike.state is ConnectionState.CONNECTED
    assert len(transport.open_handles) == 1

    assert await bike.disconnect()
    assert transport.open_handles == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_read_waits_up_to_read_timeout(transport, cancellation, fast_config):
    config = fast_config.model_copy(update={"read_timeout": 1.0})
    bike = await _iconsole(transport, cancellation, config)
    await bike.connect()
    session = transport.open_handles[0]
    asyncio.get_running_loop().call_later(
        0.02, session.notify, ICONSOLE_NOTIFY_UUID, TELEMETRY_FRAME
    )

    assert await bike.read() is not None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_link_loss_during_read(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    await bike.connect()
    transport.drop_link(transport.open_handles[0])

    with pytest.raises(LinkLost):
        await bike.read()
    assert bike.state is ConnectionState.DISCONNECTED
    assert transport.open_handles == []

    assert await bike.connect() is True
    assert len(transport.open_handles) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_set_level_writes_frame(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    await bike.connect()
    session = transport.open_handles[0]

    assert await bike.set_level(32) is True
    assert session.writes == [(ICONSOLE_WRITE_UUID, bytes([0x05, 0x20]))]
    # The console echo is not telemetry.
    assert await bike.read() is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_set_level_out_of_range_writes_nothing(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    await bike.connect()
    with pytest.raises(InvalidSetpoint):
        await bike.set_level(33)
    assert transport.open_handles[0].writes == []
    assert bike.state is ConnectionState.CONNECTED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_parameter_caps_level(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config, parameter="24")
    await bike.connect()
    assert await bike.set_level(24)
    with pytest.raises(InvalidSetpoint):
        await bike.set_level(25)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_set_level_requires_connection(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    with pytest.raises(InvalidState):
        await bike.set_level(5)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rejected_write_returns_false(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    await bike.connect()
    transport.reject_writes = True
    assert await bike.set_level(3) is False
    assert bike.state is ConnectionState.CONNECTED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_link_loss_during_set_level(transport, cancellation, fast_config):
    bike = await _iconsole(transport, cancellation, fast_config)
    await bike.connect()
    transport.drop_link(transport.open_handles[0])
    with pytest.raises(LinkLost):
        await bike.set_level(3)
    assert bike.state is ConnectionState.DISCONNECTED
    assert transport.open_handles == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_debug_bike_streams_telemetry(cancellation, fast_config):
    bike = await resolve("debug", None, cancellation, config=fast_config)
    assert isinstance(bike, DebugBike)
    assert await bike.connect()
    try:
        assert await bike.set_level(10)
        sample = None
        for _ in range(50):
            sample = await bike.read()
            if sample is not None and sample.power == 100:
                break
            await asyncio.sleep(fast_config.poll_interval)
        assert sample is not None
        assert (sample.cadence, sample.power, sample.speed) == (70, 100, Decimal("21.00"))
    finally:
        await bike.disconnect()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_non_bluetooth_device(cancellation):
    device = await resolve("device", 10, cancellation)
    assert isinstance(device, NonBluetoothDevice)
    with pytest.raises(InvalidState):
        await device.read()

    assert await device.connect()
    sample = await device.read()
    assert sample is not None
    assert sample.elapsed_time is not None

    assert await device.set_level(10)
    with pytest.raises(InvalidSetpoint):
        await device.set_level(0)
    with pytest.raises(InvalidSetpoint):
        await device.set_level(11)

    with pytest.raises(InvalidState):
        await device.connect()
    assert await device.disconnect()
    assert await device.disconnect()
    assert device.state is ConnectionState.DISCONNECTED


class _FtmsPeripheral:
    """Simulated FTMS bike answering control point requests."""

    def __init__(self, grant_control=True):
        self.grant_control = grant_control

    def device(self):
        return SimulatedDevice(
            name="KICKR BIKE 1234",
            address="AA:BB:CC:DD:EE:01",
            service_uuids=(FTMS_SERVICE_UUID,),
            on_write=self.on_write,
            response_endpoints=(FITNESS_MACHINE_CONTROL_POINT_UUID,),
        )

    def on_write(self, session, endpoint_id, data):
        if endpoint_id != FITNESS_MACHINE_CONTROL_POINT_UUID:
            return
        result = 0x01 if self.grant_control or data[0] != 0x00 else 0x05
        session.notify(FITNESS_MACHINE_CONTROL_POINT_UUID, bytes([0x80, data[0], result]))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_ftms_bike_session(cancellation, fast_config):
    transport = SimulatedTransport(devices=[_FtmsPeripheral().device()])
    bike = await resolve("ftms", "kickr", cancellation, transport=transport, config=fast_config)
    assert isinstance(bike, FtmsBike)

    assert await bike.connect()
    session = transport.open_handles[0]
    assert session.writes == [(FITNESS_MACHINE_CONTROL_POINT_UUID, b"\x00")]

    session.notify(
        INDOOR_BIKE_DATA_UUID,
        encode_indoor_bike_data(speed_kph=28.5, cadence_rpm=88, power_w=210),
    )
    assert await bike.read() == TelemetrySample(cadence=88, power=210, speed=Decimal("28.50"))

    assert await bike.set_level(150)
    assert await bike.set_target_cadence(90)
    assert session.writes[1:] == [
        (FITNESS_MACHINE_CONTROL_POINT_UUID, b"\x05\x96\x00"),
        (FITNESS_MACHINE_CONTROL_POINT_UUID, b"\x14\xb4\x00"),
    ]

    assert await bike.disconnect()
    assert session.writes[-1] == (FITNESS_MACHINE_CONTROL_POINT_UUID, b"\x08\x01")
    assert transport.open_handles == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_ftms_bike_control_refused(cancellation, fast_config):
    transport = SimulatedTransport(devices=[_FtmsPeripheral(grant_control=False).device()])
    bike = await resolve("ftms", None, cancellation, transport=transport, config=fast_config)
    assert await bike.connect() is False
    assert bike.state is ConnectionState.DISCONNECTED
    assert transport.open_handles == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_ftms_bike_without_control_response(cancellation, fast_config):
    device = _FtmsPeripheral().device()
    device.on_write = None
    transport = SimulatedTransport(devices=[device])
    bike = await resolve("ftms", None, cancellation, transport=transport, config=fast_config)
    assert await bike.connect() is False
    assert transport.open_handles == []
