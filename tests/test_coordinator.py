from __future__ import annotations

import asyncio

import pytest
from conftest import BLADE_LED, FakeRadio, report

from saberctl.core.coordinator import CoordinatorState, SessionCoordinator
from saberctl.core.enumeration import EnumerationSession
from saberctl.core.errors import BusyError, DeviceSelectionError, PermissionDeniedError
from saberctl.core.model import GattService, OutcomeKind
from saberctl.core.permissions import Probe, grant_all_probe, static_probe
from saberctl.core.scan import ScanSession

REQUIRED = frozenset({"scan", "connect"})


def _coordinator(
    radio: FakeRadio,
    probe: Probe = grant_all_probe,
    *,
    scan_period_s: float = 90.0,
    poll_interval_s: float = 0.0,
) -> SessionCoordinator:
    scan = ScanSession(radio, probe, scan_period_s=scan_period_s)
    enumeration = EnumerationSession(radio, probe, poll_interval_s=poll_interval_s)
    return SessionCoordinator(scan, enumeration, REQUIRED)


def test_scan_pick_and_enumerate() -> None:
    radio = FakeRadio(service_script=[(), (GattService(BLADE_LED, 1),)])
    coordinator = _coordinator(radio)
    states: list[CoordinatorState] = []
    coordinator.subscribe(states.append)

    async def scenario():
        await coordinator.start_scan()
        radio.emit(report("AA:00:00:00:00:01", "Saber"))
        await coordinator.pick_device("AA:00:00:00:00:01")
        assert not radio.scanning
        return await coordinator.load_modules()

    outcome = asyncio.run(scenario())

    assert outcome.kind is OutcomeKind.READY
    assert [m.display_name for m in outcome.modules] == ["Blade LED"]
    assert states == [
        CoordinatorState.SCANNING,
        CoordinatorState.DEVICE_CHOSEN,
        CoordinatorState.ENUMERATING,
        CoordinatorState.DONE,
    ]
    assert coordinator.state is CoordinatorState.DONE
    assert coordinator.outcome is outcome


def test_device_callback_is_forwarded(radio: FakeRadio) -> None:
    coordinator = _coordinator(radio)
    seen: list[str] = []
    coordinator.on_device = lambda device: seen.append(device.address)

    async def scenario() -> None:
        await coordinator.start_scan()
        radio.emit(report("AA:00:00:00:00:01"))
        radio.emit(report("AA:00:00:00:00:01"))
        await coordinator.stop_scan()

    asyncio.run(scenario())
    assert seen == ["AA:00:00:00:00:01"]
    assert coordinator.state is CoordinatorState.IDLE
    assert set(coordinator.devices()) == {"AA:00:00:00:00:01"}


def test_pick_is_case_insensitive(radio: FakeRadio) -> None:
    coordinator = _coordinator(radio)

    async def scenario():
        await coordinator.start_scan()
        radio.emit(report("AA:BB:CC:00:00:01"))
        return await coordinator.pick_device("aa:bb:cc:00:00:01")

    device = asyncio.run(scenario())
    assert device.address == "AA:BB:CC:00:00:01"
    assert coordinator.chosen == device


def test_pick_unknown_device_is_rejected(radio: FakeRadio) -> None:
    coordinator = _coordinator(radio)

    with pytest.raises(DeviceSelectionError):
        asyncio.run(coordinator.pick_device("00:00:00:00:00:00"))


def test_load_modules_requires_chosen_device(radio: FakeRadio) -> None:
    coordinator = _coordinator(radio)

    with pytest.raises(DeviceSelectionError):
        asyncio.run(coordinator.load_modules())


def test_missing_permissions_surface_to_caller(radio: FakeRadio) -> None:
    coordinator = _coordinator(radio, static_probe({"connect"}))

    assert coordinator.missing_capabilities() == frozenset({"scan"})
    with pytest.raises(PermissionDeniedError) as exc:
        asyncio.run(coordinator.start_scan())

    assert exc.value.missing == frozenset({"scan"})
    assert coordinator.state is CoordinatorState.IDLE


def test_auto_stopped_scan_returns_to_idle(radio: FakeRadio) -> None:
    coordinator = _coordinator(radio, scan_period_s=0.01)

    async def scenario() -> None:
        await coordinator.start_scan()
        await asyncio.sleep(0.1)

    asyncio.run(scenario())
    assert coordinator.state is CoordinatorState.IDLE


def test_pick_while_enumerating_is_busy() -> None:
    radio = FakeRadio()
    coordinator = _coordinator(radio, poll_interval_s=0.01)

    async def scenario() -> None:
        await coordinator.start_scan()
        radio.emit(report("AA:00:00:00:00:01"))
        radio.emit(report("AA:00:00:00:00:02"))
        await coordinator.pick_device("AA:00:00:00:00:01")
        loading = asyncio.ensure_future(coordinator.load_modules())
        await asyncio.sleep(0.02)
        assert coordinator.state is CoordinatorState.ENUMERATING

        with pytest.raises(BusyError):
            await coordinator.pick_device("AA:00:00:00:00:02")
        with pytest.raises(BusyError):
            await coordinator.load_modules()

        await coordinator.enumeration.cancel()
        outcome = await loading
        assert outcome.kind is OutcomeKind.FAILED

    asyncio.run(scenario())
    assert coordinator.state is CoordinatorState.DONE
    assert coordinator.chosen is not None
    assert coordinator.chosen.address == "AA:00:00:00:00:01"


def test_new_device_can_be_picked_after_done() -> None:
    radio = FakeRadio(service_script=[(GattService(BLADE_LED, 1),)])
    coordinator = _coordinator(radio)

    async def scenario() -> None:
        await coordinator.start_scan()
        radio.emit(report("AA:00:00:00:00:01"))
        radio.emit(report("AA:00:00:00:00:02"))
        await coordinator.pick_device("AA:00:00:00:00:01")
        await coordinator.load_modules()
        await coordinator.pick_device("AA:00:00:00:00:02")
        assert coordinator.state is CoordinatorState.DEVICE_CHOSEN
        await coordinator.load_modules()

    asyncio.run(scenario())
    assert radio.connect_calls == ["handle", "handle"]
    assert coordinator.state is CoordinatorState.DONE


def test_service_read_error_settles_done_and_accepts_new_scan() -> None:
    radio = FakeRadio(services_error=ValueError("badly formed hexadecimal UUID string"))
    coordinator = _coordinator(radio)

    async def scenario():
        await coordinator.start_scan()
        radio.emit(report("AA:00:00:00:00:01"))
        await coordinator.pick_device("AA:00:00:00:00:01")
        outcome = await coordinator.load_modules()
        assert coordinator.state is CoordinatorState.DONE
        await coordinator.start_scan(fresh=True)
        return outcome

    outcome = asyncio.run(scenario())

    assert outcome.kind is OutcomeKind.FAILED
    assert coordinator.state is CoordinatorState.SCANNING
