from __future__ import annotations

import asyncio
import socket
import subprocess
import sys
import threading
from types import SimpleNamespace

import pytest

from podwatch.core.controller import ScanController
from podwatch.core.filters import build_filters
from podwatch.core.model import DeliveryKind, ScanFailureCode, ScanMode, ScanSession, ScanSettings, ScanState
from podwatch.transports import bleak_radio, bluetoothctl
from podwatch.transports.bleak_radio import BleakRadio, _Session


class RecordingCallback:
    def __init__(self) -> None:
        self.results: list[tuple[DeliveryKind, object]] = []
        self.batches: list[list[object]] = []
        self.failures: list[int] = []

    def on_scan_result(self, kind, advertisement) -> None:
        self.results.append((kind, advertisement))

    def on_batch_scan_results(self, advertisements) -> None:
        self.batches.append(list(advertisements))

    def on_scan_failed(self, code: int) -> None:
        self.failures.append(code)


class FakeScanner:
    instances: list[FakeScanner] = []
    events: list[tuple[str, int]] = []
    fail_start = False

    def __init__(self, detection_callback, **kwargs) -> None:
        self.detection_callback = detection_callback
        self.kwargs = kwargs
        self.started = False
        self.stopped = False
        FakeScanner.instances.append(self)

    async def start(self) -> None:
        if FakeScanner.fail_start:
            raise OSError("adapter not found")
        self.started = True
        FakeScanner.events.append(("start", FakeScanner.instances.index(self)))

    async def stop(self) -> None:
        self.stopped = True
        FakeScanner.events.append(("stop", FakeScanner.instances.index(self)))


@pytest.fixture(autouse=True)
def _reset_scanner() -> None:
    FakeScanner.instances = []
    FakeScanner.events = []
    FakeScanner.fail_start = False


def _detection(payload: bytes, address: str = "AA:BB:CC:11:22:33"):
    device = SimpleNamespace(address=address, name="AirPods")
    advertisement_data = SimpleNamespace(manufacturer_data={76: bytearray(payload)}, rssi=-42, local_name=None)
    return device, advertisement_data


def _matching_payload() -> bytes:
    return bytes([0x07, 0x19]) + bytes(25)


def _session(callback: RecordingCallback, report_delay: float) -> _Session:
    return _Session(filters=build_filters(), settings=ScanSettings(report_delay=report_delay), callback=callback)


def test_immediate_delivery_when_report_delay_is_zero() -> None:
    callback = RecordingCallback()
    session = _session(callback, 0)
    session.on_detection(*_detection(_matching_payload()))
    assert len(callback.results) == 1
    kind, advertisement = callback.results[0]
    assert kind is DeliveryKind.ALL_MATCHES
    assert advertisement.manufacturer_data[76] == _matching_payload()
    assert advertisement.rssi == -42
    assert advertisement.name == "AirPods"


def test_non_matching_advertisements_are_ignored() -> None:
    callback = RecordingCallback()
    session = _session(callback, 0)
    session.on_detection(*_detection(bytes([0x10, 0x05]) + bytes(25)))
    session.on_detection(*_detection(bytes([0x07, 0x19])))
    assert callback.results == []


def test_batched_delivery_flushes_pending() -> None:
    callback = RecordingCallback()
    session = _session(callback, 2)
    session.on_detection(*_detection(_matching_payload(), "AA:BB:CC:11:22:33"))
    session.on_detection(*_detection(_matching_payload(), "AA:BB:CC:44:55:66"))
    assert callback.results == []
    session.flush()
    session.flush()
    assert len(callback.batches) == 1
    assert [adv.address for adv in callback.batches[0]] == ["AA:BB:CC:11:22:33", "AA:BB:CC:44:55:66"]


def test_start_and_stop_drive_the_scanner() -> None:
    radio = BleakRadio(adapter="hci1")
    callback = RecordingCallback()
    session = _Session(
        filters=build_filters(),
        settings=ScanSettings(mode=ScanMode.LOW_POWER, report_delay=0),
        callback=callback,
    )
    radio._sessions[id(callback)] = session

    async def scenario() -> None:
        await radio._start(session, FakeScanner)
        await radio._stop(session)

    asyncio.run(scenario())
    scanner = FakeScanner.instances[0]
    assert scanner.kwargs == {"scanning_mode": "passive", "adapter": "hci1"}
    assert scanner.started and scanner.stopped
    assert callback.failures == []


def test_start_failure_is_reported_through_callback() -> None:
    FakeScanner.fail_start = True
    radio = BleakRadio()
    callback = RecordingCallback()
    session = _session(callback, 2)
    radio._sessions[id(callback)] = session

    asyncio.run(radio._start(session, FakeScanner))
    assert callback.failures == [ScanFailureCode.INTERNAL_ERROR]
    assert id(callback) not in radio._sessions
    assert session.flush_task is None


def test_stopped_session_is_not_started() -> None:
    radio = BleakRadio()
    callback = RecordingCallback()
    session = _session(callback, 0)

    asyncio.run(radio._start(session, FakeScanner))
    assert FakeScanner.instances == []


def test_stop_scan_without_registration_is_noop() -> None:
    radio = BleakRadio()
    radio.stop_scan(RecordingCallback())
    assert radio._loop is None


def test_location_permissions_are_granted() -> None:
    radio = BleakRadio()
    assert radio.has_permission("ACCESS_COARSE_LOCATION")
    assert radio.has_permission("ACCESS_FINE_LOCATION")
    assert not radio.has_permission("CAMERA")


def test_radio_permissions_need_bluez_on_linux(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setattr(socket, "AF_BLUETOOTH", 31, raising=False)
    monkeypatch.setattr(
        bluetoothctl,
        "run_command",
        lambda cmd: subprocess.CompletedProcess(cmd, 1, stdout="", stderr="No default controller available"),
    )
    assert not BleakRadio().has_permission("BLUETOOTH_SCAN")


def test_radio_permissions_granted_off_linux(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys, "platform", "darwin")
    assert BleakRadio().has_permission("BLUETOOTH_CONNECT")


def test_radio_enabled_defaults_to_true_when_unknown(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(bleak_radio.bluetoothctl, "controller_powered", lambda: None)
    assert BleakRadio().is_radio_enabled() is True
    monkeypatch.setattr(bleak_radio.bluetoothctl, "controller_powered", lambda: False)
    assert BleakRadio().is_radio_enabled() is False


def test_start_failure_of_replaced_session_is_not_reported() -> None:
    radio = BleakRadio()
    callback = RecordingCallback()
    old = _session(callback, 0)
    new = _session(callback, 0)
    radio._sessions[id(callback)] = old

    class ReplacedWhileStarting(FakeScanner):
        async def start(self) -> None:
            # stop_scan(old) + start_scan(new) land while old is still starting.
            radio._sessions[id(callback)] = new
            raise OSError("adapter busy")

    asyncio.run(radio._start(old, ReplacedWhileStarting))
    assert callback.failures == []
    assert radio._sessions[id(callback)] is new


def test_stale_start_failure_keeps_controller_scanning() -> None:
    class NullSink:
        def emit(self, line: str) -> None:
            pass

    radio = BleakRadio()
    controller = ScanController(radio, NullSink())
    controller.session = ScanSession(state=ScanState.SCANNING)
    old = _Session(filters=build_filters(), settings=ScanSettings(report_delay=0), callback=controller)
    new = _Session(filters=build_filters(), settings=ScanSettings(report_delay=0), callback=controller)
    radio._sessions[id(controller)] = old

    class ReplacedWhileStarting(FakeScanner):
        async def start(self) -> None:
            radio._sessions[id(controller)] = new
            raise OSError("adapter busy")

    asyncio.run(radio._start(old, ReplacedWhileStarting))
    assert controller.state is ScanState.SCANNING


def test_public_scan_lifecycle_on_loop_thread(monkeypatch: pytest.MonkeyPatch) -> None:
    import bleak

    monkeypatch.setattr(bleak, "BleakScanner", FakeScanner)
    batch_arrived = threading.Event()

    class BatchCallback(RecordingCallback):
        def on_batch_scan_results(self, advertisements) -> None:
            super().on_batch_scan_results(advertisements)
            batch_arrived.set()

    radio = BleakRadio()
    callback = BatchCallback()
    settings = ScanSettings(report_delay=0.05)
    filters = build_filters()

    radio.start_scan(filters, settings, callback)
    radio.start_scan(filters, settings, callback)
    assert callback.failures == [ScanFailureCode.ALREADY_STARTED]

    radio.stop_scan(callback)
    radio.start_scan(filters, settings, callback)
    radio._submit(radio._drain()).result(2.0)

    assert FakeScanner.events == [("start", 0), ("stop", 0), ("start", 1)]
    live = [scanner for scanner in FakeScanner.instances if scanner.started and not scanner.stopped]
    assert live == [FakeScanner.instances[1]]

    loop = radio._loop
    assert loop is not None
    loop.call_soon_threadsafe(FakeScanner.instances[1].detection_callback, *_detection(_matching_payload()))
    assert batch_arrived.wait(2.0)
    assert [adv.address for adv in callback.batches[0]] == ["AA:BB:CC:11:22:33"]
    assert callback.results == []

    thread = radio._thread
    assert thread is not None
    radio.shutdown(timeout_s=2.0)
    assert not thread.is_alive()
    assert radio._loop is None
    assert FakeScanner.events[-1] == ("stop", 1)
    assert all(scanner.stopped for scanner in FakeScanner.instances)
