"""Radio implementation on top of bleak's BleakScanner."""

from __future__ import annotations

import asyncio
import logging
import socket
import sys
import threading
from collections.abc import Sequence
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any

from podwatch.core.errors import RadioError
from podwatch.core.filters import matches_any
from podwatch.core.model import (
    Advertisement,
    BondedDevice,
    DeliveryKind,
    MatchCriterion,
    ScanFailureCode,
    ScanMode,
    ScanSettings,
)
from podwatch.transports import bluetoothctl
from podwatch.transports.base import ScanCallback

LOGGER = logging.getLogger(__name__)

_RADIO_PERMISSIONS = frozenset({"BLUETOOTH_CONNECT", "BLUETOOTH_SCAN"})
# Location gating only exists on mobile platforms.
_LOCATION_PERMISSIONS = frozenset({"ACCESS_COARSE_LOCATION", "ACCESS_FINE_LOCATION"})
_SCANNING_MODES = {
    ScanMode.LOW_POWER: "passive",
    ScanMode.BALANCED: "active",
    ScanMode.LOW_LATENCY: "active",
}


@dataclass
class _Session:
    filters: tuple[MatchCriterion, ...]
    settings: ScanSettings
    callback: ScanCallback
    scanner: Any = None
    flush_task: asyncio.Task[None] | None = None
    pending: list[Advertisement] = field(default_factory=list)

    def on_detection(self, device: Any, advertisement_data: Any) -> None:
        manufacturer_data = {
            company_id: bytes(data)
            for company_id, data in advertisement_data.manufacturer_data.items()
        }
        if not matches_any(self.filters, manufacturer_data):
            return
        advertisement = Advertisement(
            address=device.address,
            manufacturer_data=manufacturer_data,
            rssi=advertisement_data.rssi,
            name=advertisement_data.local_name or device.name,
        )
        if self.settings.report_delay > 0:
            self.pending.append(advertisement)
        else:
            self.callback.on_scan_result(DeliveryKind.ALL_MATCHES, advertisement)

    def flush(self) -> None:
        if not self.pending:
            return
        batch, self.pending = self.pending, []
        self.callback.on_batch_scan_results(batch)


class BleakRadio:
    """Scans on a private asyncio loop running in a daemon thread.

    ``start_scan`` and ``stop_scan`` only schedule work on that loop and
    return immediately; the loop runs them in order. Scan callbacks are
    delivered from the loop thread.
    """

    def __init__(self, *, adapter: str | None = None) -> None:
        self.adapter = adapter
        self._sessions: dict[int, _Session] = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._op_lock: asyncio.Lock | None = None
        self._guard = threading.Lock()

    def is_radio_enabled(self) -> bool:
        powered = bluetoothctl.controller_powered()
        if powered is None:
            # No BlueZ to ask; bleak reports a scan failure if the radio is off.
            LOGGER.debug("Controller power state unavailable, assuming enabled")
            return True
        return powered

    def has_permission(self, name: str) -> bool:
        if name in _LOCATION_PERMISSIONS:
            return True
        if name not in _RADIO_PERMISSIONS:
            return False
        if not sys.platform.startswith("linux"):
            return True
        if not hasattr(socket, "AF_BLUETOOTH"):
            return False
        result = bluetoothctl.run_command(["bluetoothctl", "show"])
        return result is not None and result.returncode == 0

    def enumerate_bonded_devices(self) -> list[BondedDevice]:
        return bluetoothctl.bonded_devices()

    def start_scan(
        self,
        filters: Sequence[MatchCriterion],
        settings: ScanSettings,
        callback: ScanCallback,
    ) -> None:
        try:
            from bleak import BleakScanner  # type: ignore
        except Exception as exc:  # pragma: no cover - import failure path
            raise RadioError("Scanning requires 'bleak'. Install dependency and retry.") from exc

        key = id(callback)
        if key in self._sessions:
            callback.on_scan_failed(int(ScanFailureCode.ALREADY_STARTED))
            return
        session = _Session(filters=tuple(filters), settings=settings, callback=callback)
        self._sessions[key] = session
        self._submit(self._start(session, BleakScanner))

    def stop_scan(self, callback: ScanCallback) -> None:
        session = self._sessions.pop(id(callback), None)
        if session is None:
            return
        self._submit(self._stop(session))

    def shutdown(self, timeout_s: float = 5.0) -> None:
        """Stop every session and the loop thread."""
        for key in list(self._sessions):
            self._submit(self._stop(self._sessions.pop(key)))
        with self._guard:
            loop, thread = self._loop, self._thread
        if loop is None or thread is None:
            return
        try:
            self._submit(self._drain()).result(timeout_s)
        except FutureTimeoutError:
            LOGGER.warning("Timed out waiting for BLE scanner to stop")
        with self._guard:
            self._loop = self._thread = None
            self._op_lock = None
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout_s)

    def _submit(self, coro: Any) -> Future[None]:
        return asyncio.run_coroutine_threadsafe(coro, self._ensure_loop())

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._guard:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(target=loop.run_forever, name="podwatch-radio", daemon=True)
                thread.start()
                self._loop, self._thread = loop, thread
            return self._loop

    def _lock(self) -> asyncio.Lock:
        if self._op_lock is None:
            self._op_lock = asyncio.Lock()
        return self._op_lock

    async def _start(self, session: _Session, scanner_cls: Any) -> None:
        async with self._lock():
            if self._sessions.get(id(session.callback)) is not session:
                return
            kwargs: dict[str, Any] = {"scanning_mode": _SCANNING_MODES[session.settings.mode]}
            adapter = session.settings.adapter or self.adapter
            if adapter:
                kwargs["adapter"] = adapter
            try:
                scanner = scanner_cls(detection_callback=session.on_detection, **kwargs)
                await scanner.start()
            except Exception as exc:
                if self._sessions.get(id(session.callback)) is not session:
                    LOGGER.info("Ignoring start failure of a replaced BLE scan: %s", exc)
                    return
                LOGGER.warning("BLE scan start failed: %s", exc)
                del self._sessions[id(session.callback)]
                session.callback.on_scan_failed(int(ScanFailureCode.INTERNAL_ERROR))
                return
            session.scanner = scanner
            if session.settings.report_delay > 0:
                session.flush_task = asyncio.create_task(self._flush_periodically(session))

    async def _drain(self) -> None:
        async with self._lock():
            pass

    async def _stop(self, session: _Session) -> None:
        async with self._lock():
            if session.flush_task is not None:
                session.flush_task.cancel()
                session.flush_task = None
            if session.scanner is None:
                return
            try:
                await session.scanner.stop()
            except Exception as exc:
                LOGGER.warning("BLE scan stop failed: %s", exc)
            session.scanner = None

    async def _flush_periodically(self, session: _Session) -> None:
        while True:
            await asyncio.sleep(session.settings.report_delay)
            session.flush()
