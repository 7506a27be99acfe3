"""Scan session lifecycle and the single advertisement decode pipeline."""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence

from podwatch.core.decoder import decode
from podwatch.core.errors import DecodeError, PodwatchError, ScanFailedError
from podwatch.core.filters import APPLE_MANUFACTURER_ID, build_filters
from podwatch.core.gate import PreconditionGate
from podwatch.core.model import (
    Advertisement,
    BatteryReport,
    DeliveryKind,
    MatchCriterion,
    PreconditionVerdict,
    RadioDisabled,
    ScanFailureCode,
    ScanSession,
    ScanSettings,
    ScanState,
)
from podwatch.core.presentation import LineSink, format_report
from podwatch.transports.base import Radio

LOGGER = logging.getLogger(__name__)


class ScanController:
    """Owns one scan session at a time and turns advertisements into reports.

    The controller is the callback registered with the radio. ``start``,
    ``stop`` and the radio's callbacks may run on different threads; state
    transitions are serialised on an internal lock.
    """

    def __init__(
        self,
        radio: Radio,
        sink: LineSink,
        *,
        gate: PreconditionGate | None = None,
        filters: tuple[MatchCriterion, ...] | None = None,
        settings: ScanSettings | None = None,
        legacy_right_charge: bool = False,
    ) -> None:
        self.radio = radio
        self.sink = sink
        self.gate = gate or PreconditionGate(radio)
        self.filters = filters if filters is not None else build_filters()
        self.settings = settings or ScanSettings()
        self.legacy_right_charge = legacy_right_charge
        self.session = ScanSession(state=ScanState.IDLE)
        self.decoded = 0
        self.last_report: BatteryReport | None = None
        self._lock = threading.RLock()

    @property
    def state(self) -> ScanState:
        return self.session.state

    def _log(self, msg: str) -> None:
        self.sink.emit(msg)

    def _transition(self, session: ScanSession) -> None:
        LOGGER.debug("Scan session %s -> %s", self.session.state.value, session.state.value)
        self.session = session

    def start(self) -> PreconditionVerdict:
        """Start a fresh scan session, replacing any previous registration."""
        with self._lock:
            self._log("Starting...")
            verdict = self.gate.check_ready()
            self._log("Bluetooth disabled." if RadioDisabled() in verdict.reasons else "Bluetooth enabled.")
            self._log("Checking permission...")
            for line in self.gate.permission_lines(verdict):
                self._log(line)
            if not verdict.ready:
                self.stop()
                self._log("Cannot start scanning:")
                for reason in verdict.describe():
                    self._log(f"\t{reason}")
                return verdict

            self.radio.stop_scan(self)
            self._transition(ScanSession(state=ScanState.IDLE))
            self._list_bonded_devices()
            self._log("Start scanning....")
            self._transition(ScanSession(state=ScanState.SCANNING, filters=self.filters, settings=self.settings))
            try:
                self.radio.start_scan(self.filters, self.settings, self)
            except PodwatchError as exc:
                code = int(ScanFailureCode.INTERNAL_ERROR)
                self._log("Scan failed:")
                self._log(f"\terrorCode: {code}")
                self._fail(code)
                raise ScanFailedError(code, str(exc)) from exc
            return verdict

    def stop(self) -> None:
        with self._lock:
            if self.session.state is ScanState.IDLE:
                return
            self.radio.stop_scan(self)
            self._transition(ScanSession(state=ScanState.IDLE))
            self._log("Scanning stopped.")

    def close(self) -> None:
        self.stop()

    def _list_bonded_devices(self) -> None:
        try:
            devices = self.radio.enumerate_bonded_devices()
        except PodwatchError as exc:
            LOGGER.warning("Could not list bonded devices: %s", exc)
            return
        self._log("Bonded devices:")
        for device in devices:
            self._log(f"\t{device.name} ({device.address})")

    def _fail(self, code: int) -> None:
        self._transition(
            ScanSession(
                state=ScanState.FAILED,
                filters=self.session.filters,
                settings=self.session.settings,
                failure_code=code,
            )
        )

    def on_scan_result(self, kind: DeliveryKind | int, advertisement: Advertisement) -> BatteryReport | None:
        self._log("Scan result:")
        self._log(f"\tcallbackType: {int(kind)}")
        rssi = "" if advertisement.rssi is None else f" rssi={advertisement.rssi}"
        self._log(f"\tresult: {advertisement.address}{rssi}")

        payload = advertisement.manufacturer_data.get(APPLE_MANUFACTURER_ID)
        if payload is None:
            self._log("No manufacturer data.")
            return None
        try:
            report = decode(bytes(payload), legacy_right_charge=self.legacy_right_charge)
        except DecodeError as exc:
            self._log(str(exc))
            return None

        self._log(f"Manufacturer data (hex): {report.raw_hex}")
        for line in format_report(report):
            self._log(line)
        for name in report.reserved_components:
            self._log(f"\tUnknown status nibble for {name}")
        with self._lock:
            self.decoded += 1
            self.last_report = report
        return report

    def on_batch_scan_results(self, advertisements: Sequence[Advertisement]) -> None:
        self._log("Got batch scan results.")
        for advertisement in advertisements:
            self.on_scan_result(DeliveryKind.BATCHED, advertisement)

    def on_scan_failed(self, code: int) -> None:
        with self._lock:
            self._log("Scan failed:")
            self._log(f"\terrorCode: {code}")
            if self.session.state is ScanState.SCANNING:
                self._fail(code)
