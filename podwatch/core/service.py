"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import dataclasses
import socket
import sys
from pathlib import Path

from podwatch.core.config_loader import load_config
from podwatch.core.controller import ScanController
from podwatch.core.decoder import decode_hex
from podwatch.core.filters import build_filters
from podwatch.core.gate import PreconditionGate
from podwatch.core.model import BatteryReport, BondedDevice, MatchCriterion, PreconditionVerdict, ScanMode, ScanSettings
from podwatch.core.presentation import LineSink, QueueSink
from podwatch.transports.base import Radio
from podwatch.transports.bleak_radio import BleakRadio


class MonitorService:
    def __init__(
        self,
        *,
        radio: Radio | None = None,
        sink: LineSink | None = None,
        config_path: Path | None = None,
    ) -> None:
        loaded = load_config(config_path)
        self.settings = loaded.settings
        self.legacy_right_charge = loaded.legacy_right_charge
        self.config_source = loaded.source
        self.runtime_warnings = _runtime_warnings()
        self.radio = radio or BleakRadio(adapter=loaded.settings.adapter)
        self.sink = sink or QueueSink()
        self.controller: ScanController | None = None

    def scan_settings(
        self,
        *,
        mode: ScanMode | None = None,
        report_delay: float | None = None,
    ) -> ScanSettings:
        overrides: dict[str, object] = {}
        if mode is not None:
            overrides["mode"] = mode
        if report_delay is not None:
            overrides["report_delay"] = report_delay
        return dataclasses.replace(self.settings, **overrides)

    def build_controller(self, settings: ScanSettings | None = None) -> ScanController:
        if self.controller is not None:
            self.controller.close()
        self.controller = ScanController(
            self.radio,
            self.sink,
            gate=PreconditionGate(self.radio),
            filters=build_filters(),
            settings=settings or self.settings,
            legacy_right_charge=self.legacy_right_charge,
        )
        return self.controller

    def check_ready(self) -> PreconditionVerdict:
        return PreconditionGate(self.radio).check_ready()

    def filters(self) -> tuple[MatchCriterion, ...]:
        return build_filters()

    def bonded_devices(self) -> list[BondedDevice]:
        return self.radio.enumerate_bonded_devices()

    def decode_payload(self, text: str) -> BatteryReport:
        return decode_hex(text, legacy_right_charge=self.legacy_right_charge)

    def close(self) -> None:
        if self.controller is not None:
            self.controller.close()
        shutdown = getattr(self.radio, "shutdown", None)
        if shutdown is not None:
            shutdown()


def _runtime_warnings() -> tuple[str, ...]:
    warnings: list[str] = []
    if sys.platform.startswith("linux") and not hasattr(socket, "AF_BLUETOOTH"):
        warnings.append(
            "Python runtime missing AF_BLUETOOTH; BLE scanning permissions will be reported as missing."
        )
    return tuple(warnings)
