"""Stable public API for building tooling on top of podwatch.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from pathlib import Path

from podwatch.core.controller import ScanController
from podwatch.core.decoder import decode
from podwatch.core.errors import (
    ConfigLoadError,
    ConfigValidationError,
    DecodeError,
    InvalidLengthError,
    PodwatchError,
    PreconditionError,
    RadioError,
    ScanFailedError,
)
from podwatch.core.filters import build_filters
from podwatch.core.model import (
    NOT_APPLICABLE,
    UNKNOWN,
    Advertisement,
    BatteryReport,
    BondedDevice,
    Charge,
    ComponentStatus,
    DeliveryKind,
    Known,
    MatchCriterion,
    NotApplicable,
    PreconditionVerdict,
    ScanMode,
    ScanSettings,
    ScanState,
    Unknown,
)
from podwatch.core.presentation import LineSink, QueueSink
from podwatch.core.service import MonitorService
from podwatch.transports.base import Radio, ScanCallback
from podwatch.transports.bleak_radio import BleakRadio

__all__ = [
    "PodwatchError",
    "ConfigLoadError",
    "ConfigValidationError",
    "DecodeError",
    "InvalidLengthError",
    "PreconditionError",
    "RadioError",
    "ScanFailedError",
    "Advertisement",
    "BatteryReport",
    "BondedDevice",
    "Charge",
    "ComponentStatus",
    "DeliveryKind",
    "Known",
    "Unknown",
    "NotApplicable",
    "UNKNOWN",
    "NOT_APPLICABLE",
    "MatchCriterion",
    "PreconditionVerdict",
    "ScanMode",
    "ScanSettings",
    "ScanState",
    "LineSink",
    "QueueSink",
    "Radio",
    "ScanCallback",
    "BleakRadio",
    "ScanController",
    "build_filters",
    "decode",
    "Client",
]


class Client:
    """Public client for reading earbud battery status.

    A `Client` instance wraps config loading, the radio backend, and the
    scan controller behind a stable API intended for third-party tools
    (GUI/TUI/services/scripts). Output lines go to ``sink``; reports are
    also available as values from `decode_payload` and `last_report`.
    """

    def __init__(
        self,
        *,
        radio: Radio | None = None,
        sink: LineSink | None = None,
        config_path: Path | None = None,
    ) -> None:
        self._service = MonitorService(radio=radio, sink=sink, config_path=config_path)
        self._controller = self._service.build_controller()

    @property
    def runtime_warnings(self) -> tuple[str, ...]:
        return self._service.runtime_warnings

    @property
    def state(self) -> ScanState:
        return self._controller.state

    @property
    def last_report(self) -> BatteryReport | None:
        return self._controller.last_report

    def check_ready(self) -> PreconditionVerdict:
        return self._service.check_ready()

    def require_ready(self) -> None:
        """Raise `PreconditionError` listing every unmet scan precondition."""
        verdict = self._service.check_ready()
        if not verdict.ready:
            raise PreconditionError(verdict.describe())

    def start(self) -> PreconditionVerdict:
        return self._controller.start()

    def stop(self) -> None:
        self._controller.stop()

    def decode_payload(self, text: str) -> BatteryReport:
        return self._service.decode_payload(text)

    def list_bonded_devices(self) -> list[BondedDevice]:
        return self._service.bonded_devices()

    def close(self) -> None:
        self._service.close()
