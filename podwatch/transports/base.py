"""Radio interfaces."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from podwatch.core.model import Advertisement, BondedDevice, DeliveryKind, MatchCriterion, ScanSettings


class ScanCallback(Protocol):
    def on_scan_result(self, kind: DeliveryKind, advertisement: Advertisement) -> object:
        """Handle one advertisement delivered as soon as it was seen."""

    def on_batch_scan_results(self, advertisements: Sequence[Advertisement]) -> None:
        """Handle advertisements coalesced over the report delay window."""

    def on_scan_failed(self, code: int) -> None:
        """Handle a scan that could not be started or was aborted by the radio."""


class Radio(Protocol):
    def is_radio_enabled(self) -> bool:
        """Return whether the Bluetooth controller is powered."""

    def has_permission(self, name: str) -> bool:
        """Return whether the named access permission is granted."""

    def start_scan(
        self,
        filters: Sequence[MatchCriterion],
        settings: ScanSettings,
        callback: ScanCallback,
    ) -> None:
        """Register ``callback`` for advertisements matching ``filters``."""

    def stop_scan(self, callback: ScanCallback) -> None:
        """Remove the registration for ``callback``; no-op if none exists."""

    def enumerate_bonded_devices(self) -> list[BondedDevice]:
        """Return devices paired with the host."""
