"""Scan preconditions: radio power and access permissions."""

from __future__ import annotations

from podwatch.core.model import MissingPermission, NotReadyReason, PreconditionVerdict, RadioDisabled
from podwatch.transports.base import Radio

REQUIRED_PERMISSIONS = (
    "BLUETOOTH_CONNECT",
    "BLUETOOTH_SCAN",
    "ACCESS_COARSE_LOCATION",
    "ACCESS_FINE_LOCATION",
)


class PreconditionGate:
    def __init__(self, radio: Radio, permissions: tuple[str, ...] = REQUIRED_PERMISSIONS) -> None:
        self.radio = radio
        self.permissions = permissions

    def check_ready(self) -> PreconditionVerdict:
        # Every deficiency is collected so the caller can report them together.
        reasons: set[NotReadyReason] = set()
        if not self.radio.is_radio_enabled():
            reasons.add(RadioDisabled())
        for name in self.permissions:
            if not self.radio.has_permission(name):
                reasons.add(MissingPermission(name))
        return PreconditionVerdict(reasons=frozenset(reasons))

    def permission_lines(self, verdict: PreconditionVerdict) -> list[str]:
        return [
            f"\t{name}: {'FAIL' if MissingPermission(name) in verdict.reasons else 'OK'}"
            for name in self.permissions
        ]
