"""Core data models used across decoder, controller, radio backends, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum


@dataclass(frozen=True)
class Known:
    percent: int

    def __str__(self) -> str:
        return f"{self.percent}%"


@dataclass(frozen=True)
class Unknown:
    """Charge for a connected component reporting a reserved status."""

    def __str__(self) -> str:
        return "unknown"


@dataclass(frozen=True)
class NotApplicable:
    """Charge for a disconnected component."""

    def __str__(self) -> str:
        return "n/a"


Charge = Known | Unknown | NotApplicable

UNKNOWN = Unknown()
NOT_APPLICABLE = NotApplicable()


@dataclass(frozen=True)
class ComponentStatus:
    status: int
    connected: bool
    charge: Charge

    @property
    def reserved(self) -> bool:
        return 11 <= self.status <= 14


@dataclass(frozen=True)
class BatteryReport:
    case: ComponentStatus
    left: ComponentStatus
    right: ComponentStatus
    flipped: bool
    raw_hex: str = field(default="", compare=False)

    @property
    def reserved_components(self) -> tuple[str, ...]:
        return tuple(
            name
            for name, component in (("case", self.case), ("left", self.left), ("right", self.right))
            if component.reserved
        )


@dataclass(frozen=True)
class Advertisement:
    address: str
    manufacturer_data: dict[int, bytes]
    rssi: int | None = None
    name: str | None = None


class DeliveryKind(IntEnum):
    ALL_MATCHES = 1
    FIRST_MATCH = 2
    MATCH_LOST = 4
    BATCHED = -1


class ScanMode(str, Enum):
    LOW_POWER = "low_power"
    BALANCED = "balanced"
    LOW_LATENCY = "low_latency"


class ScanFailureCode(IntEnum):
    ALREADY_STARTED = 1
    APPLICATION_REGISTRATION_FAILED = 2
    INTERNAL_ERROR = 3
    FEATURE_UNSUPPORTED = 4


@dataclass(frozen=True)
class ScanSettings:
    mode: ScanMode = ScanMode.LOW_LATENCY
    report_delay: float = 2.0
    adapter: str | None = None


@dataclass(frozen=True)
class MatchCriterion:
    manufacturer_id: int
    data: bytes
    mask: bytes

    def matches(self, manufacturer_data: dict[int, bytes]) -> bool:
        payload = manufacturer_data.get(self.manufacturer_id)
        if payload is None or len(payload) < len(self.data):
            return False
        return all(
            payload[i] & self.mask[i] == self.data[i] & self.mask[i]
            for i in range(len(self.data))
        )


class ScanState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    FAILED = "failed"


@dataclass(frozen=True)
class ScanSession:
    state: ScanState
    filters: tuple[MatchCriterion, ...] = ()
    settings: ScanSettings | None = None
    failure_code: int | None = None


@dataclass(frozen=True)
class RadioDisabled:
    def __str__(self) -> str:
        return "Bluetooth disabled."


@dataclass(frozen=True)
class MissingPermission:
    name: str

    def __str__(self) -> str:
        return f"Missing permission: {self.name}"


NotReadyReason = RadioDisabled | MissingPermission


@dataclass(frozen=True)
class PreconditionVerdict:
    reasons: frozenset[NotReadyReason] = frozenset()

    @property
    def ready(self) -> bool:
        return not self.reasons

    def describe(self) -> list[str]:
        # Radio state first, then permissions by name.
        ordered = sorted(
            self.reasons,
            key=lambda r: (isinstance(r, MissingPermission), getattr(r, "name", "")),
        )
        return [str(reason) for reason in ordered]


@dataclass(frozen=True)
class BondedDevice:
    name: str
    address: str
