"""Decoding of the proximity-pairing manufacturer payload into battery facts.

The payload is read through its uppercase hex rendering: every hex
character is one nibble, numbered 0..53 from the start of the string.

    nibble 10   flip flag, bit 0x02 clear means left/right are swapped
    nibble 12   left status (right status when not flipped)
    nibble 13   right status (left status when not flipped)
    nibble 15   case status

Status values 0..9 are tenths of a charge (reported as the midpoint of the
band), 10 is full, 15 is disconnected and 11..14 are reserved.
"""

from __future__ import annotations

import logging
import re

from podwatch.core.errors import DecodeError, InvalidLengthError
from podwatch.core.model import NOT_APPLICABLE, UNKNOWN, BatteryReport, Charge, ComponentStatus, Known

PAYLOAD_LENGTH = 27
_FLIP_NIBBLE = 10
_FLIP_BIT = 0x02
_CHANNEL_A_NIBBLE = 12
_CHANNEL_B_NIBBLE = 13
_CASE_NIBBLE = 15
_STATUS_FULL = 10
_STATUS_DISCONNECTED = 15
_HEX_SEPARATORS_RE = re.compile(r"[\s:\-]")
LOGGER = logging.getLogger(__name__)


def _charge_for(status: int) -> Charge:
    if status == _STATUS_FULL:
        return Known(100)
    if status < _STATUS_FULL:
        return Known(status * 10 + 5)
    if status == _STATUS_DISCONNECTED:
        return NOT_APPLICABLE
    return UNKNOWN


def _component(status: int, charge: Charge | None = None) -> ComponentStatus:
    return ComponentStatus(
        status=status,
        connected=status != _STATUS_DISCONNECTED,
        charge=_charge_for(status) if charge is None else charge,
    )


def decode(payload: bytes, *, legacy_right_charge: bool = False) -> BatteryReport:
    """Decode a 27-byte manufacturer payload.

    With ``legacy_right_charge`` the right component's charge for statuses
    below 10 is computed from the left status, matching readings produced
    by older tooling.
    """
    if len(payload) != PAYLOAD_LENGTH:
        raise InvalidLengthError(len(payload), PAYLOAD_LENGTH)

    hex_string = payload.hex().upper()
    flipped = int(hex_string[_FLIP_NIBBLE], 16) & _FLIP_BIT == 0
    left_status = int(hex_string[_CHANNEL_A_NIBBLE if flipped else _CHANNEL_B_NIBBLE], 16)
    right_status = int(hex_string[_CHANNEL_B_NIBBLE if flipped else _CHANNEL_A_NIBBLE], 16)
    case_status = int(hex_string[_CASE_NIBBLE], 16)

    right_charge: Charge | None = None
    if legacy_right_charge and right_status < _STATUS_FULL:
        right_charge = Known(left_status * 10 + 5)

    report = BatteryReport(
        case=_component(case_status),
        left=_component(left_status),
        right=_component(right_status, right_charge),
        flipped=flipped,
        raw_hex=hex_string,
    )
    for name in report.reserved_components:
        LOGGER.info("Reserved status nibble for %s in payload %s", name, hex_string)
    return report


def decode_hex(text: str, *, legacy_right_charge: bool = False) -> BatteryReport:
    """Decode a payload given as hex text, e.g. from a capture log."""
    normalized = _HEX_SEPARATORS_RE.sub("", text.strip())
    if normalized.lower().startswith("0x"):
        normalized = normalized[2:]
    try:
        payload = bytes.fromhex(normalized)
    except ValueError as exc:
        raise DecodeError(f"Invalid hex payload '{text}': {exc}") from exc
    return decode(payload, legacy_right_charge=legacy_right_charge)
