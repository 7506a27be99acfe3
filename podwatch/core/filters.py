"""Match criteria handed to the radio for earbud-case beacons."""

from __future__ import annotations

from podwatch.core.model import MatchCriterion

APPLE_MANUFACTURER_ID = 76
PROXIMITY_PAIRING_PREFIX = bytes((0x07, 0x19))
TEMPLATE_LENGTH = 27


def build_filters() -> tuple[MatchCriterion, ...]:
    data = bytearray(TEMPLATE_LENGTH)
    mask = bytearray(TEMPLATE_LENGTH)
    for index, value in enumerate(PROXIMITY_PAIRING_PREFIX):
        data[index] = value
        mask[index] = 0xFF
    return (
        MatchCriterion(
            manufacturer_id=APPLE_MANUFACTURER_ID,
            data=bytes(data),
            mask=bytes(mask),
        ),
    )


def matches_any(filters: tuple[MatchCriterion, ...], manufacturer_data: dict[int, bytes]) -> bool:
    return any(criterion.matches(manufacturer_data) for criterion in filters)
