"""Host adapter queries through BlueZ's ``bluetoothctl``."""

from __future__ import annotations

import re
import subprocess
from collections.abc import Sequence

from podwatch.core.errors import RadioError
from podwatch.core.model import BondedDevice

_DEVICE_LINE_RE = re.compile(r"^Device\s+([0-9A-F:]{17})\s+(.+)$", re.IGNORECASE)
_POWERED_RE = re.compile(r"^\s*Powered:\s*(yes|no)\s*$", re.IGNORECASE | re.MULTILINE)


def run_command(cmd: Sequence[str]) -> subprocess.CompletedProcess[str] | None:
    try:
        return subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        return None


def controller_powered() -> bool | None:
    """Return the default controller's power state, or None if it cannot be queried."""
    result = run_command(["bluetoothctl", "show"])
    if result is None or result.returncode != 0:
        return None
    match = _POWERED_RE.search(result.stdout)
    if not match:
        return None
    return match.group(1).lower() == "yes"


def bonded_devices() -> list[BondedDevice]:
    commands = [
        ["bluetoothctl", "devices", "Paired"],
        ["bluetoothctl", "paired-devices"],
    ]

    command_errors: list[str] = []
    for cmd in commands:
        result = run_command(cmd)
        if result is None:
            continue
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            if stderr:
                command_errors.append(f"{' '.join(cmd)} -> {stderr}")
            continue

        seen: set[str] = set()
        devices: list[BondedDevice] = []
        for line in result.stdout.splitlines():
            match = _DEVICE_LINE_RE.match(line.strip())
            if not match:
                continue
            address, name = match.group(1).upper(), match.group(2).strip()
            if address in seen:
                continue
            seen.add(address)
            devices.append(BondedDevice(name=name, address=address))
        return devices

    if command_errors:
        joined = " | ".join(command_errors)
        raise RadioError(
            f"Listing bonded devices failed. Ensure a working D-Bus/BlueZ session. Details: {joined}"
        )
    return []
