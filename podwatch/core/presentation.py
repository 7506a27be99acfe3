"""Line-oriented presentation channel between the scan path and its consumer.

Callbacks run on the radio's delivery thread; the consumer (the CLI main
thread) owns stdout. Every outbound line is a message put on a queue.
"""

from __future__ import annotations

import queue
from collections.abc import Iterator
from typing import Protocol

from podwatch.core.model import BatteryReport, ComponentStatus


class LineSink(Protocol):
    def emit(self, line: str) -> None:
        """Append one line of text to the presentation surface."""


class QueueSink:
    def __init__(self) -> None:
        self._queue: queue.Queue[str] = queue.Queue()

    def emit(self, line: str) -> None:
        self._queue.put(line)

    def drain(self, timeout_s: float = 0.0) -> Iterator[str]:
        """Yield queued lines, waiting up to ``timeout_s`` for the first one."""
        try:
            line = self._queue.get(timeout=timeout_s) if timeout_s > 0 else self._queue.get_nowait()
        except queue.Empty:
            return
        yield line
        while True:
            try:
                yield self._queue.get_nowait()
            except queue.Empty:
                return


def _component_lines(title: str, component: ComponentStatus) -> list[str]:
    return [
        f"\t{title}:",
        f"\t\tConnected: {component.connected}",
        f"\t\tCharge: {component.charge}",
    ]


def format_report(report: BatteryReport) -> list[str]:
    lines = ["Charges:"]
    lines += _component_lines("Case", report.case)
    lines += _component_lines("Left", report.left)
    lines += _component_lines("Right", report.right)
    lines.append(f"\tFlipped: {report.flipped}")
    return lines


def format_summary(report: BatteryReport) -> str:
    return f"L {report.left.charge} | R {report.right.charge} | C {report.case.charge}"
