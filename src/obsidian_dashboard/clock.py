"""Full-screen flip clock face."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ClockFace:
    hours: str
    minutes: str
    meridiem: str


def clock_face(now: datetime) -> ClockFace:
    """12-hour rendering of *now*: hour 0 reads ``12``, both fields zero-padded."""
    meridiem = "PM" if now.hour >= 12 else "AM"
    hours = now.hour % 12 or 12
    return ClockFace(hours=f"{hours:02d}", minutes=f"{now.minute:02d}", meridiem=meridiem)
