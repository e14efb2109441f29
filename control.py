"""
Control snapshots from the gesture producer.

The producer (hand tracker, mouse, remote client) publishes whole snapshots
into a SnapshotSlot at its own cadence; the tick loop reads the newest one
without ever waiting for it.
"""

from __future__ import annotations

from dataclasses import dataclass
import enum
import math
import time

from params import DEFAULT


def _clamp(x: float, a: float, b: float) -> float:
    return a if x < a else (b if x > b else x)


def _finite(value, default: float = 0.0) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    return v if math.isfinite(v) else default


def _flag(value) -> bool:
    """JSON truthiness for flags: true, or a non-zero number. Strings never count."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return math.isfinite(value) and value != 0
    return False


class Gesture(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    NEUTRAL = "NEUTRAL"

    @classmethod
    def parse(cls, value) -> "Gesture":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.NEUTRAL


@dataclass(frozen=True)
class ControlSignal:
    present: bool = False
    gesture: Gesture = Gesture.NEUTRAL
    x: float = 0.0          # -1..1, right positive
    y: float = 0.0          # -1..1, up positive
    openness: float = 0.0   # 0..1 (how spread the hand is)
    pinch: float = 0.0      # 0..1, informational

    def __post_init__(self):
        object.__setattr__(self, "gesture", Gesture.parse(self.gesture))
        object.__setattr__(self, "x", _clamp(_finite(self.x), -1.0, 1.0))
        object.__setattr__(self, "y", _clamp(_finite(self.y), -1.0, 1.0))
        object.__setattr__(self, "openness", _clamp(_finite(self.openness), 0.0, 1.0))
        object.__setattr__(self, "pinch", _clamp(_finite(self.pinch), 0.0, 1.0))
        object.__setattr__(self, "present", bool(self.present))

    @classmethod
    def absent(cls) -> "ControlSignal":
        return cls()

    @property
    def position(self) -> tuple[float, float]:
        return (self.x, self.y)

    @property
    def active(self) -> bool:
        """A hand is present and doing something other than resting."""
        return self.present and self.gesture is not Gesture.NEUTRAL

    @classmethod
    def from_dict(cls, data) -> "ControlSignal":
        """Parse the JSON wire form. Unknown or missing fields get defaults."""
        if not isinstance(data, dict):
            return cls.absent()
        if not _flag(data.get("present", data.get("isPresent", False))):
            return cls.absent()

        pos = data.get("position") or {}
        if isinstance(pos, dict):
            x, y = pos.get("x", 0.0), pos.get("y", 0.0)
        elif isinstance(pos, (list, tuple)) and len(pos) >= 2:
            x, y = pos[0], pos[1]
        else:
            x, y = 0.0, 0.0

        return cls(
            present=True,
            gesture=Gesture.parse(data.get("gesture", Gesture.NEUTRAL)),
            x=x,
            y=y,
            openness=data.get("openness", data.get("spreadFactor", 0.0)),
            pinch=data.get("pinch", data.get("pinchDistance", 0.0)),
        )

    def to_dict(self) -> dict:
        return {
            "present": self.present,
            "gesture": self.gesture.value,
            "position": {"x": self.x, "y": self.y},
            "openness": self.openness,
            "pinch": self.pinch,
        }


class SnapshotSlot:
    """
    Single-slot, last-writer-wins holder for the newest ControlSignal.

    publish() replaces the previous snapshot wholesale. latest() never blocks;
    a snapshot older than ``stale_after`` seconds reads as absent so a producer
    that went quiet degrades to idle behaviour.
    """

    def __init__(self, stale_after: float | None = None, clock=time.monotonic):
        self.stale_after = DEFAULT.control_stale_after if stale_after is None else float(stale_after)
        self._clock = clock
        # One tuple assignment is the handoff.
        self._entry = (ControlSignal.absent(), clock())

    def publish(self, signal: ControlSignal) -> None:
        self._entry = (signal, self._clock())

    def clear(self) -> None:
        self.publish(ControlSignal.absent())

    def latest(self) -> ControlSignal:
        signal, stamp = self._entry
        if self.stale_after > 0 and signal.present and (self._clock() - stamp) > self.stale_after:
            return ControlSignal.absent()
        return signal
