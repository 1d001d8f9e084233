"""
Core data models for fringe generation, pattern tables and capture runs.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, asdict, field
from enum import Enum
from pathlib import Path
from typing import Literal, Tuple, Dict, Any, Optional

import numpy as np


Orientation = Literal["vertical", "horizontal"]


class Illumination(Enum):
    RED = "red"
    GREEN = "green"
    BLUE = "blue"


def orientation_letter(orientation: Orientation) -> str:
    return "V" if orientation == "vertical" else "H"


@dataclass(slots=True)
class FringeParameters:
    """
    Parameters for one N-step phase-shift fringe sequence.

    width/height must match the projector DMD resolution. intensity is the
    sine amplitude and offset the DC bias, both clamped to [0, 255].
    """
    width: int
    height: int
    frequency: int
    intensity: float = 100.0
    offset: float = 128.0
    noise_std: float = 0.0
    steps: int = 4
    seed: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def N(self) -> int:
        return int(self.steps)

    @property
    def resolution(self) -> Tuple[int, int]:
        return int(self.width), int(self.height)


@dataclass(frozen=True, slots=True)
class FringeImage:
    """Single-channel 8-bit fringe image, read-only once generated."""
    pixels: np.ndarray
    orientation: Orientation
    step: int
    steps: int

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def phase_rad(self) -> float:
        return 2.0 * math.pi * self.step / self.steps


@dataclass(frozen=True, slots=True)
class PatternTiming:
    """
    Per-set projector timing window (microseconds) and illumination.
    """
    exposure_us: int = 4000
    pre_exposure_us: int = 3000
    post_exposure_us: int = 3000
    illumination: Illumination = Illumination.BLUE
    invert: bool = False
    one_bit: bool = False

    @property
    def total_us(self) -> int:
        return int(self.pre_exposure_us + self.exposure_us + self.post_exposure_us)


@dataclass(frozen=True, slots=True)
class PatternSet:
    """One orientation's worth of projector pattern-table configuration."""
    exposure_us: int
    pre_exposure_us: int
    post_exposure_us: int
    illumination: Illumination
    invert_patterns: bool
    is_vertical: bool
    is_one_bit: bool
    pattern_array_count: int
    images: Tuple[FringeImage, ...]

    @property
    def orientation(self) -> Orientation:
        return "vertical" if self.is_vertical else "horizontal"

    @property
    def timing_us(self) -> int:
        return int(self.pre_exposure_us + self.exposure_us + self.post_exposure_us)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exposure_us": self.exposure_us,
            "pre_exposure_us": self.pre_exposure_us,
            "post_exposure_us": self.post_exposure_us,
            "illumination": self.illumination.value,
            "invert_patterns": self.invert_patterns,
            "is_vertical": self.is_vertical,
            "is_one_bit": self.is_one_bit,
            "pattern_array_count": self.pattern_array_count,
            "image_count": len(self.images),
        }


@dataclass(frozen=True, slots=True)
class PatternTable:
    """Ordered pattern sets, uploaded once per acquisition session."""
    sets: Tuple[PatternSet, ...]

    @property
    def total_patterns(self) -> int:
        return sum(len(s.images) for s in self.sets)

    @property
    def steps_per_orientation(self) -> int:
        return len(self.sets[0].images) if self.sets else 0

    def set_for_step(self, index: int) -> PatternSet:
        if index < 0:
            raise IndexError(index)
        start = 0
        for pattern_set in self.sets:
            end = start + len(pattern_set.images)
            if index < end:
                return pattern_set
            start = end
        raise IndexError(index)

    def orientation_for_step(self, index: int) -> Orientation:
        return "vertical" if index < self.steps_per_orientation else "horizontal"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_patterns": self.total_patterns,
            "sets": [s.to_dict() for s in self.sets],
        }


@dataclass(frozen=True, slots=True)
class FrameInfo:
    """Geometry the camera hands to the frame callback."""
    width: int
    height: int
    frame_number: Optional[int] = None


@dataclass(slots=True)
class FrameRecord:
    frame_index: int
    orientation: Orientation
    width: int
    height: int
    pixels: np.ndarray
    save_path: Optional[Path]


@dataclass(slots=True)
class CameraSettings:
    """
    Camera acquisition settings applied before grabbing starts.
    """
    exposure_us: Optional[float] = 10000.0
    gain: Optional[float] = 5.0
    frame_rate: Optional[float] = 10.0
    trigger_delay_us: int = 0
    exposure_auto: bool = False
    gain_auto: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class SessionResult:
    ok: bool
    state: str
    total_patterns: int
    steps_completed: int = 0
    triggers_sent: int = 0
    failed_triggers: list[int] = field(default_factory=list)
    frames_received: int = 0
    frames_saved: int = 0
    frames_dropped: int = 0
    error: Optional[str] = None

    def summary(self) -> str:
        return f"captured {self.frames_saved} of {self.total_patterns} expected frames"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["summary"] = self.summary()
        return data


@dataclass(slots=True)
class RunMeta:
    """
    Metadata persisted to meta.json for each run.
    """
    run_id: str
    params: Dict[str, Any]
    started_at: str
    finished_at: str | None
    status: str
    error: str | None
    device_info: Dict[str, Any]
    total_frames: int
    saved_frames: int
    pattern_table: Dict[str, Any] = field(default_factory=dict)
    session: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
