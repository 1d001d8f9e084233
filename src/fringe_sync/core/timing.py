"""Wait budgets bracketing projector settle and camera exposure windows."""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from fringe_sync.core.models import PatternSet


@dataclass(slots=True)
class TimingConfig:
    """
    Empirically tuned defaults. Validate against the target hardware.
    """
    margin_ms: int = 10
    min_wait_ms: int = 50
    camera_buffer_ms: int = 500
    camera_max_settle_ms: int = 5000
    camera_default_settle_ms: int = 1000
    start_delay_ms: int = 200

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "TimingConfig":
        data = data or {}
        base = cls()
        return cls(
            margin_ms=int(data.get("margin_ms", base.margin_ms)),
            min_wait_ms=int(data.get("min_wait_ms", base.min_wait_ms)),
            camera_buffer_ms=int(data.get("camera_buffer_ms", base.camera_buffer_ms)),
            camera_max_settle_ms=int(data.get("camera_max_settle_ms", base.camera_max_settle_ms)),
            camera_default_settle_ms=int(data.get("camera_default_settle_ms", base.camera_default_settle_ms)),
            start_delay_ms=int(data.get("start_delay_ms", base.start_delay_ms)),
        )


def projector_wait_ms(pattern_set: PatternSet, cfg: TimingConfig) -> int:
    """
    Worst-case time for the projector to finish pre-exposure, exposure and
    post-exposure of one pattern, plus the safety margin.
    """
    ms = pattern_set.timing_us // 1000
    if ms < 1:
        ms = 1
    return max(int(cfg.min_wait_ms), ms + int(cfg.margin_ms))


def camera_settle_ms(exposure_us: Optional[float], cfg: TimingConfig) -> int:
    """Time to let the camera integrate and hand off a frame, capped."""
    if exposure_us is None or exposure_us < 0:
        return int(cfg.camera_default_settle_ms)
    ms = int(float(exposure_us) / 1000.0) + int(cfg.camera_buffer_ms)
    return min(ms, int(cfg.camera_max_settle_ms))
