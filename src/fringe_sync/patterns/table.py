"""Arrange generated fringes into the projector's pattern table."""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from fringe_sync.core.errors import PatternTableError
from fringe_sync.core.models import (
    FringeImage,
    Orientation,
    PatternSet,
    PatternTable,
    PatternTiming,
)


class PatternTableBuilder:
    """
    Split 2N fringes into a vertical set followed by a horizontal set.
    """

    def build(
        self,
        images: Sequence[FringeImage],
        timing: PatternTiming,
        device_width: int,
        device_height: int,
        steps: Optional[int] = None,
        overrides: Optional[Mapping[Orientation, PatternTiming]] = None,
    ) -> PatternTable:
        n = len(images) // 2 if steps is None else int(steps)
        if n <= 0:
            raise PatternTableError("Pattern table needs at least one phase step")
        if len(images) != 2 * n:
            raise PatternTableError(f"Expected {2 * n} images for {n} steps, got {len(images)}")
        for i, img in enumerate(images):
            if img.pixels.shape[:2] != (int(device_height), int(device_width)):
                raise PatternTableError(
                    f"Image {i} is {img.width}x{img.height}, device is {device_width}x{device_height}"
                )

        overrides = overrides or {}
        self._check_timing(timing)
        for t in overrides.values():
            self._check_timing(t)

        vertical = self._make_set(
            images[:n],
            overrides.get("vertical", timing),
            is_vertical=True,
            pattern_array_count=int(device_width),
        )
        horizontal = self._make_set(
            images[n:],
            overrides.get("horizontal", timing),
            is_vertical=False,
            pattern_array_count=int(device_height),
        )
        return PatternTable(sets=(vertical, horizontal))

    @staticmethod
    def _make_set(
        images: Sequence[FringeImage],
        timing: PatternTiming,
        is_vertical: bool,
        pattern_array_count: int,
    ) -> PatternSet:
        return PatternSet(
            exposure_us=int(timing.exposure_us),
            pre_exposure_us=int(timing.pre_exposure_us),
            post_exposure_us=int(timing.post_exposure_us),
            illumination=timing.illumination,
            invert_patterns=bool(timing.invert),
            is_vertical=is_vertical,
            is_one_bit=bool(timing.one_bit),
            pattern_array_count=pattern_array_count,
            images=tuple(images),
        )

    @staticmethod
    def _check_timing(timing: PatternTiming) -> None:
        for name in ("exposure_us", "pre_exposure_us", "post_exposure_us"):
            if int(getattr(timing, name)) <= 0:
                raise PatternTableError(f"{name} must be positive")
