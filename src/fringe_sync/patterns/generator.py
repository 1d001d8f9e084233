"""Fringe pattern generator."""

from __future__ import annotations

import numpy as np

from fringe_sync.core.models import FringeImage, FringeParameters, Orientation


class FringePatternGenerator:
    """
    Generate N-step phase-shifted sinusoidal fringe patterns.

    Output order is fixed: N vertical images (fringes varying along x) with
    increasing phase, then N horizontal images (varying along y). The pattern
    table builder and the frame sink both rely on this order.
    """

    def generate(self, params: FringeParameters) -> list[FringeImage]:
        width = int(params.width)
        height = int(params.height)
        n = int(params.steps)
        if width <= 0 or height <= 0 or int(params.frequency) <= 0 or n <= 0:
            return []

        rng = np.random.default_rng(params.seed) if params.noise_std > 0 else None
        images: list[FringeImage] = []
        for orientation in ("vertical", "horizontal"):
            for k in range(n):
                pixels = self._render(params, orientation, k, rng)
                images.append(FringeImage(pixels=pixels, orientation=orientation, step=k, steps=n))
        return images

    def generate_sequence(self, params: FringeParameters, orientation: Orientation) -> list[FringeImage]:
        """The N images of one orientation only."""
        return [img for img in self.generate(params) if img.orientation == orientation]

    @staticmethod
    def _render(
        params: FringeParameters,
        orientation: Orientation,
        k: int,
        rng: np.random.Generator | None,
    ) -> np.ndarray:
        width = int(params.width)
        height = int(params.height)
        n = int(params.steps)
        intensity = float(np.clip(params.intensity, 0.0, 255.0))
        offset = float(np.clip(params.offset, 0.0, 255.0))
        phase = 2.0 * np.pi * (k / n)

        if orientation == "vertical":
            t = np.arange(width, dtype=np.float64) / width
            line = offset + intensity * np.sin(2.0 * np.pi * params.frequency * t + phase)
            values = np.broadcast_to(line[None, :], (height, width))
        else:
            # One value per row, shared across the whole row.
            t = np.arange(height, dtype=np.float64) / height
            line = offset + intensity * np.sin(2.0 * np.pi * params.frequency * t + phase)
            values = np.broadcast_to(line[:, None], (height, width))

        if rng is not None:
            values = values + rng.normal(0.0, float(params.noise_std), size=(height, width))

        # Round half away from zero; values are clipped to >= 0 first.
        img = np.floor(np.clip(values, 0.0, 255.0) + 0.5)
        img_u8 = np.clip(img, 0, 255).astype(np.uint8)
        img_u8.flags.writeable = False
        return img_u8

    def pattern_metadata(self, params: FringeParameters) -> dict:
        """
        Metadata describing the phase convention of a generated sequence.
        """
        return {
            "steps": int(params.steps),
            "phase_step_rad": float(2.0 * np.pi / max(int(params.steps), 1)),
            "frequency_semantics": "cycles_across_dimension",
            "cycles": int(params.frequency),
            "period_px_vertical": float(params.width) / max(int(params.frequency), 1),
            "period_px_horizontal": float(params.height) / max(int(params.frequency), 1),
            "order": ["vertical"] * int(params.steps) + ["horizontal"] * int(params.steps),
            "model": "offset + intensity * sin(2*pi*f*t + 2*pi*k/N)",
        }


def generate_fringes(params: FringeParameters) -> list[FringeImage]:
    return FringePatternGenerator().generate(params)
