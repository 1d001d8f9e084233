"""Pygame-based fullscreen projector emulating a pattern table in video mode."""

from __future__ import annotations

import os
import time
from typing import Optional, Sequence

import numpy as np
import pygame

from fringe_sync.core.errors import DeviceConnectionError
from fringe_sync.core.models import PatternSet
from fringe_sync.projector.base import ProjectorBase


class PygameProjector(ProjectorBase):
    """
    Projector driven over HDMI. The pattern table lives in host memory and
    step() blits the next image to a fullscreen window.
    """

    def __init__(self, screen_index: int | None = None, fullscreen: bool = True) -> None:
        self.screen_index = screen_index
        self.fullscreen = fullscreen
        self.screen: Optional[pygame.Surface] = None
        self._opened = False
        self._sets: list[PatternSet] = []
        self._surfaces: list[pygame.Surface] = []
        self._position = -1
        self._stepping = False
        self._led = (1.0, 1.0, 1.0)

    def connect(self) -> bool:
        if self._opened:
            return True
        if self.screen_index is not None:
            os.environ["SDL_VIDEO_FULLSCREEN_DISPLAY"] = str(self.screen_index)
        try:
            pygame.display.init()
            flags = pygame.FULLSCREEN if self.fullscreen else 0
            try:
                self.screen = pygame.display.set_mode((0, 0), flags, vsync=1)
            except TypeError:
                self.screen = pygame.display.set_mode((0, 0), flags)
        except pygame.error as exc:
            raise DeviceConnectionError(
                "Pygame display init failed. If you see EGL_BAD_ACCESS, try setting "
                "SDL_VIDEODRIVER to 'kmsdrm' (console) or 'wayland'/'x11' (desktop)."
            ) from exc
        pygame.display.set_caption("Fringe Projector")
        self._opened = True
        return True

    def disconnect(self) -> bool:
        if not self._opened:
            return True
        pygame.display.quit()
        self._opened = False
        self.screen = None
        self._sets = []
        self._surfaces = []
        self._position = -1
        return True

    def is_connected(self) -> bool:
        return self._opened

    def populate_pattern_table(self, pattern_sets: Sequence[PatternSet]) -> bool:
        if not self._opened or self.screen is None:
            return False
        surfaces: list[pygame.Surface] = []
        for pattern_set in pattern_sets:
            for img in pattern_set.images:
                gray = np.asarray(img.pixels)
                if pattern_set.invert_patterns:
                    gray = 255 - gray
                surfaces.append(self._to_surface(gray, pattern_set))
        self._sets = list(pattern_sets)
        self._surfaces = surfaces
        self._position = -1
        return bool(surfaces)

    def _to_surface(self, gray: np.ndarray, pattern_set: PatternSet) -> pygame.Surface:
        if gray.ndim != 2:
            raise ValueError("Expected 2D grayscale image")
        channel = {"red": 0, "green": 1, "blue": 2}[pattern_set.illumination.value]
        level = self._led[channel]
        rgb = np.zeros((*gray.shape, 3), dtype=np.uint8)
        rgb[:, :, channel] = np.clip(gray.astype(np.float32) * level, 0, 255).astype(np.uint8)
        surf = pygame.surfarray.make_surface(rgb.swapaxes(0, 1))
        if self.screen is not None and surf.get_size() != self.screen.get_size():
            surf = pygame.transform.scale(surf, self.screen.get_size())
        return surf

    def project(self, continuous: bool) -> bool:
        if not self._surfaces:
            return False
        # Continuous display is not emulated; only single-step mode is.
        self._stepping = not continuous
        return self._stepping

    def step(self) -> bool:
        if not self._stepping or self.screen is None:
            return False
        self._position = (self._position + 1) % len(self._surfaces)
        self.screen.blit(self._surfaces[self._position], (0, 0))
        pygame.display.flip()
        pygame.event.pump()
        # Let compositor/driver settle before capture.
        time.sleep(0.008)
        return True

    def stop(self) -> bool:
        self._stepping = False
        if self.screen is not None:
            self.screen.fill((0, 0, 0))
            pygame.display.flip()
            pygame.event.pump()
        return True

    def set_led_current(self, red: float, green: float, blue: float) -> bool:
        self._led = (float(red), float(green), float(blue))
        if self._sets:
            # Surfaces bake in the LED level.
            return self.populate_pattern_table(self._sets)
        return True

    def get_led_current(self) -> tuple[float, float, float] | None:
        return self._led
