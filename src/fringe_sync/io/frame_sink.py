"""Frame-arrival handler run on the camera's delivery thread."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import numpy as np
from PIL import Image

from fringe_sync.core.errors import SaveError
from fringe_sync.core.logging import get_logger
from fringe_sync.core.models import FrameInfo, FrameRecord, Orientation, orientation_letter


log = get_logger("frame_sink")


class AtomicCounter:
    """Lock-guarded integer; increment() returns the new value."""

    def __init__(self, start: int = 0) -> None:
        self._value = int(start)
        self._lock = threading.Lock()

    def increment(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass(slots=True)
class CaptureContext:
    """
    State shared between the capture loop and the frame callback.

    counter is the only field the callback mutates for control purposes;
    the tallies exist for end-of-session reporting.
    """
    expected_total: int
    steps_per_orientation: int
    save_dir: Path
    index_width: int = 3
    counter: AtomicCounter = field(default_factory=AtomicCounter)
    saved: AtomicCounter = field(default_factory=AtomicCounter)
    dropped: AtomicCounter = field(default_factory=AtomicCounter)
    failed: AtomicCounter = field(default_factory=AtomicCounter)

    def __post_init__(self) -> None:
        self.save_dir = Path(self.save_dir)

    @property
    def frames_received(self) -> int:
        return self.counter.value


def orientation_for_frame(frame_index: int, steps_per_orientation: int) -> Orientation:
    return "vertical" if frame_index <= steps_per_orientation else "horizontal"


def frame_filename(frame_index: int, orientation: Orientation, index_width: int = 3) -> str:
    if index_width > 0:
        idx = f"{frame_index:0{index_width}d}"
    else:
        idx = str(frame_index)
    return f"I{idx}_{orientation_letter(orientation)}.png"


def _copy_buffer(buffer: Any, info: FrameInfo) -> np.ndarray:
    count = int(info.width) * int(info.height)
    if isinstance(buffer, np.ndarray):
        if buffer.dtype != np.uint8:
            raise ValueError(f"Expected Mono8 frame, got dtype {buffer.dtype}")
        flat = buffer.reshape(-1)
    else:
        flat = np.frombuffer(buffer, dtype=np.uint8, count=count)
    if flat.size < count:
        raise ValueError(f"Frame buffer holds {flat.size} bytes, expected {count}")
    return flat[:count].astype(np.uint8, copy=True).reshape(int(info.height), int(info.width))


def handle_frame(buffer: Any, info: FrameInfo, context: CaptureContext) -> Optional[FrameRecord]:
    """
    Camera callback: index, copy and persist one delivered frame.

    Frames past expected_total are dropped. Nothing is raised to the caller,
    which is the camera SDK's thread.
    """
    frame_index = context.counter.increment()
    if frame_index > context.expected_total:
        context.dropped.increment()
        log.debug("Dropping extra frame %d (expected %d)", frame_index, context.expected_total)
        return None

    try:
        pixels = _copy_buffer(buffer, info)
    except (TypeError, ValueError) as exc:
        context.failed.increment()
        log.error("Frame %d: unusable buffer: %s", frame_index, exc)
        return None

    orientation = orientation_for_frame(frame_index, context.steps_per_orientation)
    path = context.save_dir / frame_filename(frame_index, orientation, context.index_width)
    record = FrameRecord(
        frame_index=frame_index,
        orientation=orientation,
        width=int(info.width),
        height=int(info.height),
        pixels=pixels,
        save_path=None,
    )
    try:
        save_frame(path, pixels)
    except SaveError as exc:
        context.failed.increment()
        log.error("%s", exc)
        return record

    record.save_path = path
    context.saved.increment()
    log.info(
        "Frame %d/%d saved: %s (%dx%d)",
        frame_index,
        context.expected_total,
        path.name,
        info.width,
        info.height,
    )
    return record


def save_frame(path: Path, pixels: np.ndarray) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8)).save(path, format="PNG")
    except (OSError, ValueError) as exc:
        raise SaveError(f"Failed to save {path}: {exc}") from exc
    return path


class FrameSink:
    """
    Callable adapter registering handle_frame with a camera.

    Keeps the records of saved frames, which the capture loop never reads.
    """

    def __init__(self, keep_records: bool = False) -> None:
        self.keep_records = keep_records
        self.records: list[FrameRecord] = []
        self._lock = threading.Lock()

    def __call__(self, buffer: Any, info: FrameInfo, context: CaptureContext) -> Optional[FrameRecord]:
        record = handle_frame(buffer, info, context)
        if record is not None and self.keep_records:
            with self._lock:
                self.records.append(record)
        return record
