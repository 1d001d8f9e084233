from .frame_sink import (
    AtomicCounter,
    CaptureContext,
    FrameSink,
    frame_filename,
    handle_frame,
    orientation_for_frame,
)
from .run_store import RunStore

__all__ = [
    "AtomicCounter",
    "CaptureContext",
    "FrameSink",
    "frame_filename",
    "handle_frame",
    "orientation_for_frame",
    "RunStore",
]
