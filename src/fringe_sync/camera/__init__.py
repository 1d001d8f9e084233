from .base import CameraBase, select_trigger_command
from .mock import MockCamera

__all__ = [
    "CameraBase",
    "MockCamera",
    "select_trigger_command",
]
