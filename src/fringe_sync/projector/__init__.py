from .base import ProjectorBase
from .controller import ProjectorStepController
from .mock import MockProjector

__all__ = [
    "ProjectorBase",
    "ProjectorStepController",
    "MockProjector",
]
