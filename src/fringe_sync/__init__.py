"""Structured-light fringe generation and projector/camera step synchronisation."""

__version__ = "0.1.0"
