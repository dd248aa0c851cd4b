"""Runtime module for subprocess management and output relay.

This module provides isolated process execution with concurrent
stdout/stderr draining and reliable termination.
"""

from __future__ import annotations

from .errors import ProcessError, ProcessStartError
from .process_runner import LineCallback, ProcessRunner, ProcessSpec

__all__ = [
    "LineCallback",
    "ProcessError",
    "ProcessRunner",
    "ProcessSpec",
    "ProcessStartError",
]
