"""Utility modules for tracerbox."""

from .logger import SimulationLogger
from .timer import Timer

__all__ = ["SimulationLogger", "Timer"]
