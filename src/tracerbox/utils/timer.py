"""Wall-clock timing of run sections."""

import time
from contextlib import contextmanager
from typing import Dict


class Timer:
    """
    Accumulating section timer.

    Example:
        >>> timer = Timer()
        >>> with timer.time_section("matrices"):
        ...     A = model.transport_matrix()
        >>> timer.get_times()["matrices"]
    """

    def __init__(self):
        self.times: Dict[str, float] = {}
        self._starts: Dict[str, float] = {}

    def start(self, name: str):
        """Start (or restart) timing section ``name``."""
        self._starts[name] = time.perf_counter()

    def stop(self, name: str) -> float:
        """Stop section ``name`` and add its duration; returns the duration."""
        if name not in self._starts:
            raise KeyError(f"Timer section {name!r} was never started")
        elapsed = time.perf_counter() - self._starts.pop(name)
        self.times[name] = self.times.get(name, 0.0) + elapsed
        return elapsed

    @contextmanager
    def time_section(self, name: str):
        self.start(name)
        try:
            yield
        finally:
            self.stop(name)

    def get_times(self) -> Dict[str, float]:
        return dict(self.times)
