"""
Fixed-capacity circular buffer of conditioned PPG samples.

The heart-rate detector and the morphology analyser both look *backwards*
from the newest sample, so the buffer is addressed by age: ``age=0`` is the
most recent write, ``age=1`` the one before it, and so on.
"""

from __future__ import annotations

import numpy as np


class RingSampleBuffer:
    """
    Circular store of conditioned samples.

    Parameters
    ----------
    capacity:
        Number of slots (default 240, 8 seconds at 30 fps).  The write index
        wraps modulo this value.
    """

    def __init__(self, capacity: int = 240) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._data = np.zeros(capacity, dtype=np.float64)
        self._write_index = 0
        self._count = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def push(self, value: float) -> None:
        """Store *value* at the write index and advance it."""
        self._data[self._write_index] = value
        self._write_index = (self._write_index + 1) % self.capacity
        self._count = min(self._count + 1, self.capacity)

    def index_of_age(self, age: int) -> int:
        """Slot index holding the sample written *age* writes ago."""
        return (self._write_index - 1 - age) % self.capacity

    def at_age(self, age: int) -> float:
        return float(self._data[self.index_of_age(age)])

    def recent(self, n: int) -> np.ndarray:
        """Return the newest *n* samples, newest first (clipped to what exists)."""
        n = min(n, self._count)
        idx = (self._write_index - 1 - np.arange(n)) % self.capacity
        return self._data[idx].copy()

    def clear(self) -> None:
        self._data.fill(0.0)
        self._write_index = 0
        self._count = 0

    @property
    def write_index(self) -> int:
        return self._write_index

    def __len__(self) -> int:
        """Number of slots written so far (saturates at capacity)."""
        return self._count
