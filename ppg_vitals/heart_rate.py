"""
Refractory-gated peak detector over the conditioned ring buffer.

A beat is confirmed when the four samples before the newest one rise
strictly (``p4 < p3 < p2 < p1``) and the newest sample drops below ``p1``.
The beat is stamped with ``p1``'s own sample time, which is the timestamp
of the previous call.  After a confirmed peak the detector ignores candidates for
``refractory_frames`` calls.

Consecutive peak times give an instantaneous BPM.  Only intervals of
0.25 – 1.2 s are considered, and a reading is published only when it lies
within ±10 % of the mean of the recent BPM history, so a single spurious
peak never reaches the reported heart rate.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

import numpy as np

from .ring_buffer import RingSampleBuffer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BeatEvent:
    """An accepted heartbeat; ``timestamp_ms`` is the time of the peak sample."""

    timestamp_ms: float
    ibi_ms: float
    bpm: float


class HeartRateDetector:
    """
    Streaming heartbeat detector.

    Parameters
    ----------
    refractory_frames:
        Calls to wait after a confirmed peak before arming again (default 8).
    history_size:
        Capacity of the BPM history used for outlier rejection (default 20).
    min_interval_s, max_interval_s:
        Open bounds on the peak-to-peak interval (default 0.25 – 1.2 s,
        i.e. 50 – 240 BPM).
    tolerance:
        Maximum relative deviation from the history mean for a reading to
        be accepted (default 0.10).
    """

    LOOKBACK = 5

    def __init__(
        self,
        refractory_frames: int = 8,
        history_size: int = 20,
        min_interval_s: float = 0.25,
        max_interval_s: float = 1.2,
        tolerance: float = 0.10,
    ) -> None:
        self.refractory_frames = refractory_frames
        self.min_interval_s = min_interval_s
        self.max_interval_s = max_interval_s
        self.tolerance = tolerance

        self._bpm_history: Deque[float] = deque(maxlen=history_size)
        self._frames_since_last_peak = refractory_frames
        self._last_peak_time: Optional[float] = None
        self._previous_timestamp: Optional[float] = None
        self._last_bpm = 0.0
        self._last_ibi = 0.0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def detect(self, buffer: RingSampleBuffer, timestamp_ms: float) -> Optional[BeatEvent]:
        """
        Inspect the newest five buffer slots for a peak.

        Must be called exactly once per incoming sample.  Returns the
        accepted :class:`BeatEvent`, or *None* when no peak was confirmed or
        the candidate was rejected.
        """
        event = None
        if self.armed and len(buffer) >= self.LOOKBACK and self._is_peak(buffer):
            self._frames_since_last_peak = 0
            peak_time = self._previous_timestamp
            event = self._on_peak(timestamp_ms if peak_time is None else peak_time)
        self._frames_since_last_peak += 1
        self._previous_timestamp = timestamp_ms
        return event

    def reset(self) -> None:
        self._bpm_history.clear()
        self._frames_since_last_peak = self.refractory_frames
        self._last_peak_time = None
        self._previous_timestamp = None
        self._last_bpm = 0.0
        self._last_ibi = 0.0

    @property
    def armed(self) -> bool:
        return self._frames_since_last_peak >= self.refractory_frames

    @property
    def last_bpm(self) -> float:
        return self._last_bpm

    @property
    def last_ibi(self) -> float:
        return self._last_ibi

    @property
    def last_peak_time(self) -> Optional[float]:
        return self._last_peak_time

    @property
    def bpm_history(self) -> tuple:
        return tuple(self._bpm_history)

    @property
    def bpm_sd(self) -> float:
        """Population standard deviation of the BPM history (0 when empty)."""
        if not self._bpm_history:
            return 0.0
        return float(np.std(self._bpm_history))

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _is_peak(buffer: RingSampleBuffer) -> bool:
        current, p1, p2, p3, p4 = (buffer.at_age(age) for age in range(5))
        return p1 > p2 > p3 > p4 and current < p1

    def _on_peak(self, now: float) -> Optional[BeatEvent]:
        previous = self._last_peak_time
        # The peak time moves even for rejected beats so the next interval
        # is measured from this one.
        self._last_peak_time = now
        if previous is None:
            return None

        interval_s = (now - previous) / 1000.0
        if not self.min_interval_s < interval_s < self.max_interval_s:
            logger.debug("Peak interval %.3f s out of range – ignored.", interval_s)
            return None

        bpm = 60.0 / interval_s
        self._bpm_history.append(bpm)
        mean_bpm = float(np.mean(self._bpm_history))
        if abs(bpm - mean_bpm) > mean_bpm * self.tolerance:
            logger.debug("Rejected outlier beat %.1f BPM (mean %.1f).", bpm, mean_bpm)
            return None

        self._last_bpm = bpm
        self._last_ibi = 60000.0 / bpm
        logger.debug("Beat accepted – BPM=%.1f IBI=%.0f ms", bpm, self._last_ibi)
        return BeatEvent(timestamp_ms=now, ibi_ms=self._last_ibi, bpm=bpm)
