"""
Pulse-wave morphology from the conditioned ring buffer.

Rather than differentiating the waveform, the analyser looks back over
roughly one beat (IBI plus a 10-frame margin) and splits that window into a
recent half and an older half.  Strict local extrema in each half give two
segments of the pulse:

* valley → peak (V2P): valley in the recent half, peak in the older half;
* peak → valley (P2V): peak in the recent half, valley in the older half.

For each segment the amplitude and the time between its extrema relative to
the IBI (``rel_ttp``) are reported.  A segment whose extrema are not both
found keeps its previous values.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional, Tuple

from .ring_buffer import RingSampleBuffer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtremaPoint:
    timestamp_ms: float
    value: float
    index: int


@dataclass
class MorphologyFeatures:
    v2p_rel_ttp: float = 0.0
    p2v_rel_ttp: float = 0.0
    v2p_amplitude: float = 0.0
    p2v_amplitude: float = 0.0


class MorphologyAnalyzer:
    """
    Valley / peak analytics around the latest beat.

    Parameters
    ----------
    fps:
        Frame rate of the proxy stream; sample ages are converted to time
        with ``1000 / fps`` ms per frame (default 30).
    margin_frames:
        Frames added to the IBI-derived search window (default 10).
    history_size:
        Capacity, in points, of each diagnostic pair history (default 10).
    """

    EDGE = 2

    def __init__(
        self,
        fps: float = 30.0,
        margin_frames: int = 10,
        history_size: int = 10,
    ) -> None:
        if fps <= 0:
            raise ValueError(f"fps must be positive, got {fps}")
        self.frame_interval_ms = 1000.0 / fps
        self.margin_frames = margin_frames
        self.features = MorphologyFeatures()
        self._v2p_history: Deque[ExtremaPoint] = deque(maxlen=history_size)
        self._p2v_history: Deque[ExtremaPoint] = deque(maxlen=history_size)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze(self, buffer: RingSampleBuffer, ibi_ms: float, timestamp_ms: float) -> None:
        """Update :attr:`features` from the newest beat-sized buffer window."""
        if ibi_ms <= 0:
            return
        n = self.window_frames(ibi_ms, buffer)
        half = n // 2
        edge = self.EDGE

        valley = self._search(buffer, range(edge, (n + 1) // 2), timestamp_ms, peak=False)
        peak = self._search(buffer, range(half, n - edge), timestamp_ms, peak=True)
        if valley is not None and peak is not None:
            rel_ttp, amplitude = self._segment(valley, peak, ibi_ms)
            self.features.v2p_rel_ttp = rel_ttp
            self.features.v2p_amplitude = amplitude
            self._v2p_history.extend((valley, peak))
            logger.debug("V2P rel_ttp=%.3f amplitude=%.2f", rel_ttp, amplitude)

        peak = self._search(buffer, range(edge, half - edge), timestamp_ms, peak=True)
        valley = self._search(buffer, range(half + edge, n - edge), timestamp_ms, peak=False)
        if peak is not None and valley is not None:
            rel_ttp, amplitude = self._segment(valley, peak, ibi_ms)
            self.features.p2v_rel_ttp = rel_ttp
            self.features.p2v_amplitude = amplitude
            self._p2v_history.extend((peak, valley))
            logger.debug("P2V rel_ttp=%.3f amplitude=%.2f", rel_ttp, amplitude)

    def window_frames(self, ibi_ms: float, buffer: RingSampleBuffer) -> int:
        """Search window length in frames for the given IBI."""
        n = int(round(ibi_ms / self.frame_interval_ms)) + self.margin_frames
        return min(n, buffer.capacity - 5, len(buffer))

    def reset(self) -> None:
        self.features = MorphologyFeatures()
        self._v2p_history.clear()
        self._p2v_history.clear()

    @property
    def v2p_history(self) -> Tuple[ExtremaPoint, ...]:
        return tuple(self._v2p_history)

    @property
    def p2v_history(self) -> Tuple[ExtremaPoint, ...]:
        return tuple(self._p2v_history)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _search(
        self,
        buffer: RingSampleBuffer,
        ages: range,
        now: float,
        peak: bool,
    ) -> Optional[ExtremaPoint]:
        best_age = -1
        best = float("-inf") if peak else float("inf")
        for age in ages:
            v = buffer.at_age(age)
            newer = buffer.at_age(age - 1)
            older = buffer.at_age(age + 1)
            if peak:
                found = v > older and v > newer and v > best
            else:
                found = v < older and v < newer and v < best
            if found:
                best, best_age = v, age

        if best_age < 0:
            return None
        return ExtremaPoint(
            timestamp_ms=now - best_age * self.frame_interval_ms,
            value=best,
            index=buffer.index_of_age(best_age),
        )

    @staticmethod
    def _segment(valley: ExtremaPoint, peak: ExtremaPoint, ibi_ms: float) -> Tuple[float, float]:
        dt = abs(peak.timestamp_ms - valley.timestamp_ms)
        return dt / ibi_ms, abs(peak.value - valley.value)
