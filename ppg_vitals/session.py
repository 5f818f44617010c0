"""
One measurement session: the full per-sample PPG pipeline.

Each call to :meth:`Session.process_sample` runs, in this order,

1. :class:`~ppg_vitals.conditioner.SignalConditioner` (and the ring-buffer
   write once warm-up is over),
2. :class:`~ppg_vitals.heart_rate.HeartRateDetector`,
3. :class:`~ppg_vitals.morphology.MorphologyAnalyzer` (once an IBI exists),
4. :class:`~ppg_vitals.blood_pressure.BloodPressureEstimator` (on accepted
   beats).

Every stage reads state written by the stage before it in the same call, so
the order is fixed.  A single lock serialises samples against
:meth:`Session.set_mode` and :meth:`Session.reset`.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional, Union

import numpy as np

from .blood_pressure import REFERENCE_ISO, BloodPressureEstimator, BpEstimate
from .conditioner import Mode, SignalConditioner
from .heart_rate import BeatEvent, HeartRateDetector
from .morphology import MorphologyAnalyzer
from .ring_buffer import RingSampleBuffer

logger = logging.getLogger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass(frozen=True)
class PpgResult:
    """Per-sample output record."""

    corrected_green: float = 0.0
    ibi_ms: float = 0.0
    heart_rate: float = 0.0
    bpm_sd: float = 0.0
    v2p_rel_ttp: float = 0.0
    p2v_rel_ttp: float = 0.0
    v2p_amplitude: float = 0.0
    p2v_amplitude: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            "correctedGreen": self.corrected_green,
            "ibiMs": self.ibi_ms,
            "heartRate": self.heart_rate,
            "bpmSd": self.bpm_sd,
            "v2pRelTTP": self.v2p_rel_ttp,
            "p2vRelTTP": self.p2v_rel_ttp,
            "v2pAmplitude": self.v2p_amplitude,
            "p2vAmplitude": self.p2v_amplitude,
        }


class Session:
    """
    Owner of all pipeline state for one measurement.

    Parameters
    ----------
    mode:
        Initial smoothing mode, ``"Logic1"`` or ``"Logic2"``.
    fps:
        Frame rate of the proxy stream, used to turn sample ages into time
        for the morphology analysis (default 30).
    iso:
        Default camera ISO passed to the blood-pressure estimator when a
        sample does not carry one (default 600).
    buffer_size:
        Ring-buffer capacity (default 240).
    smoothing_beats:
        Number of accepted IBIs averaged into :attr:`smoothed_ibi_ms`
        (default 10).
    clock:
        Zero-argument callable returning the current time in milliseconds.
        Used only when :meth:`process_sample` is not given a timestamp.
    """

    def __init__(
        self,
        mode: Union[Mode, str] = Mode.LOGIC1,
        fps: float = 30.0,
        iso: float = REFERENCE_ISO,
        buffer_size: int = 240,
        smoothing_beats: int = 10,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        self.iso = iso
        self._clock = clock
        self._lock = threading.RLock()

        self.buffer = RingSampleBuffer(buffer_size)
        self.conditioner = SignalConditioner(self.buffer, mode=mode)
        self.detector = HeartRateDetector()
        self.morphology = MorphologyAnalyzer(fps=fps)
        self.blood_pressure_estimator = BloodPressureEstimator()

        self._smoothed_ibis: Deque[float] = deque(maxlen=smoothing_beats)
        self._last_result = PpgResult()
        self._last_beat: Optional[BeatEvent] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process_sample(
        self,
        raw: float,
        timestamp_ms: Optional[float] = None,
        iso: Optional[float] = None,
    ) -> PpgResult:
        """
        Run one proxy sample through the pipeline.

        Parameters
        ----------
        raw:
            Chroma proxy value for the frame (nominally 0 – 255).
        timestamp_ms:
            Arrival time of the sample in milliseconds.  Defaults to the
            session clock.
        iso:
            Camera ISO for this frame.  Defaults to :attr:`iso`.
        """
        with self._lock:
            now = self._clock() if timestamp_ms is None else float(timestamp_ms)
            corrected = self.conditioner.condition(raw)

            beat = self.detector.detect(self.buffer, now)
            ibi = self.detector.last_ibi
            if ibi > 0:
                self.morphology.analyze(self.buffer, ibi, now)
            if beat is not None:
                self._on_beat(beat, self.iso if iso is None else iso)

            features = self.morphology.features
            self._last_result = PpgResult(
                corrected_green=corrected,
                ibi_ms=ibi,
                heart_rate=self.detector.last_bpm,
                bpm_sd=self.detector.bpm_sd,
                v2p_rel_ttp=features.v2p_rel_ttp,
                p2v_rel_ttp=features.p2v_rel_ttp,
                v2p_amplitude=features.v2p_amplitude,
                p2v_amplitude=features.p2v_amplitude,
            )
            return self._last_result

    def set_mode(self, mode: Union[Mode, str]) -> None:
        """Change smoothing mode from the next sample on; history is kept."""
        with self._lock:
            self.conditioner.set_mode(mode)
            logger.info("Processing mode set to %s.", self.conditioner.mode.value)

    def reset(self) -> None:
        """Return every buffer, counter and last-known value to its initial state."""
        with self._lock:
            self.buffer.clear()
            self.conditioner.reset()
            self.detector.reset()
            self.morphology.reset()
            self.blood_pressure_estimator.reset()
            self._smoothed_ibis.clear()
            self._last_result = PpgResult()
            self._last_beat = None
            logger.info("Session reset.")

    @property
    def mode(self) -> Mode:
        return self.conditioner.mode

    @property
    def last_result(self) -> PpgResult:
        return self._last_result

    @property
    def last_beat(self) -> Optional[BeatEvent]:
        return self._last_beat

    @property
    def blood_pressure(self) -> BpEstimate:
        """Most recent blood-pressure estimate (all zeros before the first)."""
        return self.blood_pressure_estimator.last

    @property
    def smoothed_ibi_ms(self) -> float:
        """Mean of the last accepted IBIs (0 before the first beat)."""
        if not self._smoothed_ibis:
            return 0.0
        return float(np.mean(self._smoothed_ibis))

    @property
    def smoothed_heart_rate(self) -> float:
        ibi = self.smoothed_ibi_ms
        return 60000.0 / ibi if ibi > 0 else 0.0

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _on_beat(self, beat: BeatEvent, iso: float) -> None:
        self._last_beat = beat
        self._smoothed_ibis.append(beat.ibi_ms)
        features = self.morphology.features
        self.blood_pressure_estimator.update(
            ibi_ms=beat.ibi_ms,
            heart_rate=self.smoothed_heart_rate or beat.bpm,
            v2p_rel_ttp=features.v2p_rel_ttp,
            p2v_rel_ttp=features.p2v_rel_ttp,
            v2p_amplitude=features.v2p_amplitude,
            iso=iso,
        )
