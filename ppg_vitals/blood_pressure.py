"""
Cuff-less blood-pressure estimate from heart rate and pulse morphology.

Two fixed linear regressions map ``{v2p_rel_ttp, heart_rate, s_norm,
iso_dev, p2v_rel_ttp}`` to systolic and diastolic pressure.  The regression
is uncalibrated per subject, so the per-beat values are clamped to
physiological bounds and the reported figure is a median/MAD-filtered mean
over the last 10 beats.

Notes
-----
- The estimate is indicative only, it is not clinical-grade.
- ``iso`` is the camera sensitivity setting; readings taken at ISO < 500 are
  considered too weak and leave the previous estimate in place.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, Optional

import numpy as np

logger = logging.getLogger(__name__)

REFERENCE_ISO = 600.0
MIN_ISO = 500.0

SBP_BOUNDS = (60.0, 200.0)
DBP_BOUNDS = (40.0, 150.0)

# intercept, v2p_rel_ttp, heart_rate, s_norm, iso_dev, v2p_rel_ttp (2nd term), p2v_rel_ttp
SBP_COEFFS = (80.0, 0.5, 0.1, 0.001, -5.0, 0.1, -0.1)
DBP_COEFFS = (60.0, 0.3, 0.05, 0.0005, -2.0, 0.05, -0.05)


@dataclass(frozen=True)
class BpEstimate:
    sbp: float = 0.0
    dbp: float = 0.0
    sbp_avg: float = 0.0
    dbp_avg: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            "sbp": self.sbp,
            "dbp": self.dbp,
            "sbpAvg": self.sbp_avg,
            "dbpAvg": self.dbp_avg,
        }


def robust_average(values: Iterable[float]) -> float:
    """
    Median/MAD-filtered mean.

    Values further than ``3 × MAD`` from the median are discarded before
    averaging.  The median is the upper middle element for even lengths.
    Returns 0.0 for an empty input.
    """
    arr = np.sort(np.fromiter(values, dtype=np.float64))
    if arr.size == 0:
        return 0.0
    median = arr[arr.size // 2]
    deviations = np.sort(np.abs(arr - median))
    threshold = 3.0 * deviations[deviations.size // 2]
    kept = arr[np.abs(arr - median) <= threshold]
    if kept.size == 0:
        return float(median)
    return float(kept.mean())


def _regress(coeffs, v2p_rel_ttp, heart_rate, s_norm, iso_dev, p2v_rel_ttp) -> float:
    c0, c1, c2, c4, c5, c6, c7 = coeffs
    return (
        c0
        + c1 * v2p_rel_ttp
        + c2 * heart_rate
        + c4 * s_norm
        + c5 * iso_dev
        + c6 * v2p_rel_ttp
        + c7 * p2v_rel_ttp
    )


def _clamp(value: float, bounds) -> float:
    lo, hi = bounds
    return lo if value < lo else hi if value > hi else value


class BloodPressureEstimator:
    """
    Per-beat SBP/DBP regression with robust temporal averaging.

    Parameters
    ----------
    history_size:
        Number of beats kept for the robust average (default 10).
    """

    def __init__(self, history_size: int = 10) -> None:
        self._sbp_history: Deque[float] = deque(maxlen=history_size)
        self._dbp_history: Deque[float] = deque(maxlen=history_size)
        self._last = BpEstimate()

    def update(
        self,
        ibi_ms: float,
        heart_rate: float,
        v2p_rel_ttp: float,
        p2v_rel_ttp: float,
        v2p_amplitude: float,
        iso: float = REFERENCE_ISO,
    ) -> Optional[BpEstimate]:
        """
        Fold one beat into the estimate.

        Returns *None*, leaving :attr:`last` untouched, when ``ibi_ms <= 0``
        or ``iso < 500``.
        """
        if ibi_ms <= 0 or iso < MIN_ISO:
            return None

        iso_norm = iso / REFERENCE_ISO
        iso_dev = iso_norm - 1.0
        s_norm = v2p_amplitude * iso_norm

        sbp = _clamp(
            _regress(SBP_COEFFS, v2p_rel_ttp, heart_rate, s_norm, iso_dev, p2v_rel_ttp),
            SBP_BOUNDS,
        )
        dbp = _clamp(
            _regress(DBP_COEFFS, v2p_rel_ttp, heart_rate, s_norm, iso_dev, p2v_rel_ttp),
            DBP_BOUNDS,
        )

        self._sbp_history.append(sbp)
        self._dbp_history.append(dbp)
        self._last = BpEstimate(
            sbp=sbp,
            dbp=dbp,
            sbp_avg=robust_average(self._sbp_history),
            dbp_avg=robust_average(self._dbp_history),
        )
        logger.debug(
            "BP %.1f/%.1f mmHg (avg %.1f/%.1f)",
            sbp, dbp, self._last.sbp_avg, self._last.dbp_avg,
        )
        return self._last

    def reset(self) -> None:
        self._sbp_history.clear()
        self._dbp_history.clear()
        self._last = BpEstimate()

    @property
    def last(self) -> BpEstimate:
        return self._last

    @property
    def sbp_history(self) -> tuple:
        return tuple(self._sbp_history)

    @property
    def dbp_history(self) -> tuple:
        return tuple(self._dbp_history)
