"""
Two-stage smoothing of the raw chroma proxy.

Algorithm
---------
1. Fold the raw proxy into a fixed 0 – 300 scale:
   ``corrected = ((raw mod 30) / 30) * 100 * 3``.
   The modulo is floored, so negative inputs also land in [0, 30).
2. Wait until 20 corrected samples are available (warm-up).  Until then the
   corrected value is passed through untouched.
3. Stage 1: moving average over the newest 6 (Logic1) or 4 (Logic2)
   corrected samples.
4. Stage 2: moving average over the newest 4 stage-1 values.
5. Logic2 only: rescale against the min / max of the recent stage-1 history
   into 0 – 100.

Every average divides by the number of samples actually present, never by
the nominal window size.
"""

from __future__ import annotations

import enum
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Union

import numpy as np

from .ring_buffer import RingSampleBuffer


PROXY_MODULUS = 30.0
CORRECTED_SCALE = 3.0
RECENT_WINDOW = 20
STAGE2_WINDOW = 4
NORMALIZE_WINDOW = 40
MIN_RANGE = 1.0


class Mode(str, enum.Enum):
    LOGIC1 = "Logic1"
    LOGIC2 = "Logic2"


@dataclass(frozen=True)
class ModeConfig:
    """Per-mode conditioner settings."""

    stage1_window: int
    normalize: bool


MODE_CONFIGS: Dict[Mode, ModeConfig] = {
    Mode.LOGIC1: ModeConfig(stage1_window=6, normalize=False),
    Mode.LOGIC2: ModeConfig(stage1_window=4, normalize=True),
}


def as_mode(mode: Union[Mode, str]) -> Mode:
    """Coerce ``"Logic1"`` / ``"Logic2"`` (or a :class:`Mode`) to :class:`Mode`."""
    try:
        return Mode(mode)
    except ValueError:
        raise ValueError(
            f"unknown mode {mode!r}; expected one of "
            f"{', '.join(m.value for m in Mode)}"
        ) from None


def correct_proxy(raw: float) -> float:
    """Fixed modulo-30 rescaling of a raw proxy value into 0 – 300."""
    latest = raw % PROXY_MODULUS
    return (latest / PROXY_MODULUS) * 100.0 * CORRECTED_SCALE


def _tail_mean(values: Deque[float], window: int) -> float:
    n = min(window, len(values))
    return sum(values[-1 - i] for i in range(n)) / n


class SignalConditioner:
    """
    Stateful per-sample smoother feeding the ring buffer.

    Parameters
    ----------
    buffer:
        Ring buffer that receives the final conditioned value once warm-up
        is complete.
    mode:
        ``"Logic1"`` (stage-1 window 6, no normalisation) or ``"Logic2"``
        (stage-1 window 4, 40-sample range normalisation).
    raw_history_size:
        Capacity of the raw proxy history.  Defaults to five minutes at
        30 fps.
    """

    def __init__(
        self,
        buffer: RingSampleBuffer,
        mode: Union[Mode, str] = Mode.LOGIC1,
        raw_history_size: int = 9000,
    ) -> None:
        self.buffer = buffer
        self._mode = as_mode(mode)
        self._raw_history: Deque[float] = deque(maxlen=raw_history_size)
        self._recent_corrected: Deque[float] = deque(maxlen=RECENT_WINDOW)
        self._smoothed: Deque[float] = deque(maxlen=RECENT_WINDOW)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def condition(self, raw: float) -> float:
        """
        Condition one raw proxy sample and return the corrected value.

        After warm-up the returned value has also been written into
        :attr:`buffer`.
        """
        raw = float(raw)
        self._raw_history.append(raw)

        corrected = correct_proxy(raw)
        self._recent_corrected.append(corrected)
        if not self.warmed_up:
            return corrected

        config = self.config
        stage1 = _tail_mean(self._recent_corrected, config.stage1_window)
        self._smoothed.append(stage1)
        value = _tail_mean(self._smoothed, STAGE2_WINDOW)

        if config.normalize:
            value = self._normalize(value)

        self.buffer.push(value)
        return value

    def set_mode(self, mode: Union[Mode, str]) -> None:
        """Switch smoothing mode for subsequent samples.  History is kept."""
        self._mode = as_mode(mode)

    def reset(self) -> None:
        self._raw_history.clear()
        self._recent_corrected.clear()
        self._smoothed.clear()

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def config(self) -> ModeConfig:
        return MODE_CONFIGS[self._mode]

    @property
    def warmed_up(self) -> bool:
        return len(self._recent_corrected) >= RECENT_WINDOW

    @property
    def smoothed_history(self) -> tuple:
        """Stage-1 values, oldest first."""
        return tuple(self._smoothed)

    @property
    def raw_history(self) -> tuple:
        return tuple(self._raw_history)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _normalize(self, value: float) -> float:
        recent = np.fromiter(self._smoothed, dtype=np.float64)[-NORMALIZE_WINDOW:]
        lo = float(recent.min())
        span = max(float(recent.max()) - lo, MIN_RANGE)
        return float(np.clip((value - lo) / span * 100.0, 0.0, 100.0))
