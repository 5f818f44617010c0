"""
Per-frame chroma proxy.

With a fingertip over the lens the centre of the frame is usually saturated
by the flash, while the edges still follow the blood-volume pulse.  The proxy
is therefore the mean blue-difference chroma (Cb) over the *outer* ring of
the frame: everything outside the central box spanning 1/4 – 3/4 of the
width and height.
"""

from __future__ import annotations

import cv2
import numpy as np


class ChromaProxyExtractor:
    """
    Outer-ring Cb mean of a BGR frame.

    Parameters
    ----------
    inner_fraction:
        Side length of the excluded central box as a fraction of the frame
        (default 0.5, i.e. 1/4 – 3/4).
    """

    def __init__(self, inner_fraction: float = 0.5) -> None:
        if not 0.0 <= inner_fraction < 1.0:
            raise ValueError(f"inner_fraction must be in [0, 1), got {inner_fraction}")
        self.inner_fraction = inner_fraction
        self._mask: np.ndarray | None = None

    def extract(self, frame: np.ndarray) -> float:
        """
        Return the proxy value for *frame*.

        Parameters
        ----------
        frame:
            BGR image array (H × W × 3, uint8).  Returns 0.0 for an empty
            frame.
        """
        if frame is None or frame.size == 0:
            return 0.0
        ycrcb = cv2.cvtColor(frame, cv2.COLOR_BGR2YCrCb)
        cb = ycrcb[:, :, 2]
        mask = self._outer_mask(cb.shape)
        if not mask.any():
            return 0.0
        return float(cb[mask].mean())

    def _outer_mask(self, shape) -> np.ndarray:
        if self._mask is not None and self._mask.shape == shape:
            return self._mask
        h, w = shape
        margin = (1.0 - self.inner_fraction) / 2.0
        sy, ey = int(h * margin), int(h * (1.0 - margin))
        sx, ex = int(w * margin), int(w * (1.0 - margin))
        mask = np.ones(shape, dtype=bool)
        mask[sy:ey, sx:ex] = False
        self._mask = mask
        return mask
