"""
Unit tests for MorphologyAnalyzer.
Run with:  pytest tests/test_morphology.py
"""

from __future__ import annotations

import numpy as np
import pytest

from ppg_vitals.morphology import MorphologyAnalyzer, MorphologyFeatures
from ppg_vitals.ring_buffer import RingSampleBuffer

FRAME_MS = 1000.0 / 30.0
NOW = 10_000.0


def _cosine_buffer(peak_age: int, n: int = 60, period: int = 24) -> RingSampleBuffer:
    """
    Buffer holding ``50 + 40 cos(...)`` with a maximum at *peak_age*
    (ages count back from the newest sample).
    """
    ages = np.arange(n)
    by_age = 50.0 + 40.0 * np.cos(2 * np.pi * (ages - peak_age) / period)
    buf = RingSampleBuffer(240)
    for v in by_age[::-1]:
        buf.push(float(v))
    return buf


class TestMorphologyAnalyzer:

    def test_window_size_from_ibi(self):
        ana = MorphologyAnalyzer(fps=30.0)
        buf = _cosine_buffer(20, n=240)
        assert ana.window_frames(800.0, buf) == 34
        assert ana.window_frames(100_000.0, buf) == 235

    def test_window_limited_to_written_samples(self):
        ana = MorphologyAnalyzer()
        buf = _cosine_buffer(20, n=60)
        assert ana.window_frames(100_000.0, buf) == 60

    def test_valley_to_peak(self):
        # Valley at age 8 (recent half), peak at age 20 (older half).
        ana = MorphologyAnalyzer()
        ana.analyze(_cosine_buffer(peak_age=20), 800.0, NOW)
        f = ana.features
        assert f.v2p_rel_ttp == pytest.approx(12 * FRAME_MS / 800.0)
        assert f.v2p_amplitude == pytest.approx(80.0)
        # No peak in the recent half: P2V is left untouched.
        assert f.p2v_rel_ttp == 0.0
        assert f.p2v_amplitude == 0.0

        valley, peak = ana.v2p_history
        assert valley.timestamp_ms == pytest.approx(NOW - 8 * FRAME_MS)
        assert peak.timestamp_ms == pytest.approx(NOW - 20 * FRAME_MS)
        assert peak.value > valley.value

    def test_peak_to_valley(self):
        # Peak at age 8 (recent half), valley at age 20 (older half).
        ana = MorphologyAnalyzer()
        ana.analyze(_cosine_buffer(peak_age=8), 800.0, NOW)
        f = ana.features
        assert f.p2v_rel_ttp == pytest.approx(0.5)
        assert f.p2v_amplitude == pytest.approx(80.0)
        assert f.v2p_rel_ttp == 0.0
        assert len(ana.p2v_history) == 2

    def test_equal_peaks_keep_newest(self):
        # Flat 50 with a valley at age 8 and two equal peaks at ages 20 and 26.
        by_age = np.full(60, 50.0)
        by_age[8] = 10.0
        by_age[20] = by_age[26] = 90.0
        buf = RingSampleBuffer(240)
        for v in by_age[::-1]:
            buf.push(float(v))

        ana = MorphologyAnalyzer()
        ana.analyze(buf, 800.0, NOW)
        valley, peak = ana.v2p_history
        assert valley.timestamp_ms == pytest.approx(NOW - 8 * FRAME_MS)
        assert peak.timestamp_ms == pytest.approx(NOW - 20 * FRAME_MS)
        assert peak.index == buf.index_of_age(20)
        assert ana.features.v2p_rel_ttp == pytest.approx(12 * FRAME_MS / 800.0)
        assert ana.features.v2p_amplitude == pytest.approx(80.0)

    def test_monotonic_window_keeps_previous_features(self):
        ana = MorphologyAnalyzer()
        ana.analyze(_cosine_buffer(peak_age=20), 800.0, NOW)
        before = MorphologyFeatures(**vars(ana.features))

        ramp = RingSampleBuffer(240)
        for v in range(60):
            ramp.push(float(v))
        ana.analyze(ramp, 800.0, NOW)
        assert ana.features == before

    def test_non_positive_ibi_is_ignored(self):
        ana = MorphologyAnalyzer()
        ana.analyze(_cosine_buffer(peak_age=20), 0.0, NOW)
        assert ana.features == MorphologyFeatures()
        assert ana.v2p_history == ()

    def test_history_evicts_oldest_pair(self):
        ana = MorphologyAnalyzer(history_size=10)
        buf = _cosine_buffer(peak_age=20)
        for i in range(7):
            ana.analyze(buf, 800.0, NOW + i)
        assert len(ana.v2p_history) == 10
        assert ana.v2p_history[0].timestamp_ms == pytest.approx(NOW + 2 - 8 * FRAME_MS)

    def test_reset(self):
        ana = MorphologyAnalyzer()
        ana.analyze(_cosine_buffer(peak_age=20), 800.0, NOW)
        ana.reset()
        assert ana.features == MorphologyFeatures()
        assert ana.v2p_history == ()

    def test_rejects_bad_fps(self):
        with pytest.raises(ValueError):
            MorphologyAnalyzer(fps=0)
