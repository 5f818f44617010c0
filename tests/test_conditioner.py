"""
Unit tests for RingSampleBuffer and SignalConditioner.
Run with:  pytest tests/test_conditioner.py
"""

from __future__ import annotations

import numpy as np
import pytest

from ppg_vitals.conditioner import (
    MODE_CONFIGS,
    Mode,
    SignalConditioner,
    correct_proxy,
)
from ppg_vitals.ring_buffer import RingSampleBuffer


def _conditioner(mode="Logic1", capacity=240):
    buf = RingSampleBuffer(capacity)
    return SignalConditioner(buf, mode=mode), buf


# ---------------------------------------------------------------------------
# RingSampleBuffer tests
# ---------------------------------------------------------------------------

class TestRingSampleBuffer:

    def test_starts_empty(self):
        buf = RingSampleBuffer(8)
        assert len(buf) == 0
        assert buf.write_index == 0
        assert buf.recent(5).size == 0

    def test_push_and_age(self):
        buf = RingSampleBuffer(8)
        for v in (1.0, 2.0, 3.0):
            buf.push(v)
        assert buf.at_age(0) == 3.0
        assert buf.at_age(2) == 1.0
        assert list(buf.recent(10)) == [3.0, 2.0, 1.0]

    def test_wraps_modulo_capacity(self):
        buf = RingSampleBuffer(4)
        for v in range(6):
            buf.push(float(v))
        assert len(buf) == 4
        assert buf.write_index == 2
        assert list(buf.recent(4)) == [5.0, 4.0, 3.0, 2.0]
        assert buf.index_of_age(0) == 1

    def test_clear(self):
        buf = RingSampleBuffer(4)
        buf.push(7.0)
        buf.clear()
        assert len(buf) == 0
        assert buf.write_index == 0
        assert buf.at_age(0) == 0.0

    def test_rejects_bad_capacity(self):
        with pytest.raises(ValueError):
            RingSampleBuffer(0)


# ---------------------------------------------------------------------------
# SignalConditioner tests
# ---------------------------------------------------------------------------

class TestCorrectProxy:

    def test_scales_residue_to_300(self):
        assert correct_proxy(0.0) == 0.0
        assert correct_proxy(15.0) == pytest.approx(150.0)
        assert correct_proxy(45.0) == pytest.approx(150.0)
        assert correct_proxy(29.9) == pytest.approx(299.0)

    def test_negative_input_uses_floored_modulo(self):
        # -1 mod 30 == 29, never a negative residue.
        assert correct_proxy(-1.0) == pytest.approx(290.0)
        assert 0.0 <= correct_proxy(-123.4) < 300.0


class TestSignalConditioner:

    def test_mode_configs(self):
        assert MODE_CONFIGS[Mode.LOGIC1].stage1_window == 6
        assert MODE_CONFIGS[Mode.LOGIC1].normalize is False
        assert MODE_CONFIGS[Mode.LOGIC2].stage1_window == 4
        assert MODE_CONFIGS[Mode.LOGIC2].normalize is True

    def test_warmup_passthrough_without_buffer_write(self):
        cond, buf = _conditioner()
        rng = np.random.default_rng(1)
        for raw in rng.uniform(-50, 255, size=19):
            assert cond.condition(raw) == correct_proxy(raw)
        assert len(buf) == 0
        assert not cond.warmed_up

    def test_twentieth_sample_is_written(self):
        cond, buf = _conditioner()
        for _ in range(20):
            out = cond.condition(15.0)
        assert len(buf) == 1
        assert out == pytest.approx(150.0)
        assert buf.at_age(0) == pytest.approx(150.0)

    def test_windows_clip_to_available_history(self):
        cond, _ = _conditioner("Logic1")
        for _ in range(14):
            cond.condition(0.0)
        for _ in range(5):
            cond.condition(10.0)
        # Only one stage-1 value exists: stage 2 divides by 1, not 4.
        assert cond.condition(10.0) == pytest.approx(100.0)
        # Stage 1 over [100] * 5 + [0]; stage 2 over two values.
        assert cond.condition(0.0) == pytest.approx((100.0 + 500.0 / 6.0) / 2.0)

    def test_logic2_flat_signal_uses_unit_range(self):
        cond, _ = _conditioner("Logic2")
        for _ in range(25):
            out = cond.condition(15.0)
        assert out == 0.0

    def test_logic2_output_is_bounded(self):
        cond, _ = _conditioner("Logic2")
        rng = np.random.default_rng(7)
        outs = [cond.condition(v) for v in rng.uniform(0, 255, size=200)]
        assert all(0.0 <= v <= 100.0 for v in outs[19:])

    def test_mode_switch_keeps_history_and_changes_window(self):
        cond, _ = _conditioner("Logic1")
        for _ in range(14):
            cond.condition(0.0)
        for _ in range(6):
            cond.condition(10.0)
        before = cond.smoothed_history

        cond.set_mode("Logic2")
        assert cond.smoothed_history == before
        assert cond.config.stage1_window == 4

        # Stage 1 now averages 4 values: [100, 100, 100, 0] -> 75.
        # Stage 2 = (100 + 75) / 2; normalised against [75, 100].
        out = cond.condition(0.0)
        assert cond.smoothed_history[-1] == pytest.approx(75.0)
        assert out == pytest.approx(50.0)

    def test_unknown_mode_rejected(self):
        cond, _ = _conditioner()
        with pytest.raises(ValueError):
            cond.set_mode("Logic3")
        with pytest.raises(ValueError):
            SignalConditioner(RingSampleBuffer(), mode="fast")

    def test_histories_are_bounded(self):
        cond, _ = _conditioner()
        for v in range(100):
            cond.condition(float(v))
        assert len(cond.smoothed_history) == 20

    def test_raw_history_keeps_newest_samples(self):
        cond = SignalConditioner(RingSampleBuffer(), raw_history_size=50)
        for v in range(100):
            cond.condition(float(v))
        assert cond.raw_history == tuple(float(v) for v in range(50, 100))
        assert set(vars(cond)) == {
            "buffer", "_mode", "_raw_history", "_recent_corrected", "_smoothed",
        }

    def test_reset_clears_history(self):
        cond, _ = _conditioner()
        for _ in range(30):
            cond.condition(12.0)
        cond.reset()
        assert cond.smoothed_history == ()
        assert cond.raw_history == ()
        assert not cond.warmed_up
