"""Tests for true peak estimation."""

import math

import numpy as np
import pytest

from mastermeter.dsp.true_peak import estimate_true_peak
from conftest import make_sine


def _sample_peak_db(*channels):
    return 20 * math.log10(max(float(np.max(np.abs(c))) for c in channels))


class TestEstimateTruePeak:
    def test_silence_is_negative_infinity(self, silence):
        assert estimate_true_peak(silence, silence) == float("-inf")

    def test_empty_input_is_negative_infinity(self):
        empty = np.array([], dtype=np.float32)
        assert estimate_true_peak(empty, empty) == float("-inf")

    def test_full_scale_sine_close_to_zero_dbtp(self, sine):
        estimate = estimate_true_peak(sine, sine)
        assert estimate >= _sample_peak_db(sine) - 1e-9
        assert abs(estimate) <= 0.3

    def test_recovers_inter_sample_peak(self):
        # fs/4 sine at 45 degrees: every sample sits at +-0.707
        signal = make_sine(frequency=12000, sample_rate=48000, duration=0.01, phase=math.pi / 4)
        coarse = _sample_peak_db(signal)
        estimate = estimate_true_peak(signal, signal)
        assert coarse == pytest.approx(-3.01, abs=0.01)
        assert estimate > coarse + 1.0

    def test_uses_louder_channel(self):
        quiet = make_sine(amplitude=0.25)
        loud = make_sine(amplitude=0.5)
        estimate = estimate_true_peak(quiet, loud)
        assert estimate == pytest.approx(20 * math.log10(0.5), abs=0.3)

    def test_short_signal_falls_back_to_sample_peak(self):
        short = np.array([0.1, -0.5, 0.2], dtype=np.float32)
        assert estimate_true_peak(short, short) == pytest.approx(20 * math.log10(0.5))

    def test_mono_passed_twice_matches_single_channel(self, sine):
        half = (sine * 0.5).astype(np.float32)
        assert estimate_true_peak(half, half) == pytest.approx(
            estimate_true_peak(half, np.zeros_like(half))
        )
