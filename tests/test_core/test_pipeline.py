"""Tests for ProgressReporter and FeatureExtractionPipeline."""

import math

import numpy as np
import pytest

from mastermeter.core.models import LoudnessResult, QualityResult, StereoResult
from mastermeter.core.pipeline import FeatureExtractionPipeline, ProgressReporter
from conftest import FakeBackend


class TestProgressReporter:
    def test_forwards_states(self):
        states = []
        reporter = ProgressReporter(states.append)
        reporter.report('phase1', 5, 'Measuring loudness...')
        assert states[0].phase == 'phase1'
        assert states[0].percent == 5.0
        assert states[0].label == 'Measuring loudness...'

    def test_percent_never_decreases(self):
        states = []
        reporter = ProgressReporter(states.append)
        reporter.report('a', 40)
        reporter.report('b', 20)
        assert [s.percent for s in states] == [40.0, 40.0]
        assert states[1].phase == 'b'

    def test_percent_is_clamped(self):
        reporter = ProgressReporter()
        assert reporter.report('a', -5).percent == 0.0
        assert reporter.report('a', 150).percent == 100.0
        assert reporter.percent == 100.0


class TestFeatureExtractionPipeline:
    def _run(self, backend, left, right, sample_rate=48000):
        states, partials = [], []
        pipeline = FeatureExtractionPipeline(backend)
        pipeline.run(left, right, sample_rate, ProgressReporter(states.append), partials.append)
        return states, partials

    def test_progress_checkpoints(self, fake_backend, sine):
        states, _ = self._run(fake_backend, sine, sine)
        assert [(s.phase, s.percent) for s in states] == [
            ('phase1', 5.0),
            ('phase1', 40.0),
            ('phase1', 70.0),
        ]

    def test_partials_in_order(self, fake_backend, sine):
        _, partials = self._run(fake_backend, sine, sine * 0.5)
        assert [set(p) for p in partials] == [{'loudness', 'stereo'}, {'quality'}]

        loudness = partials[0]['loudness']
        assert isinstance(loudness, LoudnessResult)
        assert loudness.integrated_lufs == -8.0
        assert loudness.loudness_range == 4.0
        assert loudness.momentary_loudness == (-10.0, -9.0, -8.5)
        assert loudness.short_term_loudness == (-9.5,)
        assert abs(loudness.true_peak_dbtp) <= 0.3

        assert isinstance(partials[0]['stereo'], StereoResult)
        assert partials[0]['stereo'].width == pytest.approx(1 / 3, rel=1e-4)
        assert isinstance(partials[1]['quality'], QualityResult)

    def test_loudness_failure_uses_defaults(self, sine):
        backend = FakeBackend(fail={'loudness_ebur128'})
        _, partials = self._run(backend, sine, sine)
        loudness = partials[0]['loudness']
        assert loudness.integrated_lufs == float('-inf')
        assert loudness.loudness_range == 0.0
        assert loudness.momentary_loudness == ()
        assert math.isfinite(loudness.true_peak_dbtp)
        assert 'quality' in partials[1]

    def test_quality_uses_left_channel(self, fake_backend):
        left = np.concatenate([np.zeros(480, dtype=np.float32), np.full(480, 0.5, dtype=np.float32)])
        right = np.full(960, 0.5, dtype=np.float32)
        _, partials = self._run(fake_backend, left, right)
        quality = partials[1]['quality']
        assert quality.head_silence == pytest.approx(0.01)
        assert quality.start_is_zero is True

    def test_loudness_hop_size_is_passed(self, sine):
        backend = FakeBackend()
        seen = []
        original = backend.loudness_ebur128

        def spy(left, right, sample_rate, hop_size, start_at_zero):
            seen.append((sample_rate, hop_size, start_at_zero))
            return original(left, right, sample_rate, hop_size, start_at_zero)

        backend.loudness_ebur128 = spy
        pipeline = FeatureExtractionPipeline(backend, loudness_hop_size=0.2)
        pipeline.run(sine, sine, 48000, ProgressReporter(), lambda data: None)
        assert seen == [(48000, 0.2, False)]
