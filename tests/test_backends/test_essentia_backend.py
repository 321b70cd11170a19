"""Tests for the Essentia backend adapter, with essentia mocked out."""

import sys
from unittest.mock import MagicMock

import numpy as np
import pytest

from mastermeter.backends.essentia_backend import EssentiaBackend, load_essentia_backend
from mastermeter.utils.errors import InitializationError


@pytest.fixture
def es():
    return MagicMock()


@pytest.fixture
def backend(es):
    module = MagicMock(__version__="2.1-beta6-dev")
    return EssentiaBackend(module, es)


class TestEssentiaBackend:
    def test_version(self, backend):
        assert backend.version == "2.1-beta6-dev"

    def test_loudness(self, backend, es):
        es.LoudnessEBUR128.return_value.return_value = (
            np.array([-10.0, -9.0]), np.array([-9.5]), -9.2, 5.5
        )
        left = np.zeros(10)
        result = backend.loudness_ebur128(left, left, 48000, 0.1, False)

        es.LoudnessEBUR128.assert_called_once_with(hopSize=0.1, sampleRate=48000.0, startAtZero=False)
        assert result.integrated == -9.2
        assert result.loudness_range == 5.5
        assert result.momentary == [-10.0, -9.0]
        muxed = es.StereoMuxer.return_value.call_args.args
        assert all(arr.dtype == np.float32 for arr in muxed)

    def test_rhythm_extractor(self, backend, es):
        es.RhythmExtractor2013.return_value.return_value = (126.0, [], 3.8, [], [])
        assert backend.rhythm_extractor(np.zeros(10), 44100, 208, 40) == (126.0, 3.8)
        es.RhythmExtractor2013.assert_called_once_with(method='multifeature', maxTempo=208, minTempo=40)

    def test_percival(self, backend, es):
        es.PercivalBpmEstimator.return_value.return_value = 99.5
        assert backend.percival_bpm(np.zeros(10), 44100) == 99.5

    def test_key_extractor_forwards_params(self, backend, es):
        es.KeyExtractor.return_value.return_value = ("F", "major", 0.77)
        result = backend.key_extractor(np.zeros(10), 44100, {'profileType': 'bgate'})
        assert result == ("F", "major", 0.77)
        es.KeyExtractor.assert_called_once_with(sampleRate=44100.0, profileType='bgate')

    def test_frame_algorithms_are_cached(self, backend, es):
        frame = np.zeros(8)
        backend.windowing(frame, 'hann')
        backend.windowing(frame, 'hann')
        backend.windowing(frame, 'blackmanharris92')
        assert es.Windowing.call_count == 2

    def test_key_from_pcp(self, backend, es):
        es.Key.return_value.return_value = ("A", "minor", 0.6, 0.5)
        assert backend.key(np.ones(12), 'bgate') == ("A", "minor", 0.6)


class TestLoadEssentiaBackend:
    def test_missing_library(self, monkeypatch):
        monkeypatch.setitem(sys.modules, 'essentia', None)
        with pytest.raises(InitializationError) as exc_info:
            load_essentia_backend()
        assert exc_info.value.backend == 'essentia'

    def test_loads_module(self, monkeypatch):
        standard = MagicMock()
        module = MagicMock(__version__="2.1", standard=standard)
        monkeypatch.setitem(sys.modules, 'essentia', module)
        monkeypatch.setitem(sys.modules, 'essentia.standard', standard)
        backend = load_essentia_backend()
        assert backend.version == "2.1"
