"""Tests for master target checks and reference comparison."""

import pytest

from mastermeter.core.checks import (
    CheckLevel,
    compare_results,
    describe_tempo,
    display_key,
    evaluate_master,
    rate_bpm_confidence,
    rate_key_strength,
    round_bpm,
    worst_level,
)
from mastermeter.core.models import (
    AnalysisResult,
    BpmKeyResult,
    FileInfo,
    LoudnessResult,
    QualityResult,
    StereoResult,
)


def _result(lufs=-8.0, true_peak=-1.0, lra=4.0, width=0.4, duration=180.0,
            sample_rate=48000, channels=2, fmt="WAV", head=0.0, tail=0.5, start_zero=True):
    return AnalysisResult(
        file_info=FileInfo("song.wav", duration, sample_rate, channels, fmt),
        loudness=LoudnessResult(lufs, lra, true_peak),
        stereo=StereoResult(width),
        quality=QualityResult(0.0, 0.0, start_zero, True, head, tail),
    )


def _levels(comments):
    return {c.metric: c.level for c in comments}


class TestEvaluateMaster:
    def test_good_master_is_all_safe(self):
        comments = evaluate_master(_result())
        assert worst_level(comments) is CheckLevel.SAFE
        assert set(_levels(comments)) == {
            'duration', 'sample_rate', 'channels', 'format',
            'integrated_lufs', 'true_peak', 'loudness_range', 'stereo_width',
            'start_sample', 'end_sample', 'head_silence', 'tail_silence',
        }

    def test_too_loud_is_danger(self):
        levels = _levels(evaluate_master(_result(lufs=-4.0)))
        assert levels['integrated_lufs'] is CheckLevel.DANGER

    def test_too_quiet_is_warning(self):
        levels = _levels(evaluate_master(_result(lufs=-14.0)))
        assert levels['integrated_lufs'] is CheckLevel.WARNING

    def test_silent_file_loudness_is_warning(self):
        levels = _levels(evaluate_master(_result(lufs=float('-inf'), true_peak=float('-inf'))))
        assert levels['integrated_lufs'] is CheckLevel.WARNING
        assert levels['true_peak'] is CheckLevel.SAFE

    def test_true_peak_over_limit(self):
        levels = _levels(evaluate_master(_result(true_peak=2.0)))
        assert levels['true_peak'] is CheckLevel.DANGER

    def test_width_and_lra_bounds(self):
        levels = _levels(evaluate_master(_result(width=0.05, lra=8.0)))
        assert levels['stereo_width'] is CheckLevel.WARNING
        assert levels['loudness_range'] is CheckLevel.WARNING

    def test_file_info_warnings(self):
        comments = evaluate_master(_result(duration=60.0, sample_rate=44100, channels=1, fmt="MP3"))
        levels = _levels(comments)
        assert levels['duration'] is CheckLevel.WARNING
        assert levels['sample_rate'] is CheckLevel.WARNING
        assert levels['channels'] is CheckLevel.WARNING
        assert levels['format'] is CheckLevel.WARNING
        duration = next(c for c in comments if c.metric == 'duration')
        assert duration.message == "A bit short: 2:00 to 3:30 is typical"

    def test_edges(self):
        levels = _levels(evaluate_master(_result(start_zero=False, head=1.5)))
        assert levels['start_sample'] is CheckLevel.WARNING
        assert levels['end_sample'] is CheckLevel.SAFE
        assert levels['head_silence'] is CheckLevel.WARNING
        assert levels['tail_silence'] is CheckLevel.SAFE

    def test_target_overrides(self):
        levels = _levels(evaluate_master(_result(lufs=-14.0), {'lufs_min': -16.0, 'lufs_max': -12.0}))
        assert levels['integrated_lufs'] is CheckLevel.SAFE

    def test_missing_groups_are_skipped(self):
        partial = AnalysisResult(file_info=FileInfo.empty(), stereo=StereoResult(0.3))
        assert [c.metric for c in evaluate_master(partial)] == ['stereo_width']

    def test_worst_level_of_nothing_is_safe(self):
        assert worst_level([]) is CheckLevel.SAFE


class TestTempoAndKeyLabels:
    @pytest.mark.parametrize(
        "confidence, level",
        [(4.0, CheckLevel.SAFE), (2.0, CheckLevel.WARNING), (0.0, CheckLevel.DANGER)],
    )
    def test_rate_bpm_confidence(self, confidence, level):
        assert rate_bpm_confidence(confidence) is level

    @pytest.mark.parametrize(
        "strength, level",
        [(0.9, CheckLevel.SAFE), (0.5, CheckLevel.WARNING), (0.1, CheckLevel.DANGER)],
    )
    def test_rate_key_strength(self, strength, level):
        assert rate_key_strength(strength) is level

    def test_round_bpm(self):
        assert round_bpm(127.6) == 128
        assert round_bpm(0.0) == 0
        assert round_bpm(-3.0) == 0

    def test_describe_tempo(self):
        assert describe_tempo(0) == ''
        assert describe_tempo(65).startswith('Very Slow')
        assert describe_tempo(128).startswith('Upbeat')
        assert describe_tempo(174).startswith('Very Fast')

    def test_display_key(self):
        assert display_key(BpmKeyResult(key="C#", scale="minor")) == "C#/Db Minor"
        assert display_key(BpmKeyResult(key="Bb", scale="major")) == "A#/Bb Major"
        assert display_key(BpmKeyResult()) == "---"


class TestCompareResults:
    def test_differences_are_b_minus_a(self):
        a = _result(lufs=-10.0, true_peak=-2.0, lra=5.0, width=0.3)
        b = _result(lufs=-8.0, true_peak=-1.0, lra=4.0, width=0.5)
        diff = compare_results(a, b)
        assert diff['integrated_lufs'] == pytest.approx(2.0)
        assert diff['true_peak_dbtp'] == pytest.approx(1.0)
        assert diff['loudness_range'] == pytest.approx(-1.0)
        assert diff['width_percent'] == pytest.approx(20.0)

    def test_missing_or_infinite_values_are_none(self):
        a = _result(lufs=float('-inf'))
        b = AnalysisResult(file_info=FileInfo.empty())
        diff = compare_results(a, b)
        assert diff == {
            'integrated_lufs': None,
            'true_peak_dbtp': None,
            'loudness_range': None,
            'width_percent': None,
        }
        assert compare_results(a, _result())['integrated_lufs'] is None

    def test_width_capped_for_display(self):
        diff = compare_results(_result(width=0.5), _result(width=5.0))
        assert diff['width_percent'] == pytest.approx(150.0)
