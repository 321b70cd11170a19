"""
Signal measurements computed locally with numpy.

True peak, stereo width and silence boundaries do not go through the
DSP backend; they only need the decoded sample arrays.
"""

from mastermeter.dsp.silence import SILENCE_THRESHOLD, detect_silence_boundaries
from mastermeter.dsp.stereo import compute_stereo_width
from mastermeter.dsp.true_peak import estimate_true_peak

__all__ = [
    "SILENCE_THRESHOLD",
    "compute_stereo_width",
    "detect_silence_boundaries",
    "estimate_true_peak",
]
