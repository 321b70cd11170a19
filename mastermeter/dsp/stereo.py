"""Stereo width from mid/side energy."""

import math

import numpy as np


def compute_stereo_width(left: np.ndarray, right: np.ndarray) -> float:
    """
    Return RMS(side) / RMS(mid) over the common length of both channels.

    0.0 means mono. The ratio is not bounded above; out-of-phase material
    goes past 1.0. Silent or empty input yields 0.0.
    """
    length = min(len(left), len(right))
    if length == 0:
        return 0.0

    left_arr = np.asarray(left[:length], dtype=np.float64)
    right_arr = np.asarray(right[:length], dtype=np.float64)

    mid = (left_arr + right_arr) * 0.5
    side = (left_arr - right_arr) * 0.5

    mid_rms = math.sqrt(float(np.mean(mid * mid)))
    side_rms = math.sqrt(float(np.mean(side * side)))

    if mid_rms == 0.0:
        return 0.0
    return side_rms / mid_rms
