"""
MasterMeter - Mastering Measurement Toolkit

Measures integrated loudness, loudness range, true peak, stereo width,
head/tail silence, tempo and key of decoded audio, with a background
worker that streams progress and partial results to the caller.
"""

__version__ = "1.0.0"
__author__ = "MasterMeter Team"
