"""
DSP backends.

Essentia is only imported when ``load_essentia_backend`` runs.
"""

from mastermeter.backends.base import DspBackend, LoudnessMeasurement
from mastermeter.backends.essentia_backend import EssentiaBackend, load_essentia_backend

__all__ = [
    "DspBackend",
    "LoudnessMeasurement",
    "EssentiaBackend",
    "load_essentia_backend",
]
