"""Head/tail silence and edge sample checks."""

import numpy as np

from mastermeter.core.models import QualityResult

SILENCE_THRESHOLD = 0.001


def detect_silence_boundaries(
    samples: np.ndarray,
    sample_rate: float,
    threshold: float = SILENCE_THRESHOLD,
) -> QualityResult:
    """
    Measure leading and trailing silence of one channel.

    Head and tail are counted independently: consecutive samples whose
    magnitude does not exceed ``threshold``, stopping at the first louder
    sample. A fully silent signal therefore reports its full duration for
    both head and tail.

    Args:
        samples: Channel samples
        sample_rate: Sample rate in Hz
        threshold: Amplitude at or below which a sample counts as silent

    Returns:
        QualityResult: Edge amplitudes, zero flags and silence durations
    """
    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")

    x = np.asarray(samples, dtype=np.float64)
    n = x.size

    if n == 0:
        return QualityResult(
            start_amplitude=0.0,
            end_amplitude=0.0,
            start_is_zero=True,
            end_is_zero=True,
            head_silence=0.0,
            tail_silence=0.0,
        )

    magnitude = np.abs(x)
    audible = magnitude > threshold

    if not audible.any():
        head_samples = tail_samples = n
    else:
        head_samples = int(np.argmax(audible))
        tail_samples = int(np.argmax(audible[::-1]))

    start_amplitude = float(magnitude[0])
    end_amplitude = float(magnitude[-1])

    return QualityResult(
        start_amplitude=start_amplitude,
        end_amplitude=end_amplitude,
        start_is_zero=start_amplitude < threshold,
        end_is_zero=end_amplitude < threshold,
        head_silence=head_samples / sample_rate,
        tail_silence=tail_samples / sample_rate,
    )
