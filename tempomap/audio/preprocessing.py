"""Signal conditioning applied before onset detection."""

from __future__ import annotations

import numpy as np
from scipy.signal import butter, sosfilt

from tempomap.analysis.models import AudioSamples
from tempomap.config import settings


def normalize(audio: np.ndarray) -> np.ndarray:
    """Peak-normalize to [-1, 1]. Silence comes back unchanged."""
    peak = np.max(np.abs(audio)) if len(audio) else 0.0
    if peak == 0:
        return audio
    return audio / peak


def high_pass_filter(
    audio: np.ndarray,
    sr: int,
    cutoff: float | None = None,
) -> np.ndarray:
    """Butterworth high-pass to strip rumble below the bass register.

    Parameters
    ----------
    audio:
        Input audio signal.
    sr:
        Sample rate in Hz.
    cutoff:
        Cutoff frequency in Hz. Defaults to ``settings.highpass_cutoff``.
    """
    cutoff = settings.highpass_cutoff if cutoff is None else cutoff
    if not 0 < cutoff < sr / 2:
        raise ValueError(f"cutoff must lie between 0 and the Nyquist frequency {sr / 2}, got {cutoff}")
    sos = butter(N=4, Wn=cutoff, btype="high", fs=sr, output="sos")
    return sosfilt(sos, audio)


def preprocess(audio: AudioSamples) -> AudioSamples:
    """Normalize then high-pass filter."""
    samples = normalize(audio.samples)
    samples = high_pass_filter(samples, audio.sample_rate)
    return AudioSamples.from_array(samples, audio.sample_rate)
