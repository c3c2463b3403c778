"""Decode audio files into mono sample buffers."""

from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path
from typing import Union

import librosa

from tempomap.analysis.models import AudioSamples
from tempomap.config import settings

logger = logging.getLogger(__name__)


def load_audio(
    file_path_or_buffer: Union[str, Path, BytesIO],
    sr: int | None = None,
) -> AudioSamples:
    """Load an audio file or buffer as read-only mono samples.

    Parameters
    ----------
    file_path_or_buffer:
        Path to an audio file or a BytesIO buffer containing audio data.
    sr:
        Target sample rate. Defaults to ``settings.sample_rate``.
    """
    target_sr = settings.sample_rate if sr is None else sr
    if target_sr <= 0:
        raise ValueError(f"sample rate must be positive, got {target_sr}")
    audio, sample_rate = librosa.load(file_path_or_buffer, sr=target_sr, mono=settings.mono)
    samples = AudioSamples.from_array(audio, sample_rate)
    logger.debug("Loaded %.2fs of audio at %d Hz", samples.duration, sample_rate)
    return samples
