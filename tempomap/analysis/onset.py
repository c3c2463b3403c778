"""Energy-based onset detection with named parameter presets."""

import logging
from dataclasses import dataclass, fields, replace

import librosa
import numpy as np

from tempomap.analysis.models import AudioSamples

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OnsetOptions:
    """Onset detector parameters.

    frame_size:
        Samples per RMS frame.
    hop_size:
        Samples between consecutive frame starts.
    threshold:
        Minimum rise in normalized energy from the previous frame.
    min_onset_interval:
        Minimum spacing in seconds between accepted onsets.
    local_max_window:
        Frames on each side a candidate must dominate.
    use_relative_increase:
        Also accept candidates whose fractional rise clears
        ``relative_increase_threshold``.
    relative_increase_threshold:
        Fractional rise (0.3 = +30%) for relative-increase mode.
    """
    frame_size: int = 1024
    hop_size: int = 512
    threshold: float = 0.02
    min_onset_interval: float = 0.05
    local_max_window: int = 2
    use_relative_increase: bool = True
    relative_increase_threshold: float = 0.3

    def validate(self) -> None:
        if self.frame_size <= 0 or self.hop_size <= 0:
            raise ValueError(
                f"frame_size and hop_size must be positive, got {self.frame_size}/{self.hop_size}"
            )
        if self.local_max_window < 1:
            raise ValueError(f"local_max_window must be >= 1, got {self.local_max_window}")
        if self.threshold < 0 or self.relative_increase_threshold < 0:
            raise ValueError("onset thresholds must be non-negative")
        if self.min_onset_interval < 0:
            raise ValueError(f"min_onset_interval must be non-negative, got {self.min_onset_interval}")


# Finer frames resolve short ornamental notes; "core" uses coarser frames
# without relative-increase gating for dense mixed material.
PRESETS: dict[str, OnsetOptions] = {
    "analysis": OnsetOptions(),
    "snapping": OnsetOptions(),
    "fermata": OnsetOptions(frame_size=512, hop_size=256, min_onset_interval=0.1),
    "accuracy": OnsetOptions(frame_size=512, hop_size=256, min_onset_interval=0.1),
    "core": OnsetOptions(threshold=0.015, local_max_window=3, use_relative_increase=False),
}

_OPTION_NAMES = frozenset(f.name for f in fields(OnsetOptions))


def resolve_options(
    preset: str = "core",
    options: OnsetOptions | None = None,
    **overrides,
) -> OnsetOptions:
    """Pick the preset (or explicit *options*) and apply field overrides."""
    if options is None:
        if preset not in PRESETS:
            raise ValueError(f"Unknown onset preset {preset!r}. Use one of: {', '.join(PRESETS)}")
        options = PRESETS[preset]
    unknown = set(overrides) - _OPTION_NAMES
    if unknown:
        raise ValueError(f"Unknown onset options: {', '.join(sorted(unknown))}")
    if overrides:
        options = replace(options, **overrides)
    options.validate()
    return options


def _unpack(audio, sr: int) -> tuple[np.ndarray, int]:
    if isinstance(audio, AudioSamples):
        return audio.samples, audio.sample_rate
    if sr <= 0:
        raise ValueError(f"sample rate must be positive, got {sr}")
    return np.asarray(audio, dtype=np.float64).ravel(), sr


def frame_energies(samples: np.ndarray, frame_size: int, hop_size: int) -> np.ndarray:
    """RMS energy of each full frame; empty when the buffer is too short."""
    n_frames = (len(samples) - frame_size) // hop_size
    if n_frames <= 0:
        return np.zeros(0)
    rms = librosa.feature.rms(
        y=np.asarray(samples, dtype=np.float64),
        frame_length=frame_size,
        hop_length=hop_size,
        center=False,
    )[0]
    return rms[:n_frames]


def detect_onsets(
    audio: np.ndarray | AudioSamples,
    sr: int = 22050,
    preset: str = "core",
    options: OnsetOptions | None = None,
    **overrides,
) -> list[float]:
    """Detect note/percussive attacks as sudden rises in frame energy.

    Returns sorted onset times in seconds. Silent or too-short audio gives
    an empty list.
    """
    opts = resolve_options(preset, options, **overrides)
    samples, sr = _unpack(audio, sr)

    energies = frame_energies(samples, opts.frame_size, opts.hop_size)
    if energies.size == 0:
        return []
    max_energy = float(energies.max())
    if max_energy <= 0:
        return []
    normalized = energies / max_energy

    w = opts.local_max_window
    n = len(normalized)
    if n <= 2 * w:
        return []

    frames = np.arange(w, n - w)
    current = normalized[frames]
    previous = normalized[frames - 1]
    increase = current - previous
    relative = np.where(previous > 0.01, increase / np.maximum(previous, 0.01), increase)

    candidate = increase >= opts.threshold
    if opts.use_relative_increase:
        candidate |= relative >= opts.relative_increase_threshold

    is_peak = candidate.copy()
    for j in range(1, w + 1):
        is_peak &= normalized[frames - j] < current
        is_peak &= normalized[frames + j] <= current

    times = librosa.frames_to_time(frames[is_peak], sr=sr, hop_length=opts.hop_size)

    onsets: list[float] = []
    for t in times:
        if not onsets or t - onsets[-1] >= opts.min_onset_interval:
            onsets.append(float(t))

    logger.debug("Detected %d onsets from %d frames", len(onsets), n)
    return onsets


def detect_alignment_onsets(
    audio: np.ndarray | AudioSamples,
    sr: int = 22050,
    skip_ranges: list[tuple[float, float]] | None = None,
    preset: str = "accuracy",
) -> list[float]:
    """Onsets for alignment checks, excluding any inside *skip_ranges* (inclusive)."""
    onsets = detect_onsets(audio, sr, preset=preset)
    if not skip_ranges:
        return onsets
    return [
        t for t in onsets
        if not any(start <= t <= end for start, end in skip_ranges)
    ]


def detect_music_start(audio: np.ndarray | AudioSamples, sr: int = 22050) -> float:
    """Time at which 100 ms RMS first exceeds 5% of its maximum."""
    samples, sr = _unpack(audio, sr)
    window = int(sr * 0.1)
    hop = max(1, window // 4)
    if window <= 0 or len(samples) <= window:
        return 0.0

    rms = librosa.feature.rms(y=samples, frame_length=window, hop_length=hop, center=False)[0]
    threshold = max(float(rms.max()), 0.0001) * 0.05
    above = np.flatnonzero(rms > threshold)
    if above.size == 0:
        return 0.0
    return float(above[0] * hop / sr)
