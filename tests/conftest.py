"""Shared test fixtures for tempo analysis tests."""

import numpy as np
import pytest

SR = 22050
HOP = 512


def generate_tone_track(
    onset_frames: list[int],
    n_frames: int,
    sr: int = SR,
    hop: int = HOP,
    amplitudes: list[float] | None = None,
    burst_seconds: float = 0.2,
) -> np.ndarray:
    """Synthetic track of decaying 1 kHz tone bursts.

    Bursts start at ``frame * hop`` samples so that energy-based onsets land
    exactly on ``frame * hop / sr`` seconds.
    """
    n_samples = n_frames * hop
    audio = np.zeros(n_samples)

    burst_samples = int(burst_seconds * sr)
    t_burst = np.arange(burst_samples) / sr
    burst = np.sin(2 * np.pi * 1000 * t_burst) * np.exp(-t_burst * 30)

    if amplitudes is None:
        amplitudes = [1.0] * len(onset_frames)
    for frame, amplitude in zip(onset_frames, amplitudes):
        start = frame * hop
        end = min(start + burst_samples, n_samples)
        audio[start:end] += burst[:end - start] * amplitude
    return audio


def onset_frames_to_times(frames: list[int], sr: int = SR, hop: int = HOP) -> list[float]:
    return [f * hop / sr for f in frames]


def steady_onsets(bpm: float, duration: float, jitter: float = 0.0, seed: int = 0) -> list[float]:
    """Quarter-note onsets at *bpm* with optional uniform timing jitter."""
    rng = np.random.default_rng(seed)
    interval = 60.0 / bpm
    times = np.arange(0.0, duration, interval)
    if jitter:
        times = times + rng.uniform(-jitter, jitter, len(times))
    return sorted(float(t) for t in times if t >= 0)


def accelerating_onsets(start_bpm: float, end_bpm: float, count: int) -> list[float]:
    """Onsets whose instantaneous tempo ramps linearly from *start_bpm* to *end_bpm*."""
    onsets = [0.0]
    for k in range(count - 1):
        bpm = start_bpm + (end_bpm - start_bpm) * k / (count - 1)
        onsets.append(onsets[-1] + 60.0 / bpm)
    return onsets


@pytest.fixture
def mixed_track():
    """About 30s of quarter-note bursts with softer eighth notes between (~80.75 BPM)."""
    quarters = [8 + 32 * k for k in range(40)]
    eighths = [q + 16 for q in quarters]
    frames = sorted(quarters + eighths)
    amplitudes = [1.0 if f in quarters else 0.5 for f in frames]
    return generate_tone_track(frames, frames[-1] + 40, amplitudes=amplitudes)


@pytest.fixture
def silence():
    return np.zeros(SR * 5)
