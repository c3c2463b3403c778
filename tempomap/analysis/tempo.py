"""Global tempo estimation from onset autocorrelation."""

import logging
import math
from dataclasses import dataclass

import numpy as np

from tempomap.analysis.models import TempoEstimate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TempoOptions:
    """Tunables for :func:`estimate_tempo`."""
    resolution: float = 0.01  # seconds per impulse-signal bin
    min_onsets: int = 20
    fallback_bpm: float = 120.0
    peak_floor: float = 0.001
    top_peaks: int = 5
    fold_low: float = 60.0
    fold_high: float = 120.0
    ballad_range: tuple[float, float] = (60.0, 90.0)
    ballad_bonus: float = 0.1
    pop_range: tuple[float, float] = (90.0, 130.0)
    pop_bonus: float = 0.05
    max_onsets_per_beat: float = 6.0
    min_onsets_per_beat: float = 1.0


DEFAULT_TEMPO_OPTIONS = TempoOptions()


def fold_bpm(bpm: float, low: float = 60.0, high: float = 120.0) -> float:
    """Halve or double *bpm* until it lies in [low, high]."""
    if bpm <= 0:
        raise ValueError(f"bpm must be positive, got {bpm}")
    while bpm > high:
        bpm /= 2
    while bpm < low:
        bpm *= 2
    return bpm


def onset_impulse_signal(onsets: list[float], duration: float, resolution: float = 0.01) -> np.ndarray:
    """Binary impulse train with one bin per *resolution* seconds."""
    length = math.ceil(duration / resolution)
    signal = np.zeros(length)
    idx = np.floor(np.asarray(onsets, dtype=np.float64) / resolution).astype(int)
    idx = idx[(idx >= 0) & (idx < length)]
    signal[idx] = 1.0
    return signal


def lag_correlations(signal: np.ndarray, min_lag: int, max_lag: int) -> list[tuple[int, float]]:
    """Mean product of *signal* with itself shifted by each lag."""
    n = len(signal)
    out = []
    for lag in range(max(min_lag, 1), max_lag + 1):
        count = n - lag
        if count <= 0:
            break
        out.append((lag, float(np.dot(signal[:count], signal[lag:])) / count))
    return out


def find_peaks(correlations: list[tuple[int, float]], floor: float = 0.001) -> list[tuple[int, float]]:
    """Interior strict local maxima above *floor*, strongest first."""
    peaks = [
        correlations[i]
        for i in range(1, len(correlations) - 1)
        if correlations[i - 1][1] < correlations[i][1] > correlations[i + 1][1]
        and correlations[i][1] > floor
    ]
    return sorted(peaks, key=lambda p: p[1], reverse=True)


def range_bonus(bpm: float, options: TempoOptions = DEFAULT_TEMPO_OPTIONS) -> float:
    if options.ballad_range[0] <= bpm <= options.ballad_range[1]:
        return options.ballad_bonus
    if options.pop_range[0] <= bpm <= options.pop_range[1]:
        return options.pop_bonus
    return 0.0


def select_octave(
    bpm: float,
    onset_count: int,
    duration: float,
    options: TempoOptions = DEFAULT_TEMPO_OPTIONS,
) -> float:
    """Fold into the common range, then sanity-check against onset density.

    Far more than six onsets per beat means the pulse is too slow; fewer
    than one means it is too fast.
    """
    bpm = fold_bpm(bpm, options.fold_low, options.fold_high)
    onsets_per_beat = (onset_count / duration) / (bpm / 60)
    if onsets_per_beat > options.max_onsets_per_beat and bpm < options.fold_high:
        bpm *= 2
    elif onsets_per_beat < options.min_onsets_per_beat and bpm > options.fold_low:
        bpm /= 2
    return bpm


def estimate_tempo(
    onsets: list[float],
    duration: float,
    min_bpm: float = 50,
    max_bpm: float = 180,
    options: TempoOptions = DEFAULT_TEMPO_OPTIONS,
) -> TempoEstimate:
    """Estimate one global BPM from onset periodicity.

    Fewer than ``options.min_onsets`` onsets, or no usable periodicity,
    yields the fallback ``TempoEstimate(120.0, 0.0)``.
    """
    if min_bpm <= 0 or min_bpm >= max_bpm:
        raise ValueError(f"need 0 < min_bpm < max_bpm, got {min_bpm}..{max_bpm}")
    if duration <= 0:
        raise ValueError(f"duration must be positive, got {duration}")

    fallback = TempoEstimate(bpm=options.fallback_bpm, confidence=0.0)
    if len(onsets) < options.min_onsets:
        logger.debug("Only %d onsets; using fallback tempo", len(onsets))
        return fallback

    res = options.resolution
    signal = onset_impulse_signal(onsets, duration, res)
    min_lag = round(60 / (max_bpm * res))
    max_lag = round(60 / (min_bpm * res))
    peaks = find_peaks(lag_correlations(signal, min_lag, max_lag), options.peak_floor)
    if not peaks:
        logger.debug("No autocorrelation peaks; using fallback tempo")
        return fallback

    best_bpm = 60 / (peaks[0][0] * res)
    best_score = peaks[0][1]
    for lag, correlation in peaks[:options.top_peaks]:
        bpm = fold_bpm(60 / (lag * res), options.fold_low, options.fold_high)
        score = correlation + range_bonus(bpm, options)
        if score > best_score:
            best_score = score
            best_bpm = bpm

    bpm = select_octave(best_bpm, len(onsets), duration, options)
    logger.debug("Tempo %.2f BPM from %d peaks (score %.4f)", bpm, len(peaks), best_score)
    return TempoEstimate(bpm=round(bpm, 2), confidence=min(1.0, best_score * 10))
