"""Onset alignment scoring: how well a beat grid at a given BPM lands on onsets.

A correct BPM puts grid beats consistently near note attacks; a wrong one
drifts between them. This gives an independent check of an estimated tempo
without ground truth.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np

from tempomap.analysis.models import AlignmentAnalysis, AlignmentScore

logger = logging.getLogger(__name__)

MIN_SWEEP_BPM = 30.0
MAX_SWEEP_BPM = 300.0
TOP_CANDIDATES = 10


@dataclass(frozen=True)
class AlignmentWeights:
    """Quarter-note likelihood weights for onsets.

    Dense eighth/sixteenth material puts an onset near almost any grid
    position, so onsets whose neighbours sit about one beat away count more.
    """
    base: float = 0.3
    quarter_bonus: float = 0.35
    quarter_tolerance: float = 0.2  # fraction of the beat interval
    half_bonus: float = 0.25
    half_tolerance: float = 0.4  # fraction of the beat interval, around two beats
    cap: float = 1.0


DEFAULT_WEIGHTS = AlignmentWeights()


def _neighbour_bonus(gap: float, beat_interval: float, weights: AlignmentWeights) -> float:
    if abs(gap - beat_interval) < beat_interval * weights.quarter_tolerance:
        return weights.quarter_bonus
    if abs(gap - 2 * beat_interval) < beat_interval * weights.half_tolerance:
        return weights.half_bonus
    return 0.0


def weight_onsets(
    onsets: np.ndarray,
    bpm: float,
    weights: AlignmentWeights = DEFAULT_WEIGHTS,
) -> np.ndarray:
    """Weight each (sorted) onset by how likely it is to be a quarter note."""
    beat_interval = 60.0 / bpm
    out = np.full(len(onsets), weights.base)
    for i in range(len(onsets)):
        if i + 1 < len(onsets):
            out[i] += _neighbour_bonus(onsets[i + 1] - onsets[i], beat_interval, weights)
        if i > 0:
            out[i] += _neighbour_bonus(onsets[i] - onsets[i - 1], beat_interval, weights)
    return np.minimum(out, weights.cap)


def beat_grid_times(bpm: float, start_time: float, end_time: float) -> np.ndarray:
    """Grid beats ``start + k * interval`` up to and including *end_time*."""
    interval = 60.0 / bpm
    count = int(math.floor((end_time - start_time) / interval + 1e-9)) + 1
    return start_time + np.arange(count) * interval


def nearest_onsets(beats: np.ndarray, onsets: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Index of and distance to the nearest onset for each beat.

    Equal distances resolve to the earlier onset.
    """
    right = np.clip(np.searchsorted(onsets, beats, side="left"), 0, len(onsets) - 1)
    left = np.clip(right - 1, 0, len(onsets) - 1)
    d_left = np.abs(beats - onsets[left])
    d_right = np.abs(beats - onsets[right])
    use_left = d_left <= d_right
    idx = np.where(use_left, left, right)
    return idx, np.where(use_left, d_left, d_right)


def calculate_alignment_score(
    bpm: float,
    onsets: list[float],
    start_time: float,
    end_time: float,
    tolerance: float | None = None,
    weights: AlignmentWeights = DEFAULT_WEIGHTS,
) -> AlignmentScore:
    """Score a beat grid at *bpm* from *start_time* to *end_time* against *onsets*.

    A beat is a hit when its nearest onset is within *tolerance* seconds
    (default 1/8 of the beat interval). The combined score blends mean
    error, miss rate in beat units and error spread; lower is better.
    With no onsets every beat counts as one full beat interval off.
    """
    if bpm <= 0:
        raise ValueError(f"bpm must be positive, got {bpm}")
    if end_time < start_time:
        raise ValueError(f"end_time {end_time} is before start_time {start_time}")

    beat_interval = 60.0 / bpm
    hit_tolerance = beat_interval / 8 if tolerance is None else tolerance
    beats = beat_grid_times(bpm, start_time, end_time)
    sorted_onsets = np.sort(np.asarray(onsets, dtype=np.float64))

    if len(sorted_onsets) == 0:
        return AlignmentScore(
            bpm=bpm,
            mean_error=beat_interval,
            median_error=beat_interval,
            hit_rate=0.0,
            error_std_dev=0.0,
            score=0.8 * beat_interval,
            weighted_mean_error=beat_interval / weights.base,
        )

    onset_weights = weight_onsets(sorted_onsets, bpm, weights)
    idx, errors = nearest_onsets(beats, sorted_onsets)

    mean_error = float(errors.mean())
    median_error = float(np.sort(errors)[len(errors) // 2])
    hit_rate = float(np.count_nonzero(errors <= hit_tolerance)) / len(errors)
    error_std = float(errors.std())
    score = mean_error * 0.4 + (1 - hit_rate) * beat_interval * 0.4 + error_std * 0.2

    return AlignmentScore(
        bpm=bpm,
        mean_error=mean_error,
        median_error=median_error,
        hit_rate=hit_rate,
        error_std_dev=error_std,
        score=score,
        weighted_mean_error=float((errors / onset_weights[idx]).mean()),
    )


def candidate_bpms(detected_bpm: float, bpm_range: float = 5, bpm_step: float = 0.5) -> list[float]:
    """Sweep around *detected_bpm* plus the neighbouring whole numbers."""
    if detected_bpm <= 0:
        raise ValueError(f"detected_bpm must be positive, got {detected_bpm}")
    if bpm_step <= 0 or bpm_range < 0:
        raise ValueError(f"need bpm_step > 0 and bpm_range >= 0, got {bpm_step}/{bpm_range}")

    low = max(MIN_SWEEP_BPM, detected_bpm - bpm_range)
    high = min(MAX_SWEEP_BPM, detected_bpm + bpm_range)
    if low > high:
        raise ValueError(
            f"detected_bpm {detected_bpm} is outside the {MIN_SWEEP_BPM}-{MAX_SWEEP_BPM} BPM sweep range"
        )

    steps = int(math.floor((high - low) / bpm_step + 1e-9))
    bpms = [round(low + i * bpm_step, 6) for i in range(steps + 1)]

    floor, ceil = math.floor(detected_bpm), math.ceil(detected_bpm)
    for b in (floor - 1, floor, ceil, ceil + 1, detected_bpm):
        if low <= b <= high and not any(abs(b - existing) < 0.1 for existing in bpms):
            bpms.append(float(b))
    return bpms


def _recommendation(detected_bpm: float, best: AlignmentScore, detected: AlignmentScore) -> str:
    diff = abs(best.bpm - detected_bpm)
    if diff < 0.3:
        text = f"Detected BPM ({detected_bpm}) is optimal or very close to optimal."
    elif diff < 1:
        text = (
            f"Detected BPM ({detected_bpm}) is close, but {best.bpm:.1f} BPM "
            "aligns slightly better with onsets."
        )
    else:
        text = f"Consider adjusting BPM from {detected_bpm} to {best.bpm:.1f} for better alignment."
    return (
        f"{text} (Hit rate: detected={detected.hit_rate * 100:.1f}%, "
        f"best={best.hit_rate * 100:.1f}%)"
    )


def analyze_alignment(
    onsets: list[float],
    detected_bpm: float,
    start_time: float,
    end_time: float,
    bpm_range: float = 5,
    bpm_step: float = 0.5,
) -> AlignmentAnalysis:
    """Score candidate BPMs around *detected_bpm* and recommend the best."""
    bpms = candidate_bpms(detected_bpm, bpm_range, bpm_step)
    scores = [calculate_alignment_score(b, onsets, start_time, end_time) for b in bpms]
    scores.sort(key=lambda s: s.score)

    best = scores[0]
    detected = min(scores, key=lambda s: abs(s.bpm - detected_bpm))
    logger.debug(
        "Alignment: best %.2f BPM (score %.4f), detected %.2f BPM (score %.4f)",
        best.bpm, best.score, detected.bpm, detected.score,
    )
    return AlignmentAnalysis(
        onsets=list(onsets),
        duration=end_time - start_time,
        detected_bpm=detected_bpm,
        scores=scores[:TOP_CANDIDATES],
        best_bpm=best.bpm,
        recommendation=_recommendation(detected_bpm, best, detected),
    )


def format_alignment_report(analysis: AlignmentAnalysis) -> str:
    """Readable table of the top candidates."""
    rule = "─" * 60
    lines = [
        "=== Onset Alignment Analysis ===",
        "",
        f"Onsets detected: {len(analysis.onsets)}",
        f"Analysis duration: {analysis.duration:.1f}s",
        f"Detected BPM: {analysis.detected_bpm}",
        f"Best aligned BPM: {analysis.best_bpm:.1f}",
        "",
        f"Top {len(analysis.scores)} BPM candidates (by alignment score):",
        rule,
        "BPM      Mean Err   Median Err   Hit Rate   Std Dev    Score",
        rule,
    ]
    for s in analysis.scores:
        marker = " ◄ detected" if abs(s.bpm - analysis.detected_bpm) < 0.1 else ""
        lines.append(
            f"{s.bpm:>6.1f}   "
            f"{s.mean_error * 1000:>7.1f}ms  "
            f"{s.median_error * 1000:>8.1f}ms  "
            f"{s.hit_rate * 100:>7.1f}%  "
            f"{s.error_std_dev * 1000:>7.1f}ms  "
            f"{s.score:>7.4f}{marker}"
        )
    lines.append(rule)
    lines.append("")
    lines.append(f"Recommendation: {analysis.recommendation}")
    return "\n".join(lines)
