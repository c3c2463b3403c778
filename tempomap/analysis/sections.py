"""Sliding-window tempo tracking and tempo-variation statistics."""

import logging
from dataclasses import dataclass

import numpy as np

from tempomap.analysis.models import (
    SectionalAnalysis,
    SectionWindow,
    TempoRange,
    TempoVariationReport,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IoiBin:
    label: str
    multiple: float  # of the global quarter-note IOI
    weight: float


@dataclass(frozen=True)
class SectionOptions:
    """Tunables for per-window tempo estimation.

    The bin weights favour the quarter-note pulse over whichever
    subdivision happens to dominate a passage.
    """
    min_onsets: int = 8
    min_iois: int = 4
    ioi_min: float = 0.3  # seconds
    ioi_max: float = 1.5  # seconds
    bin_tolerance: float = 0.2  # fraction of the bin IOI
    bins: tuple[IoiBin, ...] = (
        IoiBin("eighth", 0.5, 0.3),
        IoiBin("quarter", 1.0, 1.0),
        IoiBin("half", 2.0, 0.7),
    )
    trend_threshold: float = 0.5  # BPM
    min_trend_windows: int = 4


DEFAULT_SECTION_OPTIONS = SectionOptions()


def _validate(duration: float, global_bpm: float, section_duration: float) -> None:
    if duration <= 0:
        raise ValueError(f"duration must be positive, got {duration}")
    if global_bpm <= 0:
        raise ValueError(f"global_bpm must be positive, got {global_bpm}")
    if section_duration <= 0:
        raise ValueError(f"section_duration must be positive, got {section_duration}")


def dominant_ioi(
    iois: np.ndarray,
    global_bpm: float,
    options: SectionOptions = DEFAULT_SECTION_OPTIONS,
) -> tuple[float, float]:
    """Quarter-note-equivalent IOI and its confidence.

    Returns (ioi, confidence). Candidate bins are anchored to the global
    tempo so each window does not re-solve the octave problem.
    """
    expected = 60.0 / global_bpm
    best = None
    quarter_count = 0
    for b in options.bins:
        center = expected * b.multiple
        matches = iois[np.abs(iois - center) < center * options.bin_tolerance]
        refined = float(matches.mean()) if len(matches) else center
        weighted = len(matches) * b.weight
        if best is None or weighted >= best[0]:
            best = (weighted, refined / b.multiple)
        if b.label == "quarter":
            quarter_count = len(matches)

    confidence = min(1.0, 2 * quarter_count / len(iois))
    return best[1], confidence


def _window_estimate(
    onsets: np.ndarray,
    start: float,
    end: float,
    global_bpm: float,
    options: SectionOptions,
) -> SectionWindow | None:
    window_onsets = onsets[(onsets >= start) & (onsets < end)]
    if len(window_onsets) < options.min_onsets:
        return None

    iois = np.diff(window_onsets)
    iois = iois[(iois >= options.ioi_min) & (iois <= options.ioi_max)]
    if len(iois) < options.min_iois:
        return None

    ioi, confidence = dominant_ioi(iois, global_bpm, options)
    bpm = 60.0 / ioi if ioi > 0 else global_bpm
    return SectionWindow(
        start_time=start,
        end_time=end,
        estimated_bpm=round(bpm, 2),
        confidence=confidence,
        mean_ioi=round(float(iois.mean()), 3),
        ioi_std_dev=round(float(iois.std()), 3),
        onset_count=len(window_onsets),
    )


def analyze_section_windows(
    onsets: list[float],
    duration: float,
    global_bpm: float,
    section_duration: float = 15,
    options: SectionOptions = DEFAULT_SECTION_OPTIONS,
) -> list[SectionWindow]:
    """Estimate tempo in overlapping windows (50% hop), skipping sparse ones."""
    _validate(duration, global_bpm, section_duration)
    sorted_onsets = np.sort(np.asarray(onsets, dtype=np.float64))
    hop = section_duration / 2

    starts = []
    start = 0.0
    while start < duration - hop:
        starts.append(start)
        start += hop

    # Windows are independent of each other.
    windows = [
        _window_estimate(sorted_onsets, s, min(s + section_duration, duration), global_bpm, options)
        for s in starts
    ]
    result = [w for w in windows if w is not None]
    logger.debug("%d of %d windows had enough onsets", len(result), len(starts))
    return result


def _iqr_filter(values: list[float]) -> list[float]:
    ordered = sorted(values)
    q1 = ordered[int(len(ordered) * 0.25)]
    q3 = ordered[int(len(ordered) * 0.75)]
    iqr = q3 - q1
    return [v for v in values if q1 - 1.5 * iqr <= v <= q3 + 1.5 * iqr]


def tempo_trend(
    sections: list[SectionWindow],
    options: SectionOptions = DEFAULT_SECTION_OPTIONS,
) -> tuple[str, float]:
    """Compare first-half and second-half mean BPM.

    Returns (trend, signed second-minus-first difference).
    """
    if len(sections) < options.min_trend_windows:
        return "stable", 0.0
    half = len(sections) // 2
    first = float(np.mean([s.estimated_bpm for s in sections[:half]]))
    second = float(np.mean([s.estimated_bpm for s in sections[half:]]))
    diff = second - first
    if diff > options.trend_threshold:
        return "speeds_up", diff
    if diff < -options.trend_threshold:
        return "slows_down", diff
    return "stable", diff


def analyze_sections(
    onsets: list[float],
    duration: float,
    global_bpm: float,
    section_duration: float = 15,
    options: SectionOptions = DEFAULT_SECTION_OPTIONS,
) -> SectionalAnalysis:
    """Track tempo across the buffer and summarize its variation and trend."""
    sections = analyze_section_windows(onsets, duration, global_bpm, section_duration, options)
    if not sections:
        return SectionalAnalysis(
            global_bpm=global_bpm,
            sections=[],
            tempo_range=TempoRange(min=global_bpm, max=global_bpm),
            variation_percent=0.0,
        )

    bpms = _iqr_filter([s.estimated_bpm for s in sections])
    low, high = min(bpms), max(bpms)
    mean = sum(bpms) / len(bpms)
    variation = (high - low) / mean * 100

    trend, diff = tempo_trend(sections, options)
    return SectionalAnalysis(
        global_bpm=global_bpm,
        sections=sections,
        tempo_range=TempoRange(min=round(low, 2), max=round(high, 2)),
        variation_percent=round(variation, 2),
        trend=trend,
        trend_amount=round(abs(diff), 2),
    )


def _format_time(seconds: float) -> str:
    return f"{int(seconds // 60)}:{int(seconds % 60):02d}"


def format_sectional_report(analysis: SectionalAnalysis) -> str:
    """Per-window table with the trend verdict."""
    rule = "─" * 53
    lines = [
        "=== Sectional Tempo Analysis ===",
        f"Global detected BPM: {analysis.global_bpm:.2f}",
        f"Tempo variation: ±{analysis.variation_percent:.1f}%",
        "",
        "Section-by-section breakdown:",
        rule,
        "Time Range      Est. BPM    Diff      IOI StdDev",
        rule,
    ]
    for s in analysis.sections:
        time_range = f"{_format_time(s.start_time)}-{_format_time(s.end_time)}"
        diff = s.estimated_bpm - analysis.global_bpm
        lines.append(
            f"{time_range:<16}{s.estimated_bpm:>8.2f}  {diff:>+8.2f}    {s.ioi_std_dev * 1000:>6.0f}ms"
        )
    lines.append(rule)

    if analysis.trend == "speeds_up":
        lines.append(f"\nTrend: Song SPEEDS UP over time (~{analysis.trend_amount:.2f} BPM from start to end)")
    elif analysis.trend == "slows_down":
        lines.append(f"\nTrend: Song SLOWS DOWN over time (~{analysis.trend_amount:.2f} BPM from start to end)")
    elif len(analysis.sections) >= DEFAULT_SECTION_OPTIONS.min_trend_windows:
        lines.append("\nTrend: Tempo remains relatively stable throughout")
    return "\n".join(lines)


def variation_recommendation(variation_percent: float, global_bpm: float) -> str:
    if variation_percent < 1:
        return (
            f"Tempo is stable (±{variation_percent:.1f}%). The detected BPM of {global_bpm:.2f} "
            "should work well. If drift occurs, the BPM might need fine-tuning by ±0.5."
        )
    if variation_percent < 2:
        return (
            f"Tempo has minor variation (±{variation_percent:.1f}%). This is typical for human "
            "performances. A single BPM should still work reasonably well."
        )
    if variation_percent < 4:
        return (
            f"Tempo has moderate variation (±{variation_percent:.1f}%). The song may speed up or "
            "slow down in different sections. Consider section-specific BPMs or tempo tracking."
        )
    return (
        f"Tempo varies significantly (±{variation_percent:.1f}%). This song likely has tempo "
        "changes. A single BPM will not work - tempo mapping is recommended."
    )


def analyze_tempo_variation(
    onsets: list[float],
    duration: float,
    global_bpm: float,
    section_duration: float = 15,
) -> TempoVariationReport:
    """Sectional analysis plus a verdict on whether one BPM is enough."""
    analysis = analyze_sections(onsets, duration, global_bpm, section_duration)
    if not analysis.sections:
        return TempoVariationReport(
            analysis=analysis,
            has_variable_tempo=False,
            recommendation="Not enough data for sectional analysis.",
            detailed_analysis="Insufficient onsets detected for meaningful tempo analysis.",
        )
    return TempoVariationReport(
        analysis=analysis,
        has_variable_tempo=analysis.variation_percent > 2,
        recommendation=variation_recommendation(analysis.variation_percent, global_bpm),
        detailed_analysis=format_sectional_report(analysis),
    )
