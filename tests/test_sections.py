"""Tests for sectional tempo tracking."""

import numpy as np
import pytest

from tempomap.analysis.sections import (
    analyze_section_windows,
    analyze_sections,
    analyze_tempo_variation,
    dominant_ioi,
    format_sectional_report,
    tempo_trend,
)
from tests.conftest import accelerating_onsets, steady_onsets


def test_steady_tempo_is_stable():
    onsets = steady_onsets(120, 60, jitter=0.01, seed=42)
    analysis = analyze_sections(onsets, 60, 120)

    assert len(analysis.sections) == 7
    assert analysis.variation_percent < 2
    assert analysis.trend == "stable"
    for s in analysis.sections:
        assert s.estimated_bpm == pytest.approx(120, abs=1)
        assert s.confidence == 1.0


def test_accelerating_tempo_is_detected():
    onsets = accelerating_onsets(100, 120, 200)
    duration = onsets[-1] + 0.5
    analysis = analyze_sections(onsets, duration, 110)

    assert len(analysis.sections) >= 4
    assert analysis.variation_percent > 2
    assert analysis.trend == "speeds_up"
    assert analysis.trend_amount > 0.5
    assert analysis.tempo_range.min < 105 < 115 < analysis.tempo_range.max


def test_decelerating_tempo_is_detected():
    onsets = accelerating_onsets(120, 100, 200)
    analysis = analyze_sections(onsets, onsets[-1] + 0.5, 110)
    assert analysis.trend == "slows_down"


def test_windows_overlap_by_half():
    onsets = steady_onsets(120, 60)
    windows = analyze_section_windows(onsets, 60, 120, section_duration=10)
    starts = [w.start_time for w in windows]
    assert starts == pytest.approx([5.0 * i for i in range(len(starts))])
    assert all(w.end_time - w.start_time <= 10 for w in windows)


def test_no_onsets_gives_defaults():
    analysis = analyze_sections([], 30, 120)
    assert analysis.sections == []
    assert analysis.variation_percent == 0
    assert analysis.trend == "stable"
    assert analysis.tempo_range.min == analysis.tempo_range.max == 120


def test_sparse_windows_skipped():
    # Fewer than 8 onsets per window.
    onsets = [i * 2.5 for i in range(24)]
    assert analyze_section_windows(onsets, 60, 120) == []


def test_invalid_arguments():
    with pytest.raises(ValueError):
        analyze_sections([0.5], 0, 120)
    with pytest.raises(ValueError):
        analyze_sections([0.5], 30, 0)
    with pytest.raises(ValueError):
        analyze_sections([0.5], 30, 120, section_duration=0)


def test_dominant_ioi_reads_eighths_as_quarters():
    iois = np.full(10, 0.25)
    ioi, confidence = dominant_ioi(iois, 120)
    assert ioi == pytest.approx(0.5)
    assert confidence == 0


def test_trend_needs_four_windows():
    analysis = analyze_sections(accelerating_onsets(100, 120, 200), 120, 110)
    assert tempo_trend(analysis.sections[:3]) == ("stable", 0.0)


def test_variation_report_for_steady_tempo():
    report = analyze_tempo_variation(steady_onsets(120, 60, jitter=0.01, seed=1), 60, 120)
    assert not report.has_variable_tempo
    assert "stable" in report.recommendation or "minor" in report.recommendation
    assert "Sectional Tempo Analysis" in report.detailed_analysis


def test_variation_report_for_drifting_tempo():
    onsets = accelerating_onsets(100, 120, 200)
    report = analyze_tempo_variation(onsets, onsets[-1] + 0.5, 110)
    assert report.has_variable_tempo
    assert "SPEEDS UP" in report.detailed_analysis


def test_variation_report_without_data():
    report = analyze_tempo_variation([], 30, 120)
    assert not report.has_variable_tempo
    assert report.recommendation == "Not enough data for sectional analysis."


def test_sectional_report_lists_windows():
    onsets = steady_onsets(120, 60)
    analysis = analyze_sections(onsets, 60, 120)
    text = format_sectional_report(analysis)
    assert "0:00-0:15" in text
    assert "remains relatively stable" in text
