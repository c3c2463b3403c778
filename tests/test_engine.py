"""Integration tests for the analysis engine."""

import numpy as np
import soundfile as sf
import pytest

from tempomap.analysis.beat_grid import VariableBeatGrid
from tempomap.analysis.engine import AnalysisEngine
from tempomap.analysis.models import TempoReport
from tempomap.audio.loader import load_audio
from tempomap.audio.preprocessing import high_pass_filter, normalize
from tempomap.config import Settings
from tests.conftest import HOP, SR

TRUE_BPM = 60 / (32 * HOP / SR)


def test_analyze_audio_returns_report(mixed_track):
    result = AnalysisEngine().analyze_audio(mixed_track, sr=SR)

    assert isinstance(result, TempoReport)
    assert len(result.onsets) == 80
    assert result.duration == pytest.approx(len(mixed_track) / SR)
    assert result.sectional is not None
    assert result.alignment is not None
    assert len(result.regions) == 1


def test_tempo_estimation_accuracy(mixed_track):
    """The quarter-note pulse, not the eighths, should come out."""
    result = AnalysisEngine().analyze_audio(mixed_track, sr=SR)
    assert abs(result.bpm - TRUE_BPM) / TRUE_BPM < 0.03
    assert result.confidence > 0
    assert result.sectional.trend == "stable"
    assert result.warnings == []


def test_onsets_are_sorted(mixed_track):
    result = AnalysisEngine().analyze_audio(mixed_track, sr=SR)
    assert result.onsets == sorted(result.onsets)


def test_music_start_near_first_burst(mixed_track):
    result = AnalysisEngine().analyze_audio(mixed_track, sr=SR)
    assert 0 < result.music_start_time <= 8 * HOP / SR


def test_silence_falls_back_with_warning(silence):
    result = AnalysisEngine().analyze_audio(silence, sr=SR)
    assert result.onsets == []
    assert result.bpm == 120.0
    assert result.confidence == 0.0
    assert result.sectional.sections == []
    assert any("Few onsets" in w for w in result.warnings)


def test_empty_buffer_rejected():
    with pytest.raises(ValueError):
        AnalysisEngine().analyze_audio(np.zeros(0), sr=SR)


def test_refine_with_alignment(mixed_track):
    engine = AnalysisEngine(Settings(refine_with_alignment=True))
    result = engine.analyze_audio(mixed_track, sr=SR)
    assert result.bpm == result.alignment.best_bpm


def test_report_regions_feed_beat_grid(mixed_track):
    result = AnalysisEngine().analyze_audio(mixed_track, sr=SR)
    grid = VariableBeatGrid(result.regions, global_bpm=result.bpm)
    assert grid.get_bpm_at(1.0) == result.bpm


def test_analyze_file(tmp_path, mixed_track):
    """Engine should be able to analyze a WAV file from disk."""
    wav_path = tmp_path / "test.wav"
    sf.write(str(wav_path), mixed_track / np.max(np.abs(mixed_track)), SR)

    result = AnalysisEngine().analyze_file(str(wav_path))

    assert isinstance(result, TempoReport)
    assert abs(result.bpm - TRUE_BPM) / TRUE_BPM < 0.05


def test_load_audio(tmp_path):
    wav_path = tmp_path / "tone.wav"
    sf.write(str(wav_path), np.zeros(SR), SR)
    audio = load_audio(wav_path)
    assert audio.sample_rate == SR
    assert audio.duration == pytest.approx(1.0)
    assert not audio.samples.flags.writeable


def test_preprocessing():
    assert np.array_equal(normalize(np.zeros(4)), np.zeros(4))
    assert np.max(np.abs(normalize(np.array([0.25, -0.5])))) == 1.0

    t = np.arange(SR) / SR
    rumble = np.sin(2 * np.pi * 20 * t)
    filtered = high_pass_filter(rumble, SR, cutoff=200)
    assert np.max(np.abs(filtered[SR // 2:])) < 0.05
    with pytest.raises(ValueError):
        high_pass_filter(rumble, SR, cutoff=SR)
