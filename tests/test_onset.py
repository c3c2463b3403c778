"""Tests for energy-based onset detection."""

import numpy as np
import pytest

from tempomap.analysis.models import AudioSamples
from tempomap.analysis.onset import (
    PRESETS,
    OnsetOptions,
    detect_alignment_onsets,
    detect_music_start,
    detect_onsets,
    frame_energies,
    resolve_options,
)
from tests.conftest import SR, generate_tone_track, onset_frames_to_times

FRAMES = [8, 40, 72, 104]


def test_silence_has_no_onsets(silence):
    assert detect_onsets(silence, SR) == []


def test_too_short_has_no_onsets():
    assert detect_onsets(np.ones(100), SR) == []
    assert frame_energies(np.ones(100), 1024, 512).size == 0


def test_tone_bursts_detected_at_attack():
    audio = generate_tone_track(FRAMES, 130)
    onsets = detect_onsets(audio, SR)
    assert onsets == pytest.approx(onset_frames_to_times(FRAMES))


def test_onsets_sorted_and_spaced():
    audio = generate_tone_track(FRAMES, 130)
    for preset in PRESETS:
        onsets = detect_onsets(audio, SR, preset=preset)
        assert onsets == sorted(onsets)
        spacing = PRESETS[preset].min_onset_interval
        assert all(b - a >= spacing for a, b in zip(onsets, onsets[1:]))


def test_audio_samples_input_matches_array():
    audio = generate_tone_track(FRAMES, 130)
    assert detect_onsets(AudioSamples.from_array(audio, SR)) == detect_onsets(audio, SR)


def test_fine_preset_finds_same_attacks():
    audio = generate_tone_track(FRAMES, 130)
    onsets = detect_onsets(audio, SR, preset="accuracy")
    assert onsets == pytest.approx(onset_frames_to_times(FRAMES))


def test_softer_bursts_still_detected():
    audio = generate_tone_track(FRAMES, 130, amplitudes=[1.0, 0.5, 1.0, 0.5])
    assert len(detect_onsets(audio, SR)) == len(FRAMES)


def test_unknown_preset_rejected():
    with pytest.raises(ValueError, match="Unknown onset preset"):
        detect_onsets(np.zeros(SR), SR, preset="nope")


def test_unknown_override_rejected():
    with pytest.raises(ValueError, match="Unknown onset options"):
        resolve_options("core", window=3)


def test_invalid_options_rejected():
    with pytest.raises(ValueError):
        resolve_options("core", local_max_window=0)
    with pytest.raises(ValueError):
        resolve_options(options=OnsetOptions(hop_size=0))
    with pytest.raises(ValueError):
        detect_onsets(np.zeros(SR), 0)


def test_overrides_apply_on_top_of_preset():
    opts = resolve_options("fermata", threshold=0.05)
    assert opts.frame_size == 512
    assert opts.threshold == 0.05


def test_alignment_onsets_skip_ranges():
    audio = generate_tone_track(FRAMES, 130)
    times = onset_frames_to_times(FRAMES)
    onsets = detect_alignment_onsets(audio, SR, skip_ranges=[(times[1] - 0.1, times[1] + 0.1)])
    assert onsets == pytest.approx([times[0], times[2], times[3]])


def test_music_start_of_silence_is_zero(silence):
    assert detect_music_start(silence, SR) == 0.0
    assert detect_music_start(np.zeros(10), SR) == 0.0


def test_music_start_after_leading_silence():
    audio = np.zeros(SR * 4)
    t = np.arange(SR) / SR
    audio[2 * SR:3 * SR] = np.sin(2 * np.pi * 440 * t)
    start = detect_music_start(audio, SR)
    assert 1.85 < start <= 2.0
