"""Analysis orchestrator - runs the tempo pipeline end to end."""

import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from tempomap.analysis.alignment import analyze_alignment
from tempomap.analysis.models import AudioSamples, TempoReport
from tempomap.analysis.onset import detect_music_start, detect_onsets
from tempomap.analysis.regions import create_default_region
from tempomap.analysis.sections import analyze_sections
from tempomap.analysis.tempo import DEFAULT_TEMPO_OPTIONS, estimate_tempo
from tempomap.audio.loader import load_audio
from tempomap.audio.preprocessing import preprocess
from tempomap.config import settings

logger = logging.getLogger(__name__)

VARIATION_WARNING_PERCENT = 5.0


class AnalysisEngine:
    """Orchestrates onset detection, tempo estimation and the follow-up checks."""

    def __init__(self, config=None):
        self.settings = config or settings

    def analyze_file(self, file_path: str) -> TempoReport:
        """Analyze an audio file."""
        audio = load_audio(file_path, sr=self.settings.sample_rate)
        audio = preprocess(audio)
        return self.analyze_audio(audio)

    def analyze_audio(self, audio: np.ndarray | AudioSamples, sr: int = 22050) -> TempoReport:
        """Analyze pre-loaded audio data."""
        if not isinstance(audio, AudioSamples):
            audio = AudioSamples.from_array(audio, sr)
        cfg = self.settings
        duration = audio.duration
        logger.info(f"Analyzing {duration:.1f}s of audio at {audio.sample_rate}Hz")
        if duration <= 0:
            raise ValueError("cannot analyze an empty buffer")

        # Step 1: Onset detection
        logger.info("Step 1: Onset detection")
        onsets = detect_onsets(audio, preset=cfg.onset_preset)
        logger.info(f"  {len(onsets)} onsets ({cfg.onset_preset} preset)")

        # Step 2: Global tempo
        logger.info("Step 2: Global tempo")
        estimate = estimate_tempo(onsets, duration, cfg.min_bpm, cfg.max_bpm)
        logger.info(f"  {estimate.bpm:.2f} BPM (confidence {estimate.confidence:.2f})")

        music_start = detect_music_start(audio)
        if music_start >= duration:
            music_start = 0.0

        # Step 3: Sectional analysis and alignment check are independent
        logger.info("Step 3: Sectional analysis and onset alignment")
        with ThreadPoolExecutor(max_workers=2) as pool:
            sectional_future = pool.submit(
                analyze_sections, onsets, duration, estimate.bpm, cfg.section_duration,
            )
            alignment_future = pool.submit(
                analyze_alignment, onsets, estimate.bpm, music_start, duration,
                cfg.alignment_bpm_range, cfg.alignment_bpm_step,
            )
            sectional = sectional_future.result()
            alignment = alignment_future.result()
        logger.info(
            f"  variation {sectional.variation_percent:.1f}% ({sectional.trend}), "
            f"best aligned {alignment.best_bpm:.1f} BPM"
        )

        bpm = estimate.bpm
        if cfg.refine_with_alignment and len(onsets) >= DEFAULT_TEMPO_OPTIONS.min_onsets:
            logger.info(f"  Refining {bpm:.2f} -> {alignment.best_bpm:.2f} BPM from alignment")
            bpm = alignment.best_bpm

        warnings = []
        if len(onsets) < DEFAULT_TEMPO_OPTIONS.min_onsets:
            warnings.append("Few onsets detected - tempo may be unreliable")
        if sectional.variation_percent > VARIATION_WARNING_PERCENT:
            warnings.append(
                f"Tempo varies by {sectional.variation_percent:.1f}% - consider tempo mapping"
            )
        if sectional.trend != "stable":
            direction = "speeds up" if sectional.trend == "speeds_up" else "slows down"
            warnings.append(f"Tempo {direction} by ~{sectional.trend_amount:.1f} BPM over the track")

        return TempoReport(
            bpm=bpm,
            confidence=estimate.confidence,
            onsets=onsets,
            duration=duration,
            music_start_time=music_start,
            sectional=sectional,
            alignment=alignment,
            regions=[create_default_region(bpm, duration)],
            warnings=warnings,
        )
