"""Core data models for tempo and beat-structure analysis."""

from dataclasses import dataclass, field
from enum import Enum

import numpy as np


@dataclass(frozen=True)
class AudioSamples:
    """Read-only mono samples plus their sample rate."""
    samples: np.ndarray
    sample_rate: int

    @classmethod
    def from_array(cls, audio: np.ndarray, sample_rate: int) -> "AudioSamples":
        """Copy *audio* into a non-writable mono float array."""
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        samples = np.array(audio, dtype=np.float64)
        if samples.ndim > 1:
            samples = samples.mean(axis=0)
        samples.setflags(write=False)
        return cls(samples=samples, sample_rate=int(sample_rate))

    @property
    def duration(self) -> float:
        return len(self.samples) / self.sample_rate


@dataclass(frozen=True)
class TempoEstimate:
    """Global tempo estimate."""
    bpm: float
    confidence: float  # 0.0-1.0


@dataclass(frozen=True)
class SectionWindow:
    """Tempo estimate for one sliding window."""
    start_time: float
    end_time: float
    estimated_bpm: float
    confidence: float  # 0.0-1.0
    mean_ioi: float  # seconds
    ioi_std_dev: float  # seconds
    onset_count: int


@dataclass(frozen=True)
class TempoRange:
    min: float
    max: float


@dataclass(frozen=True)
class SectionalAnalysis:
    """Aggregate of all section windows."""
    global_bpm: float
    sections: list[SectionWindow]
    tempo_range: TempoRange
    variation_percent: float
    # "stable" | "speeds_up" | "slows_down"
    trend: str = "stable"
    trend_amount: float = 0.0


@dataclass(frozen=True)
class TempoVariationReport:
    """Sectional analysis plus a human-readable verdict."""
    analysis: SectionalAnalysis
    has_variable_tempo: bool
    recommendation: str
    detailed_analysis: str


@dataclass(frozen=True)
class AlignmentScore:
    """How well a beat grid at one BPM lands on the onsets. Lower score is better."""
    bpm: float
    mean_error: float  # seconds
    median_error: float  # seconds
    hit_rate: float  # 0.0-1.0
    error_std_dev: float  # seconds
    score: float
    weighted_mean_error: float = 0.0  # errors divided by quarter-note likelihood


@dataclass(frozen=True)
class AlignmentAnalysis:
    """Alignment scores for a sweep of candidate BPMs."""
    onsets: list[float]
    duration: float
    detected_bpm: float
    scores: list[AlignmentScore]  # best first
    best_bpm: float
    recommendation: str


class TempoType(str, Enum):
    STEADY = "steady"
    FERMATA = "fermata"
    RUBATO = "rubato"
    ACCELERANDO = "accelerando"
    RITARDANDO = "ritardando"


UNTRACKED_TYPES = frozenset({TempoType.FERMATA, TempoType.RUBATO})


@dataclass(frozen=True)
class TempoRegion:
    """A span of the timeline with one kind of tempo behaviour."""
    id: str
    type: TempoType
    start_time: float
    end_time: float
    bpm: float | None  # required for steady, start BPM for accel/rit
    target_bpm: float | None = None  # end BPM for accel/rit
    confidence: float = 1.0
    description: str | None = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def is_tracked(self) -> bool:
        return self.type not in UNTRACKED_TYPES


@dataclass(frozen=True)
class TimeSignature:
    numerator: int = 4
    denominator: int = 4

    def __post_init__(self):
        if self.numerator <= 0:
            raise ValueError(f"numerator must be positive, got {self.numerator}")
        if self.denominator not in (1, 2, 4, 8, 16):
            raise ValueError(f"unsupported denominator {self.denominator}")

    @property
    def label(self) -> str:
        return f"{self.numerator}/{self.denominator}"

    @property
    def beats_per_measure(self) -> int:
        return self.numerator

    @property
    def sixteenths_per_beat(self) -> int:
        return 16 // self.denominator

    @property
    def sixteenths_per_measure(self) -> int:
        return self.numerator * self.sixteenths_per_beat


@dataclass(frozen=True)
class BeatGridPosition:
    """Symbolic position on a beat grid."""
    measure: int  # 0-indexed, -1 only in NO_BEAT_POSITION
    beat: int  # 0-indexed within the measure
    sixteenth: int  # 0-indexed within the beat
    progress: float  # 0-1 within the sixteenth


NO_BEAT_POSITION = BeatGridPosition(measure=-1, beat=-1, sixteenth=-1, progress=0.0)


@dataclass(frozen=True)
class TempoReport:
    """Complete tempo analysis of one buffer."""
    bpm: float
    confidence: float
    onsets: list[float]
    duration: float
    music_start_time: float = 0.0
    sectional: SectionalAnalysis | None = None
    alignment: AlignmentAnalysis | None = None
    regions: list[TempoRegion] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
