"""Beat grids: map between seconds and measure/beat/sixteenth positions.

``BeatGrid`` covers a single fixed tempo. ``VariableBeatGrid`` walks a list
of tempo regions; fermata and rubato regions carry no beats at all.
"""

import bisect
import math

from tempomap.analysis.models import (
    NO_BEAT_POSITION,
    BeatGridPosition,
    TempoRegion,
    TempoType,
    TimeSignature,
)
from tempomap.analysis.regions import BpmInterpolator, interpolate_bpm, validate_regions

_EPS = 1e-9


def sixteenth_duration(bpm: float) -> float:
    """Seconds per sixteenth note; BPM counts quarter notes."""
    return 60.0 / bpm / 4


def position_from_sixteenths(total: float, time_signature: TimeSignature) -> BeatGridPosition:
    """Split a running sixteenth count into measure, beat, sixteenth and progress."""
    whole = math.floor(total)
    in_measure = whole % time_signature.sixteenths_per_measure
    per_beat = time_signature.sixteenths_per_beat
    return BeatGridPosition(
        measure=whole // time_signature.sixteenths_per_measure,
        beat=in_measure // per_beat,
        sixteenth=in_measure % per_beat,
        progress=total - whole,
    )


def sixteenths_from_position(position: BeatGridPosition, time_signature: TimeSignature) -> float:
    return (
        position.measure * time_signature.sixteenths_per_measure
        + position.beat * time_signature.sixteenths_per_beat
        + position.sixteenth
        + position.progress
    )


def next_beat_sixteenth(total: float, time_signature: TimeSignature) -> int:
    """Sixteenth count of the first beat strictly after *total*."""
    per_beat = time_signature.sixteenths_per_beat
    return (math.floor(total / per_beat) + 1) * per_beat


def _on_beat(total: float, time_signature: TimeSignature) -> bool:
    beats = total / time_signature.sixteenths_per_beat
    return abs(beats - round(beats)) < _EPS


class BeatGrid:
    """Fixed-tempo grid starting at *start_offset* seconds."""

    def __init__(self, bpm: float, time_signature: TimeSignature = TimeSignature(), start_offset: float = 0.0):
        if bpm <= 0:
            raise ValueError(f"bpm must be positive, got {bpm}")
        self.bpm = bpm
        self.time_signature = time_signature
        self.start_offset = start_offset

    @property
    def sixteenth_duration(self) -> float:
        return sixteenth_duration(self.bpm)

    @property
    def beat_duration(self) -> float:
        return self.time_signature.sixteenths_per_beat * self.sixteenth_duration

    @property
    def measure_duration(self) -> float:
        return self.time_signature.sixteenths_per_measure * self.sixteenth_duration

    def get_position(self, time: float) -> BeatGridPosition:
        elapsed = time - self.start_offset
        if elapsed < 0:
            return BeatGridPosition(measure=0, beat=0, sixteenth=0, progress=0.0)
        return position_from_sixteenths(elapsed / self.sixteenth_duration, self.time_signature)

    def get_time(self, position: BeatGridPosition) -> float:
        total = sixteenths_from_position(position, self.time_signature)
        return total * self.sixteenth_duration + self.start_offset

    def get_next_beat_time(self, time: float) -> float:
        """Start of the next beat after *time*; the first beat if the grid has not started."""
        elapsed = time - self.start_offset
        if elapsed < 0:
            return self.start_offset
        total = elapsed / self.sixteenth_duration
        return next_beat_sixteenth(total, self.time_signature) * self.sixteenth_duration + self.start_offset

    def with_bpm(self, bpm: float) -> "BeatGrid":
        return BeatGrid(bpm, self.time_signature, self.start_offset)

    def with_time_signature(self, time_signature: TimeSignature) -> "BeatGrid":
        return BeatGrid(self.bpm, time_signature, self.start_offset)


def fill_gaps(regions: list[TempoRegion], global_bpm: float) -> list[TempoRegion]:
    """Cover the whole timeline [0, inf) with steady regions at *global_bpm* between *regions*."""
    filled = []
    cursor = 0.0
    for region in regions:
        if region.start_time > cursor:
            filled.append(_gap_region(len(filled), cursor, region.start_time, global_bpm))
        filled.append(region)
        cursor = region.end_time
    filled.append(_gap_region(len(filled), cursor, math.inf, global_bpm))
    return filled


def _gap_region(index: int, start: float, end: float, bpm: float) -> TempoRegion:
    return TempoRegion(
        id=f"gap-{index}",
        type=TempoType.STEADY,
        start_time=start,
        end_time=end,
        bpm=bpm,
        description="Global tempo",
    )


class VariableBeatGrid:
    """Beat grid over tempo regions.

    Steady regions advance at their own BPM. Accelerando and ritardando
    regions use the instantaneous BPM from *interpolate*. Fermata and rubato
    regions add no sixteenths, and any time inside one maps to
    ``NO_BEAT_POSITION``. The running sixteenth offset at the start of each
    region is computed once, here.
    """

    def __init__(
        self,
        regions: list[TempoRegion],
        time_signature: TimeSignature = TimeSignature(),
        global_bpm: float = 120.0,
        interpolate: BpmInterpolator = interpolate_bpm,
    ):
        if global_bpm <= 0:
            raise ValueError(f"global_bpm must be positive, got {global_bpm}")
        regions = sorted(regions, key=lambda r: r.start_time)
        validate_regions(regions)
        if regions and regions[0].start_time < 0:
            raise ValueError(f"region {regions[0].id!r} starts before 0")

        self.time_signature = time_signature
        self.global_bpm = global_bpm
        self._interpolate = interpolate
        self.regions = tuple(fill_gaps(regions, global_bpm))
        self._starts = tuple(r.start_time for r in self.regions)

        offsets = []
        total = 0.0
        for region in self.regions:
            offsets.append(total)
            total += self._region_sixteenths(region)
        self._offsets = tuple(offsets)

    def _region_bpm(self, region: TempoRegion, time: float) -> float | None:
        if not region.is_tracked:
            return None
        if region.type in (TempoType.ACCELERANDO, TempoType.RITARDANDO):
            return self._interpolate(region, time)
        return region.bpm

    def _region_sixteenths(self, region: TempoRegion) -> float:
        if not region.is_tracked or math.isinf(region.end_time):
            return 0.0
        # Position inside accel/rit uses the instantaneous BPM, so at the
        # region end it equals duration at the end BPM.
        return region.duration / sixteenth_duration(self._region_bpm(region, region.end_time))

    @property
    def measure_offsets(self) -> tuple[float, ...]:
        """Measures elapsed before each region starts."""
        per_measure = self.time_signature.sixteenths_per_measure
        return tuple(o / per_measure for o in self._offsets)

    def _index_at(self, time: float) -> int | None:
        if time < 0:
            return None
        index = bisect.bisect_right(self._starts, time) - 1
        if index < 0 or time >= self.regions[index].end_time:
            return None
        return index

    def get_region_at(self, time: float) -> TempoRegion | None:
        index = self._index_at(time)
        return None if index is None else self.regions[index]

    def get_bpm_at(self, time: float) -> float | None:
        """Effective BPM at *time*; None inside fermata/rubato."""
        region = self.get_region_at(time)
        return None if region is None else self._region_bpm(region, time)

    def _sixteenths_at(self, index: int, time: float) -> tuple[float, float]:
        region = self.regions[index]
        duration = sixteenth_duration(self._region_bpm(region, time))
        return self._offsets[index] + (time - region.start_time) / duration, duration

    def get_position(self, time: float) -> BeatGridPosition:
        index = self._index_at(time)
        if index is None:
            return BeatGridPosition(measure=0, beat=0, sixteenth=0, progress=0.0)
        if not self.regions[index].is_tracked:
            return NO_BEAT_POSITION
        total, _ = self._sixteenths_at(index, time)
        return position_from_sixteenths(total, self.time_signature)

    def get_next_beat_time(self, time: float) -> float:
        """Time of the next beat after *time*.

        Inside a fermata/rubato, or when the next beat would land in one,
        beats resume at the end of that region.
        """
        inclusive = False
        if time < 0:
            time, inclusive = 0.0, True
        index = self._index_at(time)

        while True:
            region = self.regions[index]
            if not region.is_tracked:
                return region.end_time
            total, duration = self._sixteenths_at(index, time)
            if inclusive and _on_beat(total, self.time_signature):
                return time
            candidate = time + (next_beat_sixteenth(total, self.time_signature) - total) * duration
            if candidate < region.end_time:
                return candidate
            index += 1
            time, inclusive = self.regions[index].start_time, True
