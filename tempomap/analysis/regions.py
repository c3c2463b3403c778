"""Tempo regions: spans of steady, free or gradually changing tempo."""

from collections.abc import Callable

from tempomap.analysis.models import TempoRegion, TempoType

BpmInterpolator = Callable[[TempoRegion, float], float]


def validate_regions(regions: list[TempoRegion]) -> None:
    """Raise ValueError unless *regions* are ordered, non-overlapping and well formed."""
    previous_end = None
    for region in regions:
        if region.end_time <= region.start_time:
            raise ValueError(
                f"region {region.id!r} ends at {region.end_time} before it starts at {region.start_time}"
            )
        if previous_end is not None and region.start_time < previous_end:
            raise ValueError(f"region {region.id!r} overlaps the previous region")
        if region.type == TempoType.STEADY and (region.bpm is None or region.bpm <= 0):
            raise ValueError(f"steady region {region.id!r} needs a positive bpm")
        if region.type in (TempoType.ACCELERANDO, TempoType.RITARDANDO):
            if region.bpm is None or region.bpm <= 0:
                raise ValueError(f"{region.type.value} region {region.id!r} needs a positive bpm")
            if region.target_bpm is not None and region.target_bpm <= 0:
                raise ValueError(f"{region.type.value} region {region.id!r} needs a positive target_bpm")
        previous_end = region.end_time


def get_region_at(time: float, regions: list[TempoRegion]) -> TempoRegion | None:
    """Region whose [start, end) contains *time*."""
    for region in regions:
        if region.start_time <= time < region.end_time:
            return region
    return None


def interpolate_bpm(region: TempoRegion, time: float) -> float:
    """Linear ramp from ``bpm`` to ``target_bpm`` across the region."""
    if region.target_bpm is None:
        return region.bpm
    progress = (time - region.start_time) / region.duration
    progress = min(max(progress, 0.0), 1.0)
    return region.bpm + (region.target_bpm - region.bpm) * progress


def get_effective_bpm(
    time: float,
    regions: list[TempoRegion],
    interpolate: BpmInterpolator = interpolate_bpm,
) -> float | None:
    """BPM in force at *time*; None in fermata/rubato or outside all regions."""
    region = get_region_at(time, regions)
    if region is None or not region.is_tracked:
        return None
    if region.type in (TempoType.ACCELERANDO, TempoType.RITARDANDO):
        return interpolate(region, time)
    return region.bpm


def create_steady_region(
    start_time: float,
    end_time: float,
    bpm: float,
    id: str | None = None,
    confidence: float = 1.0,
    description: str | None = None,
) -> TempoRegion:
    return TempoRegion(
        id=id or f"steady-{start_time:g}",
        type=TempoType.STEADY,
        start_time=start_time,
        end_time=end_time,
        bpm=bpm,
        confidence=confidence,
        description=description,
    )


def create_default_region(bpm: float, duration: float) -> TempoRegion:
    """One steady region covering the whole track."""
    return create_steady_region(0.0, duration, bpm, id="region-0")


def find_bpm_for_time(time: float, regions: list[TempoRegion]) -> float | None:
    """Nominal BPM of the region at *time*.

    Past the end of the last region its BPM still applies.
    """
    for region in regions:
        if region.start_time <= time < region.end_time and region.bpm is not None:
            return region.bpm
    if regions and time >= regions[-1].start_time and regions[-1].bpm is not None:
        return regions[-1].bpm
    return None
