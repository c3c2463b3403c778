"""Application configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings with env var overrides."""

    # Audio
    sample_rate: int = 22050
    mono: bool = True
    highpass_cutoff: float = 60.0  # Hz

    # Onsets
    onset_preset: str = "core"

    # Global tempo
    min_bpm: float = 50.0
    max_bpm: float = 180.0

    # Sectional analysis
    section_duration: float = 15.0  # seconds per window, 50% hop

    # Alignment check
    alignment_bpm_range: float = 5.0
    alignment_bpm_step: float = 0.5
    refine_with_alignment: bool = False

    model_config = {"env_prefix": "TEMPOMAP_"}


settings = Settings()
