"""Application configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings with env var overrides."""

    # Audio input
    sample_rate: int = 44100
    channels: int = 1
    frame_size: int = 8192  # samples per channel per frame

    # Detection engine
    queue_depth: int = 1  # frames waiting for the worker; oldest dropped when full
    max_workers: int | None = None
    estimators: list[str] = ["energy_variance", "tempogram"]

    # Consensus
    cluster_tolerance: float = 0.05
    octave_snap_tolerance: float = 0.10
    single_source_weight: float = 0.5

    # Tempogram estimator
    tempogram_window_seconds: float = 8.0
    tempogram_min_seconds: float = 4.0
    tempogram_interval_seconds: float = 1.0

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    model_config = {"env_prefix": "LIVEBPM_"}


settings = Settings()
