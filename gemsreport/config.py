"""
GEMS Report Configuration Module
================================
Handles environment variables for the hourly report job.
Supports .env files for local runs; the scheduler sets real environment
variables.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional
from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


DEFAULT_BASE_URL = "http://localhost:8080/gems/data"


def parse_datetime(value: str) -> datetime:
    """Parse an ISO date or datetime string, raising ValueError on junk."""
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError as e:
        raise ValueError(f"Invalid date/time value: {value!r}") from e


def _parse_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class FetchConfig:
    """HTTP telemetry source configuration."""
    base_url: str = DEFAULT_BASE_URL
    start_date: datetime = field(
        default_factory=lambda: datetime.now().replace(microsecond=0) - timedelta(days=7)
    )
    timeout_s: float = 60.0


@dataclass
class QCConfig:
    """
    Quality-control window overrides.

    The default window closes at 2025-10-01, so live runs on later data
    must raise GEMS_QC_RECEIVED_MAX or every status row is dropped.
    """
    received_min: datetime = datetime(2023, 1, 1)
    received_max: datetime = datetime(2025, 10, 1)


@dataclass
class TimingConfig:
    """Clock reconciliation parameters."""
    adv_sample_rate_hz: float = 1.0
    max_clock_offset_s: float = 3600.0
    smoothing_window: int = 5


@dataclass
class Config:
    """Main application configuration."""
    fetch: FetchConfig
    qc: QCConfig
    timing: TimingConfig
    output_dir: str = "_site"
    log_level: str = "INFO"


def load_config() -> Config:
    """
    Load configuration from the environment (.env supported).

    Raises:
        ValueError: if a variable is set to something unparseable
    """
    start_raw = os.getenv("GEMS_START_DATE")
    fetch_config = FetchConfig(
        base_url=os.getenv("GEMS_BASE_URL", DEFAULT_BASE_URL),
        timeout_s=_parse_float("GEMS_HTTP_TIMEOUT", "60"),
    )
    if start_raw:
        fetch_config.start_date = parse_datetime(start_raw)

    qc_config = QCConfig()
    received_min = os.getenv("GEMS_QC_RECEIVED_MIN")
    received_max = os.getenv("GEMS_QC_RECEIVED_MAX")
    if received_min:
        qc_config.received_min = parse_datetime(received_min)
    if received_max:
        qc_config.received_max = parse_datetime(received_max)
    if qc_config.received_min >= qc_config.received_max:
        raise ValueError("GEMS_QC_RECEIVED_MIN must be before GEMS_QC_RECEIVED_MAX")

    timing_config = TimingConfig(
        adv_sample_rate_hz=_parse_float("GEMS_ADV_SAMPLE_RATE_HZ", "1.0"),
        max_clock_offset_s=_parse_float("GEMS_MAX_CLOCK_OFFSET_S", "3600"),
    )
    if timing_config.adv_sample_rate_hz <= 0:
        raise ValueError("GEMS_ADV_SAMPLE_RATE_HZ must be positive")

    return Config(
        fetch=fetch_config,
        qc=qc_config,
        timing=timing_config,
        output_dir=os.getenv("GEMS_OUTPUT_DIR", "_site"),
        log_level=os.getenv("GEMS_LOG_LEVEL", "INFO").upper(),
    )


# Singleton config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the application configuration (singleton)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


if __name__ == "__main__":
    config = get_config()
    print("Configuration loaded successfully!")
    print(f"  Source: {config.fetch.base_url} (since {config.fetch.start_date})")
    print(f"  QC window: {config.qc.received_min} .. {config.qc.received_max}")
    print(f"  Output: {config.output_dir}")
