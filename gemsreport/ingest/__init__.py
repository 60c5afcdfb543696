# Ingest Module

from gemsreport.ingest.fetcher import (
    TelemetryFetchError,
    build_url,
    fetch_lines,
    fetch_telemetry,
    read_lines,
    split_lines
)

__all__ = [
    'TelemetryFetchError',
    'build_url',
    'fetch_lines',
    'fetch_telemetry',
    'read_lines',
    'split_lines',
]
