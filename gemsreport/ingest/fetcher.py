"""
Telemetry Fetcher
=================
One-shot HTTP download of the raw GEMS telemetry feed.
"""

import logging
import urllib.error
import urllib.parse
import urllib.request
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)


class TelemetryFetchError(RuntimeError):
    """Raised when the telemetry feed cannot be downloaded."""


def build_url(base_url: str, start_date: datetime) -> str:
    """
    Build the feed URL for data received since start_date.

    Args:
        base_url: Feed endpoint (may already carry a query string)
        start_date: Earliest data to return

    Returns:
        URL with an encoded `timestamp` query parameter
    """
    query = urllib.parse.urlencode(
        {"timestamp": start_date.strftime("%Y-%m-%d %H:%M:%S")}
    )
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{query}"


def split_lines(text: str) -> List[str]:
    """Split a feed body into non-blank lines with line endings removed."""
    return [line.rstrip("\r") for line in text.split("\n") if line.strip()]


def fetch_lines(url: str, timeout: float = 60.0) -> List[str]:
    """
    Download the feed and return its lines.

    Args:
        url: Full feed URL (see build_url)
        timeout: Socket timeout in seconds

    Returns:
        List of raw text lines

    Raises:
        TelemetryFetchError: on any transport error or non-200 response
    """
    logger.info("Fetching telemetry from %s", url)
    try:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            status = getattr(response, "status", 200)
            if status != 200:
                raise TelemetryFetchError(f"GET {url} returned HTTP {status}")
            body = response.read()
    except urllib.error.HTTPError as e:
        raise TelemetryFetchError(f"GET {url} returned HTTP {e.code}") from e
    except (urllib.error.URLError, OSError) as e:
        raise TelemetryFetchError(f"GET {url} failed: {e}") from e

    lines = split_lines(body.decode("utf-8", errors="replace"))
    logger.info("Fetched %d lines (%d bytes)", len(lines), len(body))
    return lines


def read_lines(path: Union[str, Path]) -> List[str]:
    """Read a saved feed dump with the same line handling as fetch_lines."""
    text = Path(path).read_text(encoding="utf-8", errors="replace")
    lines = split_lines(text)
    logger.info("Read %d lines from %s", len(lines), path)
    return lines


def fetch_telemetry(
    base_url: str,
    start_date: datetime,
    timeout: float = 60.0,
    save_to: Optional[Union[str, Path]] = None
) -> List[str]:
    """
    Convenience function: build the URL, fetch, optionally keep a raw copy.

    Args:
        base_url: Feed endpoint
        start_date: Earliest data to return
        timeout: Socket timeout in seconds
        save_to: Optional path for a raw dump of the fetched lines

    Returns:
        List of raw text lines
    """
    lines = fetch_lines(build_url(base_url, start_date), timeout=timeout)
    if save_to is not None:
        _write_dump(save_to, lines)
    return lines


def _write_dump(path: Union[str, Path], lines: Iterable[str]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.debug("Saved raw feed to %s", path)
