#!/usr/bin/env python3
"""
Fetch the GEMS telemetry feed, process it and render the static report.

Typical usage (run hourly by the scheduler):
  python scripts/render_report.py --start-date 2025-06-01

Re-render from a saved dump without touching the network:
  python scripts/render_report.py --input gems_dump.txt --output-dir _site

- Fetches raw lines since the start date (one GET, no retries)
- Runs the pipeline (tag -> extract -> QC -> reconcile -> aggregate)
- Writes index.html, charts and aggregate CSVs to the output directory
"""

import sys
import os
import logging

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gemsreport.config import parse_datetime, get_config  # noqa: E402
from gemsreport.ingest.fetcher import TelemetryFetchError, fetch_telemetry, read_lines  # noqa: E402
from gemsreport.processing.processor import TelemetryProcessor  # noqa: E402
from gemsreport.report.renderer import ReportConfig, render_report  # noqa: E402

logger = logging.getLogger("render_report")


def main() -> int:
    import argparse

    config = get_config()

    parser = argparse.ArgumentParser(description="Render the GEMS telemetry report")
    parser.add_argument("--start-date", type=parse_datetime, default=config.fetch.start_date,
                        help="Earliest data to fetch (ISO date/time)")
    parser.add_argument("--base-url", default=config.fetch.base_url, help="Telemetry feed URL")
    parser.add_argument("--input", help="Process a saved feed dump instead of fetching")
    parser.add_argument("--save-raw", help="Keep a copy of the fetched feed at this path")
    parser.add_argument("--output-dir", default=config.output_dir, help="Report output directory")
    parser.add_argument("--title", default=ReportConfig.title, help="Report title")
    args = parser.parse_args()

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.input:
            lines = read_lines(args.input)
        else:
            lines = fetch_telemetry(
                args.base_url, args.start_date,
                timeout=config.fetch.timeout_s, save_to=args.save_raw,
            )
    except (TelemetryFetchError, OSError) as e:
        logger.error("Could not load telemetry: %s", e)
        return 1

    processor = TelemetryProcessor.from_config(config)
    result = processor.process_lines(lines)
    index = render_report(result, args.output_dir, ReportConfig(title=args.title))

    summary = result.to_summary_dict()
    print("")
    print("Report complete")
    print(f"  Lines: {summary['lines']:,} in {summary['batches']} batches")
    print(f"  QC: {summary['qc_status'].upper()}")
    for table, rows in result.aggregates.row_counts().items():
        print(f"  {table}: {rows} aggregate rows")
    if 'adv_missing_frac' in summary:
        print(f"  ADV missing fraction: {summary['adv_missing_frac']:.2%}")
    print(f"  Written: {index}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
