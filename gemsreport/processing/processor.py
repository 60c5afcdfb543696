"""
Processing Pipeline Orchestrator
================================
Orchestrates all processing steps: tag → extract → QC → reconcile → aggregate.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from gemsreport.config import Config
from gemsreport.ingest.fetcher import fetch_telemetry
from gemsreport.processing.aggregator import AggregateTables, BatchAggregator
from gemsreport.processing.classifier import ClassifierStats, LineTagger
from gemsreport.processing.extractors import TelemetryTables, extract_tables
from gemsreport.processing.qc_engine import QCEngine, QCReport, build_default_rules
from gemsreport.processing.timestamps import (
    ClockCorrection,
    RollingOffsetCorrection,
    TimestampReconciler,
)

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    """Complete processing results for one report run."""
    classifier_stats: ClassifierStats

    # Cleaned, timestamped tables
    tables: TelemetryTables = field(repr=False)

    # QC outcome
    qc_report: QCReport = field(repr=False)

    # Aggregates
    aggregates: AggregateTables = field(repr=False)

    # Processing metadata
    processing_time_ms: float = 0.0
    generated_at: datetime = field(default_factory=datetime.now)

    def to_summary_dict(self) -> Dict[str, Any]:
        """Headline numbers for the report and CLI output."""
        summary = {
            'generated_at': self.generated_at.strftime("%Y-%m-%d %H:%M:%S"),
            'lines': self.classifier_stats.total_lines,
            'batches': self.classifier_stats.batches,
            'qc_status': self.qc_report.overall_status.value,
            'processing_time_ms': round(self.processing_time_ms, 1),
        }
        status = self.tables.status
        if not status.empty:
            summary['first_timestamp'] = str(status["timestamp"].min())
            summary['last_timestamp'] = str(status["timestamp"].max())
        adv = self.aggregates.adv
        if not adv.empty:
            missing = int(adv["missing_count"].sum())
            summary['adv_missing_frac'] = round(missing / (missing + int(adv["n"].sum())), 4)
        return summary


class TelemetryProcessor:
    """
    Orchestrates the complete processing pipeline for one feed download.

    Pipeline:
    1. Tag → classify lines, assign batch and line number
    2. Extract → typed tables per record type
    3. QC → drop out-of-range rows
    4. Reconcile → correct clocks, timestamp every row
    5. Aggregate → per-batch statistics
    """

    def __init__(
        self,
        qc_engine: Optional[QCEngine] = None,
        clock_correction: Optional[ClockCorrection] = None,
        adv_sample_rate_hz: float = 1.0,
        group_mass_spec_by_inlet: bool = True
    ):
        """
        Initialize the processor.

        Args:
            qc_engine: QC engine (default rules when omitted)
            clock_correction: Lander clock strategy
            adv_sample_rate_hz: Nominal ADV sample rate
            group_mass_spec_by_inlet: Split mass-spec aggregates by inlet state
        """
        self.qc_engine = qc_engine or QCEngine()
        self.reconciler = TimestampReconciler(
            correction=clock_correction,
            adv_sample_rate_hz=adv_sample_rate_hz,
        )
        self.aggregator = BatchAggregator(group_mass_spec_by_inlet=group_mass_spec_by_inlet)

    @classmethod
    def from_config(cls, config: Config) -> "TelemetryProcessor":
        rules = build_default_rules(config.qc.received_min, config.qc.received_max)
        return cls(
            qc_engine=QCEngine(rules=rules),
            clock_correction=RollingOffsetCorrection(
                window=config.timing.smoothing_window,
                max_offset_s=config.timing.max_clock_offset_s,
            ),
            adv_sample_rate_hz=config.timing.adv_sample_rate_hz,
        )

    def process_lines(self, lines: Iterable[str]) -> ProcessingResult:
        """
        Process raw feed lines through the complete pipeline.

        Args:
            lines: Raw text lines of the feed

        Returns:
            ProcessingResult with tables, QC report and aggregates
        """
        start_time = datetime.now()

        # Step 1: Tag lines
        tagger = LineTagger()
        records = tagger.tag(lines)

        # Step 2: Extract typed tables
        tables = extract_tables(records)
        logger.info("Extracted rows: %s", tables.row_counts())

        # Step 3: QC filters
        filtered, qc_report = self.qc_engine.run_all_checks(
            {'status': tables.status, 'adv': tables.adv}
        )
        tables = tables.with_tables(**filtered)

        # Step 4: Clock reconciliation
        tables = self.reconciler.reconcile(tables)

        # Step 5: Aggregation
        aggregates = self.aggregator.aggregate_tables(tables)

        processing_time = (datetime.now() - start_time).total_seconds() * 1000

        return ProcessingResult(
            classifier_stats=tagger.stats,
            tables=tables,
            qc_report=qc_report,
            aggregates=aggregates,
            processing_time_ms=processing_time,
        )

    def process_from_url(
        self,
        base_url: str,
        start_date: datetime,
        timeout: float = 60.0
    ) -> ProcessingResult:
        """
        Fetch the feed and process it.

        Raises:
            TelemetryFetchError: if the download fails
        """
        lines = fetch_telemetry(base_url, start_date, timeout=timeout)
        return self.process_lines(lines)


def process_lines(lines: Iterable[str], config: Optional[Config] = None) -> ProcessingResult:
    """
    Convenience function to process feed lines.

    Args:
        lines: Raw text lines
        config: Optional configuration; defaults are used when omitted

    Returns:
        ProcessingResult
    """
    processor = TelemetryProcessor.from_config(config) if config else TelemetryProcessor()
    return processor.process_lines(lines)
