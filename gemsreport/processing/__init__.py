"""
Processing Module
=================
Telemetry processing for the GEMS lander feed.

Modules:
- classifier: Tag raw lines with record type, batch and line number
- extractors: Typed tables per record type
- qc_engine: Declarative range filters
- timestamps: Clock reconciliation and per-row timestamps
- aggregator: Per-batch statistics, mass-spec inlet cycles
- processor: Pipeline orchestration
"""

from gemsreport.processing.classifier import (
    RecordType,
    TaggedRecord,
    ClassifierStats,
    LineTagger,
    classify,
    is_garbage,
    tag_lines
)

from gemsreport.processing.extractors import (
    MONITORED_MASSES,
    TelemetryTables,
    extract_tables,
    ion_current_to_pressure
)

from gemsreport.processing.qc_engine import (
    QCEngine,
    QCReport,
    QCSummary,
    QCStatus,
    RangeRule,
    build_default_rules,
    run_qc
)

from gemsreport.processing.timestamps import (
    ClockCorrection,
    RollingOffsetCorrection,
    TimestampReconciler,
    reconcile_timestamps,
    sequence_gaps
)

from gemsreport.processing.aggregator import (
    AggregateTables,
    BatchAggregator,
    aggregate,
    aggregate_run,
    inlet_state,
    mass_spec_to_wide
)

from gemsreport.processing.processor import (
    TelemetryProcessor,
    ProcessingResult,
    process_lines
)

__all__ = [
    # Classifier
    'RecordType',
    'TaggedRecord',
    'ClassifierStats',
    'LineTagger',
    'classify',
    'is_garbage',
    'tag_lines',

    # Extractors
    'MONITORED_MASSES',
    'TelemetryTables',
    'extract_tables',
    'ion_current_to_pressure',

    # QC Engine
    'QCEngine',
    'QCReport',
    'QCSummary',
    'QCStatus',
    'RangeRule',
    'build_default_rules',
    'run_qc',

    # Timestamps
    'ClockCorrection',
    'RollingOffsetCorrection',
    'TimestampReconciler',
    'reconcile_timestamps',
    'sequence_gaps',

    # Aggregator
    'AggregateTables',
    'BatchAggregator',
    'aggregate',
    'aggregate_run',
    'inlet_state',
    'mass_spec_to_wide',

    # Processor
    'TelemetryProcessor',
    'ProcessingResult',
    'process_lines',
]
