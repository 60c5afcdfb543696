"""
Quality Control Engine
======================
Declarative range filters that drop corrupted telemetry rows.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


class QCStatus(Enum):
    """QC check status."""
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"
    SKIP = "skip"


@dataclass(frozen=True)
class RangeRule:
    """
    A validity range for one column.

    A bound of None is open. NaN/NaT never satisfies a rule.
    """
    rule_code: str
    field: str
    low: Optional[Any] = None
    high: Optional[Any] = None
    low_inclusive: bool = True
    high_inclusive: bool = True

    def mask(self, df: pd.DataFrame) -> pd.Series:
        """Boolean Series, True where the row satisfies the rule."""
        values = df[self.field]
        ok = values.notna()
        if self.low is not None:
            ok &= (values >= self.low) if self.low_inclusive else (values > self.low)
        if self.high is not None:
            ok &= (values <= self.high) if self.high_inclusive else (values < self.high)
        return ok.astype(bool)

    def describe(self) -> str:
        low = "-inf" if self.low is None else str(self.low)
        high = "inf" if self.high is None else str(self.high)
        left = "[" if self.low_inclusive and self.low is not None else "("
        right = "]" if self.high_inclusive and self.high is not None else ")"
        return f"{self.field} in {left}{low}, {high}{right}"


@dataclass
class QCCheck:
    """Result of a single rule on a single table."""
    rule_code: str
    description: str
    rows_failed: int


@dataclass
class QCSummary:
    """QC outcome for one table."""
    table: str
    status: QCStatus
    rows_in: int = 0
    rows_out: int = 0
    checks: List[QCCheck] = field(default_factory=list)

    @property
    def rows_dropped(self) -> int:
        return self.rows_in - self.rows_out

    @property
    def dropped_pct(self) -> float:
        return 100.0 * self.rows_dropped / self.rows_in if self.rows_in else 0.0

    def to_dict(self) -> Dict:
        """Flat row for the report table."""
        return {
            'table': self.table,
            'status': self.status.value,
            'rows_in': self.rows_in,
            'rows_out': self.rows_out,
            'rows_dropped': self.rows_dropped,
            'dropped_pct': round(self.dropped_pct, 2),
            'failed_rules': '; '.join(
                f"{c.rule_code}={c.rows_failed}" for c in self.checks if c.rows_failed
            ),
        }


@dataclass
class QCReport:
    """QC outcome for all tables of a run."""
    summaries: Dict[str, QCSummary] = field(default_factory=dict)

    @property
    def overall_status(self) -> QCStatus:
        statuses = [s.status for s in self.summaries.values()]
        if QCStatus.FAIL in statuses:
            return QCStatus.FAIL
        if QCStatus.WARN in statuses:
            return QCStatus.WARN
        return QCStatus.PASS

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([s.to_dict() for s in self.summaries.values()])


def build_default_rules(
    received_min: datetime = datetime(2023, 1, 1),
    received_max: datetime = datetime(2025, 10, 1)
) -> Dict[str, List[RangeRule]]:
    """
    Default rule sets keyed by table name.

    Onboard date/time fields are narrow BCD ranges, so anything outside
    them is a corrupted transmission rather than a real excursion.
    """
    return {
        'status': [
            RangeRule("SOUND-SPEED", "sound_speed", 1450, 2000, False, False),
            RangeRule("LANDER-DAY", "lander_day", 1, 31),
            RangeRule("LANDER-MONTH", "lander_month", 1, 12),
            RangeRule("LANDER-MINUTE", "lander_minute", high=60),
            RangeRule("LANDER-HOUR", "lander_hour", high=23),
            RangeRule("LANDER-YEAR", "lander_year", high=99),
            RangeRule(
                "RECEIVED-TIME", "received_time",
                pd.Timestamp(received_min), pd.Timestamp(received_max),
                True, False
            ),
            RangeRule("BATTERY", "battery_voltage", 0, 20, False, False),
        ],
        'adv': [
            RangeRule("ADV-COUNT", "count", 0, 255),
            RangeRule("ADV-PRESSURE", "pressure", -10, 10, False, False),
            RangeRule("ADV-ANALOG1", "analog1", -1, 1, False, False),
            RangeRule("ADV-ANALOG2", "analog2", -1, 1, False, False),
        ],
    }


class QCEngine:
    """
    Applies per-table range rules.

    A row failing any rule of its table is dropped. The table status
    reflects the share of rows dropped.
    """

    # Default thresholds (% of rows dropped)
    DEFAULT_THRESHOLDS = {
        'dropped_warn': 1.0,
        'dropped_fail': 25.0,
    }

    def __init__(
        self,
        rules: Optional[Dict[str, List[RangeRule]]] = None,
        thresholds: Optional[Dict[str, float]] = None
    ):
        """
        Initialize the QC engine.

        Args:
            rules: Optional rule sets keyed by table name
            thresholds: Optional dict of threshold overrides
        """
        self.rules = rules if rules is not None else build_default_rules()
        self.thresholds = {**self.DEFAULT_THRESHOLDS}
        if thresholds:
            self.thresholds.update(thresholds)

    def _status(self, summary: QCSummary) -> QCStatus:
        if summary.rows_in == 0:
            return QCStatus.SKIP
        if summary.dropped_pct >= self.thresholds['dropped_fail']:
            return QCStatus.FAIL
        if summary.dropped_pct >= self.thresholds['dropped_warn']:
            return QCStatus.WARN
        return QCStatus.PASS

    def filter_table(self, table: str, df: pd.DataFrame) -> Tuple[pd.DataFrame, QCSummary]:
        """
        Drop the rows of one table that fail any of its rules.

        Args:
            table: Table name (key into the rule sets)
            df: Table to filter; not modified

        Returns:
            Tuple of (filtered copy, QCSummary)
        """
        summary = QCSummary(table=table, status=QCStatus.PASS, rows_in=len(df))
        keep = pd.Series(np.ones(len(df), dtype=bool), index=df.index)

        for rule in self.rules.get(table, []):
            ok = rule.mask(df) if len(df) else keep
            summary.checks.append(
                QCCheck(
                    rule_code=rule.rule_code,
                    description=rule.describe(),
                    rows_failed=int((~ok).sum()),
                )
            )
            keep &= ok

        filtered = df[keep].reset_index(drop=True)
        summary.rows_out = len(filtered)
        summary.status = self._status(summary)

        if summary.rows_dropped:
            logger.info(
                "QC %s: dropped %d of %d rows (%s)",
                table, summary.rows_dropped, summary.rows_in,
                ', '.join(f"{c.rule_code}={c.rows_failed}" for c in summary.checks if c.rows_failed)
            )
        return filtered, summary

    def run_all_checks(self, tables: Dict[str, pd.DataFrame]) -> Tuple[Dict[str, pd.DataFrame], QCReport]:
        """
        Filter every table that has a rule set; others pass through.

        Args:
            tables: Mapping of table name to DataFrame

        Returns:
            Tuple of (filtered tables, QCReport)
        """
        report = QCReport()
        filtered = dict(tables)
        for table in self.rules:
            if table not in tables:
                continue
            filtered[table], report.summaries[table] = self.filter_table(table, tables[table])
        return filtered, report


def run_qc(tables: Dict[str, pd.DataFrame]) -> Tuple[Dict[str, pd.DataFrame], QCReport]:
    """
    Convenience function to run QC with the default rules.

    Args:
        tables: Mapping of table name to DataFrame

    Returns:
        Tuple of (filtered tables, QCReport)
    """
    engine = QCEngine()
    return engine.run_all_checks(tables)
