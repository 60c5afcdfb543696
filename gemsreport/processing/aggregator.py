"""
Batch Aggregator
================
Per-transmission summary statistics for the cleaned, timestamped tables.

Mass-spec readings are first reshaped to one row per inlet cycle, labelled
with the active inlet and normalised to argon.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from gemsreport.processing.extractors import (
    ARGON_MASS,
    MONITORED_MASSES,
    WATER_MASS,
    TelemetryTables,
)
from gemsreport.processing.timestamps import from_seconds, to_seconds

logger = logging.getLogger(__name__)


INLET_PERIOD_MIN = 7.5
INLET_STATES = ("low", "high")

ARGON = MONITORED_MASSES[ARGON_MASS]
MASS_COLUMNS = list(MONITORED_MASSES.values())
RATIO_COLUMNS = [f"{name}_ar" for name in MASS_COLUMNS if name != ARGON]

# Fields summarised per table
AGGREGATE_FIELDS: Dict[str, List[str]] = {
    'status': ["battery_voltage", "heading", "pitch", "roll", "sound_speed", "temperature"],
    'turbo': ["speed", "power", "temperature", "voltage"],
    'temperature': ["water_temperature", "board_temperature"],
    'adv': [
        "pressure", "analog1", "analog2", "vx", "vy", "vz",
        "amp1", "amp2", "amp3", "corr1", "corr2", "corr3",
    ],
    'mass_spec': MASS_COLUMNS + RATIO_COLUMNS,
}


@dataclass
class AggregateTables:
    """Aggregate rows per table, plus the wide per-cycle mass-spec table."""
    status: pd.DataFrame = field(repr=False)
    mass_spec: pd.DataFrame = field(repr=False)
    turbo: pd.DataFrame = field(repr=False)
    temperature: pd.DataFrame = field(repr=False)
    adv: pd.DataFrame = field(repr=False)
    mass_spec_cycles: pd.DataFrame = field(repr=False)

    def items(self):
        """(name, table) pairs of the aggregate tables, excluding cycles."""
        return [
            ('status', self.status),
            ('mass_spec', self.mass_spec),
            ('turbo', self.turbo),
            ('temperature', self.temperature),
            ('adv', self.adv),
        ]

    def row_counts(self) -> Dict[str, int]:
        return {name: len(table) for name, table in self.items()}


# =============================================================================
# Inlet labelling
# =============================================================================

def inlet_state(minutes_since_hour):
    """
    Inlet label for minutes since the top of the hour.

    Inlets alternate every 7.5 minutes starting with "low":
    0-7.49 low, 7.5-14.99 high, 15-22.49 low, ...
    """
    phase = np.floor_divide(np.asarray(minutes_since_hour, dtype=float), INLET_PERIOD_MIN) % 2
    labels = np.where(phase == 0, INLET_STATES[0], INLET_STATES[1])
    return labels.item() if labels.ndim == 0 else labels


def minutes_since_hour(timestamps: pd.Series) -> pd.Series:
    ts = pd.to_datetime(timestamps)
    return ts.dt.minute + ts.dt.second / 60.0 + ts.dt.microsecond / 60e6


# =============================================================================
# Mass-spec reshape
# =============================================================================

def assign_cycles(mass_spec: pd.DataFrame) -> pd.Series:
    """
    Inlet cycle number within each batch.

    A new cycle starts at every water (mass 18) reading; readings before
    the first water reading of a batch form cycle 0.
    """
    is_water = (mass_spec["mass"] == WATER_MASS).astype(int)
    return is_water.groupby(mass_spec["batch_id"]).cumsum()


def mass_spec_to_wide(mass_spec: pd.DataFrame) -> pd.DataFrame:
    """
    Reshape long mass-spec readings to one row per inlet cycle.

    Columns: batch_id, cycle, timestamp (mean of member readings), inlet,
    one pressure column per monitored mass, and <mass>_ar ratios to argon.
    """
    columns = ["batch_id", "cycle", "timestamp", "inlet"] + MASS_COLUMNS + RATIO_COLUMNS
    if mass_spec.empty:
        return pd.DataFrame(columns=columns)

    readings = mass_spec.assign(
        cycle=assign_cycles(mass_spec),
        gas=mass_spec["mass"].map(MONITORED_MASSES),
        seconds=to_seconds(mass_spec["timestamp"]),
    )
    keys = ["batch_id", "cycle"]

    wide = (
        readings.groupby(keys + ["gas"])["pressure"].mean()
        .unstack("gas")
        .reindex(columns=MASS_COLUMNS)
    )
    wide.columns.name = None
    wide = wide.join(readings.groupby(keys)["seconds"].mean()).reset_index()
    seconds = wide.pop("seconds")
    wide["timestamp"] = from_seconds(seconds.to_numpy()).to_numpy()

    argon = wide[ARGON].where(wide[ARGON] != 0)
    ratios = {f"{name}_ar": wide[name] / argon for name in MASS_COLUMNS if name != ARGON}
    wide = wide.assign(inlet=inlet_state(minutes_since_hour(wide["timestamp"])), **ratios)
    return wide[columns]


# =============================================================================
# Aggregation
# =============================================================================

def aggregate(
    df: pd.DataFrame,
    fields: Sequence[str],
    group_by: Sequence[str] = ("batch_id",)
) -> pd.DataFrame:
    """
    Mean and sample standard deviation of each field per group.

    NaN values are ignored. Adds `timestamp` (group mean), `n` (rows) and
    `missing_frac` (share of null cells among the fields).

    Args:
        df: Timestamped table
        fields: Numeric columns to summarise
        group_by: Grouping columns

    Returns:
        One row per group, sorted by the group keys
    """
    group_by = list(group_by)
    stat_columns = [f"{name}_{stat}" for name in fields for stat in ("mean", "sd")]
    columns = group_by + ["timestamp", "n", "missing_frac"] + stat_columns
    if df.empty:
        return pd.DataFrame(columns=columns)

    values = df[list(fields)].apply(pd.to_numeric, errors="coerce")
    grouped = values.groupby([df[key] for key in group_by], sort=True)

    stats = {}
    means = grouped.mean()
    sds = grouped.std(ddof=1)
    for name in fields:
        stats[f"{name}_mean"] = means[name]
        stats[f"{name}_sd"] = sds[name]

    n = grouped.size()
    nulls = values.isna().groupby([df[key] for key in group_by], sort=True).sum().sum(axis=1)
    seconds = to_seconds(df["timestamp"]).groupby([df[key] for key in group_by], sort=True).mean()

    out = pd.DataFrame(stats, index=n.index)
    out.insert(0, "missing_frac", nulls / (n * max(len(fields), 1)))
    out.insert(0, "n", n)
    out.insert(0, "timestamp", from_seconds(seconds.to_numpy()).to_numpy())
    return out.reset_index()[columns]


def aggregate_adv(adv: pd.DataFrame) -> pd.DataFrame:
    """
    Per-batch ADV aggregates with gap-based missing fraction.

    missing_frac = missing / (missing + n), missing being the samples
    implied by sequence-count gaps.
    """
    out = aggregate(adv, AGGREGATE_FIELDS['adv'])
    if adv.empty:
        return out.assign(missing_count=pd.Series(dtype="int64"))
    missing = adv.groupby("batch_id", sort=True)["missing"].sum()
    missing = out["batch_id"].map(missing).astype("int64")
    return out.assign(
        missing_count=missing,
        missing_frac=missing / (missing + out["n"]),
    )


class BatchAggregator:
    """Aggregates every table of a reconciled run."""

    def __init__(self, group_mass_spec_by_inlet: bool = True):
        self.group_mass_spec_by_inlet = group_mass_spec_by_inlet

    def aggregate_tables(self, tables: TelemetryTables) -> AggregateTables:
        """
        Args:
            tables: QC-filtered, timestamped tables

        Returns:
            AggregateTables
        """
        cycles = mass_spec_to_wide(tables.mass_spec)
        mass_spec_keys = ["batch_id", "inlet"] if self.group_mass_spec_by_inlet else ["batch_id"]

        result = AggregateTables(
            status=aggregate(tables.status, AGGREGATE_FIELDS['status']),
            mass_spec=aggregate(cycles, AGGREGATE_FIELDS['mass_spec'], mass_spec_keys),
            turbo=aggregate(tables.turbo, AGGREGATE_FIELDS['turbo']),
            temperature=aggregate(tables.temperature, AGGREGATE_FIELDS['temperature']),
            adv=aggregate_adv(tables.adv),
            mass_spec_cycles=cycles,
        )
        logger.info("Aggregated: %s", result.row_counts())
        return result


def aggregate_run(tables: TelemetryTables) -> AggregateTables:
    """Convenience function to aggregate with default groupings."""
    return BatchAggregator().aggregate_tables(tables)
