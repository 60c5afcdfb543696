"""
Per-Type Table Extractors
=========================
Split tagged records into one typed table per record type.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Callable, Dict, Iterable, List, Optional, Type

import pandas as pd
from pydantic import ValidationError

from gemsreport.processing.classifier import RecordType, TaggedRecord
from gemsreport.processing.schemas import (
    AdvRow,
    MassSpecRow,
    PostTimeRow,
    StatusRow,
    TelemetryRow,
    TemperatureRow,
    TurboRow,
)

logger = logging.getLogger(__name__)


# Ion current (A) -> partial pressure (Torr)
ION_CURRENT_SCALE = 1e-16
RGA_SENSITIVITY = 0.0801

# Monitored mass-to-charge ratios and their column names
MONITORED_MASSES: Dict[int, str] = {
    15: "methane",
    18: "water",
    28: "nitrogen",
    32: "oxygen",
    40: "argon",
    44: "co2",
}
WATER_MASS = 18
ARGON_MASS = 40

SORT_KEYS = ["batch_id", "line_number"]

CLOCK_FIELDS = ("year", "month", "day", "hour", "minute", "second")


def ion_current_to_pressure(current):
    """Convert RGA ion current to partial pressure (scalar or array)."""
    return current * ION_CURRENT_SCALE / RGA_SENSITIVITY


@dataclass
class TelemetryTables:
    """One DataFrame per record type, sorted by batch then line."""
    post_time: pd.DataFrame = field(repr=False)
    status: pd.DataFrame = field(repr=False)
    mass_spec: pd.DataFrame = field(repr=False)
    turbo: pd.DataFrame = field(repr=False)
    temperature: pd.DataFrame = field(repr=False)
    adv: pd.DataFrame = field(repr=False)

    def row_counts(self) -> Dict[str, int]:
        return {f.name: len(getattr(self, f.name)) for f in fields(self)}

    def with_tables(self, **tables: pd.DataFrame) -> "TelemetryTables":
        """Return a new TelemetryTables with some tables swapped out."""
        return replace(self, **tables)


class TableExtractor:
    """
    Parses the tagged records of one type into a DataFrame.

    Rows that fail schema validation are dropped individually.
    """

    def __init__(
        self,
        record_type: RecordType,
        schema: Type[TelemetryRow],
        derive: Optional[Callable[[pd.DataFrame], pd.DataFrame]] = None
    ):
        self.record_type = record_type
        self.schema = schema
        self.derive = derive
        self.dropped = 0

    @property
    def columns(self) -> List[str]:
        return list(self.schema.model_fields)

    def parse(self, record: TaggedRecord) -> Optional[Dict]:
        """Validate one record; None when a field is malformed."""
        payload = dict(zip(self.schema.payload_fields(), record.fields))
        try:
            row = self.schema(
                batch_id=record.batch_id,
                line_number=record.line_number,
                **payload
            )
        except ValidationError as e:
            logger.debug(
                "Dropping %s row (batch %d, line %d): %d invalid field(s)",
                self.record_type.value, record.batch_id, record.line_number, e.error_count()
            )
            return None
        return row.model_dump()

    def extract(self, records: Iterable[TaggedRecord]) -> pd.DataFrame:
        rows = []
        for record in records:
            if record.record_type != self.record_type:
                continue
            parsed = self.parse(record)
            if parsed is None:
                self.dropped += 1
            else:
                rows.append(parsed)

        df = pd.DataFrame(rows, columns=self.columns)
        df = df.sort_values(SORT_KEYS, kind="stable").reset_index(drop=True)
        if self.derive is not None:
            df = self.derive(df)
        return df


# =============================================================================
# Derived columns
# =============================================================================

def _derive_mass_spec(df: pd.DataFrame) -> pd.DataFrame:
    monitored = df["mass"].isin(list(MONITORED_MASSES))
    if not monitored.all():
        logger.info("Ignoring %d readings of unmonitored masses", int((~monitored).sum()))
    df = df[monitored].reset_index(drop=True)
    return df.assign(pressure=ion_current_to_pressure(df["ion_current"].astype(float)))


def onboard_timestamps(df: pd.DataFrame, prefix: str) -> pd.Series:
    """
    Build datetimes from the BCD-style onboard clock fields.

    Two-digit years map to 20yy; impossible calendar dates become NaT.
    Fields outside two BCD digits also become NaT, for QC to drop.
    """
    parts = {
        unit: pd.to_numeric(df[f"{prefix}_{unit}"], errors="coerce")
        for unit in CLOCK_FIELDS
    }
    valid = pd.Series(True, index=df.index)
    for values in parts.values():
        valid &= values.between(0, 99)
    if not valid.any():
        return pd.Series(pd.NaT, index=df.index, dtype="datetime64[ns]")

    parts = {unit: values[valid].astype("int64") for unit, values in parts.items()}
    dates = pd.to_datetime(
        pd.DataFrame({
            "year": parts["year"] + 2000,
            "month": parts["month"],
            "day": parts["day"],
        }),
        errors="coerce",
    )
    offsets = (
        pd.to_timedelta(parts["hour"], unit="h")
        + pd.to_timedelta(parts["minute"], unit="m")
        + pd.to_timedelta(parts["second"], unit="s")
    )
    return (dates + offsets).reindex(df.index)


def attach_received_time(status: pd.DataFrame, post_time: pd.DataFrame) -> pd.DataFrame:
    """Join each status row to the received time of its batch."""
    if status.empty or post_time.empty:
        received_time = pd.Series(pd.NaT, index=status.index, dtype="datetime64[ns]")
        return status.assign(received_time=received_time)

    received = (
        post_time.drop_duplicates("batch_id")
        .set_index("batch_id")["received_time"]
    )
    received = pd.to_datetime(received)
    return status.assign(received_time=pd.to_datetime(status["batch_id"].map(received)))


def _derive_status(df: pd.DataFrame) -> pd.DataFrame:
    return df.assign(
        lander_timestamp=onboard_timestamps(df, "lander"),
        adv_timestamp=onboard_timestamps(df, "adv"),
    )


EXTRACTORS = {
    RecordType.POST_TIME: (PostTimeRow, None),
    RecordType.STATUS: (StatusRow, _derive_status),
    RecordType.MASS_SPEC: (MassSpecRow, _derive_mass_spec),
    RecordType.TURBO: (TurboRow, None),
    RecordType.TEMPERATURE: (TemperatureRow, None),
    RecordType.ADV: (AdvRow, None),
}


def extract_tables(records: List[TaggedRecord]) -> TelemetryTables:
    """
    Extract every typed table from a list of tagged records.

    Args:
        records: Output of the line tagger

    Returns:
        TelemetryTables with status rows already joined to received times
    """
    tables: Dict[str, pd.DataFrame] = {}
    for record_type, (schema, derive) in EXTRACTORS.items():
        extractor = TableExtractor(record_type, schema, derive)
        tables[record_type.value] = extractor.extract(records)
        if extractor.dropped:
            logger.info(
                "Dropped %d malformed %s rows", extractor.dropped, record_type.value
            )

    tables["status"] = attach_received_time(tables["status"], tables["post_time"])
    return TelemetryTables(**tables)
