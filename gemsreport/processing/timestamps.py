"""
Timestamp Reconciliation
========================
Resolves the drifting lander and ADV clocks against the trusted server
received time, and gives every telemetry row a canonical timestamp.

- Lander clock: jitter removed by a pluggable ClockCorrection strategy
- ADV clock: offset to the corrected lander clock, median per batch
- ADV samples: interpolated from sequence counts between status rows
- Other tables: nearest status row in the same batch
"""

import logging
from typing import Optional, Protocol

import numpy as np
import pandas as pd
from scipy import interpolate

from gemsreport.processing.extractors import TelemetryTables

logger = logging.getLogger(__name__)


SEQUENCE_MODULUS = 256
EPOCH = pd.Timestamp("1970-01-01")


def to_seconds(ts: pd.Series) -> pd.Series:
    """Datetimes -> float seconds since the epoch (NaT -> NaN)."""
    return (pd.to_datetime(ts) - EPOCH) / pd.Timedelta(seconds=1)


def from_seconds(seconds) -> pd.Series:
    """Float seconds since the epoch -> datetimes (NaN -> NaT)."""
    return pd.to_datetime(pd.Series(seconds, dtype=float), unit="s")


def sequence_gaps(counts, modulus: int = SEQUENCE_MODULUS) -> np.ndarray:
    """
    Number of samples missing before each sample of a wrapping counter.

    The counter wraps at `modulus`, so 254, 255, 0, 1 has no gaps and
    5, 9 has three missing samples. The first sample never has a gap.

    Args:
        counts: Sequence counts in arrival order

    Returns:
        Integer array, same length as counts
    """
    counts = np.asarray(counts, dtype=np.int64)
    missing = np.zeros(len(counts), dtype=np.int64)
    if len(counts) > 1:
        missing[1:] = (np.diff(counts) - 1) % modulus
    return missing


# =============================================================================
# Lander clock correction strategies
# =============================================================================

class ClockCorrection(Protocol):
    """Trusted received time + drifting lander clock -> corrected time."""

    def correct(self, status: pd.DataFrame) -> pd.Series:
        ...


class RollingOffsetCorrection:
    """
    Per-batch clock offset, smoothed across batches.

    The raw offset of a batch is its received time minus its latest lander
    time. A centred rolling median over neighbouring batches removes the
    transmission jitter. The result is made monotonic within each batch and
    clipped to [received - max_offset, received].
    """

    def __init__(self, window: int = 5, max_offset_s: float = 3600.0):
        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        self.window = window
        self.max_offset = pd.Timedelta(seconds=max_offset_s)

    def batch_offsets(self, status: pd.DataFrame) -> pd.Series:
        """Smoothed offset in seconds, indexed by batch_id."""
        by_batch = status.groupby("batch_id")
        raw = to_seconds(by_batch["received_time"].first()) - to_seconds(
            by_batch["lander_timestamp"].max()
        )
        return raw.sort_index().rolling(self.window, center=True, min_periods=1).median()

    def correct(self, status: pd.DataFrame) -> pd.Series:
        if status.empty:
            return pd.Series(pd.NaT, index=status.index, dtype="datetime64[ns]")

        offsets = status["batch_id"].map(self.batch_offsets(status))
        corrected = pd.to_datetime(status["lander_timestamp"]) + pd.to_timedelta(offsets, unit="s")
        corrected = corrected.groupby(status["batch_id"]).cummax()

        received = pd.to_datetime(status["received_time"])
        corrected = corrected.where(~(corrected > received), received)
        earliest = received - self.max_offset
        corrected = corrected.where(~(corrected < earliest), earliest)
        return corrected.fillna(received)


# =============================================================================
# Reconciler
# =============================================================================

class TimestampReconciler:
    """
    Gives every row of every table a canonical `timestamp`.

    Status rows without any resolvable time, and rows of other tables
    that cannot be placed in time, are dropped.
    """

    def __init__(
        self,
        correction: Optional[ClockCorrection] = None,
        adv_sample_rate_hz: float = 1.0
    ):
        """
        Initialize the reconciler.

        Args:
            correction: Lander clock strategy (RollingOffsetCorrection by default)
            adv_sample_rate_hz: Nominal ADV rate, used when a batch has
                                fewer than two status anchors
        """
        if adv_sample_rate_hz <= 0:
            raise ValueError(f"adv_sample_rate_hz must be positive, got {adv_sample_rate_hz}")
        self.correction = correction or RollingOffsetCorrection()
        self.adv_sample_rate_hz = adv_sample_rate_hz

    def reconcile_status(self, status: pd.DataFrame) -> pd.DataFrame:
        lander_corrected = self.correction.correct(status)
        if status.empty:
            return status.assign(
                lander_timestamp_corrected=lander_corrected,
                adv_timestamp_corrected=lander_corrected,
                timestamp=lander_corrected,
            )

        adv_offset = (
            (to_seconds(lander_corrected) - to_seconds(status["adv_timestamp"]))
            .groupby(status["batch_id"])
            .transform("median")
        )
        adv_corrected = pd.to_datetime(status["adv_timestamp"]) + pd.to_timedelta(adv_offset, unit="s")
        adv_corrected = adv_corrected.fillna(lander_corrected)

        result = status.assign(
            lander_timestamp_corrected=lander_corrected,
            adv_timestamp_corrected=adv_corrected,
            timestamp=lander_corrected,
        )
        unresolved = result["timestamp"].isna()
        if unresolved.any():
            logger.info("Dropping %d status rows with no resolvable time", int(unresolved.sum()))
        return result[~unresolved].reset_index(drop=True)

    def _batch_sample_times(
        self,
        adv_batch: pd.DataFrame,
        status_batch: pd.DataFrame,
        received: Optional[pd.Timestamp]
    ) -> np.ndarray:
        """Float epoch seconds for each ADV row of one batch."""
        k = adv_batch["sample_index"].to_numpy(dtype=float)
        rate = self.adv_sample_rate_hz

        if not status_batch.empty:
            adv_lines = adv_batch["line_number"].to_numpy()
            pos = np.searchsorted(adv_lines, status_batch["line_number"].to_numpy()) - 1
            anchors = pd.DataFrame({
                "k": k[np.clip(pos, 0, len(k) - 1)],
                "t": to_seconds(status_batch["adv_timestamp_corrected"]).to_numpy(),
            }).dropna().groupby("k")["t"].mean()

            if len(anchors) >= 2:
                interp_func = interpolate.interp1d(
                    anchors.index.to_numpy(), anchors.to_numpy(),
                    kind='linear',
                    fill_value='extrapolate',
                    bounds_error=False
                )
                return interp_func(k)
            if len(anchors) == 1:
                return anchors.iloc[0] + (k - anchors.index[0]) / rate

        if received is not None and not pd.isna(received):
            return to_seconds(pd.Series([received])).iloc[0] - (k[-1] - k) / rate
        return np.full(len(k), np.nan)

    def timestamp_adv(
        self,
        adv: pd.DataFrame,
        status: pd.DataFrame,
        received_by_batch: pd.Series
    ) -> pd.DataFrame:
        """
        Add `missing`, `sample_index` and `timestamp` to the ADV table.

        Args:
            adv: QC-filtered ADV rows, sorted by batch and line
            status: Reconciled status rows
            received_by_batch: Received time indexed by batch_id
        """
        if adv.empty:
            return adv.assign(
                missing=pd.Series(dtype="int64"),
                sample_index=pd.Series(dtype="int64"),
                timestamp=pd.Series(dtype="datetime64[ns]"),
            )

        missing = adv.groupby("batch_id")["count"].transform(sequence_gaps).astype("int64")
        sample_index = (missing + 1).groupby(adv["batch_id"]).cumsum() - 1
        result = adv.assign(missing=missing, sample_index=sample_index.astype("int64"))

        seconds = pd.Series(np.nan, index=result.index)
        status_by_batch = dict(tuple(status.groupby("batch_id"))) if not status.empty else {}
        for batch_id, adv_batch in result.groupby("batch_id"):
            seconds.loc[adv_batch.index] = self._batch_sample_times(
                adv_batch,
                status_by_batch.get(batch_id, status.iloc[0:0]),
                received_by_batch.get(batch_id),
            )

        result = result.assign(timestamp=from_seconds(seconds.to_numpy()).to_numpy())
        untimed = result["timestamp"].isna()
        if untimed.any():
            logger.info("Dropping %d ADV rows with no time reference", int(untimed.sum()))
        return result[~untimed].reset_index(drop=True)

    def attach_status_time(
        self,
        df: pd.DataFrame,
        status: pd.DataFrame,
        received_by_batch: pd.Series
    ) -> pd.DataFrame:
        """
        Timestamp rows from the closest preceding status row of their batch.

        Falls back to the following status row, then the batch received time.
        """
        if df.empty:
            return df.assign(timestamp=pd.Series(dtype="datetime64[ns]"))

        rows = df.assign(_order=np.arange(len(df))).sort_values("line_number", kind="stable")
        rows["batch_id"] = rows["batch_id"].astype("int64")
        times = pd.Series(pd.NaT, index=rows.index, dtype="datetime64[ns]")

        if not status.empty:
            anchors = (
                status[["batch_id", "line_number", "timestamp"]]
                .rename(columns={"line_number": "status_line"})
                .astype({"batch_id": "int64", "status_line": "int64"})
                .sort_values("status_line", kind="stable")
            )
            for direction in ("backward", "forward"):
                matched = pd.merge_asof(
                    rows[["batch_id", "line_number"]].astype("int64"),
                    anchors,
                    left_on="line_number",
                    right_on="status_line",
                    by="batch_id",
                    direction=direction,
                )
                times = times.fillna(pd.Series(matched["timestamp"].to_numpy(), index=rows.index))

        fallback = pd.to_datetime(rows["batch_id"].map(received_by_batch))
        times = times.where(times.notna(), fallback)
        result = rows.assign(timestamp=pd.to_datetime(times))
        result = result.sort_values("_order").drop(columns="_order")

        untimed = result["timestamp"].isna()
        if untimed.any():
            logger.info("Dropping %d rows with no time reference", int(untimed.sum()))
        return result[~untimed].reset_index(drop=True)

    def reconcile(self, tables: TelemetryTables) -> TelemetryTables:
        """
        Reconcile clocks and timestamp every table.

        Args:
            tables: QC-filtered tables

        Returns:
            New TelemetryTables; every table gains a `timestamp` column
        """
        received_by_batch = pd.Series(dtype="datetime64[ns]")
        if not tables.post_time.empty:
            received_by_batch = (
                tables.post_time.drop_duplicates("batch_id")
                .set_index("batch_id")["received_time"]
                .pipe(pd.to_datetime)
            )

        status = self.reconcile_status(tables.status)
        return tables.with_tables(
            status=status,
            adv=self.timestamp_adv(tables.adv, status, received_by_batch),
            mass_spec=self.attach_status_time(tables.mass_spec, status, received_by_batch),
            turbo=self.attach_status_time(tables.turbo, status, received_by_batch),
            temperature=self.attach_status_time(tables.temperature, status, received_by_batch),
        )


def reconcile_timestamps(
    tables: TelemetryTables,
    adv_sample_rate_hz: float = 1.0,
    max_offset_s: float = 3600.0
) -> TelemetryTables:
    """
    Convenience function to reconcile with the default clock correction.

    Args:
        tables: QC-filtered tables
        adv_sample_rate_hz: Nominal ADV sample rate
        max_offset_s: Largest allowed lag of lander time behind received time

    Returns:
        Timestamped TelemetryTables
    """
    reconciler = TimestampReconciler(
        correction=RollingOffsetCorrection(max_offset_s=max_offset_s),
        adv_sample_rate_hz=adv_sample_rate_hz,
    )
    return reconciler.reconcile(tables)
