import numpy as np
import pandas as pd

from conftest import adv_line, post_line, rga_line, status_line

from gemsreport.processing.classifier import tag_lines
from gemsreport.processing.extractors import (
    extract_tables,
    ion_current_to_pressure,
    onboard_timestamps,
)


def _extract(lines):
    records, _ = tag_lines(lines)
    return extract_tables(records)


def test_ion_current_to_pressure():
    assert np.isclose(ion_current_to_pressure(801.0), 801.0 * 1e-16 / 0.0801)
    assert np.isclose(ion_current_to_pressure(0.0801), 1e-16)


def test_mass_spec_keeps_monitored_masses_only():
    tables = _extract([post_line(1), rga_line(40, 10.0), rga_line(99, 5.0), rga_line(18, 2.0)])
    ms = tables.mass_spec

    assert ms["mass"].tolist() == [40, 18]
    assert np.allclose(ms["pressure"], ms["ion_current"] * 1e-16 / 0.0801)


def test_malformed_row_is_dropped_not_batch():
    tables = _extract([
        post_line(1),
        adv_line(1),
        adv_line("x"),
        adv_line(3, pressure="bad"),
        adv_line(4),
    ])
    assert tables.adv["count"].tolist() == [1, 4]


def test_tables_sorted_by_batch_then_line():
    tables = _extract([
        post_line(9, "2025-06-15T13:00:00"),
        adv_line(1),
        post_line(2, "2025-06-15T12:00:00"),
        adv_line(7),
        adv_line(8),
    ])
    assert tables.adv[["batch_id", "line_number"]].values.tolist() == [[2, 1], [2, 2], [9, 1]]


def test_status_received_time_joined_from_post():
    tables = _extract([
        post_line(4, "2025-06-15T12:10:00Z"),
        status_line(),
    ])
    status = tables.status

    assert status.loc[0, "received_time"] == pd.Timestamp("2025-06-15 12:10:00")
    assert status.loc[0, "lander_timestamp"] == pd.Timestamp("2025-06-15 12:00:00")


def test_onboard_timestamps_invalid_date_is_nat():
    df = pd.DataFrame({
        "lander_day": [31, 15],
        "lander_month": [2, 6],
        "lander_year": [25, 25],
        "lander_hour": [0, 23],
        "lander_minute": [0, 59],
        "lander_second": [0, 30],
    })
    ts = onboard_timestamps(df, "lander")

    assert pd.isna(ts.iloc[0])
    assert ts.iloc[1] == pd.Timestamp("2025-06-15 23:59:30")


def test_empty_feed_gives_empty_tables():
    tables = _extract([])
    assert all(count == 0 for count in tables.row_counts().values())
    assert "pressure" in tables.mass_spec.columns
    assert "lander_timestamp" in tables.status.columns


def test_corrupted_clock_field_gives_nat_not_error():
    tables = _extract([
        post_line(1),
        status_line((15, 6, 25, 10**12, 0, 0)),
        status_line((15, 6, 25, 12, 0, 10**15), adv=(15, 6, 25, 12, 0, 0)),
        status_line(),
    ])
    status = tables.status

    assert pd.isna(status.loc[0, "lander_timestamp"])
    assert pd.isna(status.loc[0, "adv_timestamp"])
    assert pd.isna(status.loc[1, "lander_timestamp"])
    assert status.loc[1, "adv_timestamp"] == pd.Timestamp("2025-06-15 12:00:00")
    assert status.loc[2, "lander_timestamp"] == pd.Timestamp("2025-06-15 12:00:00")


def test_empty_feed_received_time_is_datetime():
    status = _extract([]).status
    assert pd.api.types.is_datetime64_any_dtype(status["received_time"])
