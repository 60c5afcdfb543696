import numpy as np
import pandas as pd
import pytest

from gemsreport.processing.qc_engine import (
    QCEngine,
    QCStatus,
    RangeRule,
    build_default_rules,
    run_qc,
)


def _status_frame(n=4, **overrides):
    data = {
        "batch_id": list(range(n)),
        "line_number": [1] * n,
        "sound_speed": [1500.0] * n,
        "lander_day": [15] * n,
        "lander_month": [6] * n,
        "lander_minute": [30] * n,
        "lander_hour": [12] * n,
        "lander_year": [25] * n,
        "received_time": pd.to_datetime(["2025-06-15 12:00:00"] * n),
        "battery_voltage": [12.0] * n,
    }
    data.update(overrides)
    return pd.DataFrame(data)


def _adv_frame(**overrides):
    data = {
        "batch_id": [1, 1, 1, 1],
        "line_number": [1, 2, 3, 4],
        "count": [0, 1, 2, 255],
        "pressure": [0.5, 1.0, -9.9, 9.9],
        "analog1": [0.0, 0.5, -0.5, 0.99],
        "analog2": [0.0, 0.1, 0.2, -0.99],
    }
    data.update(overrides)
    return pd.DataFrame(data)


def test_valid_rows_are_never_dropped():
    tables = {"status": _status_frame(), "adv": _adv_frame()}
    filtered, report = run_qc(tables)

    assert len(filtered["status"]) == 4
    assert len(filtered["adv"]) == 4
    assert report.overall_status == QCStatus.PASS


@pytest.mark.parametrize("field,value,kept", [
    ("sound_speed", 1450.0, False),
    ("sound_speed", 2000.0, False),
    ("sound_speed", 1450.1, True),
    ("lander_day", 0, False),
    ("lander_day", 31, True),
    ("lander_month", 13, False),
    ("lander_month", 1, True),
    ("lander_minute", 60, True),
    ("lander_minute", 61, False),
    ("lander_hour", 23, True),
    ("lander_hour", 24, False),
    ("lander_year", 99, True),
    ("lander_year", 100, False),
    ("battery_voltage", 0.0, False),
    ("battery_voltage", 20.0, False),
    ("battery_voltage", np.nan, False),
])
def test_status_rule_bounds(field, value, kept):
    df = _status_frame(n=2)
    df.loc[0, field] = value
    filtered, _ = QCEngine().filter_table("status", df)

    assert (0 in filtered["batch_id"].tolist()) is kept
    assert 1 in filtered["batch_id"].tolist()


@pytest.mark.parametrize("received,kept", [
    ("2023-01-01 00:00:00", True),
    ("2022-12-31 23:59:59", False),
    ("2025-09-30 23:59:59", True),
    ("2025-10-01 00:00:00", False),
])
def test_received_time_window(received, kept):
    df = _status_frame(n=1, received_time=pd.to_datetime([received]))
    filtered, _ = QCEngine().filter_table("status", df)
    assert (len(filtered) == 1) is kept


def test_missing_received_time_fails():
    df = _status_frame(n=1, received_time=pd.Series([pd.NaT], dtype="datetime64[ns]"))
    filtered, summary = QCEngine().filter_table("status", df)

    assert filtered.empty
    assert summary.status == QCStatus.FAIL


@pytest.mark.parametrize("field,value", [
    ("count", -1),
    ("count", 256),
    ("pressure", 10.0),
    ("pressure", -10.0),
    ("analog1", 1.0),
    ("analog2", -1.0),
])
def test_adv_rule_bounds(field, value):
    df = _adv_frame()
    df.loc[1, field] = value
    filtered, summary = QCEngine().filter_table("adv", df)

    assert filtered["line_number"].tolist() == [1, 3, 4]
    assert summary.rows_dropped == 1


def test_filter_never_increases_rows_and_does_not_mutate():
    rng = np.random.default_rng(7)
    df = _adv_frame(
        count=rng.integers(-5, 260, 4),
        pressure=rng.uniform(-12, 12, 4),
    )
    before = df.copy()
    filtered, summary = QCEngine().filter_table("adv", df)

    assert len(filtered) <= len(df)
    assert summary.rows_in == len(df)
    assert summary.rows_out == len(filtered)
    pd.testing.assert_frame_equal(df, before)

    refiltered, _ = QCEngine().filter_table("adv", filtered)
    assert len(refiltered) == len(filtered)


def test_summary_counts_per_rule():
    df = _status_frame(n=4, sound_speed=[1400.0, 1500.0, 1500.0, 2100.0], battery_voltage=[12.0, -1.0, 12.0, 12.0])
    _, summary = QCEngine().filter_table("status", df)
    failed = {c.rule_code: c.rows_failed for c in summary.checks}

    assert failed["SOUND-SPEED"] == 2
    assert failed["BATTERY"] == 1
    assert summary.rows_out == 1
    assert summary.to_dict()["rows_dropped"] == 3


def test_status_thresholds():
    df = _status_frame(n=100, battery_voltage=[12.0] * 99 + [30.0])
    _, summary = QCEngine().filter_table("status", df)
    assert summary.status == QCStatus.WARN

    _, summary = QCEngine(thresholds={"dropped_warn": 5.0}).filter_table("status", df)
    assert summary.status == QCStatus.PASS


def test_custom_received_window():
    rules = build_default_rules(pd.Timestamp("2026-01-01"), pd.Timestamp("2027-01-01"))
    df = _status_frame(n=1, received_time=pd.to_datetime(["2026-06-01"]))
    filtered, _ = QCEngine(rules=rules).filter_table("status", df)
    assert len(filtered) == 1


def test_tables_without_rules_pass_through():
    turbo = pd.DataFrame({"batch_id": [1], "speed": [-1e9]})
    filtered, report = run_qc({"turbo": turbo, "adv": _adv_frame()})

    assert filtered["turbo"] is turbo
    assert "turbo" not in report.summaries


def test_empty_table_is_skipped():
    df = _adv_frame().iloc[0:0]
    filtered, summary = QCEngine().filter_table("adv", df)
    assert filtered.empty
    assert summary.status == QCStatus.SKIP


def test_range_rule_describe():
    rule = RangeRule("X", "pressure", -10, 10, False, True)
    assert rule.describe() == "pressure in (-10, 10]"
