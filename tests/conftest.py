"""
Shared pytest fixtures for the GEMS report tests.

Provides raw-line builders for every record type and a two-batch feed
fixture covering all record types, one out-of-range row per QC'd table,
one ADV sequence gap, a counter wrap and one inlet-cycle boundary.
"""

from typing import List

import pytest


def post_line(send_id, received="2025-06-15T12:10:00"):
    return f"POST,{send_id},{received}"


def status_line(
    lander=(15, 6, 25, 12, 0, 0),
    adv=None,
    battery_voltage=12.5,
    heading=90.0,
    pitch=1.0,
    roll=-1.0,
    sound_speed=1500.0,
    temperature=4.0,
):
    """Status line; lander/adv clocks as (day, month, yy, hour, minute, second)."""
    adv = adv if adv is not None else lander
    values = list(lander) + list(adv) + [battery_voltage, heading, pitch, roll, sound_speed, temperature]
    return "S," + ",".join(str(v) for v in values)


def rga_line(mass, ion_current):
    return f"R,{mass},{ion_current}"


def turbo_line(speed=1500.0, power=12.0, temperature=30.0, voltage=24.0):
    return f"U,{speed},{power},{temperature},{voltage}"


def temp_line(water_temperature=4.0, board_temperature=20.0):
    return f"T,{water_temperature},{board_temperature}"


def adv_line(count, pressure=1.0, analog1=0.1, analog2=0.2, velocity=(0.1, 0.2, 0.3)):
    values = [count, pressure, analog1, analog2, *velocity, 100, 101, 102, 90, 91, 92]
    return "D," + ",".join(str(v) for v in values)


@pytest.fixture
def feed_lines() -> List[str]:
    """
    Two batches; lander clocks run 5 minutes behind received time.

    Batch 1 (received 12:10): two valid status rows, one bad sound speed,
    ADV counts 10, 11, 15, [16 bad pressure], 17, mass-spec cycles at
    12:05 (low inlet) and 12:10 (high inlet), one junk and one garbage line.
    Batch 2 (received 13:05): one status row, ADV counts wrapping 254..1,
    one mass-spec cycle at 13:05 (low inlet).
    """
    return [
        post_line(1, "2025-06-15T12:10:00"),
        status_line((15, 6, 25, 12, 0, 0), adv=(15, 6, 25, 11, 59, 0)),
        adv_line(10),
        adv_line(11),
        adv_line(15),
        rga_line(18, 100.0),
        rga_line(28, 200.0),
        rga_line(40, 50.0),
        turbo_line(speed=1500.0),
        temp_line(water_temperature=4.0),
        status_line((15, 6, 25, 12, 5, 0), adv=(15, 6, 25, 12, 4, 0), battery_voltage=12.3),
        status_line((15, 6, 25, 12, 6, 0), sound_speed=1400.0),
        adv_line(16, pressure=20.0),
        adv_line(17),
        rga_line(18, 110.0),
        rga_line(40, 55.0),
        "hello world",
        "S,1?0,garbled",
        post_line(2, "2025-06-15T13:05:00"),
        status_line((15, 6, 25, 13, 0, 0)),
        adv_line(254),
        adv_line(255),
        adv_line(0),
        adv_line(1),
        rga_line(18, 120.0),
        rga_line(40, 60.0),
        turbo_line(speed=1510.0),
        temp_line(water_temperature=4.2),
    ]
