"""
Pydantic Schemas for Telemetry Rows
===================================
One model per record type. Payload fields are declared in wire order,
after the two position fields every row carries.
"""

from typing import List
from datetime import datetime, timezone
from pydantic import BaseModel, field_validator


# =============================================================================
# Base Models
# =============================================================================

class TelemetryRow(BaseModel):
    batch_id: int
    line_number: int

    @classmethod
    def payload_fields(cls) -> List[str]:
        """Field names in wire order, without the position fields."""
        return [name for name in cls.model_fields if name not in TelemetryRow.model_fields]


# =============================================================================
# Record Models
# =============================================================================

class PostTimeRow(TelemetryRow):
    send_id: int
    received_time: datetime

    @field_validator("received_time")
    @classmethod
    def to_naive_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class StatusRow(TelemetryRow):
    """Lander status: two onboard clocks plus housekeeping sensors."""
    lander_day: int
    lander_month: int
    lander_year: int
    lander_hour: int
    lander_minute: int
    lander_second: int
    adv_day: int
    adv_month: int
    adv_year: int
    adv_hour: int
    adv_minute: int
    adv_second: int
    battery_voltage: float
    heading: float
    pitch: float
    roll: float
    sound_speed: float
    temperature: float


class MassSpecRow(TelemetryRow):
    mass: int
    ion_current: float


class TurboRow(TelemetryRow):
    speed: float
    power: float
    temperature: float
    voltage: float


class TemperatureRow(TelemetryRow):
    water_temperature: float
    board_temperature: float


class AdvRow(TelemetryRow):
    """ADV sample; no clock, only a wrapping 8-bit sequence count."""
    count: int
    pressure: float
    analog1: float
    analog2: float
    vx: float
    vy: float
    vz: float
    amp1: float
    amp2: float
    amp3: float
    corr1: float
    corr2: float
    corr3: float
