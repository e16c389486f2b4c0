# practice_pulse/data_processing/models.py
# TYPED RECORDS FOR THE MONTHLY METRICS PIPELINE

"""
Pydantic models for every record that flows through the pipeline.

All models serialise with camelCase keys (`model_dump(by_alias=True)`) so the
output can be handed straight to the charting/export layer or persisted in a
share payload, and they accept either snake_case or camelCase on input.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from config import settings


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode='json')


# --- Parsed Inputs ---

class AppointmentRow(Record):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    date: datetime
    day_of_week: str
    staff_name: str
    slot_type: Optional[str] = None
    count: int


class TelephonyMetrics(Record):
    inbound_received: float = 0
    inbound_answered: float = 0
    missed_from_queue: float = 0
    # None when the report has no unique-missed-callers line.
    missed_from_queue_ex_repeat: Optional[float] = None
    missed_from_queue_ex_repeat_pct: float = 0
    answered_from_queue: float = 0
    abandoned_calls: float = 0
    callbacks_successful: float = 0
    avg_queue_time_answered: float = 0
    avg_queue_time_missed: float = 0
    avg_inbound_talk_time: float = 0


class OnlineRequestRecord(Record):
    month: str
    type: Optional[str] = None
    outcome: str = ""
    access: Optional[str] = None
    sex: Optional[str] = None
    age: Optional[int] = None
    date: datetime
    completed_at: Optional[datetime] = None
    outcome_recorded_at: Optional[datetime] = None

    @property
    def is_offered_or_booked(self) -> bool:
        lowered = self.outcome.lower()
        return any(marker in lowered for marker in settings.ONLINE_BOOKED_OUTCOME_MARKERS)


# --- Month-Keyed Accumulators ---

class MonthBucket(Record):
    month: str
    first_of_month: datetime
    working_days: int = 0
    total_appts: float = 0
    gp_appts: float = 0
    staff_appts: float = 0
    online_total: int = 0
    online_clinical: int = 0
    online_clinical_no_appt: int = 0
    telephony: Optional[TelephonyMetrics] = None
    # Month-level DNA/unused estimates, left fractional until enrichment rounds them.
    est_dna: float = 0
    est_gp_dna: float = 0
    est_unused: float = 0
    est_gp_unused: float = 0


class StaffMonthRecord(Record):
    month: str
    name: str
    is_gp: bool
    appts: float = 0
    dna: float = 0
    unused: float = 0


class SlotMonthRecord(Record):
    month: str
    name: str
    has_gp_activity: bool = False
    appts: float = 0
    dna: float = 0
    unused: float = 0


class CombinedMonthRecord(Record):
    month: str
    name: str
    slot: str
    is_gp: bool
    appts: float = 0
    dna: float = 0
    unused: float = 0


class AggregationResult(Record):
    """Fresh, chronologically ordered collections from one aggregation run."""
    months: List[MonthBucket] = Field(default_factory=list)
    staff: List[StaffMonthRecord] = Field(default_factory=list)
    slots: List[SlotMonthRecord] = Field(default_factory=list)
    combined: List[CombinedMonthRecord] = Field(default_factory=list)
    online_records: List[OnlineRequestRecord] = Field(default_factory=list)
    allocation_policy: str = "even_split"

    @property
    def month_keys(self) -> List[str]:
        return [m.month for m in self.months]


class OnlineRequestSummary(Record):
    total: int = 0
    type_breakdown: Dict[str, int] = Field(default_factory=lambda: {'Clinical': 0, 'Admin': 0})
    access_method: Dict[str, int] = Field(default_factory=dict)
    sex_split: Dict[str, int] = Field(default_factory=dict)
    outcomes: Dict[str, int] = Field(default_factory=dict)
    total_offered_or_booked: int = 0
    total_resolved: int = 0
    average_age: Optional[float] = None
    avg_clinical_outcome_hours: Optional[float] = None
    avg_admin_outcome_hours: Optional[float] = None


class AggregatedRecord(Record):
    """A staff/slot/combined record collapsed over the selected months."""
    name: str
    slot: Optional[str] = None
    is_gp: bool = False
    has_gp_activity: bool = False
    appts: float = 0
    dna: float = 0
    unused: float = 0


# --- Derived Outputs ---

class EnrichedMonth(Record):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    month: str
    working_days: int
    total_appts: float
    gp_appts: float
    staff_appts: float = 0
    est_dna: int = 0
    est_gp_dna: int = 0
    est_unused: int = 0
    est_gp_unused: int = 0

    conversion_ratio: Optional[float] = None
    gp_conversion_ratio: Optional[float] = None
    demand_conversion_ratio: Optional[float] = None
    utilization: Optional[float] = None
    gp_utilization: Optional[float] = None
    gp_appt_per_day_pct: Optional[float] = None
    all_appt_per_day_pct: Optional[float] = None
    gp_unused_pct: Optional[float] = None
    all_unused_pct: Optional[float] = None
    dna_pct: Optional[float] = None
    gp_dna_pct: Optional[float] = None
    gp_appts_per_1000: Optional[float] = None
    total_appts_per_1000: Optional[float] = None

    online_total: int = 0
    online_clinical_no_appt: int = 0
    online_requests_per_1000: Optional[float] = None
    gp_triage_capacity_per_day_pct: Optional[float] = None

    has_telephony: bool = False
    inbound_received: Optional[float] = None
    inbound_answered: Optional[float] = None
    missed_from_queue: Optional[float] = None
    missed_from_queue_ex_repeat: Optional[float] = None
    missed_from_queue_ex_repeat_pct: Optional[float] = None
    answered_from_queue: Optional[float] = None
    abandoned_calls: Optional[float] = None
    callbacks_successful: Optional[float] = None
    avg_queue_time_answered: Optional[float] = None
    avg_queue_time_missed: Optional[float] = None
    avg_inbound_talk_time: Optional[float] = None
    calls_per_1000: Optional[float] = None
    missed_calls_per_1000: Optional[float] = None
    capitation_calling_per_day: Optional[float] = None
    gp_booking_ratio: Optional[float] = None
    extra_slots_per_day: Optional[float] = None


class ForecastTrack(Record):
    actual: List[Optional[float]]
    projected: List[Optional[float]]


class ForecastSeries(Record):
    has_data: bool = True
    labels: List[str]
    appts: ForecastTrack
    calls: ForecastTrack


class InsufficientForecast(Record):
    has_data: bool = False
    count: int


class ForecastPoint(Record):
    period_offset: int
    value: float
    confidence: float


class ForecastResult(Record):
    forecasts: List[ForecastPoint] = Field(default_factory=list)
    trend: str
    monthly_change: float = 0
    r2: float = 0


# --- Follow-up Inputs ---

class FollowUpAppointment(Record):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    clinician: str
    date: datetime
    patient_id: str
    is_doctor: bool


class FollowUpDataset(Record):
    appointments: List[FollowUpAppointment] = Field(default_factory=list)
    clinicians: List[str] = Field(default_factory=list)
    doctors: List[str] = Field(default_factory=list)
    org_name: str = ""
    date_range_start: Optional[datetime] = None
    date_range_end: Optional[datetime] = None

    @property
    def total_appointments(self) -> int:
        return len(self.appointments)

    @property
    def total_patients(self) -> int:
        return len({a.patient_id for a in self.appointments})
