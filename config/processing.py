# practice_pulse/config/processing.py
# PER-RUN PROCESSING OPTIONS

"""
Options chosen by the user for a single dashboard processing run.

Unlike `settings`, which is process-wide and read from the environment, a
`ProcessingConfig` travels with each run and is persisted inside share
payloads, so it serialises with the camelCase keys the dashboard front end
expects.
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .settings import settings


class AllocationPolicy(str, Enum):
    """How undated DNA / unused-slot totals are spread across months."""
    EVEN_SPLIT = "even_split"
    VOLUME_WEIGHTED = "volume_weighted"
    DATED = "dated"


class UnmatchedPolicy(str, Enum):
    """What to do with rows whose staff member or month has no appointment activity."""
    FIRST_MONTH = "first_month"
    DROP = "drop"


class ProcessingConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=False)

    population: Optional[float] = None
    use_telephony: bool = False
    use_online: bool = False
    surgery_name: Optional[str] = None
    ods_code: Optional[str] = None
    working_days_per_month: int = Field(default_factory=lambda: settings.WORKFORCE.default_working_days_per_month)
    appointments_per_wte_per_day: Dict[str, float] = Field(default_factory=lambda: dict(settings.WORKFORCE.appointments_per_wte_per_day))
    # None lets the pipeline infer the policy from the DNA/unused upload shape.
    allocation_policy: Optional[AllocationPolicy] = None
    unmatched_staff_policy: UnmatchedPolicy = UnmatchedPolicy.FIRST_MONTH
    unmatched_month_policy: UnmatchedPolicy = UnmatchedPolicy.DROP

    @field_validator('population', mode='before')
    @classmethod
    def _coerce_population(cls, value):
        # Population arrives from a free-text input; blanks and zero mean "unset".
        if value in (None, ''):
            return None
        try:
            number = float(str(value).replace(',', ''))
        except ValueError:
            return None
        return number if number > 0 else None
