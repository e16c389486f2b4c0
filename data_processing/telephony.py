# practice_pulse/data_processing/telephony.py
# TELEPHONY REPORT LABEL TABLE

"""
Extracts monthly call statistics from the plain text of a telephony PDF report.

The label set is a fixed contract with the PDF text extractor, so it lives in
one declarative table (`TELEPHONY_FIELDS`) rather than being spread across the
parsing code. A label that is absent from the report reads as 0, except the
unique missed callers count, which stays None so that demand estimates built
on it are reported as unknown.
"""

import logging
import re
from typing import Callable, Dict, NamedTuple, Optional, Pattern

import pandas as pd

from .helpers import MONTH_NAMES, month_key
from .models import TelephonyMetrics

logger = logging.getLogger(__name__)

_DURATION = r'(\d+m\s\d+s|\d+s)'
_REPORT_MONTH_PATTERN = re.compile(rf"({'|'.join(MONTH_NAMES)})\s(20\d{{2}})", re.IGNORECASE)


def coerce_count(raw: str) -> float:
    return float(raw.replace(',', ''))


def coerce_percent(raw: str) -> float:
    return float(raw)


def coerce_duration(raw: str) -> float:
    """'3m 12s' -> 192, '45s' -> 45."""
    minutes = re.search(r'(\d+)m', raw)
    seconds = re.search(r'(\d+)s', raw)
    return float((int(minutes.group(1)) if minutes else 0) * 60 + (int(seconds.group(1)) if seconds else 0))


class TelephonyField(NamedTuple):
    name: str
    pattern: Pattern
    coercion: Callable[[str], float]


def _field(name: str, regex: str, coercion: Callable[[str], float]) -> TelephonyField:
    return TelephonyField(name, re.compile(regex, re.IGNORECASE), coercion)


TELEPHONY_FIELDS = (
    _field('inbound_received', r'Inbound Received\s+([\d,]+)', coerce_count),
    _field('inbound_answered', r'Inbound Answered\s+([\d,]+)', coerce_count),
    _field('missed_from_queue', r'Missed From Queue\s+([\d,]+)', coerce_count),
    _field('missed_from_queue_ex_repeat', r'Missed From Queue\s+Excluding Repeat Callers\s+([\d,]+)', coerce_count),
    _field('missed_from_queue_ex_repeat_pct', r'Missed From Queue\s+Excluding Repeat Callers\s+[\d,]+\s+\(([\d.]+)%\)', coerce_percent),
    _field('answered_from_queue', r'Answered From Queue\s+[\d,]+\s+\(([\d.]+)%\)', coerce_percent),
    _field('abandoned_calls', r'Abandoned Calls\s+[\d,]+\s+\(([\d.]+)%\)', coerce_percent),
    _field('callbacks_successful', r'Callbacks Successful\s+([\d,]+)', coerce_count),
    _field('avg_queue_time_answered', rf'Average Queue Time\s+Answered\s+{_DURATION}', coerce_duration),
    _field('avg_queue_time_missed', rf'Average Queue Time\s+Missed\s+{_DURATION}', coerce_duration),
    _field('avg_inbound_talk_time', rf'Average Inbound Talk\s+Time\s+{_DURATION}', coerce_duration),
)


def extract_telephony_metrics(text: str) -> TelephonyMetrics:
    """Applies every entry of the label table to a report's text."""
    values: Dict[str, float] = {}
    for field in TELEPHONY_FIELDS:
        match = field.pattern.search(text or '')
        if not match:
            logger.debug(f"Telephony label '{field.name}' not found; left at its default.")
            continue
        try:
            values[field.name] = field.coercion(match.group(1))
        except ValueError:
            logger.debug(f"Could not coerce telephony value {match.group(1)!r} for '{field.name}'.")
    return TelephonyMetrics(**values)


def detect_report_month(text: str) -> Optional[str]:
    """Returns the month key of the first '<Month name> 20YY' in the report, e.g. 'Aug-25'."""
    match = _REPORT_MONTH_PATTERN.search(text or '')
    if not match:
        return None
    month_index = [m.lower() for m in MONTH_NAMES].index(match.group(1).lower()) + 1
    return month_key(pd.Timestamp(year=int(match.group(2)), month=month_index, day=1))
