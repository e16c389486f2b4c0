# practice_pulse/analytics/metrics.py
# METRIC CALCULATOR - PURE DEMAND & CAPACITY KPI FUNCTIONS

"""
One function per KPI. Every function takes already-aggregated numbers and
returns a float, or None when a denominator is zero or unset (callers render
None as "N/A"). No function raises on bad input or returns NaN/inf.
"""

import logging
import math
from typing import Any, Dict, Mapping, Optional

from config import settings

logger = logging.getLogger(__name__)

Number = Optional[float]

WORKING_DAYS_IN_MONTH = {
    'January': 22, 'February': 20, 'March': 21, 'April': 21, 'May': 21, 'June': 21,
    'July': 23, 'August': 21, 'September': 21, 'October': 22, 'November': 21, 'December': 20,
}

DEMAND_INDEX_WEIGHTS = {'gp_appointments': 0.4, 'other_appointments': 0.15, 'telephony_calls': 0.25, 'online_submissions': 0.2}


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def safe_divide(numerator: Number, denominator: Number) -> Number:
    """numerator / denominator, or None when either is missing or the denominator is 0."""
    if _is_missing(numerator) or _is_missing(denominator) or denominator == 0:
        return None
    result = numerator / denominator
    return result if math.isfinite(result) else None


def percentage(part: Number, whole: Number) -> Number:
    ratio = safe_divide(part, whole)
    return None if ratio is None else ratio * 100


def per_1000(value: Number, population: Number) -> Number:
    ratio = safe_divide(value, population)
    return None if ratio is None else ratio * 1000


def working_days_for_month(month_name: Optional[str]) -> int:
    """Approximate Monday-Friday days for a 'November 2025' style label (21 if unknown)."""
    if not month_name:
        return settings.WORKFORCE.default_working_days_per_month
    return WORKING_DAYS_IN_MONTH.get(month_name.split(' ')[0], settings.WORKFORCE.default_working_days_per_month)


# --- Access ---

def calculate_appt_per_day_pct(appts: Number, population: Number, working_days: Number) -> Number:
    """appts / (population x working days) x 100: share of the list seen per working day."""
    if not population or not working_days:
        return None
    return percentage(appts or 0, population * working_days)


def calculate_gp_appt_per_day_pct(gp_appts: Number, population: Number, working_days: Number) -> Number:
    return calculate_appt_per_day_pct(gp_appts, population, working_days)


def calculate_all_appt_per_day_pct(total_appts: Number, population: Number, working_days: Number) -> Number:
    return calculate_appt_per_day_pct(total_appts, population, working_days)


def calculate_gp_triage_capacity_per_day_pct(
    gp_appts: Number, online_clinical_no_appt: Number, working_days: Number, population: Number
) -> Number:
    """
    GP appointments plus clinical online requests resolved without an
    appointment, as a share of the list per working day.
    """
    return calculate_appt_per_day_pct((gp_appts or 0) + (online_clinical_no_appt or 0), population, working_days)


def calculate_gp_appt_or_oc_per_day_pct(gp_appts: Number, oc_submissions: Number, population: Number, working_days: Number) -> Number:
    return calculate_appt_per_day_pct((gp_appts or 0) + (oc_submissions or 0), population, working_days)


# --- Capacity ---

def calculate_utilization(appts: Number, est_unused: Number) -> Number:
    """appts / (appts + unused) x 100."""
    return percentage(appts, (appts or 0) + (est_unused or 0))


def calculate_unused_pct(appts: Number, est_unused: Number) -> Number:
    return percentage(est_unused or 0, (appts or 0) + (est_unused or 0))


def calculate_dna_rate(dna: Number, total_appts: Number) -> Number:
    """dna / total x 100; None exactly when total is 0 or missing."""
    if not total_appts:
        return None
    return (dna or 0) / total_appts * 100


# --- Telephony & Demand ---

def calculate_conversion_ratio(appts: Number, inbound_answered: Number) -> Number:
    return safe_divide(appts, inbound_answered)


def calculate_demand_conversion_ratio(appts: Number, inbound_calls: Number, medical_online_submissions: Number) -> Number:
    """Appointments per unit of multi-channel demand (calls plus medical online requests)."""
    return safe_divide(appts, (inbound_calls or 0) + (medical_online_submissions or 0))


def calculate_gp_booking_ratio(gp_appts: Number, answered_calls: Number) -> Number:
    return safe_divide(gp_appts, answered_calls)


def calculate_extra_slots_per_day(
    gp_appts: Number,
    answered_calls: Number,
    missed_calls_ex_repeat: Number,
    est_gp_unused: Number,
    est_gp_dna: Number,
    working_days: Number,
) -> Number:
    """
    Hidden GP demand (unique missed callers who would have converted at the
    month's GP booking ratio) minus wasted GP capacity (unused + DNA), spread
    over working days. Negative values mean surplus capacity.
    """
    booking_ratio = calculate_gp_booking_ratio(gp_appts, answered_calls)
    if booking_ratio is None or _is_missing(missed_calls_ex_repeat):
        return None
    shortfall = booking_ratio * missed_calls_ex_repeat - ((est_gp_unused or 0) + (est_gp_dna or 0))
    return safe_divide(shortfall, working_days)


def calculate_capitation_calling_per_day(inbound_answered: Number, population: Number, working_days: Number) -> Number:
    """Answered calls as a share of the list, per working day."""
    return calculate_appt_per_day_pct(inbound_answered, population, working_days) if inbound_answered else None


def calculate_online_requests_per_1000(online_total: Number, population: Number, weeks_per_month: Optional[float] = None) -> Number:
    """Online requests per 1000 patients per week."""
    weekly_divisor = weeks_per_month or settings.ANALYTICS.online_weeks_per_month
    rate = per_1000(online_total or 0, population)
    return None if rate is None else rate / weekly_divisor


def calculate_mode_share_pct(mode_count: Number, total_appts: Number) -> Number:
    """Share of appointments delivered by one mode (face-to-face, telephone, video, home visit)."""
    return percentage(mode_count or 0, total_appts)


def calculate_combined_demand_index(
    metrics: Mapping[str, Any],
    national_means: Optional[Mapping[str, float]] = None,
    weights: Optional[Mapping[str, float]] = None,
) -> float:
    """
    Weighted demand index where 100 means national-average demand. Each
    component is normalised to its national mean; telephony and online
    components only count (and only carry weight) when that source is present.
    """
    w = dict(weights or DEMAND_INDEX_WEIGHTS)
    means = national_means or {}

    def normalise(value: Number, mean: Number) -> float:
        mean = mean or 100
        return (value or 0) / mean * 100

    components = {
        'gp_appointments': normalise(metrics.get('gp_appts_per_1000'), means.get('gp_appts_per_1000')),
        'other_appointments': normalise(metrics.get('other_appts_per_1000'), means.get('other_appts_per_1000')),
        'telephony_calls': normalise(metrics.get('calls_per_1000'), means.get('calls_per_1000')),
        'online_submissions': normalise(metrics.get('oc_submissions'), means.get('oc_submissions')),
    }
    active = ['gp_appointments', 'other_appointments']
    if metrics.get('has_telephony_data'):
        active.append('telephony_calls')
    if metrics.get('has_oc_data'):
        active.append('online_submissions')

    total_weight = sum(w[k] for k in active)
    if total_weight <= 0:
        return 100.0
    return sum(components[k] * w[k] for k in active) / total_weight


def calculate_practice_metrics(
    appointments: Mapping[str, Any],
    telephony: Optional[Mapping[str, Any]],
    online: Optional[Mapping[str, Any]],
    population: Number,
    month: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Single-practice snapshot for national comparison, combining appointment,
    telephony and online consultation summaries for one reporting month.
    """
    days = working_days_for_month(month)
    telephony, online = telephony or {}, online or {}
    gp_appts = appointments.get('gp_appointments') or 0
    other_appts = appointments.get('other_appointments') or 0
    total_appts = appointments.get('total_appointments') or (gp_appts + other_appts)
    inbound_calls = telephony.get('inbound_calls') or 0
    missed_calls = telephony.get('missed') or 0
    oc_submissions = online.get('submissions') or 0
    oc_clinical = online.get('clinical_submissions') or 0
    modes = appointments.get('modes') or {}

    metrics = {
        'gp_appt_per_day_pct': calculate_appt_per_day_pct(gp_appts, population, days),
        'other_appt_per_day_pct': calculate_appt_per_day_pct(other_appts, population, days),
        'total_appt_per_day_pct': calculate_appt_per_day_pct(total_appts, population, days),
        'gp_appt_or_oc_per_day_pct': calculate_gp_appt_or_oc_per_day_pct(gp_appts, oc_clinical, population, days),
        'gp_appts_per_1000': per_1000(gp_appts, population),
        'other_appts_per_1000': per_1000(other_appts, population),
        'total_appts_per_1000': per_1000(total_appts, population),
        'calls_per_1000': per_1000(inbound_calls, population),
        'missed_calls_per_1000': per_1000(missed_calls, population),
        'gp_appts_per_call': calculate_demand_conversion_ratio(gp_appts, inbound_calls, oc_clinical),
        'total_appts_per_call': calculate_demand_conversion_ratio(total_appts, inbound_calls, oc_clinical),
        'dna_rate': calculate_dna_rate(appointments.get('dna'), total_appts),
        'oc_submissions': oc_submissions,
        'has_telephony_data': inbound_calls > 0,
        'has_oc_data': oc_submissions > 0,
        'population': population,
    }
    for mode in ('face_to_face', 'telephone', 'video', 'home_visit'):
        metrics[f'{mode}_pct'] = calculate_mode_share_pct(modes.get(mode), total_appts) if total_appts else None
    return metrics
