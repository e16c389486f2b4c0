# practice_pulse/analytics/followup.py
# FOLLOW-UP RATE ENGINE - RETURN VISITS WITHIN 7 / 14 / 28 DAYS

"""
Follow-up rates from a de-duplicated set of (clinician, date, patient)
appointments.

An anchor appointment is paired with the patient's next appointment on a
strictly later date (same-day appointments are one visit). The gap between the
two is bucketed into cumulative windows (7/14/28 days by default).

  * any-doctor:    anchors and targets are both doctor ('Dr ...') appointments.
  * same-GP:       the target must be with the same doctor as the anchor.
  * per-clinician: every appointment of each doctor is an anchor and the
                   return may be to any clinician.
  * monthly trend: anchors are bucketed by the month of the anchor visit.

`rates` divide by the number of pairs. `appointment_rates` divide by the number
of anchors instead, so an anchor with no later visit counts as "no follow-up".
A timeframe filter restricts the anchors only; return visits are always
searched in the full dataset.
"""

import logging
from typing import Dict, List, Literal, Optional, Sequence

import pandas as pd
from pydantic import Field

from config import settings
from data_processing.helpers import MONTH_ABBREVIATIONS
from data_processing.models import FollowUpDataset, Record

logger = logging.getLogger(__name__)

Timeframe = Literal['all', '3months', '4weeks']
ReturnTarget = Literal['any', 'doctor']

FRAME_COLUMNS = ['clinician', 'date', 'patient_id', 'is_doctor']


class FollowUpRates(Record):
    anchors: int = 0
    patients: int = 0
    pairs: int = 0
    bucket_counts: Dict[str, int] = Field(default_factory=dict)
    within: Dict[int, int] = Field(default_factory=dict)
    rates: Dict[int, Optional[float]] = Field(default_factory=dict)
    appointment_rates: Dict[int, Optional[float]] = Field(default_factory=dict)


class ClinicianFollowUp(FollowUpRates):
    clinician: str
    patients_with_revisit: int = 0


class MonthlyFollowUp(FollowUpRates):
    key: str
    label: str


class SameGPFollowUp(Record):
    overall: FollowUpRates
    doctor_breakdown: List[ClinicianFollowUp] = Field(default_factory=list)


class FollowUpReport(Record):
    timeframe: str
    any_doctor: FollowUpRates
    same_gp: SameGPFollowUp
    clinicians: List[ClinicianFollowUp] = Field(default_factory=list)
    monthly: List[MonthlyFollowUp] = Field(default_factory=list)


# --- Frame Helpers ---

def appointments_frame(dataset: FollowUpDataset) -> pd.DataFrame:
    if not dataset.appointments:
        return pd.DataFrame({
            'clinician': pd.Series(dtype=object), 'date': pd.Series(dtype='datetime64[ns]'),
            'patient_id': pd.Series(dtype=object), 'is_doctor': pd.Series(dtype=bool),
        })
    df = pd.DataFrame([a.model_dump() for a in dataset.appointments], columns=FRAME_COLUMNS)
    df['date'] = pd.to_datetime(df['date']).dt.normalize()
    df['is_doctor'] = df['is_doctor'].astype(bool)
    return df.drop_duplicates(subset=['clinician', 'date', 'patient_id']).sort_values('date', kind='stable').reset_index(drop=True)


def filter_by_timeframe(df: pd.DataFrame, timeframe: Timeframe = 'all') -> pd.DataFrame:
    """Keeps appointments on or after the cutoff measured back from the latest date."""
    if timeframe == 'all' or df.empty:
        return df
    latest = df['date'].max()
    if timeframe == '3months':
        cutoff = latest - pd.DateOffset(months=3)
    elif timeframe == '4weeks':
        cutoff = latest - pd.Timedelta(days=28)
    else:
        raise ValueError(f"Unknown follow-up timeframe '{timeframe}'")
    return df[df['date'] >= cutoff]


def next_visits(anchors: pd.DataFrame, targets: pd.DataFrame, same_clinician: bool = False) -> pd.DataFrame:
    """
    Attaches each anchor's next visit (strictly later date) from `targets`:
    adds `next_clinician`, `next_date` and `gap_days` (NaN when there is none).
    """
    by = ['patient_id', 'clinician'] if same_clinician else ['patient_id']
    if anchors.empty:
        return anchors.assign(next_clinician=pd.Series(dtype=object), next_date=pd.Series(dtype='datetime64[ns]'),
                              gap_days=pd.Series(dtype=float))

    right = targets.assign(next_clinician=targets['clinician'], next_date=targets['date'])
    right = right[by + ['date', 'next_clinician', 'next_date']].drop_duplicates(subset=by + ['date'])
    left = anchors.reset_index(drop=True)
    left = left.assign(_order=range(len(left)))
    merged = pd.merge_asof(
        left.sort_values('date'), right.sort_values('date'),
        on='date', by=by, direction='forward', allow_exact_matches=False,
    )
    merged['gap_days'] = (merged['next_date'] - merged['date']).dt.days
    return merged.sort_values('_order').drop(columns='_order').reset_index(drop=True)


def _bucket_labels(windows: Sequence[int]) -> List[str]:
    labels, lower = [], 0
    for w in windows:
        labels.append(f"within_{w}" if lower == 0 else f"{lower + 1}_to_{w}")
        lower = w
    return labels + [f"over_{windows[-1]}"]


def summarise_gaps(paired: pd.DataFrame, windows: Optional[Sequence[int]] = None) -> Dict:
    """Counts and rates for a frame produced by `next_visits`."""
    windows = tuple(windows or settings.ANALYTICS.followup_windows_days)
    gaps = paired['gap_days'].dropna()
    anchors, pairs = len(paired), len(gaps)

    edges = [0] + list(windows) + [float('inf')]
    bucket_counts = {
        label: int(((gaps > lo) & (gaps <= hi)).sum())
        for label, lo, hi in zip(_bucket_labels(windows), edges[:-1], edges[1:])
    }
    within = {w: int((gaps <= w).sum()) for w in windows}
    return dict(
        anchors=anchors,
        patients=int(paired['patient_id'].nunique()) if anchors else 0,
        pairs=pairs,
        bucket_counts=bucket_counts,
        within=within,
        rates={w: (c / pairs * 100 if pairs else None) for w, c in within.items()},
        appointment_rates={w: (c / anchors * 100 if anchors else None) for w, c in within.items()},
    )


def _doctor_frames(dataset: FollowUpDataset, timeframe: Timeframe):
    df = appointments_frame(dataset)
    doctors = df[df['is_doctor']]
    return df, doctors, filter_by_timeframe(doctors, timeframe)


# --- Public Calculations ---

def calculate_overall_followup_rates(dataset: FollowUpDataset, timeframe: Timeframe = 'all') -> FollowUpRates:
    """Return visits from any doctor appointment to any doctor."""
    _, doctors, sources = _doctor_frames(dataset, timeframe)
    return FollowUpRates(**summarise_gaps(next_visits(sources, doctors)))


def calculate_same_gp_followup_rates(dataset: FollowUpDataset, timeframe: Timeframe = 'all') -> SameGPFollowUp:
    """Return visits to the same doctor, overall and per doctor (busiest first)."""
    _, doctors, sources = _doctor_frames(dataset, timeframe)
    paired = next_visits(sources, doctors, same_clinician=True)

    breakdown = []
    for clinician, group in paired.groupby('clinician', sort=False):
        revisited = group.loc[group['gap_days'].notna(), 'patient_id'].nunique()
        breakdown.append(ClinicianFollowUp(clinician=clinician, patients_with_revisit=int(revisited), **summarise_gaps(group)))
    breakdown.sort(key=lambda c: c.anchors, reverse=True)
    return SameGPFollowUp(overall=FollowUpRates(**summarise_gaps(paired)), doctor_breakdown=breakdown)


def calculate_clinician_followup_rates(
    dataset: FollowUpDataset, timeframe: Timeframe = 'all', return_to: ReturnTarget = 'any'
) -> List[ClinicianFollowUp]:
    """
    For each doctor, the share of their appointments after which the patient
    came back within each window, to any clinician (or to any doctor).
    """
    df, doctors, sources = _doctor_frames(dataset, timeframe)
    paired = next_visits(sources, df if return_to == 'any' else doctors)

    results = []
    for clinician, group in paired.groupby('clinician', sort=False):
        revisited = group.loc[group['gap_days'].notna(), 'patient_id'].nunique()
        results.append(ClinicianFollowUp(clinician=clinician, patients_with_revisit=int(revisited), **summarise_gaps(group)))
    return sorted(results, key=lambda c: c.anchors, reverse=True)


def calculate_monthly_trends(dataset: FollowUpDataset) -> List[MonthlyFollowUp]:
    """Doctor follow-up rates bucketed by the month of the first appointment of each pair."""
    _, doctors, _ = _doctor_frames(dataset, 'all')
    paired = next_visits(doctors, doctors)
    if paired.empty:
        return []
    paired['key'] = paired['date'].dt.strftime('%Y-%m')

    trend = []
    for key, group in paired.groupby('key', sort=True):
        first = group['date'].iloc[0]
        label = f"{MONTH_ABBREVIATIONS[first.month - 1]} {first.year % 100:02d}"
        trend.append(MonthlyFollowUp(key=key, label=label, **summarise_gaps(group)))
    return trend


def analyze_followups(dataset: FollowUpDataset, timeframe: Timeframe = 'all') -> FollowUpReport:
    """Runs every follow-up calculation for one dataset and timeframe."""
    logger.info(f"Follow-up analysis: {dataset.total_appointments} appointments, "
                f"{dataset.total_patients} patients, timeframe '{timeframe}'.")
    return FollowUpReport(
        timeframe=timeframe,
        any_doctor=calculate_overall_followup_rates(dataset, timeframe),
        same_gp=calculate_same_gp_followup_rates(dataset, timeframe),
        clinicians=calculate_clinician_followup_rates(dataset, timeframe),
        monthly=calculate_monthly_trends(dataset),
    )
