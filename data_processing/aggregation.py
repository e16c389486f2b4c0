# practice_pulse/data_processing/aggregation.py
# MONTHLY AGGREGATOR - MONTH / STAFF / SLOT / COMBINED TOTALS

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from config import AllocationPolicy, UnmatchedPolicy, settings
from .allocation import allocate_rows, allocation_residual, estimate_month_totals
from .errors import NoValidDataError
from .helpers import is_gp, month_key, parse_counts, parse_dates, sort_month_keys
from .loaders import RowsInput, normalize_appointment_rows, to_frame
from .models import (
    AggregatedRecord, AggregationResult, CombinedMonthRecord, MonthBucket, OnlineRequestRecord,
    OnlineRequestSummary, SlotMonthRecord, StaffMonthRecord,
)
from .telephony import detect_report_month, extract_telephony_metrics

logger = logging.getLogger(__name__)


def _source_rows(frame: pd.DataFrame, amount_col: str, total_col: Optional[str] = None) -> pd.DataFrame:
    """Normalises a DNA or unused-slot upload into staff_name/slot_type/amount/booked/date rows."""
    if frame.empty or 'Staff' not in frame.columns:
        return pd.DataFrame(columns=['staff_name', 'slot_type', 'amount', 'booked', 'date'])
    amount = parse_counts(frame[amount_col].fillna('')).astype(float)
    booked = pd.Series(0.0, index=frame.index)
    if total_col and total_col in frame.columns:
        booked = (parse_counts(frame[total_col].fillna('')) - amount).clip(lower=0).astype(float)
    rows = pd.DataFrame({
        'staff_name': frame['Staff'],
        'slot_type': frame['Slot Type'] if 'Slot Type' in frame.columns else None,
        'amount': amount,
        'booked': booked,
        'date': parse_dates(frame['Date']) if 'Date' in frame.columns else pd.NaT,
    })
    blank_staff = rows['staff_name'].fillna('').astype(str).eq('')
    if blank_staff.any():
        logger.info(f"Skipped {int(blank_staff.sum())} '{amount_col}' rows without a staff name.")
    return rows[~blank_staff].reset_index(drop=True)


def _has_slot(value) -> bool:
    return isinstance(value, str) and value != ''


class MonthlyAggregator:
    """
    Folds one processing run's uploads into the four month-keyed collections.

    The `add_*` calls only register input and may come in any order; `result()`
    always runs the appointments pass first so that the DNA, unused, online and
    telephony passes see every month and staff member it creates. Each
    aggregator owns its collections and is meant for a single run.

    Usage:
        result = (MonthlyAggregator(policy=AllocationPolicy.EVEN_SPLIT)
                  .add_appointments(appt_rows)
                  .add_dna(dna_rows)
                  .add_unused(unused_rows)
                  .result())
    """
    def __init__(
        self,
        policy: AllocationPolicy = AllocationPolicy.EVEN_SPLIT,
        unmatched_staff_policy: UnmatchedPolicy = UnmatchedPolicy.FIRST_MONTH,
        unmatched_month_policy: UnmatchedPolicy = UnmatchedPolicy.DROP,
    ):
        self.policy = AllocationPolicy(policy)
        self.unmatched_staff_policy = UnmatchedPolicy(unmatched_staff_policy)
        self.unmatched_month_policy = UnmatchedPolicy(unmatched_month_policy)
        self._appointments: Optional[pd.DataFrame] = None
        self._dna = pd.DataFrame()
        self._unused = pd.DataFrame()
        self._online = pd.DataFrame()
        self._telephony: List[str] = []

        self._months: Dict[str, MonthBucket] = {}
        self._staff: Dict[Tuple[str, str], StaffMonthRecord] = {}
        self._slots: Dict[Tuple[str, str], SlotMonthRecord] = {}
        self._combined: Dict[Tuple[str, str, str], CombinedMonthRecord] = {}
        self._online_records: List[OnlineRequestRecord] = []

    # --- Input registration (fluent) ---

    def add_appointments(self, rows: RowsInput) -> 'MonthlyAggregator':
        self._appointments = normalize_appointment_rows(rows)
        return self

    def add_dna(self, rows: RowsInput) -> 'MonthlyAggregator':
        self._dna = to_frame(rows)
        return self

    def add_unused(self, rows: RowsInput) -> 'MonthlyAggregator':
        self._unused = to_frame(rows)
        return self

    def add_online(self, rows: RowsInput) -> 'MonthlyAggregator':
        self._online = to_frame(rows)
        return self

    def add_telephony(self, texts: Sequence[str]) -> 'MonthlyAggregator':
        self._telephony = [t for t in (texts or []) if t]
        return self

    # --- Record access ---

    def _staff_record(self, month: str, name: str) -> StaffMonthRecord:
        key = (month, name)
        if key not in self._staff:
            self._staff[key] = StaffMonthRecord(month=month, name=name, is_gp=is_gp(name))
        return self._staff[key]

    def _slot_record(self, month: str, slot: str) -> SlotMonthRecord:
        key = (month, slot)
        if key not in self._slots:
            self._slots[key] = SlotMonthRecord(month=month, name=slot)
        return self._slots[key]

    def _combined_record(self, month: str, name: str, slot: str) -> CombinedMonthRecord:
        key = (month, name, slot)
        if key not in self._combined:
            self._combined[key] = CombinedMonthRecord(month=month, name=name, slot=slot, is_gp=is_gp(name))
        return self._combined[key]

    @property
    def month_order(self) -> List[str]:
        return sort_month_keys(self._months)

    # --- Passes ---

    def _appointments_pass(self) -> None:
        df = self._appointments if self._appointments is not None else normalize_appointment_rows(None)
        if df.empty:
            raise NoValidDataError()

        df = df.assign(month=df['date'].map(month_key), is_gp=df['staff_name'].map(is_gp).astype(bool))
        weekday = ~df['day_of_week'].fillna('').astype(str).isin(settings.WEEKEND_DAY_NAMES)

        for month, group in df.groupby('month', sort=False):
            first = group['date'].min()
            self._months[month] = MonthBucket(
                month=month,
                first_of_month=pd.Timestamp(year=first.year, month=first.month, day=1),
                working_days=int(group.loc[weekday[group.index], 'date'].nunique()),
                total_appts=float(group['count'].sum()),
                gp_appts=float(group.loc[group['is_gp'], 'count'].sum()),
                staff_appts=float(group.loc[~group['is_gp'], 'count'].sum()),
            )

        for (month, name), count in df.groupby(['month', 'staff_name'])['count'].sum().items():
            self._staff_record(month, name).appts += float(count)

        slotted = df[df['slot_type'].map(_has_slot)]
        for (month, slot), group in slotted.groupby(['month', 'slot_type']):
            record = self._slot_record(month, slot)
            record.appts += float(group['count'].sum())
            record.has_gp_activity = record.has_gp_activity or bool(group['is_gp'].any())
        for (month, name, slot), count in slotted.groupby(['month', 'staff_name', 'slot_type'])['count'].sum().items():
            self._combined_record(month, name, slot).appts += float(count)

        logger.info(f"Appointments pass: {len(df)} entries across {len(self._months)} months.")

    def _staff_months_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [{'month': r.month, 'name': r.name, 'appts': r.appts} for r in self._staff.values()],
            columns=['month', 'name', 'appts']
        )

    def _month_volumes_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [{'month': m.month, 'total_appts': m.total_appts, 'gp_appts': m.gp_appts} for m in self._months.values()],
            columns=['month', 'total_appts', 'gp_appts']
        )

    def _allocation_pass(self, frame: pd.DataFrame, field: str, amount_col: str, total_col: Optional[str] = None) -> None:
        rows = _source_rows(frame, amount_col, total_col)
        if rows.empty:
            return
        allocated = allocate_rows(
            rows, self._staff_months_frame(), self.month_order, self.policy,
            self.unmatched_staff_policy, self.unmatched_month_policy,
        )

        for row in allocated.itertuples(index=False):
            staff = self._staff_record(row.month, row.staff_name)
            setattr(staff, field, getattr(staff, field) + row.amount)
            if _has_slot(row.slot_type):
                slot = self._slot_record(row.month, row.slot_type)
                setattr(slot, field, getattr(slot, field) + row.amount)
                slot.appts += row.booked
                slot.has_gp_activity = slot.has_gp_activity or staff.is_gp
                combined = self._combined_record(row.month, row.staff_name, row.slot_type)
                setattr(combined, field, getattr(combined, field) + row.amount)
                combined.appts += row.booked

        estimates = estimate_month_totals(allocated, self._month_volumes_frame(), self.policy)
        for month, values in estimates.items():
            bucket = self._months[month]
            setattr(bucket, f"est_{field}", values['total'])
            setattr(bucket, f"est_gp_{field}", values['gp'])
        residual = allocation_residual(rows, allocated)
        if residual:
            logger.warning(f"{field.upper()} pass ({self.policy.value}): {residual:g} of {rows['amount'].sum():g} dropped by the unmatched policies.")
        else:
            logger.info(f"{field.upper()} pass ({self.policy.value}): allocated {rows['amount'].sum():g}.")

    def _target_month(self, month: Optional[str], what: str) -> Optional[str]:
        if month in self._months:
            return month
        if self.unmatched_month_policy == UnmatchedPolicy.FIRST_MONTH and self._months:
            logger.debug(f"{what} for {month} attributed to first month.")
            return self.month_order[0]
        logger.debug(f"{what} for {month} dropped: month not in appointment data.")
        return None

    def _online_pass(self) -> None:
        df = self._online
        if df.empty:
            return
        start_col = 'Submission started' if 'Submission started' in df.columns else 'Submitted'
        if start_col not in df.columns:
            logger.warning("Online requests upload has no submission date column; skipping.")
            return
        submitted = parse_dates(df[start_col])
        completed = parse_dates(df['Submission completed']) if 'Submission completed' in df.columns else pd.Series(pd.NaT, index=df.index)
        recorded = parse_dates(df['Outcome recorded']) if 'Outcome recorded' in df.columns else pd.Series(pd.NaT, index=df.index)
        ages = pd.to_numeric(df['Age'], errors='coerce') if 'Age' in df.columns else pd.Series(np.nan, index=df.index)

        skipped = 0
        for idx, row in df.iterrows():
            if pd.isna(submitted[idx]):
                skipped += 1
                continue
            month = self._target_month(month_key(submitted[idx]), "Online request")
            if month is None:
                skipped += 1
                continue
            record = OnlineRequestRecord(
                month=month,
                type=row.get('Type') or None,
                outcome=row.get('Outcome') or '',
                access=row.get('Access method') or row.get('Access Method') or None,
                sex=row.get('Sex') or None,
                age=None if pd.isna(ages[idx]) else int(ages[idx]),
                date=submitted[idx].to_pydatetime(),
                completed_at=None if pd.isna(completed[idx]) else completed[idx].to_pydatetime(),
                outcome_recorded_at=None if pd.isna(recorded[idx]) else recorded[idx].to_pydatetime(),
            )
            bucket = self._months[month]
            bucket.online_total += 1
            if record.type == 'Clinical':
                bucket.online_clinical += 1
                if not record.is_offered_or_booked:
                    bucket.online_clinical_no_appt += 1
            self._online_records.append(record)
        if skipped:
            logger.info(f"Online pass: skipped {skipped} of {len(df)} rows (no usable date or unmatched month).")

    def _telephony_pass(self) -> None:
        for text in self._telephony:
            report_month = detect_report_month(text)
            if report_month is None:
                logger.warning("Telephony report has no recognisable '<Month> 20YY' heading; skipping.")
                continue
            month = self._target_month(report_month, "Telephony report")
            if month is not None:
                self._months[month].telephony = extract_telephony_metrics(text)

    def result(self) -> AggregationResult:
        self._months.clear(); self._staff.clear(); self._slots.clear(); self._combined.clear()
        self._online_records = []

        self._appointments_pass()
        self._allocation_pass(self._dna, 'dna', 'Appointment Count')
        self._allocation_pass(self._unused, 'unused', 'Unused Slots', 'Total Slots')
        self._online_pass()
        self._telephony_pass()

        order = {m: i for i, m in enumerate(self.month_order)}
        by_month = lambda r: order.get(r.month, -1)
        return AggregationResult(
            months=[self._months[m] for m in self.month_order],
            staff=sorted(self._staff.values(), key=by_month),
            slots=sorted(self._slots.values(), key=by_month),
            combined=sorted(self._combined.values(), key=by_month),
            online_records=self._online_records,
            allocation_policy=self.policy.value,
        )


# --- Month-Filtered Views ---

def aggregate_records(records: Sequence, month: str = 'All') -> List[AggregatedRecord]:
    """
    Collapses month-keyed staff/slot/combined records into one record per name
    (and slot), optionally restricted to a single month, busiest first.
    """
    rows = [r.model_dump() for r in records if month == 'All' or r.month == month]
    if not rows:
        return []
    df = pd.DataFrame(rows)
    for col, default in (('slot', None), ('is_gp', False), ('has_gp_activity', False)):
        if col not in df.columns:
            df[col] = default
    df['slot_key'] = df['slot'].fillna('')
    grouped = df.groupby(['name', 'slot_key'], sort=False).agg(
        slot=('slot', 'first'), is_gp=('is_gp', 'first'), has_gp_activity=('has_gp_activity', 'any'),
        appts=('appts', 'sum'), dna=('dna', 'sum'), unused=('unused', 'sum'),
    ).reset_index()
    grouped = grouped.sort_values('appts', ascending=False, kind='stable')
    return [
        AggregatedRecord(
            name=r.name, slot=r.slot if _has_slot(r.slot) else None, is_gp=bool(r.is_gp),
            has_gp_activity=bool(r.has_gp_activity), appts=float(r.appts), dna=float(r.dna), unused=float(r.unused),
        )
        for r in grouped.itertuples(index=False)
    ]


def summarize_online_requests(records: Sequence[OnlineRequestRecord], month: str = 'All') -> Optional[OnlineRequestSummary]:
    """Breakdowns of online consultation requests for one month or all months; None when there are none."""
    selected = [r for r in records if month == 'All' or r.month == month]
    if not selected:
        return None
    df = pd.DataFrame([r.model_dump() for r in selected])
    booked = pd.Series([r.is_offered_or_booked for r in selected], index=df.index)

    def counts(col: str) -> Dict[str, int]:
        values = df[col].dropna()
        values = values[values.astype(str) != '']
        return {str(k): int(v) for k, v in values.value_counts(sort=False).items()}

    summary = OnlineRequestSummary(
        total=len(df),
        access_method=counts('access'),
        sex_split=counts('sex'),
        outcomes=counts('outcome'),
        total_offered_or_booked=int(booked.sum()),
        total_resolved=int((~booked).sum()),
    )
    summary.type_breakdown.update(counts('type'))

    ages = df['age'].dropna()
    summary.average_age = float(ages.mean()) if not ages.empty else None

    hours = (pd.to_datetime(df['outcome_recorded_at']) - pd.to_datetime(df['completed_at'])).dt.total_seconds() / 3600
    valid = hours.notna() & (hours >= 0) & (hours < 1000)
    clinical = df['type'] == 'Clinical'
    if (valid & clinical).any():
        summary.avg_clinical_outcome_hours = float(hours[valid & clinical].mean())
    if (valid & ~clinical).any():
        summary.avg_admin_outcome_hours = float(hours[valid & ~clinical].mean())
    return summary
