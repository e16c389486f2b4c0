# practice_pulse/data_processing/allocation.py
# PROPORTIONAL ALLOCATION OF UNDATED DNA / UNUSED TOTALS

"""
DNA and unused-slot exports usually carry one total per staff member (and slot
type) for the whole reporting period, with no date. This module spreads those
totals over the months in which each staff member actually worked.

Three policies are supported, chosen explicitly by the caller:

  * EVEN_SPLIT       amount / number of months worked, per staff member.
  * VOLUME_WEIGHTED  amount weighted by the staff member's appointment volume
                     in each month.
  * DATED            the rows already carry a date and are bucketed directly.

The policy shapes the staff, slot and combined records. Month-level estimates
for undated uploads always follow each month's share of the practice's total
(or GP) appointment volume, so EVEN_SPLIT and VOLUME_WEIGHTED agree on them.

Allocations stay fractional. Rounding happens once, when month-level estimates
are presented (see `analytics.enrichment.enrich_months`).
"""

import logging
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from config import AllocationPolicy, UnmatchedPolicy
from .helpers import is_gp, month_key, parse_dates

logger = logging.getLogger(__name__)

SOURCE_COLUMNS = ['staff_name', 'slot_type', 'amount', 'booked', 'date']
ALLOCATED_COLUMNS = ['month', 'staff_name', 'slot_type', 'amount', 'booked']
ESTIMATE_KEYS = ('total', 'gp')


def infer_allocation_policy(*frames: Optional[pd.DataFrame]) -> AllocationPolicy:
    """
    Chooses DATED when any DNA/unused upload carries a parseable `Date` column,
    otherwise EVEN_SPLIT.
    """
    for frame in frames:
        if isinstance(frame, pd.DataFrame) and not frame.empty and 'Date' in frame.columns:
            if parse_dates(frame['Date']).notna().any():
                return AllocationPolicy.DATED
    return AllocationPolicy.EVEN_SPLIT


def split_evenly(amount: float, months: List[str]) -> Dict[str, float]:
    """Divides an amount equally across months; an empty month list yields nothing."""
    if not months:
        return {}
    share = amount / len(months)
    return {m: share for m in months}


def split_by_volume(amount: float, volumes: Dict[str, float]) -> Dict[str, float]:
    """Divides an amount in proportion to per-month volumes; zero total volume yields nothing."""
    total = sum(volumes.values())
    if total <= 0:
        return {}
    return {m: amount * v / total for m, v in volumes.items()}


def _empty_allocation() -> pd.DataFrame:
    return pd.DataFrame(columns=ALLOCATED_COLUMNS).astype({'amount': float, 'booked': float})


def _unmatched(rows: pd.DataFrame, month_order: List[str], policy: UnmatchedPolicy, reason: str) -> pd.DataFrame:
    if rows.empty:
        return _empty_allocation()
    if policy == UnmatchedPolicy.DROP or not month_order:
        logger.info(f"Dropped {len(rows)} rows ({reason}); total {rows['amount'].sum():g}.")
        return _empty_allocation()
    logger.info(f"Attributed {len(rows)} rows ({reason}) to first month {month_order[0]}.")
    return rows.assign(month=month_order[0])[ALLOCATED_COLUMNS]


def allocate_rows(
    rows: pd.DataFrame,
    staff_months: pd.DataFrame,
    month_order: List[str],
    policy: AllocationPolicy,
    unmatched_staff_policy: UnmatchedPolicy = UnmatchedPolicy.FIRST_MONTH,
    unmatched_month_policy: UnmatchedPolicy = UnmatchedPolicy.DROP,
) -> pd.DataFrame:
    """
    Distributes source rows (`staff_name`, `slot_type`, `amount`, `booked`,
    `date`) over months according to `policy`.

    `staff_months` holds one row per (month, name) with that staff member's
    appointment count, as produced by the appointments pass. Returns one row per
    (month, staff_name, slot_type) share. For every matched staff member the
    shares sum to the source amount.
    """
    if rows is None or rows.empty:
        return _empty_allocation()

    if policy == AllocationPolicy.DATED:
        dated = rows.assign(month=rows['date'].map(lambda d: month_key(d) if pd.notna(d) else None))
        undated = dated['month'].isna()
        known = dated['month'].isin(month_order) & ~undated
        return pd.concat(
            [dated.loc[known, ALLOCATED_COLUMNS],
             _unmatched(dated[~known & ~undated], month_order, unmatched_month_policy, 'month not in appointment data'),
             _unmatched(dated[undated], month_order, unmatched_month_policy, 'no usable date')],
            ignore_index=True
        )

    worked = staff_months.loc[staff_months['appts'] > 0, ['month', 'name', 'appts']]
    matched_mask = rows['staff_name'].isin(worked['name'])
    matched = rows[matched_mask].reset_index(drop=True).reset_index().rename(columns={'index': 'row_id'})
    merged = matched.merge(worked, left_on='staff_name', right_on='name', how='inner')

    if policy == AllocationPolicy.VOLUME_WEIGHTED:
        merged['share'] = merged['appts'] / merged.groupby('row_id')['appts'].transform('sum')
    else:
        merged['share'] = 1.0 / merged.groupby('row_id')['month'].transform('count')

    allocated = merged.assign(amount=merged['amount'] * merged['share'], booked=merged['booked'] * merged['share'])
    return pd.concat(
        [allocated[ALLOCATED_COLUMNS],
         _unmatched(rows[~matched_mask], month_order, unmatched_staff_policy, 'staff member with no appointment months')],
        ignore_index=True
    )


def estimate_month_totals(
    allocated: pd.DataFrame,
    month_volumes: pd.DataFrame,
    policy: AllocationPolicy,
) -> Dict[str, Dict[str, float]]:
    """
    Month-level totals (all staff and GP-only) for one kind of source data.

    Under DATED the allocations are summed per month. Undated uploads, whichever
    policy split them per staff member, give each month
    `allocated_total * month_appts / all_appts` (GP totals use GP allocations
    and GP appointment volume). `month_volumes` has columns month, total_appts,
    gp_appts.
    """
    estimates = {m: {key: 0.0 for key in ESTIMATE_KEYS} for m in month_volumes['month']}
    if allocated is None or allocated.empty:
        return estimates

    gp_alloc = allocated['staff_name'].map(is_gp).astype(bool)
    if policy != AllocationPolicy.DATED:
        global_total, global_gp = allocated['amount'].sum(), allocated.loc[gp_alloc, 'amount'].sum()
        all_appts, all_gp = month_volumes['total_appts'].sum(), month_volumes['gp_appts'].sum()
        for row in month_volumes.itertuples(index=False):
            estimates[row.month]['total'] = global_total * row.total_appts / all_appts if all_appts > 0 else 0.0
            estimates[row.month]['gp'] = global_gp * row.gp_appts / all_gp if all_gp > 0 else 0.0
        return estimates

    totals = allocated.groupby('month')['amount'].sum()
    gp_totals = allocated[gp_alloc].groupby('month')['amount'].sum()
    for month in estimates:
        estimates[month]['total'] = float(totals.get(month, 0.0))
        estimates[month]['gp'] = float(gp_totals.get(month, 0.0))
    return estimates


def allocation_residual(rows: pd.DataFrame, allocated: pd.DataFrame) -> float:
    """Source total minus allocated total; non-zero only when rows were dropped."""
    if rows is None or rows.empty:
        return 0.0
    return float(np.round(rows['amount'].sum() - allocated['amount'].sum(), 9))
