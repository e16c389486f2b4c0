# practice_pulse/tests/test_aggregation.py
# MONTHLY AGGREGATOR & PROPORTIONAL ALLOCATOR TESTS

import pandas as pd
import pytest

from config import AllocationPolicy, UnmatchedPolicy
from data_processing import (
    MonthlyAggregator,
    NoValidDataError,
    aggregate_records,
    infer_allocation_policy,
    normalize_appointment_rows,
    sort_month_keys,
    summarize_online_requests,
)
from data_processing.allocation import allocate_rows, allocation_residual, split_by_volume, split_evenly
from data_processing.helpers import next_month_keys, parse_count, round_half_up

# Fixtures are sourced from conftest.py


def _buckets(result):
    return {m.month: m for m in result.months}


# --- Row Normalisation Tests ---
def test_pivot_rows_become_long_entries(appointments_df):
    """Every staff column becomes an entry; zero, blank and undated cells are dropped."""
    rows = normalize_appointment_rows(appointments_df)
    assert list(rows.columns) == ['date', 'day_of_week', 'staff_name', 'slot_type', 'count']
    assert set(rows['staff_name']) == {'Dr Smith', 'Nurse Jones'}
    assert rows['count'].sum() == 66
    assert rows['date'].is_monotonic_increasing


def test_long_format_rows_are_read():
    rows = normalize_appointment_rows([
        {'Date': '6 Jan 2025', 'Day': 'Mon', 'Staff': 'Dr Smith', 'Total Appointments': '1,200'},
        {'Date': '07/01/2025 08:30', 'Day': 'Tue', 'Staff': 'Nurse Jones', 'Total Appointments': '3'},
    ])
    assert rows['count'].tolist() == [1200, 3]


def test_parse_count_falls_back_to_zero():
    assert parse_count('12 appts') == 12
    assert parse_count('n/a') == 0
    assert parse_count(None) == 0


# --- Month Key Tests ---
def test_month_keys_sort_chronologically_across_years():
    assert sort_month_keys(["Jan-25", "Dec-24", "Feb-25"]) == ["Dec-24", "Jan-25", "Feb-25"]


def test_next_month_keys_roll_over_year():
    assert next_month_keys('Nov-24', 3) == ['Dec-24', 'Jan-25', 'Feb-25']


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(1.4999) == 1
    assert round_half_up(-2.5) == -3


# --- Appointments Pass Tests ---
def test_appointment_totals_are_conserved(appointments_rows):
    result = MonthlyAggregator().add_appointments(appointments_rows).result()
    assert result.month_keys == ['Dec-24', 'Jan-25', 'Feb-25']
    assert sum(m.total_appts for m in result.months) == 66

    buckets = _buckets(result)
    assert buckets['Dec-24'].total_appts == 19
    assert buckets['Dec-24'].gp_appts == 15
    assert buckets['Jan-25'].staff_appts == 8


def test_working_days_count_weekday_dates_with_activity(appointments_rows):
    buckets = _buckets(MonthlyAggregator().add_appointments(appointments_rows).result())
    assert buckets['Dec-24'].working_days == 2
    assert buckets['Jan-25'].working_days == 2  # Saturday excluded
    assert buckets['Feb-25'].working_days == 1


def test_no_parseable_dates_raises():
    aggregator = MonthlyAggregator().add_appointments([{'Date': 'garbage', 'Day': 'Mon', 'Dr X': '3'}])
    with pytest.raises(NoValidDataError):
        aggregator.result()


def test_each_result_call_builds_fresh_collections(appointments_rows, dna_rows):
    aggregator = MonthlyAggregator().add_appointments(appointments_rows).add_dna(dna_rows)
    first, second = aggregator.result(), aggregator.result()
    assert first.months is not second.months
    assert [m.est_dna for m in first.months] == [m.est_dna for m in second.months]


def test_slot_and_combined_records():
    result = MonthlyAggregator().add_appointments([
        {'Date': '06/01/2025', 'Day': 'Mon', 'Staff': 'Dr Smith', 'Slot Type': 'Triage', 'Total Appointments': '5'},
        {'Date': '07/01/2025', 'Day': 'Tue', 'Staff': 'Nurse Jones', 'Slot Type': 'Bloods', 'Total Appointments': '3'},
        {'Date': '08/01/2025', 'Day': 'Wed', 'Staff': 'Nurse Jones', 'Slot Type': 'Triage', 'Total Appointments': '2'},
    ]).result()

    slots = {s.name: s for s in result.slots}
    assert slots['Triage'].appts == 7
    assert slots['Triage'].has_gp_activity is True
    assert slots['Bloods'].has_gp_activity is False

    combined = {(c.name, c.slot): c.appts for c in result.combined}
    assert combined[('Dr Smith', 'Triage')] == 5

    merged = aggregate_records(result.slots)
    assert [r.name for r in merged] == ['Triage', 'Bloods']


# --- Allocation Tests ---
def test_even_split_conserves_each_staff_total(appointments_rows, dna_rows):
    result = MonthlyAggregator(AllocationPolicy.EVEN_SPLIT).add_appointments(appointments_rows).add_dna(dna_rows).result()
    smith = [s for s in result.staff if s.name == 'Dr Smith']
    assert len(smith) == 3
    assert all(s.dna == pytest.approx(2.0) for s in smith)
    assert sum(s.dna for s in smith) == pytest.approx(6.0)
    # Dr Ghost has no appointment months and falls back to the first month.
    ghost = [s for s in result.staff if s.name == 'Dr Ghost']
    assert [(s.month, s.dna) for s in ghost] == [('Dec-24', 5.0)]


def test_undated_month_estimates_follow_appointment_volume(appointments_rows, dna_rows):
    """Month totals use each month's share of appointments, whatever the per-staff split."""
    for policy in (AllocationPolicy.EVEN_SPLIT, AllocationPolicy.VOLUME_WEIGHTED):
        buckets = _buckets(MonthlyAggregator(policy).add_appointments(appointments_rows).add_dna(dna_rows).result())
        assert buckets['Dec-24'].est_dna == pytest.approx(14 * 19 / 66)
        assert buckets['Jan-25'].est_dna == pytest.approx(14 * 29 / 66)
        assert buckets['Dec-24'].est_gp_dna == pytest.approx(11 * 15 / 48)
        assert sum(m.est_dna for m in buckets.values()) == pytest.approx(14.0)
        assert round_half_up(buckets['Dec-24'].est_dna) == 4


def test_unmatched_staff_can_be_dropped(appointments_rows, dna_rows):
    result = (MonthlyAggregator(AllocationPolicy.EVEN_SPLIT, unmatched_staff_policy=UnmatchedPolicy.DROP)
              .add_appointments(appointments_rows).add_dna(dna_rows).result())
    assert _buckets(result)['Dec-24'].est_dna == pytest.approx(9 * 19 / 66)
    assert sum(m.est_dna for m in result.months) == pytest.approx(9.0)
    assert not any(s.name == 'Dr Ghost' for s in result.staff)


def test_volume_weighted_allocation(appointments_rows, dna_rows):
    result = MonthlyAggregator(AllocationPolicy.VOLUME_WEIGHTED).add_appointments(appointments_rows).add_dna(dna_rows).result()
    smith = {s.month: s.dna for s in result.staff if s.name == 'Dr Smith'}
    assert smith['Dec-24'] == pytest.approx(6 * 15 / 48)
    assert sum(smith.values()) == pytest.approx(6.0)

    buckets = _buckets(result)
    assert buckets['Dec-24'].est_dna == pytest.approx(14 * 19 / 66)
    assert sum(m.est_dna for m in result.months) == pytest.approx(14.0)


def test_dated_rows_use_their_own_month(appointments_rows):
    dna = [
        {'Date': '15/01/2025', 'Staff': 'Dr Smith', 'Appointment Count': '4'},
        {'Date': '15/03/2025', 'Staff': 'Dr Smith', 'Appointment Count': '2'},
    ]
    assert infer_allocation_policy(pd.DataFrame(dna)) == AllocationPolicy.DATED

    dropped = MonthlyAggregator(AllocationPolicy.DATED).add_appointments(appointments_rows).add_dna(dna).result()
    assert _buckets(dropped)['Jan-25'].est_dna == 4
    assert sum(m.est_dna for m in dropped.months) == 4

    kept = (MonthlyAggregator(AllocationPolicy.DATED, unmatched_month_policy=UnmatchedPolicy.FIRST_MONTH)
            .add_appointments(appointments_rows).add_dna(dna).result())
    assert _buckets(kept)['Dec-24'].est_dna == 2


def test_dated_rows_without_a_date_follow_unmatched_month_policy(appointments_rows):
    dna = [
        {'Date': '15/01/2025', 'Staff': 'Dr Smith', 'Appointment Count': '4'},
        {'Date': '', 'Staff': 'Nurse Jones', 'Appointment Count': '3'},
    ]
    kept = (MonthlyAggregator(AllocationPolicy.DATED, unmatched_month_policy=UnmatchedPolicy.FIRST_MONTH)
            .add_appointments(appointments_rows).add_dna(dna).result())
    buckets = _buckets(kept)
    assert buckets['Dec-24'].est_dna == 3
    assert sum(m.est_dna for m in kept.months) == 7

    dropped = MonthlyAggregator(AllocationPolicy.DATED).add_appointments(appointments_rows).add_dna(dna).result()
    assert sum(m.est_dna for m in dropped.months) == 4


def test_undated_uploads_infer_even_split(dna_rows):
    assert infer_allocation_policy(pd.DataFrame(dna_rows), None) == AllocationPolicy.EVEN_SPLIT


def test_unused_pass_fills_unused_estimates(appointments_rows, unused_rows):
    result = MonthlyAggregator().add_appointments(appointments_rows).add_unused(unused_rows).result()
    smith = [s for s in result.staff if s.name == 'Dr Smith']
    assert all(s.unused == pytest.approx(3.0) for s in smith)

    buckets = _buckets(result)
    assert buckets['Feb-25'].est_unused == pytest.approx(9 * 18 / 66)
    assert buckets['Feb-25'].est_gp_unused == pytest.approx(9 * 12 / 48)
    assert sum(m.est_unused for m in result.months) == pytest.approx(9.0)


def test_allocation_residual_reports_dropped_amounts():
    rows = pd.DataFrame({'staff_name': ['A', 'B'], 'slot_type': [None, None], 'amount': [4.0, 2.0],
                         'booked': [0.0, 0.0], 'date': [pd.NaT, pd.NaT]})
    staff_months = pd.DataFrame({'month': ['Jan-25', 'Feb-25'], 'name': ['A', 'A'], 'appts': [1.0, 3.0]})
    allocated = allocate_rows(rows, staff_months, ['Jan-25', 'Feb-25'], AllocationPolicy.EVEN_SPLIT,
                              unmatched_staff_policy=UnmatchedPolicy.DROP)
    assert allocated['amount'].sum() == pytest.approx(4.0)
    assert allocation_residual(rows, allocated) == pytest.approx(2.0)


def test_split_helpers():
    assert split_evenly(9, ['a', 'b', 'c']) == {'a': 3, 'b': 3, 'c': 3}
    assert split_evenly(9, []) == {}
    assert split_by_volume(10, {'a': 1, 'b': 4}) == {'a': 2, 'b': 8}
    assert split_by_volume(10, {'a': 0}) == {}


# --- Online & Telephony Pass Tests ---
def test_online_requests_are_counted_per_month(appointments_rows, online_rows):
    result = MonthlyAggregator().add_appointments(appointments_rows).add_online(online_rows).result()
    buckets = _buckets(result)
    assert buckets['Jan-25'].online_total == 2
    assert buckets['Jan-25'].online_clinical == 2
    assert buckets['Jan-25'].online_clinical_no_appt == 1
    assert buckets['Feb-25'].online_clinical == 0
    assert len(result.online_records) == 3  # the March request has no appointment month


def test_online_summary(appointments_rows, online_rows):
    result = MonthlyAggregator().add_appointments(appointments_rows).add_online(online_rows).result()
    summary = summarize_online_requests(result.online_records)
    assert summary.total == 3
    assert summary.type_breakdown == {'Clinical': 2, 'Admin': 1}
    assert summary.total_offered_or_booked == 1
    assert summary.average_age == pytest.approx(47.5)
    assert summary.avg_clinical_outcome_hours == pytest.approx(2.0)
    assert summary.avg_admin_outcome_hours is None
    assert summarize_online_requests(result.online_records, month='Dec-24') is None


def test_telephony_report_attaches_to_its_month(appointments_rows, telephony_text):
    result = MonthlyAggregator().add_appointments(appointments_rows).add_telephony([telephony_text]).result()
    buckets = _buckets(result)
    assert buckets['Jan-25'].telephony.inbound_received == 1234
    assert buckets['Dec-24'].telephony is None
