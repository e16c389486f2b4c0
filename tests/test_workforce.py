# practice_pulse/tests/test_workforce.py
# WORKFORCE AGGREGATOR & CAPACITY MODEL TESTS

import pytest

from analytics import (
    build_workforce_dataset,
    build_workforce_practice,
    calculate_capacity_model,
    calculate_capacity_pressure_score,
    calculate_derived_workforce_metrics,
    calculate_fragility_flags,
    calculate_workforce_demand_metrics,
    infer_month_from_filename,
)
from analytics.workforce import GP_PARTNER, GP_REGISTRAR, NURSE, OTHER, RoleTotal, get_role_label, parse_number
from config import ProcessingConfig

# Fixtures are sourced from conftest.py


@pytest.fixture
def practice(workforce_row):
    return build_workforce_practice(workforce_row, 'March 2025')


# --- Parsing Tests ---
def test_suppression_markers_are_missing():
    assert parse_number('NA') is None
    assert parse_number(' * ') is None
    assert parse_number('') is None
    assert parse_number('1,234.5') == pytest.approx(1234.5)


def test_month_from_filename():
    assert infer_month_from_filename('General Practice - march 2025 (Practice Level).csv') == 'March 2025'
    assert infer_month_from_filename('extract.csv') is None
    assert get_role_label(GP_REGISTRAR) == 'GP Registrar'


def test_unmapped_practices_are_skipped(workforce_row):
    assert build_workforce_practice({**workforce_row, 'PRAC_CODE': 'Unmapped'}, None) is None
    assert build_workforce_practice({**workforce_row, 'PRAC_NAME': ''}, None) is None


# --- Totals Tests ---
def test_role_records(practice):
    assert practice.list_size == 5600
    assert practice.data_quality['gp'] == 'Estimated'
    roles = practice.role_totals
    assert roles[GP_PARTNER].wte == pytest.approx(2.0)
    assert roles[GP_REGISTRAR].headcount is None
    assert roles[OTHER].wte == pytest.approx(0.5)


def test_workforce_totals(practice):
    totals = practice.totals
    assert totals.total_wte_gp == pytest.approx(3.0)
    assert totals.total_wte_clinical == pytest.approx(6.0)
    assert totals.total_wte_non_clinical == pytest.approx(3.0)
    assert totals.total_wte == pytest.approx(9.0)
    assert totals.total_wte_arrs == pytest.approx(1.5)
    # Unreported registrar headcount does not null the GP total.
    assert totals.total_headcount_gp == 2
    assert totals.total_headcount_clinical == 5
    assert totals.total_headcount == 9
    assert totals.total_headcount_arrs == 1


def test_derived_metrics(practice):
    derived = calculate_derived_workforce_metrics(practice.totals, practice.list_size)
    assert derived.skill_mix_index == pytest.approx(0.5)
    assert derived.arrs_pct_clinical == pytest.approx(25.0)
    assert derived.admin_to_clinical_ratio == pytest.approx(0.5)
    assert derived.patients_per_gp_wte == pytest.approx(5600 / 3)
    assert calculate_derived_workforce_metrics(practice.totals, 0).gp_wte_per_1000 is None


def test_fragility_flags(practice):
    assert calculate_fragility_flags(practice.role_totals) == []

    flags = calculate_fragility_flags({GP_PARTNER: RoleTotal(wte=0.4), NURSE: RoleTotal(wte=1.0, headcount=1)})
    assert [(f.role_group, f.message) for f in flags] == [
        ('GP', 'Single GP dependency risk'),
        (NURSE, 'Single nurse dependency risk'),
    ]


def test_demand_metrics(practice):
    demand = calculate_workforce_demand_metrics(
        practice.totals, practice.role_totals, gp_appointments=600, other_appointments=300,
        answered_calls=900, missed_calls=150, oc_submissions=240,
    )
    assert demand.total_appointments == 900
    assert demand.appointments_per_gp_wte == pytest.approx(200.0)
    assert demand.appointments_per_clinical_wte == pytest.approx(150.0)
    assert demand.calls_missed_per_admin_wte == pytest.approx(50.0)
    assert demand.oc_per_gp_wte == pytest.approx(80.0)
    assert demand.admin_wte == pytest.approx(3.0)


# --- Capacity Tests ---
def test_capacity_model(practice):
    config = ProcessingConfig(working_days_per_month=20)
    model = calculate_capacity_model(practice.role_totals, practice.totals, 1000, 500, config=config)
    partner = model.role_capacity[GP_PARTNER]
    assert partner.theoretical == pytest.approx(1000.0)
    assert partner.actual == pytest.approx(1000 * 2 / 3)
    assert model.total_theoretical == pytest.approx(2450.0)
    assert model.total_actual == 1500
    assert partner.over_capacity is False


def test_capacity_utilization_is_not_capped(practice):
    config = ProcessingConfig(working_days_per_month=20)
    partner = calculate_capacity_model(practice.role_totals, practice.totals, 3000, 500, config=config).role_capacity[GP_PARTNER]
    assert partner.utilization == pytest.approx(2.0)
    assert partner.over_capacity is True
    assert partner.unused == 0


def test_capacity_pressure_score():
    assert calculate_capacity_pressure_score(1.2, 150, 80) == 67
    assert calculate_capacity_pressure_score(0, 0, 0) == 0
    assert calculate_capacity_pressure_score(None, None, None) == 0
    assert calculate_capacity_pressure_score(10, 1000, 1000) == 100


# --- Dataset Tests ---
def test_national_roll_up(workforce_row):
    second = {**workforce_row, 'PRAC_CODE': 'A81002', 'PRAC_NAME': 'Second Surgery', 'TOTAL_PATIENTS': '4,400'}
    dataset = build_workforce_dataset([workforce_row, second, {**workforce_row, 'PRAC_CODE': 'UNMAPPED'}], 'March 2025')
    assert dataset.data_month == 'March 2025'
    assert [p.ods_code for p in dataset.practices] == ['A81001', 'A81002']

    national = dataset.national
    assert national.practice_count == 2
    assert national.list_size == 10000
    assert national.totals.total_wte == pytest.approx(18.0)
    assert national.totals.total_headcount == pytest.approx(18.0)
    assert national.role_totals[GP_REGISTRAR].wte == pytest.approx(2.0)
    assert national.role_totals[GP_REGISTRAR].headcount == 0
