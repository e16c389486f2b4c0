# practice_pulse/analytics/workforce.py
# WORKFORCE AGGREGATOR - ROLE-MAPPED WTE / HEADCOUNT AND CAPACITY MODEL

"""
Turns one row of the national practice-level workforce extract (one column per
staff category, `_FTE` and `_HC` suffixed) into role-group totals, and derives
staffing ratios, fragility flags and a theoretical appointment capacity model.

Headcount uses None for "not reported". A total is None only when every group
that feeds it is None; partial data still sums. WTE treats missing as 0.
"""

import logging
import math
import re
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence

import pandas as pd
from pydantic import Field

from config import ProcessingConfig, settings
from config.settings import FragilityThreshold
from data_processing.helpers import MONTH_NAMES, convert_to_numeric
from data_processing.loaders import RowsInput, to_frame
from data_processing.models import Record
from .metrics import safe_divide, working_days_for_month

logger = logging.getLogger(__name__)

# --- Role Schema ---

GP_PARTNER, GP_SALARIED, GP_LOCUM, GP_REGISTRAR = 'GP_PARTNER', 'GP_SALARIED', 'GP_LOCUM', 'GP_REGISTRAR'
NURSE, HCA, PHARMACIST, PHARM_TECH = 'NURSE', 'HCA', 'PHARMACIST', 'PHARM_TECH'
PARAMEDIC, PHYSIO, MENTAL_HEALTH, OTHER = 'PARAMEDIC', 'PHYSIO', 'MENTAL_HEALTH', 'OTHER'
RECEPTION, ADMIN, PRACTICE_MGR = 'RECEPTION', 'ADMIN', 'PRACTICE_MGR'

ROLE_LABELS = {
    GP_PARTNER: 'GP Partner',
    GP_SALARIED: 'GP Salaried',
    GP_LOCUM: 'GP Locum',
    GP_REGISTRAR: 'GP Registrar',
    NURSE: 'Nurse',
    HCA: 'Healthcare Assistant',
    PHARMACIST: 'Pharmacist',
    PHARM_TECH: 'Pharmacy Technician',
    PARAMEDIC: 'Paramedic',
    PHYSIO: 'Physiotherapist',
    MENTAL_HEALTH: 'Mental Health / Talking Therapies',
    RECEPTION: 'Reception / Telephonist',
    ADMIN: 'Admin / Support',
    PRACTICE_MGR: 'Practice Manager',
    OTHER: 'Other Clinical (DPC)',
}

GP_ROLE_GROUPS = [GP_PARTNER, GP_SALARIED, GP_LOCUM, GP_REGISTRAR]
CLINICAL_ROLE_GROUPS = GP_ROLE_GROUPS + [NURSE, HCA, PHARMACIST, PHARM_TECH, PARAMEDIC, PHYSIO, MENTAL_HEALTH, OTHER]
NON_CLINICAL_ROLE_GROUPS = [RECEPTION, ADMIN, PRACTICE_MGR]
ARRS_ROLE_GROUPS = [PHARMACIST, PHARM_TECH, PARAMEDIC, PHYSIO, MENTAL_HEALTH]
ROLE_GROUP_ORDER = CLINICAL_ROLE_GROUPS + NON_CLINICAL_ROLE_GROUPS


class RoleMapping(NamedTuple):
    role_group: str
    wte_fields: Sequence[str]
    headcount_fields: Sequence[str]


def _mapping(role_group: str, *stems: str) -> RoleMapping:
    return RoleMapping(role_group, [f"TOTAL_{s}_FTE" for s in stems], [f"TOTAL_{s}_HC" for s in stems])


ROLE_MAPPINGS = [
    _mapping(GP_PARTNER, 'GP_SEN_PTNR', 'GP_PTNR_PROV'),
    _mapping(GP_SALARIED, 'GP_SAL_BY_PRAC', 'GP_SAL_BY_OTH'),
    _mapping(GP_LOCUM, 'GP_LOCUM_VAC', 'GP_LOCUM_ABS', 'GP_LOCUM_OTH'),
    _mapping(GP_REGISTRAR, 'GP_TRN_GR_ST1', 'GP_TRN_GR_ST2', 'GP_TRN_GR_ST3', 'GP_TRN_GR_ST4',
             'GP_TRN_GR_OTH', 'GP_TRN_GR_F1_2'),
    _mapping(NURSE, 'NURSES', 'DPC_NURSE_ASSOC', 'DPC_TRAINEE_NURSE_ASSOC'),
    _mapping(HCA, 'DPC_HCA', 'DPC_APP_HCA'),
    _mapping(PHARMACIST, 'DPC_PHARMA', 'DPC_ADV_PHARMA_PRAC', 'DPC_APP_PHARMA'),
    _mapping(PHARM_TECH, 'DPC_PHARMT', 'DPC_TRAINEE_PHARMT'),
    _mapping(PARAMEDIC, 'DPC_PARAMED', 'DPC_ADV_PARAMED_PRAC'),
    _mapping(PHYSIO, 'DPC_PHYSIO', 'DPC_ADV_PHYSIO_PRAC', 'DPC_APP_PHYSIO'),
    _mapping(MENTAL_HEALTH, 'DPC_NHS_TALKING_THERA', 'DPC_TRAINEE_NHS_TALKING_THERA', 'DPC_THERA_COU'),
    _mapping(RECEPTION, 'ADMIN_RECEPT', 'ADMIN_TELEPH'),
    _mapping(ADMIN, 'ADMIN_MED_SECRETARY', 'ADMIN_ESTATES_ANC', 'ADMIN_DT_LEAD', 'ADMIN_OTH', 'ADMIN_APP'),
    _mapping(PRACTICE_MGR, 'ADMIN_MANAGER', 'ADMIN_MANAGE_PTNR'),
    _mapping(OTHER, 'DPC_ADV_DIETICIAN_PRAC', 'DPC_ADV_PODIA_PRAC', 'DPC_ADV_THERA_OCC_PRAC', 'DPC_DIETICIAN',
             'DPC_DISPENSER', 'DPC_GPA', 'DPC_OST', 'DPC_PHLEB', 'DPC_PODIA', 'DPC_PHYSICIAN_ASSOC',
             'DPC_THERA_OCC', 'DPC_THERA_OTH', 'DPC_APP_PHLEB', 'DPC_APP_PHYSICIAN_ASSOC', 'DPC_APP_OTH',
             'DPC_APPRENTICE', 'DPC_HLTH_SPRT_WRK', 'DPC_SPLW', 'DPC_OTH'),
]

# Roles inside OTHER that are also funded through ARRS.
_ARRS_OTHER_STEMS = [
    'DPC_ADV_DIETICIAN_PRAC', 'DPC_DIETICIAN', 'DPC_ADV_PODIA_PRAC', 'DPC_PODIA', 'DPC_ADV_THERA_OCC_PRAC',
    'DPC_THERA_OCC', 'DPC_PHYSICIAN_ASSOC', 'DPC_APP_PHYSICIAN_ASSOC', 'DPC_SPLW', 'DPC_HLTH_SPRT_WRK',
    'DPC_THERA_OTH',
]
ARRS_OTHER_FTE_FIELDS = [f"TOTAL_{s}_FTE" for s in _ARRS_OTHER_STEMS]
ARRS_OTHER_HC_FIELDS = [f"TOTAL_{s}_HC" for s in _ARRS_OTHER_STEMS]

_UNMAPPED_MARKERS = {'unmapped', 'na'}
_FILENAME_MONTH_PATTERN = re.compile(rf"({'|'.join(MONTH_NAMES)})\s+(\d{{4}})", re.IGNORECASE)


# --- Records ---

class RoleTotal(Record):
    wte: float = 0.0
    headcount: Optional[float] = None


class RoleRecord(Record):
    practice_code: str
    month: Optional[str] = None
    role_group: str
    wte: float = 0.0
    headcount: Optional[float] = None
    wte_columns: List[str] = Field(default_factory=list)
    headcount_columns: List[str] = Field(default_factory=list)


class WorkforceTotals(Record):
    total_wte: float = 0.0
    total_wte_gp: float = 0.0
    total_wte_clinical: float = 0.0
    total_wte_non_clinical: float = 0.0
    total_wte_arrs: float = 0.0
    total_wte_arrs_roles: float = 0.0
    arrs_other_wte: float = 0.0
    total_headcount: Optional[float] = None
    total_headcount_gp: Optional[float] = None
    total_headcount_clinical: Optional[float] = None
    total_headcount_non_clinical: Optional[float] = None
    total_headcount_arrs: Optional[float] = None
    arrs_other_headcount: Optional[float] = None


class DerivedWorkforceMetrics(Record):
    patients_per_gp_wte: Optional[float] = None
    patients_per_clinical_wte: Optional[float] = None
    gp_wte_per_1000: Optional[float] = None
    clinical_wte_per_1000: Optional[float] = None
    admin_to_clinical_ratio: Optional[float] = None
    arrs_pct_clinical: Optional[float] = None
    skill_mix_index: Optional[float] = None


class FragilityFlag(Record):
    role_group: str
    message: str
    wte: float
    headcount: Optional[float] = None


class WorkforceDemandMetrics(Record):
    appointments_per_gp_wte: Optional[float] = None
    appointments_per_clinical_wte: Optional[float] = None
    appointments_per_non_gp_clinical_wte: Optional[float] = None
    calls_answered_per_admin_wte: Optional[float] = None
    calls_missed_per_admin_wte: Optional[float] = None
    oc_per_gp_wte: Optional[float] = None
    oc_clinical_per_gp_wte: Optional[float] = None
    oc_per_clinical_wte: Optional[float] = None
    total_appointments: float = 0
    gp_appointments: float = 0
    other_appointments: float = 0
    answered_calls: float = 0
    missed_calls: float = 0
    oc_submissions: float = 0
    oc_clinical_submissions: float = 0
    admin_wte: float = 0


class RoleCapacity(Record):
    wte: float
    appointments_per_wte_per_day: float
    theoretical: float
    actual: float
    utilization: Optional[float] = None
    unused: float = 0
    over_capacity: bool = False


class CapacityModel(Record):
    working_days: int
    per_wte_per_day: Dict[str, float]
    role_capacity: Dict[str, RoleCapacity]
    total_theoretical: float
    total_actual: float
    utilization: Optional[float] = None
    unused_capacity: float = 0


class WorkforcePractice(Record):
    ods_code: str
    gp_name: str
    pcn_code: str = ""
    pcn_name: str = ""
    sub_icb_code: str = ""
    sub_icb_name: str = ""
    icb_code: str = ""
    icb_name: str = ""
    region_code: str = ""
    region_name: str = ""
    list_size: float = 0
    data_quality: Dict[str, str] = Field(default_factory=dict)
    month: Optional[str] = None
    records: List[RoleRecord] = Field(default_factory=list)
    totals: WorkforceTotals = Field(default_factory=WorkforceTotals)

    @property
    def role_totals(self) -> Dict[str, RoleTotal]:
        return build_role_totals(self.records)


class NationalWorkforce(Record):
    practice_count: int = 0
    list_size: float = 0
    role_totals: Dict[str, RoleTotal] = Field(default_factory=dict)
    totals: WorkforceTotals = Field(default_factory=WorkforceTotals)


class WorkforceDataset(Record):
    data_month: Optional[str] = None
    practices: List[WorkforcePractice] = Field(default_factory=list)
    national: NationalWorkforce = Field(default_factory=NationalWorkforce)


# --- Parsing ---

def parse_number(value: Any) -> Optional[float]:
    """Numeric cell value, or None for blanks and the 'NA', 'N/A' and '*' suppression markers."""
    number = convert_to_numeric(value)
    if pd.isna(number) or not math.isfinite(number):
        return None
    return float(number)


def sum_fields(row: Mapping[str, Any], fields: Iterable[str]) -> Optional[float]:
    """Sum of the parseable fields present in the row; None if there are none."""
    values = [parse_number(row[f]) for f in fields if f in row]
    values = [v for v in values if v is not None]
    return sum(values) if values else None


def get_role_label(role_group: str) -> str:
    return ROLE_LABELS.get(role_group, role_group)


def infer_month_from_filename(filename: Optional[str]) -> Optional[str]:
    """'General Practice - March 2025 (Practice Level).csv' -> 'March 2025'."""
    match = _FILENAME_MONTH_PATTERN.search(str(filename or ''))
    if not match:
        return None
    month = next(m for m in MONTH_NAMES if m.lower() == match.group(1).lower())
    return f"{month} {match.group(2)}"


# --- Totals ---

def build_role_totals(records: Iterable[RoleRecord]) -> Dict[str, RoleTotal]:
    return {r.role_group: RoleTotal(wte=r.wte or 0.0, headcount=r.headcount) for r in records if r.role_group}


def _wte(role_totals: Mapping[str, RoleTotal], groups: Iterable[str]) -> float:
    return sum(role_totals[g].wte or 0.0 for g in groups if g in role_totals)


def _headcount(role_totals: Mapping[str, RoleTotal], groups: Iterable[str]) -> Optional[float]:
    values = [role_totals[g].headcount for g in groups if g in role_totals and role_totals[g].headcount is not None]
    return sum(values) if values else None


def calculate_workforce_totals(
    role_totals: Mapping[str, RoleTotal], arrs_other_wte: float = 0.0, arrs_other_headcount: Optional[float] = None
) -> WorkforceTotals:
    """
    Rolls role groups up into GP / clinical / non-clinical / ARRS buckets.
    A group may feed several buckets (registrars count as GP and clinical).
    """
    arrs_roles_wte = _wte(role_totals, ARRS_ROLE_GROUPS)
    arrs_roles_headcount = _headcount(role_totals, ARRS_ROLE_GROUPS)
    if arrs_roles_headcount is None and arrs_other_headcount is None:
        arrs_headcount = None
    else:
        arrs_headcount = (arrs_roles_headcount or 0) + (arrs_other_headcount or 0)

    return WorkforceTotals(
        total_wte=_wte(role_totals, ROLE_GROUP_ORDER),
        total_wte_gp=_wte(role_totals, GP_ROLE_GROUPS),
        total_wte_clinical=_wte(role_totals, CLINICAL_ROLE_GROUPS),
        total_wte_non_clinical=_wte(role_totals, NON_CLINICAL_ROLE_GROUPS),
        total_wte_arrs=arrs_roles_wte + (arrs_other_wte or 0.0),
        total_wte_arrs_roles=arrs_roles_wte,
        arrs_other_wte=arrs_other_wte or 0.0,
        total_headcount=_headcount(role_totals, ROLE_GROUP_ORDER),
        total_headcount_gp=_headcount(role_totals, GP_ROLE_GROUPS),
        total_headcount_clinical=_headcount(role_totals, CLINICAL_ROLE_GROUPS),
        total_headcount_non_clinical=_headcount(role_totals, NON_CLINICAL_ROLE_GROUPS),
        total_headcount_arrs=arrs_headcount,
        arrs_other_headcount=arrs_other_headcount,
    )


def calculate_derived_workforce_metrics(totals: WorkforceTotals, list_size: Optional[float]) -> DerivedWorkforceMetrics:
    population = list_size or 0
    gp, clinical = totals.total_wte_gp, totals.total_wte_clinical
    return DerivedWorkforceMetrics(
        patients_per_gp_wte=safe_divide(population, gp),
        patients_per_clinical_wte=safe_divide(population, clinical),
        gp_wte_per_1000=None if population <= 0 else gp / population * 1000,
        clinical_wte_per_1000=None if population <= 0 else clinical / population * 1000,
        admin_to_clinical_ratio=safe_divide(totals.total_wte_non_clinical, clinical),
        arrs_pct_clinical=None if clinical <= 0 else totals.total_wte_arrs / clinical * 100,
        skill_mix_index=None if clinical <= 0 else (clinical - gp) / clinical,
    )


def calculate_fragility_flags(
    role_totals: Mapping[str, RoleTotal], thresholds: Optional[Mapping[str, FragilityThreshold]] = None
) -> List[FragilityFlag]:
    """
    Flags staff groups that hang on one person: present (WTE > 0) but with a
    headcount at or below `max_headcount`, or a WTE at or below `min_wte`.
    """
    limits = {**settings.WORKFORCE.fragility, **(thresholds or {})}
    checks = [
        ('gp', 'GP', 'Single GP dependency risk', GP_ROLE_GROUPS),
        ('nurse', NURSE, 'Single nurse dependency risk', [NURSE]),
        ('reception', RECEPTION, 'Single reception dependency risk', [RECEPTION]),
    ]

    flags = []
    for key, role_group, message, groups in checks:
        wte, headcount, limit = _wte(role_totals, groups), _headcount(role_totals, groups), limits[key]
        if wte <= 0:
            continue
        if (headcount is not None and headcount <= limit.max_headcount) or wte <= limit.min_wte:
            flags.append(FragilityFlag(role_group=role_group, message=message, wte=wte, headcount=headcount))
    return flags


def calculate_workforce_demand_metrics(
    totals: WorkforceTotals,
    role_totals: Mapping[str, RoleTotal],
    gp_appointments: float = 0,
    other_appointments: float = 0,
    total_appointments: Optional[float] = None,
    answered_calls: float = 0,
    missed_calls: float = 0,
    oc_submissions: float = 0,
    oc_clinical_submissions: float = 0,
) -> WorkforceDemandMetrics:
    """Demand (appointments, calls, online consultations) per WTE of the staff group that absorbs it."""
    total = total_appointments or (gp_appointments + other_appointments)
    gp, clinical = totals.total_wte_gp, totals.total_wte_clinical
    non_gp_clinical = max(0.0, clinical - gp)
    admin = _wte(role_totals, NON_CLINICAL_ROLE_GROUPS)

    return WorkforceDemandMetrics(
        appointments_per_gp_wte=safe_divide(gp_appointments, gp),
        appointments_per_clinical_wte=safe_divide(total, clinical),
        appointments_per_non_gp_clinical_wte=safe_divide(other_appointments, non_gp_clinical),
        calls_answered_per_admin_wte=safe_divide(answered_calls, admin),
        calls_missed_per_admin_wte=safe_divide(missed_calls, admin),
        oc_per_gp_wte=safe_divide(oc_submissions, gp),
        oc_clinical_per_gp_wte=safe_divide(oc_clinical_submissions, gp),
        oc_per_clinical_wte=safe_divide(oc_submissions, clinical),
        total_appointments=total,
        gp_appointments=gp_appointments,
        other_appointments=other_appointments,
        answered_calls=answered_calls,
        missed_calls=missed_calls,
        oc_submissions=oc_submissions,
        oc_clinical_submissions=oc_clinical_submissions,
        admin_wte=admin,
    )


# --- Capacity ---

def _distribute_by_wte(total: float, role_totals: Mapping[str, RoleTotal], groups: Sequence[str]) -> Dict[str, float]:
    weights = {g: role_totals[g].wte if g in role_totals else 0.0 for g in groups}
    wte_sum = sum(weights.values())
    if not wte_sum or total <= 0:
        return {g: 0.0 for g in groups}
    return {g: total * w / wte_sum for g, w in weights.items()}


def calculate_capacity_model(
    role_totals: Mapping[str, RoleTotal],
    totals: WorkforceTotals,
    gp_appointments: float = 0,
    other_appointments: float = 0,
    config: Optional[ProcessingConfig] = None,
    month: Optional[str] = None,
) -> CapacityModel:
    """
    Theoretical monthly capacity per clinical role group
    (WTE x appointments per WTE per day x working days) against actual
    appointments, which are shared out between roles in proportion to WTE:
    GP appointments across the GP groups, all others across the non-GP
    clinical groups. Utilization is not capped; above 1.0 the role is
    flagged as over capacity.
    """
    working_days = config.working_days_per_month if config else working_days_for_month(month)
    rates = dict(settings.WORKFORCE.appointments_per_wte_per_day)
    if config:
        rates.update(config.appointments_per_wte_per_day)

    non_gp_groups = [g for g in CLINICAL_ROLE_GROUPS if g not in GP_ROLE_GROUPS]
    actuals = {
        **_distribute_by_wte(gp_appointments, role_totals, GP_ROLE_GROUPS),
        **_distribute_by_wte(other_appointments, role_totals, non_gp_groups),
    }

    role_capacity = {}
    for group in CLINICAL_ROLE_GROUPS:
        wte = role_totals[group].wte if group in role_totals else 0.0
        rate = rates.get(group, 0)
        theoretical = wte * rate * working_days
        actual = actuals.get(group, 0.0)
        utilization = safe_divide(actual, theoretical)
        role_capacity[group] = RoleCapacity(
            wte=wte, appointments_per_wte_per_day=rate, theoretical=theoretical, actual=actual,
            utilization=utilization, unused=max(0.0, theoretical - actual),
            over_capacity=utilization is not None and utilization > 1,
        )

    total_theoretical = sum(rc.theoretical for rc in role_capacity.values())
    total_actual = gp_appointments + other_appointments if totals.total_wte_clinical > 0 else 0
    return CapacityModel(
        working_days=working_days,
        per_wte_per_day=rates,
        role_capacity=role_capacity,
        total_theoretical=total_theoretical,
        total_actual=total_actual,
        utilization=safe_divide(total_actual, total_theoretical),
        unused_capacity=max(0.0, total_theoretical - total_actual),
    )


def calculate_capacity_pressure_score(
    demand_capacity_ratio: Optional[float], missed_calls_per_admin_wte: Optional[float], oc_per_gp_wte: Optional[float]
) -> int:
    """0-100 composite: demand/capacity ratio 60 %, missed calls per admin WTE 25 %, online requests per GP WTE 15 %."""
    def clamp(value: float) -> float:
        return max(0.0, min(1.5, value))

    weighted = (
        clamp((demand_capacity_ratio or 0) / 1.2) * 0.6
        + clamp((missed_calls_per_admin_wte or 0) / 150) * 0.25
        + clamp((oc_per_gp_wte or 0) / 80) * 0.15
    ) / 1.5
    return int(round(weighted * 100))


# --- Practice & National Datasets ---

def _text(value: Any) -> str:
    return '' if value is None else str(value).strip()


def build_workforce_practice(row: Mapping[str, Any], month: Optional[str]) -> Optional[WorkforcePractice]:
    """One practice from one extract row; None for unmapped or unnamed practices."""
    ods_code, gp_name = _text(row.get('PRAC_CODE')), _text(row.get('PRAC_NAME'))
    if not ods_code or not gp_name or ods_code.lower() in _UNMAPPED_MARKERS or gp_name.lower() in _UNMAPPED_MARKERS:
        return None

    records = []
    for mapping in ROLE_MAPPINGS:
        wte, headcount = sum_fields(row, mapping.wte_fields), sum_fields(row, mapping.headcount_fields)
        if wte is None and headcount is None:
            continue
        records.append(RoleRecord(
            practice_code=ods_code, month=month, role_group=mapping.role_group,
            wte=wte or 0.0, headcount=headcount,
            wte_columns=list(mapping.wte_fields), headcount_columns=list(mapping.headcount_fields),
        ))

    totals = calculate_workforce_totals(
        build_role_totals(records),
        arrs_other_wte=sum_fields(row, ARRS_OTHER_FTE_FIELDS) or 0.0,
        arrs_other_headcount=sum_fields(row, ARRS_OTHER_HC_FIELDS),
    )
    return WorkforcePractice(
        ods_code=ods_code,
        gp_name=gp_name,
        pcn_code=_text(row.get('PCN_CODE')),
        pcn_name=_text(row.get('PCN_NAME')),
        sub_icb_code=_text(row.get('SUB_ICB_CODE')),
        sub_icb_name=_text(row.get('SUB_ICB_NAME')),
        icb_code=_text(row.get('ICB_CODE')),
        icb_name=_text(row.get('ICB_NAME')),
        region_code=_text(row.get('REGION_CODE')),
        region_name=_text(row.get('REGION_NAME')),
        list_size=parse_number(row.get('TOTAL_PATIENTS')) or 0,
        data_quality={k: _text(row.get(f"{k.upper()}_SOURCE")) for k in ('gp', 'nurse', 'dpc', 'admin')},
        month=month,
        records=records,
        totals=totals,
    )


def aggregate_workforce_practices(practices: Sequence[WorkforcePractice]) -> NationalWorkforce:
    """National sums; unreported headcounts are skipped rather than nulling the total."""
    if not practices:
        return NationalWorkforce()

    totals = pd.DataFrame([p.totals.model_dump() for p in practices]).astype(float).sum(min_count=0)
    role_rows = [r.model_dump(include={'role_group', 'wte', 'headcount'}) for p in practices for r in p.records]
    role_totals = {}
    if role_rows:
        by_role = pd.DataFrame(role_rows).astype({'wte': float, 'headcount': float}).groupby('role_group')[['wte', 'headcount']].sum()
        role_totals = {group: RoleTotal(wte=row.wte, headcount=row.headcount) for group, row in by_role.iterrows()}

    return NationalWorkforce(
        practice_count=len(practices),
        list_size=sum(p.list_size or 0 for p in practices),
        role_totals=role_totals,
        totals=WorkforceTotals(**totals.to_dict()),
    )


def build_workforce_dataset(rows: RowsInput, month: Optional[str]) -> WorkforceDataset:
    """Every mappable practice in a workforce extract plus the national roll-up."""
    df = to_frame(rows)
    practices = [p for p in (build_workforce_practice(row, month) for row in df.to_dict('records')) if p]
    logger.info(f"Workforce extract {month or '(unknown month)'}: {len(practices)} of {len(df)} rows mapped to practices.")
    return WorkforceDataset(data_month=month, practices=practices, national=aggregate_workforce_practices(practices))
