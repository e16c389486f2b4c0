# practice_pulse/analytics/enrichment.py
# MONTH BUCKET -> ENRICHED MONTH

import logging
from typing import List, Optional

from config import ProcessingConfig
from data_processing.helpers import round_half_up
from data_processing.models import AggregationResult, EnrichedMonth, MonthBucket, TelephonyMetrics
from . import metrics as m

logger = logging.getLogger(__name__)


def enrich_month(bucket: MonthBucket, config: ProcessingConfig) -> EnrichedMonth:
    """
    Derives every KPI for one month. DNA/unused estimates are rounded here,
    once, and the rounded values feed the rate metrics so that displayed
    estimates and percentages agree.
    """
    population: Optional[float] = config.population
    days = bucket.working_days
    est_dna, est_gp_dna = round_half_up(bucket.est_dna), round_half_up(bucket.est_gp_dna)
    est_unused, est_gp_unused = round_half_up(bucket.est_unused), round_half_up(bucket.est_gp_unused)

    values = dict(
        month=bucket.month,
        working_days=days,
        total_appts=bucket.total_appts,
        gp_appts=bucket.gp_appts,
        staff_appts=bucket.staff_appts,
        est_dna=est_dna, est_gp_dna=est_gp_dna, est_unused=est_unused, est_gp_unused=est_gp_unused,
        utilization=m.calculate_utilization(bucket.total_appts, est_unused),
        gp_utilization=m.calculate_utilization(bucket.gp_appts, est_gp_unused),
        gp_appt_per_day_pct=m.calculate_gp_appt_per_day_pct(bucket.gp_appts, population, days),
        all_appt_per_day_pct=m.calculate_all_appt_per_day_pct(bucket.total_appts, population, days),
        gp_unused_pct=m.calculate_unused_pct(bucket.gp_appts, est_gp_unused),
        all_unused_pct=m.calculate_unused_pct(bucket.total_appts, est_unused),
        dna_pct=m.calculate_dna_rate(est_dna, bucket.total_appts),
        gp_dna_pct=m.calculate_dna_rate(est_gp_dna, bucket.gp_appts),
        gp_appts_per_1000=m.per_1000(bucket.gp_appts, population),
        total_appts_per_1000=m.per_1000(bucket.total_appts, population),
        online_total=bucket.online_total,
        online_clinical_no_appt=bucket.online_clinical_no_appt,
        # Without online data this reduces to GP appointments per day.
        gp_triage_capacity_per_day_pct=m.calculate_gp_triage_capacity_per_day_pct(
            bucket.gp_appts, bucket.online_clinical_no_appt, days, population),
    )
    if config.use_online:
        values['online_requests_per_1000'] = m.calculate_online_requests_per_1000(bucket.online_total, population)

    t: Optional[TelephonyMetrics] = bucket.telephony if config.use_telephony else None
    if t is not None:
        values.update(t.model_dump())
        values.update(
            has_telephony=True,
            conversion_ratio=m.calculate_conversion_ratio(bucket.total_appts, t.inbound_answered),
            gp_conversion_ratio=m.calculate_conversion_ratio(bucket.gp_appts, t.inbound_answered),
            demand_conversion_ratio=m.calculate_demand_conversion_ratio(
                bucket.total_appts, t.inbound_received, bucket.online_clinical if config.use_online else 0),
            gp_booking_ratio=m.calculate_gp_booking_ratio(bucket.gp_appts, t.inbound_answered),
            calls_per_1000=m.per_1000(t.inbound_received, population),
            missed_calls_per_1000=m.per_1000(t.missed_from_queue, population),
            capitation_calling_per_day=m.calculate_capitation_calling_per_day(t.inbound_answered, population, days),
            extra_slots_per_day=m.calculate_extra_slots_per_day(
                bucket.gp_appts, t.inbound_answered, t.missed_from_queue_ex_repeat, est_gp_unused, est_gp_dna, days),
        )
    return EnrichedMonth(**values)


def enrich_months(aggregation: AggregationResult, config: ProcessingConfig) -> List[EnrichedMonth]:
    """One EnrichedMonth per month bucket, in chronological order."""
    enriched = [enrich_month(bucket, config) for bucket in aggregation.months]
    logger.info(f"Derived KPIs for {len(enriched)} months (population={config.population}).")
    return enriched
