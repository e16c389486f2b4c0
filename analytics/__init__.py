# practice_pulse/analytics/__init__.py
# PUBLIC API FOR KPI DERIVATION, FORECASTING & COMPARISON

"""
Initializes the analytics package: the metric calculator, enrichment,
forecast, follow-up, national comparison and workforce engines, and the
dashboard pipeline that runs them.
"""

# From orchestrator.py
from .orchestrator import DashboardInputs, DashboardPipeline, DashboardResult, process_dashboard

# From enrichment.py
from .enrichment import enrich_month, enrich_months

# From metrics.py
from .metrics import (
    calculate_dna_rate,
    calculate_extra_slots_per_day,
    calculate_gp_appt_per_day_pct,
    calculate_gp_triage_capacity_per_day_pct,
    calculate_practice_metrics,
    calculate_utilization,
    per_1000,
)

# From forecasting.py
from .forecasting import build_forecast_series, forecast_values, linear_forecast, linear_regression

# From followup.py
from .followup import (
    analyze_followups,
    calculate_clinician_followup_rates,
    calculate_monthly_trends,
    calculate_overall_followup_rates,
    calculate_same_gp_followup_rates,
)

# From comparison.py
from .comparison import (
    COMPARISON_METRICS,
    PRACTICE_METRICS,
    collect_national_metric_arrays,
    detect_outlier,
    find_similar_practices,
    get_rankings,
    load_comparison_practices,
    network_averages,
    peer_rankings,
    percentile_rank,
    rank_practice_metrics,
    rank_within,
)

# From workforce.py
from .workforce import (
    ROLE_MAPPINGS,
    build_workforce_dataset,
    build_workforce_practice,
    calculate_capacity_model,
    calculate_capacity_pressure_score,
    calculate_derived_workforce_metrics,
    calculate_fragility_flags,
    calculate_workforce_demand_metrics,
    calculate_workforce_totals,
    infer_month_from_filename,
)


__all__ = [
    # Pipeline
    "DashboardInputs", "DashboardPipeline", "DashboardResult", "process_dashboard",
    "enrich_month", "enrich_months",

    # Metric calculator
    "calculate_dna_rate", "calculate_extra_slots_per_day", "calculate_gp_appt_per_day_pct",
    "calculate_gp_triage_capacity_per_day_pct", "calculate_practice_metrics", "calculate_utilization",
    "per_1000",

    # Forecasting
    "build_forecast_series", "forecast_values", "linear_forecast", "linear_regression",

    # Follow-up
    "analyze_followups", "calculate_clinician_followup_rates", "calculate_monthly_trends",
    "calculate_overall_followup_rates", "calculate_same_gp_followup_rates",

    # National comparison
    "COMPARISON_METRICS", "PRACTICE_METRICS", "collect_national_metric_arrays", "detect_outlier",
    "find_similar_practices", "get_rankings", "load_comparison_practices", "network_averages",
    "peer_rankings", "percentile_rank", "rank_practice_metrics", "rank_within",

    # Workforce
    "ROLE_MAPPINGS", "build_workforce_dataset", "build_workforce_practice", "calculate_capacity_model",
    "calculate_capacity_pressure_score", "calculate_derived_workforce_metrics", "calculate_fragility_flags",
    "calculate_workforce_demand_metrics", "calculate_workforce_totals", "infer_month_from_filename",
]
