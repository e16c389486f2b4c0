# practice_pulse/analytics/orchestrator.py
# DASHBOARD PROCESSING PIPELINE

import logging
from typing import Any, Dict, List, Optional, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from config import AllocationPolicy, ProcessingConfig, settings
from data_processing.aggregation import MonthlyAggregator, summarize_online_requests
from data_processing.allocation import infer_allocation_policy
from data_processing.errors import MissingFileError
from data_processing.loaders import to_frame
from data_processing.models import (
    AggregationResult, CombinedMonthRecord, EnrichedMonth, ForecastSeries, InsufficientForecast,
    OnlineRequestRecord, OnlineRequestSummary, Record, SlotMonthRecord, StaffMonthRecord,
)
from data_processing.sharing import SharePayload
from data_processing.validation import validate_headers
from .enrichment import enrich_months
from .forecasting import build_forecast_series

logger = logging.getLogger(__name__)

Rows = Optional[Union[pd.DataFrame, List[Dict[str, Any]]]]


class DashboardInputs(BaseModel):
    """Parsed uploads for one run. Row sets are DataFrames or lists of header-keyed dicts."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    appointments: Rows = None
    dna: Rows = None
    unused: Rows = None
    online_requests: Rows = None
    telephony_texts: List[str] = Field(default_factory=list)


class DashboardResult(Record):
    config: ProcessingConfig
    months: List[EnrichedMonth] = Field(default_factory=list)
    forecast: Union[ForecastSeries, InsufficientForecast]
    staff: List[StaffMonthRecord] = Field(default_factory=list)
    slots: List[SlotMonthRecord] = Field(default_factory=list)
    combined: List[CombinedMonthRecord] = Field(default_factory=list)
    online_records: List[OnlineRequestRecord] = Field(default_factory=list)
    online_summary: Optional[OnlineRequestSummary] = None
    allocation_policy: str
    warnings: List[str] = Field(default_factory=list)

    def to_share_payload(self) -> SharePayload:
        return SharePayload(
            processed_data=[m.to_dict() for m in self.months],
            config=self.config.model_dump(by_alias=True, mode='json'),
            forecast_data=self.forecast.to_dict(),
            raw_online_data=[r.to_dict() for r in self.online_records],
            raw_staff_data=[r.to_dict() for r in self.staff],
            raw_slot_data=[r.to_dict() for r in self.slots],
            raw_combined_data=[r.to_dict() for r in self.combined],
        )


class DashboardPipeline:
    """
    Runs validation, aggregation, KPI derivation and forecasting for one set of
    uploads. Header problems abort the run before any aggregation; gaps that
    only degrade the output (no telephony match, too few months to forecast)
    are collected in `warnings`.
    """
    def __init__(self, inputs: DashboardInputs, config: Optional[ProcessingConfig] = None):
        self.inputs = inputs
        self.config = config or ProcessingConfig()
        self.warnings: List[str] = []
        self.frames: Dict[str, pd.DataFrame] = {}
        self.policy: Optional[AllocationPolicy] = self.config.allocation_policy
        self.aggregation: Optional[AggregationResult] = None
        self.months: List[EnrichedMonth] = []
        self.forecast: Optional[Union[ForecastSeries, InsufficientForecast]] = None

    def _validate(self) -> 'DashboardPipeline':
        if self.inputs.appointments is None:
            raise MissingFileError("Appointments CSV")
        required = settings.REQUIRED_COLUMNS
        self.frames['appointments'] = to_frame(self.inputs.appointments)
        validate_headers(self.frames['appointments'], required['appointments'], 'Appointments CSV')

        for key, label in (('dna', 'DNA CSV'), ('unused', 'Unused CSV')):
            rows = getattr(self.inputs, key)
            if rows is not None:
                self.frames[key] = to_frame(rows)
                validate_headers(self.frames[key], required[key], label)

        if self.config.use_online and self.inputs.online_requests is not None:
            self.frames['online_requests'] = to_frame(self.inputs.online_requests)
            validate_headers(self.frames['online_requests'], required['online_requests'], 'Online Requests CSV',
                             settings.FORBIDDEN_ONLINE_COLUMNS)
        elif self.config.use_online:
            self.warnings.append("Online requests enabled but no online requests file was provided.")
        return self

    def _resolve_policy(self) -> 'DashboardPipeline':
        if self.policy is None:
            self.policy = infer_allocation_policy(self.frames.get('dna'), self.frames.get('unused'))
            logger.info(f"Allocation policy inferred from upload shape: {self.policy.value}")
        return self

    def _aggregate(self) -> 'DashboardPipeline':
        aggregator = (MonthlyAggregator(self.policy, self.config.unmatched_staff_policy, self.config.unmatched_month_policy)
                      .add_appointments(self.frames['appointments'])
                      .add_dna(self.frames.get('dna'))
                      .add_unused(self.frames.get('unused')))
        if 'online_requests' in self.frames:
            aggregator.add_online(self.frames['online_requests'])
        if self.config.use_telephony:
            if not self.inputs.telephony_texts:
                self.warnings.append("Telephony enabled but no telephony reports were provided.")
            aggregator.add_telephony(self.inputs.telephony_texts)
        self.aggregation = aggregator.result()

        if self.config.use_telephony and self.inputs.telephony_texts:
            missing = [b.month for b in self.aggregation.months if b.telephony is None]
            if missing:
                self.warnings.append(f"No telephony report matched: {', '.join(missing)}.")
        return self

    def _enrich(self) -> 'DashboardPipeline':
        self.months = enrich_months(self.aggregation, self.config)
        return self

    def _forecast(self) -> 'DashboardPipeline':
        self.forecast = build_forecast_series(self.months)
        if isinstance(self.forecast, InsufficientForecast):
            self.warnings.append(
                f"Forecast needs at least {settings.ANALYTICS.min_forecast_points} months of data "
                f"({self.forecast.count} available)."
            )
        return self

    def run(self) -> DashboardResult:
        logger.info(f"Starting dashboard processing for '{self.config.surgery_name or 'unnamed practice'}'.")
        (self
            ._validate()
            ._resolve_policy()
            ._aggregate()
            ._enrich()
            ._forecast()
        )
        for warning in self.warnings:
            logger.warning(warning)

        online_summary = summarize_online_requests(self.aggregation.online_records) if self.config.use_online else None
        logger.info(f"Dashboard processing complete: {len(self.months)} months, {len(self.warnings)} warnings.")
        return DashboardResult(
            config=self.config,
            months=self.months,
            forecast=self.forecast,
            staff=self.aggregation.staff,
            slots=self.aggregation.slots,
            combined=self.aggregation.combined,
            online_records=self.aggregation.online_records,
            online_summary=online_summary,
            allocation_policy=self.aggregation.allocation_policy,
            warnings=self.warnings,
        )


def process_dashboard(
    inputs: Union[DashboardInputs, Dict[str, Any]], config: Optional[Union[ProcessingConfig, Dict[str, Any]]] = None
) -> DashboardResult:
    """
    Public entry point: validates, aggregates and derives every monthly KPI
    for one practice's uploads. Each call builds fresh collections.
    """
    if not isinstance(inputs, DashboardInputs):
        inputs = DashboardInputs(**inputs)
    if config is not None and not isinstance(config, ProcessingConfig):
        config = ProcessingConfig.model_validate(config)
    return DashboardPipeline(inputs, config).run()
