# practice_pulse/analytics/comparison.py
# NATIONAL / NETWORK COMPARISON ENGINE

"""
Ranks one practice against a comparison population of practices: network
mean / standard deviation, z-score outlier flags, percentile position and
rankings (nationally or within an ICB or PCN), plus the parallel loader used
to assemble a comparison set from shared dashboards.
"""

import logging
import math
import random
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Literal, Mapping, NamedTuple, Optional, Sequence, Tuple

import numpy as np
from pydantic import Field

from config import settings
from data_processing.errors import ShareExpiredError
from data_processing.helpers import sort_month_keys
from data_processing.models import EnrichedMonth, Record

logger = logging.getLogger(__name__)

MonthFilter = Literal['all', 'overlapping', 'specific']
PeerGroup = Literal['national', 'icb', 'pcn']
_FIELD_BY_ALIAS = {field.alias or name: name for name, field in EnrichedMonth.model_fields.items()}


class ComparisonMetric(NamedTuple):
    id: str
    label: str
    format: str
    higher_is_better: Optional[bool]
    # Snapshot flag the practice must carry for its value to count nationally.
    requires: Optional[str] = None


COMPARISON_METRICS = (
    ComparisonMetric('gp_triage_capacity_per_day_pct', 'GP Capacity/Day', 'percent2', True),
    ComparisonMetric('gp_appt_per_day_pct', 'GP Appts/Day', 'percent2', True),
    ComparisonMetric('all_appt_per_day_pct', 'All Appts/Day', 'percent2', True),
    ComparisonMetric('utilization', 'Utilisation', 'percent1', True),
    ComparisonMetric('gp_utilization', 'GP Utilisation', 'percent1', True),
    ComparisonMetric('gp_dna_pct', 'GP DNA Rate', 'percent1', False),
    ComparisonMetric('dna_pct', 'All DNA Rate', 'percent1', False),
    ComparisonMetric('gp_unused_pct', 'GP Unused Capacity', 'percent1', False),
    ComparisonMetric('all_unused_pct', 'All Unused Capacity', 'percent1', False),
    ComparisonMetric('conversion_ratio', 'Conversion Ratio', 'decimal2', True),
    ComparisonMetric('gp_conversion_ratio', 'GP Conversion Ratio', 'decimal2', True),
    ComparisonMetric('missed_from_queue_ex_repeat_pct', 'Missed Call Rate', 'percent1', False),
    ComparisonMetric('avg_queue_time_answered', 'Avg Queue Time', 'time', False),
)

# Keys emitted by `metrics.calculate_practice_metrics`. None polarity marks
# mix metrics that depend on practice strategy.
PRACTICE_METRICS = (
    ComparisonMetric('gp_appt_per_day_pct', 'GP Appts/Day', 'percent2', True),
    ComparisonMetric('gp_appt_or_oc_per_day_pct', 'GP Appts or Medical OC/Day', 'percent2', True),
    ComparisonMetric('other_appt_per_day_pct', 'Other Staff/Day', 'percent2', True),
    ComparisonMetric('total_appt_per_day_pct', 'All Appts/Day', 'percent2', True),
    ComparisonMetric('gp_appts_per_1000', 'GP Appts/1000', 'decimal1', True),
    ComparisonMetric('other_appts_per_1000', 'Other Appts/1000', 'decimal1', True),
    ComparisonMetric('total_appts_per_1000', 'Total Appts/1000', 'decimal1', True),
    ComparisonMetric('gp_appts_per_call', 'GP Appts/Call', 'decimal2', True),
    ComparisonMetric('total_appts_per_call', 'Appts/Call', 'decimal2', True),
    ComparisonMetric('dna_rate', 'DNA Rate', 'percent1', False),
    ComparisonMetric('calls_per_1000', 'Inbound Calls/1000', 'decimal1', None, 'has_telephony_data'),
    ComparisonMetric('missed_calls_per_1000', 'Missed Calls/1000', 'decimal1', False, 'has_telephony_data'),
    ComparisonMetric('face_to_face_pct', 'Face-to-Face %', 'percent1', None),
    ComparisonMetric('telephone_pct', 'Telephone %', 'percent1', None),
    ComparisonMetric('video_pct', 'Video %', 'percent1', None),
    ComparisonMetric('home_visit_pct', 'Home Visit %', 'percent1', None),
)


def get_metric_config(metric_id: str, table: Sequence[ComparisonMetric] = COMPARISON_METRICS) -> Optional[ComparisonMetric]:
    return next((m for m in table if m.id == metric_id), None)


# --- Records ---

class ComparisonPractice(Record):
    """A practice in a comparison set: its identity plus its enriched months as plain dicts."""
    share_id: str
    surgery_name: str = 'Unknown'
    ods_code: str = ''
    population: Optional[float] = None
    processed_data: List[Dict[str, Any]] = Field(default_factory=list)

    def month_values(self, metric: str, months: Sequence[str]) -> List[float]:
        wanted = set(months)
        return [float(row[metric]) for row in self.processed_data
                if row.get('month') in wanted and _is_number(row.get(metric))]

    def average(self, metric: str, months: Sequence[str]) -> Optional[float]:
        values = self.month_values(metric, months)
        return float(np.mean(values)) if values else None


class PracticeValue(Record):
    share_id: str
    surgery_name: str
    value: float


class NetworkStats(Record):
    mean: float
    std_dev: float
    min: float
    max: float
    count: int
    values: List[PracticeValue] = Field(default_factory=list)


class OutlierResult(Record):
    is_outlier: bool
    z_score: float
    direction: Optional[str] = None
    deviations: float = 0.0


class RankedPractice(Record):
    share_id: str
    surgery_name: str
    ods_code: str = ''
    population: Optional[float] = None
    value: float
    month_count: int
    rank: int


class DataCoverage(Record):
    covered: int
    total: int
    percentage: float
    months: List[bool]


class ChartSeries(Record):
    share_id: str
    surgery_name: str
    ods_code: str = ''
    data: List[Optional[float]]


class LoadFailure(Record):
    share_id: str
    status: Literal['expired', 'error']
    error: str


class ComparisonLoadResult(Record):
    practices: List[ComparisonPractice] = Field(default_factory=list)
    failures: List[LoadFailure] = Field(default_factory=list)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


# --- Distribution Statistics ---

def distribution_stats(values: Sequence[float]) -> Optional[Dict[str, float]]:
    """Mean, population standard deviation, min and max of the finite values."""
    clean = np.asarray([v for v in values if _is_number(v)], dtype=float)
    if clean.size == 0:
        return None
    return {'mean': float(clean.mean()), 'std_dev': float(clean.std(ddof=0)),
            'min': float(clean.min()), 'max': float(clean.max()), 'count': int(clean.size)}


def detect_outlier(value: Optional[float], network: Optional[Mapping[str, float]], threshold: Optional[float] = None) -> Optional[OutlierResult]:
    """
    z = (value - mean) / std_dev; an outlier when |z| > threshold. A zero
    standard deviation never flags (z is reported as 0).
    """
    if value is None or not network:
        return None
    if isinstance(network, Record):
        network = network.model_dump()
    threshold = settings.ANALYTICS.outlier_z_threshold if threshold is None else threshold
    std_dev = network.get('std_dev', network.get('stdDev', 0))
    if not std_dev:
        return OutlierResult(is_outlier=False, z_score=0.0, direction=None, deviations=0.0)
    z = (value - network['mean']) / std_dev
    return OutlierResult(is_outlier=abs(z) > threshold, z_score=z, direction='above' if z > 0 else 'below', deviations=abs(z))


def percentile_rank(value: Optional[float], population: Sequence[float], higher_is_better: bool = True) -> Optional[Dict[str, float]]:
    """
    Percentile = share of the population strictly below the value (x100).
    Rank is 1-indexed: descending order when higher is better, else ascending.
    """
    values = [v for v in population if _is_number(v)]
    if value is None or not values:
        return None
    below = sum(1 for v in values if v < value)
    above = sum(1 for v in values if v > value)
    return {
        'percentile': below / len(values) * 100,
        'rank': (above if higher_is_better else below) + 1,
        'total': len(values),
    }


# --- Month Filters ---

def get_all_months(practices: Sequence[ComparisonPractice]) -> List[str]:
    return sort_month_keys(row['month'] for p in practices for row in p.processed_data if row.get('month'))


def get_overlapping_months(practices: Sequence[ComparisonPractice]) -> List[str]:
    if not practices:
        return []
    return [m for m in get_all_months(practices)
            if all(any(row.get('month') == m for row in p.processed_data) for p in practices)]


def get_filtered_months(practices: Sequence[ComparisonPractice], mode: MonthFilter = 'all', selected: Sequence[str] = ()) -> List[str]:
    if mode == 'overlapping':
        return get_overlapping_months(practices)
    if mode == 'specific':
        return sort_month_keys(selected)
    return get_all_months(practices)


# --- Network Calculations ---

def network_averages(practices: Sequence[ComparisonPractice], months: Sequence[str]) -> Dict[str, NetworkStats]:
    """Per comparison metric: stats over each practice's average for the selected months."""
    averages = {}
    for metric in COMPARISON_METRICS:
        values = []
        for practice in practices:
            avg = practice.average(metric.id, months)
            if avg is not None:
                values.append(PracticeValue(share_id=practice.share_id, surgery_name=practice.surgery_name, value=avg))
        stats = distribution_stats([v.value for v in values])
        if stats:
            averages[metric.id] = NetworkStats(values=values, **stats)
    return averages


def get_rankings(practices: Sequence[ComparisonPractice], metric: str, months: Sequence[str], direction: str = 'desc') -> List[RankedPractice]:
    wanted = set(months)
    rows = []
    for practice in practices:
        avg = practice.average(metric, months)
        if avg is None:
            continue
        rows.append(dict(
            share_id=practice.share_id, surgery_name=practice.surgery_name, ods_code=practice.ods_code,
            population=practice.population, value=avg,
            month_count=sum(1 for r in practice.processed_data if r.get('month') in wanted),
        ))
    rows.sort(key=lambda r: r['value'], reverse=(direction == 'desc'))
    return [RankedPractice(rank=i + 1, **r) for i, r in enumerate(rows)]


def calculate_data_coverage(practice: ComparisonPractice, all_months: Sequence[str]) -> DataCoverage:
    present = {row.get('month') for row in practice.processed_data}
    flags = [m in present for m in all_months]
    covered = sum(flags)
    return DataCoverage(covered=covered, total=len(all_months),
                        percentage=covered / len(all_months) * 100 if all_months else 0.0, months=flags)


def extract_chart_data(practices: Sequence[ComparisonPractice], metric: str, months: Sequence[str]) -> List[ChartSeries]:
    series = []
    for practice in practices:
        by_month = {row.get('month'): row for row in practice.processed_data}
        data = [by_month[m].get(metric) if m in by_month else None for m in months]
        series.append(ChartSeries(share_id=practice.share_id, surgery_name=practice.surgery_name,
                                  ods_code=practice.ods_code, data=data))
    return series


def find_similar_practices(
    selected: Mapping[str, Any],
    candidates: Sequence[Mapping[str, Any]],
    count: Optional[int] = None,
    seed: Optional[int] = None,
) -> List[Mapping[str, Any]]:
    """
    Up to `count` practices whose list size is within the configured band
    (default +/-30%) of the selected practice, picked at random for variety.
    Practices are mappings with `ods_code` and `list_size`.
    """
    count = count or settings.ANALYTICS.similar_practice_count
    band = settings.ANALYTICS.similar_practice_band
    ods, size = selected.get('ods_code') or '', selected.get('list_size') or 0
    if not ods or not size:
        return []
    low, high = size * (1 - band), size * (1 + band)
    pool = [p for p in candidates if p.get('ods_code') != ods and low <= (p.get('list_size') or 0) <= high]
    random.Random(seed).shuffle(pool)
    return pool[:count]


def format_metric_value(value: Optional[float], fmt: str = 'number') -> str:
    if value is None:
        return 'N/A'
    if fmt == 'percent1':
        return f"{value:.1f}%"
    if fmt == 'percent2':
        return f"{value:.2f}%"
    if fmt == 'decimal1':
        return f"{value:.1f}"
    if fmt == 'decimal2':
        return f"{value:.2f}"
    if fmt == 'integer':
        return f"{round(value):,}"
    if fmt == 'ratio':
        return f"{value:.2f}:1"
    if fmt == 'time':
        return f"{int(value // 60)}m {round(value % 60)}s"
    if fmt == 'number':
        return f"{value:,}"
    return f"{value:.2f}"


# --- Peer-Group Ranking ---

PEER_GROUP_KEYS: Dict[str, Optional[Tuple[str, str]]] = {
    'national': None,
    'icb': ('icb_code', 'icb_name'),
    'pcn': ('pcn_code', 'pcn_name'),
}


class PeerRanking(Record):
    group: PeerGroup
    group_name: Optional[str] = None
    rank: int
    total: int
    percentile: float
    value: float


def _as_mapping(practice: Any) -> Mapping[str, Any]:
    return practice.model_dump() if isinstance(practice, Record) else practice


def rank_within(
    practice: Any,
    practices: Sequence[Any],
    metric: str,
    higher_is_better: bool = True,
    group: PeerGroup = 'national',
) -> Optional[PeerRanking]:
    """
    Rank of a practice on `metric` among its peers: every practice nationally,
    or those sharing its ICB or PCN code. Practices are mappings (or records)
    keyed by `ods_code`, `icb_code`, `pcn_code` and the metric.

    Rank 1 is the best value for the metric's polarity, and `percentile` is
    rank / total x 100, so lower percentiles sit nearer the top. Returns None
    when the practice has no value for the metric or no group code.
    """
    target = _as_mapping(practice)
    keys = PEER_GROUP_KEYS[group]
    if keys is not None and not target.get(keys[0]):
        return None
    peers = [_as_mapping(p) for p in practices]
    if keys is not None:
        peers = [p for p in peers if p.get(keys[0]) == target[keys[0]]]
    peers = [p for p in peers if _is_number(p.get(metric))]
    peers.sort(key=lambda p: p[metric], reverse=higher_is_better)

    ods = target.get('ods_code')
    position = next((i for i, p in enumerate(peers) if p.get('ods_code') == ods), None)
    if position is None:
        return None
    return PeerRanking(
        group=group,
        group_name=(target.get(keys[1]) or None) if keys is not None else None,
        rank=position + 1,
        total=len(peers),
        percentile=(position + 1) / len(peers) * 100,
        value=float(peers[position][metric]),
    )


def peer_rankings(practice: Any, practices: Sequence[Any], metric: str, higher_is_better: bool = True) -> Dict[str, PeerRanking]:
    """National, ICB and PCN rankings; groups the practice cannot be ranked in are left out."""
    rankings = {}
    for group in PEER_GROUP_KEYS:
        ranking = rank_within(practice, practices, metric, higher_is_better, group)
        if ranking is not None:
            rankings[group] = ranking
    return rankings


# --- National Snapshot Distributions ---

def collect_national_metric_arrays(snapshots: Sequence[Mapping[str, Any]]) -> Dict[str, List[float]]:
    """
    The national value array for every `PRACTICE_METRICS` entry, built from
    `calculate_practice_metrics` snapshots. Missing or non-finite values are
    left out, as are practices without the data source a metric requires.
    """
    arrays = {}
    for metric in PRACTICE_METRICS:
        eligible = [s for s in snapshots if metric.requires is None or s.get(metric.requires)]
        arrays[metric.id] = [float(s[metric.id]) for s in eligible if _is_number(s.get(metric.id))]
    return arrays


def rank_practice_metrics(snapshot: Mapping[str, Any], national_arrays: Mapping[str, Sequence[float]]) -> Dict[str, Dict[str, Any]]:
    """
    Percentile position of one snapshot on every metric that has a national
    array, ranked with the metric's own polarity. Neutral metrics are ranked
    highest first and keep `higher_is_better` as None.
    """
    positions = {}
    for metric in PRACTICE_METRICS:
        value = snapshot.get(metric.id)
        if not _is_number(value):
            continue
        ranked = percentile_rank(value, national_arrays.get(metric.id) or [], metric.higher_is_better is not False)
        if ranked is not None:
            positions[metric.id] = {**ranked, 'higher_is_better': metric.higher_is_better}
    return positions


# --- Comparison Set Loading ---

def load_comparison_practices(
    share_ids: Sequence[str],
    loader: Callable[[str], Mapping[str, Any]],
    max_workers: Optional[int] = None,
) -> ComparisonLoadResult:
    """
    Loads every shared dashboard in parallel. A practice that fails to load is
    reported in `failures` ('expired' or 'error') and left out; the rest of the
    comparison proceeds with whatever loaded.

    `loader(share_id)` returns a share payload mapping (see
    `data_processing.sharing.load_share`).
    """
    result = ComparisonLoadResult()
    if not share_ids:
        return result
    workers = max_workers or settings.SHARING.comparison_max_workers
    loaded: Dict[str, ComparisonPractice] = {}

    with ThreadPoolExecutor(max_workers=min(workers, len(share_ids))) as pool:
        futures = {pool.submit(loader, share_id): share_id for share_id in share_ids}
        for future in as_completed(futures):
            share_id = futures[future]
            try:
                payload = future.result()
            except ShareExpiredError as e:
                result.failures.append(LoadFailure(share_id=share_id, status='expired', error=str(e)))
                continue
            except Exception as e:
                logger.warning(f"Comparison practice '{share_id}' failed to load: {e}")
                result.failures.append(LoadFailure(share_id=share_id, status='error', error=str(e)))
                continue
            loaded[share_id] = practice_from_payload(share_id, payload)

    result.practices = [loaded[s] for s in share_ids if s in loaded]
    result.failures.sort(key=lambda f: list(share_ids).index(f.share_id))
    if len(result.practices) < 2:
        logger.info(f"Only {len(result.practices)} comparison practices loaded; network statistics will be limited.")
    return result


def practice_from_payload(share_id: str, payload: Mapping[str, Any]) -> ComparisonPractice:
    config = payload.get('config') or {}
    rows = [_snake_keys(row) for row in payload.get('processedData') or payload.get('processed_data') or []]
    return ComparisonPractice(
        share_id=share_id,
        surgery_name=config.get('surgeryName') or config.get('surgery_name') or 'Unknown',
        ods_code=config.get('odsCode') or config.get('ods_code') or '',
        population=config.get('population'),
        processed_data=rows,
    )


def _snake_keys(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {_FIELD_BY_ALIAS.get(key, key): value for key, value in row.items()}
