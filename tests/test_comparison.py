# practice_pulse/tests/test_comparison.py
# NATIONAL / NETWORK COMPARISON TESTS

import pytest

from analytics import (
    PRACTICE_METRICS,
    calculate_practice_metrics,
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
from analytics.comparison import (
    ComparisonPractice,
    calculate_data_coverage,
    distribution_stats,
    extract_chart_data,
    format_metric_value,
    get_filtered_months,
    get_metric_config,
    get_overlapping_months,
    practice_from_payload,
)
from data_processing import ShareExpiredError


def _practice(share_id: str, name: str, rows: list) -> ComparisonPractice:
    return ComparisonPractice(share_id=share_id, surgery_name=name, processed_data=rows)


@pytest.fixture
def practices():
    return [
        _practice('AAA', 'North', [{'month': 'Jan-25', 'utilization': 80.0}, {'month': 'Feb-25', 'utilization': 90.0}]),
        _practice('BBB', 'South', [{'month': 'Feb-25', 'utilization': 90.0}]),
        _practice('CCC', 'East', [{'month': 'Jan-25', 'utilization': None}]),
    ]


# --- Statistics Tests ---
def test_outlier_detection():
    result = detect_outlier(100, {'mean': 50, 'std_dev': 10}, 1.5)
    assert result.is_outlier is True
    assert result.z_score == pytest.approx(5.0)
    assert result.direction == 'above'


def test_outlier_reports_direction_inside_threshold():
    result = detect_outlier(45, {'mean': 50, 'stdDev': 10})
    assert result.is_outlier is False
    assert result.direction == 'below'


def test_zero_spread_never_flags():
    result = detect_outlier(100, {'mean': 50, 'std_dev': 0})
    assert result.is_outlier is False
    assert result.z_score == 0.0
    assert detect_outlier(None, {'mean': 50, 'std_dev': 1}) is None


def test_percentile_rank():
    assert percentile_rank(30, [10, 20, 30, 40]) == {'percentile': 50.0, 'rank': 2, 'total': 4}
    assert percentile_rank(30, [10, 20, 30, 40], higher_is_better=False)['rank'] == 3
    assert percentile_rank(30, []) is None


def test_distribution_uses_population_std():
    stats = distribution_stats([80.0, 90.0, None, float('nan')])
    assert stats['mean'] == pytest.approx(85.0)
    assert stats['std_dev'] == pytest.approx(5.0)
    assert stats['count'] == 2


# --- Network Tests ---
def test_network_averages_use_each_practice_mean(practices):
    averages = network_averages(practices, ['Jan-25', 'Feb-25'])
    util = averages['utilization']
    assert util.count == 2
    assert util.mean == pytest.approx(87.5)
    assert [v.share_id for v in util.values] == ['AAA', 'BBB']
    assert 'gp_dna_pct' not in averages


def test_rankings_and_coverage(practices):
    ranked = get_rankings(practices, 'utilization', ['Jan-25', 'Feb-25'])
    assert [(r.share_id, r.rank) for r in ranked] == [('BBB', 1), ('AAA', 2)]
    assert ranked[1].month_count == 2

    coverage = calculate_data_coverage(practices[1], ['Jan-25', 'Feb-25'])
    assert coverage.covered == 1
    assert coverage.percentage == pytest.approx(50.0)
    assert coverage.months == [False, True]


def test_overlapping_months(practices):
    assert get_overlapping_months(practices[:2]) == ['Feb-25']


def test_similar_practices_within_band():
    selected = {'ods_code': 'A1', 'list_size': 10000}
    candidates = [{'ods_code': f'B{i}', 'list_size': 7000 + i * 1000} for i in range(8)]
    picked = find_similar_practices(selected, candidates, count=3, seed=7)
    assert len(picked) == 3
    assert all(7000 <= p['list_size'] <= 13000 for p in picked)
    assert picked == find_similar_practices(selected, candidates, count=3, seed=7)
    assert find_similar_practices({'ods_code': '', 'list_size': 1}, candidates) == []


def test_metric_formatting():
    assert format_metric_value(None) == 'N/A'
    assert format_metric_value(12.345, 'percent1') == '12.3%'
    assert format_metric_value(192, 'time') == '3m 12s'
    assert format_metric_value(1.5, 'ratio') == '1.50:1'


# --- Comparison Loading Tests ---
def test_failed_loads_are_reported_not_raised():
    def loader(share_id):
        if share_id == 'BBB':
            raise ShareExpiredError(share_id, 30)
        if share_id == 'CCC':
            raise KeyError(share_id)
        return {'config': {'surgeryName': 'North', 'odsCode': 'N01', 'population': 5600},
                'processedData': [{'month': 'Jan-25', 'gpApptPerDayPct': 1.2}]}

    result = load_comparison_practices(['CCC', 'AAA', 'BBB'], loader, max_workers=2)
    assert [p.share_id for p in result.practices] == ['AAA']
    assert [(f.share_id, f.status) for f in result.failures] == [('CCC', 'error'), ('BBB', 'expired')]
    assert result.practices[0].processed_data[0]['gp_appt_per_day_pct'] == 1.2


def test_practice_from_payload_defaults():
    practice = practice_from_payload('ZZZ', {})
    assert practice.surgery_name == 'Unknown'
    assert practice.processed_data == []


def test_month_filters_and_chart_series(practices):
    assert get_filtered_months(practices) == ['Jan-25', 'Feb-25']
    assert get_filtered_months(practices, 'specific', ['Feb-25', 'Jan-25']) == ['Jan-25', 'Feb-25']

    series = extract_chart_data(practices[:2], 'utilization', ['Jan-25', 'Feb-25'])
    assert [s.data for s in series] == [[80.0, 90.0], [None, 90.0]]


def test_metric_table_lookup():
    assert get_metric_config('gp_dna_pct').higher_is_better is False
    assert get_metric_config('unknown') is None


# --- Peer-Group Ranking Tests ---
@pytest.fixture
def peer_practices():
    def row(ods, icb, pcn, value):
        return {'ods_code': ods, 'icb_code': icb, 'icb_name': f'{icb} ICB', 'pcn_code': pcn,
                'pcn_name': f'{pcn} PCN', 'missed_call_pct': value}
    return [row('A1', 'I1', 'P1', 10.0), row('A2', 'I1', 'P1', 20.0), row('A3', 'I1', 'P2', 5.0),
            row('A4', 'I2', 'P3', 30.0), row('A5', 'I1', 'P1', None)]


def test_rank_within_national_icb_and_pcn(peer_practices):
    target = peer_practices[1]
    national = rank_within(target, peer_practices, 'missed_call_pct', higher_is_better=False)
    assert (national.rank, national.total) == (3, 4)
    assert national.percentile == pytest.approx(75.0)
    assert national.group_name is None

    icb = rank_within(target, peer_practices, 'missed_call_pct', higher_is_better=False, group='icb')
    assert (icb.rank, icb.total, icb.group_name) == (3, 3, 'I1 ICB')

    pcn = rank_within(target, peer_practices, 'missed_call_pct', higher_is_better=False, group='pcn')
    assert (pcn.rank, pcn.total, pcn.group_name) == (2, 2, 'P1 PCN')


def test_rank_within_follows_polarity(peer_practices):
    assert rank_within(peer_practices[1], peer_practices, 'missed_call_pct').rank == 2
    assert rank_within(peer_practices[2], peer_practices, 'missed_call_pct', higher_is_better=False).rank == 1


def test_unrankable_practices(peer_practices):
    assert peer_rankings(peer_practices[4], peer_practices, 'missed_call_pct') == {}
    no_pcn = {**peer_practices[3], 'pcn_code': ''}
    assert rank_within(no_pcn, peer_practices, 'missed_call_pct', group='pcn') is None
    assert set(peer_rankings(peer_practices[0], peer_practices, 'missed_call_pct')) == {'national', 'icb', 'pcn'}


# --- National Snapshot Polarity Tests ---
def test_practice_metric_polarity():
    assert get_metric_config('dna_rate', PRACTICE_METRICS).higher_is_better is False
    assert get_metric_config('gp_appts_per_1000', PRACTICE_METRICS).higher_is_better is True
    assert get_metric_config('telephone_pct', PRACTICE_METRICS).higher_is_better is None
    assert get_metric_config('dna_rate') is None


@pytest.fixture
def snapshots():
    return [
        {'dna_rate': 4.0, 'missed_calls_per_1000': 12.0, 'has_telephony_data': True, 'gp_appts_per_1000': 50.0},
        {'dna_rate': 6.0, 'missed_calls_per_1000': 99.0, 'has_telephony_data': False, 'gp_appts_per_1000': 70.0},
        {'dna_rate': None, 'missed_calls_per_1000': 20.0, 'has_telephony_data': True, 'gp_appts_per_1000': 60.0},
    ]


def test_national_metric_arrays(snapshots):
    arrays = collect_national_metric_arrays(snapshots)
    assert arrays['dna_rate'] == [4.0, 6.0]
    # Only practices reporting telephony count towards call metrics.
    assert arrays['missed_calls_per_1000'] == [12.0, 20.0]
    assert arrays['gp_appts_per_1000'] == [50.0, 70.0, 60.0]
    assert arrays['telephone_pct'] == []


def test_snapshot_ranked_with_metric_polarity(snapshots):
    positions = rank_practice_metrics(snapshots[0], collect_national_metric_arrays(snapshots))
    assert positions['dna_rate'] == {'percentile': 0.0, 'rank': 1, 'total': 2, 'higher_is_better': False}
    assert positions['missed_calls_per_1000']['rank'] == 1
    assert positions['gp_appts_per_1000']['rank'] == 3
    assert 'telephone_pct' not in positions


def test_snapshot_from_practice_metrics():
    snapshot = calculate_practice_metrics({'gp_appointments': 1000, 'dna': 50}, None, None, population=10000)
    arrays = collect_national_metric_arrays([snapshot])
    assert arrays['gp_appts_per_1000'] == [pytest.approx(100.0)]
    assert arrays['missed_calls_per_1000'] == []
