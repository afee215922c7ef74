"""
Tests for transformation.rfm module.
"""
import pytest
import pandas as pd

from transformation.grouping import group_by_customer
from transformation.rfm import (
    FALLBACK_SCORE,
    OTHERS,
    calculate_rfm,
    quintile_cut_points,
    score_rfm,
    classify_segment,
    get_segment_info,
    perform_rfm_analysis,
)

REFERENCE_DATE = pd.Timestamp('2024-04-01')


@pytest.fixture
def five_customers(order_factory):
    """Five customers with distinct spend, one order each."""
    orders = [
        order_factory(str(i), f'2024-03-{i:02d}', [('SKU', '', 1, 100.0 * i)], email=f'c{i}@example.com')
        for i in range(1, 6)
    ]
    return group_by_customer(orders)


class TestCalculateRfm:
    """Tests for calculate_rfm function."""

    def test_raw_values(self, sample_orders):
        scores = calculate_rfm(group_by_customer(sample_orders), REFERENCE_DATE)
        ana = scores[0]
        assert ana.recency_days == 29
        assert ana.frequency == 2
        assert ana.monetary == pytest.approx(170.0)

    def test_no_valid_dates(self, order_factory):
        customers = group_by_customer([order_factory('1', None, [('A', '', 1, 5.0)], email='a@x.com')])
        assert calculate_rfm(customers, REFERENCE_DATE)[0].recency_days is None

    def test_delivery_only_orders_excluded_from_frequency(self, order_factory):
        customers = group_by_customer([
            order_factory('1', '2024-03-01', [('A', '', 1, 5.0)], email='a@x.com'),
            order_factory('2', '2024-03-02', [('20000025', '', 1, 2.0)], email='a@x.com'),
        ])
        assert calculate_rfm(customers, REFERENCE_DATE)[0].frequency == 2
        assert calculate_rfm(customers, REFERENCE_DATE, delivery_sku='20000025')[0].frequency == 1

    def test_empty(self):
        assert calculate_rfm([], REFERENCE_DATE) == []


class TestScoreRfm:
    """Tests for quintile scoring."""

    def test_cut_points(self):
        assert quintile_cut_points([50, 10, 40, 20, 30]) == [20, 30, 40, 50]

    def test_monetary_spans_all_scores(self, five_customers):
        scores = score_rfm(calculate_rfm(five_customers, REFERENCE_DATE))
        assert sorted(score.monetary_score for score in scores) == [1, 2, 3, 4, 5]

    def test_recency_scored_inversely(self, five_customers):
        scores = score_rfm(calculate_rfm(five_customers, REFERENCE_DATE))
        by_recency = sorted(scores, key=lambda score: score.recency_days)
        recency_scores = [score.recency_score for score in by_recency]
        assert recency_scores[0] == 5
        assert recency_scores == sorted(recency_scores, reverse=True)
        assert recency_scores[-1] < recency_scores[0]

    def test_scores_in_range(self, sample_orders):
        scores = score_rfm(calculate_rfm(group_by_customer(sample_orders), REFERENCE_DATE))
        for score in scores:
            assert 1 <= score.recency_score <= 5
            assert 1 <= score.frequency_score <= 5
            assert 1 <= score.monetary_score <= 5

    def test_single_customer_fallback(self, five_customers):
        scores = score_rfm(calculate_rfm(five_customers[:1], REFERENCE_DATE))
        score = scores[0]
        assert (score.recency_score, score.frequency_score, score.monetary_score) == (FALLBACK_SCORE,) * 3
        assert score.total_score == 9

    def test_missing_recency_scores_lowest(self, five_customers, order_factory):
        undated = group_by_customer([order_factory('9', None, [('A', '', 1, 1.0)], email='z@x.com')])
        scores = score_rfm(calculate_rfm(five_customers + undated, REFERENCE_DATE))
        assert scores[-1].recency_score == 1


class TestClassifySegment:
    @pytest.mark.parametrize('triple, segment', [
        ((5, 5, 5), 'Champions'),
        ((3, 4, 3), 'Loyal Customers'),
        ((5, 3, 2), 'Potential Loyalists'),
        ((4, 1, 5), 'New Customers'),
        ((3, 3, 3), 'At Risk'),
        ((1, 5, 5), "Can't Lose Them"),
        ((2, 1, 2), 'Hibernating'),
        ((1, 1, 1), 'Lost'),
        ((1, 1, 5), OTHERS),
    ])
    def test_rules(self, triple, segment):
        assert classify_segment(*triple) == segment

    def test_first_match_wins(self):
        """(4, 4, 4) satisfies both Champions and Loyal Customers."""
        assert classify_segment(4, 4, 4) == 'Champions'

    def test_segment_info(self):
        assert get_segment_info('Champions')['name'] == 'Campeones'
        assert get_segment_info('Unknown') == get_segment_info(OTHERS)


class TestPerformRfmAnalysis:
    def test_analysis(self, sample_orders):
        results = perform_rfm_analysis(group_by_customer(sample_orders), REFERENCE_DATE)
        assert results['total_customers'] == 3
        assert sum(stat['count'] for stat in results['stats'].values()) == 3
        assert results['total_segments'] == len(results['stats'])
        assert sum(stat['percentage'] for stat in results['stats'].values()) == pytest.approx(100.0, abs=0.2)

    def test_empty_population(self):
        results = perform_rfm_analysis([], REFERENCE_DATE)
        assert results['scores'] == []
        assert results['stats'] == {}
        assert results['total_segments'] == 0

    def test_single_customer(self, five_customers):
        results = perform_rfm_analysis(five_customers[:1], REFERENCE_DATE)
        assert results['scores'][0].segment == 'At Risk'
