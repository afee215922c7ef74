"""
Tests for transformation.sales_reps module.
"""
import pytest

from transformation.sales_reps import (
    UNASSIGNED_REP,
    filter_by_sales_rep,
    sales_rep_metrics,
    customer_rep_history,
    shared_customers,
)


class TestFilterBySalesRep:
    def test_nothing_selected(self, sample_orders):
        assert filter_by_sales_rep(sample_orders) == []

    def test_by_zone(self, sample_orders):
        orders = filter_by_sales_rep(sample_orders, zone='Norte')
        assert [order.order_id for order in orders] == ['2', '3']

    def test_by_rep(self, sample_orders):
        orders = filter_by_sales_rep(sample_orders, rep_name='Karen Lino')
        assert [order.order_id for order in orders] == ['1']

    def test_zone_and_rep(self, sample_orders):
        assert filter_by_sales_rep(sample_orders, zone='Centro', rep_name='Evelyn Maldonado') == []


class TestSalesRepMetrics:
    def test_metrics(self, sample_orders):
        metrics = sales_rep_metrics(filter_by_sales_rep(sample_orders, zone='Norte'))
        assert metrics['total_customers'] == 2
        assert metrics['total_orders'] == 2
        assert metrics['total_sales'] == pytest.approx(100.0)
        assert metrics['avg_per_customer'] == pytest.approx(50.0)

    def test_empty(self):
        assert sales_rep_metrics([])['avg_per_customer'] == 0.0


class TestCustomerRepHistory:
    def test_history(self, sample_orders):
        history = customer_rep_history(sample_orders)
        assert history['ana@example.com'] == {
            'reps': {'Karen Lino': 1, 'Evelyn Maldonado': 1},
            'total_reps': 2
        }
        assert history['Fabcia Reyes']['reps'] == {UNASSIGNED_REP: 1}

    def test_unattributed_orders_left_out(self, sample_orders):
        assert len(customer_rep_history(sample_orders)) == 3

    def test_shared_customers(self, sample_orders):
        assert shared_customers(sample_orders) == ['ana@example.com']

    def test_empty(self):
        assert customer_rep_history([]) == {}
