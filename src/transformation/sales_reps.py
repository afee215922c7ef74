"""
Sales rep (gestor) breakdown of joined orders.
"""
import logging

import pandas as pd

from transformation.grouping import customer_key, group_orders

logger = logging.getLogger(__name__)

UNASSIGNED_REP = 'Sin Asignar'


def filter_by_sales_rep(orders, zone=None, rep_name=None):
    """Orders attributed to a zone and/or rep. With neither given, nothing is selected."""
    if zone is None and rep_name is None:
        return []
    return [
        order for order in orders
        if (zone is None or order.sales_rep_zone == zone)
        and (rep_name is None or order.sales_rep_name == rep_name)
    ]


def sales_rep_metrics(orders):
    """Headline numbers for a set of orders: customers, orders, sales, sales per customer."""
    customers = group_orders(orders).customers
    total_sales = sum(order.total_amount or 0.0 for order in orders)
    return {
        'total_customers': len(customers),
        'total_orders': len(orders),
        'total_sales': total_sales,
        'avg_per_customer': total_sales / len(customers) if customers else 0.0
    }


def customer_rep_history(orders):
    """
    Order count per sales rep for every customer, over the full order history.

    Returns:
        dict: customer key -> {'reps': {rep name: orders}, 'total_reps': int}
    """
    rows = []
    for order in orders:
        key = customer_key(order)
        if key:
            rows.append((key, order.sales_rep_name or UNASSIGNED_REP))
    if not rows:
        return {}

    counts = pd.DataFrame(rows, columns=['customer', 'rep']).groupby(['customer', 'rep'], sort=False).size()

    history = {}
    for (customer, rep), count in counts.items():
        entry = history.setdefault(customer, {'reps': {}, 'total_reps': 0})
        entry['reps'][rep] = int(count)
        entry['total_reps'] += 1
    return history


def shared_customers(orders):
    """Keys of customers who bought through more than one sales rep."""
    history = customer_rep_history(orders)
    shared = [key for key, entry in history.items() if entry['total_reps'] > 1]
    if shared:
        logger.info(f"Found {len(shared)} customers served by more than one sales rep")
    return shared
