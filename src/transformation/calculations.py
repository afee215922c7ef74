"""
Business metrics calculations for data pipeline.
"""
import logging
import traceback
from dataclasses import replace

import pandas as pd

from transformation.records import MonthBucket, DayContribution

logger = logging.getLogger(__name__)

MAX_TIMELINE_MONTHS = 36

SPANISH_MONTHS = ['ene', 'feb', 'mar', 'abr', 'may', 'jun', 'jul', 'ago', 'sept', 'oct', 'nov', 'dic']

REPORT_BASE_COLUMNS = [
    'Cliente',
    'Correo electrónico del cliente',
    'Celular del cliente',
    'Identidad',
    'Total Gastado'
]


def month_timeline(start, end, max_months=MAX_TIMELINE_MONTHS):
    """Monthly periods from the month of start to the month of end, capped at max_months."""
    periods = pd.period_range(
        start=pd.Timestamp(start).to_period('M'),
        end=pd.Timestamp(end).to_period('M'),
        freq='M'
    )
    return periods[:max_months]


def build_month_buckets(orders, start=None, end=None, max_months=MAX_TIMELINE_MONTHS):
    """
    Bucket orders by calendar month.

    One bucket per month between start and end (defaulting to the earliest
    and latest valid order dates), months without orders included. Orders
    with invalid dates or outside the capped timeline are left out.

    Returns:
        list: MonthBucket per month, oldest first
    """
    dated = [order for order in orders if order.has_valid_date]
    if start is None:
        if not dated:
            return []
        start = min(order.order_date for order in dated)
    if end is None:
        if not dated:
            return []
        end = max(order.order_date for order in dated)

    buckets = {}
    for period in month_timeline(start, end, max_months):
        key = period.strftime('%Y-%m')
        buckets[key] = MonthBucket(key=key, date=period.to_timestamp())

    for order in dated:
        bucket = buckets.get(order.order_date.strftime('%Y-%m'))
        if bucket is None:
            continue
        bucket.count += 1
        bucket.total += order.total_amount
        bucket.items.extend(order.items)

    return list(buckets.values())


def build_daily_contributions(orders, delivery_sku):
    """
    Daily purchase activity with the delivery service line taken out.

    Orders with no items besides the delivery line are skipped. For the
    rest, the delivery line amount is subtracted from the order total.

    Returns:
        dict: 'YYYY-MM-DD' -> DayContribution, in date order
    """
    contributions = {}

    for order in orders:
        if not order.has_valid_date:
            continue

        items = [item for item in order.items if item.sku != delivery_sku]
        if not items:
            continue

        delivery_charge = sum(item.line_total for item in order.items if item.sku == delivery_sku)
        amount = (order.total_amount or 0.0) - delivery_charge

        key = order.order_date.strftime('%Y-%m-%d')
        day = contributions.get(key)
        if day is None:
            day = contributions[key] = DayContribution(key=key)

        day.count += 1
        day.amount += amount
        day.orders.append(replace(order, items=items, total_amount=amount))

    return dict(sorted(contributions.items()))


def contribution_level(count):
    """Heatmap intensity 0-4 for a number of orders."""
    if count <= 0:
        return 0
    if count == 1:
        return 1
    if count <= 3:
        return 2
    if count <= 5:
        return 3
    return 4


def top_skus(orders, exclude_sku=None):
    """
    Identify top selling SKUs by quantity.

    SKUs are keyed by code, or by description when the code is empty.
    """
    try:
        rows = [
            {
                'sku': item.sku_key,
                'description': item.description or item.sku_key,
                'quantity': item.quantity,
                'revenue': item.line_total
            }
            for order in orders
            for item in order.items
            if item.sku_key and not (exclude_sku is not None and item.sku == exclude_sku)
        ]
        if not rows:
            return pd.DataFrame(columns=['sku', 'description', 'total_quantity', 'total_revenue'])

        top_items_df = pd.DataFrame(rows).groupby('sku', sort=False).agg(
            description=('description', 'first'),
            total_quantity=('quantity', 'sum'),
            total_revenue=('revenue', 'sum')
        ).reset_index()

        # Sort by quantity sold, first seen wins ties
        top_items_df = top_items_df.sort_values('total_quantity', ascending=False, kind='stable')

        logger.info(f"Identified {len(top_items_df)} distinct SKUs")
        return top_items_df.reset_index(drop=True)
    except Exception as e:
        logger.error(f"Error identifying top selling SKUs: {str(e)}")
        logger.error(traceback.format_exc())
        raise


def monthly_order_counts(orders):
    """Number of orders per month that has orders, oldest first."""
    dates = pd.Series(
        [order.order_date for order in orders if order.has_valid_date],
        dtype='datetime64[ns]'
    )
    if dates.empty:
        return pd.DataFrame(columns=['month', 'count'])

    counts = dates.dt.to_period('M').value_counts().sort_index()
    return pd.DataFrame({
        'month': counts.index.strftime('%Y-%m'),
        'count': counts.values
    })


def _sku_matches(sku, terms):
    return not terms or any(term in sku.lower() for term in terms)


def monthly_sku_quantities(customers, terms=None, exclude_sku=None):
    """
    Quantity bought per (customer key, month, SKU).

    Args:
        customers (list): CustomerAggregate list
        terms (list): Lowercased SKU fragments; only matching SKUs are counted
        exclude_sku (str): SKU left out entirely, e.g. the delivery service

    Returns:
        Series: Quantities indexed by (customer, month, sku)
    """
    rows = []
    for customer in customers:
        for order in customer.orders:
            if not order.has_valid_date:
                continue
            month = order.order_date.strftime('%Y-%m')
            for item in order.items:
                if exclude_sku is not None and item.sku == exclude_sku:
                    continue
                if _sku_matches(item.sku, terms):
                    rows.append((customer.key, month, item.sku, item.quantity))

    df = pd.DataFrame(rows, columns=['customer', 'month', 'sku', 'quantity'])
    return df.groupby(['customer', 'month', 'sku'])['quantity'].sum()


def month_label(period):
    return f"{SPANISH_MONTHS[period.month - 1]} {str(period.year)[2:]}"


def build_sku_report(customers, terms=None, exclude_sku=None, today=None):
    """
    Flatten customers into one report row each, with a quantity column per month and SKU.

    Only SKUs matching ``terms`` get columns; without terms the report has
    the contact and total columns only. Months span every valid order date
    of every customer, or the current month when there is none.
    """
    try:
        logger.info(f"Building SKU report for {len(customers)} customers")
        terms = terms or []

        dates = [
            order.order_date
            for customer in customers
            for order in customer.orders
            if order.has_valid_date
        ]
        if dates:
            start, end = min(dates), max(dates)
        else:
            start = end = pd.Timestamp(today) if today is not None else pd.Timestamp.now()

        skus = {}
        if terms:
            for customer in customers:
                for order in customer.orders:
                    for item in order.items:
                        if exclude_sku is not None and item.sku == exclude_sku:
                            continue
                        if _sku_matches(item.sku, terms):
                            skus.setdefault(item.sku, None)

        # No cap here: the report covers the full range
        months = pd.period_range(start=start.to_period('M'), end=end.to_period('M'), freq='M')
        quantities = monthly_sku_quantities(customers, terms, exclude_sku)

        rows = []
        for customer in customers:
            row = {
                'Cliente': customer.name or 'Sin nombre',
                'Correo electrónico del cliente': customer.email or '',
                'Celular del cliente': customer.phone or '',
                'Identidad': customer.identity or '',
                'Total Gastado': round(sum(order.total_amount or 0.0 for order in customer.orders), 2)
            }
            for period in months:
                month_key = period.strftime('%Y-%m')
                for sku in skus:
                    row[f"{month_label(period)} - {sku}"] = quantities.get((customer.key, month_key, sku), 0)
            rows.append(row)

        report_columns = REPORT_BASE_COLUMNS + [
            f"{month_label(period)} - {sku}" for period in months for sku in skus
        ]
        return pd.DataFrame(rows, columns=report_columns)
    except Exception as e:
        logger.error(f"Error building SKU report: {str(e)}")
        logger.error(traceback.format_exc())
        raise
