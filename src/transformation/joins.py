"""
Data joining operations for the data pipeline.
"""
import logging
import traceback

import pandas as pd

from transformation.merge import prefer_existing, first_real
from transformation.records import IDENTITY_NOT_FOUND, LineItem, OrderLines, OrderRecord

logger = logging.getLogger(__name__)

HEADER_FIELDS = [
    'customer_name', 'email', 'phone', 'city', 'channel', 'order_type',
    'payment_type', 'status', 'pharmacy', 'sales_rep_name', 'sales_rep_zone',
]


def aggregate_order_lines(lines_df):
    """
    Collapse order lines into one aggregate per order id.

    Lines keep their input order inside each aggregate. The first identity
    that is not a placeholder wins for the order.

    Returns:
        dict: order_id -> OrderLines
    """
    grouped = {}

    for row in lines_df.itertuples(index=False):
        order_id = row.order_id
        if not order_id:
            continue

        aggregate = grouped.get(order_id)
        if aggregate is None:
            aggregate = grouped[order_id] = OrderLines()

        line_total = float(row.line_total)
        aggregate.total_amount += line_total
        aggregate.items.append(LineItem(
            sku=row.sku,
            description=row.description,
            quantity=float(row.quantity),
            line_total=line_total
        ))
        aggregate.identity = prefer_existing(aggregate.identity, row.identity)

    logger.info(f"Aggregated {len(lines_df)} order lines into {len(grouped)} orders")
    return grouped


def _header_value(value):
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    return value


def join_order_data(headers_df, order_lines):
    """
    Join order headers with their line aggregates.

    Every header row produces exactly one OrderRecord. Headers without lines
    get a zero total, no items and the not-found identity.
    """
    try:
        logger.info("Joining order headers with order lines")

        orders = []
        unmatched = 0
        for row in headers_df.to_dict('records'):
            lines = order_lines.get(row['order_id'])
            if lines is None:
                unmatched += 1
                lines = OrderLines()

            orders.append(OrderRecord(
                order_id=row['order_id'],
                raw_id=row['raw_id'],
                identity=first_real(lines.identity, default=IDENTITY_NOT_FOUND),
                order_date=row['order_date'],
                order_date_raw=_header_value(row.get('order_date_raw')),
                total_amount=lines.total_amount,
                items=list(lines.items),
                pos_user=row.get('pos_user') or None,
                **{field: _header_value(row.get(field)) for field in HEADER_FIELDS}
            ))

        if unmatched > 0:
            logger.warning(f"Found {unmatched} orders with no matching order lines")

        logger.info(f"Joined data has {len(orders)} orders")
        return orders

    except Exception as e:
        logger.error(f"Error joining data: {str(e)}")
        logger.error(traceback.format_exc())
        raise


def check_for_missing_relationships(headers_df, lines_df):
    """
    Check for missing relationships between the two exports.
    """
    try:
        header_ids = set(headers_df['order_id']) - {''}
        line_ids = set(lines_df['order_id']) - {''}

        orphaned_lines = line_ids - header_ids
        orders_with_no_lines = header_ids - line_ids

        results = {
            'orphaned_lines_count': len(orphaned_lines),
            'orphaned_lines': sorted(orphaned_lines)[:10],  # Limit to first 10 for logging purpose
            'orders_with_no_lines_count': len(orders_with_no_lines),
            'orders_with_no_lines': sorted(orders_with_no_lines)[:10]
        }

        if results['orphaned_lines_count'] > 0:
            logger.warning(f"Found {results['orphaned_lines_count']} line orders with no delivered header")

        if results['orders_with_no_lines_count'] > 0:
            logger.warning(f"Found {results['orders_with_no_lines_count']} orders with no lines")

        return results

    except Exception as e:
        logger.error(f"Error checking for missing relationships: {str(e)}")
        logger.error(traceback.format_exc())
        return {
            'error': str(e),
            'orphaned_lines_count': 0,
            'orders_with_no_lines_count': 0
        }
