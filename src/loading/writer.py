"""
Data export components for the customer analytics pipeline.
"""
import os
import logging
import traceback

import pandas as pd

from transformation.calculations import contribution_level

logger = logging.getLogger(__name__)

SKU_REPORT_FILENAME = 'Reporte_Frecuencia_SKU.xlsx'


def orders_to_frame(orders):
    """
    One row per joined order, with the original order number for export.
    """
    return pd.DataFrame([
        {
            'order_id': order.order_id,
            'raw_id': order.raw_id,
            'order_date': order.order_date,
            'customer_name': order.customer_name,
            'email': order.email,
            'phone': order.phone,
            'city': order.city,
            'identity': order.identity,
            'channel': order.channel,
            'total_amount': order.total_amount,
            'item_count': len(order.items),
            'pos_user': order.pos_user,
            'sales_rep_name': order.sales_rep_name,
            'sales_rep_zone': order.sales_rep_zone
        }
        for order in orders
    ])


def customers_to_frame(customers):
    return pd.DataFrame([
        {
            'customer_key': customer.key,
            'name': customer.name,
            'email': customer.email,
            'phone': customer.phone,
            'city': customer.city,
            'identity': customer.identity,
            'order_count': customer.order_count,
            'total_investment': round(customer.total_investment, 2)
        }
        for customer in customers
    ])


def rfm_to_frame(scores):
    return pd.DataFrame([
        {
            'customer_key': score.customer.key,
            'name': score.customer.name,
            'recency_days': score.recency_days,
            'frequency': score.frequency,
            'monetary': round(score.monetary, 2),
            'recency_score': score.recency_score,
            'frequency_score': score.frequency_score,
            'monetary_score': score.monetary_score,
            'total_score': score.total_score,
            'segment': score.segment
        }
        for score in scores
    ])


def month_buckets_to_frame(buckets):
    return pd.DataFrame([
        {
            'month': bucket.key,
            'orders': bucket.count,
            'total': round(bucket.total, 2),
            'units': sum(item.quantity for item in bucket.items)
        }
        for bucket in buckets
    ])


def contributions_to_frame(contributions):
    """One row per active day with its heatmap level."""
    return pd.DataFrame([
        {
            'date': day.key,
            'orders': day.count,
            'amount': round(day.amount, 2),
            'level': contribution_level(day.count)
        }
        for day in contributions.values()
    ])


def export_results_to_csv(transformed_data, output_dir):
    """
    Export transformed data to CSV files.

    """
    try:
        # Create output directory if it doesn't exist
        if not os.path.exists(output_dir):
            os.makedirs(output_dir)

        exported_files = {}

        # Export each DataFrame to CSV
        for name, df in transformed_data.items():
            if df is not None and len(df) > 0:
                file_path = os.path.join(output_dir, f"{name}.csv")
                df.to_csv(file_path, index=False, encoding='utf-8')
                exported_files[name] = file_path
                logger.info(f"Exported {len(df)} rows to {file_path}")

        return exported_files
    except Exception as e:
        logger.error(f"Error exporting results to CSV: {str(e)}")
        logger.error(traceback.format_exc())
        raise


def export_sku_report(report_df, output_dir, filename=SKU_REPORT_FILENAME):
    """
    Write the per-customer monthly SKU report to an Excel workbook.

    Returns:
        str: Path of the written file
    """
    try:
        if not os.path.exists(output_dir):
            os.makedirs(output_dir)

        file_path = os.path.join(output_dir, filename)
        report_df.to_excel(file_path, sheet_name='Reporte', index=False)
        logger.info(f"Exported SKU report with {len(report_df)} customers to {file_path}")
        return file_path
    except Exception as e:
        logger.error(f"Error exporting SKU report: {str(e)}")
        logger.error(traceback.format_exc())
        raise
