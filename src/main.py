"""
Main pipeline orchestration for the customer purchase analytics pipeline.
"""
import asyncio
import logging
import argparse
import time
import traceback
from datetime import datetime

import pandas as pd

from config import Config
from db.engine import create_db_engine, init_db
from db.models import Base
from db.store import CustomerStore
from ingestion.loader import load_source_data, normalize_source_data, get_last_processed_date
from transformation.joins import aggregate_order_lines, join_order_data, check_for_missing_relationships
from transformation.grouping import group_orders
from transformation.calculations import (
    top_skus,
    monthly_order_counts,
    build_month_buckets,
    build_daily_contributions,
    build_sku_report
)
from transformation.rfm import perform_rfm_analysis
from transformation.sales_reps import shared_customers
from transformation.search import parse_query_terms
from transformation.quality import run_data_quality_checks, apply_data_fixes
from loading.sync import sync_customers, filter_orders_after
from loading.writer import (
    orders_to_frame,
    customers_to_frame,
    rfm_to_frame,
    month_buckets_to_frame,
    contributions_to_frame,
    export_results_to_csv,
    export_sku_report
)

logger = logging.getLogger(__name__)


def run_pipeline(config_file='config.ini', incremental=None, quality_check=None, export_csv=False,
                 headers_path=None, lines_path=None, reference_date=None, sku_query=None):
    start_time = time.time()
    statistics = {
        'start_time': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
        'status': 'failed',
        'stages': {},
    }

    try:
        logger.info("Starting customer analytics pipeline")

        # Load configuration
        config = Config(config_file)

        # Override config settings if provided
        if incremental is not None:
            config.config['PIPELINE']['incremental'] = str(incremental).lower()

        if quality_check is not None:
            config.config['PIPELINE']['quality_check'] = str(quality_check).lower()

        run_incremental = config.is_incremental()
        run_quality_check = config.is_quality_check_enabled()
        delivery_sku = config.get_delivery_sku()

        logger.info(f"Pipeline mode: incremental={run_incremental}, quality_check={run_quality_check}")

        # Create database engine and store
        engine = create_db_engine(config)
        init_db(engine, Base)
        store = CustomerStore(engine)

        # ---- Ingestion
        stage_start = time.time()

        raw_data = load_source_data(config, headers_path, lines_path)
        source_data = normalize_source_data(config, raw_data)

        statistics['stages']['ingestion'] = {
            'duration': time.time() - stage_start,
            'rows_read': {table: len(df) for table, df in raw_data.items()},
            'rows_processed': {table: len(df) for table, df in source_data.items()},
            'delivered_orders': len(source_data['headers'])
        }

        # ---- Data Validation & Quality Checks
        if run_quality_check:
            stage_start = time.time()

            relationship_issues = check_for_missing_relationships(
                source_data['headers'],
                source_data['lines']
            )

            quality_results = run_data_quality_checks(source_data)
            has_issues = quality_results.get('total_issues', 0) > 0

            if has_issues:
                source_data = apply_data_fixes(source_data, quality_results)

            statistics['stages']['quality_check'] = {
                'duration': time.time() - stage_start,
                'issues_found': quality_results.get('total_issues', 0),
                'orders_with_no_lines': relationship_issues.get('orders_with_no_lines_count', 0),
                'fixes_applied': has_issues
            }

        # ---- Transformation
        stage_start = time.time()

        order_lines = aggregate_order_lines(source_data['lines'])
        orders = join_order_data(source_data['headers'], order_lines)
        grouping = group_orders(orders)

        if reference_date is not None:
            reference_date = pd.Timestamp(reference_date)
        rfm_results = perform_rfm_analysis(grouping.customers, reference_date, delivery_sku)

        transformed_data = {
            'orders': orders_to_frame(orders),
            'customers': customers_to_frame(grouping.customers),
            'rfm': rfm_to_frame(rfm_results['scores']),
            'top_skus': top_skus(orders, exclude_sku=delivery_sku),
            'monthly_orders': monthly_order_counts(orders),
            'monthly_sales': month_buckets_to_frame(build_month_buckets(orders)),
            'daily_activity': contributions_to_frame(build_daily_contributions(orders, delivery_sku))
        }

        statistics['stages']['transformation'] = {
            'duration': time.time() - stage_start,
            'orders': len(orders),
            'customers': len(grouping.customers),
            'unattributed_orders': grouping.unattributed,
            'segments': rfm_results['total_segments'],
            'customers_with_several_reps': len(shared_customers(orders))
        }

        # ---- Export
        if export_csv:
            output_dir = config.get_output_path()
            exported_files = export_results_to_csv(transformed_data, output_dir)

            report = build_sku_report(
                grouping.customers,
                terms=parse_query_terms(sku_query),
                exclude_sku=delivery_sku
            )
            exported_files['sku_report'] = export_sku_report(report, output_dir)

            statistics['stages']['export'] = {
                'files_exported': len(exported_files),
                'file_paths': exported_files
            }

        # ---- Loading
        stage_start = time.time()

        to_sync = orders
        if run_incremental:
            last_date = get_last_processed_date(store)
            if last_date is not None:
                logger.info(f"Incremental mode: syncing orders after {last_date}")
                to_sync = filter_orders_after(orders, last_date)

        if to_sync:
            sync_settings = config.get_sync_settings()
            result = asyncio.run(sync_customers(
                store,
                to_sync,
                incremental=run_incremental,
                batch_size=sync_settings['batch_size'],
                batch_delay=sync_settings['batch_delay']
            ))
        else:
            logger.info("No new orders to sync")
            result = None

        statistics['stages']['loading'] = {
            'duration': time.time() - stage_start,
            'mode': 'incremental' if run_incremental else 'full',
            'orders_synced': len(to_sync),
            'success': result.success if result else True,
            'customers_saved': result.count if result else 0,
            'batches': result.batches if result else 0
        }

        if result is not None and not result.success:
            raise RuntimeError(f"Customer sync failed: {result.error}")

        statistics['status'] = 'success'
        logger.info("Customer analytics pipeline completed successfully")

    except Exception as e:
        logger.error(f"Pipeline execution failed: {str(e)}")
        logger.error(traceback.format_exc())
        statistics['status'] = 'failed'
        statistics['error'] = str(e)

    # Calculate total duration
    statistics['duration'] = time.time() - start_time

    return statistics


def main():
    """Command line entry point."""
    parser = argparse.ArgumentParser(description='Customer Purchase Analytics Pipeline')
    parser.add_argument('--config', default='config.ini', help='Path to configuration file')
    parser.add_argument('--incremental', action='store_true', help='Merge new orders into stored customers')
    parser.add_argument('--full', action='store_true', help='Replace stored order lists')
    parser.add_argument('--quality-check', action='store_true', help='Run data quality checks')
    parser.add_argument('--no-quality-check', action='store_true', help='Skip data quality checks')
    parser.add_argument('--export-csv', action='store_true', help='Export results to CSV files and the SKU report')
    parser.add_argument('--headers', help='Order-header export (overrides config)')
    parser.add_argument('--lines', help='Order-line export (overrides config)')
    parser.add_argument('--reference-date', help='Date recency is measured from (default: today)')
    parser.add_argument('--sku', help='SKU terms for the report, separated by commas')

    args = parser.parse_args()

    # Determine incremental mode
    incremental = None
    if args.incremental:
        incremental = True
    elif args.full:
        incremental = False

    # Determine quality check mode
    quality_check = None
    if args.quality_check:
        quality_check = True
    elif args.no_quality_check:
        quality_check = False

    results = run_pipeline(
        config_file=args.config,
        incremental=incremental,
        quality_check=quality_check,
        export_csv=args.export_csv,
        headers_path=args.headers,
        lines_path=args.lines,
        reference_date=args.reference_date,
        sku_query=args.sku
    )

    # Print summary
    print("\nPipeline Execution Summary:")
    print(f"Status: {results['status']}")
    print(f"Duration: {results['duration']:.2f} seconds")

    if results['status'] == 'failed' and 'error' in results:
        print(f"Error: {results['error']}")

    for stage, stats in results.get('stages', {}).items():
        print(f"\n{stage.capitalize()} stage:")
        for key, value in stats.items():
            if key not in ('rows_read', 'rows_processed', 'file_paths'):
                print(f"  {key}: {value}")


if __name__ == "__main__":
    main()
