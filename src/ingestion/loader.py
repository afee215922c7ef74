"""
Data ingestion components for the customer purchase analytics pipeline.
"""
import os
import logging
import traceback

import pandas as pd

from ingestion.normalizer import clean_header_rows, clean_line_rows

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = ('.xlsx', '.xlsm', '.xls')


def read_export(file_path):
    """
    Read a spreadsheet export into a DataFrame of raw cells.

    Excel files keep native cell types (numbers, dates); CSV cells stay strings.
    """
    try:
        logger.info(f"Loading data from {file_path}")

        # Check if file exists
        if not os.path.exists(file_path):
            logger.error(f"File not found: {file_path}")
            raise FileNotFoundError(file_path)

        if file_path.lower().endswith(EXCEL_EXTENSIONS):
            df = pd.read_excel(file_path, sheet_name=0, dtype=object)
        else:
            df = pd.read_csv(file_path, dtype=object, keep_default_na=False, na_values=[''])

        # Clean column names by stripping whitespace
        df = df.rename(columns=lambda x: x.strip() if isinstance(x, str) else x)

        logger.info(f"Loaded {len(df)} rows from {file_path}")

        missing_values = df.isnull().sum().sum()
        if missing_values > 0:
            logger.warning(f"Found {missing_values} empty cells in {file_path}")

        return df
    except Exception as e:
        logger.error(f"Failed to load {file_path}: {str(e)}")
        logger.error(traceback.format_exc())
        raise


def load_source_data(config, headers_path=None, lines_path=None):
    """
    Load both exports.

    Args:
        config: Configuration object
        headers_path (str): Order-header export, defaults to the configured file
        lines_path (str): Order-line export, defaults to the configured file

    Returns:
        dict: Raw DataFrames under 'headers' and 'lines'
    """
    default_headers, default_lines = config.get_source_files()
    return {
        'headers': read_export(headers_path or default_headers),
        'lines': read_export(lines_path or default_lines)
    }


def normalize_source_data(config, raw_data):
    """
    Clean both raw exports with the configured column names and attribution directory.
    """
    try:
        headers_df = clean_header_rows(
            raw_data['headers'],
            config.get_header_columns(),
            directory=config.get_sales_rep_directory(),
            delivered_status=config.get_delivered_status()
        )
        lines_df = clean_line_rows(raw_data['lines'], config.get_line_columns())
        return {
            'headers': headers_df,
            'lines': lines_df
        }
    except Exception as e:
        logger.error(f"Failed to normalize source data: {str(e)}")
        logger.error(traceback.format_exc())
        raise


def get_last_processed_date(store):
    """
    Get the latest order date already persisted.

    Args:
        store: CustomerStore

    Returns:
        Timestamp or None: Last processed date
    """
    try:
        last_date = store.latest_order_date()
        if last_date is None:
            logger.info("No previously persisted orders found")
        else:
            logger.info(f"Last processed date: {last_date}")
        return last_date
    except Exception as e:
        logger.warning(f"Error getting last processed date: {str(e)}")
        # Table might not exist yet
        return None
