"""
Data quality checks for the customer analytics pipeline.

Checks run on the cleaned exports: 'headers' (one row per delivered order)
and 'lines' (one row per point-of-sale line).
"""
import logging
import traceback

import pandas as pd

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {
    'headers': ['order_id', 'raw_id'],
    'lines': ['order_id', 'sku']
}

CONTACT_COLUMNS = ['customer_name', 'email', 'phone', 'city']


def _blank_mask(series):
    return series.isna() | (series.astype(str).str.strip() == '')


def _clean_contact(value):
    if not isinstance(value, str):
        return None if pd.isna(value) else value
    return value.strip() or None


def run_data_quality_checks(data_frames):
    """
    Run a series of data quality checks on the cleaned exports.

    """
    try:
        logger.info("Running data quality checks")

        quality_results = {}

        # Run individual checks
        quality_results['missing_values'] = check_missing_values(data_frames)
        quality_results['duplicate_keys'] = check_duplicate_keys(data_frames)
        quality_results['value_ranges'] = check_value_ranges(data_frames)
        quality_results['invalid_dates'] = check_invalid_dates(data_frames)
        quality_results['unattributable'] = check_unattributable_orders(data_frames)

        # Log summary of issues
        total_issues = (
            sum(result.get('total_missing', 0) for result in quality_results['missing_values'].values())
            + quality_results['duplicate_keys'].get('duplicate_count', 0)
            + sum(result.get('invalid_count', 0) for result in quality_results['value_ranges'].values())
            + quality_results['invalid_dates'].get('invalid_count', 0)
            + quality_results['unattributable'].get('count', 0)
        )
        quality_results['total_issues'] = int(total_issues)

        if total_issues > 0:
            logger.warning(f"Found a total of {total_issues} data quality issues")
        else:
            logger.info("All data quality checks passed")

        return quality_results
    except Exception as e:
        logger.error(f"Error running data quality checks: {str(e)}")
        logger.error(traceback.format_exc())
        return {'error': str(e), 'total_issues': 0}


def check_missing_values(data_frames):
    """
    Check for empty required columns in each DataFrame.
    """
    results = {}

    for table_name, columns in REQUIRED_COLUMNS.items():
        df = data_frames.get(table_name)
        if df is None:
            continue

        missing_columns = {
            col: int(_blank_mask(df[col]).sum())
            for col in columns
            if col in df.columns and _blank_mask(df[col]).any()
        }
        total_missing = sum(missing_columns.values())

        results[table_name] = {
            'total_missing': total_missing,
            'missing_columns': missing_columns
        }

        if total_missing > 0:
            logger.warning(f"Table '{table_name}' has {total_missing} missing values")
            for col, count in missing_columns.items():
                logger.warning(f"  - Column '{col}': {count} missing values")

    return results


def check_duplicate_keys(data_frames):
    """
    Check for order numbers appearing more than once in the header export.
    """
    df = data_frames.get('headers')
    if df is None or 'order_id' not in df.columns:
        return {'duplicate_count': 0, 'error': 'No headers table'}

    duplicates = df[df.duplicated(subset=['order_id'], keep=False) & (df['order_id'] != '')]
    duplicate_count = len(duplicates)

    if duplicate_count > 0:
        logger.warning(f"Header export has {duplicate_count} rows sharing an order number")

    return {
        'duplicate_count': duplicate_count,
        'duplicate_keys': duplicates['order_id'].drop_duplicates().head(10).tolist()
    }


def check_value_ranges(data_frames):
    """
    Check for values outside of expected ranges.
    """
    results = {}

    df = data_frames.get('lines')
    if df is None:
        return results

    range_checks = {
        'quantity': lambda x: x > 0,  # Quantity should be positive
        'line_total': lambda x: x >= 0,  # Line totals should be non-negative
    }

    for column, condition in range_checks.items():
        if column not in df.columns:
            results[column] = {'error': f"Column '{column}' not found in table"}
            continue

        invalid_mask = ~df[column].apply(condition)
        invalid_count = int(invalid_mask.sum())

        results[column] = {
            'invalid_count': invalid_count,
            'invalid_examples': df.loc[invalid_mask, column].head(5).tolist() if invalid_count > 0 else []
        }

        if invalid_count > 0:
            logger.warning(f"Table 'lines' has {invalid_count} invalid values in column '{column}'")

    return results


def check_invalid_dates(data_frames):
    """
    Count delivered orders whose date could not be parsed.
    """
    df = data_frames.get('headers')
    if df is None or 'order_date' not in df.columns:
        return {'invalid_count': 0}

    invalid_mask = df['order_date'].isna()
    invalid_count = int(invalid_mask.sum())
    if invalid_count > 0:
        logger.warning(f"{invalid_count} orders have unparseable dates and will be left out of date views")

    examples = df.loc[invalid_mask, 'order_date_raw'].head(5).tolist() if 'order_date_raw' in df.columns else []
    return {
        'invalid_count': invalid_count,
        'invalid_examples': examples
    }


def check_unattributable_orders(data_frames):
    """
    Count orders with no email, phone or name; they cannot be grouped into a customer.
    """
    df = data_frames.get('headers')
    if df is None:
        return {'count': 0}

    mask = pd.Series(True, index=df.index)
    for col in ('email', 'phone', 'customer_name'):
        if col in df.columns:
            mask &= _blank_mask(df[col])

    count = int(mask.sum())
    if count > 0:
        logger.warning(f"{count} orders have no email, phone or name")

    return {
        'count': count,
        'order_ids': df.loc[mask, 'order_id'].head(10).tolist() if 'order_id' in df.columns else []
    }


def apply_data_fixes(data_frames, quality_results):
    """
    Apply fixes to data quality issues.

    Contact columns are trimmed and blank values become missing, so the same
    customer is not split by stray whitespace. Lines without an order number
    are dropped.
    """
    try:
        logger.info("Applying data quality fixes")

        # Create deep copies to avoid modifying originals
        fixed_data = {
            table: df.copy() for table, df in data_frames.items()
        }

        headers = fixed_data.get('headers')
        if headers is not None:
            for col in CONTACT_COLUMNS:
                if col in headers.columns:
                    headers[col] = headers[col].map(_clean_contact).astype(object)

        lines = fixed_data.get('lines')
        if lines is not None:
            if 'sku' in lines.columns:
                lines['sku'] = lines['sku'].map(lambda v: v.strip() if isinstance(v, str) else v)
            missing_ids = quality_results.get('missing_values', {}).get('lines', {}).get('missing_columns', {})
            if missing_ids.get('order_id'):
                fixed_data['lines'] = lines[lines['order_id'] != ''].reset_index(drop=True)

        # Log a summary of changes
        for table, original_df in data_frames.items():
            if table in fixed_data:
                rows_diff = len(fixed_data[table]) - len(original_df)
                if rows_diff != 0:
                    change_type = "removed" if rows_diff < 0 else "added"
                    logger.info(f"{abs(rows_diff)} rows {change_type} in '{table}'")

        logger.info("Data quality fixes applied successfully")
        return fixed_data
    except Exception as e:
        logger.error(f"Error applying data quality fixes: {str(e)}")
        logger.error(traceback.format_exc())
        # Return original data if fixes fail
        return data_frames
