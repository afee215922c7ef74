"""
Row cleaning for the order-header and order-line exports.

Both exports arrive as DataFrames of raw cells keyed by their spreadsheet
headers. The functions here rename them to the pipeline's field names and
coerce dates, identifiers and amounts.
"""
import re
import logging
from datetime import date, datetime

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Spreadsheet serial dates count days from 1899-12-30; 25569 is 1970-01-01
SERIAL_EPOCH_OFFSET_DAYS = 25569
MS_PER_DAY = 86400 * 1000

HEADER_TEXT_FIELDS = [
    'status', 'channel', 'order_type', 'payment_type', 'customer_name',
    'email', 'phone', 'city', 'pharmacy',
]

_LEADING_ZEROS = re.compile(r'^0+')
_RETURN_SUFFIX = re.compile(r'-I$')


def _is_missing(value):
    if value is None or value is pd.NaT or value is pd.NA:
        return True
    if isinstance(value, (float, np.floating)):
        return bool(np.isnan(value))
    return False


def as_text(value):
    """Cell value as a string, or None for an empty cell. Whole floats lose their '.0'."""
    if _is_missing(value):
        return None
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value)


def _naive(ts):
    # Offset-carrying dates are converted to UTC wall time
    if ts.tzinfo is not None:
        return ts.tz_convert(None)
    return ts


def parse_order_date(value):
    """
    Parse an order date cell.

    Numbers are spreadsheet serial dates. Strings are parsed natively and,
    failing that, read as DD/MM/YYYY. Anything else yields NaT. The result
    is always timezone-naive.
    """
    if _is_missing(value):
        return pd.NaT
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return _naive(pd.Timestamp(value))
    if isinstance(value, (bool, np.bool_)):
        return pd.NaT
    if isinstance(value, (int, float, np.integer, np.floating)):
        millis = round((float(value) - SERIAL_EPOCH_OFFSET_DAYS) * MS_PER_DAY)
        try:
            return pd.Timestamp(millis, unit='ms')
        except (ValueError, OverflowError):
            return pd.NaT
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return pd.NaT
        try:
            return _naive(pd.Timestamp(text))
        except (ValueError, OverflowError):
            pass

        parts = text.split('/')
        if len(parts) == 3:
            try:
                return pd.Timestamp(f"{parts[2]}-{parts[1]}-{parts[0]}")
            except (ValueError, OverflowError):
                return pd.NaT
    return pd.NaT


def normalize_order_id(raw_id):
    """Strip leading zeros and a trailing '-I' from an order number."""
    if not raw_id:
        return ''
    cleaned = _LEADING_ZEROS.sub('', raw_id)
    return _RETURN_SUFFIX.sub('', cleaned)


def _text_column(df, column):
    if column is None or column not in df.columns:
        return pd.Series([None] * len(df), index=df.index, dtype=object)
    return df[column].map(as_text).astype(object)


def _number_column(df, column):
    if column is None or column not in df.columns:
        return pd.Series(0.0, index=df.index)
    values = df[column].map(lambda v: v.replace(',', '').strip() if isinstance(v, str) else v)
    return pd.to_numeric(values, errors='coerce').fillna(0.0).astype(float)


def clean_header_rows(df, columns, directory=None, delivered_status='Entregado'):
    """
    Clean the order-header export.

    Args:
        df (DataFrame): Raw header rows
        columns (ColumnMapping): Header field -> spreadsheet column
        directory (SalesRepDirectory): POS user attribution lookup
        delivered_status (str): Only rows with this status are kept

    Returns:
        DataFrame: One row per delivered order with canonical columns
    """
    columns.require(df, ['order_number', 'status'])

    total_rows = len(df)
    df = df[df[columns['status']] == delivered_status]
    logger.info(f"Kept {len(df)} of {total_rows} header rows with status '{delivered_status}'")

    raw_ids = _text_column(df, columns['order_number']).fillna('')
    cleaned = pd.DataFrame({
        'order_id': raw_ids.map(normalize_order_id),
        'raw_id': raw_ids,
    }, index=df.index)

    for field in HEADER_TEXT_FIELDS:
        cleaned[field] = _text_column(df, columns.get(field))

    date_column = columns.get('order_date')
    if date_column in df.columns:
        cleaned['order_date_raw'] = df[date_column].astype(object)
    else:
        cleaned['order_date_raw'] = None
    cleaned['order_date'] = pd.to_datetime(
        cleaned['order_date_raw'].map(parse_order_date).astype(object), errors='coerce'
    )

    invalid_dates = cleaned['order_date'].isna().sum()
    if invalid_dates > 0:
        logger.warning(f"Found {invalid_dates} header rows with unparseable order dates")

    cleaned['pos_user'] = _text_column(df, columns.get('pos_user')).fillna('')
    reps = [
        directory.lookup(pos_user) if directory is not None else (None, None)
        for pos_user in cleaned['pos_user']
    ]
    cleaned['sales_rep_name'] = pd.Series([rep[0] for rep in reps], index=cleaned.index, dtype=object)
    cleaned['sales_rep_zone'] = pd.Series([rep[1] for rep in reps], index=cleaned.index, dtype=object)

    return cleaned.reset_index(drop=True)


def clean_line_rows(df, columns):
    """
    Clean the point-of-sale line export.

    Non-numeric quantities and totals become 0.
    """
    columns.require(df, ['order_id', 'line_total'])

    cleaned = pd.DataFrame({
        'order_id': _text_column(df, columns['order_id']).fillna('').map(normalize_order_id),
        'sku': _text_column(df, columns.get('sku')).fillna(''),
        'description': _text_column(df, columns.get('description')).fillna(''),
        'quantity': _number_column(df, columns.get('quantity')),
        'line_total': _number_column(df, columns['line_total']),
        'identity': _text_column(df, columns.get('identity')),
    }, index=df.index)

    logger.info(f"Cleaned {len(cleaned)} order line rows")
    return cleaned.reset_index(drop=True)
