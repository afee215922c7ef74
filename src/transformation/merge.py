"""
The "first real value wins" rule used wherever two sources describe the same field.

Line aggregation, the order join, customer grouping and the store sync all
resolve identity and contact fields with these helpers.
"""
import pandas as pd

from transformation.records import IDENTITY_NOT_FOUND

PLACEHOLDERS = frozenset({'', '0', IDENTITY_NOT_FOUND})


def is_placeholder(value):
    """True for missing values, empty strings, '0' and the not-found sentinel."""
    if value is None:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    return str(value).strip() in PLACEHOLDERS


def prefer_existing(current, candidate):
    """Keep current unless it is a placeholder; then take candidate."""
    if not is_placeholder(current):
        return current
    if not is_placeholder(candidate):
        return candidate
    return current


def first_real(*values, default=None):
    """First value that is not a placeholder, else default."""
    for value in values:
        if not is_placeholder(value):
            return value
    return default
