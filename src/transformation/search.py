"""
Free-text and SKU-list search over orders and customers.

Callers must only search with queries of at least ``MIN_QUERY_LENGTH``
characters (see ``is_searchable_query``). ``filter_records`` itself accepts
any query, so the guard stays visible at the call site.
"""
import re
import logging
from dataclasses import replace

import pandas as pd

from transformation.grouping import group_by_customer
from transformation.records import IDENTITY_NOT_FOUND, CustomerAggregate
from transformation.calculations import top_skus

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3
MIN_SUGGESTION_LENGTH = 2
MAX_SUGGESTIONS = 10

_TERM_SEPARATORS = re.compile(r'[\n,]+')


def parse_query_terms(query):
    """Split a query on commas and newlines into trimmed, lowercased terms."""
    if not query:
        return []
    terms = (term.strip().lower() for term in _TERM_SEPARATORS.split(query))
    return [term for term in terms if term]


def is_searchable_query(query):
    return bool(query) and len(query.strip()) >= MIN_QUERY_LENGTH


def _record_items(record):
    if isinstance(record, CustomerAggregate):
        return [item for order in record.orders for item in order.items]
    return record.items or []


def _record_fields(record):
    name = getattr(record, 'customer_name', None) or getattr(record, 'name', None)
    return [
        str(value).lower()
        for value in (name, record.email, record.phone, record.identity)
        if value
    ]


def matches_terms(record, terms):
    """
    Match one order or customer against parsed terms.

    A single term also matches name, email, phone and identity; with several
    terms only SKUs are considered.
    """
    has_sku = any(
        term in item.sku.lower()
        for item in _record_items(record)
        for term in terms
    )
    if has_sku:
        return True
    if len(terms) == 1:
        return any(terms[0] in value for value in _record_fields(record))
    return False


def filter_records(records, query):
    """Orders or customers matching the query; an empty query returns the input."""
    terms = parse_query_terms(query)
    if not terms:
        return records
    return [record for record in records if matches_terms(record, terms)]


def get_suggestions(orders, query, max_results=MAX_SUGGESTIONS):
    """
    Typeahead suggestions for a partial query.

    Returns None for queries shorter than two characters or without matches.
    """
    if not query or len(query) < MIN_SUGGESTION_LENGTH:
        return None

    needle = query.lower().strip()
    sku_matches = {}
    customer_matches = {}
    identity_matches = {}

    for order in orders:
        for item in order.items:
            if needle in item.sku.lower() or needle in item.description.lower():
                if item.sku in sku_matches:
                    sku_matches[item.sku]['count'] += 1
                else:
                    sku_matches[item.sku] = {'sku': item.sku, 'description': item.description, 'count': 1}

        name = order.customer_name or ''
        contact_fields = (name, order.email or '', order.phone or '')
        if any(needle in value.lower() for value in contact_fields):
            customer_matches.setdefault(name.lower(), {
                'name': name or 'Sin nombre',
                'email': order.email or '',
                'phone': order.phone or '',
                'identity': order.identity or ''
            })

        identity = order.identity or ''
        if identity != IDENTITY_NOT_FOUND and needle in identity.lower():
            identity_matches.setdefault(identity.lower(), {
                'identity': identity,
                'name': name,
                'phone': order.phone or ''
            })

    skus = sorted(sku_matches.values(), key=lambda s: s['count'], reverse=True)[:max_results]
    customers = list(customer_matches.values())[:max_results]
    identities = list(identity_matches.values())[:max_results]

    if not skus and not customers and not identities:
        return None

    return {
        'skus': skus,
        'customers': customers,
        'identities': identities,
        'total_results': len(skus) + len(customers) + len(identities)
    }


def _trim_to_period(customer, start, end):
    orders = [
        order for order in customer.orders
        if order.has_valid_date and start <= order.order_date <= end
    ]
    return replace(
        customer,
        orders=orders,
        total_investment=sum(order.total_amount for order in orders)
    )


def filter_customers(customers, start=None, end=None, cities=None, min_quantity=None,
                     only_recurring=False, top_sku_keys=None):
    """
    Apply the customer table filters.

    A date range trims each customer's orders to the period (inclusive, whole
    days) and recomputes ``total_investment``; customers left without orders
    are dropped. ``top_sku_keys`` keeps customers who bought any of those SKUs.
    """
    result = list(customers)

    if start is not None or end is not None:
        start = pd.Timestamp(start or '1900-01-01').normalize()
        end = pd.Timestamp(end or '2999-12-31').normalize() + pd.Timedelta(days=1) - pd.Timedelta(milliseconds=1)
        result = [_trim_to_period(customer, start, end) for customer in result]
        result = [customer for customer in result if customer.orders]

    if cities:
        result = [customer for customer in result if customer.city in cities]

    if min_quantity is not None:
        result = [
            customer for customer in result
            if sum(item.quantity for item in _record_items(customer)) >= min_quantity
        ]

    if only_recurring:
        result = [customer for customer in result if customer.order_count > 1]

    if top_sku_keys:
        wanted = set(top_sku_keys)
        result = [
            customer for customer in result
            if any(item.sku_key in wanted for item in _record_items(customer))
        ]

    return result


def sort_customers(customers, key, descending=False):
    """Sort by a customer attribute or 'order_count'; strings compare case-insensitively."""
    def sort_value(customer):
        value = getattr(customer, key)
        if isinstance(value, str):
            return (0, value.lower())
        if value is None:
            return (1, '')
        return (0, value)

    return sorted(customers, key=sort_value, reverse=descending)


def search_customers(orders, query, top_n=None, **filters):
    """
    Customer table for a query: filter orders, group them, apply table filters.

    Queries shorter than ``MIN_QUERY_LENGTH`` return an empty list.
    ``top_n`` keeps customers who bought one of the ``top_n`` best-selling SKUs.
    """
    if not is_searchable_query(query):
        return []

    customers = group_by_customer(filter_records(orders, query))
    if top_n:
        filters['top_sku_keys'] = top_skus(orders)['sku'].head(top_n).tolist()

    result = filter_customers(customers, **filters)
    logger.info(f"Query '{query}' matched {len(result)} customers")
    return result
