"""
Customer grouping of joined orders.
"""
import logging
from dataclasses import dataclass, field
from typing import List

from transformation.merge import prefer_existing
from transformation.records import IDENTITY_NOT_FOUND, CustomerAggregate

logger = logging.getLogger(__name__)


def _clean(value):
    if value is None:
        return ''
    return str(value).strip()


def customer_key(record):
    """
    Identity key of the customer behind an order or stored customer document.

    Email, else phone, else name. Returns '' when none is present.
    """
    if isinstance(record, dict):
        name = record.get('customer_name') or record.get('name')
        return _clean(record.get('email')) or _clean(record.get('phone')) or _clean(name)
    name = getattr(record, 'customer_name', None) or getattr(record, 'name', None)
    return _clean(record.email) or _clean(record.phone) or _clean(name)


@dataclass
class GroupingResult:
    customers: List[CustomerAggregate] = field(default_factory=list)
    unattributed: int = 0

    @property
    def absorbed_orders(self):
        return sum(customer.order_count for customer in self.customers)


def group_orders(orders):
    """
    Group orders into customer aggregates.

    Customers appear in order of first occurrence. Orders without email,
    phone or name cannot be attributed and are counted in ``unattributed``.
    """
    customers = {}
    unattributed = 0

    for order in orders:
        key = customer_key(order)
        if not key:
            unattributed += 1
            continue

        customer = customers.get(key)
        if customer is None:
            customer = customers[key] = CustomerAggregate(
                key=key,
                name=order.customer_name,
                email=order.email,
                phone=order.phone,
                city=order.city,
            )

        customer.orders.append(order)
        customer.total_investment += order.total_amount or 0.0
        customer.identity = prefer_existing(customer.identity, order.identity) or IDENTITY_NOT_FOUND

    if unattributed > 0:
        logger.info(f"Skipped {unattributed} orders with no email, phone or name")

    return GroupingResult(customers=list(customers.values()), unattributed=unattributed)


def group_by_customer(orders):
    """Customer aggregates for a list of orders, in order of first occurrence."""
    return group_orders(orders).customers
