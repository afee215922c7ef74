"""
Synchronization of joined orders into the customer store.

Customer documents are built in memory, then written in fixed-size batches,
one batch at a time with a short pause in between. A failed batch stops the
sync; the result reports how many batches made it.
"""
import re
import uuid
import asyncio
import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from transformation.grouping import customer_key, group_orders
from transformation.merge import first_real
from transformation.records import OrderRecord

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_BATCH_DELAY = 0.1

_NON_ALPHANUMERIC = re.compile(r'[^a-zA-Z0-9]')


@dataclass
class SyncResult:
    success: bool
    count: int = 0
    batches: int = 0
    error: Optional[str] = None
    cancelled: bool = False
    timestamp: datetime = field(default_factory=datetime.now)


def make_customer_id(email, phone, key):
    """
    Store key for a customer: sanitized email, else sanitized phone, else an id derived from the grouping key.
    """
    email = (email or '').strip()
    if email:
        return _NON_ALPHANUMERIC.sub('_', email)
    phone = (phone or '').strip()
    if phone:
        return _NON_ALPHANUMERIC.sub('_', phone)
    return f"customer_{uuid.uuid5(uuid.NAMESPACE_OID, key).hex}"


def merge_orders(existing_orders, new_orders):
    """Merge order documents by order_id; new documents replace existing ones."""
    merged = {}
    for order in existing_orders or []:
        merged[order['order_id']] = order
    for order in new_orders:
        merged[order['order_id']] = order
    return list(merged.values())


def _index_existing(documents):
    index = {}
    for doc in documents:
        index[doc['customer_id']] = doc
    for doc in documents:
        legacy_key = customer_key(doc)
        if legacy_key and legacy_key not in index:
            index[legacy_key] = doc
    return index


def build_customer_documents(orders, existing_documents=None, incremental=True):
    """
    Group new orders by customer and reconcile them with stored documents.

    A stored customer is found by customer_id or by the grouping key and
    keeps its customer_id. Incremental mode merges order lists by order_id;
    otherwise the new list replaces the stored one. Contact fields and
    identity prefer the new upload unless it only has a placeholder.
    """
    index = _index_existing(existing_documents or [])
    documents = {}

    for customer in group_orders(orders).customers:
        new_orders = merge_orders([], [order.to_document() for order in customer.orders])
        customer_id = make_customer_id(customer.email, customer.phone, customer.key)

        existing = index.get(customer_id) or index.get(customer.key) or {}
        if existing:
            customer_id = existing['customer_id']
            if incremental:
                new_orders = merge_orders(existing.get('orders'), new_orders)

        document = {
            'customer_id': customer_id,
            'name': first_real(customer.name, existing.get('name'), default='Sin nombre'),
            'email': first_real(customer.email, existing.get('email')),
            'phone': first_real(customer.phone, existing.get('phone')),
            'city': first_real(customer.city, existing.get('city')),
            'identity': first_real(customer.identity, existing.get('identity')),
            'orders': new_orders
        }

        if customer_id in documents:
            logger.warning(f"Customer key '{customer.key}' maps to existing id '{customer_id}'; merging documents")
            document = _merge_documents(documents[customer_id], document)
        documents[customer_id] = document

    return list(documents.values())


def _merge_documents(first, second):
    """Combine two documents that share a customer_id; the first keeps its real fields."""
    merged = {'customer_id': first['customer_id']}
    for name in ('email', 'phone', 'city', 'identity'):
        merged[name] = first_real(first.get(name), second.get(name))
    merged['name'] = first_real(first.get('name'), second.get('name'), default='Sin nombre')
    merged['orders'] = merge_orders(first['orders'], second['orders'])
    return merged


async def sync_customers(store, orders, incremental=True, batch_size=DEFAULT_BATCH_SIZE,
                         batch_delay=DEFAULT_BATCH_DELAY, cancel_event=None):
    """
    Persist customers for the given orders.

    Args:
        store: CustomerStore (blocking calls run in a worker thread)
        orders (list): Joined OrderRecords of the upload
        incremental (bool): Merge with stored order lists instead of replacing them
        batch_size (int): Documents per upsert call
        batch_delay (float): Seconds to wait between batches
        cancel_event (asyncio.Event): Checked before each batch

    Returns:
        SyncResult
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    saved = 0
    batches = 0
    try:
        logger.info(f"Starting {'incremental' if incremental else 'full'} sync for {len(orders)} orders")

        existing = await asyncio.to_thread(store.fetch_all)
        logger.info(f"Found {len(existing)} existing customers in store")

        documents = build_customer_documents(orders, existing, incremental)
        logger.info(f"Prepared {len(documents)} customer documents")

        for start in range(0, len(documents), batch_size):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"Sync cancelled after {batches} batches ({saved} customers saved)")
                return SyncResult(success=False, count=saved, batches=batches,
                                  error='Sync cancelled', cancelled=True)

            chunk = documents[start:start + batch_size]
            await asyncio.to_thread(store.upsert_many, chunk)
            saved += len(chunk)
            batches += 1
            logger.info(f"Batch {batches}: saved {saved}/{len(documents)} customers")

            # Small delay between batches
            if start + batch_size < len(documents):
                await asyncio.sleep(batch_delay)

        logger.info(f"Successfully synced {saved} customers in {batches} batches")
        return SyncResult(success=True, count=saved, batches=batches)

    except Exception as e:
        logger.error(f"Error syncing customers after {batches} batches: {str(e)}")
        logger.error(traceback.format_exc())
        return SyncResult(success=False, count=saved, batches=batches, error=str(e))


def filter_orders_after(orders, cutoff):
    """Orders dated strictly after cutoff; undated orders are dropped. No cutoff keeps everything."""
    if cutoff is None:
        return orders

    filtered = [order for order in orders if order.has_valid_date and order.order_date > cutoff]
    logger.info(f"Filtered orders: {len(orders)} total -> {len(filtered)} after {cutoff}")
    return filtered


def load_orders_from_store(store):
    """Flatten stored customer documents back into OrderRecords."""
    orders = []
    documents = store.fetch_all()
    for doc in documents:
        for order in doc.get('orders') or []:
            orders.append(OrderRecord.from_document(order, customer=doc))

    logger.info(f"Loaded {len(orders)} orders from {len(documents)} customers")
    return orders
