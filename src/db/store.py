"""
Customer document store on top of SQLAlchemy.

The pipeline only relies on fetch_all, upsert_many, update, delete_all and
latest_order_date. Every call is blocking and runs in its own transaction.
"""
import logging

import pandas as pd
from sqlalchemy import select, update, delete, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from db.engine import create_session_factory
from db.models import Customer

logger = logging.getLogger(__name__)

UPSERT_FIELDS = ('name', 'email', 'phone', 'city', 'identity', 'orders')

DIALECT_INSERTS = {
    'postgresql': pg_insert,
    'sqlite': sqlite_insert,
}


class CustomerStore:
    """Key-value collection of customer documents keyed by customer_id."""

    def __init__(self, engine):
        self.engine = engine
        self.Session = create_session_factory(engine)

    def fetch_all(self):
        """All customer documents, newest first."""
        with self.Session() as session:
            customers = session.scalars(
                select(Customer).order_by(Customer.created_at.desc(), Customer.customer_id)
            ).all()
            documents = [customer.to_document() for customer in customers]
        logger.info(f"Fetched {len(documents)} customer documents")
        return documents

    def upsert_many(self, documents):
        """
        Insert or replace customer documents by customer_id.

        Returns:
            int: Number of documents written
        """
        if not documents:
            return 0

        rows = [{field: doc.get(field) for field in Customer.DOCUMENT_FIELDS} for doc in documents]
        for row in rows:
            row['orders'] = row['orders'] or []

        dialect_insert = DIALECT_INSERTS.get(self.engine.dialect.name)
        if dialect_insert is None:
            with self.Session.begin() as session:
                for row in rows:
                    session.merge(Customer(**row))
            return len(rows)

        stmt = dialect_insert(Customer).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=['customer_id'],
            set_={
                **{field: stmt.excluded[field] for field in UPSERT_FIELDS},
                'updated_at': func.now()
            }
        )
        with self.engine.begin() as conn:
            conn.execute(stmt)
        return len(rows)

    def update(self, customer_id, data):
        """
        Update fields of one customer.

        Returns:
            bool: True if the customer existed
        """
        with self.Session.begin() as session:
            result = session.execute(
                update(Customer)
                .where(Customer.customer_id == customer_id)
                .values(**data)
            )
            return result.rowcount > 0

    def delete_all(self):
        """Remove every customer document and return how many were deleted."""
        with self.engine.begin() as conn:
            result = conn.execute(delete(Customer))
        logger.info(f"Deleted {result.rowcount} customer documents")
        return result.rowcount

    def latest_order_date(self):
        """Most recent valid order date across all stored orders, or None."""
        with self.Session() as session:
            order_lists = session.scalars(select(Customer.orders)).all()

        dates = pd.to_datetime(
            pd.Series([order.get('order_date') for orders in order_lists for order in orders or []], dtype=object),
            errors='coerce',
            format='ISO8601'
        ).dropna()
        if dates.empty:
            return None
        return dates.max()
