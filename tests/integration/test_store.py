"""
Integration tests for db.store against a SQLite database.
"""
import pytest
import pandas as pd
from sqlalchemy import create_engine

from db.engine import init_db
from db.models import Base
from db.store import CustomerStore


@pytest.fixture
def store(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'customers.db'}")
    init_db(engine, Base)
    yield CustomerStore(engine)
    engine.dispose()


def make_document(customer_id, email=None, orders=None, **fields):
    return {
        'customer_id': customer_id,
        'name': fields.get('name', 'Cliente'),
        'email': email,
        'phone': fields.get('phone'),
        'city': fields.get('city'),
        'identity': fields.get('identity'),
        'orders': orders or [],
    }


class TestCustomerStore:
    """Tests for CustomerStore class."""

    def test_upsert_inserts(self, store):
        assert store.upsert_many([make_document('a', 'a@x.com'), make_document('b', 'b@x.com')]) == 2
        assert sorted(doc['customer_id'] for doc in store.fetch_all()) == ['a', 'b']

    def test_upsert_replaces_by_id(self, store):
        store.upsert_many([make_document('a', 'a@x.com', orders=[{'order_id': '1'}])])
        store.upsert_many([make_document('a', 'a@x.com', orders=[{'order_id': '2'}], city='Tegucigalpa')])

        documents = store.fetch_all()
        assert len(documents) == 1
        assert documents[0]['city'] == 'Tegucigalpa'
        assert documents[0]['orders'] == [{'order_id': '2'}]

    def test_upsert_empty(self, store):
        assert store.upsert_many([]) == 0

    def test_update(self, store):
        store.upsert_many([make_document('a', 'a@x.com')])
        assert store.update('a', {'phone': '999'}) is True
        assert store.update('missing', {'phone': '999'}) is False
        assert store.fetch_all()[0]['phone'] == '999'

    def test_delete_all(self, store):
        store.upsert_many([make_document('a'), make_document('b')])
        assert store.delete_all() == 2
        assert store.fetch_all() == []

    def test_latest_order_date(self, store):
        store.upsert_many([
            make_document('a', orders=[
                {'order_id': '1', 'order_date': '2024-01-15T00:00:00'},
                {'order_id': '2', 'order_date': None},
            ]),
            make_document('b', orders=[{'order_id': '3', 'order_date': '2024-03-02T10:30:00'}]),
        ])
        assert store.latest_order_date() == pd.Timestamp('2024-03-02 10:30:00')

    def test_latest_order_date_empty(self, store):
        assert store.latest_order_date() is None
