"""
Tests for db.engine module.
"""
import pytest

from db.engine import build_connection_url


def db_config(**overrides):
    config = {'type': 'postgresql', 'name': 'analytics', 'host': 'localhost',
              'port': '5432', 'user': 'etl', 'password': 'p@ss:word'}
    config.update(overrides)
    return config


class TestBuildConnectionUrl:
    def test_postgres_uses_psycopg2(self):
        url = build_connection_url(db_config())
        assert url.drivername == 'postgresql+psycopg2'
        assert url.port == 5432
        assert url.password == 'p@ss:word'

    def test_postgres_alias(self):
        assert build_connection_url(db_config(type='postgres')).drivername == 'postgresql+psycopg2'

    def test_sqlite(self):
        url = build_connection_url(db_config(type='sqlite', name='data/customers.db'))
        assert url.get_backend_name() == 'sqlite'
        assert url.database == 'data/customers.db'
        assert url.username is None

    def test_unsupported(self):
        with pytest.raises(ValueError):
            build_connection_url(db_config(type='mysql'))
