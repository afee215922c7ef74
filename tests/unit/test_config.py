"""
Tests for config module.
"""
import pytest
import pandas as pd

from config import Config, ColumnMapping, SalesRepDirectory


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / 'config.ini'
    path.write_text(
        "[DATABASE]\n"
        "type = sqlite\n"
        f"name = {tmp_path / 'customers.db'}\n"
        "\n"
        "[LOGGING]\n"
        "level = WARNING\n"
        f"file = {tmp_path / 'logs' / 'pipeline.log'}\n"
        "\n"
        "[PIPELINE]\n"
        "incremental = true\n"
        "batch_size = 25\n"
        "\n"
        "[HEADER_COLUMNS]\n"
        "email = Email\n"
        "\n"
        "[SALES_REPS]\n"
        "CallCenter1@puntofarma.hn = Karen Lino, Centro\n"
        "solo@puntofarma.hn = Sin Zona\n",
        encoding='utf-8'
    )
    return str(path)


class TestConfig:
    """Tests for Config class."""

    def test_defaults_when_file_missing(self, tmp_path):
        config = Config(str(tmp_path / 'missing.ini'))
        assert config.is_incremental() is False
        assert config.is_quality_check_enabled() is True
        assert config.get_delivered_status() == 'Entregado'
        assert config.get_delivery_sku() == '20000025'
        assert config.get_sync_settings() == {'batch_size': 100, 'batch_delay': 0.1}

    def test_file_overrides_defaults(self, config_file):
        config = Config(config_file)
        assert config.is_incremental() is True
        assert config.get_sync_settings()['batch_size'] == 25
        assert config.get_database_config()['type'] == 'sqlite'

    def test_column_overrides_keep_other_defaults(self, config_file):
        columns = Config(config_file).get_header_columns()
        assert columns['email'] == 'Email'
        assert columns['order_number'] == 'Número de Pedido'

    def test_sales_rep_directory(self, config_file):
        directory = Config(config_file).get_sales_rep_directory()
        assert len(directory) == 2
        assert directory.lookup(' callcenter1@PUNTOFARMA.hn') == ('Karen Lino', 'Centro')
        assert directory.lookup('solo@puntofarma.hn') == ('Sin Zona', None)


class TestSalesRepDirectory:
    def test_unknown_user(self):
        directory = SalesRepDirectory({'a@x.com': ('Ana', 'Norte')})
        assert directory.lookup('b@x.com') == (None, None)
        assert directory.lookup(None) == (None, None)

    def test_zones_and_reps(self):
        directory = SalesRepDirectory({
            'a@x.com': ('Ana', 'Norte'),
            'b@x.com': ('Beto', 'Centro'),
            'c@x.com': ('Carla', 'Norte'),
        })
        assert directory.zones() == ['Centro', 'Norte']
        assert [rep['name'] for rep in directory.reps_by_zone('Norte')] == ['Ana', 'Carla']


class TestColumnMapping:
    def test_require(self):
        mapping = ColumnMapping({'order_id': 'Pedido'})
        mapping.require(pd.DataFrame(columns=['Pedido']), ['order_id'])
        with pytest.raises(KeyError):
            mapping.require(pd.DataFrame(columns=['Otro']), ['order_id'])
