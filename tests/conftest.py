"""
Pytest configuration and shared fixtures.
"""
import pytest
import pandas as pd
from typing import List

from config import (
    ColumnMapping,
    SalesRepDirectory,
    DEFAULT_HEADER_COLUMNS,
    DEFAULT_LINE_COLUMNS,
)
from transformation.records import IDENTITY_NOT_FOUND, LineItem, OrderRecord

DELIVERY_SKU = '20000025'


def make_order(order_id, date=None, items=None, customer_name=None, email=None, phone=None,
               city=None, identity=IDENTITY_NOT_FOUND, sales_rep_name=None, sales_rep_zone=None,
               pos_user=None) -> OrderRecord:
    """Build a joined order; the total is the sum of the item line totals."""
    items = [LineItem(*item) if isinstance(item, tuple) else item for item in items or []]
    return OrderRecord(
        order_id=order_id,
        raw_id=order_id,
        customer_name=customer_name,
        email=email,
        phone=phone,
        city=city,
        identity=identity,
        order_date=pd.Timestamp(date) if date is not None else pd.NaT,
        order_date_raw=date,
        total_amount=sum(item.line_total for item in items),
        items=items,
        pos_user=pos_user,
        sales_rep_name=sales_rep_name,
        sales_rep_zone=sales_rep_zone,
    )


@pytest.fixture
def order_factory():
    return make_order


@pytest.fixture
def header_columns() -> ColumnMapping:
    return ColumnMapping(DEFAULT_HEADER_COLUMNS)


@pytest.fixture
def line_columns() -> ColumnMapping:
    return ColumnMapping(DEFAULT_LINE_COLUMNS)


@pytest.fixture
def sales_rep_directory() -> SalesRepDirectory:
    return SalesRepDirectory({
        'callcenter1@puntofarma.hn': ('Karen Lino', 'Centro'),
        'callcentersap1@puntofarma.hn': ('Evelyn Maldonado', 'Norte'),
    })


@pytest.fixture
def raw_headers() -> pd.DataFrame:
    """Order-management export as read from the spreadsheet."""
    return pd.DataFrame([
        {
            'Número de Pedido': '000101',
            'Estado': 'Entregado',
            'Canal': 'Call Center',
            'Cliente': 'Ana Lopez',
            'Correo electrónico del cliente': 'ana@example.com',
            'Celular del cliente': '99887766',
            'Ciudad': 'Tegucigalpa',
            'Pedido Generado': 45292,
            'Usuario POS': 'callcenter1@puntofarma.hn',
        },
        {
            'Número de Pedido': '000102-I',
            'Estado': 'Entregado',
            'Canal': 'App',
            'Cliente': 'Ana Lopez',
            'Correo electrónico del cliente': 'ana@example.com',
            'Celular del cliente': '99887766',
            'Ciudad': 'Tegucigalpa',
            'Pedido Generado': '15/03/2024',
            'Usuario POS': 'CallCenterSAP1@puntofarma.hn ',
        },
        {
            'Número de Pedido': '000103',
            'Estado': 'Cancelado',
            'Canal': 'App',
            'Cliente': 'Luis Perez',
            'Correo electrónico del cliente': 'luis@example.com',
            'Celular del cliente': '33445566',
            'Ciudad': 'San Pedro Sula',
            'Pedido Generado': '2024-02-01',
            'Usuario POS': None,
        },
        {
            'Número de Pedido': '104',
            'Estado': 'Entregado',
            'Canal': 'Web',
            'Cliente': 'Luis Perez',
            'Correo electrónico del cliente': None,
            'Celular del cliente': '33445566',
            'Ciudad': 'San Pedro Sula',
            'Pedido Generado': 'not a date',
            'Usuario POS': 'unknown@puntofarma.hn',
        },
    ])


@pytest.fixture
def raw_lines() -> pd.DataFrame:
    """Point-of-sale export as read from the spreadsheet."""
    return pd.DataFrame([
        {'Pedido': '101', 'Codigo': 'ABC123', 'Descripcion': 'Acetaminofen 500mg',
         'Cantidad': '2', 'Total': '1,250.50', 'Identidad': '0'},
        {'Pedido': '0101', 'Codigo': DELIVERY_SKU, 'Descripcion': 'Servicio a domicilio',
         'Cantidad': '1', 'Total': '50', 'Identidad': '0801199912345'},
        {'Pedido': '102', 'Codigo': 'DEF456', 'Descripcion': 'Ibuprofeno 400mg',
         'Cantidad': '3', 'Total': 'n/a', 'Identidad': None},
        {'Pedido': '999', 'Codigo': 'XYZ', 'Descripcion': 'Orphan line',
         'Cantidad': '1', 'Total': '10', 'Identidad': None},
    ])


@pytest.fixture
def sample_orders() -> List[OrderRecord]:
    """Joined orders for three customers plus one that cannot be attributed."""
    return [
        make_order('1', '2024-01-15', [('ABC123', 'Acetaminofen', 2, 100.0), (DELIVERY_SKU, 'Envio', 1, 20.0)],
                   customer_name='Ana Lopez', email='ana@example.com', phone='99887766', city='Tegucigalpa',
                   identity='0801199912345', sales_rep_name='Karen Lino', sales_rep_zone='Centro'),
        make_order('2', '2024-03-03', [('DEF456', 'Ibuprofeno', 1, 50.0)],
                   customer_name='Ana Lopez', email='ana@example.com', phone='99887766', city='Tegucigalpa',
                   sales_rep_name='Evelyn Maldonado', sales_rep_zone='Norte'),
        make_order('3', '2024-02-10', [('ABC123', 'Acetaminofen', 1, 50.0)],
                   customer_name='Luis Perez', phone='33445566', city='San Pedro Sula',
                   sales_rep_name='Evelyn Maldonado', sales_rep_zone='Norte'),
        make_order('4', '2024-03-20', [('GHI789', 'Loratadina', 5, 300.0)],
                   customer_name='Fabcia Reyes', city='La Ceiba'),
        make_order('5', '2024-03-21', [('ABC123', 'Acetaminofen', 1, 50.0)]),
    ]
