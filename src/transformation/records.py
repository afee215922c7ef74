"""
Record types shared by the transformation stages.
"""
from dataclasses import dataclass, field, asdict
from typing import List, Optional

import pandas as pd

# Placeholder stored when no identity could be found for an order
IDENTITY_NOT_FOUND = 'No se encontró'


@dataclass
class LineItem:
    """One product line of an order."""
    sku: str
    description: str = ''
    quantity: float = 0.0
    line_total: float = 0.0

    @property
    def sku_key(self):
        """Grouping key: the SKU, or the description when the SKU is empty."""
        return self.sku or self.description

    def to_document(self):
        return asdict(self)

    @classmethod
    def from_document(cls, doc):
        return cls(
            sku=str(doc.get('sku') or ''),
            description=doc.get('description') or '',
            quantity=float(doc.get('quantity') or 0),
            line_total=float(doc.get('line_total') or 0),
        )


@dataclass
class OrderLines:
    """Aggregate of the point-of-sale lines of one order."""
    total_amount: float = 0.0
    items: List[LineItem] = field(default_factory=list)
    identity: Optional[str] = None


@dataclass
class OrderRecord:
    """An order header joined with its line items."""
    order_id: str
    raw_id: str
    customer_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    identity: str = IDENTITY_NOT_FOUND
    order_date: pd.Timestamp = pd.NaT
    order_date_raw: object = None
    total_amount: float = 0.0
    items: List[LineItem] = field(default_factory=list)
    channel: Optional[str] = None
    order_type: Optional[str] = None
    payment_type: Optional[str] = None
    status: Optional[str] = None
    pharmacy: Optional[str] = None
    pos_user: Optional[str] = None
    sales_rep_name: Optional[str] = None
    sales_rep_zone: Optional[str] = None

    @property
    def has_valid_date(self):
        return not pd.isna(self.order_date)

    def to_document(self):
        """JSON-ready form used for persistence."""
        return {
            'order_id': self.order_id,
            'raw_id': self.raw_id,
            'order_date': self.order_date.isoformat() if self.has_valid_date else None,
            'total_amount': self.total_amount,
            'items': [item.to_document() for item in self.items],
            'channel': self.channel,
            'pos_user': self.pos_user or '',
            'sales_rep_name': self.sales_rep_name,
            'sales_rep_zone': self.sales_rep_zone,
        }

    @classmethod
    def from_document(cls, doc, customer=None):
        """Rebuild an order from its stored form, with contact fields from the customer document."""
        customer = customer or {}
        return cls(
            order_id=str(doc.get('order_id') or ''),
            raw_id=str(doc.get('raw_id') or ''),
            customer_name=customer.get('name'),
            email=customer.get('email'),
            phone=customer.get('phone'),
            city=customer.get('city'),
            identity=customer.get('identity') or IDENTITY_NOT_FOUND,
            order_date=pd.to_datetime(doc.get('order_date'), errors='coerce'),
            order_date_raw=doc.get('order_date'),
            total_amount=float(doc.get('total_amount') or 0),
            items=[LineItem.from_document(item) for item in doc.get('items') or []],
            channel=doc.get('channel'),
            pos_user=doc.get('pos_user') or None,
            sales_rep_name=doc.get('sales_rep_name'),
            sales_rep_zone=doc.get('sales_rep_zone'),
        )


@dataclass
class CustomerAggregate:
    """All orders attributed to one customer key."""
    key: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    identity: str = IDENTITY_NOT_FOUND
    orders: List[OrderRecord] = field(default_factory=list)
    total_investment: float = 0.0

    @property
    def order_count(self):
        return len(self.orders)


@dataclass
class MonthBucket:
    key: str
    date: pd.Timestamp
    count: int = 0
    total: float = 0.0
    items: List[LineItem] = field(default_factory=list)


@dataclass
class DayContribution:
    key: str
    count: int = 0
    amount: float = 0.0
    orders: List[OrderRecord] = field(default_factory=list)


@dataclass
class RFMScore:
    """RFM metrics and scores of one customer."""
    customer: CustomerAggregate
    recency_days: Optional[int]
    frequency: int
    monetary: float
    recency_score: int = 0
    frequency_score: int = 0
    monetary_score: int = 0
    segment: str = ''

    @property
    def total_score(self):
        return self.recency_score + self.frequency_score + self.monetary_score
