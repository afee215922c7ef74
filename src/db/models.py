"""
Database models for the data pipeline.
"""
from sqlalchemy import Column, String, DateTime, JSON, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Customer(Base):
    """One customer document with its full order history."""
    __tablename__ = 'customers'

    customer_id = Column(String(255), primary_key=True)
    name = Column(String(255))
    email = Column(String(255))
    phone = Column(String(50))
    city = Column(String(100))
    identity = Column(String(50))
    orders = Column(JSON().with_variant(JSONB(), 'postgresql'), nullable=False, default=list)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    DOCUMENT_FIELDS = ('customer_id', 'name', 'email', 'phone', 'city', 'identity', 'orders')

    def to_document(self):
        return {field: getattr(self, field) for field in self.DOCUMENT_FIELDS}
