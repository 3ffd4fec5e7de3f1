from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Date, DateTime, ForeignKey, UniqueConstraint, func
from typing import Optional
from datetime import date, datetime

from .authz import Base


class SalesOrder(Base):
    __tablename__ = 'sales_orders'
    STATUS_PENDING = 'pending'
    STATUS_CONVERTED = 'converted'
    STATUS_CANCELLED = 'cancelled'
    ALL_STATUSES = [STATUS_PENDING, STATUS_CONVERTED, STATUS_CANCELLED]

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    store_id: Mapped[int] = mapped_column(ForeignKey('stores.id'), nullable=False, index=True)
    order_number: Mapped[str] = mapped_column(String(32), nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey('customers.id'), nullable=False)
    items_description: Mapped[str] = mapped_column(Text, nullable=False)
    total_estimated_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    advance_paid_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    delivery_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    erp_sale_bill_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    conversion_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    converted_by: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    conversion_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancelled_by: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    created_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint('store_id', 'order_number', name='uq_sales_order_store_number'),)
