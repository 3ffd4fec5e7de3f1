from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Date, DateTime, ForeignKey, func
from typing import Optional
from datetime import date

from .authz import Base


class Deposit(Base):
    __tablename__ = 'deposits'
    TYPE_SALES_ORDER = 'sales_order'
    TYPE_OTHER = 'other'
    ALL_TYPES = [TYPE_SALES_ORDER, TYPE_OTHER]

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    store_id: Mapped[int] = mapped_column(ForeignKey('stores.id'), nullable=False, index=True)
    deposit_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    deposit_type: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    sales_order_id: Mapped[Optional[int]] = mapped_column(ForeignKey('sales_orders.id'), nullable=True, index=True)
    customer_id: Mapped[Optional[int]] = mapped_column(ForeignKey('customers.id'), nullable=True, index=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
