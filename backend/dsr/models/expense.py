from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Date, DateTime, ForeignKey, Index, func
from typing import Optional
from datetime import date, datetime

from .authz import Base


class Expense(Base):
    __tablename__ = 'expenses'
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    ALL_STATUSES = [STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED]

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    store_id: Mapped[int] = mapped_column(ForeignKey('stores.id'), nullable=False, index=True)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default='petty_cash')
    voucher_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    receipt_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    expense_owner: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    requested_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    approval_status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    approved_by: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approval_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (Index('ix_expenses_store_date', 'store_id', 'expense_date'),)
