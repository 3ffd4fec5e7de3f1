from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Date, DateTime, ForeignKey, CheckConstraint, func
from typing import Optional
from datetime import date, datetime

from .authz import Base


class GiftVoucher(Base):
    __tablename__ = 'gift_vouchers'
    STATUS_ACTIVE = 'active'
    STATUS_REDEEMED = 'redeemed'
    STATUS_EXPIRED = 'expired'
    STATUS_CANCELLED = 'cancelled'
    ALL_STATUSES = [STATUS_ACTIVE, STATUS_REDEEMED, STATUS_EXPIRED, STATUS_CANCELLED]

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    voucher_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    store_id: Mapped[int] = mapped_column(ForeignKey('stores.id'), nullable=False, index=True)
    voucher_type: Mapped[str] = mapped_column(String(16), nullable=False, default='gift')
    original_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    current_balance_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE, index=True)
    issued_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    issued_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    redeemed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    redeemed_by: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancelled_by: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('current_balance_cents >= 0 AND current_balance_cents <= original_amount_cents', name='ck_voucher_balance'),
    )
