"""SQLAlchemy implementation of the core RecordStore collaborator."""
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional, Type

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dsr.core.errors import DuplicateRecordError, ValidationError
from dsr.models.authz import Base, User
from dsr.models.store import Store
from dsr.models.customer import Customer
from dsr.models.sale import Sale
from dsr.models.expense import Expense
from dsr.models.hand_bill import HandBill
from dsr.models.sales_order import SalesOrder
from dsr.models.gift_voucher import GiftVoucher
from dsr.models.returns import Return
from dsr.models.deposit import Deposit

MODELS: Dict[str, Type[Base]] = {
    'store': Store,
    'user': User,
    'customer': Customer,
    'sale': Sale,
    'expense': Expense,
    'hand_bill': HandBill,
    'sales_order': SalesOrder,
    'gift_voucher': GiftVoucher,
    'return': Return,
    'deposit': Deposit,
}

# never leave the database through the collaborator
HIDDEN_COLUMNS = {'password_hash'}


def model_for(kind: str) -> Type[Base]:
    try:
        return MODELS[kind]
    except KeyError:
        raise ValidationError(f'Unknown record kind {kind}')


def to_row(obj) -> Dict[str, Any]:
    return {c.key: getattr(obj, c.key) for c in obj.__table__.columns if c.key not in HIDDEN_COLUMNS}


class SqlRecordStore:
    """Each call commits on its own so it stays atomic; a failed call rolls back."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, kind: str, record_id: int) -> Optional[Dict[str, Any]]:
        model = model_for(kind)
        obj = self.session.execute(
            select(model).where(model.id == record_id).execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return to_row(obj) if obj is not None else None

    def find(self, kind: str, **match: Any) -> List[Dict[str, Any]]:
        model = model_for(kind)
        q = select(model).filter_by(**match).order_by(model.id.asc()).execution_options(populate_existing=True)
        return [to_row(o) for o in self.session.execute(q).scalars()]

    def conditional_update(self, kind: str, record_id: int, field: str, expected: Any, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        model = model_for(kind)
        stmt = (
            update(model)
            .where(model.id == record_id, getattr(model, field) == expected)
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            self.session.rollback()
            return None
        self.session.commit()
        return self.get(kind, record_id)

    def insert_many(self, kind: str, rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        model = model_for(kind)
        objs = [model(**row) for row in rows]
        self.session.add_all(objs)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateRecordError(f'{kind} conflicts with an existing record', details={'db': str(e.orig)})
        return [to_row(o) for o in objs]

    def delete(self, kind: str, record_id: int) -> Optional[Dict[str, Any]]:
        model = model_for(kind)
        obj = self.session.get(model, record_id)
        if obj is None:
            return None
        row = to_row(obj)
        self.session.delete(obj)
        self.session.commit()
        return row


__all__ = ['SqlRecordStore', 'MODELS', 'model_for', 'to_row']
