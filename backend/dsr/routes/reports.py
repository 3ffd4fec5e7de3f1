from __future__ import annotations
from datetime import timedelta
from flask import Blueprint, current_app, request
from sqlalchemy import func
from dsr import get_db
from dsr.constants.roles import KIND_REPORT
from dsr.core.access import StoreScope, require
from dsr.core.batch import parse_amount_cents
from dsr.core.clock import parse_day
from dsr.core.errors import ValidationError
from dsr.core.reports import cash_reconciliation, daily_sales_report, dashboard_stats
from dsr.decorators.auth import login_required
from dsr.models.expense import Expense
from dsr.models.hand_bill import HandBill
from dsr.models.returns import Return
from dsr.models.sale import Sale
from dsr.models.sales_order import SalesOrder
from dsr.models.store import Store
from dsr.services.policy import current_actor, current_clock, current_scope, filter_query_by_scope
from dsr.utils.serialization import row_json

reports_bp = Blueprint('reports', __name__)


def _report_day():
    return parse_day(request.args.get('date'), 'date', default=current_clock().today())


def _rows(model, date_column, day, scope: StoreScope):
    q = get_db().query(model).filter(date_column == day)
    return [row_json(r) for r in filter_query_by_scope(q, model.store_id, scope).all()]


@reports_bp.get('/daily-sales')
@login_required
def daily_sales():
    require(current_actor(), KIND_REPORT, 'read')
    day = _report_day()
    report = daily_sales_report(_rows(Sale, Sale.sale_date, day, current_scope()))
    report['date'] = day.isoformat()
    return report


@reports_bp.get('/cash-reconciliation')
@login_required
def cash_reconciliation_report():
    """Expected drawer cash for one store and day; multi-store users must pick the store."""
    actor = current_actor()
    require(actor, KIND_REPORT, 'reconcile')
    scope = current_scope(actor)
    if scope.all_stores:
        raise ValidationError('Store selection is required')
    day = _report_day()
    counted = request.args.get('counted_cash_cents')
    store = get_db().get(Store, scope.store_id)
    result = cash_reconciliation(
        _rows(Sale, Sale.sale_date, day, scope),
        _rows(Expense, Expense.expense_date, day, scope),
        _rows(Return, Return.return_date, day, scope),
        petty_cash_limit_cents=store.petty_cash_limit_cents if store else None,
        counted_cash_cents=parse_amount_cents(counted, 'counted_cash_cents') if counted not in (None, '') else None,
    )
    return {'date': day.isoformat(), 'store_id': scope.store_id, 'reconciliation': result}


def _pending_count(model, scope: StoreScope) -> int:
    q = get_db().query(func.count(model.id)).filter(model.approval_status == 'pending')
    return filter_query_by_scope(q, model.store_id, scope).scalar() or 0


def _overdue_count(model, date_column, days: int, today, scope: StoreScope) -> int:
    q = get_db().query(func.count(model.id)).filter(model.status == 'pending', date_column < today - timedelta(days=days))
    return filter_query_by_scope(q, model.store_id, scope).scalar() or 0


@reports_bp.get('/dashboard')
@login_required
def dashboard():
    actor = current_actor()
    scope = current_scope(actor)
    today = current_clock().today()
    sales = _rows(Sale, Sale.sale_date, today, scope)
    expenses = _rows(Expense, Expense.expense_date, today, scope)
    recon = None
    if not scope.all_stores:
        store = get_db().get(Store, scope.store_id)
        recon = cash_reconciliation(
            sales, expenses, _rows(Return, Return.return_date, today, scope),
            petty_cash_limit_cents=store.petty_cash_limit_cents if store else None,
        )
    stats = dashboard_stats(
        sales,
        expenses,
        pending_sales=_pending_count(Sale, scope),
        pending_expenses=_pending_count(Expense, scope),
        overdue_hand_bills=_overdue_count(HandBill, HandBill.sale_date, current_app.config['HAND_BILL_OVERDUE_DAYS'], today, scope),
        overdue_sales_orders=_overdue_count(SalesOrder, SalesOrder.order_date, current_app.config['SALES_ORDER_OVERDUE_DAYS'], today, scope),
        reconciliation=recon,
    )
    stats.update({'date': today.isoformat(), 'store_id': scope.store_id, 'all_stores': scope.all_stores})
    return stats
