"""Pure aggregations behind the summary and dashboard endpoints.

Every function takes plain row dicts (as returned by the record store) and
returns JSON-safe dicts; rejected entries never count toward totals.
"""
from __future__ import annotations
from collections import OrderedDict
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from dsr.constants.roles import DEPOSIT_PAYMENT_METHODS, DEPOSIT_TYPES, TENDER_TYPES

REJECTED = 'rejected'


def _counted(rows: Iterable[Mapping[str, Any]]):
    return [r for r in rows if r.get('approval_status') != REJECTED]


def summarize_by_key(rows: Iterable[Mapping[str, Any]], key: str, amount_field: str = 'amount_cents',
                     order: Optional[Sequence[str]] = None) -> Dict[str, Dict[str, int]]:
    out: Dict[str, Dict[str, int]] = OrderedDict((k, {'count': 0, 'amount_cents': 0}) for k in order or [])
    for row in rows:
        bucket = out.setdefault(row.get(key), {'count': 0, 'amount_cents': 0})
        bucket['count'] += 1
        bucket['amount_cents'] += int(row.get(amount_field) or 0)
    return dict(out)


def tender_summary(sales: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    counted = _counted(sales)
    by_tender = summarize_by_key(counted, 'tender_type', order=TENDER_TYPES)
    return {
        'by_tender': by_tender,
        'total_cents': sum(b['amount_cents'] for b in by_tender.values()),
        'count': len(counted),
    }


def daily_sales_report(sales: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    sales = list(sales)
    by_status = summarize_by_key(sales, 'approval_status', order=['pending', 'approved', 'rejected'])
    out = tender_summary(sales)
    out['by_status'] = by_status
    by_store: Dict[Any, int] = {}
    for row in _counted(sales):
        by_store[row.get('store_id')] = by_store.get(row.get('store_id'), 0) + int(row.get('amount_cents') or 0)
    out['by_store'] = [{'store_id': k, 'amount_cents': v} for k, v in sorted(by_store.items(), key=lambda kv: kv[0] or 0)]
    return out


def cash_reconciliation(
    sales: Iterable[Mapping[str, Any]],
    expenses: Iterable[Mapping[str, Any]],
    returns: Iterable[Mapping[str, Any]],
    petty_cash_limit_cents: Optional[int] = None,
    counted_cash_cents: Optional[int] = None,
) -> Dict[str, Any]:
    """Expected drawer cash: cash sales minus petty cash expenses minus cash refunds."""
    cash_sales = sum(int(r['amount_cents']) for r in _counted(sales) if r.get('tender_type') == 'cash')
    petty_cash = sum(int(r['amount_cents']) for r in _counted(expenses) if r.get('payment_method') == 'petty_cash')
    cash_returns = sum(int(r['return_amount_cents']) for r in returns if r.get('payment_method') == 'cash')
    expected = cash_sales - petty_cash - cash_returns
    out = {
        'cash_sales_cents': cash_sales,
        'petty_cash_expenses_cents': petty_cash,
        'cash_returns_cents': cash_returns,
        'expected_cash_cents': expected,
        'counted_cash_cents': counted_cash_cents,
        'variance_cents': 0,
        'variance_status': 'not_counted',
        'petty_cash_limit_cents': petty_cash_limit_cents,
        'petty_cash_exceeded': petty_cash_limit_cents is not None and petty_cash > petty_cash_limit_cents,
    }
    if counted_cash_cents is not None:
        variance = counted_cash_cents - expected
        out['variance_cents'] = variance
        out['variance_status'] = 'balanced' if variance == 0 else ('over' if variance > 0 else 'short')
    return out


def status_summary(rows: Iterable[Mapping[str, Any]], amount_field: str, statuses: Sequence[str]) -> Dict[str, Any]:
    rows = list(rows)
    by_status = summarize_by_key(rows, 'status', amount_field=amount_field, order=statuses)
    return {
        'total': len(rows),
        'by_status': by_status,
        'total_amount_cents': sum(b['amount_cents'] for b in by_status.values()),
    }


def returns_summary(rows: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    rows = list(rows)
    by_method = summarize_by_key(rows, 'payment_method', amount_field='return_amount_cents')
    return {
        'total': len(rows),
        'total_amount_cents': sum(int(r.get('return_amount_cents') or 0) for r in rows),
        'by_payment_method': {str(k): v for k, v in by_method.items()},
    }


def deposits_summary(rows: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    rows = list(rows)
    return {
        'total': len(rows),
        'total_amount_cents': sum(int(r.get('amount_cents') or 0) for r in rows),
        'by_type': summarize_by_key(rows, 'deposit_type', order=DEPOSIT_TYPES),
        'by_payment_method': summarize_by_key(rows, 'payment_method', order=DEPOSIT_PAYMENT_METHODS),
    }


def dashboard_stats(
    sales_today: Iterable[Mapping[str, Any]],
    expenses_today: Iterable[Mapping[str, Any]],
    pending_sales: int,
    pending_expenses: int,
    overdue_hand_bills: int = 0,
    overdue_sales_orders: int = 0,
    reconciliation: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    sales_today = _counted(sales_today)
    expenses_today = _counted(expenses_today)
    return {
        'today_sales_cents': sum(int(r['amount_cents']) for r in sales_today),
        'today_sales_count': len(sales_today),
        'today_expenses_cents': sum(int(r['amount_cents']) for r in expenses_today),
        'pending_approvals': pending_sales + pending_expenses,
        'pending_sales': pending_sales,
        'pending_expenses': pending_expenses,
        'overdue_hand_bills': overdue_hand_bills,
        'overdue_sales_orders': overdue_sales_orders,
        # drawer figures only exist for a single store
        'expected_cash_cents': reconciliation['expected_cash_cents'] if reconciliation else None,
        'petty_cash_exceeded': reconciliation['petty_cash_exceeded'] if reconciliation else None,
    }


__all__ = [
    'summarize_by_key', 'tender_summary', 'daily_sales_report', 'cash_reconciliation',
    'status_summary', 'returns_summary', 'deposits_summary', 'dashboard_stats',
]
