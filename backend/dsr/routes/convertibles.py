"""Hand bills and sales orders share one lifecycle (pending -> converted | cancelled)
and are served by two blueprints built from the same route set."""
from __future__ import annotations
from datetime import timedelta
from flask import Blueprint, current_app, request, abort
from sqlalchemy import select
from dsr import get_db
from dsr.constants.roles import KIND_HAND_BILL, KIND_SALES_ORDER
from dsr.core import convertible
from dsr.core.access import assert_record_visible
from dsr.core.reports import status_summary
from dsr.decorators.auth import login_required
from dsr.decorators.audit import audit_log
from dsr.models.hand_bill import HandBill
from dsr.models.sales_order import SalesOrder
from dsr.services.policy import current_actor, current_clock, current_scope, filter_query_by_scope, record_store
from dsr.utils.filters import apply_filters, date_range_specs
from dsr.utils.listing import paginated_response
from dsr.utils.serialization import row_json
from dsr.utils.sorting import apply_multi_sort

hand_bills_bp = Blueprint('hand_bills', __name__)
sales_orders_bp = Blueprint('sales_orders', __name__)


def overdue_thresholds():
    return {
        KIND_HAND_BILL: current_app.config['HAND_BILL_OVERDUE_DAYS'],
        KIND_SALES_ORDER: current_app.config['SALES_ORDER_OVERDUE_DAYS'],
    }


def _register(bp: Blueprint, kind: str, model, label: str):
    spec = convertible.CONVERTIBLES[kind]
    date_column = getattr(model, spec.date_field)
    amount_column = getattr(model, spec.amount_field)
    number_column = getattr(model, spec.number_field)
    action = kind.upper()

    def to_json(obj):
        row = row_json(obj)
        today = current_clock().today()
        day = obj.get(spec.date_field) if isinstance(obj, dict) else getattr(obj, spec.date_field)
        row['age_days'] = convertible.age_in_days(day, today)
        row['is_overdue'] = convertible.is_overdue(
            {'status': row['status'], spec.date_field: day}, kind, today, overdue_thresholds()
        )
        return row

    def load(record_id: int):
        obj = get_db().execute(select(model).where(model.id == record_id)).scalar_one_or_none()
        if not obj:
            abort(404)
        assert_record_visible(current_actor(), {'store_id': obj.store_id})
        return obj

    def overdue_cutoff():
        return current_clock().today() - timedelta(days=overdue_thresholds()[kind])

    def scoped_query():
        q = get_db().query(model)
        q = filter_query_by_scope(q, model.store_id, current_scope())
        filter_specs = {
            'status': {'op': lambda qu, v: qu.filter(model.status == v), 'validate': lambda v: v in model.ALL_STATUSES},
            'customer_id': {'coerce': int, 'op': lambda qu, v: qu.filter(model.customer_id == v)},
            'number': {'op': lambda qu, v: qu.filter(number_column.ilike(f'%{v}%'))},
            'overdue': {
                'coerce': lambda v: str(v).lower() in ('1', 'true', 'yes'),
                'op': lambda qu, v: qu.filter(model.status == convertible.STATUS_PENDING, date_column < overdue_cutoff()) if v else qu,
            },
        }
        filter_specs.update(date_range_specs(date_column))
        return apply_filters(q, filter_specs, request.args)

    @bp.get('')
    @login_required
    def list_records():
        allowed = {
            spec.date_field: date_column,
            spec.amount_field: amount_column,
            'status': model.status,
            'id': model.id,
        }
        q = apply_multi_sort(scoped_query(), request.args.get('sort'), allowed, model.id, default=f'-{spec.date_field}')
        return paginated_response(q, to_json)

    @bp.get('/overdue')
    @login_required
    def list_overdue():
        """Pending records older than the configured threshold, oldest first."""
        q = scoped_query().filter(model.status == convertible.STATUS_PENDING, date_column < overdue_cutoff())
        q = q.order_by(date_column.asc(), model.id.asc())
        rows = [to_json(o) for o in q.all()]
        return {'data': rows, 'count': len(rows), 'threshold_days': overdue_thresholds()[kind]}

    @bp.get('/stats/summary')
    @login_required
    def stats_summary():
        objs = scoped_query().all()
        rows = [row_json(o, ['status', spec.amount_field]) for o in objs]
        out = status_summary(rows, spec.amount_field, convertible.ALL_STATUSES)
        cutoff = overdue_cutoff()
        out['overdue'] = sum(1 for o in objs if o.status == convertible.STATUS_PENDING and getattr(o, spec.date_field) < cutoff)
        return out

    @bp.get('/<int:record_id>')
    @login_required
    def get_record(record_id: int):
        return to_json(load(record_id))

    @bp.post('')
    @login_required
    @audit_log(f'{action}.CREATE', entity=label, meta_keys=[spec.number_field, spec.amount_field])
    def create_record():
        data = request.get_json(silent=True) or {}
        opener = convertible.open_hand_bill if kind == KIND_HAND_BILL else convertible.open_sales_order
        row = opener(record_store(), current_actor(), data, requested_store_id=data.get('store_id'), clock=current_clock())
        return to_json(row), 201

    @bp.patch('/<int:record_id>')
    @login_required
    @audit_log(f'{action}.UPDATE', entity=label, diff_keys=list(spec.editable),
               pre_fetch=lambda a, kw: row_json(load(kw['record_id'])))
    def update_record(record_id: int):
        data = request.get_json(silent=True) or {}
        row = convertible.update_pending(record_store(), kind, record_id, current_actor(), data)
        return to_json(row)

    @bp.post('/<int:record_id>/convert')
    @login_required
    @audit_log(f'{action}.CONVERT', entity=label, meta_keys=['erp_sale_bill_number', 'status'])
    def convert_record(record_id: int):
        data = request.get_json(silent=True) or {}
        extra = {}
        if kind == KIND_HAND_BILL and data.get('sale_bill_image_url'):
            extra['sale_bill_image_url'] = data['sale_bill_image_url']
        row = convertible.convert(
            record_store(), kind, record_id, data.get('erp_sale_bill_number'), current_actor(),
            notes=data.get('notes'), extra=extra, clock=current_clock(),
        )
        return to_json(row)

    @bp.post('/<int:record_id>/cancel')
    @login_required
    @audit_log(f'{action}.CANCEL', entity=label, meta_keys=['cancel_reason', 'status'])
    def cancel_record(record_id: int):
        data = request.get_json(silent=True) or {}
        row = convertible.cancel(record_store(), kind, record_id, current_actor(), reason=data.get('reason'))
        return to_json(row)


_register(hand_bills_bp, KIND_HAND_BILL, HandBill, 'HandBill')
_register(sales_orders_bp, KIND_SALES_ORDER, SalesOrder, 'SalesOrder')
