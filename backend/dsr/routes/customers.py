"""Customers are shared by every store; any signed-in user can look them up."""
from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import or_, select
from dsr import get_db
from dsr.constants.roles import KIND_CUSTOMER
from dsr.core.access import require
from dsr.core.customers import adjust_outstanding, normalize_customer_fields
from dsr.core.errors import DuplicateRecordError, InvalidStateError, ValidationError
from dsr.decorators.auth import login_required
from dsr.decorators.audit import audit_log
from dsr.models.customer import Customer
from dsr.models.deposit import Deposit
from dsr.models.hand_bill import HandBill
from dsr.models.returns import Return
from dsr.models.sale import Sale
from dsr.models.sales_order import SalesOrder
from dsr.services.policy import current_actor, current_scope, filter_query_by_scope, record_store
from dsr.config.pagination import normalize_pagination
from dsr.utils.filters import apply_filters
from dsr.utils.listing import paginated_response
from dsr.utils.serialization import row_json
from dsr.utils.sorting import apply_multi_sort

customers_bp = Blueprint('customers', __name__)


def _customer_json(c):
    return row_json(c)


def _load(customer_id: int) -> Customer:
    c = get_db().get(Customer, customer_id)
    if not c:
        abort(404)
    return c


def _assert_unique_phone(phone, exclude_id=None):
    if not phone:
        return
    q = select(Customer.id).where(Customer.phone == phone)
    if exclude_id is not None:
        q = q.where(Customer.id != exclude_id)
    if get_db().execute(q).first():
        raise DuplicateRecordError('A customer with this phone number already exists')


@customers_bp.get('')
@login_required
def list_customers():
    q = get_db().query(Customer)
    filter_specs = {
        'q': {'op': lambda qu, v: qu.filter(or_(
            Customer.customer_name.ilike(f'%{v}%'),
            Customer.phone.ilike(f'%{v}%'),
            Customer.email.ilike(f'%{v}%'),
        ))},
        'has_outstanding': {
            'coerce': lambda v: str(v).lower() in ('1', 'true', 'yes'),
            'op': lambda qu, v: qu.filter(Customer.total_outstanding_cents > 0) if v else qu,
        },
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {
        'customer_name': Customer.customer_name,
        'total_outstanding_cents': Customer.total_outstanding_cents,
        'id': Customer.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Customer.id, default='customer_name')
    return paginated_response(q, _customer_json)


@customers_bp.get('/search')
@login_required
def search_by_phone():
    phone = (request.args.get('phone') or '').strip()
    if not phone:
        abort(400, description='phone is required')
    c = get_db().execute(select(Customer).where(Customer.phone == phone)).scalar_one_or_none()
    if not c:
        abort(404, description='Customer not found')
    return _customer_json(c)


@customers_bp.get('/<int:customer_id>')
@login_required
def get_customer(customer_id: int):
    return _customer_json(_load(customer_id))


# model, date column, customer link column, id type stored in the link column
HISTORY_SOURCES = {
    'sales': (Sale, Sale.sale_date, Sale.customer_reference, str),
    'orders': (SalesOrder, SalesOrder.order_date, SalesOrder.customer_id, int),
    'hand_bills': (HandBill, HandBill.sale_date, HandBill.customer_id, int),
    'deposits': (Deposit, Deposit.deposit_date, Deposit.customer_id, int),
    'returns': (Return, Return.return_date, Return.customer_id, int),
}


@customers_bp.get('/<int:customer_id>/transactions')
@login_required
def customer_transactions(customer_id: int):
    """Newest-first activity for one customer, limited to the stores the caller can see.

    Sales link to customers through the free-text customer_reference, which holds the id.
    """
    _load(customer_id)
    try:
        limit, _ = normalize_pagination(request.args.get('limit') or 20, None)
    except ValueError as e:
        abort(400, description=str(e))
    scope = current_scope()
    history = {}
    for key, (model, date_column, link_column, as_link) in HISTORY_SOURCES.items():
        q = filter_query_by_scope(get_db().query(model).filter(link_column == as_link(customer_id)), model.store_id, scope)
        rows = q.order_by(date_column.desc(), model.id.desc()).limit(limit).all()
        history[key] = [row_json(r) for r in rows]
    return {'customer_id': customer_id, **history}


@customers_bp.post('')
@login_required
@audit_log('CUSTOMER.CREATE', entity='Customer', meta_keys=['customer_name', 'phone'])
def create_customer():
    actor = current_actor()
    require(actor, KIND_CUSTOMER, 'create')
    fields = normalize_customer_fields(request.get_json(silent=True) or {})
    _assert_unique_phone(fields.get('phone'))
    c = Customer(created_by=actor.id, **fields)
    session = get_db()
    session.add(c)
    session.commit()
    return _customer_json(c), 201


@customers_bp.patch('/<int:customer_id>')
@login_required
@audit_log('CUSTOMER.UPDATE', entity='Customer',
           diff_keys=['customer_name', 'phone', 'email', 'address', 'credit_limit_cents'],
           pre_fetch=lambda a, kw: _customer_json(_load(kw['customer_id'])))
def update_customer(customer_id: int):
    require(current_actor(), KIND_CUSTOMER, 'update')
    c = _load(customer_id)
    fields = normalize_customer_fields(request.get_json(silent=True) or {}, partial=True)
    if not fields:
        raise ValidationError('No updatable fields provided')
    if 'phone' in fields:
        _assert_unique_phone(fields['phone'], exclude_id=c.id)
    for key, value in fields.items():
        setattr(c, key, value)
    get_db().commit()
    return _customer_json(c)


@customers_bp.post('/<int:customer_id>/outstanding')
@login_required
@audit_log('CUSTOMER.OUTSTANDING', entity='Customer',
           meta_builder=lambda data, rv, a, kw: {
               'operation': (request.get_json(silent=True) or {}).get('operation'),
               'total_outstanding_cents': data.get('total_outstanding_cents'),
           })
def update_outstanding(customer_id: int):
    """Add a credit sale to, or take a payment off, the customer's balance."""
    require(current_actor(), KIND_CUSTOMER, 'adjust_outstanding')
    store = record_store()
    customer = store.get(KIND_CUSTOMER, customer_id)
    if customer is None:
        abort(404)
    data = request.get_json(silent=True) or {}
    new_balance = adjust_outstanding(customer, data.get('operation'), data.get('amount_cents'))
    row = store.conditional_update(
        KIND_CUSTOMER, customer_id, 'total_outstanding_cents', customer['total_outstanding_cents'],
        {'total_outstanding_cents': new_balance},
    )
    if row is None:
        raise InvalidStateError('Outstanding balance changed concurrently; retry')
    return _customer_json(row)
