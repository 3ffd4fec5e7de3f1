from dsr import get_db
from dsr.models.audit import AuditLog
from tests.test_lifecycle_helpers import assert_error, assert_transition, create_resource_and_assert
from tests.test_utils_seed import ensure_customer


def _sales_order(client, headers, customer_id, total=10000, advance=2000):
    return create_resource_and_assert(client, '/sales-orders', {
        'customer_id': customer_id,
        'items_description': 'Dining table',
        'total_estimated_amount_cents': total,
        'advance_paid_cents': advance,
    }, headers, expected_initial_status='pending')


def _deposit(client, headers, **fields):
    payload = {'deposit_type': 'sales_order', 'payment_method': 'cash'}
    payload.update(fields)
    resp = client.post('/deposits', json=payload, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def _advance(client, headers, order_id):
    return client.get(f'/sales-orders/{order_id}', headers=headers).get_json()['advance_paid_cents']


def test_order_deposit_updates_advance(client, auth, org):
    customer_id = ensure_customer('Ravi', '9000000001')
    order = _sales_order(client, auth('cashier1'), customer_id)
    dep = _deposit(client, auth('cashier1'), sales_order_id=order['id'], amount_cents=3000)
    assert dep['store_id'] == org['stores']['S01']
    assert dep['customer_id'] == customer_id
    assert dep['deposit_date'] == '2025-01-15'
    assert _advance(client, auth('cashier1'), order['id']) == 5000
    detail = client.get(f"/deposits/{dep['id']}", headers=auth('manager1')).get_json()
    assert detail['linked_sales_order']['order_number'] == order['order_number']
    assert detail['linked_sales_order']['advance_paid_cents'] == 5000
    audit = get_db().query(AuditLog).filter_by(action='DEPOSIT.CREATE').one()
    assert audit.meta['amount_cents'] == 3000


def test_order_deposit_over_total_is_rejected(client, auth):
    customer_id = ensure_customer('Ravi', '9000000001')
    order = _sales_order(client, auth('cashier1'), customer_id)
    resp = client.post('/deposits', json={'deposit_type': 'sales_order', 'sales_order_id': order['id'],
                                          'amount_cents': 8001, 'payment_method': 'upi'}, headers=auth('cashier1'))
    assert_error(resp, 400, 'would exceed')
    assert _advance(client, auth('cashier1'), order['id']) == 2000
    assert_error(client.post('/deposits', json={'deposit_type': 'sales_order', 'sales_order_id': order['id'],
                                                'amount_cents': 100, 'payment_method': 'upi'},
                             headers=auth('cashier2')), 403)


def test_converted_order_takes_no_deposit(client, auth):
    customer_id = ensure_customer('Ravi', '9000000001')
    order = _sales_order(client, auth('cashier1'), customer_id)
    assert_transition(client, f"/sales-orders/{order['id']}/convert", auth('manager1'), 200,
                      json={'erp_sale_bill_number': 'ERP-9'})
    resp = client.post('/deposits', json={'deposit_type': 'sales_order', 'sales_order_id': order['id'],
                                          'amount_cents': 100, 'payment_method': 'cash'}, headers=auth('cashier1'))
    assert_error(resp, 409)


def test_update_and_delete_keep_advance_in_step(client, auth):
    customer_id = ensure_customer('Ravi', '9000000001')
    order = _sales_order(client, auth('cashier1'), customer_id)
    dep = _deposit(client, auth('cashier1'), sales_order_id=order['id'], amount_cents=3000)
    url = f"/deposits/{dep['id']}"
    assert_error(client.patch(url, json={'amount_cents': 1000}, headers=auth('cashier1')), 403)
    resp = client.patch(url, json={'amount_cents': 1000}, headers=auth('manager1'))
    assert resp.status_code == 200, resp.get_json()
    assert _advance(client, auth('manager1'), order['id']) == 3000
    change = get_db().query(AuditLog).filter_by(action='DEPOSIT.UPDATE').one()
    assert change.meta['changes']['amount_cents'] == {'before': 3000, 'after': 1000}
    assert_error(client.delete(url, headers=auth('manager1')), 403)
    gone = client.delete(url, headers=auth('accounts'))
    assert gone.status_code == 200, gone.get_json()
    assert _advance(client, auth('accounts'), order['id']) == 2000
    assert_error(client.get(url, headers=auth('accounts')), 404)


def test_listing_scope_and_summary(client, auth, org):
    customer_id = ensure_customer('Ravi', '9000000001')
    order = _sales_order(client, auth('cashier1'), customer_id)
    _deposit(client, auth('cashier1'), sales_order_id=order['id'], amount_cents=1500)
    _deposit(client, auth('cashier2'), deposit_type='other', amount_cents=700, payment_method='upi')
    _deposit(client, auth('accounts'), deposit_type='other', amount_cents=300, payment_method='bank_transfer',
             store_id=org['stores']['S01'])
    assert_error(client.post('/deposits', json={'deposit_type': 'other', 'amount_cents': 1, 'payment_method': 'cash'},
                             headers=auth('accounts')), 400, 'Store selection')
    own = client.get('/deposits', headers=auth('manager1')).get_json()
    assert own['pagination']['total'] == 2
    others = client.get('/deposits?deposit_type=other', headers=auth('accounts')).get_json()
    assert others['pagination']['total'] == 2
    assert client.get('/deposits?payment_method=cheque', headers=auth('accounts')).status_code == 400
    summary = client.get('/deposits/stats/summary', headers=auth('accounts')).get_json()
    assert summary['total'] == 3
    assert summary['total_amount_cents'] == 2500
    assert summary['by_type']['sales_order'] == {'count': 1, 'amount_cents': 1500}
    assert summary['by_payment_method']['credit_card'] == {'count': 0, 'amount_cents': 0}
    store_two = client.get('/deposits/stats/summary', headers=auth('cashier2')).get_json()
    assert store_two['total_amount_cents'] == 700
