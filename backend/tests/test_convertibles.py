import pytest

from tests.test_lifecycle_helpers import assert_error, assert_transition, create_resource_and_assert
from tests.test_utils_seed import ensure_customer


def _hand_bill(client, headers, **fields):
    payload = {'total_amount_cents': 2500, 'customer_name': 'Walk-in', 'items_description': 'Frames x2'}
    payload.update(fields)
    return create_resource_and_assert(client, '/hand-bills', payload, headers, expected_initial_status='pending')


def _sales_order(client, headers, customer_id, **fields):
    payload = {
        'customer_id': customer_id,
        'items_description': 'Custom shelf',
        'total_estimated_amount_cents': 10000,
        'advance_paid_cents': 2000,
    }
    payload.update(fields)
    return create_resource_and_assert(client, '/sales-orders', payload, headers, expected_initial_status='pending')


def test_hand_bill_numbering_and_conversion(client, auth, org):
    first = _hand_bill(client, auth('cashier1'))
    second = _hand_bill(client, auth('cashier1'), total_amount_cents=900)
    assert first['bill_number'] == 'HB-20250115-0001'
    assert second['bill_number'] == 'HB-20250115-0002'
    assert first['store_id'] == org['stores']['S01']
    assert first['is_overdue'] is False and first['age_days'] == 0
    url = f"/hand-bills/{first['id']}/convert"
    assert_transition(client, url, auth('cashier1'), 403, json={'erp_sale_bill_number': 'ERP-1'})
    assert_error(client.post(url, json={}, headers=auth('manager1')), 400, 'erp_sale_bill_number')
    done = assert_transition(client, url, auth('manager1'), 200, json={'erp_sale_bill_number': 'ERP-1'},
                             expected_body_value='converted').get_json()
    assert done['erp_sale_bill_number'] == 'ERP-1'
    assert done['converted_by'] == org['users']['manager1']
    assert_transition(client, url, auth('manager1'), 409, json={'erp_sale_bill_number': 'ERP-2'})


def test_cancelled_hand_bill_is_terminal(client, auth):
    bill = _hand_bill(client, auth('cashier1'))
    cancelled = assert_transition(client, f"/hand-bills/{bill['id']}/cancel", auth('manager1'), 200,
                                  expected_body_value='cancelled').get_json()
    assert cancelled['cancel_reason'] == 'Hand bill cancelled'
    resp = client.post(f"/hand-bills/{bill['id']}/convert", json={'erp_sale_bill_number': 'ERP-9'}, headers=auth('manager1'))
    assert_error(resp, 409)
    assert_error(client.patch(f"/hand-bills/{bill['id']}", json={'notes': 'late'}, headers=auth('manager1')), 409)


def test_hand_bill_edit_while_pending(client, auth):
    bill = _hand_bill(client, auth('cashier1'))
    resp = client.patch(f"/hand-bills/{bill['id']}", json={'total_amount_cents': 3000, 'notes': 'fixed'}, headers=auth('manager1'))
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['total_amount_cents'] == 3000
    assert_error(client.patch(f"/hand-bills/{bill['id']}", json={'notes': 'x'}, headers=auth('cashier1')), 403)


def test_other_store_hand_bill_is_hidden(client, auth):
    bill = _hand_bill(client, auth('cashier2'))
    assert_error(client.get(f"/hand-bills/{bill['id']}", headers=auth('manager1')), 403)
    assert_error(client.post(f"/hand-bills/{bill['id']}/cancel", headers=auth('manager1')), 403)
    assert client.get('/hand-bills', headers=auth('cashier1')).get_json()['pagination']['total'] == 0


def test_hand_bill_overdue_listing(client, auth, clock):
    headers = auth('cashier1')
    old = _hand_bill(client, headers)
    clock.advance(days=2)
    fresh = _hand_bill(client, headers)
    overdue = client.get('/hand-bills/overdue', headers=headers).get_json()
    assert overdue['threshold_days'] == 1
    assert [r['id'] for r in overdue['data']] == [old['id']]
    assert overdue['data'][0]['age_days'] == 2
    assert overdue['data'][0]['is_overdue'] is True
    listed = client.get('/hand-bills?overdue=true', headers=headers).get_json()
    assert [r['id'] for r in listed['data']] == [old['id']]
    assert client.get(f"/hand-bills/{fresh['id']}", headers=headers).get_json()['is_overdue'] is False
    stats = client.get('/hand-bills/stats/summary', headers=headers).get_json()
    assert stats['total'] == 2
    assert stats['overdue'] == 1
    assert stats['by_status']['pending']['count'] == 2
    assert stats['total_amount_cents'] == 5000


def test_exactly_threshold_old_is_not_overdue(client, auth, clock):
    headers = auth('cashier1')
    _hand_bill(client, headers)
    clock.advance(days=1)
    assert client.get('/hand-bills/overdue', headers=headers).get_json()['count'] == 0


def test_sales_order_requires_customer(client, auth):
    resp = client.post('/sales-orders', json={'items_description': 'Shelf', 'total_estimated_amount_cents': 500},
                       headers=auth('cashier1'))
    assert_error(resp, 400, 'customer_id is required')
    resp = client.post('/sales-orders', json={'customer_id': 999, 'items_description': 'Shelf',
                                              'total_estimated_amount_cents': 500}, headers=auth('cashier1'))
    assert_error(resp, 400, 'Customer not found')


@pytest.mark.parametrize('advance', [-1, 10001])
def test_sales_order_advance_bounds(client, auth, advance):
    customer_id = ensure_customer('Ravi', '9000000001')
    resp = client.post('/sales-orders', json={'customer_id': customer_id, 'items_description': 'Shelf',
                                              'total_estimated_amount_cents': 10000, 'advance_paid_cents': advance},
                       headers=auth('cashier1'))
    assert_error(resp, 400, 'advance_paid_cents')


def test_sales_order_lifecycle(client, auth, clock):
    customer_id = ensure_customer('Ravi', '9000000001')
    order = _sales_order(client, auth('cashier1'), customer_id, delivery_date='2025-01-25')
    assert order['order_number'] == 'SO-20250115-0001'
    assert order['customer_id'] == customer_id
    assert order['delivery_date'] == '2025-01-25'
    clock.advance(days=8)
    overdue = client.get('/sales-orders/overdue', headers=auth('manager1')).get_json()
    assert overdue['threshold_days'] == 7
    assert [r['id'] for r in overdue['data']] == [order['id']]
    done = assert_transition(client, f"/sales-orders/{order['id']}/convert", auth('manager1'), 200,
                             json={'erp_sale_bill_number': 'ERP-77', 'notes': 'delivered'},
                             expected_body_value='converted').get_json()
    assert done['conversion_notes'] == 'delivered'
    assert done['is_overdue'] is False
    assert client.get('/sales-orders/overdue', headers=auth('manager1')).get_json()['count'] == 0
    resp = client.post(f"/sales-orders/{order['id']}/cancel", json={'reason': 'changed mind'}, headers=auth('manager1'))
    assert_error(resp, 409)


def test_sales_order_cancel_keeps_reason(client, auth):
    customer_id = ensure_customer('Meena', '9000000002')
    order = _sales_order(client, auth('cashier1'), customer_id)
    resp = client.post(f"/sales-orders/{order['id']}/cancel", json={'reason': 'Customer withdrew'}, headers=auth('manager1'))
    assert resp.status_code == 200
    assert resp.get_json()['cancel_reason'] == 'Customer withdrew'
    assert resp.get_json()['cancelled_by'] is not None


def test_cashier_can_edit_pending_sales_order(client, auth):
    customer_id = ensure_customer('Ravi', '9000000001')
    so = _sales_order(client, auth('cashier1'), customer_id)
    url = f"/sales-orders/{so['id']}"
    resp = client.patch(url, json={'advance_paid_cents': 5000}, headers=auth('cashier1'))
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['advance_paid_cents'] == 5000
    assert_error(client.patch(url, json={'notes': 'x'}, headers=auth('cashier2')), 403)
