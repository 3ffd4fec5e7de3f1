from dsr import get_db
from dsr.models.audit import AuditLog
from tests.test_lifecycle_helpers import assert_error


def _create_sale(client, headers, **fields):
    payload = {'tender_type': 'cash', 'amount_cents': 1000}
    payload.update(fields)
    resp = client.post('/sales', json=payload, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def test_batch_grid_creates_one_sale_per_filled_tender(client, auth, org):
    resp = client.post('/sales/batch', json={
        'sale_date': '2025-01-14',
        'entries': [
            {'tender_type': 'cash', 'amount_cents': 100},
            {'tender_type': 'credit', 'amount_cents': 0},
            {'tender_type': 'upi', 'amount_cents': 50, 'transaction_reference': 'UPI-1'},
        ],
    }, headers=auth('cashier1'))
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['created'] == 2
    assert body['store_id'] == org['stores']['S01']
    assert [(r['tender_type'], r['amount_cents']) for r in body['data']] == [('cash', 100), ('upi', 50)]
    assert {r['sale_date'] for r in body['data']} == {'2025-01-14'}
    assert body['data'][1]['transaction_reference'] == 'UPI-1'
    audit = get_db().query(AuditLog).filter_by(action='SALE.BATCH_CREATE').one()
    assert audit.meta['count'] == 2


def test_batch_with_nothing_filled_creates_nothing(client, auth):
    headers = auth('cashier1')
    resp = client.post('/sales/batch', json={'entries': [{'tender_type': 'cash', 'amount_cents': 0}]}, headers=headers)
    assert_error(resp, 400, 'at least one entry')
    assert client.get('/sales', headers=headers).get_json()['pagination']['total'] == 0


def test_batch_rejects_unknown_tender(client, auth):
    resp = client.post('/sales/batch', json={'entries': [{'tender_type': 'cheque', 'amount_cents': 10}]},
                       headers=auth('cashier1'))
    assert_error(resp, 400)


def test_sale_defaults_to_today_and_pending(client, auth, clock):
    sale = _create_sale(client, auth('cashier1'))
    assert sale['approval_status'] == 'pending'
    assert sale['sale_date'] == clock.today().isoformat()


def test_inline_approval_and_double_decision(client, auth):
    sale = _create_sale(client, auth('cashier1'))
    url = f"/sales/{sale['id']}/approval"
    assert_error(client.patch(url, json={'approval_status': 'approved'}, headers=auth('cashier1')), 403)
    ok = client.patch(url, json={'approval_status': 'approved', 'approval_notes': 'checked'}, headers=auth('manager1'))
    assert ok.status_code == 200, ok.get_json()
    assert ok.get_json()['approval_status'] == 'approved'
    assert ok.get_json()['approval_notes'] == 'checked'
    again = client.patch(url, json={'approval_status': 'rejected'}, headers=auth('accounts'))
    assert_error(again, 409)
    assert client.get(f"/sales/{sale['id']}", headers=auth('manager1')).get_json()['approval_status'] == 'approved'


def test_super_user_cannot_use_inline_approval(client, auth):
    sale = _create_sale(client, auth('cashier1'))
    resp = client.patch(f"/sales/{sale['id']}/approval", json={'approval_status': 'approved'}, headers=auth('admin'))
    assert_error(resp, 403)


def test_manager_cannot_decide_other_store(client, auth):
    sale = _create_sale(client, auth('cashier2'))
    resp = client.patch(f"/sales/{sale['id']}/approval", json={'approval_status': 'approved'}, headers=auth('manager1'))
    assert_error(resp, 403)
    assert_error(client.get(f"/sales/{sale['id']}", headers=auth('cashier1')), 403)


def test_listing_is_store_scoped(client, auth, org):
    _create_sale(client, auth('cashier1'))
    _create_sale(client, auth('cashier2'), tender_type='upi')
    assert client.get('/sales', headers=auth('cashier1')).get_json()['pagination']['total'] == 1
    assert client.get('/sales', headers=auth('accounts')).get_json()['pagination']['total'] == 2
    narrowed = client.get(f"/sales?store_id={org['stores']['S02']}", headers=auth('accounts')).get_json()
    assert [r['tender_type'] for r in narrowed['data']] == ['upi']
    assert_error(client.get(f"/sales?store_id={org['stores']['S02']}", headers=auth('cashier1')), 403)


def test_accounts_must_choose_store_to_create(client, auth, org):
    assert_error(client.post('/sales', json={'tender_type': 'cash', 'amount_cents': 5}, headers=auth('accounts')),
                 400, 'Store selection is required')
    sale = _create_sale(client, auth('accounts'), store_id=org['stores']['S02'])
    assert sale['store_id'] == org['stores']['S02']


def test_summary_and_etag(client, auth):
    headers = auth('cashier1')
    _create_sale(client, headers, amount_cents=700)
    _create_sale(client, headers, tender_type='upi', amount_cents=300)
    summary = client.get('/sales/summary', headers=headers).get_json()
    assert summary['total_cents'] == 1000
    assert summary['by_tender']['upi']['amount_cents'] == 300
    first = client.get('/sales?limit=5', headers=headers)
    etag = first.headers.get('ETag')
    assert etag
    second = client.get('/sales?limit=5', headers={**headers, 'If-None-Match': etag})
    assert second.status_code == 304


def test_pending_sale_can_be_corrected_until_decided(client, auth):
    sale = _create_sale(client, auth('cashier1'), amount_cents=1000)
    url = f"/sales/{sale['id']}"
    fixed = client.patch(url, json={'amount_cents': 1200, 'tender_type': 'upi'}, headers=auth('cashier1'))
    assert fixed.status_code == 200, fixed.get_json()
    assert (fixed.get_json()['amount_cents'], fixed.get_json()['tender_type']) == (1200, 'upi')
    log = get_db().query(AuditLog).filter_by(action='SALE.UPDATE').one()
    assert log.meta['changes']['amount_cents'] == {'before': 1000, 'after': 1200}
    assert_error(client.patch(url, json={'amount_cents': 1}, headers=auth('cashier2')), 403)
    assert_error(client.patch(url, json={'amount_cents': 0}, headers=auth('manager1')), 400)
    client.patch(f'{url}/approval', json={'approval_status': 'approved'}, headers=auth('manager1'))
    assert_error(client.patch(url, json={'amount_cents': 1300}, headers=auth('cashier1')), 409)
    assert client.get(url, headers=auth('cashier1')).get_json()['amount_cents'] == 1200
