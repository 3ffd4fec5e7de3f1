from tests.test_lifecycle_helpers import assert_error


def _post(client, url, payload, headers):
    resp = client.post(url, json=payload, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def _seed_day(client, auth):
    c1 = auth('cashier1')
    _post(client, '/sales/batch', {'entries': [
        {'tender_type': 'cash', 'amount_cents': 10000},
        {'tender_type': 'upi', 'amount_cents': 4000},
    ]}, c1)
    rejected = _post(client, '/sales', {'tender_type': 'cash', 'amount_cents': 999}, c1)
    client.patch(f"/sales/{rejected['id']}/approval", json={'approval_status': 'rejected'}, headers=auth('manager1'))
    _post(client, '/expenses', {'category': 'logistics', 'amount_cents': 1500, 'description': 'Courier'}, c1)
    _post(client, '/expenses', {'category': 'utilities', 'amount_cents': 700, 'description': 'Power',
                                'payment_method': 'bank_transfer'}, c1)
    _post(client, '/returns', {'return_amount_cents': 500, 'return_reason': 'Damaged', 'payment_method': 'cash'}, c1)
    _post(client, '/sales', {'tender_type': 'cash', 'amount_cents': 3000}, auth('cashier2'))


def test_daily_sales_report(client, auth, org):
    _seed_day(client, auth)
    everyone = client.get('/reports/daily-sales', headers=auth('accounts')).get_json()
    assert everyone['date'] == '2025-01-15'
    assert everyone['total_cents'] == 17000
    assert everyone['by_status']['rejected']['count'] == 1
    assert everyone['by_store'] == [
        {'store_id': org['stores']['S01'], 'amount_cents': 14000},
        {'store_id': org['stores']['S02'], 'amount_cents': 3000},
    ]
    own = client.get('/reports/daily-sales', headers=auth('cashier1')).get_json()
    assert own['total_cents'] == 14000
    other_day = client.get('/reports/daily-sales?date=2025-01-14', headers=auth('accounts')).get_json()
    assert other_day['count'] == 0


def test_cash_reconciliation(client, auth, org):
    _seed_day(client, auth)
    assert_error(client.get('/reports/cash-reconciliation', headers=auth('accounts')), 400, 'Store selection is required')
    assert_error(client.get('/reports/cash-reconciliation', headers=auth('cashier1')), 403)
    url = f"/reports/cash-reconciliation?store_id={org['stores']['S01']}&counted_cash_cents=8000"
    body = client.get(url, headers=auth('accounts')).get_json()
    recon = body['reconciliation']
    assert body['store_id'] == org['stores']['S01']
    assert recon['cash_sales_cents'] == 10000
    assert recon['petty_cash_expenses_cents'] == 1500
    assert recon['cash_returns_cents'] == 500
    assert recon['expected_cash_cents'] == 8000
    assert recon['variance_cents'] == 0
    assert recon['variance_status'] == 'balanced'
    short = client.get('/reports/cash-reconciliation?counted_cash_cents=7500', headers=auth('manager1')).get_json()
    assert short['reconciliation']['variance_cents'] == -500
    assert short['reconciliation']['variance_status'] == 'short'


def test_dashboard(client, auth, clock):
    _seed_day(client, auth)
    _post(client, '/hand-bills', {'total_amount_cents': 800}, auth('cashier1'))
    clock.advance(days=2)
    _post(client, '/sales', {'tender_type': 'cash', 'amount_cents': 100}, auth('cashier1'))
    stats = client.get('/reports/dashboard', headers=auth('manager1')).get_json()
    assert stats['date'] == '2025-01-17'
    assert stats['all_stores'] is False
    assert stats['today_sales_cents'] == 100
    assert stats['pending_sales'] == 3
    assert stats['pending_expenses'] == 2
    assert stats['pending_approvals'] == 5
    assert stats['overdue_hand_bills'] == 1
    assert stats['expected_cash_cents'] == 100
    everywhere = client.get('/reports/dashboard', headers=auth('admin')).get_json()
    assert everywhere['all_stores'] is True
    assert everywhere['pending_sales'] == 4
    assert everywhere['expected_cash_cents'] is None


def test_dashboard_reports_expected_drawer_cash(client, auth, org):
    _seed_day(client, auth)
    stats = client.get('/reports/dashboard', headers=auth('cashier1')).get_json()
    assert stats['expected_cash_cents'] == 8000
    assert stats['petty_cash_exceeded'] is False
    resp = client.patch(f"/stores/{org['stores']['S01']}", json={'petty_cash_limit_cents': 1000}, headers=auth('admin'))
    assert resp.status_code == 200, resp.get_json()
    assert client.get('/reports/dashboard', headers=auth('manager1')).get_json()['petty_cash_exceeded'] is True
