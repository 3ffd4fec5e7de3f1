from dsr import get_db
from dsr.models.audit import AuditLog
from dsr.models.authz import User
from dsr.models.store import Store
from tests.test_lifecycle_helpers import assert_error
from tests.test_utils_seed import ensure_store, ensure_user


def _codes(resp):
    return [r['store_code'] for r in resp.get_json()['data']]


def test_store_crud_is_super_user_only(client, auth):
    payload = {'store_code': 's03', 'store_name': 'East Store', 'petty_cash_limit_cents': 100000}
    assert_error(client.post('/stores', json=payload, headers=auth('accounts')), 403)
    resp = client.post('/stores', json=payload, headers=auth('admin'))
    assert resp.status_code == 201, resp.get_json()
    store = resp.get_json()
    assert store['store_code'] == 'S03'
    assert store['is_active'] is True
    assert_error(client.post('/stores', json=payload, headers=auth('admin')), 409)
    assert_error(client.post('/stores', json={'store_code': 'x', 'store_name': 'Bad'}, headers=auth('admin')), 400)
    upd = client.patch(f"/stores/{store['id']}", json={'store_name': 'East Side'}, headers=auth('admin'))
    assert upd.get_json()['store_name'] == 'East Side'
    log = get_db().query(AuditLog).filter_by(action='STORE.UPDATE').one()
    assert log.meta['changes'] == {'store_name': {'before': 'East Store', 'after': 'East Side'}}
    gone = client.delete(f"/stores/{store['id']}", headers=auth('admin'))
    assert gone.status_code == 200
    assert gone.get_json()['is_active'] is False


def test_store_listing_and_detail_are_scoped(client, auth, org):
    assert _codes(client.get('/stores', headers=auth('accounts'))) == ['S01', 'S02']
    assert _codes(client.get('/stores', headers=auth('cashier1'))) == ['S01']
    assert_error(client.get(f"/stores/{org['stores']['S02']}", headers=auth('cashier1')), 403)
    current = client.get('/stores/current', headers=auth('cashier1')).get_json()
    assert current['all_stores'] is False and current['store']['store_code'] == 'S01'
    assert client.get('/stores/current', headers=auth('accounts')).get_json() == {'store': None, 'all_stores': True}


def test_dropdown_is_cached_until_invalidated(client, auth, clock):
    headers = auth('accounts')
    assert _codes(client.get('/stores/dropdown', headers=headers)) == ['S01', 'S02']
    ensure_store('S05', 'Zeta Store')
    # written behind the API's back, so the cached list is still served
    assert _codes(client.get('/stores/dropdown', headers=headers)) == ['S01', 'S02']
    clock.advance(seconds=301)
    assert _codes(client.get('/stores/dropdown', headers=headers)) == ['S01', 'S02', 'S05']
    client.post('/stores', json={'store_code': 'S06', 'store_name': 'Zulu Store'}, headers=auth('admin'))
    assert _codes(client.get('/stores/dropdown', headers=headers)) == ['S01', 'S02', 'S05', 'S06']
    assert _codes(client.get('/stores/dropdown', headers=auth('cashier2'))) == ['S02']


def test_manager_assignment_moves_between_stores(client, auth, org):
    manager = org['users']['manager1']
    s1, s2 = org['stores']['S01'], org['stores']['S02']
    assert client.patch(f'/stores/{s1}', json={'manager_id': manager}, headers=auth('admin')).status_code == 200
    resp = client.patch(f'/stores/{s2}', json={'manager_id': manager}, headers=auth('admin'))
    assert resp.status_code == 200, resp.get_json()
    session = get_db()
    assert session.get(Store, s1).manager_id is None
    assert session.get(Store, s2).manager_id == manager
    assert session.get(User, manager).store_id == s2
    bad = client.patch(f'/stores/{s1}', json={'manager_id': org['users']['cashier1']}, headers=auth('admin'))
    assert_error(bad, 400, 'store_manager role')


def test_manager_creates_cashier_in_own_store(client, auth, org):
    resp = client.post('/users', json={'username': 'cashier9', 'full_name': 'New Cashier', 'role': 'cashier',
                                       'password': 'secret123'}, headers=auth('manager1'))
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['store_id'] == org['stores']['S01']
    assert 'password_hash' not in body
    other_store = client.post('/users', json={'username': 'cashier10', 'full_name': 'Elsewhere', 'role': 'cashier',
                                              'store_id': org['stores']['S02'], 'password': 'secret123'},
                              headers=auth('manager1'))
    assert_error(other_store, 403, 'own store')
    peer = client.post('/users', json={'username': 'manager9', 'full_name': 'Peer', 'role': 'store_manager',
                                       'password': 'secret123'}, headers=auth('manager1'))
    assert_error(peer, 403)
    assert_error(client.post('/users', json={'username': 'x', 'full_name': 'X', 'role': 'cashier'},
                             headers=auth('cashier1')), 403)


def test_user_create_validation(client, auth, org):
    headers = auth('admin')
    assert_error(client.post('/users', json={'full_name': 'No Name', 'role': 'cashier'}, headers=headers), 400)
    assert_error(client.post('/users', json={'username': 'c3', 'full_name': 'C', 'role': 'cashier',
                                             'store_id': org['stores']['S01'], 'password': '123'}, headers=headers),
                 400, 'password')
    assert_error(client.post('/users', json={'username': 'c4', 'full_name': 'C', 'role': 'cashier',
                                             'store_id': org['stores']['S01'], 'authentication_type': 'google_sso'},
                             headers=headers), 400, 'local authentication')
    assert_error(client.post('/users', json={'username': 'cashier1', 'full_name': 'Dup', 'role': 'cashier',
                                             'store_id': org['stores']['S01'], 'password': 'secret123'},
                             headers=headers), 409)
    sso = client.post('/users', json={'username': 'auditor', 'full_name': 'Auditor', 'role': 'accounts_incharge',
                                      'store_id': org['stores']['S01'], 'authentication_type': 'google_sso'},
                      headers=headers)
    assert sso.status_code == 201, sso.get_json()
    assert sso.get_json()['store_id'] is None


def test_role_change_requires_super_user(client, auth, org):
    cashier = org['users']['cashier1']
    assert_error(client.patch(f'/users/{cashier}', json={'role': 'store_manager'}, headers=auth('manager1')),
                 403, 'Only super users')
    ok = client.patch(f'/users/{cashier}', json={'full_name': 'Renamed'}, headers=auth('manager1'))
    assert ok.status_code == 200 and ok.get_json()['full_name'] == 'Renamed'
    promoted = client.patch(f'/users/{cashier}', json={'role': 'store_manager'}, headers=auth('admin'))
    assert promoted.status_code == 200, promoted.get_json()
    assert promoted.get_json()['role'] == 'store_manager'


def test_users_cannot_deactivate_themselves(client, auth, org):
    admin = org['users']['admin']
    assert_error(client.delete(f'/users/{admin}', headers=auth('admin')), 400)
    assert_error(client.patch(f'/users/{admin}', json={'is_active': False}, headers=auth('admin')), 400)
    other = ensure_user('cashier7', 'cashier', org['stores']['S01'])
    resp = client.delete(f'/users/{other}', headers=auth('manager1'))
    assert resp.status_code == 200
    assert resp.get_json()['is_active'] is False


def test_user_listing_is_scoped(client, auth):
    names = [u['username'] for u in client.get('/users', headers=auth('manager2')).get_json()['data']]
    assert names == ['cashier2', 'manager2']
    assert_error(client.get('/users', headers=auth('cashier1')), 403)
    everyone = client.get('/users?role=cashier', headers=auth('accounts')).get_json()
    assert [u['username'] for u in everyone['data']] == ['cashier1', 'cashier2']
