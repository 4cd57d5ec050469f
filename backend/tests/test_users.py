from repairdesk import get_db
from repairdesk.models.authz import User
from repairdesk.constants.permissions import ROLE_ADMIN, ROLE_SUPER_ADMIN, ROLE_TECHNICIAN
from tests.test_utils_seed import ensure_user
from tests.test_lifecycle_helpers import role_headers, jwt_headers, login_headers


def _owner(app):
    return role_headers(app, 'users-owner@example.com', ROLE_SUPER_ADMIN)


def test_create_user_validation(app_instance, client):
    h = _owner(app_instance)
    base = {'name': 'New Tech', 'email': 'New.Tech@Example.com', 'password': 'secret1'}
    r = client.post('/iam/users', json={**base, 'confirm_password': 'secret2'}, headers=h)
    assert r.get_json()['error']['detail'] == 'passwords do not match'
    r = client.post('/iam/users', json={**base, 'password': 'abc', 'confirm_password': 'abc'}, headers=h)
    assert r.status_code == 400 and 'at least 6' in r.get_json()['error']['detail']
    r = client.post('/iam/users', json={**base, 'role': 'janitor'}, headers=h)
    assert r.status_code == 400

    r = client.post('/iam/users', json={**base, 'confirm_password': 'secret1', 'specialties': 'Phones, Consoles'}, headers=h)
    assert r.status_code == 201, r.get_json()
    user = r.get_json()
    assert user['email'] == 'new.tech@example.com'
    assert user['role'] == ROLE_TECHNICIAN
    assert user['specialties'] == ['Phones', 'Consoles']
    assert client.post('/iam/users', json=base, headers=h).get_json()['error']['detail'] == 'email in use'

    # the new account can sign in
    assert login_headers(client, 'new.tech@example.com', 'secret1')


def test_admin_cannot_manage_users(app_instance, client):
    h = role_headers(app_instance, 'users-admin@example.com', ROLE_ADMIN)
    assert client.get('/iam/users', headers=h).status_code == 403
    assert client.get('/iam/roles', headers=h).status_code == 403


def test_roles_listing(app_instance, client):
    body = client.get('/iam/roles', headers=_owner(app_instance)).get_json()
    roles = {r['name']: r for r in body['data']}
    assert roles[ROLE_SUPER_ADMIN]['wildcard'] is True
    assert 'ADMIN.USER.MANAGE' in roles[ROLE_SUPER_ADMIN]['permissions']
    assert roles[ROLE_ADMIN]['wildcard'] is False
    assert 'INV.USE' in roles[ROLE_TECHNICIAN]['permissions']


def test_deactivate_and_activate(app_instance, client):
    h = _owner(app_instance)
    with app_instance.app_context():
        uid = ensure_user('users-toggle@example.com', role=ROLE_TECHNICIAN, password='toggle1').id
    r = client.post(f'/iam/users/{uid}/deactivate', headers=h)
    assert r.get_json()['is_active'] is False
    blocked = client.post('/iam/auth/login', json={'email': 'users-toggle@example.com', 'password': 'toggle1'})
    assert blocked.status_code == 403
    technicians = client.get('/iam/technicians', headers=h).get_json()['data']
    assert uid not in [t['id'] for t in technicians]
    assert client.post(f'/iam/users/{uid}/activate', headers=h).get_json()['is_active'] is True
    assert uid in [t['id'] for t in client.get('/iam/technicians', headers=h).get_json()['data']]


def test_cannot_delete_or_deactivate_self(app_instance, client):
    with app_instance.app_context():
        me = ensure_user('users-self@example.com', role=ROLE_SUPER_ADMIN)
        h = jwt_headers(me.id, ROLE_SUPER_ADMIN, me.name)
    r = client.delete(f'/iam/users/{me.id}', headers=h)
    assert r.get_json()['error']['detail'] == 'cannot delete yourself'
    r = client.post(f'/iam/users/{me.id}/deactivate', headers=h)
    assert r.get_json()['error']['detail'] == 'cannot deactivate yourself'


def test_last_super_admin_is_protected(app_instance, client):
    h = _owner(app_instance)
    with app_instance.app_context():
        target = ensure_user('users-lastsa@example.com', role=ROLE_SUPER_ADMIN)
        session = get_db()
        others = session.query(User).filter(User.role==ROLE_SUPER_ADMIN, User.is_active.is_(True), User.id!=target.id).all()
        other_ids = [u.id for u in others]
        for u in others:
            u.is_active = False
        session.commit()
        target_id = target.id
    try:
        r = client.delete(f'/iam/users/{target_id}', headers=h)
        assert r.status_code == 400
        assert r.get_json()['error']['detail'] == 'Cannot remove last super-admin'
        r = client.put(f'/iam/users/{target_id}', json={'role': ROLE_ADMIN}, headers=h)
        assert r.status_code == 400
    finally:
        with app_instance.app_context():
            session = get_db()
            for u in session.query(User).filter(User.id.in_(other_ids)).all():
                u.is_active = True
            session.commit()
    # with another super-admin active again the demotion goes through
    r = client.put(f'/iam/users/{target_id}', json={'role': ROLE_ADMIN}, headers=h)
    assert r.status_code == 200 and r.get_json()['role'] == ROLE_ADMIN


def test_delete_user_unlinks_jobs(app_instance, client):
    h = _owner(app_instance)
    with app_instance.app_context():
        uid = ensure_user('users-leaver@example.com', role=ROLE_TECHNICIAN, name='Lee Leaver').id
    job = client.post('/jobs', json={'customer_name': 'Left Behind', 'device': 'Phone', 'issue': 'Dead',
                                     'assigned_user_id': uid}, headers=h).get_json()
    assert client.delete(f'/iam/users/{uid}', headers=h).get_json() == {'status': 'deleted'}
    body = client.get(f"/jobs/{job['id']}", headers=h).get_json()
    assert body['assigned_user_id'] is None
    assert body['assigned_to'] == 'Lee Leaver'
