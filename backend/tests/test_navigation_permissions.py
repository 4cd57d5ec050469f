import pytest
from repairdesk.constants.permissions import (
    ALL_PERMISSION_CODES, ROLE_ADMIN, ROLE_SUPER_ADMIN, ROLE_TECHNICIAN, permissions_for_role,
)
from repairdesk.constants.navigation import visible_navigation, visible_links
from tests.test_lifecycle_helpers import role_headers


def _keys(links):
    return [l['key'] for l in links]


def test_role_presets():
    assert set(permissions_for_role(ROLE_SUPER_ADMIN)) == set(ALL_PERMISSION_CODES)
    admin = set(permissions_for_role(ROLE_ADMIN))
    assert not any(p.startswith('ADMIN.') for p in admin)
    assert {'BILL.MANAGE', 'RPT.FINANCE', 'JOB.ASSIGN'} <= admin
    tech = set(permissions_for_role(ROLE_TECHNICIAN))
    assert tech == {'JOB.READ', 'JOB.UPDATE', 'INV.READ', 'INV.USE', 'CUST.READ', 'MSG.READ', 'MSG.SEND', 'RPT.READ'}
    assert permissions_for_role('intern') == []


@pytest.mark.parametrize('role,present,absent', [
    (ROLE_TECHNICIAN, ['dashboard', 'jobs', 'technician'], ['invoices', 'accounting', 'users', 'technician-analytics']),
    (ROLE_ADMIN, ['invoices', 'accounting', 'technician-analytics'], ['users', 'settings']),
    (ROLE_SUPER_ADMIN, ['users', 'settings', 'invoices'], []),
])
def test_visible_navigation(role, present, absent):
    keys = _keys(visible_navigation(role))
    for k in present:
        assert k in keys
    for k in absent:
        assert k not in keys


def test_unknown_role_sees_nothing():
    assert visible_navigation('') == []
    assert visible_links([]) == []


def test_navigation_endpoint_matches_token(app_instance, client):
    h = role_headers(app_instance, 'nav-tech@example.com', ROLE_TECHNICIAN)
    body = client.get('/iam/navigation', headers=h).get_json()
    assert body['role'] == ROLE_TECHNICIAN
    assert _keys(body['links']) == _keys(visible_navigation(ROLE_TECHNICIAN))
    assert client.get('/iam/navigation').status_code == 401
