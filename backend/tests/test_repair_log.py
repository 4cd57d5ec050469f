from repairdesk.constants.permissions import ROLE_ADMIN, ROLE_TECHNICIAN
from tests.test_utils_seed import ensure_user
from tests.test_lifecycle_helpers import role_headers, create_resource_and_assert


def _job(client, h):
    return create_resource_and_assert(client, '/jobs', {'customer_name': 'Log Customer', 'device': 'Switch OLED',
                                                         'issue': 'Joycon drift'}, h)


def test_log_entries_accumulate_minutes_and_external_cost(app_instance, client):
    h = role_headers(app_instance, 'log-admin@example.com', ROLE_ADMIN)
    job = _job(client, h)
    url = f"/jobs/{job['id']}/log"
    assert client.get(url, headers=h).get_json()['data'] == []

    r = client.post(url, json={'action': 'Initial diagnosis', 'notes': 'Stick module worn', 'duration_minutes': 45}, headers=h)
    assert r.status_code == 201
    first = r.get_json()
    assert first['technician'] == 'log-admin'
    assert first['technician_role'] == 'internal'
    assert first['cost_cents'] is None

    # cost is dropped for internal work
    client.post(url, json={'action': 'Ordered sticks', 'technician': 'Amy Lee', 'duration_minutes': 20,
                           'cost_cents': 999}, headers=h)
    r = client.post(url, json={'action': 'Board rework', 'technician': 'ElectroPro Services',
                               'technician_role': 'external', 'duration_minutes': 120, 'cost_cents': 18000}, headers=h)
    assert r.get_json()['cost_cents'] == 18000

    body = client.get(url, headers=h).get_json()
    assert [e['action'] for e in body['data']] == ['Initial diagnosis', 'Ordered sticks', 'Board rework']
    assert body['data'][1]['cost_cents'] is None
    assert body['total_minutes'] == 185
    assert body['external_cost_cents'] == 18000


def test_log_entry_validation(app_instance, client):
    h = role_headers(app_instance, 'log-admin@example.com', ROLE_ADMIN)
    job = _job(client, h)
    url = f"/jobs/{job['id']}/log"
    assert client.post(url, json={'duration_minutes': 5}, headers=h).status_code == 400
    assert client.post(url, json={'action': 'x', 'duration_minutes': -1}, headers=h).status_code == 400
    assert client.post(url, json={'action': 'x', 'technician_role': 'contractor'}, headers=h).status_code == 400
    assert client.post(url, json={'action': 'x', 'technician': 7}, headers=h).status_code == 400
    assert client.post('/jobs/999999/log', json={'action': 'x'}, headers=h).status_code == 404


def test_assignment_writes_reassignment_entries(app_instance, client):
    h = role_headers(app_instance, 'log-admin@example.com', ROLE_ADMIN)
    with app_instance.app_context():
        tech_id = ensure_user('log-tech@example.com', role=ROLE_TECHNICIAN, name='Mike Log').id
    job = _job(client, h)
    assign = f"/jobs/{job['id']}/assign"

    client.put(assign, json={'user_id': tech_id}, headers=h)
    # same technician again is not a hand-over
    client.put(assign, json={'user_id': tech_id}, headers=h)
    client.put(assign, json={'external_name': 'MicroRepair Specialists', 'external_cost_cents': 6500,
                             'notes': 'Needs BGA station'}, headers=h)
    client.put(assign, json={'user_id': None}, headers=h)

    entries = client.get(f"/jobs/{job['id']}/log", headers=h).get_json()['data']
    assert len(entries) == 2
    internal, external = entries
    assert internal['action'] == 'Reassigned repair work'
    assert internal['technician'] == 'Mike Log' and internal['reassigned_from'] is None
    assert external['technician'] == 'MicroRepair Specialists'
    assert external['technician_role'] == 'external'
    assert external['reassigned_from'] == 'Mike Log'
    assert external['cost_cents'] == 6500
    assert external['notes'] == 'Needs BGA station'


def test_technician_logs_work_and_deleting_job_clears_log(app_instance, client):
    admin = role_headers(app_instance, 'log-admin@example.com', ROLE_ADMIN)
    tech = role_headers(app_instance, 'log-tech2@example.com', ROLE_TECHNICIAN)
    job = _job(client, admin)
    url = f"/jobs/{job['id']}/log"
    assert client.post(url, json={'action': 'Replaced stick', 'duration_minutes': 30}, headers=tech).status_code == 201
    assert client.get(url, headers=tech).get_json()['total_minutes'] == 30
    assert client.delete(f"/jobs/{job['id']}", headers=admin).status_code == 200
    assert client.get(url, headers=admin).status_code == 404
