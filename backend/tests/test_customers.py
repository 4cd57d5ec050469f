from repairdesk.constants.permissions import ROLE_ADMIN, ROLE_TECHNICIAN
from tests.test_lifecycle_helpers import role_headers, create_resource_and_assert


def test_customer_crud_and_search(app_instance, client):
    h = role_headers(app_instance, 'cust-admin@example.com', ROLE_ADMIN)
    created = create_resource_and_assert(client, '/customers', {'name': 'Xanthe Vale', 'email': 'xanthe@example.com',
                                                                 'phone': '555-0199', 'location': 'Harbour'}, h)
    assert created['jobs_completed'] == 0 and created['last_job'] is None
    found = client.get('/customers?q=XANTHE', headers=h).get_json()['data']
    assert [c['id'] for c in found] == [created['id']]
    r = client.put(f"/customers/{created['id']}", json={'location': 'Uptown'}, headers=h)
    assert r.get_json()['location'] == 'Uptown'
    assert client.post('/customers', json={'email': 'noname@example.com'}, headers=h).status_code == 400
    assert client.delete(f"/customers/{created['id']}", headers=h).get_json() == {'status': 'deleted'}
    assert client.get(f"/customers/{created['id']}", headers=h).status_code == 404


def test_customer_stats_are_computed_from_jobs_and_paid_invoices(app_instance, client):
    h = role_headers(app_instance, 'cust-admin@example.com', ROLE_ADMIN)
    cust = create_resource_and_assert(client, '/customers', {'name': 'Ysolde Stats', 'email': 'ysolde@example.com'}, h)
    done = create_resource_and_assert(client, '/jobs', {'customer_id': cust['id'], 'device': 'iMac', 'issue': 'Fan noise',
                                                        'status': 'repair-completed'}, h)
    open_job = create_resource_and_assert(client, '/jobs', {'customer_id': cust['id'], 'device': 'iPad', 'issue': 'Cracked'}, h)
    assert done['customer_name'] == 'Ysolde Stats'

    paid = create_resource_and_assert(client, '/invoices', {'job_id': done['id'],
                                                            'items': [{'description': 'Fan', 'rate_cents': 7000}]}, h)
    client.post(f"/invoices/{paid['id']}/send", headers=h)
    client.post(f"/invoices/{paid['id']}/pay", headers=h)
    # unpaid invoices do not count
    create_resource_and_assert(client, '/invoices', {'job_id': open_job['id'],
                                                     'items': [{'description': 'Glass', 'rate_cents': 9900}]}, h)

    body = client.get(f"/customers/{cust['id']}", headers=h).get_json()
    assert body['jobs_completed'] == 1
    assert body['total_spent_cents'] == 7000
    assert body['last_job']['id'] == open_job['id']

    jobs = client.get(f"/customers/{cust['id']}/jobs", headers=h).get_json()
    assert jobs['pagination']['total'] == 2


def test_technician_reads_but_cannot_manage_customers(app_instance, client):
    h = role_headers(app_instance, 'cust-tech@example.com', ROLE_TECHNICIAN)
    assert client.get('/customers', headers=h).status_code == 200
    assert client.post('/customers', json={'name': 'Blocked'}, headers=h).status_code == 403


def test_search_treats_percent_and_underscore_literally(app_instance, client):
    h = role_headers(app_instance, 'cust-admin@example.com', ROLE_ADMIN)
    literal = create_resource_and_assert(client, '/customers', {'name': 'Wild_card Pat'}, h)
    create_resource_and_assert(client, '/customers', {'name': 'WildXcard Pat'}, h)
    pct = create_resource_and_assert(client, '/customers', {'name': 'Fixit 100% Ltd'}, h)
    create_resource_and_assert(client, '/customers', {'name': 'Fixit 1000 Ltd'}, h)

    found = client.get('/customers?q=wild_card', headers=h).get_json()['data']
    assert [c['id'] for c in found] == [literal['id']]
    found = client.get('/customers?q=100%25', headers=h).get_json()['data']
    assert [c['id'] for c in found] == [pct['id']]
    found = client.get('/customers?q=Fixit%25Ltd', headers=h).get_json()['data']
    assert found == []
    for c in client.get('/customers?q=_&limit=200', headers=h).get_json()['data']:
        assert any('_' in (c.get(f) or '') for f in ('name', 'email', 'phone', 'location'))


def test_non_string_required_field_is_a_bad_request(app_instance, client):
    h = role_headers(app_instance, 'cust-admin@example.com', ROLE_ADMIN)
    r = client.post('/customers', json={'name': 42}, headers=h)
    assert r.status_code == 400
    assert r.get_json()['error']['detail'] == 'name must be a string'
    r = client.post('/jobs', json={'customer_name': 'Only Name'}, headers=h)
    assert r.status_code == 400
    assert r.get_json()['error']['detail'] == 'device, issue required'
    r = client.post('/jobs', json={'customer_name': ['x'], 'device': 'Pixel', 'issue': 'Dead'}, headers=h)
    assert r.get_json()['error']['detail'] == 'customer_name must be a string'
