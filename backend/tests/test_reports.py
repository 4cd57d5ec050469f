from repairdesk.constants.permissions import ROLE_ADMIN, ROLE_SUPER_ADMIN, ROLE_TECHNICIAN
from tests.test_utils_seed import ensure_user, ensure_item
from tests.test_lifecycle_helpers import role_headers, create_resource_and_assert


def test_dashboard_hides_money_without_finance_permission(app_instance, client):
    admin = role_headers(app_instance, 'rpt-admin@example.com', ROLE_ADMIN)
    tech = role_headers(app_instance, 'rpt-tech@example.com', ROLE_TECHNICIAN)
    with app_instance.app_context():
        ensure_item('RPT-LOW-1', 'Dashboard Low Part', quantity=1)
    body = client.get('/reports/dashboard', headers=admin).get_json()
    assert 'revenue_cents' in body and 'outstanding_cents' in body
    assert set(body['jobs_by_status']) >= {'received', 'picked-up'}
    assert any(i['sku'] == 'RPT-LOW-1' for i in body['low_stock'])
    tech_body = client.get('/reports/dashboard', headers=tech).get_json()
    assert 'revenue_cents' not in tech_body
    assert tech_body['active_jobs'] == body['active_jobs']


def test_metrics_and_pivot(app_instance, client):
    admin = role_headers(app_instance, 'rpt-admin@example.com', ROLE_ADMIN)
    tech = role_headers(app_instance, 'rpt-tech@example.com', ROLE_TECHNICIAN)
    create_resource_and_assert(client, '/jobs', {'customer_name': 'Metric Mo', 'device': 'Kindle', 'issue': 'Frozen'}, admin)
    metrics = client.get('/reports/metrics', headers=admin).get_json()
    assert metrics['data'] and all('sum_cents' not in m for m in metrics['data'])
    fin = client.get('/reports/metrics?include_financial=true', headers=admin).get_json()
    for m in fin['data']:
        if m['domain'] == 'Invoice':
            assert 'sum_cents' in m
    assert client.get('/reports/metrics?include_financial=true', headers=tech).status_code == 403
    assert client.get('/reports/metrics?start_date=not-a-date', headers=admin).status_code == 400
    pivot = client.get('/reports/metrics/pivot', headers=admin).get_json()['pivot']
    assert pivot['Job']['received'] >= 1


def test_profit_by_month(app_instance, client):
    admin = role_headers(app_instance, 'rpt-admin@example.com', ROLE_ADMIN)
    inv = create_resource_and_assert(client, '/invoices', {
        'recipient': {'name': 'Profit Pat', 'email': 'pat@example.com'}, 'issue_date': '2029-04-10',
        'items': [{'description': 'Board swap', 'rate_cents': 12000}],
    }, admin)
    client.post(f"/invoices/{inv['id']}/send", headers=admin)
    client.post(f"/invoices/{inv['id']}/pay", headers=admin)
    body = client.get('/reports/profit?year=2029', headers=admin).get_json()
    assert body['year'] == 2029
    assert len(body['months']) == 12
    april = body['months'][3]
    assert april['month'] == 'Apr'
    assert april['revenue_cents'] >= 12000
    assert body['totals']['revenue_cents'] == sum(m['revenue_cents'] for m in body['months'])
    assert client.get('/reports/profit?year=soon', headers=admin).status_code == 400


def test_profit_needs_finance(app_instance, client):
    tech = role_headers(app_instance, 'rpt-tech@example.com', ROLE_TECHNICIAN)
    assert client.get('/reports/profit', headers=tech).status_code == 403


def test_technician_workload(app_instance, client):
    owner = role_headers(app_instance, 'rpt-owner@example.com', ROLE_SUPER_ADMIN)
    with app_instance.app_context():
        tech_id = ensure_user('rpt-worker@example.com', role=ROLE_TECHNICIAN, name='Rory Worker').id
    job = create_resource_and_assert(client, '/jobs', {'customer_name': 'Work Wendy', 'device': 'Switch', 'issue': 'Drift',
                                                       'assigned_user_id': tech_id, 'status': 'repair-completed'}, owner)
    assert job['assigned_to'] == 'Rory Worker'
    rows = client.get('/reports/technicians', headers=owner).get_json()['data']
    mine = next(r for r in rows if r['id'] == tech_id)
    assert mine['assigned'] == 1 and mine['completed'] == 1
    assert mine['completion_rate'] == 100.0
