import json
import pytest
import requests
from repairdesk.client.api import RepairDeskClient, normalize_ids, error_message, TOKEN_KEY, ROLE_KEY
from repairdesk.client.errors import ApiError, MissingTokenError
from repairdesk.constants.permissions import ROLE_ADMIN, ROLE_TECHNICIAN
from repairdesk.storage.kv import MemoryStore
from tests.test_utils_seed import ensure_user, ensure_item


class FlaskSession:
    """requests.Session stand-in that routes calls into the Flask test client."""

    def __init__(self, client):
        self.client = client
        self.calls = []

    def request(self, method, url, headers=None, json=None, params=None, timeout=None):
        self.calls.append((method, url))
        resp = self.client.open(url, method=method, headers=headers, json=json, query_string=params)
        return FakeResponse(resp.status_code, resp.get_data())


class FakeResponse:
    def __init__(self, status_code, content=b''):
        self.status_code = status_code
        self.content = content
        self.text = content.decode('utf-8', 'replace')

    def json(self):
        return json.loads(self.text)


class RecordingSession:
    def __init__(self, exc=None):
        self.calls = []
        self.exc = exc

    def request(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        if self.exc:
            raise self.exc
        return FakeResponse(200, b'{}')


@pytest.fixture()
def api(client):
    toasts = []
    c = RepairDeskClient('http://localhost/', MemoryStore(), session=FlaskSession(client),
                         notify=lambda title, msg: toasts.append((title, msg)))
    c.toasts = toasts
    yield c
    c.close()


def test_missing_token_fails_before_any_request():
    session = RecordingSession()
    c = RepairDeskClient('http://api.invalid', MemoryStore(), session=session)
    with pytest.raises(MissingTokenError):
        c.list_jobs()
    assert session.calls == []


def test_transport_failure_becomes_api_error():
    store = MemoryStore({TOKEN_KEY: '"tok"'})
    c = RepairDeskClient('http://api.invalid', store, session=RecordingSession(requests.ConnectionError('refused')))
    with pytest.raises(ApiError) as ei:
        c.get('/jobs')
    assert ei.value.status is None
    assert 'refused' in str(ei.value)


def test_login_persists_session_and_calls_api(app_instance, api):
    with app_instance.app_context():
        ensure_user('client-admin@example.com', role=ROLE_ADMIN, name='Client Admin', password='clientpw')
        item_id = ensure_item('CLIENT-PART-1', 'Client Part', quantity=2, price_cents=500).id
    user = api.login('Client-Admin@example.com', 'clientpw')
    assert user['role'] == ROLE_ADMIN
    assert api.token.get()
    assert api.role.get() == ROLE_ADMIN
    assert 'users' not in [l['key'] for l in api.navigation()]

    job = api.create_job({'customer_name': 'Client Carla', 'device': 'Pixel 8', 'issue': 'Camera'})
    assert job['status'] == 'received'
    assert api.set_job_status(job['id'], 'diagnosis')['status'] == 'diagnosis'
    assert [j['id'] for j in api.list_jobs(q='client carla')] == [job['id']]

    attached = api.attach_part(job['id'], item_id)
    assert attached['stock'] == 1
    assert api.job_parts(job['id'])['total_cents'] == 500
    assert api.detach_part(job['id'], item_id)['stock'] == 2

    inv = api.create_invoice({'recipient': {'name': 'Client Carla', 'email': 'carla@example.com'},
                              'items': [{'description': 'Camera', 'rate_cents': 8000}]})
    assert api.send_invoice(inv['id'])['status'] == 'sent'
    assert api.invoice_pdf(inv['id']).startswith(b'%PDF')
    assert 'revenue_cents' in api.dashboard_stats()


def test_notify_customer_and_repair_log_through_client(app_instance, api):
    with app_instance.app_context():
        ensure_user('client-notify@example.com', role=ROLE_ADMIN, name='Notify Admin', password='notifypw')
    api.login('client-notify@example.com', 'notifypw')
    job = api.create_job({'customer_name': 'Client Nia', 'customer_email': 'nia@example.com',
                          'device': 'Galaxy S22', 'issue': 'Charging port'})
    sent = api.safe(api.notify_customer, job['id'], 'Quote ready', 'Port replacement is 60 EUR', default='FAILED')
    assert sent != 'FAILED'
    assert sent['recipient'] == 'nia@example.com' and sent['subject'] == 'Quote ready'
    assert api.toasts == []

    api.add_log_entry(job['id'], 'Port cleaned', duration_minutes=15, notes='Lint removed')
    log = api.job_log(job['id'])
    assert log['total_minutes'] == 15
    assert log['data'][0]['technician'] == 'Notify Admin'


def test_server_errors_surface_detail(app_instance, api):
    with app_instance.app_context():
        ensure_user('client-tech@example.com', role=ROLE_TECHNICIAN, password='techpw')
    api.login('client-tech@example.com', 'techpw')
    with pytest.raises(ApiError) as ei:
        api.list_invoices()
    assert ei.value.status == 403
    assert 'BILL.READ' in ei.value.message

    # pages wrap calls: failure becomes a toast and the fallback value
    assert api.safe(api.list_invoices, default=[], title='Invoices') == []
    assert api.toasts[-1][0] == 'Invoices'
    assert 'BILL.READ' in api.toasts[-1][1]


def test_bad_login_and_logout(app_instance, api):
    with pytest.raises(ApiError) as ei:
        api.login('nobody@example.com', 'whatever')
    assert ei.value.status == 401
    assert ei.value.message == 'invalid credentials'
    assert api.token.get() is None

    with app_instance.app_context():
        ensure_user('client-out@example.com', role=ROLE_TECHNICIAN, password='outpw')
    api.login('client-out@example.com', 'outpw')
    api.logout()
    assert api.token.get() is None and api.role.get() is None
    with pytest.raises(MissingTokenError):
        api.me()


def test_token_written_by_another_client_is_picked_up(app_instance, client):
    store = MemoryStore()
    first = RepairDeskClient('http://localhost', store, session=FlaskSession(client))
    second = RepairDeskClient('http://localhost', store, session=FlaskSession(client))
    with app_instance.app_context():
        ensure_user('client-shared@example.com', role=ROLE_TECHNICIAN, password='sharedpw')
    first.login('client-shared@example.com', 'sharedpw')
    assert second.role.get() == ROLE_TECHNICIAN
    assert second.me()['email'] == 'client-shared@example.com'
    assert json.loads(store.get_raw(ROLE_KEY)) == ROLE_TECHNICIAN


def test_normalize_ids():
    payload = {'_id': 7, 'name': 'a', 'items': [{'_id': 1}, {'_id': 2, 'id': 9}], 'nested': {'owner': {'_id': 'u1'}}}
    out = normalize_ids(payload)
    assert out == {'id': 7, 'name': 'a', 'items': [{'id': 1}, {'id': 9}], 'nested': {'owner': {'id': 'u1'}}}
    assert normalize_ids([1, 'x', None]) == [1, 'x', None]


@pytest.mark.parametrize('status,body,expected', [
    (400, b'{"message": "Bad thing"}', 'Bad thing'),
    (409, b'{"error": "Conflict here"}', 'Conflict here'),
    (404, b'{"error": {"status": 404, "title": "Not Found", "detail": "job missing"}}', 'job missing'),
    (500, b'<html>oops</html>', '<html>oops</html>'),
    (502, b'', 'HTTP 502'),
])
def test_error_message(status, body, expected):
    assert error_message(FakeResponse(status, body)) == expected
