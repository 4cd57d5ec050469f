from repairdesk import get_db
from repairdesk.models.notification import Notification
from repairdesk.constants.permissions import ROLE_ADMIN, ROLE_TECHNICIAN
from tests.test_utils_seed import ensure_item, create_job
from tests.test_lifecycle_helpers import role_headers, create_resource_and_assert, exercise_invoice_lifecycle


def _admin(app):
    return role_headers(app, 'billing-admin@example.com', ROLE_ADMIN)


def _draft(client, h, **fields):
    payload = {
        'recipient': {'name': 'Acme Ltd', 'email': 'accounts@acme.example.com'},
        'items': [
            {'description': 'Screen', 'quantity': 2, 'rate_cents': 1000},
            {'description': 'Labour', 'quantity': 1, 'rate_cents': 2500},
        ],
    }
    payload.update(fields)
    return create_resource_and_assert(client, '/invoices', payload, h, expected_initial_status='draft')


def test_amount_is_sum_of_line_items(app_instance, client):
    h = _admin(app_instance)
    inv = _draft(client, h)
    assert inv['amount_cents'] == 4500
    assert [i['amount_cents'] for i in inv['items']] == [2000, 2500]
    assert inv['allowed_actions'] == ['send']
    assert inv['sender']['name'] == 'Test Repairs'


def test_invoice_numbers_count_up_per_year(app_instance, client):
    h = _admin(app_instance)
    first = _draft(client, h, issue_date='2031-01-05')
    second = _draft(client, h, issue_date='2031-03-09')
    other_year = _draft(client, h, issue_date='2032-02-01')
    assert first['invoice_number'] == 'INV-2031-001'
    assert second['invoice_number'] == 'INV-2031-002'
    assert other_year['invoice_number'] == 'INV-2032-001'


def test_validation(app_instance, client):
    h = _admin(app_instance)
    r = client.post('/invoices', json={'recipient': {'name': 'Nobody'}, 'items': []}, headers=h)
    assert r.status_code == 400
    assert r.get_json()['error']['detail'] == 'at least one item required'
    r = client.post('/invoices', json={'items': [{'description': 'x', 'rate_cents': 1}]}, headers=h)
    assert r.get_json()['error']['detail'] == 'recipient.name required'
    r = client.post('/invoices', json={'recipient': {'name': 'A'}, 'items': [{'description': 'x', 'quantity': 0}]}, headers=h)
    assert r.status_code == 400


def test_full_lifecycle_and_terminal_paid(app_instance, client):
    h = _admin(app_instance)
    iid = exercise_invoice_lifecycle(client, h, recipient_email='lifecycle-bill@example.com')
    body = client.get(f'/invoices/{iid}', headers=h).get_json()
    assert body['status'] == 'paid' and body['allowed_actions'] == []
    assert client.post(f'/invoices/{iid}/send', headers=h).status_code == 400
    r = client.delete(f'/invoices/{iid}', headers=h)
    assert r.status_code == 400
    assert r.get_json()['error']['detail'] == 'paid invoices cannot be deleted'


def test_illegal_transitions(app_instance, client):
    h = _admin(app_instance)
    inv = _draft(client, h)
    assert client.post(f"/invoices/{inv['id']}/pay", headers=h).status_code == 400
    assert client.post(f"/invoices/{inv['id']}/mark-overdue", headers=h).status_code == 400
    client.post(f"/invoices/{inv['id']}/send", headers=h)
    paid = client.post(f"/invoices/{inv['id']}/pay", headers=h).get_json()
    assert paid['status'] == 'paid'


def test_only_drafts_are_editable(app_instance, client):
    h = _admin(app_instance)
    inv = _draft(client, h)
    r = client.put(f"/invoices/{inv['id']}", json={'items': [{'description': 'Diagnostics', 'quantity': 1, 'rate_cents': 3000}]}, headers=h)
    assert r.status_code == 200 and r.get_json()['amount_cents'] == 3000
    client.post(f"/invoices/{inv['id']}/send", headers=h)
    r = client.put(f"/invoices/{inv['id']}", json={'due_date': '2031-01-01'}, headers=h)
    assert r.status_code == 400
    assert r.get_json()['error']['detail'] == 'only draft invoices can be edited'


def test_send_queues_email_with_pdf_attachment(app_instance, client):
    h = _admin(app_instance)
    inv = _draft(client, h, recipient={'name': 'Mail Me', 'email': 'mail-me@example.com'})
    r = client.post(f"/invoices/{inv['id']}/send", headers=h)
    assert r.status_code == 200 and r.get_json()['status'] == 'sent'
    with app_instance.app_context():
        rows = get_db().query(Notification).filter_by(invoice_id=inv['id']).all()
        assert len(rows) == 1
        assert rows[0].recipient == 'mail-me@example.com'
        assert rows[0].attachments[0]['name'] == f"{inv['invoice_number']}.pdf"


def test_send_without_email_is_rejected(app_instance, client):
    h = _admin(app_instance)
    inv = _draft(client, h, recipient={'name': 'No Mail'})
    r = client.post(f"/invoices/{inv['id']}/send", headers=h)
    assert r.status_code == 400
    assert client.get(f"/invoices/{inv['id']}", headers=h).get_json()['status'] == 'draft'


def test_invoice_from_job_parts(app_instance, client):
    h = _admin(app_instance)
    with app_instance.app_context():
        item_id = ensure_item('BILL-PART-1', 'Billing Hinge', quantity=4, price_cents=1250).id
        job_id = create_job('Hinge Owner', customer_email='hinge@example.com').id
    client.post(f'/jobs/{job_id}/parts', json={'item_id': item_id}, headers=h)
    client.post(f'/jobs/{job_id}/parts', json={'item_id': item_id}, headers=h)
    inv = create_resource_and_assert(client, '/invoices', {'job_id': job_id, 'include_job_parts': True,
                                                            'items': [{'description': 'Labour', 'rate_cents': 4000}]}, h)
    assert inv['recipient_name'] == 'Hinge Owner'
    assert inv['recipient_email'] == 'hinge@example.com'
    assert inv['amount_cents'] == 4000 + 2 * 1250
    assert inv['items'][1]['description'] == 'Billing Hinge (BILL-PART-1)'
    listed = client.get(f'/invoices?job_id={job_id}', headers=h).get_json()
    assert listed['pagination']['total'] == 1


def test_pdf_download(app_instance, client):
    h = _admin(app_instance)
    inv = _draft(client, h)
    r = client.get(f"/invoices/{inv['id']}/pdf", headers=h)
    assert r.status_code == 200
    assert r.mimetype == 'application/pdf'
    assert r.data.startswith(b'%PDF')


def test_technician_has_no_billing_access(app_instance, client):
    h = role_headers(app_instance, 'billing-tech@example.com', ROLE_TECHNICIAN)
    assert client.get('/invoices', headers=h).status_code == 403
