from repairdesk import get_db
from repairdesk.models.notification import Notification
from repairdesk.constants.permissions import ROLE_TECHNICIAN
from tests.test_lifecycle_helpers import role_headers, create_resource_and_assert


def _tech(app):
    return role_headers(app, 'msg-tech@example.com', ROLE_TECHNICIAN)


def test_inbound_messages_are_unread_until_conversation_opens(app_instance, client):
    h = _tech(app_instance)
    contact = create_resource_and_assert(client, '/messages/contacts', {'name': 'Inbound Ines', 'phone': '555-0133'}, h)
    before = client.get('/messages/unread-count', headers=h).get_json()['unread']
    for text in ('Is my laptop ready?', 'Hello?'):
        r = client.post('/messages/inbound', json={'contact_id': contact['id'], 'content': text}, headers=h)
        assert r.status_code == 201
    assert client.get('/messages/unread-count', headers=h).get_json()['unread'] == before + 2

    listed = client.get('/messages/contacts?q=inbound%20ines', headers=h).get_json()['data']
    assert listed[0]['unread'] == 2
    assert listed[0]['last_message']['content'] == 'Hello?'

    thread = client.get(f"/messages/contacts/{contact['id']}/conversation", headers=h).get_json()
    assert thread['contact']['name'] == 'Inbound Ines'
    assert [m['content'] for m in thread['data']] == ['Is my laptop ready?', 'Hello?']
    assert all(m['read'] for m in thread['data'])
    assert client.get('/messages/unread-count', headers=h).get_json()['unread'] == before


def test_reply_and_email(app_instance, client):
    h = _tech(app_instance)
    contact = create_resource_and_assert(client, '/messages/contacts', {'name': 'Email Emil', 'email': 'emil@example.com'}, h)
    r = client.post(f"/messages/contacts/{contact['id']}", json={'content': 'On it'}, headers=h)
    assert r.status_code == 201
    assert r.get_json()['sender'] == 'me' and r.get_json()['is_email'] is False

    missing_subject = client.post(f"/messages/contacts/{contact['id']}", json={'content': 'x', 'is_email': True}, headers=h)
    assert missing_subject.status_code == 400

    r = client.post(f"/messages/contacts/{contact['id']}", json={
        'content': 'Quote attached', 'subject': 'Your quote', 'is_email': True,
        'attachments': [{'name': 'quote.pdf', 'type': 'application/pdf'}],
    }, headers=h)
    assert r.status_code == 201
    assert r.get_json()['attachments'] == [{'name': 'quote.pdf', 'type': 'application/pdf'}]
    with app_instance.app_context():
        assert get_db().query(Notification).filter_by(recipient='emil@example.com', subject='Your quote').count() == 1


def test_email_needs_contact_address(app_instance, client):
    h = _tech(app_instance)
    contact = create_resource_and_assert(client, '/messages/contacts', {'name': 'Phone Only Pia'}, h)
    r = client.post(f"/messages/contacts/{contact['id']}", json={'content': 'x', 'subject': 's', 'is_email': True}, headers=h)
    assert r.status_code == 400
    assert r.get_json()['error']['detail'] == 'contact has no email'


def test_contact_from_customer(app_instance, client):
    admin = role_headers(app_instance, 'msg-admin@example.com')
    cust = create_resource_and_assert(client, '/customers', {'name': 'Cora Contact', 'email': 'cora@example.com'}, admin)
    contact = create_resource_and_assert(client, '/messages/contacts', {'customer_id': cust['id']}, _tech(app_instance))
    assert contact['name'] == 'Cora Contact'
    assert contact['email'] == 'cora@example.com'
    assert contact['customer_id'] == cust['id']
    assert client.post('/messages/contacts', json={'customer_id': 999999}, headers=admin).status_code == 400
