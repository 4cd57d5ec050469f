from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select, func, update
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.utils.listing import apply_pagination, send_list, latest_of, iso_z
from repairdesk.utils.filters import apply_search, parse_bool
from repairdesk.utils.validation import require_fields, coerce_int
from repairdesk.services.notifications import queue_email
from repairdesk import get_db
from repairdesk.models.message import Contact, Message
from repairdesk.models.customer import Customer

msg_bp = Blueprint('messages', __name__)


@msg_bp.get('/contacts')
@require_permissions('MSG.READ')
def list_contacts():
    session = get_db()
    q = session.query(Contact)
    q = apply_search(q, request.args.get('q'), [Contact.name, Contact.email, Contact.phone])
    q = q.order_by(Contact.name.asc(), Contact.id.asc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    ids = [c.id for c in rows]
    unread = dict(session.execute(
        select(Message.contact_id, func.count(Message.id))
        .where(Message.contact_id.in_(ids), Message.sender!=Message.SELF, Message.read.is_(False))
        .group_by(Message.contact_id)
    ).all()) if ids else {}
    last = {}
    if ids:
        for m in session.execute(
            select(Message).where(Message.contact_id.in_(ids)).order_by(Message.timestamp.asc(), Message.id.asc())
        ).scalars():
            last[m.contact_id] = m
    data = []
    for c in rows:
        body = _contact_json(c)
        body['unread'] = unread.get(c.id, 0)
        body['last_message'] = _message_json(last[c.id]) if c.id in last else None
        data.append(body)
    return send_list(data, total, limit, offset, latest_of(c.updated_at for c in rows))


@msg_bp.post('/contacts')
@require_permissions('MSG.SEND')
@audit_log('CONTACT.CREATE', entity='Contact', entity_id_key='id', meta_keys=['name'])
def create_contact():
    session = get_db()
    data = request.json or {}
    customer = None
    if data.get('customer_id') is not None:
        customer = session.get(Customer, coerce_int(data['customer_id'], 'customer_id'))
        if not customer:
            abort(400, description='customer_id unknown')
        data = {'name': customer.name, 'email': customer.email, 'phone': customer.phone, **data}
    require_fields(data, 'name')
    c = Contact(
        name=data['name'].strip(),
        email=data.get('email') or None,
        phone=data.get('phone') or None,
        customer_id=customer.id if customer else None,
    )
    session.add(c)
    session.commit()
    return _contact_json(c), 201


@msg_bp.get('/unread-count')
@require_permissions('MSG.READ')
def unread_count():
    n = get_db().execute(
        select(func.count(Message.id)).where(Message.sender!=Message.SELF, Message.read.is_(False))
    ).scalar_one()
    return {'unread': n}


@msg_bp.get('/contacts/<int:contact_id>/conversation')
@require_permissions('MSG.READ')
def conversation(contact_id: int):
    """Messages with one contact, oldest first; opening the thread marks the contact's messages read."""
    session = get_db()
    contact = _get_contact_or_404(contact_id)
    session.execute(
        update(Message)
        .where(Message.contact_id==contact.id, Message.sender!=Message.SELF, Message.read.is_(False))
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    rows = session.execute(
        select(Message).where(Message.contact_id==contact.id).order_by(Message.timestamp.asc(), Message.id.asc())
    ).scalars().all()
    for m in rows:
        session.refresh(m)
    return {'contact': _contact_json(contact), 'data': [_message_json(m) for m in rows]}


@msg_bp.post('/contacts/<int:contact_id>')
@require_permissions('MSG.SEND')
@audit_log('MESSAGE.SEND', entity='Contact', entity_id_arg='contact_id', meta_keys=['is_email', 'subject'])
def send_message(contact_id: int):
    session = get_db()
    contact = _get_contact_or_404(contact_id)
    data = request.json or {}
    require_fields(data, 'content')
    is_email = parse_bool(data.get('is_email', False))
    attachments = _attachments(data.get('attachments'))
    if is_email:
        if not contact.email:
            abort(400, description='contact has no email')
        require_fields(data, 'subject')
    m = Message(
        contact_id=contact.id,
        sender=Message.SELF,
        recipient=str(contact.id),
        content=data['content'],
        subject=data.get('subject') if is_email else None,
        attachments=attachments,
        is_email=is_email,
        read=True,
    )
    session.add(m)
    if is_email:
        queue_email(contact.email, data['subject'], data['content'], attachments=attachments)
    session.commit()
    return _message_json(m), 201


@msg_bp.post('/inbound')
@require_permissions('MSG.SEND')
def inbound_message():
    session = get_db()
    data = request.json or {}
    require_fields(data, 'content')
    contact = _get_contact_or_404(coerce_int(data.get('contact_id'), 'contact_id'))
    m = Message(
        contact_id=contact.id,
        sender=str(contact.id),
        recipient=Message.SELF,
        content=data['content'],
        subject=data.get('subject'),
        attachments=_attachments(data.get('attachments')),
        is_email=parse_bool(data.get('is_email', False)),
        read=False,
    )
    session.add(m)
    session.commit()
    return _message_json(m), 201


def _attachments(value):
    if value is None:
        return []
    if not isinstance(value, list):
        abort(400, description='attachments must be a list')
    out = []
    for a in value:
        if not isinstance(a, dict) or not a.get('name'):
            abort(400, description='attachment name required')
        out.append({'name': str(a['name']), 'type': str(a.get('type') or 'application/octet-stream')})
    return out


def _get_contact_or_404(contact_id: int) -> Contact:
    c = get_db().execute(select(Contact).where(Contact.id==contact_id)).scalar_one_or_none()
    if not c:
        abort(404)
    return c


def _contact_json(c: Contact):
    return {'id': c.id, 'name': c.name, 'email': c.email, 'phone': c.phone, 'customer_id': c.customer_id}


def _message_json(m: Message):
    return {
        'id': m.id,
        'contact_id': m.contact_id,
        'sender': m.sender,
        'recipient': m.recipient,
        'content': m.content,
        'subject': m.subject,
        'attachments': m.attachments or [],
        'is_email': m.is_email,
        'read': m.read,
        'timestamp': iso_z(m.timestamp),
    }
