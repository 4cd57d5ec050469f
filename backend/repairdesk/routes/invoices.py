from __future__ import annotations
import logging
from datetime import date
from flask import Blueprint, request, abort, send_file, current_app
from sqlalchemy import select
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.utils.listing import apply_pagination, send_list, send_item, latest_of, iso_z, json_date
from repairdesk.utils.sorting import apply_multi_sort
from repairdesk.utils.filters import apply_filters, apply_search, parse_bool
from repairdesk.utils.validation import validate_status, coerce_int
from repairdesk.utils.formatting import parse_date, to_cents
from repairdesk.utils.fsm import TransitionValidator
from repairdesk.services.policy import current_user_id
from repairdesk.services.notifications import queue_invoice_email
from repairdesk.services.ledger import job_parts
from repairdesk.services.documents import invoice_pdf
from repairdesk.services.audit import add_audit
from repairdesk import get_db
from repairdesk.models.invoice import Invoice, InvoiceItem
from repairdesk.models.job import Job

logger = logging.getLogger(__name__)

invoices_bp = Blueprint('invoices', __name__)

INVOICE_FSM = TransitionValidator({
    Invoice.STATUS_DRAFT: {Invoice.STATUS_SENT},
    Invoice.STATUS_SENT: {Invoice.STATUS_PAID, Invoice.STATUS_OVERDUE},
    Invoice.STATUS_OVERDUE: {Invoice.STATUS_PAID},
    Invoice.STATUS_PAID: set(),
})

SORTABLE = {
    'invoice_number': Invoice.invoice_number,
    'issue_date': Invoice.issue_date,
    'due_date': Invoice.due_date,
    'amount': Invoice.amount_cents,
    'status': Invoice.status,
    'recipient_name': Invoice.recipient_name,
    'id': Invoice.id,
}


@invoices_bp.get('')
@require_permissions('BILL.READ')
def list_invoices():
    session = get_db()
    q = session.query(Invoice)
    q = apply_search(q, request.args.get('q'), [Invoice.invoice_number, Invoice.recipient_name, Invoice.recipient_email])
    filter_specs = {
        'status': {
            'coerce': lambda v: str(v).lower(),
            'validate': lambda v: v in Invoice.ALL_STATUSES,
            'op': lambda qu, v: qu.filter(Invoice.status==v),
        },
        'job_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Invoice.job_id==v)},
    }
    q = apply_filters(q, filter_specs, request.args)
    q = apply_multi_sort(q, request.args.get('sort') or '-issue_date', SORTABLE, Invoice.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return send_list([invoice_json(i) for i in rows], total, limit, offset, latest_of(i.updated_at for i in rows))


@invoices_bp.get('/<int:invoice_id>')
@require_permissions('BILL.READ')
def get_invoice(invoice_id: int):
    inv = _get_or_404(invoice_id)
    return send_item(invoice_json(inv), inv.id, inv.updated_at)


@invoices_bp.post('')
@require_permissions('BILL.MANAGE')
@audit_log('INVOICE.CREATE', entity='Invoice', entity_id_key='id', meta_keys=['invoice_number', 'amount_cents'])
def create_invoice():
    session = get_db()
    data = request.json or {}
    job = None
    if data.get('job_id') is not None:
        job = session.get(Job, coerce_int(data['job_id'], 'job_id'))
        if not job:
            abort(400, description='job_id unknown')
    recipient = _recipient(data.get('recipient'), job)
    issue_date = _date(data.get('issue_date'), 'issue_date') or date.today()
    inv = Invoice(
        invoice_number=next_invoice_number(session, issue_date.year),
        job_id=job.id if job else None,
        sender=_block(data.get('sender'), 'sender') or default_sender(),
        recipient=recipient,
        recipient_name=recipient['name'],
        recipient_email=recipient.get('email'),
        status=Invoice.STATUS_DRAFT,
        issue_date=issue_date,
        due_date=_date(data.get('due_date'), 'due_date'),
        created_by=current_user_id(),
    )
    lines = _lines(data.get('items') or [])
    if parse_bool(data.get('include_job_parts', False)):
        if not job:
            abort(400, description='include_job_parts requires job_id')
        lines.extend(_job_part_lines(job))
    if not lines:
        abort(400, description='at least one item required')
    _set_items(inv, lines)
    session.add(inv)
    session.commit()
    return invoice_json(inv), 201


@invoices_bp.put('/<int:invoice_id>')
@require_permissions('BILL.MANAGE')
@audit_log(
    'INVOICE.UPDATE',
    entity='Invoice',
    entity_id_key='id',
    diff_keys=['amount_cents', 'due_date', 'recipient_name'],
    pre_fetch=lambda a, kw: _prefetch_invoice(kw.get('invoice_id')),
)
def update_invoice(invoice_id: int):
    session = get_db()
    inv = _get_or_404(invoice_id)
    if inv.status != Invoice.STATUS_DRAFT:
        abort(400, description='only draft invoices can be edited')
    data = request.json or {}
    if 'recipient' in data:
        recipient = _recipient(data['recipient'], None)
        inv.recipient = recipient
        inv.recipient_name = recipient['name']
        inv.recipient_email = recipient.get('email')
    if 'sender' in data:
        inv.sender = _block(data['sender'], 'sender') or default_sender()
    if 'issue_date' in data:
        inv.issue_date = _date(data['issue_date'], 'issue_date') or inv.issue_date
    if 'due_date' in data:
        inv.due_date = _date(data['due_date'], 'due_date')
    if 'items' in data:
        lines = _lines(data['items'] or [])
        if not lines:
            abort(400, description='at least one item required')
        _set_items(inv, lines)
    session.commit()
    return invoice_json(inv)


@invoices_bp.post('/<int:invoice_id>/send')
@require_permissions('BILL.MANAGE')
@audit_log('INVOICE.SEND', entity='Invoice', entity_id_key='id', diff_keys=['status'], pre_fetch=lambda a, kw: _prefetch_invoice(kw.get('invoice_id')), meta_keys=['status'])
def send_invoice(invoice_id: int):
    session = get_db()
    inv = _get_or_404(invoice_id)
    INVOICE_FSM.assert_can_transition(inv.status, Invoice.STATUS_SENT)
    if not inv.recipient_email:
        abort(400, description='recipient email required to send')
    inv.status = validate_status(Invoice.STATUS_SENT, Invoice.ALL_STATUSES)
    queue_invoice_email(inv)
    session.commit()
    logger.info('invoice %s sent to %s', inv.invoice_number, inv.recipient_email)
    return invoice_json(inv)


@invoices_bp.post('/<int:invoice_id>/pay')
@require_permissions('BILL.MANAGE')
@audit_log('INVOICE.PAY', entity='Invoice', entity_id_key='id', diff_keys=['status'], pre_fetch=lambda a, kw: _prefetch_invoice(kw.get('invoice_id')), meta_keys=['status', 'amount_cents'])
def pay_invoice(invoice_id: int):
    return _transition(invoice_id, Invoice.STATUS_PAID)


@invoices_bp.post('/<int:invoice_id>/mark-overdue')
@require_permissions('BILL.MANAGE')
@audit_log('INVOICE.OVERDUE', entity='Invoice', entity_id_key='id', diff_keys=['status'], pre_fetch=lambda a, kw: _prefetch_invoice(kw.get('invoice_id')), meta_keys=['status'])
def mark_overdue(invoice_id: int):
    return _transition(invoice_id, Invoice.STATUS_OVERDUE)


@invoices_bp.delete('/<int:invoice_id>')
@require_permissions('BILL.MANAGE')
def delete_invoice(invoice_id: int):
    session = get_db()
    inv = _get_or_404(invoice_id)
    if inv.status == Invoice.STATUS_PAID:
        abort(400, description='paid invoices cannot be deleted')
    session.delete(inv)
    add_audit('INVOICE.DELETE', 'Invoice', invoice_id, {'invoice_number': inv.invoice_number})
    session.commit()
    return {'status': 'deleted'}


@invoices_bp.get('/<int:invoice_id>/pdf')
@require_permissions('BILL.READ')
def download_pdf(invoice_id: int):
    inv = _get_or_404(invoice_id)
    return send_file(invoice_pdf(inv), mimetype='application/pdf', as_attachment=True,
                     download_name=f"{inv.invoice_number}.pdf")


def next_invoice_number(session, year: int) -> str:
    prefix = f"INV-{year}-"
    seq = 0
    for number in session.execute(select(Invoice.invoice_number).where(Invoice.invoice_number.like(f"{prefix}%"))).scalars():
        tail = number[len(prefix):]
        if tail.isdigit():
            seq = max(seq, int(tail))
    return f"{prefix}{seq + 1:03d}"


def default_sender():
    return {'name': current_app.config.get('SHOP_NAME') or 'RepairDesk',
            'address': current_app.config.get('SHOP_ADDRESS') or ''}


def _transition(invoice_id: int, target: str):
    session = get_db()
    inv = _get_or_404(invoice_id)
    INVOICE_FSM.assert_can_transition(inv.status, target)
    inv.status = validate_status(target, Invoice.ALL_STATUSES)
    session.commit()
    logger.info('invoice %s -> %s', inv.invoice_number, target)
    return invoice_json(inv)


def _block(value, field):
    if value is None:
        return None
    if not isinstance(value, dict):
        abort(400, description=f'{field} must be an object')
    return {str(k): v for k, v in value.items() if v not in (None, '')}


def _recipient(value, job):
    block = _block(value, 'recipient') or {}
    if job:
        block.setdefault('name', job.customer_name)
        if job.customer_email:
            block.setdefault('email', job.customer_email)
        if job.customer_phone:
            block.setdefault('phone', job.customer_phone)
    if not (block.get('name') or '').strip():
        abort(400, description='recipient.name required')
    return block


def _lines(items):
    if not isinstance(items, list):
        abort(400, description='items must be a list')
    out = []
    for raw in items:
        if not isinstance(raw, dict) or not (raw.get('description') or '').strip():
            abort(400, description='item description required')
        quantity = coerce_int(raw.get('quantity', 1), 'quantity', minimum=1)
        try:
            rate = to_cents(raw.get('rate_cents', 0), 'rate_cents')
        except ValueError as e:
            abort(400, description=str(e))
        if rate < 0:
            abort(400, description='rate_cents must be >= 0')
        out.append({'description': raw['description'].strip(), 'quantity': quantity, 'rate_cents': rate})
    return out


def _job_part_lines(job: Job):
    return [
        {'description': f"{p['name']} ({p['sku']})", 'quantity': int(p['quantity']), 'rate_cents': int(p['price_cents'])}
        for p in job_parts(get_db(), job.id)
    ]


def _set_items(inv: Invoice, lines):
    inv.items = [
        InvoiceItem(position=i, description=line['description'], quantity=line['quantity'],
                    rate_cents=line['rate_cents'], amount_cents=line['quantity'] * line['rate_cents'])
        for i, line in enumerate(lines)
    ]
    inv.recompute_amount()


def _date(value, field):
    try:
        return parse_date(value, field)
    except ValueError as e:
        abort(400, description=str(e))


def _get_or_404(invoice_id: int) -> Invoice:
    inv = get_db().execute(select(Invoice).where(Invoice.id==invoice_id)).scalar_one_or_none()
    if not inv:
        abort(404)
    return inv


def invoice_json(inv: Invoice):
    return {
        'id': inv.id,
        'invoice_number': inv.invoice_number,
        'job_id': inv.job_id,
        'sender': inv.sender or {},
        'recipient': inv.recipient or {},
        'recipient_name': inv.recipient_name,
        'recipient_email': inv.recipient_email,
        'amount_cents': inv.amount_cents,
        'status': inv.status,
        'issue_date': json_date(inv.issue_date),
        'due_date': json_date(inv.due_date),
        'items': [
            {'description': it.description, 'quantity': it.quantity, 'rate_cents': it.rate_cents, 'amount_cents': it.amount_cents}
            for it in inv.items
        ],
        'allowed_actions': _allowed_actions(inv.status),
        'updated_at': iso_z(inv.updated_at),
    }


def _allowed_actions(status: str):
    actions = {Invoice.STATUS_SENT: 'send', Invoice.STATUS_PAID: 'pay', Invoice.STATUS_OVERDUE: 'mark-overdue'}
    return [actions[s] for s in INVOICE_FSM.allowed_from(status)]


def _prefetch_invoice(invoice_id: int):
    session = get_db()
    inv = session.execute(select(Invoice).where(Invoice.id==invoice_id)).scalar_one_or_none()
    if not inv:
        return {}
    return {'status': inv.status, 'amount_cents': inv.amount_cents, 'due_date': json_date(inv.due_date),
            'recipient_name': inv.recipient_name}
