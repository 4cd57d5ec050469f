from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select, func
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.utils.listing import apply_pagination, send_list, send_item, latest_of, iso_z
from repairdesk.utils.sorting import apply_multi_sort
from repairdesk.utils.filters import apply_search
from repairdesk.utils.validation import require_fields
from repairdesk.services.policy import current_user_id
from repairdesk.services.audit import add_audit
from repairdesk import get_db
from repairdesk.models.customer import Customer
from repairdesk.models.job import Job
from repairdesk.models.invoice import Invoice

cust_bp = Blueprint('customers', __name__)

SORTABLE = {
    'name': Customer.name,
    'email': Customer.email,
    'updated_at': Customer.updated_at,
    'id': Customer.id,
}


@cust_bp.get('')
@require_permissions('CUST.READ')
def list_customers():
    session = get_db()
    q = session.query(Customer)
    q = apply_search(q, request.args.get('q'), [Customer.name, Customer.email, Customer.phone, Customer.location])
    q = apply_multi_sort(q, request.args.get('sort'), SORTABLE, Customer.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    stats = customer_stats(session, [c.id for c in rows])
    rows_json = [_customer_json(c, stats.get(c.id)) for c in rows]
    return send_list(rows_json, total, limit, offset, latest_of(c.updated_at for c in rows))


@cust_bp.get('/<int:customer_id>')
@require_permissions('CUST.READ')
def get_customer(customer_id: int):
    session = get_db()
    c = _get_or_404(customer_id)
    return send_item(_customer_json(c, customer_stats(session, [c.id]).get(c.id)), c.id, c.updated_at)


@cust_bp.post('')
@require_permissions('CUST.MANAGE')
@audit_log('CUSTOMER.CREATE', entity='Customer', entity_id_key='id', meta_keys=['name', 'email'])
def create_customer():
    session = get_db()
    data = request.json or {}
    require_fields(data, 'name')
    c = Customer(
        name=data['name'].strip(),
        email=str(data.get('email') or '').strip() or None,
        phone=data.get('phone'),
        location=data.get('location'),
        created_by=current_user_id(),
    )
    session.add(c)
    session.commit()
    return _customer_json(c, None), 201


@cust_bp.put('/<int:customer_id>')
@require_permissions('CUST.MANAGE')
@audit_log(
    'CUSTOMER.UPDATE',
    entity='Customer',
    entity_id_key='id',
    diff_keys=['name', 'email', 'phone', 'location'],
    pre_fetch=lambda a, kw: _prefetch_customer(kw.get('customer_id')),
)
def update_customer(customer_id: int):
    session = get_db()
    c = _get_or_404(customer_id)
    data = request.json or {}
    if 'name' in data:
        if not (data['name'] or '').strip():
            abort(400, description='name cannot be empty')
        c.name = data['name'].strip()
    for key in ('email', 'phone', 'location'):
        if key in data:
            setattr(c, key, data[key] or None)
    session.commit()
    return _customer_json(c, customer_stats(session, [c.id]).get(c.id))


@cust_bp.delete('/<int:customer_id>')
@require_permissions('CUST.MANAGE')
def delete_customer(customer_id: int):
    session = get_db()
    c = _get_or_404(customer_id)
    # jobs keep their copied customer fields
    session.query(Job).filter(Job.customer_id==c.id).update({Job.customer_id: None}, synchronize_session=False)
    session.delete(c)
    add_audit('CUSTOMER.DELETE', 'Customer', customer_id, {'name': c.name})
    session.commit()
    return {'status': 'deleted'}


@cust_bp.get('/<int:customer_id>/jobs')
@require_permissions('CUST.READ', 'JOB.READ')
def customer_jobs(customer_id: int):
    from repairdesk.routes.jobs import job_json
    session = get_db()
    _get_or_404(customer_id)
    q = session.query(Job).filter(Job.customer_id==customer_id).order_by(Job.created_at.desc(), Job.id.desc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return send_list([job_json(j) for j in rows], total, limit, offset, latest_of(j.updated_at for j in rows))


def customer_stats(session, customer_ids):
    """Read-time aggregates: finished jobs, paid invoice total and the latest job per customer."""
    if not customer_ids:
        return {}
    out = {cid: {'jobs_completed': 0, 'total_spent_cents': 0, 'last_job': None} for cid in customer_ids}
    completed = session.execute(
        select(Job.customer_id, func.count(Job.id))
        .where(Job.customer_id.in_(customer_ids), Job.status.in_(Job.DONE_STATUSES))
        .group_by(Job.customer_id)
    ).all()
    for cid, n in completed:
        out[cid]['jobs_completed'] = n
    spent = session.execute(
        select(Job.customer_id, func.coalesce(func.sum(Invoice.amount_cents), 0))
        .join(Invoice, Invoice.job_id==Job.id)
        .where(Job.customer_id.in_(customer_ids), Invoice.status==Invoice.STATUS_PAID)
        .group_by(Job.customer_id)
    ).all()
    for cid, cents in spent:
        out[cid]['total_spent_cents'] = int(cents)
    for j in session.execute(
        select(Job).where(Job.customer_id.in_(customer_ids)).order_by(Job.created_at.asc(), Job.id.asc())
    ).scalars():
        # ascending walk: the last assignment wins
        out[j.customer_id]['last_job'] = {'id': j.id, 'reference': j.reference, 'device': j.device,
                                          'status': j.status, 'created_at': iso_z(j.created_at)}
    return out


def _get_or_404(customer_id: int) -> Customer:
    c = get_db().execute(select(Customer).where(Customer.id==customer_id)).scalar_one_or_none()
    if not c:
        abort(404)
    return c


def _customer_json(c: Customer, stats):
    stats = stats or {'jobs_completed': 0, 'total_spent_cents': 0, 'last_job': None}
    return {
        'id': c.id,
        'name': c.name,
        'email': c.email,
        'phone': c.phone,
        'location': c.location,
        'jobs_completed': stats['jobs_completed'],
        'total_spent_cents': stats['total_spent_cents'],
        'last_job': stats['last_job'],
        'created_at': iso_z(c.created_at),
    }


def _prefetch_customer(customer_id: int):
    session = get_db()
    c = session.execute(select(Customer).where(Customer.id==customer_id)).scalar_one_or_none()
    if not c:
        return {}
    return {'name': c.name, 'email': c.email, 'phone': c.phone, 'location': c.location}
