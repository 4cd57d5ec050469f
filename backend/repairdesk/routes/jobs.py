from __future__ import annotations
import logging
from flask import Blueprint, request, abort, send_file, make_response
from flask_jwt_extended import get_jwt
from sqlalchemy import select
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.utils.listing import apply_pagination, send_list, send_item, latest_of, iso_z, json_date
from repairdesk.utils.sorting import apply_multi_sort
from repairdesk.utils.filters import apply_filters, apply_search, parse_bool
from repairdesk.utils.validation import validate_status, require_fields
from repairdesk.utils.formatting import parse_date, to_cents
from repairdesk.utils.fsm import TransitionValidator
from repairdesk.constants.statuses import normalize_job_status, job_status_label, PRIORITY_LABELS
from repairdesk.services.policy import current_user_id
from repairdesk.services.notifications import queue_status_email, queue_email
from repairdesk.services.ledger import release_job_parts, job_parts
from repairdesk.services.repair_log import record_reassignment, clear_job_log
from repairdesk.services.documents import job_card_pdf, job_label_pdf, job_card_html
from repairdesk.services.audit import add_audit
from repairdesk import get_db
from repairdesk.models.job import Job
from repairdesk.models.customer import Customer
from repairdesk.models.authz import User

logger = logging.getLogger(__name__)

jobs_bp = Blueprint('jobs', __name__)

JOBS_FSM = TransitionValidator({
    Job.STATUS_RECEIVED: {Job.STATUS_DIAGNOSIS, Job.STATUS_REPAIR_IN_PROGRESS},
    Job.STATUS_DIAGNOSIS: {Job.STATUS_RECEIVED, Job.STATUS_REPAIR_IN_PROGRESS},
    Job.STATUS_REPAIR_IN_PROGRESS: {Job.STATUS_DIAGNOSIS, Job.STATUS_STRESS_TEST, Job.STATUS_REPAIR_COMPLETED},
    Job.STATUS_STRESS_TEST: {Job.STATUS_REPAIR_IN_PROGRESS, Job.STATUS_REPAIR_COMPLETED},
    Job.STATUS_REPAIR_COMPLETED: {Job.STATUS_REPAIR_IN_PROGRESS, Job.STATUS_READY_FOR_DELIVERY},
    Job.STATUS_READY_FOR_DELIVERY: {Job.STATUS_PICKED_UP},
    Job.STATUS_PICKED_UP: set(),
})

SORTABLE = {
    'created_at': Job.created_at,
    'updated_at': Job.updated_at,
    'due_date': Job.due_date,
    'priority': Job.priority,
    'status': Job.status,
    'customer_name': Job.customer_name,
    'reference': Job.reference,
    'id': Job.id,
}

SEARCH_COLUMNS = [Job.reference, Job.customer_name, Job.device, Job.issue, Job.serial_number]


@jobs_bp.get('')
@require_permissions('JOB.READ')
def list_jobs():
    session = get_db()
    q = session.query(Job)
    q = apply_search(q, request.args.get('q'), SEARCH_COLUMNS)
    filter_specs = {
        'status': {
            'coerce': normalize_job_status,
            'validate': lambda v: v in Job.ALL_STATUSES,
            'op': lambda qu, v: qu.filter(Job.status==v),
        },
        'priority': {
            'coerce': lambda v: str(v).lower(),
            'validate': lambda v: v in Job.ALL_PRIORITIES,
            'op': lambda qu, v: qu.filter(Job.priority==v),
        },
        'assigned_to': {
            'coerce': lambda v: current_user_id() if v == 'me' else int(v),
            'op': lambda qu, v: qu.filter(Job.assigned_user_id==v),
        },
        'customer_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Job.customer_id==v)},
        'open': {'coerce': parse_bool, 'op': lambda qu, v: qu.filter(Job.status.in_(Job.OPEN_STATUSES) if v else Job.status.in_(Job.DONE_STATUSES))},
    }
    q = apply_filters(q, filter_specs, request.args)
    q = apply_multi_sort(q, request.args.get('sort') or '-created_at', SORTABLE, Job.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return send_list([job_json(j) for j in rows], total, limit, offset, latest_of(j.updated_at for j in rows))


@jobs_bp.get('/<int:job_id>')
@require_permissions('JOB.READ')
def get_job(job_id: int):
    job = get_job_or_404(job_id)
    body = job_json(job)
    body['parts'] = job_parts(get_db(), job.id)
    body['allowed_statuses'] = JOBS_FSM.allowed_from(job.status)
    return send_item(body, job.id, job.updated_at)


@jobs_bp.post('')
@require_permissions('JOB.CREATE')
@audit_log('JOB.CREATE', entity='Job', entity_id_key='id', meta_keys=['reference', 'customer_name', 'status'])
def create_job():
    session = get_db()
    data = dict(request.json or {})
    customer = None
    if data.get('customer_id') is not None:
        customer = session.get(Customer, _int(data['customer_id'], 'customer_id'))
        if not customer:
            abort(400, description='customer_id unknown')
        data.setdefault('customer_name', customer.name)
        data.setdefault('customer_email', customer.email)
        data.setdefault('customer_phone', customer.phone)
    require_fields(data, 'customer_name', 'device', 'issue')
    status = validate_status(normalize_job_status(data.get('status') or Job.STATUS_RECEIVED), Job.ALL_STATUSES)
    job = Job(
        customer_id=customer.id if customer else None,
        customer_name=data['customer_name'].strip(),
        customer_email=data.get('customer_email') or None,
        customer_phone=data.get('customer_phone') or None,
        device=data['device'].strip(),
        serial_number=data.get('serial_number') or None,
        issue=data['issue'].strip(),
        status=status,
        priority=validate_status(str(data.get('priority') or Job.PRIORITY_MEDIUM).lower(), Job.ALL_PRIORITIES, 'priority'),
        due_date=_date(data.get('due_date'), 'due_date'),
        has_notification=parse_bool(data.get('has_notification', False)),
        notes=data.get('notes'),
        created_by=current_user_id(),
    )
    if data.get('assigned_user_id') is not None:
        _assign_internal(job, _int(data['assigned_user_id'], 'assigned_user_id'))
    session.add(job)
    session.flush()
    job.reference = Job.make_reference(job.id)
    session.commit()
    logger.info('job %s received for %s', job.reference, job.customer_name)
    return job_json(job), 201


@jobs_bp.put('/<int:job_id>')
@require_permissions('JOB.UPDATE')
@audit_log(
    'JOB.UPDATE',
    entity='Job',
    entity_id_key='id',
    diff_keys=['customer_name', 'device', 'issue', 'status', 'priority', 'due_date', 'notes'],
    pre_fetch=lambda a, kw: _prefetch_job(kw.get('job_id')),
)
def update_job(job_id: int):
    session = get_db()
    job = get_job_or_404(job_id)
    data = request.json or {}
    for key in ('customer_name', 'device', 'issue'):
        if key in data:
            if not isinstance(data[key], str) or not data[key].strip():
                abort(400, description=f'{key} cannot be empty')
            setattr(job, key, data[key].strip())
    for key in ('customer_email', 'customer_phone', 'serial_number', 'notes'):
        if key in data:
            setattr(job, key, data[key] or None)
    if 'customer_id' in data:
        if data['customer_id'] is None:
            job.customer_id = None
        else:
            cid = _int(data['customer_id'], 'customer_id')
            if not session.get(Customer, cid):
                abort(400, description='customer_id unknown')
            job.customer_id = cid
    if 'priority' in data:
        job.priority = validate_status(str(data['priority'] or '').lower(), Job.ALL_PRIORITIES, 'priority')
    if 'due_date' in data:
        job.due_date = _date(data['due_date'], 'due_date')
    if 'has_notification' in data:
        job.has_notification = parse_bool(data['has_notification'])
    if 'status' in data:
        _change_status(job, data['status'])
    session.commit()
    return job_json(job)


@jobs_bp.put('/<int:job_id>/status')
@require_permissions('JOB.UPDATE')
@audit_log('JOB.STATUS', entity='Job', entity_id_key='id', diff_keys=['status'], pre_fetch=lambda a, kw: _prefetch_job(kw.get('job_id')), meta_keys=['status'])
def set_job_status(job_id: int):
    session = get_db()
    job = get_job_or_404(job_id)
    data = request.json or {}
    if not data.get('status'):
        abort(400, description='status required')
    _change_status(job, data['status'])
    session.commit()
    return job_json(job)


@jobs_bp.put('/<int:job_id>/assign')
@require_permissions('JOB.ASSIGN')
@audit_log('JOB.ASSIGN', entity='Job', entity_id_key='id', diff_keys=['assigned_user_id', 'assigned_to'], pre_fetch=lambda a, kw: _prefetch_job(kw.get('job_id')), meta_keys=['assigned_to'])
def assign_job(job_id: int):
    """Assign to a staff technician ({"user_id"}), an outside shop ({"external_name", "external_cost_cents", "notes"}) or nobody ({"user_id": null})."""
    session = get_db()
    job = get_job_or_404(job_id)
    data = request.json or {}
    previous = job.assigned_to
    if data.get('external_name'):
        job.assigned_user_id = None
        job.assigned_to = str(data['external_name']).strip()
        job.external_cost_cents = _cents(data.get('external_cost_cents', 0), 'external_cost_cents')
    elif 'user_id' in data:
        if data['user_id'] is None:
            job.assigned_user_id = None
            job.assigned_to = None
            job.external_cost_cents = 0
        else:
            _assign_internal(job, _int(data['user_id'], 'user_id'))
    else:
        abort(400, description='user_id or external_name required')
    notes = data.get('notes')
    record_reassignment(session, job, previous, notes=notes if isinstance(notes, str) else None,
                        created_by=current_user_id())
    session.commit()
    return job_json(job)


@jobs_bp.post('/<int:job_id>/notify')
@require_permissions('JOB.READ', 'MSG.SEND')
@audit_log('JOB.NOTIFY', entity='Job', entity_id_arg='job_id', meta_keys=['subject', 'recipient'])
def notify_customer(job_id: int):
    session = get_db()
    job = get_job_or_404(job_id)
    if not job.customer_email:
        abort(400, description='job has no customer email')
    data = request.json or {}
    require_fields(data, 'subject', 'content')
    attachments = data.get('attachments') or []
    if not isinstance(attachments, list):
        abort(400, description='attachments must be a list')
    n = queue_email(job.customer_email, data['subject'], data['content'], job_id=job.id,
                    attachments=[{'name': a.get('name'), 'type': a.get('type')} for a in attachments if isinstance(a, dict)])
    session.commit()
    return {'id': n.id, 'job_id': job.id, 'recipient': n.recipient, 'subject': n.subject}, 201


@jobs_bp.delete('/<int:job_id>')
@require_permissions('JOB.DELETE')
def delete_job(job_id: int):
    session = get_db()
    job = get_job_or_404(job_id)
    restored = release_job_parts(session, job, user=get_jwt().get('name'))
    clear_job_log(session, job.id)
    session.delete(job)
    add_audit('JOB.DELETE', 'Job', job_id, {'reference': job.reference, 'restored_parts': restored})
    session.commit()
    return {'status': 'deleted', 'restored_parts': restored}


@jobs_bp.get('/<int:job_id>/card.pdf')
@require_permissions('JOB.READ')
def job_card(job_id: int):
    job = get_job_or_404(job_id)
    return send_file(job_card_pdf(job, job_parts(get_db(), job.id)), mimetype='application/pdf',
                     as_attachment=True, download_name=f"{job.reference}-card.pdf")


@jobs_bp.get('/<int:job_id>/label.pdf')
@require_permissions('JOB.READ')
def job_label(job_id: int):
    job = get_job_or_404(job_id)
    return send_file(job_label_pdf(job), mimetype='application/pdf',
                     as_attachment=True, download_name=f"{job.reference}-label.pdf")


@jobs_bp.get('/<int:job_id>/card.html')
@require_permissions('JOB.READ')
def job_card_print(job_id: int):
    job = get_job_or_404(job_id)
    resp = make_response(job_card_html(job, job_parts(get_db(), job.id)))
    resp.headers['Content-Type'] = 'text/html; charset=utf-8'
    return resp


def _change_status(job: Job, raw_status: str) -> bool:
    target = validate_status(normalize_job_status(raw_status), Job.ALL_STATUSES)
    if target == job.status:
        return False
    JOBS_FSM.assert_can_transition(job.status, target)
    previous, job.status = job.status, target
    logger.info('job %s status %s -> %s', job.reference, previous, target)
    queue_status_email(job)
    return True


def _assign_internal(job: Job, user_id: int):
    user = get_db().get(User, user_id)
    if not user or not user.is_active:
        abort(400, description='technician unknown or inactive')
    job.assigned_user_id = user.id
    job.assigned_to = user.name
    job.external_cost_cents = 0


def _int(value, field):
    try:
        return int(value)
    except (TypeError, ValueError):
        abort(400, description=f'{field} must be int')


def _cents(value, field):
    try:
        cents = to_cents(value, field)
    except ValueError as e:
        abort(400, description=str(e))
    if cents < 0:
        abort(400, description=f'{field} must be >= 0')
    return cents


def _date(value, field):
    try:
        return parse_date(value, field)
    except ValueError as e:
        abort(400, description=str(e))


def get_job_or_404(job_id: int) -> Job:
    job = get_db().execute(select(Job).where(Job.id==job_id)).scalar_one_or_none()
    if not job:
        abort(404)
    return job


def job_json(j: Job):
    return {
        'id': j.id,
        'reference': j.reference,
        'customer_id': j.customer_id,
        'customer_name': j.customer_name,
        'customer_email': j.customer_email,
        'customer_phone': j.customer_phone,
        'device': j.device,
        'serial_number': j.serial_number,
        'issue': j.issue,
        'status': j.status,
        'status_label': job_status_label(j.status),
        'priority': j.priority,
        'priority_label': PRIORITY_LABELS.get(j.priority, j.priority),
        'due_date': json_date(j.due_date),
        'assigned_user_id': j.assigned_user_id,
        'assigned_to': j.assigned_to,
        'external_cost_cents': j.external_cost_cents,
        'has_notification': j.has_notification,
        'notes': j.notes,
        'created_at': iso_z(j.created_at),
        'updated_at': iso_z(j.updated_at),
    }


def _prefetch_job(job_id: int):
    session = get_db()
    j = session.execute(select(Job).where(Job.id==job_id)).scalar_one_or_none()
    if not j:
        return {}
    return {
        'customer_name': j.customer_name, 'device': j.device, 'issue': j.issue,
        'status': j.status, 'priority': j.priority, 'due_date': json_date(j.due_date),
        'notes': j.notes, 'assigned_user_id': j.assigned_user_id, 'assigned_to': j.assigned_to,
    }
