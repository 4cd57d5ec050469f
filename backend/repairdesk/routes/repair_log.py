from __future__ import annotations
from flask import Blueprint, request, abort
from flask_jwt_extended import get_jwt
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.services.repair_log import add_entry, job_log, log_entry_json
from repairdesk.services.policy import current_user_id
from repairdesk.routes.jobs import get_job_or_404
from repairdesk.utils.validation import validate_status, coerce_int
from repairdesk.utils.formatting import to_cents
from repairdesk.models.repair_log import RepairLogEntry
from repairdesk import get_db

log_bp = Blueprint('job_log', __name__)


@log_bp.get('/<int:job_id>/log')
@require_permissions('JOB.READ')
def list_log(job_id: int):
    job = get_job_or_404(job_id)
    entries = job_log(get_db(), job.id)
    return {
        'job_id': job.id,
        'data': [log_entry_json(e) for e in entries],
        'total_minutes': sum(e.duration_minutes for e in entries),
        'external_cost_cents': sum(e.cost_cents or 0 for e in entries),
    }


@log_bp.post('/<int:job_id>/log')
@require_permissions('JOB.UPDATE')
@audit_log('JOB.LOG.ADD', entity='Job', entity_id_key='job_id', meta_keys=['action', 'duration_minutes'])
def add_log_entry(job_id: int):
    """Append a work entry. technician defaults to the caller; cost_cents is kept only for external work."""
    session = get_db()
    job = get_job_or_404(job_id)
    data = request.json or {}
    action = data.get('action')
    if not isinstance(action, str) or not action.strip():
        abort(400, description='action required')
    technician = data.get('technician') or get_jwt().get('name')
    if not isinstance(technician, str) or not technician.strip():
        abort(400, description='technician required')
    role = validate_status(str(data.get('technician_role') or RepairLogEntry.ROLE_INTERNAL).lower(),
                           RepairLogEntry.ALL_ROLES, 'technician_role')
    cost = None
    if role == RepairLogEntry.ROLE_EXTERNAL and data.get('cost_cents') is not None:
        try:
            cost = to_cents(data['cost_cents'], 'cost_cents')
        except ValueError as e:
            abort(400, description=str(e))
        if cost < 0:
            abort(400, description='cost_cents must be >= 0')
    notes = data.get('notes')
    entry = add_entry(
        session, job,
        technician=technician.strip(),
        technician_role=role,
        action=action.strip(),
        notes=notes if isinstance(notes, str) else None,
        duration_minutes=coerce_int(data.get('duration_minutes', 0), 'duration_minutes', minimum=0),
        cost_cents=cost,
        reassigned_from=data.get('reassigned_from') or None,
        created_by=current_user_id(),
    )
    session.commit()
    return log_entry_json(entry), 201
