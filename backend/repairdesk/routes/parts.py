from __future__ import annotations
from flask import Blueprint, request, abort
from flask_jwt_extended import get_jwt
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.services.ledger import attach_part, detach_part, job_parts
from repairdesk.services.policy import current_user_id
from repairdesk.routes.jobs import get_job_or_404
from repairdesk.models.inventory_item import InventoryItem
from repairdesk.models.authz import User
from repairdesk import get_db

parts_bp = Blueprint('job_parts', __name__)


@parts_bp.get('/<int:job_id>/parts')
@require_permissions('JOB.READ')
def list_job_parts(job_id: int):
    job = get_job_or_404(job_id)
    rows = job_parts(get_db(), job.id)
    return {
        'job_id': job.id,
        'data': rows,
        'total_cents': sum(r['line_total_cents'] for r in rows),
    }


@parts_bp.post('/<int:job_id>/parts')
@require_permissions('INV.USE')
@audit_log('JOB.PART.ATTACH', entity='Job', entity_id_key='job_id', meta_keys=['item_id', 'quantity', 'stock'])
def attach(job_id: int):
    session = get_db()
    job = get_job_or_404(job_id)
    data = request.json or {}
    try:
        item_id = int(data.get('item_id'))
    except (TypeError, ValueError):
        abort(400, description='item_id required')
    item = session.get(InventoryItem, item_id)
    if not item:
        abort(404, description='inventory item not found')
    technician_id = data.get('technician_id')
    technician_name = data.get('technician_name')
    if technician_id is not None:
        tech = session.get(User, int(technician_id)) if str(technician_id).isdigit() else None
        if not tech:
            abort(400, description='technician_id unknown')
        technician_id, technician_name = tech.id, technician_name or tech.name
    else:
        technician_id, technician_name = current_user_id(), technician_name or get_jwt().get('name')
    return attach_part(session, job, item, technician_id=technician_id, technician_name=technician_name), 201


@parts_bp.delete('/<int:job_id>/parts/<int:item_id>')
@require_permissions('INV.USE')
@audit_log('JOB.PART.DETACH', entity='Job', entity_id_key='job_id', meta_keys=['item_id', 'restored', 'stock'])
def detach(job_id: int, item_id: int):
    job = get_job_or_404(job_id)
    return detach_part(get_db(), job, item_id, user=get_jwt().get('name'))
