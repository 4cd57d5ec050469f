"""Parts-usage ledger.

Attaching a part to a job touches three records: the job's selection (JobPart),
a usage snapshot (PartUsage) and the item's stock. Detaching reverses all three.
Each operation is a single transaction, so stock + recorded usage for an item
stays equal to its pre-attach level whatever order jobs attach and detach in.
The 'used' rows of the inventory log are read from PartUsage (see usage_log_rows)
rather than stored, so a detach leaves no stale 'used' entry behind.
"""
from __future__ import annotations
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from flask import abort
from sqlalchemy import select, update, delete, func

from repairdesk.models.job import Job
from repairdesk.models.inventory_item import InventoryItem, InventoryLog
from repairdesk.models.part_usage import JobPart, PartUsage

logger = logging.getLogger(__name__)


def attach_part(session, job: Job, item: InventoryItem, technician_id: Optional[int] = None,
                technician_name: Optional[str] = None) -> Dict[str, Any]:
    # Conditional decrement: a concurrent attach that took the last unit makes rowcount 0
    res = session.execute(
        update(InventoryItem)
        .where(InventoryItem.id==item.id, InventoryItem.quantity >= 1)
        .values(quantity=InventoryItem.quantity - 1)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        session.rollback()
        abort(409, description=f'{item.name} is out of stock')
    selection = session.execute(
        select(JobPart).where(JobPart.job_id==job.id, JobPart.item_id==item.id)
    ).scalar_one_or_none()
    if selection:
        selection.quantity = int(selection.quantity) + 1
    else:
        selection = JobPart(job_id=job.id, item_id=item.id, quantity=1)
        session.add(selection)
    usage = PartUsage(
        item_id=item.id,
        part_name=item.name,
        quantity=1,
        price_cents=item.price_cents,
        job_id=job.id,
        customer_name=job.customer_name,
        date_used=date.today(),
        technician_id=technician_id,
        technician_name=technician_name,
    )
    session.add(usage)
    session.commit()
    session.refresh(item)
    logger.info('attached %s to job %s, stock now %s', item.sku, job.reference, item.quantity)
    return {
        'job_id': job.id,
        'item_id': item.id,
        'quantity': selection.quantity,
        'stock': item.quantity,
        'usage_id': usage.id,
    }


def detach_part(session, job: Job, item_id: int, user: Optional[str] = None) -> Dict[str, Any]:
    """Return a part to stock. Unknown selections are a no-op reporting restored=0."""
    selection = session.execute(
        select(JobPart).where(JobPart.job_id==job.id, JobPart.item_id==item_id)
    ).scalar_one_or_none()
    item = session.get(InventoryItem, item_id)
    if not selection:
        return {'job_id': job.id, 'item_id': item_id, 'restored': 0,
                'stock': item.quantity if item else None}
    restored = int(selection.quantity)
    session.delete(selection)
    removed = session.execute(
        delete(PartUsage).where(PartUsage.job_id==job.id, PartUsage.item_id==item_id)
    ).rowcount
    stock = None
    if item:
        session.execute(
            update(InventoryItem)
            .where(InventoryItem.id==item_id)
            .values(quantity=InventoryItem.quantity + restored)
            .execution_options(synchronize_session=False)
        )
        session.add(InventoryLog(
            action=InventoryLog.ACTION_ADJUSTED,
            item_id=item_id,
            item_name=item.name,
            quantity=restored,
            user=user,
            notes=f'Returned from {job.reference}',
            job_id=job.id,
            customer_name=job.customer_name,
        ))
    session.commit()
    if item:
        session.refresh(item)
        stock = item.quantity
    logger.info('detached item %s from job %s, restored %s (%s usage rows)', item_id, job.reference, restored, removed)
    return {'job_id': job.id, 'item_id': item_id, 'restored': restored, 'stock': stock}


def release_job_parts(session, job: Job, user: Optional[str] = None) -> int:
    """Detach everything from a job (used before deleting it). Returns units restored."""
    item_ids = list(session.execute(select(JobPart.item_id).where(JobPart.job_id==job.id)).scalars())
    total = 0
    for item_id in item_ids:
        total += detach_part(session, job, item_id, user=user)['restored']
    return total


def job_parts(session, job_id: int) -> List[Dict[str, Any]]:
    rows = session.execute(
        select(JobPart, InventoryItem)
        .join(InventoryItem, InventoryItem.id==JobPart.item_id)
        .where(JobPart.job_id==job_id)
        .order_by(JobPart.id.asc())
    ).all()
    out = []
    for sel, item in rows:
        out.append({
            'id': sel.id,
            'item_id': item.id,
            'sku': item.sku,
            'name': item.name,
            'quantity': sel.quantity,
            'price_cents': item.price_cents,
            'line_total_cents': int(sel.quantity) * int(item.price_cents),
        })
    return out


def usage_log_rows(session) -> List[Dict[str, Any]]:
    """'used' inventory log rows derived from current usage records."""
    out = []
    for u in session.execute(select(PartUsage).order_by(PartUsage.id.asc())).scalars():
        out.append({
            'id': f'usage-{u.id}',
            'action': InventoryLog.ACTION_USED,
            'item_id': u.item_id,
            'item_name': u.part_name,
            'quantity': u.quantity,
            'user': u.technician_name,
            'notes': f'Used on {Job.make_reference(u.job_id)}',
            'job_id': u.job_id,
            'customer_name': u.customer_name,
            'created_at': u.created_at,
        })
    return out


def used_quantity(session, item_id: int) -> int:
    return session.execute(
        select(func.coalesce(func.sum(PartUsage.quantity), 0)).where(PartUsage.item_id==item_id)
    ).scalar_one()
