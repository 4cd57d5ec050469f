"""Per-job repair log.

Entries are appended by hand from the job page and automatically whenever the
job changes hands. Callers commit.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete

from repairdesk.models.job import Job
from repairdesk.models.repair_log import RepairLogEntry
from repairdesk.utils.listing import iso_z

logger = logging.getLogger(__name__)


def add_entry(session, job: Job, *, technician: str, action: str, technician_role: str = RepairLogEntry.ROLE_INTERNAL,
              notes: Optional[str] = None, duration_minutes: int = 0, cost_cents: Optional[int] = None,
              reassigned_from: Optional[str] = None, created_by: Optional[int] = None) -> RepairLogEntry:
    entry = RepairLogEntry(
        job_id=job.id,
        technician=technician,
        technician_role=technician_role,
        action=action,
        notes=notes or None,
        duration_minutes=duration_minutes,
        cost_cents=cost_cents if technician_role == RepairLogEntry.ROLE_EXTERNAL else None,
        reassigned_from=reassigned_from,
        created_by=created_by,
    )
    session.add(entry)
    session.flush()
    logger.info('job %s log: %s by %s (%s min)', job.reference, action, technician, duration_minutes)
    return entry


def record_reassignment(session, job: Job, previous: Optional[str], notes: Optional[str] = None,
                        created_by: Optional[int] = None) -> Optional[RepairLogEntry]:
    """Log the hand-over after job.assigned_to has been updated; nothing is logged when it is unchanged or cleared."""
    if not job.assigned_to or job.assigned_to == previous:
        return None
    external = job.assigned_user_id is None
    return add_entry(
        session, job,
        technician=job.assigned_to,
        technician_role=RepairLogEntry.ROLE_EXTERNAL if external else RepairLogEntry.ROLE_INTERNAL,
        action=RepairLogEntry.ACTION_REASSIGNED,
        notes=notes,
        cost_cents=job.external_cost_cents if external else None,
        reassigned_from=previous,
        created_by=created_by,
    )


def job_log(session, job_id: int) -> List[RepairLogEntry]:
    return list(session.execute(
        select(RepairLogEntry).where(RepairLogEntry.job_id==job_id).order_by(RepairLogEntry.id.asc())
    ).scalars())


def clear_job_log(session, job_id: int) -> None:
    session.execute(delete(RepairLogEntry).where(RepairLogEntry.job_id==job_id))


def log_entry_json(e: RepairLogEntry) -> Dict[str, Any]:
    return {
        'id': e.id,
        'job_id': e.job_id,
        'technician': e.technician,
        'technician_role': e.technician_role,
        'action': e.action,
        'notes': e.notes,
        'duration_minutes': e.duration_minutes,
        'cost_cents': e.cost_cents,
        'reassigned_from': e.reassigned_from,
        'created_by': e.created_by,
        'created_at': iso_z(e.created_at),
    }
