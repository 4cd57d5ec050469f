"""Job status vocabulary: display labels and legacy spellings.

Older clients wrote pending / in-progress / parts-ordered / completed / delivered;
those fold onto the canonical workshop flow on input and are never stored.
"""
from __future__ import annotations
from typing import Dict, Optional

from repairdesk.models.job import Job
from repairdesk.utils.validation import normalize_status, status_label

JOB_STATUS_LABELS: Dict[str, str] = {
    Job.STATUS_RECEIVED: 'Received',
    Job.STATUS_DIAGNOSIS: 'Diagnosis',
    Job.STATUS_REPAIR_IN_PROGRESS: 'Repair In Progress',
    Job.STATUS_STRESS_TEST: 'Stress Test',
    Job.STATUS_REPAIR_COMPLETED: 'Repair Completed',
    Job.STATUS_READY_FOR_DELIVERY: 'Ready for Delivery',
    Job.STATUS_PICKED_UP: 'Picked Up',
}

JOB_STATUS_ALIASES: Dict[str, str] = {
    'pending': Job.STATUS_RECEIVED,
    'in-progress': Job.STATUS_REPAIR_IN_PROGRESS,
    'parts-ordered': Job.STATUS_REPAIR_IN_PROGRESS,
    'completed': Job.STATUS_REPAIR_COMPLETED,
    'delivered': Job.STATUS_PICKED_UP,
}

PRIORITY_LABELS: Dict[str, str] = {
    Job.PRIORITY_HIGH: 'High',
    Job.PRIORITY_MEDIUM: 'Medium',
    Job.PRIORITY_LOW: 'Low',
}


def normalize_job_status(value: Optional[str]) -> str:
    return normalize_status(value, JOB_STATUS_ALIASES)


def job_status_label(status: Optional[str]) -> str:
    return status_label(normalize_job_status(status), JOB_STATUS_LABELS)
