"""Customer email outbox.

Nothing leaves the process here: a Notification row is the record of the email,
and a log line stands in for the hand-off to a mail relay. Callers commit.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from flask import current_app

from repairdesk import get_db
from repairdesk.models.job import Job
from repairdesk.models.invoice import Invoice
from repairdesk.models.notification import Notification
from repairdesk.constants.statuses import job_status_label
from repairdesk.utils.formatting import format_currency, format_date

logger = logging.getLogger(__name__)


def queue_email(recipient: str, subject: str, body: str, *, job_id: Optional[int] = None,
                invoice_id: Optional[int] = None, attachments: Optional[List[Dict[str, Any]]] = None) -> Notification:
    session = get_db()
    n = Notification(
        recipient=recipient,
        subject=subject,
        body=body,
        job_id=job_id,
        invoice_id=invoice_id,
        attachments=list(attachments or []),
    )
    session.add(n)
    logger.info('queued email to %s: %s', recipient, subject)
    return n


def _shop_name() -> str:
    return current_app.config.get('SHOP_NAME') or 'RepairDesk'


def queue_status_email(job: Job) -> Optional[Notification]:
    """Tell the customer their job moved; skipped when the job opted out or has no email."""
    if not job.has_notification or not job.customer_email:
        return None
    label = job_status_label(job.status)
    subject = f"{job.reference}: {label}"
    body = (
        f"Hello {job.customer_name},\n\n"
        f"Your {job.device} ({job.reference}) is now: {label}.\n\n"
        f"{_shop_name()}"
    )
    return queue_email(job.customer_email, subject, body, job_id=job.id)


def queue_invoice_email(invoice: Invoice) -> Optional[Notification]:
    recipient = invoice.recipient_email or (invoice.recipient or {}).get('email')
    if not recipient:
        return None
    subject = f"Invoice {invoice.invoice_number} from {_shop_name()}"
    due = format_date(invoice.due_date)
    body = (
        f"Hello {invoice.recipient_name},\n\n"
        f"Please find invoice {invoice.invoice_number} for {format_currency(invoice.amount_cents)} attached."
        + (f" Payment is due by {due}." if due else '')
        + f"\n\n{_shop_name()}"
    )
    attachment = {'name': f"{invoice.invoice_number}.pdf", 'type': 'application/pdf',
                  'url': f"/invoices/{invoice.id}/pdf"}
    return queue_email(recipient, subject, body, invoice_id=invoice.id, job_id=invoice.job_id, attachments=[attachment])
