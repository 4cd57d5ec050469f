"""Printable and exportable documents: invoice / job card / label PDFs, the HTML
print view of a job card, and CSV exports."""
from __future__ import annotations
import csv
from io import BytesIO, StringIO
from typing import Any, Dict, Iterable, List, Sequence

from flask import current_app, render_template_string
from reportlab.lib.pagesizes import letter
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

from repairdesk.models.job import Job
from repairdesk.models.invoice import Invoice
from repairdesk.constants.statuses import job_status_label
from repairdesk.utils.formatting import format_currency, format_date

LABEL_SIZE = (4 * inch, 2 * inch)


def _shop_lines() -> List[str]:
    name = current_app.config.get('SHOP_NAME') or 'RepairDesk'
    address = current_app.config.get('SHOP_ADDRESS') or ''
    return [name] + [line.strip() for line in address.split(',') if line.strip()]


def _address_lines(block: Dict[str, Any]) -> List[str]:
    block = block or {}
    keys = ('name', 'company', 'address', 'city', 'email', 'phone')
    return [str(block[k]) for k in keys if block.get(k)]


def invoice_pdf(invoice: Invoice) -> BytesIO:
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=letter)
    width, height = letter
    margin = inch

    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawString(margin, height - margin, "Invoice")
    pdf.setFont("Helvetica", 10)
    pdf.drawString(margin, height - margin - 20, f"Invoice #: {invoice.invoice_number}")
    pdf.drawString(margin, height - margin - 35, f"Issued: {format_date(invoice.issue_date)}")
    pdf.drawString(margin, height - margin - 50, f"Due: {format_date(invoice.due_date) or 'On receipt'}")
    pdf.drawString(margin, height - margin - 65, f"Status: {invoice.status.capitalize()}")

    sender = _address_lines(invoice.sender) or _shop_lines()
    y = height - margin - 95
    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawString(margin, y, "From")
    pdf.drawString(margin + 3 * inch, y, "Bill to")
    pdf.setFont("Helvetica", 10)
    recipient = _address_lines(invoice.recipient) or [invoice.recipient_name]
    for i in range(max(len(sender), len(recipient))):
        y -= 15
        if i < len(sender):
            pdf.drawString(margin, y, sender[i])
        if i < len(recipient):
            pdf.drawString(margin + 3 * inch, y, recipient[i])

    y -= 35
    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawString(margin, y, "Description")
    pdf.drawRightString(width - margin - 2.4 * inch, y, "Qty")
    pdf.drawRightString(width - margin - 1.2 * inch, y, "Rate")
    pdf.drawRightString(width - margin, y, "Amount")
    pdf.line(margin, y - 4, width - margin, y - 4)
    pdf.setFont("Helvetica", 10)
    for item in invoice.items:
        y -= 18
        if y < margin + 40:
            pdf.showPage()
            pdf.setFont("Helvetica", 10)
            y = height - margin
        pdf.drawString(margin, y, item.description[:60])
        pdf.drawRightString(width - margin - 2.4 * inch, y, str(item.quantity))
        pdf.drawRightString(width - margin - 1.2 * inch, y, format_currency(item.rate_cents))
        pdf.drawRightString(width - margin, y, format_currency(item.amount_cents))

    y -= 30
    pdf.setFont("Helvetica-Bold", 12)
    pdf.drawRightString(width - margin, y, f"Total: {format_currency(invoice.amount_cents)}")

    pdf.showPage()
    pdf.save()
    buffer.seek(0)
    return buffer


def job_card_pdf(job: Job, parts: Sequence[Dict[str, Any]]) -> BytesIO:
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=letter)
    width, height = letter
    margin = inch

    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawString(margin, height - margin, f"Job Card {job.reference}")
    pdf.setFont("Helvetica", 10)
    pdf.drawRightString(width - margin, height - margin, _shop_lines()[0])

    rows = [
        ("Customer", job.customer_name),
        ("Email", job.customer_email or '-'),
        ("Phone", job.customer_phone or '-'),
        ("Device", job.device),
        ("Serial", job.serial_number or '-'),
        ("Issue", job.issue),
        ("Status", job_status_label(job.status)),
        ("Priority", job.priority.capitalize()),
        ("Due", format_date(job.due_date) or '-'),
        ("Technician", job.assigned_to or 'Unassigned'),
    ]
    y = height - margin - 30
    for label, value in rows:
        pdf.setFont("Helvetica-Bold", 10)
        pdf.drawString(margin, y, f"{label}:")
        pdf.setFont("Helvetica", 10)
        pdf.drawString(margin + 1.2 * inch, y, str(value)[:80])
        y -= 16

    # content stops above the signature line
    floor = margin + 50

    if parts:
        y -= 14
        pdf.setFont("Helvetica-Bold", 11)
        pdf.drawString(margin, y, "Parts")
        pdf.setFont("Helvetica", 10)
        for p in parts:
            y -= 15
            if y < floor:
                pdf.showPage()
                pdf.setFont("Helvetica", 10)
                y = height - margin
            pdf.drawString(margin, y, f"{p['quantity']} x {p['name']}")
            pdf.drawRightString(width - margin, y, format_currency(p['line_total_cents']))

    if job.notes:
        y -= 30
        if y < floor:
            pdf.showPage()
            y = height - margin
        pdf.setFont("Helvetica-Bold", 11)
        pdf.drawString(margin, y, "Notes")
        pdf.setFont("Helvetica", 10)
        for line in job.notes.splitlines():
            y -= 15
            if y < floor:
                pdf.showPage()
                pdf.setFont("Helvetica", 10)
                y = height - margin
            pdf.drawString(margin, y, line[:90])

    pdf.line(margin, margin + 20, margin + 3 * inch, margin + 20)
    pdf.drawString(margin, margin + 5, "Customer signature")

    pdf.showPage()
    pdf.save()
    buffer.seek(0)
    return buffer


def job_label_pdf(job: Job) -> BytesIO:
    """Small sticker for the device: reference, customer, device and intake date."""
    buffer = BytesIO()
    width, height = LABEL_SIZE
    pdf = canvas.Canvas(buffer, pagesize=LABEL_SIZE)
    pad = 0.15 * inch
    pdf.setFont("Helvetica-Bold", 18)
    pdf.drawString(pad, height - pad - 16, job.reference)
    pdf.setFont("Helvetica", 10)
    pdf.drawString(pad, height - pad - 36, job.customer_name[:40])
    pdf.drawString(pad, height - pad - 52, job.device[:40])
    pdf.drawString(pad, height - pad - 68, f"In: {format_date(job.created_at)}  Due: {format_date(job.due_date) or '-'}")
    pdf.setFont("Helvetica-Oblique", 8)
    pdf.drawString(pad, pad, job.issue[:60])
    pdf.showPage()
    pdf.save()
    buffer.seek(0)
    return buffer


JOB_CARD_TEMPLATE = """<!DOCTYPE html>
<html><head><meta charset="utf-8"><title>Job Card {{ job.reference }}</title>
<style>
body { font-family: Helvetica, Arial, sans-serif; margin: 2em; }
table { border-collapse: collapse; width: 100%; }
td, th { text-align: left; padding: 4px 8px; border-bottom: 1px solid #ddd; }
.right { text-align: right; }
@media print { .no-print { display: none; } }
</style></head>
<body onload="window.print()">
<h1>Job Card {{ job.reference }}</h1>
<p>{{ shop|join(', ') }}</p>
<table>
<tr><th>Customer</th><td>{{ job.customer_name }}</td></tr>
<tr><th>Contact</th><td>{{ job.customer_email or '-' }} / {{ job.customer_phone or '-' }}</td></tr>
<tr><th>Device</th><td>{{ job.device }}{% if job.serial_number %} (S/N {{ job.serial_number }}){% endif %}</td></tr>
<tr><th>Issue</th><td>{{ job.issue }}</td></tr>
<tr><th>Status</th><td>{{ status }}</td></tr>
<tr><th>Priority</th><td>{{ job.priority|capitalize }}</td></tr>
<tr><th>Due</th><td>{{ due or '-' }}</td></tr>
<tr><th>Technician</th><td>{{ job.assigned_to or 'Unassigned' }}</td></tr>
</table>
{% if parts %}
<h2>Parts</h2>
<table>
<tr><th>Part</th><th class="right">Qty</th><th class="right">Total</th></tr>
{% for p in parts %}<tr><td>{{ p.name }}</td><td class="right">{{ p.quantity }}</td><td class="right">{{ money(p.line_total_cents) }}</td></tr>
{% endfor %}</table>
{% endif %}
{% if job.notes %}<h2>Notes</h2><p>{{ job.notes }}</p>{% endif %}
</body></html>
"""


def job_card_html(job: Job, parts: Sequence[Dict[str, Any]]) -> str:
    return render_template_string(
        JOB_CARD_TEMPLATE,
        job=job,
        parts=parts,
        shop=_shop_lines(),
        status=job_status_label(job.status),
        due=format_date(job.due_date),
        money=format_currency,
    )


def build_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> BytesIO:
    csv_buffer = StringIO()
    writer = csv.writer(csv_buffer)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(['' if v is None else v for v in row])
    # BOM so spreadsheet apps pick UTF-8
    output = BytesIO(csv_buffer.getvalue().encode("utf-8-sig"))
    output.seek(0)
    return output
