from __future__ import annotations
from datetime import date, datetime, time
from flask import Blueprint, request, abort, current_app
from sqlalchemy import func, select, and_, literal_column
from repairdesk.decorators.auth import require_permissions
from repairdesk.services.policy import has_permissions
from repairdesk.utils.listing import paginate_rows, send_list, latest_of
from repairdesk.utils.filters import parse_bool
from repairdesk.utils.formatting import parse_date
from repairdesk.constants.permissions import ROLE_TECHNICIAN
from repairdesk import get_db
from repairdesk.models.job import Job
from repairdesk.models.invoice import Invoice
from repairdesk.models.customer import Customer
from repairdesk.models.inventory_item import InventoryItem
from repairdesk.models.part_usage import PartUsage
from repairdesk.models.authz import User

rpt_bp = Blueprint('reports', __name__)

MONTHS = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']


def _date_arg(name: str):
    try:
        return parse_date(request.args.get(name), name)
    except ValueError as e:
        abort(400, description=str(e))


def _gather_metrics(include_financial: bool = False, start_date=None, end_date=None):
    session = get_db()
    metrics = []

    def status_counts(model, domain_name, sum_field=None):
        filters = []
        if start_date:
            filters.append(model.updated_at >= datetime.combine(start_date, time.min))
        if end_date:
            filters.append(model.updated_at <= datetime.combine(end_date, time.max))
        total_col = func.coalesce(func.sum(sum_field), 0) if sum_field is not None else literal_column('0')
        q = session.query(model.status, func.count(model.id), total_col)
        if filters:
            q = q.filter(and_(*filters))
        for status, count, total in q.group_by(model.status).all():
            row = {"domain": domain_name, "status": status, "count": int(count)}
            if include_financial and sum_field is not None:
                row["sum_cents"] = int(total)
            metrics.append(row)

    status_counts(Job, 'Job')
    status_counts(Invoice, 'Invoice', Invoice.amount_cents)
    # Deterministic ordering
    metrics.sort(key=lambda m: (m['domain'], m.get('status') or ''))
    latest_ts = latest_of(
        session.execute(select(func.max(model.updated_at))).scalar_one_or_none() for model in (Job, Invoice)
    )
    return metrics, latest_ts


@rpt_bp.get('/metrics')
@require_permissions('RPT.READ')
def list_metrics():
    include_financial = parse_bool(request.args.get('include_financial', False))
    if include_financial and not has_permissions('RPT.FINANCE'):
        abort(403, description='Missing permission RPT.FINANCE')
    metrics, latest_ts = _gather_metrics(include_financial, _date_arg('start_date'), _date_arg('end_date'))
    page, total, limit, offset = paginate_rows(metrics)
    return send_list(page, total, limit, offset, latest_ts)


@rpt_bp.get('/metrics/pivot')
@require_permissions('RPT.READ')
def list_metrics_pivot():
    """Return pivoted metrics: { domain: { status: count, ... }, ... }"""
    metrics, latest_ts = _gather_metrics(False, _date_arg('start_date'), _date_arg('end_date'))
    pivot = {}
    for m in metrics:
        pivot.setdefault(m['domain'], {})[m['status']] = m['count']
    return {'pivot': pivot}


@rpt_bp.get('/dashboard')
@require_permissions('RPT.READ')
def dashboard():
    session = get_db()
    today = date.today()
    by_status = {s: 0 for s in Job.ALL_STATUSES}
    for status, count in session.execute(select(Job.status, func.count(Job.id)).group_by(Job.status)).all():
        by_status[status] = int(count)
    threshold = int(current_app.config.get('LOW_STOCK_THRESHOLD', 5))
    low_stock = session.execute(
        select(InventoryItem).where(InventoryItem.quantity < threshold).order_by(InventoryItem.quantity.asc(), InventoryItem.name.asc())
    ).scalars().all()
    recent = session.execute(select(Job).order_by(Job.created_at.desc(), Job.id.desc()).limit(5)).scalars().all()
    body = {
        'active_jobs': sum(by_status[s] for s in Job.OPEN_STATUSES),
        'jobs_by_status': by_status,
        'due_today': session.execute(
            select(func.count(Job.id)).where(Job.due_date==today, Job.status.in_(Job.OPEN_STATUSES))
        ).scalar_one(),
        'low_stock': [{'id': i.id, 'sku': i.sku, 'name': i.name, 'quantity': i.quantity} for i in low_stock],
        'customers': session.execute(select(func.count(Customer.id))).scalar_one(),
        'recent_jobs': [
            {'id': j.id, 'reference': j.reference, 'customer_name': j.customer_name, 'device': j.device, 'status': j.status}
            for j in recent
        ],
    }
    if has_permissions('RPT.FINANCE'):
        body['revenue_cents'] = _sum_invoices(session, (Invoice.STATUS_PAID,))
        body['outstanding_cents'] = _sum_invoices(session, Invoice.OUTSTANDING_STATUSES)
    return body


@rpt_bp.get('/profit')
@require_permissions('RPT.FINANCE')
def profit():
    """Monthly revenue (paid invoices by issue month) against parts cost (usage by date used)."""
    session = get_db()
    raw_year = request.args.get('year')
    try:
        year = int(raw_year) if raw_year else date.today().year
    except ValueError:
        abort(400, description='year must be int')
    start, end = date(year, 1, 1), date(year, 12, 31)
    revenue = [0] * 12
    for issued, amount in session.execute(
        select(Invoice.issue_date, Invoice.amount_cents)
        .where(Invoice.status==Invoice.STATUS_PAID, Invoice.issue_date >= start, Invoice.issue_date <= end)
    ).all():
        revenue[issued.month - 1] += int(amount)
    parts = [0] * 12
    for used, qty, price in session.execute(
        select(PartUsage.date_used, PartUsage.quantity, PartUsage.price_cents)
        .where(PartUsage.date_used >= start, PartUsage.date_used <= end)
    ).all():
        parts[used.month - 1] += int(qty) * int(price)
    months = []
    for i in range(12):
        months.append(_profit_row(MONTHS[i], revenue[i], parts[i]))
    return {'year': year, 'months': months, 'totals': _profit_row('Total', sum(revenue), sum(parts))}


@rpt_bp.get('/technicians')
@require_permissions('JOB.ASSIGN')
def technicians():
    session = get_db()
    stats = {}
    for user_id, status, count in session.execute(
        select(Job.assigned_user_id, Job.status, func.count(Job.id))
        .where(Job.assigned_user_id.is_not(None))
        .group_by(Job.assigned_user_id, Job.status)
    ).all():
        row = stats.setdefault(user_id, {'assigned': 0, 'active': 0, 'completed': 0})
        row['assigned'] += int(count)
        if status in Job.OPEN_STATUSES:
            row['active'] += int(count)
        elif status in Job.DONE_STATUSES:
            row['completed'] += int(count)
    parts_used = dict(session.execute(
        select(PartUsage.technician_id, func.coalesce(func.sum(PartUsage.quantity), 0))
        .where(PartUsage.technician_id.is_not(None))
        .group_by(PartUsage.technician_id)
    ).all())
    rows = []
    for u in session.execute(select(User).where(User.role==ROLE_TECHNICIAN).order_by(User.name.asc())).scalars():
        s = stats.get(u.id, {'assigned': 0, 'active': 0, 'completed': 0})
        rows.append({
            'id': u.id,
            'name': u.name,
            'is_active': u.is_active,
            'specialties': u.specialties or [],
            'assigned': s['assigned'],
            'active': s['active'],
            'completed': s['completed'],
            'completion_rate': round(s['completed'] * 100.0 / s['assigned'], 1) if s['assigned'] else 0.0,
            'parts_used': int(parts_used.get(u.id, 0)),
        })
    if parse_bool(request.args.get('include_external', False)):
        external = session.execute(
            select(Job.assigned_to, func.count(Job.id), func.coalesce(func.sum(Job.external_cost_cents), 0))
            .where(Job.assigned_user_id.is_(None), Job.assigned_to.is_not(None))
            .group_by(Job.assigned_to)
        ).all()
        for name, count, cost in external:
            rows.append({'id': None, 'name': name, 'external': True, 'assigned': int(count), 'external_cost_cents': int(cost)})
    return {'data': rows}


def _sum_invoices(session, statuses) -> int:
    return int(session.execute(
        select(func.coalesce(func.sum(Invoice.amount_cents), 0)).where(Invoice.status.in_(statuses))
    ).scalar_one())


def _profit_row(label: str, revenue: int, parts_cost: int):
    profit_cents = revenue - parts_cost
    return {
        'month': label,
        'revenue_cents': revenue,
        'parts_cost_cents': parts_cost,
        'profit_cents': profit_cents,
        'margin_pct': round(profit_cents * 100.0 / revenue, 1) if revenue else 0.0,
    }
