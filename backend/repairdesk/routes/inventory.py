from __future__ import annotations
from collections import defaultdict
from datetime import datetime, timezone, timedelta
from flask import Blueprint, request, abort, send_file, current_app
from flask_jwt_extended import get_jwt
from sqlalchemy import select, delete
from repairdesk import get_db
from repairdesk.models.inventory_item import InventoryItem, InventoryLog
from repairdesk.models.part_usage import JobPart, PartUsage
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.services.audit import add_audit
from repairdesk.services.ledger import usage_log_rows
from repairdesk.services.documents import build_csv
from repairdesk.services.policy import current_user_id
from repairdesk.utils.listing import apply_pagination, paginate_rows, send_list, send_item, latest_of, iso_z, json_date, canonicalize_timestamp
from repairdesk.utils.filters import apply_filters, apply_search, matches_search, is_all, parse_bool
from repairdesk.utils.sorting import apply_multi_sort
from repairdesk.utils.validation import require_fields, validate_status, coerce_int
from repairdesk.utils.formatting import parse_date, format_currency, format_date, to_cents

inv_bp = Blueprint('inventory', __name__)

PERIODS = ('today', 'week', 'month', 'all')

SORTABLE = {
    'name': InventoryItem.name,
    'sku': InventoryItem.sku,
    'category': InventoryItem.category,
    'quantity': InventoryItem.quantity,
    'price': InventoryItem.price_cents,
    'updated_at': InventoryItem.updated_at,
    'id': InventoryItem.id,
}


def _low_stock_threshold() -> int:
    return int(current_app.config.get('LOW_STOCK_THRESHOLD', 5))


@inv_bp.get('/items')
@require_permissions('INV.READ')
def list_items():
    session = get_db()
    q = session.query(InventoryItem)
    q = apply_search(q, request.args.get('q'), [InventoryItem.name, InventoryItem.category, InventoryItem.sku, InventoryItem.supplier])
    filter_specs = {
        'category': {'op': lambda qu, v: qu.filter(InventoryItem.category==v)},
        'low_stock': {'coerce': parse_bool, 'op': lambda qu, v: qu.filter(InventoryItem.quantity < _low_stock_threshold()) if v else qu},
        'in_stock': {'coerce': parse_bool, 'op': lambda qu, v: qu.filter(InventoryItem.quantity >= 1) if v else qu},
    }
    q = apply_filters(q, filter_specs, request.args)
    q = apply_multi_sort(q, request.args.get('sort') or 'name', SORTABLE, InventoryItem.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return send_list([_item_json(i) for i in rows], total, limit, offset, latest_of(i.updated_at for i in rows))


@inv_bp.post('/items')
@require_permissions('INV.MANAGE')
@audit_log('INVENTORY.CREATE', entity='InventoryItem', entity_id_key='id', meta_keys=['sku', 'name', 'quantity'])
def create_item():
    session = get_db()
    data = request.json or {}
    require_fields(data, 'sku', 'name')
    sku = data['sku'].strip()
    if session.execute(select(InventoryItem).where(InventoryItem.sku==sku)).scalar_one_or_none():
        abort(400, description='sku exists')
    item = InventoryItem(
        sku=sku,
        name=data['name'].strip(),
        category=str(data.get('category') or '').strip(),
        quantity=coerce_int(data.get('quantity', 0), 'quantity', minimum=0),
        price_cents=_cents(data.get('price_cents', 0)),
        supplier=data.get('supplier') or None,
        last_ordered=_date(data.get('last_ordered'), 'last_ordered'),
        created_by=current_user_id(),
    )
    session.add(item)
    session.flush()
    _log(InventoryLog.ACTION_ADDED, item, item.quantity, data.get('notes') or 'Item created')
    session.commit()
    return _item_json(item), 201


@inv_bp.get('/items/<int:item_id>')
@require_permissions('INV.READ')
def get_item(item_id: int):
    item = _get_or_404(item_id)
    return send_item(_item_json(item), item.id, item.updated_at)


@inv_bp.put('/items/<int:item_id>')
@require_permissions('INV.MANAGE')
@audit_log(
    'INVENTORY.UPDATE',
    entity='InventoryItem',
    entity_id_key='id',
    diff_keys=['name', 'sku', 'category', 'quantity', 'price_cents', 'supplier'],
    pre_fetch=lambda a, kw: _prefetch_item(kw.get('item_id')),
)
def update_item(item_id: int):
    session = get_db()
    item = _get_or_404(item_id)
    data = request.json or {}
    if 'sku' in data:
        sku = (data['sku'] or '').strip()
        if not sku:
            abort(400, description='sku cannot be empty')
        if session.execute(select(InventoryItem).where(InventoryItem.sku==sku, InventoryItem.id!=item.id)).scalar_one_or_none():
            abort(400, description='sku exists')
        item.sku = sku
    if 'name' in data:
        if not (data['name'] or '').strip():
            abort(400, description='name cannot be empty')
        item.name = data['name'].strip()
    if 'category' in data:
        item.category = (data['category'] or '').strip()
    if 'supplier' in data:
        item.supplier = data['supplier'] or None
    if 'price_cents' in data:
        item.price_cents = _cents(data['price_cents'])
    if 'last_ordered' in data:
        item.last_ordered = _date(data['last_ordered'], 'last_ordered')
    if 'quantity' in data:
        new_qty = coerce_int(data['quantity'], 'quantity', minimum=0)
        if new_qty != item.quantity:
            _log(InventoryLog.ACTION_ADJUSTED, item, new_qty - item.quantity, data.get('notes') or f'Set from {item.quantity} to {new_qty}')
            item.quantity = new_qty
    session.commit()
    return _item_json(item)


@inv_bp.patch('/items/<int:item_id>/stock')
@require_permissions('INV.MANAGE')
@audit_log(
    'INVENTORY.STOCK',
    entity='InventoryItem',
    entity_id_key='id',
    diff_keys=['quantity'],
    pre_fetch=lambda a, kw: _prefetch_item(kw.get('item_id')),
    meta_keys=['quantity'],
)
def adjust_stock(item_id: int):
    """{"delta": n} adds or removes units, {"quantity": n} sets the level outright."""
    session = get_db()
    item = _get_or_404(item_id)
    data = request.json or {}
    if data.get('delta') is not None:
        delta = coerce_int(data['delta'], 'delta')
        action = InventoryLog.ACTION_RESTOCKED if delta > 0 else InventoryLog.ACTION_REMOVED
        if delta > 0:
            item.last_ordered = datetime.now(timezone.utc).date()
    elif data.get('quantity') is not None:
        delta = coerce_int(data['quantity'], 'quantity', minimum=0) - int(item.quantity)
        action = InventoryLog.ACTION_ADJUSTED
    else:
        abort(400, description='delta or quantity required')
    if data.get('action'):
        action = validate_status(data['action'], (InventoryLog.ACTION_RESTOCKED, InventoryLog.ACTION_REMOVED, InventoryLog.ACTION_ADJUSTED), 'action')
    if int(item.quantity) + delta < 0:
        abort(400, description='stock cannot go negative')
    if delta == 0:
        return _item_json(item)
    item.quantity = int(item.quantity) + delta
    _log(action, item, abs(delta), data.get('notes') or '')
    session.commit()
    return _item_json(item)


@inv_bp.delete('/items/<int:item_id>')
@require_permissions('INV.MANAGE')
def delete_item(item_id: int):
    session = get_db()
    item = _get_or_404(item_id)
    # selections go with the item; usage history stays
    session.execute(delete(JobPart).where(JobPart.item_id==item.id))
    _log(InventoryLog.ACTION_REMOVED, item, item.quantity, 'Item deleted')
    session.delete(item)
    add_audit('INVENTORY.DELETE', 'InventoryItem', item_id, {'sku': item.sku, 'name': item.name})
    session.commit()
    return {'status': 'deleted'}


@inv_bp.get('/logs')
@require_permissions('INV.READ')
def list_logs():
    rows = _log_rows()
    page, total, limit, offset = paginate_rows(rows)
    latest = latest_of(r['created_at'] for r in page)
    return send_list([_log_json(r) for r in page], total, limit, offset, latest)


@inv_bp.get('/logs.csv')
@require_permissions('INV.READ')
def export_logs():
    rows = _log_rows()
    out = build_csv(
        ['Date', 'Action', 'Item', 'Quantity', 'User', 'Job', 'Customer', 'Notes'],
        ([format_date(r['created_at']), r['action'], r['item_name'], r['quantity'], r['user'],
          r['job_id'], r['customer_name'], r['notes']] for r in rows),
    )
    return send_file(out, mimetype='text/csv', as_attachment=True,
                     download_name=f"inventory-logs-{datetime.now(timezone.utc).date().isoformat()}.csv")


@inv_bp.get('/report')
@require_permissions('INV.READ')
def usage_report():
    rows = _report_rows()
    page, total, limit, offset = paginate_rows(rows)
    return send_list(page, total, limit, offset, None)


@inv_bp.get('/report.csv')
@require_permissions('INV.READ')
def export_report():
    rows = _report_rows()
    out = build_csv(
        ['SKU', 'Part', 'Category', 'In Stock', 'Unit Price', 'Total Used', 'Jobs', 'Customers'],
        ([r['sku'], r['name'], r['category'], r['quantity'], format_currency(r['price_cents']),
          r['total_used'], r['job_count'],
          '; '.join(f"{c['customer_name']} ({c['quantity']})" for c in r['customers'])] for r in rows),
    )
    return send_file(out, mimetype='text/csv', as_attachment=True,
                     download_name=f"inventory-report-{datetime.now(timezone.utc).date().isoformat()}.csv")


@inv_bp.get('/usages')
@require_permissions('INV.READ')
def list_usages():
    session = get_db()
    q = session.query(PartUsage)
    filter_specs = {
        'job_id': {'coerce': int, 'op': lambda qu, v: qu.filter(PartUsage.job_id==v)},
        'item_id': {'coerce': int, 'op': lambda qu, v: qu.filter(PartUsage.item_id==v)},
        'technician_id': {'coerce': int, 'op': lambda qu, v: qu.filter(PartUsage.technician_id==v)},
    }
    q = apply_filters(q, filter_specs, request.args)
    q = q.order_by(PartUsage.id.desc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return send_list([_usage_json(u) for u in rows], total, limit, offset, latest_of(u.created_at for u in rows))


def _within_period(ts, period: str, now: datetime) -> bool:
    if period == 'all':
        return True
    if not isinstance(ts, datetime):
        return False
    ts = canonicalize_timestamp(ts)
    if period == 'today':
        return ts.date() == now.date()
    days = 7 if period == 'week' else 30
    return ts >= now - timedelta(days=days)


def _log_rows():
    """Stored journal rows merged with usage-derived 'used' rows, newest first, filtered by request args."""
    session = get_db()
    action = request.args.get('action')
    if not is_all(action):
        validate_status(action, InventoryLog.ALL_ACTIONS, 'action')
    period = (request.args.get('period') or 'all').lower()
    validate_status(period, PERIODS, 'period')
    term = request.args.get('q')
    item_id = request.args.get('item_id')

    rows = []
    for log in session.execute(select(InventoryLog)).scalars():
        rows.append({
            'id': log.id, 'action': log.action, 'item_id': log.item_id, 'item_name': log.item_name,
            'quantity': log.quantity, 'user': log.user, 'notes': log.notes, 'job_id': log.job_id,
            'customer_name': log.customer_name, 'created_at': log.created_at,
        })
    rows.extend(usage_log_rows(session))

    now = datetime.now(timezone.utc)
    out = []
    for r in rows:
        if not is_all(action) and r['action'] != action:
            continue
        if item_id and str(r['item_id']) != str(item_id):
            continue
        if not _within_period(r['created_at'], period, now):
            continue
        if not matches_search(term, r['item_name'], r['user'], r['notes'], r['customer_name']):
            continue
        out.append(r)
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    out.sort(key=lambda r: canonicalize_timestamp(r['created_at']) if isinstance(r['created_at'], datetime) else epoch, reverse=True)
    return out


def _report_rows():
    session = get_db()
    usage_by_item = defaultdict(list)
    for u in session.execute(select(PartUsage)).scalars():
        usage_by_item[u.item_id].append(u)
    term = request.args.get('q')
    rows = []
    for item in session.execute(select(InventoryItem)).scalars():
        if not matches_search(term, item.name, item.sku, item.category):
            continue
        usages = usage_by_item.get(item.id, [])
        per_customer = defaultdict(int)
        for u in usages:
            per_customer[u.customer_name] += int(u.quantity)
        rows.append({
            'id': item.id,
            'sku': item.sku,
            'name': item.name,
            'category': item.category,
            'quantity': item.quantity,
            'price_cents': item.price_cents,
            'total_used': sum(int(u.quantity) for u in usages),
            'job_count': len({u.job_id for u in usages}),
            'customers': [
                {'customer_name': name, 'quantity': qty}
                for name, qty in sorted(per_customer.items(), key=lambda kv: (-kv[1], kv[0]))
            ],
        })
    rows.sort(key=lambda r: (-r['total_used'], r['name'].lower()))
    return rows


def _log(action: str, item: InventoryItem, quantity: int, notes: str = ''):
    get_db().add(InventoryLog(
        action=action,
        item_id=item.id,
        item_name=item.name,
        quantity=int(quantity),
        user=get_jwt().get('name'),
        notes=notes,
    ))


def _cents(value):
    try:
        cents = to_cents(value, 'price_cents')
    except ValueError as e:
        abort(400, description=str(e))
    if cents < 0:
        abort(400, description='price_cents must be >= 0')
    return cents


def _date(value, field):
    try:
        return parse_date(value, field)
    except ValueError as e:
        abort(400, description=str(e))


def _get_or_404(item_id: int) -> InventoryItem:
    item = get_db().execute(select(InventoryItem).where(InventoryItem.id==item_id)).scalar_one_or_none()
    if not item:
        abort(404)
    return item


def _item_json(i: InventoryItem):
    return {
        'id': i.id,
        'sku': i.sku,
        'name': i.name,
        'category': i.category,
        'quantity': i.quantity,
        'price_cents': i.price_cents,
        'supplier': i.supplier,
        'last_ordered': json_date(i.last_ordered),
        'low_stock': i.quantity < _low_stock_threshold(),
    }


def _log_json(r):
    body = dict(r)
    body['created_at'] = iso_z(r['created_at'])
    return body


def _usage_json(u: PartUsage):
    return {
        'id': u.id,
        'item_id': u.item_id,
        'part_name': u.part_name,
        'quantity': u.quantity,
        'price_cents': u.price_cents,
        'job_id': u.job_id,
        'customer_name': u.customer_name,
        'date_used': json_date(u.date_used),
        'technician_id': u.technician_id,
        'technician_name': u.technician_name,
    }


def _prefetch_item(item_id: int):
    session = get_db()
    i = session.execute(select(InventoryItem).where(InventoryItem.id==item_id)).scalar_one_or_none()
    if not i:
        return {}
    return {'name': i.name, 'sku': i.sku, 'category': i.category, 'quantity': i.quantity,
            'price_cents': i.price_cents, 'supplier': i.supplier}
