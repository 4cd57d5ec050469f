from __future__ import annotations
from typing import Dict, Any, Tuple, Iterable, Optional, List
from flask import request, abort, make_response, jsonify
from sqlalchemy.orm import Query
from repairdesk.config.pagination import normalize_pagination
import hashlib
from datetime import datetime, date, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime

TIMESTAMP_TOLERANCE = timedelta(seconds=1)


def canonicalize_timestamp(dt: datetime) -> datetime:
    """Return UTC tz-aware timestamp truncated to whole seconds (microseconds removed)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.replace(microsecond=0)


def iso_z(dt: Optional[datetime]) -> str:
    if not isinstance(dt, datetime):
        return ''
    return canonicalize_timestamp(dt).isoformat().replace('+00:00', 'Z')


def _request_page() -> Tuple[int, int]:
    try:
        return normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    limit, offset = _request_page()
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset


def paginate_rows(rows: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], int, int, int]:
    """Pagination for lists assembled in Python (merged or aggregated rows)."""
    limit, offset = _request_page()
    return rows[offset:offset + limit], len(rows), limit, offset


def compute_etag(ids: Iterable[Any], total: int, limit: int, offset: int, latest_ts: Optional[str] = '') -> str:
    seed = f"{list(ids)}|{total}|{limit}|{offset}|{latest_ts or ''}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }


def _http_date(dt: datetime) -> str:
    """Return RFC1123 HTTP-date string in GMT."""
    return format_datetime(dt, usegmt=True)


def _set_validators(resp, etag: str, latest_ts: Optional[datetime]):
    resp.headers['ETag'] = etag
    if isinstance(latest_ts, datetime):
        latest_c = canonicalize_timestamp(latest_ts)
        resp.headers['Last-Modified'] = _http_date(latest_c)
        # Canonical ISO form for clients that prefer it over HTTP-date
        resp.headers['X-Last-Modified-ISO'] = iso_z(latest_c)
    return resp


def make_cached_list_response(rows: list, total: int, limit: int, offset: int, latest_ts: Optional[datetime] = None):
    ids = [r.get('id') for r in rows]
    # Keep ETag seed stable using ISO canonical form
    etag = compute_etag(ids, total, limit, offset, iso_z(latest_ts))
    resp = make_response(build_list_payload(rows, total, limit, offset))
    _set_validators(resp, etag, latest_ts)
    return resp, etag


def latest_of(values: Iterable[Any]) -> Optional[datetime]:
    stamps = [v for v in values if isinstance(v, datetime)]
    if not stamps:
        return None
    return max(canonicalize_timestamp(v) for v in stamps)


def send_list(rows_json: list, total: int, limit: int, offset: int, latest_ts: Optional[datetime] = None):
    """Full list response with validators; 304 when the client copy is current, empty body on HEAD."""
    resp, etag = make_cached_list_response(rows_json, total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        cond.set_data(b'')
        return cond
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


def send_item(body: Dict[str, Any], entity_id: Any, latest_ts: Optional[datetime]):
    etag = compute_etag([entity_id], 1, 1, 0, iso_z(latest_ts))
    cond = handle_conditional(etag, latest_ts)
    if cond:
        cond.set_data(b'')
        return cond
    resp = make_response(jsonify(body))
    _set_validators(resp, etag, latest_ts)
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


def _parse_if_modified_since(header_val: str) -> Optional[datetime]:
    if not header_val:
        return None
    # Try ISO 8601 first
    try:
        dt = datetime.fromisoformat(header_val.replace('Z', '+00:00'))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        pass
    # Try HTTP-date (RFC 1123)
    try:
        dt = parsedate_to_datetime(header_val)
    except (TypeError, ValueError):
        return None
    if dt and dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def handle_conditional(etag_value: str, latest_ts: Optional[datetime]):
    """Evaluate conditional request headers.

    Precedence: If-None-Match over If-Modified-Since (per RFC 9110 semantics).
    Returns a 304 response object if conditions satisfied, else None.
    """
    if not isinstance(latest_ts, datetime):
        latest_ts = None
    inm = request.headers.get('If-None-Match')
    if inm and inm.strip('"') == etag_value:
        return _set_validators(make_response('', 304), etag_value, latest_ts)
    # Only evaluate If-Modified-Since if If-None-Match was not a match / absent
    ims_raw = request.headers.get('If-Modified-Since')
    if ims_raw and latest_ts:
        ims_dt = _parse_if_modified_since(ims_raw)
        if ims_dt:
            latest_c = canonicalize_timestamp(latest_ts)
            if latest_c <= canonicalize_timestamp(ims_dt) + TIMESTAMP_TOLERANCE:
                return _set_validators(make_response('', 304), etag_value, latest_c)
    return None


def json_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None
