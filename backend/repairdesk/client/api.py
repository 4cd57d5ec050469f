"""HTTP client for the RepairDesk API.

Every call is one request: read the bearer token from the persisted store,
send, raise on a non-2xx status, and hand back the JSON body with any ``_id``
keys folded into ``id``. There is no retry or caching layer; pages wrap calls
in :func:`safe` to turn failures into a toast and an empty value.
"""
import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urljoin

import requests

from repairdesk.client.errors import ApiError, ClientError, MissingTokenError
from repairdesk.constants.navigation import visible_navigation
from repairdesk.storage.kv import KeyValueStore, PersistedValue

logger = logging.getLogger(__name__)

TOKEN_KEY = 'authToken'
ROLE_KEY = 'userRole'
USER_KEY = 'currentUser'
DEFAULT_TIMEOUT = 30

Notify = Callable[[str, str], None]


def normalize_ids(payload: Any) -> Any:
    """Copy of ``payload`` where ``_id`` becomes ``id``; an existing ``id`` wins."""
    if isinstance(payload, list):
        return [normalize_ids(v) for v in payload]
    if isinstance(payload, dict):
        out = {}
        for k, v in payload.items():
            if k == '_id':
                continue
            out[k] = normalize_ids(v)
        if '_id' in payload and 'id' not in payload:
            out['id'] = normalize_ids(payload['_id'])
        return out
    return payload


def error_message(response) -> str:
    """Best-effort server message: message, error string, error.detail, then body text."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        if isinstance(body.get('message'), str) and body['message']:
            return body['message']
        err = body.get('error')
        if isinstance(err, str) and err:
            return err
        if isinstance(err, dict):
            detail = err.get('detail') or err.get('title')
            if detail:
                return str(detail)
    text = (getattr(response, 'text', '') or '').strip()
    return text or f"HTTP {response.status_code}"


class RepairDeskClient:
    def __init__(self, base_url: str, store: KeyValueStore, session=None, notify: Optional[Notify] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip('/') + '/'
        self.session = session or requests.Session()
        self.notify = notify
        self.timeout = timeout
        self.token = PersistedValue(store, TOKEN_KEY, None)
        self.role = PersistedValue(store, ROLE_KEY, None)
        self.user = PersistedValue(store, USER_KEY, None)

    def close(self):
        for slot in (self.token, self.role, self.user):
            slot.close()

    # --- transport -------------------------------------------------------

    def _send(self, method: str, path: str, json=None, params=None, auth: bool = True):
        headers = {'Accept': 'application/json'}
        if auth:
            token = self.token.get()
            if not token:
                raise MissingTokenError()
            headers['Authorization'] = f"Bearer {token}"
        url = urljoin(self.base_url, path.lstrip('/'))
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, headers=headers, json=json, params=params,
                                            timeout=self.timeout)
        except requests.RequestException as e:
            raise ApiError(None, f"Request failed: {e}") from e
        if not 200 <= response.status_code < 300:
            raise ApiError(response.status_code, error_message(response))
        return response

    def request(self, method: str, path: str, json=None, params=None, auth: bool = True) -> Any:
        response = self._send(method, path, json=json, params=params, auth=auth)
        if not response.content:
            return None
        try:
            return normalize_ids(response.json())
        except ValueError as e:
            raise ApiError(response.status_code, 'Response was not JSON') from e

    def download(self, path: str, params=None) -> bytes:
        return self._send('GET', path, params=params).content

    def get(self, path, params=None):
        return self.request('GET', path, params=params)

    def post(self, path, json=None):
        return self.request('POST', path, json=json)

    def put(self, path, json=None):
        return self.request('PUT', path, json=json)

    def patch(self, path, json=None):
        return self.request('PATCH', path, json=json)

    def delete(self, path):
        return self.request('DELETE', path)

    def _list(self, path, **params) -> List[Dict[str, Any]]:
        params = {k: v for k, v in params.items() if v is not None}
        return (self.get(path, params=params or None) or {}).get('data', [])

    # --- session ---------------------------------------------------------

    def login(self, email: str, password: str) -> Dict[str, Any]:
        body = self.request('POST', '/iam/auth/login', json={'email': email, 'password': password}, auth=False)
        user = body.get('user') or {}
        self.token.set(body['access_token'])
        self.role.set(user.get('role'))
        self.user.set(user)
        return user

    def logout(self):
        for slot in (self.token, self.role, self.user):
            slot.set(None)

    def me(self):
        return self.get('/iam/auth/me')

    def navigation(self) -> List[Dict[str, str]]:
        """Links for the stored role, rendered locally without a request."""
        return visible_navigation(self.role.get() or '')

    # --- jobs ------------------------------------------------------------

    def list_jobs(self, q=None, status=None, priority=None, assigned_to=None, **params):
        return self._list('/jobs', q=q, status=status, priority=priority, assigned_to=assigned_to, **params)

    def get_job(self, job_id: int):
        return self.get(f"/jobs/{job_id}")

    def create_job(self, data: Dict[str, Any]):
        return self.post('/jobs', json=data)

    def update_job(self, job_id: int, data: Dict[str, Any]):
        return self.put(f"/jobs/{job_id}", json=data)

    def set_job_status(self, job_id: int, status: str):
        return self.put(f"/jobs/{job_id}/status", json={'status': status})

    def reassign_job(self, job_id: int, user_id: Optional[int] = None, external_name: Optional[str] = None,
                     external_cost_cents: Optional[int] = None, notes: Optional[str] = None):
        if external_name:
            body = {'external_name': external_name, 'external_cost_cents': external_cost_cents or 0}
            if notes:
                body['notes'] = notes
        else:
            body = {'user_id': user_id}
        return self.put(f"/jobs/{job_id}/assign", json=body)

    def notify_customer(self, job_id: int, subject: str, content: str,
                        attachments: Optional[List[Dict[str, str]]] = None):
        body: Dict[str, Any] = {'subject': subject, 'content': content}
        if attachments:
            body['attachments'] = attachments
        return self.post(f"/jobs/{job_id}/notify", json=body)

    def delete_job(self, job_id: int):
        return self.delete(f"/jobs/{job_id}")

    def job_parts(self, job_id: int):
        return self.get(f"/jobs/{job_id}/parts")

    def attach_part(self, job_id: int, item_id: int):
        return self.post(f"/jobs/{job_id}/parts", json={'item_id': item_id})

    def detach_part(self, job_id: int, item_id: int):
        return self.delete(f"/jobs/{job_id}/parts/{item_id}")

    def job_log(self, job_id: int):
        return self.get(f"/jobs/{job_id}/log")

    def add_log_entry(self, job_id: int, action: str, duration_minutes: int = 0, **fields):
        """fields: technician, technician_role, notes, cost_cents, reassigned_from."""
        return self.post(f"/jobs/{job_id}/log", json={'action': action, 'duration_minutes': duration_minutes, **fields})

    # --- inventory -------------------------------------------------------

    def list_inventory(self, q=None, category=None, **params):
        return self._list('/inventory/items', q=q, category=category, **params)

    def create_item(self, data: Dict[str, Any]):
        return self.post('/inventory/items', json=data)

    def update_item(self, item_id: int, data: Dict[str, Any]):
        return self.put(f"/inventory/items/{item_id}", json=data)

    def adjust_stock(self, item_id: int, delta: Optional[int] = None, quantity: Optional[int] = None,
                     notes: Optional[str] = None):
        body: Dict[str, Any] = {}
        if delta is not None:
            body['delta'] = delta
        if quantity is not None:
            body['quantity'] = quantity
        if notes:
            body['notes'] = notes
        return self.patch(f"/inventory/items/{item_id}/stock", json=body)

    def delete_item(self, item_id: int):
        return self.delete(f"/inventory/items/{item_id}")

    def inventory_logs(self, action=None, period=None, q=None, **params):
        return self._list('/inventory/logs', action=action, period=period, q=q, **params)

    def usage_report(self):
        return self._list('/inventory/report')

    # --- invoices --------------------------------------------------------

    def list_invoices(self, q=None, status=None, **params):
        return self._list('/invoices', q=q, status=status, **params)

    def create_invoice(self, data: Dict[str, Any]):
        return self.post('/invoices', json=data)

    def send_invoice(self, invoice_id: int):
        return self.post(f"/invoices/{invoice_id}/send")

    def pay_invoice(self, invoice_id: int):
        return self.post(f"/invoices/{invoice_id}/pay")

    def delete_invoice(self, invoice_id: int):
        return self.delete(f"/invoices/{invoice_id}")

    def invoice_pdf(self, invoice_id: int) -> bytes:
        return self.download(f"/invoices/{invoice_id}/pdf")

    # --- people ----------------------------------------------------------

    def list_users(self, q=None, role=None, **params):
        return self._list('/iam/users', q=q, role=role, **params)

    def create_user(self, data: Dict[str, Any]):
        return self.post('/iam/users', json=data)

    def update_user(self, user_id: int, data: Dict[str, Any]):
        return self.put(f"/iam/users/{user_id}", json=data)

    def delete_user(self, user_id: int):
        return self.delete(f"/iam/users/{user_id}")

    def technicians(self):
        return self._list('/iam/technicians')

    def list_customers(self, q=None, **params):
        return self._list('/customers', q=q, **params)

    def create_customer(self, data: Dict[str, Any]):
        return self.post('/customers', json=data)

    def customer_jobs(self, customer_id: int):
        return self._list(f"/customers/{customer_id}/jobs")

    # --- messages --------------------------------------------------------

    def contacts(self, q=None):
        return self._list('/messages/contacts', q=q)

    def conversation(self, contact_id: int):
        return self.get(f"/messages/contacts/{contact_id}/conversation")

    def send_message(self, contact_id: int, content: str, subject: Optional[str] = None, is_email: bool = False,
                     attachments: Optional[List[Dict[str, str]]] = None):
        body: Dict[str, Any] = {'content': content, 'is_email': is_email}
        if subject:
            body['subject'] = subject
        if attachments:
            body['attachments'] = attachments
        return self.post(f"/messages/contacts/{contact_id}", json=body)

    def unread_count(self) -> int:
        return (self.get('/messages/unread-count') or {}).get('unread', 0)

    # --- reports ---------------------------------------------------------

    def dashboard_stats(self):
        return self.get('/reports/dashboard')

    def profit(self, year: Optional[int] = None):
        return self.get('/reports/profit', params={'year': year} if year else None)

    # --- page policy -----------------------------------------------------

    def safe(self, fn: Callable[..., Any], *args, default: Any = None, title: str = 'Error', **kwargs):
        """Run ``fn``; on a client failure show a toast, log it and return ``default``."""
        try:
            return fn(*args, **kwargs)
        except ClientError as e:
            message = getattr(e, 'message', None) or str(e)
            logger.warning("%s failed: %s", getattr(fn, '__name__', 'request'), message)
            if self.notify:
                self.notify(title, message)
            return default


__all__ = ['RepairDeskClient', 'normalize_ids', 'error_message', 'TOKEN_KEY', 'ROLE_KEY', 'USER_KEY']
