"""Audit logging decorator so route handlers do not repeat add_audit() calls.

Usage:

@audit_log('JOB.CREATE', entity='Job', entity_id_key='id', meta_keys=['reference', 'status'])
def create_job():
    ... return _job_json(job), 201

@audit_log('JOB.STATUS', entity='Job', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_job(kw.get('job_id')))
def set_job_status(job_id): ...

Parameters:
  action: required audit action code (e.g. JOB.CREATE)
  entity: optional entity label (Job, Invoice, InventoryItem)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: path parameter to use for entity_id when entity_id_key is absent.
  meta_keys: keys projected from the returned JSON into the meta dict.
  meta_builder: callable returning a meta dict; receives (data, original_return_value, args, kwargs).
    Overrides meta_keys.
  diff_keys / pre_fetch: snapshot taken before the handler runs; changed keys are recorded
    under meta['changes'] as {'before', 'after'}.

The handler's return value (dict, (dict, status) or (dict, status, headers)) is passed through
untouched; only 2xx handler results reach the audit step since errors are raised via abort().
"""
from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict

from repairdesk.services.audit import add_audit
from repairdesk import get_db

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, original_rv) where data is the JSON-able dict for inspection."""
    if isinstance(rv, tuple) and rv:
        return rv[0], rv
    return rv, rv


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    commit: bool = True,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = None
            if diff_keys and pre_fetch:
                before_snapshot = pre_fetch(args, kwargs)
            rv = fn(*args, **kwargs)
            try:
                data, _ = _extract_payload(rv)
                if not isinstance(data, dict):  # csv/pdf responses and the like
                    add_audit(action, entity, kwargs.get(entity_id_arg) if entity_id_arg else None, None)
                else:
                    entity_id = None
                    if entity_id_key and entity_id_key in data:
                        entity_id = data.get(entity_id_key)
                    elif entity_id_arg and entity_id_arg in kwargs:
                        entity_id = kwargs.get(entity_id_arg)
                    meta = None
                    if meta_builder:
                        meta = meta_builder(data, rv, args, kwargs)
                    elif meta_keys:
                        meta = {k: data.get(k) for k in meta_keys if k in data}
                    if diff_keys and isinstance(before_snapshot, dict):
                        changes = {}
                        for k in diff_keys:
                            if k in before_snapshot and k in data and before_snapshot.get(k) != data.get(k):
                                changes[k] = {'before': before_snapshot.get(k), 'after': data.get(k)}
                        if changes:
                            meta = dict(meta or {})
                            meta['changes'] = changes
                    add_audit(action, entity, entity_id, meta)
                if commit:
                    get_db().commit()
            except Exception:
                # The handler already committed its work; a lost audit row must not turn it into a 500
                logger.exception('audit %s failed', action)
                get_db().rollback()
            return rv
        return wrapper
    return outer
