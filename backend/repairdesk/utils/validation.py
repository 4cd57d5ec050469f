"""Reusable validation helpers for request payloads and domain vocabularies.

Status values arrive from several generations of clients; normalize_status() folds
legacy spellings onto the canonical vocabulary before anything is validated.
"""
from __future__ import annotations
from typing import Any, Dict, Iterable, Mapping, Optional
from flask import abort


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or aborts with 400.
    """
    if new_status not in allowed:
        abort(400, description=f"{field_name} invalid")
    return new_status


def normalize_status(value: Optional[str], aliases: Mapping[str, str]) -> str:
    key = str(value or '').strip().lower().replace('_', '-').replace(' ', '-')
    return aliases.get(key, key)


def humanize(value: Optional[str]) -> str:
    """'foo-bar' -> 'Foo Bar'."""
    parts = (value or '').replace('_', '-').split('-')
    return ' '.join(p.capitalize() for p in parts if p)


def status_label(status: Optional[str], labels: Mapping[str, str]) -> str:
    return labels.get(status or '', humanize(status))


def require_fields(data: Dict[str, Any], *names: str) -> None:
    """Abort 400 unless every name holds a non-blank string."""
    for n in names:
        if data.get(n) is not None and not isinstance(data.get(n), str):
            abort(400, description=f"{n} must be a string")
    missing = [n for n in names if not (data.get(n) or '').strip()]
    if missing:
        abort(400, description=f"{', '.join(missing)} required")


def coerce_int(value: Any, field: str, minimum: Optional[int] = None) -> int:
    try:
        out = int(value)
    except (TypeError, ValueError):
        abort(400, description=f'{field} must be int')
    if minimum is not None and out < minimum:
        abort(400, description=f'{field} must be >= {minimum}')
    return out

__all__ = ['validate_status', 'normalize_status', 'humanize', 'status_label', 'require_fields', 'coerce_int']
