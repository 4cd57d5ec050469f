from __future__ import annotations
from typing import Any, Dict, Iterable, Optional
from flask import abort
from sqlalchemy import or_

# Filter value meaning "no filter" (select boxes default to it)
ALL = 'all'


def is_all(value: Optional[str]) -> bool:
    return value is None or str(value).strip() == '' or str(value).strip().lower() == ALL


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params: Dict[str, Any]):
    """Generic filter builder.

    specs: { param_name: { 'op': callable(query, value)->query, 'coerce': type/func, 'validate': callable(optional) } }
    A missing, empty or 'all' parameter leaves the query untouched.
    """
    for name, meta in specs.items():
        if name not in params or is_all(params[name]):
            continue
        val = params[name]
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except (TypeError, ValueError):
                abort(400, description=f'{name} invalid')
        if 'validate' in meta and not meta['validate'](val):
            abort(400, description=f'{name} invalid')
        query = meta['op'](query, val)
    return query


def apply_search(query, term: Optional[str], columns: Iterable[Any]):
    """Case-insensitive substring match of term against any of columns; blank term returns everything."""
    term = (term or '').strip()
    if not term:
        return query
    # % and _ in the term are matched literally
    return query.filter(or_(*[col.icontains(term, autoescape=True) for col in columns]))


def matches_search(term: Optional[str], *values: Any) -> bool:
    """In-memory counterpart of apply_search for rows assembled in Python."""
    term = (term or '').strip().lower()
    if not term:
        return True
    return any(term in str(v).lower() for v in values if v is not None)


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')
