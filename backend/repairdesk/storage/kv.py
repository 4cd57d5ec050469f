"""Persisted key-value slots.

A store keeps raw serialized strings per key and tells subscribers about every
write. ``PersistedValue`` sits on top of a store and mirrors one key in memory:

    store = JsonFileStore('~/.repairdesk/state.json')
    token = PersistedValue(store, 'authToken', None)
    token.set('abc')          # memory + store
    token.get()               # 'abc'
    token.close()             # stop listening for other writers

Values are JSON. A stored payload that does not parse is treated as absent,
logged, and never raised to the caller.
"""
from __future__ import annotations
import json
import logging
import os
import tempfile
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError

from repairdesk.models.kv_entry import KVEntry

logger = logging.getLogger(__name__)

# callback(key, raw_or_None, origin)
Subscriber = Callable[[str, Optional[str], Any], None]


class StoreWriteError(Exception):
    """Backend refused a write (disk full, read-only file, database error)."""


class KeyValueStore:
    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def get_raw(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def _write(self, key: str, raw: str):
        raise NotImplementedError

    def _delete(self, key: str):
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError

    def refresh(self):
        """Pick up writes made outside this object. Stores that cannot see such writes do nothing."""

    def set_raw(self, key: str, raw: str, origin: Any = None):
        self._write(key, raw)
        self._notify(key, raw, origin)

    def remove(self, key: str, origin: Any = None):
        self._delete(key)
        self._notify(key, None, origin)

    def subscribe(self, callback: Subscriber) -> Subscriber:
        self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Subscriber):
        try:
            self._subscribers.remove(callback)
        except ValueError:
            pass

    def _notify(self, key: str, raw: Optional[str], origin: Any):
        for cb in list(self._subscribers):
            try:
                cb(key, raw, origin)
            except Exception:
                logger.exception('kv subscriber failed for key %s', key)


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        super().__init__()
        self._data: Dict[str, str] = dict(initial or {})

    def get_raw(self, key):
        return self._data.get(key)

    def _write(self, key, raw):
        self._data[key] = raw

    def _delete(self, key):
        self._data.pop(key, None)

    def keys(self):
        return sorted(self._data)


class JsonFileStore(KeyValueStore):
    """Single JSON object on disk mapping key -> raw string.

    An unreadable or corrupt file behaves like an empty one.
    Another instance or process writing the same file is noticed by refresh(),
    which compares the file's inode, mtime and size against the last seen state.
    """

    def __init__(self, path: str):
        super().__init__()
        self.path = os.path.expanduser(path)
        self._signature = self._stat()
        self._seen: Dict[str, str] = self._load()

    def _stat(self) -> Optional[Tuple[int, int, int]]:
        try:
            st = os.stat(self.path)
        except OSError:
            return None
        return (st.st_ino, st.st_mtime_ns, st.st_size)

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as fh:
                data = json.load(fh)
        except (OSError, ValueError):
            logger.warning('state file %s unreadable, starting empty', self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning('state file %s is not an object, starting empty', self.path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save(self, data: Dict[str, str]):
        directory = os.path.dirname(self.path) or '.'
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=directory, prefix='.kv-', suffix='.json')
        except OSError as e:
            raise StoreWriteError(str(e)) from e
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                json.dump(data, fh, sort_keys=True)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError) as e:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise StoreWriteError(str(e)) from e
        self._seen = dict(data)
        self._signature = self._stat()

    def _changed_keys(self, data: Dict[str, str], skip: Optional[str] = None) -> List[str]:
        return sorted(k for k in set(self._seen) | set(data) if k != skip and self._seen.get(k) != data.get(k))

    def refresh(self):
        signature = self._stat()
        if signature == self._signature:
            return
        data = self._load()
        changed = self._changed_keys(data)
        self._seen, self._signature = data, signature
        for key in changed:
            self._notify(key, data.get(key), None)

    def get_raw(self, key):
        return self._load().get(key)

    def _write(self, key, raw):
        data = self._load()
        # other keys rewritten elsewhere since our last look
        changed = self._changed_keys(data, skip=key)
        data[key] = raw
        self._save(data)
        for k in changed:
            self._notify(k, data.get(k), None)

    def _delete(self, key):
        data = self._load()
        changed = self._changed_keys(data, skip=key)
        if key in data:
            del data[key]
            self._save(data)
        else:
            self._seen, self._signature = data, self._stat()
        for k in changed:
            self._notify(k, data.get(k), None)

    def keys(self):
        return sorted(self._load())


class SqlKeyValueStore(KeyValueStore):
    """Rows of ``kv_entries`` scoped to one namespace (the server uses one per user)."""

    def __init__(self, session_factory: Callable[[], Any], namespace: str):
        super().__init__()
        self.session_factory = session_factory
        self.namespace = namespace

    def _row(self, session, key):
        return session.execute(
            select(KVEntry).where(KVEntry.namespace==self.namespace, KVEntry.key==key)
        ).scalar_one_or_none()

    def get_raw(self, key):
        row = self._row(self.session_factory(), key)
        return row.value if row else None

    def _write(self, key, raw):
        session = self.session_factory()
        try:
            row = self._row(session, key)
            if row:
                row.value = raw
            else:
                session.add(KVEntry(namespace=self.namespace, key=key, value=raw))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreWriteError(str(e)) from e

    def _delete(self, key):
        session = self.session_factory()
        try:
            session.execute(delete(KVEntry).where(KVEntry.namespace==self.namespace, KVEntry.key==key))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreWriteError(str(e)) from e

    def keys(self):
        session = self.session_factory()
        return sorted(session.execute(
            select(KVEntry.key).where(KVEntry.namespace==self.namespace)
        ).scalars())


_MISSING = object()


def parse_raw(raw: Optional[str], default: Any = None, key: str = '') -> Any:
    """JSON-decode a stored payload, falling back to default when absent or corrupt."""
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning('stored value for %s is not valid JSON, using default', key)
        return default


class PersistedValue:
    def __init__(self, store: KeyValueStore, key: str, default: Any = None):
        self.store = store
        self.key = key
        self.default = default
        self._value = parse_raw(store.get_raw(key), default, key)
        self._callback = store.subscribe(self._on_change)

    def get(self) -> Any:
        self.store.refresh()
        return self._value

    def set(self, value: Any):
        """Update memory first, then the store. Accepts a callable of the current value."""
        if callable(value):
            value = value(self._value)
        self._value = value
        try:
            self.store.set_raw(self.key, json.dumps(value), origin=self)
        except (TypeError, ValueError, StoreWriteError):
            logger.warning('could not persist %s, keeping in-memory value', self.key, exc_info=True)

    def _on_change(self, key: str, raw: Optional[str], origin: Any):
        if origin is self or key != self.key or raw is None:
            return
        parsed = parse_raw(raw, _MISSING, key)
        if parsed is _MISSING:
            return
        self._value = parsed

    def close(self):
        self.store.unsubscribe(self._callback)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

__all__ = [
    'KeyValueStore', 'MemoryStore', 'JsonFileStore', 'SqlKeyValueStore',
    'PersistedValue', 'StoreWriteError', 'parse_raw',
]
