from __future__ import annotations
import json
from flask import Blueprint, request, abort
from flask_jwt_extended import jwt_required
from repairdesk import get_db
from repairdesk.services.policy import current_user_id
from repairdesk.storage.kv import SqlKeyValueStore, PersistedValue, StoreWriteError

state_bp = Blueprint('state', __name__)

MAX_KEY_LENGTH = 128


def _store() -> SqlKeyValueStore:
    # one namespace per user: preferences never leak between accounts
    return SqlKeyValueStore(get_db, f"user:{current_user_id()}")


def _check_key(key: str) -> str:
    if not key or len(key) > MAX_KEY_LENGTH:
        abort(400, description=f'key must be 1-{MAX_KEY_LENGTH} characters')
    return key


@state_bp.get('')
@jwt_required()
def list_keys():
    return {'keys': _store().keys()}


@state_bp.get('/<key>')
@jwt_required()
def get_state(key: str):
    with PersistedValue(_store(), _check_key(key), None) as slot:
        return {'key': key, 'value': slot.get()}


@state_bp.put('/<key>')
@jwt_required()
def put_state(key: str):
    _check_key(key)
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or 'value' not in data:
        abort(400, description='value required')
    try:
        _store().set_raw(key, json.dumps(data['value']))
    except StoreWriteError as e:
        abort(503, description=f'state not saved: {e}')
    return {'key': key, 'value': data['value']}


@state_bp.delete('/<key>')
@jwt_required()
def delete_state(key: str):
    _check_key(key)
    try:
        _store().remove(key)
    except StoreWriteError as e:
        abort(503, description=f'state not removed: {e}')
    return {'key': key, 'status': 'deleted'}
