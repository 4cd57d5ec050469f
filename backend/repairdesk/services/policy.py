from __future__ import annotations
from typing import Set, Optional
from flask import abort
from flask_jwt_extended import get_jwt, get_jwt_identity
from sqlalchemy import select, func
from repairdesk.models.authz import User
from repairdesk.constants.permissions import permissions_for_role, ROLE_SUPER_ADMIN
from repairdesk import get_db


def current_permissions() -> Set[str]:
    claims = get_jwt()
    return set(claims.get('perms', []))


def has_permissions(*codes: str) -> bool:
    perms = current_permissions()
    return all(c in perms for c in codes)


def current_user_id() -> int:
    # Identity stored as string, cast back to int for DB lookup
    return int(get_jwt_identity())


def current_role() -> str:
    return get_jwt().get('role') or ''


def token_claims_for(user: User):
    """Claims embedded in the access token; permissions are expanded from the role preset."""
    return {
        'role': user.role,
        'perms': sorted(permissions_for_role(user.role)),
        'name': user.name,
    }


def count_active_super_admins(session=None, exclude_user_id: Optional[int] = None) -> int:
    session = session or get_db()
    stmt = select(func.count(User.id)).where(User.role==ROLE_SUPER_ADMIN, User.is_active.is_(True))
    if exclude_user_id is not None:
        stmt = stmt.where(User.id!=exclude_user_id)
    return session.execute(stmt).scalar_one()


def assert_not_removing_last_super_admin(target: User, new_role: Optional[str] = None, new_active: Optional[bool] = None, deleting: bool = False):
    """Ensure at least one active super-admin remains after the change to target."""
    if target.role != ROLE_SUPER_ADMIN or not target.is_active:
        return
    still_super = (not deleting
                   and (new_role is None or new_role == ROLE_SUPER_ADMIN)
                   and (new_active is None or new_active))
    if still_super:
        return
    if count_active_super_admins(exclude_user_id=target.id) < 1:
        abort(400, description='Cannot remove last super-admin')
