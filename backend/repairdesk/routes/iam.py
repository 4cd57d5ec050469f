from flask import Blueprint, request, abort
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from sqlalchemy import select, func
from repairdesk.models.authz import User
from repairdesk.models.job import Job
from repairdesk import get_db
from repairdesk.constants.permissions import ALL_ROLES, ROLE_PRESETS, ROLE_TECHNICIAN, permissions_for_role
from repairdesk.constants.navigation import visible_links
from repairdesk.services.policy import token_claims_for, current_permissions, current_role, current_user_id, assert_not_removing_last_super_admin
from repairdesk.services.audit import add_audit
from repairdesk.utils.listing import apply_pagination, send_list, send_item, latest_of, iso_z
from repairdesk.utils.filters import apply_filters, apply_search
from repairdesk.utils.validation import require_fields, validate_status
from repairdesk.decorators.audit import audit_log
from repairdesk.decorators.auth import require_permissions

iam_bp = Blueprint('iam', __name__)

MIN_PASSWORD_LENGTH = 6


@iam_bp.post('/auth/login')
def login():
    data = request.json or {}
    email = (data.get('email') or '').strip().lower(); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    user = session.execute(select(User).where(func.lower(User.email)==email)).scalar_one_or_none()
    if not user or not user.verify_password(password):
        abort(401, description='invalid credentials')
    if not user.is_active:
        abort(403, description='account disabled')
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims=token_claims_for(user))
    return {'access_token': token, 'user': _user_json(user)}


@iam_bp.get('/auth/me')
@jwt_required()
def me():
    user_id = int(get_jwt_identity())
    session = get_db()
    user = session.execute(select(User).where(User.id==user_id)).scalar_one_or_none()
    if not user:
        abort(404)
    body = _user_json(user)
    body['perms'] = sorted(permissions_for_role(user.role))
    return body


@iam_bp.get('/navigation')
@jwt_required()
def navigation():
    return {'role': current_role(), 'links': visible_links(current_permissions())}


@iam_bp.get('/roles')
@require_permissions('ADMIN.USER.MANAGE')
def list_roles():
    return {'data': [
        {'name': r, 'permissions': sorted(permissions_for_role(r)), 'wildcard': ROLE_PRESETS[r] == ['*']}
        for r in ALL_ROLES
    ]}


# --- User management ---

@iam_bp.get('/users')
@require_permissions('ADMIN.USER.MANAGE')
def list_users():
    session = get_db()
    q = session.query(User)
    q = apply_search(q, request.args.get('q'), [User.name, User.email, User.company])
    filter_specs = {
        'role': {'validate': lambda v: v in ALL_ROLES, 'op': lambda qu, v: qu.filter(User.role==v)},
        'active': {'coerce': lambda v: str(v).lower() in ('1', 'true', 'yes'), 'op': lambda qu, v: qu.filter(User.is_active.is_(v))},
    }
    q = apply_filters(q, filter_specs, request.args)
    q = q.order_by(User.name.asc(), User.id.asc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return send_list([_user_json(u) for u in rows], total, limit, offset, latest_of(u.updated_at for u in rows))


@iam_bp.get('/users/<int:user_id>')
@require_permissions('ADMIN.USER.MANAGE')
def get_user(user_id: int):
    user = _get_user_or_404(user_id)
    return send_item(_user_json(user), user.id, user.updated_at)


@iam_bp.post('/users')
@require_permissions('ADMIN.USER.MANAGE')
@audit_log('USER.CREATE', entity='User', entity_id_key='id', meta_keys=['email', 'role'])
def create_user():
    data = request.json or {}
    require_fields(data, 'name', 'email', 'password')
    password = data.get('password')
    if 'confirm_password' in data and data.get('confirm_password') != password:
        abort(400, description='passwords do not match')
    if len(password) < MIN_PASSWORD_LENGTH:
        abort(400, description=f'password must be at least {MIN_PASSWORD_LENGTH} characters')
    role = validate_status(data.get('role') or ROLE_TECHNICIAN, ALL_ROLES, 'role')
    session = get_db()
    email = data['email'].strip().lower()
    if session.execute(select(User).where(func.lower(User.email)==email)).scalar_one_or_none():
        abort(400, description='email in use')
    user = User(
        name=data['name'].strip(),
        email=email,
        role=role,
        phone=data.get('phone'),
        company=data.get('company'),
        specialties=_specialties(data.get('specialties')),
        is_active=bool(data.get('is_active', True)),
    )
    user.set_password(password)
    session.add(user)
    session.commit()
    return _user_json(user), 201


@iam_bp.put('/users/<int:user_id>')
@require_permissions('ADMIN.USER.MANAGE')
@audit_log(
    'USER.UPDATE',
    entity='User',
    entity_id_key='id',
    meta_keys=['email'],
    diff_keys=['name', 'email', 'role', 'is_active'],
    pre_fetch=lambda a, kw: _prefetch_user(kw.get('user_id')),
)
def update_user(user_id: int):
    session = get_db()
    user = _get_user_or_404(user_id)
    data = request.json or {}
    new_role = validate_status(data['role'], ALL_ROLES, 'role') if 'role' in data else None
    new_active = bool(data['is_active']) if 'is_active' in data else None
    if new_active is False and user.id == current_user_id():
        abort(400, description='cannot deactivate yourself')
    assert_not_removing_last_super_admin(user, new_role=new_role, new_active=new_active)
    if 'name' in data:
        if not (data['name'] or '').strip():
            abort(400, description='name cannot be empty')
        user.name = data['name'].strip()
    if 'email' in data:
        email = (data['email'] or '').strip().lower()
        if not email:
            abort(400, description='email cannot be empty')
        existing = session.execute(select(User).where(func.lower(User.email)==email, User.id!=user.id)).scalar_one_or_none()
        if existing:
            abort(400, description='email in use')
        user.email = email
    if new_role is not None:
        user.role = new_role
    if new_active is not None:
        user.is_active = new_active
    for key in ('phone', 'company'):
        if key in data:
            setattr(user, key, data[key])
    if 'specialties' in data:
        user.specialties = _specialties(data['specialties'])
    if data.get('password'):
        if data.get('confirm_password') is not None and data['confirm_password'] != data['password']:
            abort(400, description='passwords do not match')
        if len(data['password']) < MIN_PASSWORD_LENGTH:
            abort(400, description=f'password must be at least {MIN_PASSWORD_LENGTH} characters')
        user.set_password(data['password'])
    session.commit()
    return _user_json(user)


@iam_bp.post('/users/<int:user_id>/deactivate')
@require_permissions('ADMIN.USER.MANAGE')
@audit_log('USER.DEACTIVATE', entity='User', entity_id_key='id', meta_keys=['is_active'])
def deactivate_user(user_id: int):
    user = _get_user_or_404(user_id)
    if user.id == current_user_id():
        abort(400, description='cannot deactivate yourself')
    assert_not_removing_last_super_admin(user, new_active=False)
    user.is_active = False
    get_db().commit()
    return _user_json(user)


@iam_bp.post('/users/<int:user_id>/activate')
@require_permissions('ADMIN.USER.MANAGE')
@audit_log('USER.ACTIVATE', entity='User', entity_id_key='id', meta_keys=['is_active'])
def activate_user(user_id: int):
    user = _get_user_or_404(user_id)
    user.is_active = True
    get_db().commit()
    return _user_json(user)


@iam_bp.delete('/users/<int:user_id>')
@require_permissions('ADMIN.USER.MANAGE')
def delete_user(user_id: int):
    session = get_db()
    user = _get_user_or_404(user_id)
    if user.id == current_user_id():
        abort(400, description='cannot delete yourself')
    assert_not_removing_last_super_admin(user, deleting=True)
    # keep the display name on jobs, drop the link
    session.query(Job).filter(Job.assigned_user_id==user.id).update({Job.assigned_user_id: None}, synchronize_session=False)
    session.delete(user)
    add_audit('USER.DELETE', 'User', user_id, {'email': user.email})
    session.commit()
    return {'status': 'deleted'}


@iam_bp.get('/technicians')
@require_permissions('JOB.READ')
def list_technicians():
    session = get_db()
    active_counts = dict(session.execute(
        select(Job.assigned_user_id, func.count(Job.id))
        .where(Job.assigned_user_id.is_not(None), Job.status.in_(Job.OPEN_STATUSES))
        .group_by(Job.assigned_user_id)
    ).all())
    rows = session.execute(
        select(User).where(User.role==ROLE_TECHNICIAN, User.is_active.is_(True)).order_by(User.name.asc())
    ).scalars().all()
    data = []
    for u in rows:
        body = _user_json(u)
        body['active_jobs'] = active_counts.get(u.id, 0)
        data.append(body)
    return {'data': data}


def _specialties(value):
    if value is None:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(',') if s.strip()]
    if not isinstance(value, list):
        abort(400, description='specialties must be a list')
    return [str(s) for s in value]


def _get_user_or_404(user_id: int) -> User:
    user = get_db().execute(select(User).where(User.id==user_id)).scalar_one_or_none()
    if not user:
        abort(404)
    return user


def _user_json(u: User):
    return {
        'id': u.id,
        'name': u.name,
        'email': u.email,
        'role': u.role,
        'is_active': u.is_active,
        'phone': u.phone,
        'company': u.company,
        'specialties': u.specialties or [],
        'created_at': iso_z(u.created_at),
    }


def _prefetch_user(user_id: int):
    session = get_db()
    u = session.execute(select(User).where(User.id==user_id)).scalar_one_or_none()
    if not u:
        return {}
    return {'name': u.name, 'email': u.email, 'role': u.role, 'is_active': u.is_active}
