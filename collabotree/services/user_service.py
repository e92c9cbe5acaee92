from datetime import datetime

from flask import current_app
from sqlalchemy import or_

from collabotree import errors
from collabotree.extensions import db
from collabotree.models import Role, User
from collabotree.utils.db import commit_or_rollback, get_or_raise, parse_enum

PROFILE_FIELDS = ('name', 'bio', 'university', 'skills')


def register_user(email, password, name, role, university=None):
    email = email.strip().lower()
    role = parse_enum(Role, role, 'role')
    if role == Role.ADMIN:
        raise errors.Forbidden("Admin accounts cannot be self-registered")
    if User.query.filter_by(email=email).first():
        raise errors.Conflict("Email already registered")

    user = User(
        email=email,
        name=name.strip(),
        role=role,
        university=university,
        skills=[],
        is_active=True,
    )
    user.set_password(password)
    db.session.add(user)
    commit_or_rollback()

    current_app.logger.info(f"Registered {role.value.lower()} {user.id}")
    return user


def authenticate(email, password):
    user = User.query.filter_by(email=(email or '').strip().lower()).first()
    if user is None or not user.check_password(password or ''):
        raise errors.Unauthorized("Invalid email or password")
    if not user.is_active:
        raise errors.Forbidden("Your account has been suspended")

    user.last_seen = datetime.utcnow()
    commit_or_rollback()
    return user


def update_profile(user, data):
    for field in PROFILE_FIELDS:
        if field in data:
            setattr(user, field, data[field])
    commit_or_rollback()
    return user


def get_public_profile(user_id):
    user = get_or_raise(User, user_id, "User not found")
    if not user.is_active:
        raise errors.NotFound("User not found")
    return user


def list_users(role=None, q=None, active=None):
    query = User.query
    if role:
        query = query.filter(User.role == parse_enum(Role, role, 'role'))
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if active is not None:
        query = query.filter(User.is_active.is_(active))
    return query.order_by(User.created_at.desc(), User.id.desc())


def set_user_active(user_id, admin, active):
    user = get_or_raise(User, user_id, "User not found")
    if user.id == admin.id:
        raise errors.InvalidState("You cannot change your own account status")
    if user.is_admin and not active:
        raise errors.Forbidden("Admins cannot be suspended")

    user.is_active = bool(active)
    commit_or_rollback()

    action = "activated" if active else "suspended"
    current_app.logger.info(f"User {user.id} {action} by admin {admin.id}")
    return user
