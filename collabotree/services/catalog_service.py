from datetime import datetime

from flask import current_app
from sqlalchemy import or_

from collabotree import errors
from collabotree.extensions import db
from collabotree.models import Role, Service, User
from collabotree.utils.db import commit_or_rollback, get_or_raise

EDITABLE_FIELDS = ('title', 'description', 'price_cents', 'cover_image_url')


def _get_service(service_id):
    return get_or_raise(Service, service_id, "Service not found")


def create_service(owner, data):
    if owner.role != Role.STUDENT:
        raise errors.Forbidden("Only students can list services")

    service = Service(
        owner_id=owner.id,
        title=data['title'].strip(),
        description=data.get('description'),
        price_cents=data['price_cents'],
        cover_image_url=data.get('cover_image_url'),
        is_active=True,
        is_top_selection=False,
    )
    db.session.add(service)
    commit_or_rollback()
    current_app.logger.info(f"Service {service.id} created by user {owner.id}")
    return service


def update_service(service_id, owner, data):
    service = _get_service(service_id)
    if service.owner_id != owner.id:
        raise errors.Forbidden("You can only edit your own services")

    for field in EDITABLE_FIELDS:
        if field in data and data[field] is not None:
            value = data[field]
            setattr(service, field, value.strip() if field == 'title' else value)

    if 'is_active' in data:
        if data['is_active']:
            if service.is_moderated:
                raise errors.Forbidden("This service was taken down by an admin and cannot be reactivated")
            service.is_active = True
        else:
            _deactivate(service)

    commit_or_rollback()
    return service


def _deactivate(service):
    # A hidden service can never stay featured
    service.is_active = False
    service.is_top_selection = False


def deactivate_service(service_id, actor):
    service = _get_service(service_id)
    if service.owner_id != actor.id and not actor.is_admin:
        raise errors.Forbidden("You can only deactivate your own services")

    _deactivate(service)
    if actor.is_admin and actor.id != service.owner_id:
        service.moderated_at = datetime.utcnow()
        service.moderated_by_id = actor.id
    commit_or_rollback()
    current_app.logger.info(f"Service {service.id} deactivated by user {actor.id}")
    return service


def reactivate_service(service_id, admin):
    """Lift an admin takedown and put the service back in the catalog."""
    if not admin.is_admin:
        raise errors.Forbidden("Admin access required")

    service = _get_service(service_id)
    service.is_active = True
    service.moderated_at = None
    service.moderated_by_id = None
    commit_or_rollback()
    current_app.logger.info(f"Service {service.id} reactivated by admin {admin.id}")
    return service


def get_service(service_id, viewer=None):
    service = _get_service(service_id)
    if not service.is_active:
        can_see = viewer is not None and (viewer.id == service.owner_id or viewer.is_admin)
        if not can_see:
            raise errors.NotFound("Service not found")
    return service


def list_public_services(q=None, min_price_cents=None, max_price_cents=None, owner_id=None):
    query = Service.query.join(User, Service.owner_id == User.id).filter(
        Service.is_active.is_(True),
        User.is_active.is_(True),
    )

    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(Service.title.ilike(pattern), Service.description.ilike(pattern)))
    if min_price_cents is not None:
        query = query.filter(Service.price_cents >= min_price_cents)
    if max_price_cents is not None:
        query = query.filter(Service.price_cents <= max_price_cents)
    if owner_id is not None:
        query = query.filter(Service.owner_id == owner_id)

    return query.order_by(Service.created_at.desc(), Service.id.desc())


def list_top_selections():
    return (
        list_public_services()
        .filter(Service.is_top_selection.is_(True))
        .all()
    )


def list_owner_services(owner):
    return (
        Service.query
        .filter_by(owner_id=owner.id)
        .order_by(Service.created_at.desc(), Service.id.desc())
    )


def list_all_services(active=None, top=None, q=None):
    """Admin view, inactive services included."""
    query = Service.query
    if active is not None:
        query = query.filter(Service.is_active.is_(active))
    if top is not None:
        query = query.filter(Service.is_top_selection.is_(top))
    if q:
        query = query.filter(Service.title.ilike(f"%{q.strip()}%"))
    return query.order_by(Service.created_at.desc(), Service.id.desc())


def update_top_selection(service_id, flag, admin):
    if not admin.is_admin:
        raise errors.Forbidden("Admin access required")

    service = _get_service(service_id)
    if flag and not service.is_active:
        raise errors.InvalidState("Inactive services cannot be featured")

    service.is_top_selection = bool(flag)
    commit_or_rollback()
    current_app.logger.info(f"Service {service.id} top selection set to {service.is_top_selection}")
    return service
