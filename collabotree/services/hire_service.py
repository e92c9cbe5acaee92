"""Hire request lifecycle.

PENDING is the only live state. ACCEPTED, REJECTED and CANCELLED are
terminal; every move out of PENDING is a guarded update so two concurrent
responses cannot both win.
"""
from datetime import datetime

from flask import current_app
from sqlalchemy import or_

from collabotree import errors
from collabotree.extensions import db
from collabotree.forms import MIN_PRICE_CENTS
from collabotree.models import HireRequest, HireStatus, NotificationType, Service
from collabotree.services import chat_service, contract_service, notification_service, order_service
from collabotree.utils.db import commit_or_rollback, get_or_raise, guarded_update, parse_enum

BOXES = ('sent', 'received', 'all')


def _get_hire(hire_id):
    return get_or_raise(HireRequest, hire_id, "Hire request not found")


def _blocking_request(buyer_id, service_id, exclude_id=None):
    """A request that still ties this buyer to this service, if any."""
    query = HireRequest.query.filter(
        HireRequest.buyer_id == buyer_id,
        HireRequest.service_id == service_id,
        HireRequest.status.in_([HireStatus.PENDING, HireStatus.ACCEPTED]),
    )
    if exclude_id is not None:
        query = query.filter(HireRequest.id != exclude_id)

    for hire in query.all():
        if hire.status == HireStatus.PENDING:
            return hire
        # Accepted work blocks until its order is finished
        if hire.order is None or hire.order.status.is_open:
            return hire
    return None


def _transition(hire, new_status):
    changed = guarded_update(
        HireRequest, hire.id, HireRequest.status, HireStatus.PENDING,
        {HireRequest.status: new_status, HireRequest.responded_at: datetime.utcnow()},
    )
    if not changed:
        db.session.rollback()
        raise errors.InvalidState("Hire request has already been answered")


def _require_pending(hire):
    if hire.status != HireStatus.PENDING:
        raise errors.InvalidState(f"Hire request is already {hire.status.value.lower()}")


def _require_seller(hire, user):
    if hire.service is None or hire.service.owner_id != user.id:
        raise errors.Forbidden("Only the service owner can respond to this request")


def create_hire_request(buyer, service_id, message=None, price_cents=None):
    service = db.session.get(Service, service_id)
    if service is None or not service.is_active or not service.owner.is_active:
        raise errors.NotFound("Service not found")
    if buyer.is_admin:
        raise errors.Forbidden("Admins cannot hire students")
    if service.owner_id == buyer.id:
        raise errors.Forbidden("You cannot hire yourself")

    if _blocking_request(buyer.id, service.id) is not None:
        raise errors.Conflict("You already have an active request for this service")

    if price_cents is None:
        price_cents = service.price_cents
    elif price_cents < MIN_PRICE_CENTS:
        raise errors.ValidationError(
            "Validation failed",
            details={'price_cents': [f"Number must be at least {MIN_PRICE_CENTS}."]},
        )

    hire = HireRequest(
        buyer_id=buyer.id,
        student_id=service.owner_id,
        service_id=service.id,
        message=message,
        price_cents=price_cents,
        status=HireStatus.PENDING,
    )
    db.session.add(hire)
    db.session.flush()

    note = notification_service.notify(
        service.owner_id, NotificationType.HIRE_REQUEST, "New hire request",
        f"{buyer.name} wants to hire you for '{service.title}'.",
        email=True,
    )
    commit_or_rollback()
    notification_service.dispatch([note])

    current_app.logger.info(f"Hire request {hire.id} created by buyer {buyer.id} for service {service.id}")
    return hire


def accept_hire_request(hire_id, seller):
    hire = _get_hire(hire_id)
    _require_seller(hire, seller)
    _require_pending(hire)

    blocking = _blocking_request(hire.buyer_id, hire.service_id, exclude_id=hire.id)
    if blocking is not None and blocking.status == HireStatus.ACCEPTED:
        raise errors.Conflict("This buyer already has an open order for this service")

    _transition(hire, HireStatus.ACCEPTED)

    # Order, escrow contract and chat thread land in the same transaction
    order = order_service.build_order(hire)
    contract_service.build_contract(order)
    thread = chat_service.build_thread(hire)
    db.session.flush()

    title = hire.service.title
    notes = [
        notification_service.notify(
            hire.buyer_id, NotificationType.HIRE_REQUEST, "Hire request accepted",
            f"Your request for '{title}' was accepted. Order #{order.order_number} is awaiting payment.",
            email=True,
        ),
        notification_service.notify(
            hire.student_id, NotificationType.HIRE_REQUEST, "New order",
            f"Order #{order.order_number} for '{title}' was created.",
        ),
    ]
    commit_or_rollback()
    notification_service.dispatch(notes)

    current_app.logger.info(
        f"Hire request {hire.id} accepted: order {order.id}, thread {thread.id}"
    )
    return hire


def reject_hire_request(hire_id, seller):
    hire = _get_hire(hire_id)
    _require_seller(hire, seller)
    _require_pending(hire)

    _transition(hire, HireStatus.REJECTED)
    note = notification_service.notify(
        hire.buyer_id, NotificationType.HIRE_REQUEST, "Hire request declined",
        f"Your request for '{hire.service.title}' was declined.",
        email=True,
    )
    commit_or_rollback()
    notification_service.dispatch([note])

    current_app.logger.info(f"Hire request {hire.id} rejected by seller {seller.id}")
    return hire


def cancel_hire_request(hire_id, buyer):
    hire = _get_hire(hire_id)
    if hire.buyer_id != buyer.id:
        raise errors.Forbidden("Only the buyer can cancel this request")
    _require_pending(hire)

    _transition(hire, HireStatus.CANCELLED)
    note = notification_service.notify(
        hire.student_id, NotificationType.HIRE_REQUEST, "Hire request cancelled",
        f"{buyer.name} cancelled their request for '{hire.service.title}'.",
    )
    commit_or_rollback()
    notification_service.dispatch([note])
    return hire


def delete_hire_request(hire_id, buyer):
    hire = _get_hire(hire_id)
    if hire.buyer_id != buyer.id:
        raise errors.Forbidden("Only the buyer can delete this request")
    _require_pending(hire)

    db.session.delete(hire)
    commit_or_rollback()
    current_app.logger.info(f"Hire request {hire_id} deleted by buyer {buyer.id}")


def get_hire_request(hire_id, user):
    hire = _get_hire(hire_id)
    if not user.is_admin and not hire.is_party(user.id):
        raise errors.Forbidden("You are not a party to this request")
    return hire


def list_hire_requests(user, box='all', status=None):
    if box not in BOXES:
        raise errors.ValidationError("Invalid box", details={'box': [f"Must be one of: {', '.join(BOXES)}"]})

    query = HireRequest.query
    if box == 'sent':
        query = query.filter(HireRequest.buyer_id == user.id)
    elif box == 'received':
        query = query.filter(HireRequest.student_id == user.id)
    elif not user.is_admin:
        query = query.filter(or_(HireRequest.buyer_id == user.id, HireRequest.student_id == user.id))

    if status:
        query = query.filter(HireRequest.status == parse_enum(HireStatus, status))
    return query.order_by(HireRequest.created_at.desc(), HireRequest.id.desc())
