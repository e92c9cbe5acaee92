"""Order disputes.

A dispute can be raised by either party while the order's money sits in
escrow and the work is under way. While one is OPEN or UNDER_REVIEW the
payout for that order cannot be released.
"""
from datetime import datetime

from flask import current_app
from sqlalchemy import or_

from collabotree import errors
from collabotree.extensions import db
from collabotree.models import Dispute, DisputeStatus, NotificationType, Order, OrderStatus, Role, User
from collabotree.services import notification_service
from collabotree.utils.db import commit_or_rollback, get_or_raise, parse_enum

DISPUTABLE_ORDER_STATUSES = (OrderStatus.PAID, OrderStatus.IN_PROGRESS, OrderStatus.DELIVERED)
ADMIN_STATUSES = (DisputeStatus.UNDER_REVIEW, DisputeStatus.RESOLVED, DisputeStatus.REJECTED)


def create_dispute(user, order_id, title, description):
    order = get_or_raise(Order, order_id, "Order not found")
    if not order.is_party(user.id):
        raise errors.Forbidden("Only the buyer or the student can dispute this order")
    if order.status not in DISPUTABLE_ORDER_STATUSES:
        raise errors.InvalidState("Only paid orders that are not finished can be disputed")
    if Dispute.query.filter_by(order_id=order.id, raised_by_id=user.id).first() is not None:
        raise errors.Conflict("You already raised a dispute for this order")

    dispute = Dispute(
        order_id=order.id,
        raised_by_id=user.id,
        title=title.strip(),
        description=description.strip(),
        status=DisputeStatus.OPEN,
    )
    db.session.add(dispute)
    db.session.flush()

    other_party = order.student_id if user.id == order.buyer_id else order.buyer_id
    admin_ids = [uid for (uid,) in db.session.query(User.id).filter(User.role == Role.ADMIN).all()]
    notes = notification_service.notify_many(
        [other_party] + admin_ids, NotificationType.DISPUTE, "Dispute raised",
        f"A dispute was raised for order #{order.order_number}: {dispute.title}",
    )
    commit_or_rollback()
    notification_service.dispatch(notes)

    current_app.logger.warning(f"Dispute {dispute.id} raised on order {order.id} by user {user.id}")
    return dispute


def list_disputes(user, status=None):
    query = Dispute.query.join(Order, Dispute.order_id == Order.id)
    if not user.is_admin:
        query = query.filter(or_(Order.buyer_id == user.id, Order.student_id == user.id))
    if status:
        query = query.filter(Dispute.status == parse_enum(DisputeStatus, status))
    return query.order_by(Dispute.created_at.desc(), Dispute.id.desc())


def get_dispute(dispute_id, user):
    dispute = get_or_raise(Dispute, dispute_id, "Dispute not found")
    if not user.is_admin and not dispute.order.is_party(user.id):
        raise errors.Forbidden("You are not a party to this dispute")
    return dispute


def update_dispute_status(dispute_id, admin, status):
    if not admin.is_admin:
        raise errors.Forbidden("Admin access required")

    status = parse_enum(DisputeStatus, status)
    if status not in ADMIN_STATUSES:
        raise errors.ValidationError(
            "Invalid status",
            details={'status': [f"Must be one of: {', '.join(s.value for s in ADMIN_STATUSES)}"]},
        )

    dispute = get_or_raise(Dispute, dispute_id, "Dispute not found")
    if not dispute.status.is_open:
        raise errors.InvalidState(f"Dispute is already {dispute.status.value.lower()}")

    dispute.status = status
    if not status.is_open:
        dispute.resolved_at = datetime.utcnow()

    order = dispute.order
    label = status.value.replace('_', ' ').lower()
    notes = notification_service.notify_many(
        [order.buyer_id, order.student_id], NotificationType.DISPUTE, "Dispute updated",
        f"The dispute for order #{order.order_number} is now {label}.",
    )
    commit_or_rollback()
    notification_service.dispatch(notes)

    current_app.logger.info(f"Dispute {dispute.id} set to {status.value} by admin {admin.id}")
    return dispute
