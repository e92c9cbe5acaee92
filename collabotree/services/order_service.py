from datetime import datetime

from flask import current_app
from sqlalchemy import or_

from collabotree import errors
from collabotree.extensions import db
from collabotree.models import (
    ChatThread, Contract, HireRequest, HireStatus, NotificationType, Order, OrderStatus,
)
from collabotree.services import chat_service, contract_service, notification_service
from collabotree.utils.db import commit_or_rollback, get_or_raise, guarded_update, parse_enum
from collabotree.utils.order_number import generate_order_number

SETTABLE_STATUSES = (
    OrderStatus.PAID, OrderStatus.IN_PROGRESS, OrderStatus.DELIVERED,
    OrderStatus.COMPLETED, OrderStatus.CANCELLED,
)

BUYER_STATUSES = {OrderStatus.PAID, OrderStatus.COMPLETED, OrderStatus.CANCELLED}
STUDENT_STATUSES = {OrderStatus.IN_PROGRESS, OrderStatus.DELIVERED, OrderStatus.CANCELLED}

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED},
    OrderStatus.IN_PROGRESS: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}


def _get_order(order_id):
    return get_or_raise(Order, order_id, "Order not found")


def build_order(hire):
    order = Order(
        order_number=generate_order_number(),
        hire_request=hire,
        hire_request_id=hire.id,
        service=hire.service,
        service_id=hire.service_id,
        buyer_id=hire.buyer_id,
        student_id=hire.student_id,
        price_cents=hire.price_cents,
        status=OrderStatus.PENDING,
    )
    db.session.add(order)
    return order


def create_order(hire_id, buyer):
    """Create the order of an accepted request that ended up without one."""
    hire = get_or_raise(HireRequest, hire_id, "Hire request not found")
    if hire.status != HireStatus.ACCEPTED:
        raise errors.InvalidState("Hire request has not been accepted")
    if hire.buyer_id != buyer.id:
        raise errors.Forbidden("Only the buyer can create this order")
    if hire.order is not None:
        raise errors.Conflict("An order already exists for this hire request")

    order = build_order(hire)
    if Contract.query.filter_by(hire_request_id=hire.id).first() is None:
        contract_service.build_contract(order)
    if ChatThread.query.filter_by(hire_request_id=hire.id).first() is None:
        chat_service.build_thread(hire)
    db.session.flush()

    note = notification_service.notify(
        hire.student_id, NotificationType.ORDER_UPDATE, "New order",
        f"Order #{order.order_number} for '{hire.service.title}' was created.",
    )
    commit_or_rollback()
    notification_service.dispatch([note])

    current_app.logger.info(f"Order {order.id} created for hire request {hire.id}")
    return order


def get_order(order_id, user):
    order = _get_order(order_id)
    if not user.is_admin and not order.is_party(user.id):
        raise errors.Forbidden("You are not a party to this order")
    return order


def list_orders(user, status=None, role=None):
    query = Order.query
    if role == 'buyer':
        query = query.filter(Order.buyer_id == user.id)
    elif role == 'student':
        query = query.filter(Order.student_id == user.id)
    elif not user.is_admin:
        query = query.filter(or_(Order.buyer_id == user.id, Order.student_id == user.id))

    if status:
        query = query.filter(Order.status == parse_enum(OrderStatus, status))
    return query.order_by(Order.created_at.desc(), Order.id.desc())


def _contract_for(order):
    contract = order.contract
    if contract is None:
        contract = contract_service.build_contract(order)
        db.session.flush()
    return contract


def _require_signed(contract):
    if not contract.is_fully_signed:
        raise errors.InvalidState("Contract must be fully signed before payment")


def _notify_parties(order, actor, title, body):
    recipients = [uid for uid in (order.buyer_id, order.student_id) if uid != actor.id]
    return notification_service.notify_many(recipients, NotificationType.ORDER_UPDATE, title, body)


def pay_order(order_id, buyer, payment_reference=None):
    """Simulated checkout: the buyer's payment goes straight into escrow."""
    order = _get_order(order_id)
    if order.buyer_id != buyer.id:
        raise errors.Forbidden("Only the buyer can pay for this order")
    if order.status != OrderStatus.PENDING:
        raise errors.InvalidState(f"Order is already {order.status.value.lower()}")

    contract = _contract_for(order)
    _require_signed(contract)
    contract_service.record_payment(contract, payment_reference or f"SIM-{order.order_number}")

    notes = _notify_parties(
        order, buyer, "Order paid",
        f"Order #{order.order_number} was paid. Funds are held in escrow.",
    )
    commit_or_rollback()
    notification_service.dispatch(notes)

    current_app.logger.info(f"Order {order.id} paid by buyer {buyer.id}")
    return order


def _check_role(order, user, new_status):
    if user.is_admin:
        return
    if not order.is_party(user.id):
        raise errors.Forbidden("You are not a party to this order")

    allowed = BUYER_STATUSES if user.id == order.buyer_id else STUDENT_STATUSES
    if new_status not in allowed:
        raise errors.Forbidden(f"You cannot mark this order as {new_status.value.lower()}")


def update_order_status(order_id, user, new_status, payment_reference=None):
    new_status = parse_enum(OrderStatus, new_status)
    if new_status not in SETTABLE_STATUSES:
        raise errors.ValidationError(
            "Invalid status",
            details={'status': [f"Must be one of: {', '.join(s.value for s in SETTABLE_STATUSES)}"]},
        )

    order = _get_order(order_id)
    _check_role(order, user, new_status)

    current = order.status
    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise errors.InvalidState(
            f"Cannot move order from {current.value} to {new_status.value}"
        )
    if new_status == OrderStatus.PAID and not user.is_admin:
        _require_signed(_contract_for(order))

    now = datetime.utcnow()
    values = {Order.status: new_status}
    if new_status == OrderStatus.PAID:
        values[Order.paid_at] = now
    elif new_status == OrderStatus.COMPLETED:
        values[Order.completed_at] = now
    elif new_status == OrderStatus.CANCELLED:
        values[Order.cancelled_at] = now

    if not guarded_update(Order, order.id, Order.status, current, values):
        db.session.rollback()
        raise errors.InvalidState("Order status changed concurrently, reload and retry")

    if new_status == OrderStatus.PAID:
        contract_service.record_payment(_contract_for(order), payment_reference or f"SIM-{order.order_number}")
    elif new_status == OrderStatus.CANCELLED and order.contract is not None:
        contract_service.refund_contract(order.contract)

    label = new_status.value.replace('_', ' ').lower()
    notes = _notify_parties(
        order, user, "Order updated",
        f"Order #{order.order_number} is now {label}.",
    )
    commit_or_rollback()
    notification_service.dispatch(notes)

    current_app.logger.info(
        f"Order {order.id} moved {current.value} -> {new_status.value} by user {user.id}"
    )
    return order
