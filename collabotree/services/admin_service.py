from sqlalchemy import func

from collabotree.extensions import db
from collabotree.models import (
    Contract, Dispute, DisputeStatus, HireRequest, HireStatus, Order, OrderStatus, PaymentStatus, PayoutStatus,
    Role, Service, User, VerificationStatus,
)


def _count_by(column, enum_cls):
    counts = {e.value: 0 for e in enum_cls}
    for value, total in db.session.query(column, func.count()).group_by(column).all():
        counts[value.value] = total
    return counts


def _sum(column, *criteria):
    return db.session.query(func.coalesce(func.sum(column), 0)).filter(*criteria).scalar()


def dashboard_stats():
    return {
        'users': _count_by(User.role, Role),
        'verified_students': User.query.filter(User.role == Role.STUDENT, User.is_verified.is_(True)).count(),
        'pending_verifications': User.query.filter(
            User.role == Role.STUDENT,
            User.verification_status == VerificationStatus.PENDING,
        ).count(),
        'active_services': Service.query.filter(Service.is_active.is_(True)).count(),
        'top_selections': Service.query.filter(
            Service.is_active.is_(True), Service.is_top_selection.is_(True)
        ).count(),
        'hire_requests': _count_by(HireRequest.status, HireStatus),
        'orders': _count_by(Order.status, OrderStatus),
        'disputes': _count_by(Dispute.status, DisputeStatus),
        'escrow_held_cents': _sum(
            Contract.price_cents,
            Contract.payment_status == PaymentStatus.PAID,
            Contract.payout_status != PayoutStatus.RELEASED,
        ),
        'released_payouts_cents': _sum(
            Contract.student_payout_cents, Contract.payout_status == PayoutStatus.RELEASED
        ),
        'platform_revenue_cents': _sum(
            Contract.platform_fee_cents, Contract.payout_status == PayoutStatus.RELEASED
        ),
    }
