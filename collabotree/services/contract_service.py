"""Escrow contracts: payment recording, payout release and the student wallet.

Money only ever moves through the guarded updates in this module, so a
repeated "mark paid" or "release" request is rejected instead of being
applied twice.
"""
from datetime import datetime

from flask import current_app
from sqlalchemy import or_

from collabotree import errors
from collabotree.extensions import db
from collabotree.models import (
    Contract, ContractProgress, ContractSignature, ContractStatus, Dispute, DisputeStatus,
    NotificationType, OrderStatus, PaymentStatus, PayoutStatus, WalletTransaction,
)
from collabotree.services import notification_service
from collabotree.utils.db import commit_or_rollback, get_or_raise, guarded_update, parse_enum


def compute_fee_split(price_cents):
    """Return ``(platform_fee_cents, student_payout_cents)``, fee rounded half up."""
    percent = current_app.config['PLATFORM_FEE_PERCENT']
    fee = (price_cents * percent + 50) // 100
    return fee, price_cents - fee


def build_contract(order):
    """Create the escrow contract for a freshly created order (not committed)."""
    fee, payout = compute_fee_split(order.price_cents)
    contract = Contract(
        order=order,
        hire_request_id=order.hire_request_id,
        service_id=order.service_id,
        buyer_id=order.buyer_id,
        student_id=order.student_id,
        title=order.service.title if order.service else f"Order #{order.order_number}",
        price_cents=order.price_cents,
        platform_fee_cents=fee,
        student_payout_cents=payout,
        status=ContractStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
        payout_status=PayoutStatus.AWAITING,
    )
    db.session.add(contract)
    return contract


def record_payment(contract, reference=None):
    """Move the buyer's money into escrow. The caller owns the commit."""
    if contract.status in (ContractStatus.CANCELLED, ContractStatus.COMPLETED):
        raise errors.InvalidState(f"Contract is {contract.status.value.lower()}")
    if contract.payment_status != PaymentStatus.PENDING:
        raise errors.InvalidState("Payment has already been recorded for this contract")

    now = datetime.utcnow()
    changed = guarded_update(
        Contract, contract.id, Contract.payment_status, PaymentStatus.PENDING,
        {
            Contract.payment_status: PaymentStatus.PAID,
            Contract.payout_status: PayoutStatus.READY_FOR_RELEASE,
            Contract.status: ContractStatus.ACTIVE,
            Contract.paid_at: now,
            Contract.escrowed_at: now,
            Contract.escrow_holder: current_app.config['ESCROW_HOLDER'],
            Contract.payment_reference: reference,
        },
    )
    if not changed:
        raise errors.InvalidState("Payment has already been recorded for this contract")

    order = contract.order
    if order is not None and order.status == OrderStatus.PENDING:
        order.status = OrderStatus.PAID
        order.paid_at = now

    current_app.logger.info(f"Contract {contract.id} paid into escrow (ref={reference})")
    return contract


def refund_contract(contract):
    """Cancel a contract, refunding escrow that was never released."""
    if contract.payout_status == PayoutStatus.RELEASED:
        raise errors.InvalidState("Payout already released")

    if contract.payment_status == PaymentStatus.PAID:
        contract.payment_status = PaymentStatus.REFUNDED
        current_app.logger.info(f"Contract {contract.id} escrow refunded")
    contract.payout_status = PayoutStatus.AWAITING
    contract.status = ContractStatus.CANCELLED
    return contract


def mark_contract_paid(contract_id, admin, reference=None):
    contract = get_or_raise(Contract, contract_id, "Contract not found")
    record_payment(contract, reference or f"ADMIN-{admin.id}")

    notes = notification_service.notify_many(
        [contract.buyer_id, contract.student_id],
        NotificationType.ORDER_UPDATE,
        "Payment received",
        f"Payment for '{contract.title}' is now held in escrow.",
    )
    commit_or_rollback()
    notification_service.dispatch(notes)
    return contract


def _has_open_dispute(contract):
    return db.session.query(
        Dispute.query
        .filter(
            Dispute.order_id == contract.order_id,
            Dispute.status.in_([DisputeStatus.OPEN, DisputeStatus.UNDER_REVIEW]),
        )
        .exists()
    ).scalar()


def release_contract_payout(contract_id, admin):
    contract = get_or_raise(Contract, contract_id, "Contract not found")

    if contract.payout_status == PayoutStatus.RELEASED:
        raise errors.InvalidState("Payout already released")
    if contract.payment_status != PaymentStatus.PAID:
        raise errors.InvalidState("Contract has not been paid")
    if contract.payout_status != PayoutStatus.READY_FOR_RELEASE:
        raise errors.InvalidState("Payout is not ready for release")
    if _has_open_dispute(contract):
        raise errors.InvalidState("Payout is on hold while a dispute is open")

    now = datetime.utcnow()
    changed = guarded_update(
        Contract, contract.id, Contract.payout_status, PayoutStatus.READY_FOR_RELEASE,
        {
            Contract.payout_status: PayoutStatus.RELEASED,
            Contract.released_at: now,
            Contract.released_by_id: admin.id,
            Contract.status: ContractStatus.COMPLETED,
        },
    )
    if not changed:
        db.session.rollback()
        raise errors.InvalidState("Payout already released")

    order = contract.order
    if order is not None and order.status.is_open:
        order.status = OrderStatus.COMPLETED
        order.completed_at = now

    db.session.add(WalletTransaction(
        user_id=contract.student_id,
        contract_id=contract.id,
        amount_cents=contract.student_payout_cents,
        transaction_type='credit',
        description=f"Payout for '{contract.title}'",
    ))

    notes = [
        notification_service.notify(
            contract.student_id, NotificationType.ORDER_UPDATE, "Payout released",
            f"{contract.student_payout_cents} cents for '{contract.title}' were added to your wallet.",
            email=True,
        ),
        notification_service.notify(
            contract.buyer_id, NotificationType.ORDER_UPDATE, "Order completed",
            f"The escrow for '{contract.title}' was released to the student.",
        ),
    ]
    commit_or_rollback()
    notification_service.dispatch(notes)

    current_app.logger.info(f"Payout for contract {contract.id} released by admin {admin.id}")
    return contract


def get_contract(contract_id, user):
    contract = get_or_raise(Contract, contract_id, "Contract not found")
    if not user.is_admin and not contract.is_party(user.id):
        raise errors.Forbidden("You are not a party to this contract")
    return contract


def _require_open(contract):
    if contract.status in (ContractStatus.CANCELLED, ContractStatus.COMPLETED):
        raise errors.InvalidState(f"Contract is {contract.status.value.lower()}")


def sign_contract(contract_id, user, signature, ip_address=None, user_agent=None):
    """Record one party's signature. Buyer checkout needs both."""
    contract = get_or_raise(Contract, contract_id, "Contract not found")
    if not contract.is_party(user.id):
        raise errors.Forbidden("Only the buyer or the student can sign this contract")
    _require_open(contract)

    signature = (signature or '').strip()
    if not signature:
        raise errors.ValidationError("Signature is required", details={'signature': ["This field is required."]})

    is_buyer = user.id == contract.buyer_id
    already = contract.is_signed_by_buyer if is_buyer else contract.is_signed_by_student
    if already:
        raise errors.Conflict("Contract already signed by this user")

    db.session.add(ContractSignature(
        contract_id=contract.id,
        user_id=user.id,
        signature=signature[:200],
        ip_address=ip_address,
        user_agent=(user_agent or '')[:255] or None,
    ))
    if is_buyer:
        contract.is_signed_by_buyer = True
    else:
        contract.is_signed_by_student = True
    if contract.is_fully_signed:
        contract.signed_at = datetime.utcnow()

    note = notification_service.notify(
        contract.other_party_id(user.id), NotificationType.CONTRACT, "Contract signed",
        f"The {'buyer' if is_buyer else 'student'} has signed the contract for '{contract.title}'.",
    )
    commit_or_rollback()
    notification_service.dispatch([note])

    current_app.logger.info(f"Contract {contract.id} signed by user {user.id}")
    return contract


def update_progress(contract_id, student, status, notes=None, attachments=None):
    contract = get_or_raise(Contract, contract_id, "Contract not found")
    if contract.student_id != student.id:
        raise errors.Forbidden("Only the student can update progress")
    if contract.status != ContractStatus.ACTIVE:
        raise errors.InvalidState("Contract must be active to update progress")

    entry = ContractProgress(
        contract_id=contract.id,
        user_id=student.id,
        status=status,
        notes=notes,
        attachments=attachments or [],
    )
    db.session.add(entry)
    contract.progress_status = status
    contract.progress_notes = notes

    note = notification_service.notify(
        contract.buyer_id, NotificationType.CONTRACT, "Progress updated",
        f"Progress on '{contract.title}': {status}",
    )
    commit_or_rollback()
    notification_service.dispatch([note])
    return entry


def list_progress(contract_id, user):
    return get_contract(contract_id, user).progress_updates


def list_contracts(user, status=None, payment_status=None, payout_status=None):
    query = Contract.query
    if not user.is_admin:
        query = query.filter(or_(Contract.buyer_id == user.id, Contract.student_id == user.id))
    if status:
        query = query.filter(Contract.status == parse_enum(ContractStatus, status))
    if payment_status:
        query = query.filter(Contract.payment_status == parse_enum(PaymentStatus, payment_status, "payment_status"))
    if payout_status:
        query = query.filter(Contract.payout_status == parse_enum(PayoutStatus, payout_status, "payout_status"))
    return query.order_by(Contract.created_at.desc(), Contract.id.desc())


def wallet_summary(user):
    transactions = (
        WalletTransaction.query
        .filter_by(user_id=user.id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .all()
    )
    return {
        'balance_cents': sum(t.signed_amount for t in transactions),
        'transactions': [t.to_dict() for t in transactions],
    }
