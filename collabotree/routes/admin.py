from flask import Blueprint, request
from flask_login import current_user

from collabotree import errors
from collabotree.forms import (
    FALSE_VALUES, DisputeStatusForm, PayOrderForm, RejectVerificationForm, TopSelectionForm, validate_form,
)
from collabotree.routes.contracts import contract_filters
from collabotree.services import (
    admin_service, catalog_service, chat_service, contract_service, dispute_service, user_service,
    verification_service,
)
from collabotree.utils.pagination import paginate
from collabotree.utils.responses import ok

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


# Restrict all admin routes
@admin_bp.before_request
def check_admin():
    if not current_user.is_authenticated:
        raise errors.Unauthorized()
    if not current_user.is_admin:
        raise errors.Forbidden("Admin access required")


def _arg_bool(name):
    value = request.args.get(name)
    if value is None:
        return None
    return value not in FALSE_VALUES


@admin_bp.route('/stats')
def stats():
    return ok(admin_service.dashboard_stats())


# ---------------------- USERS ----------------------
@admin_bp.route('/users')
def users():
    query = user_service.list_users(
        role=request.args.get('role'),
        q=request.args.get('q'),
        active=_arg_bool('active'),
    )
    return ok(paginate(query, lambda u: u.to_dict(private=True)))


@admin_bp.route('/users/<int:user_id>/suspend', methods=['POST'])
def suspend_user(user_id):
    user = user_service.set_user_active(user_id, current_user, False)
    return ok(user.to_dict(private=True), "User suspended")


@admin_bp.route('/users/<int:user_id>/activate', methods=['POST'])
def activate_user(user_id):
    user = user_service.set_user_active(user_id, current_user, True)
    return ok(user.to_dict(private=True), "User activated")


# ---------------------- SERVICES ----------------------
@admin_bp.route('/services')
def services():
    query = catalog_service.list_all_services(
        active=_arg_bool('active'),
        top=_arg_bool('top'),
        q=request.args.get('q'),
    )
    return ok(paginate(query))


@admin_bp.route('/services/<int:service_id>/top-selection', methods=['PATCH'])
def top_selection(service_id):
    form = validate_form(TopSelectionForm)
    service = catalog_service.update_top_selection(service_id, form.is_top_selection.data, current_user)
    return ok(service.to_dict(), "Top selection updated")


@admin_bp.route('/services/<int:service_id>/deactivate', methods=['POST'])
def deactivate_service(service_id):
    service = catalog_service.deactivate_service(service_id, current_user)
    return ok(service.to_dict(), "Service deactivated")


@admin_bp.route('/services/<int:service_id>/reactivate', methods=['POST'])
def reactivate_service(service_id):
    service = catalog_service.reactivate_service(service_id, current_user)
    return ok(service.to_dict(), "Service reactivated")


@admin_bp.route('/services/<int:service_id>/conversation')
def service_conversation(service_id):
    service, threads, messages = chat_service.get_service_conversation(service_id)
    return ok({
        'service': service.to_dict(),
        'threads': [t.to_dict() for t in threads],
        'messages': [m.to_dict() for m in messages],
    })


# ---------------------- VERIFICATION ----------------------
@admin_bp.route('/verifications')
def verifications():
    def serialize(student):
        data = student.to_dict(private=True)
        data['id_card_url'] = student.id_card_url
        data['id_uploaded_at'] = student.id_uploaded_at.isoformat() if student.id_uploaded_at else None
        return data

    return ok(paginate(verification_service.list_pending_verifications(), serialize))


@admin_bp.route('/verifications/<int:student_id>/approve', methods=['POST'])
def approve_verification(student_id):
    student = verification_service.verify_student(student_id, current_user)
    return ok(student.to_dict(private=True), "Student verified")


@admin_bp.route('/verifications/<int:student_id>/reject', methods=['POST'])
def reject_verification(student_id):
    form = validate_form(RejectVerificationForm)
    student = verification_service.reject_student(student_id, current_user, form.reason.data)
    return ok(student.to_dict(private=True), "Verification rejected")


# ---------------------- CONTRACTS / ESCROW ----------------------
@admin_bp.route('/contracts')
def contracts():
    return ok(paginate(contract_service.list_contracts(current_user, **contract_filters())))


@admin_bp.route('/contracts/<int:contract_id>/mark-paid', methods=['POST'])
def mark_paid(contract_id):
    form = validate_form(PayOrderForm)
    contract = contract_service.mark_contract_paid(
        contract_id, current_user, form.payment_reference.data or None
    )
    return ok(contract.to_dict(), "Payment recorded")


@admin_bp.route('/contracts/<int:contract_id>/release', methods=['POST'])
def release_payout(contract_id):
    contract = contract_service.release_contract_payout(contract_id, current_user)
    return ok(contract.to_dict(), "Payout released")


# ---------------------- DISPUTES ----------------------
@admin_bp.route('/disputes')
def disputes():
    return ok(paginate(dispute_service.list_disputes(current_user, request.args.get('status'))))


@admin_bp.route('/disputes/<int:dispute_id>/status', methods=['PATCH'])
def dispute_status(dispute_id):
    form = validate_form(DisputeStatusForm)
    dispute = dispute_service.update_dispute_status(dispute_id, current_user, form.status.data)
    return ok(dispute.to_dict(), "Dispute status updated")
