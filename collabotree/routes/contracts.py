from flask import Blueprint, request
from flask_login import current_user, login_required

from collabotree.forms import ProgressForm, SignContractForm, validate_form
from collabotree.services import contract_service
from collabotree.utils.pagination import paginate
from collabotree.utils.responses import created, ok

contracts_bp = Blueprint('contracts', __name__, url_prefix='/api/contracts')


def contract_filters():
    return {
        'status': request.args.get('status'),
        'payment_status': request.args.get('payment_status'),
        'payout_status': request.args.get('payout_status'),
    }


@contracts_bp.route('')
@login_required
def list_contracts():
    return ok(paginate(contract_service.list_contracts(current_user, **contract_filters())))


@contracts_bp.route('/<int:contract_id>')
@login_required
def contract_detail(contract_id):
    contract = contract_service.get_contract(contract_id, current_user)
    return ok(contract.to_dict())


@contracts_bp.route('/<int:contract_id>/sign', methods=['POST'])
@login_required
def sign(contract_id):
    form = validate_form(SignContractForm)
    contract = contract_service.sign_contract(
        contract_id, current_user, form.signature.data,
        ip_address=request.remote_addr,
        user_agent=request.headers.get('User-Agent'),
    )
    return ok(contract.to_dict(), "Contract signed")


@contracts_bp.route('/<int:contract_id>/progress', methods=['POST'])
@login_required
def add_progress(contract_id):
    form = validate_form(ProgressForm)
    entry = contract_service.update_progress(
        contract_id, current_user, form.status.data.strip(),
        notes=form.notes.data or None,
        attachments=form.attachments.data,
    )
    return created(entry.to_dict(), "Progress updated")


@contracts_bp.route('/<int:contract_id>/progress')
@login_required
def progress(contract_id):
    entries = contract_service.list_progress(contract_id, current_user)
    return ok([e.to_dict() for e in entries])
