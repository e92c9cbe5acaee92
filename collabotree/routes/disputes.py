from flask import Blueprint, request
from flask_login import current_user, login_required

from collabotree.forms import DisputeForm, validate_form
from collabotree.services import dispute_service
from collabotree.utils.pagination import paginate
from collabotree.utils.responses import created, ok

disputes_bp = Blueprint('disputes', __name__, url_prefix='/api/disputes')


@disputes_bp.route('', methods=['POST'])
@login_required
def create_dispute():
    form = validate_form(DisputeForm)
    dispute = dispute_service.create_dispute(
        current_user, form.order_id.data, form.title.data, form.description.data
    )
    return created(dispute.to_dict(), "Dispute created")


@disputes_bp.route('')
@login_required
def list_disputes():
    return ok(paginate(dispute_service.list_disputes(current_user, request.args.get('status'))))


@disputes_bp.route('/<int:dispute_id>')
@login_required
def dispute_detail(dispute_id):
    return ok(dispute_service.get_dispute(dispute_id, current_user).to_dict())
