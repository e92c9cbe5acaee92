from flask import Blueprint, request
from flask_login import current_user, login_required

from collabotree.forms import HireRequestForm, validate_form
from collabotree.services import hire_service
from collabotree.utils.pagination import paginate
from collabotree.utils.responses import created, ok

hires_bp = Blueprint('hires', __name__, url_prefix='/api/hires')


def _accepted_payload(hire):
    data = hire.to_dict()
    data['order'] = hire.order.to_dict() if hire.order else None
    data['contract'] = hire.order.contract.to_dict() if hire.order and hire.order.contract else None
    return data


@hires_bp.route('', methods=['POST'])
@login_required
def create_hire():
    form = validate_form(HireRequestForm)
    hire = hire_service.create_hire_request(
        current_user,
        form.service_id.data,
        message=form.message.data or None,
        price_cents=form.price_cents.data,
    )
    return created(hire.to_dict(), "Hire request sent")


@hires_bp.route('', methods=['GET'])
@login_required
def list_hires():
    query = hire_service.list_hire_requests(
        current_user,
        box=request.args.get('box', 'all'),
        status=request.args.get('status'),
    )
    return ok(paginate(query))


@hires_bp.route('/<int:hire_id>')
@login_required
def hire_detail(hire_id):
    hire = hire_service.get_hire_request(hire_id, current_user)
    return ok(_accepted_payload(hire))


@hires_bp.route('/<int:hire_id>/accept', methods=['POST'])
@login_required
def accept_hire(hire_id):
    hire = hire_service.accept_hire_request(hire_id, current_user)
    return ok(_accepted_payload(hire), "Hire request accepted")


@hires_bp.route('/<int:hire_id>/reject', methods=['POST'])
@login_required
def reject_hire(hire_id):
    hire = hire_service.reject_hire_request(hire_id, current_user)
    return ok(hire.to_dict(), "Hire request rejected")


@hires_bp.route('/<int:hire_id>/cancel', methods=['POST'])
@login_required
def cancel_hire(hire_id):
    hire = hire_service.cancel_hire_request(hire_id, current_user)
    return ok(hire.to_dict(), "Hire request cancelled")


@hires_bp.route('/<int:hire_id>', methods=['DELETE'])
@login_required
def delete_hire(hire_id):
    hire_service.delete_hire_request(hire_id, current_user)
    return ok({'id': hire_id}, "Hire request deleted")
