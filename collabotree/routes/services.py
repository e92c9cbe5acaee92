from flask import Blueprint
from flask_login import current_user, login_required

from collabotree.forms import ServiceForm, ServiceUpdateForm, submitted_fields, validate_form
from collabotree.routes.main import public_service_query
from collabotree.services import catalog_service
from collabotree.utils.pagination import paginate
from collabotree.utils.responses import created, ok

services_bp = Blueprint('services', __name__, url_prefix='/api/services')


@services_bp.route('', methods=['GET'])
def list_services():
    return ok(paginate(public_service_query()))


@services_bp.route('/mine')
@login_required
def my_services():
    return ok(paginate(catalog_service.list_owner_services(current_user)))


@services_bp.route('/<int:service_id>')
def service_detail(service_id):
    viewer = current_user if current_user.is_authenticated else None
    service = catalog_service.get_service(service_id, viewer)
    return ok(service.to_dict())


@services_bp.route('', methods=['POST'])
@login_required
def create_service():
    form = validate_form(ServiceForm)
    service = catalog_service.create_service(current_user, form.data)
    return created(service.to_dict(), "Service created")


@services_bp.route('/<int:service_id>', methods=['PATCH'])
@login_required
def update_service(service_id):
    form = validate_form(ServiceUpdateForm)
    service = catalog_service.update_service(service_id, current_user, submitted_fields(form))
    return ok(service.to_dict(), "Service updated")


@services_bp.route('/<int:service_id>', methods=['DELETE'])
@login_required
def deactivate_service(service_id):
    service = catalog_service.deactivate_service(service_id, current_user)
    return ok(service.to_dict(), "Service deactivated")
