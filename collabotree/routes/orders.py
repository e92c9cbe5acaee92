from flask import Blueprint, request
from flask_login import current_user, login_required

from collabotree.forms import CreateOrderForm, OrderStatusForm, PayOrderForm, validate_form
from collabotree.services import order_service
from collabotree.utils.pagination import paginate
from collabotree.utils.responses import created, ok

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


def _order_payload(order):
    data = order.to_dict()
    data['contract'] = order.contract.to_dict() if order.contract else None
    return data


@orders_bp.route('', methods=['POST'])
@login_required
def create_order():
    form = validate_form(CreateOrderForm)
    order = order_service.create_order(form.hire_request_id.data, current_user)
    return created(_order_payload(order), "Order created")


@orders_bp.route('/mine')
@login_required
def my_orders():
    query = order_service.list_orders(
        current_user,
        status=request.args.get('status'),
        role=request.args.get('role'),
    )
    return ok(paginate(query))


@orders_bp.route('/<int:order_id>')
@login_required
def order_detail(order_id):
    order = order_service.get_order(order_id, current_user)
    return ok(_order_payload(order))


@orders_bp.route('/<int:order_id>/status', methods=['PATCH'])
@login_required
def update_status(order_id):
    form = validate_form(OrderStatusForm)
    order = order_service.update_order_status(order_id, current_user, form.status.data)
    return ok(_order_payload(order), "Order status updated")


@orders_bp.route('/<int:order_id>/pay', methods=['PATCH'])
@login_required
def pay(order_id):
    form = validate_form(PayOrderForm)
    order = order_service.pay_order(order_id, current_user, form.payment_reference.data or None)
    return ok(_order_payload(order), "Payment received and held in escrow")
