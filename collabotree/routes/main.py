from flask import Blueprint, request

from collabotree.services import catalog_service
from collabotree.utils.pagination import paginate
from collabotree.utils.responses import ok

main_bp = Blueprint('main', __name__, url_prefix='/api')


def public_service_query():
    return catalog_service.list_public_services(
        q=request.args.get('q'),
        min_price_cents=request.args.get('min_price_cents', type=int),
        max_price_cents=request.args.get('max_price_cents', type=int),
        owner_id=request.args.get('owner_id', type=int),
    )


@main_bp.route('/health')
def health():
    return ok({'status': 'ok'})


@main_bp.route('/public/services')
def public_services():
    return ok(paginate(public_service_query()))


@main_bp.route('/public/top-selections')
def top_selections():
    services = catalog_service.list_top_selections()
    return ok([s.to_dict() for s in services])
