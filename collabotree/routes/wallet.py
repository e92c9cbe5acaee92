from flask import Blueprint
from flask_login import current_user, login_required

from collabotree.services import contract_service
from collabotree.utils.responses import ok

wallet_bp = Blueprint('wallet', __name__, url_prefix='/api/wallet')


@wallet_bp.route('')
@login_required
def my_wallet():
    return ok(contract_service.wallet_summary(current_user))
