from flask import Blueprint, request
from flask_login import current_user, login_required

from collabotree.forms import IdCardForm, validate_form
from collabotree.services import verification_service
from collabotree.utils.responses import ok

verification_bp = Blueprint('verification', __name__, url_prefix='/api/verification')


@verification_bp.route('/id-card', methods=['POST'])
@login_required
def upload_id_card():
    # Multipart upload or a data/http URL in a JSON body
    if 'id_card' in request.files:
        user = verification_service.upload_id_card(current_user, file=request.files['id_card'])
    else:
        form = validate_form(IdCardForm)
        user = verification_service.upload_id_card(current_user, image=form.id_card_url.data)
    return ok(verification_service.get_verification_status(user), "ID card submitted for review")


@verification_bp.route('/status')
@login_required
def status():
    return ok(verification_service.get_verification_status(current_user))
