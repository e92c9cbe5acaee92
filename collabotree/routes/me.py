from flask import Blueprint
from flask_login import current_user, login_required

from collabotree.forms import ProfileForm, submitted_fields, validate_form
from collabotree.services import catalog_service, review_service, user_service
from collabotree.utils.responses import ok

users_bp = Blueprint('users', __name__, url_prefix='/api')


@users_bp.route('/me')
@login_required
def get_me():
    return ok(current_user.to_dict(private=True))


@users_bp.route('/me', methods=['PATCH'])
@login_required
def update_me():
    form = validate_form(ProfileForm)
    user = user_service.update_profile(current_user, submitted_fields(form))
    return ok(user.to_dict(private=True), "Profile updated")


@users_bp.route('/users/<int:user_id>')
def public_profile(user_id):
    user = user_service.get_public_profile(user_id)
    data = user.to_dict()
    reviews = review_service.list_reviews_for_user(user.id)
    data['average_rating'] = reviews['average_rating']
    data['review_count'] = reviews['count']
    if user.is_student:
        services = catalog_service.list_public_services(owner_id=user.id).all()
        data['services'] = [s.to_dict() for s in services]
    return ok(data)
