from flask import Blueprint
from flask_login import current_user, login_required

from collabotree.forms import ReviewForm, validate_form
from collabotree.services import review_service
from collabotree.utils.responses import created, ok

reviews_bp = Blueprint('reviews', __name__, url_prefix='/api/reviews')


@reviews_bp.route('', methods=['POST'])
@login_required
def create_review():
    form = validate_form(ReviewForm)
    review = review_service.create_review(
        form.order_id.data, current_user, form.rating.data, form.comment.data or None
    )
    return created(review.to_dict(), "Review submitted")


@reviews_bp.route('/users/<int:user_id>')
def user_reviews(user_id):
    return ok(review_service.list_reviews_for_user(user_id))
