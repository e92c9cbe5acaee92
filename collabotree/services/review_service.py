from flask import current_app
from sqlalchemy import func

from collabotree import errors
from collabotree.extensions import db
from collabotree.models import NotificationType, Order, OrderStatus, Review, User
from collabotree.services import notification_service
from collabotree.utils.db import commit_or_rollback, get_or_raise


def create_review(order_id, reviewer, rating, comment=None):
    order = get_or_raise(Order, order_id, "Order not found")
    if not order.is_party(reviewer.id):
        raise errors.Forbidden("Only the buyer or the student can review this order")
    if order.status != OrderStatus.COMPLETED:
        raise errors.InvalidState("Only completed orders can be reviewed")
    if rating is None or not 1 <= rating <= 5:
        raise errors.ValidationError("Validation failed", details={'rating': ["Number must be between 1 and 5."]})

    if Review.query.filter_by(order_id=order.id, reviewer_id=reviewer.id).first():
        raise errors.Conflict("You already reviewed this order")

    reviewee_id = order.student_id if reviewer.id == order.buyer_id else order.buyer_id
    review = Review(
        order_id=order.id,
        service_id=order.service_id,
        buyer_id=order.buyer_id,
        student_id=order.student_id,
        reviewer_id=reviewer.id,
        reviewee_id=reviewee_id,
        rating=rating,
        comment=comment,
    )
    db.session.add(review)

    note = notification_service.notify(
        reviewee_id, NotificationType.REVIEW, "New review",
        f"{reviewer.name} left you a {rating}-star review for order #{order.order_number}.",
    )
    commit_or_rollback()
    notification_service.dispatch([note])

    current_app.logger.info(f"Review {review.id} left on order {order.id} by user {reviewer.id}")
    return review


def list_reviews_for_user(user_id):
    user = get_or_raise(User, user_id, "User not found")
    reviews = (
        Review.query
        .filter_by(reviewee_id=user.id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    average = db.session.query(func.avg(Review.rating)).filter(Review.reviewee_id == user.id).scalar()
    return {
        'user_id': user.id,
        'average_rating': round(float(average), 2) if average is not None else None,
        'count': len(reviews),
        'reviews': [r.to_dict() for r in reviews],
    }
