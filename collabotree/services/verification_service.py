from datetime import datetime

from flask import current_app

from collabotree import errors
from collabotree.extensions import db
from collabotree.models import NotificationType, Role, User, VerificationStatus
from collabotree.services import notification_service
from collabotree.utils.db import commit_or_rollback
from collabotree.utils.uploads import check_image_reference, save_upload


def _require_admin(user):
    if not user.is_admin:
        raise errors.Forbidden("Admin access required")


def _get_student(student_id):
    student = db.session.get(User, student_id)
    if student is None or student.role != Role.STUDENT:
        raise errors.NotFound("Student not found")
    return student


def upload_id_card(student, image=None, file=None):
    """Store the student ID image and put the student in the review queue."""
    if student.role != Role.STUDENT:
        raise errors.Forbidden("Only students can upload an ID card")
    if student.is_verified:
        raise errors.InvalidState("Your account is already verified")

    if file is not None:
        url = save_upload(file, 'id_cards')
    else:
        url = check_image_reference(image)

    student.id_card_url = url
    student.has_uploaded_id = True
    student.is_verified = False
    student.verification_status = VerificationStatus.PENDING
    student.verification_rejection_reason = None
    student.id_uploaded_at = datetime.utcnow()

    admin_ids = [uid for (uid,) in db.session.query(User.id).filter(User.role == Role.ADMIN).all()]
    notes = notification_service.notify_many(
        admin_ids, NotificationType.SYSTEM, "New verification request",
        f"{student.name} uploaded a student ID for review.",
    )
    commit_or_rollback()
    notification_service.dispatch(notes)

    current_app.logger.info(f"Student {student.id} uploaded an ID card")
    return student


def get_verification_status(user):
    return {
        'is_verified': user.is_verified,
        'has_uploaded_id': user.has_uploaded_id,
        'status': user.verification_status.value,
        'rejection_reason': user.verification_rejection_reason,
        'id_uploaded_at': user.id_uploaded_at.isoformat() if user.id_uploaded_at else None,
        'verified_at': user.verified_at.isoformat() if user.verified_at else None,
    }


def list_pending_verifications():
    return (
        User.query
        .filter(
            User.role == Role.STUDENT,
            User.verification_status == VerificationStatus.PENDING,
            User.has_uploaded_id.is_(True),
        )
        .order_by(User.id_uploaded_at.asc(), User.id.asc())
    )


def _require_pending(student):
    if student.verification_status != VerificationStatus.PENDING or not student.has_uploaded_id:
        raise errors.InvalidState("No pending ID submission for this student")


def verify_student(student_id, admin):
    _require_admin(admin)
    student = _get_student(student_id)
    _require_pending(student)

    student.is_verified = True
    student.verified_at = datetime.utcnow()
    student.verification_status = VerificationStatus.APPROVED
    student.verification_rejection_reason = None

    note = notification_service.notify(
        student.id, NotificationType.SYSTEM, "Verification approved",
        "Your student ID was approved. Your services now show a verified badge.",
        email=True,
    )
    commit_or_rollback()
    notification_service.dispatch([note])

    current_app.logger.info(f"Student {student.id} verified by admin {admin.id}")
    return student


def reject_student(student_id, admin, reason):
    _require_admin(admin)
    reason = (reason or '').strip()
    if not reason:
        raise errors.ValidationError("A rejection reason is required", details={'reason': ["This field is required."]})

    student = _get_student(student_id)
    _require_pending(student)

    # Re-upload is required to get back into the queue
    student.is_verified = False
    student.has_uploaded_id = False
    student.verification_status = VerificationStatus.REJECTED
    student.verification_rejection_reason = reason

    note = notification_service.notify(
        student.id, NotificationType.SYSTEM, "Verification rejected",
        f"Your student ID was rejected: {reason}. Please upload a new image.",
        email=True,
    )
    commit_or_rollback()
    notification_service.dispatch([note])

    current_app.logger.info(f"Student {student.id} verification rejected by admin {admin.id}")
    return student
