from collabotree import errors
from collabotree.extensions import db
from collabotree.models import Notification, NotificationType
from collabotree.notifications.email import send_notification_email
from collabotree.notifications.events import push_notification
from collabotree.utils.db import commit_or_rollback


def notify(user_id, notification_type, title, body=None, email=False):
    """Stage a notification in the current transaction.

    The caller commits and then hands the returned object to :func:`dispatch`.
    """
    note = Notification(
        user_id=user_id,
        type=NotificationType(notification_type),
        title=title,
        body=body,
        is_read=False,
    )
    note.send_email = email
    db.session.add(note)
    return note


def notify_many(user_ids, notification_type, title, body=None, email=False):
    return [notify(user_id, notification_type, title, body, email) for user_id in user_ids]


def dispatch(notes):
    """Fan out committed notifications over Socket.IO and e-mail."""
    for note in notes:
        push_notification(note)
        if getattr(note, 'send_email', False):
            send_notification_email(note.user, note)


def list_for_user(user, unread_only=False):
    query = Notification.query.filter_by(user_id=user.id)
    if unread_only:
        query = query.filter_by(is_read=False)
    return query.order_by(Notification.created_at.desc(), Notification.id.desc())


def unread_count(user):
    return Notification.query.filter_by(user_id=user.id, is_read=False).count()


def mark_read(notification_id, user):
    note = db.session.get(Notification, notification_id)
    # Someone else's notification is reported as missing
    if note is None or note.user_id != user.id:
        raise errors.NotFound("Notification not found")
    note.is_read = True
    commit_or_rollback()
    return note


def mark_all_read(user):
    updated = (
        Notification.query
        .filter_by(user_id=user.id, is_read=False)
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    commit_or_rollback()
    return updated
