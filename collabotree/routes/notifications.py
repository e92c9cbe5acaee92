from flask import Blueprint, request
from flask_login import current_user, login_required

from collabotree.forms import FALSE_VALUES
from collabotree.services import notification_service
from collabotree.utils.pagination import paginate
from collabotree.utils.responses import ok

notifications_bp = Blueprint('notifications', __name__, url_prefix='/api/notifications')


@notifications_bp.route('')
@login_required
def list_notifications():
    unread_only = request.args.get('unread', 'false') not in FALSE_VALUES
    return ok(paginate(notification_service.list_for_user(current_user, unread_only)))


@notifications_bp.route('/unread-count')
@login_required
def unread_count():
    return ok({'count': notification_service.unread_count(current_user)})


@notifications_bp.route('/<int:notification_id>/read', methods=['POST'])
@login_required
def mark_read(notification_id):
    note = notification_service.mark_read(notification_id, current_user)
    return ok(note.to_dict())


@notifications_bp.route('/read-all', methods=['POST'])
@login_required
def mark_all_read():
    updated = notification_service.mark_all_read(current_user)
    return ok({'updated': updated}, "All notifications marked as read")
