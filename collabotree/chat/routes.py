from flask import Blueprint
from flask_login import current_user, login_required

from collabotree.forms import MessageForm, validate_form
from collabotree.services import chat_service
from collabotree.utils.pagination import paginate
from collabotree.utils.responses import created, ok

chat_bp = Blueprint('chat', __name__, url_prefix='/api/chat')


@chat_bp.route('/threads')
@login_required
def inbox():
    threads = chat_service.list_threads(current_user)
    return ok([chat_service.thread_summary(t, current_user) for t in threads])


@chat_bp.route('/hires/<int:hire_id>/thread')
@login_required
def thread_for_hire(hire_id):
    thread = chat_service.get_thread_for_hire(hire_id, current_user)
    return ok(thread.to_dict())


@chat_bp.route('/threads/<int:thread_id>/messages')
@login_required
def messages(thread_id):
    return ok(paginate(chat_service.list_messages(thread_id, current_user)))


@chat_bp.route('/threads/<int:thread_id>/messages', methods=['POST'])
@login_required
def send_message(thread_id):
    form = validate_form(MessageForm)
    message = chat_service.send_message(thread_id, current_user, form.body.data)
    return created(message.to_dict())


@chat_bp.route('/threads/<int:thread_id>/read', methods=['POST'])
@login_required
def mark_read(thread_id):
    updated = chat_service.mark_thread_read(thread_id, current_user)
    return ok({'updated': updated})
