from datetime import datetime

from sqlalchemy import func, or_

from collabotree import errors
from collabotree.extensions import db
from collabotree.models import ChatMessage, ChatThread, HireRequest, HireStatus, Service
from collabotree.notifications.events import push_chat_message
from collabotree.utils.db import commit_or_rollback, get_or_raise

MAX_MESSAGE_LENGTH = 5000


def build_thread(hire):
    thread = ChatThread(
        hire_request=hire,
        hire_request_id=hire.id,
        service_id=hire.service_id,
        buyer_id=hire.buyer_id,
        student_id=hire.student_id,
        msg_count=0,
    )
    db.session.add(thread)
    return thread


def get_thread(thread_id, user, allow_admin=True):
    thread = get_or_raise(ChatThread, thread_id, "Conversation not found")
    if thread.is_party(user.id):
        return thread
    if allow_admin and user.is_admin:
        return thread
    raise errors.Forbidden("You are not part of this conversation")


def get_thread_for_hire(hire_id, user):
    hire = get_or_raise(HireRequest, hire_id, "Hire request not found")
    if not user.is_admin and not hire.is_party(user.id):
        raise errors.Forbidden("You are not part of this conversation")
    if hire.thread is None:
        raise errors.NotFound("Conversation not found")
    return hire.thread


def send_message(thread_id, sender, body):
    thread = get_thread(thread_id, sender, allow_admin=False)
    if thread.hire_request.status != HireStatus.ACCEPTED:
        raise errors.InvalidState("Messaging opens once the hire request is accepted")

    body = (body or '').strip()
    if not body:
        raise errors.ValidationError("Message cannot be empty", details={'body': ["This field is required."]})
    if len(body) > MAX_MESSAGE_LENGTH:
        raise errors.ValidationError(
            "Message is too long",
            details={'body': [f"Field cannot be longer than {MAX_MESSAGE_LENGTH} characters."]},
        )

    now = datetime.utcnow()
    message = ChatMessage(thread_id=thread.id, sender_id=sender.id, body=body, created_at=now)
    db.session.add(message)

    ChatThread.query.filter_by(id=thread.id).update(
        {ChatThread.msg_count: ChatThread.msg_count + 1, ChatThread.last_message_at: now},
        synchronize_session="fetch",
    )
    commit_or_rollback()

    push_chat_message(message, thread)
    return message


def list_threads(user):
    return (
        ChatThread.query
        .filter(or_(ChatThread.buyer_id == user.id, ChatThread.student_id == user.id))
        .order_by(func.coalesce(ChatThread.last_message_at, ChatThread.created_at).desc(), ChatThread.id.desc())
        .all()
    )


def unread_count(thread, user):
    return ChatMessage.query.filter(
        ChatMessage.thread_id == thread.id,
        ChatMessage.sender_id != user.id,
        ChatMessage.is_read.is_(False),
    ).count()


def thread_summary(thread, user):
    data = thread.to_dict()
    last = (
        ChatMessage.query
        .filter_by(thread_id=thread.id)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .first()
    )
    data['last_message'] = last.to_dict() if last else None
    data['unread_count'] = unread_count(thread, user)
    return data


def list_messages(thread_id, user):
    thread = get_thread(thread_id, user)
    return (
        ChatMessage.query
        .filter_by(thread_id=thread.id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
    )


def mark_thread_read(thread_id, user):
    thread = get_thread(thread_id, user, allow_admin=False)
    updated = (
        ChatMessage.query
        .filter(
            ChatMessage.thread_id == thread.id,
            ChatMessage.sender_id != user.id,
            ChatMessage.is_read.is_(False),
        )
        .update({ChatMessage.is_read: True}, synchronize_session=False)
    )
    commit_or_rollback()
    return updated


def get_service_conversation(service_id):
    """Every message exchanged about a service, oldest first (admin view)."""
    service = get_or_raise(Service, service_id, "Service not found")
    messages = (
        ChatMessage.query
        .join(ChatThread, ChatMessage.thread_id == ChatThread.id)
        .filter(ChatThread.service_id == service.id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        .all()
    )
    threads = ChatThread.query.filter_by(service_id=service.id).order_by(ChatThread.id).all()
    return service, threads, messages
