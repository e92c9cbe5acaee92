from flask import current_app

from collabotree.extensions import socketio


def user_room(user_id):
    return f"user_{user_id}"


def thread_room(thread_id):
    return f"thread_{thread_id}"


def _emit(event, payload, room):
    try:
        socketio.emit(event, payload, to=room)
    except Exception as e:
        current_app.logger.error(f"Socket emit '{event}' to {room} failed: {e}")


def push_notification(notification):
    """Real-time toast for the notification owner."""
    _emit('new_notification', notification.to_dict(), user_room(notification.user_id))


def push_chat_message(message, thread):
    payload = message.to_dict()
    _emit('receive_message', payload, thread_room(thread.id))

    # Recipient may not have the thread open, update their inbox too
    recipient_id = thread.other_party_id(message.sender_id)
    _emit('update_inbox', {
        'thread_id': thread.id,
        'sender_id': message.sender_id,
        'last_message': message.body,
        'timestamp': payload['created_at'],
    }, user_room(recipient_id))
