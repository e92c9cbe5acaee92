import time

from flask import current_app, request, session
from flask_socketio import emit, join_room, leave_room

from collabotree import errors
from collabotree.extensions import db
from collabotree.models import User
from collabotree.notifications.events import thread_room, user_room
from collabotree.services import chat_service
from collabotree.utils.tokens import decode_access_token

TYPING_PREVIEW_LENGTH = 50


def _now():
    return time.time()


def _socket_user():
    expires_at = session.get('token_exp')
    if expires_at is None or _now() >= expires_at:
        session.pop('user_id', None)
        raise errors.Unauthorized("Session expired, reconnect with a new token")

    user_id = session.get('user_id')
    user = db.session.get(User, user_id) if user_id else None
    if user is None or not user.is_active:
        raise errors.Unauthorized()
    return user


def _thread_id(data):
    try:
        return int((data or {}).get('thread_id'))
    except (TypeError, ValueError):
        raise errors.ValidationError("thread_id is required")


def register_chat_events(socketio):

    @socketio.on('connect')
    def handle_connect(auth=None):
        """
        Authenticate the handshake token and join the personal room
        """
        token = (auth or {}).get('token') or request.args.get('token')
        payload = decode_access_token(token) if token else None
        if payload is None:
            return False

        user = db.session.get(User, int(payload['sub']))
        if user is None or not user.is_active:
            return False

        session['user_id'] = user.id
        session['token_exp'] = payload['exp']
        join_room(user_room(user.id))
        current_app.logger.debug(f"Socket connected for user {user.id}")

    @socketio.on('join_thread')
    def handle_join_thread(data):
        try:
            user = _socket_user()
            thread = chat_service.get_thread(_thread_id(data), user)
        except errors.CollaboTreeError as e:
            emit('error', e.to_dict())
            return

        join_room(thread_room(thread.id))
        emit('joined_thread', {'thread_id': thread.id})

    @socketio.on('leave_thread')
    def handle_leave_thread(data):
        try:
            thread_id = _thread_id(data)
        except errors.ValidationError as e:
            emit('error', e.to_dict())
            return
        leave_room(thread_room(thread_id))

    @socketio.on('send_message')
    def handle_send(data):
        """
        Persist the message; the service broadcasts it to the thread room
        """
        try:
            user = _socket_user()
            message = chat_service.send_message(_thread_id(data), user, (data or {}).get('body'))
        except errors.CollaboTreeError as e:
            emit('error', e.to_dict())
            return e.to_dict()

        return {'success': True, 'data': message.to_dict()}

    @socketio.on('typing')
    def handle_typing(data):
        try:
            user = _socket_user()
            thread = chat_service.get_thread(_thread_id(data), user, allow_admin=False)
        except errors.CollaboTreeError as e:
            emit('error', e.to_dict())
            return

        preview = ((data or {}).get('preview') or '')[:TYPING_PREVIEW_LENGTH]
        emit('typing', {
            'thread_id': thread.id,
            'user_id': user.id,
            'preview': preview,
        }, to=thread_room(thread.id), include_self=False)
