from threading import Thread

from flask import current_app
from flask_mail import Message

from collabotree.extensions import mail


def send_async_email(app, msg):
    with app.app_context():
        try:
            mail.send(msg)
        except Exception as e:
            app.logger.error(f"Email sending failed: {e}")


def send_notification_email(user, notification):
    if not current_app.config.get('MAIL_NOTIFICATIONS_ENABLED'):
        return
    if not user or not user.email:
        return

    body = f"""
Hello {user.name},

{notification.body or notification.title}

Please login to your dashboard for more details.

Regards,
CollaboTree Team
"""
    msg = Message(subject=f"CollaboTree: {notification.title}", recipients=[user.email], body=body)

    app = current_app._get_current_object()
    if current_app.config.get('MAIL_ASYNC', True):
        Thread(target=send_async_email, args=(app, msg)).start()
    else:
        send_async_email(app, msg)
