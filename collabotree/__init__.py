import os
from datetime import datetime, timedelta

from flask import Flask, send_from_directory
from flask_login import current_user, login_required

from collabotree import errors
from collabotree.config import config_by_name
from collabotree.extensions import db, login_manager, mail, migrate, socketio
from collabotree.models import User
from collabotree.utils.tokens import decode_access_token, token_from_header

LAST_SEEN_INTERVAL = timedelta(minutes=5)


def create_app(config_name=None):
    app = Flask(__name__)

    # App config
    config_name = config_name or os.getenv('FLASK_CONFIG', 'development')
    app.config.from_object(config_by_name[config_name])
    missing = [key for key in app.config["REQUIRED_SETTINGS"] if not app.config.get(key)]
    if missing:
        raise RuntimeError(f"Missing required settings for {config_name}: {', '.join(missing)}")
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    socketio.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)

    # Login setup: bearer tokens, re-checked against the user row every request
    @login_manager.user_loader
    def load_user(user_id):
        user = db.session.get(User, int(user_id))
        return user if user and user.is_active else None

    @login_manager.request_loader
    def load_user_from_request(req):
        token = token_from_header(req.headers.get('Authorization'))
        payload = decode_access_token(token) if token else None
        if payload is None:
            return None
        user = db.session.get(User, int(payload['sub']))
        if user is None or not user.is_active:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        raise errors.Unauthorized()

    # Register blueprints
    from collabotree.chat.routes import chat_bp
    from collabotree.routes.admin import admin_bp
    from collabotree.routes.auth import auth_bp
    from collabotree.routes.contracts import contracts_bp
    from collabotree.routes.disputes import disputes_bp
    from collabotree.routes.hires import hires_bp
    from collabotree.routes.main import main_bp
    from collabotree.routes.me import users_bp
    from collabotree.routes.notifications import notifications_bp
    from collabotree.routes.orders import orders_bp
    from collabotree.routes.reviews import reviews_bp
    from collabotree.routes.services import services_bp
    from collabotree.routes.verification import verification_bp
    from collabotree.routes.wallet import wallet_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(services_bp)
    app.register_blueprint(hires_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(contracts_bp)
    app.register_blueprint(disputes_bp)
    app.register_blueprint(chat_bp)
    app.register_blueprint(reviews_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(wallet_bp)
    app.register_blueprint(verification_bp)
    app.register_blueprint(admin_bp)

    errors.register_error_handlers(app)

    # Socket events & CLI
    from collabotree.chat.socket_events import register_chat_events
    from collabotree.commands import register_commands

    register_chat_events(socketio)
    register_commands(app)

    # ID card images: owner or admin only
    @app.route('/uploads/id_cards/<path:filename>')
    @login_required
    def id_card_file(filename):
        owner = User.query.filter_by(id_card_url=f"/uploads/id_cards/{filename}").first()
        if owner is None:
            raise errors.NotFound("File not found")
        if owner.id != current_user.id and not current_user.is_admin:
            raise errors.Forbidden("You cannot view this file")
        return send_from_directory(os.path.join(app.config['UPLOAD_FOLDER'], 'id_cards'), filename)

    # User last seen
    @app.before_request
    def update_last_seen():
        if current_user.is_authenticated:
            now = datetime.utcnow()
            if current_user.last_seen is None or now - current_user.last_seen > LAST_SEEN_INTERVAL:
                current_user.last_seen = now
                db.session.commit()

    if app.config['AUTO_CREATE_TABLES']:
        with app.app_context():
            db.create_all()

    return app
