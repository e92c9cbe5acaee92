from flask import Blueprint
from flask_login import current_user, login_required

from collabotree.forms import LoginForm, RegistrationForm, validate_form
from collabotree.services import user_service
from collabotree.utils.responses import created, ok
from collabotree.utils.tokens import generate_access_token

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def _session_payload(user):
    return {
        'access_token': generate_access_token(user),
        'token_type': 'Bearer',
        'user': user.to_dict(private=True),
    }


@auth_bp.route('/register', methods=['POST'])
def register():
    form = validate_form(RegistrationForm)
    user = user_service.register_user(
        email=form.email.data,
        password=form.password.data,
        name=form.name.data,
        role=form.role.data,
        university=form.university.data or None,
    )
    return created(_session_payload(user), "Account created")


@auth_bp.route('/login', methods=['POST'])
def login():
    form = validate_form(LoginForm)
    user = user_service.authenticate(form.email.data, form.password.data)
    return ok(_session_payload(user), "Logged in")


@auth_bp.route('/me')
@login_required
def me():
    return ok(current_user.to_dict(private=True))
