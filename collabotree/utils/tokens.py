# utils/tokens.py
import uuid
from datetime import datetime, timedelta

import jwt
from flask import current_app


def generate_access_token(user):
    """Issue a signed bearer token for ``user``."""
    now = datetime.utcnow()
    payload = {
        "sub": str(user.id),
        "role": user.role.value,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + timedelta(minutes=current_app.config["JWT_ACCESS_EXPIRES_MINUTES"]),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET"],
        algorithm=current_app.config["JWT_ALGORITHM"],
    )


def decode_access_token(token):
    """Return the token payload, or None when it is invalid or expired."""
    try:
        return jwt.decode(
            token,
            current_app.config["JWT_SECRET"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
        )
    except jwt.PyJWTError as e:
        current_app.logger.debug(f"Rejected access token: {e}")
        return None


def token_from_header(header_value):
    if not header_value or not header_value.startswith("Bearer "):
        return None
    return header_value.split(" ", 1)[1].strip() or None
