import hashlib
import secrets
from datetime import timedelta
from functools import wraps
from flask import current_app, g, request
from flask_bcrypt import Bcrypt
from models import db, User, PersonalAccessToken, utcnow, as_utc
from services.errors import Unauthenticated, Forbidden

bcrypt = Bcrypt()


def hash_password(password):
    return bcrypt.generate_password_hash(password).decode("utf-8")


def check_password(hashed, password):
    return bcrypt.check_password_hash(hashed, password)


def _digest(plain_token):
    return hashlib.sha256(plain_token.encode("utf-8")).hexdigest()


def issue_token(user, name="auth_token"):
    """
    Create a personal access token for user.
    Returns (plaintext, PersonalAccessToken); the plaintext is never stored.
    """
    plain = secrets.token_hex(32)
    ttl_hours = current_app.config.get("TOKEN_TTL_HOURS")
    expires_at = utcnow() + timedelta(hours=ttl_hours) if ttl_hours else None
    token = PersonalAccessToken(user_id=user.id, name=name, token=_digest(plain), expires_at=expires_at)
    db.session.add(token)
    db.session.commit()
    return plain, token


def revoke_token(token):
    db.session.delete(token)
    db.session.commit()


def _bearer_token():
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def authenticate_request():
    """
    Resolve the bearer token on the current request.
    Returns (user, token) or raises Unauthenticated.
    """
    plain = _bearer_token()
    if not plain:
        raise Unauthenticated("Unauthenticated.")

    token = PersonalAccessToken.query.filter_by(token=_digest(plain)).first()
    if not token:
        raise Unauthenticated("Invalid token.")

    if token.expires_at and as_utc(token.expires_at) <= utcnow():
        raise Unauthenticated("Token expired.")

    token.last_used_at = utcnow()
    db.session.commit()
    return token.user, token


def token_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        g.current_user, g.current_token = authenticate_request()
        return view(*args, **kwargs)
    return wrapped


def songwriter_required(view):
    @wraps(view)
    @token_required
    def wrapped(*args, **kwargs):
        if not g.current_user.is_songwriter:
            raise Forbidden("This action is only available to songwriters.")
        return view(*args, **kwargs)
    return wrapped
