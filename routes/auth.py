# routes/auth.py

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import IntegrityError
from models import db, User, USER_ROLES
from services.errors import Unauthenticated, ValidationFailed
from services.membership import link_members_to_users
from utils.auth import check_password, hash_password, issue_token, revoke_token, token_required
from utils.helpers import is_valid_email, iso

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

SELF_SERVICE_ROLES = tuple(r for r in USER_ROLES if r != "admin")


def serialize_user(user):
    return {
        "id": user.id,
        "username": user.username,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "profile_image": user.profile_image,
        "created_at": iso(user.created_at),
    }


def _token_response(user, status=200):
    plain, token = issue_token(user)
    return jsonify({
        "user": serialize_user(user),
        "token": plain,
        "token_type": "Bearer",
        "expires_at": iso(token.expires_at),
    }), status


@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Create an account and hand back a bearer token.
    Inputs (JSON): username, name, email, password, role (optional)
    Outputs:
        - 201 {user, token, token_type, expires_at}
        - 422 on missing/duplicate fields
    Side Effects:
        - links any sounding board memberships already made with this email
    """
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip().lower()
    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    role = data.get("role") or "songwriter"

    errors = {}
    if not username:
        errors["username"] = ["The username field is required."]
    elif User.query.filter_by(username=username).first():
        errors["username"] = ["The username has already been taken."]
    if not name:
        errors["name"] = ["The name field is required."]
    if not is_valid_email(email):
        errors["email"] = ["The email must be a valid email address."]
    elif User.query.filter_by(email=email).first():
        errors["email"] = ["The email has already been taken."]
    if not password:
        errors["password"] = ["The password field is required."]
    if role not in SELF_SERVICE_ROLES:
        errors["role"] = ["The selected role is invalid."]
    if errors:
        raise ValidationFailed(errors=errors)

    user = User(username=username, name=name, email=email, password=hash_password(password), role=role)
    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationFailed(errors={"email": ["The email has already been taken."]})

    linked = link_members_to_users(email=user.email)
    current_app.logger.info("Registered user_id=%s role=%s linked_memberships=%s", user.id, user.role, linked)
    return _token_response(user, status=201)


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    login_name = (data.get("email") or data.get("username") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter((User.email == login_name) | (User.username == login_name)).first()
    if not user or not check_password(user.password, password):
        raise Unauthenticated("Invalid credentials.")

    return _token_response(user)


@auth_bp.route("/logout", methods=["POST"])
@token_required
def logout():
    revoke_token(g.current_token)
    return jsonify({"message": "Logged out."})


@auth_bp.route("/me")
@token_required
def me():
    return jsonify({"user": serialize_user(g.current_user)})
