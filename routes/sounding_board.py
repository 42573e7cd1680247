# routes/sounding_board.py

from flask import Blueprint, g, jsonify, request
from models import CONTACT_PREFERENCES
from services import membership
from services.access import get_owned_song, get_song_by_token
from services.errors import ValidationFailed
from utils.auth import songwriter_required, token_required
from utils.helpers import int_arg, is_valid_email, share_link, iso

sounding_board_bp = Blueprint("sounding_board", __name__)

MAX_NAME_LENGTH = 255
MAX_PHONE_LENGTH = 20


# -------------------------------------------------------------------------
# Public share-link flow
# -------------------------------------------------------------------------

@sounding_board_bp.route("/share/<token>/request-access", methods=["POST"])
def request_access(token):
    """
    Ask to join a song's sounding board from its share link.
    Inputs (JSON): name, email, contact_preference (email|sms|whatsapp), phone?
    Outputs:
        - 201 {member_id, status, share_link}
        - 409 with the existing status when (song, email) already asked
        - 404 for an unknown or deleted song
    """
    song = get_song_by_token(token)
    data = request.get_json(silent=True) or {}

    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip().lower()
    preference = data.get("contact_preference")
    phone = data.get("phone")

    errors = {}
    if not name:
        errors["name"] = ["The name field is required."]
    elif len(name) > MAX_NAME_LENGTH:
        errors["name"] = [f"The name may not be greater than {MAX_NAME_LENGTH} characters."]
    if not is_valid_email(email):
        errors["email"] = ["The email must be a valid email address."]
    if preference not in CONTACT_PREFERENCES:
        errors["contact_preference"] = ["The selected contact preference is invalid."]
    if phone is not None:
        if not isinstance(phone, str) or len(phone) > MAX_PHONE_LENGTH:
            errors["phone"] = [f"The phone may not be greater than {MAX_PHONE_LENGTH} characters."]
        else:
            phone = phone.strip() or None
    if errors:
        raise ValidationFailed(errors=errors)

    member = membership.request_access(song, name, email, contact_preference=preference, phone=phone)
    return jsonify({"member_id": member.id, "status": member.status, "share_link": share_link(song)}), 201


@sounding_board_bp.route("/share/<token>/check-access", methods=["GET"])
def check_access(token):
    song = get_song_by_token(token)
    email = (request.args.get("email") or "").strip().lower()
    if not email:
        raise ValidationFailed(errors={"email": ["The email field is required."]})
    return jsonify(membership.check_access(song, email))


# -------------------------------------------------------------------------
# Songwriter management
# -------------------------------------------------------------------------

@sounding_board_bp.route("/sounding-board", methods=["GET"])
@songwriter_required
def owner_dashboard():
    members, grouped, counts = membership.members_for_owner(g.current_user)
    return jsonify({
        "all": [membership.serialize_member(m) for m in members],
        "pending": [membership.serialize_member(m) for m in grouped["pending"]],
        "approved": [membership.serialize_member(m) for m in grouped["approved"]],
        "rejected": [membership.serialize_member(m) for m in grouped["rejected"]],
        "counts": counts,
    })


@sounding_board_bp.route("/sounding-board/song/<int:song_id>", methods=["GET"])
@songwriter_required
def song_members(song_id):
    song = get_owned_song(song_id, g.current_user)
    members, counts = membership.members_for_song(song)
    return jsonify({
        "song": {"id": song.id, "title": song.title},
        "members": [membership.serialize_member(m, include_song=False) for m in members],
        "counts": counts,
    })


@sounding_board_bp.route("/sounding-board/<int:member_id>/approve", methods=["POST"])
@songwriter_required
def approve(member_id):
    member = membership.approve(member_id, g.current_user)
    return jsonify({"message": "Access approved", "member": membership.serialize_member(member)})


@sounding_board_bp.route("/sounding-board/<int:member_id>/reject", methods=["POST"])
@songwriter_required
def reject(member_id):
    data = request.get_json(silent=True) or {}
    reason = data.get("reason")
    if reason is not None and not isinstance(reason, str):
        raise ValidationFailed(errors={"reason": ["The reason must be a string."]})
    member = membership.reject(member_id, g.current_user, reason=reason or None)
    return jsonify({"message": "Access rejected", "member": membership.serialize_member(member)})


@sounding_board_bp.route("/sounding-board/<int:member_id>", methods=["DELETE"])
@songwriter_required
def remove(member_id):
    membership.remove(member_id, g.current_user)
    return jsonify({"message": "Member removed"})


# -------------------------------------------------------------------------
# Member view
# -------------------------------------------------------------------------

@sounding_board_bp.route("/sounding-board/approved-songs", methods=["GET"])
@token_required
def approved_songs():
    page = int_arg(request.args, "page", 1, minimum=1)
    per_page = int_arg(request.args, "per_page", 6, minimum=1, maximum=50)
    pagination = membership.approved_songs_for(g.current_user, page=page, per_page=per_page)

    songs = []
    for m in pagination.items:
        song = m.song
        songs.append({
            "id": song.id,
            "title": song.title,
            "description": song.description,
            "development_stage": song.development_stage,
            "user": {"id": song.owner.id, "name": song.owner.name},
            "member_id": m.id,
            "approved_at": iso(m.responded_at),
            "share_link": share_link(song),
        })

    return jsonify({
        "songs": songs,
        "pagination": {
            "current_page": pagination.page,
            "per_page": pagination.per_page,
            "total": pagination.total,
            "last_page": max(pagination.pages, 1),
            "has_more": pagination.has_next,
        },
    })
