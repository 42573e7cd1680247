# routes/songs.py

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import IntegrityError
from models import db, Song, FeedbackTopic, Comment, utcnow
from services.access import get_song, get_owned_song, get_song_by_token, require_access, approved_membership
from services.errors import NotFound, ValidationFailed
from services.topics import serialize_topic
from utils.auth import songwriter_required, token_required
from utils.helpers import generate_share_token, share_link, iso

songs_bp = Blueprint("songs", __name__)

DEVELOPMENT_STAGES = {
    "new_idea": "New Idea",
    "early_stage": "Early Stage Development",
    "mid_stage": "Mid-Stage Development",
    "ready_for_touches": "Ready for Final Touches",
    "done_recording": "Done Recording, Adjusting Mix/Mastering",
}


def serialize_song(song, full=True):
    data = {
        "id": song.id,
        "title": song.title,
        "user": {"id": song.owner.id, "name": song.owner.name},
    }
    if full:
        data.update({
            "description": song.description,
            "development_stage": song.development_stage,
            "development_stage_label": DEVELOPMENT_STAGES.get(song.development_stage, song.development_stage),
            "custom_feedback_request": song.custom_feedback_request,
            "feedback_topics": [serialize_topic(t) for t in song.feedback_topics],
            "feedback_count": Comment.query.filter_by(song_id=song.id).count(),
            "created_at": iso(song.created_at),
            "deleted_at": iso(song.deleted_at),
        })
    return data


def assign_share_token(song):
    """Fresh 256-bit token; retried on the (astronomically unlikely) collision."""
    for _ in range(5):
        song.share_token = generate_share_token()
        try:
            db.session.commit()
            return song.share_token
        except IntegrityError:
            db.session.rollback()
    raise RuntimeError("could not allocate a unique share token")


@songs_bp.route("/songs", methods=["GET"])
@songwriter_required
def list_songs():
    songs = (Song.active()
        .filter(Song.user_id == g.current_user.id)
        .order_by(Song.created_at.desc(), Song.id.desc())
        .all())
    return jsonify({"songs": [serialize_song(s) for s in songs]})


@songs_bp.route("/songs", methods=["POST"])
@songwriter_required
def create_song():
    """
    Create a song for the authenticated songwriter (audio handled elsewhere).
    Inputs (JSON): title, description?, development_stage?, custom_feedback_request?,
                   feedback_topic_ids? (topics to ask the sounding board about)
    Outputs: 201 {song, share_link}
    """
    data = request.get_json(silent=True) or {}
    title = (data.get("title") or "").strip()
    stage = data.get("development_stage")
    topic_ids = data.get("feedback_topic_ids") or []

    errors = {}
    if not title:
        errors["title"] = ["The title field is required."]
    elif len(title) > 255:
        errors["title"] = ["The title may not be greater than 255 characters."]
    if stage is not None and stage not in DEVELOPMENT_STAGES:
        errors["development_stage"] = ["The selected development stage is invalid."]
    topics = []
    if not isinstance(topic_ids, list) or any(
        not isinstance(t, int) or isinstance(t, bool) for t in topic_ids
    ):
        errors["feedback_topic_ids"] = ["The feedback topic ids must be a list of integers."]
    elif topic_ids:
        topics = FeedbackTopic.query.filter(FeedbackTopic.id.in_(topic_ids)).all()
        if len(topics) != len(set(topic_ids)):
            errors["feedback_topic_ids"] = ["One or more feedback topics are invalid."]
    if errors:
        raise ValidationFailed(errors=errors)

    song = Song(
        user_id=g.current_user.id,
        title=title,
        description=data.get("description"),
        development_stage=stage,
        custom_feedback_request=data.get("custom_feedback_request"),
    )
    song.feedback_topics = topics
    db.session.add(song)
    db.session.flush()  # to get ID before the token commit
    assign_share_token(song)

    current_app.logger.info("Song created: song_id=%s user_id=%s", song.id, g.current_user.id)
    return jsonify({"song": serialize_song(song), "share_link": share_link(song)}), 201


@songs_bp.route("/songs/<int:song_id>", methods=["GET"])
@token_required
def show_song(song_id):
    song = get_song(song_id)
    role, _ = require_access(song, user=g.current_user)
    body = {"song": serialize_song(song), "user_role": role}
    if role == "songwriter":
        body["share_link"] = share_link(song) if song.share_token else None
    return jsonify(body)


@songs_bp.route("/songs/<int:song_id>", methods=["DELETE"])
@songwriter_required
def delete_song(song_id):
    song = get_owned_song(song_id, g.current_user)
    song.deleted_at = utcnow()
    db.session.commit()
    current_app.logger.info("Song soft-deleted: song_id=%s", song.id)
    return jsonify({"message": "Song deleted successfully"})


@songs_bp.route("/songs/<int:song_id>/restore", methods=["POST"])
@songwriter_required
def restore_song(song_id):
    song = get_owned_song(song_id, g.current_user, include_deleted=True)
    if not song.is_deleted:
        raise NotFound("Song not found")
    song.deleted_at = None
    db.session.commit()
    current_app.logger.info("Song restored: song_id=%s", song.id)
    return jsonify({"song": serialize_song(song)})


@songs_bp.route("/songs/<int:song_id>/share", methods=["POST"])
@songwriter_required
def regenerate_share_link(song_id):
    song = get_owned_song(song_id, g.current_user)
    assign_share_token(song)
    return jsonify({"share_link": share_link(song), "share_token": song.share_token})


@songs_bp.route("/share/<token>", methods=["GET"])
def public_song(token):
    """
    Landing page data for a share link.
    Without an approved email only the title and songwriter are revealed.
    """
    song = get_song_by_token(token)
    email = (request.args.get("email") or "").strip().lower()

    if not email:
        return jsonify({"song": serialize_song(song, full=False), "requires_verification": True})

    member = approved_membership(song, email=email)
    if member is None:
        return jsonify({
            "error": "You do not have access to this song yet.",
            "song": serialize_song(song, full=False),
            "requires_verification": True,
        }), 403

    return jsonify({"song": serialize_song(song), "requires_verification": False, "member_id": member.id})
