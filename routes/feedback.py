# routes/feedback.py

from flask import Blueprint, g, jsonify, request
from services import feedback
from services.topics import active_topics, serialize_topic
from utils.auth import songwriter_required, token_required

feedback_bp = Blueprint("feedback", __name__)


@feedback_bp.route("/feedback-topics", methods=["GET"])
def list_topics():
    return jsonify({"topics": [serialize_topic(t) for t in active_topics()]})


@feedback_bp.route("/feedback", methods=["POST"])
def submit():
    """
    Per-topic answers from an approved sounding board member.
    Inputs (JSON): share_token, email, feedback_items [{feedback_topic_id, content}]
    Outputs: 201 {message, feedback_count}
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    if isinstance(email, str):
        email = email.strip().lower()
    count = feedback.submit_feedback(data.get("share_token"), email, data.get("feedback_items"))
    return jsonify({"message": "Feedback submitted successfully", "feedback_count": count}), 201


@feedback_bp.route("/songs/<int:song_id>/feedback", methods=["GET"])
@token_required
def song_feedback(song_id):
    song, role, entries = feedback.list_feedback(song_id, g.current_user)
    return jsonify({
        "song": {"id": song.id, "title": song.title},
        "user_role": role,
        "feedback": [feedback.serialize_entry(e) for e in entries],
    })


@feedback_bp.route("/songs/<int:song_id>/feedback/<int:feedback_id>/visibility", methods=["PATCH"])
@songwriter_required
def update_visibility(song_id, feedback_id):
    data = request.get_json(silent=True) or {}
    entry = feedback.set_visibility(song_id, feedback_id, g.current_user, data.get("visibility"))
    return jsonify({"feedback": feedback.serialize_entry(entry)})
