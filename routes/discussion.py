# routes/discussion.py

from flask import Blueprint, g, jsonify, request
from services import discussion
from utils.auth import token_required
from utils.helpers import int_arg

discussion_bp = Blueprint("discussion", __name__)


@discussion_bp.route("/songs/<int:song_id>/discussions", methods=["GET"])
@token_required
def list_discussions(song_id):
    limit = int_arg(request.args, "limit", discussion.DEFAULT_PAGE_SIZE, minimum=1, maximum=discussion.MAX_PAGE_SIZE)
    offset = int_arg(request.args, "offset", 0)
    return jsonify(discussion.list_discussion(song_id, g.current_user, limit=limit, offset=offset))


@discussion_bp.route("/songs/<int:song_id>/discussions", methods=["POST"])
@token_required
def create_discussion(song_id):
    """
    Post a root comment or a reply.
    Inputs (JSON): content, parent_id?, feedback_topic_id?
    Outputs: 201 {comment}
    """
    data = request.get_json(silent=True) or {}
    comment = discussion.post_comment(
        song_id,
        g.current_user,
        data.get("content"),
        parent_id=data.get("parent_id"),
        topic_id=data.get("feedback_topic_id"),
    )
    return jsonify({"comment": comment}), 201
