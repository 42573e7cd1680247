# services/feedback.py

"""
Structured feedback ledger: one answer per (song, member, topic).

This is the per-topic form flow that predates threaded discussion. Entries are
upserted by topic and carry a private/group visibility flag the songwriter
controls. The comment content filter is deliberately not applied here.
"""

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from models import db, FeedbackEntry, FeedbackTopic, SoundingBoardMember, VISIBILITIES
from services.access import get_song, get_song_by_token, get_owned_song, require_access
from services.errors import Forbidden, NotFound, ValidationFailed
from utils.helpers import is_valid_email, iso

MAX_CONTENT_LENGTH = 2000


def _validate_submission(share_token, email, items):
    errors = {}
    if not isinstance(share_token, str) or not share_token:
        errors["share_token"] = ["The share token field is required."]
    if not isinstance(email, str) or not is_valid_email(email):
        errors["email"] = ["The email must be a valid email address."]
    if not isinstance(items, list) or not items:
        errors["feedback_items"] = ["The feedback items field must be a non-empty list."]
        raise ValidationFailed(errors=errors)

    topic_ids = set()
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            errors[f"feedback_items.{i}"] = ["Each feedback item must be an object."]
            continue
        topic_id = item.get("feedback_topic_id")
        content = item.get("content")
        if not isinstance(topic_id, int) or isinstance(topic_id, bool):
            errors[f"feedback_items.{i}.feedback_topic_id"] = ["The feedback topic id field is required."]
        else:
            topic_ids.add(topic_id)
        if not isinstance(content, str) or not content.strip():
            errors[f"feedback_items.{i}.content"] = ["The content field is required."]
        elif len(content) > MAX_CONTENT_LENGTH:
            errors[f"feedback_items.{i}.content"] = [f"The content may not be greater than {MAX_CONTENT_LENGTH} characters."]

    if topic_ids:
        known = {t.id for t in FeedbackTopic.query.filter(FeedbackTopic.id.in_(topic_ids))}
        for i, item in enumerate(items):
            if isinstance(item, dict) and item.get("feedback_topic_id") in topic_ids - known:
                errors[f"feedback_items.{i}.feedback_topic_id"] = ["The selected feedback topic id is invalid."]

    if errors:
        raise ValidationFailed(errors=errors)


def _upsert_items(song, member, items):
    existing = {
        e.feedback_topic_id: e
        for e in FeedbackEntry.query.filter_by(song_id=song.id, sounding_board_member_id=member.id)
    }
    for item in items:
        entry = existing.get(item["feedback_topic_id"])
        if entry:
            entry.content = item["content"]
        else:
            entry = FeedbackEntry(
                song_id=song.id,
                sounding_board_member_id=member.id,
                feedback_topic_id=item["feedback_topic_id"],
                content=item["content"],
                visibility="private",  # songwriter can share it with the group later
            )
            db.session.add(entry)
            existing[entry.feedback_topic_id] = entry
    db.session.commit()


def submit_feedback(share_token, email, items):
    """
    Record an approved member's per-topic answers.
    Inputs:
        - share_token: the song's share token
        - email: the member's email on the sounding board
        - items: [{"feedback_topic_id": int, "content": str}, ...]
    Outputs:
        - number of items written (not the member's total rows)
    Raises:
        - ValidationFailed, NotFound (bad token), Forbidden (not an approved member)
    """
    _validate_submission(share_token, email, items)
    song = get_song_by_token(share_token)

    member = (SoundingBoardMember.query
        .filter_by(song_id=song.id, email=email, status="approved")
        .first())
    if not member:
        raise Forbidden("You are not authorized to provide feedback for this song")

    try:
        _upsert_items(song, member, items)
    except IntegrityError:
        # a concurrent submission inserted the same topic first; retry as updates
        db.session.rollback()
        _upsert_items(song, member, items)

    current_app.logger.info(
        "Feedback submitted: song_id=%s member_id=%s items=%s", song.id, member.id, len(items)
    )
    return len(items)


def set_visibility(song_id, entry_id, owner, visibility):
    if visibility not in VISIBILITIES:
        raise ValidationFailed(errors={"visibility": ["The selected visibility is invalid."]})

    song = get_owned_song(song_id, owner)
    entry = FeedbackEntry.query.filter_by(id=entry_id, song_id=song.id).first()
    if not entry:
        raise NotFound("Feedback not found")

    entry.visibility = visibility
    db.session.commit()
    current_app.logger.info("Feedback visibility: entry_id=%s visibility=%s", entry.id, visibility)
    return entry


def list_feedback(song_id, user):
    """Owner sees every entry; an approved member sees group entries plus their own."""
    song = get_song(song_id)
    role, membership = require_access(song, user=user)

    query = FeedbackEntry.query.filter(FeedbackEntry.song_id == song.id)
    if role != "songwriter":
        query = query.filter(or_(
            FeedbackEntry.visibility == "group",
            FeedbackEntry.sounding_board_member_id == membership.id,
        ))
    entries = query.order_by(FeedbackEntry.created_at.desc(), FeedbackEntry.id.desc()).all()
    return song, role, entries


def serialize_entry(entry):
    member = entry.sounding_board_member
    topic = entry.feedback_topic
    return {
        "id": entry.id,
        "song_id": entry.song_id,
        "content": entry.content,
        "visibility": entry.visibility,
        "created_at": iso(entry.created_at),
        "updated_at": iso(entry.updated_at),
        "sounding_board_member": {"id": member.id, "name": member.name} if member else None,
        "feedback_topic": {"id": topic.id, "key": topic.key, "label": topic.label} if topic else None,
    }
