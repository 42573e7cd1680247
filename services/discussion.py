# services/discussion.py

"""
Threaded discussion on a song.

Comments live in one flat table linked by parent_id. Trees are materialized
for reads with a breadth-first walk keyed by parent id (one query per level),
so nothing here recurses over live ORM objects. depth is recomputed from the
parent on every insert and never taken from the client.
"""

from flask import current_app
from models import db, Comment, FeedbackTopic, SoundingBoardMember, User, UserAuthor, MemberAuthor
from services.access import get_song, require_access
from services.errors import ContentRejected, ValidationFailed
from utils import content_filter
from utils.helpers import iso

MAX_CONTENT_LENGTH = 2000
DEFAULT_PAGE_SIZE = 3
MAX_PAGE_SIZE = 50


def _newest_first(query):
    return query.order_by(Comment.created_at.desc(), Comment.id.desc())


# --- Write path ----------------------------------------------------------------

def _validate_content(content):
    if not isinstance(content, str) or not content.strip():
        raise ValidationFailed(errors={"content": ["The content field is required."]})
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationFailed(errors={"content": [f"The content may not be greater than {MAX_CONTENT_LENGTH} characters."]})

    verdict = content_filter.validate(
        content, block_profanity=current_app.config.get("CONTENT_FILTER_BLOCK_PROFANITY", True)
    )
    if not verdict.valid:
        raise ContentRejected(verdict.reason)


def _is_id(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _resolve_parent(song, parent_id):
    """Returns (parent_id, depth) for a new comment."""
    if parent_id is None:
        return None, 0
    if not _is_id(parent_id):
        raise ValidationFailed(errors={"parent_id": ["The parent id must be an integer."]})
    parent = db.session.get(Comment, parent_id)
    # a parent that vanished or belongs to another song must fail the insert, not fall back to root
    if parent is None or parent.song_id != song.id:
        raise ValidationFailed(errors={"parent_id": ["The selected parent id is invalid."]})
    return parent.id, parent.depth + 1


def _resolve_topic(topic_id):
    if topic_id is None:
        return None
    if not _is_id(topic_id):
        raise ValidationFailed(errors={"feedback_topic_id": ["The feedback topic id must be an integer."]})
    if not db.session.get(FeedbackTopic, topic_id):
        raise ValidationFailed(errors={"feedback_topic_id": ["The selected feedback topic id is invalid."]})
    return topic_id


def post_comment(song_id, user, content, parent_id=None, topic_id=None):
    """
    Add a root comment or a reply.
    Inputs:
        - song_id: target song
        - user: authenticated User (owner or approved member)
        - content: comment text, 1-2000 chars, must pass the content filter
        - parent_id: comment being replied to (same song), or None for a root
        - topic_id: feedback topic, kept only on root comments
    Outputs:
        - the created comment as a dict with author display data
    Raises:
        - NotFound, Forbidden, ValidationFailed, ContentRejected
    """
    song = get_song(song_id)
    role, membership = require_access(song, user=user)
    _validate_content(content)

    parent_id, depth = _resolve_parent(song, parent_id)
    # topics only mean something on roots; replies never carry one
    topic_id = _resolve_topic(topic_id) if parent_id is None else None

    comment = Comment(
        song_id=song.id,
        parent_id=parent_id,
        depth=depth,
        feedback_topic_id=topic_id,
        content=content,
    )
    comment.author = UserAuthor(user.id) if role == "songwriter" else MemberAuthor(membership.id)
    db.session.add(comment)
    db.session.commit()

    current_app.logger.info(
        "Comment created: id=%s song_id=%s parent_id=%s depth=%s", comment.id, song.id, comment.parent_id, comment.depth
    )
    authors = _load_authors([comment])
    return _serialize(comment, authors, replies=[])


# --- Read path -----------------------------------------------------------------

def count_roots(song_id):
    return Comment.query.filter(Comment.song_id == song_id, Comment.parent_id.is_(None)).count()


def _fetch_trees(song_id, limit, offset):
    """
    One page of root comments plus every descendant.
    Returns (roots, children_by_parent) with each list newest-first.
    """
    roots = (_newest_first(Comment.query
        .filter(Comment.song_id == song_id, Comment.parent_id.is_(None)))
        .offset(offset)
        .limit(limit)
        .all())

    children_by_parent = {}
    frontier = [c.id for c in roots]
    while frontier:
        level = _newest_first(Comment.query
            .filter(Comment.song_id == song_id, Comment.parent_id.in_(frontier))).all()
        for child in level:
            children_by_parent.setdefault(child.parent_id, []).append(child)
        frontier = [c.id for c in level]
    return roots, children_by_parent


def list_discussion(song_id, user, limit=DEFAULT_PAGE_SIZE, offset=0):
    """
    Paginate root comments (newest first) with full reply subtrees.
    Replies are never paginated; a big thread comes back whole.
    """
    song = get_song(song_id)
    role, _ = require_access(song, user=user)

    total_count = count_roots(song.id)
    roots, children_by_parent = _fetch_trees(song.id, limit, offset)

    everything = list(roots)
    for children in children_by_parent.values():
        everything.extend(children)
    authors = _load_authors(everything)

    discussions = [_build_tree(root, children_by_parent, authors) for root in roots]
    return {
        "discussions": discussions,
        "total_count": total_count,
        "has_more": offset + len(roots) < total_count,
        "song": {
            "id": song.id,
            "title": song.title,
            "user": {"id": song.owner.id, "name": song.owner.name},
        },
        "user_role": role,
    }


def _build_tree(root, children_by_parent, authors):
    # iterative post-order so deep chains never hit the recursion limit
    built = {}
    stack = [(root, False)]
    while stack:
        comment, expanded = stack.pop()
        children = children_by_parent.get(comment.id, [])
        if expanded:
            built[comment.id] = _serialize(comment, authors, replies=[built[c.id] for c in children])
        else:
            stack.append((comment, True))
            stack.extend((c, False) for c in children)
    return built[root.id]


# --- Author display --------------------------------------------------------------

def _load_authors(comments):
    """Batch-load users and members referenced by comments."""
    user_ids = {c.user_id for c in comments if c.author_kind == "user"}
    member_ids = {c.sounding_board_member_id for c in comments if c.author_kind == "member"}

    members = {}
    if member_ids:
        members = {m.id: m for m in SoundingBoardMember.query.filter(SoundingBoardMember.id.in_(member_ids))}
        user_ids |= {m.user_id for m in members.values() if m.user_id}

    users = {}
    if user_ids:
        users = {u.id: u for u in User.query.filter(User.id.in_(user_ids))}
    return {"users": users, "members": members}


def author_display(author, authors):
    """
    Name/avatar for a comment author. A member who has since registered shows
    their profile; otherwise the name they gave when requesting access.
    """
    if isinstance(author, UserAuthor):
        user = authors["users"].get(author.id)
        return {
            "type": "songwriter",
            "user_id": author.id,
            "name": user.name if user else None,
            "profile_image": user.profile_image if user else None,
        }

    member = authors["members"].get(author.id)
    linked = authors["users"].get(member.user_id) if member and member.user_id else None
    return {
        "type": "sounding_board_member",
        "sounding_board_member_id": author.id,
        "user_id": linked.id if linked else None,
        "name": linked.name if linked else (member.name if member else None),
        "profile_image": linked.profile_image if linked else None,
    }


def _serialize(comment, authors, replies):
    data = {
        "id": comment.id,
        "song_id": comment.song_id,
        "parent_id": comment.parent_id,
        "depth": comment.depth,
        "feedback_topic_id": comment.feedback_topic_id,
        "feedback_topic": (
            {"id": comment.feedback_topic.id, "key": comment.feedback_topic.key, "label": comment.feedback_topic.label}
            if comment.feedback_topic_id and comment.feedback_topic else None
        ),
        "content": comment.content,
        "created_at": iso(comment.created_at),
        "author": author_display(comment.author, authors),
    }
    if replies is not None:
        data["replies"] = replies
    return data
