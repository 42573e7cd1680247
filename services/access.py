# services/access.py

"""
Who may see a song and take part in its discussion.

A principal is either an authenticated User or a bare email address (an
invitee who has not registered yet). The owner always passes; anyone else
needs an approved sounding board membership matched by linked user id OR raw
email, since members can interact before their account is linked.
"""

from sqlalchemy import or_
from models import Song, SoundingBoardMember
from services.errors import NotFound, Forbidden


def get_song(song_id):
    """Live (not soft-deleted) song or NotFound."""
    song = Song.active().filter(Song.id == song_id).first()
    if not song:
        raise NotFound("Song not found")
    return song


def get_owned_song(song_id, owner, include_deleted=False):
    query = Song.query if include_deleted else Song.active()
    song = query.filter(Song.id == song_id, Song.user_id == owner.id).first()
    if not song:
        raise NotFound("Song not found")
    return song


def get_song_by_token(share_token):
    song = None
    if share_token:
        song = Song.active().filter(Song.share_token == share_token).first()
    if not song:
        raise NotFound("Song not found or link is invalid")
    return song


def approved_membership(song, user=None, email=None):
    """The approved membership granting access to song, or None."""
    matchers = []
    if user is not None:
        matchers.append(SoundingBoardMember.user_id == user.id)
        if user.email:
            matchers.append(SoundingBoardMember.email == user.email)
    elif email:
        matchers.append(SoundingBoardMember.email == email)
    if not matchers:
        return None

    return (SoundingBoardMember.query
        .filter(SoundingBoardMember.song_id == song.id)
        .filter(SoundingBoardMember.status == "approved")
        .filter(or_(*matchers))
        .order_by(SoundingBoardMember.id.asc())
        .first())


def is_owner(song, user):
    return user is not None and song.user_id == user.id


def has_access(song, user=None, email=None):
    if is_owner(song, user):
        return True
    return approved_membership(song, user=user, email=email) is not None


def require_access(song, user=None, email=None):
    """
    Returns the caller's role on the song: 'songwriter' or
    'sounding_board_member' (with the membership). Raises Forbidden otherwise.
    """
    if is_owner(song, user):
        return "songwriter", None
    membership = approved_membership(song, user=user, email=email)
    if membership is None:
        raise Forbidden("You do not have access to this song")
    return "sounding_board_member", membership
