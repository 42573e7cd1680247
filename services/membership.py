# services/membership.py

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from models import db, Song, SoundingBoardMember, User, utcnow
from services.errors import NotFound, DuplicateRequest, InvalidTransition, ValidationFailed
from utils.helpers import share_link, iso
from utils.mailer import send_email, render_email

MAX_REJECTION_REASON = 500


# --- Notifications (best effort, always after commit) -------------------------

def _notify(to_email, to_name, subject, template, **context):
    """
    Render and send; a mail failure is logged and swallowed, never raised.
    Callers pass plain values only: the session transaction is closed here so
    no connection is held while the SMTP relay answers.
    """
    db.session.commit()
    if not to_email:
        return False
    try:
        html = render_email(template, **context)
        send_email(to_email, subject, html, to_name=to_name)
        return True
    except Exception as e:
        current_app.logger.error("Failed to send %s email to %s: %s", template, to_email, e)
        return False


def _notify_owner_of_request(member):
    song = member.song
    dashboard_url = current_app.config.get("FRONTEND_URL", "").rstrip("/") + "/songwriter-dashboard"
    return _notify(
        song.owner.email, song.owner.name,
        f"New Sounding Board request for \"{song.title}\" - SongSlab",
        "access_request.html",
        songwriter_name=song.owner.name, member_name=member.name,
        song_title=song.title, dashboard_url=dashboard_url,
    )


def _notify_member_welcome(member):
    song = member.song
    return _notify(
        member.email, member.name,
        f"Welcome to {song.owner.name}'s Sounding Board - SongSlab",
        "welcome.html",
        member_name=member.name, songwriter_name=song.owner.name,
        song_title=song.title, share_link=share_link(song),
    )


def _notify_member_approved(member):
    song = member.song
    return _notify(
        member.email, member.name,
        f"Access Approved for \"{song.title}\" - SongSlab",
        "access_approved.html",
        member_name=member.name, songwriter_name=song.owner.name,
        song_title=song.title, share_link=share_link(song),
    )


# --- State machine -----------------------------------------------------------

def request_access(song, name, email, contact_preference="email", phone=None):
    """
    Open a membership for (song, email).
    Inputs:
        - song: live Song resolved from its share token
        - name, email, contact_preference, phone: contact info (already validated)
    Outputs:
        - the new SoundingBoardMember (pending, or approved when
          AUTO_APPROVE_MEMBERSHIP is on)
    Side Effects:
        - emails the owner (pending) or the requester (auto-approved)
    Raises:
        - DuplicateRequest if (song, email) already has a membership
    """
    existing = SoundingBoardMember.query.filter_by(song_id=song.id, email=email).first()
    if existing:
        raise DuplicateRequest(member=existing)

    auto_approve = bool(current_app.config.get("AUTO_APPROVE_MEMBERSHIP", False))
    now = utcnow()
    member = SoundingBoardMember(
        song_id=song.id,
        user_id=None,  # linked later once they register
        name=name,
        email=email,
        phone=phone,
        contact_preference=contact_preference,
        status="approved" if auto_approve else "pending",
        requested_at=now,
    )
    if auto_approve:
        member.responded_at = now
        member.responded_by = song.user_id

    db.session.add(member)
    try:
        db.session.commit()
    except IntegrityError:
        # lost the race against a concurrent request for the same email
        db.session.rollback()
        raise DuplicateRequest(member=SoundingBoardMember.query.filter_by(song_id=song.id, email=email).first())

    current_app.logger.info(
        "Access requested: member_id=%s song_id=%s status=%s", member.id, song.id, member.status
    )

    if auto_approve:
        _notify_member_welcome(member)
    else:
        _notify_owner_of_request(member)
    return member


def _lock_owned_member(member_id, owner):
    """Row-locked membership on one of owner's live songs, or NotFound."""
    member = (SoundingBoardMember.query
        .filter(SoundingBoardMember.id == member_id)
        .populate_existing()
        .with_for_update()
        .first())
    if not member or member.song.user_id != owner.id or member.song.is_deleted:
        db.session.rollback()
        raise NotFound("Request not found")
    return member


def _ensure_pending(member):
    if member.status != "pending":
        db.session.rollback()
        raise InvalidTransition("This request has already been responded to")


def approve(member_id, responder):
    member = _lock_owned_member(member_id, responder)
    _ensure_pending(member)

    member.status = "approved"
    member.responded_at = utcnow()
    member.responded_by = responder.id
    db.session.commit()
    current_app.logger.info("Access approved: member_id=%s by user_id=%s", member.id, responder.id)

    _notify_member_approved(member)
    return member


def reject(member_id, responder, reason=None):
    if reason is not None and len(reason) > MAX_REJECTION_REASON:
        raise ValidationFailed(errors={"reason": [f"The reason may not be greater than {MAX_REJECTION_REASON} characters."]})

    member = _lock_owned_member(member_id, responder)
    _ensure_pending(member)

    member.status = "rejected"
    member.rejection_reason = reason
    member.responded_at = utcnow()
    member.responded_by = responder.id
    db.session.commit()
    current_app.logger.info("Access rejected: member_id=%s by user_id=%s", member.id, responder.id)
    return member


def remove(member_id, owner):
    """Hard delete regardless of status; comments and ledger rows cascade."""
    member = _lock_owned_member(member_id, owner)
    db.session.delete(member)
    db.session.commit()
    current_app.logger.info("Member removed: member_id=%s by user_id=%s", member_id, owner.id)


# --- Account linking -----------------------------------------------------------

def link_members_to_users(email=None):
    """
    Bind memberships that have an email but no user to the registered user
    with that email. Only ever links; safe to re-run.
    Returns the number of memberships linked.
    """
    query = (SoundingBoardMember.query
        .filter(SoundingBoardMember.user_id.is_(None))
        .filter(SoundingBoardMember.email.isnot(None)))
    if email:
        query = query.filter(SoundingBoardMember.email == email)

    linked = 0
    for member in query.all():
        user = User.query.filter_by(email=member.email).first()
        if user:
            member.user_id = user.id
            linked += 1
            current_app.logger.info(
                "Linked member #%s (%s) to user #%s (%s)", member.id, member.email, user.id, user.username
            )
    db.session.commit()
    return linked


# --- Reads ---------------------------------------------------------------------

def check_access(song, email):
    member = SoundingBoardMember.query.filter_by(song_id=song.id, email=email).first()
    if not member:
        return {"has_request": False, "status": None}
    return {
        "has_request": True,
        "status": member.status,
        "requested_at": iso(member.requested_at),
        "responded_at": iso(member.responded_at),
        "rejection_reason": member.rejection_reason,
    }


def _counts(members):
    counts = {"total": len(members)}
    for status in ("pending", "approved", "rejected"):
        counts[status] = sum(1 for m in members if m.status == status)
    return counts


def members_for_owner(owner):
    members = (SoundingBoardMember.query
        .join(Song, Song.id == SoundingBoardMember.song_id)
        .filter(Song.user_id == owner.id, Song.deleted_at.is_(None))
        .order_by(SoundingBoardMember.requested_at.desc(), SoundingBoardMember.id.desc())
        .all())
    grouped = {status: [m for m in members if m.status == status] for status in ("pending", "approved", "rejected")}
    return members, grouped, _counts(members)


def members_for_song(song):
    members = (SoundingBoardMember.query
        .filter(SoundingBoardMember.song_id == song.id)
        .order_by(SoundingBoardMember.requested_at.desc(), SoundingBoardMember.id.desc())
        .all())
    return members, _counts(members)


def approved_songs_for(user, page=1, per_page=6):
    """Songs user may give feedback on, matched by linked id or email."""
    query = (SoundingBoardMember.query
        .join(Song, Song.id == SoundingBoardMember.song_id)
        .filter(Song.deleted_at.is_(None))
        .filter(SoundingBoardMember.status == "approved")
        .filter(or_(SoundingBoardMember.user_id == user.id, SoundingBoardMember.email == user.email))
        .order_by(SoundingBoardMember.responded_at.desc(), SoundingBoardMember.id.desc()))
    return query.paginate(page=page, per_page=per_page, error_out=False)


def serialize_member(member, include_song=True):
    data = {
        "id": member.id,
        "song_id": member.song_id,
        "user_id": member.user_id,
        "name": member.name,
        "email": member.email,
        "phone": member.phone,
        "contact_preference": member.contact_preference,
        "status": member.status,
        "rejection_reason": member.rejection_reason,
        "requested_at": iso(member.requested_at),
        "responded_at": iso(member.responded_at),
        "responded_by": member.responded_by,
    }
    if include_song and member.song is not None:
        data["song"] = {"id": member.song.id, "title": member.song.title}
    if member.user is not None:
        data["user"] = {"id": member.user.id, "name": member.user.name, "email": member.user.email}
    return data
