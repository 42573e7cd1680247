from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.types import DateTime
from sqlalchemy import MetaData, event
from sqlalchemy.engine import Engine
from datetime import datetime
from typing import NamedTuple
import sqlite3
import pytz

### stable constraint naming ###
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s__%(column_0_name)s",
    "ck": "ck_%(table_name)s__%(constraint_name)s",
    "fk": "fk_%(table_name)s__%(column_0_name)s__%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
db = SQLAlchemy(metadata=MetaData(naming_convention=convention))

MEMBERSHIP_STATUSES = ("pending", "approved", "rejected")
CONTACT_PREFERENCES = ("email", "sms", "whatsapp")
VISIBILITIES = ("private", "group")
USER_ROLES = ("songwriter", "sounding_board_member", "admin")


def utcnow():
    return datetime.utcnow().replace(tzinfo=pytz.utc)


def as_utc(dt):
    # sqlite hands back naive datetimes even for timezone=True columns
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=pytz.utc)
    return dt.astimezone(pytz.utc)


# sqlite ignores ON DELETE unless foreign keys are switched on per connection
@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Comment authors: either the registered user (songwriter) or a sounding board member row
class UserAuthor(NamedTuple):
    id: int


class MemberAuthor(NamedTuple):
    id: int


# Stores all SongSlab users (songwriters and registered sounding board members)
class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password = db.Column(db.String(200), nullable=False)
    role = db.Column(db.Enum(*USER_ROLES, name="user_role"), nullable=False, default="songwriter")
    profile_image = db.Column(db.String(500), nullable=True)
    created_at = db.Column(DateTime(timezone=True), nullable=False, default=utcnow)

    songs = db.relationship('Song', back_populates='owner', foreign_keys='Song.user_id')
    tokens = db.relationship('PersonalAccessToken', back_populates='user', cascade='all, delete-orphan')

    @property
    def is_songwriter(self):
        return self.role in ("songwriter", "admin")

    def __repr__(self):
        return f"<User {self.username}>"


# Bearer credentials; only the sha256 of the plaintext token is stored
class PersonalAccessToken(db.Model):
    __tablename__ = 'personal_access_tokens'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False, default='auth_token')
    token = db.Column(db.String(64), unique=True, nullable=False)
    expires_at = db.Column(DateTime(timezone=True), nullable=True)
    last_used_at = db.Column(DateTime(timezone=True), nullable=True)
    created_at = db.Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship('User', back_populates='tokens')


# topics a songwriter asks the sounding board about, per song
song_feedback_requests = db.Table(
    'song_feedback_requests',
    db.Column('song_id', db.Integer, db.ForeignKey('songs.id', ondelete='CASCADE'), primary_key=True),
    db.Column('feedback_topic_id', db.Integer, db.ForeignKey('feedback_topics.id', ondelete='CASCADE'), primary_key=True),
)


class Song(db.Model):
    __tablename__ = 'songs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    development_stage = db.Column(db.String(50), nullable=True)
    custom_feedback_request = db.Column(db.Text, nullable=True)
    share_token = db.Column(db.String(64), unique=True, nullable=True)
    created_at = db.Column(DateTime(timezone=True), nullable=False, default=utcnow)
    deleted_at = db.Column(DateTime(timezone=True), nullable=True)

    owner = db.relationship('User', back_populates='songs', foreign_keys=[user_id])
    sounding_board_members = db.relationship(
        'SoundingBoardMember', back_populates='song',
        cascade='all, delete-orphan', passive_deletes=True,
    )
    feedback_topics = db.relationship('FeedbackTopic', secondary=song_feedback_requests, order_by='FeedbackTopic.order')

    @classmethod
    def active(cls):
        return cls.query.filter(cls.deleted_at.is_(None))

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def __repr__(self):
        return f"<Song {self.id} {self.title!r}>"


# Reference data: the questions a songwriter can ask the sounding board about
class FeedbackTopic(db.Model):
    __tablename__ = 'feedback_topics'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), unique=True, nullable=False)
    label = db.Column(db.Text, nullable=False)
    order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<FeedbackTopic {self.key}>"


# One row per (song, contact) access relationship
class SoundingBoardMember(db.Model):
    __tablename__ = 'sounding_board_members'

    id = db.Column(db.Integer, primary_key=True)
    song_id = db.Column(db.Integer, db.ForeignKey('songs.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=True, index=True)  # null until they register
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True, index=True)
    phone = db.Column(db.String(20), nullable=True)
    contact_preference = db.Column(db.Enum(*CONTACT_PREFERENCES, name="contact_preference"), nullable=False, default="email")
    status = db.Column(db.Enum(*MEMBERSHIP_STATUSES, name="membership_status"), nullable=False, default="pending", index=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    requested_at = db.Column(DateTime(timezone=True), nullable=False, default=utcnow)
    responded_at = db.Column(DateTime(timezone=True), nullable=True)
    responded_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    song = db.relationship('Song', back_populates='sounding_board_members')
    user = db.relationship('User', foreign_keys=[user_id])
    responder = db.relationship('User', foreign_keys=[responded_by])

    # one request per email per song
    __table_args__ = (
        db.UniqueConstraint('song_id', 'email', name='uq_sounding_board_members__song_email'),
    )

    @property
    def is_pending(self):
        return self.status == "pending"

    @property
    def is_approved(self):
        return self.status == "approved"

    def __repr__(self):
        return f"<SoundingBoardMember song_id={self.song_id}, email={self.email}, status={self.status}>"


# Threaded discussion entries, stored flat and linked by parent_id
class Comment(db.Model):
    __tablename__ = 'comments'

    id = db.Column(db.Integer, primary_key=True)
    song_id = db.Column(db.Integer, db.ForeignKey('songs.id', ondelete='CASCADE'), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey('comments.id', ondelete='CASCADE'), nullable=True, index=True)
    depth = db.Column(db.Integer, nullable=False, default=0)
    author_kind = db.Column(db.String(10), nullable=False)  # 'user' or 'member'
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=True, index=True)
    sounding_board_member_id = db.Column(
        db.Integer, db.ForeignKey('sounding_board_members.id', ondelete='CASCADE'), nullable=True, index=True
    )
    feedback_topic_id = db.Column(db.Integer, db.ForeignKey('feedback_topics.id', ondelete='SET NULL'), nullable=True)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(DateTime(timezone=True), nullable=False, default=utcnow)

    feedback_topic = db.relationship('FeedbackTopic')

    __table_args__ = (
        db.CheckConstraint(
            "(author_kind = 'user' AND user_id IS NOT NULL AND sounding_board_member_id IS NULL) OR "
            "(author_kind = 'member' AND sounding_board_member_id IS NOT NULL AND user_id IS NULL)",
            name='single_author',
        ),
        db.CheckConstraint(
            "(parent_id IS NULL AND depth = 0) OR (parent_id IS NOT NULL AND depth > 0)",
            name='depth_matches_parent',
        ),
        db.Index('ix_comments_song_parent', 'song_id', 'parent_id'),
        db.Index('ix_comments_song_created', 'song_id', 'created_at'),
    )

    @property
    def author(self):
        if self.author_kind == "user":
            return UserAuthor(self.user_id)
        return MemberAuthor(self.sounding_board_member_id)

    @author.setter
    def author(self, value):
        if isinstance(value, UserAuthor):
            self.author_kind = "user"
            self.user_id = value.id
            self.sounding_board_member_id = None
        elif isinstance(value, MemberAuthor):
            self.author_kind = "member"
            self.sounding_board_member_id = value.id
            self.user_id = None
        else:
            raise TypeError(f"unsupported comment author: {value!r}")

    def __repr__(self):
        return f"<Comment {self.id} song={self.song_id} parent={self.parent_id} depth={self.depth}>"


# Structured feedback ledger: one row per (song, member, topic)
class FeedbackEntry(db.Model):
    __tablename__ = 'feedback_entries'

    id = db.Column(db.Integer, primary_key=True)
    song_id = db.Column(db.Integer, db.ForeignKey('songs.id', ondelete='CASCADE'), nullable=False, index=True)
    sounding_board_member_id = db.Column(
        db.Integer, db.ForeignKey('sounding_board_members.id', ondelete='CASCADE'), nullable=False, index=True
    )
    feedback_topic_id = db.Column(db.Integer, db.ForeignKey('feedback_topics.id', ondelete='CASCADE'), nullable=False)
    content = db.Column(db.Text, nullable=False)
    visibility = db.Column(db.Enum(*VISIBILITIES, name="feedback_visibility"), nullable=False, default="private")
    created_at = db.Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    song = db.relationship('Song')
    sounding_board_member = db.relationship('SoundingBoardMember')
    feedback_topic = db.relationship('FeedbackTopic')

    __table_args__ = (
        db.UniqueConstraint(
            'song_id', 'sounding_board_member_id', 'feedback_topic_id',
            name='uq_feedback_entries__song_member_topic',
        ),
    )
