import pytest
from app import create_app
from models import db, User, Song, SoundingBoardMember, FeedbackTopic, utcnow
from utils.auth import hash_password, issue_token
from utils.helpers import generate_share_token

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    "MAIL_SUPPRESS_SEND": True,
    "BCRYPT_LOG_ROUNDS": 4,
    "AUTO_APPROVE_MEMBERSHIP": False,
    "CONTENT_FILTER_BLOCK_PROFANITY": True,
    "FRONTEND_URL": "http://songslab.test",
    "TOKEN_TTL_HOURS": 24,
}


@pytest.fixture
def app():
    app = create_app(dict(TEST_CONFIG))
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(username, role="songwriter", email=None, name=None, password="secret123"):
        user = User(
            username=username,
            name=name or username.title(),
            email=email or f"{username}@example.com",
            password=hash_password(password),
            role=role,
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def songwriter(make_user):
    return make_user("writer", name="Wendy Writer")


@pytest.fixture
def make_song(app):
    def _make(owner, title="Midnight Drive"):
        song = Song(user_id=owner.id, title=title, share_token=generate_share_token())
        db.session.add(song)
        db.session.commit()
        return song
    return _make


@pytest.fixture
def song(songwriter, make_song):
    return make_song(songwriter)


@pytest.fixture
def make_member(app):
    def _make(song, email, status="approved", name="Sam Listener", user=None):
        member = SoundingBoardMember(
            song_id=song.id,
            user_id=user.id if user else None,
            name=name,
            email=email,
            contact_preference="email",
            status=status,
            requested_at=utcnow(),
            responded_at=utcnow() if status != "pending" else None,
        )
        db.session.add(member)
        db.session.commit()
        return member
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        plain, _ = issue_token(user)
        return {"Authorization": f"Bearer {plain}"}
    return _headers


@pytest.fixture
def topics(app):
    rows = [
        FeedbackTopic(key="lyrics", label="Lyrics", order=1),
        FeedbackTopic(key="melodies", label="Melodies", order=2),
        FeedbackTopic(key="mix", label="The mix", order=3),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows
