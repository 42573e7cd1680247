import pytest
from models import db, User, SoundingBoardMember, Comment, FeedbackEntry
from services import membership
from services.errors import DuplicateRequest, InvalidTransition, NotFound
from utils.auth import hash_password


def request_body(**overrides):
    body = {"name": "Sam Listener", "email": "sam@example.com", "contact_preference": "email"}
    body.update(overrides)
    return body


# --- request / check access -------------------------------------------------

def test_request_access_creates_pending_member(client, song):
    resp = client.post(f"/share/{song.share_token}/request-access", json=request_body())

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["status"] == "pending"
    assert body["share_link"].endswith(song.share_token)
    member = db.session.get(SoundingBoardMember, body["member_id"])
    assert member.user_id is None
    assert member.responded_at is None


def test_duplicate_request_reports_existing_status(client, song):
    client.post(f"/share/{song.share_token}/request-access", json=request_body())
    resp = client.post(f"/share/{song.share_token}/request-access", json=request_body(name="Sam Again"))

    assert resp.status_code == 409
    assert resp.get_json()["status"] == "pending"
    assert SoundingBoardMember.query.count() == 1


def test_request_access_validation(client, song):
    resp = client.post(f"/share/{song.share_token}/request-access", json={
        "name": "", "email": "nope", "contact_preference": "carrier-pigeon", "phone": "1" * 21,
    })
    assert resp.status_code == 422
    assert set(resp.get_json()["errors"]) == {"name", "email", "contact_preference", "phone"}


def test_request_access_bad_token(client):
    resp = client.post("/share/does-not-exist/request-access", json=request_body())
    assert resp.status_code == 404


def test_auto_approve_policy(app, client, song):
    app.config["AUTO_APPROVE_MEMBERSHIP"] = True
    resp = client.post(f"/share/{song.share_token}/request-access", json=request_body())

    assert resp.get_json()["status"] == "approved"
    member = db.session.get(SoundingBoardMember, resp.get_json()["member_id"])
    assert member.responded_by == song.user_id


def test_mail_failure_does_not_undo_request(client, song, monkeypatch):
    def broken_send(*args, **kwargs):
        raise OSError("smtp down")
    monkeypatch.setattr(membership, "send_email", broken_send)

    resp = client.post(f"/share/{song.share_token}/request-access", json=request_body())
    assert resp.status_code == 201
    assert SoundingBoardMember.query.count() == 1


def test_check_access(client, song, make_member):
    make_member(song, "no@example.com", status="rejected")
    url = f"/share/{song.share_token}/check-access"

    assert client.get(url).status_code == 422
    assert client.get(url, query_string={"email": "who@example.com"}).get_json() == {
        "has_request": False, "status": None,
    }
    body = client.get(url, query_string={"email": "no@example.com"}).get_json()
    assert body["has_request"] is True
    assert body["status"] == "rejected"


# --- approve / reject / remove ----------------------------------------------

def test_approve_then_second_response_fails(client, song, songwriter, make_member, auth_headers):
    member = make_member(song, "sam@example.com", status="pending")
    headers = auth_headers(songwriter)

    resp = client.post(f"/sounding-board/{member.id}/approve", headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["member"]["status"] == "approved"
    assert resp.get_json()["member"]["responded_by"] == songwriter.id

    assert client.post(f"/sounding-board/{member.id}/approve", headers=headers).status_code == 400
    assert client.post(f"/sounding-board/{member.id}/reject", headers=headers).status_code == 400


def test_reject_stores_reason(client, song, songwriter, make_member, auth_headers):
    member = make_member(song, "sam@example.com", status="pending")
    resp = client.post(
        f"/sounding-board/{member.id}/reject", headers=auth_headers(songwriter), json={"reason": "Full up"}
    )

    assert resp.status_code == 200
    assert resp.get_json()["member"]["rejection_reason"] == "Full up"


def test_reject_reason_too_long(client, song, songwriter, make_member, auth_headers):
    member = make_member(song, "sam@example.com", status="pending")
    resp = client.post(
        f"/sounding-board/{member.id}/reject", headers=auth_headers(songwriter), json={"reason": "x" * 501}
    )
    assert resp.status_code == 422
    assert db.session.get(SoundingBoardMember, member.id).status == "pending"


def test_cannot_respond_to_someone_elses_request(client, song, make_user, make_member, auth_headers):
    member = make_member(song, "sam@example.com", status="pending")
    rival = make_user("rival")
    resp = client.post(f"/sounding-board/{member.id}/approve", headers=auth_headers(rival))
    assert resp.status_code == 404


def test_remove_cascades_comments_and_feedback(app, song, songwriter, make_member, topics):
    member = make_member(song, "sam@example.com", status="approved")
    root = Comment(song_id=song.id, depth=0, author_kind="member", sounding_board_member_id=member.id, content="Nice")
    db.session.add(root)
    db.session.flush()
    db.session.add(Comment(song_id=song.id, parent_id=root.id, depth=1, author_kind="user",
                           user_id=songwriter.id, content="Thanks"))
    db.session.add(FeedbackEntry(song_id=song.id, sounding_board_member_id=member.id,
                                 feedback_topic_id=topics[0].id, content="Good words"))
    db.session.commit()

    membership.remove(member.id, songwriter)
    db.session.expire_all()

    assert SoundingBoardMember.query.count() == 0
    assert Comment.query.count() == 0
    assert FeedbackEntry.query.count() == 0


def test_remove_unknown_member(app, songwriter):
    with pytest.raises(NotFound):
        membership.remove(999, songwriter)


def test_service_rejects_duplicate_and_double_response(app, song, songwriter):
    member = membership.request_access(song, "Sam", "sam@example.com")
    with pytest.raises(DuplicateRequest) as exc:
        membership.request_access(song, "Sam", "sam@example.com")
    assert exc.value.member.id == member.id

    membership.reject(member.id, songwriter, reason=None)
    with pytest.raises(InvalidTransition):
        membership.approve(member.id, songwriter)


# --- listings ------------------------------------------------------------------

def test_owner_dashboard_groups_by_status(client, song, songwriter, make_song, make_member, auth_headers):
    other = make_song(songwriter, title="Second Song")
    make_member(song, "a@example.com", status="pending")
    make_member(song, "b@example.com", status="approved")
    make_member(other, "c@example.com", status="rejected")

    body = client.get("/sounding-board", headers=auth_headers(songwriter)).get_json()
    assert body["counts"] == {"total": 3, "pending": 1, "approved": 1, "rejected": 1}
    assert len(body["all"]) == 3

    per_song = client.get(f"/sounding-board/song/{song.id}", headers=auth_headers(songwriter)).get_json()
    assert per_song["counts"]["total"] == 2


def test_approved_songs_for_member(client, songwriter, make_song, make_user, make_member, auth_headers):
    listener = make_user("listener", role="sounding_board_member")
    for i in range(7):
        make_member(make_song(songwriter, title=f"Song {i}"), listener.email, status="approved")
    make_member(make_song(songwriter, title="Not yet"), listener.email, status="pending")

    headers = auth_headers(listener)
    first = client.get("/sounding-board/approved-songs", headers=headers).get_json()
    assert len(first["songs"]) == 6
    assert first["pagination"]["total"] == 7
    assert first["pagination"]["has_more"] is True

    second = client.get("/sounding-board/approved-songs?page=2", headers=headers).get_json()
    assert len(second["songs"]) == 1


# --- account linking -----------------------------------------------------------

def test_link_members_is_idempotent(app, song, make_member):
    member = make_member(song, "late@example.com", status="approved")
    user = User(username="late", name="Late Joiner", email="late@example.com",
                password=hash_password("pw"), role="sounding_board_member")
    db.session.add(user)
    db.session.commit()

    assert membership.link_members_to_users() == 1
    assert member.user_id == user.id
    assert membership.link_members_to_users() == 0
    assert member.user_id == user.id


def test_link_cli_command(app, song, make_member, make_user):
    make_member(song, "cli@example.com", status="pending")
    make_user("cli", email="cli@example.com", role="sounding_board_member")

    result = app.test_cli_runner().invoke(args=["soundingboard", "link"])
    assert "Linked 1 sounding board member(s)." in result.output


# --- notifications ---------------------------------------------------------------

def test_mail_is_sent_with_no_open_transaction(app, song, songwriter, monkeypatch):
    seen = []

    def recording_send(to_email, subject, html_body, to_name=None):
        seen.append((to_email, db.session().in_transaction()))
    monkeypatch.setattr(membership, "send_email", recording_send)

    member = membership.request_access(song, "Sam", "sam@example.com")
    membership.approve(member.id, songwriter)

    assert seen == [("writer@example.com", False), ("sam@example.com", False)]


def test_duplicate_request_timestamp_is_utc(client, song):
    client.post(f"/share/{song.share_token}/request-access", json=request_body())
    resp = client.post(f"/share/{song.share_token}/request-access", json=request_body())

    assert resp.status_code == 409
    assert resp.get_json()["requested_at"].endswith("+00:00")
