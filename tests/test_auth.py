from datetime import timedelta
from models import db, PersonalAccessToken, SoundingBoardMember, utcnow
from utils.auth import issue_token


def test_register_returns_token_and_links_memberships(client, song, make_member):
    member = make_member(song, "sam@example.com", status="approved")

    resp = client.post("/auth/register", json={
        "username": "sam",
        "name": "Sam Listener",
        "email": "Sam@Example.com",
        "password": "hunter22",
        "role": "sounding_board_member",
    })

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["token_type"] == "Bearer"
    assert len(body["token"]) == 64
    assert body["user"]["email"] == "sam@example.com"
    assert db.session.get(SoundingBoardMember, member.id).user_id == body["user"]["id"]


def test_register_validation_errors(client, songwriter):
    resp = client.post("/auth/register", json={
        "username": "writer",
        "name": "",
        "email": "not-an-email",
        "password": "",
        "role": "admin",
    })

    assert resp.status_code == 422
    errors = resp.get_json()["errors"]
    assert set(errors) == {"username", "name", "email", "password", "role"}


def test_login_and_me(client, songwriter):
    resp = client.post("/auth/login", json={"email": "writer@example.com", "password": "secret123"})
    assert resp.status_code == 200
    token = resp.get_json()["token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.get_json()["user"]["username"] == "writer"


def test_login_with_wrong_password(client, songwriter):
    resp = client.post("/auth/login", json={"email": "writer@example.com", "password": "nope"})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Invalid credentials."


def test_protected_routes_require_a_token(client, song):
    assert client.get("/auth/me").status_code == 401
    assert client.get(f"/songs/{song.id}/discussions").status_code == 401
    assert client.get("/sounding-board").status_code == 401

    resp = client.get("/auth/me", headers={"Authorization": "Bearer not-a-real-token"})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Invalid token."


def test_expired_token_rejected(client, songwriter):
    plain, token = issue_token(songwriter)
    token.expires_at = utcnow() - timedelta(minutes=1)
    db.session.commit()

    resp = client.get("/auth/me", headers={"Authorization": f"Bearer {plain}"})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Token expired."


def test_logout_revokes_token(client, songwriter, auth_headers):
    headers = auth_headers(songwriter)

    assert client.post("/auth/logout", headers=headers).status_code == 200
    assert PersonalAccessToken.query.count() == 0
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_member_role_cannot_use_songwriter_routes(client, make_user, auth_headers):
    listener = make_user("listener", role="sounding_board_member")
    resp = client.get("/songs", headers=auth_headers(listener))
    assert resp.status_code == 403
