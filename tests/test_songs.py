from models import db, Song


def test_create_song_issues_share_token(client, songwriter, auth_headers, topics):
    resp = client.post("/songs", headers=auth_headers(songwriter), json={
        "title": "Paper Boats",
        "development_stage": "early_stage",
        "feedback_topic_ids": [topics[0].id, topics[2].id],
    })

    assert resp.status_code == 201
    body = resp.get_json()
    song = db.session.get(Song, body["song"]["id"])
    assert len(song.share_token) == 64
    int(song.share_token, 16)
    assert body["share_link"] == f"http://songslab.test/share/{song.share_token}"
    assert [t["key"] for t in body["song"]["feedback_topics"]] == ["lyrics", "mix"]


def test_create_song_requires_title(client, songwriter, auth_headers):
    resp = client.post("/songs", headers=auth_headers(songwriter), json={"title": "  "})
    assert resp.status_code == 422
    assert "title" in resp.get_json()["errors"]


def test_regenerate_share_link(client, song, songwriter, auth_headers):
    old = song.share_token
    resp = client.post(f"/songs/{song.id}/share", headers=auth_headers(songwriter))

    assert resp.status_code == 200
    assert resp.get_json()["share_token"] != old
    assert client.get(f"/share/{old}").status_code == 404


def test_show_song_gated_by_membership(client, song, make_user, make_member, auth_headers):
    stranger = make_user("stranger", role="sounding_board_member")
    assert client.get(f"/songs/{song.id}", headers=auth_headers(stranger)).status_code == 403

    # matched by email even before the membership is linked
    make_member(song, stranger.email, status="approved")
    resp = client.get(f"/songs/{song.id}", headers=auth_headers(stranger))
    assert resp.status_code == 200
    assert resp.get_json()["user_role"] == "sounding_board_member"
    assert "share_link" not in resp.get_json()


def test_soft_deleted_song_is_absent_until_restored(client, song, songwriter, auth_headers):
    headers = auth_headers(songwriter)
    token = song.share_token

    assert client.delete(f"/songs/{song.id}", headers=headers).status_code == 200
    assert client.get(f"/songs/{song.id}", headers=headers).status_code == 404
    assert client.get(f"/share/{token}").status_code == 404
    assert client.get("/songs", headers=headers).get_json()["songs"] == []

    resp = client.post(f"/songs/{song.id}/restore", headers=headers)
    assert resp.status_code == 200
    assert client.get(f"/songs/{song.id}", headers=headers).status_code == 200


def test_other_songwriter_cannot_manage_song(client, song, make_user, auth_headers):
    rival = make_user("rival")
    headers = auth_headers(rival)
    assert client.delete(f"/songs/{song.id}", headers=headers).status_code == 404
    assert client.post(f"/songs/{song.id}/share", headers=headers).status_code == 404


def test_public_landing_reveals_song_to_approved_email(client, song, make_member):
    make_member(song, "ok@example.com", status="approved")
    make_member(song, "wait@example.com", status="pending")

    anonymous = client.get(f"/share/{song.share_token}").get_json()
    assert anonymous["requires_verification"] is True
    assert "description" not in anonymous["song"]

    assert client.get(f"/share/{song.share_token}?email=wait@example.com").status_code == 403

    resp = client.get(f"/share/{song.share_token}?email=OK@example.com")
    assert resp.status_code == 200
    assert resp.get_json()["requires_verification"] is False


def test_create_song_rejects_malformed_topic_ids(client, songwriter, auth_headers):
    headers = auth_headers(songwriter)
    for topic_ids in ([{"a": 1}], ["1"], [True], "1,2"):
        resp = client.post("/songs", headers=headers, json={"title": "Paper Boats", "feedback_topic_ids": topic_ids})
        assert resp.status_code == 422
        assert "feedback_topic_ids" in resp.get_json()["errors"]
    assert Song.query.count() == 0
