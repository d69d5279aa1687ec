# remixtree/api/posts/test_post_routes.py
"""
게시물 API 테스트
"""
from datetime import timedelta


def _create_post(client, auth_headers, title="원본 사진", image_url="https://cdn.example.com/a.png", user_id="owner-1"):
    return client.post("/api/posts/", json={"title": title, "image_url": image_url}, headers=auth_headers(user_id))


def test_create_and_get_post(client, auth_headers):
    response = _create_post(client, auth_headers)

    assert response.status_code == 201
    created = response.get_json()
    assert created["likes_count"] == 0
    assert created["user_id"] == "owner-1"

    fetched = client.get(f"/api/posts/{created['post_id']}").get_json()
    assert fetched["image_url"] == "https://cdn.example.com/a.png"
    assert fetched["is_liked"] is False


def test_create_post_validation(client, auth_headers):
    assert _create_post(client, auth_headers, title="").status_code == 400
    assert _create_post(client, auth_headers, image_url="not a url").status_code == 400
    assert client.post("/api/posts/", json={"title": "t", "image_url": "https://x.example.com/a.png"}).status_code == 401


def test_get_missing_post(client):
    response = client.get("/api/posts/no-such-post")

    assert response.status_code == 404
    assert response.get_json()["error_code"] == "POST_NOT_FOUND"


def test_post_like_toggle_and_liked_flag(client, auth_headers, post):
    url = f"/api/posts/{post['post_id']}/like"

    assert client.post(url, headers=auth_headers("fan")).get_json() == {"liked": True, "likes_count": 1}
    assert client.get(f"/api/posts/{post['post_id']}/liked", headers=auth_headers("fan")).get_json() == {"liked": True}
    assert client.get(f"/api/posts/{post['post_id']}/liked").get_json() == {"liked": False}
    assert client.post(url, headers=auth_headers("fan")).get_json() == {"liked": False, "likes_count": 0}
    assert client.post("/api/posts/nope/like", headers=auth_headers("fan")).status_code == 404


def test_list_posts_sorted_by_likes_and_date(client, auth_headers, post_service, fake_db):
    older = post_service.create_post("owner-1", "older", "https://cdn.example.com/1.png")
    fake_db.docs("posts")[older["post_id"]]["created_at"] -= timedelta(minutes=1)
    newer = post_service.create_post("owner-2", "newer", "https://cdn.example.com/2.png")
    post_service.toggle_post_like(older["post_id"], "fan")

    by_likes = client.get("/api/posts/?sort=likes", headers=auth_headers("fan")).get_json()["posts"]
    by_date = client.get("/api/posts/?sort=date").get_json()["posts"]

    assert [p["post_id"] for p in by_likes] == [older["post_id"], newer["post_id"]]
    assert by_likes[0]["is_liked"] is True
    assert [p["post_id"] for p in by_date] == [newer["post_id"], older["post_id"]]
    assert len(client.get("/api/posts/?limit=1").get_json()["posts"]) == 1
