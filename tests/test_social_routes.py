import pytest

from models import Report, Video, db


def _register(client, email, name, password="secret123"):
    resp = client.post("/api/auth/register", json={"email": email, "password": password, "displayName": name})
    assert resp.status_code == 201
    return resp.get_json()["user"]["id"]


@pytest.fixture
def alice(web_app):
    c = web_app.test_client()
    c.user_id = _register(c, "alice@example.com", "Alice")
    return c


@pytest.fixture
def bob(web_app):
    c = web_app.test_client()
    c.user_id = _register(c, "bob@example.com", "Bob")
    return c


def _upload(client, title="导数入门", category="calculus", **extra):
    payload = {"title": title, "category": category, "duration": 30, **extra}
    resp = client.post("/api/videos", json=payload)
    assert resp.status_code == 201
    return resp.get_json()["video"]["id"]


def _notifications(client):
    resp = client.get("/api/notifications")
    assert resp.status_code == 200
    return resp.get_json()["notifications"]


# ---- 关注 ----


def test_follow_toggles_and_keeps_counters(alice, bob):
    resp = bob.post(f"/api/users/{alice.user_id}/follow")
    assert resp.status_code == 200
    assert resp.get_json()["following"] is True

    profile = bob.get(f"/api/users/{alice.user_id}").get_json()["user"]
    assert profile["followersCount"] == 1
    assert profile["isFollowing"] is True
    assert bob.get("/api/auth/me").get_json()["user"]["followingCount"] == 1

    resp = bob.post(f"/api/users/{alice.user_id}/follow")
    assert resp.get_json()["following"] is False
    profile = bob.get(f"/api/users/{alice.user_id}").get_json()["user"]
    assert profile["followersCount"] == 0
    assert profile["isFollowing"] is False


def test_follow_validation(alice):
    assert alice.post(f"/api/users/{alice.user_id}/follow").status_code == 400
    assert alice.post("/api/users/9999/follow").status_code == 404


def test_follow_requires_login(web_app, alice):
    anon = web_app.test_client()
    assert anon.post(f"/api/users/{alice.user_id}/follow").status_code == 401
    # 未登录看主页没有 isFollowing
    assert "isFollowing" not in anon.get(f"/api/users/{alice.user_id}").get_json()["user"]


def test_follow_notifies_followed_user(alice, bob):
    bob.post(f"/api/users/{alice.user_id}/follow")
    notes = _notifications(alice)
    assert [n["type"] for n in notes] == ["follow"]
    assert notes[0]["relatedUserId"] == bob.user_id
    assert notes[0]["relatedUserName"] == "Bob"
    assert _notifications(bob) == []


def test_follower_and_following_lists(alice, bob, web_app):
    carol = web_app.test_client()
    carol_id = _register(carol, "carol@example.com", "Carol")
    bob.post(f"/api/users/{alice.user_id}/follow")
    carol.post(f"/api/users/{alice.user_id}/follow")

    followers = alice.get(f"/api/users/{alice.user_id}/followers").get_json()["users"]
    assert [u["id"] for u in followers] == [carol_id, bob.user_id]
    following = alice.get(f"/api/users/{bob.user_id}/following").get_json()["users"]
    assert [u["displayName"] for u in following] == ["Alice"]


# ---- 视频列表 / 推荐流 / 删除 ----


def test_video_list_filters_and_sorts(alice, bob):
    first = _upload(alice, title="极限", category="calculus")
    second = _upload(alice, title="矩阵乘法", category="algebra", description="行乘列")
    third = _upload(bob, title="链式法则", category="calculus")
    bob.post(f"/api/videos/{first}/like")

    recent = [v["id"] for v in bob.get("/api/videos").get_json()["videos"]]
    assert recent == [third, second, first]

    calculus = [v["id"] for v in bob.get("/api/videos?category=calculus").get_json()["videos"]]
    assert calculus == [third, first]

    found = bob.get("/api/videos?search=行乘").get_json()["videos"]
    assert [v["id"] for v in found] == [second]

    popular = bob.get("/api/videos?sort=popular").get_json()["videos"]
    assert popular[0]["id"] == first
    assert popular[0]["isLiked"] is True

    page = bob.get("/api/videos?limit=1&offset=1").get_json()["videos"]
    assert [v["id"] for v in page] == [second]


def test_flagged_videos_are_hidden_from_lists(web_app, alice):
    kept = _upload(alice, title="保留")
    flagged = _upload(alice, title="下架")
    with web_app.app_context():
        db.session.get(Video, flagged).is_flagged = True
        db.session.commit()

    assert [v["id"] for v in alice.get("/api/videos").get_json()["videos"]] == [kept]
    assert [v["id"] for v in alice.get(f"/api/users/{alice.user_id}/videos").get_json()["videos"]] == [kept]


def test_feed_sections(alice, bob):
    a = _upload(alice, title="一")
    b = _upload(alice, title="二")
    bob.post(f"/api/videos/{a}/like")

    body = bob.get("/api/videos/feed").get_json()
    assert [v["id"] for v in body["recommended"]] == [a, b]
    assert [v["id"] for v in body["new"]] == [b, a]
    assert body["popular"][0]["id"] == a


def test_user_videos_unknown_user(alice):
    assert alice.get("/api/users/9999/videos").status_code == 404


def test_only_author_can_delete_video(alice, bob):
    video_id = _upload(alice)
    bob.post(f"/api/videos/{video_id}/like")
    bob.post(f"/api/videos/{video_id}/comments", json={"content": "讲得好"})

    assert bob.delete(f"/api/videos/{video_id}").status_code == 404
    assert alice.delete(f"/api/videos/{video_id}").status_code == 200
    assert alice.get(f"/api/videos/{video_id}").status_code == 404
    assert alice.delete(f"/api/videos/{video_id}").status_code == 404
    # 通知还在，但不再指向被删的视频
    notes = _notifications(alice)
    assert notes and all(n["relatedVideoId"] is None for n in notes)


def test_upload_rejects_long_description(alice):
    resp = alice.post(
        "/api/videos",
        json={"title": "t", "category": "c", "duration": 10, "description": "长" * 301},
    )
    assert resp.status_code == 400


# ---- 视频评论 ----


def test_video_comments_listed_newest_first(alice, bob):
    video_id = _upload(alice)
    assert bob.post(f"/api/videos/{video_id}/comments", json={"content": "第一"}).status_code == 201
    resp = alice.post(f"/api/videos/{video_id}/comments", json={"content": "第二"})
    assert resp.status_code == 201
    assert resp.get_json()["comment"]["authorName"] == "Alice"

    comments = bob.get(f"/api/videos/{video_id}/comments").get_json()["comments"]
    assert [c["content"] for c in comments] == ["第二", "第一"]


def test_video_comment_notifies_author_but_not_self(alice, bob):
    video_id = _upload(alice, title="积分")
    bob.post(f"/api/videos/{video_id}/comments", json={"content": "有用"})
    alice.post(f"/api/videos/{video_id}/comments", json={"content": "谢谢"})

    notes = _notifications(alice)
    assert [n["type"] for n in notes] == ["comment"]
    assert notes[0]["relatedVideoId"] == video_id
    assert notes[0]["relatedVideoTitle"] == "积分"


def test_video_comment_validation(alice, bob):
    closed = _upload(alice, commentsEnabled=False)
    assert bob.post(f"/api/videos/{closed}/comments", json={"content": "hi"}).status_code == 403
    assert bob.post(f"/api/videos/{closed}/comments", json={"content": "  "}).status_code == 400
    assert bob.post("/api/videos/9999/comments", json={"content": "hi"}).status_code == 404
    assert bob.get("/api/videos/9999/comments").status_code == 404


def test_like_notifies_video_author(alice, bob):
    video_id = _upload(alice)
    bob.post(f"/api/videos/{video_id}/like")
    # 重复点赞不会再发通知
    bob.post(f"/api/videos/{video_id}/like")
    alice.post(f"/api/videos/{video_id}/like")
    assert [n["type"] for n in _notifications(alice)] == ["like"]


# ---- 通知 ----


def test_notification_read_flow(alice, bob):
    video_id = _upload(alice)
    bob.post(f"/api/users/{alice.user_id}/follow")
    bob.post(f"/api/videos/{video_id}/like")

    assert alice.get("/api/notifications/unread-count").get_json()["count"] == 2
    like_id, follow_id = [n["id"] for n in _notifications(alice)]

    assert alice.put(f"/api/notifications/{like_id}/read").status_code == 200
    assert alice.get("/api/notifications/unread-count").get_json()["count"] == 1
    assert [n["isRead"] for n in _notifications(alice)] == [True, False]

    assert alice.put("/api/notifications/read-all").status_code == 200
    assert alice.get("/api/notifications/unread-count").get_json()["count"] == 0

    assert alice.delete(f"/api/notifications/{follow_id}").status_code == 200
    assert [n["id"] for n in _notifications(alice)] == [like_id]


def test_notifications_are_private(alice, bob):
    bob.post(f"/api/users/{alice.user_id}/follow")
    note_id = _notifications(alice)[0]["id"]

    assert bob.put(f"/api/notifications/{note_id}/read").status_code == 404
    assert bob.delete(f"/api/notifications/{note_id}").status_code == 404
    bob.put("/api/notifications/read-all")
    assert alice.get("/api/notifications/unread-count").get_json()["count"] == 1


def test_notifications_require_login(client):
    assert client.get("/api/notifications").status_code == 401
    assert client.get("/api/notifications/unread-count").status_code == 401


# ---- 举报 ----


def test_report_profile_once(web_app, alice, bob):
    payload = {"contentType": "profile", "targetUserId": alice.user_id, "reason": "spam"}
    first = bob.post("/api/reports", json=payload)
    assert first.status_code == 201
    assert first.get_json()["reportId"]
    assert bob.post("/api/reports", json=payload).status_code == 409

    with web_app.app_context():
        report = Report.query.one()
        assert (report.reporter_id, report.target_user_id, report.status) == (bob.user_id, alice.user_id, "open")


def test_report_validation(alice, bob):
    assert bob.post("/api/reports", json={"contentType": "song", "reason": "x", "contentId": 1}).status_code == 400
    assert bob.post("/api/reports", json={"contentType": "video", "contentId": 1}).status_code == 400
    assert bob.post("/api/reports", json={"contentType": "video", "reason": "x"}).status_code == 400
    assert bob.post("/api/reports", json={"contentType": "profile", "reason": "x"}).status_code == 400
    self_report = {"contentType": "profile", "targetUserId": bob.user_id, "reason": "x"}
    assert bob.post("/api/reports", json=self_report).status_code == 400
    missing = {"contentType": "profile", "targetUserId": 9999, "reason": "x"}
    assert bob.post("/api/reports", json=missing).status_code == 404


def test_report_video(alice, bob):
    video_id = _upload(alice)
    assert alice.post(f"/api/videos/{video_id}/report", json={"reason": "x"}).status_code == 400
    assert bob.post(f"/api/videos/{video_id}/report", json={}).status_code == 400
    assert bob.post("/api/videos/9999/report", json={"reason": "x"}).status_code == 404

    assert bob.post(f"/api/videos/{video_id}/report", json={"reason": "低俗"}).status_code == 201
    assert bob.post(f"/api/videos/{video_id}/report", json={"reason": "低俗"}).status_code == 409


# ---- 社区：列表 / 状态 / 评论 ----


def _post(client, title, category="math"):
    resp = client.post("/api/community/posts", json={"title": title, "description": "d", "category": category})
    assert resp.status_code == 201
    return resp.get_json()["post"]["id"]


def test_post_list_filters(alice, bob):
    p1 = _post(alice, "一", category="math")
    p2 = _post(bob, "二", category="physics")
    alice.put(f"/api/community/posts/{p1}/status", json={"status": "answered"})

    assert [p["id"] for p in bob.get("/api/community/posts").get_json()["posts"]] == [p2, p1]
    assert [p["id"] for p in bob.get("/api/community/posts?category=math").get_json()["posts"]] == [p1]
    assert [p["id"] for p in bob.get("/api/community/posts?status=open").get_json()["posts"]] == [p2]
    assert [p["id"] for p in bob.get("/api/community/posts?limit=1").get_json()["posts"]] == [p2]


def test_post_status_update(alice, bob):
    post_id = _post(alice, "求助")
    assert alice.put(f"/api/community/posts/{post_id}/status", json={"status": "closed"}).status_code == 400
    assert bob.put(f"/api/community/posts/{post_id}/status", json={"status": "solved"}).status_code == 403
    assert alice.put("/api/community/posts/9999/status", json={"status": "solved"}).status_code == 404

    resp = alice.put(f"/api/community/posts/{post_id}/status", json={"status": "solved"})
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "solved"


def test_post_comments_put_solution_first(alice, bob):
    video_id = _upload(bob, title="换元法")
    post_id = _post(alice, "怎么换元？")
    bob.post(f"/api/community/posts/{post_id}/comments", json={"content": "先试试"})
    second = bob.post(
        f"/api/community/posts/{post_id}/comments", json={"content": "看这个", "linkedVideoId": video_id}
    ).get_json()["comment"]["id"]
    alice.put(f"/api/community/posts/{post_id}/comments/{second}/solution")

    comments = alice.get(f"/api/community/posts/{post_id}/comments").get_json()["comments"]
    assert [c["content"] for c in comments] == ["看这个", "先试试"]
    assert comments[0]["isSolution"] is True
    assert comments[0]["linkedVideoTitle"] == "换元法"
    assert "linkedVideoTitle" not in comments[1]
    assert alice.get("/api/community/posts/9999/comments").status_code == 404


# ---- 资料 / 密码 ----


def test_update_profile(alice):
    resp = alice.put("/api/auth/me", json={"displayName": "Alice W", "bio": "数学老师", "xp": 9999})
    assert resp.status_code == 200
    user = resp.get_json()["user"]
    assert (user["displayName"], user["bio"], user["xp"]) == ("Alice W", "数学老师", 0)
    assert alice.put("/api/auth/me", json={"displayName": " "}).status_code == 400


def test_change_password(web_app, alice):
    assert alice.put("/api/auth/password", json={"currentPassword": "wrong123", "newPassword": "newpass1"}).status_code == 400
    assert alice.put("/api/auth/password", json={"currentPassword": "secret123", "newPassword": "123"}).status_code == 400
    assert alice.put("/api/auth/password", json={"newPassword": "newpass1"}).status_code == 400
    assert alice.put("/api/auth/password", json={"currentPassword": "secret123", "newPassword": "newpass1"}).status_code == 200

    other = web_app.test_client()
    assert other.post("/api/auth/login", json={"email": "alice@example.com", "password": "secret123"}).status_code == 401
    assert other.post("/api/auth/login", json={"email": "alice@example.com", "password": "newpass1"}).status_code == 200
