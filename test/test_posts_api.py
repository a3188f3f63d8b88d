import pytest


async def create_post(client, headers, content="Hello DevStream", **extra):
    response = await client.post("/api/posts", json={"content": content, **extra}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestPosts:
    async def test_create_post(self, client, register):
        user, headers = await register("ada")
        post = await create_post(client, headers, "Shipping #fastapi", code_snippet="print('hi')", language="python")

        assert post["user_id"] == user["id"]
        assert post["user"]["username"] == "ada"
        assert post["likes_count"] == 0
        assert post["is_liked"] is False

    async def test_create_requires_auth(self, client):
        response = await client.post("/api/posts", json={"content": "anonymous"})
        assert response.status_code == 401

    async def test_empty_content_is_rejected(self, client, register):
        _, headers = await register("ada")
        response = await client.post("/api/posts", json={"content": ""}, headers=headers)
        assert response.status_code == 422

    async def test_blank_content_is_rejected(self, client, register):
        _, headers = await register("ada")
        response = await client.post("/api/posts", json={"content": "   \n\t"}, headers=headers)
        assert response.status_code == 422

        post = await create_post(client, headers, "  padded  ")
        assert post["content"] == "padded"

    async def test_feed_is_newest_first(self, client, register):
        _, headers = await register("ada")
        first = await create_post(client, headers, "first")
        second = await create_post(client, headers, "second")

        feed = (await client.get("/api/posts")).json()
        assert [p["id"] for p in feed] == [second["id"], first["id"]]

        page = (await client.get("/api/posts", params={"limit": 1, "offset": 1})).json()
        assert [p["id"] for p in page] == [first["id"]]

    @pytest.mark.parametrize("params", [{"limit": -1}, {"limit": 0}, {"offset": -1}])
    async def test_feed_rejects_bad_paging(self, client, register, params):
        _, headers = await register("ada")
        for content in ("one", "two", "three"):
            await create_post(client, headers, content)

        response = await client.get("/api/posts", params=params)
        assert response.status_code == 422

    async def test_get_unknown_post(self, client):
        response = await client.get("/api/posts/missing")
        assert response.status_code == 404
        assert response.json()["detail"] == "Post not found"

    async def test_search(self, client, register):
        _, headers = await register("ada")
        match = await create_post(client, headers, "Async tips", tags=["python"])
        await create_post(client, headers, "Something else")

        found = (await client.get("/api/posts/search", params={"q": "PYTHON"})).json()
        assert [p["id"] for p in found] == [match["id"]]
        assert (await client.get("/api/posts/search", params={"q": "  "})).json() == []

    async def test_posts_by_user(self, client, register):
        ada, ada_headers = await register("ada")
        _, linus_headers = await register("linus")
        mine = await create_post(client, ada_headers, "mine")
        await create_post(client, linus_headers, "theirs")

        posts = (await client.get(f"/api/posts/user/{ada['id']}")).json()
        assert [p["id"] for p in posts] == [mine["id"]]
        assert [p["id"] for p in (await client.get("/api/user/posts", headers=ada_headers)).json()] == [mine["id"]]

    async def test_only_owner_can_delete(self, client, register):
        _, owner = await register("ada")
        _, other = await register("linus")
        post = await create_post(client, owner)

        response = await client.delete(f"/api/posts/{post['id']}", headers=other)
        assert response.status_code == 403

        response = await client.delete(f"/api/posts/{post['id']}", headers=owner)
        assert response.json() == {"success": True}
        assert (await client.get(f"/api/posts/{post['id']}")).status_code == 404


class TestLikes:
    async def test_like_toggles(self, client, register):
        _, owner = await register("ada")
        _, fan = await register("linus")
        post = await create_post(client, owner)
        url = f"/api/posts/{post['id']}/like"

        liked = (await client.post(url, headers=fan)).json()
        assert liked == {"success": True, "liked": True, "likes_count": 1}

        viewed = (await client.get(f"/api/posts/{post['id']}", headers=fan)).json()
        assert viewed["is_liked"] is True

        unliked = (await client.post(url, headers=fan)).json()
        assert unliked == {"success": True, "liked": False, "likes_count": 0}

    async def test_explicit_like_is_idempotent(self, client, register):
        _, owner = await register("ada")
        _, fan = await register("linus")
        post = await create_post(client, owner)
        url = f"/api/posts/{post['id']}/like"

        await client.post(url, json={"liked": True}, headers=fan)
        second = (await client.post(url, json={"liked": True}, headers=fan)).json()
        assert second["likes_count"] == 1

        liked_posts = (await client.get("/api/user/liked-posts", headers=fan)).json()
        assert [p["id"] for p in liked_posts] == [post["id"]]

    async def test_like_unknown_post(self, client, register):
        _, headers = await register("ada")
        response = await client.post("/api/posts/missing/like", headers=headers)
        assert response.status_code == 404

    async def test_trending_posts_follow_likes(self, client, register):
        _, owner = await register("ada")
        _, fan = await register("linus")
        popular = await create_post(client, owner, "popular")
        await create_post(client, owner, "newer but quiet")
        await client.post(f"/api/posts/{popular['id']}/like", headers=fan)

        trending = (await client.get("/api/posts/trending")).json()
        assert trending[0]["id"] == popular["id"]

        latest = (await client.get("/api/posts/latest")).json()
        assert latest[0]["content"] == "newer but quiet"


class TestBookmarks:
    async def test_bookmark_toggles(self, client, register):
        _, owner = await register("ada")
        post = await create_post(client, owner)
        url = f"/api/posts/{post['id']}/bookmark"

        assert (await client.post(url, headers=owner)).json() == {"success": True, "bookmarked": True}
        saved = (await client.get("/api/user/bookmarks", headers=owner)).json()
        assert [p["id"] for p in saved] == [post["id"]]
        assert saved[0]["is_bookmarked"] is True

        assert (await client.post(url, headers=owner)).json() == {"success": True, "bookmarked": False}
        assert (await client.get("/api/user/bookmarks", headers=owner)).json() == []


class TestComments:
    async def test_comment_flow(self, client, register):
        _, owner = await register("ada")
        linus, commenter = await register("linus")
        post = await create_post(client, owner)

        response = await client.post(
            f"/api/posts/{post['id']}/comments", json={"content": "Nice work"}, headers=commenter
        )
        assert response.status_code == 201
        assert response.json()["user"]["id"] == linus["id"]

        comments = (await client.get(f"/api/posts/{post['id']}/comments")).json()
        assert [c["content"] for c in comments] == ["Nice work"]
        assert (await client.get(f"/api/posts/{post['id']}")).json()["comments_count"] == 1

    async def test_comment_on_unknown_post(self, client, register):
        _, headers = await register("ada")
        response = await client.post("/api/posts/missing/comments", json={"content": "hi"}, headers=headers)
        assert response.status_code == 404

    async def test_blank_comment_is_rejected(self, client, register):
        _, headers = await register("ada")
        post = await create_post(client, headers)
        response = await client.post(f"/api/posts/{post['id']}/comments", json={"content": "  "}, headers=headers)
        assert response.status_code == 422
        assert (await client.get(f"/api/posts/{post['id']}")).json()["comments_count"] == 0

    @pytest.mark.parametrize("params", [{"limit": 0}, {"offset": -1}])
    async def test_comment_paging_is_validated(self, client, register, params):
        _, headers = await register("ada")
        post = await create_post(client, headers)
        response = await client.get(f"/api/posts/{post['id']}/comments", params=params)
        assert response.status_code == 422


class TestUsers:
    async def test_follow_toggles_and_counts(self, client, register):
        ada, ada_headers = await register("ada")
        _, linus_headers = await register("linus")
        url = f"/api/users/{ada['id']}/follow"

        assert (await client.post(url, headers=linus_headers)).json() == {"following": True, "followers_count": 1}
        status = await client.get(f"/api/users/{ada['id']}/follow-status", headers=linus_headers)
        assert status.json() == {"following": True}

        stats = (await client.get(f"/api/users/{ada['id']}/stats")).json()
        assert stats == {"posts_count": 0, "followers_count": 1, "following_count": 0}

        assert (await client.post(url, headers=linus_headers)).json() == {"following": False, "followers_count": 0}

        explicit = await client.post(url, json={"followed": False}, headers=linus_headers)
        assert explicit.json()["following"] is False

    async def test_cannot_follow_self(self, client, register):
        ada, headers = await register("ada")
        response = await client.post(f"/api/users/{ada['id']}/follow", headers=headers)
        assert response.status_code == 400

    async def test_follow_unknown_user(self, client, register):
        _, headers = await register("ada")
        response = await client.post("/api/users/missing/follow", headers=headers)
        assert response.status_code == 404

    async def test_get_user_hides_password(self, client, register):
        ada, _ = await register("ada")
        data = (await client.get(f"/api/users/{ada['id']}")).json()
        assert data["username"] == "ada"
        assert "password_hash" not in data
        assert (await client.get("/api/users/missing")).status_code == 404

    async def test_update_profile(self, client, register):
        _, headers = await register("ada")
        response = await client.put("/api/users/me", json={"bio": "Poet of numbers", "github": "ada"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["bio"] == "Poet of numbers"

        profile = (await client.get("/api/profile", headers=headers)).json()
        assert profile["github"] == "ada"
        assert profile["posts_count"] == 0

    async def test_search_users(self, client, register):
        await register("ada", last_name="Lovelace")
        await register("linus")

        found = (await client.get("/api/users/search", params={"q": "love"})).json()
        assert [u["username"] for u in found] == ["ada"]
        assert found[0]["followers_count"] == 0
        assert (await client.get("/api/users/search", params={"q": ""})).json() == []

    async def test_suggested_users(self, client, register):
        _, headers = await register("ada")
        linus, _ = await register("linus")
        grace, _ = await register("grace")
        await client.post(f"/api/users/{linus['id']}/follow", headers=headers)

        suggested = (await client.get("/api/suggested-users", headers=headers)).json()
        assert [u["id"] for u in suggested] == [grace["id"]]


class TestSnippets:
    async def test_snippet_lifecycle(self, client, register):
        ada, owner = await register("ada")
        _, other = await register("linus")
        snippet = {"title": "Fib", "code": "def fib(n): ...", "language": "python"}

        created = await client.post("/api/snippets", json=snippet, headers=owner)
        assert created.status_code == 201
        snippet_id = created.json()["id"]
        await client.post("/api/snippets", json={**snippet, "title": "Draft", "is_public": False}, headers=owner)

        assert len((await client.get("/api/snippets/my", headers=owner)).json()) == 2
        assert [s["title"] for s in (await client.get("/api/snippets/public")).json()] == ["Fib"]
        assert len((await client.get(f"/api/snippets/user/{ada['id']}", headers=owner)).json()) == 2
        assert len((await client.get(f"/api/snippets/user/{ada['id']}", headers=other)).json()) == 1

        updated = await client.put(f"/api/snippets/{snippet_id}", json={**snippet, "title": "Fibonacci"}, headers=owner)
        assert updated.json()["title"] == "Fibonacci"

    @pytest.mark.parametrize("method, action", [("put", "update"), ("delete", "delete")])
    async def test_only_owner_can_change(self, client, register, method, action):
        _, owner = await register("ada")
        _, other = await register("linus")
        snippet = {"title": "Fib", "code": "def fib(n): ...", "language": "python"}
        snippet_id = (await client.post("/api/snippets", json=snippet, headers=owner)).json()["id"]

        kwargs = {"json": snippet} if method == "put" else {}
        response = await getattr(client, method)(f"/api/snippets/{snippet_id}", headers=other, **kwargs)
        assert response.status_code == 403
        assert response.json()["detail"] == f"Not authorized to {action} this snippet"


class TestTrendingTopics:
    async def test_sample_topics_when_no_hashtags(self, client):
        topics = (await client.get("/api/trending-topics")).json()
        assert [t["name"] for t in topics][:2] == ["#TypeScript5.0", "#GPT4"]

    async def test_topics_from_posts(self, client, register):
        _, headers = await register("ada")
        await create_post(client, headers, "Learning #Kubernetes and #FastAPI")
        await create_post(client, headers, "More #Kubernetes")

        topics = (await client.get("/api/trending-topics", params={"limit": 1})).json()
        assert len(topics) == 1
        assert topics[0]["name"] == "#Kubernetes"
        assert topics[0]["category"] == "Cloud"
        assert topics[0]["post_count"] == 2

        found = (await client.get("/api/hashtags/search", params={"q": "#fast"})).json()
        assert [t["name"] for t in found] == ["#FastAPI"]

    @pytest.mark.parametrize("limit", [0, -1])
    async def test_limit_must_be_positive(self, client, limit):
        response = await client.get("/api/trending-topics", params={"limit": limit})
        assert response.status_code == 422


class TestNotifications:
    async def test_actions_notify_the_author(self, client, register):
        _, owner = await register("ada")
        linus, fan = await register("linus")
        post = await create_post(client, owner)

        await client.post(f"/api/posts/{post['id']}/like", headers=fan)
        await client.post(f"/api/posts/{post['id']}/comments", json={"content": "Great"}, headers=fan)
        await client.post(f"/api/posts/{post['id']}/like", headers=owner)

        assert (await client.get("/api/notifications/count", headers=owner)).json() == {"count": 2}
        notifications = (await client.get("/api/notifications", headers=owner)).json()
        assert {n["type"] for n in notifications} == {"like", "comment"}
        assert all(n["from_user"]["id"] == linus["id"] for n in notifications)

        first = notifications[0]["id"]
        assert (await client.put(f"/api/notifications/{first}/read", headers=owner)).json() == {"success": True}
        assert (await client.get("/api/notifications/count", headers=owner)).json() == {"count": 1}

        read_all = (await client.put("/api/notifications/read-all", headers=owner)).json()
        assert read_all == {"success": True, "updated": 1}

    async def test_cannot_mark_foreign_notification(self, client, register):
        ada, ada_headers = await register("ada")
        _, linus = await register("linus")
        await client.post(f"/api/users/{ada['id']}/follow", headers=linus)
        notification = (await client.get("/api/notifications", headers=ada_headers)).json()[0]
        assert notification["type"] == "follow"

        response = await client.put(f"/api/notifications/{notification['id']}/read", headers=linus)
        assert response.status_code == 404
        assert (await client.get("/api/notifications/count", headers=ada_headers)).json() == {"count": 1}
