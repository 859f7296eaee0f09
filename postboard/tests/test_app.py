import unittest
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from postboard.app import create_app
from postboard.config import Settings
from postboard.db import InMemoryPostStore, StorageError
from postboard.identity import Identity, StaticIdentityProvider

ALICE = {"Authorization": "Bearer token-u1"}
BOB = {"Authorization": "Bearer token-u2"}


class FailingPostStore(InMemoryPostStore):
    def list_posts(self, user_id=None):
        raise StorageError("connection refused")


def make_identities() -> StaticIdentityProvider:
    return StaticIdentityProvider(
        {
            "token-u1": Identity("U1", first_name="Alice", email="alice@example.com"),
            "token-u2": Identity("U2", first_name="Bob", email="bob@example.com"),
        }
    )


class PostApiTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryPostStore()
        self.identities = make_identities()
        self.settings = Settings(
            use_in_memory_backends=True,
            identity_sign_in_url="https://accounts.example.test/sign-in",
        )
        self.client = TestClient(
            create_app(
                self.settings,
                post_store=self.store,
                identity_provider=self.identities,
            )
        )

    def _create(self, headers=ALICE, **overrides):
        body = {"title": "T1", "content": "C1", "userName": "Alice"}
        body.update(overrides)
        return self.client.post("/api/posts", json=body, headers=headers)

    def test_create_post_records_owner(self):
        response = self._create()
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["userId"], "U1")
        self.assertEqual(payload["userName"], "Alice")
        self.assertEqual(payload["title"], "T1")
        self.assertEqual(payload["content"], "C1")
        self.assertTrue(payload["id"])
        self.assertIn("createdAt", payload)
        self.assertIsNotNone(self.store.get_post(payload["id"]))

    def test_create_keeps_explicit_user_name(self):
        response = self._create(userName="Al")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["userName"], "Al")

    def test_create_accepts_session_cookie(self):
        response = self._create(headers={"Cookie": "__session=token-u2"})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["userId"], "U2")

    def test_create_unauthenticated_is_rejected(self):
        response = self._create(headers={})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.store.posts, {})

    def test_create_with_unknown_token_is_rejected(self):
        response = self._create(headers={"Authorization": "Bearer nope"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.store.posts, {})

    def test_create_requires_all_fields(self):
        for overrides in ({"title": ""}, {"content": ""}, {"userName": ""}, {"title": 5}):
            with self.subTest(overrides=overrides):
                response = self._create(**overrides)
                self.assertEqual(response.status_code, 400)

        response = self.client.post(
            "/api/posts", json={"title": "only title"}, headers=ALICE
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.store.posts, {})

    def test_create_with_malformed_json(self):
        response = self.client.post(
            "/api/posts",
            content=b"{not json",
            headers={**ALICE, "Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.store.posts, {})

    def test_list_is_public_and_newest_first(self):
        first = self._create(title="first").json()
        second = self._create(title="second").json()

        response = self.client.get("/api/posts")
        self.assertEqual(response.status_code, 200)
        ids = [post["id"] for post in response.json()]
        self.assertEqual(ids, [second["id"], first["id"]])

    def test_list_orders_by_created_at(self):
        t1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
        t2 = t1 + timedelta(minutes=5)
        later = self.store.create_post(
            title="later", content="c", user_id="U1", user_name="Alice", created_at=t2
        )
        earlier = self.store.create_post(
            title="earlier", content="c", user_id="U1", user_name="Alice", created_at=t1
        )

        response = self.client.get("/api/posts")
        self.assertEqual(
            [post["id"] for post in response.json()], [later.id, earlier.id]
        )

    def test_list_same_created_at_prefers_latest_insert(self):
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        first = self.store.create_post(
            title="first", content="c", user_id="U1", user_name="Alice", created_at=ts
        )
        second = self.store.create_post(
            title="second", content="c", user_id="U1", user_name="Alice", created_at=ts
        )

        response = self.client.get("/api/posts")
        self.assertEqual(
            [post["id"] for post in response.json()], [second.id, first.id]
        )

    def test_list_filters_by_owner(self):
        self._create(title="mine")
        self._create(headers=BOB, title="bob's", userName="Bob")

        response = self.client.get("/api/posts", params={"userId": "U2"})
        self.assertEqual(response.status_code, 200)
        posts = response.json()
        self.assertEqual([post["title"] for post in posts], ["bob's"])
        self.assertTrue(all(post["userId"] == "U2" for post in posts))

        everything = self.client.get("/api/posts", params={"userId": ""})
        self.assertEqual(len(everything.json()), 2)

    def test_list_storage_failure_returns_500(self):
        client = TestClient(
            create_app(
                self.settings,
                post_store=FailingPostStore(),
                identity_provider=self.identities,
            )
        )
        response = client.get("/api/posts")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"detail": "Storage failure"})

    def test_update_by_other_user_is_forbidden(self):
        post = self._create().json()
        response = self.client.put(
            f"/api/posts/{post['id']}",
            json={"title": "T2", "content": "C2"},
            headers=BOB,
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.store.get_post(post["id"]).title, "T1")

    def test_update_by_other_user_is_forbidden_even_with_invalid_body(self):
        post = self._create().json()
        response = self.client.put(
            f"/api/posts/{post['id']}", json={"title": ""}, headers=BOB
        )
        self.assertEqual(response.status_code, 403)

    def test_update_recomputes_user_name_from_profile(self):
        post = self._create().json()
        # The provider profile changed since the post was written.
        self.identities.add("token-u1", Identity("U1", first_name="Alicia"))

        response = self.client.put(
            f"/api/posts/{post['id']}",
            json={"title": "T2", "content": "C2"},
            headers=ALICE,
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["title"], "T2")
        self.assertEqual(payload["content"], "C2")
        self.assertEqual(payload["userName"], "Alicia")
        self.assertEqual(payload["userId"], "U1")
        self.assertEqual(payload["createdAt"], post["createdAt"])

    def test_update_user_name_falls_back_to_email_then_anonymous(self):
        post = self._create().json()
        cases = (
            (Identity("U1", email="alice@example.com"), "alice@example.com"),
            (Identity("U1"), "Anonymous"),
        )
        for identity, expected in cases:
            with self.subTest(expected=expected):
                self.identities.add("token-u1", identity)
                response = self.client.put(
                    f"/api/posts/{post['id']}",
                    json={"title": "T", "content": "C"},
                    headers=ALICE,
                )
                self.assertEqual(response.status_code, 200)
                self.assertEqual(response.json()["userName"], expected)

    def test_update_requires_title_and_content(self):
        post = self._create().json()
        response = self.client.put(
            f"/api/posts/{post['id']}", json={"title": "T2"}, headers=ALICE
        )
        self.assertEqual(response.status_code, 400)
        stored = self.store.get_post(post["id"])
        self.assertEqual((stored.title, stored.content), ("T1", "C1"))

    def test_update_missing_post_answers_forbidden(self):
        # Not-found is reported as 403, the same as a foreign post.
        response = self.client.put(
            "/api/posts/does-not-exist",
            json={"title": "T2", "content": "C2"},
            headers=ALICE,
        )
        self.assertEqual(response.status_code, 403)

    def test_update_unauthenticated(self):
        post = self._create().json()
        response = self.client.put(
            f"/api/posts/{post['id']}", json={"title": "T2", "content": "C2"}
        )
        self.assertEqual(response.status_code, 401)

    def test_delete_post(self):
        post = self._create().json()

        self.assertEqual(
            self.client.delete(f"/api/posts/{post['id']}").status_code, 401
        )
        self.assertEqual(
            self.client.delete(f"/api/posts/{post['id']}", headers=BOB).status_code,
            403,
        )

        response = self.client.delete(f"/api/posts/{post['id']}", headers=ALICE)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"")
        self.assertIsNone(self.store.get_post(post["id"]))

        again = self.client.delete(f"/api/posts/{post['id']}", headers=ALICE)
        self.assertEqual(again.status_code, 403)

    def test_home_page_lists_posts_escaped(self):
        self._create(title="<b>hi</b>")
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertIn("&lt;b&gt;hi&lt;/b&gt;", response.text)
        self.assertNotIn("<b>hi</b>", response.text)

    def test_sign_in_redirects_to_provider(self):
        response = self.client.get("/sign-in", follow_redirects=False)
        self.assertEqual(response.status_code, 307)
        self.assertEqual(
            response.headers["location"], "https://accounts.example.test/sign-in"
        )
        # No sign-up page configured.
        self.assertEqual(self.client.get("/sign-up").status_code, 404)

    def test_lifespan_connects_and_closes_store(self):
        app = create_app(
            self.settings, post_store=self.store, identity_provider=self.identities
        )
        with TestClient(app) as client:
            self.assertTrue(self.store.connected)
            self.assertEqual(client.get("/api/posts").status_code, 200)
        self.assertFalse(self.store.connected)


if __name__ == "__main__":
    unittest.main()
