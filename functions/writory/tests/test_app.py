import json
import unittest
from decimal import Decimal

from fastapi.testclient import TestClient

from writory.app import create_app
from writory.auth import Identity, StaticAuthVerifier
from writory.db import InMemoryDbClient
from writory.dependencies import (
    get_auth_verifier,
    get_db_client,
    get_queue_client,
    get_storage_client,
)
from writory.queue import InMemoryJobQueue
from writory.storage import InMemoryStorageClient

USER = {"Authorization": "Bearer user-token"}
OTHER = {"Authorization": "Bearer other-token"}
ADMIN = {"Authorization": "Bearer admin-token"}

PDF = "application/pdf"


class UnavailableQueue:
    def enqueue(self, payload):
        raise ConnectionError("queue down")

    def dequeue(self, *, block=True, timeout=None):
        return None

    def size(self):
        return 0


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        self.queue = InMemoryJobQueue()
        self.verifier = StaticAuthVerifier()
        self.verifier.add(
            "user-token",
            Identity(uid="uid-1", email="poet@example.com", name="Ada", email_verified=True),
        )
        self.verifier.add(
            "other-token",
            Identity(uid="uid-2", email="other@example.com", email_verified=True),
        )
        self.verifier.add(
            "admin-token",
            Identity(uid="admin-uid", email="admin@example.com", email_verified=True),
        )
        self.db.add_admin("admin@example.com")

        app = create_app()
        app.dependency_overrides[get_db_client] = lambda: self.db
        app.dependency_overrides[get_storage_client] = lambda: self.storage
        app.dependency_overrides[get_queue_client] = lambda: self.queue
        app.dependency_overrides[get_auth_verifier] = lambda: self.verifier
        self.client = TestClient(app)

    def submit_json(self, headers=None, **overrides):
        payload = {
            "firstName": "Ada",
            "email": "poet@example.com",
            "tier": "free",
            "poems": [{"title": "Ode", "text": "Roses are red"}],
        }
        payload.update(overrides)
        return self.client.post("/api/submissions", json=payload, headers=headers)


class HealthAndUserTests(ApiTestCase):
    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_create_user_is_idempotent(self):
        created = self.client.post("/api/users", json={"phone": "+91"}, headers=USER)
        self.assertEqual(created.status_code, 201)
        body = created.json()
        self.assertEqual(body["uid"], "uid-1")
        self.assertEqual(body["email"], "poet@example.com")
        self.assertEqual(body["phone"], "+91")
        self.assertIn("createdAt", body)

        again = self.client.post("/api/users", json={}, headers=USER)
        self.assertEqual(again.status_code, 200)
        self.assertEqual(again.json()["id"], body["id"])
        self.assertEqual(len(self.db.users), 1)

    def test_create_user_requires_token(self):
        self.assertEqual(self.client.post("/api/users", json={}).status_code, 401)
        bad = self.client.post(
            "/api/users", json={}, headers={"Authorization": "Bearer nope"}
        )
        self.assertEqual(bad.status_code, 401)

    def test_email_owned_by_other_uid_conflicts(self):
        self.verifier.add(
            "dupe-token",
            Identity(uid="uid-9", email="poet@example.com", email_verified=True),
        )
        self.client.post("/api/users", json={}, headers=USER)
        response = self.client.post(
            "/api/users", json={}, headers={"Authorization": "Bearer dupe-token"}
        )
        self.assertEqual(response.status_code, 409)

    def test_profile_access_rules(self):
        self.client.post("/api/users", json={}, headers=USER)
        self.assertEqual(
            self.client.get("/api/users/uid-1", headers=USER).status_code, 200
        )
        self.assertEqual(
            self.client.get("/api/users/uid-1", headers=OTHER).status_code, 403
        )
        self.assertEqual(
            self.client.get("/api/users/uid-1", headers=ADMIN).status_code, 200
        )
        self.assertEqual(
            self.client.get("/api/users/uid-404", headers=ADMIN).status_code, 404
        )

        patched = self.client.patch(
            "/api/users/uid-1",
            json={"name": "Ada L.", "profilePictureUrl": "https://img/a.png"},
            headers=USER,
        )
        self.assertEqual(patched.status_code, 200)
        self.assertEqual(patched.json()["name"], "Ada L.")
        self.assertEqual(patched.json()["profilePictureUrl"], "https://img/a.png")
        self.assertEqual(
            self.client.patch(
                "/api/users/uid-1", json={"name": "x"}, headers=ADMIN
            ).status_code,
            403,
        )


class CouponApiTests(ApiTestCase):
    def test_validate_coupon(self):
        response = self.client.post(
            "/api/validate-coupon", json={"code": "INKWIN100", "tier": "single"}
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["valid"])
        self.assertEqual(body["type"], "free")
        self.assertEqual(body["discountPercent"], 100)

        response = self.client.post(
            "/api/validate-coupon", json={"code": "INKWIN100", "tier": "double"}
        )
        self.assertFalse(response.json()["valid"])
        self.assertIn("Single Poem tier", response.json()["message"])

    def test_validate_coupon_reports_prior_use(self):
        self.submit_json(
            headers=USER, tier="single", couponCode="DISCOUNT10", paymentId="pay_1"
        )
        response = self.client.post(
            "/api/validate-coupon",
            json={"code": "DISCOUNT10", "tier": "single", "uid": "uid-1"},
        )
        self.assertFalse(response.json()["valid"])
        self.assertIn("already been used", response.json()["message"])


class SubmissionApiTests(ApiTestCase):
    def test_free_entry_flow_with_reset(self):
        first = self.submit_json(headers=USER)
        self.assertEqual(first.status_code, 201)
        self.assertTrue(first.json()["freeEntry"])
        self.assertEqual(len(self.queue.items), 1)

        second = self.submit_json(headers=USER)
        self.assertEqual(second.status_code, 409)

        status = self.client.get("/api/users/uid-1/submission-status", headers=USER)
        self.assertEqual(status.status_code, 200)
        self.assertTrue(status.json()["freeSubmissionUsed"])
        self.assertEqual(status.json()["totalSubmissions"], 1)
        self.assertTrue(status.json()["freeTierEnabled"])

        reset = self.client.post("/api/admin/reset-free-tier", headers=ADMIN)
        self.assertEqual(reset.status_code, 200)
        self.assertIn("free_tier_reset_timestamp", reset.json()["settings"])

        status = self.client.get("/api/users/uid-1/submission-status", headers=USER)
        self.assertFalse(status.json()["freeSubmissionUsed"])
        self.assertEqual(self.submit_json(headers=USER).status_code, 201)

    def test_free_entry_needs_sign_in(self):
        self.assertEqual(self.submit_json().status_code, 400)

    def test_paid_entry_needs_payment_id(self):
        response = self.submit_json(headers=USER, tier="single")
        self.assertEqual(response.status_code, 402)
        self.assertEqual(self.db.submissions, {})

    def test_discounted_single_entry(self):
        response = self.submit_json(
            headers=USER, tier="single", couponCode="DISCOUNT10", paymentId="pay_1"
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertFalse(body["freeEntry"])
        self.assertEqual(Decimal(str(body["finalPrice"])), Decimal("45.00"))
        self.assertEqual(Decimal(str(body["discountAmount"])), Decimal("5.00"))

    def test_free_tier_disabled_rejects_free_entries(self):
        response = self.client.post(
            "/api/admin/settings",
            json={"settings": {"free_tier_enabled": "false"}},
            headers=ADMIN,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["settings"]["free_tier_enabled"], "false")
        self.assertEqual(self.submit_json(headers=USER).status_code, 400)

        public = self.client.get("/api/free-tier-status")
        self.assertFalse(public.json()["enabled"])

    def test_reenabling_free_tier_stamps_reset(self):
        self.submit_json(headers=USER)
        for flag in ("false", "true"):
            self.client.post(
                "/api/admin/settings",
                json={"settings": {"free_tier_enabled": flag}},
                headers=ADMIN,
            )
        self.assertIsNotNone(self.db.get_setting("free_tier_reset_timestamp"))
        self.assertEqual(self.submit_json(headers=USER).status_code, 201)

    def test_submit_single_poem_multipart(self):
        response = self.client.post(
            "/api/submit-poem",
            data={
                "firstName": "Ada",
                "email": "poet@example.com",
                "tier": "single",
                "poemTitle": "Ode",
                "paymentId": "pay_1",
                "paymentMethod": "razorpay",
            },
            files={
                "poemFile": ("ode.pdf", b"%PDF-1.4", PDF),
                "photoFile": ("me.jpg", b"\xff\xd8", "image/jpeg"),
            },
            headers=USER,
        )
        self.assertEqual(response.status_code, 201, response.text)
        record = self.db.get_submission(response.json()["submissionIds"][0])
        self.assertTrue(record.poem_file_url.endswith("_ode.pdf"))
        self.assertTrue(record.photo_url.endswith("_me.jpg"))
        self.assertEqual(record.payment_method, "razorpay")
        self.assertEqual(len(self.storage.stored_objects), 2)

    def test_submit_poem_rejects_bad_file_type(self):
        response = self.client.post(
            "/api/submit-poem",
            data={
                "firstName": "Ada",
                "email": "poet@example.com",
                "tier": "free",
                "poemTitle": "Ode",
            },
            files={"poemFile": ("ode.exe", b"MZ", "application/octet-stream")},
            headers=USER,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.db.submissions, {})
        self.assertEqual(self.storage.stored_objects, {})

    def test_submit_poem_rejects_multi_poem_tier(self):
        response = self.client.post(
            "/api/submit-poem",
            data={
                "firstName": "Ada",
                "email": "poet@example.com",
                "tier": "double",
                "poemTitle": "Ode",
                "poemText": "x",
            },
            headers=USER,
        )
        self.assertEqual(response.status_code, 400)

    def test_submit_multiple_poems(self):
        response = self.client.post(
            "/api/submit-multiple-poems",
            data={
                "firstName": "Ada",
                "email": "poet@example.com",
                "tier": "double",
                "poemTitles": ["First", "Second"],
                "paymentId": "pay_9",
            },
            files=[
                ("poemFiles", ("one.pdf", b"%PDF-1", PDF)),
                ("poemFiles", ("two.pdf", b"%PDF-2", PDF)),
            ],
            headers=USER,
        )
        self.assertEqual(response.status_code, 201, response.text)
        ids = response.json()["submissionIds"]
        self.assertEqual(len(ids), 2)
        titles = sorted(self.db.get_submission(i).poem_title for i in ids)
        self.assertEqual(titles, ["First", "Second"])

        mine = self.client.get("/api/users/uid-1/submissions", headers=USER)
        self.assertEqual(len(mine.json()), 2)
        self.assertEqual(
            self.client.get("/api/users/uid-1/submissions", headers=OTHER).status_code,
            403,
        )

    def test_rejected_multipart_entry_stores_nothing(self):
        response = self.client.post(
            "/api/submit-poem",
            data={
                "firstName": "Ada",
                "email": "poet@example.com",
                "tier": "single",
                "poemTitle": "Ode",
            },
            files={
                "poemFile": ("ode.pdf", b"%PDF-1.4", PDF),
                "photoFile": ("me.jpg", b"\xff\xd8", "image/jpeg"),
            },
            headers=USER,
        )
        self.assertEqual(response.status_code, 402)
        self.assertEqual(self.storage.stored_objects, {})
        self.assertEqual(self.db.submissions, {})

    def test_rejected_multiple_poems_entry_stores_nothing(self):
        self.submit_json(
            headers=USER, tier="single", couponCode="DISCOUNT10", paymentId="pay_1"
        )
        response = self.client.post(
            "/api/submit-multiple-poems",
            data={
                "firstName": "Ada",
                "email": "poet@example.com",
                "tier": "double",
                "poemTitles": ["First", "Second"],
                "couponCode": "DISCOUNT10",
                "paymentId": "pay_2",
            },
            files=[
                ("poemFiles", ("one.pdf", b"%PDF-1", PDF)),
                ("poemFiles", ("two.pdf", b"%PDF-2", PDF)),
            ],
            headers=USER,
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("already been used", response.json()["detail"])
        self.assertEqual(self.storage.stored_objects, {})
        self.assertEqual(len(self.db.submissions), 1)

    def test_submit_multiple_poems_title_file_mismatch(self):
        response = self.client.post(
            "/api/submit-multiple-poems",
            data={
                "firstName": "Ada",
                "email": "poet@example.com",
                "tier": "double",
                "poemTitles": ["Only one"],
                "paymentId": "pay_9",
            },
            files=[
                ("poemFiles", ("one.pdf", b"%PDF-1", PDF)),
                ("poemFiles", ("two.pdf", b"%PDF-2", PDF)),
            ],
        )
        self.assertEqual(response.status_code, 400)

    def test_stats(self):
        self.submit_json(headers=USER)
        self.submit_json(
            email="someone@example.com", tier="single", paymentId="pay_1"
        )
        stats = self.client.get("/api/stats/submissions").json()
        self.assertEqual(stats["totalPoets"], 2)
        self.assertEqual(stats["totalSubmissions"], 2)
        self.assertIn("lastUpdated", stats)


class AdminApiTests(ApiTestCase):
    def test_admin_routes_reject_non_admins(self):
        for path in ("/api/admin/settings", "/api/admin/submissions", "/api/admin/users"):
            self.assertEqual(self.client.get(path).status_code, 401)
            self.assertEqual(self.client.get(path, headers=USER).status_code, 403)
            self.assertEqual(self.client.get(path, headers=ADMIN).status_code, 200)

    def test_unverified_admin_email_rejected(self):
        self.verifier.add(
            "unverified-token",
            Identity(uid="x", email="admin@example.com", email_verified=False),
        )
        response = self.client.get(
            "/api/admin/settings", headers={"Authorization": "Bearer unverified-token"}
        )
        self.assertEqual(response.status_code, 403)

    def test_settings_validation(self):
        unknown = self.client.post(
            "/api/admin/settings", json={"settings": {"colour": "red"}}, headers=ADMIN
        )
        self.assertEqual(unknown.status_code, 400)
        bad_flag = self.client.post(
            "/api/admin/settings",
            json={"settings": {"free_tier_enabled": "maybe"}},
            headers=ADMIN,
        )
        self.assertEqual(bad_flag.status_code, 400)

        ok = self.client.post(
            "/api/admin/settings",
            json={"settings": {"submission_deadline": "2025-03-31"}},
            headers=ADMIN,
        )
        self.assertEqual(ok.status_code, 200)
        public = self.client.get("/api/free-tier-status").json()
        self.assertEqual(public["submissionDeadline"], "2025-03-31")

    def test_evaluation_and_winners(self):
        entry = self.submit_json(headers=USER).json()
        submission_id = entry["submissionIds"][0]

        evaluated = self.client.post(
            f"/api/admin/submissions/{submission_id}/evaluation",
            json={
                "status": "evaluated",
                "scoreBreakdown": {
                    "originality": 18,
                    "emotion": 17,
                    "structure": 16,
                    "language": 19,
                    "theme": 15,
                },
            },
            headers=ADMIN,
        )
        self.assertEqual(evaluated.status_code, 200)
        self.assertEqual(evaluated.json()["score"], 85)
        self.assertEqual(evaluated.json()["status"], "evaluated")

        out_of_range = self.client.post(
            f"/api/admin/submissions/{submission_id}/evaluation",
            json={"score": 150},
            headers=ADMIN,
        )
        self.assertEqual(out_of_range.status_code, 422)

        bad_position = self.client.post(
            f"/api/admin/update-winner/{submission_id}",
            json={"isWinner": True, "winnerPosition": 4},
            headers=ADMIN,
        )
        self.assertEqual(bad_position.status_code, 400)

        winner = self.client.post(
            f"/api/admin/update-winner/{submission_id}",
            json={"isWinner": True, "winnerPosition": 1},
            headers=ADMIN,
        )
        self.assertEqual(winner.status_code, 200)
        winners = self.client.get("/api/submissions/winners").json()
        self.assertEqual(len(winners), 1)
        self.assertEqual(winners[0]["winnerPosition"], 1)
        self.assertEqual(winners[0]["poemTitle"], "Ode")

        missing = self.client.post(
            "/api/admin/update-winner/9999",
            json={"isWinner": True, "winnerPosition": 1},
            headers=ADMIN,
        )
        self.assertEqual(missing.status_code, 404)

    def test_admin_management(self):
        added = self.client.post(
            "/api/admin/admins", json={"email": "Editor@Example.com"}, headers=ADMIN
        )
        self.assertEqual(added.status_code, 201)
        self.assertEqual(added.json()["email"], "editor@example.com")
        emails = [a["email"] for a in self.client.get("/api/admin/admins", headers=ADMIN).json()]
        self.assertIn("editor@example.com", emails)

        removed = self.client.delete(
            "/api/admin/admins/editor@example.com", headers=ADMIN
        )
        self.assertEqual(removed.status_code, 200)
        self.assertEqual(
            self.client.delete(
                "/api/admin/admins/admin@example.com", headers=ADMIN
            ).status_code,
            400,
        )

    def test_admin_cannot_remove_self_with_mixed_case_email(self):
        self.verifier.add(
            "mixed-token",
            Identity(uid="admin-uid", email="Admin@Example.com", email_verified=True),
        )
        response = self.client.delete(
            "/api/admin/admins/admin@example.com",
            headers={"Authorization": "Bearer mixed-token"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertTrue(self.db.is_admin("admin@example.com"))

    def test_contact_form(self):
        response = self.client.post(
            "/api/contact",
            json={"name": "Reader", "email": "reader@example.com", "message": "Hello"},
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(json.loads(self.queue.items[0])["kind"], "contact_ack")

        contacts = self.client.get("/api/admin/contacts", headers=ADMIN).json()
        self.assertEqual(len(contacts), 1)
        self.assertEqual(contacts[0]["message"], "Hello")


class NotificationApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.client.post("/api/users", json={}, headers=USER)
        self.client.post("/api/users", json={}, headers=OTHER)

    def test_broadcast_and_read(self):
        sent = self.client.post(
            "/api/admin/notifications/send",
            json={"title": "Results", "message": "Out now", "type": "contest"},
            headers=ADMIN,
        )
        self.assertEqual(sent.status_code, 201)
        self.assertEqual(sent.json()["recipientCount"], 2)
        self.assertEqual(self.queue.items, [])

        inbox = self.client.get("/api/users/uid-1/notifications", headers=USER).json()
        self.assertEqual(len(inbox), 1)
        self.assertFalse(inbox[0]["isRead"])

        other_read = self.client.post(
            f"/api/notifications/{inbox[0]['id']}/read", headers=OTHER
        )
        self.assertEqual(other_read.status_code, 404)
        read = self.client.post(f"/api/notifications/{inbox[0]['id']}/read", headers=USER)
        self.assertEqual(read.status_code, 200)
        inbox = self.client.get("/api/users/uid-1/notifications", headers=USER).json()
        self.assertTrue(inbox[0]["isRead"])

    def test_personal_notification_with_email(self):
        sent = self.client.post(
            "/api/admin/notifications/send",
            json={
                "title": "Congrats",
                "message": "You placed first",
                "type": "personal",
                "targetUserEmail": "other@example.com",
                "sendEmail": True,
            },
            headers=ADMIN,
        )
        self.assertEqual(sent.json()["recipientCount"], 1)
        self.assertEqual(len(self.queue.items), 1)
        self.assertEqual(json.loads(self.queue.items[0])["to"], "other@example.com")
        self.assertEqual(
            self.client.get("/api/users/uid-1/notifications", headers=USER).json(), []
        )

    def test_queue_outage_does_not_fail_send(self):
        self.queue = UnavailableQueue()
        with self.assertLogs("writory.routes.notifications", level="ERROR"):
            sent = self.client.post(
                "/api/admin/notifications/send",
                json={"title": "Results", "message": "Out now", "sendEmail": True},
                headers=ADMIN,
            )
        self.assertEqual(sent.status_code, 201)
        self.assertEqual(sent.json()["recipientCount"], 2)
        self.assertEqual(len(self.db.notifications), 1)

    def test_unknown_target_user(self):
        response = self.client.post(
            "/api/admin/notifications/send",
            json={"title": "Hi", "message": "x", "targetUserEmail": "ghost@example.com"},
            headers=ADMIN,
        )
        self.assertEqual(response.status_code, 404)


class WallApiTests(ApiTestCase):
    def create_post(self, headers=USER, title="Dawn"):
        return self.client.post(
            "/api/wall-posts",
            json={"title": title, "content": "Light breaks", "category": "nature"},
            headers=headers,
        )

    def test_moderation_flow_and_likes(self):
        created = self.create_post()
        self.assertEqual(created.status_code, 201)
        post_id = created.json()["id"]
        self.assertEqual(created.json()["status"], "pending")
        self.assertEqual(created.json()["authorName"], "Ada")
        self.assertEqual(self.client.get("/api/wall-posts").json(), [])

        pending = self.client.get(
            "/api/wall-posts/admin", params={"status": "pending"}, headers=ADMIN
        ).json()
        self.assertEqual([p["id"] for p in pending], [post_id])

        self.assertEqual(
            self.client.post(f"/api/wall-posts/{post_id}/like", headers=OTHER).status_code,
            404,
        )
        approved = self.client.post(
            f"/api/wall-posts/{post_id}/approve", json={"notes": "lovely"}, headers=ADMIN
        )
        self.assertEqual(approved.status_code, 200)
        self.assertEqual(approved.json()["moderationNotes"], "lovely")
        self.assertEqual(len(self.client.get("/api/wall-posts").json()), 1)

        self.client.post(f"/api/wall-posts/{post_id}/like", headers=OTHER)
        liked = self.client.post(f"/api/wall-posts/{post_id}/like", headers=OTHER)
        self.assertEqual(liked.json()["likes"], 1)
        unliked = self.client.post(f"/api/wall-posts/{post_id}/unlike", headers=OTHER)
        self.assertEqual(unliked.json()["likes"], 0)

    def test_reject_requires_admin(self):
        post_id = self.create_post().json()["id"]
        self.assertEqual(
            self.client.post(f"/api/wall-posts/{post_id}/reject", headers=USER).status_code,
            403,
        )
        rejected = self.client.post(f"/api/wall-posts/{post_id}/reject", headers=ADMIN)
        self.assertEqual(rejected.json()["status"], "rejected")

    def test_pending_post_limit(self):
        for i in range(5):
            self.assertEqual(self.create_post(title=f"Post {i}").status_code, 201)
        self.assertEqual(self.create_post(title="One too many").status_code, 429)

    def test_blank_title_rejected(self):
        response = self.create_post(title="   ")
        self.assertEqual(response.status_code, 422)
        self.assertEqual(self.db.list_wall_posts(), [])


if __name__ == "__main__":
    unittest.main()
