import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import event, insert

from writory.db import (
    InMemoryDbClient,
    NewSubmission,
    SqlDbClient,
    SubmissionBatch,
    new_submission_uuid,
)
from writory.errors import (
    ConflictError,
    CouponAlreadyUsedError,
    FreeSubmissionUsedError,
    NotFoundError,
)
from writory.models import CouponUsageRow, UserSubmissionCountRow

MONTH = "2025-03"


def _row(email="poet@example.com", title="Ode", tier="free", price="0.00", **kwargs):
    return NewSubmission(
        first_name="Ada",
        email=email,
        poem_title=title,
        tier=tier,
        price=Decimal(price),
        contest_month=kwargs.pop("contest_month", MONTH),
        submission_uuid=kwargs.pop("submission_uuid", new_submission_uuid()),
        poem_text="Roses are red",
        **kwargs,
    )


class DbClientContract:
    """Behaviour shared by every DbClient implementation."""

    def make_db(self):
        raise NotImplementedError

    def setUp(self):
        self.db = self.make_db()
        self.user, _ = self.db.get_or_create_user(
            "uid-1", "Poet@Example.com", name="Ada"
        )

    def _free_batch(self, reset=None):
        return SubmissionBatch(
            rows=[_row()],
            contest_month=MONTH,
            user_id=self.user.id,
            user_uid=self.user.uid,
            free_entry=True,
            free_tier_reset_timestamp=reset,
        )

    def test_default_settings_seeded(self):
        self.assertEqual(self.db.get_setting("free_tier_enabled"), "true")
        self.assertIsNone(self.db.get_setting("free_tier_reset_timestamp"))

    def test_get_or_create_user_is_idempotent(self):
        again, created = self.db.get_or_create_user("uid-1", "poet@example.com")
        self.assertFalse(created)
        self.assertEqual(again.id, self.user.id)
        self.assertEqual(self.user.email, "poet@example.com")
        self.assertEqual(len(self.db.list_users()), 1)

    def test_email_reused_by_other_uid_conflicts(self):
        with self.assertRaises(ConflictError):
            self.db.get_or_create_user("uid-2", "poet@example.com")

    def test_update_user_profile(self):
        updated = self.db.update_user_profile(
            "uid-1", phone="+911234", profile_picture_url="https://img/p.png"
        )
        self.assertEqual(updated.phone, "+911234")
        self.assertEqual(updated.name, "Ada")
        with self.assertRaises(NotFoundError):
            self.db.update_user_profile("missing", name="x")

    def test_free_entry_consumed_once_per_month(self):
        created = self.db.create_submission_batch(self._free_batch())
        self.assertEqual(len(created), 1)
        self.assertEqual(created[0].status, "pending")
        self.assertEqual(created[0].user_id, self.user.id)

        with self.assertRaises(FreeSubmissionUsedError):
            self.db.create_submission_batch(self._free_batch())

        count = self.db.get_submission_count(self.user.id, MONTH)
        self.assertTrue(count.free_submission_used)
        self.assertEqual(count.total_submissions, 1)
        self.assertEqual(len(self.db.list_submissions_by_user(self.user.id)), 1)

    def test_reset_timestamp_restores_free_entry(self):
        self.db.create_submission_batch(self._free_batch())
        later = (datetime.now(timezone.utc) + timedelta(seconds=1)).isoformat()
        self.db.create_submission_batch(self._free_batch(reset=later))

        count = self.db.get_submission_count(self.user.id, MONTH)
        self.assertEqual(count.total_submissions, 2)
        self.assertTrue(count.free_submission_used)

    def test_reset_before_use_does_not_restore(self):
        earlier = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
        self.db.create_submission_batch(self._free_batch(reset=earlier))
        with self.assertRaises(FreeSubmissionUsedError):
            self.db.create_submission_batch(self._free_batch(reset=earlier))

    def test_paid_entry_does_not_touch_free_flag(self):
        uuid = new_submission_uuid()
        rows = [
            _row(tier="double", price="100.00", title="One", submission_uuid=uuid),
            _row(
                tier="double",
                price="0.00",
                title="Two",
                submission_uuid=uuid,
                poem_index=1,
                total_poems=2,
            ),
        ]
        rows[0].total_poems = 2
        created = self.db.create_submission_batch(
            SubmissionBatch(
                rows=rows,
                contest_month=MONTH,
                user_id=self.user.id,
                user_uid=self.user.uid,
            )
        )
        self.assertEqual([r.poem_index for r in created], [0, 1])
        self.assertEqual({r.submission_uuid for r in created}, {uuid})
        count = self.db.get_submission_count(self.user.id, MONTH)
        self.assertFalse(count.free_submission_used)
        self.assertEqual(count.total_submissions, 1)

    def test_coupon_usage_is_recorded_once(self):
        batch = SubmissionBatch(
            rows=[_row(tier="single", price="45.00", coupon_code="DISCOUNT10")],
            contest_month=MONTH,
            user_id=self.user.id,
            user_uid=self.user.uid,
            coupon_code="DISCOUNT10",
            discount_amount=Decimal("5.00"),
        )
        self.db.create_submission_batch(batch)
        self.assertTrue(self.db.has_used_coupon("DISCOUNT10", "uid-1", MONTH))
        self.assertFalse(self.db.has_used_coupon("DISCOUNT10", "uid-1", "2025-04"))

        batch.rows = [_row(tier="single", price="45.00", coupon_code="DISCOUNT10")]
        with self.assertRaises(CouponAlreadyUsedError):
            self.db.create_submission_batch(batch)
        self.assertEqual(len(self.db.list_submissions()), 1)

    def test_anonymous_submission_and_orphan_linking(self):
        self.db.create_submission_batch(
            SubmissionBatch(
                rows=[_row(tier="single", price="50.00", payment_id="pay_1")],
                contest_month=MONTH,
            )
        )
        orphan = self.db.list_submissions()[0]
        self.assertIsNone(orphan.user_id)

        self.assertEqual(self.db.link_orphan_submissions(), 1)
        self.assertEqual(self.db.get_submission(orphan.id).user_id, self.user.id)
        self.assertEqual(self.db.link_orphan_submissions(), 0)

    def test_evaluation_and_winners(self):
        first, = self.db.create_submission_batch(
            SubmissionBatch(rows=[_row(title="A")], contest_month=MONTH)
        )
        second, = self.db.create_submission_batch(
            SubmissionBatch(rows=[_row(title="B")], contest_month=MONTH)
        )
        evaluated = self.db.update_submission_evaluation(
            first.id,
            score=88,
            status="evaluated",
            type="Human",
            score_breakdown={"originality": 18},
        )
        self.assertEqual(evaluated.score, 88)
        self.assertEqual(evaluated.score_breakdown, {"originality": 18})

        self.db.update_winner(second.id, is_winner=True, winner_position=1)
        self.db.update_winner(first.id, is_winner=True, winner_position=2)
        winners = self.db.list_winners()
        self.assertEqual([w.poem_title for w in winners], ["B", "A"])

        cleared = self.db.update_winner(first.id, is_winner=False, winner_position=2)
        self.assertIsNone(cleared.winner_position)
        self.assertEqual(len(self.db.list_winners()), 1)
        self.assertEqual(len(self.db.list_submissions(status="evaluated")), 1)

        with self.assertRaises(NotFoundError):
            self.db.update_winner(9999, is_winner=True, winner_position=1)

    def test_submission_stats(self):
        self.db.create_submission_batch(
            SubmissionBatch(rows=[_row(email="a@example.com")], contest_month=MONTH)
        )
        self.db.create_submission_batch(
            SubmissionBatch(rows=[_row(email="a@example.com")], contest_month=MONTH)
        )
        self.db.create_submission_batch(
            SubmissionBatch(rows=[_row(email="b@example.com")], contest_month=MONTH)
        )
        self.assertEqual(self.db.submission_stats(), (2, 3))

    def test_settings_upsert(self):
        self.db.update_setting("free_tier_enabled", "false")
        self.db.update_setting("submission_deadline", "2025-03-31")
        self.assertEqual(self.db.get_setting("free_tier_enabled"), "false")
        keys = [s.key for s in self.db.get_all_settings()]
        self.assertEqual(keys, ["free_tier_enabled", "submission_deadline"])

    def test_admin_store(self):
        self.db.add_admin("Boss@Example.com")
        self.db.add_admin("boss@example.com")
        self.assertTrue(self.db.is_admin("BOSS@example.com"))
        self.assertEqual(len(self.db.list_admins()), 1)
        self.assertTrue(self.db.remove_admin("boss@example.com"))
        self.assertFalse(self.db.remove_admin("boss@example.com"))
        self.assertFalse(self.db.is_admin("boss@example.com"))

    def test_contacts(self):
        self.db.create_contact(name="A", email="a@example.com", message="Hi")
        self.db.create_contact(
            name="B", email="b@example.com", message="Hello", subject="Q"
        )
        contacts = self.db.list_contacts()
        self.assertEqual(len(contacts), 2)
        self.assertEqual({c.name for c in contacts}, {"A", "B"})

    def test_notifications_fan_out_and_read(self):
        other, _ = self.db.get_or_create_user("uid-2", "other@example.com")
        notification = self.db.create_notification(
            title="Results",
            message="Winners announced",
            type="winner",
            sent_by="admin@example.com",
            recipient_user_ids=[self.user.id, other.id],
        )
        self.assertEqual(notification.recipient_count, 2)

        inbox = self.db.list_user_notifications(self.user.id)
        self.assertEqual(len(inbox), 1)
        self.assertEqual(inbox[0].title, "Results")
        self.assertFalse(inbox[0].is_read)

        self.assertFalse(self.db.mark_notification_read(inbox[0].id, other.id))
        self.assertTrue(self.db.mark_notification_read(inbox[0].id, self.user.id))
        self.assertTrue(self.db.list_user_notifications(self.user.id)[0].is_read)

    def test_wall_post_moderation_and_likes(self):
        post = self.db.create_wall_post(
            user_id=self.user.id,
            user_uid=self.user.uid,
            title="Dawn",
            content="Light breaks",
            author_name="Ada",
        )
        self.assertEqual(post.status, "pending")
        self.assertEqual(self.db.count_pending_wall_posts("uid-1"), 1)
        self.assertEqual(self.db.list_wall_posts(status="approved"), [])

        approved = self.db.moderate_wall_post(
            post.id, status="approved", moderated_by="admin@example.com"
        )
        self.assertEqual(approved.moderated_by, "admin@example.com")
        self.assertEqual(self.db.count_pending_wall_posts("uid-1"), 0)
        self.assertEqual(len(self.db.list_wall_posts(status="approved")), 1)

        liked = self.db.set_wall_post_like(post.id, "uid-2", True)
        liked = self.db.set_wall_post_like(post.id, "uid-2", True)
        self.assertEqual(liked.likes, 1)
        self.assertEqual(liked.liked_by, ["uid-2"])
        unliked = self.db.set_wall_post_like(post.id, "uid-2", False)
        self.assertEqual(unliked.likes, 0)

        with self.assertRaises(NotFoundError):
            self.db.set_wall_post_like(9999, "uid-2", True)


class InMemoryDbClientTests(DbClientContract, unittest.TestCase):
    def make_db(self):
        return InMemoryDbClient()

    def test_reset_clears_data_and_reseeds(self):
        self.db.update_setting("free_tier_enabled", "false")
        self.db.reset()
        self.assertEqual(self.db.list_users(), [])
        self.assertEqual(self.db.get_setting("free_tier_enabled"), "true")


class SqlDbClientTests(DbClientContract, unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL client.
    """

    def make_db(self):
        return SqlDbClient("sqlite+pysqlite:///:memory:")

    def test_timestamps_come_back_timezone_aware(self):
        self.assertIsNotNone(self.user.created_at.tzinfo)
        self.db.create_submission_batch(self._free_batch())
        count = self.db.get_submission_count(self.user.id, MONTH)
        self.assertIsNotNone(count.free_used_at.tzinfo)

    def test_prices_round_trip_as_decimal(self):
        self.db.create_submission_batch(
            SubmissionBatch(
                rows=[_row(tier="single", price="45.00", discount_amount=Decimal("5.00"))],
                contest_month=MONTH,
            )
        )
        record = self.db.list_submissions()[0]
        self.assertEqual(record.price, Decimal("45.00"))
        self.assertEqual(record.discount_amount, Decimal("5.00"))

    def _insert_before_flush(self, statement):
        # Lands inside the batch's transaction after its own checks have run,
        # like a concurrent entry committing between check and insert.
        def insert_conflicting_row(session, flush_context, instances):
            session.connection().execute(statement)

        event.listen(self.db.Session, "before_flush", insert_conflicting_row, once=True)

    def test_concurrent_count_insert_becomes_conflict(self):
        self._insert_before_flush(
            insert(UserSubmissionCountRow).values(
                user_id=self.user.id,
                contest_month=MONTH,
                free_submission_used=True,
                total_submissions=1,
                updated_at=datetime.now(timezone.utc),
            )
        )
        with self.assertRaises(ConflictError):
            self.db.create_submission_batch(self._free_batch())
        self.assertEqual(self.db.list_submissions(), [])
        self.assertIsNone(self.db.get_submission_count(self.user.id, MONTH))

    def test_concurrent_coupon_use_becomes_conflict(self):
        self._insert_before_flush(
            insert(CouponUsageRow).values(
                coupon_code="DISCOUNT10",
                user_uid=self.user.uid,
                user_id=self.user.id,
                submission_uuid=new_submission_uuid(),
                contest_month=MONTH,
                discount_amount=Decimal("5.00"),
                used_at=datetime.now(timezone.utc),
            )
        )
        batch = SubmissionBatch(
            rows=[_row(tier="single", price="45.00", coupon_code="DISCOUNT10")],
            contest_month=MONTH,
            user_id=self.user.id,
            user_uid=self.user.uid,
            coupon_code="DISCOUNT10",
            discount_amount=Decimal("5.00"),
        )
        with self.assertRaises(ConflictError):
            self.db.create_submission_batch(batch)
        self.assertEqual(self.db.list_submissions(), [])
        self.assertFalse(self.db.has_used_coupon("DISCOUNT10", "uid-1", MONTH))


if __name__ == "__main__":
    unittest.main()
