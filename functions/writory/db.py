"""
Database abstraction for the relational store and an in-memory test implementation.

`SqlDbClient` is the single source of truth in every deployment.
`InMemoryDbClient` implements the same protocol for unit tests only.
"""

from __future__ import annotations

import itertools
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, Optional, Protocol

from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shared.constants import DEFAULT_SETTINGS
from shared.types import SubmissionStatus, WallPostStatus
from writory.entitlements import effective_free_used
from writory.errors import (
    ConflictError,
    CouponAlreadyUsedError,
    FreeSubmissionUsedError,
    NotFoundError,
)
from writory.models import (
    AdminSettingRow,
    AdminUserRow,
    Base,
    ContactRow,
    CouponUsageRow,
    NotificationRow,
    SubmissionRow,
    UserNotificationRow,
    UserRow,
    UserSubmissionCountRow,
    WallPostRow,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class UserRecord:
    id: int
    uid: str
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    profile_picture_url: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class NewSubmission:
    """Column values for one poem row, before it is persisted."""

    first_name: str
    email: str
    poem_title: str
    tier: str
    price: Decimal
    contest_month: str
    submission_uuid: str
    last_name: Optional[str] = None
    phone: Optional[str] = None
    age: Optional[str] = None
    poem_file_url: Optional[str] = None
    poem_text: Optional[str] = None
    photo_url: Optional[str] = None
    coupon_code: Optional[str] = None
    discount_amount: Decimal = Decimal("0.00")
    payment_id: Optional[str] = None
    payment_method: Optional[str] = None
    contest_type: Optional[str] = None
    challenge_title: Optional[str] = None
    poem_index: int = 0
    total_poems: int = 1


@dataclass
class SubmissionRecord(NewSubmission):
    id: int = 0
    user_id: Optional[int] = None
    submitted_at: datetime = field(default_factory=utcnow)
    status: str = SubmissionStatus.PENDING.value
    score: Optional[int] = None
    type: str = "Human"
    score_breakdown: Optional[dict] = None
    is_winner: bool = False
    winner_position: Optional[int] = None


@dataclass
class SubmissionBatch:
    """Everything written atomically for one contest entry."""

    rows: list[NewSubmission]
    contest_month: str
    user_id: Optional[int] = None
    user_uid: Optional[str] = None
    free_entry: bool = False
    free_tier_reset_timestamp: Optional[str] = None
    coupon_code: Optional[str] = None
    discount_amount: Decimal = Decimal("0.00")


@dataclass
class SubmissionCountRecord:
    user_id: int
    contest_month: str
    free_submission_used: bool = False
    total_submissions: int = 0
    free_used_at: Optional[datetime] = None
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class CouponUsageRecord:
    id: int
    coupon_code: str
    user_uid: str
    submission_uuid: str
    contest_month: str
    discount_amount: Decimal
    user_id: Optional[int] = None
    used_at: datetime = field(default_factory=utcnow)


@dataclass
class ContactRecord:
    id: int
    name: str
    email: str
    message: str
    phone: Optional[str] = None
    subject: Optional[str] = None
    submitted_at: datetime = field(default_factory=utcnow)


@dataclass
class AdminSettingRecord:
    key: str
    value: str
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class AdminUserRecord:
    id: int
    email: str
    role: str = "admin"
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class NotificationRecord:
    id: int
    title: str
    message: str
    type: str
    sent_by: str
    target_user_email: Optional[str] = None
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    recipient_count: int = 0


@dataclass
class UserNotificationRecord:
    id: int
    notification_id: int
    user_id: int
    title: str
    message: str
    type: str
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class WallPostRecord:
    id: int
    user_id: int
    user_uid: str
    title: str
    content: str
    author_name: str
    category: Optional[str] = None
    author_instagram: Optional[str] = None
    status: str = WallPostStatus.PENDING.value
    moderated_by: Optional[str] = None
    moderated_at: Optional[datetime] = None
    moderation_notes: Optional[str] = None
    likes: int = 0
    liked_by: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


class DbClient(Protocol):
    """Interface for database access."""

    # Users
    def get_user(self, user_id: int) -> Optional[UserRecord]:
        ...

    def get_user_by_uid(self, uid: str) -> Optional[UserRecord]:
        ...

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    def get_or_create_user(
        self,
        uid: str,
        email: str,
        name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> tuple[UserRecord, bool]:
        ...

    def update_user_profile(
        self,
        uid: str,
        *,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        profile_picture_url: Optional[str] = None,
    ) -> UserRecord:
        ...

    def list_users(self, limit: int = 500) -> list[UserRecord]:
        ...

    # Submissions and entitlement
    def create_submission_batch(
        self, batch: SubmissionBatch
    ) -> list[SubmissionRecord]:
        ...

    def get_submission(self, submission_id: int) -> Optional[SubmissionRecord]:
        ...

    def list_submissions_by_user(self, user_id: int) -> list[SubmissionRecord]:
        ...

    def list_submissions(
        self,
        *,
        status: Optional[str] = None,
        contest_month: Optional[str] = None,
        limit: int = 500,
    ) -> list[SubmissionRecord]:
        ...

    def list_winners(self) -> list[SubmissionRecord]:
        ...

    def submission_stats(self) -> tuple[int, int]:
        ...

    def update_submission_evaluation(
        self,
        submission_id: int,
        *,
        score: Optional[int],
        status: str,
        type: str,
        score_breakdown: Optional[dict],
    ) -> SubmissionRecord:
        ...

    def update_winner(
        self,
        submission_id: int,
        *,
        is_winner: bool,
        winner_position: Optional[int],
    ) -> SubmissionRecord:
        ...

    def link_orphan_submissions(self) -> int:
        ...

    def get_submission_count(
        self, user_id: int, contest_month: str
    ) -> Optional[SubmissionCountRecord]:
        ...

    def has_used_coupon(
        self, coupon_code: str, user_uid: str, contest_month: str
    ) -> bool:
        ...

    # Contacts
    def create_contact(
        self,
        *,
        name: str,
        email: str,
        message: str,
        phone: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> ContactRecord:
        ...

    def list_contacts(self, limit: int = 500) -> list[ContactRecord]:
        ...

    # Admin settings and admin users
    def get_setting(self, key: str) -> Optional[str]:
        ...

    def get_all_settings(self) -> list[AdminSettingRecord]:
        ...

    def update_setting(self, key: str, value: str) -> AdminSettingRecord:
        ...

    def is_admin(self, email: str) -> bool:
        ...

    def add_admin(self, email: str, role: str = "admin") -> AdminUserRecord:
        ...

    def remove_admin(self, email: str) -> bool:
        ...

    def list_admins(self) -> list[AdminUserRecord]:
        ...

    # Notifications
    def create_notification(
        self,
        *,
        title: str,
        message: str,
        type: str,
        sent_by: str,
        recipient_user_ids: Iterable[int],
        target_user_email: Optional[str] = None,
    ) -> NotificationRecord:
        ...

    def list_user_notifications(
        self, user_id: int
    ) -> list[UserNotificationRecord]:
        ...

    def mark_notification_read(
        self, user_notification_id: int, user_id: int
    ) -> bool:
        ...

    # Wall
    def create_wall_post(
        self,
        *,
        user_id: int,
        user_uid: str,
        title: str,
        content: str,
        author_name: str,
        category: Optional[str] = None,
        author_instagram: Optional[str] = None,
    ) -> WallPostRecord:
        ...

    def get_wall_post(self, post_id: int) -> Optional[WallPostRecord]:
        ...

    def list_wall_posts(
        self, status: Optional[str] = None, limit: int = 200
    ) -> list[WallPostRecord]:
        ...

    def count_pending_wall_posts(self, user_uid: str) -> int:
        ...

    def moderate_wall_post(
        self,
        post_id: int,
        *,
        status: str,
        moderated_by: str,
        notes: Optional[str] = None,
    ) -> WallPostRecord:
        ...

    def set_wall_post_like(
        self, post_id: int, user_uid: str, liked: bool
    ) -> WallPostRecord:
        ...


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _sort_winners(records: Iterable[SubmissionRecord]) -> list[SubmissionRecord]:
    return sorted(
        records,
        key=lambda r: (r.winner_position or 99, r.submitted_at),
    )


class InMemoryDbClient:
    """Simple in-memory database for tests."""

    def __init__(self):
        self._lock = threading.RLock()
        self.users: Dict[int, UserRecord] = {}
        self.submissions: Dict[int, SubmissionRecord] = {}
        self.counts: Dict[tuple[int, str], SubmissionCountRecord] = {}
        self.coupon_usage: Dict[tuple[str, str, str], CouponUsageRecord] = {}
        self.contacts: Dict[int, ContactRecord] = {}
        self.settings: Dict[str, AdminSettingRecord] = {}
        self.admins: Dict[str, AdminUserRecord] = {}
        self.notifications: Dict[int, NotificationRecord] = {}
        self.user_notifications: Dict[int, UserNotificationRecord] = {}
        self.wall_posts: Dict[int, WallPostRecord] = {}
        self._ids = itertools.count(1)
        self._seed_settings()

    def _next_id(self) -> int:
        return next(self._ids)

    def _seed_settings(self) -> None:
        for key, value in DEFAULT_SETTINGS.items():
            self.settings.setdefault(key, AdminSettingRecord(key=key, value=value))

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.users.clear()
            self.submissions.clear()
            self.counts.clear()
            self.coupon_usage.clear()
            self.contacts.clear()
            self.settings.clear()
            self.admins.clear()
            self.notifications.clear()
            self.user_notifications.clear()
            self.wall_posts.clear()
            self._seed_settings()

    # Users

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        return self.users.get(user_id)

    def get_user_by_uid(self, uid: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.uid == uid:
                return user
        return None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        email = _normalize_email(email)
        for user in self.users.values():
            if user.email == email:
                return user
        return None

    def get_or_create_user(
        self,
        uid: str,
        email: str,
        name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> tuple[UserRecord, bool]:
        with self._lock:
            existing = self.get_user_by_uid(uid)
            if existing:
                return existing, False
            if self.get_user_by_email(email):
                raise ConflictError(
                    "Email is already registered to a different account."
                )
            user = UserRecord(
                id=self._next_id(),
                uid=uid,
                email=_normalize_email(email),
                name=name,
                phone=phone,
            )
            self.users[user.id] = user
            return user, True

    def update_user_profile(
        self,
        uid: str,
        *,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        profile_picture_url: Optional[str] = None,
    ) -> UserRecord:
        user = self.get_user_by_uid(uid)
        if not user:
            raise NotFoundError("User not found")
        if name is not None:
            user.name = name
        if phone is not None:
            user.phone = phone
        if profile_picture_url is not None:
            user.profile_picture_url = profile_picture_url
        return user

    def list_users(self, limit: int = 500) -> list[UserRecord]:
        users = sorted(self.users.values(), key=lambda u: u.created_at, reverse=True)
        return users[:limit]

    # Submissions and entitlement

    def create_submission_batch(
        self, batch: SubmissionBatch
    ) -> list[SubmissionRecord]:
        now = utcnow()
        with self._lock:
            count = None
            if batch.user_id is not None:
                count = self.counts.get((batch.user_id, batch.contest_month))
            if batch.free_entry and count and effective_free_used(
                count.free_submission_used,
                count.free_used_at,
                batch.free_tier_reset_timestamp,
            ):
                raise FreeSubmissionUsedError(
                    "You have already used your free entry for this month."
                )
            coupon_key = None
            if batch.coupon_code and batch.user_uid:
                coupon_key = (batch.coupon_code, batch.user_uid, batch.contest_month)
                if coupon_key in self.coupon_usage:
                    raise CouponAlreadyUsedError(
                        "This coupon code has already been used."
                    )

            created = []
            for row in batch.rows:
                record = SubmissionRecord(
                    **vars(row),
                    id=self._next_id(),
                    user_id=batch.user_id,
                    submitted_at=now,
                )
                self.submissions[record.id] = record
                created.append(record)

            if batch.user_id is not None:
                if count is None:
                    count = SubmissionCountRecord(
                        user_id=batch.user_id, contest_month=batch.contest_month
                    )
                    self.counts[(batch.user_id, batch.contest_month)] = count
                count.total_submissions += 1
                if batch.free_entry:
                    count.free_submission_used = True
                    count.free_used_at = now
                count.updated_at = now

            if coupon_key:
                self.coupon_usage[coupon_key] = CouponUsageRecord(
                    id=self._next_id(),
                    coupon_code=batch.coupon_code,
                    user_uid=batch.user_uid,
                    user_id=batch.user_id,
                    submission_uuid=batch.rows[0].submission_uuid,
                    contest_month=batch.contest_month,
                    discount_amount=batch.discount_amount,
                    used_at=now,
                )
            return [replace(record) for record in created]

    def get_submission(self, submission_id: int) -> Optional[SubmissionRecord]:
        return self.submissions.get(submission_id)

    def list_submissions_by_user(self, user_id: int) -> list[SubmissionRecord]:
        records = [s for s in self.submissions.values() if s.user_id == user_id]
        return sorted(records, key=lambda r: (r.submitted_at, r.id), reverse=True)

    def list_submissions(
        self,
        *,
        status: Optional[str] = None,
        contest_month: Optional[str] = None,
        limit: int = 500,
    ) -> list[SubmissionRecord]:
        records = [
            s
            for s in self.submissions.values()
            if (status is None or s.status == status)
            and (contest_month is None or s.contest_month == contest_month)
        ]
        records.sort(key=lambda r: (r.submitted_at, r.id), reverse=True)
        return records[:limit]

    def list_winners(self) -> list[SubmissionRecord]:
        return _sort_winners(s for s in self.submissions.values() if s.is_winner)

    def submission_stats(self) -> tuple[int, int]:
        poets = {s.email for s in self.submissions.values()}
        return len(poets), len(self.submissions)

    def update_submission_evaluation(
        self,
        submission_id: int,
        *,
        score: Optional[int],
        status: str,
        type: str,
        score_breakdown: Optional[dict],
    ) -> SubmissionRecord:
        record = self.submissions.get(submission_id)
        if not record:
            raise NotFoundError("Submission not found")
        record.score = score
        record.status = status
        record.type = type
        record.score_breakdown = score_breakdown
        return record

    def update_winner(
        self,
        submission_id: int,
        *,
        is_winner: bool,
        winner_position: Optional[int],
    ) -> SubmissionRecord:
        record = self.submissions.get(submission_id)
        if not record:
            raise NotFoundError("Submission not found")
        record.is_winner = is_winner
        record.winner_position = winner_position if is_winner else None
        return record

    def link_orphan_submissions(self) -> int:
        linked = 0
        for record in self.submissions.values():
            if record.user_id is not None:
                continue
            user = self.get_user_by_email(record.email)
            if user:
                record.user_id = user.id
                linked += 1
        return linked

    def get_submission_count(
        self, user_id: int, contest_month: str
    ) -> Optional[SubmissionCountRecord]:
        return self.counts.get((user_id, contest_month))

    def has_used_coupon(
        self, coupon_code: str, user_uid: str, contest_month: str
    ) -> bool:
        return (coupon_code, user_uid, contest_month) in self.coupon_usage

    # Contacts

    def create_contact(
        self,
        *,
        name: str,
        email: str,
        message: str,
        phone: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> ContactRecord:
        record = ContactRecord(
            id=self._next_id(),
            name=name,
            email=email,
            message=message,
            phone=phone,
            subject=subject,
        )
        self.contacts[record.id] = record
        return record

    def list_contacts(self, limit: int = 500) -> list[ContactRecord]:
        records = sorted(
            self.contacts.values(), key=lambda c: (c.submitted_at, c.id), reverse=True
        )
        return records[:limit]

    # Admin settings and admin users

    def get_setting(self, key: str) -> Optional[str]:
        record = self.settings.get(key)
        return record.value if record else None

    def get_all_settings(self) -> list[AdminSettingRecord]:
        return sorted(self.settings.values(), key=lambda s: s.key)

    def update_setting(self, key: str, value: str) -> AdminSettingRecord:
        record = AdminSettingRecord(key=key, value=value)
        self.settings[key] = record
        return record

    def is_admin(self, email: str) -> bool:
        record = self.admins.get(_normalize_email(email))
        return bool(record and record.role == "admin")

    def add_admin(self, email: str, role: str = "admin") -> AdminUserRecord:
        email = _normalize_email(email)
        existing = self.admins.get(email)
        if existing:
            existing.role = role
            return existing
        record = AdminUserRecord(id=self._next_id(), email=email, role=role)
        self.admins[email] = record
        return record

    def remove_admin(self, email: str) -> bool:
        return self.admins.pop(_normalize_email(email), None) is not None

    def list_admins(self) -> list[AdminUserRecord]:
        return sorted(self.admins.values(), key=lambda a: a.created_at)

    # Notifications

    def create_notification(
        self,
        *,
        title: str,
        message: str,
        type: str,
        sent_by: str,
        recipient_user_ids: Iterable[int],
        target_user_email: Optional[str] = None,
    ) -> NotificationRecord:
        with self._lock:
            record = NotificationRecord(
                id=self._next_id(),
                title=title,
                message=message,
                type=type,
                sent_by=sent_by,
                target_user_email=target_user_email,
            )
            self.notifications[record.id] = record
            for user_id in recipient_user_ids:
                item = UserNotificationRecord(
                    id=self._next_id(),
                    notification_id=record.id,
                    user_id=user_id,
                    title=title,
                    message=message,
                    type=type,
                )
                self.user_notifications[item.id] = item
                record.recipient_count += 1
            return record

    def list_user_notifications(
        self, user_id: int
    ) -> list[UserNotificationRecord]:
        items = [
            n
            for n in self.user_notifications.values()
            if n.user_id == user_id
            and self.notifications[n.notification_id].is_active
        ]
        return sorted(items, key=lambda n: (n.created_at, n.id), reverse=True)

    def mark_notification_read(
        self, user_notification_id: int, user_id: int
    ) -> bool:
        item = self.user_notifications.get(user_notification_id)
        if not item or item.user_id != user_id:
            return False
        if not item.is_read:
            item.is_read = True
            item.read_at = utcnow()
        return True

    # Wall

    def create_wall_post(
        self,
        *,
        user_id: int,
        user_uid: str,
        title: str,
        content: str,
        author_name: str,
        category: Optional[str] = None,
        author_instagram: Optional[str] = None,
    ) -> WallPostRecord:
        record = WallPostRecord(
            id=self._next_id(),
            user_id=user_id,
            user_uid=user_uid,
            title=title,
            content=content,
            author_name=author_name,
            category=category,
            author_instagram=author_instagram,
        )
        self.wall_posts[record.id] = record
        return record

    def get_wall_post(self, post_id: int) -> Optional[WallPostRecord]:
        return self.wall_posts.get(post_id)

    def list_wall_posts(
        self, status: Optional[str] = None, limit: int = 200
    ) -> list[WallPostRecord]:
        posts = [
            p
            for p in self.wall_posts.values()
            if status is None or p.status == status
        ]
        posts.sort(key=lambda p: (p.created_at, p.id), reverse=True)
        return posts[:limit]

    def count_pending_wall_posts(self, user_uid: str) -> int:
        return sum(
            1
            for p in self.wall_posts.values()
            if p.user_uid == user_uid and p.status == WallPostStatus.PENDING
        )

    def moderate_wall_post(
        self,
        post_id: int,
        *,
        status: str,
        moderated_by: str,
        notes: Optional[str] = None,
    ) -> WallPostRecord:
        post = self.wall_posts.get(post_id)
        if not post:
            raise NotFoundError("Wall post not found")
        now = utcnow()
        post.status = status
        post.moderated_by = moderated_by
        post.moderated_at = now
        post.moderation_notes = notes
        post.updated_at = now
        return post

    def set_wall_post_like(
        self, post_id: int, user_uid: str, liked: bool
    ) -> WallPostRecord:
        with self._lock:
            post = self.wall_posts.get(post_id)
            if not post:
                raise NotFoundError("Wall post not found")
            if liked and user_uid not in post.liked_by:
                post.liked_by.append(user_uid)
            elif not liked and user_uid in post.liked_by:
                post.liked_by.remove(user_uid)
            post.likes = len(post.liked_by)
            post.updated_at = utcnow()
            return post


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (Postgres in
    production, SQLite for tests and local runs).
    """

    def __init__(self, database_url: str, *, create_tables: bool = True):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        if database_url.startswith("postgres://"):
            database_url = "postgresql://" + database_url[len("postgres://"):]
        engine_kwargs: dict = {"future": True, "pool_pre_ping": True}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url or database_url.endswith("://"):
                # One shared connection, otherwise every thread sees an empty DB.
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_recycle"] = 1800
        self.engine = create_engine(database_url, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        if create_tables:
            Base.metadata.create_all(self.engine)
        self.seed_default_settings()

    def seed_default_settings(self) -> None:
        with self.Session() as session:
            for key, value in DEFAULT_SETTINGS.items():
                if session.get(AdminSettingRow, key) is None:
                    session.add(
                        AdminSettingRow(
                            setting_key=key,
                            setting_value=value,
                            updated_at=utcnow(),
                        )
                    )
            session.commit()

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(select(1))

    # Row -> record converters

    @staticmethod
    def _to_user(row: UserRow) -> UserRecord:
        return UserRecord(
            id=row.id,
            uid=row.uid,
            email=row.email,
            name=row.name,
            phone=row.phone,
            profile_picture_url=row.profile_picture_url,
            created_at=_aware(row.created_at),
        )

    @staticmethod
    def _to_submission(row: SubmissionRow) -> SubmissionRecord:
        return SubmissionRecord(
            id=row.id,
            user_id=row.user_id,
            first_name=row.first_name,
            last_name=row.last_name,
            email=row.email,
            phone=row.phone,
            age=row.age,
            poem_title=row.poem_title,
            poem_file_url=row.poem_file_url,
            poem_text=row.poem_text,
            photo_url=row.photo_url,
            tier=row.tier,
            price=Decimal(row.price),
            coupon_code=row.coupon_code,
            discount_amount=Decimal(row.discount_amount),
            payment_id=row.payment_id,
            payment_method=row.payment_method,
            contest_month=row.contest_month,
            contest_type=row.contest_type,
            challenge_title=row.challenge_title,
            submission_uuid=row.submission_uuid,
            poem_index=row.poem_index,
            total_poems=row.total_poems,
            submitted_at=_aware(row.submitted_at),
            status=row.status,
            score=row.score,
            type=row.type,
            score_breakdown=row.score_breakdown,
            is_winner=bool(row.is_winner),
            winner_position=row.winner_position,
        )

    @staticmethod
    def _to_count(row: UserSubmissionCountRow) -> SubmissionCountRecord:
        return SubmissionCountRecord(
            user_id=row.user_id,
            contest_month=row.contest_month,
            free_submission_used=bool(row.free_submission_used),
            total_submissions=row.total_submissions,
            free_used_at=_aware(row.free_used_at),
            updated_at=_aware(row.updated_at),
        )

    @staticmethod
    def _to_contact(row: ContactRow) -> ContactRecord:
        return ContactRecord(
            id=row.id,
            name=row.name,
            email=row.email,
            message=row.message,
            phone=row.phone,
            subject=row.subject,
            submitted_at=_aware(row.submitted_at),
        )

    @staticmethod
    def _to_wall_post(row: WallPostRow) -> WallPostRecord:
        return WallPostRecord(
            id=row.id,
            user_id=row.user_id,
            user_uid=row.user_uid,
            title=row.title,
            content=row.content,
            author_name=row.author_name,
            category=row.category,
            author_instagram=row.author_instagram,
            status=row.status,
            moderated_by=row.moderated_by,
            moderated_at=_aware(row.moderated_at),
            moderation_notes=row.moderation_notes,
            likes=row.likes,
            liked_by=list(row.liked_by or []),
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at),
        )

    # Users

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            return self._to_user(row) if row else None

    def get_user_by_uid(self, uid: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.execute(
                select(UserRow).where(UserRow.uid == uid)
            ).scalar_one_or_none()
            return self._to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.execute(
                select(UserRow).where(UserRow.email == _normalize_email(email))
            ).scalar_one_or_none()
            return self._to_user(row) if row else None

    def get_or_create_user(
        self,
        uid: str,
        email: str,
        name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> tuple[UserRecord, bool]:
        existing = self.get_user_by_uid(uid)
        if existing:
            return existing, False
        with self.Session() as session:
            row = UserRow(
                uid=uid,
                email=_normalize_email(email),
                name=name,
                phone=phone,
                created_at=utcnow(),
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                # Lost a race on uid, or the email belongs to another uid.
                raced = self.get_user_by_uid(uid)
                if raced:
                    return raced, False
                raise ConflictError(
                    "Email is already registered to a different account."
                )
            session.refresh(row)
            return self._to_user(row), True

    def update_user_profile(
        self,
        uid: str,
        *,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        profile_picture_url: Optional[str] = None,
    ) -> UserRecord:
        with self.Session() as session:
            row = session.execute(
                select(UserRow).where(UserRow.uid == uid)
            ).scalar_one_or_none()
            if not row:
                raise NotFoundError("User not found")
            if name is not None:
                row.name = name
            if phone is not None:
                row.phone = phone
            if profile_picture_url is not None:
                row.profile_picture_url = profile_picture_url
            session.commit()
            session.refresh(row)
            return self._to_user(row)

    def list_users(self, limit: int = 500) -> list[UserRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(UserRow).order_by(UserRow.created_at.desc()).limit(limit)
            ).scalars()
            return [self._to_user(row) for row in rows]

    # Submissions and entitlement

    def create_submission_batch(
        self, batch: SubmissionBatch
    ) -> list[SubmissionRecord]:
        now = utcnow()
        with self.Session() as session:
            try:
                count = None
                if batch.user_id is not None:
                    count = session.execute(
                        select(UserSubmissionCountRow)
                        .where(
                            UserSubmissionCountRow.user_id == batch.user_id,
                            UserSubmissionCountRow.contest_month
                            == batch.contest_month,
                        )
                        .with_for_update()
                    ).scalar_one_or_none()
                if batch.free_entry and count and effective_free_used(
                    bool(count.free_submission_used),
                    _aware(count.free_used_at),
                    batch.free_tier_reset_timestamp,
                ):
                    raise FreeSubmissionUsedError(
                        "You have already used your free entry for this month."
                    )
                if batch.coupon_code and batch.user_uid:
                    used = session.execute(
                        select(CouponUsageRow.id).where(
                            CouponUsageRow.coupon_code == batch.coupon_code,
                            CouponUsageRow.user_uid == batch.user_uid,
                            CouponUsageRow.contest_month == batch.contest_month,
                        )
                    ).first()
                    if used:
                        raise CouponAlreadyUsedError(
                            "This coupon code has already been used."
                        )

                rows = [
                    SubmissionRow(
                        **vars(entry),
                        user_id=batch.user_id,
                        submitted_at=now,
                        status=SubmissionStatus.PENDING.value,
                        type="Human",
                        is_winner=False,
                    )
                    for entry in batch.rows
                ]
                session.add_all(rows)

                if batch.user_id is not None:
                    if count is None:
                        count = UserSubmissionCountRow(
                            user_id=batch.user_id,
                            contest_month=batch.contest_month,
                            free_submission_used=False,
                            total_submissions=0,
                            updated_at=now,
                        )
                        session.add(count)
                    count.total_submissions = (count.total_submissions or 0) + 1
                    if batch.free_entry:
                        count.free_submission_used = True
                        count.free_used_at = now
                    count.updated_at = now

                if batch.coupon_code and batch.user_uid:
                    session.add(
                        CouponUsageRow(
                            coupon_code=batch.coupon_code,
                            user_uid=batch.user_uid,
                            user_id=batch.user_id,
                            submission_uuid=batch.rows[0].submission_uuid,
                            contest_month=batch.contest_month,
                            discount_amount=batch.discount_amount,
                            used_at=now,
                        )
                    )
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                # A concurrent entry inserted the same count or coupon row first.
                raise ConflictError(
                    "Another submission for this account is in progress. "
                    "Please try again."
                ) from exc
            for row in rows:
                session.refresh(row)
            return [self._to_submission(row) for row in rows]

    def get_submission(self, submission_id: int) -> Optional[SubmissionRecord]:
        with self.Session() as session:
            row = session.get(SubmissionRow, submission_id)
            return self._to_submission(row) if row else None

    def list_submissions_by_user(self, user_id: int) -> list[SubmissionRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(SubmissionRow)
                .where(SubmissionRow.user_id == user_id)
                .order_by(SubmissionRow.submitted_at.desc(), SubmissionRow.id.desc())
            ).scalars()
            return [self._to_submission(row) for row in rows]

    def list_submissions(
        self,
        *,
        status: Optional[str] = None,
        contest_month: Optional[str] = None,
        limit: int = 500,
    ) -> list[SubmissionRecord]:
        stmt = select(SubmissionRow)
        if status is not None:
            stmt = stmt.where(SubmissionRow.status == status)
        if contest_month is not None:
            stmt = stmt.where(SubmissionRow.contest_month == contest_month)
        stmt = stmt.order_by(
            SubmissionRow.submitted_at.desc(), SubmissionRow.id.desc()
        ).limit(limit)
        with self.Session() as session:
            return [self._to_submission(row) for row in session.execute(stmt).scalars()]

    def list_winners(self) -> list[SubmissionRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(SubmissionRow).where(SubmissionRow.is_winner.is_(True))
            ).scalars()
            return _sort_winners(self._to_submission(row) for row in rows)

    def submission_stats(self) -> tuple[int, int]:
        with self.Session() as session:
            poets, total = session.execute(
                select(
                    func.count(func.distinct(SubmissionRow.email)),
                    func.count(SubmissionRow.id),
                )
            ).one()
            return int(poets or 0), int(total or 0)

    def update_submission_evaluation(
        self,
        submission_id: int,
        *,
        score: Optional[int],
        status: str,
        type: str,
        score_breakdown: Optional[dict],
    ) -> SubmissionRecord:
        with self.Session() as session:
            row = session.get(SubmissionRow, submission_id)
            if not row:
                raise NotFoundError("Submission not found")
            row.score = score
            row.status = status
            row.type = type
            row.score_breakdown = score_breakdown
            session.commit()
            session.refresh(row)
            return self._to_submission(row)

    def update_winner(
        self,
        submission_id: int,
        *,
        is_winner: bool,
        winner_position: Optional[int],
    ) -> SubmissionRecord:
        with self.Session() as session:
            row = session.get(SubmissionRow, submission_id)
            if not row:
                raise NotFoundError("Submission not found")
            row.is_winner = is_winner
            row.winner_position = winner_position if is_winner else None
            session.commit()
            session.refresh(row)
            return self._to_submission(row)

    def link_orphan_submissions(self) -> int:
        with self.Session() as session:
            pairs = session.execute(
                select(SubmissionRow, UserRow.id)
                .join(UserRow, func.lower(SubmissionRow.email) == UserRow.email)
                .where(SubmissionRow.user_id.is_(None))
            ).all()
            for row, user_id in pairs:
                row.user_id = user_id
            session.commit()
            return len(pairs)

    def get_submission_count(
        self, user_id: int, contest_month: str
    ) -> Optional[SubmissionCountRecord]:
        with self.Session() as session:
            row = session.get(UserSubmissionCountRow, (user_id, contest_month))
            return self._to_count(row) if row else None

    def has_used_coupon(
        self, coupon_code: str, user_uid: str, contest_month: str
    ) -> bool:
        with self.Session() as session:
            found = session.execute(
                select(CouponUsageRow.id).where(
                    CouponUsageRow.coupon_code == coupon_code,
                    CouponUsageRow.user_uid == user_uid,
                    CouponUsageRow.contest_month == contest_month,
                )
            ).first()
            return found is not None

    # Contacts

    def create_contact(
        self,
        *,
        name: str,
        email: str,
        message: str,
        phone: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> ContactRecord:
        with self.Session() as session:
            row = ContactRow(
                name=name,
                email=email,
                message=message,
                phone=phone,
                subject=subject,
                submitted_at=utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_contact(row)

    def list_contacts(self, limit: int = 500) -> list[ContactRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(ContactRow)
                .order_by(ContactRow.submitted_at.desc(), ContactRow.id.desc())
                .limit(limit)
            ).scalars()
            return [self._to_contact(row) for row in rows]

    # Admin settings and admin users

    def get_setting(self, key: str) -> Optional[str]:
        with self.Session() as session:
            row = session.get(AdminSettingRow, key)
            return row.setting_value if row else None

    def get_all_settings(self) -> list[AdminSettingRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(AdminSettingRow).order_by(AdminSettingRow.setting_key)
            ).scalars()
            return [
                AdminSettingRecord(
                    key=row.setting_key,
                    value=row.setting_value,
                    updated_at=_aware(row.updated_at),
                )
                for row in rows
            ]

    def update_setting(self, key: str, value: str) -> AdminSettingRecord:
        now = utcnow()
        with self.Session() as session:
            row = session.get(AdminSettingRow, key)
            if row:
                row.setting_value = value
                row.updated_at = now
            else:
                session.add(
                    AdminSettingRow(setting_key=key, setting_value=value, updated_at=now)
                )
            session.commit()
        return AdminSettingRecord(key=key, value=value, updated_at=now)

    def is_admin(self, email: str) -> bool:
        with self.Session() as session:
            row = session.execute(
                select(AdminUserRow).where(
                    AdminUserRow.email == _normalize_email(email),
                    AdminUserRow.role == "admin",
                )
            ).scalar_one_or_none()
            return row is not None

    def add_admin(self, email: str, role: str = "admin") -> AdminUserRecord:
        email = _normalize_email(email)
        with self.Session() as session:
            row = session.execute(
                select(AdminUserRow).where(AdminUserRow.email == email)
            ).scalar_one_or_none()
            if row:
                row.role = role
            else:
                row = AdminUserRow(email=email, role=role, created_at=utcnow())
                session.add(row)
            session.commit()
            session.refresh(row)
            return AdminUserRecord(
                id=row.id, email=row.email, role=row.role, created_at=_aware(row.created_at)
            )

    def remove_admin(self, email: str) -> bool:
        with self.Session() as session:
            row = session.execute(
                select(AdminUserRow).where(AdminUserRow.email == _normalize_email(email))
            ).scalar_one_or_none()
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def list_admins(self) -> list[AdminUserRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(AdminUserRow).order_by(AdminUserRow.created_at)
            ).scalars()
            return [
                AdminUserRecord(
                    id=row.id,
                    email=row.email,
                    role=row.role,
                    created_at=_aware(row.created_at),
                )
                for row in rows
            ]

    # Notifications

    def create_notification(
        self,
        *,
        title: str,
        message: str,
        type: str,
        sent_by: str,
        recipient_user_ids: Iterable[int],
        target_user_email: Optional[str] = None,
    ) -> NotificationRecord:
        now = utcnow()
        with self.Session() as session:
            row = NotificationRow(
                title=title,
                message=message,
                type=type,
                target_user_email=target_user_email,
                sent_by=sent_by,
                is_active=True,
                created_at=now,
            )
            session.add(row)
            session.flush()
            recipients = [
                UserNotificationRow(
                    notification_id=row.id,
                    user_id=user_id,
                    is_read=False,
                    created_at=now,
                )
                for user_id in recipient_user_ids
            ]
            session.add_all(recipients)
            session.commit()
            return NotificationRecord(
                id=row.id,
                title=row.title,
                message=row.message,
                type=row.type,
                sent_by=row.sent_by,
                target_user_email=row.target_user_email,
                is_active=row.is_active,
                created_at=now,
                recipient_count=len(recipients),
            )

    def list_user_notifications(
        self, user_id: int
    ) -> list[UserNotificationRecord]:
        with self.Session() as session:
            pairs = session.execute(
                select(UserNotificationRow, NotificationRow)
                .join(
                    NotificationRow,
                    NotificationRow.id == UserNotificationRow.notification_id,
                )
                .where(
                    UserNotificationRow.user_id == user_id,
                    NotificationRow.is_active.is_(True),
                )
                .order_by(
                    UserNotificationRow.created_at.desc(),
                    UserNotificationRow.id.desc(),
                )
            ).all()
            return [
                UserNotificationRecord(
                    id=item.id,
                    notification_id=item.notification_id,
                    user_id=item.user_id,
                    title=notification.title,
                    message=notification.message,
                    type=notification.type,
                    is_read=bool(item.is_read),
                    read_at=_aware(item.read_at),
                    created_at=_aware(item.created_at),
                )
                for item, notification in pairs
            ]

    def mark_notification_read(
        self, user_notification_id: int, user_id: int
    ) -> bool:
        with self.Session() as session:
            row = session.get(UserNotificationRow, user_notification_id)
            if not row or row.user_id != user_id:
                return False
            if not row.is_read:
                row.is_read = True
                row.read_at = utcnow()
                session.commit()
            return True

    # Wall

    def create_wall_post(
        self,
        *,
        user_id: int,
        user_uid: str,
        title: str,
        content: str,
        author_name: str,
        category: Optional[str] = None,
        author_instagram: Optional[str] = None,
    ) -> WallPostRecord:
        now = utcnow()
        with self.Session() as session:
            row = WallPostRow(
                user_id=user_id,
                user_uid=user_uid,
                title=title,
                content=content,
                category=category,
                author_name=author_name,
                author_instagram=author_instagram,
                status=WallPostStatus.PENDING.value,
                likes=0,
                liked_by=[],
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_wall_post(row)

    def get_wall_post(self, post_id: int) -> Optional[WallPostRecord]:
        with self.Session() as session:
            row = session.get(WallPostRow, post_id)
            return self._to_wall_post(row) if row else None

    def list_wall_posts(
        self, status: Optional[str] = None, limit: int = 200
    ) -> list[WallPostRecord]:
        stmt = select(WallPostRow)
        if status is not None:
            stmt = stmt.where(WallPostRow.status == status)
        stmt = stmt.order_by(WallPostRow.created_at.desc(), WallPostRow.id.desc()).limit(limit)
        with self.Session() as session:
            return [self._to_wall_post(row) for row in session.execute(stmt).scalars()]

    def count_pending_wall_posts(self, user_uid: str) -> int:
        with self.Session() as session:
            return session.execute(
                select(func.count(WallPostRow.id)).where(
                    WallPostRow.user_uid == user_uid,
                    WallPostRow.status == WallPostStatus.PENDING.value,
                )
            ).scalar_one()

    def moderate_wall_post(
        self,
        post_id: int,
        *,
        status: str,
        moderated_by: str,
        notes: Optional[str] = None,
    ) -> WallPostRecord:
        now = utcnow()
        with self.Session() as session:
            row = session.get(WallPostRow, post_id)
            if not row:
                raise NotFoundError("Wall post not found")
            row.status = status
            row.moderated_by = moderated_by
            row.moderated_at = now
            row.moderation_notes = notes
            row.updated_at = now
            session.commit()
            session.refresh(row)
            return self._to_wall_post(row)

    def set_wall_post_like(
        self, post_id: int, user_uid: str, liked: bool
    ) -> WallPostRecord:
        with self.Session() as session:
            row = session.execute(
                select(WallPostRow).where(WallPostRow.id == post_id).with_for_update()
            ).scalar_one_or_none()
            if not row:
                raise NotFoundError("Wall post not found")
            liked_by = list(row.liked_by or [])
            if liked and user_uid not in liked_by:
                liked_by.append(user_uid)
            elif not liked and user_uid in liked_by:
                liked_by.remove(user_uid)
            # Reassign so the JSON column is marked dirty.
            row.liked_by = liked_by
            row.likes = len(liked_by)
            row.updated_at = utcnow()
            session.commit()
            session.refresh(row)
            return self._to_wall_post(row)


def new_submission_uuid() -> str:
    return uuid.uuid4().hex
