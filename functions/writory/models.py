"""
SQLAlchemy table definitions. Alembic revisions under `alembic/versions`
must be kept in step with these.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    uid = Column(String(255), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    profile_picture_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class SubmissionRow(Base):
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id"), nullable=True, index=True
    )
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(32), nullable=True)
    age = Column(String(10), nullable=True)
    poem_title = Column(String(255), nullable=False)
    poem_file_url = Column(Text, nullable=True)
    poem_text = Column(Text, nullable=True)
    photo_url = Column(Text, nullable=True)
    tier = Column(String(50), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    coupon_code = Column(String(50), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    payment_id = Column(String(255), nullable=True)
    payment_method = Column(String(50), nullable=True)
    contest_month = Column(String(7), nullable=False, index=True)
    contest_type = Column(String(50), nullable=True)
    challenge_title = Column(String(255), nullable=True)
    submission_uuid = Column(String(64), nullable=False, index=True)
    poem_index = Column(Integer, nullable=False, default=0)
    total_poems = Column(Integer, nullable=False, default=1)
    submitted_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(50), nullable=False, default="pending", index=True)
    score = Column(Integer, nullable=True)
    type = Column(String(50), nullable=False, default="Human")
    score_breakdown = Column(JSON, nullable=True)
    is_winner = Column(Boolean, nullable=False, default=False)
    winner_position = Column(Integer, nullable=True)


class UserSubmissionCountRow(Base):
    __tablename__ = "user_submission_counts"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    contest_month = Column(String(7), primary_key=True)
    free_submission_used = Column(Boolean, nullable=False, default=False)
    total_submissions = Column(Integer, nullable=False, default=0)
    free_used_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class CouponUsageRow(Base):
    __tablename__ = "coupon_usage"
    __table_args__ = (
        UniqueConstraint(
            "coupon_code",
            "user_uid",
            "contest_month",
            name="uq_coupon_usage_code_uid_month",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    coupon_code = Column(String(50), nullable=False)
    user_uid = Column(String(255), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    submission_uuid = Column(String(64), nullable=False)
    contest_month = Column(String(7), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=False)


class ContactRow(Base):
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    subject = Column(String(255), nullable=True)
    message = Column(Text, nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=False)


class AdminSettingRow(Base):
    __tablename__ = "admin_settings"

    setting_key = Column(String(255), primary_key=True)
    setting_value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class AdminUserRow(Base):
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(String(50), nullable=False, default="admin")
    created_at = Column(DateTime(timezone=True), nullable=False)


class NotificationRow(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False, index=True)
    target_user_email = Column(String(255), nullable=True)
    sent_by = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class UserNotificationRow(Base):
    __tablename__ = "user_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    notification_id = Column(
        Integer, ForeignKey("notifications.id"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class WallPostRow(Base):
    __tablename__ = "wall_posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user_uid = Column(String(255), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(100), nullable=True)
    author_name = Column(String(255), nullable=False)
    author_instagram = Column(String(255), nullable=True)
    status = Column(String(50), nullable=False, default="pending", index=True)
    moderated_by = Column(String(255), nullable=True)
    moderated_at = Column(DateTime(timezone=True), nullable=True)
    moderation_notes = Column(Text, nullable=True)
    likes = Column(Integer, nullable=False, default=0)
    liked_by = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
