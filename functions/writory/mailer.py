"""
Outbound email: job payloads, builders and the senders that deliver them.

Request handlers never send mail inline. They enqueue an `EmailJob` and the
worker drains the queue through a `Mailer`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from html import escape
from typing import Optional, Protocol

import dacite
import resend

logger = logging.getLogger(__name__)

APP_NAME = "Writory"


@dataclass
class EmailJob:
    kind: str
    to: str
    subject: str
    html: str

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, payload: str) -> "EmailJob":
        return dacite.from_dict(data_class=cls, data=json.loads(payload))


class Mailer(Protocol):
    def send(self, job: EmailJob) -> None:
        ...


@dataclass
class InMemoryMailer:
    """Collects jobs instead of sending them. Used in tests and local runs."""

    sent: list[EmailJob] = field(default_factory=list)

    def send(self, job: EmailJob) -> None:
        logger.info("Email (not sent) kind=%s to=%s", job.kind, job.to)
        self.sent.append(job)


@dataclass
class ResendMailer:
    api_key: str
    from_email: str

    def __post_init__(self):
        resend.api_key = self.api_key

    def send(self, job: EmailJob) -> None:
        resend.Emails.send(
            {
                "from": self.from_email,
                "to": [job.to],
                "subject": job.subject,
                "html": job.html,
            }
        )
        logger.info("Email sent kind=%s to=%s", job.kind, job.to)


def submission_confirmation_job(
    *,
    to: str,
    first_name: str,
    poem_titles: list[str],
    tier: str,
    contest_month: str,
    submission_uuid: str,
    final_price: Optional[str] = None,
) -> EmailJob:
    titles = "".join(f"<li>{escape(title)}</li>" for title in poem_titles)
    price_line = ""
    if final_price is not None:
        price_line = f"<p><strong>Amount:</strong> INR {escape(final_price)}</p>"
    html = (
        f"<p>Hi {escape(first_name)},</p>"
        f"<p>We received your entry for the {escape(contest_month)} contest "
        f"({escape(tier)} tier).</p>"
        f"<ul>{titles}</ul>"
        f"{price_line}"
        f"<p>Reference: {escape(submission_uuid)}</p>"
        f"<p>Good luck!<br>The {APP_NAME} team</p>"
    )
    return EmailJob(
        kind="submission_confirmation",
        to=to,
        subject=f"Your {APP_NAME} submission is in",
        html=html,
    )


def contact_ack_job(*, to: str, name: str) -> EmailJob:
    html = (
        f"<p>Hi {escape(name)},</p>"
        "<p>Thanks for reaching out. We will get back to you soon.</p>"
        f"<p>The {APP_NAME} team</p>"
    )
    return EmailJob(
        kind="contact_ack",
        to=to,
        subject=f"We received your message - {APP_NAME}",
        html=html,
    )


def notification_job(*, to: str, title: str, message: str) -> EmailJob:
    html = f"<h2>{escape(title)}</h2><p>{escape(message)}</p>"
    return EmailJob(
        kind="notification",
        to=to,
        subject=f"{APP_NAME}: {title}",
        html=html,
    )
