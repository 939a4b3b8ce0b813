"""
Email worker: drains the outbound queue and hands each job to the mailer.

Jobs are attempted once. A malformed payload or a failed send is logged and
dropped.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from dacite import DaciteError

from writory.dependencies import get_mailer, get_queue_client
from writory.mailer import EmailJob, Mailer
from writory.queue import JobQueue

logger = logging.getLogger(__name__)


def process_next(
    *,
    queue: Optional[JobQueue] = None,
    mailer: Optional[Mailer] = None,
    block: bool = True,
    timeout: Optional[int] = None,
) -> bool:
    """Sends one queued email. Returns False when the queue was empty."""
    queue = queue or get_queue_client()
    mailer = mailer or get_mailer()

    payload = queue.dequeue(block=block, timeout=timeout)
    if payload is None:
        return False

    try:
        job = EmailJob.from_json(payload)
    except (ValueError, DaciteError):
        logger.warning("Dropping malformed email job: %r", payload[:200])
        return True

    started = time.monotonic()
    try:
        mailer.send(job)
    except Exception:
        logger.exception("Failed to send %s email to %s", job.kind, job.to)
    else:
        logger.debug(
            "Sent %s email in %.2fs", job.kind, time.monotonic() - started
        )
    return True


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    queue = get_queue_client()
    mailer = get_mailer()
    logger.info(
        "Email worker started with %s, %d job(s) waiting",
        type(mailer).__name__,
        queue.size(),
    )
    while True:
        if not process_next(
            queue=queue,
            mailer=mailer,
            block=True,
            timeout=max(1, int(poll_interval_seconds)),
        ):
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_loop()
