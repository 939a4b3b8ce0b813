import json
import unittest

from writory.mailer import EmailJob, InMemoryMailer, contact_ack_job
from writory.queue import InMemoryJobQueue
from writory.worker import process_next


class FailingMailer:
    def send(self, job: EmailJob) -> None:
        raise RuntimeError("provider down")


class WorkerTests(unittest.TestCase):
    def setUp(self):
        self.queue = InMemoryJobQueue()
        self.mailer = InMemoryMailer()

    def test_process_once_sends_job(self):
        self.queue.enqueue(contact_ack_job(to="reader@example.com", name="Reader").to_json())

        processed = process_next(queue=self.queue, mailer=self.mailer, block=False)

        self.assertTrue(processed)
        self.assertEqual(len(self.mailer.sent), 1)
        self.assertEqual(self.mailer.sent[0].kind, "contact_ack")
        self.assertEqual(self.mailer.sent[0].to, "reader@example.com")
        self.assertEqual(self.queue.size(), 0)

    def test_process_once_no_jobs(self):
        processed = process_next(queue=self.queue, mailer=self.mailer, block=False)
        self.assertFalse(processed)
        self.assertEqual(self.mailer.sent, [])

    def test_malformed_job_is_dropped(self):
        self.queue.enqueue("not json")
        self.queue.enqueue(json.dumps({"kind": "contact_ack"}))

        with self.assertLogs("writory.worker", level="WARNING"):
            self.assertTrue(
                process_next(queue=self.queue, mailer=self.mailer, block=False)
            )
            self.assertTrue(
                process_next(queue=self.queue, mailer=self.mailer, block=False)
            )
        self.assertEqual(self.mailer.sent, [])
        self.assertEqual(self.queue.items, [])

    def test_send_failure_is_logged(self):
        self.queue.enqueue(contact_ack_job(to="reader@example.com", name="Reader").to_json())

        with self.assertLogs("writory.worker", level="ERROR") as logs:
            processed = process_next(queue=self.queue, mailer=FailingMailer(), block=False)

        self.assertTrue(processed)
        self.assertIn("contact_ack", logs.output[0])


class EmailJobTests(unittest.TestCase):
    def test_builders_escape_user_text(self):
        job = contact_ack_job(to="x@example.com", name="<b>Eve</b>")
        self.assertIn("&lt;b&gt;Eve&lt;/b&gt;", job.html)
        self.assertEqual(EmailJob.from_json(job.to_json()), job)


if __name__ == "__main__":
    unittest.main()
