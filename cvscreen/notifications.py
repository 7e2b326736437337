# notifications.py
# Status-change messages for applicants. Delivery itself is an external collaborator.

import html
import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusMessage:
    subject: str
    body: str


_TEMPLATES = {
    "reviewed": StatusMessage(
        subject="Your Application is Under Review",
        body=(
            "<h2>Hello {name},</h2>"
            "<p>We're writing to let you know that your application for <strong>{course}</strong> "
            "is currently being reviewed by our admissions team.</p>"
            "<p>We will notify you once a decision has been made. Thank you for your patience!</p>"
        ),
    ),
    "accepted": StatusMessage(
        subject="Congratulations! Your Application Has Been Accepted",
        body=(
            "<h2>Dear {name},</h2>"
            "<p>We are thrilled to inform you that your application for <strong>{course}</strong> "
            "has been accepted!</p>"
            "<p>You will receive further instructions regarding the next steps shortly.</p>"
        ),
    ),
    "rejected": StatusMessage(
        subject="Update on Your Application",
        body=(
            "<h2>Dear {name},</h2>"
            "<p>Thank you for your interest in <strong>{course}</strong> and for taking the time to apply.</p>"
            "<p>After careful consideration, we regret to inform you that we are unable to offer you "
            "admission at this time.</p>"
        ),
    ),
    "pending": StatusMessage(
        subject="Application Status Update",
        body=(
            "<h2>Hello {name},</h2>"
            "<p>Your application for <strong>{course}</strong> status has been updated to pending.</p>"
            "<p>We will review your application and get back to you soon.</p>"
        ),
    ),
}


def build_status_message(status: str, name: str, course: str) -> StatusMessage:
    """Unknown statuses fall back to the pending template."""
    template = _TEMPLATES.get(str(status).lower(), _TEMPLATES["pending"])
    return StatusMessage(
        subject=template.subject,
        body=template.body.format(name=html.escape(name), course=html.escape(course)),
    )


class Notifier(Protocol):
    def send(self, recipient: str, message: StatusMessage) -> None:
        ...


class LogNotifier:
    """Records notifications in the log instead of delivering them."""

    def send(self, recipient: str, message: StatusMessage) -> None:
        logger.info(f"Status notification to {recipient}: {message.subject}")
