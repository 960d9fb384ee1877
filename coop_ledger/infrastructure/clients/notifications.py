"""Member notification sinks: structured log only, or webhook with exponential backoff"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Optional

import httpx

from coop_ledger.config import settings
from coop_ledger.domain.accrual import format_money, format_rate
from coop_ledger.domain.models import LoanApplication, Member
from coop_ledger.infrastructure.observability.metrics import (
    notification_failure_counter,
    notification_latency_histogram,
)

logger = logging.getLogger(__name__)

LOAN_APPROVED = "LOAN_APPROVED"
LOAN_REJECTED = "LOAN_REJECTED"


@dataclass
class Notification:
    """Human-readable message addressed to a member"""

    event: str
    member_id: str
    email: str
    subject: str
    message: str
    application_id: Optional[str] = None


def loan_approved_notification(member: Member, application: LoanApplication) -> Notification:
    return Notification(
        event=LOAN_APPROVED,
        member_id=member.id,
        email=member.email,
        application_id=application.id,
        subject="Loan Application Approved",
        message=(
            f"Dear {member.full_name},\n\n"
            f"Your loan application for {format_money(application.amount)} has been approved "
            "and disbursed to your loan account.\n\n"
            f"Interest is charged at {format_rate(member.loan_interest_rate)} per month on the outstanding "
            f"balance for {member.loan_duration_months} months, after which the rate doubles. "
            "Payments are applied to outstanding interest first, then to principal."
        ),
    )


def loan_rejected_notification(member: Member, application: LoanApplication) -> Notification:
    reason = application.review_notes or "Application did not meet current lending criteria."
    return Notification(
        event=LOAN_REJECTED,
        member_id=member.id,
        email=member.email,
        application_id=application.id,
        subject="Loan Application Update",
        message=(
            f"Dear {member.full_name},\n\n"
            f"Your loan application for {format_money(application.amount)} has not been approved "
            f"at this time.\n\nReason: {reason}\n\n"
            "You are welcome to reapply in the future."
        ),
    )


class LoggingNotificationSink:
    """Writes notifications to the log instead of delivering them"""

    async def send(self, notification: Notification) -> bool:
        logger.info(
            "Notification logged",
            extra={
                "step": "notification",
                "event": notification.event,
                "member_id": notification.member_id,
                "email": notification.email,
                "subject": notification.subject,
                "body": notification.message,
            },
        )
        return True


class WebhookNotificationSink:
    """Posts notifications to a webhook that handles actual delivery"""

    def __init__(self, webhook_url: str | None = None):
        self.webhook_url = webhook_url or settings.notification_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds

    async def send(self, notification: Notification) -> bool:
        """
        Deliver a notification with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^(attempt-1))
        - Retries on HTTP errors and network failures
        - Tracks latency histogram and failure counter

        Returns:
            True once delivered, False after the final failed attempt
        """
        attempt = 0
        async with httpx.AsyncClient() as client:
            while attempt < self.max_retries:
                try:
                    with notification_latency_histogram.time():
                        response = await client.post(
                            self.webhook_url,
                            json=asdict(notification),
                            timeout=self.timeout,
                        )
                        response.raise_for_status()
                        return True

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    notification_failure_counter.inc()

                    if attempt >= self.max_retries:
                        # Delivery is best effort; the approval itself already committed
                        logger.error(
                            f"Notification delivery failed after {attempt} attempts: {e}",
                            extra={"member_id": notification.member_id, "event": notification.event},
                        )
                        return False

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
        return False


def build_notification_sink():
    """Webhook delivery when a URL is configured, otherwise log only"""
    if settings.notification_webhook_url:
        return WebhookNotificationSink()
    return LoggingNotificationSink()
