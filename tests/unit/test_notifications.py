"""Unit tests for notification sinks"""

import httpx
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from coop_ledger.domain.models import LoanApplication
from coop_ledger.infrastructure.clients.notifications import (
    LoggingNotificationSink,
    WebhookNotificationSink,
    loan_approved_notification,
    loan_rejected_notification,
)

WEBHOOK_URL = "http://notify.test/hooks/members"


@pytest.fixture
def notification(make_member):
    member = make_member(id="m-1", loan_start_date=date(2024, 7, 1))
    application = LoanApplication(
        id="app-1", member_id="m-1", amount=Decimal("25000.00"), purpose="Stock", duration_months=12
    )
    return loan_approved_notification(member, application)


@pytest.fixture
def webhook_sink() -> WebhookNotificationSink:
    sink = WebhookNotificationSink(WEBHOOK_URL)
    sink.max_retries = 3
    sink.backoff_base = 0
    return sink


def response(status_code: int) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("POST", WEBHOOK_URL))


def test_approved_message(notification):
    assert notification.subject == "Loan Application Approved"
    assert notification.application_id == "app-1"
    assert "Your loan application for 25,000.00 has been approved" in notification.message
    assert "1.5% per month" in notification.message


def test_rejected_message_without_notes_uses_default_reason(make_member):
    member = make_member(id="m-1")
    application = LoanApplication(
        id="app-2", member_id="m-1", amount=Decimal("500.00"), purpose="Fees", duration_months=12
    )
    message = loan_rejected_notification(member, application).message

    assert "has not been approved" in message
    assert "Reason: Application did not meet current lending criteria." in message


async def test_logging_sink_always_succeeds(notification, caplog):
    caplog.set_level("INFO")
    assert await LoggingNotificationSink().send(notification) is True
    assert any(record.event == "LOAN_APPROVED" for record in caplog.records)


async def test_webhook_delivers_first_time(webhook_sink, notification):
    with patch.object(httpx.AsyncClient, "post", new=AsyncMock(return_value=response(202))) as post:
        assert await webhook_sink.send(notification) is True

    post.assert_awaited_once()
    assert post.await_args.kwargs["json"]["event"] == "LOAN_APPROVED"


async def test_webhook_retries_after_server_error(webhook_sink, notification):
    post = AsyncMock(side_effect=[response(503), response(200)])
    with patch.object(httpx.AsyncClient, "post", new=post):
        assert await webhook_sink.send(notification) is True

    assert post.await_count == 2


async def test_webhook_gives_up_after_max_retries(webhook_sink, notification):
    post = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
    with patch.object(httpx.AsyncClient, "post", new=post):
        assert await webhook_sink.send(notification) is False

    assert post.await_count == 3
