import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from config import settings
from utils.email_service import EmailService, EmailTemplate

REAL_ASYNC_CLIENT = httpx.AsyncClient


def _mock_client(handler):
    def factory(**kwargs):
        return REAL_ASYNC_CLIENT(transport=httpx.MockTransport(handler), **kwargs)
    return factory


def _send(service, statuses):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(statuses[min(len(calls), len(statuses)) - 1], text="provider says no")

    template = EmailTemplate(subject="Hello", html="<p>Hi</p>", text="Hi")
    with patch("utils.email_service.httpx.AsyncClient", _mock_client(handler)), \
            patch("utils.email_service.asyncio.sleep", new_callable=AsyncMock) as sleep:
        ok = asyncio.run(service.send_email("tradie@example.com", template))
    return ok, calls, sleep


@pytest.fixture()
def api_key(monkeypatch):
    monkeypatch.setattr(settings, "SENDGRID_API_KEY", "SG.test-key")


def test_missing_api_key_skips_sending(monkeypatch):
    monkeypatch.setattr(settings, "SENDGRID_API_KEY", None)

    ok, calls, _ = _send(EmailService(), [202])

    assert ok is False
    assert calls == []


def test_successful_send_posts_sendgrid_payload(api_key):
    ok, calls, sleep = _send(EmailService(), [202])

    assert ok is True
    assert len(calls) == 1
    request = calls[0]
    assert request.headers["Authorization"] == "Bearer SG.test-key"
    body = request.content.decode()
    assert "tradie@example.com" in body
    assert "text/html" in body
    sleep.assert_not_called()


def test_server_errors_are_retried_with_backoff(api_key):
    ok, calls, sleep = _send(EmailService(), [503, 502, 202])

    assert ok is True
    assert len(calls) == 3
    assert [c.args[0] for c in sleep.await_args_list] == [1, 2]


def test_gives_up_after_two_retries(api_key):
    ok, calls, _ = _send(EmailService(), [500])

    assert ok is False
    assert len(calls) == 3


def test_client_errors_are_not_retried(api_key):
    ok, calls, sleep = _send(EmailService(), [400])

    assert ok is False
    assert len(calls) == 1
    sleep.assert_not_called()


def test_registration_link_encodes_email(monkeypatch):
    monkeypatch.setattr(settings, "BASE_URL", "https://parts.example.com")

    link = EmailService().generate_registration_link("abc-123", "jo+fire@example.com")

    assert link == "https://parts.example.com/register?invitation_token=abc-123&email=jo%2Bfire%40example.com"


def test_invitation_template_mentions_company_and_expiry():
    service = EmailService()

    template = service.invitation_email(
        pm_name="Paula Manning",
        company_name="Acme Fire Protection",
        tradie_email="jo@example.com",
        registration_link="https://parts.example.com/register?invitation_token=x",
        expiry_date=service.format_date(datetime(2026, 3, 1)),
        personal_message="See you on site",
    )

    assert "Acme Fire Protection" in template.subject
    assert "See you on site" in template.html
    assert "invitation_token=x" in template.text


def test_removal_template_escapes_reason():
    template = EmailService().removal_email(
        tradie_name="Tom", company_name="Acme", pm_name="Paula", reason="<b>contract</b> ended",
    )

    assert "<b>contract</b>" not in template.html
    assert "contract" in template.text
