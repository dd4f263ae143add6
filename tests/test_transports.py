"""Tests for the webhook and email transports."""

from unittest.mock import AsyncMock

import aiosmtplib
import pytest
from aiohttp import web

from wacraft_reminders.core.errors import (
    ActionConfigError,
    ApiResponseError,
    DeliveryError,
    MissingEmailError,
)
from wacraft_reminders.reminders.models import EmailAction, HttpRequestAction
from wacraft_reminders.transports import email_sender
from wacraft_reminders.transports.email_sender import build_reminder_email, send_reminder_email
from wacraft_reminders.transports.webhook import (
    prepare_http_request,
    replace_placeholders,
    send_http_request,
)
from wacraft_reminders.wacraft.models import Contact

ANA = Contact(id="c1", name="Ana", email="ana@example.com")


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


class TestPrepareHttpRequest:
    def test_substitutes_url_headers_and_body(self):
        action = HttpRequestAction(
            method="put",
            url="https://crm.example.com/contacts/{contact_id}",
            headers={"X-Contact": "{contact_name}"},
            body={"to": "{contact_email}", "tags": ["{contact_id}", 3], "nested": {"n": "{contact_name}"}},
        )

        request = prepare_http_request(action, ANA)

        assert request.method == "PUT"
        assert request.url == "https://crm.example.com/contacts/c1"
        assert request.headers == {"X-Contact": "Ana"}
        assert request.body == {
            "to": "ana@example.com",
            "tags": ["c1", 3],
            "nested": {"n": "Ana"},
        }

    def test_missing_email_becomes_empty_string(self):
        contact = Contact(id="c2", name="Bia")
        assert replace_placeholders("mail={contact_email}", contact) == "mail="

    def test_values_with_quotes_keep_body_valid(self):
        contact = Contact(id="c3", name='Jo "JJ" \\ Silva')
        action = HttpRequestAction(url="https://x", body={"name": "{contact_name}"})

        assert prepare_http_request(action, contact).body == {"name": 'Jo "JJ" \\ Silva'}

    def test_no_body_stays_none(self):
        action = HttpRequestAction(method="GET", url="https://x/{contact_id}")
        assert prepare_http_request(action, ANA).body is None

    def test_unknown_method_rejected(self):
        action = HttpRequestAction(method="FETCH", url="https://x")
        with pytest.raises(ActionConfigError):
            prepare_http_request(action, ANA)


class TestSendHttpRequest:
    @staticmethod
    def _app(received, status=200):
        async def handler(request):
            received.append(
                {
                    "method": request.method,
                    "path": request.path,
                    "header": request.headers.get("X-Contact"),
                    "json": await request.json() if request.can_read_body else None,
                }
            )
            return web.Response(status=status, text="nope" if status >= 400 else "ok")

        app = web.Application()
        app.router.add_route("*", "/hooks/{contact_id}", handler)
        return app

    @pytest.mark.asyncio
    async def test_sends_substituted_request(self, serve):
        received = []
        async with serve(self._app(received)) as base_url:
            action = HttpRequestAction(
                url=base_url + "/hooks/{contact_id}",
                headers={"X-Contact": "{contact_name}"},
                body={"email": "{contact_email}"},
            )
            status = await send_http_request(action, ANA)

        assert status == 200
        assert received == [
            {"method": "POST", "path": "/hooks/c1", "header": "Ana", "json": {"email": "ana@example.com"}}
        ]

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self, serve):
        async with serve(self._app([], status=422)) as base_url:
            action = HttpRequestAction(url=base_url + "/hooks/{contact_id}")
            with pytest.raises(ApiResponseError) as exc_info:
                await send_http_request(action, ANA)

        assert exc_info.value.status == 422
        assert exc_info.value.body == "nope"


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------


@pytest.fixture
def template(tmp_path):
    path = tmp_path / "follow_up.html"
    path.write_text("<p>Hi {contact_name}, still there? {contact_name}!</p>", encoding="utf-8")
    return path


class TestBuildReminderEmail:
    def test_renders_template(self, email_config, template):
        action = EmailAction(subject="We miss you", template=str(template))

        message = build_reminder_email(email_config, ANA, action)

        assert message["From"] == "reminders@example.com"
        assert message["To"] == "ana@example.com"
        assert message["Subject"] == "We miss you"
        assert message.get_content_type() == "text/html"
        assert "Hi Ana, still there? Ana!" in message.get_content()

    def test_missing_email_rejected(self, email_config, template):
        action = EmailAction(subject="s", template=str(template))
        with pytest.raises(MissingEmailError):
            build_reminder_email(email_config, Contact(id="c2", name="Bia"), action)

    def test_unreadable_template_is_delivery_error(self, email_config, tmp_path):
        action = EmailAction(subject="s", template=str(tmp_path / "missing.html"))
        with pytest.raises(DeliveryError):
            build_reminder_email(email_config, ANA, action)


class TestSendReminderEmail:
    @pytest.mark.asyncio
    async def test_sends_through_smtp(self, email_config, template, monkeypatch):
        send = AsyncMock()
        monkeypatch.setattr(email_sender.aiosmtplib, "send", send)

        await send_reminder_email(email_config, ANA, EmailAction(subject="s", template=str(template)))

        message = send.await_args.args[0]
        assert message["To"] == "ana@example.com"
        assert send.await_args.kwargs == {
            "hostname": "smtp.example.com",
            "port": 587,
            "username": "bot@example.com",
            "password": "secret",
            "use_tls": False,
        }

    @pytest.mark.asyncio
    async def test_smtp_failure_is_delivery_error(self, email_config, template, monkeypatch):
        monkeypatch.setattr(
            email_sender.aiosmtplib, "send", AsyncMock(side_effect=aiosmtplib.SMTPException("refused"))
        )

        with pytest.raises(DeliveryError):
            await send_reminder_email(email_config, ANA, EmailAction(subject="s", template=str(template)))
