"""Shared fixtures: wire payload factories and an in-process aiohttp server."""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from wacraft_reminders.config import EmailConfig
from wacraft_reminders.wacraft.models import NIL_UUID, Conversation

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def contact_payload(mpc_id="mpc-1", contact_id="c1", name="Ana", email="ana@example.com",
                    wa_id="5511999990000", with_details=True, with_product=True):
    payload = {"id": mpc_id, "contact_id": contact_id}
    if with_details:
        payload["contact"] = {"id": contact_id, "name": name, "email": email}
    if with_product:
        payload["product_details"] = {"wa_id": wa_id, "phone_number": f"+{wa_id}"}
    return payload


def conversation_payload(conv_id="conv-1", to=None, sender=None, hours_ago=80.0):
    updated = NOW - timedelta(hours=hours_ago)
    return {
        "id": conv_id,
        "from": sender,
        "to": to,
        "created_at": updated.isoformat(),
        "updated_at": updated.isoformat(),
        "messaging_product_id": "wa",
    }


def make_conversation(**kwargs) -> Conversation:
    return Conversation.model_validate(conversation_payload(**kwargs))


@pytest.fixture
def email_config():
    return EmailConfig(
        smtp_server="smtp.example.com",
        smtp_user="bot@example.com",
        smtp_password="secret",
        from_address="reminders@example.com",
    )


@pytest.fixture
def nil_uuid():
    return NIL_UUID


@pytest.fixture
def serve():
    """Return an async context manager running an aiohttp app; yields its base URL."""

    @asynccontextmanager
    async def _serve(app: web.Application):
        server = TestServer(app)
        await server.start_server()
        try:
            yield str(server.make_url("/")).rstrip("/")
        finally:
            await server.close()

    return _serve
