"""Generic HTTP request action with contact placeholder substitution."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from wacraft_reminders.core.errors import ActionConfigError, ApiResponseError
from wacraft_reminders.log import get_logger
from wacraft_reminders.reminders.models import HttpRequestAction
from wacraft_reminders.wacraft.models import Contact

logger = get_logger(__name__)

ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})


@dataclass(frozen=True, slots=True)
class PreparedRequest:
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


def _placeholders(contact: Contact) -> dict[str, str]:
    return {
        "{contact_id}": contact.id,
        "{contact_name}": contact.name,
        "{contact_email}": contact.email or "",
    }


def replace_placeholders(template: str, contact: Contact, *, json_escape: bool = False) -> str:
    """Substitute {contact_id}, {contact_name} and {contact_email} in template.

    With json_escape the values are escaped for use inside a JSON string literal.
    """
    for placeholder, value in _placeholders(contact).items():
        if json_escape:
            value = json.dumps(value)[1:-1]
        template = template.replace(placeholder, value)
    return template


def prepare_http_request(action: HttpRequestAction, contact: Contact) -> PreparedRequest:
    method = action.method.upper()
    if method not in ALLOWED_METHODS:
        raise ActionConfigError(f"Invalid HTTP method: '{action.method}'")

    body = None
    if action.body is not None:
        serialized = replace_placeholders(json.dumps(action.body), contact, json_escape=True)
        try:
            body = json.loads(serialized)
        except json.JSONDecodeError as e:
            raise ActionConfigError(
                "Failed to parse JSON body after placeholder replacement"
            ) from e

    return PreparedRequest(
        method=method,
        url=replace_placeholders(action.url, contact),
        headers={key: replace_placeholders(value, contact) for key, value in action.headers.items()},
        body=body,
    )


async def send_http_request(
    action: HttpRequestAction,
    contact: Contact,
    session: aiohttp.ClientSession | None = None,
) -> int:
    """Execute the webhook for contact. Returns the response status."""
    request = prepare_http_request(action, contact)
    owns_session = session is None
    if session is None:
        session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=30))
    try:
        kwargs: dict[str, Any] = {"headers": request.headers}
        if request.body is not None:
            kwargs["json"] = request.body
        async with session.request(request.method, request.url, **kwargs) as resp:
            if not 200 <= resp.status < 300:
                raise ApiResponseError("HTTP request", resp.status, await resp.text())
            logger.info("http_request_sent", method=request.method, url=request.url, status=resp.status)
            return resp.status
    finally:
        if owns_session:
            await session.close()
