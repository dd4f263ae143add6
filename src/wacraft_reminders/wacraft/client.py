"""Wacraft API client with built-in token management."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Optional

import aiohttp
from pydantic import ValidationError

from wacraft_reminders.core.errors import ApiResponseError, AuthenticationError
from wacraft_reminders.core.types import Order
from wacraft_reminders.log import get_logger
from wacraft_reminders.wacraft.credentials import Credentials, CredentialStore
from wacraft_reminders.wacraft.models import (
    Conversation,
    MessagingProductContact,
    SendWhatsAppMessage,
    TokenResponse,
    contact_list,
    conversation_list,
)

logger = get_logger(__name__)

# Failures that make a refresh-token grant fall back to the password grant.
GRANT_FAILURES = (ApiResponseError, aiohttp.ClientError, asyncio.TimeoutError, ValidationError)


class WacraftClient:
    """Authenticated client for the Wacraft REST API.

    Every call obtains a token through ``get_valid_token`` first. Non-2xx
    responses raise ApiResponseError; nothing is retried.
    """

    def __init__(
        self,
        credentials: Credentials | CredentialStore,
        timeout: int = 30,
        session: aiohttp.ClientSession | None = None,
    ):
        if isinstance(credentials, CredentialStore):
            self._store = credentials
        else:
            self._store = CredentialStore(credentials)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None
        self._closed = False

    @property
    def credentials(self) -> CredentialStore:
        return self._store

    async def __aenter__(self) -> WacraftClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._closed = True

    def _session_or_create(self) -> aiohttp.ClientSession:
        if self._closed:
            raise RuntimeError("WacraftClient is closed")
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    def _url(self, path: str) -> str:
        return f"{self._store.base_url}{path}"

    # --- Token lifecycle ---

    async def get_valid_token(self) -> str:
        """Return an access token valid for at least another minute, refreshing if needed."""
        async with self._store.reader:
            token = self._store.valid_token()
            if token:
                logger.debug("access_token_reused")
                return token

        logger.info("access_token_refresh_needed")

        async with self._store.writer:
            # Another task may have refreshed while we waited for the writer lock.
            token = self._store.valid_token()
            if token:
                logger.debug("access_token_refreshed_by_peer")
                return token

            refresh_token = self._store.refresh_token
            if refresh_token:
                try:
                    response = await self._request_token(
                        {"grant_type": "refresh_token", "refresh_token": refresh_token}
                    )
                except GRANT_FAILURES as e:
                    logger.warning(
                        "refresh_grant_failed",
                        error=str(e),
                        status=getattr(e, "status", None),
                    )
                else:
                    self._store.apply(response)
                    logger.info("access_token_refreshed", grant="refresh_token")
                    return response.access_token

            logger.debug("password_grant_fallback")
            try:
                response = await self._request_token(
                    {
                        "grant_type": "password",
                        "username": self._store.email,
                        "password": self._store.password,
                    }
                )
            except GRANT_FAILURES as e:
                raise AuthenticationError(
                    f"Failed to get token with password credentials: {e}"
                ) from e

            self._store.apply(response)
            logger.info("access_token_refreshed", grant="password")
            return response.access_token

    async def _request_token(self, body: dict[str, str]) -> TokenResponse:
        session = self._session_or_create()
        async with session.post(self._url("/user/oauth/token"), json=body) as resp:
            if not 200 <= resp.status < 300:
                raise ApiResponseError("token request", resp.status, await resp.text())
            data = await resp.json(content_type=None)
        return TokenResponse.model_validate(data)

    # --- Authenticated calls ---

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        params: dict[str, str] | None = None,
        json: Any = None,
        expect_body: bool = True,
    ) -> Any:
        token = await self.get_valid_token()
        session = self._session_or_create()
        async with session.request(
            method,
            self._url(path),
            params=params,
            json=json,
            headers={"Authorization": f"Bearer {token}"},
        ) as resp:
            if not 200 <= resp.status < 300:
                body = await resp.text()
                logger.debug("api_error", operation=operation, status=resp.status)
                raise ApiResponseError(operation, resp.status, body)
            if not expect_body:
                return None
            return await resp.json(content_type=None)

    async def send_message(self, message: SendWhatsAppMessage) -> None:
        """Send a WhatsApp message through `POST /message/whatsapp`."""
        payload = message.to_wire()
        logger.info("sending_message", to_id=message.to_id, type=message.sender_data.message_type)
        await self._request(
            "POST",
            "/message/whatsapp",
            operation="send WhatsApp message",
            json=payload,
            expect_body=False,
        )

    async def get_conversations(
        self,
        limit: int,
        offset: int,
        created_at_leq: datetime | str | None = None,
    ) -> list[Conversation]:
        """Fetch one page of conversations."""
        params = _page_params(limit, offset, created_at_leq)
        data = await self._request(
            "GET", "/message/conversation", operation="fetch conversations", params=params
        )
        return conversation_list.validate_python(data or [])

    async def get_conversation_messages(
        self,
        contact_id: str,
        limit: int,
        offset: int,
        created_at_leq: datetime | str | None = None,
        created_at_order: Optional[Order] = None,
        updated_at_order: Optional[Order] = None,
    ) -> list[Conversation]:
        """Fetch one page of a single contact's conversation messages."""
        params = _page_params(limit, offset, created_at_leq)
        if created_at_order:
            params["created_at"] = str(created_at_order)
        if updated_at_order:
            params["updated_at"] = str(updated_at_order)
        data = await self._request(
            "GET",
            f"/message/conversation/messaging-product-contact/{contact_id}",
            operation="fetch conversation messages",
            params=params,
        )
        return conversation_list.validate_python(data or [])

    async def get_messaging_product_contact_by_id(
        self, contact_id: str
    ) -> MessagingProductContact | None:
        """Look up a messaging product contact. The endpoint returns a list; take its head."""
        data = await self._request(
            "GET",
            "/messaging-product/contact",
            operation="fetch messaging product contact",
            params={"id": contact_id, "limit": "1", "offset": "0"},
        )
        contacts = contact_list.validate_python(data or [])
        contact = contacts[0] if contacts else None
        logger.info("contact_lookup", contact_id=contact_id, found=contact is not None)
        return contact


def _page_params(limit: int, offset: int, created_at_leq: datetime | str | None) -> dict[str, str]:
    params = {"limit": str(limit), "offset": str(offset)}
    if created_at_leq is not None:
        if isinstance(created_at_leq, datetime):
            created_at_leq = created_at_leq.isoformat()
        params["created_at_leq"] = created_at_leq
    return params
