"""Reminder dispatch: resolve the contact, pick a rule, run its action."""

from __future__ import annotations

from datetime import datetime
from typing import Awaitable, Callable, Optional, Sequence

from wacraft_reminders.config import EmailConfig
from wacraft_reminders.core.errors import (
    ContactNotFoundError,
    ConversationNotFoundError,
    MissingContactDetailsError,
    MissingEmailError,
    MissingProductDetailsError,
)
from wacraft_reminders.core.types import ActionType, DispatchStatus, Order
from wacraft_reminders.log import get_logger
from wacraft_reminders.reminders.models import (
    DispatchResult,
    EmailAction,
    HttpRequestAction,
    InactivityRule,
    WacraftMessageAction,
)
from wacraft_reminders.reminders.rules import inactive_duration, select_rule
from wacraft_reminders.transports.email_sender import send_reminder_email
from wacraft_reminders.transports.webhook import prepare_http_request, send_http_request
from wacraft_reminders.wacraft.client import WacraftClient
from wacraft_reminders.wacraft.models import (
    Contact,
    Conversation,
    MessagePayload,
    MessagingProductContact,
    SendWhatsAppMessage,
)

logger = get_logger(__name__)

EmailSender = Callable[[EmailConfig, Contact, EmailAction], Awaitable[None]]
HttpSender = Callable[[HttpRequestAction, Contact], Awaitable[int]]


def resolve_contact_reference(conversation: Conversation) -> Optional[MessagingProductContact]:
    """Prefer the recipient, then the sender, skipping nil-UUID placeholders."""
    for candidate in (conversation.to_contact, conversation.from_contact):
        if candidate is not None and not candidate.is_placeholder:
            return candidate
    return None


class ReminderDispatcher:
    """Evaluates rules for one contact and commits at most one action.

    ``process_contact`` is the only entry point used by both the daemon and
    the manual trigger, so both behave identically.
    """

    def __init__(
        self,
        client: WacraftClient,
        email_config: EmailConfig,
        email_sender: EmailSender = send_reminder_email,
        http_sender: HttpSender = send_http_request,
    ):
        self._client = client
        self._email_config = email_config
        self._email_sender = email_sender
        self._http_sender = http_sender

    async def latest_conversation(self, contact_id: str) -> Conversation:
        conversations = await self._client.get_conversation_messages(
            contact_id, limit=1, offset=0, created_at_order=Order.DESC
        )
        if not conversations:
            raise ConversationNotFoundError(contact_id)
        return conversations[0]

    async def resolve_contact(
        self, contact_id: str, conversation: Conversation
    ) -> MessagingProductContact:
        contact = resolve_contact_reference(conversation)
        if contact is not None:
            return contact
        logger.debug("contact_lookup_fallback", contact_id=contact_id)
        contact = await self._client.get_messaging_product_contact_by_id(contact_id)
        if contact is None:
            raise ContactNotFoundError(contact_id)
        return contact

    async def process_contact(
        self,
        contact_id: str,
        rules: Sequence[InactivityRule],
        conversation: Optional[Conversation] = None,
        mock: bool = False,
        now: Optional[datetime] = None,
    ) -> DispatchResult:
        """Run one evaluation for contact_id. Errors propagate to the caller."""
        if not rules:
            logger.info("no_reminder_rules", contact_id=contact_id)
            return DispatchResult(contact_id=contact_id, status=DispatchStatus.NO_RULE)

        if conversation is None:
            conversation = await self.latest_conversation(contact_id)

        contact = await self.resolve_contact(contact_id, conversation)
        inactive = inactive_duration(conversation.updated_at, now)
        rule = select_rule(rules, inactive)
        if rule is None:
            logger.info(
                "no_rule_applies",
                contact_id=contact.id,
                inactive_hours=round(inactive.total_seconds() / 3600, 1),
            )
            return DispatchResult(contact_id=contact.id, status=DispatchStatus.NO_RULE)

        logger.info(
            "rule_selected",
            contact_id=contact.id,
            rule=rule.name,
            inactive_hours=round(inactive.total_seconds() / 3600, 1),
        )
        return await self.dispatch(rule, contact, conversation, mock=mock)

    async def dispatch(
        self,
        rule: InactivityRule,
        contact: MessagingProductContact,
        conversation: Conversation,
        mock: bool = False,
    ) -> DispatchResult:
        """Execute rule's action for contact. With mock, stop right before any network call."""
        match rule.action:
            case None:
                logger.info("rule_has_no_action", contact_id=contact.id, rule=rule.name)
                return DispatchResult(
                    contact_id=contact.id, status=DispatchStatus.NO_ACTION, rule_name=rule.name
                )

            case WacraftMessageAction() as action:
                if contact.product_details is None:
                    raise MissingProductDetailsError(contact.id)
                payload = MessagePayload.model_validate(
                    {**action.sender_data.to_wire(), "to": contact.product_details.wa_id}
                )
                message = SendWhatsAppMessage(to_id=contact.id, sender_data=payload)
                if not mock:
                    await self._client.send_message(message)
                return self._sent(rule, contact, ActionType.WACRAFT_MESSAGE, conversation, mock)

            case EmailAction() as action:
                details = _contact_details(contact)
                if not details.email:
                    raise MissingEmailError(contact.id, details.name)
                if not mock:
                    await self._email_sender(self._email_config, details, action)
                return self._sent(rule, contact, ActionType.EMAIL, conversation, mock)

            case HttpRequestAction() as action:
                details = _contact_details(contact)
                request = prepare_http_request(action, details)
                logger.debug("http_request_prepared", method=request.method, url=request.url)
                if not mock:
                    await self._http_sender(action, details)
                return self._sent(rule, contact, ActionType.HTTP_REQUEST, conversation, mock)

        raise TypeError(f"Unsupported action: {rule.action!r}")

    def _sent(
        self,
        rule: InactivityRule,
        contact: MessagingProductContact,
        action_type: ActionType,
        conversation: Conversation,
        mock: bool,
    ) -> DispatchResult:
        status = DispatchStatus.MOCKED if mock else DispatchStatus.SENT
        logger.info(
            "reminder_dispatched",
            contact_id=contact.id,
            conversation_id=conversation.id,
            rule=rule.name,
            action=str(action_type),
            status=str(status),
        )
        return DispatchResult(
            contact_id=contact.id, status=status, rule_name=rule.name, action_type=action_type
        )


def _contact_details(contact: MessagingProductContact) -> Contact:
    if contact.contact is None:
        raise MissingContactDetailsError(contact.id)
    return contact.contact
