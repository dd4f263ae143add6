"""Wacraft API request and response models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

NIL_UUID = "00000000-0000-0000-0000-000000000000"

CONTENT_FIELDS = (
    "text",
    "image",
    "document",
    "audio",
    "video",
    "sticker",
    "template",
    "interactive",
)


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialize with wire aliases, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- Message content components ---


class TextData(WireModel):
    body: str
    preview_url: Optional[bool] = None


class UseMedia(WireModel):
    """Media by previously uploaded id or public link."""

    id: Optional[str] = None
    link: Optional[str] = None
    caption: Optional[str] = None
    filename: Optional[str] = None


class Language(WireModel):
    code: str  # e.g. "en_US", "pt_BR"


class Parameter(WireModel):
    parameter_type: str = Field(alias="type")
    text: Optional[str] = None
    image: Optional[UseMedia] = None
    document: Optional[UseMedia] = None


class Component(WireModel):
    component_type: str = Field(alias="type")  # "header" | "body" | "button"
    parameters: Optional[list[Parameter]] = None


class UseTemplate(WireModel):
    name: str
    language: Language
    components: Optional[list[Component]] = None


class Interactive(WireModel):
    action: Any
    body: TextData


# --- Outbound messages ---


class MessagePayloadBase(WireModel):
    """The `sender_data` content of an outbound message, without the recipient."""

    messaging_product: str = "whatsapp"
    recipient_type: str = "individual"
    message_type: str = Field(alias="type")

    text: Optional[TextData] = None
    image: Optional[UseMedia] = None
    document: Optional[UseMedia] = None
    audio: Optional[UseMedia] = None
    video: Optional[UseMedia] = None
    sticker: Optional[UseMedia] = None
    template: Optional[UseTemplate] = None
    interactive: Optional[Interactive] = None

    @model_validator(mode="after")
    def _single_content(self) -> MessagePayloadBase:
        populated = [name for name in CONTENT_FIELDS if getattr(self, name) is not None]
        if len(populated) != 1:
            raise ValueError(
                f"exactly one message content field must be set, got {populated or 'none'}"
            )
        if populated[0] != self.message_type:
            raise ValueError(
                f"message type '{self.message_type}' does not match content '{populated[0]}'"
            )
        return self


class MessagePayload(MessagePayloadBase):
    to: str


class SendWhatsAppMessage(WireModel):
    """Body of `POST /message/whatsapp`."""

    to_id: str
    sender_data: MessagePayload


# --- Inbound data ---


class Contact(WireModel):
    id: str
    name: str
    email: Optional[str] = None
    photo_path: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WhatsAppProductDetails(WireModel):
    wa_id: str
    phone_number: str


class MessagingProductContact(WireModel):
    """A contact as seen by one messaging product (e.g. a WhatsApp user)."""

    id: str
    contact_id: Optional[str] = None
    messaging_product_id: Optional[str] = None
    blocked: Optional[bool] = None
    last_read_at: Optional[datetime] = None
    contact: Optional[Contact] = None
    product_details: Optional[WhatsAppProductDetails] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_placeholder(self) -> bool:
        return self.id == NIL_UUID


class Conversation(WireModel):
    id: str
    from_id: Optional[str] = None
    to_id: Optional[str] = None
    from_contact: Optional[MessagingProductContact] = Field(default=None, alias="from")
    to_contact: Optional[MessagingProductContact] = Field(default=None, alias="to")
    created_at: datetime
    updated_at: datetime
    messaging_product_id: Optional[str] = None
    receiver_data: Optional[Any] = None
    deleted_at: Optional[datetime] = None


class TokenResponse(WireModel):
    access_token: str
    refresh_token: str
    expires_in: int  # seconds
    token_type: str = "Bearer"


conversation_list = TypeAdapter(list[Conversation])
contact_list = TypeAdapter(list[MessagingProductContact])
