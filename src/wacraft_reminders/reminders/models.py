"""Reminder rules, their actions, and dispatch results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from wacraft_reminders.core.types import ActionType, DispatchStatus
from wacraft_reminders.wacraft.models import MessagePayloadBase


class WacraftMessageAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["wacraft_message"] = "wacraft_message"
    sender_data: MessagePayloadBase


class EmailAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["email"] = "email"
    subject: str
    template: str  # path to an HTML template file


class HttpRequestAction(BaseModel):
    """A webhook call. URL, header values and body may contain contact placeholders."""

    model_config = ConfigDict(frozen=True)

    type: Literal["http_request"] = "http_request"
    method: str = "POST"
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None


Action = Annotated[
    Union[WacraftMessageAction, EmailAction, HttpRequestAction],
    Field(discriminator="type"),
]


class InactivityRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    inactive_for_hours: int = Field(ge=0)
    action: Optional[Action] = None


rule_list = TypeAdapter(list[InactivityRule])


@dataclass(frozen=True, slots=True)
class DispatchResult:
    contact_id: str
    status: DispatchStatus
    rule_name: Optional[str] = None
    action_type: Optional[ActionType] = None
