"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Order(StrEnum):
    ASC = "asc"
    DESC = "desc"


class ActionType(StrEnum):
    WACRAFT_MESSAGE = "wacraft_message"
    EMAIL = "email"
    HTTP_REQUEST = "http_request"


class DispatchStatus(StrEnum):
    SENT = "sent"
    MOCKED = "mocked"  # everything ran except the final network call
    NO_ACTION = "no_action"  # a rule matched but carries no action
    NO_RULE = "no_rule"


class DaemonState(StrEnum):
    IDLE = "idle"
    FETCHING = "fetching"
    DISPATCHING = "dispatching"
