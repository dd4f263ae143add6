"""Exception hierarchy shared by the client, dispatcher and transports."""

from __future__ import annotations


class ReminderError(Exception):
    """Base class for all wacraft-reminders errors."""


class AuthenticationError(ReminderError):
    """Neither the refresh-token grant nor the password grant produced a token."""


class ApiResponseError(ReminderError):
    """A remote endpoint answered with a non-2xx status."""

    def __init__(self, operation: str, status: int, body: str):
        self.operation = operation
        self.status = status
        self.body = body
        super().__init__(f"{operation} failed. Status: {status}, Body: {body}")


class DeliveryError(ReminderError):
    """An email could not be handed to the SMTP server."""


class ActionConfigError(ReminderError):
    """A rule action is configured in a way that cannot be executed."""


class ContactDataError(ReminderError):
    """Required contact or conversation data is missing.

    Distinguishes "nothing to act on" from a transport or auth failure.
    """

    def __init__(self, contact_id: str, message: str):
        self.contact_id = contact_id
        super().__init__(message)


class ConversationNotFoundError(ContactDataError):
    def __init__(self, contact_id: str):
        super().__init__(contact_id, f"No conversation found for contact {contact_id}")


class ContactNotFoundError(ContactDataError):
    def __init__(self, contact_id: str):
        super().__init__(contact_id, f"No messaging product contact found for {contact_id}")


class MissingContactDetailsError(ContactDataError):
    def __init__(self, contact_id: str):
        super().__init__(
            contact_id, f"Messaging product contact {contact_id} is missing contact details"
        )


class MissingProductDetailsError(ContactDataError):
    def __init__(self, contact_id: str):
        super().__init__(contact_id, f"Contact {contact_id} missing product details")


class MissingEmailError(ContactDataError):
    def __init__(self, contact_id: str, name: str = ""):
        label = name or contact_id
        super().__init__(contact_id, f"Contact '{label}' has no email address.")
