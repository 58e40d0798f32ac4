"""Error taxonomy for the compliance reminder run.

``FetchError`` aborts a run. Every other error is scoped to a single
recipient: the batch logs it, records it in the run summary and moves on.
"""

from __future__ import annotations

from typing import Optional


class ReminderError(Exception):
    error_code = "reminder_error"

    def __init__(self, message: str, *, email: Optional[str] = None) -> None:
        super().__init__(message)
        self.email = email


class FetchError(ReminderError):
    """Vendor query, transport or deserialization failure."""

    error_code = "fetch_failed"


class RenderError(ReminderError):
    """A need fragment or the message template failed to render."""

    error_code = "render_failed"


class NotFoundError(ReminderError):
    """The recipient could not be resolved on the chat platform."""

    error_code = "recipient_not_found"


class DeliveryError(ReminderError):
    """The chat platform refused or failed to accept the message."""

    error_code = "delivery_failed"


class MissingAnchorError(ReminderError):
    """No invitation date was recorded, so no reminder window can be built."""

    error_code = "missing_anchor"
