"""Exception types shared across the bot."""

from typing import Iterable, Optional


class ComplaintBotError(Exception):
    """Base class for all errors raised by the bot core."""


class ConfigurationError(ComplaintBotError):
    """Required configuration is missing or malformed."""

    def __init__(self, missing: Iterable[str] = (), message: Optional[str] = None):
        self.missing = list(missing)
        if message is None:
            message = "Missing required configuration: " + ", ".join(self.missing)
        super().__init__(message)


class InputValidationError(ComplaintBotError):
    """User input failed a predicate. Recovered locally by re-prompting."""

    def __init__(self, message_key: str, detail: str = ""):
        self.message_key = message_key
        super().__init__(detail or message_key)


class InvalidStatusError(InputValidationError):
    def __init__(self, value: str):
        self.value = value
        super().__init__("invalidStatusId", f"Invalid status: {value!r}")


class AdminPermissionError(ComplaintBotError):
    def __init__(self, actor_id: str, command: str):
        self.actor_id = actor_id
        self.command = command
        super().__init__(f"User {actor_id} is not allowed to run {command}")


class ComplaintNotFoundError(ComplaintBotError):
    def __init__(self, complaint_id: str):
        self.complaint_id = complaint_id
        super().__init__(f"Complaint {complaint_id} not found")


class PersistenceError(ComplaintBotError):
    """The store rejected a read or write."""


class DeliveryError(ComplaintBotError):
    """An outbound send to a single target failed."""

    def __init__(self, target: str, item: str, reason: str = ""):
        self.target = target
        self.item = item
        self.reason = reason
        super().__init__(f"Delivery of {item} to {target} failed: {reason}")


__all__ = [
    "ComplaintBotError",
    "ConfigurationError",
    "InputValidationError",
    "InvalidStatusError",
    "AdminPermissionError",
    "ComplaintNotFoundError",
    "PersistenceError",
    "DeliveryError",
]
