# botpanel/domain/errors.py
from typing import Optional


class BotError(Exception):
    """Base class for failures reported to the bot's callers."""


class AlreadyRunningError(BotError):
    def __init__(self, message: str = "Bot is already running"):
        super().__init__(message)


class InvalidCredentialsError(BotError):
    def __init__(self, message: str = "Invalid credentials provided"):
        super().__init__(message)


class NoCredentialsError(BotError):
    def __init__(self, message: str = "No previous credentials available for restart"):
        super().__init__(message)


class NotConnectedError(BotError):
    def __init__(self, message: str = "Bot is not connected"):
        super().__init__(message)


class GatewayConnectionError(BotError):
    """Connect or listen failure reported by the gateway."""


class AuthenticationError(GatewayConnectionError):
    """The gateway rejected the supplied credentials."""


class CommandExecutionError(BotError):
    """A command handler raised while executing."""

    def __init__(self, command_name: str, cause: Optional[BaseException] = None):
        self.command_name = command_name
        self.cause = cause
        detail = str(cause) if cause is not None else "unknown error"
        super().__init__(f"Command '{command_name}' failed: {detail}")


class NotFoundError(BotError):
    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity.capitalize()} not found: {key}")
