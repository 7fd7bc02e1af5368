from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    PARSE = "parse"
    BINDING = "binding"
    AUTH_REQUIRED = "auth_required"
    TRANSPORT = "transport"
    HANDLER = "handler"


class ChatError(Exception):
    kind: ErrorKind = ErrorKind.HANDLER


class ParseError(ChatError):
    """Raised by the tokenizer on malformed argument text."""

    kind = ErrorKind.PARSE


class BindingError(ChatError):
    """Raised when tokens cannot be bound to an action's argument specs."""

    kind = ErrorKind.BINDING


class AuthRequired(ChatError):
    kind = ErrorKind.AUTH_REQUIRED

    def __init__(self, site: str | None = None) -> None:
        message = "user authorization needed"
        if site:
            message = f"{message} for {site}"
        super().__init__(message)
        self.site = site


class TransportError(ChatError):
    kind = ErrorKind.TRANSPORT
    fatal: bool = False


class SendTimeout(TransportError):
    def __init__(self, local_id: int, timeout: float) -> None:
        super().__init__(
            f"could not confirm message {local_id} was sent within {timeout:g}s"
        )
        self.local_id = local_id
        self.timeout = timeout


class InvalidCredentials(TransportError):
    fatal = True

    def __init__(self, message: str = "invalid credentials") -> None:
        super().__init__(message)


class HandlerError(ChatError):
    kind = ErrorKind.HANDLER

    def __init__(self, handler: str, cause: BaseException) -> None:
        super().__init__(str(cause) or cause.__class__.__name__)
        self.handler = handler
        self.cause = cause
        self.__cause__ = cause


class ConfigError(RuntimeError):
    pass


def classify(exc: BaseException) -> ErrorKind:
    if isinstance(exc, ChatError):
        return exc.kind
    return ErrorKind.HANDLER
