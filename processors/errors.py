from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCodes(str, Enum):
    DESCRIPTION_ERROR = "DESCRIPTION_ERROR"
    MARSHALLING_ERROR = "MARSHALLING_ERROR"
    PRECONDITION_ERROR = "PRECONDITION_ERROR"
    DISPATCH_ERROR = "DISPATCH_ERROR"
    POSTPROCESS_ERROR = "POSTPROCESS_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"


class ProcessorError(Exception):
    code: ErrorCodes = ErrorCodes.DISPATCH_ERROR

    def __init__(
        self,
        message: str,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message
        self.details = details or {}


class DescriptionError(ProcessorError):
    """The processor self-description is malformed or unsupported."""

    code = ErrorCodes.DESCRIPTION_ERROR


class MarshallingError(ProcessorError):
    """A submitted value cannot be converted into the invocation payload."""

    code = ErrorCodes.MARSHALLING_ERROR

    def __init__(self, argument: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details={"argument": argument, **(details or {})})
        self.argument = argument


class PreconditionError(ProcessorError):
    code = ErrorCodes.PRECONDITION_ERROR


class DispatchError(ProcessorError):
    code = ErrorCodes.DISPATCH_ERROR


class PostProcessingError(ProcessorError):
    code = ErrorCodes.POSTPROCESS_ERROR


class ConfigError(ProcessorError):
    code = ErrorCodes.CONFIG_ERROR
