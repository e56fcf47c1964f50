"""Application error taxonomy.

Every failure surfaced to callers of the session core is an ``AppError``
subclass carrying a stable ``errcode``, a user-facing ``errmesg`` and a
short random ``erresid`` that ties the user-visible failure to the log line
written at raise time. Messages are descriptive but never carry session,
message or participant identifiers; those go to the log only.
"""

import inspect
from enum import Enum
from uuid import uuid4

from loguru import logger


class AppErrorCode(str, Enum):
    """Stable error codes."""

    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_TRANSITION = "E_INVALID_TRANSITION"
    E_PERMISSION_DENIED = "E_PERMISSION_DENIED"
    E_REQUEST_TIMEOUT = "E_REQUEST_TIMEOUT"

    E_SLOTS_FULL = "E_SLOTS_FULL"
    E_INVITE_NOT_FOUND = "E_INVITE_NOT_FOUND"
    E_INVITE_EXPIRED = "E_INVITE_EXPIRED"
    E_PARTICIPANT_NOT_FOUND = "E_PARTICIPANT_NOT_FOUND"
    E_POSITION_TAKEN = "E_POSITION_TAKEN"

    E_NOT_CONNECTED = "E_NOT_CONNECTED"
    E_EMPTY_MESSAGE = "E_EMPTY_MESSAGE"
    E_MESSAGE_TOO_LONG = "E_MESSAGE_TOO_LONG"
    E_RATE_LIMITED = "E_RATE_LIMITED"
    E_BANNED = "E_BANNED"
    E_MUTED = "E_MUTED"

    E_INVALID_AWARD = "E_INVALID_AWARD"

    def __str__(self) -> str:
        return self.value


class AppError(Exception):
    """Base error for the session core."""

    default_code: AppErrorCode = AppErrorCode.E_INVALID_REQUEST
    default_mesg: str = "The request could not be completed."
    recoverable: bool = True

    def __init__(
        self,
        errmesg: str | None = None,
        *,
        errcode: AppErrorCode | None = None,
    ) -> None:
        self.errcode = errcode or self.default_code
        self.errmesg = errmesg or self.default_mesg
        self.erresid = uuid4().hex[:10]

        caller_frame = inspect.stack()[1]
        module = inspect.getmodule(caller_frame.frame)
        module_name = (
            module.__name__ if module and getattr(module, "__name__", None) else caller_frame.filename
        )
        self.caller_info = f"{module_name}:{caller_frame.function}:{caller_frame.lineno}"
        super().__init__(self.errmesg)

    def __str__(self) -> str:
        return f"{self.errcode} {self.errmesg}"

    def log(self) -> None:
        """Write the failure to the log with its resolution id."""
        log_msg = f"{self.errcode} {self.erresid} msg={self.errmesg} caller={self.caller_info}"
        if self.recoverable:
            logger.warning(log_msg)
        else:
            logger.error(log_msg)


class InvalidSessionConfig(AppError):
    default_code = AppErrorCode.E_INVALID_REQUEST
    default_mesg = "The session configuration is invalid."


class InvalidTransition(AppError):
    """Lifecycle misuse: fatal to the call, never to the session."""

    default_code = AppErrorCode.E_INVALID_TRANSITION
    default_mesg = "This action is not allowed in the session's current state."
    recoverable = False


class PermissionDenied(AppError):
    default_code = AppErrorCode.E_PERMISSION_DENIED
    default_mesg = "Camera and microphone permissions are required for streaming."


class RequestTimeout(AppError):
    default_code = AppErrorCode.E_REQUEST_TIMEOUT
    default_mesg = "The request timed out. Please try again."


class SlotsFull(AppError):
    default_code = AppErrorCode.E_SLOTS_FULL
    default_mesg = "All co-broadcast slots are taken."


class InviteNotFound(AppError):
    default_code = AppErrorCode.E_INVITE_NOT_FOUND
    default_mesg = "The invitation is not valid."


class InviteExpired(AppError):
    default_code = AppErrorCode.E_INVITE_EXPIRED
    default_mesg = "The invitation has expired."


class ParticipantNotFound(AppError):
    default_code = AppErrorCode.E_PARTICIPANT_NOT_FOUND
    default_mesg = "The participant is not part of this broadcast."


class PositionTaken(AppError):
    default_code = AppErrorCode.E_POSITION_TAKEN
    default_mesg = "That on-screen position is already in use."


class NotConnected(AppError):
    default_code = AppErrorCode.E_NOT_CONNECTED
    default_mesg = "Not connected to a stream chat."


class EmptyMessage(AppError):
    default_code = AppErrorCode.E_EMPTY_MESSAGE
    default_mesg = "Message cannot be empty."


class MessageTooLong(AppError):
    default_code = AppErrorCode.E_MESSAGE_TOO_LONG
    default_mesg = "Message is too long."


class RateLimited(AppError):
    default_code = AppErrorCode.E_RATE_LIMITED
    default_mesg = "You are sending messages too quickly."


class Banned(AppError):
    default_code = AppErrorCode.E_BANNED
    default_mesg = "You have been banned from this chat."


class Muted(AppError):
    default_code = AppErrorCode.E_MUTED
    default_mesg = "You have been muted and cannot send messages."


class InvalidAward(AppError):
    default_code = AppErrorCode.E_INVALID_AWARD
    default_mesg = "Experience awards must be positive."


__all__ = [
    "AppError",
    "AppErrorCode",
    "Banned",
    "EmptyMessage",
    "InvalidAward",
    "InvalidSessionConfig",
    "InvalidTransition",
    "InviteExpired",
    "InviteNotFound",
    "MessageTooLong",
    "Muted",
    "NotConnected",
    "ParticipantNotFound",
    "PermissionDenied",
    "PositionTaken",
    "RateLimited",
    "RequestTimeout",
    "SlotsFull",
]
