"""Error taxonomy, classifier and per-operation failure policies.

Every boundary that talks to Modal funnels its failures through
``apply_failure_policy``. The policy table decides whether the failure is
surfaced as a classified ``SandboxError`` or converted into a safe default.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from modalbox.config import TOKEN_ID_ENV, TOKEN_SECRET_ENV

logger = logging.getLogger(__name__)

AUTH_MESSAGE = (
    f"Modal authentication failed. Please check your {TOKEN_ID_ENV} and "
    f"{TOKEN_SECRET_ENV} environment variables. "
    "Get your credentials from https://modal.com/"
)
MISSING_CREDENTIALS_MESSAGE = (
    "Missing Modal API credentials. Provide 'token_id' and 'token_secret' in "
    f"config or set {TOKEN_ID_ENV} and {TOKEN_SECRET_ENV} environment variables. "
    "Get your credentials from https://modal.com/"
)
QUOTA_MESSAGE = "Modal quota exceeded. Please check your usage at https://modal.com/"

SYNTAX_MARKERS = ("SyntaxError", "invalid syntax")


class ErrorCategory(str, Enum):
    AUTH = "auth"
    QUOTA = "quota"
    SYNTAX = "syntax"
    NOT_FOUND = "not-found"
    GENERIC = "generic"


class SandboxError(Exception):
    """Base exception for every failure surfaced by the provider."""

    category = ErrorCategory.GENERIC

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthenticationError(SandboxError):
    category = ErrorCategory.AUTH


class QuotaExceededError(SandboxError):
    category = ErrorCategory.QUOTA


class CodeSyntaxError(SandboxError):
    """Submitted code failed to parse in the remote interpreter."""

    category = ErrorCategory.SYNTAX


class NotFoundError(SandboxError):
    category = ErrorCategory.NOT_FOUND


class UnsupportedOperationError(SandboxError):
    pass


def has_syntax_error(stderr: str) -> bool:
    return any(marker in stderr for marker in SYNTAX_MARKERS)


def syntax_error(stderr: str) -> CodeSyntaxError:
    return CodeSyntaxError(f"Syntax error: {stderr.strip()}")


def classify_error(error: BaseException | str, context: str = "") -> SandboxError:
    """Map a raw failure onto the error taxonomy.

    Already-classified errors pass through untouched so that syntax and
    not-found failures keep their original message. Anything unrecognised
    becomes a generic error carrying the original text, behind ``context``
    when one is given.
    """
    if isinstance(error, SandboxError):
        return error
    text = str(error)
    lowered = text.lower()
    if "unauthorized" in lowered or "credentials" in lowered:
        return AuthenticationError(AUTH_MESSAGE)
    if "quota" in lowered or "limit" in lowered:
        return QuotaExceededError(QUOTA_MESSAGE)
    return SandboxError(f"{context}: {text}" if context else text)


def _none(error: BaseException) -> Any:
    return None


@dataclass(frozen=True)
class FailurePolicy:
    surface: bool
    # Prefix for generic messages, formatted with the operation's details
    context: str = ""
    default: Callable[[BaseException], Any] = _none
    # Match auth/quota signatures; off where the error text carries user paths
    classify: bool = False


FAILURE_POLICIES: dict[str, FailurePolicy] = {
    # lifecycle
    "create": FailurePolicy(
        surface=True, context="Failed to create Modal sandbox", classify=True
    ),
    "reconnect": FailurePolicy(surface=False),
    "destroy": FailurePolicy(surface=False),
    "get_info": FailurePolicy(surface=False, default=lambda error: "running"),
    "get_url": FailurePolicy(
        surface=True,
        context="Failed to get Modal tunnel URL for port {port}",
        classify=True,
    ),
    # execution
    "run_code": FailurePolicy(
        surface=True, context="Modal execution failed", classify=True
    ),
    "run_command": FailurePolicy(
        surface=False, default=lambda error: str(error) or type(error).__name__
    ),
    # filesystem
    "read_file": FailurePolicy(surface=True, context="Failed to read file {path}"),
    "write_file": FailurePolicy(surface=True, context="Failed to write file {path}"),
    "mkdir": FailurePolicy(surface=True, context="Failed to create directory {path}"),
    "readdir": FailurePolicy(surface=True, context="Failed to read directory {path}"),
    "exists": FailurePolicy(surface=False, default=lambda error: False),
    "remove": FailurePolicy(surface=True, context="Failed to remove {path}"),
}


def apply_failure_policy(operation: str, error: BaseException, **details: Any) -> Any:
    """Raise ``error`` per the operation's policy, or return its swallow default.

    Operations without ``classify`` always raise a generic error prefixed
    with their context, whatever the underlying text says.
    """
    policy = FAILURE_POLICIES[operation]
    if not policy.surface:
        logger.debug(f"{operation} failed, using default: {error}")
        return policy.default(error)
    context = policy.context.format(**details)
    if not policy.classify:
        raise SandboxError(f"{context}: {error}") from error
    classified = classify_error(error, context)
    if classified is error:
        raise error
    raise classified from error
