# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations


class PersonafyError(Exception):
    """Base class for all personafy-engine errors."""

    def __init__(self, message: str, code: str = "PERSONAFY_ERROR") -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ApprovalNotFoundError(PersonafyError):
    """
    Raised when a request id cannot be resolved.

    Covers unknown ids, ids whose challenge window has passed, and ids that
    were already approved or denied. The three cases are indistinguishable to
    the caller.

    Attributes:
        request_id: The id that failed to resolve.
    """

    def __init__(self, request_id: str) -> None:
        super().__init__(
            "Request expired or not found. Please make a new request.",
            code="APPROVAL_NOT_FOUND",
        )
        self.request_id = request_id


class InvalidRequestError(PersonafyError):
    """Raised when an incoming payload fails boundary validation."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_REQUEST")


class RuleNotFoundError(PersonafyError):
    """Raised when a referenced standing rule does not exist."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(
            f"Rule '{rule_id}' does not exist.",
            code="RULE_NOT_FOUND",
        )
        self.rule_id = rule_id


class VaultNotFoundError(PersonafyError):
    """Raised when the vault file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Vault not found at '{path}'. "
            "The user needs to set up their Personafy vault first.",
            code="VAULT_NOT_FOUND",
        )
        self.path = path


class VaultFormatError(PersonafyError):
    """Raised when the vault file cannot be parsed into a snapshot."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(
            f"Failed to load vault at '{path}': {detail}",
            code="VAULT_FORMAT",
        )
        self.path = path
        self.detail = detail


class ConfigurationError(PersonafyError):
    """Raised when the engine is misconfigured."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR")
