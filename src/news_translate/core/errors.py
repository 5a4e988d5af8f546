"""Failure taxonomy for provider calls.

Every kind below ends in the same caller-visible outcome (the original text
comes back); the distinction only matters for logs and counters.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    NO_CREDENTIAL = "no_credential"
    NETWORK = "network"
    PROVIDER = "provider"
    EMPTY_REPLY = "empty_reply"
    PARSE = "parse"


class TranslationError(Exception):
    """Base class for provider-side translation failures."""

    kind: FailureKind = FailureKind.NETWORK


class NoCredentialError(TranslationError):
    kind = FailureKind.NO_CREDENTIAL


class NetworkFailure(TranslationError):
    kind = FailureKind.NETWORK


class ProviderError(TranslationError):
    kind = FailureKind.PROVIDER

    def __init__(self, status_code: int, detail: Optional[str] = None) -> None:
        self.status_code = status_code
        self.detail = detail
        message = f"provider returned HTTP {status_code}"
        if detail:
            message = f"{message}: {detail[:200]}"
        super().__init__(message)


class EmptyReply(TranslationError):
    kind = FailureKind.EMPTY_REPLY


class ParseFailure(TranslationError):
    kind = FailureKind.PARSE
