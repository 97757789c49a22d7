# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Unified exception hierarchy for atomic-session.

All library exceptions inherit from AtomicSessionException, so callers can
catch one base type or target a specific failure.

Categories:
- BusinessException: validation errors, vanished sessions
- SecurityException: CSRF verification failures
- InfrastructureException: configuration and store failures
- NotPersistedException: programmer error, mutating an unsaved session
"""

from __future__ import annotations

# =============================================================================
# Base Exception
# =============================================================================


class AtomicSessionException(Exception):
    """Base exception for all atomic-session errors.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "SESSION_KEY_001").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.context: dict = context if context is not None else {}


# =============================================================================
# Business Exceptions
# =============================================================================


class BusinessException(AtomicSessionException):
    """Domain rule violations."""


class ValidationException(BusinessException):
    """Input validation failures, raised before any store round trip."""


class InvalidSessionKeyException(ValidationException):
    """A field key is reserved, dotted, empty or not a string."""

    def __init__(self, key: object, reason: str) -> None:
        super().__init__(
            f"Invalid session key {key!r}: {reason}",
            code="SESSION_KEY",
            context={"key": key, "reason": reason},
        )
        self.key = key


class InvalidDurationException(ValidationException):
    """A max-age or expiry value could not be interpreted."""


class GoneException(BusinessException):
    """Requested resource has been permanently removed."""


class SessionGoneException(GoneException):
    """The backing document vanished between load and update (TTL or destroy)."""


# =============================================================================
# Security Exceptions
# =============================================================================


class SecurityException(AtomicSessionException):
    """Authentication and authorization errors."""


class CsrfMismatchException(SecurityException):
    """A CSRF token did not verify against the session secret."""


# =============================================================================
# Infrastructure Exceptions
# =============================================================================


class InfrastructureException(AtomicSessionException):
    """Infrastructure failures: configuration, database, network."""


class ConfigurationException(InfrastructureException):
    """Required configuration (store, signing keys) is missing or invalid."""


class StoreUnavailableException(InfrastructureException):
    """The session store could not be reached."""


# =============================================================================
# Programmer Errors
# =============================================================================


class NotPersistedException(AtomicSessionException, AssertionError):
    """A mutating command was issued on a session without a stored document.

    Also an ``AssertionError``: this is a bug in the calling code, never a
    retryable condition.
    """
