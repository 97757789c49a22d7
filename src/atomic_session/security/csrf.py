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
"""CSRF tokens bound to a per-session secret.

A token is ``<salt>-<digest>`` where the digest is an HMAC-SHA256 of the
salt keyed by the session secret. Fresh salts make every issued token
different while all of them verify against the same secret.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import string
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from atomic_session.session.ports.outbound import TokenService

SAFE_METHODS: frozenset[str] = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})
"""HTTP methods that do not require CSRF validation."""

_SALT_ALPHABET = string.ascii_letters + string.digits


class CsrfTokenService:
    """Default :class:`TokenService` implementation.

    Args:
        secret_length: Random bytes in a session secret.
        salt_length: Characters of salt per token.
    """

    def __init__(self, secret_length: int = 18, salt_length: int = 8) -> None:
        self._secret_length = secret_length
        self._salt_length = salt_length

    def create_secret(self) -> str:
        return secrets.token_urlsafe(self._secret_length)

    def sign(self, secret: str) -> str:
        salt = "".join(secrets.choice(_SALT_ALPHABET) for _ in range(self._salt_length))
        return f"{salt}-{self._digest(secret, salt)}"

    def verify(self, secret: str, token: str) -> bool:
        salt, sep, _ = token.partition("-")
        if not sep or not salt:
            return False
        expected = f"{salt}-{self._digest(secret, salt)}"
        return secrets.compare_digest(token.encode(), expected.encode())

    @staticmethod
    def _digest(secret: str, salt: str) -> str:
        mac = hmac.new(secret.encode(), salt.encode(), hashlib.sha256).digest()
        return base64.urlsafe_b64encode(mac).rstrip(b"=").decode("ascii")


class CsrfBinder:
    """Creates and checks tokens for a session secret.

    Only reports ``True``/``False``; turning a mismatch into an HTTP
    response is the caller's job (see ``CsrfFilter``).
    """

    def __init__(self, tokens: TokenService | None = None) -> None:
        self.tokens: TokenService = tokens or CsrfTokenService()

    def create_token(self, secret: str) -> str:
        return self.tokens.sign(secret)

    def verify_token(self, secret: str | None, token: str | None) -> bool:
        if not secret or not isinstance(token, str) or not token:
            return False
        return self.tokens.verify(secret, token)
