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
"""Tests for session-bound CSRF tokens."""

from __future__ import annotations

import pytest

from atomic_session.security.csrf import SAFE_METHODS, CsrfBinder, CsrfTokenService
from atomic_session.session.ports.outbound import TokenService


class TestCsrfTokenService:
    def test_implements_token_service(self) -> None:
        assert isinstance(CsrfTokenService(), TokenService)

    def test_secrets_are_random(self) -> None:
        service = CsrfTokenService()
        assert service.create_secret() != service.create_secret()

    def test_sign_and_verify(self) -> None:
        service = CsrfTokenService()
        secret = service.create_secret()
        token = service.sign(secret)

        assert service.verify(secret, token) is True

    def test_tokens_are_salted(self) -> None:
        service = CsrfTokenService()
        secret = service.create_secret()
        assert service.sign(secret) != service.sign(secret)

    def test_token_format(self) -> None:
        service = CsrfTokenService(salt_length=8)
        salt, sep, digest = service.sign("secret").partition("-")
        assert sep == "-"
        assert len(salt) == 8
        assert digest

    def test_wrong_secret_fails(self) -> None:
        service = CsrfTokenService()
        token = service.sign("one")
        assert service.verify("two", token) is False

    @pytest.mark.parametrize("token", ["", "nodash", "-digest", "salt-", "salt-bogus"])
    def test_malformed_tokens_fail(self, token: str) -> None:
        assert CsrfTokenService().verify("secret", token) is False


class TestCsrfBinder:
    def test_round_trip(self) -> None:
        binder = CsrfBinder()
        token = binder.create_token("secret")
        assert binder.verify_token("secret", token) is True

    def test_missing_secret_or_token(self) -> None:
        binder = CsrfBinder()
        token = binder.create_token("secret")
        assert binder.verify_token(None, token) is False
        assert binder.verify_token("secret", None) is False
        assert binder.verify_token("secret", "") is False

    def test_custom_token_service(self) -> None:
        class FixedTokens:
            def create_secret(self) -> str:
                return "fixed"

            def sign(self, secret: str) -> str:
                return f"token:{secret}"

            def verify(self, secret: str, token: str) -> bool:
                return token == f"token:{secret}"

        binder = CsrfBinder(FixedTokens())
        assert binder.create_token("abc") == "token:abc"
        assert binder.verify_token("abc", "token:abc") is True


class TestSafeMethods:
    def test_safe_methods(self) -> None:
        assert SAFE_METHODS == frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})
