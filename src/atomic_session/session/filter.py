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
"""SessionFilter — attaches a lazily resolved session to every request."""

from __future__ import annotations

from typing import Any

from atomic_session.config.properties.session import SessionProperties
from atomic_session.kernel.exceptions import ConfigurationException
from atomic_session.security.signing import CookieSigner
from atomic_session.session.coordinator import RequestSession
from atomic_session.session.manager import SessionManager
from atomic_session.session.session import Session
from atomic_session.web.adapters.starlette.cookies import StarletteCookieJar
from atomic_session.web.filters import OncePerRequestFilter
from atomic_session.web.ports.filter import CallNext


class SessionFilter(OncePerRequestFilter):
    """Puts a :class:`RequestSession` on ``request.state.session``.

    Nothing touches the store until a handler awaits the session, so a
    request that never uses it gets no ``Set-Cookie`` header. Cookies queued
    while handling the request are written onto the response afterwards.

    Args:
        manager: The shared :class:`SessionManager`.
        signing_keys: Keys for signed cookies, newest first.
        same_site: ``SameSite`` attribute of the session cookie.
        secure: ``Secure`` attribute of the session cookie.
        path: ``Path`` attribute of the session cookie.
    """

    def __init__(
        self,
        manager: SessionManager,
        signing_keys: list[str] | None = None,
        *,
        same_site: str = "lax",
        secure: bool = False,
        path: str = "/",
    ) -> None:
        if manager.signed and not signing_keys:
            raise ConfigurationException(
                "Signed session cookies require signing keys (session.signing-keys).",
                code="SESSION_SIGNING_KEYS",
            )
        self._manager = manager
        self._signer = CookieSigner(signing_keys) if signing_keys else None
        self._same_site = same_site
        self._secure = secure
        self._path = path

    @classmethod
    def from_properties(cls, manager: SessionManager, props: SessionProperties) -> SessionFilter:
        return cls(
            manager,
            props.signing_keys,
            same_site=props.same_site,
            secure=props.secure,
            path=props.path,
        )

    async def do_filter(self, request: Any, call_next: CallNext) -> Any:
        cookies = StarletteCookieJar(
            request,
            signer=self._signer,
            same_site=self._same_site,
            secure=self._secure,
            path=self._path,
        )
        request.state.session = self._manager.for_request(cookies)

        response = await call_next(request)
        return cookies.apply(response)


async def get_session(request: Any) -> Session:
    """Resolve the session attached by :class:`SessionFilter`."""
    context: RequestSession = request.state.session
    return await context.resolve()
