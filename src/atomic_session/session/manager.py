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
"""SessionManager — process-wide session settings and collaborators."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import structlog

from atomic_session.config.properties.session import SessionProperties
from atomic_session.core.config import Config
from atomic_session.kernel.exceptions import ConfigurationException
from atomic_session.security.csrf import CsrfBinder
from atomic_session.session.coordinator import RequestSession
from atomic_session.session.duration import parse_duration
from atomic_session.session.ports.outbound import CookieJar, SessionStore, TokenService

logger = structlog.get_logger(__name__)

DEFAULT_KEY = "sid"
DEFAULT_MAX_AGE = "14 days"


class SessionManager:
    """Holds the store, cookie settings and CSRF binder shared by all requests.

    Args:
        store: The session store. May be assigned later through :attr:`store`;
            using the manager before that raises ``ConfigurationException``.
        key: Cookie name carrying the session identifier.
        max_age: Default lifetime, milliseconds or a duration string.
        tokens: CSRF token service; defaults to ``CsrfTokenService``.
        http_only: Mark the cookie HTTP-only.
        signed: Sign the cookie; the cookie jar needs signing keys.
        overwrite: Replace earlier cookies of the same name in one response.
    """

    def __init__(
        self,
        store: SessionStore | None = None,
        *,
        key: str = DEFAULT_KEY,
        max_age: int | str | timedelta = DEFAULT_MAX_AGE,
        tokens: TokenService | None = None,
        http_only: bool = True,
        signed: bool = True,
        overwrite: bool = True,
    ) -> None:
        self._store = store
        self.key = key
        self.max_age = parse_duration(max_age)
        self.csrf = CsrfBinder(tokens)
        self.http_only = http_only
        self.signed = signed
        self.overwrite = overwrite

    @classmethod
    def from_config(
        cls,
        config: Config,
        store: SessionStore | None = None,
        **overrides: Any,
    ) -> SessionManager:
        """Build a manager from the ``session.*`` configuration section."""
        props = config.bind(SessionProperties)
        options: dict[str, Any] = {
            "key": props.key,
            "max_age": props.max_age,
            "http_only": props.http_only,
            "signed": props.signed,
            "overwrite": props.overwrite,
        }
        options.update(overrides)
        return cls(store, **options)

    @property
    def store(self) -> SessionStore:
        if self._store is None:
            raise ConfigurationException("Session store not set!", code="SESSION_STORE")
        return self._store

    @store.setter
    def store(self, store: SessionStore) -> None:
        self._store = store

    async def ensure_index(self) -> None:
        """Create the TTL index on ``expires``. Idempotent; run once at startup."""
        await self.store.ensure_ttl_index("expires", expire_after_seconds=0)
        logger.info("ttl_index_ensured", field="expires")

    def for_request(self, cookies: CookieJar) -> RequestSession:
        return RequestSession(self, cookies)
