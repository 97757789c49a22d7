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
"""CsrfFilter — session-bound CSRF protection.

* **Safe methods** (GET, HEAD, OPTIONS, TRACE) pass through untouched;
  handlers issue tokens with ``await session.csrf_token()``.
* **Unsafe methods** resolve the session and verify the token from the
  configured request header against the session secret. A missing or
  invalid token is answered with HTTP 403.

Must run after :class:`SessionFilter`, which provides
``request.state.session``.
"""

from __future__ import annotations

from typing import Any

import structlog
from starlette.responses import JSONResponse

from atomic_session.config.properties.csrf import CsrfProperties
from atomic_session.kernel.exceptions import CsrfMismatchException
from atomic_session.security.csrf import SAFE_METHODS
from atomic_session.session.filter import get_session
from atomic_session.web.filters import OncePerRequestFilter
from atomic_session.web.ports.filter import CallNext

logger = structlog.get_logger(__name__)

DEFAULT_HEADER_NAME = "X-CSRF-Token"


class CsrfFilter(OncePerRequestFilter):
    def __init__(
        self,
        header_name: str = DEFAULT_HEADER_NAME,
        exclude_patterns: list[str] | None = None,
    ) -> None:
        self.header_name = header_name
        if exclude_patterns is not None:
            self.exclude_patterns = list(exclude_patterns)

    @classmethod
    def from_properties(cls, props: CsrfProperties) -> CsrfFilter:
        return cls(header_name=props.header_name, exclude_patterns=props.exclude_patterns)

    async def do_filter(self, request: Any, call_next: CallNext) -> Any:
        if request.method in SAFE_METHODS:
            return await call_next(request)

        try:
            await self.verify(request)
        except CsrfMismatchException as exc:
            logger.warning("csrf_rejected", path=request.url.path, reason=exc.code)
            return JSONResponse({"error": str(exc)}, status_code=403)

        return await call_next(request)

    async def verify(self, request: Any) -> None:
        """Check the request's token against its session.

        Raises:
            CsrfMismatchException: The token is missing or does not verify.
        """
        token: str | None = request.headers.get(self.header_name)
        if not token:
            raise CsrfMismatchException("CSRF token missing", code="CSRF_MISSING")

        session = await get_session(request)
        if not session.verify_csrf(token):
            raise CsrfMismatchException("CSRF token invalid", code="CSRF_INVALID")
