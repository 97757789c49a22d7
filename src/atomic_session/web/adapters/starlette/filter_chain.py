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
"""WebFilterChainMiddleware — pure ASGI middleware running the WebFilters."""

from __future__ import annotations

from collections.abc import Sequence
from functools import reduce
from typing import cast

from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from atomic_session.web.ports.filter import CallNext, WebFilter


class _ResponseRecorder:
    """ASGI ``send`` replacement that keeps the response in memory."""

    def __init__(self) -> None:
        self.status = 200
        self.headers: list[tuple[bytes, bytes]] = []
        self.body = bytearray()

    async def __call__(self, message: Message) -> None:
        kind = message["type"]
        if kind == "http.response.start":
            self.status = message["status"]
            self.headers = list(message.get("headers", []))
        elif kind == "http.response.body":
            self.body += message.get("body", b"")

    def to_response(self) -> Response:
        response = Response(content=bytes(self.body), status_code=self.status)
        response.raw_headers[:] = self.headers
        return response


class WebFilterChainMiddleware:
    """Runs *filters* around the downstream app, first filter outermost.

    The downstream response is recorded into a ``Response`` so filters can
    still add headers and cookies after ``call_next`` returns. A filter whose
    ``should_not_filter()`` is ``True`` for the request is skipped.
    """

    def __init__(self, app: ASGIApp, filters: Sequence[WebFilter] = ()) -> None:
        self.app = app
        self._filters = list(filters)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def endpoint(_request: Request) -> Response:
            recorder = _ResponseRecorder()
            await self.app(scope, receive, recorder)
            return recorder.to_response()

        chain = reduce(
            lambda call_next, web_filter: _link(web_filter, call_next),
            reversed(self._filters),
            cast(CallNext, endpoint),
        )
        response = cast(Response, await chain(Request(scope, receive, send)))
        await response(scope, receive, send)


def _link(web_filter: WebFilter, call_next: CallNext) -> CallNext:
    async def run(request: Request) -> Response:
        if web_filter.should_not_filter(request):
            return cast(Response, await call_next(request))
        return cast(Response, await web_filter.do_filter(request, call_next))

    return run
