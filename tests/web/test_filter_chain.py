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
"""Tests for WebFilterChainMiddleware — ordering, short-circuit, conditional skip."""

from __future__ import annotations

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from atomic_session.web.adapters.starlette.filter_chain import WebFilterChainMiddleware
from atomic_session.web.filters import OncePerRequestFilter
from atomic_session.web.ports.filter import WebFilter

# ---------------------------------------------------------------------------
# Test filters
# ---------------------------------------------------------------------------


class RecordingFilter(OncePerRequestFilter):
    """Appends its name to the X-Chain header on the way out."""

    def __init__(self, name: str) -> None:
        self.name = name

    async def do_filter(self, request, call_next):
        response = await call_next(request)
        previous = response.headers.get("X-Chain")
        response.headers["X-Chain"] = f"{previous},{self.name}" if previous else self.name
        return response


class ApiOnlyFilter(OncePerRequestFilter):
    url_patterns = ["/api/*"]

    async def do_filter(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Api-Filter"] = "applied"
        return response


class ShortCircuitFilter(OncePerRequestFilter):
    exclude_patterns = ["/health"]

    async def do_filter(self, request, call_next):
        return JSONResponse({"error": "blocked"}, status_code=429)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _ok_handler(request: Request) -> PlainTextResponse:
    return PlainTextResponse("OK", headers={"X-Handler": "yes"})


def _make_app(*filters) -> Starlette:
    return Starlette(
        routes=[
            Route("/test", _ok_handler),
            Route("/api/data", _ok_handler),
            Route("/health", _ok_handler),
        ],
        middleware=[Middleware(WebFilterChainMiddleware, filters=list(filters))],
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestWebFilterChain:
    def test_filters_implement_protocol(self):
        assert isinstance(RecordingFilter("a"), WebFilter)

    def test_no_filters_passes_through(self):
        client = TestClient(_make_app())
        response = client.get("/test")
        assert response.status_code == 200
        assert response.text == "OK"
        assert response.headers["X-Handler"] == "yes"

    def test_filters_run_in_order(self):
        client = TestClient(_make_app(RecordingFilter("outer"), RecordingFilter("inner")))
        response = client.get("/test")
        assert response.headers["X-Chain"] == "inner,outer"

    def test_url_patterns_limit_filter(self):
        client = TestClient(_make_app(ApiOnlyFilter()))
        assert client.get("/api/data").headers.get("X-Api-Filter") == "applied"
        assert "X-Api-Filter" not in client.get("/test").headers

    def test_short_circuit_and_exclusion(self):
        client = TestClient(_make_app(ShortCircuitFilter()))
        assert client.get("/test").status_code == 429
        assert client.get("/health").status_code == 200
