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
"""End-to-end tests for SessionFilter over a Starlette app."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from atomic_session.core.config import Config
from atomic_session.kernel.exceptions import ConfigurationException
from atomic_session.logging.structlog_adapter import StructlogAdapter
from atomic_session.session.adapters.memory import InMemorySessionStore
from atomic_session.session.filter import SessionFilter, get_session
from atomic_session.session.manager import SessionManager
from atomic_session.web.adapters.starlette.app import middleware_from_config, session_middleware

SIGNING_KEYS = ["test-key"]

# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _untouched(request: Request) -> PlainTextResponse:
    return PlainTextResponse("ok")


async def _visit(request: Request) -> JSONResponse:
    session = await get_session(request)
    await session.increment("visits")
    return JSONResponse({"id": session.id, "visits": session["visits"]})


async def _whoami(request: Request) -> JSONResponse:
    session = await get_session(request)
    return JSONResponse({"id": session.id, "fields": dict(session.fields)})


async def _logout(request: Request) -> PlainTextResponse:
    session = await get_session(request)
    await session.destroy()
    return PlainTextResponse("bye")


async def _login(request: Request) -> JSONResponse:
    session = await get_session(request)
    fresh = await session.regenerate()
    await fresh.set("user", "alice")
    return JSONResponse({"old": session.id, "new": fresh.id})


ROUTES = [
    Route("/untouched", _untouched),
    Route("/visit", _visit),
    Route("/whoami", _whoami),
    Route("/logout", _logout),
    Route("/login", _login, methods=["POST"]),
]


def _make_app(store: InMemorySessionStore, **manager_options) -> Starlette:
    manager = SessionManager(store, **manager_options)
    return Starlette(routes=ROUTES, middleware=[session_middleware(manager, SIGNING_KEYS)])


def _set_cookies(response) -> list[str]:
    return response.headers.get_list("set-cookie")


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestSessionFilter:
    def test_untouched_session_sets_no_cookie(self):
        store = InMemorySessionStore()
        with TestClient(_make_app(store)) as client:
            response = client.get("/untouched")

        assert response.status_code == 200
        assert _set_cookies(response) == []

    def test_first_use_sets_signed_cookie(self):
        with TestClient(_make_app(InMemorySessionStore())) as client:
            response = client.get("/visit")

        cookies = _set_cookies(response)
        assert any(c.startswith("sid=") for c in cookies)
        assert any(c.startswith("sid.sig=") for c in cookies)
        assert all("HttpOnly" in c for c in cookies)

    def test_cookie_replay_resumes_session(self):
        with TestClient(_make_app(InMemorySessionStore())) as client:
            first = client.get("/visit").json()
            second = client.get("/visit").json()

        assert second["id"] == first["id"]
        assert first["visits"] == 1
        assert second["visits"] == 2

    def test_tampered_cookie_starts_new_session(self):
        with TestClient(_make_app(InMemorySessionStore())) as client:
            first = client.get("/visit").json()
            client.cookies.clear()
            client.cookies.set("sid", first["id"])
            client.cookies.set("sid.sig", "forged")
            second = client.get("/visit").json()

        assert second["id"] != first["id"]
        assert second["visits"] == 1

    def test_unsigned_cookies(self):
        with TestClient(_make_app(InMemorySessionStore(), signed=False)) as client:
            first = client.get("/visit")
            second = client.get("/visit").json()

        assert not any(c.startswith("sid.sig=") for c in _set_cookies(first))
        assert second["id"] == first.json()["id"]

    def test_destroy_clears_cookie_and_document(self):
        store = InMemorySessionStore()
        with TestClient(_make_app(store)) as client:
            first = client.get("/visit").json()
            response = client.get("/logout")
            after = client.get("/whoami").json()

        assert any(c.startswith('sid="";') for c in _set_cookies(response))
        assert after["id"] != first["id"]
        assert after["fields"] == {}

    def test_regenerate_swaps_identifier(self):
        with TestClient(_make_app(InMemorySessionStore())) as client:
            client.get("/visit")
            login = client.post("/login").json()
            after = client.get("/whoami").json()

        assert login["new"] != login["old"]
        assert after["id"] == login["new"]
        assert after["fields"] == {"user": "alice"}


class TestMiddlewareFromConfig:
    def test_builds_manager_from_config(self, tmp_path):
        path = tmp_path / "atomic-session.yaml"
        path.write_text("session:\n  key: app.sid\n  max-age: 1h\n  signing-keys:\n    - k1\n")
        config = Config.from_file(path)
        setup = middleware_from_config(config, InMemorySessionStore())

        assert setup.manager.key == "app.sid"
        assert setup.manager.max_age == 3_600_000

        app = Starlette(routes=ROUTES, middleware=[setup.middleware], lifespan=setup.lifespan)
        with TestClient(app) as client:
            response = client.get("/visit")

        assert any(c.startswith("app.sid=") for c in _set_cookies(response))
        assert "Max-Age=3600" in next(c for c in _set_cookies(response) if c.startswith("app.sid="))

    def test_applies_logging_levels(self):
        config = Config(
            {
                "session": {"signing-keys": ["k1"]},
                "logging": {"level": {"root": "INFO", "atomic_session.csrf": "WARNING"}},
            }
        )
        setup = middleware_from_config(config, InMemorySessionStore())

        assert isinstance(setup.logging, StructlogAdapter)
        assert logging.getLogger("atomic_session.csrf").level == logging.WARNING

    def test_uses_given_logging_port(self):
        port = MagicMock(spec=StructlogAdapter)
        config = Config({"session": {"signing-keys": ["k1"]}})
        setup = middleware_from_config(config, InMemorySessionStore(), logging_port=port)

        port.configure.assert_called_once_with(config)
        assert setup.logging is port

    def test_lifespan_skips_index_when_disabled(self):
        store = MagicMock(spec=InMemorySessionStore)
        config = Config({"session": {"signing-keys": ["k1"]}, "mongodb": {"ensure-index": False}})
        setup = middleware_from_config(config, store)

        with TestClient(Starlette(routes=ROUTES, lifespan=setup.lifespan)):
            pass

        store.ensure_ttl_index.assert_not_called()


class TestSessionFilterConfiguration:
    def test_signed_manager_requires_keys(self):
        with pytest.raises(ConfigurationException):
            SessionFilter(SessionManager(InMemorySessionStore()))

    def test_unsigned_manager_needs_no_keys(self):
        SessionFilter(SessionManager(InMemorySessionStore(), signed=False))
