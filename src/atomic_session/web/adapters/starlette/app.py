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
"""Starlette wiring helpers for the session and CSRF filters."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, NamedTuple

from motor.motor_asyncio import AsyncIOMotorClient
from starlette.middleware import Middleware

from atomic_session.config.properties.csrf import CsrfProperties
from atomic_session.config.properties.mongodb import MongoDBProperties
from atomic_session.config.properties.session import SessionProperties
from atomic_session.core.config import Config
from atomic_session.logging.port import LoggingPort
from atomic_session.logging.structlog_adapter import StructlogAdapter
from atomic_session.session.adapters.mongodb import MotorSessionStore, create_collection
from atomic_session.session.filter import SessionFilter
from atomic_session.session.manager import SessionManager
from atomic_session.session.ports.outbound import SessionStore
from atomic_session.web.adapters.starlette.filter_chain import WebFilterChainMiddleware
from atomic_session.web.adapters.starlette.filters.csrf_filter import CsrfFilter

Lifespan = Callable[[Any], AbstractAsyncContextManager[None]]


class SessionSetup(NamedTuple):
    """Everything ``middleware_from_config`` builds for one application."""

    manager: SessionManager
    middleware: Middleware
    lifespan: Lifespan
    logging: LoggingPort


def session_middleware(
    manager: SessionManager,
    signing_keys: list[str] | None = None,
    *,
    csrf: CsrfFilter | None = None,
    **cookie_options: Any,
) -> Middleware:
    """Build the middleware entry that runs the session (and CSRF) filters.

    Usage::

        manager = SessionManager(MotorSessionStore(collection))
        app = Starlette(routes=..., middleware=[session_middleware(manager, ["k1"])])
    """
    filters: list[Any] = [SessionFilter(manager, signing_keys, **cookie_options)]
    if csrf is not None:
        filters.append(csrf)
    return Middleware(WebFilterChainMiddleware, filters=filters)


def session_lifespan(manager: SessionManager, *, ensure_index: bool = True) -> Lifespan:
    """Lifespan that creates the ``expires`` TTL index before serving."""

    @asynccontextmanager
    async def lifespan(app: Any) -> AsyncIterator[None]:
        if ensure_index:
            await manager.ensure_index()
        yield

    return lifespan


def middleware_from_config(
    config: Config,
    store: SessionStore | None = None,
    *,
    client: AsyncIOMotorClient | None = None,  # type: ignore[type-arg]
    logging_port: LoggingPort | None = None,
) -> SessionSetup:
    """Build logging, the store, the manager and the middleware from *config*.

    Without an explicit *store* the ``mongodb.*`` section opens a
    ``MotorSessionStore`` (through *client* when given).

    Usage::

        setup = middleware_from_config(Config.from_file("atomic-session.yaml"))
        app = Starlette(routes=..., middleware=[setup.middleware], lifespan=setup.lifespan)
    """
    logging_port = logging_port or StructlogAdapter()
    logging_port.configure(config)

    session_props = config.bind(SessionProperties)
    csrf_props = config.bind(CsrfProperties)
    mongo_props = config.bind(MongoDBProperties)

    if store is None:
        store = MotorSessionStore(create_collection(mongo_props, client))
    manager = SessionManager.from_config(config, store)

    filters: list[Any] = [SessionFilter.from_properties(manager, session_props)]
    if csrf_props.enabled:
        filters.append(CsrfFilter.from_properties(csrf_props))

    return SessionSetup(
        manager=manager,
        middleware=Middleware(WebFilterChainMiddleware, filters=filters),
        lifespan=session_lifespan(manager, ensure_index=mongo_props.ensure_index),
        logging=logging_port,
    )
