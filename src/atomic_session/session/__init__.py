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
"""atomic-session — cookie-identified sessions with atomic field updates.

Import concrete store types from the adapter package::

    from atomic_session.session.adapters.memory import InMemorySessionStore
    from atomic_session.session.adapters.mongodb import MotorSessionStore
"""

from atomic_session.session.commands import SessionUpdate
from atomic_session.session.coordinator import RequestSession
from atomic_session.session.filter import SessionFilter, get_session
from atomic_session.session.manager import SessionManager
from atomic_session.session.ports.outbound import CookieJar, SessionStore, TokenService
from atomic_session.session.record import SessionRecord
from atomic_session.session.session import Session

__all__ = [
    "CookieJar",
    "RequestSession",
    "Session",
    "SessionFilter",
    "SessionManager",
    "SessionRecord",
    "SessionStore",
    "SessionUpdate",
    "TokenService",
    "get_session",
]
