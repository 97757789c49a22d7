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
"""atomic-session — server-side sessions for ASGI apps.

A cookie carries the session's identifier; the session itself is a MongoDB
document, loaded once per request and changed through atomic field updates.
"""

from atomic_session.kernel.exceptions import AtomicSessionException
from atomic_session.session import (
    RequestSession,
    Session,
    SessionFilter,
    SessionManager,
    get_session,
)

__version__ = "0.1.0"

__all__ = [
    "AtomicSessionException",
    "RequestSession",
    "Session",
    "SessionFilter",
    "SessionManager",
    "__version__",
    "get_session",
]
