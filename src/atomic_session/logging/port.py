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
"""Logging contract the Starlette wiring configures before building filters."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from atomic_session.core.config import Config


@runtime_checkable
class LoggingPort(Protocol):
    """Sets up structured logging for the session and CSRF loggers.

    ``middleware_from_config`` calls :meth:`configure` once with the merged
    configuration. Loggers returned by :meth:`get_logger` take an event name
    plus keyword context, e.g. ``logger.info("session_created", session_id=...)``.
    """

    def configure(self, config: Config) -> None:
        """Apply ``logging.format`` and the ``logging.level.*`` thresholds."""
        ...

    def get_logger(self, name: str) -> Any:
        ...

    def set_level(self, name: str, level: str) -> None:
        """Change the threshold of the logger called *name*."""
        ...
