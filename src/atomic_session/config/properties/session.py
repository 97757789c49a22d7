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
"""Session cookie and lifetime configuration properties."""

from __future__ import annotations

from dataclasses import dataclass, field

from atomic_session.core.config import config_properties


@config_properties(prefix="session")
@dataclass
class SessionProperties:
    """Configuration for session cookies and lifetimes (session.*).

    ``max_age`` accepts milliseconds or a duration string such as
    ``"14 days"`` or ``"2h"``.
    """

    key: str = "sid"
    max_age: int | str = "14 days"
    http_only: bool = True
    signed: bool = True
    overwrite: bool = True
    same_site: str = "lax"
    secure: bool = False
    path: str = "/"
    signing_keys: list[str] = field(default_factory=list)
