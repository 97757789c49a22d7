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
"""Cookie signing with rotating keys.

Signatures are HMAC-SHA256 over ``"<name>=<value>"``, URL-safe base64
without padding. New signatures use the first key; verification accepts
any key so old cookies survive a key rotation.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from collections.abc import Sequence

from atomic_session.kernel.exceptions import ConfigurationException


class CookieSigner:
    def __init__(self, keys: Sequence[str]) -> None:
        if not keys:
            raise ConfigurationException(
                "Signed cookies require at least one signing key.",
                code="SESSION_SIGNING_KEYS",
            )
        self._keys = [key.encode() for key in keys]

    def sign(self, data: str) -> str:
        return self._sign(data, self._keys[0])

    def index(self, data: str, digest: str) -> int:
        """Return the position of the key that produced *digest*, or ``-1``."""
        for position, key in enumerate(self._keys):
            if hmac.compare_digest(self._sign(data, key).encode(), digest.encode()):
                return position
        return -1

    def verify(self, data: str, digest: str) -> bool:
        return self.index(data, digest) > -1

    @staticmethod
    def _sign(data: str, key: bytes) -> str:
        mac = hmac.new(key, data.encode(), hashlib.sha256).digest()
        return base64.urlsafe_b64encode(mac).rstrip(b"=").decode("ascii")
