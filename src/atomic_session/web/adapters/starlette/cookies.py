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
"""StarletteCookieJar — CookieJar over a Starlette request/response pair."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from atomic_session.kernel.exceptions import ConfigurationException
from atomic_session.security.signing import CookieSigner

_SIG_SUFFIX = ".sig"


@dataclass(frozen=True)
class PendingCookie:
    name: str
    value: str
    max_age: int | None
    http_only: bool
    cleared: bool = False


class StarletteCookieJar:
    """Reads cookies from a request and queues cookies for its response.

    Signed cookies travel with a ``<name>.sig`` companion holding the HMAC
    of ``<name>=<value>``. A value whose signature fails is treated as
    absent; one signed with a rotated-out key is re-signed.

    Args:
        request: The incoming Starlette request (anything with ``cookies``).
        signer: Signer used for ``signed=True`` cookies.
        same_site: ``SameSite`` attribute of written cookies.
        secure: ``Secure`` attribute of written cookies.
        path: ``Path`` attribute of written cookies.
    """

    def __init__(
        self,
        request: Any,
        *,
        signer: CookieSigner | None = None,
        same_site: str = "lax",
        secure: bool = False,
        path: str = "/",
    ) -> None:
        self._incoming: dict[str, str] = dict(getattr(request, "cookies", {}) or {})
        self._signer = signer
        self._same_site = same_site
        self._secure = secure
        self._path = path
        self._pending: list[PendingCookie] = []

    @property
    def pending(self) -> list[PendingCookie]:
        return list(self._pending)

    def _require_signer(self) -> CookieSigner:
        if self._signer is None:
            raise ConfigurationException(
                "Signed cookies require signing keys (session.signing-keys).",
                code="SESSION_SIGNING_KEYS",
            )
        return self._signer

    def get(self, name: str, *, signed: bool = False) -> str | None:
        value = self._incoming.get(name)
        if value is None or not signed:
            return value

        signer = self._require_signer()
        sig_name = name + _SIG_SUFFIX
        digest = self._incoming.get(sig_name)
        if digest is None:
            return None

        data = f"{name}={value}"
        position = signer.index(data, digest)
        if position < 0:
            self._queue(PendingCookie(sig_name, "", 0, True, cleared=True), overwrite=True)
            return None
        if position > 0:
            self._queue(PendingCookie(sig_name, signer.sign(data), None, True), overwrite=True)
        return value

    def set(
        self,
        name: str,
        value: str,
        *,
        max_age: int | None = None,
        http_only: bool = True,
        signed: bool = False,
        overwrite: bool = False,
    ) -> None:
        # Sub-second lifetimes round up; only an explicit 0 or "" clears.
        seconds = None if max_age is None else -(-max_age // 1000)
        cleared = max_age == 0 or value == ""
        self._queue(PendingCookie(name, value, seconds, http_only, cleared), overwrite=overwrite)
        if signed:
            sig_value = "" if value == "" else self._require_signer().sign(f"{name}={value}")
            self._queue(
                PendingCookie(name + _SIG_SUFFIX, sig_value, seconds, http_only, cleared),
                overwrite=overwrite,
            )

    def _queue(self, cookie: PendingCookie, *, overwrite: bool) -> None:
        if overwrite:
            self._pending = [c for c in self._pending if c.name != cookie.name]
        self._pending.append(cookie)

    def apply(self, response: Any) -> Any:
        """Write the queued cookies onto *response* as ``Set-Cookie`` headers."""
        for cookie in self._pending:
            if cookie.cleared:
                response.delete_cookie(
                    key=cookie.name,
                    path=self._path,
                    secure=self._secure,
                    httponly=cookie.http_only,
                    samesite=self._same_site,
                )
            else:
                response.set_cookie(
                    key=cookie.name,
                    value=cookie.value,
                    max_age=cookie.max_age,
                    path=self._path,
                    secure=self._secure,
                    httponly=cookie.http_only,
                    samesite=self._same_site,
                )
        return response
