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
"""Human-readable durations ("14 days", "2h", "90s") in milliseconds."""

from __future__ import annotations

import re
from datetime import timedelta

from atomic_session.kernel.exceptions import InvalidDurationException

_SECOND = 1000
_MINUTE = _SECOND * 60
_HOUR = _MINUTE * 60
_DAY = _HOUR * 24
_WEEK = _DAY * 7
_YEAR = _DAY * 365.25

_UNITS: dict[str, float] = {
    "years": _YEAR, "year": _YEAR, "yrs": _YEAR, "yr": _YEAR, "y": _YEAR,
    "weeks": _WEEK, "week": _WEEK, "w": _WEEK,
    "days": _DAY, "day": _DAY, "d": _DAY,
    "hours": _HOUR, "hour": _HOUR, "hrs": _HOUR, "hr": _HOUR, "h": _HOUR,
    "minutes": _MINUTE, "minute": _MINUTE, "mins": _MINUTE, "min": _MINUTE, "m": _MINUTE,
    "seconds": _SECOND, "second": _SECOND, "secs": _SECOND, "sec": _SECOND, "s": _SECOND,
    "milliseconds": 1, "millisecond": 1, "msecs": 1, "msec": 1, "ms": 1,
}

_DURATION_RE = re.compile(r"^\s*(-?(?:\d+)?\.?\d+)\s*([a-z]*)\s*$", re.IGNORECASE)


def parse_duration(value: int | float | str | timedelta) -> int:
    """Convert *value* to whole milliseconds.

    Numbers are taken as milliseconds already. Strings are a number with an
    optional unit (``"14 days"``, ``"1.5h"``, ``"500"``). ``bool`` and
    negative results are rejected.

    Raises:
        InvalidDurationException: The value cannot be interpreted.
    """
    if isinstance(value, bool):
        raise InvalidDurationException(f"Invalid duration: {value!r}", code="SESSION_DURATION")

    if isinstance(value, timedelta):
        millis = value.total_seconds() * _SECOND
    elif isinstance(value, (int, float)):
        millis = float(value)
    elif isinstance(value, str):
        match = _DURATION_RE.match(value)
        if match is None:
            raise InvalidDurationException(f"Invalid duration: {value!r}", code="SESSION_DURATION")
        amount, unit = match.groups()
        multiplier = _UNITS.get(unit.lower() or "ms")
        if multiplier is None:
            raise InvalidDurationException(
                f"Unknown duration unit {unit!r} in {value!r}", code="SESSION_DURATION"
            )
        millis = float(amount) * multiplier
    else:
        raise InvalidDurationException(f"Invalid duration: {value!r}", code="SESSION_DURATION")

    if millis < 0:
        raise InvalidDurationException(f"Duration must not be negative: {value!r}", code="SESSION_DURATION")
    return int(millis)
