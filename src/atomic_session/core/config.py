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
"""Layered configuration: packaged defaults, YAML/TOML files, env overrides.

Values are read with dotted keys (``session.max-age``). An environment
variable ``ATOMIC_SESSION_<KEY>`` (dots and dashes as underscores) wins over
every file. String values may hold ``${NAME}``, ``${section.key}`` or
``${NAME:fallback}`` placeholders.
"""

from __future__ import annotations

import dataclasses
import importlib.resources
import os
import re
import tomllib
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any, TypeVar, get_type_hints

import yaml  # type: ignore[import-untyped]

T = TypeVar("T")

ENV_PREFIX = "ATOMIC_SESSION_"
FILE_STEM = "atomic-session"

_PREFIX_ATTR = "__atomic_session_config_prefix__"
_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")
_MAX_PLACEHOLDER_DEPTH = 10
_MISSING = object()


def config_properties(prefix: str) -> Callable[[type[T]], type[T]]:
    """Bind a dataclass or pydantic model to the ``prefix`` section.

    Usage::

        @config_properties(prefix="session")
        @dataclass
        class SessionProperties:
            key: str = "sid"
    """

    def decorator(cls: type[T]) -> type[T]:
        setattr(cls, _PREFIX_ATTR, prefix)
        return cls

    return decorator


def env_name(key: str) -> str:
    """``session.max-age`` -> ``ATOMIC_SESSION_SESSION_MAX_AGE``."""
    return ENV_PREFIX + re.sub(r"[.\-]", "_", key).upper()


def _lookup(data: dict[str, Any], dotted: str) -> Any:
    node: Any = data
    for part in dotted.split("."):
        if not isinstance(node, dict) or node.get(part) is None:
            return _MISSING
        node = node[part]
    return node


def _merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _merge(current, value)
        else:
            merged[key] = value
    return merged


def _read_file(path: Path) -> dict[str, Any]:
    if path.suffix == ".toml":
        with path.open("rb") as fh:
            return tomllib.load(fh) or {}
    with path.open() as fh:
        return yaml.safe_load(fh) or {}


def _read_defaults() -> dict[str, Any]:
    resource = importlib.resources.files("atomic_session.resources") / f"{FILE_STEM}-defaults.yaml"
    return yaml.safe_load(resource.read_text()) or {}


def _candidate_files(base_dir: Path, profiles: list[str]) -> Iterator[tuple[Path, str | None]]:
    """Yield config files in merge order, each with its profile (or ``None``)."""
    for profile in [None, *profiles]:
        stem = FILE_STEM if profile is None else f"{FILE_STEM}-{profile}"
        for directory in (base_dir / "config", base_dir):
            for suffix in (".yaml", ".toml"):
                path = directory / f"{stem}{suffix}"
                if path.is_file():
                    yield path, profile


def _coerce(value: Any, expected: Any) -> Any:
    """Turn env/file strings into the field's declared scalar or list type."""
    if not isinstance(value, str):
        return value
    if expected is bool:
        return value.strip().lower() in ("true", "1", "yes", "on")
    if expected is int:
        return int(value)
    if expected is float:
        return float(value)
    if expected == list[str]:
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class Config:
    """Merged configuration tree with dotted-key access.

    Precedence, highest first: environment variables, files (profiles over
    the base file, the project root over ``config/``), packaged defaults,
    then the defaults declared on property classes.
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = data or {}
        self._sources: list[str] = []

    @property
    def loaded_sources(self) -> list[str]:
        """Files merged into this config, in order."""
        return list(self._sources)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)

    # -- loading -----------------------------------------------------------

    @classmethod
    def from_sources(
        cls,
        base_dir: str | Path,
        active_profiles: list[str] | None = None,
        load_defaults: bool = True,
    ) -> Config:
        """Merge ``atomic-session.{yaml,toml}`` and profile overlays under *base_dir*.

        Files are looked up in ``config/`` first and then in *base_dir*
        itself; ``atomic-session-<profile>.*`` overlays follow in the order
        the profiles are given.
        """
        data = _read_defaults() if load_defaults else {}
        sources = [f"{FILE_STEM}-defaults.yaml (library defaults)"] if load_defaults else []

        for path, profile in _candidate_files(Path(base_dir), list(active_profiles or [])):
            data = _merge(data, _read_file(path))
            sources.append(str(path) if profile is None else f"{path} (profile: {profile})")

        config = cls(data)
        config._sources = sources
        return config

    @classmethod
    def from_file(cls, path: str | Path, load_defaults: bool = True) -> Config:
        """Merge one YAML or TOML file over the packaged defaults.

        A missing file leaves just the defaults.
        """
        path = Path(path)
        data = _read_defaults() if load_defaults else {}
        config = cls(data)
        if path.exists():
            config._data = _merge(data, _read_file(path))
            config._sources = [str(path)]
        return config

    # -- access ------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value at dotted *key*, an env override, or *default*."""
        override = os.environ.get(env_name(key))
        if override is not None:
            return override

        value = _lookup(self._data, key)
        if value is _MISSING:
            return default
        if isinstance(value, str) and "${" in value:
            return self._expand(value)
        return value

    def get_section(self, prefix: str) -> dict[str, Any]:
        """Return the mapping under dotted *prefix*, or ``{}``."""
        section = _lookup(self._data, prefix)
        return section if isinstance(section, dict) else {}

    def _expand(self, value: str, depth: int = 0) -> str:
        if depth > _MAX_PLACEHOLDER_DEPTH:
            raise ValueError(f"Max recursion depth exceeded expanding '{value}'; circular placeholder?")

        def substitute(match: re.Match[str]) -> str:
            name, _, fallback = match.group(1).partition(":")
            has_fallback = ":" in match.group(1)

            from_env = os.environ.get(name)
            if from_env is not None:
                return from_env

            found = _lookup(self._data, name)
            if found is not _MISSING:
                text = str(found)
                return self._expand(text, depth + 1) if "${" in text else text
            if has_fallback:
                return fallback
            raise ValueError(f"Cannot resolve placeholder '${{{match.group(1)}}}'")

        return _PLACEHOLDER.sub(substitute, value)

    # -- binding -----------------------------------------------------------

    def bind(self, config_cls: type[T]) -> T:
        """Build a ``@config_properties`` class from its section.

        Section keys may be kebab-case (``max-age`` binds ``max_age``).
        Each field can be overridden with ``ATOMIC_SESSION_<PREFIX>_<FIELD>``.

        Raises:
            ValueError: The class is not decorated, or a pydantic model
                rejects the values.
        """
        prefix = getattr(config_cls, _PREFIX_ATTR, None)
        if prefix is None:
            raise ValueError(f"{config_cls.__name__} is not decorated with @config_properties")

        values = {key.replace("-", "_"): value for key, value in self.get_section(prefix).items()}
        for name in values:
            override = os.environ.get(env_name(f"{prefix}.{name}"))
            if override is not None:
                values[name] = override

        from pydantic import BaseModel, ValidationError

        if issubclass(config_cls, BaseModel):
            try:
                return config_cls.model_validate(values)
            except ValidationError as exc:
                raise ValueError(
                    f"Configuration validation failed for '{config_cls.__name__}' (prefix='{prefix}'):\n{exc}"
                ) from exc

        hints = get_type_hints(config_cls)
        kwargs = {
            f.name: _coerce(values[f.name], hints.get(f.name))
            for f in dataclasses.fields(config_cls)  # type: ignore[arg-type]
            if f.name in values
        }
        return config_cls(**kwargs)
