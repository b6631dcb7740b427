"""Adapter configuration with precedence resolution.

:func:`load_options` builds the :class:`~fluentity.models.AdapterOptions` an
application passes to its adapter, merging several sources.

Precedence (high to low):
    1. Explicit keyword overrides
    2. Environment variables (``FLUENTITY_BASE_URL``,
       ``FLUENTITY_CACHE_ENABLED``, ``FLUENTITY_CACHE_TTL``,
       ``FLUENTITY_TIMEOUT``)
    3. Project config (``./fluentity.json`` or an explicit path)
    4. Defaults

Example ``fluentity.json``::

    {
      "baseUrl": "https://api.example.com",
      "cacheOptions": {"enabled": true, "ttl": 60000},
      "options": {"timeout": 10, "headers": {"Accept": "application/json"}}
    }
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError

from fluentity.exceptions import ConfigurationError
from fluentity.models import AdapterOptions

_PROJECT_CONFIG_FILENAME = "fluentity.json"

_ENV_BASE_URL = "FLUENTITY_BASE_URL"
_ENV_CACHE_ENABLED = "FLUENTITY_CACHE_ENABLED"
_ENV_CACHE_TTL = "FLUENTITY_CACHE_TTL"
_ENV_TIMEOUT = "FLUENTITY_TIMEOUT"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


# --- Project-local config ---


def load_project_config(path: Optional[Union[str, Path]] = None) -> Optional[dict[str, Any]]:
    """Load project configuration from *path* or ``./fluentity.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigurationError: If the file contains invalid JSON or is not a
            JSON object.
    """
    config_path = Path(path) if path is not None else Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not config_path.is_file():
        return None
    try:
        text = config_path.read_text(encoding="utf-8")
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid project config at {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Invalid project config at {config_path}: expected a JSON object"
        )
    return data


# --- Environment ---


def load_env_config() -> dict[str, Any]:
    """Read the ``FLUENTITY_*`` environment variables that are set.

    Returns:
        A partial options mapping keyed by field name. Cache and request
        settings are returned as nested mappings.

    Raises:
        ConfigurationError: If a variable holds a value of the wrong type.
    """
    data: dict[str, Any] = {}
    cache: dict[str, Any] = {}
    request: dict[str, Any] = {}

    base_url = os.environ.get(_ENV_BASE_URL)
    if base_url:
        data["base_url"] = base_url

    enabled = os.environ.get(_ENV_CACHE_ENABLED)
    if enabled is not None:
        cache["enabled"] = _parse_bool(_ENV_CACHE_ENABLED, enabled)

    ttl = os.environ.get(_ENV_CACHE_TTL)
    if ttl:
        cache["ttl"] = _parse_number(_ENV_CACHE_TTL, ttl, int)

    timeout = os.environ.get(_ENV_TIMEOUT)
    if timeout:
        request["timeout"] = _parse_number(_ENV_TIMEOUT, timeout, float)

    if cache:
        data["cache_options"] = cache
    if request:
        data["options"] = request
    return data


def _parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    raise ConfigurationError(f"Invalid boolean for {name}: {value!r}")


def _parse_number(name: str, value: str, kind: type) -> Any:
    try:
        return kind(value.strip())
    except ValueError as exc:
        raise ConfigurationError(f"Invalid {kind.__name__} for {name}: {value!r}") from exc


# --- Precedence resolution ---


def load_options(path: Optional[Union[str, Path]] = None, **overrides: Any) -> AdapterOptions:
    """Resolve adapter options with full precedence chain.

    Environment settings are merged key by key into the nested
    ``cache_options`` / ``options`` mappings of the project file; explicit
    *overrides* replace whole values.

    Args:
        path: Project config file. Defaults to ``./fluentity.json``.
        **overrides: Option values by field name or camelCase alias.

    Returns:
        The validated :class:`~fluentity.models.AdapterOptions`.

    Raises:
        ConfigurationError: If any source is invalid.
    """
    # 4 + 3. Defaults are filled in by pydantic; layer in the project file
    data = _by_field_name(load_project_config(path) or {})

    # 2. Environment variables
    for name, value in load_env_config().items():
        if isinstance(value, dict):
            data[name] = {**_as_dict(data.get(name)), **value}
        else:
            data[name] = value

    # 1. Explicit overrides
    data.update(_by_field_name(overrides))

    try:
        return AdapterOptions.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid adapter options: {exc}") from exc


def _by_field_name(values: dict[str, Any]) -> dict[str, Any]:
    aliases = {
        (info.alias or name): name for name, info in AdapterOptions.model_fields.items()
    }
    return {aliases.get(key, key): value for key, value in values.items()}


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, dict):
        return value
    return {}
