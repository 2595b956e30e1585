"""Validation helpers for settings loaded from the environment."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


def _non_empty(items: list[str]) -> list[str]:
    if not items:
        raise ValueError("String list value must not be empty")
    return items


def parse_string_list(value: str | list[str]) -> list[str]:
    """Parse a non-empty list of strings.

    Accepts a list (returned as-is), a JSON array string ('["a","b"]') or a
    comma-separated string ('a,b').
    """
    if isinstance(value, list):
        return _non_empty(value)

    stripped = value.strip()
    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}") from e
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ValueError("JSON value must be an array of strings")
        return _non_empty(parsed)

    return _non_empty([item.strip() for item in stripped.split(",") if item.strip()])


def normalize_origin(origin: str) -> str:
    """Reduce an origin to scheme://host[:port], the form browsers send.

    A trailing slash or path would never match an Origin header, so it is
    dropped; anything without an http(s) scheme and host is rejected.
    """
    if origin == "*":
        return origin
    parts = urlsplit(origin.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f"Invalid origin {origin!r}: expected http(s)://host[:port]")
    return f"{parts.scheme}://{parts.netloc}".lower()


def parse_origin_list(value: str | list[str]) -> list[str]:
    """Parse CORS origins and normalize each one, dropping duplicates."""
    origins: list[str] = []
    for origin in parse_string_list(value):
        normalized = normalize_origin(origin)
        if normalized not in origins:
            origins.append(normalized)
    return origins


_STRING_LIST_FIELDS = {"cors_origins"}


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env source that hands string-list fields to validators as raw strings.

    pydantic-settings JSON-decodes list-typed env vars before validators run,
    which would reject the comma-separated form.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in _STRING_LIST_FIELDS and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
