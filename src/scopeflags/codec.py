"""
Canonical wire encoding for stored flag mappings.

Both the global snapshot and scope override records store their flags as
JSON text: an object keyed by flag key whose values are objects holding any
subset of ``enabled``, ``visible`` and ``override`` booleans.

    {"beta_search": {"enabled": true, "visible": false}}

The decoder accepts text or UTF-8 bytes. Anything that does not match the shape
above raises :class:`~scopeflags.errors.FlagDecodeError`; the service turns
that into a logged fallback to defaults.

Tags:
    codec, json, wire-format, feature-flags
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from scopeflags.errors import FlagDecodeError
from scopeflags.models import FLAG_FIELDS, PartialFlags


def encode_flags(flags: Mapping[str, Mapping[str, Any]]) -> str:
    """Encode a (partial) flag mapping as canonical JSON text."""
    payload = {
        key: {name: bool(value[name]) for name in FLAG_FIELDS if name in value}
        for key, value in flags.items()
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def decode_flags(raw: str | bytes) -> PartialFlags:
    """Decode JSON text produced by :func:`encode_flags`.

    Unknown fields inside a flag object are dropped; non-boolean values for
    known fields are rejected.
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise FlagDecodeError("Stored feature flags are not valid JSON", cause=e) from e

    if not isinstance(data, dict):
        raise FlagDecodeError(f"Stored feature flags must be a JSON object, got {type(data).__name__}")

    result: PartialFlags = {}
    for key, value in data.items():
        if not isinstance(value, dict):
            raise FlagDecodeError(f"Flag {key!r} must be a JSON object").with_context(flag_key=key)
        partial: dict[str, bool] = {}
        for name in FLAG_FIELDS:
            if name not in value:
                continue
            if not isinstance(value[name], bool):
                raise FlagDecodeError(
                    f"Flag {key!r} field {name!r} must be a boolean"
                ).with_context(flag_key=key)
            partial[name] = value[name]
        result[key] = partial
    return result


__all__ = ["decode_flags", "encode_flags"]
