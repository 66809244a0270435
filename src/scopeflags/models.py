"""
Value types for feature flags.

A flag is a pair of booleans: ``enabled`` switches the capability on,
``visible`` controls whether it is shown (navigation entries, panels). The
``visible`` bit only matters while the flag is enabled; that rule lives in
the consumers, not in storage.

Tags:
    feature-flags, dataclass, value-types

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

# Partial value as carried by merges and stored scope records:
# any subset of {"enabled", "visible", "override"}.
PartialFlag = dict[str, bool]
PartialFlags = dict[str, PartialFlag]

FLAG_FIELDS = ("enabled", "visible", "override")
VALUE_FIELDS = ("enabled", "visible")


class ScopeType(str, Enum):
    """Non-global override layers."""

    USER = "user"
    COMPANY = "company"


class FlagCategory(str, Enum):
    """Grouping used by the admin screens."""

    NAVIGATION = "navigation"
    FEATURE = "feature"
    AI = "ai"
    EXPERIMENTAL = "experimental"


@dataclass(frozen=True, slots=True)
class FlagValue:
    """Resolved capability state of a flag."""

    enabled: bool = False
    visible: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {"enabled": self.enabled, "visible": self.visible}


@dataclass(frozen=True, slots=True)
class ResolvedFlag:
    """A :class:`FlagValue` plus the ``override`` marker.

    ``override`` is true when a user or company scope applied a value to
    this flag since the last :meth:`FeatureFlagService.clear_overrides`.
    """

    enabled: bool = False
    visible: bool = False
    override: bool = False

    @classmethod
    def from_value(cls, value: FlagValue) -> ResolvedFlag:
        return cls(enabled=value.enabled, visible=value.visible)

    @property
    def value(self) -> FlagValue:
        return FlagValue(enabled=self.enabled, visible=self.visible)

    def merged(self, partial: PartialFlag) -> ResolvedFlag:
        """Return a copy with every field present in *partial* overwritten."""
        return ResolvedFlag(
            enabled=bool(partial.get("enabled", self.enabled)),
            visible=bool(partial.get("visible", self.visible)),
            override=bool(partial.get("override", self.override)),
        )

    def to_dict(self) -> dict[str, bool]:
        return {"enabled": self.enabled, "visible": self.visible, "override": self.override}


FlagStore = dict[str, ResolvedFlag]


@dataclass(frozen=True, slots=True)
class FlagDefinition:
    """Static catalog entry for a flag.

    Attributes:
        key: Unique flag identifier
        name: Display name
        description: Human-readable description
        category: Admin grouping
        default_value: Value used when no scope applies one
    """

    key: str
    name: str
    description: str = ""
    category: FlagCategory = FlagCategory.FEATURE
    default_value: FlagValue = field(default_factory=FlagValue)


@dataclass(frozen=True, slots=True)
class FlagGroup:
    """A named group of definitions as shown on one admin tab."""

    name: str
    category: FlagCategory
    description: str
    features: tuple[FlagDefinition, ...] = ()


@dataclass(frozen=True, slots=True)
class ScopeOverrideRecord:
    """Persisted overrides for one ``(scope_id, scope_type)`` pair.

    Saved as a whole: a new save replaces ``flags`` entirely rather than
    patching individual keys.
    """

    scope_id: str
    scope_type: ScopeType
    flags: PartialFlags = field(default_factory=dict)
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


def store_to_dict(store: FlagStore) -> dict[str, dict[str, Any]]:
    """Plain-dict view of a store, for encoding and JSON output."""
    return {key: flag.to_dict() for key, flag in store.items()}


def normalize_partial(
    partial: Mapping[str, Mapping[str, Any]],
    fields: tuple[str, ...] = FLAG_FIELDS,
) -> PartialFlags:
    """Copy a caller-supplied partial store keeping only *fields*, as bools."""
    result: PartialFlags = {}
    for key, value in partial.items():
        if not isinstance(value, Mapping):
            raise TypeError(f"Partial value for flag {key!r} must be a mapping, got {type(value).__name__}")
        result[key] = {name: bool(value[name]) for name in fields if name in value}
    return result


__all__ = [
    "FLAG_FIELDS",
    "FlagCategory",
    "FlagDefinition",
    "FlagGroup",
    "FlagStore",
    "FlagValue",
    "PartialFlag",
    "PartialFlags",
    "ResolvedFlag",
    "ScopeOverrideRecord",
    "ScopeType",
    "VALUE_FIELDS",
    "normalize_partial",
    "store_to_dict",
]
