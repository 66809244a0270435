"""
Definition catalog: the static table of every flag the application knows.

The catalog seeds resolution. Each definition carries the flag's default
value, so a snapshot persisted before a flag existed still resolves the new
flag to its default after :func:`~scopeflags.merge.merge_with_defaults`.

Architecture:
    ::

        FlagCatalog (immutable, built once at import)
        ├── definitions: tuple[FlagDefinition, ...]   ← key lookup via dict
        └── groups:      tuple[FlagGroup, ...]        ← admin tabs

        defaults()  →  {key: ResolvedFlag(default, override=False)}  (fresh copy)

Examples:
    >>> from scopeflags.catalog import DEFAULT_CATALOG
    >>> DEFAULT_CATALOG.get_definition("beta_search").default_value
    FlagValue(enabled=False, visible=False)
    >>> [g.name for g in DEFAULT_CATALOG.get_grouped_definitions()]
    ['Navigation', 'Features', 'AI Services', 'Experimental']

Guardrails:
    - Keys must be snake_case and unique (validated on construction)
    - Grouped features must be catalog members
    - The catalog is never mutated; build a new one for tests

Tags:
    feature-flags, catalog, defaults, registry
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from scopeflags.errors import UnknownFlagError
from scopeflags.models import (
    FlagCategory,
    FlagDefinition,
    FlagGroup,
    FlagStore,
    FlagValue,
    ResolvedFlag,
)

_KEY_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


class FlagCatalog:
    """Immutable set of flag definitions plus their admin grouping."""

    def __init__(
        self,
        definitions: Iterable[FlagDefinition],
        groups: Iterable[FlagGroup] = (),
    ) -> None:
        by_key: dict[str, FlagDefinition] = {}
        for definition in definitions:
            if not _KEY_PATTERN.match(definition.key):
                raise ValueError(f"Flag key must be snake_case: {definition.key}")
            if definition.key in by_key:
                raise ValueError(f"Flag already defined: {definition.key}")
            by_key[definition.key] = definition

        groups = tuple(groups)
        for group in groups:
            for feature in group.features:
                if by_key.get(feature.key) is not feature:
                    raise ValueError(
                        f"Group {group.name!r} references a flag outside the catalog: {feature.key}"
                    )

        self._by_key = by_key
        self._definitions = tuple(by_key.values())
        self._groups = groups

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def keys(self) -> list[str]:
        return list(self._by_key)

    def get_all_definitions(self) -> list[FlagDefinition]:
        """All definitions, in declaration order."""
        return list(self._definitions)

    def get_grouped_definitions(self) -> list[FlagGroup]:
        """Definitions grouped for the admin screens."""
        return list(self._groups)

    def get_definition(self, key: str) -> FlagDefinition | None:
        return self._by_key.get(key)

    def require(self, key: str) -> FlagDefinition:
        """Like :meth:`get_definition` but raises :class:`UnknownFlagError`."""
        definition = self._by_key.get(key)
        if definition is None:
            raise UnknownFlagError(key)
        return definition

    def defaults(self) -> FlagStore:
        """Fresh store holding every default value, ``override=False``."""
        return {
            definition.key: ResolvedFlag.from_value(definition.default_value)
            for definition in self._definitions
        }


def _flag(
    key: str,
    name: str,
    description: str,
    category: FlagCategory,
    *,
    enabled: bool,
    visible: bool | None = None,
) -> FlagDefinition:
    return FlagDefinition(
        key=key,
        name=name,
        description=description,
        category=category,
        default_value=FlagValue(enabled=enabled, visible=enabled if visible is None else visible),
    )


_NAV = FlagCategory.NAVIGATION
_FEATURE = FlagCategory.FEATURE
_AI = FlagCategory.AI
_EXPERIMENTAL = FlagCategory.EXPERIMENTAL

_NAVIGATION_FLAGS = (
    _flag("dashboard", "Dashboard", "Company dashboard home page", _NAV, enabled=True),
    _flag("company_profile", "Company Profile", "Company profile and settings", _NAV, enabled=True),
    _flag("journey", "Journey", "Startup journey steps and progress tracking", _NAV, enabled=True),
    _flag("community", "Community", "Community and expert marketplace", _NAV, enabled=True),
    _flag("finance_hub", "Finance Hub", "Financial planning tools", _NAV, enabled=False),
    _flag("analytics", "Analytics", "Analytics dashboards and charts", _NAV, enabled=True),
    _flag("deck_builder", "Deck Builder", "Slide-deck builder", _NAV, enabled=True),
    _flag("tools_marketplace", "Tools Marketplace", "Tool recommendations and marketplace", _NAV, enabled=False),
)

_FEATURE_FLAGS = (
    _flag("idea_playground", "Idea Playground", "Idea generation and refinement workspace", _FEATURE, enabled=True),
    _flag("business_ops_hub", "Business Ops Hub", "Domain cards and task management", _FEATURE, enabled=True),
    _flag("standup_bot", "Standup Bot", "Daily standup assistant", _FEATURE, enabled=True),
    _flag("feedback_system", "Feedback System", "In-app feedback collection", _FEATURE, enabled=True, visible=False),
)

_AI_FLAGS = (
    _flag("ai_cofounder", "AI Co-founder", "AI co-founder panel on the dashboard", _AI, enabled=True),
    _flag("use_real_ai", "Use Real AI", "Route requests to a live LLM provider", _AI, enabled=False),
    _flag("use_mock_ai", "Use Mock AI", "Serve canned responses instead of calling a provider", _AI, enabled=True, visible=False),
    _flag("use_hugging_face", "Use Hugging Face", "Use Hugging Face hosted models", _AI, enabled=False),
    _flag("use_multi_tiered_ai", "Multi-Tiered AI", "Layer general, company and abstraction models", _AI, enabled=False),
    _flag("use_hf_company_model", "Company Model", "Company-specific Hugging Face model", _AI, enabled=False),
    _flag("use_hf_abstraction_model", "Abstraction Model", "Abstraction-layer Hugging Face model", _AI, enabled=False),
)

_EXPERIMENTAL_FLAGS = (
    _flag("beta_search", "Beta Search", "Cross-module search (beta)", _EXPERIMENTAL, enabled=False),
    _flag("advanced_visualization", "Advanced Visualization", "Experimental journey charts", _EXPERIMENTAL, enabled=False),
)

DEFAULT_CATALOG = FlagCatalog(
    _NAVIGATION_FLAGS + _FEATURE_FLAGS + _AI_FLAGS + _EXPERIMENTAL_FLAGS,
    groups=(
        FlagGroup("Navigation", _NAV, "Top-level sections shown in the sidebar", _NAVIGATION_FLAGS),
        FlagGroup("Features", _FEATURE, "Optional product features", _FEATURE_FLAGS),
        FlagGroup("AI Services", _AI, "LLM provider and model selection", _AI_FLAGS),
        FlagGroup("Experimental", _EXPERIMENTAL, "Work in progress, off by default", _EXPERIMENTAL_FLAGS),
    ),
)


__all__ = [
    "DEFAULT_CATALOG",
    "FlagCatalog",
]
