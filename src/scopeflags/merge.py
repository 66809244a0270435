"""
Merge algorithms for the flag store.

All functions are pure: they build and return a new store and never mutate
their inputs. Merging is shallow and field-wise: for each key in the
partial mapping, only the fields present in the partial value
(``enabled``, ``visible``, ``override``) replace the current ones.

Keys the catalog does not define are admitted as-is (missing fields fill
with ``False``) so a store written by newer code survives a round trip
through older code. Each admission is logged as
``flag_unknown_key_admitted``.

Tags:
    feature-flags, merge, pure-functions
"""

from __future__ import annotations

from collections.abc import Mapping

from scopeflags.catalog import FlagCatalog
from scopeflags.logging import FlagLogger, NullFlagLogger
from scopeflags.models import FlagStore, PartialFlag, ResolvedFlag

_NULL_LOGGER = NullFlagLogger()


def merge_flags(
    current: FlagStore,
    partial: Mapping[str, PartialFlag],
    *,
    catalog: FlagCatalog | None = None,
    logger: FlagLogger = _NULL_LOGGER,
) -> FlagStore:
    """Shallow-merge *partial* over *current*."""
    merged = dict(current)
    for key, value in partial.items():
        existing = merged.get(key)
        if existing is None:
            existing = ResolvedFlag()
            if catalog is not None and key not in catalog:
                logger.log_warn("flag_unknown_key_admitted", flag_key=key)
        merged[key] = existing.merged(value)
    return merged


def merge_with_defaults(
    persisted: Mapping[str, PartialFlag],
    catalog: FlagCatalog,
    *,
    logger: FlagLogger = _NULL_LOGGER,
) -> FlagStore:
    """Fresh catalog defaults with *persisted* merged over them."""
    return merge_flags(catalog.defaults(), persisted, catalog=catalog, logger=logger)


def apply_override(
    current: FlagStore,
    partial: Mapping[str, PartialFlag],
    *,
    catalog: FlagCatalog | None = None,
    logger: FlagLogger = _NULL_LOGGER,
) -> FlagStore:
    """Merge a scope's partial values and mark every touched key overridden.

    ``override`` is forced on even when the merged value equals the
    default, and regardless of any ``override`` field inside *partial*.
    """
    marked = {key: {**value, "override": True} for key, value in partial.items()}
    return merge_flags(current, marked, catalog=catalog, logger=logger)


__all__ = ["apply_override", "merge_flags", "merge_with_defaults"]
