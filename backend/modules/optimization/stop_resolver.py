"""
modules/optimization/stop_resolver.py
---------------------------------------
Single resolver for stop references produced by the AI text generator.

The generator may echo a genuine stop id or a 1-based position into the
snapshot's stop list (confirmed stops first, then potential stops, the
order the prompt enumerates them).  Rule, applied identically for sequence
resolution, date-map lookups and apply-time updates:

  1. exact id match
  2. otherwise, a valid 1-based index into *stops*
  3. otherwise unresolved (None)
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from schemas.tour import Stop

logger = logging.getLogger(__name__)


def coerce_ref(ref: Any) -> Optional[int]:
    """Turn 7, "7", 7.0 or " 7 " into 7; anything else into None."""
    if isinstance(ref, bool):
        return None
    if isinstance(ref, int):
        return ref
    if isinstance(ref, float) and ref.is_integer():
        return int(ref)
    if isinstance(ref, str) and ref.strip().lstrip("-").isdigit():
        return int(ref.strip())
    return None


def resolve_stop_ref(ref: Any, stops: Sequence[Stop]) -> Optional[Stop]:
    """Resolve *ref* against *stops*: id first, then 1-based position."""
    value = coerce_ref(ref)
    if value is None:
        return None
    for stop in stops:
        if stop.id == value:
            return stop
    if 1 <= value <= len(stops):
        stop = stops[value - 1]
        logger.warning("Reference %s resolved positionally to stop %s", value, stop.id)
        return stop
    return None


def resolve_sequence(refs: Sequence[Any], stops: Sequence[Stop]) -> tuple[list[Stop], list[Any]]:
    """
    Resolve an ordered reference list.

    Returns (resolved stops in order without duplicates, unresolved refs).
    """
    resolved: list[Stop] = []
    seen: set[int] = set()
    unresolved: list[Any] = []
    for ref in refs:
        stop = resolve_stop_ref(ref, stops)
        if stop is None:
            unresolved.append(ref)
            continue
        if stop.id in seen:
            continue
        seen.add(stop.id)
        resolved.append(stop)
    return resolved, unresolved


def lookup_by_ref(mapping: dict, ref: Any, stop: Stop) -> Any:
    """
    Find the value *mapping* holds for a stop referenced as *ref*.

    Tries the raw reference as written, then the resolved stop's real id,
    so a date map keyed by positions or by ids both work.
    """
    if not mapping:
        return None
    for key in (ref, str(ref), stop.id, str(stop.id)):
        if key in mapping:
            return mapping[key]
    return None


def resolve_date_map(raw: dict, stops: Sequence[Stop]) -> dict[int, Any]:
    """Re-key a {ref: value} map onto real stop ids; unresolved keys are dropped."""
    out: dict[int, Any] = {}
    for key, value in (raw or {}).items():
        stop = resolve_stop_ref(key, stops)
        if stop is None:
            logger.warning("Dropping date for unresolved stop reference %r", key)
            continue
        out[stop.id] = value
    return out
