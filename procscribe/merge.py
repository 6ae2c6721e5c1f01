"""
procscribe.merge
----------------
Fold a StatePatch into the running ProcessState.

Rules
• scalar fields (flat or inside organization/process/owner/boundaries) are
  overwritten only by a non-empty trimmed value; absent/empty never erases
• consumers / participants grow additively, deduplicated on their
  case-insensitive identity key, first-seen order kept
• graph is replaced whole, and only by a patch graph that has nodes
• updated_at is stamped on every merge
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, TypeVar

from procscribe.schema import (
    Boundaries,
    Owner,
    Organization,
    ProcessInfo,
    ProcessState,
    StatePatch,
)

log = logging.getLogger(__name__)

T = TypeVar("T")

_GROUPS  = {"organization": Organization, "process": ProcessInfo,
            "owner": Owner, "boundaries": Boundaries}
_SCALARS = ("goal", "product", "product_description", "raw_diagram_source")


def _filled(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _merge_group(prev, patch, model_cls):
    if patch is None:
        return prev
    data = prev.model_dump() if prev is not None else {}
    for key, value in patch.model_dump().items():
        value = _filled(value)
        if value is not None:
            data[key] = value
    return model_cls(**data) if any(v is not None for v in data.values()) else prev


def _dedup(prev: Iterable[T], new: Iterable[T]) -> List[T]:
    seen, out = set(), []
    for item in [*prev, *new]:
        key = item.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out


def merge_state(prev: ProcessState | None, patch: StatePatch | None) -> ProcessState:
    """Pure: neither argument is mutated."""
    base  = prev.model_copy(deep=True) if prev is not None else ProcessState()
    patch = patch or StatePatch()

    updates = {}
    for name, cls in _GROUPS.items():
        updates[name] = _merge_group(getattr(base, name), getattr(patch, name), cls)

    for name in _SCALARS:
        value = _filled(getattr(patch, name))
        updates[name] = value if value is not None else getattr(base, name)

    updates["consumers"]    = _dedup(base.consumers or [], patch.consumers or [])
    updates["participants"] = _dedup(base.participants or [], patch.participants or [])

    if patch.graph is not None and patch.graph.nodes:
        updates["graph"] = patch.graph.model_copy(deep=True)
    else:
        updates["graph"] = base.graph

    updates["updated_at"] = datetime.now(timezone.utc).isoformat()
    merged = base.model_copy(update=updates)
    log.debug("Merged state: %s", merged.to_json_dict())
    return merged


def merge_patches(prev: ProcessState | None, *patches: StatePatch | None) -> ProcessState:
    """Apply *patches* in order (heuristic first, then model: the model wins conflicts)."""
    state = prev
    for patch in patches:
        state = merge_state(state, patch)
    return state if state is not None else merge_state(None, None)
