"""
procscribe.extractors
---------------------
Registry of heuristic field extractors plus a convenience
`extract(text) -> StatePatch` helper.

Registered out-of-the-box (run in this order, later values win):
    • sentences – free-text phrasings ("меня зовут …", "цель — …")
    • steps     – "Шаг N." blocks → graph + participants
    • labels    – labelled lines outside step blocks ("Цель: …")

Each extractor takes normalized text and returns a plain dict shaped like
a StatePatch (snake_case keys). Add new ones with `@register("name")`.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from procscribe.schema import StatePatch
from procscribe.text import normalize

log = logging.getLogger(__name__)

Extractor = Callable[[str], Dict[str, Any]]

REGISTRY: Dict[str, Extractor] = {}


# ----------------------------------------------------------------------
# Registration decorator
# ----------------------------------------------------------------------
def register(name: str):
    """Register *fn* under *name*; re-registering a name replaces it in place."""
    def _wrap(fn: Extractor):
        REGISTRY[name] = fn
        return fn
    return _wrap


# ----------------------------------------------------------------------
# Patch dict helpers
# ----------------------------------------------------------------------
def put(patch: Dict[str, Any], path: str, value: Optional[str]) -> None:
    """Set dotted *path* ("owner.full_name") on *patch*; empty values are skipped."""
    if value is None or not str(value).strip():
        return
    *parents, leaf = path.split(".")
    node = patch
    for key in parents:
        node = node.setdefault(key, {})
    node[leaf] = str(value).strip()


def deep_update(base: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Any]:
    """Nested dicts merge, lists extend, scalars from *new* win."""
    for key, value in new.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            deep_update(base[key], value)
        elif isinstance(value, list) and isinstance(base.get(key), list):
            base[key].extend(value)
        elif value not in (None, "", [], {}):
            base[key] = value
    return base


# ----------------------------------------------------------------------
# Dispatch helper
# ----------------------------------------------------------------------
def extract(text: str | None) -> StatePatch:
    """Run every registered extractor over *text* and fold the results."""
    clean = normalize(text)
    if not clean:
        return StatePatch()

    merged: Dict[str, Any] = {}
    for name, fn in REGISTRY.items():
        try:
            deep_update(merged, fn(clean) or {})
        except Exception:
            log.warning("Extractor %s failed; skipped", name, exc_info=True)

    try:
        return StatePatch.model_validate(merged)
    except ValidationError:
        log.warning("Heuristic patch rejected: %s", merged, exc_info=True)
        return StatePatch()


# register built-ins (import order == run order)
from procscribe.extractors import sentences, steps, labels  # noqa: E402,F401
from procscribe.extractors.model import ModelStateExtractor, parse_model_patch  # noqa: E402,F401
from procscribe.extractors.protocol import extract_protocol_facts  # noqa: E402,F401
