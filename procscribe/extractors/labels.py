"""Labelled lines outside step blocks: "Цель: …", "**Владелец процесса** — …"."""
from __future__ import annotations

import re
from typing import Any, Dict, List

from procscribe.extractors import put, register
from procscribe.extractors.patterns import (
    FIELD_LABELS,
    FIELD_LINE_RE,
    canon_label,
    clean_value,
    split_list,
)
from procscribe.extractors.steps import strip_step_blocks

_ORG_PREFIX_RE = re.compile(r"^(?:ООО|АО|ПАО|ЗАО|ОАО|НКО|ГУП|МУП|компания|организация)\b", re.IGNORECASE)
_PERSON_RE     = re.compile(
    r"^[А-ЯЁ][а-яё]+(?:\s+[А-ЯЁ][а-яё]+){1,2}$"           # Иван Иванов / Иванов Иван Иванович
    r"|^[А-ЯЁ][а-яё]+\s+[А-ЯЁ]\.\s?[А-ЯЁ]\.?$"              # Иванов И.И.
)


def consumer_entry(value: str) -> Dict[str, Any]:
    """Best-effort kind detection for one consumer list item."""
    if _ORG_PREFIX_RE.match(value):
        return {"kind": "org", "name": value}
    if _PERSON_RE.match(value):
        return {"kind": "person", "full_name": value}
    return {"kind": "group", "name": value}


def _split_owner(value: str) -> List[str]:
    """"Иван Иванов, директор" → ["Иван Иванов", "директор"]."""
    head, _, tail = value.partition(",")
    return [clean_value(head), clean_value(tail)]


@register("labels")
def extract_labels(text: str) -> Dict[str, Any]:
    patch: Dict[str, Any] = {}
    for m in FIELD_LINE_RE.finditer(strip_step_blocks(text)):
        path  = FIELD_LABELS.get(canon_label(m.group("label")))
        value = clean_value(m.group("value"))
        if not path or not value:
            continue

        if path == "consumers":
            patch.setdefault("consumers", []).extend(consumer_entry(v) for v in split_list(value))
        elif path == "owner.full_name" and "," in value:
            name, position = _split_owner(value)
            put(patch, "owner.full_name", name)
            if position and "position" not in patch.get("owner", {}):
                put(patch, "owner.position", position)
        else:
            put(patch, path, value)
    return patch
