"""
"Шаг N." blocks → a vertical process graph plus step participants.

    Шаг 1. Приём заявки
    Описание: менеджер регистрирует заявку
    Участники: менеджер, клиент
    Роль: исполнитель
    Продукт: зарегистрированная заявка

A block runs until the next step marker, the first top-level labelled line
("Цель: …") or end of text.
"""
from __future__ import annotations

from typing import Any, Dict, List, Tuple

from procscribe.extractors import register
from procscribe.extractors.patterns import (
    STEP_FIELD_LABELS,
    STEP_FIELD_RE,
    STEP_MARKER_RE,
    canon_label,
    clean_value,
    is_field_line,
    split_list,
)

_DETAIL_TITLES = {
    "description":  "Описание",
    "participants": "Участники",
    "role":         "Роль",
    "product":      "Продукт",
}


def _block_end(text: str, start: int, limit: int) -> int:
    """Offset of the first top-level labelled line inside text[start:limit]."""
    pos = start
    for line in text[start:limit].splitlines(keepends=True):
        if is_field_line(line.rstrip("\n")):
            return pos
        pos += len(line)
    return limit


def step_spans(text: str) -> List[Tuple[int, int, int, str, str]]:
    """[(block_start, block_end, number, label, body)] in document order."""
    markers = list(STEP_MARKER_RE.finditer(text))
    spans = []
    for i, m in enumerate(markers):
        limit = markers[i + 1].start() if i + 1 < len(markers) else len(text)
        end   = _block_end(text, m.end(), limit)
        spans.append((m.start(), end, int(m.group("num")), m.group("label") or "", text[m.end():end]))
    return spans


def strip_step_blocks(text: str) -> str:
    out, pos = [], 0
    for start, end, *_ in step_spans(text):
        out.append(text[pos:start])
        pos = end
    out.append(text[pos:])
    return "".join(out)


def _parse_body(body: str) -> Tuple[Dict[str, str], str]:
    """(sub-fields, first unlabelled line)."""
    fields: Dict[str, str] = {}
    for m in STEP_FIELD_RE.finditer(body):
        key   = STEP_FIELD_LABELS[canon_label(m.group("label"))]
        value = clean_value(m.group("value"))
        if value and key not in fields:
            fields[key] = value

    first_free = ""
    for line in body.splitlines():
        if line.strip() and not STEP_FIELD_RE.match(line):
            first_free = clean_value(line) or ""
            break
    return fields, first_free


@register("steps")
def extract_steps(text: str) -> Dict[str, Any]:
    nodes: List[Dict[str, Any]] = []
    participants: List[Dict[str, Any]] = []

    for _, _, num, label, body in step_spans(text):
        fields, first_free = _parse_body(body)
        title = clean_value(label) or first_free or fields.get("description") or f"Шаг {num}"
        details = "\n".join(
            f"{_DETAIL_TITLES[key]}: {fields[key]}" for key in _DETAIL_TITLES if key in fields
        )
        node_id = f"S{num}"
        if any(n["id"] == node_id for n in nodes):
            node_id = f"S{len(nodes) + 1}"
        nodes.append({"id": node_id, "label": title, "type": "process", "details": details or None})

        for name in split_list(fields.get("participants")):
            participants.append({"name": name, "role": fields.get("role")})

    if not nodes:
        return {}

    edges = [{"from": a["id"], "to": b["id"]} for a, b in zip(nodes, nodes[1:])]
    patch: Dict[str, Any] = {"graph": {"layout": "vertical", "nodes": nodes, "edges": edges}}
    if participants:
        patch["participants"] = participants
    return patch
