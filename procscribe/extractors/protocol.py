"""
Meeting facts for the protocol gate.

Looks for labelled lines ("Дата: …", "Повестка: …", "С нашей стороны: …",
"Со стороны клиента: …") and free date mentions ("12.03.2025",
"12 марта 2025"). Texts are scanned in order; a later text overrides an
earlier one field by field.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional

from procscribe.extractors.patterns import canon_label, clean_value, labeled_line_re, split_list
from procscribe.schema import ProtocolFacts
from procscribe.text import normalize

log = logging.getLogger(__name__)

PROTOCOL_LABELS: Dict[str, str] = {
    "дата":                            "date",
    "дата встречи":                    "date",
    "дата совещания":                  "date",
    "дата проведения":                 "date",
    "повестка":                        "agenda",
    "повестка дня":                    "agenda",
    "повестка встречи":                "agenda",
    "тема":                            "agenda",
    "тема встречи":                    "agenda",
    "участники с нашей стороны":       "host",
    "с нашей стороны":                 "host",
    "от нас":                          "host",
    "наши участники":                  "host",
    "со стороны исполнителя":          "host",
    "со стороны компании":             "host",
    "участники со стороны клиента":    "guest",
    "со стороны клиента":              "guest",
    "со стороны заказчика":            "guest",
    "со стороны партнера":             "guest",
    "со стороны партнёра":             "guest",
    "со стороны контрагента":          "guest",
    "от клиента":                      "guest",
    "от заказчика":                    "guest",
}

_LINE_RE = labeled_line_re(PROTOCOL_LABELS)

_MONTHS = ("января|февраля|марта|апреля|мая|июня|июля|августа|"
           "сентября|октября|ноября|декабря")
DATE_RES = (
    re.compile(r"\b\d{1,2}[./]\d{1,2}[./]\d{2,4}\b"),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(rf"\b\d{{1,2}}\s+(?:{_MONTHS})(?:\s+\d{{4}}(?:\s*г(?:ода|\.)?)?)?", re.IGNORECASE),
)
# "с нашей стороны были Иванов и Петров" without a separator
_HOST_FREE_RE  = re.compile(
    r"\b(?:с\s+нашей\s+стороны|со\s+стороны\s+(?:исполнителя|компании))\s+(?:был[аи]?\s+|присутствовал[аи]?\s+)?([^\n.:—–-][^\n.]*)",
    re.IGNORECASE,
)
_GUEST_FREE_RE = re.compile(
    r"\bсо\s+стороны\s+(?:клиента|заказчика|партн[её]ра|контрагента)\s+(?:был[аи]?\s+|присутствовал[аи]?\s+)?([^\n.:—–-][^\n.]*)",
    re.IGNORECASE,
)
_AGENDA_FREE_RE = re.compile(r"\b(?:обсуждали|обсудили)\s+([^\n.]+)", re.IGNORECASE)


def _free_date(text: str) -> Optional[str]:
    for rx in DATE_RES:
        m = rx.search(text)
        if m:
            return clean_value(m.group(0))
    return None


def _scan(text: str) -> Dict[str, object]:
    found: Dict[str, object] = {}
    for m in _LINE_RE.finditer(text):
        key   = PROTOCOL_LABELS[canon_label(m.group("label"))]
        value = clean_value(m.group("value"))
        if not value:
            continue
        if key in ("host", "guest"):
            names = split_list(value)
            if names:
                found[key] = names
        else:
            found[key] = value

    if "date" not in found:
        date = _free_date(text)
        if date:
            found["date"] = date
    if "agenda" not in found:
        m = _AGENDA_FREE_RE.search(text)
        if m and clean_value(m.group(1)):
            found["agenda"] = clean_value(m.group(1))
    for key, rx in (("host", _HOST_FREE_RE), ("guest", _GUEST_FREE_RE)):
        if key not in found:
            m = rx.search(text)
            names = split_list(m.group(1)) if m else []
            if names:
                found[key] = names
    return found


def extract_protocol_facts(texts: Iterable[str]) -> ProtocolFacts:
    date: Optional[str] = None
    agenda: Optional[str] = None
    host: List[str] = []
    guest: List[str] = []

    for raw in texts:
        found = _scan(normalize(raw))
        date   = found.get("date", date)
        agenda = found.get("agenda", agenda)
        host   = found.get("host", host)
        guest  = found.get("guest", guest)

    facts = ProtocolFacts(date=date, agenda=agenda,
                          host_participants=host, guest_participants=guest)
    log.debug("Protocol facts: %s", facts.to_json_dict())
    return facts
