"""
Free-text phrasings that people actually type when introducing a process:

    "Меня зовут Иван Иванов, я директор ООО Ромашка."
    "Мы занимаемся оптовой торговлей."
    "Мне необходимо описать процесс закупки."
    "Цель — сократить сроки поставки."
"""
from __future__ import annotations

import re
from typing import Any, Dict

from procscribe.extractors import put, register
from procscribe.extractors.patterns import clean_value

_TAIL = r"([^\n.;!?]+)"

POSITIONS = (
    "генеральный директор", "исполнительный директор", "коммерческий директор",
    "финансовый директор", "технический директор", "заместитель директора",
    "главный бухгалтер", "директор", "руководитель", "менеджер", "куратор",
    "координатор", "специалист", "администратор", "начальник", "аналитик",
    "основатель", "владелец",
)
_POS_ALT = "|".join(re.escape(p).replace(r"\ ", r"\s+") for p in POSITIONS)

NAME_RE     = re.compile(r"\bменя\s+зовут\s+([^\n,.;!?]+)", re.IGNORECASE)
POSITION_RE = re.compile(rf"\bя\s+(?:—\s*|-\s*)?({_POS_ALT})\b", re.IGNORECASE)
ORG_AFTER_POSITION_RE = re.compile(
    rf"\bя\s+(?:—\s*|-\s*)?(?:{_POS_ALT})\s+(?:в\s+|компании\s+|организации\s+)*([^\n.,;!?]+)",
    re.IGNORECASE,
)
ORG_RE      = re.compile(r"\bв\s+(?:компании|организации)\s+([^\n.,;!?]+)", re.IGNORECASE)
LEGAL_RE    = re.compile(
    r"\b((?:ООО|АО|ПАО|ЗАО|ОАО|ИП|НКО|ГУП|МУП)\s+[«\"]?[^\n.,;!?«»\"]+[»\"]?)"
)
ACTIVITY_RE = re.compile(r"\bмы\s+(?:занимаемся|работаем)\s+([^\n.]+)", re.IGNORECASE)
PROCESS_RE  = re.compile(
    r"\b(?:мне\s+(?:необходимо|нужно)|я\s+хочу|хочу|нужно)\s+описать\s+([^\n.]+)",
    re.IGNORECASE,
)
GOAL_RE     = re.compile(r"\bцель\b[^\n—:–-]{0,40}?(?:—|–|-)\s*" + _TAIL, re.IGNORECASE)
PRODUCT_RE  = re.compile(
    r"\bконечн(?:ый|ая|ым)\s+результат[^\n—:–-]{0,40}?(?:—|–|-)\s*" + _TAIL, re.IGNORECASE
)
START_RE    = re.compile(r"\bначал[оа]\b[^\n—:–-]{0,40}?(?:—|–|-)\s*" + _TAIL, re.IGNORECASE)
END_RE      = re.compile(r"\bконец\b[^\n—:–-]{0,40}?(?:—|–|-)\s*" + _TAIL, re.IGNORECASE)
STARTS_WITH_RE = re.compile(r"\bпроцесс\s+начинается\s+(?:с|со|когда)\s+" + _TAIL, re.IGNORECASE)
ENDS_WITH_RE   = re.compile(
    r"\bпроцесс\s+(?:заканчивается|завершается)\s+(?:на|после|когда)?\s*" + _TAIL, re.IGNORECASE
)

_PROCESS_NAME_SPLIT = re.compile(r"\s*(?:,|\(|—|–|\s-\s)\s*")


def _first(regex: re.Pattern, text: str):
    m = regex.search(text)
    return clean_value(m.group(1)) if m else None


@register("sentences")
def extract_sentences(text: str) -> Dict[str, Any]:
    patch: Dict[str, Any] = {}

    put(patch, "owner.full_name", _first(NAME_RE, text))
    put(patch, "owner.position", _first(POSITION_RE, text))

    org = _first(ORG_AFTER_POSITION_RE, text) or _first(ORG_RE, text) or _first(LEGAL_RE, text)
    put(patch, "organization.name", org)
    put(patch, "organization.activity", _first(ACTIVITY_RE, text))

    described = _first(PROCESS_RE, text)
    if described:
        put(patch, "process.description", described)
        name = _PROCESS_NAME_SPLIT.split(described, maxsplit=1)[0]
        if len(name) <= 140:
            put(patch, "process.name", clean_value(name))

    put(patch, "goal", _first(GOAL_RE, text))
    put(patch, "product", _first(PRODUCT_RE, text))
    put(patch, "boundaries.start", _first(START_RE, text) or _first(STARTS_WITH_RE, text))
    put(patch, "boundaries.end", _first(END_RE, text) or _first(ENDS_WITH_RE, text))
    return patch
