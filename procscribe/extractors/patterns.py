"""
Shared regex building blocks for the heuristic extractors.

Labelled lines look like any of:

    Цель: сократить сроки
    **Цель** — сократить сроки
    - __Цель:__ сократить сроки

i.e. an optional bullet, optional emphasis around the label, one of
`:`, `—`, `–`, `-` as separator, then the value up to end of line.
"""
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

EMPH = r"(?:\*\*|__|\*|_)?"
SEP  = r"(?::|—|–|-)"

# label (lower-case, single spaces) → dotted StatePatch path
FIELD_LABELS: Dict[str, str] = {
    "организация":                "organization.name",
    "название организации":       "organization.name",
    "наименование организации":   "organization.name",
    "компания":                   "organization.name",
    "деятельность":               "organization.activity",
    "сфера деятельности":         "organization.activity",
    "вид деятельности":           "organization.activity",
    "процесс":                    "process.name",
    "название процесса":          "process.name",
    "наименование процесса":      "process.name",
    "описание процесса":          "process.description",
    "владелец":                   "owner.full_name",
    "владелец процесса":          "owner.full_name",
    "фио владельца":              "owner.full_name",
    "ответственный":              "owner.full_name",
    "должность":                  "owner.position",
    "должность владельца":        "owner.position",
    "цель":                       "goal",
    "цель процесса":              "goal",
    "продукт":                    "product",
    "продукт процесса":           "product",
    "результат":                  "product",
    "результат процесса":         "product",
    "конечный результат":         "product",
    "описание продукта":          "product_description",
    "начало":                     "boundaries.start",
    "начало процесса":            "boundaries.start",
    "старт":                      "boundaries.start",
    "граница начала":             "boundaries.start",
    "конец":                      "boundaries.end",
    "конец процесса":             "boundaries.end",
    "окончание":                  "boundaries.end",
    "окончание процесса":         "boundaries.end",
    "завершение":                 "boundaries.end",
    "финиш":                      "boundaries.end",
    "граница окончания":          "boundaries.end",
    "потребители":                "consumers",
    "потребитель":                "consumers",
    "потребители результата":     "consumers",
    "клиенты":                    "consumers",
}

# labels that belong to a step block rather than to the whole process
STEP_FIELD_LABELS: Dict[str, str] = {
    "описание":     "description",
    "действие":     "description",
    "действия":     "description",
    "участники":    "participants",
    "исполнители":  "participants",
    "исполнитель":  "participants",
    "роль":         "role",
    "ответственный": "role",
    "продукт":      "product",
    "результат":    "product",
}


def canon_label(label: str) -> str:
    return re.sub(r"\s+", " ", label.strip().lower())


def labeled_line_re(labels: Iterable[str]) -> re.Pattern:
    """Multiline regex with named groups `label` and `value`."""
    alts = sorted({canon_label(l) for l in labels}, key=len, reverse=True)
    alt  = "|".join(re.escape(a).replace(r"\ ", r"[ \t]+") for a in alts)
    return re.compile(
        rf"^[ \t]*(?:[-*•][ \t]+|\d+[.)][ \t]+)?{EMPH}[ \t]*(?P<label>{alt})[ \t]*{EMPH}[ \t]*{SEP}"
        rf"[ \t]*{EMPH}[ \t]*(?P<value>.+?)[ \t]*{EMPH}[ \t]*$",
        re.IGNORECASE | re.MULTILINE,
    )


FIELD_LINE_RE = labeled_line_re(FIELD_LABELS)
STEP_FIELD_RE = labeled_line_re(STEP_FIELD_LABELS)

# "Шаг 1. Приём заявки", "**Шаг 2:** Проверка", "### Шаг 3 — Согласование"
STEP_MARKER_RE = re.compile(
    rf"^[ \t]*(?:#+[ \t]*)?(?:[-*•][ \t]+)?{EMPH}[ \t]*шаг[ \t]*№?[ \t]*(?P<num>\d+)[ \t]*[.:)]?"
    rf"[ \t]*(?:—|–|-)?[ \t]*{EMPH}[ \t]*(?P<label>.*?)[ \t]*{EMPH}[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)

_EMPH_STRIP_RE = re.compile(r"^(?:\*\*|__|\*|_)+|(?:\*\*|__|\*|_)+$")
_SPLIT_RE      = re.compile(r"\s*(?:;|,|\n|\s+и\s+)\s*")


def clean_value(value: Optional[str]) -> Optional[str]:
    """Trim whitespace, emphasis markers and trailing punctuation; empty → None."""
    if value is None:
        return None
    text = _EMPH_STRIP_RE.sub("", str(value).strip()).strip()
    text = text.strip(" \t\"'«»").rstrip(".;,")
    text = text.strip()
    return text or None


def split_list(value: Optional[str]) -> List[str]:
    """"Иванов, Петров; отдел продаж и бухгалтерия" → four items."""
    out = []
    for part in _SPLIT_RE.split(value or ""):
        item = clean_value(part)
        if item:
            out.append(item)
    return out


def is_field_line(line: str) -> bool:
    return bool(FIELD_LINE_RE.match(line)) and not STEP_FIELD_RE.match(line)
