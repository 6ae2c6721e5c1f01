"""
procscribe.keywords
-------------------
Stateless predicates over normalized text. Each one is a membership test
against a small vocabulary; the composite predicates always require two
independent hints so a casual mention of "документ" is not a command.

Extend the vocabularies here; nothing else needs to change.
"""
from __future__ import annotations

import re
from typing import Iterable

# ─── vocabularies (lower-case stems) ───────────────────────────────────
EDIT_VERBS = (
    "измени", "передел", "отредакт", "поправ", "замени", "добав", "убер",
    "удали", "исключ", "внеси", "дополни", "перепиши", "исправ", "переимен",
)
TARGET_HINTS = (
    "в документ", "в регламент", "в протокол", "пункт", "раздел", "регламент",
    "документ", "протокол", "заголов", "абзац",
)
GENERATION_VERBS = (
    "сформируй", "сформировать", "составь", "составить", "сгенерируй",
    "сгенерировать", "подготовь", "подготовить", "оформи", "оформить",
    "сделай", "сделать", "выведи", "покажи", "дай", "напиши", "создай",
)
DOCUMENT_NOUNS = (
    "протокол", "регламент", "документ", "инструкц", "положение", "политик",
    "итогов", "финальн",
)
READ_VERBS = (
    "прочитай", "прочти", "прочесть", "посмотри", "изучи", "опиши", "расскажи",
    "перескажи", "ознакомься", "проанализируй", "что в", "что там", "о чем",
    "о чём",
)
ATTACHMENT_NOUNS = (
    "файл", "вложен", "приложен", "прикреплен", "прикреплён", "загружен",
    "скинул", "отправил",
)
CLARIFICATION_PHRASES = (
    "перед формированием протокола нужно уточнить", "ответьте, пожалуйста",
    "нужно уточнить", "уточнить",
)
CHANGE_PROPOSAL_PHRASES = (
    "внесу изменения", "внести изменения", "если да", "верно ли",
    "подтвердите", "применить изменения", "внесу правки",
)

_NUMBERED_LOCATOR_RE = re.compile(
    r"(?:пункт|п\.|раздел|глав[аеуы]|шаг)\s*№?\s*\d+(?:\.\d+)*"
    r"|\b\d+(?:\.\d+)*\s*(?:пункт|раздел)"
)

_CONFIRMATION_RE = re.compile(
    r"^(?:да|ага|угу|ок|окей|ok|okay|yes|yep|верно|конечно|хорошо|согласен|согласна"
    r"|подтверждаю|давай|давайте|принято|именно|так точно|все верно|всё верно"
    r"|да,?\s*(?:верно|конечно|давай|давайте|вноси|внеси|вносите|внесите|согласен|согласна)"
    r")[\s!.)]*$"
)


def _lower(text: str | None) -> str:
    return (text or "").strip().lower()


def _contains_any(text: str, vocab: Iterable[str]) -> bool:
    return any(w in text for w in vocab)


# ----------------------------------------------------------------------
# primitive hints
# ----------------------------------------------------------------------
def has_edit_verb(text: str) -> bool:
    return _contains_any(_lower(text), EDIT_VERBS)


def has_target_hint(text: str) -> bool:
    return _contains_any(_lower(text), TARGET_HINTS)


def has_numbered_locator(text: str) -> bool:
    return bool(_NUMBERED_LOCATOR_RE.search(_lower(text)))


# ----------------------------------------------------------------------
# composite predicates
# ----------------------------------------------------------------------
def is_edit_request(text: str) -> bool:
    return has_edit_verb(text) and (has_target_hint(text) or has_numbered_locator(text))


def is_generation_request(text: str) -> bool:
    t = _lower(text)
    return _contains_any(t, GENERATION_VERBS) and _contains_any(t, DOCUMENT_NOUNS)


def is_explicit_document_command(text: str) -> bool:
    return is_edit_request(text) or is_generation_request(text)


def is_confirmation(text: str) -> bool:
    """Whole-utterance match: "да!" is a confirmation, "да, но сначала …" is not."""
    return bool(_CONFIRMATION_RE.match(_lower(text)))


def is_attachment_read_request(text: str) -> bool:
    t = _lower(text)
    return _contains_any(t, READ_VERBS) and _contains_any(t, ATTACHMENT_NOUNS)


# ----------------------------------------------------------------------
# assistant-side predicates
# ----------------------------------------------------------------------
def asked_for_clarification(assistant_text: str) -> bool:
    return _contains_any(_lower(assistant_text), CLARIFICATION_PHRASES)


def proposes_changes(assistant_text: str) -> bool:
    t = _lower(assistant_text)
    return _contains_any(t, CHANGE_PROPOSAL_PHRASES) or is_edit_request(t)


__all__ = [
    "has_edit_verb", "has_target_hint", "has_numbered_locator",
    "is_edit_request", "is_generation_request", "is_explicit_document_command",
    "is_confirmation", "is_attachment_read_request",
    "asked_for_clarification", "proposes_changes",
]
