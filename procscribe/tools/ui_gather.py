"""
Protocol gate
-------------
• If meeting facts are missing → return a `clarify` ui_event listing them and
  STOP before drafting
• If facts are complete        → return nothing; Draft runs
"""
from typing import Any, Dict, List, Sequence

from procscribe.extractors import extract_protocol_facts
from procscribe.schema import Message, ProtocolFacts

REQUIRED_FIELDS = (
    ("date",               "дата встречи"),
    ("agenda",             "повестка"),
    ("host_participants",  "участники с нашей стороны"),
    ("guest_participants", "участники со стороны клиента"),
)

CLARIFY_HEADER = "Перед формированием протокола нужно уточнить:"
CLARIFY_FOOTER = "Ответьте, пожалуйста, одним сообщением, и я сформирую протокол."


def missing_protocol_fields(facts: ProtocolFacts) -> List[str]:
    """Human-readable names of the missing facts, always in the same order."""
    return [title for field, title in REQUIRED_FIELDS if not getattr(facts, field)]


def clarification_event(missing: Sequence[str]) -> Dict[str, Any]:
    lines = [CLARIFY_HEADER, *[f"- {item}" for item in missing], "", CLARIFY_FOOTER]
    return {"ui_event": "clarify", "content": "\n".join(lines), "missing": list(missing)}


def gather_protocol_facts(messages: Sequence[Message]) -> Dict[str, Any]:
    """{} when everything is known, else {"ui_event": …} for the caller to deliver."""
    facts   = extract_protocol_facts(m.text for m in messages if m.role == "user")
    missing = missing_protocol_fields(facts)
    if missing:
        return {"ui_event": clarification_event(missing)}
    return {}
