"""
Intent router
-------------
Chooses one route per turn, `chat` or `document`, in strict order:

0. upload-only turn                                   → chat
1. document exists + "read the attachment" (no edit)  → chat
2. document exists + edit request, or a bare "да"
   right after the assistant proposed changes         → document
3. fallback classifier (heuristic or model)           → generate/edit → document,
                                                        anything else → chat

Rules 0-2 are deterministic and pin behaviour to the conversation context
so a short "да" cannot flip-flop between routes. A classifier that raises or
answers with an unknown label yields `chat`: a document is never mutated on
classifier failure.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from procscribe import keywords as kw
from procscribe import settings
from procscribe.llm import call_llm
from procscribe.prompts import PromptCache
from procscribe.schema import Message, RoutingDecision
from procscribe.text import normalize

log = logging.getLogger(__name__)

Classifier = Callable[[str, str], str]

INTENT_LABELS    = ("generate", "edit", "question", "chat")
_DOCUMENT_LABELS = {"generate", "edit"}

STAGE_NO_DOCUMENT            = "no_document"
STAGE_DOCUMENT_EXISTS        = "document_exists"
STAGE_AWAITING_CLARIFICATION = "awaiting_clarification"
STAGE_AWAITING_CONFIRMATION  = "awaiting_confirmation"


# ----------------------------------------------------------------------
# Fallback classifiers
# ----------------------------------------------------------------------
def heuristic_intent(stage: str, text: str) -> str:
    """Independent keyword classifier; the default fallback."""
    if kw.is_edit_request(text) and stage != STAGE_NO_DOCUMENT:
        return "edit"
    if kw.is_explicit_document_command(text):
        return "generate"
    if stage == STAGE_AWAITING_CLARIFICATION and text.strip():
        return "generate"
    if stage == STAGE_AWAITING_CONFIRMATION and kw.is_confirmation(text):
        return "generate"
    return "chat"


class ModelIntentClassifier:
    """Model-backed classifier; returns the raw (cleaned) label."""

    def __init__(self, prompts: PromptCache | None = None, model: str | None = None):
        self.prompts = prompts or PromptCache()
        self.model   = model or settings.CLASSIFIER_MODEL

    def __call__(self, stage: str, text: str) -> str:
        raw = call_llm(
            "intent_classifier",
            {"STAGE": stage, "TEXT": text},
            prompts=self.prompts,
            model=self.model,
            max_tokens=8,
            temperature=0,
        )
        return clean_label(raw)


def clean_label(raw: str | None) -> str:
    words = (raw or "").strip().lower().split()
    return words[0].strip(".,!?:;\"'`*") if words else ""


# ----------------------------------------------------------------------
# Conversation helpers
# ----------------------------------------------------------------------
def _last_index(messages: Sequence[Message], role: str, before: int | None = None) -> int:
    end = len(messages) if before is None else before
    for i in range(end - 1, -1, -1):
        if messages[i].role == role:
            return i
    return -1


def latest_exchange(messages: Sequence[Message]) -> tuple[Optional[Message], str]:
    """(last user message, normalized text of the assistant turn right before it)."""
    u = _last_index(messages, "user")
    if u == -1:
        return None, ""
    a = _last_index(messages, "assistant", before=u)
    return messages[u], normalize(messages[a].text) if a != -1 else ""


def conversation_stage(has_document: bool, prev_assistant: str) -> str:
    if kw.asked_for_clarification(prev_assistant):
        return STAGE_AWAITING_CLARIFICATION
    if kw.proposes_changes(prev_assistant):
        return STAGE_AWAITING_CONFIRMATION
    return STAGE_DOCUMENT_EXISTS if has_document else STAGE_NO_DOCUMENT


# ----------------------------------------------------------------------
# Router
# ----------------------------------------------------------------------
class IntentRouter:
    def __init__(self, classifier: Classifier | None = None):
        self.classifier = classifier or heuristic_intent

    def decide(self, messages: Sequence[Message], *, has_document: bool) -> RoutingDecision:
        decision = self._decide(messages, has_document)
        log.info("Route → %s (%s)", decision.route, decision.reason)
        return decision

    def _decide(self, messages: Sequence[Message], has_document: bool) -> RoutingDecision:
        last_user, prev_assistant = latest_exchange(messages)
        if last_user is None:
            return RoutingDecision(route="chat", reason="no user message")

        text = normalize(last_user.text)

        if last_user.has_attachment and not text:
            return RoutingDecision(route="chat", reason="upload-only turn")

        if has_document and kw.is_attachment_read_request(text) and not kw.is_edit_request(text):
            return RoutingDecision(route="chat", reason="attachment read request")

        if has_document:
            if kw.is_edit_request(text):
                return RoutingDecision(route="document", reason="explicit edit request")
            if kw.is_confirmation(text) and kw.proposes_changes(prev_assistant):
                return RoutingDecision(route="document", reason="confirmation of proposed changes")

        stage = conversation_stage(has_document, prev_assistant)
        try:
            label = clean_label(self.classifier(stage, text))
        except Exception:
            log.warning("Intent classifier failed; defaulting to chat", exc_info=True)
            return RoutingDecision(route="chat", reason="classifier failure")

        if label not in INTENT_LABELS:
            return RoutingDecision(route="chat", reason=f"unrecognized label '{label}'")
        if label in _DOCUMENT_LABELS:
            return RoutingDecision(route="document", reason=f"classifier: {label} ({stage})")
        return RoutingDecision(route="chat", reason=f"classifier: {label} ({stage})")


def route_turn(
    messages: Sequence[Message],
    *,
    has_document: bool,
    classifier: Classifier | None = None,
) -> RoutingDecision:
    return IntentRouter(classifier).decide(messages, has_document=has_document)
