"""
procscribe.graph
================
LangGraph orchestration of one conversational turn.

    Normalize → Route → Track ─┬─ chat     → Chat   → Deliver
                               └─ document → Gather ─┬─ missing → Deliver
                                                     └─ ok      → Draft → Deliver

Every node returns a partial update of `TurnState`. External calls
(classifier, extractor, chat, drafter, editor) are injected into
`TurnPipeline`; their failures are caught here and turned into the
generic apology event, so `run_turn` never raises.

Events follow one envelope: {"ui_event": "text"|"clarify"|"document"|"error",
"content": ...}.
"""
from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from langgraph.graph import END, StateGraph

from procscribe import settings
from procscribe.extractors import ModelStateExtractor, extract
from procscribe.intent import Classifier, IntentRouter, ModelIntentClassifier
from procscribe.llm import call_llm
from procscribe.merge import merge_patches
from procscribe.prompts import PromptCache
from procscribe.schema import (
    Message,
    ProcessState,
    RoutingDecision,
    StatePatch,
    TurnRequest,
    TurnResult,
)
from procscribe.sections import apply_patches, parse_document_patches
from procscribe.state import TurnState
from procscribe.text import format_conversation, normalize, normalize_newlines, strip_model_noise, to_message
from procscribe.tools.drawio_render import render_diagram
from procscribe.tools.ui_gather import gather_protocol_facts

log = logging.getLogger(__name__)

APOLOGY = "Произошла ошибка при формировании документа. Попробуйте снова."

ChatAgent   = Callable[[Sequence[Message], ProcessState], str]
Drafter     = Callable[[Sequence[Message], ProcessState], str]
Editor      = Callable[[str, Sequence[Message]], str]
Extractor   = Callable[[Optional[ProcessState], Sequence[Message], StatePatch], StatePatch]


def error_event(content: str = APOLOGY) -> Dict[str, Any]:
    return {"ui_event": "error", "content": content}


# ─────────────────────────── 1 · default collaborators ─────────────────
def _state_json(state: ProcessState | None) -> str:
    return json.dumps((state or ProcessState()).to_json_dict(), ensure_ascii=False, indent=2)


class DefaultAgents:
    """Model-backed chat / draft / edit calls sharing one prompt cache."""

    def __init__(self, prompts: PromptCache):
        self.prompts = prompts

    def chat(self, messages: Sequence[Message], state: ProcessState) -> str:
        conversation = format_conversation(messages, keep_attachments=True)
        return call_llm("chat_agent", {"CONVERSATION": conversation}, prompts=self.prompts)

    def draft(self, messages: Sequence[Message], state: ProcessState) -> str:
        instructions = "Известные факты о процессе (JSON):\n" + _state_json(state)
        return call_llm(
            "document_generator",
            {"INSTRUCTIONS": instructions, "CONVERSATION": format_conversation(messages)},
            prompts=self.prompts,
            max_tokens=3000,
        )

    def edit(self, document: str, messages: Sequence[Message]) -> str:
        return call_llm(
            "document_editor",
            {"DOCUMENT": document, "CONVERSATION": format_conversation(messages)},
            prompts=self.prompts,
            max_tokens=2048,
        )


# ─────────────────────────── 2 · pipeline ───────────────────────────────
class TurnPipeline:
    def __init__(
        self,
        *,
        classifier: Classifier | None = None,
        extractor: Extractor | None = None,
        chat: ChatAgent | None = None,
        drafter: Drafter | None = None,
        editor: Editor | None = None,
        prompts: PromptCache | None = None,
    ):
        self.prompts   = prompts or PromptCache()
        agents         = DefaultAgents(self.prompts)
        self.router    = IntentRouter(classifier or ModelIntentClassifier(self.prompts))
        self.extractor = extractor or ModelStateExtractor(self.prompts)
        self.chat      = chat or agents.chat
        self.drafter   = drafter or agents.draft
        self.editor    = editor or agents.edit
        self.graph     = self._build()

    # ── nodes ────────────────────────────────────────────────────────────
    def normalize_node(self, s: TurnState) -> Dict[str, Any]:
        window = s.messages[-settings.MESSAGE_WINDOW:]
        return {"messages": [m.model_copy(update={"text": normalize_newlines(m.text)}) for m in window]}

    def route_node(self, s: TurnState) -> Dict[str, Any]:
        has_document = bool((s.document or "").strip())
        return {"decision": self.router.decide(s.messages, has_document=has_document)}

    def track_node(self, s: TurnState) -> Dict[str, Any]:
        last_user = next((m for m in reversed(s.messages) if m.role == "user"), None)
        text = normalize(last_user.text) if last_user else ""

        heuristic = extract(text)
        model = StatePatch()
        if text:
            try:
                model = self.extractor(s.state, s.messages, heuristic)
            except Exception:
                log.warning("Model extraction failed; heuristic facts only", exc_info=True)

        state = merge_patches(s.state, heuristic, model)
        return {"state": state, "patches": [heuristic, model], "diagram": render_diagram(state)}

    def gather_node(self, s: TurnState) -> Dict[str, Any]:
        if (s.document or "").strip():
            return {"ui_event": None}
        return gather_protocol_facts(s.messages) or {"ui_event": None}

    def draft_node(self, s: TurnState) -> Dict[str, Any]:
        try:
            if (s.document or "").strip():
                document = self._edit(s.document, s.messages)
            else:
                document = strip_model_noise(self.drafter(s.messages, s.state or ProcessState()))
                if not document:
                    log.warning("Drafter returned an empty document")
                    return {"ui_event": error_event()}
        except Exception:
            log.exception("Document generation failed")
            return {"ui_event": error_event()}
        return {"document": document, "ui_event": {"ui_event": "document", "content": document}}

    def _edit(self, document: str, messages: Sequence[Message]) -> str:
        raw = self.editor(document, messages)
        cleaned = strip_model_noise(raw)
        if cleaned.startswith("# "):
            log.info("Editor returned a whole document; replacing")
            return cleaned
        patches = parse_document_patches(raw)
        if not patches:
            log.warning("Editor output had no usable patches; document unchanged")
            return document
        log.info("Applying %d section patch(es)", len(patches))
        return apply_patches(document, patches)

    def chat_node(self, s: TurnState) -> Dict[str, Any]:
        try:
            reply = strip_model_noise(self.chat(s.messages, s.state or ProcessState()))
        except Exception:
            log.exception("Chat agent failed")
            return {"ui_event": error_event()}
        return {"ui_event": {"ui_event": "text", "content": reply}}

    def deliver_node(self, s: TurnState) -> Dict[str, Any]:
        if s.ui_event is None:
            return {"ui_event": error_event("No ui_event produced")}
        return {"ui_event": s.ui_event}

    # ── graph builder ────────────────────────────────────────────────────
    def _build(self):
        sg = StateGraph(TurnState)

        sg.add_node("Normalize", self.normalize_node)
        sg.add_node("Route",     self.route_node)
        sg.add_node("Track",     self.track_node)
        sg.add_node("Gather",    self.gather_node)
        sg.add_node("Draft",     self.draft_node)
        sg.add_node("Chat",      self.chat_node)
        sg.add_node("Deliver",   self.deliver_node)

        sg.set_entry_point("Normalize")
        sg.add_edge("Normalize", "Route")
        sg.add_edge("Route",     "Track")
        sg.add_conditional_edges(
            "Track",
            lambda s: "Gather" if s.decision and s.decision.route == "document" else "Chat",
            {"Gather": "Gather", "Chat": "Chat"},
        )
        sg.add_conditional_edges(
            "Gather",
            lambda s: "Draft" if s.ui_event is None else "Deliver",
            {"Draft": "Draft", "Deliver": "Deliver"},
        )
        sg.add_edge("Draft",   "Deliver")
        sg.add_edge("Chat",    "Deliver")
        sg.add_edge("Deliver", END)
        return sg.compile()

    # ── entry points ─────────────────────────────────────────────────────
    def invoke(self, request: TurnRequest) -> TurnResult:
        init = TurnState(messages=request.messages, state=request.state, document=request.document)
        final = self.graph.invoke(init)      # AddableValuesDict

        decision: RoutingDecision = final.get("decision") or RoutingDecision(route="chat")
        event = final.get("ui_event") or error_event("No ui_event produced")
        if event.get("ui_event") == "clarify":
            # clarification turns leave the caller's state and diagram as they were
            return TurnResult(route=decision.route, reason=decision.reason,
                              state=request.state, document=request.document, event=event)
        return TurnResult(
            route=decision.route,
            reason=decision.reason,
            state=final.get("state") or request.state,
            document=final.get("document"),
            diagram=final.get("diagram"),
            event=event,
        )

    def update_diagram(self, prev_state: ProcessState | None,
                       messages: Sequence[Message]) -> Tuple[ProcessState, str]:
        s = TurnState(messages=list(messages), state=prev_state)
        s = s.model_copy(update=self.normalize_node(s))
        out = self.track_node(s)
        return out["state"], out["diagram"]


# ─────────────────────────── 3 · default pipeline ───────────────────────
_graph_lock = threading.RLock()
_PIPELINE: TurnPipeline | None = None


def get_pipeline() -> TurnPipeline:
    global _PIPELINE
    with _graph_lock:
        if _PIPELINE is None:
            _PIPELINE = TurnPipeline()
        return _PIPELINE


def reload_graph() -> None:
    """Drop the compiled default pipeline (and its prompt cache); rebuilt on next use."""
    global _PIPELINE
    with _graph_lock:
        if _PIPELINE is not None:
            _PIPELINE.prompts.invalidate()
        _PIPELINE = None


def _coerce_request(request: TurnRequest | Mapping[str, Any]) -> TurnRequest:
    if isinstance(request, TurnRequest):
        return request
    return TurnRequest(
        messages=[to_message(m) for m in request.get("messages") or []],
        state=request.get("state"),
        document=request.get("document"),
    )


# ─────────────────────────── 4 · public helpers ─────────────────────────
def run_turn(request: TurnRequest | Mapping[str, Any], *,
             pipeline: TurnPipeline | None = None) -> TurnResult:
    """
    One conversational turn. Always returns a TurnResult; on an unexpected
    failure the state and document come back unchanged with an error event.
    """
    req: TurnRequest | None = None
    try:
        req = _coerce_request(request)
        return (pipeline or get_pipeline()).invoke(req)
    except Exception:
        log.exception("Turn failed")
        return TurnResult(
            route="chat",
            reason="internal error",
            state=req.state if req else None,
            document=req.document if req else None,
            event=error_event(),
        )


def update_diagram(prev_state: ProcessState | None, messages: Sequence[Any], *,
                   pipeline: TurnPipeline | None = None) -> Tuple[ProcessState, str]:
    """Normalize + Track only: refresh facts and diagram without routing or drafting."""
    msgs = [to_message(m) for m in messages]
    return (pipeline or get_pipeline()).update_diagram(prev_state, msgs)
