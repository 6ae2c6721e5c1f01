"""
procscribe.schema
=================
Pydantic models that define the **only valid shape** for:

• Message / RoutingDecision     – one conversational turn and its route
• ProcessState / StatePatch     – the incrementally built process fact base
• DocumentPatch                 – one heading-scoped edit of a Markdown doc
• ProtocolFacts                 – meeting facts checked before a protocol
• TurnRequest / TurnResult      – the per-turn envelope

JSON at the boundary uses camelCase (`fullName`, `updatedAt`, …); Python
code uses snake_case. Both spellings validate.
"""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Role         = Literal["user", "assistant", "system"]
Route        = Literal["chat", "document"]
ConsumerKind = Literal["person", "org", "group"]
NodeType     = Literal["start", "process", "decision", "end", "actor", "doc", "note"]
PatchMode    = Literal["replace", "append", "delete", "rename"]

_NODE_TYPES   = {"start", "process", "decision", "end", "actor", "doc", "note"}
_NODE_ALIASES = {"document": "doc"}
_KINDS        = {"person", "org", "group"}


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def _clean(value: Any) -> Optional[str]:
    """Trim; empty → None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _pick(item: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if item.get(k) is not None:
            return item[k]
    return None


# ────────────────────────────── 1. messages ─────────────────────────────
class Message(_Model):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    role: Role
    text: str = ""
    has_attachment: bool = False


class RoutingDecision(_Model):
    route: Route
    reason: str = ""            # diagnostic only


# ────────────────────────────── 2. process state ────────────────────────
class Organization(_Model):
    name:     Optional[str] = None
    activity: Optional[str] = None


class ProcessInfo(_Model):
    name:        Optional[str] = None
    description: Optional[str] = None


class Owner(_Model):
    full_name: Optional[str] = None
    position:  Optional[str] = None


class Boundaries(_Model):
    start: Optional[str] = None
    end:   Optional[str] = None


class Consumer(_Model):
    kind:      ConsumerKind = "group"
    name:      Optional[str] = None
    full_name: Optional[str] = None
    position:  Optional[str] = None

    def dedup_key(self) -> tuple:
        return tuple((v or "").lower() for v in (self.kind, self.full_name, self.name, self.position))


class Participant(_Model):
    role:      Optional[str] = None
    name:      Optional[str] = None
    full_name: Optional[str] = None

    def dedup_key(self) -> tuple:
        return tuple((v or "").lower() for v in (self.role, self.full_name, self.name))


class Node(_Model):
    id:      Optional[str] = None
    label:   str
    type:    NodeType = "process"
    details: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, v):
        t = str(v or "process").strip().lower()
        t = _NODE_ALIASES.get(t, t)
        return t if t in _NODE_TYPES else "process"


class Edge(_Model):
    from_: str = Field(alias="from")
    to:    str
    label: Optional[str] = None


class Graph(_Model):
    layout: Optional[str] = None
    nodes:  List[Node] = Field(default_factory=list)
    edges:  List[Edge] = Field(default_factory=list)


def normalize_consumer(item: Any) -> Optional[Consumer]:
    """Coerce one raw consumer entry; None when it carries no usable name."""
    if item is None:
        return None
    if isinstance(item, Consumer):
        item = item.model_dump()
    if isinstance(item, str):
        name = _clean(item)
        return Consumer(kind="group", name=name) if name else None
    if not isinstance(item, dict):
        return None

    kind = _clean(item.get("kind")) or "group"
    if kind not in _KINDS:
        return None
    full_name = _clean(_pick(item, "fullName", "full_name"))
    name      = _clean(item.get("name"))
    if not full_name and not name:
        return None
    return Consumer(kind=kind, name=name, full_name=full_name,
                    position=_clean(item.get("position")))


def normalize_participant(item: Any) -> Optional[Participant]:
    if item is None:
        return None
    if isinstance(item, Participant):
        item = item.model_dump()
    if isinstance(item, str):
        name = _clean(item)
        return Participant(name=name) if name else None
    if not isinstance(item, dict):
        return None

    full_name = _clean(_pick(item, "fullName", "full_name"))
    name      = _clean(item.get("name"))
    if not full_name and not name:
        return None
    return Participant(role=_clean(item.get("role")), name=name, full_name=full_name)


class StatePatch(_Model):
    """
    Partial ProcessState. Absent and null mean the same thing here:
    "no new fact", never "erase".
    """
    organization:        Optional[Organization] = None
    process:             Optional[ProcessInfo] = None
    owner:               Optional[Owner] = None
    goal:                Optional[str] = None
    product:             Optional[str] = None
    product_description: Optional[str] = None
    boundaries:          Optional[Boundaries] = None
    consumers:           Optional[List[Consumer]] = None
    participants:        Optional[List[Participant]] = None
    graph:               Optional[Graph] = None
    raw_diagram_source:  Optional[str] = None
    updated_at:          Optional[str] = None

    @field_validator("consumers", mode="before")
    @classmethod
    def _coerce_consumers(cls, v):
        if v is None:
            return None
        if not isinstance(v, list):
            v = [v]
        return [c for c in (normalize_consumer(x) for x in v) if c is not None]

    @field_validator("participants", mode="before")
    @classmethod
    def _coerce_participants(cls, v):
        if v is None:
            return None
        if not isinstance(v, list):
            v = [v]
        return [p for p in (normalize_participant(x) for x in v) if p is not None]

    def is_empty(self) -> bool:
        return not self.to_json_dict()


class ProcessState(StatePatch):
    """Full conversation-owned fact base; passed in whole, returned in whole."""
    consumers:    Optional[List[Consumer]] = Field(default_factory=list)
    participants: Optional[List[Participant]] = Field(default_factory=list)

    @field_validator("consumers", "participants", mode="after")
    @classmethod
    def _never_none(cls, v):
        return v or []


# ────────────────────────────── 3. documents ────────────────────────────
class DocumentPatch(_Model):
    heading:     str
    mode:        PatchMode = "replace"
    content:     str = ""
    new_heading: Optional[str] = None

    @field_validator("mode", mode="before")
    @classmethod
    def _default_mode(cls, v):
        m = str(v or "").strip().lower()
        return m if m in ("replace", "append", "delete", "rename") else "replace"

    @field_validator("content", mode="before")
    @classmethod
    def _content_str(cls, v):
        return "" if v is None else str(v)


class ProtocolFacts(_Model):
    date:               Optional[str] = None
    agenda:             Optional[str] = None
    host_participants:  List[str] = Field(default_factory=list)
    guest_participants: List[str] = Field(default_factory=list)


# ────────────────────────────── 4. turn envelope ────────────────────────
class TurnRequest(_Model):
    messages: List[Message] = Field(default_factory=list)
    state:    Optional[ProcessState] = None
    document: Optional[str] = None


class TurnResult(_Model):
    route:    Route = "chat"
    reason:   str = ""
    state:    Optional[ProcessState] = None
    document: Optional[str] = None
    diagram:  Optional[str] = None
    event:    Dict[str, Any] = Field(default_factory=dict)


# convenience export
__all__ = [
    "Message", "RoutingDecision",
    "Organization", "ProcessInfo", "Owner", "Boundaries",
    "Consumer", "Participant", "Node", "Edge", "Graph",
    "StatePatch", "ProcessState", "DocumentPatch", "ProtocolFacts",
    "TurnRequest", "TurnResult",
    "normalize_consumer", "normalize_participant",
]
