"""
procscribe.state
================
Defines the Pydantic model that carries data between graph nodes.
Add new top-level fields here whenever nodes need to share extra data.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from procscribe.schema import Message, ProcessState, RoutingDecision, StatePatch


class TurnState(BaseModel):
    """
    Shared state object merged and passed along the LangGraph.

    • `messages`  – normalized conversation window
    • `state`     – ProcessState after this turn's Track step
    • `document`  – current (or freshly drafted) Markdown document
    • `decision`  – route chosen by the Route node
    • `patches`   – heuristic and model patches applied by Track
    • `diagram`   – draw.io source rendered from `state`
    • `ui_event`  – event dict emitted by Gather, Chat, Draft or on error
    """
    messages: List[Message] = Field(default_factory=list)
    state: Optional[ProcessState] = None
    document: Optional[str] = None
    decision: Optional[RoutingDecision] = None
    patches: List[StatePatch] = Field(default_factory=list)
    diagram: Optional[str] = None
    ui_event: Optional[Dict[str, Any]] = None

    # allow nodes/helpers to stash ad-hoc keys without failing validation
    model_config = ConfigDict(extra="allow")
