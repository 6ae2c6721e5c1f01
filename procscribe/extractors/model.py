"""
Model-backed state extraction.

• ModelStateExtractor – asks the model for a StatePatch; structured output
                        first, plain-text JSON as the fallback
• parse_model_patch   – tolerant parser for the plain-text path
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Sequence

from pydantic import ValidationError

from procscribe import settings
from procscribe.llm import call_llm, render_prompt, structured_llm
from procscribe.prompts import PromptCache
from procscribe.schema import Message, ProcessState, StatePatch
from procscribe.text import extract_json_block, format_conversation

log = logging.getLogger(__name__)


def parse_model_patch(raw: str | None) -> StatePatch:
    """
    Fences and <think> blocks are stripped, the first JSON object is parsed and
    validated key by key: one malformed field does not cost the others.
    Anything unusable → empty patch.
    """
    block = extract_json_block(raw, kinds=(dict,))
    if not block:
        return StatePatch()
    try:
        data = json.loads(block)
    except json.JSONDecodeError:
        log.warning("Model patch is not valid JSON: %.200s", block)
        return StatePatch()
    if not isinstance(data, dict):
        return StatePatch()

    good: Dict[str, Any] = {}
    for key, value in data.items():
        try:
            StatePatch.model_validate({key: value})
        except ValidationError:
            log.warning("Dropping invalid model field %s", key)
            continue
        good[key] = value
    return StatePatch.model_validate(good)


class ModelStateExtractor:
    """Callable `(prev_state, messages, hint) -> StatePatch`; raises on transport errors."""

    def __init__(self, prompts: PromptCache | None = None, model: str | None = None,
                 structured: bool = True):
        self.prompts    = prompts or PromptCache()
        self.model      = model
        self.structured = structured

    def _variables(self, prev: ProcessState | None, messages: Sequence[Message],
                   hint: StatePatch) -> Dict[str, str]:
        window = list(messages)[-settings.MESSAGE_WINDOW:]
        return {
            "STATE":    json.dumps((prev or ProcessState()).to_json_dict(), ensure_ascii=False),
            "HINT":     json.dumps(hint.to_json_dict(), ensure_ascii=False),
            "MESSAGES": format_conversation(window, clip=settings.MESSAGE_CLIP),
        }

    def __call__(self, prev: ProcessState | None, messages: Sequence[Message],
                 hint: StatePatch | None = None) -> StatePatch:
        variables = self._variables(prev, messages, hint or StatePatch())

        if self.structured:
            try:
                prompt = render_prompt("state_extractor", variables, prompts=self.prompts)
                result = structured_llm(StatePatch, model=self.model).invoke(prompt)
                if isinstance(result, StatePatch):
                    return result
                if isinstance(result, dict):
                    return StatePatch.model_validate(result)
            except Exception:
                log.warning("Structured extraction failed; retrying as text", exc_info=True)

        raw = call_llm("state_extractor", variables, prompts=self.prompts, model=self.model)
        return parse_model_patch(raw)
