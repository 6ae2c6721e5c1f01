"""
Pytest fixtures
───────────────
• Removes OPENAI_API_KEY so any call that slips past a fake fails fast
  (settings.api_key() raises) instead of reaching the network.
• `make_pipeline(**overrides)` builds a TurnPipeline wired to in-memory
  fakes; pass a collaborator to replace the default fake.
"""
import pytest

from procscribe.graph import TurnPipeline
from procscribe.intent import heuristic_intent
from procscribe.schema import Message, StatePatch

PROTOCOL_DRAFT = "```markdown\n# Протокол встречи\n\n## Повестка\nбюджет\n```"
APPEND_PATCH   = '{"patches": [{"heading": "Повестка", "mode": "append", "content": "пункт 3"}]}'


@pytest.fixture(autouse=True)
def no_network(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    yield


def boom(*_, **__):
    raise RuntimeError("external call failed")


def user(text: str, **kw) -> Message:
    return Message(role="user", text=text, **kw)


def assistant(text: str) -> Message:
    return Message(role="assistant", text=text)


@pytest.fixture
def make_pipeline():
    def _make(**overrides):
        collaborators = {
            "classifier": heuristic_intent,
            "extractor":  lambda prev, messages, hint: StatePatch(),
            "chat":       lambda messages, state: "Ответ",
            "drafter":    lambda messages, state: PROTOCOL_DRAFT,
            "editor":     lambda document, messages: APPEND_PATCH,
        }
        collaborators.update(overrides)
        return TurnPipeline(**collaborators)
    return _make
