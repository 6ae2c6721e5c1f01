"""
procscribe.prompts
------------------
Prompt templates and the cache that serves them.

The cache is an explicit object handed to whoever needs prompts, never a
module global, so a prompt edited elsewhere is picked up with
`cache.invalidate(name)` and tests can pass their own loader.

Placeholders use *single braces* (e.g. {TEXT}); literal braces are doubled.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Dict

log = logging.getLogger(__name__)

DEFAULT_PROMPTS: Dict[str, str] = {
    "intent_classifier": (
        "Ты классификатор намерений ассистента, который ведёт протоколы и регламенты.\n"
        "Стадия диалога: {STAGE}\n"
        "Последнее сообщение пользователя:\n{TEXT}\n\n"
        "Ответь ровно одним словом из списка: generate, edit, question, chat.\n"
        "generate – пользователь просит сформировать документ; edit – изменить "
        "существующий документ; question – вопрос по существу; chat – всё остальное."
    ),
    "state_extractor": (
        "Ты отдельный агент, который обновляет состояние схемы бизнес-процесса на основе диалога.\n"
        "Извлеки только факты о процессе (организация, владелец, цель, продукт, потребители, "
        "границы, шаги) и верни ТОЛЬКО JSON-патч, который ДОПОЛНЯЕТ состояние. "
        "Не стирай поля без причины. Если новых фактов нет, верни {{}}.\n\n"
        "ПРЕДЫДУЩЕЕ СОСТОЯНИЕ:\n{STATE}\n\n"
        "ПОДСКАЗКА (эвристика из последнего сообщения):\n{HINT}\n\n"
        "ПОСЛЕДНИЕ СООБЩЕНИЯ:\n{MESSAGES}\n\n"
        "Верни только валидный JSON без markdown."
    ),
    "document_generator": (
        "Сформируй документ на основе всей истории диалога.\n"
        "Первая строка — заголовок с символом # (например: \"# Протокол встречи\").\n"
        "Используй ТОЛЬКО факты из переписки. Выведи только финальный документ: "
        "без вопросов, приветствий и пояснений, без кодовых блоков.\n\n"
        "{INSTRUCTIONS}\n\n"
        "История диалога:\n{CONVERSATION}"
    ),
    "document_editor": (
        "Ниже приведён текущий документ и история диалога. Внеси правки, о которых "
        "договорились в диалоге.\n"
        "Верни ТОЛЬКО JSON вида {{\"patches\": [{{\"heading\": \"...\", \"mode\": "
        "\"replace|append|delete|rename\", \"content\": \"...\", \"newHeading\": \"...\"}}]}}.\n"
        "heading – текст заголовка раздела; content – новый текст раздела без заголовка.\n\n"
        "ТЕКУЩИЙ ДОКУМЕНТ:\n\"\"\"\n{DOCUMENT}\n\"\"\"\n\n"
        "История диалога:\n{CONVERSATION}"
    ),
    "chat_agent": (
        "Ты ассистент, который помогает описать бизнес-процесс и подготовить протокол "
        "встречи. Отвечай кратко и по делу. Если для документа не хватает данных, "
        "задай уточняющий вопрос.\n\n"
        "История диалога:\n{CONVERSATION}"
    ),
}


def load_builtin_prompt(name: str, version: int | None = None) -> str:
    """Default loader. Built-ins are unversioned; *version* is accepted for parity."""
    try:
        return DEFAULT_PROMPTS[name]
    except KeyError:
        raise ValueError(f"Prompt '{name}' not found.") from None


class PromptCache:
    """Read-through cache with explicit invalidation."""

    def __init__(self, loader: Callable[[str], str] | None = None):
        self._loader = loader or load_builtin_prompt
        self._cache: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> str:
        with self._lock:
            if name not in self._cache:
                self._cache[name] = self._loader(name)
                log.debug("Loaded prompt %s", name)
            return self._cache[name]

    def invalidate(self, name: str | None = None) -> None:
        with self._lock:
            if name is None:
                self._cache.clear()
            else:
                self._cache.pop(name, None)
