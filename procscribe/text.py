"""
procscribe.text
---------------
Text helpers applied before anything inspects a message:

• normalize              – strip injected attachment / hidden blocks, fix EOLs
• extract_message_text   – one adapter for every message shape we receive
• strip_model_noise      – drop <think> blocks and code fences from model output
• extract_json_block     – first balanced JSON object/array inside free text
• format_conversation    – role-prefixed transcript for prompts
"""
from __future__ import annotations

import json
import re
from typing import Any, Mapping

from procscribe.schema import Message

# server-side file injection: "\n---\nВложенный файл: <name>\n<text>\n---"
_ATTACHMENT_RE = re.compile(r"\n---\nВложенный файл:[\s\S]*?\n---")
_HIDDEN_RE     = re.compile(r"<AI-HIDDEN>[\s\S]*?</AI-HIDDEN>", re.IGNORECASE)
_THINK_RE      = re.compile(r"<think(?:ing)?>[\s\S]*?</think(?:ing)?>", re.IGNORECASE)
_FENCE_RE      = re.compile(r"```[a-zA-Z0-9_-]*[ \t]*\n?")
_TITLE_RE      = re.compile(r"^#\s+(.+?)\s*$")


def normalize_newlines(text: str | None) -> str:
    return (text or "").replace("\r\n", "\n").replace("\r", "\n")


def normalize(raw: str | None) -> str:
    """Total: None/empty → ''. Attachment and hidden blocks never reach keyword tests."""
    if not raw:
        return ""
    text = normalize_newlines(str(raw))
    text = _ATTACHMENT_RE.sub("", text)
    text = _HIDDEN_RE.sub("", text)
    return text.strip()


# ----------------------------------------------------------------------
# Message shape adapter
# ----------------------------------------------------------------------
def _content_to_text(content: Any) -> str:
    if not content:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = []
        for part in content:
            if isinstance(part, str):
                texts.append(part)
            elif isinstance(part, Mapping):
                if part.get("type", "text") != "text":
                    continue
                val = part.get("text", part.get("content"))
                if isinstance(val, str):
                    texts.append(val)
        return " ".join(t for t in texts if t)
    if isinstance(content, Mapping):
        for key in ("text", "content"):
            if isinstance(content.get(key), str):
                return content[key]
        return json.dumps(content, ensure_ascii=False, default=str)
    return str(content)


def extract_message_text(msg: Any) -> str:
    """
    Return the plain text of *msg*, whatever shape it arrives in:
    Message, {"content": str | [parts] | {...}}, {"parts": [...]}, {"text": str}.
    """
    if msg is None:
        return ""
    if isinstance(msg, Message):
        return msg.text
    if isinstance(msg, str):
        return msg
    if not isinstance(msg, Mapping):
        return ""

    parts = msg.get("parts")
    if isinstance(parts, list):
        text = _content_to_text(parts)
        if text:
            return text
    if "content" in msg:
        text = _content_to_text(msg.get("content"))
        if text:
            return text
    if isinstance(msg.get("text"), str):
        return msg["text"]
    return ""


def message_has_attachment(msg: Any) -> bool:
    if isinstance(msg, Message):
        return msg.has_attachment
    if not isinstance(msg, Mapping):
        return False
    if msg.get("hasAttachment") or msg.get("has_attachment"):
        return True
    parts = msg.get("parts")
    if isinstance(parts, list) and any(isinstance(p, Mapping) and p.get("type") == "file" for p in parts):
        return True
    meta = msg.get("metadata")
    if isinstance(meta, Mapping) and meta.get("attachments"):
        return True
    return False


def to_message(raw: Any) -> Message:
    """Boundary conversion; the rest of the package only ever sees Message."""
    if isinstance(raw, Message):
        return raw
    role = raw.get("role") if isinstance(raw, Mapping) else None
    if role not in ("user", "assistant", "system"):
        role = "user"
    return Message(role=role,
                   text=extract_message_text(raw),
                   has_attachment=message_has_attachment(raw))


# ----------------------------------------------------------------------
# Model output cleanup
# ----------------------------------------------------------------------
def strip_model_noise(raw: str | None) -> str:
    text = normalize_newlines(raw)
    text = _THINK_RE.sub("", text)
    text = _FENCE_RE.sub("", text)
    return text.strip()


def extract_json_block(raw: str | None, kinds: tuple = (dict, list)) -> str | None:
    """
    First balanced {...} or [...] in *raw* that parses to one of *kinds*,
    honouring string literals. Other openers ("см. [1]: {...}") are skipped.
    """
    text = strip_model_noise(raw)
    for m in re.finditer(r"[\[{]", text):
        block = _balanced(text, m.start())
        if block is None:
            continue
        try:
            value = json.loads(block)
        except json.JSONDecodeError:
            continue
        if isinstance(value, kinds):
            return block
    return None


def _balanced(text: str, start: int) -> str | None:
    opener = text[start]
    closer = "}" if opener == "{" else "]"

    depth, in_str, escaped = 0, False, False
    for i in range(start, len(text)):
        ch = text[i]
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def extract_document_title(markdown: str | None) -> str:
    for line in normalize_newlines(markdown).split("\n"):
        if not line.strip():
            continue
        m = _TITLE_RE.match(line.strip())
        return m.group(1).strip() if m else ""
    return ""


_ROLE_TITLES = {"user": "Пользователь", "assistant": "Ассистент", "system": "Система"}


def strip_hidden(raw: str | None) -> str:
    """Like normalize, but keeps attachment blocks (the chat agent reads them)."""
    return _HIDDEN_RE.sub("", normalize_newlines(raw)).strip()


def format_conversation(messages, clip: int | None = None, keep_attachments: bool = False) -> str:
    """"Пользователь: …" lines for prompts; each message is normalized and clipped."""
    clean = strip_hidden if keep_attachments else normalize
    lines = []
    for msg in messages:
        text = clean(msg.text)
        if not text:
            continue
        if clip and len(text) > clip:
            text = text[:clip].rstrip() + "…"
        lines.append(f"{_ROLE_TITLES.get(msg.role, msg.role)}: {text}")
    return "\n\n".join(lines)
