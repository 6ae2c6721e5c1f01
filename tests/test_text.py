from procscribe.schema import Message
from procscribe.text import (
    extract_document_title,
    extract_json_block,
    extract_message_text,
    format_conversation,
    message_has_attachment,
    normalize,
    strip_hidden,
    strip_model_noise,
    to_message,
)

ATTACHED = "Посмотри\n---\nВложенный файл: a.txt\nсекретный текст\n---"


def test_normalize_is_total():
    assert normalize(None) == ""
    assert normalize("") == ""
    assert normalize("  \r\nпривет\r\n") == "привет"


def test_normalize_strips_attachment_and_hidden_blocks():
    assert normalize(ATTACHED) == "Посмотри"
    assert normalize("текст <AI-HIDDEN>служебное</AI-HIDDEN>") == "текст"
    assert normalize("<ai-hidden>x</ai-hidden>") == ""


def test_strip_hidden_keeps_attachment():
    text = strip_hidden(ATTACHED + "<AI-HIDDEN>x</AI-HIDDEN>")
    assert "секретный текст" in text
    assert "AI-HIDDEN" not in text


def test_extract_message_text_shapes():
    parts = {"content": [{"type": "text", "text": "a"}, {"type": "image"}, {"type": "text", "text": "b"}]}
    assert extract_message_text(parts) == "a b"
    assert extract_message_text({"parts": [{"type": "text", "text": "hi"}]}) == "hi"
    assert extract_message_text({"text": "x"}) == "x"
    assert extract_message_text({"content": {"text": "nested"}}) == "nested"
    assert extract_message_text(Message(role="user", text="m")) == "m"
    assert extract_message_text(42) == ""
    assert extract_message_text(None) == ""


def test_message_has_attachment():
    assert message_has_attachment({"parts": [{"type": "file"}]})
    assert message_has_attachment({"metadata": {"attachments": [{"name": "a.pdf"}]}})
    assert not message_has_attachment({"content": "просто текст"})


def test_to_message_defaults_unknown_role_to_user():
    msg = to_message({"role": "bot", "content": "x", "hasAttachment": True})
    assert msg.role == "user"
    assert msg.text == "x"
    assert msg.has_attachment


def test_strip_model_noise():
    raw = "<think>рассуждаю</think>```json\n{\"a\": 1}\n```"
    assert strip_model_noise(raw) == '{"a": 1}'


def test_extract_json_block_honours_strings():
    raw = 'ответ: {"a": "}{", "b": [1, 2]} хвост'
    assert extract_json_block(raw) == '{"a": "}{", "b": [1, 2]}'
    assert extract_json_block("нет json") is None
    assert extract_json_block('{"open": 1') is None


def test_extract_json_block_skips_unparseable_openers():
    raw = '[сноска]: {"goal": "рост продаж"}'
    assert extract_json_block(raw) == '{"goal": "рост продаж"}'
    assert extract_json_block('см. [1]: {"a": 1}', kinds=(dict,)) == '{"a": 1}'
    assert extract_json_block("[сноска] и [ещё]") is None


def test_extract_document_title():
    assert extract_document_title("\n# Протокол встречи\n## A") == "Протокол встречи"
    assert extract_document_title("текст\n# A") == ""


def test_format_conversation_clips_and_skips_empty():
    messages = [
        Message(role="user", text="а" * 20),
        Message(role="assistant", text="<AI-HIDDEN>x</AI-HIDDEN>"),
        Message(role="assistant", text="ок"),
    ]
    out = format_conversation(messages, clip=5)
    assert out == "Пользователь: ааааа…\n\nАссистент: ок"
