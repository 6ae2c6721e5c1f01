import pytest

from procscribe import keywords as kw


@pytest.mark.parametrize("text", [
    "Измени пункт 3",
    "Добавь в раздел 2 ответственного",
    "Убери из протокола последний абзац",
])
def test_edit_requests(text):
    assert kw.is_edit_request(text)


@pytest.mark.parametrize("text", ["добавь", "пункт 3", "расскажи про документ"])
def test_not_edit_requests(text):
    assert not kw.is_edit_request(text)


def test_generation_request_needs_verb_and_noun():
    assert kw.is_generation_request("Сформируй протокол встречи")
    assert not kw.is_generation_request("что такое протокол?")
    assert not kw.is_generation_request("сформируй что-нибудь")


def test_numbered_locator():
    assert kw.has_numbered_locator("см. пункт 3.2")
    assert kw.has_numbered_locator("во 2 разделе")
    assert not kw.has_numbered_locator("пункт без номера")


@pytest.mark.parametrize("text", ["да", "Да!", "давай", "ок", "да, вноси", "Всё верно."])
def test_confirmations(text):
    assert kw.is_confirmation(text)


@pytest.mark.parametrize("text", ["да, но сначала поправь дату", "дата встречи", ""])
def test_not_confirmations(text):
    assert not kw.is_confirmation(text)


def test_attachment_read_request():
    assert kw.is_attachment_read_request("Прочитай прикрепленный файл")
    assert not kw.is_attachment_read_request("Прочитай протокол")


def test_assistant_side_predicates():
    assert kw.asked_for_clarification("Перед формированием протокола нужно уточнить: дату")
    assert kw.proposes_changes("Если да, я внесу изменения")
    assert kw.proposes_changes("Верно ли, что добавить пункт 3?")
    assert not kw.proposes_changes("Добрый день")
