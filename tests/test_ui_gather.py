from procscribe.schema import ProtocolFacts
from procscribe.tools.ui_gather import (
    clarification_event,
    gather_protocol_facts,
    missing_protocol_fields,
)
from conftest import assistant, user


def test_missing_fields_fixed_order():
    assert missing_protocol_fields(ProtocolFacts()) == [
        "дата встречи",
        "повестка",
        "участники с нашей стороны",
        "участники со стороны клиента",
    ]
    facts = ProtocolFacts(date="12.03.2025", guest_participants=["Сидоров"])
    assert missing_protocol_fields(facts) == ["повестка", "участники с нашей стороны"]


def test_clarification_event_lists_exactly_the_missing_items():
    event = clarification_event(["повестка"])
    assert event["ui_event"] == "clarify"
    assert event["missing"] == ["повестка"]
    assert event["content"].startswith("Перед формированием протокола нужно уточнить:")
    assert "- повестка" in event["content"]
    assert "- дата встречи" not in event["content"]
    assert "Ответьте, пожалуйста" in event["content"]


def test_gather_reads_user_messages_only():
    messages = [
        user("Дата: 12.03.2025\nПовестка: бюджет"),
        assistant("С нашей стороны: Иванов\nСо стороны клиента: Сидоров"),
    ]
    event = gather_protocol_facts(messages)["ui_event"]
    assert event["missing"] == ["участники с нашей стороны", "участники со стороны клиента"]

    messages.append(user("С нашей стороны: Иванов\nСо стороны клиента: Сидоров"))
    assert gather_protocol_facts(messages) == {}
