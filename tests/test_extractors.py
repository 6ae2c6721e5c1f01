import pytest

import procscribe.extractors.model as model_mod
from procscribe.extractors import REGISTRY, extract, extract_protocol_facts, parse_model_patch
from procscribe.extractors.model import ModelStateExtractor
from procscribe.extractors.steps import strip_step_blocks
from procscribe.schema import StatePatch
from conftest import boom, user

LABELLED = (
    "**Организация:** ООО Ромашка\n"
    "Цель — сократить сроки\n"
    "- Владелец процесса: Иван Иванов, директор\n"
    "Потребители: отдел продаж; ООО Вектор, Петров Пётр"
)

STEPS = (
    "Шаг 1. Приём заявки\n"
    "Описание: менеджер регистрирует заявку\n"
    "Участники: менеджер, клиент\n"
    "Роль: исполнитель\n"
    "**Шаг 2:** Проверка\n"
    "Продукт: проверенная заявка\n"
    "Цель: быстрее обрабатывать заявки"
)


# ---- heuristics -------------------------------------------------------
def test_labelled_lines():
    patch = extract(LABELLED)
    assert patch.organization.name == "ООО Ромашка"
    assert patch.goal == "сократить сроки"
    assert patch.owner.full_name == "Иван Иванов"
    assert patch.owner.position == "директор"
    assert [(c.kind, c.name or c.full_name) for c in patch.consumers] == [
        ("group", "отдел продаж"),
        ("org", "ООО Вектор"),
        ("person", "Петров Пётр"),
    ]


def test_sentence_patterns():
    patch = extract(
        "Меня зовут Иван Иванов, я директор ООО Ромашка. Мы занимаемся оптовой торговлей. "
        "Мне необходимо описать процесс закупки товаров."
    )
    assert patch.owner.full_name == "Иван Иванов"
    assert patch.owner.position == "директор"
    assert patch.organization.name == "ООО Ромашка"
    assert patch.organization.activity == "оптовой торговлей"
    assert patch.process.description == "процесс закупки товаров"
    assert patch.process.name == "процесс закупки товаров"


def test_sentence_boundaries_and_result():
    patch = extract("Процесс начинается с поступления заявки. Конечный результат — подписанный договор.")
    assert patch.boundaries.start == "поступления заявки"
    assert patch.product == "подписанный договор"


def test_step_blocks_build_graph_and_participants():
    patch = extract(STEPS)
    graph = patch.graph
    assert graph.layout == "vertical"
    assert [(n.id, n.label, n.type) for n in graph.nodes] == [
        ("S1", "Приём заявки", "process"),
        ("S2", "Проверка", "process"),
    ]
    assert graph.nodes[0].details == (
        "Описание: менеджер регистрирует заявку\nУчастники: менеджер, клиент\nРоль: исполнитель"
    )
    assert graph.nodes[1].details == "Продукт: проверенная заявка"
    assert [(e.from_, e.to) for e in graph.edges] == [("S1", "S2")]
    assert [(p.name, p.role) for p in patch.participants] == [
        ("менеджер", "исполнитель"),
        ("клиент", "исполнитель"),
    ]
    # the labelled line after the steps is a process fact, the step product is not
    assert patch.goal == "быстрее обрабатывать заявки"
    assert patch.product is None


def test_strip_step_blocks_keeps_top_level_lines():
    assert strip_step_blocks(STEPS).strip() == "Цель: быстрее обрабатывать заявки"


def test_step_label_on_next_line():
    patch = extract("Шаг 1.\nСогласование договора\nРоль: юрист")
    assert patch.graph.nodes[0].label == "Согласование договора"


def test_no_facts_gives_empty_patch():
    assert extract("").is_empty()
    assert extract("Спасибо, всё понятно").is_empty()


def test_values_are_trimmed_and_empty_values_omitted():
    patch = extract("Цель:   \nПродукт:  готовый отчёт  ")
    assert patch.goal is None
    assert patch.product == "готовый отчёт"


def test_failing_extractor_is_skipped(monkeypatch):
    monkeypatch.setitem(REGISTRY, "boom", boom)
    assert extract("Цель: рост").goal == "рост"


# ---- model output ------------------------------------------------------
def test_parse_model_patch_from_fenced_json():
    patch = parse_model_patch('```json\n{"goal": "Снизить затраты", "owner": {"fullName": "Анна"}}\n```')
    assert patch.goal == "Снизить затраты"
    assert patch.owner.full_name == "Анна"


@pytest.mark.parametrize("raw", [None, "", "нет json", "[1, 2]", '{"goal": '])
def test_parse_model_patch_failures_are_empty(raw):
    assert parse_model_patch(raw).is_empty()


def test_parse_model_patch_skips_leading_citations():
    patch = parse_model_patch('см. [1]: {"goal": "Снизить затраты"}')
    assert patch.goal == "Снизить затраты"


def test_parse_model_patch_drops_only_the_broken_field():
    patch = parse_model_patch('{"goal": "g", "graph": "broken"}')
    assert patch.goal == "g"
    assert patch.graph is None


def test_parse_model_patch_normalizes_consumers():
    patch = parse_model_patch('{"consumers": ["Отдел продаж", {"kind": "alien", "name": "x"}, {"kind": "person"}]}')
    assert [(c.kind, c.name) for c in patch.consumers] == [("group", "Отдел продаж")]


def test_parse_model_patch_coerces_node_types():
    patch = parse_model_patch('{"graph": {"nodes": [{"id": "A", "label": "a", "type": "document"},'
                              ' {"id": "B", "label": "b", "type": "swimlane"}]}}')
    assert [n.type for n in patch.graph.nodes] == ["doc", "process"]


class _Structured:
    def __init__(self, result):
        self.result = result

    def invoke(self, prompt):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def test_model_extractor_structured_path(monkeypatch):
    monkeypatch.setattr(model_mod, "structured_llm", lambda schema, **kw: _Structured(StatePatch(goal="s")))
    monkeypatch.setattr(model_mod, "call_llm", boom)
    assert ModelStateExtractor()(None, [user("Цель — s")]).goal == "s"


def test_model_extractor_falls_back_to_text(monkeypatch):
    monkeypatch.setattr(model_mod, "structured_llm", lambda schema, **kw: _Structured(RuntimeError("no tools")))
    monkeypatch.setattr(model_mod, "call_llm", lambda *a, **kw: 'Вот патч: {"product": "отчёт"}')
    assert ModelStateExtractor()(None, [user("x")]).product == "отчёт"


def test_model_extractor_propagates_transport_errors(monkeypatch):
    monkeypatch.setattr(model_mod, "call_llm", boom)
    with pytest.raises(RuntimeError):
        ModelStateExtractor(structured=False)(None, [user("x")])


# ---- protocol facts -----------------------------------------------------
def test_protocol_facts_from_labelled_lines():
    facts = extract_protocol_facts([
        "Дата: 12.03.2025\nПовестка: бюджет на квартал",
        "С нашей стороны: Иванов, Петров\nСо стороны клиента: Сидоров",
    ])
    assert facts.date == "12.03.2025"
    assert facts.agenda == "бюджет на квартал"
    assert facts.host_participants == ["Иванов", "Петров"]
    assert facts.guest_participants == ["Сидоров"]


def test_protocol_facts_later_text_wins():
    facts = extract_protocol_facts(["Дата: 01.02.2025", "Дата: 05.02.2025"])
    assert facts.date == "05.02.2025"


def test_protocol_facts_free_patterns():
    facts = extract_protocol_facts([
        "Встреча прошла 12 марта 2025 года, обсуждали сроки поставки. "
        "Со стороны заказчика были Сидоров и Орлова"
    ])
    assert facts.date.startswith("12 марта 2025")
    assert facts.agenda.startswith("сроки поставки")
    assert facts.guest_participants == ["Сидоров", "Орлова"]
    assert facts.host_participants == []
