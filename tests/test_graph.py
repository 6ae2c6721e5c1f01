import procscribe.graph as graph
from procscribe.graph import APOLOGY, get_pipeline, reload_graph, run_turn, update_diagram
from procscribe.schema import ProcessState, StatePatch, TurnRequest
from conftest import assistant, boom, user

PROTOCOL = "# Протокол встречи\n\n## Повестка\nбюджет\n"
FACTS = ("Сформируй протокол встречи.\nДата: 12.03.2025\nПовестка: бюджет\n"
         "С нашей стороны: Иванов\nСо стороны клиента: Сидоров")


def test_introduction_then_confirmed_edit(make_pipeline):
    pipeline = make_pipeline(classifier=boom)

    first = run_turn(TurnRequest(messages=[user("Меня зовут Иван Иванов, я директор ООО Ромашка")]),
                     pipeline=pipeline)
    assert first.route == "chat"
    assert first.state.owner.full_name == "Иван Иванов"
    assert "Ромашка" in first.state.organization.name
    assert "Ромашка" in first.diagram

    second = run_turn(TurnRequest(
        messages=[
            user("Меня зовут Иван Иванов, я директор ООО Ромашка"),
            assistant("Верно ли, что добавить пункт 3?"),
            user("да"),
        ],
        state=first.state,
        document=PROTOCOL,
    ), pipeline=pipeline)
    assert second.route == "document"
    assert second.state.owner.full_name == "Иван Иванов"
    assert second.event["ui_event"] == "document"
    assert second.document == "# Протокол встречи\n\n## Повестка\nбюджет\n\nпункт 3\n"


def test_chat_turn(make_pipeline):
    result = run_turn(TurnRequest(messages=[user("привет")]), pipeline=make_pipeline())
    assert result.route == "chat"
    assert result.event == {"ui_event": "text", "content": "Ответ"}
    assert result.document is None


def test_missing_protocol_facts_ask_for_clarification(make_pipeline):
    result = run_turn(TurnRequest(messages=[user("Сформируй протокол встречи")]), pipeline=make_pipeline())
    assert result.route == "document"
    assert result.event["ui_event"] == "clarify"
    assert result.event["missing"] == [
        "дата встречи", "повестка", "участники с нашей стороны", "участники со стороны клиента"]
    assert result.document is None


def test_clarification_turn_leaves_state_untouched(make_pipeline):
    prev = ProcessState.model_validate({"goal": "рост"})
    result = run_turn(TurnRequest(
        messages=[user("Сформируй протокол встречи")], state=prev),
        pipeline=make_pipeline())
    assert result.event["ui_event"] == "clarify"
    assert result.state == prev
    assert result.diagram is None


def test_complete_facts_draft_new_document(make_pipeline):
    result = run_turn(TurnRequest(messages=[user(FACTS)]), pipeline=make_pipeline())
    assert result.event["ui_event"] == "document"
    assert result.document == "# Протокол встречи\n\n## Повестка\nбюджет"


def test_editor_returning_whole_document_replaces_it(make_pipeline):
    pipeline = make_pipeline(editor=lambda doc, msgs: "```\n# Новый протокол\nтекст\n```")
    result = run_turn(TurnRequest(messages=[user("Измени пункт 1")], document=PROTOCOL), pipeline=pipeline)
    assert result.document == "# Новый протокол\nтекст"


def test_unparseable_editor_output_leaves_document(make_pipeline):
    pipeline = make_pipeline(editor=lambda doc, msgs: "не понял задачу")
    result = run_turn(TurnRequest(messages=[user("Измени пункт 1")], document=PROTOCOL), pipeline=pipeline)
    assert result.document == PROTOCOL
    assert result.event["ui_event"] == "document"


def test_chat_failure_gives_apology_and_keeps_everything(make_pipeline):
    prev = ProcessState(goal="рост")
    result = run_turn(TurnRequest(messages=[user("привет")], state=prev, document=PROTOCOL),
                      pipeline=make_pipeline(chat=boom))
    assert result.event == {"ui_event": "error", "content": APOLOGY}
    assert result.document == PROTOCOL
    assert result.state.goal == "рост"


def test_drafter_failure_keeps_document_absent(make_pipeline):
    result = run_turn(TurnRequest(messages=[user(FACTS)]), pipeline=make_pipeline(drafter=boom))
    assert result.event["ui_event"] == "error"
    assert result.document is None


def test_extractor_failure_keeps_heuristic_facts(make_pipeline):
    result = run_turn(TurnRequest(messages=[user("Цель: снизить издержки")]),
                      pipeline=make_pipeline(extractor=boom))
    assert result.state.goal == "снизить издержки"


def test_model_patch_applied_after_heuristic(make_pipeline):
    pipeline = make_pipeline(extractor=lambda prev, msgs, hint: StatePatch(goal="от модели"))
    result = run_turn(TurnRequest(messages=[user("Цель: эвристика")]), pipeline=pipeline)
    assert result.state.goal == "от модели"


def test_raw_message_shapes_are_accepted(make_pipeline):
    request = {"messages": [{"role": "user", "content": [{"type": "text", "text": "Цель: рост"}]}]}
    result = run_turn(request, pipeline=make_pipeline())
    assert result.route == "chat"
    assert result.state.goal == "рост"


def test_run_turn_never_raises():
    class Broken:
        def invoke(self, request):
            raise RuntimeError("graph exploded")

    prev = ProcessState(goal="рост")
    result = run_turn(TurnRequest(messages=[user("x")], state=prev, document="# D"), pipeline=Broken())
    assert result.event["ui_event"] == "error"
    assert result.state.goal == "рост"
    assert result.document == "# D"


def test_update_diagram(make_pipeline):
    state, diagram = update_diagram(None, [{"role": "user", "content": "Цель: рост"}],
                                    pipeline=make_pipeline())
    assert state.goal == "рост"
    assert 'value="Цель: рост"' in diagram


def test_reload_graph_rebuilds_default_pipeline(monkeypatch):
    monkeypatch.setattr(graph, "_PIPELINE", None)
    first = get_pipeline()
    assert get_pipeline() is first
    reload_graph()
    assert graph._PIPELINE is None
    assert get_pipeline() is not first
