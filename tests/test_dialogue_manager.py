"""
Unit tests for the DV-100 Dialogue Manager

Tests the answer-flow state machine with mocked collaborators and
in-memory persistence.
"""

import sys
import os
import json
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from dv100.contracts import ExtractionResult, FlowStep
from dv100.core.dialogue_manager import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_NOT_STARTED,
    WELCOME_TEXT,
    DialogueManager,
)
from dv100.core.schema_paths import SchemaPathResolver
from dv100.persistence import InMemoryStorage, IntakePersistence
from dv100.results import IllegalCommand, TurnResult
from dv100.utils.retry_templates import get_retry_text


# ========================
# Mock Modules
# ========================

class MockQuestionGenerator:
    """Returns 'Q:<step id>' and records calls"""

    def __init__(self):
        self.calls = []

    def generate(self, step, answers, last_user_message):
        self.calls.append((step.id, last_user_message))
        return f"Q:{step.id}"


class MockAnswerExtractor:
    """
    Controlled extraction

    Args:
        answers: Dict mapping step id -> ExtractionResult, or a callable
                 (step, text) -> ExtractionResult. Unlisted steps echo input.
    """

    def __init__(self, answers=None):
        self.answers = answers or {}
        self.calls = []

    def extract(self, step, user_input):
        self.calls.append((step.id, user_input))
        answer = self.answers.get(step.id)
        if callable(answer):
            return answer(step, user_input)
        if answer is not None:
            return answer
        return ExtractionResult(cleaned=user_input, unsure=False)


SCHEMA = {
    "court": {"courtName": "", "caseNumber": ""},
    "protectedPerson": {"petitionerName": "", "petitionerFax": ""},
    "abuse": {"abuse_details_description": ""},
    "caption": {"petitionerName": ""},
}

STEPS = [
    FlowStep(page=1, id="courtName", type="text", context="Court"),
    FlowStep(page=1, id="caseNumber", type="text", context="Case number"),
    FlowStep(page=1, id="petitionerName", type="text", context="Your name", required=True),
    FlowStep(page=1, id="caption.petitionerName", type="text"),
    FlowStep(page=1, id="signatureDate", type="date", auto=True),
    FlowStep(page=4, id="abuse_details_description", type="textarea", context="What happened"),
]

DERIVED_MAP = {"caption.petitionerName": "protectedPerson.petitionerName"}


# ========================
# Test Utilities
# ========================

def create_persistence(initial=None):
    return IntakePersistence(InMemoryStorage(initial), SCHEMA)


def create_manager(extractions=None, persistence=None, retry_prompt=get_retry_text):
    """
    Create DialogueManager with mocked collaborators

    Returns:
        tuple: (manager, question_generator, answer_extractor, persistence)
    """
    persistence = persistence or create_persistence()
    questions = MockQuestionGenerator()
    extractor = MockAnswerExtractor(extractions)

    manager = DialogueManager(
        steps=STEPS,
        derived_map=DERIVED_MAP,
        path_resolver=SchemaPathResolver(SCHEMA),
        question_generator=questions,
        answer_extractor=extractor,
        persistence=persistence,
        retry_prompt=retry_prompt,
    )
    return manager, questions, extractor, persistence


def advance_to(manager, step_id):
    """Answer every step until step_id is current"""
    manager.handle_message("hello")
    while manager.current_step.id != step_id:
        manager.handle_message("some answer")


# ========================
# Tests
# ========================

def test_initialization_seeds_welcome_message():
    """Test fresh session: not started, welcome persisted, no step"""
    manager, _, _, persistence = create_manager()

    assert manager.status == STATUS_NOT_STARTED
    assert [step.id for step in manager.askable_steps] == [
        "courtName", "caseNumber", "petitionerName", "abuse_details_description"
    ]
    assert len(manager.messages) == 1
    assert manager.messages[0].id == "jura-intro"
    assert manager.messages[0].text == WELCOME_TEXT

    saved = persistence.load_state()
    assert saved.step is None
    assert saved.messages[0]["id"] == "jura-intro"

    print("✓ Initialization test passed")


def test_first_message_starts_flow_without_binding():
    """Test the first free-text message only asks the first question"""
    manager, questions, extractor, persistence = create_manager()

    result = manager.handle_message("I'm scared and don't know where to start")

    assert isinstance(result, TurnResult)
    assert result.system_output == "Q:courtName"
    assert manager.status == STATUS_IN_PROGRESS
    assert manager.current_index == 0
    assert extractor.calls == []
    assert questions.calls == [("courtName", "I'm scared and don't know where to start")]
    assert persistence.load_state().step == "courtName"

    print("✓ Flow start test passed")


def test_answer_binds_to_schema_path_and_derives():
    """Test 'My name is Maria Lopez' fills petitionerName and the caption"""
    manager, _, _, persistence = create_manager({
        "petitionerName": ExtractionResult(cleaned="Maria Lopez", unsure=False)
    })
    advance_to(manager, "petitionerName")
    index_before = manager.current_index

    result = manager.handle_message("My name is Maria Lopez")

    assert manager.form_data["protectedPerson"]["petitionerName"] == "Maria Lopez"
    assert manager.form_data["caption"]["petitionerName"] == "Maria Lopez"
    assert manager.current_index == index_before + 1
    assert result.debug["schema_path"] == "protectedPerson.petitionerName"
    assert result.system_output == "Q:abuse_details_description"

    saved = persistence.load_state()
    assert saved.data["protectedPerson"]["petitionerName"] == "Maria Lopez"
    assert saved.step == "abuse_details_description"

    print("✓ Answer binding test passed")


def test_required_step_dont_know_triggers_first_retry():
    """Test required step stays current and emits the first retry variant"""
    manager, _, _, persistence = create_manager({
        "petitionerName": ExtractionResult(cleaned="", unsure=True)
    })
    advance_to(manager, "petitionerName")
    index_before = manager.current_index

    result = manager.handle_message("I don't know")

    assert manager.current_index == index_before
    assert manager.retry_counts["petitionerName"] == 1
    assert result.system_output == get_retry_text(1)
    assert result.debug["retry_attempt"] == 1
    assert manager.messages[-1].id.startswith("retry-petitionerName-")
    assert persistence.load_state().step == "petitionerName"

    print("✓ Retry test passed")


def test_dont_know_blocks_required_step_even_with_confident_extraction():
    """Test raw 'don't know' phrasing overrides a confident extraction"""
    manager, _, _, _ = create_manager()  # extractor echoes input as confident
    advance_to(manager, "petitionerName")

    manager.handle_message("honestly no idea")

    assert manager.current_step.id == "petitionerName"
    assert manager.form_data["protectedPerson"]["petitionerName"] == ""


def test_retry_escalates_then_repeats_final_and_resets_on_success():
    answers = iter([
        ExtractionResult("", True),
        ExtractionResult("", True),
        ExtractionResult("", True),
        ExtractionResult("", True),
        ExtractionResult("Jane", False),
    ])
    manager, _, _, _ = create_manager({"petitionerName": lambda step, text: next(answers)})
    advance_to(manager, "petitionerName")

    outputs = [manager.handle_message("hmm").system_output for _ in range(4)]

    assert outputs == [get_retry_text(1), get_retry_text(2), get_retry_text(3), get_retry_text(3)]
    assert manager.retry_counts["petitionerName"] == 4

    manager.handle_message("Jane")
    assert "petitionerName" not in manager.retry_counts
    assert manager.current_step.id == "abuse_details_description"


def test_optional_step_advances_with_empty_answer():
    """Test unusable answer on optional step writes '' and advances"""
    manager, _, _, _ = create_manager({
        "courtName": ExtractionResult(cleaned="", unsure=True)
    })
    manager.handle_message("hello")
    manager.form_data["court"]["courtName"] = "stale"

    manager.handle_message("I'll give it later")

    assert manager.form_data["court"]["courtName"] == ""
    assert manager.current_step.id == "caseNumber"


def test_flow_completes_and_persists_no_step():
    manager, _, _, persistence = create_manager()
    manager.handle_message("hello")
    for answer in ["Alameda", "22FL01234", "Jane Doe"]:
        manager.handle_message(answer)

    result = manager.handle_message("He pushed me.")

    assert result.flow_complete is True
    assert result.system_output is None
    assert manager.status == STATUS_COMPLETED
    assert manager.progress().completed == manager.progress().total == 4
    assert persistence.load_state().step is None

    # Further messages are accepted but change nothing
    after = manager.handle_message("anything else?")
    assert after.flow_complete is True
    assert manager.form_data["abuse"]["abuse_details_description"] == "He pushed me."


def test_progress_snapshot():
    manager, _, _, _ = create_manager()
    assert manager.progress().completed == 0
    assert manager.progress().total == 4

    manager.handle_message("hello")
    manager.handle_message("Alameda")
    assert manager.progress().completed == 1


def test_rejects_empty_and_concurrent_input():
    """Test empty input and input during a turn are rejected"""
    manager, _, _, _ = create_manager()
    message_count = len(manager.messages)

    empty = manager.handle_message("   ")
    assert isinstance(empty, IllegalCommand)

    manager.busy = True
    busy = manager.handle_message("hello")
    assert isinstance(busy, IllegalCommand)
    assert len(manager.messages) == message_count

    manager.busy = False
    assert isinstance(manager.handle_message("hello"), TurnResult)
    assert manager.busy is False


def test_resume_at_persisted_step():
    """Test reload restores data, messages and the saved step position"""
    data = {
        "court": {"courtName": "Alameda", "caseNumber": ""},
        "protectedPerson": {"petitionerName": "", "petitionerFax": ""},
        "abuse": {"abuse_details_description": ""},
        "caption": {"petitionerName": ""},
    }
    messages = [
        {"id": "jura-intro", "from": "jura", "text": WELCOME_TEXT, "createdAt": 1},
        {"id": "user-2", "from": "user", "text": "hello", "createdAt": 2},
    ]
    persistence = create_persistence({
        "dv100Chat_data": json.dumps(data),
        "dv100Chat_messages": json.dumps(messages),
        "dv100Chat_step": json.dumps("caseNumber"),
    })

    manager, _, _, _ = create_manager(persistence=persistence)

    assert manager.status == STATUS_IN_PROGRESS
    assert manager.current_index == 1
    assert manager.current_step.id == "caseNumber"
    assert manager.form_data["court"]["courtName"] == "Alameda"
    assert [m.id for m in manager.messages] == ["jura-intro", "user-2"]
    assert all(m.complete for m in manager.messages)

    print("✓ Resume test passed")


def test_resume_unknown_step_restarts_at_zero():
    persistence = create_persistence({
        "dv100Chat_messages": json.dumps([{"from": "jura", "text": "Hi"}]),
        "dv100Chat_step": json.dumps("removedStep"),
    })
    manager, _, _, _ = create_manager(persistence=persistence)

    assert manager.status == STATUS_IN_PROGRESS
    assert manager.current_index == 0


def test_resume_messages_without_step_is_not_started():
    """Test messages but no persisted step resumes as never started"""
    persistence = create_persistence({
        "dv100Chat_messages": json.dumps([
            {"from": "jura", "text": "Hi"},
            {"from": "user", "text": "I typed before any question"},
        ]),
    })
    manager, questions, extractor, _ = create_manager(persistence=persistence)

    assert manager.status == STATUS_NOT_STARTED
    assert len(manager.messages) == 2

    manager.handle_message("ok")
    assert extractor.calls == []
    assert questions.calls[-1][0] == "courtName"


def test_reset_starts_new_session():
    manager, _, _, persistence = create_manager()
    manager.handle_message("hello")
    manager.handle_message("Alameda")

    manager.reset()

    assert manager.status == STATUS_NOT_STARTED
    assert manager.form_data["court"]["courtName"] == ""
    assert [m.id for m in manager.messages] == ["jura-intro"]
    assert persistence.load_state().step is None


def test_custom_retry_prompt_provider():
    manager, _, _, _ = create_manager(
        {"petitionerName": ExtractionResult("", True)},
        retry_prompt=lambda attempt: f"retry #{attempt}",
    )
    advance_to(manager, "petitionerName")

    assert manager.handle_message("?").system_output == "retry #1"
    assert manager.handle_message("?").system_output == "retry #2"


def test_invalid_collaborators_rejected():
    with pytest.raises(TypeError, match="answer_extractor"):
        DialogueManager(
            steps=STEPS,
            derived_map=DERIVED_MAP,
            path_resolver=SchemaPathResolver(SCHEMA),
            question_generator=MockQuestionGenerator(),
            answer_extractor=object(),
            persistence=create_persistence(),
        )


class MinimalPersistence:
    """Only the methods the manager calls"""

    def __init__(self, state):
        self.state = state
        self.cleared = False

    def load_state(self):
        return self.state

    def save_state(self, state):
        self.state = state

    def clear(self):
        self.cleared = True


class NoClearPersistence(MinimalPersistence):
    clear = None


def test_persistence_needs_clear_not_default_state():
    """Test persistence is checked for load/save/clear only"""
    fresh = create_persistence().default_state()
    persistence = MinimalPersistence(fresh)
    manager, _, _, _ = create_manager(persistence=persistence)

    manager.reset()
    assert persistence.cleared is True

    with pytest.raises(TypeError, match="clear"):
        create_manager(persistence=NoClearPersistence(fresh))


if __name__ == "__main__":
    test_initialization_seeds_welcome_message()
    test_first_message_starts_flow_without_binding()
    test_answer_binds_to_schema_path_and_derives()
    test_required_step_dont_know_triggers_first_retry()
    test_resume_at_persisted_step()
    print("\n✓ All dialogue manager tests passed")
