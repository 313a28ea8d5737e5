"""
Dialogue Manager - DV-100 answer-flow state machine

Responsibilities:
- Hold the askable step sequence and the current position
- Bind each answer to its schema path and re-apply derived fields
- Keep required steps current until a usable answer arrives
- Write the session through to persistence after every turn
- Resume a persisted session

States:
    not-started --first message--> in-progress(0)
    in-progress(i) --usable answer (or any answer, optional step)--> in-progress(i+1) | completed
    in-progress(i) --unusable answer, required step--> in-progress(i) (retry prompt)

Design principles:
- Single writer: only this class mutates form data and the step index
- Collaborator failures never surface here (adapters return fallbacks)
- Retry copy is a presentation callback (retry_prompt(attempt) -> str)
- One turn at a time; input during a turn is rejected
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from dv100.contracts import ChatMessage, FlowStep, ProgressSnapshot, now_ms
from dv100.core.derived_fields import DerivedMap, apply_derived_fields
from dv100.core.flow import filter_askable_steps, get_field_rule
from dv100.core.object_path import set_at_path
from dv100.persistence import PersistedState, coerce_messages
from dv100.results import IllegalCommand, TurnResult
from dv100.utils.answer_patterns import (
    is_missing_answer,
    looks_like_dont_know,
    looks_like_meta_response,
)
from dv100.utils.retry_templates import get_retry_text

logger = logging.getLogger(__name__)

STATUS_NOT_STARTED = "not-started"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"

WELCOME_TEXT = (
    "Hi, I'm Jura. I'm really sorry you're going through all of this. If you'd like, "
    "you can tell me a little about what's been happening or how you're feeling, and "
    "we'll take this one small step at a time together."
)


class DialogueManager:
    """
    Drives the DV-100 conversation one user message at a time.

    The manager owns the in-memory session (form data, messages, step
    index, retry counts). Persistence is its durable mirror and is
    rewritten after every transition.
    """

    def __init__(
        self,
        steps: Iterable[FlowStep],
        derived_map: DerivedMap,
        path_resolver,
        question_generator,
        answer_extractor,
        persistence,
        retry_prompt: Callable[[int], str] = get_retry_text
    ):
        """
        Initialize and restore (or start) the persisted session.

        Args:
            steps: Full flow definition (auto and derived steps included)
            derived_map: target path -> source path
            path_resolver: SchemaPathResolver (resolve(step_id) -> path)
            question_generator: QuestionGenerator (generate(step, answers, last))
            answer_extractor: AnswerExtractor (extract(step, text))
            persistence: IntakePersistence (load_state/save_state/clear)
            retry_prompt: Retry copy for attempt N (1-indexed)

        Raises:
            TypeError: If any collaborator is missing its method
        """
        self._validate_modules(path_resolver, question_generator, answer_extractor, persistence)

        self.all_steps: List[FlowStep] = list(steps)
        self.derived_map = dict(derived_map)
        self.askable_steps = filter_askable_steps(self.all_steps, self.derived_map.keys())

        self.path_resolver = path_resolver
        self.question_generator = question_generator
        self.answer_extractor = answer_extractor
        self.persistence = persistence
        self.retry_prompt = retry_prompt

        self.form_data: Dict[str, Any] = {}
        self.messages: List[ChatMessage] = []
        self.current_index = 0
        self.has_started_flow = False
        self.retry_counts: Dict[str, int] = {}
        self.busy = False

        self._restore()

        logger.info(
            f"Dialogue Manager initialized: {len(self.askable_steps)} askable of "
            f"{len(self.all_steps)} steps, status={self.status}, index={self.current_index}"
        )

    def _validate_modules(self, path_resolver, question_generator, answer_extractor, persistence):
        """Validate collaborator interfaces"""
        if not callable(getattr(path_resolver, "resolve", None)):
            raise TypeError("path_resolver must have callable resolve() method")

        if not callable(getattr(question_generator, "generate", None)):
            raise TypeError("question_generator must have callable generate() method")

        if not callable(getattr(answer_extractor, "extract", None)):
            raise TypeError("answer_extractor must have callable extract() method")

        for method in ("load_state", "save_state", "clear"):
            if not callable(getattr(persistence, method, None)):
                raise TypeError(f"persistence must have callable {method}() method")

    # ========================
    # Session lifecycle
    # ========================

    def _restore(self) -> None:
        """
        Resume from persistence.

        Messages present: restore data and messages verbatim; a persisted
        step id puts the flow in progress at that step (index 0 if the id
        is no longer askable); no step id means not started.

        No messages: fresh session seeded with the welcome message.
        """
        saved = self.persistence.load_state()
        saved_messages = coerce_messages(saved.messages)

        if saved_messages:
            self.form_data = saved.data
            self.messages = saved_messages
            self.has_started_flow = saved.step is not None

            if saved.step is not None:
                index = self._index_of(saved.step)
                if index < 0:
                    logger.warning(f"Persisted step '{saved.step}' not in askable steps, resuming at 0")
                self.current_index = max(index, 0)
            else:
                self.current_index = 0

            logger.info(
                f"Resumed session: {len(self.messages)} messages, step={saved.step}, "
                f"index={self.current_index}"
            )
            return

        self.form_data = saved.data
        self.has_started_flow = False
        self.current_index = 0
        self.messages = [ChatMessage.jura("jura-intro", WELCOME_TEXT)]
        self._save(step_id=None)
        logger.info("Started new session")

    def reset(self) -> None:
        """Discard the persisted session and start over"""
        self.persistence.clear()
        self.retry_counts = {}
        self.busy = False
        self._restore()

    def _index_of(self, step_id: str) -> int:
        for index, step in enumerate(self.askable_steps):
            if step.id == step_id:
                return index
        return -1

    # ========================
    # State inspection
    # ========================

    @property
    def status(self) -> str:
        if not self.has_started_flow:
            return STATUS_NOT_STARTED
        if self.current_index >= len(self.askable_steps):
            return STATUS_COMPLETED
        return STATUS_IN_PROGRESS

    @property
    def current_step(self) -> Optional[FlowStep]:
        if 0 <= self.current_index < len(self.askable_steps):
            return self.askable_steps[self.current_index]
        return None

    def progress(self) -> ProgressSnapshot:
        total = len(self.askable_steps)
        return ProgressSnapshot(
            completed=min(self.current_index, total),
            total=max(total, 1),
        )

    def snapshot(self, step_id: Optional[str] = None) -> PersistedState:
        return PersistedState(
            data=self.form_data,
            messages=[message.to_dict() for message in self.messages],
            step=step_id,
        )

    def _save(self, step_id: Optional[str]) -> PersistedState:
        state = self.snapshot(step_id)
        self.persistence.save_state(state)
        return state

    # ========================
    # Turn handling
    # ========================

    def handle_message(self, user_input: str) -> Union[TurnResult, IllegalCommand]:
        """
        Process one user message.

        Args:
            user_input: Raw text typed by the user

        Returns:
            TurnResult, or IllegalCommand when the message is rejected
            (empty, or a turn is already in progress)
        """
        if self.busy:
            return IllegalCommand(
                reason="Still processing the previous message",
                command_type="UserMessage"
            )

        trimmed = (user_input or "").strip()
        if not trimmed:
            return IllegalCommand(reason="Empty message", command_type="UserMessage")

        self.messages.append(ChatMessage.user(f"user-{now_ms()}", trimmed))

        self.busy = True
        try:
            if not self.has_started_flow:
                return self._start_flow(trimmed)
            return self._process_answer(trimmed)
        finally:
            self.busy = False

    def _start_flow(self, first_message: str) -> TurnResult:
        """First free-text message: ask the first askable step (no binding)"""
        if not self.askable_steps:
            state = self._save(step_id=None)
            return self._build_turn_result(None, state, {"error": "no_askable_steps"})

        first_step = self.askable_steps[0]
        self.has_started_flow = True
        self.current_index = 0

        question = self.question_generator.generate(first_step, self.form_data, first_message)
        self.messages.append(ChatMessage.jura(f"jura-{first_step.id}-{now_ms()}", question))

        state = self._save(step_id=first_step.id)
        logger.info(f"Flow started at '{first_step.id}'")
        return self._build_turn_result(question, state, {"first_question": True})

    def _process_answer(self, user_input: str) -> TurnResult:
        step = self.current_step
        if step is None:
            state = self._save(step_id=None)
            return self._build_turn_result(None, state, {"flow_complete": True})

        extraction = self.answer_extractor.extract(step, user_input)
        rule = get_field_rule(step)
        missing = is_missing_answer(user_input, extraction.cleaned, extraction.unsure)

        debug: Dict[str, Any] = {
            "step_id": step.id,
            "extraction": {"cleaned": extraction.cleaned, "unsure": extraction.unsure},
            "dont_know": looks_like_dont_know(user_input),
            "meta_response": looks_like_meta_response(user_input),
        }

        if rule.required and missing:
            return self._retry_step(step, debug)

        answer = "" if missing else extraction.cleaned.strip()
        schema_path = self.path_resolver.resolve(step.id)
        set_at_path(self.form_data, schema_path, answer)
        derived = apply_derived_fields(self.form_data, self.derived_map)["derived"]
        self.retry_counts.pop(step.id, None)

        debug["schema_path"] = schema_path
        debug["answer"] = answer
        debug["derived"] = derived
        logger.info(f"[{step.id}] -> {schema_path} = '{answer}'")

        self.current_index += 1
        next_step = self.current_step

        question = None
        if next_step is not None:
            question = self.question_generator.generate(next_step, self.form_data, user_input)
            self.messages.append(ChatMessage.jura(f"jura-{next_step.id}-{now_ms()}", question))
        else:
            logger.info("All askable steps answered")

        state = self._save(step_id=next_step.id if next_step else None)
        return self._build_turn_result(question, state, debug)

    def _retry_step(self, step: FlowStep, debug: Dict[str, Any]) -> TurnResult:
        """Required step got no usable answer: stay, emit scripted re-prompt"""
        attempt = self.retry_counts.get(step.id, 0) + 1
        self.retry_counts[step.id] = attempt

        retry_text = self.retry_prompt(attempt)
        self.messages.append(ChatMessage.jura(f"retry-{step.id}-{now_ms()}", retry_text))

        debug["retry_attempt"] = attempt
        logger.info(f"[{step.id}] No usable answer for required field (attempt {attempt})")

        state = self._save(step_id=step.id)
        return self._build_turn_result(retry_text, state, debug)

    def _build_turn_result(
        self,
        system_output: Optional[str],
        state: PersistedState,
        debug: Dict[str, Any]
    ) -> TurnResult:
        step = self.current_step
        return TurnResult(
            system_output=system_output,
            state={"data": state.data, "messages": state.messages, "step": state.step},
            debug=debug,
            turn_metadata={
                "step_id": step.id if step else None,
                "step_index": self.current_index,
                "status": self.status,
            },
            flow_complete=self.status == STATUS_COMPLETED,
        )
