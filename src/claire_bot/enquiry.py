"""The enquiry dialog: learn who we're talking to and what they need."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .dialogs import (
    Continue,
    Dialog,
    End,
    Prompt,
    StepContext,
    StepResult,
    TextPrompt,
    ValidationResult,
    WaterfallDialog,
)
from .state import StateAccessor, StatePropertyAccessor

ENQUIRY_DIALOG_ID = "enquiryDialog"
NAME_PROMPT_ID = "namePrompt"
TOPIC_PROMPT_ID = "topicPrompt"
ENQUIRY_STATE_SLOT = "enquiryState"

NAME_LENGTH_MIN = 3

NAME_PROMPT_TEXT = "Firstly, can I ask who I'm talking to?"
TOPIC_PROMPT_TEXT = "What topic can I help you with?"
NAME_TOO_SHORT_TEXT = f"Names needs to be at least `{NAME_LENGTH_MIN}` characters long."
RESPONSE_TEMPLATE = (
    "Hi {name}, give me a moment while I look for information about {topic}"
)


def _clean(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


@dataclass(slots=True)
class EnquiryState:
    """Details gathered by the enquiry dialog; ``None`` means not asked yet."""

    name: Optional[str] = None
    topic: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"name": self.name, "topic": self.topic}

    @classmethod
    def from_dict(cls, data: object) -> "EnquiryState":
        if isinstance(data, EnquiryState):
            return cls(name=data.name, topic=data.topic)
        if not isinstance(data, Mapping):
            return cls()
        return cls(name=_clean(data.get("name")), topic=_clean(data.get("topic")))


def enquiry_state_accessor(
    accessor: StateAccessor,
) -> StatePropertyAccessor[EnquiryState]:
    return accessor.property(
        ENQUIRY_STATE_SLOT,
        load=EnquiryState.from_dict,
        dump=lambda state: state.to_dict(),
    )


def validate_name(text: Optional[str]) -> ValidationResult:
    """Accept names of at least ``NAME_LENGTH_MIN`` characters once trimmed."""

    value = (text or "").strip()
    if len(value) >= NAME_LENGTH_MIN:
        return ValidationResult.accepted(value)
    return ValidationResult.rejected(NAME_TOO_SHORT_TEXT)


def validate_topic(text: Optional[str]) -> ValidationResult:
    """Accept any topic. Topic constraints belong here when they're needed."""

    return ValidationResult.accepted(text)


class EnquiryFlow:
    """Step functions for the enquiry waterfall, bound to a state slot."""

    def __init__(self, state: StatePropertyAccessor[EnquiryState]) -> None:
        self._state = state

    def dialogs(self) -> List[Dialog]:
        return [
            WaterfallDialog(
                ENQUIRY_DIALOG_ID,
                [
                    self.initialize_state,
                    self.prompt_for_name,
                    self.save_name,
                    self.prompt_for_topic,
                    self.save_topic,
                    self.respond,
                ],
            ),
            TextPrompt(NAME_PROMPT_ID, validate_name),
            TextPrompt(TOPIC_PROMPT_ID, validate_topic),
        ]

    def _load(self, context: StepContext) -> EnquiryState:
        state = self._state.get(context.conversation_id, EnquiryState)
        assert state is not None
        return state

    def initialize_state(self, context: StepContext) -> StepResult:
        options: Any = context.options
        self._state.get(
            context.conversation_id,
            lambda: EnquiryState.from_dict(options),
        )
        return Continue()

    def prompt_for_name(self, context: StepContext) -> StepResult:
        if self._load(context).name:
            return Continue()
        return Prompt(NAME_PROMPT_ID, NAME_PROMPT_TEXT)

    def save_name(self, context: StepContext) -> StepResult:
        state = self._load(context)
        name = _clean(context.result)
        if not state.name and name is not None:
            state.name = name
            self._state.set(context.conversation_id, state)
        return Continue()

    def prompt_for_topic(self, context: StepContext) -> StepResult:
        if self._load(context).topic:
            return Continue()
        return Prompt(TOPIC_PROMPT_ID, TOPIC_PROMPT_TEXT)

    def save_topic(self, context: StepContext) -> StepResult:
        state = self._load(context)
        topic = _clean(context.result)
        if not state.topic and topic is not None:
            state.topic = topic
            self._state.set(context.conversation_id, state)
        return Continue()

    def respond(self, context: StepContext) -> StepResult:
        state = self._load(context)
        context.send(
            RESPONSE_TEMPLATE.format(name=state.name or "", topic=state.topic or "")
        )
        return End()
