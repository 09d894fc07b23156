"""Dialog building blocks: frames, the dialog stack, waterfalls and prompts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union


class ConfigurationError(RuntimeError):
    """Raised when the dialog set or its collaborators are misconfigured."""


class MalformedFrame(RuntimeError):
    """Raised when persisted dialog state cannot be resumed safely."""


@dataclass(slots=True)
class TurnContext:
    """One inbound message and the replies produced while handling it."""

    conversation_id: str
    text: Optional[str]
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    responses: List[str] = field(default_factory=list)

    def send(self, text: str) -> None:
        self.responses.append(text)


@dataclass(slots=True)
class DialogFrame:
    """Persisted record of one active dialog instance."""

    dialog_id: str
    cursor: int = -1
    options: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dialog_id": self.dialog_id,
            "cursor": self.cursor,
            "options": self.options,
        }

    @classmethod
    def from_dict(cls, data: object) -> "DialogFrame":
        if not isinstance(data, Mapping):
            raise MalformedFrame(f"Dialog frame must be an object, got {data!r}")
        dialog_id = data.get("dialog_id")
        cursor = data.get("cursor")
        if not isinstance(dialog_id, str) or not dialog_id:
            raise MalformedFrame(f"Dialog frame has no dialog id: {data!r}")
        if not isinstance(cursor, int) or isinstance(cursor, bool):
            raise MalformedFrame(f"Dialog frame has no integer cursor: {data!r}")
        return cls(dialog_id=dialog_id, cursor=cursor, options=data.get("options"))


class DialogStack:
    """Ordered dialog frames; the last frame is the active one."""

    def __init__(self, frames: Optional[Sequence[DialogFrame]] = None) -> None:
        self._frames: List[DialogFrame] = list(frames or [])

    def push(self, dialog_id: str, options: Any = None) -> DialogFrame:
        frame = DialogFrame(dialog_id=dialog_id, options=options)
        self._frames.append(frame)
        return frame

    def current(self) -> Optional[DialogFrame]:
        if not self._frames:
            return None
        return self._frames[-1]

    def pop(self) -> DialogFrame:
        if not self._frames:
            raise IndexError("pop from an empty dialog stack")
        return self._frames.pop()

    def is_empty(self) -> bool:
        return not self._frames

    @property
    def frames(self) -> List[DialogFrame]:
        return list(self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def to_list(self) -> List[Dict[str, Any]]:
        return [frame.to_dict() for frame in self._frames]

    @classmethod
    def from_list(cls, data: object) -> "DialogStack":
        if not isinstance(data, list):
            raise MalformedFrame(f"Dialog stack must be a list, got {data!r}")
        return cls([DialogFrame.from_dict(item) for item in data])


@dataclass(frozen=True, slots=True)
class Continue:
    """Advance to the next step in the same turn, passing ``value`` along."""

    value: Any = None


@dataclass(frozen=True, slots=True)
class Prompt:
    """Start the prompt registered as ``prompt_id`` and wait for input."""

    prompt_id: str
    text: str


@dataclass(frozen=True, slots=True)
class End:
    """Finish the dialog and hand ``result`` to whoever started it."""

    result: Any = None


StepResult = Union[Continue, Prompt, End]


@dataclass(slots=True)
class StepContext:
    """What a waterfall step sees when it runs."""

    turn: TurnContext
    options: Any
    result: Any
    index: int

    @property
    def conversation_id(self) -> str:
        return self.turn.conversation_id

    def send(self, text: str) -> None:
        self.turn.send(text)


Step = Callable[[StepContext], StepResult]


class WaterfallDialog:
    """A fixed, ordered sequence of steps."""

    def __init__(self, dialog_id: str, steps: Sequence[Step]) -> None:
        if not steps:
            raise ConfigurationError(f"Waterfall '{dialog_id}' has no steps")
        self.dialog_id = dialog_id
        self.steps: tuple[Step, ...] = tuple(steps)

    @property
    def step_count(self) -> int:
        return len(self.steps)


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of a prompt validator."""

    accept: bool
    value: Any = None
    message: Optional[str] = None

    @classmethod
    def accepted(cls, value: Any) -> "ValidationResult":
        return cls(accept=True, value=value)

    @classmethod
    def rejected(cls, message: Optional[str] = None) -> "ValidationResult":
        return cls(accept=False, message=message)


Validator = Callable[[Optional[str]], ValidationResult]


def accept_text(text: Optional[str]) -> ValidationResult:
    """Accept any inbound text as-is."""

    return ValidationResult.accepted(text)


class TextPrompt:
    """Asks for free text and re-asks until its validator accepts."""

    step_count = 1

    def __init__(self, dialog_id: str, validator: Optional[Validator] = None) -> None:
        self.dialog_id = dialog_id
        self.validator: Validator = validator or accept_text

    @staticmethod
    def make_options(text: str) -> Dict[str, str]:
        return {"text": text}

    @staticmethod
    def prompt_text(frame: DialogFrame) -> str:
        options = frame.options
        if not isinstance(options, Mapping) or not isinstance(options.get("text"), str):
            raise MalformedFrame(
                f"Prompt frame '{frame.dialog_id}' has no prompt text"
            )
        return options["text"]

    def validate(self, text: Optional[str]) -> ValidationResult:
        return self.validator(text)


Dialog = Union[WaterfallDialog, TextPrompt]


class DialogRegistry:
    """Maps dialog ids to waterfalls and prompts."""

    def __init__(self, dialogs: Sequence[Dialog] = ()) -> None:
        self._dialogs: Dict[str, Dialog] = {}
        for dialog in dialogs:
            self.add(dialog)

    def add(self, dialog: Dialog) -> Dialog:
        if dialog.dialog_id in self._dialogs:
            raise ConfigurationError(f"Dialog '{dialog.dialog_id}' is already registered")
        self._dialogs[dialog.dialog_id] = dialog
        return dialog

    def find(self, dialog_id: str) -> Dialog:
        try:
            return self._dialogs[dialog_id]
        except KeyError as exc:
            raise MalformedFrame(f"Unknown dialog id '{dialog_id}'") from exc

    def __contains__(self, dialog_id: object) -> bool:
        return dialog_id in self._dialogs

    def ids(self) -> List[str]:
        return list(self._dialogs)
