"""Stack-walking dispatcher that runs one conversational turn."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from .dialogs import (
    ConfigurationError,
    Continue,
    DialogFrame,
    DialogRegistry,
    DialogStack,
    End,
    MalformedFrame,
    Prompt,
    StepContext,
    TextPrompt,
    TurnContext,
    WaterfallDialog,
)
from .state import StateAccessor, StatePropertyAccessor

logger = logging.getLogger(__name__)

DIALOG_STACK_SLOT = "dialogStack"


class DialogStatus(str, Enum):
    """Where the conversation stands once a turn has been handled."""

    WAITING = "waiting"
    COMPLETE = "complete"
    IDLE = "idle"


@dataclass(slots=True)
class TurnResult:
    """Replies and final status of a single turn."""

    status: DialogStatus
    responses: List[str] = field(default_factory=list)
    ended_dialog_id: Optional[str] = None
    result: Any = None


@dataclass(frozen=True, slots=True)
class _Completion:
    dialog_id: str
    result: Any


def dialog_stack_accessor(accessor: StateAccessor) -> StatePropertyAccessor[DialogStack]:
    """Bind the slot that persists the dialog stack between turns."""

    return accessor.property(
        DIALOG_STACK_SLOT,
        load=DialogStack.from_list,
        dump=lambda stack: stack.to_list(),
    )


class DialogEngine:
    """Resumes the active dialog for a conversation and runs it to a stop.

    The stack is read at the start of every turn and written back at the end,
    so nothing about an in-flight dialog lives in process memory between
    turns. A turn that raises leaves the previously stored stack untouched.
    """

    def __init__(
        self,
        registry: Optional[DialogRegistry],
        stack_accessor: Optional[StatePropertyAccessor[DialogStack]],
    ) -> None:
        if registry is None:
            raise ConfigurationError("DialogEngine requires a dialog registry")
        if stack_accessor is None:
            raise ConfigurationError("DialogEngine requires a state accessor")
        self._registry = registry
        self._stack_accessor = stack_accessor

    def run_turn(
        self,
        turn: TurnContext,
        dialog_id: Optional[str] = None,
        options: Any = None,
    ) -> TurnResult:
        """Handle ``turn``; ``dialog_id`` is only started when nothing is active."""

        stack = self._stack_accessor.get(turn.conversation_id, DialogStack)
        assert stack is not None  # get-or-init never returns None
        self._check_stack(stack)

        if stack.is_empty():
            if dialog_id is None:
                return TurnResult(status=DialogStatus.IDLE, responses=turn.responses)
            logger.info(
                "Beginning dialog %s for conversation %s",
                dialog_id,
                turn.conversation_id,
            )
            completion = self._begin(turn, stack, dialog_id, options)
        else:
            completion = self._continue(turn, stack)

        self._stack_accessor.set(turn.conversation_id, stack)

        if completion is None:
            return TurnResult(status=DialogStatus.WAITING, responses=turn.responses)
        return TurnResult(
            status=DialogStatus.COMPLETE,
            responses=turn.responses,
            ended_dialog_id=completion.dialog_id,
            result=completion.result,
        )

    def _check_stack(self, stack: DialogStack) -> None:
        frames = stack.frames
        for position, frame in enumerate(frames):
            dialog = self._registry.find(frame.dialog_id)
            if not -1 <= frame.cursor < dialog.step_count:
                raise MalformedFrame(
                    f"Cursor {frame.cursor} is out of range for dialog "
                    f"'{frame.dialog_id}' ({dialog.step_count} steps)"
                )
            if isinstance(dialog, TextPrompt):
                if position != len(frames) - 1:
                    raise MalformedFrame(
                        f"Prompt '{frame.dialog_id}' cannot have child dialogs"
                    )
                TextPrompt.prompt_text(frame)

    def _begin(
        self,
        turn: TurnContext,
        stack: DialogStack,
        dialog_id: str,
        options: Any,
    ) -> Optional[_Completion]:
        dialog = self._registry.find(dialog_id)
        frame = stack.push(dialog_id, options)
        if isinstance(dialog, TextPrompt):
            frame.cursor = 0
            turn.send(TextPrompt.prompt_text(frame))
            return None
        return self._run_steps(turn, stack, frame, dialog, 0, None)

    def _continue(self, turn: TurnContext, stack: DialogStack) -> Optional[_Completion]:
        frame = stack.current()
        assert frame is not None
        dialog = self._registry.find(frame.dialog_id)
        if isinstance(dialog, TextPrompt):
            verdict = dialog.validate(turn.text)
            if not verdict.accept:
                logger.info(
                    "Prompt %s rejected input for conversation %s",
                    frame.dialog_id,
                    turn.conversation_id,
                )
                if verdict.message:
                    turn.send(verdict.message)
                turn.send(TextPrompt.prompt_text(frame))
                return None
            return self._end(turn, stack, verdict.value)
        # A waterfall waiting without a child takes the inbound text as the
        # result of its current step.
        return self._run_steps(turn, stack, frame, dialog, frame.cursor + 1, turn.text)

    def _run_steps(
        self,
        turn: TurnContext,
        stack: DialogStack,
        frame: DialogFrame,
        dialog: WaterfallDialog,
        index: int,
        result: Any,
    ) -> Optional[_Completion]:
        while index < dialog.step_count:
            frame.cursor = index
            context = StepContext(
                turn=turn,
                options=frame.options,
                result=result,
                index=index,
            )
            outcome = dialog.steps[index](context)
            if isinstance(outcome, Continue):
                index += 1
                result = outcome.value
                continue
            if isinstance(outcome, Prompt):
                prompt = self._registry.find(outcome.prompt_id)
                if not isinstance(prompt, TextPrompt):
                    raise ConfigurationError(
                        f"'{outcome.prompt_id}' is not a prompt dialog"
                    )
                logger.debug(
                    "Step %d of %s prompting with %s",
                    index,
                    dialog.dialog_id,
                    outcome.prompt_id,
                )
                return self._begin(
                    turn,
                    stack,
                    outcome.prompt_id,
                    TextPrompt.make_options(outcome.text),
                )
            if isinstance(outcome, End):
                return self._end(turn, stack, outcome.result)
            raise TypeError(
                f"Step {index} of '{dialog.dialog_id}' returned {outcome!r}"
            )
        return self._end(turn, stack, result)

    def _end(
        self,
        turn: TurnContext,
        stack: DialogStack,
        result: Any,
    ) -> Optional[_Completion]:
        ended = stack.pop()
        parent = stack.current()
        if parent is None:
            logger.info(
                "Dialog %s ended for conversation %s",
                ended.dialog_id,
                turn.conversation_id,
            )
            return _Completion(dialog_id=ended.dialog_id, result=result)
        dialog = self._registry.find(parent.dialog_id)
        if not isinstance(dialog, WaterfallDialog):
            raise MalformedFrame(
                f"Dialog '{parent.dialog_id}' cannot resume a child dialog"
            )
        return self._run_steps(turn, stack, parent, dialog, parent.cursor + 1, result)
