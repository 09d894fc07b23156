"""Declarative intent and dialogue routing table."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ValidationError

from .dialogs import ConfigurationError
from .enquiry import ENQUIRY_DIALOG_ID

logger = logging.getLogger(__name__)


class IntentConfiguration(BaseModel):
    """Which dialogue handles an intent."""

    intent: str
    description: str = ""
    dialogue: str


class DialogueConfiguration(BaseModel):
    """A dialogue and the one that follows it, if any."""

    id: str
    description: str = ""
    next: Optional[str] = None


class RoutingDocument(BaseModel):
    intents: List[IntentConfiguration]
    dialogues: List[DialogueConfiguration]


class RoutingTable:
    """Resolves intents to dialogue ids and dialogues to their successors."""

    def __init__(
        self,
        intents: Sequence[IntentConfiguration],
        dialogues: Sequence[DialogueConfiguration],
    ) -> None:
        self._dialogues: Dict[str, DialogueConfiguration] = {}
        for dialogue in dialogues:
            if dialogue.id in self._dialogues:
                raise ConfigurationError(f"Dialogue '{dialogue.id}' is declared twice")
            self._dialogues[dialogue.id] = dialogue
        self._intents: Dict[str, IntentConfiguration] = {}
        for intent in intents:
            if intent.intent in self._intents:
                raise ConfigurationError(f"Intent '{intent.intent}' is declared twice")
            if intent.dialogue not in self._dialogues:
                raise ConfigurationError(
                    f"Intent '{intent.intent}' routes to unknown dialogue "
                    f"'{intent.dialogue}'"
                )
            self._intents[intent.intent] = intent
        for dialogue in self._dialogues.values():
            if dialogue.next is not None and dialogue.next not in self._dialogues:
                raise ConfigurationError(
                    f"Dialogue '{dialogue.id}' is followed by unknown dialogue "
                    f"'{dialogue.next}'"
                )

    @classmethod
    def default(cls) -> "RoutingTable":
        return cls(
            intents=[
                IntentConfiguration(
                    intent="enquiry",
                    description="General enquiry",
                    dialogue=ENQUIRY_DIALOG_ID,
                )
            ],
            dialogues=[
                DialogueConfiguration(
                    id=ENQUIRY_DIALOG_ID,
                    description="Ask for the user's name and enquiry topic",
                )
            ],
        )

    @classmethod
    def from_json(cls, raw: str) -> "RoutingTable":
        try:
            document = RoutingDocument.model_validate_json(raw)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid routing table: {exc}") from exc
        return cls(intents=document.intents, dialogues=document.dialogues)

    @classmethod
    def load(cls, path: Optional[Path]) -> "RoutingTable":
        """Read a routing table from ``path``, or the built-in one when unset."""

        if path is None:
            return cls.default()
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Cannot read routing table {path}: {exc}") from exc
        table = cls.from_json(raw)
        logger.info("Loaded routing table from %s", path)
        return table

    def dialogue_for_intent(self, intent: str) -> str:
        try:
            return self._intents[intent].dialogue
        except KeyError as exc:
            raise ConfigurationError(f"No dialogue is routed for intent '{intent}'") from exc

    def next_dialogue(self, dialogue_id: str) -> Optional[str]:
        dialogue = self._dialogues.get(dialogue_id)
        if dialogue is None:
            return None
        return dialogue.next

    @property
    def intents(self) -> List[IntentConfiguration]:
        return list(self._intents.values())

    @property
    def dialogues(self) -> List[DialogueConfiguration]:
        return list(self._dialogues.values())

    def to_json(self) -> str:
        document = RoutingDocument(intents=self.intents, dialogues=self.dialogues)
        return json.dumps(document.model_dump(), indent=2)
