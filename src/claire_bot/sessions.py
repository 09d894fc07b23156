"""Conversation service shared by the console and HTTP channels."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Sequence

from .config import AppSettings, DEFAULT_INTENT
from .dialogs import ConfigurationError, Dialog, DialogRegistry, TurnContext
from .engine import DialogEngine, DialogStatus, dialog_stack_accessor
from .enquiry import EnquiryFlow, enquiry_state_accessor
from .routing import RoutingTable
from .state import StateAccessor
from .store import ConversationStore, build_store

logger = logging.getLogger(__name__)


class ConversationService:
    """Wires storage, dialogs and routing, and runs one turn per message."""

    def __init__(
        self,
        store: ConversationStore,
        routing: Optional[RoutingTable] = None,
        *,
        default_intent: str = DEFAULT_INTENT,
        dialogs: Sequence[Dialog] = (),
    ) -> None:
        if store is None:
            raise ConfigurationError("ConversationService requires a store")
        self._store = store
        self._routing = routing or RoutingTable.default()
        accessor = StateAccessor(store)
        self._registry = DialogRegistry(
            EnquiryFlow(enquiry_state_accessor(accessor)).dialogs()
        )
        for dialog in dialogs:
            self._registry.add(dialog)
        for dialogue in self._routing.dialogues:
            if dialogue.id not in self._registry:
                raise ConfigurationError(
                    f"Routing table names unregistered dialogue '{dialogue.id}'"
                )
        self._engine = DialogEngine(self._registry, dialog_stack_accessor(accessor))
        self._entry_dialog_id = self._routing.dialogue_for_intent(default_intent)
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def create(cls, settings: AppSettings) -> "ConversationService":
        return cls(
            store=build_store(settings),
            routing=RoutingTable.load(settings.routing_file),
            default_intent=settings.default_intent,
        )

    @property
    def routing(self) -> RoutingTable:
        return self._routing

    def _lock_for(self, conversation_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(conversation_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[conversation_id] = lock
            return lock

    def handle_message(self, conversation_id: str, text: Optional[str]) -> List[str]:
        """Process an inbound message and return the bot's replies."""

        with self._lock_for(conversation_id):
            turn = TurnContext(conversation_id=conversation_id, text=text)
            result = self._engine.run_turn(turn, dialog_id=self._entry_dialog_id)
            ended: set[str] = set()
            while result.status is DialogStatus.COMPLETE and result.ended_dialog_id:
                ended.add(result.ended_dialog_id)
                next_id = self._routing.next_dialogue(result.ended_dialog_id)
                if next_id is None:
                    break
                if next_id in ended:
                    logger.warning(
                        "Not restarting dialogue %s twice in one turn for %s",
                        next_id,
                        conversation_id,
                    )
                    break
                result = self._engine.run_turn(
                    turn,
                    dialog_id=next_id,
                    options=result.result,
                )
            return list(turn.responses)

    def reset(self, conversation_id: str) -> None:
        """Forget everything stored for ``conversation_id``."""

        with self._lock_for(conversation_id):
            self._store.delete(conversation_id)
        logger.info("Reset conversation %s", conversation_id)
