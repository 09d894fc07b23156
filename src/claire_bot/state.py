"""Typed access to named slots of per-conversation state."""

from __future__ import annotations

from typing import Any, Callable, Generic, Optional, TypeVar

from .store import ConversationStore

T = TypeVar("T")


class StateAccessor:
    """Get/set access to named state slots backed by a conversation store."""

    def __init__(self, store: ConversationStore) -> None:
        self._store = store

    def get(
        self,
        conversation_id: str,
        slot_key: str,
        default_factory: Optional[Callable[[], Any]] = None,
    ) -> Any:
        """Return the stored slot value, initialising it when absent.

        When the slot is absent and ``default_factory`` is provided, the
        factory result is stored and returned. Without a factory an absent
        slot reads as ``None`` and nothing is written.
        """

        value = self._store.get(conversation_id, slot_key)
        if value is None and default_factory is not None:
            value = default_factory()
            self._store.set(conversation_id, slot_key, value)
        return value

    def set(self, conversation_id: str, slot_key: str, value: Any) -> None:
        self._store.set(conversation_id, slot_key, value)

    def property(
        self,
        slot_key: str,
        *,
        load: Callable[[Any], T],
        dump: Callable[[T], Any],
    ) -> "StatePropertyAccessor[T]":
        return StatePropertyAccessor(self, slot_key, load=load, dump=dump)


class StatePropertyAccessor(Generic[T]):
    """A :class:`StateAccessor` bound to one slot and a value type."""

    def __init__(
        self,
        accessor: StateAccessor,
        slot_key: str,
        *,
        load: Callable[[Any], T],
        dump: Callable[[T], Any],
    ) -> None:
        self._accessor = accessor
        self._load = load
        self._dump = dump
        self.slot_key = slot_key

    def get(
        self,
        conversation_id: str,
        default_factory: Optional[Callable[[], T]] = None,
    ) -> Optional[T]:
        factory: Optional[Callable[[], Any]] = None
        if default_factory is not None:

            def _initial() -> Any:
                return self._dump(default_factory())

            factory = _initial

        raw = self._accessor.get(conversation_id, self.slot_key, factory)
        if raw is None:
            return None
        return self._load(raw)

    def set(self, conversation_id: str, value: T) -> None:
        self._accessor.set(conversation_id, self.slot_key, self._dump(value))
