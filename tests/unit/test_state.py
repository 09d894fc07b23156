import unittest

from claire_bot.state import StateAccessor
from claire_bot.store import MemoryStore


class TestStateAccessor(unittest.TestCase):
    def test_get_initialises_absent_slot_once(self) -> None:
        accessor = StateAccessor(MemoryStore())
        calls = []

        def factory():
            calls.append(1)
            return {"count": 0}

        first = accessor.get("c1", "slot", factory)
        second = accessor.get("c1", "slot", factory)

        self.assertEqual(first, {"count": 0})
        self.assertEqual(second, {"count": 0})
        self.assertEqual(len(calls), 1)

    def test_get_without_factory_does_not_write(self) -> None:
        store = MemoryStore()
        accessor = StateAccessor(store)

        self.assertIsNone(accessor.get("c1", "slot"))
        self.assertEqual(store.keys("c1"), [])

    def test_set_overwrites_unconditionally(self) -> None:
        accessor = StateAccessor(MemoryStore())
        accessor.set("c1", "slot", "one")
        accessor.set("c1", "slot", "two")

        self.assertEqual(accessor.get("c1", "slot"), "two")

    def test_slots_are_scoped_per_conversation(self) -> None:
        accessor = StateAccessor(MemoryStore())
        accessor.set("c1", "slot", "one")

        self.assertIsNone(accessor.get("c2", "slot"))

    def test_property_accessor_round_trips_typed_values(self) -> None:
        accessor = StateAccessor(MemoryStore())
        prop = accessor.property("numbers", load=tuple, dump=list)

        self.assertEqual(prop.get("c1", lambda: (1, 2)), (1, 2))
        prop.set("c1", (3,))
        self.assertEqual(prop.get("c1"), (3,))


if __name__ == "__main__":
    unittest.main()
