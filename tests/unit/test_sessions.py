import unittest

from claire_bot.dialogs import ConfigurationError, End, WaterfallDialog
from claire_bot.enquiry import NAME_PROMPT_TEXT, TOPIC_PROMPT_TEXT
from claire_bot.routing import DialogueConfiguration, IntentConfiguration, RoutingTable
from claire_bot.sessions import ConversationService
from claire_bot.store import MemoryStore

RESPONSE = "Hi Alice, give me a moment while I look for information about Billing"


def _farewell(context):
    context.send("Anything else I can do?")
    return End()


def _chained_routing(next_of_farewell=None):
    return RoutingTable(
        intents=[IntentConfiguration(intent="enquiry", dialogue="enquiryDialog")],
        dialogues=[
            DialogueConfiguration(id="enquiryDialog", next="farewellDialog"),
            DialogueConfiguration(id="farewellDialog", next=next_of_farewell),
        ],
    )


class TestConversationService(unittest.TestCase):
    def test_scenario_through_service(self) -> None:
        service = ConversationService(MemoryStore())

        self.assertEqual(service.handle_message("c1", "hi"), [NAME_PROMPT_TEXT])
        self.assertEqual(
            service.handle_message("c1", "Al"),
            ["Names needs to be at least `3` characters long.", NAME_PROMPT_TEXT],
        )
        self.assertEqual(service.handle_message("c1", "Alice"), [TOPIC_PROMPT_TEXT])
        self.assertEqual(service.handle_message("c1", "Billing"), [RESPONSE])

    def test_next_dialogue_starts_in_same_turn(self) -> None:
        service = ConversationService(
            MemoryStore(),
            _chained_routing(),
            dialogs=[WaterfallDialog("farewellDialog", [_farewell])],
        )
        for text in ["hi", "Alice"]:
            service.handle_message("c1", text)

        self.assertEqual(
            service.handle_message("c1", "Billing"),
            [RESPONSE, "Anything else I can do?"],
        )

    def test_dialogue_cycle_runs_each_dialogue_once_per_turn(self) -> None:
        service = ConversationService(
            MemoryStore(),
            _chained_routing(next_of_farewell="enquiryDialog"),
            dialogs=[WaterfallDialog("farewellDialog", [_farewell])],
        )
        for text in ["hi", "Alice"]:
            service.handle_message("c1", text)

        self.assertEqual(
            service.handle_message("c1", "Billing"),
            [RESPONSE, "Anything else I can do?"],
        )

    def test_routing_to_unregistered_dialogue_fails_fast(self) -> None:
        with self.assertRaises(ConfigurationError):
            ConversationService(MemoryStore(), _chained_routing())

    def test_unknown_default_intent_fails_fast(self) -> None:
        with self.assertRaises(ConfigurationError):
            ConversationService(MemoryStore(), default_intent="weather")

    def test_reset_forgets_conversation(self) -> None:
        store = MemoryStore()
        service = ConversationService(store)
        for text in ["hi", "Alice", "Billing"]:
            service.handle_message("c1", text)

        service.reset("c1")

        self.assertEqual(store.keys("c1"), [])
        self.assertEqual(service.handle_message("c1", "hi"), [NAME_PROMPT_TEXT])


if __name__ == "__main__":
    unittest.main()
