import unittest

from redis.exceptions import ConnectionError as RedisConnectionError

from claire_bot.config import AppSettings
from claire_bot.store import MemoryStore, RedisStore, StorageUnavailable, build_store


class FakeRedis:
    def __init__(self) -> None:
        self.data = {}
        self.sets = {}
        self.expiries = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("connection refused")

    def get(self, key):
        self._check()
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value
        self.expiries[key] = ex

    def sadd(self, key, *members):
        self._check()
        self.sets.setdefault(key, set()).update(members)

    def smembers(self, key):
        self._check()
        return set(self.sets.get(key, set()))

    def expire(self, key, seconds):
        self._check()
        self.expiries[key] = seconds

    def delete(self, *keys):
        self._check()
        for key in keys:
            self.data.pop(key, None)
            self.sets.pop(key, None)


class TestMemoryStore(unittest.TestCase):
    def test_values_are_copied_through_json(self) -> None:
        store = MemoryStore()
        value = {"name": None, "items": [1, 2]}
        store.set("c1", "slot", value)
        value["items"].append(3)

        self.assertEqual(store.get("c1", "slot"), {"name": None, "items": [1, 2]})

    def test_unserialisable_value_is_a_storage_fault(self) -> None:
        store = MemoryStore()
        with self.assertRaises(StorageUnavailable):
            store.set("c1", "slot", object())

    def test_delete_removes_conversation(self) -> None:
        store = MemoryStore()
        store.set("c1", "slot", 1)
        store.set("c2", "slot", 2)
        store.delete("c1")

        self.assertIsNone(store.get("c1", "slot"))
        self.assertEqual(store.get("c2", "slot"), 2)


class TestRedisStore(unittest.TestCase):
    def test_keys_are_prefixed_and_ttl_applied(self) -> None:
        client = FakeRedis()
        store = RedisStore(client=client, prefix="bot", ttl=60)
        store.set("c1", "enquiryState", {"name": "Alice"})

        self.assertEqual(client.data["bot:c1:enquiryState"], '{"name": "Alice"}')
        self.assertEqual(client.expiries["bot:c1:enquiryState"], 60)
        self.assertEqual(store.get("c1", "enquiryState"), {"name": "Alice"})

    def test_missing_key_reads_as_none(self) -> None:
        store = RedisStore(client=FakeRedis())
        self.assertIsNone(store.get("c1", "slot"))

    def test_redis_errors_become_storage_unavailable(self) -> None:
        client = FakeRedis()
        client.fail = True
        store = RedisStore(client=client)

        with self.assertRaises(StorageUnavailable):
            store.get("c1", "slot")
        with self.assertRaises(StorageUnavailable):
            store.set("c1", "slot", 1)
        with self.assertRaises(StorageUnavailable):
            store.delete("c1")

    def test_corrupt_payload_is_a_storage_fault(self) -> None:
        client = FakeRedis()
        client.data["claire:c1:slot"] = "{not json"
        store = RedisStore(client=client)

        with self.assertRaises(StorageUnavailable):
            store.get("c1", "slot")

    def test_delete_only_touches_one_conversation(self) -> None:
        client = FakeRedis()
        store = RedisStore(client=client)
        store.set("c1", "a", 1)
        store.set("c1", "b", 2)
        store.set("c2", "a", 3)
        store.delete("c1")

        self.assertEqual(list(client.data), ["claire:c2:a"])
        self.assertEqual(list(client.sets), ["claire-slots:c2"])

    def test_delete_treats_glob_characters_literally(self) -> None:
        client = FakeRedis()
        store = RedisStore(client=client)
        store.set("alice", "enquiryState", {"name": "Alice"})
        store.set("bob", "enquiryState", {"name": "Bob"})
        store.set("*", "enquiryState", {"name": "Star"})

        store.delete("*")

        self.assertEqual(store.get("alice", "enquiryState"), {"name": "Alice"})
        self.assertEqual(store.get("bob", "enquiryState"), {"name": "Bob"})
        self.assertIsNone(store.get("*", "enquiryState"))

    def test_delete_does_not_reach_nested_conversation_ids(self) -> None:
        client = FakeRedis()
        store = RedisStore(client=client)
        store.set("team", "dialogStack", [])
        store.set("team:a", "dialogStack", [{"dialog_id": "x", "cursor": 0}])

        store.delete("team")

        self.assertIsNone(store.get("team", "dialogStack"))
        self.assertEqual(store.get("team:a", "dialogStack"), [{"dialog_id": "x", "cursor": 0}])

    def test_delete_of_unknown_conversation_is_a_no_op(self) -> None:
        client = FakeRedis()
        store = RedisStore(client=client)
        store.set("c1", "a", 1)

        store.delete("missing")

        self.assertEqual(store.get("c1", "a"), 1)

    def test_slot_index_shares_the_ttl(self) -> None:
        client = FakeRedis()
        RedisStore(client=client, ttl=30).set("c1", "a", 1)

        self.assertEqual(client.sets["claire-slots:c1"], {"a"})
        self.assertEqual(client.expiries["claire-slots:c1"], 30)

    def test_requires_url_or_client(self) -> None:
        with self.assertRaises(ValueError):
            RedisStore()


class TestBuildStore(unittest.TestCase):
    def test_memory_store_without_redis_url(self) -> None:
        self.assertIsInstance(build_store(AppSettings()), MemoryStore)

    def test_redis_store_with_redis_url(self) -> None:
        store = build_store(AppSettings(redis_url="redis://localhost:6379/0"))
        self.assertIsInstance(store, RedisStore)


if __name__ == "__main__":
    unittest.main()
