"""
tests/test_storage.py — Tiered Storage Façade Tests
====================================================

Covers the cache-first / disk-fallback / write-through policy and the
fail-soft contract when the Redis tier is down.
"""

from __future__ import annotations

import json

from conftest import FIXED_NOW, run_async

from guildkeeper.backends.disk import DiskStore
from guildkeeper.services.storage import (
    GAME_STATE_TTL,
    PROMOTION_TTL,
    SESSION_TTL,
    StorageService,
)


class TestStoreRetrieve:
    def test_cache_only_write(self, storage, fake_redis, tmp_path):
        assert run_async(storage.store("k", "v", ttl=30)) is True
        assert fake_redis.strings["k"] == "v"
        assert fake_redis.ttls["k"] == 30
        assert not (tmp_path / "cache" / "k.txt").exists()
        assert run_async(storage.retrieve("k")) == "v"

    def test_persist_writes_both_tiers(self, storage, fake_redis, tmp_path):
        assert run_async(storage.store("k", "v", persist_to_disk=True)) is True
        assert fake_redis.strings["k"] == "v"
        assert (tmp_path / "cache" / "k.txt").read_text(encoding="utf-8") == "v"

    def test_redis_down_falls_back_to_disk(self, storage, fake_redis, tmp_path):
        fake_redis.down = True
        assert run_async(storage.store("k", "v")) is True
        assert (tmp_path / "cache" / "k.txt").exists()
        assert run_async(storage.retrieve("k")) == "v"

    def test_disk_hit_is_promoted(self, storage, disk, fake_redis):
        run_async(disk.write("cache/k.txt", "from-disk"))
        assert run_async(storage.retrieve("k")) == "from-disk"
        assert fake_redis.strings["k"] == "from-disk"
        assert fake_redis.ttls["k"] == PROMOTION_TTL

    def test_missing_everywhere(self, storage):
        assert run_async(storage.retrieve("nothing")) is None

    def test_both_tiers_failing(self, kv, fake_redis, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x", encoding="utf-8")
        service = StorageService(kv, DiskStore(blocker))
        fake_redis.down = True
        assert run_async(service.store("k", "v")) is False
        assert run_async(service.retrieve("k")) is None


class TestRemoveExists:
    def test_remove_clears_both_tiers(self, storage, fake_redis, tmp_path):
        run_async(storage.store("k", "v", persist_to_disk=True))
        assert run_async(storage.remove("k")) is True
        assert "k" not in fake_redis.strings
        assert not (tmp_path / "cache" / "k.txt").exists()
        assert run_async(storage.exists("k")) is False

    def test_exists_checks_disk_after_cache(self, storage, disk):
        run_async(disk.write("cache/k.txt", "v"))
        assert run_async(storage.exists("k")) is True

    def test_remove_with_redis_down_and_nothing_on_disk(self, storage, fake_redis):
        fake_redis.down = True
        assert run_async(storage.remove("nothing")) is False


class TestJson:
    def test_round_trip_from_cache(self, storage):
        payload = {"a": 1, "b": [1, 2], "c": {"d": None}}
        run_async(storage.store_json("doc", payload))
        assert run_async(storage.retrieve_json("doc")) == payload

    def test_round_trip_after_cache_eviction(self, storage, fake_redis):
        payload = {"players": ["1"], "status": "active"}
        run_async(storage.store_json("doc", payload, persist_to_disk=True))
        fake_redis.strings.clear()
        assert run_async(storage.retrieve_json("doc")) == payload

    def test_corrupt_payload_is_none(self, storage, fake_redis):
        fake_redis.strings["doc"] = "{broken"
        assert run_async(storage.retrieve_json("doc")) is None

    def test_unserializable_refused(self, storage, fake_redis):
        assert run_async(storage.store_json("doc", {"x": object()})) is False
        assert "doc" not in fake_redis.strings


class TestDomainHelpers:
    def test_game_state_is_mirrored(self, storage, fake_redis, tmp_path):
        assert run_async(storage.store_game_state("g1", {"gameId": "g1"})) is True
        assert fake_redis.ttls["game:g1:state"] == GAME_STATE_TTL
        assert (tmp_path / "cache" / "game:g1:state.txt").exists()
        assert run_async(storage.retrieve_game_state("g1")) == {"gameId": "g1"}

    def test_sessions_never_touch_disk(self, storage, fake_redis, tmp_path):
        assert run_async(storage.store_user_session("42", {"step": 2})) is True
        assert fake_redis.ttls["session:42"] == SESSION_TTL
        assert not (tmp_path / "cache").exists()
        assert run_async(storage.retrieve_user_session("42")) == {"step": 2}

    def test_sessions_lost_when_redis_down(self, storage, fake_redis):
        fake_redis.down = True
        assert run_async(storage.store_user_session("42", {"step": 2})) is False
        assert run_async(storage.retrieve_user_session("42")) is None


class TestEventLog:
    def test_appends_json_lines_per_day(self, storage, tmp_path):
        run_async(storage.log_event("game", {"action": "create", "gameId": "g1"}))
        run_async(storage.log_event("game", {"action": "start", "gameId": "g1"}))

        path = tmp_path / "logs" / "game" / f"{FIXED_NOW.date().isoformat()}.log"
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert list(first)[0] == "timestamp"
        assert first["timestamp"] == "2024-05-01T12:00:00.000Z"
        assert json.loads(lines[1])["action"] == "start"


class TestBackups:
    def test_save_list_retrieve(self, storage):
        assert run_async(storage.save_backup("game-quiz", {"gameId": "g1"})) is True
        stamps = run_async(storage.list_backups("game-quiz"))
        assert stamps == ["2024-05-01T12-00-00.000Z"]
        assert run_async(storage.retrieve_backup("game-quiz", stamps[0])) == {"gameId": "g1"}

    def test_list_missing_name(self, storage):
        assert run_async(storage.list_backups("never")) == []
