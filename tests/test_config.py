"""
tests/test_config.py — Configuration Loader Tests
==================================================
"""

from __future__ import annotations

import pytest

from guildkeeper.config import build_redis_url, load_config, load_storage_settings


class TestBuildRedisUrl:
    def test_defaults(self):
        assert build_redis_url() == "redis://localhost:6379/0"

    def test_password_is_quoted(self):
        assert build_redis_url("cache", 6380, "p@ss/word") == "redis://:p%40ss%2Fword@cache:6380/0"

    def test_tls_switches_scheme(self):
        assert build_redis_url("cache", 6379, tls=True).startswith("rediss://")


class TestLoadStorageSettings:
    def test_empty_environment_uses_defaults(self):
        settings = load_storage_settings({})
        assert settings.redis_url == "redis://localhost:6379/0"
        assert settings.redis_enabled is True
        assert settings.disk_path == "/data"

    def test_redis_url_wins_over_parts(self):
        settings = load_storage_settings(
            {"REDIS_URL": "redis://remote:1234/2", "REDIS_HOST": "ignored"}
        )
        assert settings.redis_url == "redis://remote:1234/2"

    def test_url_assembled_from_parts(self):
        settings = load_storage_settings(
            {"REDIS_HOST": "cache", "REDIS_PORT": "6380", "REDIS_PASSWORD": "pw", "REDIS_TLS": "true"}
        )
        assert settings.redis_url == "rediss://:pw@cache:6380/0"

    @pytest.mark.parametrize("raw, expected", [("false", False), ("0", False), ("yes", True), ("", True)])
    def test_redis_enabled_flag(self, raw, expected):
        assert load_storage_settings({"REDIS_ENABLED": raw}).redis_enabled is expected

    def test_disk_path(self):
        assert load_storage_settings({"PERSISTENT_DISK_PATH": "/mnt/vol"}).disk_path == "/mnt/vol"

    def test_bad_port_rejected(self):
        with pytest.raises(ValueError, match="REDIS_PORT"):
            load_storage_settings({"REDIS_PORT": "not-a-port"})


class TestLoadConfig:
    def test_full_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "community_name: Test Guild\n"
            "bot_prefix: '?'\n"
            "guild_id: 42\n"
            "admin_role_id: 7\n"
            "tournament_channel_id:\n"
            "rate_limit_max: 3\n",
            encoding="utf-8",
        )
        cfg = load_config(path)
        assert cfg.community_name == "Test Guild"
        assert cfg.bot_prefix == "?"
        assert cfg.guild_id == 42
        assert cfg.admin_role_id == 7
        assert cfg.tournament_channel_id is None
        assert cfg.rate_limit_max == 3
        assert cfg.rate_limit_window == 10

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_missing_required_key(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("guild_id: 42\n", encoding="utf-8")
        with pytest.raises(KeyError):
            load_config(path)
