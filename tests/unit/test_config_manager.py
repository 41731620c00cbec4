"""Unit tests for clubfeed.core.config_manager."""

import os

import pytest

from clubfeed.core.config_manager import ConfigManager, ServiceConfig, parse_env_file

pytestmark = pytest.mark.unit


class TestParseEnvFile:
    def test_parses_pairs_comments_and_quotes(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# comment\n"
            "\n"
            "ICAL_URL=https://cal.example.test/a.ics\n"
            'CORS_ORIGIN="https://club.example.test"\n'
            "CLUBFEED_CALENDAR_LABEL='Club'\n"
            "not a pair\n"
        )

        assert parse_env_file(env_file) == {
            "ICAL_URL": "https://cal.example.test/a.ics",
            "CORS_ORIGIN": "https://club.example.test",
            "CLUBFEED_CALENDAR_LABEL": "Club",
        }

    def test_missing_file(self, tmp_path):
        assert parse_env_file(tmp_path / "absent.env") == {}


class TestConfigManager:
    def test_defaults(self, tmp_path):
        config = ConfigManager(tmp_path / ".env").load_full_config()

        assert config == ServiceConfig()
        assert config.ical_url is None
        assert config.news_rss_url is None
        assert config.cors_origin == "*"
        assert config.server_port == 8080
        assert config.cache_ttl_seconds == 600
        assert config.calendar_label == "Laget.se"

    def test_environment_values(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ICAL_URL", "https://cal.example.test/a.ics")
        monkeypatch.setenv("NEWS_RSS_URL", "https://news.example.test/rss")
        monkeypatch.setenv("CORS_ORIGIN", "https://club.example.test")
        monkeypatch.setenv("CLUBFEED_WEB_HOST", "127.0.0.1")
        monkeypatch.setenv("CLUBFEED_WEB_PORT", "9000")
        monkeypatch.setenv("CLUBFEED_CACHE_TTL", "60")
        monkeypatch.setenv("CLUBFEED_LOCAL_TIMEZONE", "Europe/Stockholm")
        monkeypatch.setenv("CLUBFEED_REQUEST_TIMEOUT", "5.5")
        monkeypatch.setenv("CLUBFEED_LOG_LEVEL", "debug")
        monkeypatch.setenv("CLUBFEED_DEBUG", "true")

        config = ConfigManager(tmp_path / ".env").build_config_from_env()

        assert config.ical_url == "https://cal.example.test/a.ics"
        assert config.news_rss_url == "https://news.example.test/rss"
        assert config.cors_origin == "https://club.example.test"
        assert config.server_bind == "127.0.0.1"
        assert config.server_port == 9000
        assert config.cache_ttl_seconds == 60
        assert config.local_timezone == "Europe/Stockholm"
        assert config.request_timeout == 5.5
        assert config.log_level == "DEBUG"
        assert config.debug_logging is True

    def test_server_port_alias(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CLUBFEED_SERVER_PORT", "8181")

        assert ConfigManager(tmp_path / ".env").build_config_from_env().server_port == 8181

    def test_empty_values_count_as_unset(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ICAL_URL", "   ")
        monkeypatch.setenv("CORS_ORIGIN", "")

        config = ConfigManager(tmp_path / ".env").build_config_from_env()

        assert config.ical_url is None
        assert config.cors_origin == "*"

    @pytest.mark.parametrize("raw", ["abc", "0", "-5"])
    def test_invalid_integers_are_ignored(self, monkeypatch, tmp_path, caplog, raw):
        monkeypatch.setenv("CLUBFEED_CACHE_TTL", raw)

        config = ConfigManager(tmp_path / ".env").build_config_from_env()

        assert config.cache_ttl_seconds == 600
        assert "cache_ttl_seconds" in caplog.text

    def test_env_file_does_not_override_environment(self, monkeypatch, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("ICAL_URL=https://file.example.test/a.ics\nNEWS_RSS_URL=https://file.example.test/rss\n")
        monkeypatch.setenv("ICAL_URL", "https://env.example.test/a.ics")

        manager = ConfigManager(env_file)
        loaded = manager.load_env_file()
        config = manager.build_config_from_env()

        assert loaded == ["NEWS_RSS_URL"]
        assert os.environ["NEWS_RSS_URL"] == "https://file.example.test/rss"
        assert config.ical_url == "https://env.example.test/a.ics"
        assert config.news_rss_url == "https://file.example.test/rss"
