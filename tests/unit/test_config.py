"""
Unit tests for Config loading.

Config is class-level state; every test reloads it from a patched
environment and the fixture reloads it again from the real environment
afterwards.
"""

import os

import pytest

from progression.core.config.config import Config, Environment
from progression.core.database.service import DatabaseSettings


@pytest.fixture
def env():
    """Patch environment variables for one test, then restore and reload."""
    saved = dict(os.environ)

    def _set(**values):
        for key, value in values.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        Config.load()

    yield _set

    os.environ.clear()
    os.environ.update(saved)
    Config.load()


class TestStoreUrls:
    def test_progress_url_falls_back_to_database_url(self, env):
        env(
            DATABASE_URL="postgresql+asyncpg://app@db/progress",
            PROGRESS_DATABASE_URL=None,
            ACHIEVEMENT_DATABASE_URL=None,
        )

        assert Config.PROGRESS_DATABASE_URL == "postgresql+asyncpg://app@db/progress"
        assert Config.ACHIEVEMENT_DATABASE_URL == Config.PROGRESS_DATABASE_URL

    def test_separate_stores(self, env):
        env(
            PROGRESS_DATABASE_URL="postgresql+asyncpg://app@db/progress",
            ACHIEVEMENT_DATABASE_URL="postgresql+asyncpg://app@db/achievements",
        )

        summary = Config.get_config_summary()

        assert summary["separate_stores"] is True
        assert summary["progress_store_scheme"] == "postgresql+asyncpg"

    def test_default_is_local_sqlite(self, env):
        env(DATABASE_URL=None, PROGRESS_DATABASE_URL=None, ACHIEVEMENT_DATABASE_URL=None)

        assert Config.PROGRESS_DATABASE_URL.startswith("sqlite+aiosqlite://")


class TestParsing:
    def test_valid_values(self, env):
        env(
            XP_MAX_CONFLICT_RETRIES="40",
            STORE_CALL_TIMEOUT_SECONDS="2.5",
            ACHIEVEMENT_EVALUATION_TIMEOUT_SECONDS="12",
            DATABASE_ECHO="yes",
        )

        assert Config.XP_MAX_CONFLICT_RETRIES == 40
        assert Config.STORE_CALL_TIMEOUT_SECONDS == 2.5
        assert Config.ACHIEVEMENT_EVALUATION_TIMEOUT_SECONDS == 12.0
        assert Config.DATABASE_ECHO is True

    @pytest.mark.parametrize("raw", ["many", "0", "100000"])
    def test_invalid_int_falls_back_to_default(self, env, raw):
        env(XP_MAX_CONFLICT_RETRIES=raw)

        assert Config.XP_MAX_CONFLICT_RETRIES == 25
        assert "XP_MAX_CONFLICT_RETRIES" in Config.get_metrics().validation_errors

    def test_invalid_float_falls_back_to_default(self, env):
        env(STORE_CALL_TIMEOUT_SECONDS="soon")

        assert Config.STORE_CALL_TIMEOUT_SECONDS == 5.0

    def test_invalid_bool_falls_back_to_default(self, env):
        env(DATABASE_ECHO="sometimes")

        assert Config.DATABASE_ECHO is False

    def test_log_json_is_tristate(self, env):
        env(LOG_JSON=None)
        assert Config.LOG_JSON is None

        env(LOG_JSON="false")
        assert Config.LOG_JSON is False


class TestEnvironment:
    @pytest.mark.parametrize("value", ["testing", "test", "TESTING"])
    def test_is_testing(self, env, value):
        env(ENVIRONMENT=value)

        assert Config.is_testing()
        assert not Config.is_production()

    def test_environment_from_string(self):
        assert Environment.from_string("production") is Environment.PRODUCTION

    def test_production_rejects_sqlite(self, env):
        env(ENVIRONMENT="production", PROGRESS_DATABASE_URL="sqlite+aiosqlite:///x.db")

        with pytest.raises(ValueError, match="SQLite"):
            Config.validate(force=True)

    def test_testing_uses_null_pool(self, env):
        env(ENVIRONMENT="testing")

        settings = DatabaseSettings.from_config("sqlite+aiosqlite:///x.db")

        assert settings.use_null_pool is True
        assert settings.is_sqlite
        assert not settings.is_postgres


class TestGet:
    def test_known_and_unknown_keys(self):
        assert Config.get("XP_MAX_CONFLICT_RETRIES") == Config.XP_MAX_CONFLICT_RETRIES
        assert Config.get("NOT_A_SETTING", "fallback") == "fallback"

    def test_private_attributes_are_hidden(self):
        assert Config.get("_metrics", "hidden") == "hidden"
