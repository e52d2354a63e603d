from pathlib import Path

from expense_core.config import Settings


def test_defaults_without_environment():
    settings = Settings.from_env({})
    assert settings.storage == "json"
    assert settings.data_dir == Path("data")
    assert settings.database_url is None
    assert not settings.seed
    assert not settings.is_dev


def test_reads_prefixed_variables():
    settings = Settings.from_env(
        {
            "EXPENSE_TRACKER_ENV": "Development",
            "EXPENSE_TRACKER_STORAGE": "SQL",
            "EXPENSE_TRACKER_DATABASE_URL": "postgresql://localhost/expenses",
            "EXPENSE_TRACKER_ALLOWED_ORIGINS": "http://a.test, ,http://b.test",
            "EXPENSE_TRACKER_SEED": "yes",
            "EXPENSE_TRACKER_LOG_LEVEL": "debug",
        }
    )
    assert settings.is_dev
    assert settings.storage == "sql"
    assert settings.allowed_origins == ["http://a.test", "http://b.test"]
    assert settings.seed
    assert settings.log_level == "DEBUG"


def test_overrides_skip_none():
    settings = Settings.from_env({"EXPENSE_TRACKER_STORAGE": "memory"})
    updated = settings.with_overrides(storage=None, seed=True)
    assert updated.storage == "memory"
    assert updated.seed
