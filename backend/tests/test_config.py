"""Tests for settings and their derived values."""
from app.core.config import Settings


def test_declared_settings():
    assert set(Settings.model_fields) == {
        "APP_ENV",
        "CORS_ORIGINS",
        "DATABASE_URL",
        "DB_POOL_SIZE",
        "DB_MAX_OVERFLOW",
        "DB_ECHO",
        "LOG_LEVEL",
        "JWT_SECRET",
        "JWT_ALGORITHM",
        "JWT_ACCESS_TOKEN_EXPIRE_MINUTES",
        "SENTRY_DSN",
        "SENTRY_TRACES_SAMPLE_RATE",
        "IMPORT_MAX_FILE_SIZE_MB",
        "IMPORT_ALLOWED_EXTENSIONS",
    }


def test_import_limits_are_derived():
    s = Settings(
        _env_file=None,
        IMPORT_MAX_FILE_SIZE_MB=2,
        IMPORT_ALLOWED_EXTENSIONS=" .CSV, .xlsx ,,",
        CORS_ORIGINS="http://a.test, http://b.test",
    )

    assert s.import_max_file_size_bytes == 2 * 1024 * 1024
    assert s.import_allowed_extensions_list == [".csv", ".xlsx"]
    assert s.cors_origins_list == ["http://a.test", "http://b.test"]
