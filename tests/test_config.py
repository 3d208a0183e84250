"""Tests for core/config.py -- SECRET_KEY policy and environment parsing."""

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings

GOOD_KEY = "k" * 32


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SECRET_KEY", "DEBUG", "ALLOWED_ORIGINS", "ALLOWED_HOSTS", "PERSISTENCE", "PAGE_SIZE"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_explicit_key_accepted() -> None:
    settings = Settings(_env_file=None, secret_key=GOOD_KEY)
    assert settings.secret_key == GOOD_KEY
    assert settings.token_expire_seconds == 3600
    assert settings.page_size == 10
    assert settings.persistence == "sql"


def test_missing_key_in_production_refuses_to_start() -> None:
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(_env_file=None)


def test_debug_mode_generates_key() -> None:
    settings = Settings(_env_file=None, debug=True)
    assert len(settings.secret_key) >= 32
    assert Settings(_env_file=None, debug=True).secret_key != settings.secret_key


def test_short_key_rejected_even_in_debug() -> None:
    with pytest.raises(ValidationError, match="at least 32"):
        Settings(_env_file=None, debug=True, secret_key="short")


@pytest.mark.parametrize("field", ["token_expire_seconds", "page_size"])
def test_non_positive_numbers_rejected(field) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, secret_key=GOOD_KEY, **{field: 0})


def test_unknown_persistence_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, secret_key=GOOD_KEY, persistence="mongo")


def test_env_vars_are_read(monkeypatch) -> None:
    monkeypatch.setenv("SECRET_KEY", GOOD_KEY)
    monkeypatch.setenv("PERSISTENCE", "memory")
    monkeypatch.setenv("PAGE_SIZE", "25")
    settings = Settings(_env_file=None)
    assert settings.secret_key == GOOD_KEY
    assert settings.persistence == "memory"
    assert settings.page_size == 25


def test_comma_separated_origins(monkeypatch) -> None:
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example.com, https://b.example.com")
    settings = Settings(_env_file=None, secret_key=GOOD_KEY)
    assert settings.allowed_origins == ["https://a.example.com", "https://b.example.com"]


def test_get_settings_is_cached(monkeypatch) -> None:
    monkeypatch.setenv("SECRET_KEY", GOOD_KEY)
    assert get_settings() is get_settings()
