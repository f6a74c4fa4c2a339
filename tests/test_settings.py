import importlib

import pytest

import settings


@pytest.fixture
def reload_settings(monkeypatch):
    yield lambda: importlib.reload(settings)
    monkeypatch.undo()
    importlib.reload(settings)


def test_defaults(reload_settings, monkeypatch):
    for name in (
        "MEMOQUIZ_MAX_RESULTS_PER_PARAGRAPH",
        "MEMOQUIZ_HISTORY_LIMIT",
        "MEMOQUIZ_TICK_SECONDS",
        "MEMOQUIZ_CORS_ORIGINS",
        "MEMOQUIZ_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    s = reload_settings()
    assert s.MAX_RESULTS_PER_PARAGRAPH == 10
    assert s.HISTORY_LIMIT == 10
    assert s.TICK_SECONDS == 1.0
    assert s.CORS_ORIGINS == ["*"]
    assert s.LOG_LEVEL == "INFO"


def test_env_overrides(reload_settings, monkeypatch):
    monkeypatch.setenv("MEMOQUIZ_MAX_RESULTS_PER_PARAGRAPH", "3")
    monkeypatch.setenv("MEMOQUIZ_TICK_SECONDS", "0.5")
    monkeypatch.setenv("MEMOQUIZ_CORS_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("MEMOQUIZ_LOG_LEVEL", "debug")
    s = reload_settings()
    assert s.MAX_RESULTS_PER_PARAGRAPH == 3
    assert s.TICK_SECONDS == 0.5
    assert s.CORS_ORIGINS == ["http://a.test", "http://b.test"]
    assert s.LOG_LEVEL == "DEBUG"


def test_bad_numbers_fall_back(reload_settings, monkeypatch, caplog):
    monkeypatch.setenv("MEMOQUIZ_HISTORY_LIMIT", "lots")
    monkeypatch.setenv("MEMOQUIZ_TICK_SECONDS", "soon")
    with caplog.at_level("WARNING", logger="memoquiz.settings"):
        s = reload_settings()
    assert s.HISTORY_LIMIT == 10
    assert s.TICK_SECONDS == 1.0
    assert "MEMOQUIZ_HISTORY_LIMIT" in caplog.text
