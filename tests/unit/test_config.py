"""
Unit tests for settings loading.
"""

from config import Settings


def test_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = Settings(data_dir=tmp_path)

    assert settings.session_ttl_hours == 4.0
    assert settings.get_database_url() == f"sqlite:///{tmp_path / 'sessions.db'}"
    assert settings.get_timer_overrides() == {"quiz": 60.0, "mock": 72.0, "quick_fire": 10.0}


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("STUDYLOOP_DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("STUDYLOOP_QUIZ_SECONDS_PER_ITEM", "45")
    monkeypatch.setenv("STUDYLOOP_API_KEY", "secret")

    settings = Settings()

    assert settings.get_database_url() == "sqlite:///:memory:"
    assert settings.get_timer_overrides()["quiz"] == 45.0
    assert settings.api_key == "secret"
