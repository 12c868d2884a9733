from chbridge.core.config import DEFAULT_MAX_UPLOAD_SIZE, Settings, get_settings


def test_defaults(monkeypatch):
    for var in ("MAX_UPLOAD_SIZE", "PORT", "BRIDGE_PORT", "UPLOAD_DIR", "BRIDGE_UPLOAD_DIR"):
        monkeypatch.delenv(var, raising=False)
    s = Settings(_env_file=None)
    assert s.max_upload_size == 10 * 1024 * 1024
    assert s.port == 8080
    assert s.upload_dir == "uploads"
    assert s.max_execution_time == 60


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("MAX_UPLOAD_SIZE", "2048")
    monkeypatch.setenv("PORT", "9999")
    s = Settings(_env_file=None)
    assert s.max_upload_size == 2048
    assert s.port == 9999


def test_prefixed_port_wins(monkeypatch):
    monkeypatch.setenv("PORT", "9999")
    monkeypatch.setenv("BRIDGE_PORT", "7000")
    assert Settings(_env_file=None).port == 7000


def test_invalid_upload_size_falls_back(monkeypatch):
    monkeypatch.setenv("MAX_UPLOAD_SIZE", "ten megs")
    assert Settings(_env_file=None).max_upload_size == DEFAULT_MAX_UPLOAD_SIZE


def test_get_settings_is_cached():
    get_settings.cache_clear()
    assert get_settings() is get_settings()
    get_settings.cache_clear()
