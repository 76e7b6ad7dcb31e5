from linkwatch.defaults.config import DEFAULT_SYNC_CONFIG, FALLBACK_API_BASE, config_from_env, resolve_api_base


def test_resolve_api_base_appends_api_suffix() -> None:
    assert resolve_api_base("http://host:3000") == "http://host:3000/api"
    assert resolve_api_base("http://host:3000/") == "http://host:3000/api"
    assert resolve_api_base("http://host:3000/api/") == "http://host:3000/api"


def test_resolve_api_base_falls_back_when_unset(monkeypatch) -> None:
    monkeypatch.delenv("LINKWATCH_API_URL", raising=False)
    assert resolve_api_base() == FALLBACK_API_BASE
    assert resolve_api_base("") == FALLBACK_API_BASE


def test_config_from_env_reads_overrides(monkeypatch) -> None:
    monkeypatch.setenv("LINKWATCH_API_URL", "https://backend.example")
    monkeypatch.setenv("LINKWATCH_API_TOKEN", "tok")
    monkeypatch.setenv("LINKWATCH_POLL_ACTIVE", "1.5")
    monkeypatch.setenv("LINKWATCH_QR_REFRESH", "50")
    monkeypatch.setenv("LINKWATCH_RENDER_QR", "1")

    config = config_from_env()

    assert config["api_base"] == "https://backend.example/api"
    assert config["api_token"] == "tok"
    assert config["poll_interval_active"] == 1.5
    assert config["qr_refresh_interval"] == 50.0
    assert config["render_qr_locally"] is True
    assert "poll_interval_idle" not in config


def test_default_cadence_values() -> None:
    assert DEFAULT_SYNC_CONFIG["poll_interval_active"] == 2.0
    assert DEFAULT_SYNC_CONFIG["poll_interval_idle"] == 30.0
    assert DEFAULT_SYNC_CONFIG["push_retry_delay"] == 2.0
    assert DEFAULT_SYNC_CONFIG["qr_refresh_interval"] == 55.0
    assert DEFAULT_SYNC_CONFIG["hint_interval"] == 5.0
