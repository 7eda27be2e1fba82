from __future__ import annotations

import pytest

from mcpr.core.config import ClientConfig, HttpServeConfig


def test_http_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("MCPR_HTTP_HOST", "MCPR_HTTP_PORT", "MCPR_SSE_PING_SECONDS", "MCPR_REQUIRE_SESSION"):
        monkeypatch.delenv(name, raising=False)

    assert HttpServeConfig.from_env() == HttpServeConfig()


def test_http_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MCPR_HTTP_HOST", "0.0.0.0")
    monkeypatch.setenv("MCPR_HTTP_PORT", "9100")
    monkeypatch.setenv("MCPR_SSE_PING_SECONDS", "5")
    monkeypatch.setenv("MCPR_REQUIRE_SESSION", "yes")

    config = HttpServeConfig.from_env()

    assert (config.host, config.port, config.sse_ping_seconds, config.require_session) == ("0.0.0.0", 9100, 5, True)


def test_invalid_numbers_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MCPR_HTTP_PORT", "eighty")
    monkeypatch.setenv("MCPR_CLIENT_TIMEOUT_MS", "soon")

    assert HttpServeConfig.from_env().port == 8000
    assert ClientConfig.from_env().timeout_ms == 30_000
