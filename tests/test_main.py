from __future__ import annotations

import importlib

from fastapi.testclient import TestClient

from stocksage import __version__


def test_healthz_and_cors_preflight(monkeypatch) -> None:
    monkeypatch.setenv("AI_GATEWAY_API_KEY", "test")
    main = importlib.import_module("stocksage.main")

    with TestClient(main.app) as client:
        health = client.get("/healthz")
        preflight = client.options(
            "/api/stock-insight",
            headers={
                "Origin": "https://stocksage.example",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization, content-type",
            },
        )

    assert health.status_code == 200
    assert health.json() == {"status": "ok", "service": "stocksage-insights", "version": __version__}
    assert preflight.status_code == 200
    assert preflight.headers["access-control-allow-origin"] == "*"
