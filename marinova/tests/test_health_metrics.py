"""Tests for health probes and the metrics endpoint."""

from marinova.core.metrics import METRICS, credit_charges_total, normalize_path


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_health_reports_memory_store(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "OK"
    assert body["store"] == "memory"
    assert body["computed_at"].endswith("Z")


def test_health_reports_unreachable_database(client, monkeypatch):
    from marinova.api import health

    monkeypatch.setattr(health, "get_database_url", lambda: "postgresql://u:p@db:5432/marinova")
    monkeypatch.setattr(health, "check_connection", lambda: False)
    resp = client.get("/api/health")
    assert resp.status_code == 503
    assert resp.json()["db"] == {"connected": False}


def test_charges_show_up_in_metrics(client, make_ledger):
    make_ledger()
    client.post("/api/usage/track", json={"feature": "chat"}, headers={"X-User-Id": "user-1"})
    assert credit_charges_total.value({"feature": "chat", "plan": "free"}) == 1

    text = client.get("/metrics").text
    assert 'credit_charges_total{feature="chat",plan="free"} 1.0' in text
    assert 'http_requests_total{method="POST",path="/api/usage/track",status="200"}' in text


def test_rejections_are_counted(client, make_ledger):
    make_ledger(usage_credits=0)
    client.post("/api/usage/track", json={"feature": "chat"}, headers={"X-User-Id": "user-1"})
    text = METRICS.export_prometheus()
    assert 'credit_rejections_total{feature="chat",plan="free",reason="insufficient_credits"} 1.0' in text


def test_normalize_path_collapses_ids():
    assert normalize_path("/api/users/123/profile") == "/api/users/:id/profile"
