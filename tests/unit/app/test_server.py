import pytest
from fastapi.testclient import TestClient

from fakes import FakeClient
from tile38_exporter.app.server import create_app
from tile38_exporter.core.catalog import METRICS
from tile38_exporter.core.settings import Settings
from tile38_exporter.utils.exceptions import BackendError, ParseError, Tile38ConnectionError


def _serve(fake: FakeClient, **settings):
    app = create_app(Settings(**settings), client=fake)
    return TestClient(app)


def _samples(text: str) -> dict[str, str]:
    out = {}
    for line in text.splitlines():
        if line.startswith("#"):
            continue
        name, value = line.split(" ")
        out[name] = value
    return out


def test_metrics_renders_catalog():
    fake = FakeClient({"ok": True, "stats": {"tile38_pid": 42, "tile38_read_only": False, "go_goroutines": 7}})
    with _serve(fake) as c:
        r = c.get("/metrics")

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/plain")
    assert "version=0.0.4" in r.headers["content-type"]
    samples = _samples(r.text)
    assert samples["tile38_pid"] == "42"
    assert samples["tile38_read_only"] == "0"
    assert samples["go_goroutines"] == "7"
    assert samples["heap_objects"] == "NaN"
    assert list(samples) == [m.key for m in METRICS]
    assert r.text.count("# TYPE ") == len(METRICS)
    assert fake.fetches == 1


def test_metrics_with_namespace():
    fake = FakeClient({"ok": True, "stats": {"tile38_pid": 42}})
    with _serve(fake, NAMESPACE="svc") as c:
        r = c.get("/metrics")

    assert "# HELP svc_tile38_pid The process ID of the server\n" in r.text
    assert "# TYPE svc_tile38_pid gauge\n" in r.text
    assert "\nsvc_tile38_pid 42\n" in r.text
    assert all(name.startswith("svc_") for name in _samples(r.text))


def test_backend_error_returns_500_without_metrics():
    fake = FakeClient(error=BackendError("invalid command"))
    with _serve(fake) as c:
        r = c.get("/metrics")

    assert r.status_code == 500
    assert "invalid command" in r.text
    assert "# HELP" not in r.text
    assert "tile38_pid" not in r.text


@pytest.mark.parametrize("error", [Tile38ConnectionError("Connection refused"), ParseError("bad reply")])
def test_fetch_failures_return_500(error):
    with _serve(FakeClient(error=error)) as c:
        r = c.get("/metrics")
    assert r.status_code == 500
    assert str(error) in r.text


def test_empty_stats_render_nan_everywhere():
    with _serve(FakeClient({"ok": True, "stats": {}})) as c:
        r = c.get("/metrics")

    assert r.status_code == 200
    lines = r.text.splitlines()
    assert len(lines) == 3 * len(METRICS)
    assert set(_samples(r.text).values()) == {"NaN"}


@pytest.mark.parametrize("doc", [{"ok": True}, {"ok": True, "stats": "oops"}])
def test_missing_or_malformed_stats_is_empty(doc):
    with _serve(FakeClient(doc)) as c:
        r = c.get("/metrics")
    assert r.status_code == 200
    assert set(_samples(r.text).values()) == {"NaN"}


def test_successive_scrapes_are_identical():
    fake = FakeClient({"ok": True, "stats": {"tile38_pid": 42, "gc_cpu_fraction": 0.000123}})
    with _serve(fake) as c:
        first = c.get("/metrics").text
        second = c.get("/metrics").text
    assert first == second
    assert fake.fetches == 2


def test_health_live():
    with _serve(FakeClient()) as c:
        r = c.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_health_ready_ok_and_unavailable():
    fake = FakeClient()
    with _serve(fake) as c:
        assert c.get("/health/ready").json() == {"status": "ready"}

        fake.ping_error = Tile38ConnectionError("Connection refused")
        r = c.get("/health/ready")

    assert r.status_code == 503
    assert r.json()["status"] == "unavailable"
    assert "Connection refused" in r.json()["error"]


def test_exporter_self_metrics():
    fake = FakeClient(error=BackendError("invalid command"))
    with _serve(fake) as c:
        c.get("/metrics")
        r = c.get("/exporter/metrics")

    assert r.status_code == 200
    assert "tile38_exporter_scrapes_total 1.0" in r.text
    assert 'tile38_exporter_scrape_errors_total{kind="BackendError"} 1.0' in r.text
    assert "tile38_exporter_scrape_duration_seconds_count 1.0" in r.text
    # self-metrics never leak into the catalog document
    assert "tile38_pid" not in r.text


def test_request_id_is_echoed():
    with _serve(FakeClient()) as c:
        r = c.get("/health", headers={"X-Request-ID": "abc123"})
        generated = c.get("/health")
    assert r.headers["x-request-id"] == "abc123"
    assert generated.headers["x-request-id"]


def test_client_closed_on_shutdown():
    fake = FakeClient()
    with _serve(fake):
        assert fake.closed is False
    assert fake.closed is True
