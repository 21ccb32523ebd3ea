import logging

import pytest

from tile38_exporter.cli import serve

_ENV = (
    "TILE38_ADDR", "TILE38_AUTH", "TILE38_AUTH_FILE", "HTTP_ADDR", "METRICS_NAMESPACE",
    "POOL_MAX_CONNECTIONS", "POOL_TIMEOUT_SEC", "TILE38_TIMEOUT_SEC", "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)


def test_parse_args_defaults():
    args = serve.parse_args([])
    assert args.tile38_addr == ":9851"
    assert args.tile38_auth == ""
    assert args.http_addr == ":8080"
    assert args.namespace == ""
    assert args.pool_size is None
    assert args.log_level is None


def test_parse_args_flags():
    args = serve.parse_args(
        ["--tile38-addr", "10.43.12.45:9851", "--namespace", "svc", "--pool-size", "8", "--log-level", "debug"]
    )
    assert args.tile38_addr == "10.43.12.45:9851"
    assert args.namespace == "svc"
    assert args.pool_size == 8
    assert args.log_level == "DEBUG"


def test_main_runs_uvicorn(monkeypatch):
    calls = {}

    def fake_run(app, **kwargs):
        calls["app"] = app
        calls.update(kwargs)

    monkeypatch.setattr(serve, "configure_root", lambda **kw: None)
    monkeypatch.setattr(serve.uvicorn, "run", fake_run)
    monkeypatch.setenv("HTTP_ADDR", "127.0.0.1:9100")

    serve.main(["--tile38-addr", "tile38:9851"])

    assert calls["host"] == "127.0.0.1"
    assert calls["port"] == 9100
    assert calls["log_level"] == "info"
    assert calls["app"].title == "tile38-exporter"


def test_main_rejects_invalid_config(monkeypatch, capsys):
    monkeypatch.setattr(serve.uvicorn, "run", lambda *a, **kw: pytest.fail("server must not start"))

    with pytest.raises(SystemExit) as ei:
        serve.main(["--namespace", "not-valid"])

    assert ei.value.code == 2
    assert "namespace" in capsys.readouterr().err


@pytest.mark.parametrize("level", ["warn", "nonsense"])
def test_main_rejects_unknown_log_level_from_env(monkeypatch, capsys, level):
    monkeypatch.setattr(serve.uvicorn, "run", lambda *a, **kw: pytest.fail("server must not start"))
    monkeypatch.setenv("LOG_LEVEL", level)

    with pytest.raises(SystemExit) as ei:
        serve.main([])

    assert ei.value.code == 2
    assert "log level" in capsys.readouterr().err


def test_main_passes_lowercase_level_to_uvicorn(monkeypatch):
    calls = {}
    monkeypatch.setattr(serve, "configure_root", lambda **kw: calls.update(root_level=kw["level"]))
    monkeypatch.setattr(serve.uvicorn, "run", lambda app, **kw: calls.update(kw))
    monkeypatch.setenv("LOG_LEVEL", "warning")

    serve.main([])

    assert calls["log_level"] == "warning"
    assert calls["root_level"] == logging.WARNING
