"""App factory, config, health endpoints and housekeeping CLI."""

import json
from datetime import timedelta

import pytest

from api.config import TestingConfig, get_config, parse_duration
from models import Session, User, utcnow


@pytest.mark.parametrize(
    "text, expected",
    [
        ("24h", timedelta(hours=24)),
        ("7d", timedelta(days=7)),
        ("30m", timedelta(minutes=30)),
        ("45s", timedelta(seconds=45)),
        ("3600", timedelta(seconds=3600)),
        (" 2H ", timedelta(hours=2)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "h", "1w", "-1h", "1.5h", "0", "0h", "00d"])
def test_parse_duration_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_get_config_by_name():
    assert get_config("testing") is TestingConfig
    assert get_config("dev").DEBUG is True


def test_root_and_health(client):
    assert client.get("/").get_json()["service"] == "Auth Service"

    res = client.get("/api/v1/health")
    assert res.status_code == 200
    assert res.get_json()["status"] == "ok"

    assert client.get("/api/v1/health/live").get_json()["status"] == "alive"
    assert client.get("/api/v1/health/ready").status_code == 200


def test_detailed_health_reports_failing_dependency(client, app_parts, monkeypatch):
    res = client.get("/api/v1/health/detailed")
    assert res.status_code == 200
    assert res.get_json()["checks"]["database"]["status"] == "healthy"

    def down():
        raise RuntimeError("no broker")

    monkeypatch.setattr(app_parts.transport, "ping", down)
    res = client.get("/api/v1/health/detailed")
    assert res.status_code == 503
    assert res.get_json()["checks"]["transport"]["status"] == "unhealthy"


def test_unknown_route_uses_error_envelope(client):
    res = client.get("/api/v1/nope")
    assert res.status_code == 404
    assert res.get_json()["error"] == "NOT_FOUND"


def test_housekeeping_sweep_command(app, app_parts, transport):
    app.test_client().post("/api/v1/auth/register",
                           json={"email": "a@x.com", "username": "a", "password": "secret123"})
    user = app_parts.storage.get_session().query(User).one()
    app_parts.stores.sessions.create(
        Session(token="dead", user_id=user.id, expires_at=utcnow() - timedelta(seconds=1))
    )

    result = app.test_cli_runner().invoke(args=["housekeeping", "sweep"])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"expiredSessions": 1, "expiredTokens": 0}
    assert transport.messages("auth.sessionsCleanedUp")[0]["expiredSessions"] == 1


def test_housekeeping_stats_command(app, transport):
    result = app.test_cli_runner().invoke(args=["housekeeping", "stats"])

    assert result.exit_code == 0
    assert json.loads(result.stdout)["totalUsers"] == 0
    assert len(transport.messages("auth.statisticsGenerated")) == 1
