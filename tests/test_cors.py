import logging

from app.cors import OriginNotAllowed, OriginPolicy
from config.settings import Settings

import pytest


PREFLIGHT = {"Access-Control-Request-Method": "GET"}


def test_no_origin_is_allowed(client):
    r = client.get("/api/test")
    assert r.status_code == 200
    assert "access-control-allow-origin" not in r.headers


def test_allowed_origin_gets_credentialed_headers(client):
    r = client.get("/api/config", headers={"Origin": "http://localhost:3000"})
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert r.headers["access-control-allow-credentials"] == "true"


def test_production_origin_without_trailing_slash(client):
    r = client.get("/", headers={"Origin": "https://reaxapp.vercel.app"})
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "https://reaxapp.vercel.app"


def test_frontend_url_origin_is_allowed(make_client):
    client = make_client(frontend_url="https://reax.example.com/")
    r = client.get("/okok", headers={"Origin": "https://reax.example.com"})
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "https://reax.example.com"


def test_unknown_origin_rejected_outside_development(client, caplog):
    caplog.set_level(logging.INFO, logger="reax")
    r = client.get("/okok", headers={"Origin": "https://evil.example.com"})
    assert r.status_code == 500
    data = r.json()
    assert data["error"] == "Internal Server Error"
    assert data["message"] == "Something went wrong"
    assert "Blocked origin: https://evil.example.com" in caplog.text


def test_unset_environment_is_strict(make_client):
    r = make_client(environment=None).get("/", headers={"Origin": "https://evil.example.com"})
    assert r.status_code == 500


def test_unknown_origin_allowed_in_development(make_client):
    client = make_client(environment="development")
    r = client.get("/okok", headers={"Origin": "https://evil.example.com"})
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "https://evil.example.com"
    assert r.headers["access-control-allow-credentials"] == "true"


def test_preflight_for_allowed_origin(client):
    r = client.options(
        "/api/config",
        headers={"Origin": "http://localhost:3000", **PREFLIGHT, "Access-Control-Request-Headers": "Content-Type"},
    )
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert "DELETE" in r.headers["access-control-allow-methods"]
    assert "authorization" in r.headers["access-control-allow-headers"].lower()


def test_preflight_for_unknown_origin_is_rejected(client):
    r = client.options("/api/config", headers={"Origin": "https://evil.example.com", **PREFLIGHT})
    assert r.status_code == 500


def test_policy_evaluation():
    policy = OriginPolicy(Settings(environment="production"))
    assert policy.evaluate(None)
    assert policy.evaluate("")
    assert policy.evaluate("http://localhost:5000")
    assert not policy.evaluate("http://localhost:8080")
    with pytest.raises(OriginNotAllowed) as excinfo:
        policy.check("http://localhost:8080")
    assert excinfo.value.origin == "http://localhost:8080"
    assert not hasattr(excinfo.value, "status_code")


def test_policy_permissive_in_development():
    policy = OriginPolicy(Settings(environment="development"))
    assert policy.evaluate("http://anything.test")
