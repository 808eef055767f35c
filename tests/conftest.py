from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from config.settings import Settings


INDEX_HTML = "<!doctype html><html><body><div id=\"root\"></div></body></html>"


@pytest.fixture
def build_dir(tmp_path):
    root = tmp_path / "build"
    (root / "static" / "js").mkdir(parents=True)
    (root / "index.html").write_text(INDEX_HTML)
    (root / "static" / "js" / "main.js").write_text("console.log('reax');")
    (root / ".env").write_text("SECRET=1")
    return root


@pytest.fixture
def make_settings(build_dir):
    def factory(**overrides) -> Settings:
        overrides.setdefault("static_dir", build_dir)
        overrides.setdefault("environment", "production")
        return Settings(**overrides)

    return factory


@pytest.fixture
def make_client(make_settings):
    def factory(**overrides) -> TestClient:
        return TestClient(create_app(make_settings(**overrides)))

    return factory


@pytest.fixture
def client(make_client):
    return make_client()
