import pytest
from fastapi.testclient import TestClient

from selfgate.api.deps import get_engine
from selfgate.core.engine import EngineConfig, VerificationEngine
from selfgate.main import app
from selfgate.store.shortlinks import ShortLinkResolver
from unittest.mock import MagicMock

client = TestClient(app)


@pytest.fixture
def engine():
    return VerificationEngine(EngineConfig(), MagicMock(), shortlinks=ShortLinkResolver("https://verify.example.com"))


@pytest.fixture(autouse=True)
def overrides(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    yield
    app.dependency_overrides = {}


def test_root_and_health():
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["verifyEndpoint"] == "/api/verify"
    assert client.get("/health").json() == {"status": "ok"}


def test_short_link_redirects(engine):
    target = "https://redirect.self.xyz?selfApp=%7B%7D"
    code = engine.shortlinks.shorten(target).rsplit("/", 1)[-1]

    r = client.get(f"/v/{code}", follow_redirects=False)

    assert r.status_code == 302
    assert r.headers["location"] == target


def test_short_link_miss_is_404():
    r = client.get("/v/00000000", follow_redirects=False)
    assert r.status_code == 404
    assert r.text == "Link not found or expired"


def test_mobile_return_page_escapes_session():
    r = client.get("/callback", params={"session": "<script>x</script>"})
    assert r.status_code == 200
    assert "text/html" in r.headers["content-type"]
    assert "<script>x</script>" not in r.text
    assert "&lt;script&gt;" in r.text


def test_mobile_return_page_without_session():
    r = client.get("/callback")
    assert "Unknown" in r.text
