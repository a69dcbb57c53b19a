"""
Tests for the FastAPI surface.

The app runs inside TestClient's context manager so the lifespan wires the
test database, settings, the keyword classifier and a fake HTTP transport
into app.state.
"""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from newsreel.main import create_app
from newsreel.schemas import PublishedArticle
from newsreel.tools.classifier import MockClassifier

FEED_URL = "https://wire.example.com/rss"
QUAKE_BODY = " ".join(["Rescue crews searched collapsed buildings along the coast after the quake."] * 5)

FEED = f"""<?xml version="1.0"?><rss version="2.0"><channel><title>Wire</title>
<link>https://wire.example.com/</link><description>d</description>
<item><title>Earthquake hits coastal city</title><link>https://wire.example.com/quake</link>
<description>{QUAKE_BODY}</description></item>
<item><title>Ten cozy soup recipes</title><link>https://wire.example.com/soup</link>
<description>{"Warm bowls for cold evenings with bread on the side. " * 5}</description></item>
</channel></rss>"""


def handler(request: httpx.Request) -> httpx.Response:
    if str(request.url) == FEED_URL:
        return httpx.Response(200, text=FEED)
    return httpx.Response(404, text="not found")


@pytest.fixture
def client(db, settings):
    app = create_app(
        db=db, settings=settings, classifier=MockClassifier(),
        transport=httpx.MockTransport(handler),
    )
    with TestClient(app) as test_client:
        yield test_client


def add_wire(client):
    response = client.post("/api/sources", json={"name": "Wire", "url": FEED_URL, "source_type": "rss"})
    assert response.status_code == 201
    return response.json()


class TestHealthRoutes:

    def test_root(self, client):
        assert client.get("/").json()["service"] == "Newsreel API"

    def test_health_reports_config(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["articles"] == 0
        assert body["config"]["retention_days"] == 7


class TestSourceRoutes:

    def test_add_and_get(self, client):
        created = add_wire(client)
        assert created["health_score"] == 100
        assert created["added_by"] == "manual"

        fetched = client.get(f"/api/sources/{created['id']}").json()
        assert fetched["url"] == FEED_URL

    def test_add_missing_fields_is_400(self, client):
        response = client.post("/api/sources", json={"name": "No URL"})
        assert response.status_code == 400

    def test_add_bad_kind_is_400(self, client):
        response = client.post("/api/sources", json={"name": "X", "url": "https://x.com", "source_type": "gopher"})
        assert response.status_code == 400

    def test_duplicate_url_is_400(self, client):
        add_wire(client)
        response = client.post("/api/sources", json={"name": "Again", "url": FEED_URL, "source_type": "rss"})
        assert response.status_code == 400

    def test_update_and_delete(self, client):
        created = add_wire(client)
        updated = client.put(f"/api/sources/{created['id']}", json={"credibility_score": 90}).json()
        assert updated["credibility_score"] == 90
        assert updated["name"] == "Wire"

        assert client.delete(f"/api/sources/{created['id']}").status_code == 200
        assert client.get(f"/api/sources/{created['id']}").status_code == 404

    def test_null_for_required_field_is_400(self, client):
        created = add_wire(client)
        for body in ({"name": None}, {"url": None}, {"credibility_score": None}):
            response = client.put(f"/api/sources/{created['id']}", json=body)
            assert response.status_code == 400

        fetched = client.get(f"/api/sources/{created['id']}").json()
        assert fetched["name"] == "Wire"
        assert fetched["credibility_score"] == created["credibility_score"]

    def test_unknown_source_is_404(self, client):
        assert client.get("/api/sources/999").status_code == 404
        assert client.put("/api/sources/999", json={"name": "x"}).status_code == 404
        assert client.delete("/api/sources/999").status_code == 404

    def test_seed_then_list(self, client):
        seeded = client.post("/api/sources/seed").json()
        assert seeded["added"] > 0

        listing = client.get("/api/sources", params={"active": True}).json()
        assert listing["count"] == seeded["added"]

    def test_maintenance_routes(self, client):
        add_wire(client)
        assert client.post("/api/sources/health-check").json() == {
            "checked": 1, "disabled": [], "degraded": [], "promoted": [],
        }
        assert client.post("/api/sources/retry-disabled").json() == {"checked": 0, "re_enabled": []}
        assert client.post("/api/sources/cleanup").json() == {"removed": []}

    def test_stats(self, client):
        add_wire(client)
        body = client.get("/api/sources/stats").json()
        assert body["stats"]["total"] == 1
        assert body["distribution"]["excellent"] == 1


class TestNewsRoutes:

    def test_scrape_stores_breaking_items(self, client, registry):
        add_wire(client)
        stats = client.post("/api/scrape").json()

        assert stats["collected"] == 2
        assert stats["processed"] == 1
        assert stats["rejected"] == 1
        assert stats["saved"] == 1

        listing = client.get("/api/news").json()
        assert listing["count"] == 1
        article = listing["articles"][0]
        assert article["headline"] == "Earthquake hits coastal city"

        assert client.get(f"/api/news/{article['id']}").json()["source_url"] == "https://wire.example.com/quake"
        assert registry.get_by_url(FEED_URL).success_count == 1

    def test_scrape_twice_skips_stored(self, client):
        add_wire(client)
        client.post("/api/scrape")
        stats = client.post("/api/scrape").json()
        assert stats["skipped"] == 1
        assert stats["saved"] == 0

    def test_unknown_article_is_404(self, client):
        assert client.get("/api/news/42").status_code == 404

    def test_clear_old_and_clear_all(self, client, db):
        now = datetime.now(timezone.utc)
        db.insert_article(PublishedArticle(headline="Old", source_url="https://a.com/o",
                                           published_at=now - timedelta(days=10)))
        db.insert_article(PublishedArticle(headline="New", source_url="https://a.com/n", published_at=now))

        assert client.post("/api/news/clear-old").json() == {"deleted": 1, "days": 7}
        assert client.delete("/api/news").json() == {"deleted": 1}
        assert client.get("/api/news").json()["count"] == 0
