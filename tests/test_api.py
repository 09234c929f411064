from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from shortlink_app.api.v1.redirect import detect_device
from shortlink_app.config import settings

IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


def create_link(client: TestClient, **overrides) -> dict:
    payload = {"user_id": "user-1", "long_link": "https://www.github.com/"}
    payload.update(overrides)
    response = client.post("/api/v1/links/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def code_of(link: dict) -> str:
    return link["short_link"].rsplit("/", 1)[-1]


class TestLinkEndpoints:
    """Test link administration over HTTP"""

    def test_create_link(self, client: TestClient):
        data = create_link(client, title="GitHub", tags=["dev", "code"])

        assert data["long_link"] == "https://www.github.com/"
        assert data["status"] == "active"
        assert data["short_link"].startswith(f"{settings.short_link_domain}/s/")
        assert data["short_url"] == f"{settings.public_scheme}://{data['short_link']}"
        assert len(code_of(data)) == settings.short_code_length
        assert data["tags"] == ["dev", "code"]

    def test_create_with_custom_code_conflict(self, client: TestClient):
        create_link(client, short_code="mine")

        response = client.post(
            "/api/v1/links/",
            json={"user_id": "user-2", "long_link": "https://x.example/", "short_code": "mine"},
        )

        assert response.status_code == 409

    def test_create_empty_long_link(self, client: TestClient):
        response = client.post("/api/v1/links/", json={"user_id": "u", "long_link": ""})
        assert response.status_code == 422

    def test_get_link(self, client: TestClient):
        created = create_link(client)

        response = client.get(f"/api/v1/links/{created['id']}")

        assert response.status_code == 200
        assert response.json()["short_link"] == created["short_link"]

    def test_get_nonexistent_link(self, client: TestClient):
        response = client.get("/api/v1/links/nonexistent")
        assert response.status_code == 404

    def test_patch_link_keeps_unset_fields(self, client: TestClient):
        created = create_link(client, title="Keep", description="Old")

        response = client.patch(f"/api/v1/links/{created['id']}", json={"description": "New"})

        assert response.status_code == 200
        assert response.json()["title"] == "Keep"
        assert response.json()["description"] == "New"

    def test_patch_code_conflict(self, client: TestClient):
        create_link(client, short_code="first")
        second = create_link(client, short_code="second")

        response = client.patch(f"/api/v1/links/{second['id']}", json={"short_code": "first"})

        assert response.status_code == 409

    def test_list_links_with_clicks(self, client: TestClient):
        created = create_link(client)
        client.get(f"/s/{code_of(created)}", follow_redirects=False)

        response = client.get("/api/v1/links/")

        assert response.status_code == 200
        rows = response.json()
        assert len(rows) == 1
        assert rows[0]["clicks"] == 1

    def test_delete_refused_while_clicks_exist(self, client: TestClient):
        created = create_link(client)
        client.get(f"/s/{code_of(created)}", follow_redirects=False)

        response = client.delete(f"/api/v1/links/{created['id']}")
        assert response.status_code == 409

        response = client.delete(f"/api/v1/links/{created['id']}/activities")
        assert response.status_code == 200
        assert response.json() == {"deleted": 1}

        response = client.delete(f"/api/v1/links/{created['id']}")
        assert response.status_code == 204

        response = client.get(f"/s/{code_of(created)}", follow_redirects=False)
        assert response.headers["location"] == settings.landing_path

    def test_delete_unknown_link(self, client: TestClient):
        assert client.delete("/api/v1/links/missing").status_code == 404


class TestRedirectEndpoint:

    def test_redirect_active_link(self, client: TestClient, activity_count):
        created = create_link(client)

        response = client.get(f"/s/{code_of(created)}", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "https://www.github.com/"
        assert activity_count(created["id"]) == 1

    def test_redirect_frozen_link(self, client: TestClient, activity_count):
        created = create_link(client)
        response = client.put(f"/api/v1/links/{created['id']}/status", json={"status": "frozen"})
        assert response.json()["status"] == "frozen"

        response = client.get(f"/s/{code_of(created)}", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == settings.frozen_path
        assert activity_count() == 0

    def test_redirect_unknown_code(self, client: TestClient, activity_count):
        response = client.get("/s/nonexistent", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == settings.landing_path
        assert activity_count() == 0

    def test_legacy_route(self, client: TestClient):
        created = create_link(client)

        response = client.get(f"/{code_of(created)}", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "https://www.github.com/"

    def test_click_metadata_captured(self, client: TestClient):
        created = create_link(client)

        client.get(
            f"/s/{code_of(created)}",
            follow_redirects=False,
            headers={
                "user-agent": IPHONE_UA,
                "referer": "https://twitter.com/some/post",
                "x-forwarded-for": "203.0.113.9, 10.0.0.1",
                "x-visitor-fingerprint": "fp-42",
            },
        )

        page = client.get(f"/api/v1/links/{created['id']}/activities").json()
        assert page["total"] == 1
        activity = page["items"][0]
        assert activity["ip"] == "203.0.113.9"
        assert activity["device"] == "mobile"
        assert activity["origin"] == "https://twitter.com/some/post"
        assert activity["fingerprint"] == "fp-42"

    def test_missing_referer_is_direct(self, client: TestClient):
        created = create_link(client)

        client.get(f"/s/{code_of(created)}", follow_redirects=False)

        page = client.get(f"/api/v1/links/{created['id']}/activities").json()
        assert page["items"][0]["origin"] == "direct"
        assert page["items"][0]["fingerprint"] is None


class TestAnalyticsEndpoints:

    def test_analytics_after_clicks(self, client: TestClient):
        created = create_link(client)
        code = code_of(created)
        client.get(f"/s/{code}", follow_redirects=False, headers={"x-visitor-fingerprint": "a"})
        client.get(f"/s/{code}", follow_redirects=False, headers={"x-visitor-fingerprint": "a"})
        client.get(f"/s/{code}", follow_redirects=False, headers={"user-agent": IPHONE_UA})
        base = f"/api/v1/links/{created['id']}"

        assert client.get(f"{base}/clicks").json() == 3

        trend = client.get(f"{base}/analytics/trend", params={"days": 7}).json()
        assert len(trend) == 7
        assert trend[-1]["clicks"] == 3

        devices = client.get(f"{base}/analytics/devices").json()
        assert devices == [{"name": "desktop", "value": 67}, {"name": "mobile", "value": 33}]

        referrers = client.get(f"{base}/analytics/referrers").json()
        assert referrers == [{"source": "direct", "clicks": 3, "percentage": 100}]

        assert client.get(f"{base}/analytics/unique-visitors").json() == {"unique_visitors": 1}

        totals = client.get(f"{base}/analytics/totals").json()
        assert totals == {"last_day": 3, "last_week": 3, "all_time": 3}

        summary = client.get(f"{base}/analytics").json()
        assert summary["total_clicks"] == 3
        assert len(summary["daily_clicks"]) == 30

    def test_analytics_unknown_link(self, client: TestClient):
        assert client.get("/api/v1/links/missing/analytics/totals").status_code == 404

    def test_global_stats(self, client: TestClient):
        first = create_link(client)
        create_link(client)
        client.get(f"/s/{code_of(first)}", follow_redirects=False)

        response = client.get("/api/v1/stats")

        assert response.json() == {"links_count": 2, "clicks_count": 1}


class TestServiceEndpoints:

    def test_health(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_frozen_page(self, client: TestClient):
        response = client.get(settings.frozen_path)
        assert response.status_code == 200
        assert "unavailable" in response.json()["message"]


class TestStorageUnavailable:
    """A datastore that stops answering turns into a retryable 503"""

    @staticmethod
    def cut_connection(db_session, monkeypatch):
        def unreachable(*args, **kwargs):
            raise OperationalError("SELECT links", {}, Exception("database is locked"))

        monkeypatch.setattr(db_session, "query", unreachable)
        monkeypatch.setattr(db_session, "get", unreachable)

    def test_redirect_returns_503_with_retry_after(self, client: TestClient, db_session, monkeypatch):
        self.cut_connection(db_session, monkeypatch)

        response = client.get("/s/abc123", follow_redirects=False)

        assert response.status_code == 503
        assert response.headers["retry-after"] == "1"

    def test_admin_endpoints_return_503(self, client: TestClient, db_session, monkeypatch):
        created = create_link(client)
        self.cut_connection(db_session, monkeypatch)

        assert client.get("/api/v1/links/").status_code == 503
        response = client.get(f"/api/v1/links/{created['id']}/analytics")
        assert response.status_code == 503
        assert "Retry-After" in response.headers


class TestDetectDevice:

    def test_classes(self):
        assert detect_device(IPHONE_UA) == "mobile"
        assert detect_device("Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X)") == "tablet"
        assert detect_device("Mozilla/5.0 (Linux; Android 14; SM-X710)") == "tablet"
        assert detect_device("Mozilla/5.0 (Linux; Android 14; Pixel 8) Mobile Safari") == "mobile"
        assert detect_device("Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0") == "desktop"
        assert detect_device(None) == "desktop"
