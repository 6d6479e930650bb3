"""HTTP-level tests for the portfolio API using Starlette's TestClient."""

from pathlib import Path

import pytest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.testclient import TestClient

from portfolio_cms import api
from portfolio_cms.app_builder import AppBuilder
from portfolio_cms.config import Settings
from portfolio_cms.observability.tracing import trace_request


@pytest.fixture
def client(settings: Settings):
    app = AppBuilder(settings, configure_observability=False).build()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def fuzzy_client(tmp_path: Path):
    settings = Settings(search_strategy="fuzzy", upload_dir=tmp_path / "uploads")
    app = AppBuilder(settings, configure_observability=False).build()
    with TestClient(app) as test_client:
        yield test_client


@pytest.mark.unit
class TestContentEndpoints:
    def test_create_get_list_round(self, client: TestClient):
        created = client.post("/api/add/app", json={"title": "Foo", "description": "bar baz"})
        assert created.status_code == 201
        row_id = created.json()["id"]

        item = client.get(f"/api/app/{row_id}")
        assert item.status_code == 200
        assert item.json()["title"] == "Foo"

        listing = client.get("/api/app")
        assert listing.json() == {
            "items": [
                {
                    "id": row_id,
                    "title": "Foo",
                    "description": "bar baz",
                    "url": None,
                    "image": None,
                    "status": "published",
                }
            ],
            "totalPages": 1,
            "currentPage": 1,
        }

    def test_prefix_search(self, client: TestClient):
        row_id = client.post("/api/add/app", json={"title": "Foo", "description": "bar baz"}).json()["id"]
        client.post("/api/add/app", json={"title": "Other", "description": "nothing"})

        response = client.get("/api/app", params={"q": "ba"})

        assert [item["id"] for item in response.json()["items"]] == [row_id]

    def test_edit_delete_and_status(self, client: TestClient):
        row_id = client.post("/api/add/blog", json={"title": "Hello", "content": "world"}).json()["id"]

        assert client.put(f"/api/edit/blog/{row_id}", json={"title": "Hi", "content": "there"}).json() == {
            "changes": 1
        }
        assert client.patch(f"/api/status/blog/{row_id}", json={"status": "draft"}).json() == {"changes": 1}
        assert client.get("/api/blog").json()["items"] == []
        assert client.get("/api/admin/blog").json()["items"][0]["status"] == "draft"

        assert client.delete(f"/api/delete/blog/{row_id}").json() == {"deleted": 1}
        assert client.get(f"/api/blog/{row_id}").status_code == 404

    def test_update_missing_row_reports_zero(self, client: TestClient):
        assert client.put("/api/edit/app/42", json={"title": "Ghost"}).json() == {"changes": 0}

    def test_project_payload_returned_as_object(self, client: TestClient):
        row_id = client.post(
            "/api/add/project",
            json={"title": "Shop", "data": {"summary": "Storefront", "technologies": ["django"]}},
        ).json()["id"]

        item = client.get(f"/api/project/{row_id}").json()

        assert item["data"]["summary"] == "Storefront"
        assert client.get("/api/project").json()["items"][0]["description"] == "Storefront"

    def test_public_item_hides_drafts(self, client: TestClient):
        row_id = client.post("/api/add/blog", json={"title": "Soon", "content": "wip", "status": "draft"}).json()["id"]

        assert client.get(f"/api/blog/{row_id}").status_code == 404
        admin_item = client.get(f"/api/admin/blog/{row_id}")
        assert admin_item.status_code == 200
        assert admin_item.json()["status"] == "draft"

        client.patch(f"/api/status/blog/{row_id}", json={"status": "published"})
        assert client.get(f"/api/blog/{row_id}").json()["title"] == "Soon"

    def test_all_data_groups_collections(self, client: TestClient):
        project_id = client.post(
            "/api/add/project", json={"title": "Shop", "data": {"summary": "Storefront"}}
        ).json()["id"]
        app_id = client.post("/api/add/app", json={"title": "Foo"}).json()["id"]
        draft_id = client.post("/api/add/blog", json={"title": "Draft", "status": "draft"}).json()["id"]

        public = client.get("/api/data").json()
        assert set(public) == {"projects", "apps", "blog"}
        assert [row["id"] for row in public["projects"]] == [project_id]
        assert public["projects"][0]["data"]["summary"] == "Storefront"
        assert [row["id"] for row in public["apps"]] == [app_id]
        assert public["blog"] == []

        admin = client.get("/api/admin/data").json()
        assert [row["id"] for row in admin["blog"]] == [draft_id]

    def test_admin_page_size(self, client: TestClient):
        for number in range(6):
            client.post("/api/add/app", json={"title": f"App {number}", "status": "draft"})

        page = client.get("/api/admin/app", params={"page": 2}).json()

        assert page["totalPages"] == 2
        assert page["currentPage"] == 2
        assert len(page["items"]) == 1

    def test_reindex(self, client: TestClient):
        client.post("/api/add/app", json={"title": "Foo"})

        response = client.post("/api/admin/reindex")

        assert response.json() == {"rebuilt": ["project", "app", "blog"]}

    def test_fuzzy_strategy_search(self, fuzzy_client: TestClient):
        row_id = fuzzy_client.post("/api/add/app", json={"title": "Foo", "description": "bar baz"}).json()["id"]

        response = fuzzy_client.get("/api/app", params={"q": "ba"})

        assert [item["id"] for item in response.json()["items"]] == [row_id]


@pytest.mark.unit
class TestErrors:
    def test_unknown_collection_is_client_error(self, client: TestClient):
        response = client.get("/api/users")
        assert response.status_code == 400
        assert "users" in response.json()["error"]

        assert client.post("/api/add/users", json={"title": "x"}).status_code == 400

    def test_invalid_payload(self, client: TestClient):
        response = client.post("/api/add/app", json={"description": "no title"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_malformed_json(self, client: TestClient):
        response = client.post(
            "/api/add/app",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400

    def test_invalid_status(self, client: TestClient):
        row_id = client.post("/api/add/app", json={"title": "Foo"}).json()["id"]
        assert client.patch(f"/api/status/app/{row_id}", json={"status": "gone"}).status_code == 400

    def test_non_numeric_page_falls_back_to_first(self, client: TestClient):
        assert client.get("/api/app", params={"page": "abc"}).json()["currentPage"] == 1

    def test_oversized_page_is_clamped(self, client: TestClient):
        client.post("/api/add/app", json={"title": "Foo"})

        response = client.get("/api/app", params={"page": "99999999999999999999"})

        assert response.status_code == 200
        assert response.json()["items"] == []
        assert response.json()["currentPage"] == 1_000_000

        searched = client.get("/api/app", params={"page": "99999999999999999999", "q": "foo"})
        assert searched.status_code == 200
        assert client.get("/api/admin/app", params={"page": "99999999999999999999"}).status_code == 200

    def test_oversized_id_is_client_error(self, client: TestClient):
        huge = 2**64
        assert client.get(f"/api/app/{huge}").status_code == 400
        assert client.put(f"/api/edit/app/{huge}", json={"title": "x"}).status_code == 400
        assert client.delete(f"/api/delete/app/{huge}").json()["error"] == f"Id out of range: {huge}"


@pytest.mark.unit
class TestImageEndpoints:
    def test_upload_list_serve_delete(self, client: TestClient):
        uploaded = client.post("/api/images", params={"filename": "cover.png"}, content=b"\x89PNG")
        assert uploaded.status_code == 201
        path = uploaded.json()["path"]
        assert path.startswith("/uploads/")

        assert client.get("/api/images").json() == {"images": [path]}
        assert client.get(path).content == b"\x89PNG"

        name = path.removeprefix("/uploads/")
        assert client.delete(f"/api/images/{name}").json() == {"deleted": True}
        assert client.get("/api/images").json() == {"images": []}

    def test_upload_requires_filename(self, client: TestClient):
        assert client.post("/api/images", content=b"data").status_code == 400

    def test_traversal_rejected(self, client: TestClient):
        response = client.delete("/api/images/..%2F..%2Fportfolio.db")
        assert response.status_code == 400


@pytest.mark.unit
class TestOperationalEndpoints:
    def test_health_reports_indexes(self, client: TestClient):
        client.post("/api/add/app", json={"title": "Foo"})

        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["search"]["strategy"] == "fts"
        assert body["search"]["indexes"]["app"] == {"rows": 1, "indexed": 1, "consistent": True}
        assert body["schema"]["schema_version"] == 3

    def test_metrics_exposes_prometheus_text(self, client: TestClient):
        client.get("/api/app", params={"q": "foo"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "portfolio_search_latency_seconds" in response.text
        assert "portfolio_requests_total" in response.text

    def test_request_middleware_is_installed(self, client: TestClient):
        dispatchers = [
            middleware.kwargs.get("dispatch")
            for middleware in client.app.user_middleware
            if middleware.cls is BaseHTTPMiddleware
        ]
        assert api.record_request_metrics in dispatchers
        assert trace_request in dispatchers

        client.get("/api/app")
        metrics = client.get("/metrics").text
        assert 'route="list_public"' in metrics


@pytest.mark.unit
class TestSitePages:
    def test_serves_index_and_admin_pages(self, tmp_path: Path):
        site = tmp_path / "site"
        site.mkdir()
        (site / "index.html").write_text("<h1>Portfolio</h1>")
        (site / "admin.html").write_text("<h1>Admin</h1>")
        settings = Settings(upload_dir=tmp_path / "uploads", site_dir=site)

        with TestClient(AppBuilder(settings, configure_observability=False).build()) as client:
            assert client.get("/").text == "<h1>Portfolio</h1>"
            assert client.get("/admin").headers["content-type"].startswith("text/html")

    def test_missing_page_is_404(self, tmp_path: Path):
        settings = Settings(upload_dir=tmp_path / "uploads", site_dir=tmp_path / "empty")

        with TestClient(AppBuilder(settings, configure_observability=False).build()) as client:
            assert client.get("/admin").status_code == 404
