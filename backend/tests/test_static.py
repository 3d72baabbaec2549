"""
Catalog Backend: Static / API Dispatch Tests
============================================

What:  Which requests become data, diagnostics, assets, or the SPA document.
"""

import pytest

from catalog.static import is_api_path

WIDGET = {"name": "Widget", "image": "http://x/i.png", "price": 9.99}


@pytest.mark.asyncio
async def test_liveness(client):
    response = await client.get("/api/test")
    assert response.status_code == 200
    assert response.json() == {"message": "API is working"}


@pytest.mark.asyncio
async def test_diagnostic_path_with_build(client, frontend_build):
    response = await client.get("/test-path")

    assert response.status_code == 200
    body = response.json()
    assert body["dist_path"] == str(frontend_build.resolve())
    assert body["index_path"] == str(frontend_build.resolve() / "index.html")
    assert body["exists"] is True
    assert body["files"] == ["assets", "index.html"]


@pytest.mark.asyncio
async def test_diagnostic_path_without_build(client):
    body = (await client.get("/test-path")).json()
    assert body["exists"] is False
    assert body["files"] == []


@pytest.mark.asyncio
async def test_static_asset_served_verbatim(client, frontend_build):
    response = await client.get("/assets/app.js")

    assert response.status_code == 200
    assert response.content == (frontend_build / "assets" / "app.js").read_bytes()


@pytest.mark.asyncio
async def test_unmatched_path_is_plain_404_in_development(client, frontend_build):
    response = await client.get("/products/42")

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("text/plain")
    assert "root" not in response.text


@pytest.mark.asyncio
async def test_unmatched_api_path_is_json_404(client):
    response = await client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


@pytest.mark.asyncio
async def test_unmatched_post_is_404_in_development(client, frontend_build):
    response = await client.post("/products/42")

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("text/plain")


def test_only_paths_under_api_prefix_are_api_paths():
    assert is_api_path("/api/products")
    assert is_api_path("/api/")
    assert not is_api_path("/api")
    assert not is_api_path("/apis/products")


class TestProductionFallback:

    @pytest.fixture
    def settings(self, make_settings):
        return make_settings(environment="production")

    @pytest.mark.asyncio
    async def test_client_route_gets_entry_document(self, client, frontend_build):
        response = await client.get("/products/42")

        assert response.status_code == 200
        assert response.text == (frontend_build / "index.html").read_text()

    @pytest.mark.asyncio
    async def test_other_methods_on_client_routes_get_entry_document(self, client, frontend_build):
        response = await client.post("/products/42")

        assert response.status_code == 200
        assert response.text == (frontend_build / "index.html").read_text()

    @pytest.mark.asyncio
    async def test_bare_api_segment_gets_entry_document(self, client, frontend_build):
        response = await client.get("/api")

        assert response.status_code == 200
        assert response.text == (frontend_build / "index.html").read_text()

    @pytest.mark.asyncio
    async def test_assets_still_served(self, client, frontend_build):
        response = await client.get("/assets/app.js")
        assert response.text == "console.log('catalog');"

    @pytest.mark.asyncio
    async def test_api_paths_never_fall_back(self, client, frontend_build):
        response = await client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    @pytest.mark.asyncio
    async def test_api_routes_still_answer(self, client, frontend_build):
        created = await client.post("/api/products", json=WIDGET)
        assert created.status_code == 201
        assert (await client.get("/api/products/1")).json()["name"] == "Widget"

    @pytest.mark.asyncio
    async def test_missing_build_is_404_message(self, client):
        response = await client.get("/products/42")

        assert response.status_code == 404
        assert response.text == "Frontend build not found"
