import httpx
import pytest

from shortener.errors import StoreFaultError


@pytest.mark.asyncio
async def test_health(async_client):
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_create_link(async_client):
    response = await async_client.post("/shorturl", json={"url": "https://example.com/a", "validity": 5})
    assert response.status_code == 201
    body = response.json()
    assert len(body["short_code"]) == 6
    assert body["short_url"] == f"http://sho.rt/{body['short_code']}"
    assert body["original_url"] == "https://example.com/a"
    assert body["is_custom"] is False


@pytest.mark.asyncio
async def test_create_custom_link_conflict(async_client):
    data = {"url": "https://example.com/a", "shortcode": "validcode1"}
    first = await async_client.post("/shorturl", json=data)
    second = await async_client.post("/shorturl", json=data)

    assert first.status_code == 201
    assert first.json()["is_custom"] is True
    assert second.status_code == 409
    assert second.json() == {"error": "Custom shortcode already exists"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "data",
    [
        {"url": "not-a-valid-url"},
        {"url": "https://example.com/a", "validity": 0},
        {"url": "https://example.com/a", "shortcode": "ab"},
        {"validity": 5},
        {"url": "https://example.com/a", "validity": "soon"},
    ],
)
async def test_create_link_invalid_input(async_client, data):
    response = await async_client.post("/shorturl", json=data)
    assert response.status_code == 400
    assert "error" in response.json()


@pytest.mark.asyncio
async def test_redirect_records_click(async_client):
    created = await async_client.post("/shorturl", json={"url": "https://example.com/a", "shortcode": "go1234"})
    assert created.status_code == 201

    response = await async_client.get(
        "/go1234", headers={"Referer": "https://news.example"}, follow_redirects=False
    )
    assert response.status_code == 302
    assert response.headers["location"] == "https://example.com/a"

    stats = await async_client.get("/shorturls/go1234")
    assert stats.status_code == 200
    body = stats.json()
    assert body["clicks"] == 1
    assert body["is_expired"] is False
    assert body["click_events"][0]["referrer"] == "https://news.example"
    assert body["click_events"][0]["geo_info"]["country"] == "Unknown"


@pytest.mark.asyncio
async def test_redirect_not_found(async_client):
    response = await async_client.get("/missing", follow_redirects=False)
    assert response.status_code == 404
    assert response.json() == {"error": "Short URL not found"}


@pytest.mark.asyncio
async def test_redirect_expired(async_client, app, memory_store):
    created = await async_client.post(
        "/shorturl", json={"url": "https://example.com/a", "shortcode": "old1", "validity": 1}
    )
    assert created.status_code == 201

    expires_at = memory_store.find_by_code("old1").expires_at
    app.state.service.clock = lambda: expires_at

    response = await async_client.get("/old1", follow_redirects=False)
    assert response.status_code == 410

    stats = await async_client.get("/shorturls/old1")
    assert stats.status_code == 200
    assert stats.json()["is_expired"] is True
    assert stats.json()["clicks"] == 0


@pytest.mark.asyncio
async def test_stats_not_found(async_client):
    response = await async_client.get("/shorturls/missing")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_store_fault_is_500(async_client, memory_store, monkeypatch):
    def broken(code):
        raise StoreFaultError()

    monkeypatch.setattr(memory_store, "find_by_code", broken)
    response = await async_client.get("/shorturls/anything")
    assert response.status_code == 500
    assert response.json() == {"error": "Link store unavailable"}


@pytest.mark.asyncio
async def test_unexpected_error_is_json_500(app, memory_store, monkeypatch, caplog):
    def broken(code):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(memory_store, "find_by_code", broken)
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/shorturls/abcd")

    assert response.status_code == 500
    assert response.json() == {"error": "Server error"}
    assert any(r.levelname == "ERROR" and r.exc_info for r in caplog.records)


@pytest.mark.asyncio
@pytest.mark.parametrize("shortcode", ["", "   "])
async def test_blank_shortcode_generates_code(async_client, shortcode):
    response = await async_client.post(
        "/shorturl", json={"url": "https://example.com/a", "shortcode": shortcode}
    )
    assert response.status_code == 201
    body = response.json()
    assert len(body["short_code"]) == 6
    assert body["is_custom"] is False
