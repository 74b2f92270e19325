import httpx
from fastapi.testclient import TestClient

from app.main import app
from app.services.crawl.base import ConfigurationFault
from app.services.crawl.capability import StaticCapability
from app.services.crawl.fetcher import PageFetcher


START = "https://shop.example/"

PRODUCT_1 = {
    "name": "Running Sneakers",
    "description": "Light & fast",
    "price": 89.9,
    "discountedPrice": 0,
    "imageUrl": "https://shop.example/img/1.jpg",
    "availability": True,
    "variants": [{"type": "Size", "value": "42"}],
}
PRODUCT_2 = {
    "name": "Leather Boots",
    "description": "Classic",
    "price": 150,
    "discountedPrice": 120,
    "imageUrl": "https://shop.example/img/2.jpg",
    "availability": False,
    "variants": [],
}


def _install(monkeypatch, cap, pages):
    """Route the crawl endpoint through a static capability and an in-memory site."""
    from app.api.routers import crawl as crawl_router

    requested = []

    def handler(request):
        url = str(request.url)
        requested.append(url)
        page = pages.get(url)
        if page is None:
            return httpx.Response(404)
        if isinstance(page, tuple):
            return httpx.Response(page[0], text=page[1])
        return httpx.Response(200, text=page)

    def _fake_fetcher():
        return PageFetcher(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    monkeypatch.setattr(crawl_router, "build_capability", lambda: cap)
    monkeypatch.setattr(crawl_router, "make_fetcher", _fake_fetcher)
    return requested


def _shop_pages():
    return {
        START: '<a href="/product/1">1</a><a href="/product/2">2</a><a href="/about">About</a>',
        "https://shop.example/product/1": "<h1>Running Sneakers</h1>",
        "https://shop.example/product/2": "<h1>Leather Boots</h1>",
    }


def _shop_capability():
    return StaticCapability(
        links=["/product/1", "/product/2"],
        products={
            "https://shop.example/product/1": PRODUCT_1,
            "https://shop.example/product/2": PRODUCT_2,
        },
    )


def test_crawl_returns_products(monkeypatch):
    requested = _install(monkeypatch, _shop_capability(), _shop_pages())
    client = TestClient(app)
    resp = client.post("/api/crawl", json={"startUrl": START})
    assert resp.status_code == 200
    data = resp.json()
    assert isinstance(data, list) and len(data) == 2
    assert data[0]["url"] == "https://shop.example/product/1"
    assert data[0]["imageUrl"] == "https://shop.example/img/1.jpg"
    assert data[1]["discountedPrice"] == 120
    assert data[1]["availability"] is False
    assert "https://shop.example/about" not in requested


def test_crawl_xml_output(monkeypatch):
    _install(monkeypatch, _shop_capability(), _shop_pages())
    client = TestClient(app)
    resp = client.post("/api/crawl?format=xml", json={"startUrl": START})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/xml")
    xml = resp.text
    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<catalog>')
    assert xml.count("<product>") == 2
    assert "<description>Light &amp; fast</description>" in xml
    # discountedPrice 0 on the first product is not rendered, 120 on the second is
    assert xml.count("<discounted_price>") == 1
    assert "<discounted_price>120</discounted_price>" in xml


def test_homepage_503_is_server_error(monkeypatch):
    cap = _shop_capability()
    requested = _install(monkeypatch, cap, {START: (503, "maintenance")})
    client = TestClient(app)
    resp = client.post("/api/crawl", json={"startUrl": START})
    assert resp.status_code == 500
    data = resp.json()
    assert data["error"]
    assert "Service Unavailable" in data["error"]
    assert "details" not in data
    assert requested == [START]
    assert cap.calls == []


def test_no_candidates_is_empty_success(monkeypatch):
    _install(monkeypatch, StaticCapability(links=[]), {START: "<html></html>"})
    client = TestClient(app)
    resp = client.post("/api/crawl", json={"startUrl": START})
    assert resp.status_code == 200
    assert resp.json() == []


def test_empty_xml_catalog(monkeypatch):
    _install(monkeypatch, StaticCapability(links=[]), {START: "<html></html>"})
    client = TestClient(app)
    resp = client.post("/api/crawl?format=xml", json={"startUrl": START})
    assert resp.status_code == 200
    assert resp.text == '<?xml version="1.0" encoding="UTF-8"?>\n<catalog>\n</catalog>'


def test_wrong_method_rejected():
    client = TestClient(app)
    resp = client.get("/api/crawl")
    assert resp.status_code == 405
    assert resp.json() == {"error": "Method Not Allowed"}


def test_missing_or_empty_start_url_rejected_without_network(monkeypatch):
    requested = _install(monkeypatch, _shop_capability(), _shop_pages())
    client = TestClient(app)
    for body in ({}, {"startUrl": ""}, {"startUrl": "   "}, {"startUrl": 42}, {"startUrl": "shop.example"}):
        resp = client.post("/api/crawl", json=body)
        assert resp.status_code == 400, body
        assert resp.json()["error"]
    resp = client.post("/api/crawl")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Request body is missing"}
    resp = client.post("/api/crawl", content=b"{not json", headers={"content-type": "application/json"})
    assert resp.status_code == 400
    assert "error" in resp.json()
    assert requested == []


def test_configuration_fault_is_reported_distinctly(monkeypatch):
    from app.api.routers import crawl as crawl_router

    def _no_key():
        raise ConfigurationFault("Missing LLM API key.")

    monkeypatch.setattr(crawl_router, "build_capability", _no_key)
    client = TestClient(app)
    resp = client.post("/api/crawl", json={"startUrl": START})
    assert resp.status_code == 500
    data = resp.json()
    assert data["error"] == "Server configuration error."
    assert "API key" in data["details"]


def test_unexpected_fault_is_internal_error(monkeypatch):
    from app.api.routers import crawl as crawl_router

    class _Broken:
        name = "broken"

        async def discover(self, html, base_url):
            raise RuntimeError("strategy exploded")

    _install(monkeypatch, _shop_capability(), _shop_pages())
    original = crawl_router.build_pipeline

    def _build(settings, capability, **kwargs):
        pipeline = original(settings, capability, **kwargs)
        pipeline.discovery = _Broken()
        return pipeline

    monkeypatch.setattr(crawl_router, "build_pipeline", _build)
    client = TestClient(app)
    resp = client.post("/api/crawl", json={"startUrl": START})
    assert resp.status_code == 500
    data = resp.json()
    assert data["error"] == "An internal server error occurred during the crawl."
    assert data["details"] == "strategy exploded"


def test_catalog_endpoint_renders_posted_products():
    client = TestClient(app)
    products = [dict(PRODUCT_2, url="https://shop.example/product/2")]
    resp = client.post("/api/catalog", json=products)
    assert resp.status_code == 200
    assert "<url>https://shop.example/product/2</url>" in resp.text
    assert "<price>150</price>" in resp.text


def test_catalog_endpoint_rejects_invalid_products():
    client = TestClient(app)
    resp = client.post("/api/catalog", json=[{"name": "no price"}])
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Invalid request")


def test_health():
    client = TestClient(app)
    assert client.get("/health").json() == {"status": "ok"}


def test_non_finite_price_skips_only_that_product(monkeypatch):
    cap = StaticCapability(
        links=["/product/1", "/product/2"],
        products={
            "https://shop.example/product/1": '{"name": "Broken", "description": "", "price": Infinity, '
            '"imageUrl": "", "availability": true, "variants": []}',
            "https://shop.example/product/2": PRODUCT_2,
        },
    )
    _install(monkeypatch, cap, _shop_pages())
    client = TestClient(app)
    resp = client.post("/api/crawl", json={"startUrl": START})
    assert resp.status_code == 200
    data = resp.json()
    assert [p["name"] for p in data] == ["Leather Boots"]
