import asyncio

import httpx

from app.services.crawl.fetcher import PageFetcher


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)


def test_fetch_sends_browser_identity_and_follows_redirects():
    seen = []

    def handler(request):
        seen.append((str(request.url), request.headers.get("user-agent")))
        if request.url.path == "/old":
            return httpx.Response(301, headers={"Location": "https://shop.example/new"})
        return httpx.Response(200, text="<html>new</html>")

    fetcher = PageFetcher(user_agent="Mozilla/5.0 TestBrowser", client=_client(handler))
    result = asyncio.run(fetcher.fetch("https://shop.example/old"))
    assert result.ok
    assert result.text == "<html>new</html>"
    assert [u for u, _ in seen] == ["https://shop.example/old", "https://shop.example/new"]
    assert all(ua == "Mozilla/5.0 TestBrowser" for _, ua in seen)


def test_non_success_status_is_unavailable():
    fetcher = PageFetcher(client=_client(lambda request: httpx.Response(403, text="blocked")))
    result = asyncio.run(fetcher.fetch("https://shop.example/"))
    assert not result.ok
    assert result.status_code == 403
    assert result.text is None
    assert result.reason == "Forbidden"


def test_transport_error_is_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    fetcher = PageFetcher(client=_client(handler))
    result = asyncio.run(fetcher.fetch("https://shop.example/"))
    assert not result.ok
    assert result.status_code is None
    assert "timed out" in result.reason


def test_unsupported_url_is_unavailable():
    result = asyncio.run(PageFetcher().fetch("notaurl"))
    assert not result.ok
    assert result.reason


def test_context_manager_owns_its_client():
    async def _run():
        fetcher = PageFetcher()
        async with fetcher:
            assert fetcher._client is not None
        return fetcher

    fetcher = asyncio.run(_run())
    assert fetcher._client is None
