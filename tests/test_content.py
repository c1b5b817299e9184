import httpx
import pytest

from savenest.services.content import extract_title, resolve_title


def _transport(status_code=200, body=""):
    def handler(request):
        return httpx.Response(
            status_code,
            headers={"content-type": "text/html; charset=utf-8"},
            text=body,
        )

    return httpx.MockTransport(handler)


def test_extract_title_collapses_whitespace():
    html = "<html><head><title>\n  Example\n   Domain </title></head></html>"
    assert extract_title(html) == "Example Domain"


def test_extract_title_missing():
    assert extract_title("<html><body><p>hi</p></body></html>") is None


@pytest.mark.asyncio
async def test_resolve_title_reads_title_element():
    transport = _transport(body="<html><head><title>GitHub</title></head></html>")

    title = await resolve_title("https://github.com", transport=transport)

    assert title == "GitHub"


@pytest.mark.asyncio
async def test_resolve_title_falls_back_when_page_has_no_title():
    transport = _transport(body="<html><body>no title</body></html>")

    title = await resolve_title("https://www.example.com/page", transport=transport)

    assert title == "example.com"


@pytest.mark.asyncio
async def test_resolve_title_falls_back_on_http_error():
    transport = _transport(
        status_code=404, body="<html><head><title>Not Found</title></head></html>"
    )

    title = await resolve_title("https://example.com/missing", transport=transport)

    assert title == "example.com"


@pytest.mark.asyncio
async def test_resolve_title_falls_back_on_network_error():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    title = await resolve_title(
        "https://slow.example", transport=httpx.MockTransport(handler)
    )

    assert title == "slow.example"
