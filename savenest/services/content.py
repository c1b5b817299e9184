from __future__ import annotations

import logging
import warnings

import httpx
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

from savenest.services.common import clean_text, domain_from_url

logger = logging.getLogger(__name__)


DEFAULT_HEADERS = {
    "User-Agent": "SaveNestBot/1.0 (+https://savenest.local)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_BYTES = 2_500_000


async def fetch_html(
    client: httpx.AsyncClient, url: str, max_bytes: int
) -> tuple[str, str, int]:
    async with client.stream("GET", url) as response:
        status_code = response.status_code
        chunks = []
        total = 0
        async for chunk in response.aiter_bytes():
            total += len(chunk)
            if total > max_bytes:
                break
            chunks.append(chunk)
        data = b"".join(chunks)
        encoding = response.encoding or "utf-8"
        return (
            data.decode(encoding, errors="ignore"),
            str(response.url),
            status_code,
        )


def extract_title(html: str) -> str | None:
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
        soup = BeautifulSoup(html, "lxml")
    if not soup.title:
        return None
    title = " ".join(soup.title.get_text().split())
    return title or None


async def resolve_title(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    max_bytes: int = DEFAULT_MAX_BYTES,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Return the page title of ``url``, or its domain when none can be read.

    Network errors, non-2xx responses, unparsable documents and pages without
    a ``<title>`` all fall back to the domain. This never raises.
    """
    url = clean_text(url)
    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=timeout,
            headers=DEFAULT_HEADERS,
            transport=transport,
        ) as client:
            html, _final_url, status_code = await fetch_html(client, url, max_bytes)
        if not 200 <= status_code < 300:
            logger.info("title fetch for %s returned HTTP %s", url, status_code)
            return domain_from_url(url)
        title = extract_title(html)
    except Exception as exc:
        logger.info("title fetch for %s failed: %s", url, exc)
        return domain_from_url(url)
    return title or domain_from_url(url)
