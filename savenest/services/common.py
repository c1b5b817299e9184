from urllib.parse import urlparse

FAVICON_SERVICE_URL = "https://www.google.com/s2/favicons?domain={domain}&sz=64"


def clean_text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _hostname(url: str) -> str | None:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def domain_from_url(url: str) -> str:
    hostname = _hostname(url or "")
    if not hostname:
        return url
    return hostname.removeprefix("www.")


def favicon_url(url: str) -> str | None:
    hostname = _hostname(url or "")
    if not hostname:
        return None
    return FAVICON_SERVICE_URL.format(domain=hostname)
