"""Best-effort homepage title scraping: one GET per domain, never fatal."""

import asyncio
import html
import logging
import re

import httpx

from top_domains.config import SCRAPE_TIMEOUT
from top_domains.errors import ScrapeError

logger = logging.getLogger(__name__)

OG_TITLE_RE = re.compile(
    r"""<meta[^>]*property=["']og:title["'][^>]*content=["']([^"']+)["'][^>]*>""",
    re.IGNORECASE,
)
TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)
TITLE_SPLITTERS_RE = re.compile(r" [|\-/:»] | - |\|")
TAG_RE = re.compile(r"</?[^>]+(>|$)")
WHITESPACE_RE = re.compile(r"\s+")

MAX_TITLE_LENGTH = 150
MIN_SEGMENT_LENGTH = 10
MAX_PAGE_BYTES = 256 * 1024

BOILERPLATE_SUFFIXES = (
    " - Home",
    " | Home",
    " - Official Site",
    " | Official Site",
    " - Official Website",
    " | Official Website",
    " - Official",
    " | Official",
    " - Welcome",
    " | Welcome",
    " - Homepage",
    " | Homepage",
)


def extract_title(page: str) -> str | None:
    """Return the Open Graph title if present, else the ``<title>`` text."""
    for pattern in (OG_TITLE_RE, TITLE_RE):
        match = pattern.search(page)
        if match:
            title = html.unescape(match.group(1)).strip()
            if title:
                return title
    return None


def clean_source_title(title: str | None) -> str | None:
    """Reduce a raw page title to something that reads like a site name.

    Breadcrumb titles ("Story headline | Site") keep their longest segment when
    it is long enough to be meaningful; boilerplate suffixes are trimmed and
    any stray markup removed.
    """
    if not title:
        return None
    cleaned = title.strip()

    segments = TITLE_SPLITTERS_RE.split(cleaned)
    if len(segments) >= 2:
        longest = max(segments, key=len)
        if len(longest) > MIN_SEGMENT_LENGTH:
            cleaned = longest

    for suffix in BOILERPLATE_SUFFIXES:
        if cleaned.endswith(suffix):
            cleaned = cleaned[: -len(suffix)]

    cleaned = cleaned[:MAX_TITLE_LENGTH]
    cleaned = WHITESPACE_RE.sub(" ", TAG_RE.sub("", cleaned)).strip()
    return cleaned or None


async def _read_head(response: httpx.Response) -> str:
    """Read at most MAX_PAGE_BYTES of the body; titles live in the document head."""
    body = bytearray()
    async for chunk in response.aiter_bytes():
        body += chunk
        if len(body) >= MAX_PAGE_BYTES:
            break
    return bytes(body[:MAX_PAGE_BYTES]).decode(response.encoding or "utf-8", errors="replace")


async def _fetch_page(domain: str, client: httpx.AsyncClient) -> str:
    # SCRAPE_TIMEOUT bounds the whole fetch, not just each connect/read phase.
    try:
        async with asyncio.timeout(SCRAPE_TIMEOUT):
            async with client.stream(
                "GET",
                f"https://{domain}",
                timeout=SCRAPE_TIMEOUT,
                follow_redirects=True,
            ) as response:
                if not response.is_success:
                    raise ScrapeError(f"HTTP {response.status_code}")
                return await _read_head(response)
    except TimeoutError as exc:
        raise ScrapeError(f"no complete response within {SCRAPE_TIMEOUT}s") from exc
    except (httpx.HTTPError, httpx.InvalidURL, UnicodeError) as exc:
        # Malformed IDNA labels (e.g. "xn--zz") surface as UnicodeError subclasses.
        raise ScrapeError(f"{type(exc).__name__}: {exc}") from exc


async def fetch_source_title(domain: str, client: httpx.AsyncClient) -> str | None:
    """Fetch ``https://{domain}`` and return its cleaned title, or None on any failure."""
    try:
        page = await _fetch_page(domain, client)
    except ScrapeError as exc:
        logger.info("Could not get source title for %s: %s", domain, exc)
        return None
    return clean_source_title(extract_title(page))
