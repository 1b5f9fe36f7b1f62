"""Locate the current Common Crawl host-rank archive from the web-graphs index."""

import logging
import re
from urllib.parse import urljoin

import httpx

from top_domains.config import LOCATOR_TIMEOUT, USER_AGENT, WEB_GRAPHS_URL
from top_domains.errors import NotFound, UpstreamError

logger = logging.getLogger(__name__)

DATE_LINK_RE = re.compile(r'href="([^"]*\d{4}-\w+[^"]*)"')
RANKS_LINK_RE = re.compile(r'href="([^"]*domain-ranks\.txt\.gz[^"]*)"')


def _find_link(html: str, pattern: re.Pattern[str], base_url: str, what: str) -> str:
    """Return the first matching anchor target, resolved against base_url."""
    match = pattern.search(html)
    if match is None:
        raise NotFound(f"No {what} link found on {base_url}")
    return urljoin(base_url, match.group(1))


async def _get_page(client: httpx.AsyncClient, url: str) -> str:
    try:
        response = await client.get(url, timeout=LOCATOR_TIMEOUT, follow_redirects=True)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise UpstreamError(f"Could not reach {url}: {exc}") from exc
    if not response.is_success:
        raise UpstreamError(f"HTTP {response.status_code} from {url}")
    return response.text


async def locate_domain_ranks_url(
    client: httpx.AsyncClient | None = None,
    index_url: str = WEB_GRAPHS_URL,
) -> str:
    """Find the download URL of the newest domain-ranks archive.

    The web-graphs index lists one page per release (e.g. ``cc-main-2025-mar-apr-may``);
    the first such link is followed and its ``domain-ranks.txt.gz`` link returned.

    Raises:
        NotFound: If either page lacks the expected link.
        UpstreamError: If either page cannot be fetched successfully.
    """
    if client is None:
        async with httpx.AsyncClient(headers={"User-Agent": USER_AGENT}) as own_client:
            return await locate_domain_ranks_url(own_client, index_url)

    index_html = await _get_page(client, index_url)
    release_url = _find_link(index_html, DATE_LINK_RE, index_url, "release")
    logger.debug("Release page: %s", release_url)

    release_html = await _get_page(client, release_url)
    ranks_url = _find_link(release_html, RANKS_LINK_RE, release_url, "domain-ranks.txt.gz")
    logger.info("Domain ranks archive: %s", ranks_url)
    return ranks_url
