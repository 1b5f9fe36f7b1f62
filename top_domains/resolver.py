"""Title resolution: decide, per domain, whether it is dropped, merged or ranked.

Order of precedence for each domain:

1. listed as a removal -> Excluded (no rank consumed)
2. alternate of an alias group -> Merged into the group's main (no rank consumed)
3. title override -> used verbatim, no live fetch
4. humanized registrable label
5. scraped homepage title, preferred over (4) only when it is under 3 words

The rank counter is passed in and the new rank returned inside ``Ranked``;
nothing here keeps state between domains.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TypeAlias

import httpx

from top_domains.config import ENRICH_END, ENRICH_START, SCRAPE_DELAY, USER_AGENT
from top_domains.curated import CuratedTables
from top_domains.humanize import humanize_domain
from top_domains.scraper import fetch_source_title
from top_domains.store import ResultStore

logger = logging.getLogger(__name__)

MAX_SCRAPED_WORDS = 3

_HOMEPAGE_RE = re.compile(r"homepage", re.IGNORECASE)
_HOME_RE = re.compile(r"home", re.IGNORECASE)

TitleFetcher = Callable[[str], Awaitable[str | None]]


@dataclass(frozen=True)
class Excluded:
    domain: str


@dataclass(frozen=True)
class Merged:
    domain: str
    main: str


@dataclass(frozen=True)
class Ranked:
    domain: str
    rank: int
    title: str


Outcome: TypeAlias = Excluded | Merged | Ranked


@dataclass
class EnrichmentSummary:
    ranked: int = 0
    excluded: int = 0
    merged: int = 0
    already_present: int = 0
    outcomes: list[Outcome] = field(default_factory=list)


def choose_title(heuristic: str | None, scraped: str | None) -> str | None:
    """Pick between the humanized name and the scraped page title.

    Short scraped titles are usually a clean brand name; longer ones tend to
    be taglines or headlines, where the domain-derived name reads better.
    """
    if scraped:
        candidate = _HOME_RE.sub("", _HOMEPAGE_RE.sub("", scraped)).replace(".com", "", 1)
        candidate = " ".join(candidate.split())
        if candidate and len(candidate.split()) < MAX_SCRAPED_WORDS:
            return candidate
    return heuristic


async def resolve_title(domain: str, curated: CuratedTables, fetch_title: TitleFetcher) -> str:
    override = curated.title_override(domain)
    if override:
        return override
    heuristic = humanize_domain(domain)
    scraped = await fetch_title(domain)
    return choose_title(heuristic, scraped) or domain


async def resolve_domain(
    domain: str,
    last_rank: int,
    curated: CuratedTables,
    fetch_title: TitleFetcher,
) -> Outcome:
    """Classify one domain and, when it is ranked, resolve its title."""
    if curated.is_removed(domain):
        return Excluded(domain)
    main = curated.main_domain_for(domain)
    if main is not None:
        return Merged(domain, main)
    title = await resolve_title(domain, curated, fetch_title)
    return Ranked(domain, last_rank + 1, title)


async def enrich_domains(
    domains: Sequence[str],
    store: ResultStore,
    curated: CuratedTables,
    start: int = ENRICH_START,
    end: int = ENRICH_END,
    client: httpx.AsyncClient | None = None,
    delay: float = SCRAPE_DELAY,
    on_result: Callable[[Outcome | None], None] | None = None,
) -> EnrichmentSummary:
    """Resolve titles for ``domains[start:end]`` and persist each ranked entry.

    Starting at 0 truncates the store; any other start resumes after the
    records already present, so ranks continue from the stored count.

    Args:
        domains: The full ordered domain list.
        store: Result store, rewritten after every ranked domain.
        curated: Removal/alias/override tables.
        start: First index to process (inclusive).
        end: Last index to process (exclusive), clamped to the list length.
        client: Optional HTTP client used for scraping.
        delay: Seconds to wait after each live scrape.
        on_result: Called after each index with its outcome, or None when the
            domain was already in the store.
    """
    if client is None:
        async with httpx.AsyncClient(headers={"User-Agent": USER_AGENT}) as own_client:
            return await enrich_domains(
                domains, store, curated, start, end, own_client, delay, on_result
            )

    async def fetch_title(domain: str) -> str | None:
        return await fetch_source_title(domain, client)

    if start == 0:
        store.reset()
    store.load()

    end = min(end, len(domains))
    last_rank = store.last_rank
    summary = EnrichmentSummary()
    logger.info("Processing domains from index %d to %d", start, end - 1)

    for index in range(start, end):
        domain = domains[index]
        if domain in store:
            logger.info("Skipping %d: %s (already resolved)", index + 1, domain)
            summary.already_present += 1
            if on_result is not None:
                on_result(None)
            continue

        outcome = await resolve_domain(domain, last_rank, curated, fetch_title)
        match outcome:
            case Excluded(domain=d):
                logger.info("Skipping %d: %s (marked for removal)", index + 1, d)
                summary.excluded += 1
            case Merged(domain=d, main=main):
                logger.info("Skipping %d: %s (alternative domain for %s)", index + 1, d, main)
                summary.merged += 1
            case Ranked(domain=d, rank=rank, title=title):
                store.put(d, rank, title)
                last_rank = rank
                summary.ranked += 1
                logger.info("Processed %d: %s -> %s", rank, d, title)
                if delay > 0 and not curated.title_override(d):
                    await asyncio.sleep(delay)

        summary.outcomes.append(outcome)
        if on_result is not None:
            on_result(outcome)

    return summary
