"""Stream ranking feeds into the persisted, comma-delimited domain list.

The Common Crawl host-rank file is tens of gigabytes once decompressed, so the
body is pushed through a chain of async generators:

    response bytes -> gunzip -> lines -> parse_line -> DomainListWriter

Each stage only pulls from the previous one when it needs more input, so the
download never runs ahead of the writer and no stage buffers more than one
network chunk worth of data.
"""

import csv
import io
import logging
import zipfile
import zlib
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import aclosing
from pathlib import Path

import httpx

from top_domains.config import (
    DOMAINS_PATH,
    DOWNLOAD_TIMEOUT,
    IMPORT_LIMIT,
    OFFICIAL_DOMAINS_PATH,
    PROGRESS_EVERY,
    TRANCO_URL,
    USER_AGENT,
)
from top_domains.errors import ParseSkip, StorageError, UpstreamError
from top_domains.locator import locate_domain_ranks_url

logger = logging.getLogger(__name__)

DELIMITER = ","
HEADER_MARKER = "#host_rev"
HOST_FIELD = 4
MIN_FIELDS = HOST_FIELD + 1
GZIP_WBITS = zlib.MAX_WBITS | 16
MAX_INFLATE = 1 << 20


def reverse_labels(domain: str) -> str:
    """Reverse the dot-separated labels: ``www.example.com`` -> ``com.example.www``."""
    return ".".join(reversed(domain.split(".")))


def parse_line(line: str) -> str:
    """Extract and label-reverse the host field of one tab-separated feed line.

    Raises:
        ParseSkip: If the line has too few fields or its host field is empty
            or the header sentinel.
    """
    parts = line.split("\t")
    if len(parts) < MIN_FIELDS:
        raise ParseSkip(f"expected at least {MIN_FIELDS} fields, got {len(parts)}")
    host = parts[HOST_FIELD].strip()
    if not host or host == HEADER_MARKER:
        raise ParseSkip(f"no host in field {HOST_FIELD}")
    return reverse_labels(host)


async def gunzip_stream(chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Incrementally decompress a (possibly multi-member) gzip byte stream."""
    decompressor = zlib.decompressobj(GZIP_WBITS)
    in_member = False
    async for chunk in chunks:
        pending = chunk
        while pending:
            in_member = True
            # Inflate at most MAX_INFLATE bytes per step; a full step may still
            # hold buffered output even when no input is left.
            while True:
                try:
                    data = decompressor.decompress(pending, MAX_INFLATE)
                except zlib.error as exc:
                    raise UpstreamError(f"Corrupt gzip stream: {exc}") from exc
                if data:
                    yield data
                pending = decompressor.unconsumed_tail
                if decompressor.eof or (not pending and len(data) < MAX_INFLATE):
                    break
            if decompressor.eof:
                in_member = False
                pending = decompressor.unused_data
                decompressor = zlib.decompressobj(GZIP_WBITS)
    if in_member:
        raise UpstreamError("Gzip stream ended in the middle of a member")


async def split_lines(chunks: AsyncIterator[bytes]) -> AsyncIterator[str]:
    """Re-chunk a byte stream into decoded lines without a trailing newline."""
    pending = b""
    async for chunk in chunks:
        pending += chunk
        *lines, pending = pending.split(b"\n")
        for line in lines:
            yield line.rstrip(b"\r").decode("utf-8", errors="replace")
    if pending:
        yield pending.rstrip(b"\r").decode("utf-8", errors="replace")


async def parse_domains(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield one reversed domain per valid feed line, dropping the header once."""
    header_seen = False
    async for line in lines:
        if not header_seen and HEADER_MARKER in line:
            header_seen = True
            continue
        try:
            yield parse_line(line)
        except ParseSkip as exc:
            logger.debug("Skipping line %r: %s", line[:80], exc)


class DomainListWriter:
    """Write domains to a fresh delimited text file, closing it exactly once."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.count = 0
        self._file: io.TextIOWrapper | None = None

    def __enter__(self) -> "DomainListWriter":
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.unlink(missing_ok=True)
            self._file = self.path.open("w", encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Cannot open {self.path} for writing: {exc}") from exc
        return self

    def write(self, domain: str) -> None:
        try:
            if self.count:
                self._file.write(DELIMITER)
            self._file.write(domain)
        except OSError as exc:
            raise StorageError(f"Cannot write to {self.path}: {exc}") from exc
        self.count += 1

    def __exit__(self, *exc_info) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            logger.info("Output file: %s (%s domains)", self.path, f"{self.count:,}")


def _report(count: int, on_progress: Callable[[int], None] | None) -> None:
    logger.info("Processed lines: %s", f"{count:,}")
    if on_progress is not None:
        on_progress(count)


async def import_domain_ranks(
    url: str | None = None,
    limit: int = IMPORT_LIMIT,
    output_path: Path = DOMAINS_PATH,
    client: httpx.AsyncClient | None = None,
    on_progress: Callable[[int], None] | None = None,
) -> int:
    """Stream the Common Crawl domain-ranks feed into a domain list.

    Args:
        url: Archive URL; discovered with the locator when omitted.
        limit: Stop after this many domains have been written.
        output_path: Destination file, replaced wholesale.
        client: Optional HTTP client (mainly for tests).
        on_progress: Called with the running record count every
            PROGRESS_EVERY records and once at the end.

    Returns:
        The number of domains written.

    Raises:
        UpstreamError: Non-success status, transport failure or corrupt gzip data.
        StorageError: The output file could not be written.
    """
    if client is None:
        async with httpx.AsyncClient(headers={"User-Agent": USER_AGENT}) as own_client:
            return await import_domain_ranks(url, limit, output_path, own_client, on_progress)

    if url is None:
        url = await locate_domain_ranks_url(client)

    logger.info("Streaming %s (limit %s)", url, f"{limit:,}")
    try:
        async with client.stream(
            "GET", url, timeout=DOWNLOAD_TIMEOUT, follow_redirects=True
        ) as response:
            if not response.is_success:
                raise UpstreamError(f"HTTP {response.status_code} from {url}")

            with DomainListWriter(output_path) as writer:
                if limit <= 0:
                    return 0
                stream = parse_domains(split_lines(gunzip_stream(response.aiter_bytes())))
                async with aclosing(stream) as domains:
                    async for domain in domains:
                        writer.write(domain)
                        if writer.count % PROGRESS_EVERY == 0:
                            _report(writer.count, on_progress)
                        if writer.count >= limit:
                            break
                _report(writer.count, on_progress)
                return writer.count
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise UpstreamError(f"Transfer from {url} failed: {exc}") from exc


def _tranco_domains(archive: bytes) -> Iterable[str]:
    """Yield domains in rank order from the Tranco zip (``rank,domain`` rows)."""
    try:
        with zipfile.ZipFile(io.BytesIO(archive)) as zfile:
            names = [n for n in zfile.namelist() if n.lower().endswith(".csv")]
            if not names:
                raise UpstreamError("No CSV file found inside Tranco archive")
            with zfile.open(names[0]) as raw:
                for row in csv.reader(io.TextIOWrapper(raw, encoding="utf-8")):
                    if len(row) < 2 or not row[0].strip().isdigit():
                        continue
                    domain = row[1].strip().strip('"')
                    if domain:
                        yield domain
    except zipfile.BadZipFile as exc:
        raise UpstreamError(f"Corrupt Tranco archive: {exc}") from exc


async def import_tranco_list(
    url: str = TRANCO_URL,
    limit: int = IMPORT_LIMIT,
    output_path: Path = OFFICIAL_DOMAINS_PATH,
    client: httpx.AsyncClient | None = None,
) -> int:
    """Download the Tranco top-1M list and write it in the domain list format.

    Tranco already ships registrable domains in reading order, so labels are
    not reversed. The zip is small enough (~10 MB) to hold in memory.
    """
    if client is None:
        async with httpx.AsyncClient(headers={"User-Agent": USER_AGENT}) as own_client:
            return await import_tranco_list(url, limit, output_path, own_client)

    logger.info("Downloading %s", url)
    try:
        response = await client.get(url, timeout=DOWNLOAD_TIMEOUT, follow_redirects=True)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise UpstreamError(f"Could not reach {url}: {exc}") from exc
    if not response.is_success:
        raise UpstreamError(f"HTTP {response.status_code} from {url}")

    with DomainListWriter(output_path) as writer:
        for domain in _tranco_domains(response.content):
            if writer.count >= limit:
                break
            writer.write(domain)
    return writer.count


def load_domain_list(path: Path = DOMAINS_PATH) -> list[str]:
    """Read a persisted domain list back into an ordered list."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise StorageError(f"Cannot read domain list {path}: {exc}") from exc
    return [d for d in text.strip().split(DELIMITER) if d]
