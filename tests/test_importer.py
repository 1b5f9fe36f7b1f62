"""Tests for the streaming ranking-feed importer."""

import gzip
import io
import zipfile
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from top_domains.errors import ParseSkip, StorageError, UpstreamError
from top_domains.importer import (
    DomainListWriter,
    gunzip_stream,
    import_domain_ranks,
    import_tranco_list,
    load_domain_list,
    parse_domains,
    parse_line,
    reverse_labels,
    split_lines,
)

FEED_URL = "https://data.example.org/domain-ranks.txt.gz"
HEADER = "#harmonicc_pos\t#harmonicc_val\t#pr_pos\t#pr_val\t#host_rev\t#n_hosts"


def _row(pos: int, host_rev: str) -> str:
    return f"{pos}\t3.1E7\t{pos}\t0.01\t{host_rev}\t12"


def _feed(*lines: str) -> bytes:
    return gzip.compress(("\n".join(lines) + "\n").encode())


async def _aiter(items):
    for item in items:
        yield item


async def _collect(agen) -> list:
    return [item async for item in agen]


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _serve(body: bytes, status: int = 200):
    return lambda request: httpx.Response(status, content=body)


# --- Pure helpers ---

def test_reverse_labels():
    assert reverse_labels("www.news.example.com") == "com.example.news.www"
    assert reverse_labels("com.example") == "example.com"
    assert reverse_labels("localhost") == "localhost"


def test_parse_line_extracts_fifth_field():
    assert parse_line(_row(1, "com.google")) == "google.com"
    assert parse_line(_row(2, "www.news.example.com")) == "com.example.news.www"


@pytest.mark.parametrize(
    "line",
    [
        "",
        "only\tfour\tfields\there",
        HEADER,
        "1\t2\t3\t4\t\t6",
    ],
)
def test_parse_line_rejects_malformed(line):
    with pytest.raises(ParseSkip):
        parse_line(line)


# --- Stream stages ---

@pytest.mark.asyncio
async def test_gunzip_stream_handles_small_chunks():
    payload = b"line one\nline two\n" * 100
    data = gzip.compress(payload)
    chunks = [data[i:i + 7] for i in range(0, len(data), 7)]
    assert b"".join(await _collect(gunzip_stream(_aiter(chunks)))) == payload


@pytest.mark.asyncio
async def test_gunzip_stream_handles_multiple_members():
    data = gzip.compress(b"first\n") + gzip.compress(b"second\n")
    assert b"".join(await _collect(gunzip_stream(_aiter([data])))) == b"first\nsecond\n"


@pytest.mark.asyncio
async def test_gunzip_stream_bounds_each_inflated_piece():
    payload = b"a" * 50_000
    with patch("top_domains.importer.MAX_INFLATE", 1000):
        pieces = await _collect(gunzip_stream(_aiter([gzip.compress(payload)])))
    assert max(len(piece) for piece in pieces) <= 1000
    assert b"".join(pieces) == payload


@pytest.mark.asyncio
async def test_gunzip_stream_rejects_corrupt_data():
    with pytest.raises(UpstreamError):
        await _collect(gunzip_stream(_aiter([b"this is not gzip data"])))


@pytest.mark.asyncio
async def test_gunzip_stream_rejects_truncated_data():
    data = gzip.compress(b"x" * 10_000)
    with pytest.raises(UpstreamError):
        await _collect(gunzip_stream(_aiter([data[: len(data) // 2]])))


@pytest.mark.asyncio
async def test_split_lines_across_chunk_boundaries():
    chunks = [b"ab\nc", b"d\r\ne", b"f"]
    assert await _collect(split_lines(_aiter(chunks))) == ["ab", "cd", "ef"]


@pytest.mark.asyncio
async def test_parse_domains_skips_header_and_malformed():
    lines = [HEADER, _row(1, "com.google"), "garbage", _row(2, "org.wikipedia")]
    assert await _collect(parse_domains(_aiter(lines))) == ["google.com", "wikipedia.org"]


# --- Writer ---

def test_writer_replaces_existing_file(tmp_path):
    path = tmp_path / "domains.txt"
    path.write_text("old.com,older.com")
    with DomainListWriter(path) as writer:
        writer.write("a.com")
        writer.write("b.com")
    assert path.read_text() == "a.com,b.com"
    assert writer.count == 2


def test_writer_unwritable_path_raises_storage_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    with pytest.raises(StorageError):
        with DomainListWriter(blocker / "domains.txt"):
            pass


# --- import_domain_ranks ---

@pytest.mark.asyncio
async def test_import_writes_reversed_domains(tmp_path):
    output = tmp_path / "domains.txt"
    body = _feed(HEADER, _row(1, "com.google"), _row(2, "www.news.example.com"))
    async with _client(_serve(body)) as client:
        count = await import_domain_ranks(FEED_URL, 10, output, client)
    assert count == 2
    assert output.read_text() == "google.com,com.example.news.www"


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_positions", [(0,), (2, 3), (5,), (0, 1, 2, 3, 4, 5)])
async def test_malformed_lines_do_not_count_toward_limit(tmp_path, bad_positions):
    valid = [_row(i, f"com.site{i}") for i in range(5)]
    lines = list(valid)
    for offset, pos in enumerate(sorted(bad_positions)):
        lines.insert(pos + offset, "broken\tline")
    output = tmp_path / "domains.txt"

    async with _client(_serve(_feed(HEADER, *lines))) as client:
        count = await import_domain_ranks(FEED_URL, 5, output, client)

    assert count == 5
    assert load_domain_list(output) == [f"site{i}.com" for i in range(5)]


@pytest.mark.asyncio
async def test_import_stops_at_limit(tmp_path):
    output = tmp_path / "domains.txt"
    body = _feed(HEADER, *[_row(i, f"com.site{i}") for i in range(1000)])
    async with _client(_serve(body)) as client:
        count = await import_domain_ranks(FEED_URL, 3, output, client)
    assert count == 3
    assert output.read_text() == "site0.com,site1.com,site2.com"


@pytest.mark.asyncio
async def test_import_reports_progress(tmp_path):
    calls = []
    body = _feed(*[_row(i, f"com.site{i}") for i in range(5)])
    with patch("top_domains.importer.PROGRESS_EVERY", 2):
        async with _client(_serve(body)) as client:
            await import_domain_ranks(
                FEED_URL, 10, tmp_path / "domains.txt", client, on_progress=calls.append
            )
    assert calls == [2, 4, 5]


@pytest.mark.asyncio
async def test_import_error_status_keeps_previous_file(tmp_path):
    output = tmp_path / "domains.txt"
    output.write_text("previous.com")
    async with _client(_serve(b"", status=404)) as client:
        with pytest.raises(UpstreamError, match="404"):
            await import_domain_ranks(FEED_URL, 10, output, client)
    assert output.read_text() == "previous.com"


@pytest.mark.asyncio
async def test_import_corrupt_stream_aborts_and_closes_output(tmp_path):
    output = tmp_path / "domains.txt"
    good = _feed(_row(1, "com.google"))
    async with _client(_serve(good + b"garbage after the member")) as client:
        with pytest.raises(UpstreamError):
            await import_domain_ranks(FEED_URL, 10, output, client)
    assert output.read_text() == "google.com"


@pytest.mark.asyncio
async def test_import_transport_error_raises_upstream_error(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadError("connection reset", request=request)

    async with _client(handler) as client:
        with pytest.raises(UpstreamError):
            await import_domain_ranks(FEED_URL, 10, tmp_path / "domains.txt", client)


@pytest.mark.asyncio
async def test_import_uses_locator_when_url_missing(tmp_path):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, content=_feed(_row(1, "com.google")))

    with patch(
        "top_domains.importer.locate_domain_ranks_url", new=AsyncMock(return_value=FEED_URL)
    ):
        async with _client(handler) as client:
            count = await import_domain_ranks(None, 10, tmp_path / "domains.txt", client)

    assert count == 1
    assert seen == [FEED_URL]


# --- Tranco ---

def _tranco_zip(rows: list[str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zfile:
        zfile.writestr("top-1m.csv", "\n".join(rows) + "\n")
    return buf.getvalue()


@pytest.mark.asyncio
async def test_import_tranco_list(tmp_path):
    output = tmp_path / "official.txt"
    body = _tranco_zip(["1,google.com", "2,facebook.com", "3,microsoft.com"])
    async with _client(_serve(body)) as client:
        count = await import_tranco_list("https://tranco.example/top-1m.csv.zip", 2, output, client)
    assert count == 2
    assert load_domain_list(output) == ["google.com", "facebook.com"]


@pytest.mark.asyncio
async def test_import_tranco_skips_header_row(tmp_path):
    output = tmp_path / "official.txt"
    body = _tranco_zip(["rank,domain", "1,google.com"])
    async with _client(_serve(body)) as client:
        await import_tranco_list("https://tranco.example/top-1m.csv.zip", 10, output, client)
    assert load_domain_list(output) == ["google.com"]


@pytest.mark.asyncio
async def test_import_tranco_bad_archive(tmp_path):
    async with _client(_serve(b"not a zip")) as client:
        with pytest.raises(UpstreamError):
            await import_tranco_list(
                "https://tranco.example/top-1m.csv.zip", 10, tmp_path / "official.txt", client
            )


# --- Loading ---

def test_load_domain_list(tmp_path):
    path = tmp_path / "domains.txt"
    path.write_text("google.com,facebook.com\n")
    assert load_domain_list(path) == ["google.com", "facebook.com"]


def test_load_domain_list_missing(tmp_path):
    with pytest.raises(StorageError):
        load_domain_list(tmp_path / "missing.txt")


@pytest.mark.asyncio
async def test_import_redirect_loop_raises_upstream_error(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"Location": str(request.url)})

    async with _client(handler) as client:
        with pytest.raises(UpstreamError):
            await import_domain_ranks(FEED_URL, 10, tmp_path / "domains.txt", client)
