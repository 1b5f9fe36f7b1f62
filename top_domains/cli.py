"""Top Domains CLI - import ranking feeds and enrich them with source titles."""

import argparse
import asyncio
import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeRemainingColumn
from rich.table import Table
from rich.text import Text

from top_domains import config
from top_domains.curated import load_curated
from top_domains.errors import TopDomainsError
from top_domains.importer import import_domain_ranks, import_tranco_list, load_domain_list
from top_domains.locator import locate_domain_ranks_url
from top_domains.resolver import EnrichmentSummary, Outcome, enrich_domains
from top_domains.store import EnrichedRecord, ResultStore

console = Console()


def setup_logging(verbose: bool = False, output_console: Console | None = None) -> None:
    """Route log records through rich on the shared console."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=output_console or console, show_path=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _create_progress(label: str, *, output_console: Console) -> Progress:
    """Create a standardized progress bar for long-running stages."""
    return Progress(
        TextColumn(f"[bold blue]{label}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeRemainingColumn(),
        console=output_console,
    )


def display_records(
    records: list[EnrichedRecord],
    output_console: Console | None = None,
) -> None:
    """Render ranked records as a rich table."""
    out = output_console or console
    table = Table(title="Top Domains", show_lines=False)
    table.add_column("Rank", justify="right", style="bold")
    table.add_column("Domain")
    table.add_column("Title", style="green")
    for record in records:
        table.add_row(str(record.rank), record.domain, record.title)
    out.print(table)
    out.print(Text(f"Showing {len(records)} records", style="bold"))


def display_summary(summary: EnrichmentSummary, output_console: Console | None = None) -> None:
    out = output_console or console
    text = Text()
    text.append(f"Ranked: {summary.ranked}", style="bold green")
    text.append(" | ")
    text.append(f"Merged: {summary.merged}", style="yellow")
    text.append(" | ")
    text.append(f"Removed: {summary.excluded}", style="red")
    text.append(" | ")
    text.append(f"Already present: {summary.already_present}")
    out.print(text)


def _cmd_locate(args: argparse.Namespace) -> None:
    console.print(asyncio.run(locate_domain_ranks_url()))


def _cmd_import_ranks(args: argparse.Namespace) -> None:
    with _create_progress("Importing domains", output_console=console) as progress:
        task = progress.add_task("import", total=args.limit)

        def on_progress(count: int) -> None:
            progress.update(task, completed=count)

        count = asyncio.run(
            import_domain_ranks(args.url, args.limit, args.output, on_progress=on_progress)
        )
    console.print(f"Wrote {count:,} domains to {args.output}")


def _cmd_import_tranco(args: argparse.Namespace) -> None:
    count = asyncio.run(import_tranco_list(limit=args.limit, output_path=args.output))
    console.print(f"Wrote {count:,} domains to {args.output}")


def _cmd_enrich(args: argparse.Namespace) -> None:
    domains = load_domain_list(args.domains)
    curated = load_curated(args.curated)
    store = ResultStore(args.output)
    total = max(0, min(args.end, len(domains)) - args.start)

    with _create_progress("Resolving titles", output_console=console) as progress:
        task = progress.add_task("enrich", total=total)

        def on_result(outcome: Outcome | None) -> None:
            progress.advance(task)

        summary = asyncio.run(
            enrich_domains(
                domains,
                store,
                curated,
                start=args.start,
                end=args.end,
                delay=args.delay,
                on_result=on_result,
            )
        )

    display_summary(summary)
    console.print(f"Results saved to {args.output} ({len(store)} records)")


def _cmd_show(args: argparse.Namespace) -> None:
    store = ResultStore(args.output)
    store.load()
    display_records(store.top(args.limit))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import domain-ranking feeds and enrich them with source titles."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    locate = sub.add_parser("locate", help="Print the current Common Crawl domain-ranks URL")
    locate.set_defaults(func=_cmd_locate)

    ranks = sub.add_parser("import-ranks", help="Stream the Common Crawl ranks into a domain list")
    ranks.add_argument("--url", help="Archive URL (default: discover the newest release)")
    ranks.add_argument(
        "--limit",
        type=int,
        default=config.IMPORT_LIMIT,
        help=f"Maximum domains to keep (default: {config.IMPORT_LIMIT:,})",
    )
    ranks.add_argument("--output", type=Path, default=config.DOMAINS_PATH, help="Domain list path")
    ranks.set_defaults(func=_cmd_import_ranks)

    tranco = sub.add_parser("import-tranco", help="Download the Tranco top-1M into a domain list")
    tranco.add_argument("--limit", type=int, default=config.IMPORT_LIMIT)
    tranco.add_argument(
        "--output", type=Path, default=config.OFFICIAL_DOMAINS_PATH, help="Domain list path"
    )
    tranco.set_defaults(func=_cmd_import_tranco)

    enrich = sub.add_parser("enrich", help="Resolve titles for a window of the domain list")
    enrich.add_argument("--start", type=int, default=config.ENRICH_START, help="First index (0 resets results)")
    enrich.add_argument("--end", type=int, default=config.ENRICH_END, help="Index to stop before")
    enrich.add_argument("--domains", type=Path, default=config.DOMAINS_PATH, help="Domain list path")
    enrich.add_argument("--output", type=Path, default=config.RESULTS_PATH, help="Results JSON path")
    enrich.add_argument("--curated", type=Path, help="Curated tables JSON (default: bundled)")
    enrich.add_argument(
        "--delay",
        type=float,
        default=config.SCRAPE_DELAY,
        help=f"Seconds between page fetches (default: {config.SCRAPE_DELAY})",
    )
    enrich.set_defaults(func=_cmd_enrich)

    show = sub.add_parser("show", help="Show the top ranked records")
    show.add_argument("--limit", type=int, default=25)
    show.add_argument("--output", type=Path, default=config.RESULTS_PATH, help="Results JSON path")
    show.set_defaults(func=_cmd_show)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if getattr(args, "start", 0) < 0:
        parser.error("--start must be non-negative")

    try:
        args.func(args)
    except TopDomainsError as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted; resume with --start at the next unprocessed index[/yellow]")
        return 130
    return 0
