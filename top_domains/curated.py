"""Curated removal, alias-group and title-override tables."""

import json
from dataclasses import dataclass, field
from pathlib import Path

from top_domains.errors import CuratedTableError

DEFAULT_CURATED_PATH = Path(__file__).with_name("curated.json")


@dataclass(frozen=True)
class Removal:
    main: str


@dataclass(frozen=True)
class AliasGroup:
    main: str
    alt: frozenset[str] = frozenset()


@dataclass(frozen=True)
class CuratedTables:
    """Read-only lookup tables consulted for every enriched domain."""

    removals: tuple[Removal, ...] = ()
    aliases: tuple[AliasGroup, ...] = ()
    titles: dict[str, str] = field(default_factory=dict)
    _removed: frozenset[str] = field(init=False, repr=False, compare=False)
    _alias_index: dict[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        alias_index: dict[str, str] = {}
        for group in self.aliases:
            for alt in group.alt:
                if alt in alias_index:
                    raise CuratedTableError(
                        f"{alt} is an alias of both {alias_index[alt]} and {group.main}"
                    )
                alias_index[alt] = group.main
        object.__setattr__(self, "_removed", frozenset(r.main for r in self.removals))
        object.__setattr__(self, "_alias_index", alias_index)

    def is_removed(self, domain: str) -> bool:
        return domain in self._removed

    def main_domain_for(self, domain: str) -> str | None:
        """Return the canonical domain when ``domain`` is a listed alternate."""
        return self._alias_index.get(domain)

    def title_override(self, domain: str) -> str | None:
        return self.titles.get(domain) or None


def parse_curated(data: dict) -> CuratedTables:
    """Build CuratedTables from the ``removals``/``duplicates``/``titles`` document."""
    if not isinstance(data, dict):
        raise CuratedTableError("Curated tables must be a JSON object")
    try:
        removals = tuple(Removal(main=entry["main"]) for entry in data.get("removals", []))
        aliases = tuple(
            AliasGroup(main=entry["main"], alt=frozenset(entry.get("alt", [])))
            for entry in data.get("duplicates", [])
        )
        titles = {str(k): str(v) for k, v in data.get("titles", {}).items()}
    except (KeyError, TypeError, AttributeError) as exc:
        raise CuratedTableError(f"Malformed curated tables: {exc!r}") from exc
    return CuratedTables(removals=removals, aliases=aliases, titles=titles)


def load_curated(path: Path | None = None) -> CuratedTables:
    """Load curated tables from ``path``, or the table shipped with the package."""
    path = Path(path) if path is not None else DEFAULT_CURATED_PATH
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise CuratedTableError(f"Cannot load curated tables from {path}: {exc}") from exc
    return parse_curated(data)
