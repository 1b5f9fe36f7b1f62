"""JSON result store mapping ``domain -> [rank, title]``, rewritten per entry."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from top_domains.config import RESULTS_PATH
from top_domains.errors import StorageError

logger = logging.getLogger(__name__)


@dataclass
class EnrichedRecord:
    domain: str
    rank: int
    title: str


class ResultStore:
    """In-memory snapshot of the result document plus its file on disk.

    Every ``put`` rewrites the whole document through a temporary file and an
    atomic rename, so an interrupted run keeps every entry written before the
    interruption.
    """

    def __init__(self, path: Path = RESULTS_PATH):
        self.path = Path(path)
        self.records: dict[str, list] = {}

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, domain: str) -> bool:
        return domain in self.records

    @property
    def last_rank(self) -> int:
        """Rank of the most recently ranked domain; the next rank is this plus one."""
        return len(self.records)

    def load(self) -> dict[str, list]:
        """Read the document from disk, creating an empty one if it is missing."""
        if not self.path.exists():
            self.records = {}
            self._write()
            return self.records
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Cannot read results from {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"{self.path} does not contain a JSON object")
        self.records = data
        return self.records

    def reset(self) -> None:
        """Truncate the document to ``{}``."""
        self.records = {}
        self._write()

    def put(self, domain: str, rank: int, title: str) -> None:
        self.records[domain] = [rank, title]
        self._write()

    def top(self, limit: int | None = None) -> list[EnrichedRecord]:
        """Return stored records ordered by rank."""
        records = sorted(
            (EnrichedRecord(domain, rank, title) for domain, (rank, title) in self.records.items()),
            key=lambda r: r.rank,
        )
        return records if limit is None else records[:limit]

    def _write(self) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(self.records, ensure_ascii=False), encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as exc:
            raise StorageError(f"Cannot write results to {self.path}: {exc}") from exc
