"""Paths, endpoints and tuning knobs shared by the pipeline stages."""

import os
from pathlib import Path

DATA_DIR = Path(os.environ.get("TOP_DOMAINS_DATA_DIR", "data"))
DOMAINS_PATH = DATA_DIR / "domains-1m.txt"
OFFICIAL_DOMAINS_PATH = DATA_DIR / "domains-official-1m.txt"
RESULTS_PATH = DATA_DIR / "domain-info.json"

# --- Upstream sources ---
WEB_GRAPHS_URL = "https://commoncrawl.org/web-graphs"
TRANCO_URL = "https://tranco-list.eu/top-1m.csv.zip"

# --- Scraper identity ---
USER_AGENT = "Mozilla/5.0 (compatible; top-domains/0.1; homepage title lookup)"

# --- Timeouts (seconds) ---
LOCATOR_TIMEOUT = 10.0
SCRAPE_TIMEOUT = 5.0
DOWNLOAD_TIMEOUT = 60.0

# --- Limits ---
IMPORT_LIMIT = 1_000_000
ENRICH_START = 0
ENRICH_END = 1000
SCRAPE_DELAY = 0.2
PROGRESS_EVERY = 100_000
