"""Top domains: ingest a domain-ranking feed and enrich it with source titles."""

__version__ = "0.1.0"
