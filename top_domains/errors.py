"""Exception types raised across the import and enrichment pipeline."""


class TopDomainsError(Exception):
    """Base class for errors surfaced to the operator."""


class UpstreamError(TopDomainsError):
    """A remote fetch failed or returned a non-success status."""


class NotFound(TopDomainsError):
    """An expected link was not present on a remote page."""


class StorageError(TopDomainsError):
    """A persisted artifact could not be read or written."""


class CuratedTableError(TopDomainsError):
    """The curated removal/alias/title tables are malformed."""


class ParseSkip(Exception):
    """A feed line is malformed or is the header and should be dropped."""


class ScrapeError(Exception):
    """A live page fetch did not produce a usable response."""
