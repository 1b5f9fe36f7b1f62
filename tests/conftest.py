import io

import pytest
from rich.console import Console

from top_domains.curated import parse_curated


def _capture_console() -> tuple[Console, io.StringIO]:
    """Create a Console that writes to a StringIO for test capturing."""
    buf = io.StringIO()
    return Console(file=buf, force_terminal=True, width=120), buf


@pytest.fixture
def curated():
    return parse_curated({
        "removals": [{"main": "parked.com"}, {"main": "gstatic.com"}],
        "duplicates": [
            {"main": "google.com", "alt": ["google.co.uk", "google.de"]},
            {"main": "facebook.com", "alt": ["fb.com"]},
        ],
        "titles": {"w3.org": "W3C", "live.com": "Outlook"},
    })
