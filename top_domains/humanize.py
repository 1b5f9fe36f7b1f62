"""Turn a bare domain label like ``nytimes`` into a readable name like ``NY Times``.

Humanization is an ordered list of regex rules applied to an immutable string,
followed by per-word casing. Each rule is a plain value so it can be tested on
its own.
"""

import re
from typing import NamedTuple

import tldextract

# Offline Public Suffix List snapshot, no network fetch and no disk cache.
_EXTRACT = tldextract.TLDExtract(suffix_list_urls=(), cache_dir=None)

DOMAIN_ENDINGS_RE = re.compile(r"\.(com|net|org|io|gov|edu|co\.uk)$", re.IGNORECASE)

# Publisher/brand words that usually start or end a compound name.
VOCABULARY = (
    "post|the|insider|news|times|daily|weekly|herald|tribune|journal|gazette|"
    "press|star|sun|mail|today|now|live|tv|radio|web|net|tech|blog|online|"
    "digital|media|corp|inc|ltd|llc"
)

STOP_WORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "has", "he",
    "in", "is", "it", "its", "of", "on", "that", "the", "to", "was", "were",
    "will", "with",
})

SHORT_NAME_LENGTH = 5


class Rule(NamedTuple):
    name: str
    pattern: re.Pattern[str]
    replacement: str
    count: int = 0

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text, count=self.count)


RULES: tuple[Rule, ...] = (
    Rule("domain_ending", DOMAIN_ENDINGS_RE, ""),
    Rule("camel_case", re.compile(r"([a-z])([A-Z])"), r"\1 \2"),
    Rule("letter_digit", re.compile(r"([a-zA-Z])(\d)"), r"\1 \2"),
    Rule("digit_letter", re.compile(r"(\d)([a-zA-Z])"), r"\1 \2"),
    Rule("lower_capitalized", re.compile(r"([a-z])([A-Z][a-z])"), r"\1 \2"),
    Rule("word_prefix", re.compile(rf"({VOCABULARY})([a-z])", re.IGNORECASE), r"\1 \2"),
    Rule("word_suffix", re.compile(rf"([a-z])({VOCABULARY})", re.IGNORECASE), r"\1 \2"),
    Rule("whitespace", re.compile(r"\s+"), " "),
    Rule("dot_com", re.compile(r"\.com"), "", count=1),
    Rule("home", re.compile(r"home", re.IGNORECASE), ""),
)


def split_words(label: str) -> str:
    """Run every rule in order and trim the result."""
    text = label
    for rule in RULES:
        text = rule.apply(text)
    return text.strip()


def case_word(word: str) -> str:
    """Upper-case likely acronyms (short, not a stop word); title-case the rest."""
    if len(word) <= 3 and word.lower() not in STOP_WORDS:
        return word.upper()
    return word[:1].upper() + word[1:].lower()


def humanize_label(label: str) -> str:
    """Humanize a registrable-domain label, e.g. ``theguardian`` -> ``The Guardian``."""
    title = " ".join(case_word(word) for word in split_words(label).split(" "))
    if len(re.sub(r"\s", "", title)) < SHORT_NAME_LENGTH:
        title = title.upper()
    return title


def registrable_label(domain: str) -> str:
    """Return the domain without its public suffix or subdomains (``news.bbc.co.uk`` -> ``bbc``)."""
    return _EXTRACT(domain).domain


def humanize_domain(domain: str) -> str | None:
    label = registrable_label(domain)
    if not label:
        return None
    return humanize_label(label) or None
