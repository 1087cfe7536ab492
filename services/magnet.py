"""Magnet link detection in free chat text."""

from __future__ import annotations

import re
from dataclasses import dataclass

BTIH_PREFIX = "urn:btih:"

# magnet:? followed by one or more key=value pairs joined by "&".
# Values are percent-encoded, so the match stops at the first character that
# cannot appear in a URI (whitespace, quotes, CJK text, full-width punctuation).
_KEY = r"[A-Za-z0-9._~%\-]+"
_VALUE = r"[A-Za-z0-9%._~:/+\-!$*,;@?=]*"
MAGNET_PATTERN = re.compile(
    rf"magnet:\?{_KEY}={_VALUE}(?:&{_KEY}={_VALUE})*",
    re.IGNORECASE,
)

# Sentence punctuation glued to the end of a link belongs to the sentence.
_TRAILING_PUNCTUATION = ".,;:!?"

# The xt parameter must carry a BitTorrent info hash.
_HASH_PARAM = re.compile(r"(?:\?|&)xt=urn:btih:[a-z0-9]+", re.IGNORECASE)


@dataclass(frozen=True)
class MagnetLink:
    """A magnet URI extracted from a message."""

    uri: str

    def __str__(self) -> str:
        return self.uri


def has_hash(uri: str) -> bool:
    return _HASH_PARAM.search(uri) is not None


def find_magnet(text: str) -> MagnetLink | None:
    """Return the first magnet link in *text*, or ``None``.

    A candidate without an ``xt=urn:btih:`` parameter is not an error; it is
    indistinguishable from unrelated text that happens to contain the prefix.
    """
    if not text:
        return None
    match = MAGNET_PATTERN.search(text)
    if match is None:
        return None
    uri = match.group(0).rstrip(_TRAILING_PUNCTUATION)
    if not has_hash(uri):
        return None
    return MagnetLink(uri)
