"""Offline magnet URI decoding, used when the metadata service is unavailable.

Two strategies share one output shape.  ``StructuredDecoder`` relies on
``urllib.parse`` with strict query parsing; ``ManualDecoder`` splits the
string by hand and tolerates junk.  ``decode_local`` tries them in order and
returns the first usable result; the second is a substitute for the first,
never an enrichment of it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Protocol, Sequence
from urllib.parse import parse_qsl, unquote_plus, urlsplit

import services.logger as log
from services.magnet import BTIH_PREFIX

l = log.get_logger()

MAGNET_PREFIX = "magnet:?"
UNKNOWN_NAME = "unknown"


@dataclass
class LocalMetadata:
    hash: str
    name: str = UNKNOWN_NAME
    trackers: list[str] = field(default_factory=list)
    size: int | None = None

    @property
    def usable(self) -> bool:
        return bool(self.hash)

    @property
    def hash_only(self) -> bool:
        """True when nothing besides the hash carries information."""
        return self.name == UNKNOWN_NAME and self.size is None and not self.trackers


class Decoder(Protocol):
    name: str
    available: bool

    def decode(self, uri: str) -> LocalMetadata | None: ...


def _assemble(pairs: Iterable[tuple[str, str]], *, strict_size: bool) -> LocalMetadata | None:
    meta = LocalMetadata(hash="")
    for key, value in pairs:
        key = key.lower()
        if key == "xt":
            if not meta.hash and value.lower().startswith(BTIH_PREFIX):
                meta.hash = value[len(BTIH_PREFIX):].strip()
        elif key == "dn":
            if value:
                meta.name = value
        elif key == "tr":
            if value:
                meta.trackers.append(value)
        elif key == "xl":
            if value.isdigit():
                meta.size = int(value)
            elif strict_size:
                raise ValueError(f"non-numeric xl value {value!r}")
    return meta if meta.usable else None


class StructuredDecoder:
    """Decode through ``urllib.parse``; any parse failure means unavailable."""

    name = "structured"
    available = True

    def decode(self, uri: str) -> LocalMetadata | None:
        if not self.available:
            return None
        try:
            parts = urlsplit(uri)
            if parts.scheme.lower() != "magnet":
                return None
            pairs = parse_qsl(parts.query, keep_blank_values=True, strict_parsing=True)
            return _assemble(pairs, strict_size=True)
        except ValueError as e:
            l.debug(f"structured magnet decode failed: {e}")
            return None


class ManualDecoder:
    """Split the query string by hand; pairs without ``=`` are skipped."""

    name = "manual"
    available = True

    def decode(self, uri: str) -> LocalMetadata | None:
        if uri[:len(MAGNET_PREFIX)].lower() != MAGNET_PREFIX:
            return None

        pairs: list[tuple[str, str]] = []
        for chunk in uri[len(MAGNET_PREFIX):].split("&"):
            key, sep, raw = chunk.partition("=")
            if not sep or not key:
                continue
            pairs.append((unquote_plus(key), unquote_plus(raw)))
        return _assemble(pairs, strict_size=False)


DEFAULT_DECODERS: tuple[Decoder, ...] = (StructuredDecoder(), ManualDecoder())


def decode_local(
    uri: str,
    decoders: Sequence[Decoder] = DEFAULT_DECODERS,
    debug: bool = False,
) -> LocalMetadata | None:
    """Return metadata from the first decoder that yields a usable result."""
    for decoder in decoders:
        if not decoder.available:
            if debug:
                l.info(f"Local decoder '{decoder.name}' unavailable, skipping")
            continue
        meta = decoder.decode(uri)
        if debug:
            l.info(f"Local decoder '{decoder.name}' result: {meta}")
        if meta is not None and meta.usable:
            return meta
    return None
