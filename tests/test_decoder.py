from __future__ import annotations

from conftest import HASH, MAGNET

from services.decoder import (
    LocalMetadata,
    ManualDecoder,
    StructuredDecoder,
    decode_local,
)
from services.magnet import find_magnet


def test_structured_decode() -> None:
    meta = StructuredDecoder().decode(MAGNET)

    assert meta == LocalMetadata(
        hash=HASH,
        name="Big Buck Bunny",
        trackers=["udp://tracker.example.org:1337", "udp://open.example.net:6969"],
        size=276134947,
    )
    assert not meta.hash_only


def test_decoders_agree_on_well_formed_links() -> None:
    uris = [
        MAGNET,
        f"magnet:?xt=urn:btih:{HASH}",
        f"magnet:?xt=urn:btih:{HASH}&dn=%E7%A3%81%E5%8A%9B%20test",
        f"magnet:?dn=first&xt=urn:btih:{HASH}&tr=http%3A%2F%2Ft%2Fannounce",
    ]
    for uri in uris:
        assert StructuredDecoder().decode(uri) == ManualDecoder().decode(uri), uri


def test_hash_only_link() -> None:
    meta = ManualDecoder().decode(f"magnet:?xt=urn:btih:{HASH}")

    assert meta is not None
    assert meta.name == "unknown"
    assert meta.size is None
    assert meta.trackers == []
    assert meta.hash_only


def test_first_btih_wins() -> None:
    uri = f"magnet:?xt=urn:btih:{HASH}&xt=urn:btih:ffff"

    assert StructuredDecoder().decode(uri).hash == HASH


def test_structured_rejects_bad_size_manual_tolerates_it() -> None:
    uri = f"magnet:?xt=urn:btih:{HASH}&xl=big"

    assert StructuredDecoder().decode(uri) is None
    manual = ManualDecoder().decode(uri)
    assert manual is not None
    assert manual.size is None


def test_manual_skips_pairs_without_equals() -> None:
    uri = f"magnet:?xt=urn:btih:{HASH}&junk&dn=name"

    assert StructuredDecoder().decode(uri) is None
    assert ManualDecoder().decode(uri).name == "name"


def test_no_hash_decodes_to_none() -> None:
    uri = "magnet:?dn=name&xl=10"

    assert StructuredDecoder().decode(uri) is None
    assert ManualDecoder().decode(uri) is None
    assert decode_local(uri) is None


def test_decode_local_falls_back_to_manual() -> None:
    meta = decode_local(f"magnet:?xt=urn:btih:{HASH}&junk&xl=12")

    assert meta is not None
    assert meta.hash == HASH
    assert meta.size == 12


def test_decode_local_skips_unavailable_decoders() -> None:
    structured = StructuredDecoder()
    structured.available = False

    meta = decode_local(MAGNET, [structured, ManualDecoder()], debug=True)

    assert meta is not None
    assert meta.hash == HASH


def test_no_decoder_available() -> None:
    structured = StructuredDecoder()
    structured.available = False

    assert decode_local(MAGNET, [structured]) is None


def test_hash_from_link_followed_by_chat_text() -> None:
    link = find_magnet(f"看看 magnet:?xt=urn:btih:{HASH}，谢谢")

    meta = decode_local(link.uri)

    assert meta is not None
    assert meta.hash == HASH
