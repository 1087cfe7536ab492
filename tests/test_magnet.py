from __future__ import annotations

from conftest import HASH, MAGNET

from services.magnet import MagnetLink, find_magnet, has_hash


def test_finds_link_inside_chat_text() -> None:
    link = find_magnet(f"看看这个 {MAGNET} 不错")

    assert link == MagnetLink(MAGNET)
    assert str(link) == MAGNET


def test_link_stops_at_quotes() -> None:
    link = find_magnet(f'<a href="{MAGNET}">x</a>')

    assert link is not None
    assert link.uri == MAGNET


def test_hash_may_follow_other_parameters() -> None:
    uri = f"magnet:?dn=file&xt=urn:btih:{HASH}"

    assert find_magnet(uri) == MagnetLink(uri)


def test_prefix_match_is_case_insensitive() -> None:
    uri = f"MAGNET:?XT=URN:BTIH:{HASH.upper()}"

    assert find_magnet(uri) == MagnetLink(uri)


def test_candidate_without_hash_is_ignored() -> None:
    assert find_magnet("magnet:?dn=file&tr=udp%3A%2F%2Ft") is None
    assert find_magnet("magnet:?xt=urn:sha1:abcdef") is None


def test_plain_text_has_no_link() -> None:
    assert find_magnet("") is None
    assert find_magnet("no links here, just magnet talk") is None


def test_only_first_candidate_counts() -> None:
    second = f"magnet:?xt=urn:btih:{HASH}"
    text = f"magnet:?dn=nohash {second}"

    # the first candidate lacks a hash, so the message is not a trigger
    assert find_magnet(text) is None


def test_has_hash() -> None:
    assert has_hash(MAGNET)
    assert not has_hash("magnet:?dn=urn:btih:abc")


def test_link_stops_at_cjk_text() -> None:
    bare = f"magnet:?xt=urn:btih:{HASH}"

    assert find_magnet(f"看看 {bare}，谢谢") == MagnetLink(bare)
    assert find_magnet(f"{bare}谢谢大佬") == MagnetLink(bare)
    assert find_magnet(f"（{MAGNET}）") == MagnetLink(MAGNET)


def test_trailing_sentence_punctuation_is_dropped() -> None:
    bare = f"magnet:?xt=urn:btih:{HASH}"

    assert find_magnet(f"try {bare}.") == MagnetLink(bare)
    assert find_magnet(f"({bare})") == MagnetLink(bare)


def test_unencoded_query_in_tracker_is_kept() -> None:
    uri = f"magnet:?xt=urn:btih:{HASH}&tr=http://t.example/announce?passkey=abc"

    assert find_magnet(f"{uri} 好") == MagnetLink(uri)
