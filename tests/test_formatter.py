from __future__ import annotations

import pytest

from conftest import HASH, make_config

from services.classifier import RemoteMetadata
from services.decoder import LocalMetadata
from services.formatter import (
    assemble,
    fetch_screenshots,
    format_bytes,
    format_local,
    format_remote,
    local_text,
    notice,
    remote_text,
    screenshot_urls,
)
from services.message import Attachment


@pytest.mark.parametrize(
    ("size", "expected"),
    [
        (0, "0 B"),
        (1, "1 B"),
        (1023, "1023 B"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (1048576, "1 MB"),
        (276134947, "263.34 MB"),
        (1024 ** 3, "1 GB"),
        (1024 ** 6, "1 EB"),
        (1024 ** 7, "1024 EB"),
    ],
)
def test_format_bytes(size: int, expected: str) -> None:
    assert format_bytes(size) == expected


def test_format_bytes_decimals() -> None:
    assert format_bytes(1234567, decimals=0) == "1 MB"
    assert format_bytes(1234567, decimals=3) == "1.177 MB"


def test_screenshot_urls_accepts_strings_and_objects() -> None:
    items = [
        "https://img.example/1.jpg",
        {"screenshot": "https://img.example/2.jpg", "time": 12},
        {"time": 3},
        None,
        "ftp://nope",
    ]

    assert screenshot_urls(items) == ["https://img.example/1.jpg", "https://img.example/2.jpg"]


def test_remote_text_lines() -> None:
    data = RemoteMetadata(name="Big Buck Bunny", size=1536, count=2, file_type="video")

    text = remote_text(data, with_screenshots=False)

    assert text.splitlines()[0] == "✅ 解析成功"
    assert "🎬 内容类型: video" in text
    assert "📝 资源名称: Big Buck Bunny" in text
    assert "💾 总大小: 1.5 KB" in text
    assert "🧩 文件数量: 2" in text
    assert "截图预览" not in text


def test_remote_text_unknown_type() -> None:
    data = RemoteMetadata(name="x", size=0, file_type="hologram")

    text = remote_text(data, with_screenshots=True)

    assert "❓ 内容类型: hologram" in text
    assert text.endswith("🖼️ 截图预览:")


def test_local_text_full_and_hash_only() -> None:
    full = local_text(LocalMetadata(hash=HASH, name="movie", trackers=["udp://t"], size=2048))
    bare = local_text(LocalMetadata(hash=HASH))

    assert f"🔑 哈希值: {HASH}" in full
    assert "💾 总大小: 2 KB" in full
    assert "📡 Tracker 数量: 1" in full
    assert "只包含哈希值" not in full
    assert "💾 总大小: unknown" in bare
    assert "📝 资源名称: unknown" in bare
    assert "只包含哈希值" in bare


def test_format_local_is_a_single_text_unit() -> None:
    units = format_local(LocalMetadata(hash=HASH))

    assert len(units) == 1
    assert units[0].images == []
    assert not units[0].forward


@pytest.mark.asyncio
async def test_failed_screenshots_are_dropped() -> None:
    async def _fetch(url: str):
        if url.endswith("bad"):
            raise RuntimeError("boom")
        if url.endswith("missing"):
            return None
        return b"png", "image/png"

    images = await fetch_screenshots(
        ["https://a/ok", "https://a/bad", "https://a/missing", "https://a/ok2"], _fetch,
    )

    assert [img.url for img in images] == ["https://a/ok", "https://a/ok2"]
    assert all(img.media_type == "image/jpeg" for img in images)
    assert [img.name for img in images] == ["screenshot_1.jpg", "screenshot_2.jpg"]


def _images(n: int) -> list[Attachment]:
    return [Attachment(data=bytes([i])) for i in range(n)]


def test_assemble_separately_wins_over_forward() -> None:
    cfg = make_config(send_separately=True, use_forward=True)

    units = assemble("text", _images(3), cfg, "napcat")

    assert len(units) == 4
    assert units[0].text == "text" and units[0].images == []
    assert all(len(u.images) == 1 and not u.text for u in units[1:])
    assert not any(u.forward for u in units)


def test_assemble_forward_only_on_supported_platforms() -> None:
    cfg = make_config(use_forward=True)

    qq = assemble("text", _images(2), cfg, "NapCat")
    tg = assemble("text", _images(2), cfg, "telegram")

    assert len(qq) == 1 and qq[0].forward and len(qq[0].images) == 2
    assert len(tg) == 1 and not tg[0].forward


@pytest.mark.asyncio
async def test_format_remote_skips_downloads_when_screenshots_off() -> None:
    calls: list[str] = []

    async def _fetch(url: str):
        calls.append(url)
        return b"x", "image/jpeg"

    data = RemoteMetadata(name="a", size=1, screenshots=["https://img/1"])
    units = await format_remote(data, make_config(show_screenshot=False), "napcat", _fetch)

    assert calls == []
    assert len(units) == 1
    assert "截图预览" not in units[0].text


def test_notice_quotes_trigger() -> None:
    assert notice("hi", "9").quote_id == "9"
    assert notice("hi", "").quote_id is None


@pytest.mark.asyncio
async def test_octet_stream_screenshots_are_labelled_jpeg() -> None:
    async def _fetch(url: str):
        return b"\xff\xd8jpeg", "application/octet-stream"

    images = await fetch_screenshots(["https://img.example/1.jpg"], _fetch)

    assert len(images) == 1
    assert images[0].data == b"\xff\xd8jpeg"
    assert images[0].media_type == "image/jpeg"
