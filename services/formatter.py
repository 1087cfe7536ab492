"""Reply text and reply-unit assembly for resolved magnet links."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Sequence

import services.logger as log
from services.classifier import RemoteMetadata
from services.config_schema import ResolverConfig
from services.decoder import LocalMetadata
from services.message import Attachment, ReplyUnit

l = log.get_logger()

# Downloads one URL; returns (bytes, served content type) or None on failure.
Fetcher = Callable[[str], Awaitable[tuple[bytes, str] | None]]

SEPARATOR = "--------------------------"
SCREENSHOT_MEDIA_TYPE = "image/jpeg"

FILE_TYPE_ICONS = {
    "folder":   "📁",
    "video":    "🎬",
    "audio":    "🎵",
    "archive":  "📦",
    "image":    "🖼️",
    "document": "📄",
    "text":     "📝",
    "font":     "🔠",
    "unknown":  "❓",
}
DEFAULT_ICON = "❓"

_UNITS = ("B", "KB", "MB", "GB", "TB", "PB", "EB")


def format_bytes(size: int, decimals: int = 2) -> str:
    """Human-readable binary size: ``1536 -> "1.5 KB"``, ``0 -> "0 B"``."""
    if size <= 0:
        return "0 B"
    value = float(size)
    i = 0
    while value >= 1024 and i < len(_UNITS) - 1:
        value /= 1024
        i += 1
    text = f"{value:.{max(decimals, 0)}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {_UNITS[i]}"


def screenshot_urls(items: Sequence[Any]) -> list[str]:
    """Pull image URLs out of the service's screenshot list.

    Entries are either URL strings or objects with a ``screenshot`` field;
    anything else is skipped.
    """
    urls: list[str] = []
    for item in items:
        url = item.get("screenshot") if isinstance(item, dict) else item
        if isinstance(url, str) and url.startswith("http"):
            urls.append(url)
    return urls


def remote_text(data: RemoteMetadata, with_screenshots: bool) -> str:
    label = data.file_type or "unknown"
    icon = FILE_TYPE_ICONS.get(label, DEFAULT_ICON)
    lines = [
        "✅ 解析成功",
        SEPARATOR,
        f"{icon} 内容类型: {label}",
        f"📝 资源名称: {data.name}",
        f"💾 总大小: {format_bytes(data.size)}",
        f"🧩 文件数量: {data.count}",
    ]
    if with_screenshots:
        lines += [SEPARATOR, "🖼️ 截图预览:"]
    return "\n".join(lines)


def local_text(meta: LocalMetadata) -> str:
    size = format_bytes(meta.size) if meta.size is not None else "unknown"
    if meta.hash_only:
        hint = "💡 该磁力链接只包含哈希值，原始链接可能不完整。"
    else:
        hint = "💡 本地解析无法获取截图和文件列表。"
    return "\n".join([
        "⚠️ 解析服务暂不可用，以下为本地解析结果",
        SEPARATOR,
        f"📝 资源名称: {meta.name}",
        f"🔑 哈希值: {meta.hash}",
        f"💾 总大小: {size}",
        f"📡 Tracker 数量: {len(meta.trackers)}",
        SEPARATOR,
        hint,
    ])


async def fetch_screenshots(urls: Sequence[str], fetch: Fetcher) -> list[Attachment]:
    """Download each screenshot; a failed download only drops that image."""
    images: list[Attachment] = []
    for url in urls:
        try:
            result = await fetch(url)
        except Exception as e:
            l.warning(f"Screenshot download failed: {url}: {e!r}")
            continue
        if result is None:
            continue
        data, served_type = result
        if served_type != SCREENSHOT_MEDIA_TYPE:
            # TODO: confirm whether the service ever serves non-JPEG screenshots
            l.debug(f"Screenshot {url} served as {served_type}, labelled {SCREENSHOT_MEDIA_TYPE}")
        images.append(Attachment(
            data=data,
            media_type=SCREENSHOT_MEDIA_TYPE,
            name=f"screenshot_{len(images) + 1}.jpg",
            url=url,
        ))
    return images


def assemble(text: str, images: list[Attachment], cfg: ResolverConfig, platform: str) -> list[ReplyUnit]:
    """Shape the remote result per delivery mode; ``send_separately`` wins over forwarding."""
    if cfg.send_separately:
        return [ReplyUnit(text=text)] + [ReplyUnit(images=[img]) for img in images]
    forward = cfg.use_forward and platform.lower() in cfg.forward_platforms
    return [ReplyUnit(text=text, images=images, forward=forward)]


async def format_remote(
    data: RemoteMetadata,
    cfg: ResolverConfig,
    platform: str,
    fetch: Fetcher,
) -> list[ReplyUnit]:
    with_screenshots = cfg.show_screenshot and bool(data.screenshots)
    text = remote_text(data, with_screenshots)

    images: list[Attachment] = []
    if with_screenshots:
        if cfg.debug_mode:
            l.info(f"Screenshot entries from service: {data.screenshots!r}")
        images = await fetch_screenshots(screenshot_urls(data.screenshots), fetch)

    return assemble(text, images, cfg, platform)


def format_local(meta: LocalMetadata) -> list[ReplyUnit]:
    return [ReplyUnit(text=local_text(meta))]


def notice(text: str, quote_id: str | None = None) -> ReplyUnit:
    return ReplyUnit(text=text, quote_id=quote_id or None)
