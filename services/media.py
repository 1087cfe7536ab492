# Shared media download utility used for screenshot previews.
#
# Usage:
#   from services.media import fetch
#   result = await fetch(url, max_bytes=8_000_000, timeout=10)
#   if result:
#       data, content_type = result

import aiohttp

import services.logger as log

l = log.get_logger()

_DEFAULT_MAX = 10 * 1024 * 1024  # 10 MB
_DEFAULT_TIMEOUT = 60  # seconds

_session: aiohttp.ClientSession | None = None


def _get_session() -> aiohttp.ClientSession:
    global _session
    if _session is None or _session.closed:
        _session = aiohttp.ClientSession()
    return _session


async def fetch(
    url: str,
    max_bytes: int = _DEFAULT_MAX,
    timeout: float = _DEFAULT_TIMEOUT,
    headers: dict[str, str] | None = None,
) -> tuple[bytes, str] | None:
    """
    Download *url* up to *max_bytes* within *timeout* seconds.

    Sends a HEAD request first to check Content-Length before committing to a
    full download.  Falls back to streaming if the server doesn't support HEAD.

    Returns ``(data, content_type)`` on success, or ``None`` if the file is
    oversized, the URL is empty, or the download fails or times out.
    """
    if not url:
        return None

    session = _get_session()
    client_timeout = aiohttp.ClientTimeout(total=timeout)

    try:
        # Pre-flight HEAD to skip obviously oversized files without downloading
        try:
            async with session.head(
                url, allow_redirects=True, timeout=client_timeout, headers=headers,
            ) as resp:
                cl = resp.headers.get("Content-Length")
                if cl and cl.isdigit() and int(cl) > max_bytes:
                    l.debug(f"media.fetch: skipping {url!r}, Content-Length {cl} > {max_bytes}")
                    return None
        except (aiohttp.ClientError, TimeoutError) as e:
            l.debug(f"media.fetch: HEAD {url!r} unsupported ({e}); trying GET")

        async with session.get(url, timeout=client_timeout, headers=headers) as resp:
            resp.raise_for_status()
            served = resp.content_type or "application/octet-stream"
            chunks: list[bytes] = []
            total = 0
            async for chunk in resp.content.iter_chunked(65536):
                total += len(chunk)
                if total > max_bytes:
                    l.debug(f"media.fetch: {url!r} exceeded {max_bytes} bytes, aborting")
                    return None
                chunks.append(chunk)
            return b"".join(chunks), served

    except Exception as e:
        l.warning(f"media.fetch failed for {url!r}: {e!r}")
        return None


async def close() -> None:
    """Close the shared download session."""
    global _session
    if _session is not None and not _session.closed:
        await _session.close()
    _session = None


def filename_for(name: str, content_type: str) -> str:
    """Return a sane filename given an optional hint and a MIME type."""
    if name:
        return name
    _fallback = {
        "image/jpeg":  "photo.jpg",
        "image/png":   "photo.png",
        "image/gif":   "image.gif",
        "image/webp":  "image.webp",
    }
    return _fallback.get(content_type, "attachment.bin")
