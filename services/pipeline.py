"""Magnet resolution pipeline.

Drivers hand every inbound message to :meth:`MagnetPipeline.on_message`.
Messages without a magnet link fall through untouched.  For a link, the
pipeline claims a throttle slot, posts a "resolving" placeholder, looks the
link up, and replies with the formatted result, a reduced local decode, or a
failure notice.  The placeholder is always withdrawn afterwards.
"""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, Callable, Sequence

import services.logger as log
import services.media as media
import services.util as u
from services.classifier import Malformed, MatchRules, OtherError, QuotaError, Success, classify
from services.config_schema import ResolverConfig
from services.decoder import DEFAULT_DECODERS, Decoder, decode_local
from services.error import TransportError, catch_and_log
from services.formatter import Fetcher, format_local, format_remote, notice
from services.magnet import MagnetLink, find_magnet
from services.message import NormalizedMessage, ReplyUnit
from services.remote import RemoteResolver
from services.throttle import RateLimiter

if TYPE_CHECKING:
    from drivers import BaseDriver

l = log.get_logger()

PLACEHOLDER_TEXT = "正在通过 whatslink.info 解析链接，请稍候..."
THROTTLED_TEXT = "请求过于频繁，请在 {seconds} 秒后再试。"
FAILURE_TEXT = "解析失败，可能是网络问题或 API 暂时不可用。"
QUOTA_TEXT = "解析服务请求次数已达上限，请稍后再试。"
SERVICE_ERROR_TEXT = "解析失败：{reason}"
INCOMPLETE_TEXT = "解析失败：API 返回的数据不完整。"
UNRESOLVABLE_TEXT = "无法解析该磁力链接。"


class MagnetPipeline:

    def __init__(
        self,
        config: ResolverConfig,
        limiter: RateLimiter | None = None,
        remote: RemoteResolver | None = None,
        fetch: Fetcher | None = None,
        decoders: Sequence[Decoder] = DEFAULT_DECODERS,
        clock: Callable[[], float] = u.now_ms,
    ):
        self.config = config
        self.limiter = limiter or RateLimiter(config.min_interval)
        self.remote = remote or RemoteResolver(
            config.api_endpoint, config.timeout, config.custom_user_agent,
        )
        self.rules = MatchRules.from_config(config)
        self._fetch = fetch or partial(
            media.fetch,
            max_bytes=config.screenshot_max_size,
            timeout=config.timeout / 1000,
            headers={"User-Agent": config.custom_user_agent},
        )
        self._decoders = decoders
        self._clock = clock

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def on_message(self, msg: NormalizedMessage, driver: BaseDriver) -> bool:
        """Handle *msg*; returns False when it carries no magnet link."""
        link = find_magnet(msg.text)
        if link is None:
            return False

        debug = self.config.debug_mode
        if debug:
            l.info(f"Magnet link from {msg.platform}/{msg.instance_id}: {link}")

        decision = self.limiter.try_acquire(self._clock())
        if not decision.allowed:
            if debug:
                l.info(f"Throttled, retry in {decision.retry_after_ms} ms")
            text = THROTTLED_TEXT.format(seconds=decision.retry_after_seconds)
            await driver.send(msg.channel, notice(text, msg.message_id))
            return True

        placeholder_ids: list[str] = []
        try:
            placeholder_ids = await driver.send(msg.channel, notice(PLACEHOLDER_TEXT, msg.message_id))
            units = await self.resolve(link, msg)
            for unit in units:
                await driver.send(msg.channel, unit)
        except Exception as e:
            l.error(f"Resolving {link} failed: {e!r}")
            await self._send_failure(msg, driver)
        finally:
            if placeholder_ids:
                if debug:
                    l.info("Task finished, withdrawing placeholder")
                try:
                    await driver.delete(msg.channel, placeholder_ids[0])
                except Exception as e:
                    # the placeholder may already be gone
                    l.debug(f"Placeholder delete failed: {e!r}")
        return True

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(self, link: MagnetLink, msg: NormalizedMessage) -> list[ReplyUnit]:
        """Look *link* up and turn the outcome into reply units."""
        try:
            with catch_and_log(f"lookup {link}", expected=(TransportError,)):
                body = await self.remote.lookup(link)
        except TransportError:
            return self._degraded(link, msg, quota=False)

        if self.config.debug_mode:
            l.info(f"Lookup response: {body!r}")

        match classify(body, self.rules):
            case Success(data=data):
                return await format_remote(data, self.config, msg.platform, self._fetch)
            case QuotaError(message=message):
                l.warning(f"Lookup service refused with a quota error: {message}")
                return self._degraded(link, msg, quota=True)
            case OtherError(message=message):
                l.warning(f"Lookup service reported an error: {message}")
                return [notice(SERVICE_ERROR_TEXT.format(reason=message or "未知错误"), msg.message_id)]
            case Malformed(reason=reason):
                l.warning(f"Lookup response unusable: {reason}")
                return [notice(INCOMPLETE_TEXT, msg.message_id)]

    def _degraded(self, link: MagnetLink, msg: NormalizedMessage, quota: bool) -> list[ReplyUnit]:
        """Reply for a refused or unreachable service."""
        if not self.config.use_local_parsing:
            return [notice(QUOTA_TEXT if quota else FAILURE_TEXT, msg.message_id)]

        meta = decode_local(link.uri, self._decoders, debug=self.config.debug_mode)
        if meta is None:
            l.warning(f"Local decoding could not recover a hash from {link}")
            return [notice(UNRESOLVABLE_TEXT, msg.message_id)]
        return format_local(meta)

    async def _send_failure(self, msg: NormalizedMessage, driver: BaseDriver) -> None:
        try:
            await driver.send(msg.channel, notice(FAILURE_TEXT, msg.message_id))
        except Exception as e:
            l.error(f"Failure notice could not be sent: {e!r}")

    async def close(self) -> None:
        await self.remote.close()
        await media.close()
