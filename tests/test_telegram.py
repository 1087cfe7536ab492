from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from drivers.telegram import TelegramConfig, TelegramDriver
from services.message import Attachment, ReplyUnit


class _FakeBot:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self._next = 0

    def _message(self) -> SimpleNamespace:
        self._next += 1
        return SimpleNamespace(message_id=self._next)

    async def send_message(self, **kwargs):
        self.calls.append(("send_message", kwargs))
        return self._message()

    async def send_photo(self, **kwargs):
        self.calls.append(("send_photo", kwargs))
        return self._message()

    async def send_media_group(self, **kwargs):
        self.calls.append(("send_media_group", kwargs))
        return tuple(self._message() for _ in kwargs["media"])

    async def delete_message(self, **kwargs):
        self.calls.append(("delete_message", kwargs))
        return True


class _FakePipeline:
    def __init__(self) -> None:
        self.messages = []

    async def on_message(self, msg, driver) -> bool:
        self.messages.append(msg)
        return True


def _driver() -> tuple[TelegramDriver, _FakeBot]:
    driver = TelegramDriver("main", TelegramConfig(bot_token="123456:ABCDEF"), _FakePipeline())
    bot = _FakeBot()
    driver._app = SimpleNamespace(bot=bot)
    return driver, bot


def _images(n: int) -> list[Attachment]:
    return [Attachment(data=bytes([i]), name=f"s{i}.jpg") for i in range(n)]


@pytest.mark.asyncio
async def test_text_reply_quotes_trigger() -> None:
    driver, bot = _driver()

    ids = await driver.send({"chat_id": "-100123"}, ReplyUnit(text="hi", quote_id="7"))

    assert ids == ["1"]
    name, kwargs = bot.calls[0]
    assert name == "send_message"
    assert kwargs["chat_id"] == -100123
    assert kwargs["reply_parameters"].message_id == 7


@pytest.mark.asyncio
async def test_single_image_uses_photo_with_caption() -> None:
    driver, bot = _driver()

    await driver.send({"chat_id": "1"}, ReplyUnit(images=_images(1)))

    name, kwargs = bot.calls[0]
    assert name == "send_photo"
    assert kwargs["caption"] is None
    assert kwargs["photo"].name == "s0.jpg"


@pytest.mark.asyncio
async def test_many_images_are_grouped_with_caption_first() -> None:
    driver, bot = _driver()

    ids = await driver.send({"chat_id": "1"}, ReplyUnit(text="summary", images=_images(11), forward=True))

    assert [name for name, _ in bot.calls] == ["send_media_group", "send_photo"]
    group = bot.calls[0][1]["media"]
    assert len(group) == 10
    assert group[0].caption == "summary"
    assert all(m.caption is None for m in group[1:])
    assert len(ids) == 11


@pytest.mark.asyncio
async def test_delete_and_missing_chat() -> None:
    driver, bot = _driver()

    await driver.delete({"chat_id": "5"}, "9")
    assert bot.calls == [("delete_message", {"chat_id": 5, "message_id": 9})]

    assert await driver.send({}, ReplyUnit(text="x")) == []


@pytest.mark.asyncio
async def test_incoming_text_is_dispatched() -> None:
    driver, _ = _driver()
    update = SimpleNamespace(message=SimpleNamespace(
        text=None,
        caption="magnet:?xt=urn:btih:abc",
        chat_id=-100,
        message_id=5,
        from_user=SimpleNamespace(id=1, full_name="Bob", username="bob"),
    ))

    await driver._on_message(update, None)
    await asyncio.gather(*driver._tasks)

    (msg,) = driver.pipeline.messages
    assert msg.platform == "telegram"
    assert msg.channel == {"chat_id": "-100"}
    assert msg.text == "magnet:?xt=urn:btih:abc"
    assert msg.message_id == "5"
    assert msg.user == "Bob"
