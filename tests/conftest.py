from __future__ import annotations

import pytest

from services.config_schema import ResolverConfig
from services.message import NormalizedMessage, ReplyUnit

HASH = "c9e15763f722f23e98a29decdfae341b98d53056"
MAGNET = (
    f"magnet:?xt=urn:btih:{HASH}"
    "&dn=Big+Buck+Bunny"
    "&tr=udp%3A%2F%2Ftracker.example.org%3A1337"
    "&tr=udp%3A%2F%2Fopen.example.net%3A6969"
    "&xl=276134947"
)


class FakeDriver:
    """Records everything the pipeline sends or withdraws."""

    def __init__(self, fail_delete: bool = False) -> None:
        self.sent: list[ReplyUnit] = []
        self.deleted: list[str] = []
        self.fail_delete = fail_delete

    async def send(self, channel: dict, unit: ReplyUnit) -> list[str]:
        self.sent.append(unit)
        return [str(len(self.sent))]

    async def delete(self, channel: dict, message_id: str) -> None:
        if self.fail_delete:
            raise RuntimeError("already recalled")
        self.deleted.append(message_id)


class FakeRemote:
    def __init__(self, body=None, error: Exception | None = None) -> None:
        self.body = body
        self.error = error
        self.calls: list = []
        self.closed = False

    async def lookup(self, link):
        self.calls.append(link)
        if self.error is not None:
            raise self.error
        return self.body

    async def close(self) -> None:
        self.closed = True


async def fake_fetch(url: str):
    return b"\xff\xd8jpeg-bytes", "image/jpeg"


def make_config(**overrides) -> ResolverConfig:
    return ResolverConfig(**overrides)


def make_message(text: str, platform: str = "napcat") -> NormalizedMessage:
    return NormalizedMessage(
        platform=platform,
        instance_id="main",
        channel={"group_id": "100"},
        user="alice",
        user_id="42",
        text=text,
        message_id="7",
    )


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()
