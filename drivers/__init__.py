import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Generic, TypeVar

from pydantic import BaseModel

import services.logger as log
from services.message import NormalizedMessage, ReplyUnit

if TYPE_CHECKING:
    from services.pipeline import MagnetPipeline

T = TypeVar("T", bound=BaseModel)

l = log.get_logger()


class BaseDriver(ABC, Generic[T]):
    """Abstract base class for all platform drivers."""

    def __init__(self, instance_id: str, config: T, pipeline: "MagnetPipeline"):
        self.instance_id = instance_id
        self.config: T = config
        self.pipeline = pipeline
        self._tasks: set[asyncio.Task] = set()

    @abstractmethod
    async def start(self):
        """Start the driver (connect, authenticate, begin listening).
        Long-running drivers should loop indefinitely here."""

    @abstractmethod
    async def send(self, channel: dict, unit: ReplyUnit) -> list[str]:
        """Deliver *unit* to *channel*; return the IDs of the messages created."""

    @abstractmethod
    async def delete(self, channel: dict, message_id: str):
        """Withdraw a message previously sent by this driver."""

    def dispatch(self, msg: NormalizedMessage) -> asyncio.Task:
        """Run the pipeline for *msg* in its own task so receiving never blocks."""
        task = asyncio.create_task(self._run(msg), name=f"{self.instance_id}/{msg.message_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, msg: NormalizedMessage):
        try:
            await self.pipeline.on_message(msg, self)
        except Exception as e:
            l.error(f"[{self.instance_id}] handler error: {e!r}")
