# QQ driver via NapCat (OneBot 11 WebSocket protocol).
# NapCat acts as a WebSocket server; this driver connects as a client,
# receives push events, and sends actions over the same connection.  Action
# responses are matched to their requests through the "echo" field.
#
# Config keys (under napcat.<instance_id>):
#   ws_url         – WebSocket URL, e.g. "ws://127.0.0.1:3001"
#   ws_token       – Optional access token
#   nickname       – Sender name shown on forwarded-bundle nodes
#   action_timeout – Seconds to wait for an action response (default 30)
#
# Channel keys:
#   group_id – for group chats
#   user_id  – for private chats

import asyncio
import base64
import json
import uuid

import websockets
import websockets.exceptions

import services.logger as log
from services.config_schema import _DriverConfig
from services.message import NormalizedMessage, ReplyUnit
from drivers import BaseDriver


class NapCatConfig(_DriverConfig):
    ws_url:         str   = "ws://127.0.0.1:3001"
    ws_token:       str   = ""
    nickname:       str   = "磁力解析"
    action_timeout: float = 30.0

l = log.get_logger()


def _image_segment(data: bytes) -> dict:
    return {"type": "image", "data": {"file": f"base64://{base64.b64encode(data).decode()}"}}


def build_segments(unit: ReplyUnit) -> list[dict]:
    """OneBot message segments for an inline (non-forwarded) unit."""
    segments: list[dict] = []
    if unit.quote_id:
        segments.append({"type": "reply", "data": {"id": str(unit.quote_id)}})
    if unit.text:
        segments.append({"type": "text", "data": {"text": unit.text}})
    for img in unit.images:
        segments.append(_image_segment(img.data))
    return segments


def build_forward_nodes(unit: ReplyUnit, self_id: str, nickname: str) -> list[dict]:
    """One forward node for the text and one per image."""
    contents: list[list[dict]] = []
    if unit.text:
        contents.append([{"type": "text", "data": {"text": unit.text}}])
    for img in unit.images:
        contents.append([_image_segment(img.data)])
    return [
        {"type": "node", "data": {"user_id": self_id, "nickname": nickname, "content": content}}
        for content in contents
    ]


def extract_text(event: dict) -> str:
    """Concatenate the text segments of a OneBot 11 message event."""
    segments = event.get("message", [])

    # NapCat may send a plain CQ-code string instead of an array
    if isinstance(segments, str):
        return segments

    return "".join(
        str(seg.get("data", {}).get("text", ""))
        for seg in segments
        if isinstance(seg, dict) and seg.get("type") == "text"
    )


class NapCatDriver(BaseDriver[NapCatConfig]):

    def __init__(self, instance_id: str, config: NapCatConfig, pipeline):
        super().__init__(instance_id, config, pipeline)
        self._ws = None
        self._self_id = ""
        self._pending: dict[str, asyncio.Future] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        ws_url = self.config.ws_url
        if self.config.ws_token:
            sep = "&" if "?" in ws_url else "?"
            ws_url = f"{ws_url}{sep}access_token={self.config.ws_token}"

        l.info(f"NapCat [{self.instance_id}] connecting to {ws_url}")

        while True:
            try:
                async with websockets.connect(ws_url) as ws:
                    self._ws = ws
                    l.info(f"NapCat [{self.instance_id}] connected")
                    await self._listen(ws)
            except websockets.exceptions.ConnectionClosedOK:
                l.info(f"NapCat [{self.instance_id}] connection closed normally")
            except (OSError, websockets.exceptions.WebSocketException) as e:
                l.error(f"NapCat [{self.instance_id}] connection error: {e}")
            finally:
                self._ws = None
                self._fail_pending()

            l.info(f"NapCat [{self.instance_id}] reconnecting in 5 s…")
            await asyncio.sleep(5)

    def _fail_pending(self):
        for fut in self._pending.values():
            if not fut.done():
                fut.set_exception(ConnectionError("NapCat connection lost"))
        self._pending.clear()

    # ------------------------------------------------------------------
    # Receive
    # ------------------------------------------------------------------

    async def _listen(self, ws):
        async for raw in ws:
            try:
                self._handle(json.loads(raw))
            except json.JSONDecodeError:
                l.warning(f"NapCat [{self.instance_id}] invalid JSON received")
            except Exception as e:
                l.error(f"NapCat [{self.instance_id}] handler error: {e}")

    def _handle(self, data: dict):
        # Action responses carry an "echo" field and no post_type
        if data.get("post_type") is None:
            fut = self._pending.pop(str(data.get("echo", "")), None)
            if fut is not None and not fut.done():
                fut.set_result(data)
            return

        if data.get("self_id") is not None:
            self._self_id = str(data["self_id"])

        if data.get("post_type") != "message":
            return

        # NapCat echoes the bot's own sent messages back as real events
        if data.get("user_id") == data.get("self_id"):
            return

        text = extract_text(data)
        if not text.strip():
            return

        user_id = str(data.get("user_id", ""))
        if data.get("message_type") == "group":
            channel = {"group_id": str(data.get("group_id", ""))}
        else:
            channel = {"user_id": user_id}
        sender = data.get("sender", {})

        msg = NormalizedMessage(
            platform="napcat",
            instance_id=self.instance_id,
            channel=channel,
            user=sender.get("card") or sender.get("nickname") or user_id,
            user_id=user_id,
            text=text,
            message_id=str(data.get("message_id", "")),
        )
        self.dispatch(msg)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _call(self, action: str, params: dict) -> dict:
        """Send an action and wait for its response ``data``."""
        if self._ws is None:
            raise ConnectionError(f"NapCat [{self.instance_id}] not connected")

        echo = str(uuid.uuid4())
        fut = asyncio.get_running_loop().create_future()
        self._pending[echo] = fut
        payload = {"action": action, "params": params, "echo": echo}
        try:
            await self._ws.send(json.dumps(payload, ensure_ascii=False))
            resp = await asyncio.wait_for(fut, timeout=self.config.action_timeout)
        finally:
            self._pending.pop(echo, None)

        if resp.get("status") == "failed" or resp.get("retcode", 0) != 0:
            raise RuntimeError(
                f"NapCat action {action} failed: retcode={resp.get('retcode')} {resp.get('message', '')}"
            )
        return resp.get("data") or {}

    @staticmethod
    def _target(channel: dict) -> tuple[str, dict]:
        if channel.get("group_id"):
            return "group", {"group_id": int(channel["group_id"])}
        if channel.get("user_id"):
            return "private", {"user_id": int(channel["user_id"])}
        raise ValueError(f"NapCat channel has neither group_id nor user_id: {channel}")

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    async def send(self, channel: dict, unit: ReplyUnit) -> list[str]:
        if self._ws is None:
            l.warning(f"NapCat [{self.instance_id}] send: not connected, message dropped")
            return []
        if unit.is_empty:
            return []

        kind, params = self._target(channel)
        if unit.forward:
            action = f"send_{kind}_forward_msg"
            params["messages"] = build_forward_nodes(unit, self._self_id, self.config.nickname)
        else:
            action = f"send_{kind}_msg"
            params["message"] = build_segments(unit)

        data = await self._call(action, params)
        message_id = data.get("message_id")
        return [str(message_id)] if message_id is not None else []

    async def delete(self, channel: dict, message_id: str):
        await self._call("delete_msg", {"message_id": int(message_id)})


from drivers.registry import register
register("napcat", NapCatConfig, NapCatDriver)
