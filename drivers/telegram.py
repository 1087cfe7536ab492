# Telegram driver via python-telegram-bot (v21+).
# Uses long-polling to receive messages and the bot API to send.
#
# Config keys (under telegram.<instance_id>):
#   bot_token – Telegram bot token from @BotFather (required)
#
# Channel keys:
#   chat_id – Telegram chat ID (negative for groups, e.g. "-100123456789")
#
# Telegram has no merged-forward bundle, so forward units are sent inline.

import asyncio
import io

from telegram import InputMediaPhoto, ReplyParameters, Update
from telegram.ext import Application, ContextTypes, MessageHandler, filters

import services.logger as log
import services.media as media
from services.message import Attachment, NormalizedMessage, ReplyUnit
from services.config_schema import _DriverConfig
from drivers import BaseDriver


class TelegramConfig(_DriverConfig):
    bot_token: str

l = log.get_logger()

# Bot API limit for a single media group
_MEDIA_GROUP_MAX = 10

# Magnet links only ever arrive as text or as a media caption
_CONTENT_FILTER = (filters.TEXT | filters.CAPTION) & ~filters.COMMAND


def _photo_file(att: Attachment) -> io.BytesIO:
    bio = io.BytesIO(att.data)
    bio.name = media.filename_for(att.name, att.media_type)
    return bio


class TelegramDriver(BaseDriver[TelegramConfig]):

    def __init__(self, instance_id: str, config: TelegramConfig, pipeline):
        super().__init__(instance_id, config, pipeline)
        self._app: Application | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        self._app = Application.builder().token(self.config.bot_token).build()
        self._app.add_handler(MessageHandler(_CONTENT_FILTER, self._on_message))

        # async-with handles initialize() / shutdown() automatically
        async with self._app:
            await self._app.start()
            await self._app.updater.start_polling(allowed_updates=Update.ALL_TYPES)
            l.info(f"Telegram [{self.instance_id}] polling started")
            try:
                await asyncio.Event().wait()  # keep running until cancelled
            finally:
                await self._app.updater.stop()
                await self._app.stop()

    # ------------------------------------------------------------------
    # Receive
    # ------------------------------------------------------------------

    async def _on_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        msg = update.message
        if not msg:
            return

        # Media messages use caption instead of text
        text = msg.text or msg.caption or ""
        if not text.strip():
            return

        from_user = msg.from_user
        user_id = str(from_user.id) if from_user else ""
        user_name = (
            (from_user.full_name or from_user.username or user_id)
            if from_user
            else user_id
        )

        normalized = NormalizedMessage(
            platform="telegram",
            instance_id=self.instance_id,
            channel={"chat_id": str(msg.chat_id)},
            user=user_name,
            user_id=user_id,
            text=text,
            message_id=str(msg.message_id),
        )
        self.dispatch(normalized)

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    async def send(self, channel: dict, unit: ReplyUnit) -> list[str]:
        chat_id = channel.get("chat_id")
        if not chat_id:
            l.warning(f"Telegram [{self.instance_id}] send: no chat_id in channel {channel}")
            return []
        if self._app is None:
            l.warning(f"Telegram [{self.instance_id}] send: driver not started")
            return []
        if unit.is_empty:
            return []

        bot = self._app.bot
        cid = int(chat_id)
        reply = (
            ReplyParameters(message_id=int(unit.quote_id), allow_sending_without_reply=True)
            if unit.quote_id
            else None
        )
        caption = unit.text or None

        if not unit.images:
            sent = await bot.send_message(chat_id=cid, text=unit.text, reply_parameters=reply)
            return [str(sent.message_id)]

        if len(unit.images) == 1:
            sent = await bot.send_photo(
                chat_id=cid, photo=_photo_file(unit.images[0]),
                caption=caption, reply_parameters=reply,
            )
            return [str(sent.message_id)]

        ids: list[str] = []
        for start in range(0, len(unit.images), _MEDIA_GROUP_MAX):
            chunk = unit.images[start:start + _MEDIA_GROUP_MAX]
            if len(chunk) == 1:
                # a trailing single image cannot form a media group
                sent = await bot.send_photo(chat_id=cid, photo=_photo_file(chunk[0]))
                ids.append(str(sent.message_id))
                continue
            group = [
                InputMediaPhoto(
                    media=_photo_file(att),
                    caption=caption if start == 0 and i == 0 else None,
                )
                for i, att in enumerate(chunk)
            ]
            messages = await bot.send_media_group(
                chat_id=cid, media=group,
                reply_parameters=reply if start == 0 else None,
            )
            ids.extend(str(m.message_id) for m in messages)
        return ids

    async def delete(self, channel: dict, message_id: str):
        if self._app is None:
            return
        await self._app.bot.delete_message(chat_id=int(channel["chat_id"]), message_id=int(message_id))


from drivers.registry import register
register("telegram", TelegramConfig, TelegramDriver)
