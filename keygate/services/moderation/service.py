"""
Moderation actions over the Telegram Bot API.
Errors from Telegram propagate; handlers catch them and report to the invoker.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import ChatPermissions

from keygate.core.exceptions import KickIncomplete
from keygate.utils.metrics import moderation_actions_total

logger = logging.getLogger("moderation")

MUTED = ChatPermissions(
    can_send_messages=False,
    can_send_audios=False,
    can_send_documents=False,
    can_send_photos=False,
    can_send_videos=False,
    can_send_video_notes=False,
    can_send_voice_notes=False,
    can_send_polls=False,
    can_send_other_messages=False,
    can_add_web_page_previews=False,
)

# Telegram treats restrictions shorter than 30s or longer than 366 days as permanent
MIN_TIMEOUT_MINUTES = 1
MAX_TIMEOUT_MINUTES = 366 * 24 * 60


class ModerationService:
    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    async def ban(self, chat_id: int, user_id: int) -> None:
        await self._run("ban", self.bot.ban_chat_member(chat_id=chat_id, user_id=user_id), chat_id, user_id)

    async def kick(self, chat_id: int, user_id: int) -> None:
        """Remove the member but let them rejoin. Raises KickIncomplete if the ban cannot be lifted."""
        await self._run("kick", self._ban_and_release(chat_id, user_id), chat_id, user_id)

    async def _ban_and_release(self, chat_id: int, user_id: int) -> None:
        await self.bot.ban_chat_member(chat_id=chat_id, user_id=user_id)
        try:
            await self.bot.unban_chat_member(chat_id=chat_id, user_id=user_id, only_if_banned=True)
        except TelegramAPIError as e:
            logger.warning("kick_unban_failed", extra={"chat_id": chat_id, "target_id": user_id, "error": e.message})
            raise KickIncomplete(user_id, e.message) from e

    async def timeout(self, chat_id: int, user_id: int, minutes: int, now: datetime | None = None) -> datetime:
        minutes = max(MIN_TIMEOUT_MINUTES, min(minutes, MAX_TIMEOUT_MINUTES))
        until = (now or datetime.now(timezone.utc)) + timedelta(minutes=minutes)
        await self._run(
            "timeout",
            self.bot.restrict_chat_member(
                chat_id=chat_id,
                user_id=user_id,
                permissions=MUTED,
                until_date=until,
            ),
            chat_id,
            user_id,
        )
        return until

    async def _run(self, action: str, call, chat_id: int, user_id: int) -> None:
        try:
            await call
        except Exception:
            moderation_actions_total.labels(action=action, status="failed").inc()
            raise
        moderation_actions_total.labels(action=action, status="ok").inc()
        logger.info("moderation_action", extra={"action": action, "chat_id": chat_id, "target_id": user_id})
