"""
Telegram bot using aiogram 3.x
Key disclosure, self-verification, owner reports, moderation and posts.
The HTTP server runs on the same event loop (see main()).
"""
import asyncio
import html
import logging
from datetime import datetime, timezone
from typing import Any

import uvicorn
from aiogram import BaseMiddleware, Bot, Dispatcher, F, Router
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ChatMemberStatus, ParseMode
from aiogram.exceptions import TelegramAPIError, TelegramForbiddenError
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.types import (
    BotCommand,
    CallbackQuery,
    ErrorEvent,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    Message,
    TelegramObject,
    User,
)

from keygate.core.config import settings
from keygate.core.context import AppContext
from keygate.core.exceptions import AuthorizationDenied, KickIncomplete, UnknownTemplate
from keygate.core.logging import configure_logging
from keygate.engagement.models import EligibilityDecision, EligibilityReason, UserEngagement
from keygate.engagement.policy import evaluate
from keygate.keys.models import KeyDenial, KeyGrant
from keygate.main import create_app
from keygate.services.moderation.service import ModerationService
from keygate.utils.metrics import spam_timeouts_total

configure_logging()
logger = logging.getLogger("bot")

GROUP_CHATS = {"group", "supergroup"}
VERIFY_CB_PREFIX = "verify:"
DEFAULT_TIMEOUT_MINUTES = 10
MAX_MESSAGE_LENGTH = 4000

BOT_COMMANDS = [
    BotCommand(command="get_key", description="Get the current key"),
    BotCommand(command="my_stats", description="Your messages and key eligibility"),
    BotCommand(command="verify_me", description="Verify that you are human"),
    BotCommand(command="reset_key", description="Reset the key (group owner only)"),
    BotCommand(command="usage_stats", description="Command usage statistics (group owner only)"),
    BotCommand(command="post", description="Publish a templated post (admins)"),
    BotCommand(command="ban", description="Ban the replied user (admins)"),
    BotCommand(command="kick", description="Kick the replied user (admins)"),
    BotCommand(command="timeout", description="Mute the replied user for N minutes (admins)"),
    BotCommand(command="help", description="Help"),
]
TRACKED_COMMANDS = {c.command for c in BOT_COMMANDS} | {"start"}

HELP_TEXT = (
    "🔑 <b>Key bot</b>\n\n"
    "/get_key — receive the current key in a private message\n"
    "/my_stats — your message count and key eligibility\n"
    "/verify_me — confirm you are human\n\n"
    "<b>Group owner:</b> /reset_key, /usage_stats\n"
    "<b>Admins:</b> /post, /ban, /kick, /timeout (reply to a message)"
)


# ===========================================
# Helpers
# ===========================================
def display_name(user: User) -> str:
    return user.username or user.full_name or str(user.id)


def command_name(text: str | None) -> str | None:
    """'/get_key@KeyBot extra' -> 'get_key'."""
    if not text or not text.startswith("/"):
        return None
    head = text.split(maxsplit=1)[0][1:]
    return head.split("@", 1)[0].lower() or None


def format_grant(grant: KeyGrant) -> str:
    return (
        f"🔑 Current key: <code>{html.escape(grant.value)}</code>\n"
        f"Expires in: {grant.remaining}"
    )


def format_denial(decision: EligibilityDecision) -> str:
    if decision.reason is EligibilityReason.NOT_VERIFIED:
        return "🚫 You need to verify first. Use /verify_me in the group."
    return (
        f"🚫 You need {decision.required} messages to get the key.\n"
        f"Progress: {decision.progress}/{decision.required} ({decision.describe()})."
    )


def format_my_stats(name: str, engagement: UserEngagement | None, decision: EligibilityDecision) -> str:
    lines = [f"📊 <b>Stats for {html.escape(name)}</b>", ""]
    lines.append(f"Messages: {decision.progress}")
    lines.append(f"Verified: {'yes' if decision.verified else 'no'}")
    if engagement is not None:
        lines.append(f"First seen: {engagement.first_seen_at:%Y-%m-%d %H:%M} UTC")
        lines.append(f"Last seen: {engagement.last_seen_at:%Y-%m-%d %H:%M} UTC")
    if decision.eligible:
        lines.append("Key access: ✅ eligible, use /get_key")
    else:
        lines.append(f"Key access: ❌ {decision.describe()}")
    return "\n".join(lines)


def truncate(text: str, limit: int = MAX_MESSAGE_LENGTH) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


async def member_status(bot: Bot, chat_id: int, user_id: int) -> ChatMemberStatus | None:
    try:
        member = await bot.get_chat_member(chat_id=chat_id, user_id=user_id)
    except TelegramAPIError as e:
        logger.warning("get_chat_member failed", extra={"chat_id": chat_id, "user_id": user_id, "error": str(e)})
        return None
    return member.status


async def is_owner(message: Message, bot: Bot) -> bool:
    """Owner of the group the command was sent in. Private chats have no owner."""
    if message.chat.type not in GROUP_CHATS or not message.from_user:
        return False
    return await member_status(bot, message.chat.id, message.from_user.id) == ChatMemberStatus.CREATOR


async def is_moderator(message: Message, bot: Bot) -> bool:
    if message.chat.type not in GROUP_CHATS or not message.from_user:
        return False
    try:
        member = await bot.get_chat_member(chat_id=message.chat.id, user_id=message.from_user.id)
    except TelegramAPIError:
        return False
    if member.status == ChatMemberStatus.CREATOR:
        return True
    return member.status == ChatMemberStatus.ADMINISTRATOR and bool(getattr(member, "can_restrict_members", False))


async def reply_private(message: Message, bot: Bot, text: str, **kwargs: Any) -> None:
    """Telegram has no ephemeral replies: DM the user, or answer in place if already private."""
    if message.chat.type == "private":
        await message.answer(text, **kwargs)
        return
    try:
        await bot.send_message(chat_id=message.from_user.id, text=text, **kwargs)
    except TelegramForbiddenError:
        username = settings.telegram_bot_username
        target = f"@{username}" if username else "the bot"
        await message.reply(f"✉️ Open a private chat with {target} and press Start, then try again.")
        return
    await message.reply("📬 Sent you a private message.")


# ===========================================
# Middleware
# ===========================================
class UsageMiddleware(BaseMiddleware):
    """Count every known command before it is handled."""

    async def __call__(self, handler, event: TelegramObject, data: dict):
        if isinstance(event, Message) and event.from_user and not event.from_user.is_bot:
            name = command_name(event.text)
            ctx: AppContext | None = data.get("ctx")
            if name in TRACKED_COMMANDS and ctx is not None:
                ctx.usage.track(str(event.from_user.id), display_name(event.from_user), name)
                logger.info("command", extra={"command": name, "user_id": event.from_user.id})
        return await handler(event, data)


# ===========================================
# Router
# ===========================================
router = Router()


@router.message(CommandStart())
@router.message(Command("help"))
async def cmd_help(message: Message):
    await message.answer(HELP_TEXT)


@router.message(Command("get_key"))
async def cmd_get_key(message: Message, bot: Bot, ctx: AppContext):
    result = ctx.disclosure.request_key(str(message.from_user.id))
    if isinstance(result, KeyDenial):
        await reply_private(message, bot, format_denial(result.decision))
        return
    await reply_private(message, bot, format_grant(result))


@router.message(Command("reset_key"))
async def cmd_reset_key(message: Message, bot: Bot, ctx: AppContext):
    owner = await is_owner(message, bot)
    try:
        record = ctx.disclosure.reset_key(owner)
    except AuthorizationDenied:
        await message.reply("Only the group owner can reset the key.")
        return
    logger.info("key_reset by owner", extra={"user_id": message.from_user.id, "chat_id": message.chat.id})
    await reply_private(message, bot, f"Key has been reset. New key: <code>{html.escape(record.value)}</code>")


@router.message(Command("usage_stats"))
async def cmd_usage_stats(message: Message, bot: Bot, ctx: AppContext):
    if not await is_owner(message, bot):
        await message.reply("Only the group owner can view usage statistics.")
        return
    table = ctx.usage.format_table()
    if table is None:
        await reply_private(message, bot, "No usage statistics available yet.")
        return
    body = truncate(html.escape(table), MAX_MESSAGE_LENGTH - 100)
    await reply_private(message, bot, f"<b>Command Usage Statistics</b>\n<pre>{body}</pre>")


@router.message(Command("verify_me"))
async def cmd_verify_me(message: Message, ctx: AppContext):
    user = message.from_user
    record = ctx.tracker.get(str(user.id))
    if record is not None and record.verified:
        await message.reply("✅ You are already verified.")
        return
    kb = InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="✅ I am human", callback_data=f"{VERIFY_CB_PREFIX}{user.id}")],
    ])
    await message.reply(
        f"{html.escape(display_name(user))}, press the button to verify.",
        reply_markup=kb,
    )


@router.callback_query(F.data.startswith(VERIFY_CB_PREFIX))
async def verify_callback(callback: CallbackQuery, ctx: AppContext):
    target = callback.data[len(VERIFY_CB_PREFIX):]
    user = callback.from_user
    if target != str(user.id):
        await callback.answer("This button is not for you.", show_alert=True)
        return
    ctx.tracker.mark_verified(str(user.id), display_name(user))
    await callback.answer("Verified!")
    if callback.message:
        try:
            await callback.message.edit_text(f"✅ {html.escape(display_name(user))} is verified.")
        except TelegramAPIError as e:
            logger.warning("verify message edit failed", extra={"user_id": user.id, "error": str(e)})


@router.message(Command("my_stats"))
async def cmd_my_stats(message: Message, bot: Bot, ctx: AppContext):
    user = message.from_user
    engagement = ctx.tracker.get(str(user.id))
    decision = evaluate(engagement, ctx.disclosure.policy)
    await reply_private(message, bot, format_my_stats(display_name(user), engagement, decision))


@router.message(Command("post"))
async def cmd_post(message: Message, bot: Bot, command: CommandObject, ctx: AppContext):
    if not await is_moderator(message, bot):
        await message.reply("Only group admins can publish posts.")
        return
    args = (command.args or "").strip()
    name, _, text = args.partition(" ")
    if not name:
        names = ", ".join(ctx.posts.names())
        await message.reply(f"Usage: /post &lt;template&gt; &lt;text&gt;\nTemplates: {names}")
        return
    try:
        rendered = ctx.posts.render(name, text.strip(), display_name(message.from_user))
    except UnknownTemplate:
        await message.reply(f"Unknown template: {html.escape(name)}")
        return
    try:
        await bot.send_message(chat_id=message.chat.id, text=truncate(rendered))
    except TelegramAPIError as e:
        logger.warning("post failed", extra={"chat_id": message.chat.id, "error": str(e)})
        await message.reply("❌ Failed to publish the post.")
        return
    try:
        await message.delete()
    except TelegramAPIError:
        logger.info("post command message not deleted", extra={"chat_id": message.chat.id})


async def _moderation_target(message: Message, bot: Bot) -> User | None:
    """Validate invoker rights and return the replied-to user, answering on failure."""
    if not await is_moderator(message, bot):
        await message.reply("You need admin rights to do that.")
        return None
    reply = message.reply_to_message
    if reply is None or reply.from_user is None:
        await message.reply("Reply to a message of the user you want to act on.")
        return None
    target = reply.from_user
    if target.id == message.from_user.id or target.is_bot:
        await message.reply("You can't do that to this user.")
        return None
    return target


@router.message(Command("ban"))
async def cmd_ban(message: Message, bot: Bot):
    target = await _moderation_target(message, bot)
    if target is None:
        return
    try:
        await ModerationService(bot).ban(message.chat.id, target.id)
    except TelegramAPIError as e:
        await message.reply(f"❌ Failed to ban {html.escape(display_name(target))}: {html.escape(e.message)}")
        return
    await message.reply(f"🔨 {html.escape(display_name(target))} has been banned.")


@router.message(Command("kick"))
async def cmd_kick(message: Message, bot: Bot):
    target = await _moderation_target(message, bot)
    if target is None:
        return
    try:
        await ModerationService(bot).kick(message.chat.id, target.id)
    except KickIncomplete:
        await message.reply(
            f"⚠️ {html.escape(display_name(target))} was removed but is still banned. Unban them manually to allow rejoining."
        )
        return
    except TelegramAPIError as e:
        await message.reply(f"❌ Failed to kick {html.escape(display_name(target))}: {html.escape(e.message)}")
        return
    await message.reply(f"👢 {html.escape(display_name(target))} has been kicked.")


@router.message(Command("timeout"))
async def cmd_timeout(message: Message, bot: Bot, command: CommandObject):
    target = await _moderation_target(message, bot)
    if target is None:
        return
    raw = (command.args or "").strip()
    if raw and not raw.isdigit():
        await message.reply("Usage: /timeout [minutes] (as a reply)")
        return
    minutes = int(raw) if raw else DEFAULT_TIMEOUT_MINUTES
    try:
        until = await ModerationService(bot).timeout(message.chat.id, target.id, minutes)
    except TelegramAPIError as e:
        await message.reply(f"❌ Failed to time out {html.escape(display_name(target))}: {html.escape(e.message)}")
        return
    await message.reply(f"⏳ {html.escape(display_name(target))} is muted until {until:%H:%M} UTC.")


@router.message(F.chat.type.in_(GROUP_CHATS), F.from_user)
async def group_message(message: Message, bot: Bot, ctx: AppContext):
    """Every non-command group message: anti-spam, engagement count, auto-response."""
    user = message.from_user
    if user.is_bot or command_name(message.text):
        return
    user_id = str(user.id)
    now = datetime.now(timezone.utc)

    if ctx.spam_guard is not None and ctx.spam_guard.register(user_id, now):
        ctx.spam_guard.reset(user_id)
        try:
            await ModerationService(bot).timeout(message.chat.id, user.id, ctx.spam_timeout_minutes, now)
        except TelegramAPIError as e:
            logger.warning("spam timeout failed", extra={"user_id": user.id, "chat_id": message.chat.id, "error": str(e)})
            return
        spam_timeouts_total.inc()
        logger.info("spam_timeout", extra={"user_id": user.id, "chat_id": message.chat.id, "minutes": ctx.spam_timeout_minutes})
        await message.answer(
            f"⏳ {html.escape(display_name(user))} was muted for {ctx.spam_timeout_minutes} min for flooding."
        )
        return

    ctx.tracker.record_qualifying_event(user_id, display_name(user), now)

    reply = ctx.autoresponder.match(message.text or message.caption)
    if reply:
        await message.reply(reply)


async def on_error(event: ErrorEvent, *args, **kwargs):
    """Global error handler."""
    logger.error(
        "Error in handler",
        exc_info=event.exception,
        extra={"error": str(event.exception)},
    )


def _on_loop_error(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    logger.error(
        "Unhandled error in event loop",
        exc_info=context.get("exception"),
        extra={"error": context.get("message")},
    )


def build_dispatcher(ctx: AppContext) -> Dispatcher:
    dp = Dispatcher(ctx=ctx)
    dp.errors.register(on_error)
    dp.message.outer_middleware(UsageMiddleware())
    dp.include_router(router)
    return dp


async def main():
    """Start the bot and the HTTP server."""
    logger.info("Starting bot...")
    asyncio.get_running_loop().set_exception_handler(_on_loop_error)

    ctx = AppContext.open(settings)
    bot = Bot(
        token=settings.telegram_bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = build_dispatcher(ctx)

    server = uvicorn.Server(
        uvicorn.Config(
            create_app(ctx),
            host=settings.http_host,
            port=settings.http_port,
            log_config=None,
        )
    )
    server_task = asyncio.create_task(server.serve())
    logger.info("HTTP server starting", extra={"path": f"{settings.http_host}:{settings.http_port}"})

    try:
        try:
            await bot.set_my_commands(BOT_COMMANDS)
        except TelegramAPIError as e:
            logger.error("Error registering commands", extra={"error": str(e)})

        # Delete webhook if exists (we use polling)
        await bot.delete_webhook(drop_pending_updates=True)
        logger.info("Bot started successfully!")
        await dp.start_polling(bot, allowed_updates=["message", "callback_query"])
    finally:
        server.should_exit = True
        await server_task
        ctx.close()
        await bot.session.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
