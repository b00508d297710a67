"""Telegram bot using python-telegram-bot with terms gating and relayed model replies."""

from __future__ import annotations

import asyncio
import math
import threading
import time
from typing import Any

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, ReplyParameters, Update
from telegram.constants import ChatAction, ParseMode
from telegram.error import BadRequest
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from coralbot.context_manager import ContextManager
from coralbot.llm import CohereProvider, CompletionProvider, read_secret
from coralbot.locales import convert_language_code
from coralbot.memory.context_store import ContextStore
from coralbot.memory.engine import open_connection
from coralbot.memory.event_log import EventLogStore
from coralbot.memory.terms_store import TermsStore
from coralbot.pipeline import APOLOGY, Reply, ReplyOutcome, ReplyPipeline
from coralbot.profile import Profile
from coralbot.prompts import (
    ACCEPT_TERMS_CALLBACK,
    FALLBACK_BUTTON,
    FALLBACK_SUCCESS,
    FALLBACK_TERMS,
    FALLBACK_WELCOME,
    button_prompt,
    clean_button_label,
    success_prompt,
    terms_prompt,
    welcome_prompt,
)
from coralbot.turns import Turn

DEFAULT_LANGUAGE_CODE = "en"
TYPING_BASE_SECONDS = 1
TYPING_INTERVAL_SECONDS = 4
TYPING_MAX_EXTRA_SECONDS = 4
CALL_TIMEOUT_MARGIN_SECONDS = 5


def typing_schedule(message_length: int | None = None) -> list[int]:
    """Return the pause after each typing action sent before a message.

    Without a length a single short pause is used. With a length the total
    delay grows by one second per 100 characters (at most four), and is spent
    in four-second typing intervals.
    """
    if not message_length:
        return [TYPING_BASE_SECONDS]
    extra = min(math.ceil(message_length / 100), TYPING_MAX_EXTRA_SECONDS)
    intervals = math.ceil((TYPING_BASE_SECONDS + extra) / TYPING_INTERVAL_SECONDS)
    return [TYPING_INTERVAL_SECONDS] * intervals


class TelegramBot:
    def __init__(
        self,
        profile: Profile,
        events: EventLogStore,
        persona: str,
        provider: CompletionProvider | None = None,
    ) -> None:
        self._profile = profile
        self._events = events
        self._persona = persona
        self._provider = provider
        self._token: str | None = None
        self._started_at = 0.0
        self._app: Application | None = None

    def _record(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        user_id: int | None = None,
        decision: str = "allow",
    ) -> None:
        """Record an event using a fresh connection (handlers may run in worker threads)."""
        conn = open_connection(self._profile.paths.db_path)
        try:
            EventLogStore(conn).record(event_type, payload, user_id=user_id, decision=decision)
        finally:
            conn.close()

    def _load_provider(self) -> CompletionProvider | None:
        secrets = self._profile.paths.secrets_dir
        api_key = read_secret(secrets, "cohere_api_key.txt")
        if api_key is None:
            return None
        return CohereProvider(
            api_key,
            base_url=read_secret(secrets, "cohere_base_url.txt"),
            model=self._profile.model,
            max_tokens=self._profile.max_tokens,
            temperature=self._profile.temperature,
            timeout=self._profile.llm_timeout_seconds,
        )

    def _pipeline(self, conn: Any) -> ReplyPipeline:
        assert self._provider is not None
        manager = ContextManager(
            ContextStore(conn),
            self._persona,
            max_turns=self._profile.window_max_turns,
            max_chars=self._profile.window_max_chars,
            stored_max_turns=self._profile.stored_max_turns,
        )
        return ReplyPipeline(manager, self._provider, EventLogStore(conn))

    # Blocking helpers, run through asyncio.to_thread.

    def _reply_blocking(self, user_id: int, text: str, cancelled: threading.Event) -> Reply:
        conn = open_connection(self._profile.paths.db_path)
        try:
            return self._pipeline(conn).reply(user_id, text, cancelled)
        finally:
            conn.close()

    def _generate_blocking(self, prompt: list[Turn], fallback: str, user_id: int) -> str:
        conn = open_connection(self._profile.paths.db_path)
        try:
            return self._pipeline(conn).generate(prompt, fallback, user_id=user_id)
        finally:
            conn.close()

    def _has_accepted_blocking(self, user_id: int) -> bool:
        conn = open_connection(self._profile.paths.db_path)
        try:
            return TermsStore(conn).has_accepted(user_id)
        finally:
            conn.close()

    def _accept_blocking(self, user_id: int) -> None:
        conn = open_connection(self._profile.paths.db_path)
        try:
            TermsStore(conn).accept(user_id)
            EventLogStore(conn).record("terms_accepted", {}, user_id=user_id, decision="allow")
        finally:
            conn.close()

    def start(self) -> bool:
        token = read_secret(self._profile.paths.secrets_dir, "telegram_bot_token.txt")
        if self._provider is None:
            self._provider = self._load_provider()
        if token is None or self._provider is None:
            self._events.record(
                "bot_disabled",
                {
                    "profile": self._profile.name,
                    "token_present": token is not None,
                    "llm_enabled": self._provider is not None,
                },
                decision="deny",
            )
            return False
        self._token = token
        self._started_at = time.time()

        self._app = Application.builder().token(token).build()
        self._setup_handlers()

        self._events.record(
            "bot_started",
            {"profile": self._profile.name, "model": self._profile.model},
            decision="allow",
        )
        # Polling blocks in the main thread; signal handlers only work there.
        self._app.run_polling(drop_pending_updates=False, allowed_updates=Update.ALL_TYPES)
        return True

    def stop(self) -> None:
        self._app = None
        if self._token:
            self._events.record(
                "bot_stopped",
                {"profile": self._profile.name, "uptime": int(time.time() - self._started_at)},
                decision="allow",
            )
        self._token = None

    def _setup_handlers(self) -> None:
        assert self._app is not None
        self._app.add_handler(CommandHandler("start", self._cmd_start))
        self._app.add_handler(
            CallbackQueryHandler(self._handle_callback, pattern=f"^{ACCEPT_TERMS_CALLBACK}$")
        )
        self._app.add_handler(MessageHandler(filters.TEXT, self._handle_text))
        self._app.add_error_handler(self._on_error)

    async def _on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat_id = None
        if isinstance(update, Update) and update.effective_chat is not None:
            chat_id = update.effective_chat.id
        self._record(
            "telegram_update_error",
            {"error": repr(context.error)},
            user_id=chat_id,
            decision="deny",
        )

    @staticmethod
    def _locale(update: Update) -> str | None:
        user = update.effective_user
        language_code = (user.language_code if user else None) or DEFAULT_LANGUAGE_CODE
        return convert_language_code(language_code)

    async def _simulate_typing(
        self,
        chat_id: int,
        context: ContextTypes.DEFAULT_TYPE,
        message_length: int | None = None,
    ) -> None:
        if not self._profile.simulate_typing:
            return
        for pause in typing_schedule(message_length):
            await context.bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
            await asyncio.sleep(pause)

    async def _send(
        self,
        context: ContextTypes.DEFAULT_TYPE,
        chat_id: int,
        text: str,
        *,
        parse_mode: str | None = None,
        plain_text: str | None = None,
        reply_to: int | None = None,
        reply_markup: InlineKeyboardMarkup | None = None,
    ) -> None:
        replying = ReplyParameters(message_id=reply_to) if reply_to is not None else None
        try:
            await context.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=parse_mode,
                reply_parameters=replying,
                reply_markup=reply_markup,
            )
        except BadRequest as exc:
            if parse_mode is None:
                raise
            self._record(
                "telegram_send_fallback",
                {"parse_mode": parse_mode, "error": str(exc)},
                user_id=chat_id,
                decision="deny",
            )
            await context.bot.send_message(
                chat_id=chat_id,
                text=plain_text or text,
                reply_parameters=replying,
                reply_markup=reply_markup,
            )

    async def _generate(
        self,
        chat_id: int,
        context: ContextTypes.DEFAULT_TYPE,
        prompt: list[Turn],
        fallback: str,
    ) -> str:
        await self._simulate_typing(chat_id, context)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._generate_blocking, prompt, fallback, chat_id),
                timeout=self._profile.llm_timeout_seconds + CALL_TIMEOUT_MARGIN_SECONDS,
            )
        except asyncio.TimeoutError:
            self._record(
                "completion_error",
                {"error": "timeout", "purpose": "prompt"},
                user_id=chat_id,
                decision="deny",
            )
            return fallback

    async def _send_welcome(self, chat_id: int, locale: str | None, context: ContextTypes.DEFAULT_TYPE) -> None:
        text = await self._generate(chat_id, context, welcome_prompt(locale), FALLBACK_WELCOME)
        await self._simulate_typing(chat_id, context, len(text))
        await self._send(context, chat_id, text)

    async def _send_terms(self, chat_id: int, locale: str | None, context: ContextTypes.DEFAULT_TYPE) -> None:
        text = await self._generate(chat_id, context, terms_prompt(locale), FALLBACK_TERMS)
        label = clean_button_label(
            await self._generate(chat_id, context, button_prompt(locale), FALLBACK_BUTTON)
        )
        keyboard = InlineKeyboardMarkup(
            [[InlineKeyboardButton(label, callback_data=ACCEPT_TERMS_CALLBACK)]]
        )
        await self._simulate_typing(chat_id, context, len(text))
        await self._send(context, chat_id, text, parse_mode=ParseMode.MARKDOWN, reply_markup=keyboard)

    async def _cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.effective_chat is None:
            return
        chat_id = update.effective_chat.id
        locale = self._locale(update)
        await self._send_welcome(chat_id, locale, context)
        if not await asyncio.to_thread(self._has_accepted_blocking, chat_id):
            await self._send_terms(chat_id, locale, context)

    async def _handle_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if query is None or update.effective_chat is None:
            return
        chat_id = update.effective_chat.id
        locale = self._locale(update)
        await query.answer()
        if await asyncio.to_thread(self._has_accepted_blocking, chat_id):
            await self._send_welcome(chat_id, locale, context)
            return
        await asyncio.to_thread(self._accept_blocking, chat_id)
        text = await self._generate(chat_id, context, success_prompt(locale), FALLBACK_SUCCESS)
        await self._simulate_typing(chat_id, context, len(text))
        await self._send(context, chat_id, text)

    async def _handle_text(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        if message is None or update.effective_chat is None:
            return
        chat_id = update.effective_chat.id
        if not await asyncio.to_thread(self._has_accepted_blocking, chat_id):
            await self._send_terms(chat_id, self._locale(update), context)
            return

        await self._simulate_typing(chat_id, context)
        reply = await self._reply_for_text(chat_id, message.text or "")
        if reply.outcome is ReplyOutcome.OK:
            await self._simulate_typing(chat_id, context, len(reply.text))
        await self._send(
            context,
            chat_id,
            reply.text,
            parse_mode=reply.parse_mode,
            plain_text=reply.plain_text,
            reply_to=message.message_id if reply.outcome is ReplyOutcome.OK else None,
        )

    async def _reply_for_text(self, chat_id: int, text: str) -> Reply:
        # The worker thread outlives a timeout; the flag stops it saving a reply nobody saw.
        cancelled = threading.Event()
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._reply_blocking, chat_id, text, cancelled),
                timeout=self._profile.llm_timeout_seconds + CALL_TIMEOUT_MARGIN_SECONDS,
            )
        except asyncio.TimeoutError:
            cancelled.set()
            self._record(
                "completion_error",
                {"error": "timeout"},
                user_id=chat_id,
                decision="deny",
            )
            return Reply(ReplyOutcome.DEGRADED, APOLOGY)
