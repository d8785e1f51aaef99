"""
Request pipeline: route, augment, dispatch, format, persist and emit one inbound message.
"""
import asyncio
import weakref
from typing import Optional

from config import Settings
from models.api_models import Update
from models.chat_models import ChatMessage
from services.commands import CommandHandler
from services.completion_client import CompletionClient
from services.conversation_store import ChatPreferences, ConversationStore
from services.credential_pool import CredentialPool
from services.dispatcher import ProviderDispatcher
from services.intent_router import IntentRouter, current_date_string
from services.response_formatter import ResponseFormatter
from services.search import SearchAugmenter
from services.telegram import TelegramClient
from utils.constants import (
    DIRECT_ANSWER_RULE,
    NO_SEARCH_RESULTS,
    SEARCH_CONTEXT_PROMPT,
    SEARCH_CONTEXT_SUFFIX,
    Replies,
)
from utils.errors import AllCredentialsFailedError
from utils.kv_store import KeyValueStore
from utils.logger import app_logger


def build_direct_messages(system_prompt: str, history: list[ChatMessage], user_text: str) -> list[dict]:
    """Prompt for answering from model knowledge alone."""
    messages = [{"role": "system", "content": system_prompt + DIRECT_ANSWER_RULE}]
    messages.extend(entry.for_provider() for entry in history)
    messages.append({"role": "user", "content": user_text})
    return messages


def build_search_messages(
    system_prompt: str,
    history: list[ChatMessage],
    user_text: str,
    search_query: str,
    search_block: Optional[str]
) -> list[dict]:
    """Prompt with search results injected just before the question."""
    context = SEARCH_CONTEXT_PROMPT.format(
        current_date=current_date_string(),
        search_query=search_query,
        search_results=search_block or NO_SEARCH_RESULTS
    )
    messages = [{"role": "system", "content": system_prompt}]
    messages.extend(entry.for_provider() for entry in history)
    messages.append({"role": "system", "content": context})
    messages.append({"role": "user", "content": user_text})
    return messages


class RequestPipeline:
    """Handles one Telegram update end to end."""

    def __init__(
        self,
        settings: Settings,
        store: ConversationStore,
        preferences: ChatPreferences,
        dispatcher: ProviderDispatcher,
        router: IntentRouter,
        augmenter: SearchAugmenter,
        transport: TelegramClient,
        commands: CommandHandler
    ):
        self.settings = settings
        self.store = store
        self.preferences = preferences
        self.dispatcher = dispatcher
        self.router = router
        self.augmenter = augmenter
        self.transport = transport
        self.commands = commands
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, chat_id: str) -> asyncio.Lock:
        """Per-conversation lock so concurrent updates for one chat run one after another."""
        lock = self._locks.get(chat_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[chat_id] = lock
        return lock

    async def close(self) -> None:
        await self.dispatcher.client.close()

    def is_allowed(self, chat_id: str) -> bool:
        return chat_id in self.settings.allowed_chat_ids

    async def _reply(self, chat_id: str, text: str, markdown: bool = True) -> None:
        await self.transport.deliver(chat_id, text, self.settings.max_message_chars, markdown=markdown)

    async def handle(self, update: Update) -> None:
        """Process one update. Errors are reported to the chat, never raised."""
        message = update.message
        if message is None:
            return

        chat_id = message.conversation_id
        if not self.is_allowed(chat_id):
            app_logger.warning(f"Ignoring message from non-whitelisted chat {chat_id}")
            return

        text = (message.text or "").strip()
        if not text:
            if message.has_media:
                app_logger.info(f"Media message from {chat_id}, replying with text-only notice")
                await self._reply(chat_id, Replies.MEDIA_UNSUPPORTED, markdown=False)
            return

        try:
            async with self._lock_for(chat_id):
                command_reply = await self.commands.handle(chat_id, text)
                if command_reply is not None:
                    await self._reply(chat_id, command_reply)
                    return

                await self.answer(chat_id, text)

        except Exception as e:
            app_logger.error(f"Chat error for {chat_id}: {str(e)}", exc_info=True)
            await self._reply(chat_id, Replies.ERROR.format(error=e), markdown=False)

    async def answer(self, chat_id: str, text: str) -> Optional[ChatMessage]:
        """
        Answer a chat message and persist the exchange.

        Returns:
            The stored assistant message, or None when every credential failed
            or the answer was empty after formatting.
        """
        await self.transport.typing(chat_id)

        history = self.store.load(chat_id)
        intent = await self.router.classify(history[-self.settings.router_context_turns:], text)

        model_id = self.preferences.get_model(chat_id) or self.settings.default_model
        system_prompt = self.preferences.get_system_prompt(chat_id) or self.settings.system_prompt

        search_block = None
        if intent.needs_search:
            await self.transport.typing(chat_id)
            search_block = await self.augmenter.research(intent.query)
            if search_block is None:
                app_logger.info(f"No search context for '{intent.query}', answering with a caution")
            messages = build_search_messages(system_prompt, history, text, intent.query, search_block)
        else:
            messages = build_direct_messages(system_prompt, history, text)

        outcome = await self.dispatcher.dispatch(messages, model_id)
        if not outcome.ok:
            error = outcome.last_error
            if outcome.attempts:
                error = AllCredentialsFailedError(outcome.last_error, outcome.attempts)
            app_logger.error(f"Answer failed for {chat_id} on {model_id}: {error}")
            await self._reply(chat_id, Replies.ERROR.format(error=error), markdown=False)
            return None

        reply = ResponseFormatter.format(outcome.text)
        if not reply.strip():
            app_logger.warning(f"Answer from {model_id} for {chat_id} was empty after formatting: {outcome.text[:80]!r}")
            await self._reply(chat_id, Replies.EMPTY_ANSWER, markdown=False)
            return None

        hidden_suffix = ""
        if search_block:
            hidden_suffix = SEARCH_CONTEXT_SUFFIX.format(search_query=intent.query, search_results=search_block)

        assistant_message = ChatMessage.assistant(reply, hidden_suffix)
        history.extend([ChatMessage.user(text), assistant_message])
        self.store.save(chat_id, history)

        await self._reply(chat_id, reply)
        return assistant_message


def build_pipeline(settings: Settings, kv: KeyValueStore) -> RequestPipeline:
    """Wire the production pipeline from settings and a key-value store."""
    store = ConversationStore(kv, settings.history_limit)
    preferences = ChatPreferences(kv)
    pool = CredentialPool(kv, settings.static_credentials)
    client = CompletionClient(settings.provider_host, settings.provider_timeout, check_model=settings.router_model)
    dispatcher = ProviderDispatcher(pool, client, settings.soft_failure_max_chars)
    router = IntentRouter(dispatcher, settings.router_model, settings.router_context_turns)
    augmenter = SearchAugmenter(
        settings.search_api_keys,
        search_url=settings.search_url,
        max_results=settings.search_max_results,
        search_depth=settings.search_depth,
        snippet_chars=settings.search_snippet_chars
    )
    transport = TelegramClient(settings.bot_token, settings.telegram_api_url)
    commands = CommandHandler(settings, store, preferences, pool, client)

    return RequestPipeline(
        settings=settings,
        store=store,
        preferences=preferences,
        dispatcher=dispatcher,
        router=router,
        augmenter=augmenter,
        transport=transport,
        commands=commands
    )
