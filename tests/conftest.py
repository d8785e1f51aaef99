import random

import pytest
from unittest.mock import AsyncMock

from config import Settings


@pytest.fixture
def settings():
    """Settings with one static credential and one search key."""
    return Settings(
        bot_token="test-token",
        static_credentials=("static-cred-0001",),
        search_api_keys=("tvly-test-key",),
        default_model="main-model",
        router_model="router-model",
        history_limit=20,
        allowed_chat_ids=frozenset({"1001"}),
    )


@pytest.fixture
def kv(tmp_path):
    """Key-value store backed by a temporary SQLite file."""
    from utils.kv_store import KeyValueStore
    store = KeyValueStore(str(tmp_path / "bot.db"))
    yield store
    store.close()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def credential_pool(kv, settings):
    from services.credential_pool import CredentialPool
    return CredentialPool(kv, settings.static_credentials)


@pytest.fixture
def completion_client():
    from tests.fixtures.mock_clients import FakeCompletionClient
    return FakeCompletionClient()


@pytest.fixture
def telegram():
    from tests.fixtures.mock_clients import RecordingTelegramClient
    return RecordingTelegramClient()


@pytest.fixture
def mock_http_client():
    """Mock HTTP client for search calls."""
    client = AsyncMock()
    client.post = AsyncMock()
    return client


@pytest.fixture
def pipeline(settings, kv, credential_pool, completion_client, telegram, rng):
    """Pipeline wired with real services, a fake provider and a recording transport."""
    from services.commands import CommandHandler
    from services.conversation_store import ChatPreferences, ConversationStore
    from services.dispatcher import ProviderDispatcher
    from services.intent_router import IntentRouter
    from services.pipeline import RequestPipeline
    from services.search import SearchAugmenter

    store = ConversationStore(kv, settings.history_limit)
    preferences = ChatPreferences(kv)
    dispatcher = ProviderDispatcher(credential_pool, completion_client, settings.soft_failure_max_chars, rng=rng)
    router = IntentRouter(dispatcher, settings.router_model, settings.router_context_turns)
    augmenter = SearchAugmenter(settings.search_api_keys, rng=rng)
    commands = CommandHandler(settings, store, preferences, credential_pool, completion_client)

    return RequestPipeline(
        settings=settings,
        store=store,
        preferences=preferences,
        dispatcher=dispatcher,
        router=router,
        augmenter=augmenter,
        transport=telegram,
        commands=commands
    )


@pytest.fixture
def anyio_backend():
    return "asyncio"
