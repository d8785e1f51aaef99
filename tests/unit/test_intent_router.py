import random
from datetime import datetime

import pytest

from models.chat_models import ChatMessage, Intent, IntentKind
from services.credential_pool import CredentialPool
from services.dispatcher import ProviderDispatcher
from services.intent_router import (
    IntentRouter,
    current_date_string,
    parse_router_reply,
    preflight_intent,
)
from tests.fixtures.mock_clients import FakeCompletionClient


def test_current_date_string_format():
    """Given a datetime, when formatted, it should read as weekday, month, day and year."""
    assert current_date_string(datetime(2026, 10, 18)) == "Sunday, October 18, 2026"


@pytest.mark.parametrize("message, query", [
    ("/search bitcoin price", "bitcoin price"),
    ("search: who won the derby", "who won the derby"),
    ("Google: python 3.14 release date", "python 3.14 release date"),
    ("look up the capital of Bhutan", "the capital of Bhutan"),
])
def test_preflight_routes_explicit_lookups_to_search(message, query):
    """Given an explicit lookup request, when pre-flighted, it should route to search with the remaining text."""
    assert preflight_intent(message) == Intent.search(query)


@pytest.mark.parametrize("message", ["hi", "Hello!", "thanks", "thank you 🙏", "ok", "lol"])
def test_preflight_answers_small_talk_directly(message):
    """Given small talk, when pre-flighted, it should answer directly."""
    assert preflight_intent(message) == Intent.direct()


@pytest.mark.parametrize("message", [
    "What's the weather in Manila?",
    "Google is a company, right?",
    "hi, what happened in the news today?",
    "/search",
])
def test_preflight_leaves_other_messages_undecided(message):
    """Given an ordinary question, when pre-flighted, it should defer to the classifier."""
    assert preflight_intent(message) is None


@pytest.mark.parametrize("reply, expected", [
    ("SEARCH: weather Manila today", Intent.search("weather Manila today")),
    ("search: \"nba scores\"", Intent.search("nba scores")),
    ("DIRECT", Intent.direct()),
    ("DIRECT_ANSWER", Intent.direct()),
    ('{"action": "search", "query": "euro exchange rate"}', Intent.search("euro exchange rate")),
    ('{"action": "direct"}', Intent.direct()),
    ("```\nSEARCH: f1 standings\n```", Intent.search("f1 standings")),
    ("Thinking...\nSEARCH: ev sales 2026", Intent.search("ev sales 2026")),
])
def test_parse_router_reply_accepted_forms(reply, expected):
    """Given a well-formed classifier reply, when parsed, it should produce the matching intent."""
    assert parse_router_reply(reply) == expected


@pytest.mark.parametrize("reply", [None, "", "SEARCH:", "I think you should search", "{not json", '{"action": "search"}'])
def test_parse_router_reply_falls_back_to_direct(reply):
    """Given a malformed classifier reply, when parsed, it should route to direct without raising."""
    assert parse_router_reply(reply).kind is IntentKind.DIRECT


def _router(kv, responses):
    client = FakeCompletionClient(responses=responses)
    dispatcher = ProviderDispatcher(CredentialPool(kv, ["router-cred"]), client, rng=random.Random(0))
    return IntentRouter(dispatcher, "router-model"), client


@pytest.mark.anyio
async def test_classify_uses_fast_path_without_provider_call(kv):
    """Given small talk, when classified, the classifier model should not be called."""
    router, client = _router(kv, [])
    assert await router.classify([], "thanks!") == Intent.direct()
    assert client.calls == []


@pytest.mark.anyio
async def test_classify_sends_recent_display_text_only(kv):
    """Given history with hidden search context, when classified, the classifier should only see display text."""
    router, client = _router(kv, ["SEARCH: Manila weather tomorrow"])
    history = [
        ChatMessage.user("what's the weather in Manila?"),
        ChatMessage.assistant("Sunny, 31°C.", "\n\n:::SEARCH_CONTEXT:::\nsecret\n:::END_SEARCH_CONTEXT:::"),
    ]

    intent = await router.classify(history, "and tomorrow?")

    assert intent == Intent.search("Manila weather tomorrow")
    sent = client.calls[0]["messages"]
    assert client.calls[0]["model"] == "router-model"
    assert sent[0]["role"] == "system"
    assert current_date_string() in sent[0]["content"]
    assert all(":::SEARCH_CONTEXT:::" not in m["content"] for m in sent)
    assert sent[-1] == {"role": "user", "content": "and tomorrow?"}


@pytest.mark.anyio
async def test_classify_limits_context_turns(kv):
    """Given a long history, when classified, only the last three entries should be sent."""
    router, client = _router(kv, ["DIRECT"])
    history = [ChatMessage.user(f"message {i}") for i in range(10)]

    await router.classify(history, "what do you think?")

    contents = [m["content"] for m in client.calls[0]["messages"][1:-1]]
    assert contents == ["message 7", "message 8", "message 9"]


@pytest.mark.anyio
async def test_classify_returns_direct_when_classifier_fails(kv):
    """Given a failing classifier, when classified, it should answer directly."""
    router, _ = _router(kv, [RuntimeError("provider down")])
    assert await router.classify([], "who is the current UN secretary general?") == Intent.direct()
