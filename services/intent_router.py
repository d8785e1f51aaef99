"""
Intent routing: decides whether a message needs a web search before answering.
A deterministic pre-flight check runs first; a cheap classifier model handles the rest.
"""
import json
import re
from datetime import datetime
from typing import Optional, Sequence

from models.chat_models import ChatMessage, Intent
from services.dispatcher import ProviderDispatcher
from utils.constants import ROUTER_SYSTEM_PROMPT, Patterns
from utils.logger import app_logger


def current_date_string(now: Optional[datetime] = None) -> str:
    """Long-form date injected into prompts, e.g. 'Sunday, October 18, 2026'."""
    now = now or datetime.now()
    return f"{now:%A}, {now:%B} {now.day}, {now.year}"


def preflight_intent(message: str) -> Optional[Intent]:
    """
    Pre-flight check on the raw message.

    Returns:
        Search for explicit lookup requests, Direct for small talk, None when undecided
    """
    lookup = re.match(Patterns.LOOKUP_PREFIX, message, re.IGNORECASE | re.DOTALL)
    if lookup:
        query = lookup.group(1).strip()
        if query:
            app_logger.info("Pre-flight: explicit lookup request")
            return Intent.search(query)

    if re.match(Patterns.SMALL_TALK, message, re.IGNORECASE):
        app_logger.info("Pre-flight: small talk, answering directly")
        return Intent.direct()

    return None


def parse_router_reply(reply: Optional[str]) -> Intent:
    """
    Parse the classifier output. Anything unrecognised routes to Direct.

    Accepted forms: 'SEARCH: <query>', 'DIRECT', or a one-line JSON object
    {"action": "search" | "direct", "query": "..."}.
    """
    if not reply:
        return Intent.direct()

    text = re.sub(Patterns.CODE_FENCE, '', reply.strip()).strip()

    if text.startswith("{"):
        try:
            data = json.loads(text.splitlines()[0] if "\n" in text else text)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            action = str(data.get("action", "")).lower()
            query = data.get("query")
            if action == "search" and isinstance(query, str) and query.strip():
                return Intent.search(query.strip())
            return Intent.direct()

    for line in text.splitlines():
        search_match = re.match(Patterns.ROUTER_SEARCH, line, re.IGNORECASE)
        if search_match:
            query = search_match.group(1).strip().strip('"').strip("'").strip()
            return Intent.search(query) if query else Intent.direct()
        if re.match(Patterns.ROUTER_DIRECT, line, re.IGNORECASE):
            return Intent.direct()

    app_logger.warning(f"Unparseable router reply, answering directly: {text[:80]!r}")
    return Intent.direct()


class IntentRouter:
    """Two-tier search routing."""

    def __init__(self, dispatcher: ProviderDispatcher, router_model: str, context_turns: int = 3):
        self.dispatcher = dispatcher
        self.router_model = router_model
        self.context_turns = max(3, context_turns)

    def build_router_messages(self, recent_history: Sequence[ChatMessage], new_message: str) -> list[dict]:
        """System instruction with today's date, the last few turns, then the new message."""
        messages = [{"role": "system", "content": ROUTER_SYSTEM_PROMPT.format(current_date=current_date_string())}]
        for entry in list(recent_history)[-self.context_turns:]:
            messages.append(entry.for_provider(include_hidden=False))
        messages.append({"role": "user", "content": new_message})
        return messages

    async def classify(self, recent_history: Sequence[ChatMessage], new_message: str) -> Intent:
        """Route a message. Never raises for classifier failures."""
        intent = preflight_intent(new_message)
        if intent is not None:
            return intent

        messages = self.build_router_messages(recent_history, new_message)
        outcome = await self.dispatcher.dispatch(messages, self.router_model)
        if not outcome.ok:
            app_logger.warning(f"Router call failed, answering directly: {outcome.last_error}")
            return Intent.direct()

        intent = parse_router_reply(outcome.text)
        app_logger.info(f"Router decision: {intent.kind.value}" + (f" - '{intent.query}'" if intent.query else ""))
        return intent
