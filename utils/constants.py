"""
Constants and system prompts for the Telegram Relay Bot.
"""

# System prompt for the routing classifier (cheap model, strict output)
ROUTER_SYSTEM_PROMPT = """Current Date: {current_date}

You are a classification tool. Look at the CONVERSATION HISTORY and the latest user message.

1. Does the latest user message require external or up-to-date information (news, weather, prices, scores, recent events, facts you may not know)?
2. Is the user asking a FOLLOW-UP, CHALLENGE, or CLARIFICATION ("why?", "is that true?", "what about him?") about a previous topic that needs checking?

If YES to either, output one line:
SEARCH: <standalone search query>

Rewrite pronouns and ellipsis into a standalone query using the history.
Resolve relative dates ("today", "this weekend", "latest") against the current date and include the date in the query.

If NO, output exactly:
DIRECT

EXAMPLES (NO explanations. NO other text):
SEARCH: weather forecast Manila {current_date}
SEARCH: Champions League final result {current_date}
DIRECT"""

# Appended to the system prompt when answering without search results
DIRECT_ANSWER_RULE = """

STRICT OUTPUT RULE: Do NOT use Markdown tables. Use bullet points or plain text formats only."""

# System message injected before the user's question when a search was attempted
SEARCH_CONTEXT_PROMPT = """[SYSTEM DATA]
Date: {current_date}
Search Query: "{search_query}"
Results:
{search_results}

Instruction: Answer the user's question directly using these results.
If the results are missing, empty or do not cover the question, say plainly that you could not verify it and do not present guesses as facts.

CRITICAL STYLE RULE: Do NOT say "Based on the search results". STRICTLY NO MARKDOWN TABLES. Use bullet points or plain text lists instead."""

NO_SEARCH_RESULTS = "No results found."

# Hidden provenance appended to the stored assistant message, never displayed
SEARCH_CONTEXT_SUFFIX = "\n\n:::SEARCH_CONTEXT:::\nQuery: {search_query}\n{search_results}\n:::END_SEARCH_CONTEXT:::"

# Provider replies under the soft-failure length containing one of these are quota notices
SOFT_FAILURE_PHRASES = (
    "usage limit",
    "quota",
    "insufficient credit",
    "out of credits",
    "rate limit",
)


# User-facing messages
class Replies:
    """Fixed chat replies."""
    START = "Hi! I am ready. Ask me anything, or paste a provider API key to add it to the pool. Send /help for commands."
    HELP = (
        "*Commands*\n"
        "/clear - forget this conversation\n"
        "/use <model> - switch model\n"
        "/reset - back to the default model\n"
        "/current - show the active model\n"
        "/prompt <text> - set a custom system prompt (empty to clear)\n"
        "/models - list available models\n"
        "/tokens - credential pool status\n"
        "/addtoken <key> - add a credential\n"
        "/deltoken <n> - remove database credential n\n"
        "/cleartokens - remove all database credentials\n"
        "/prune - drop database credentials with no quota left"
    )
    CLEARED = "✅ Memory cleared."
    MEDIA_UNSUPPORTED = "⚠️ I can only read text messages for now. Please describe it in words."
    ERROR = "⚠️ Error: {error}"
    EMPTY_ANSWER = "⚠️ The model returned an empty answer. Please try again or rephrase."


# Regular expression patterns
class Patterns:
    """Regular expression patterns for routing and formatting."""
    COMMAND = r'^/([a-zA-Z_]+)(?:@\w+)?(?:\s+(.*))?$'
    ROUTER_SEARCH = r'^\s*SEARCH\s*:\s*(.*)$'
    ROUTER_DIRECT = r'^\s*(DIRECT|DIRECT_ANSWER|NO_SEARCH)\b'
    CODE_FENCE = r'^```[a-zA-Z]*\s*|\s*```$'

    # Explicit lookup requests answered without asking the classifier
    LOOKUP_PREFIX = r'^\s*(?:/search\b|(?:search|google|lookup|look\s+up)\s*:|search\s+for\b|look\s+up\b|find\s+online\b)\s*(.*)$'

    # Whole-message conversational openers that never need a lookup
    SMALL_TALK = (
        r'^\s*(?:hi|hey|hello|yo|hiya|howdy|good\s+(?:morning|afternoon|evening|night)'
        r'|thanks|thank\s+you|thx|ty|ok|okay|cool|nice|great|lol|haha|bye|goodbye'
        r'|how\s+are\s+you|who\s+are\s+you)\b[\s!.?,\U0001F300-\U0001FAFF☀-➿]*$'
    )
