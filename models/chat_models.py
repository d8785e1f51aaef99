"""
Data models for chat processing.
Contains stored conversation messages, routing intents, search results and dispatch outcomes.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, model_validator


class ChatMessage(BaseModel):
    """
    One entry of a conversation history.

    display_text is what the user saw; stored_text is what gets persisted and
    replayed to the provider. stored_text always begins with display_text, the
    remainder being a hidden suffix such as search provenance.
    """
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant", "system"]
    display_text: str
    stored_text: str = ""

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_shape(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            if "display_text" not in data and "content" in data:
                data["display_text"] = data.pop("content")
            if not data.get("stored_text"):
                data["stored_text"] = data.get("display_text", "")
        return data

    @model_validator(mode="after")
    def _stored_extends_display(self):
        if not self.stored_text.startswith(self.display_text):
            raise ValueError("stored_text must begin with display_text")
        return self

    @classmethod
    def user(cls, text: str) -> "ChatMessage":
        return cls(role="user", display_text=text, stored_text=text)

    @classmethod
    def assistant(cls, text: str, hidden_suffix: str = "") -> "ChatMessage":
        return cls(role="assistant", display_text=text, stored_text=text + hidden_suffix)

    @property
    def hidden_suffix(self) -> str:
        return self.stored_text[len(self.display_text):]

    def for_provider(self, include_hidden: bool = True) -> dict:
        """Render as a provider chat message."""
        content = self.stored_text if include_hidden else self.display_text
        return {"role": self.role, "content": content}


class IntentKind(Enum):
    """Routing decision for an inbound message."""
    DIRECT = "direct"
    SEARCH = "search"


@dataclass(frozen=True)
class Intent:
    """Whether a message is answered directly or after a web search."""
    kind: IntentKind
    query: Optional[str] = None

    @classmethod
    def direct(cls) -> "Intent":
        return cls(IntentKind.DIRECT)

    @classmethod
    def search(cls, query: str) -> "Intent":
        return cls(IntentKind.SEARCH, query)

    @property
    def needs_search(self) -> bool:
        return self.kind is IntentKind.SEARCH


@dataclass(frozen=True)
class SearchHit:
    """A single web search hit."""
    title: str
    url: str
    snippet: str


@dataclass
class SearchResult:
    """Search information returned by the web search provider."""
    query: str
    answer: Optional[str] = None
    hits: list[SearchHit] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.answer and not self.hits

    def render(self, snippet_chars: int = 400) -> str:
        """Render as one bounded text block for prompt injection."""
        lines = []
        if self.answer:
            lines.append(f"Answer: {self.answer.strip()}")
            lines.append("")

        if self.hits:
            lines.append("Sources:")
            for index, hit in enumerate(self.hits, start=1):
                snippet = " ".join(hit.snippet.split())
                if len(snippet) > snippet_chars:
                    snippet = snippet[:snippet_chars].rstrip() + "..."
                lines.append(f"[{index}] {hit.title} ({hit.url})")
                if snippet:
                    lines.append(snippet)

        return "\n".join(lines).strip()


class CredentialSource(Enum):
    """Where a provider credential came from."""
    STATIC = "static"
    DYNAMIC = "dynamic"


@dataclass(frozen=True)
class Credential:
    """An opaque provider authorization string."""
    value: str
    source: CredentialSource


@dataclass(frozen=True)
class DispatchSuccess:
    """A credential produced an accepted answer."""
    text: str
    credential: Credential
    attempts: int
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class DispatchFailure:
    """Every credential failed; carries the most recent error."""
    last_error: Exception
    attempts: int
    ok: bool = field(default=False, init=False)


DispatchOutcome = DispatchSuccess | DispatchFailure
