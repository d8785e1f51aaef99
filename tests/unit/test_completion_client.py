import ollama
import pytest
from pydantic import BaseModel
from unittest.mock import AsyncMock, patch

from models.chat_models import Credential, CredentialSource
from services.completion_client import CompletionClient
from services.credential_pool import CredentialPool

CREDENTIAL = Credential("dyn-cred-aaaa", CredentialSource.DYNAMIC)


class _Message(BaseModel):
    role: str
    content: str


class _ChatResponse(BaseModel):
    model: str
    message: _Message


@pytest.fixture
def mock_ollama_client():
    client = AsyncMock()
    client.chat = AsyncMock()
    client.list = AsyncMock()
    client._client = AsyncMock()
    return client


@pytest.fixture
def completion(mock_ollama_client):
    """CompletionClient whose ollama.AsyncClient is replaced by a mock."""
    with patch("services.completion_client.ollama.AsyncClient", return_value=mock_ollama_client) as factory:
        yield CompletionClient("https://ollama.com", timeout=30.0, check_model="router-model"), factory


@pytest.mark.anyio
async def test_complete_authenticates_with_bearer_credential(completion, mock_ollama_client):
    """Given a credential, when completing, the ollama client should carry it as a bearer token."""
    client, factory = completion
    mock_ollama_client.chat.return_value = {"message": {"role": "assistant", "content": "hi"}}
    messages = [{"role": "user", "content": "hello"}]

    result = await client.complete(messages, "main-model", CREDENTIAL)

    assert result == {"message": {"role": "assistant", "content": "hi"}}
    factory.assert_called_once_with(
        host="https://ollama.com",
        timeout=30.0,
        headers={"Authorization": "Bearer dyn-cred-aaaa"}
    )
    mock_ollama_client.chat.assert_awaited_once_with(model="main-model", messages=messages)


@pytest.mark.anyio
async def test_complete_dumps_pydantic_response(completion, mock_ollama_client):
    """Given a pydantic chat response, when completing, it should come back as a plain dict."""
    client, _ = completion
    mock_ollama_client.chat.return_value = _ChatResponse(
        model="main-model", message=_Message(role="assistant", content="Sunny today.")
    )

    result = await client.complete([{"role": "user", "content": "weather?"}], "main-model", CREDENTIAL)

    assert result == {"model": "main-model", "message": {"role": "assistant", "content": "Sunny today."}}


@pytest.mark.anyio
async def test_list_models_returns_model_names(completion, mock_ollama_client):
    """Given the provider model list, when listing, it should return the model names."""
    client, _ = completion
    mock_ollama_client.list.return_value = {"models": [{"model": "gpt-oss:120b"}, {"model": "qwen3:32b"}]}

    assert await client.list_models(CREDENTIAL) == ["gpt-oss:120b", "qwen3:32b"]


@pytest.mark.parametrize("status_code", [402, 429])
@pytest.mark.anyio
async def test_quota_status_marks_credential_exhausted(completion, mock_ollama_client, status_code):
    """Given a payment or rate-limit error, when checking quota, the credential should count as exhausted."""
    client, _ = completion
    mock_ollama_client.chat.side_effect = ollama.ResponseError("usage limit reached", status_code)

    assert await client.is_exhausted(CREDENTIAL) is True

    kwargs = mock_ollama_client.chat.call_args.kwargs
    assert kwargs["model"] == "router-model"
    assert kwargs["options"] == {"num_predict": 1}


@pytest.mark.anyio
async def test_other_provider_errors_propagate(completion, mock_ollama_client):
    """Given a server error, when checking quota, the error should reach the caller."""
    client, _ = completion
    mock_ollama_client.chat.side_effect = ollama.ResponseError("internal error", 500)

    with pytest.raises(ollama.ResponseError):
        await client.is_exhausted(CREDENTIAL)


@pytest.mark.parametrize("content, expected", [
    ("You have reached your usage limit.", True),
    ("Rate limit exceeded, try again later", True),
    ("pong", False),
    (None, False),
])
@pytest.mark.anyio
async def test_quota_phrase_in_reply(completion, mock_ollama_client, content, expected):
    """Given a short reply, when checking quota, quota wording should mark the credential exhausted."""
    client, _ = completion
    mock_ollama_client.chat.return_value = {"message": {"role": "assistant", "content": content}}

    assert await client.is_exhausted(CREDENTIAL) is expected


@pytest.mark.anyio
async def test_prune_keeps_credential_when_check_errors(kv, completion, mock_ollama_client):
    """Given a credential whose quota check hits a server error, when pruning, it should be kept."""
    client, _ = completion
    pool = CredentialPool(kv)
    pool.add("dyn-cred-aaaa")
    mock_ollama_client.chat.side_effect = ollama.ResponseError("internal error", 500)

    assert await pool.prune(client.is_exhausted) == 0
    assert pool.dynamic_values() == ["dyn-cred-aaaa"]


@pytest.mark.anyio
async def test_client_is_reused_per_credential_and_closed(completion, mock_ollama_client):
    """Given repeated calls, when completing, one ollama client per credential should be built and later closed."""
    client, factory = completion
    mock_ollama_client.chat.return_value = {"message": {"role": "assistant", "content": "ok"}}
    other = Credential("static-cred-0001", CredentialSource.STATIC)

    await client.complete([], "main-model", CREDENTIAL)
    await client.complete([], "main-model", CREDENTIAL)
    await client.complete([], "main-model", other)

    assert factory.call_count == 2

    await client.close()

    assert mock_ollama_client._client.aclose.await_count == 2
    assert client._clients == {}
