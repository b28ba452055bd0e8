"""Tests for storyweave.llm — HttpLLM."""

import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, patch

from storyweave.llm import HttpLLM, LLMError


def _mock_response(body, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


# ---------------------------------------------------------------------------
# HttpLLM — KoboldCpp format
# ---------------------------------------------------------------------------

class TestHttpLLMKoboldCpp:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM(provider_url="http://localhost:5001", api_key="")

    async def test_happy_path(self, llm: HttpLLM) -> None:
        body = {"results": [{"text": "The platform at Pietermaritzburg is cold."}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm("opening", "Describe the station.")
        assert result == "The platform at Pietermaritzburg is cold."

    async def test_posts_to_correct_url(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"results": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("opening", "prompt")
        assert mock_post.call_args[0][0] == "http://localhost:5001/api/v1/generate"

    async def test_sends_prompt_in_body(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"results": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("choices", "my prompt")
        assert mock_post.call_args.kwargs["json"] == {"prompt": "my prompt"}

    async def test_bearer_token_sent_when_api_key_set(self) -> None:
        llm = HttpLLM(provider_url="http://localhost:5001", api_key="secret")
        mock_post = AsyncMock(return_value=_mock_response({"results": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("opening", "prompt")
        assert mock_post.call_args.kwargs["headers"].get("Authorization") == "Bearer secret"

    async def test_no_auth_header_when_no_api_key(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"results": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("opening", "prompt")
        assert "Authorization" not in mock_post.call_args.kwargs["headers"]

    async def test_trailing_slash_stripped_from_url(self) -> None:
        llm = HttpLLM(provider_url="http://localhost:5001/")
        mock_post = AsyncMock(return_value=_mock_response({"results": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("opening", "prompt")
        assert mock_post.call_args[0][0] == "http://localhost:5001/api/v1/generate"

    async def test_connect_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Cannot connect"):
                await llm("opening", "prompt")

    async def test_timeout_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.TimeoutException("timeout"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="timed out"):
                await llm("opening", "prompt")

    async def test_http_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({}, status=503))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="HTTP 503"):
                await llm("opening", "prompt")

    async def test_non_json_body_raises_llm_error(self, llm: HttpLLM) -> None:
        resp = _mock_response(None)
        resp.json.side_effect = ValueError("not json")
        mock_post = AsyncMock(return_value=resp)
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="non-JSON"):
                await llm("opening", "prompt")

    async def test_malformed_response_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"unexpected": "format"}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("opening", "prompt")


# ---------------------------------------------------------------------------
# HttpLLM — OpenAI completions format
# ---------------------------------------------------------------------------

class TestHttpLLMOpenAI:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM(
            provider_url="http://localhost:8080",
            provider_format="openai",
            model="mistral-7b",
        )

    async def test_posts_to_correct_url_with_model(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("opening", "prompt")
        assert mock_post.call_args[0][0] == "http://localhost:8080/v1/completions"
        assert mock_post.call_args.kwargs["json"] == {"prompt": "prompt", "model": "mistral-7b"}

    async def test_happy_path(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "1893."}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            assert await llm("opening", "prompt") == "1893."

    async def test_malformed_response_raises_llm_error(self, llm: HttpLLM) -> None:
        body = {"results": [{"text": "kobold format accidentally"}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("opening", "prompt")


# ---------------------------------------------------------------------------
# HttpLLM — OpenAI chat format
# ---------------------------------------------------------------------------

class TestHttpLLMOpenAIChat:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM(
            provider_url="https://api.example.com",
            api_key="sk-test",
            provider_format="openai-chat",
            model="gpt-test",
        )

    async def test_sends_messages(self, llm: HttpLLM) -> None:
        body = {"choices": [{"message": {"role": "assistant", "content": "ok"}}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm("choices", "Offer three choices.")
        assert result == "ok"
        assert mock_post.call_args[0][0] == "https://api.example.com/v1/chat/completions"
        sent = mock_post.call_args.kwargs["json"]
        assert sent["messages"] == [{"role": "user", "content": "Offer three choices."}]
        assert sent["model"] == "gpt-test"

    async def test_missing_message_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "x"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("choices", "prompt")


# ---------------------------------------------------------------------------
# HttpLLM — Hugging Face inference format
# ---------------------------------------------------------------------------

class TestHttpLLMHuggingFace:
    async def test_posts_to_model_url(self) -> None:
        llm = HttpLLM(
            provider_url="https://api-inference.huggingface.co",
            provider_format="huggingface",
            model="mistralai/Mistral-7B",
        )
        mock_post = AsyncMock(return_value=_mock_response([{"generated_text": "Paris, 1891."}]))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm("opening", "prompt")
        assert result == "Paris, 1891."
        assert mock_post.call_args[0][0] == (
            "https://api-inference.huggingface.co/models/mistralai/Mistral-7B"
        )
        assert mock_post.call_args.kwargs["json"] == {
            "inputs": "prompt",
            "parameters": {"return_full_text": False},
        }

    async def test_without_model_posts_to_base_url(self) -> None:
        llm = HttpLLM(provider_url="http://localhost:9000/", provider_format="huggingface")
        mock_post = AsyncMock(return_value=_mock_response([{"generated_text": "ok"}]))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("opening", "prompt")
        assert mock_post.call_args[0][0] == "http://localhost:9000"

    async def test_empty_list_raises_llm_error(self) -> None:
        llm = HttpLLM(provider_url="http://localhost:9000", provider_format="huggingface")
        mock_post = AsyncMock(return_value=_mock_response([]))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("opening", "prompt")
