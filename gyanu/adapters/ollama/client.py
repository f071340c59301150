"""
Ollama Client - Hosted or local models through the native Ollama API.

Features:
- Async HTTP client with bearer auth for Ollama Cloud
- Chat completions with token counts
- Embeddings (retried with exponential backoff)
- Per-role model binding for the protected invoker
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from gyanu.config.errors import ErrorCode, LLMError
from gyanu.domains.resilience.models import ModelResponse

logger = logging.getLogger(__name__)

__all__ = ["OllamaClient", "OllamaChatModel"]


class OllamaClient:
    """
    Ollama API client.

    Example:
        >>> client = OllamaClient("https://ollama.com", api_key="...")
        >>> response = await client.chat("qwen:3.5", [{"role": "user", "content": "Hi"}])
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        api_key: str | None = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Ollama client.

        Args:
            base_url: Ollama server URL
            api_key: Bearer token for hosted endpoints
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def chat(
        self,
        model: str,
        messages: list[dict[str, str]],
        temperature: float = 0.7,
        json_format: bool = False,
    ) -> ModelResponse:
        """
        Chat completion.

        Args:
            model: Model name
            messages: List of {"role": "system/user/assistant", "content": "..."}
            temperature: Sampling temperature
            json_format: Constrain output to JSON

        Returns:
            Assistant response with token counts

        Raises:
            LLMError: Request failed or returned no content
        """
        client = await self._get_client()

        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": temperature},
        }
        if json_format:
            payload["format"] = "json"

        try:
            response = await client.post("/api/chat", json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise LLMError(f"{model} timed out after {self.timeout:g}s", code=ErrorCode.LLM_TIMEOUT) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            code = ErrorCode.LLM_AUTH_FAILED if status in (401, 403) else ErrorCode.LLM_UNAVAILABLE
            raise LLMError(f"{model} returned HTTP {status}", {"status": status}, code=code) from e
        except httpx.TransportError as e:
            raise LLMError(f"Cannot reach model endpoint {self.base_url}: {e}") from e

        data = response.json()
        content = data.get("message", {}).get("content", "")
        if not content:
            raise LLMError(f"{model} returned an empty message", code=ErrorCode.LLM_INVALID_RESPONSE)

        return ModelResponse(
            content=content,
            model=model,
            prompt_tokens=data.get("prompt_eval_count", 0),
            completion_tokens=data.get("eval_count", 0),
        )

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def embed(self, model: str, text: str) -> list[float]:
        """
        Embed a single text.

        Args:
            model: Embedding model name
            text: Text to embed

        Returns:
            Embedding vector
        """
        client = await self._get_client()

        response = await client.post("/api/embed", json={"model": model, "input": text})
        response.raise_for_status()

        embeddings = response.json().get("embeddings", [])
        if not embeddings:
            raise LLMError(f"{model} returned no embedding", code=ErrorCode.LLM_INVALID_RESPONSE)
        return embeddings[0]

    async def list_models(self) -> list[str]:
        """List available models."""
        client = await self._get_client()
        response = await client.get("/api/tags")
        response.raise_for_status()

        data = response.json()
        return [m["name"] for m in data.get("models", [])]

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


class OllamaChatModel:
    """A model name and sampling settings bound to a shared client."""

    def __init__(
        self,
        client: OllamaClient,
        model: str,
        temperature: float = 0.7,
        json_format: bool = False,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature
        self._json_format = json_format

    @property
    def model_name(self) -> str:
        return self._model

    async def invoke(self, messages: list[dict[str, str]]) -> ModelResponse:
        return await self._client.chat(
            self._model,
            messages,
            temperature=self._temperature,
            json_format=self._json_format,
        )
