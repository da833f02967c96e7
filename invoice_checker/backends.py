"""
Language-model backends used by the extraction tiers.

A backend is an opaque capability: given a prompt, return text within a
timeout, or fail with a BackendError. Two implementations exist:

- CloudBackend: OpenAI chat completions
- LocalBackend: an Ollama server reachable over HTTP
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

import httpx
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    OpenAIError,
)

from .config import (
    OLLAMA_MODEL,
    OLLAMA_URL,
    OPENAI_API_KEY,
    OPENAI_CLIENT_TIMEOUT_MS,
    OPENAI_MODEL,
    PROBE_TIMEOUT_MS,
    logger,
)
from .errors import BackendError, BackendMalformedResponse, BackendTimeout, BackendUnavailable

T = TypeVar("T")


async def call_with_timeout(call: Awaitable[T], timeout_ms: int, backend: str = "backend") -> T:
    """
    Await a backend call under a hard time budget.

    On expiry the in-flight call is cancelled, so a late answer can never
    reach the caller, and BackendTimeout is raised.
    """
    try:
        return await asyncio.wait_for(call, timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        raise BackendTimeout(backend, f"no answer within {timeout_ms} ms") from None


class Backend:
    """
    Interface for text-generation backends.

    Subclasses implement probe() and generate(); generate() must raise a
    BackendError subclass on any failure.
    """

    name: str = "backend"

    def __init__(self, model: str):
        self.model = model

    @property
    def engine_name(self) -> str:
        """Provenance tag written to records produced by this backend."""
        return f"{self.name} {self.model}"

    async def probe(self) -> bool:
        raise NotImplementedError

    async def generate(
        self,
        prompt: str,
        timeout_ms: int,
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        raise NotImplementedError


class CloudBackend(Backend):
    """OpenAI chat completions. Available iff an API key is configured."""

    name = "OpenAI"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = OPENAI_MODEL,
        client: Optional[AsyncOpenAI] = None,
    ):
        super().__init__(model)
        self.api_key = api_key
        self._client = client

    @classmethod
    def from_config(cls) -> "CloudBackend":
        return cls(api_key=OPENAI_API_KEY or None, model=OPENAI_MODEL)

    def _get_client(self) -> AsyncOpenAI:
        if not self.api_key:
            raise BackendUnavailable(self.name, "OPENAI_API_KEY is not set")
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                timeout=OPENAI_CLIENT_TIMEOUT_MS / 1000,
                max_retries=0,
            )
        return self._client

    async def probe(self) -> bool:
        try:
            self._get_client()
        except BackendUnavailable:
            logger.info("OpenAI not configured (no API key)")
            return False
        except OpenAIError as e:
            logger.warning(f"OpenAI client could not be created: {e}")
            return False
        logger.info(f"OpenAI client initialized (model {self.model})")
        return True

    async def generate(
        self,
        prompt: str,
        timeout_ms: int,
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        client = self._get_client()
        options = {"max_tokens": max_tokens} if max_tokens else {}
        try:
            completion = await client.chat.completions.create(
                model=model or self.model,
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout_ms / 1000,
                **options,
            )
        except APITimeoutError as e:
            raise BackendTimeout(self.name, str(e)) from e
        except APIStatusError as e:
            raise BackendError(self.name, f"API returned {e.status_code}") from e
        except (APIConnectionError, OpenAIError) as e:
            raise BackendError(self.name, str(e)) from e

        choice = completion.choices[0] if completion.choices else None
        content = choice.message.content if choice else None
        if not content:
            raise BackendMalformedResponse(self.name, "empty completion")
        return content


class LocalBackend(Backend):
    """Ollama server on the local machine, reached over HTTP."""

    name = "Ollama"

    def __init__(
        self,
        base_url: str = OLLAMA_URL,
        model: str = OLLAMA_MODEL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(model)
        self.base_url = base_url.rstrip("/")
        self.transport = transport

    @classmethod
    def from_config(cls) -> "LocalBackend":
        return cls(base_url=OLLAMA_URL, model=OLLAMA_MODEL)

    async def probe(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=PROBE_TIMEOUT_MS / 1000, transport=self.transport) as client:
                response = await client.get(f"{self.base_url}/api/tags")
        except httpx.HTTPError as e:
            logger.info(f"Ollama not reachable at {self.base_url}: {e.__class__.__name__}")
            return False

        if response.status_code != 200:
            logger.info(f"Ollama status check returned {response.status_code}")
            return False
        logger.info(f"Ollama available at {self.base_url} (model {self.model})")
        return True

    async def generate(
        self,
        prompt: str,
        timeout_ms: int,
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        payload = {
            "model": model or self.model,
            "prompt": prompt,
            "stream": False,
        }
        if max_tokens:
            payload["options"] = {"num_predict": max_tokens}

        try:
            async with httpx.AsyncClient(timeout=timeout_ms / 1000, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/api/generate", json=payload)
                response.raise_for_status()
        except httpx.TimeoutException as e:
            raise BackendTimeout(self.name, f"no answer within {timeout_ms} ms") from e
        except httpx.HTTPStatusError as e:
            raise BackendError(self.name, f"server returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise BackendError(self.name, str(e) or e.__class__.__name__) from e

        try:
            data = response.json()
        except ValueError as e:
            raise BackendMalformedResponse(self.name, "response body is not JSON") from e
        if not isinstance(data, dict):
            raise BackendMalformedResponse(self.name, "response body is not a JSON object")
        answer = data.get("response")
        if not isinstance(answer, str):
            raise BackendMalformedResponse(self.name, "response field is not text")
        return answer
