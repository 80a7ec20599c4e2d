"""
Text generation client.
Sends a system + user prompt to a hosted chat model (Anthropic Messages API for
"sk-ant-" keys, OpenAI Chat Completions otherwise) and reports the outcome as a
GenerationResult instead of raising.
"""

from dataclasses import dataclass, field
from typing import Optional

import httpx

from .config import (
    AI_API_KEY,
    AI_TIMEOUT_SECONDS,
    OPENAI_API_URL,
    ANTHROPIC_API_URL,
    ANTHROPIC_VERSION,
    ANTHROPIC_KEY_PREFIX,
    DEFAULT_OPENAI_MODEL,
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
)
from .logger import setup_logger

logger = setup_logger(__name__)


@dataclass
class GenerationResult:
    success: bool
    content: Optional[str] = None
    error: Optional[str] = None
    usage: dict = field(default_factory=dict)

    @classmethod
    def failed(cls, error: str) -> 'GenerationResult':
        return cls(success=False, error=error)


class TextGenerationClient:
    """
    Thin async client for one-shot prompt completion.

    Args:
        api_key: Provider key; falls back to AI_API_KEY from the environment
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = AI_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else AI_API_KEY
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def is_anthropic(self) -> bool:
        return self.api_key.startswith(ANTHROPIC_KEY_PREFIX)

    def _build_request(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str],
        max_tokens: int,
        temperature: float,
    ) -> tuple[str, dict, dict]:
        if self.is_anthropic:
            headers = {
                "x-api-key": self.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            }
            payload = {
                "model": model or DEFAULT_ANTHROPIC_MODEL,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "system": system_prompt,
                "messages": [{"role": "user", "content": user_prompt}],
            }
            return ANTHROPIC_API_URL, headers, payload

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": model or DEFAULT_OPENAI_MODEL,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        return OPENAI_API_URL, headers, payload

    def _parse(self, body: dict) -> tuple[str, dict]:
        if self.is_anthropic:
            return body["content"][0]["text"], body.get("usage", {})
        return body["choices"][0]["message"]["content"], body.get("usage", {})

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> GenerationResult:
        if not self.configured:
            return GenerationResult.failed("No API key configured. Set AI_API_KEY environment variable.")

        url, headers, payload = self._build_request(system_prompt, user_prompt, model, max_tokens, temperature)
        logger.debug(f"Calling text generation API: {url} | Model: {payload['model']}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, headers=headers, json=payload)

            if response.status_code != 200:
                error_msg = f"API Error {response.status_code}: {response.text}"
                logger.error(error_msg)
                return GenerationResult.failed(error_msg)

            content, usage = self._parse(response.json())

        except httpx.TimeoutException:
            logger.error("Text generation API timeout")
            return GenerationResult.failed("Request timed out")
        except httpx.HTTPError as e:
            logger.error(f"Text generation connection error: {e}")
            return GenerationResult.failed(f"Connection error: could not reach {url}")
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Malformed text generation response: {e}")
            return GenerationResult.failed(f"Malformed response: {e}")

        return GenerationResult(success=True, content=content, usage=usage)
