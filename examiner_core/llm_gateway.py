"""
EXAMINER Async LLM Gateway
==========================
Handles asynchronous interactions with Groq API, including:
- Key Rotation (Round-Robin)
- Transport retry on rate limits / dropped connections (off by default)
- Upstream status propagation (CompletionError)
"""

import os
import json
import logging
from typing import Dict, List, Optional, Sequence

from groq import AsyncGroq, APIError, APIStatusError, APIConnectionError, RateLimitError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from .config import GROQ_KEY_VARS, LLM_MODEL, GATEWAY_MAX_ATTEMPTS
from .errors import CompletionError

logger = logging.getLogger(__name__)


class AsyncLLMGateway:
    """
    Completion gateway: ordered role-tagged messages in, one text completion out.
    """

    def __init__(self, api_keys: Optional[List[str]] = None):
        self.api_keys: List[str] = api_keys or self._load_api_keys()
        if not self.api_keys:
            logger.critical("No GROQ_API_KEY found! Please set GROQ_API_KEY in .env")
            raise ValueError("No GROQ_API_KEY found")

        self.clients: List[AsyncGroq] = [AsyncGroq(api_key=k) for k in self.api_keys]
        self.current_client_idx = 0
        self.default_model = LLM_MODEL

        logger.info(f"LLM Gateway initialized with {len(self.clients)} API keys")

    def _load_api_keys(self) -> List[str]:
        """Load API keys from environment variables (.env already applied by config)."""
        keys = []
        for var_name in GROQ_KEY_VARS:
            key = os.getenv(var_name)
            if key and key not in keys:
                keys.append(key)
        return keys

    def get_client(self) -> AsyncGroq:
        """Get the next client in rotation."""
        client = self.clients[self.current_client_idx]
        self.current_client_idx = (self.current_client_idx + 1) % len(self.clients)
        return client

    @retry(
        stop=stop_after_attempt(GATEWAY_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((RateLimitError, APIConnectionError)),
        reraise=True
    )
    async def _call_api_raw(self, messages: List[Dict[str, str]], model: str, temperature: float, max_tokens: Optional[int]) -> Optional[str]:
        """
        Raw API call; retried only when GATEWAY_MAX_ATTEMPTS > 1.
        """
        client = self.get_client()
        params = {"model": model, "messages": messages, "temperature": temperature}
        if max_tokens is not None:
            params["max_tokens"] = max_tokens
        try:
            response = await client.chat.completions.create(**params)
        except RateLimitError:
            logger.warning("Rate limit hit, rotating key immediately.")
            self.current_client_idx = (self.current_client_idx + 1) % len(self.clients)
            raise
        if not response.choices:
            return None
        return response.choices[0].message.content

    async def complete(
        self,
        messages: Sequence[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None
    ) -> str:
        """
        Return the stripped completion text ("" when the model produced nothing).
        Raises CompletionError carrying the upstream status code when known.
        """
        model = model or self.default_model
        logger.info(f"Completion request: model={model}, messages={len(messages)}")
        logger.debug(f"Messages sent to completion API:\n{json.dumps(list(messages), indent=2)}")

        try:
            content = await self._call_api_raw(list(messages), model, temperature, max_tokens)
        except APIStatusError as e:
            logger.error(f"API Call Failed ({model}): [{e.status_code}] {e.message}")
            raise CompletionError(e.message, e.status_code) from e
        except APIError as e:
            logger.error(f"API Call Failed ({model}): {e.message}")
            raise CompletionError(e.message) from e

        return (content or "").strip()

# Global Gateway Instance
llm_gateway = AsyncLLMGateway()
