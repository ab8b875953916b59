import httpx
import logging
from typing import Any, Dict, Optional

from company_analyzer import errors
from company_analyzer.config import settings

logger = logging.getLogger(__name__)


class LLMClient:
    """Single-shot chat completion against an OpenAI-compatible endpoint."""

    _instance = None

    _base_url = settings.llm_base_url
    _model_name = settings.llm_model
    _api_token = settings.llm_api_key
    _timeout = settings.llm_timeout
    _transport: Optional[httpx.AsyncBaseTransport] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            logger.info(f"LLMClient Singleton Initialized ({cls._model_name})")
            if not cls._api_token:
                logger.warning(
                    "OPENAI_API_KEY is not set. The service will start, "
                    "but analysis and business plan requests will fail."
                )
        return cls._instance

    def set_config(
        self,
        base_url: str,
        model_name: str,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url
        self._model_name = model_name
        if api_token:
            self._api_token = api_token
        self._timeout = timeout
        self._transport = transport

    # ------------------------------------------------------------------
    # 🔹 CHAT COMPLETION
    # ------------------------------------------------------------------
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 4000,
        temperature: float = 0.7,
    ) -> str:
        """
        Send one chat request and return the reply text.

        Exactly one HTTP call is made. Nothing is retried here: rate limits,
        quota errors and provider failures surface immediately as typed
        errors so the caller can decide what to tell the user.
        """

        if not system_prompt or not user_prompt:
            raise ValueError("system_prompt and user_prompt must be non-empty")

        if not self._api_token:
            raise errors.ConfigurationError(
                "OPENAI_API_KEY environment variable is not set."
            )

        headers = {
            "Authorization": f"Bearer {self._api_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        payload = {
            "model": self._model_name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self._base_url,
                    headers=headers,
                    json=payload,
                )
        except httpx.RequestError as e:
            logger.error(f"LLM Connection Failed: {e}")
            raise errors.UpstreamError(f"Error communicating with LLM: {e}") from e

        if response.is_error:
            raise self._map_status_error(response)

        return self._extract_content(response)

    # ------------------------------------------------------------------
    # 🔹 ERROR MAPPING
    # ------------------------------------------------------------------
    def _map_status_error(self, response: httpx.Response) -> errors.AnalyzerError:
        status = response.status_code
        error = self._error_body(response)
        code = error.get("code") or ""
        kind = error.get("type") or ""
        message = error.get("message") or response.text or response.reason_phrase

        logger.error(f"LLM API Error: {status} {response.text}")

        if status == 429:
            if "insufficient_quota" in (code, kind):
                return errors.QuotaExceededError(
                    "AI provider quota exceeded. Check your billing details "
                    "and add credits to the provider account."
                )
            return errors.RateLimitedError(
                "AI provider rate limit exceeded. Please try again in a few moments."
            )

        if status in (401, 403):
            return errors.ConfigurationError(
                "Invalid API key. Check OPENAI_API_KEY in the environment."
            )

        if code == "model_not_found":
            return errors.ConfigurationError(
                f"Model '{self._model_name}' was not found or is not accessible "
                "with the configured API key."
            )

        if status == 503:
            return errors.UpstreamError(
                "Model is loading or unavailable. Try again shortly."
            )

        return errors.UpstreamError(f"AI provider error ({status}): {message}")

    @staticmethod
    def _error_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        if not isinstance(data, dict):
            return {}
        error = data.get("error")
        if isinstance(error, dict):
            return error
        if isinstance(error, str):
            return {"message": error}
        return {}

    # ------------------------------------------------------------------
    # 🔹 RESPONSE PARSING
    # ------------------------------------------------------------------
    @staticmethod
    def _extract_content(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"LLM returned a non-JSON body: {response.text[:500]}")
            raise errors.UpstreamProtocolError("AI provider returned an unreadable response.") from e

        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices:
            logger.error(f"LLM response has no choices: {data}")
            raise errors.UpstreamProtocolError("AI provider returned no choices.")

        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            logger.error(f"LLM response has no message content: {choices[0]}")
            raise errors.UpstreamProtocolError("AI provider returned an empty message.")

        return content


llm_client = LLMClient()
