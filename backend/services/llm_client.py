"""LLM Client for Groq API integration."""
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional, Dict, Any
from groq import Groq
from groq import RateLimitError, AuthenticationError, APIError, APIStatusError, APITimeoutError
import logging

from config import (
    GROQ_API_KEY,
    CHAT_MODEL,
    CHAT_TEMPERATURE,
    CHAT_MAX_TOKENS,
    CHAT_TOP_P,
    PROVIDER_MAX_RETRIES,
    PROVIDER_RETRY_BASE_DELAY,
)
from services.provider_result import (
    Ok,
    RetryableError,
    FatalError,
    ProviderResult,
    call_with_retry,
    is_transient_status,
)

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


_ERROR_MESSAGES = {
    "RATE_LIMIT_ERROR": "Rate limit exceeded. Please try again in a few moments.",
    "TIMEOUT_ERROR": "Request timed out. Please try again.",
    "AUTHENTICATION_ERROR": "Authentication failed. Please check your API key.",
    "SERVER_ERROR": "Groq API is temporarily unavailable. Please try again.",
}


class LLMClient:
    """Client for interfacing with Groq API for text generation."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = CHAT_MODEL,
        temperature: float = CHAT_TEMPERATURE,
        max_tokens: int = CHAT_MAX_TOKENS,
        top_p: float = CHAT_TOP_P,
        max_retries: int = PROVIDER_MAX_RETRIES,
        retry_base_delay: float = PROVIDER_RETRY_BASE_DELAY
    ):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            model: Chat model name
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            top_p: Nucleus sampling factor
            max_retries: Attempts per completion request
            retry_base_delay: Linear backoff unit in seconds
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.top_p = top_p
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

        # call_with_retry owns the retry budget
        self.client = Groq(api_key=self.api_key, max_retries=0)
        logger.info(f"LLMClient initialized successfully with model: {model}")

    def complete(self, prompt: str, system_messages: Optional[Iterable[str]] = None) -> str:
        """
        Generate a completion for prompt.

        Args:
            prompt: Complete prompt with context and question
            system_messages: Optional system messages sent before the prompt

        Returns:
            Generated text

        Raises:
            ValueError: If prompt is empty
            LLMClientError: Structured error once retries are exhausted or on
                a non-retryable failure
        """
        if not prompt or not prompt.strip():
            raise ValueError("Prompt cannot be empty")

        messages: List[Dict[str, str]] = [
            {"role": "system", "content": message}
            for message in (system_messages or [])
            if message and message.strip()
        ]
        messages.append({"role": "user", "content": prompt})

        start_time = time.time()
        result = call_with_retry(
            lambda: self._request(messages),
            max_attempts=self.max_retries,
            base_delay=self.retry_base_delay,
            operation=f"chat completion with {self.model}"
        )
        latency_ms = int((time.time() - start_time) * 1000)

        if isinstance(result, Ok):
            response: LLMResponse = result.value
            logger.info(
                f"Generated response: model={self.model}, "
                f"input_tokens={response.tokens_input}, output_tokens={response.tokens_output}, "
                f"latency={latency_ms}ms"
            )
            return response.text

        error = self._to_llm_error(result, latency_ms)
        logger.error(
            f"Chat completion failed: code={error.code}, model={self.model}, "
            f"latency={latency_ms}ms, error={result.reason}",
            extra={"extra": {"error_code": error.code, "error_details": error.details}}
        )
        raise LLMClientError(error)

    def _request(self, messages: List[Dict[str, str]]) -> ProviderResult:
        start_time = time.time()

        try:
            logger.debug(f"Requesting chat completion with model: {self.model}")

            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                top_p=self.top_p
            )

        except RateLimitError as e:
            return RetryableError(reason=str(e), code="RATE_LIMIT_ERROR", status_code=429)
        except APITimeoutError as e:
            return RetryableError(reason=str(e), code="TIMEOUT_ERROR")
        except AuthenticationError as e:
            return FatalError(reason=str(e), code="AUTHENTICATION_ERROR", status_code=401)
        except APIStatusError as e:
            if is_transient_status(e.status_code):
                return RetryableError(reason=str(e), code="SERVER_ERROR", status_code=e.status_code)
            return FatalError(reason=str(e), code="API_ERROR", status_code=e.status_code)
        except APIError as e:
            return FatalError(reason=str(e), code="API_ERROR")
        except Exception as e:
            return FatalError(
                reason=f"Unexpected error during generation: {str(e)} ({type(e).__name__})",
                code="UNKNOWN_ERROR"
            )

        if not response.choices:
            return FatalError(reason="No chat completion choices returned", code="API_ERROR")

        usage = response.usage
        return Ok(LLMResponse(
            text=response.choices[0].message.content or "",
            tokens_input=getattr(usage, "prompt_tokens", 0) if usage else 0,
            tokens_output=getattr(usage, "completion_tokens", 0) if usage else 0,
            latency_ms=int((time.time() - start_time) * 1000),
            model_used=self.model
        ))

    def _to_llm_error(self, result: ProviderResult, latency_ms: int) -> LLMError:
        details: Dict[str, Any] = {
            "model": self.model,
            "latency_ms": latency_ms,
            "original_error": result.reason,
            "retryable": isinstance(result, RetryableError),
        }
        if result.status_code is not None:
            details["status_code"] = result.status_code
        if result.code == "RATE_LIMIT_ERROR":
            details["retry_after"] = 60

        if result.code in _ERROR_MESSAGES:
            message = _ERROR_MESSAGES[result.code]
        elif result.code == "API_ERROR":
            message = f"Groq API error: {result.reason}"
        else:
            message = result.reason

        return LLMError(code=result.code, message=message, details=details)
