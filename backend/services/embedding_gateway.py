"""Embedding gateway: Azure OpenAI embeddings with a deterministic fallback."""
import hashlib
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import httpx
import numpy as np

from config import (
    USE_REAL_EMBEDDINGS,
    AZURE_OPENAI_ENDPOINT,
    AZURE_OPENAI_API_KEY,
    AZURE_OPENAI_EMBEDDING_DEPLOYMENT,
    AZURE_OPENAI_API_VERSION,
    FALLBACK_EMBEDDING_DIM,
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
from services.vector_math import vector_to_bytes

logger = logging.getLogger(__name__)

EMPTY_TEXT_PLACEHOLDER = "."


class AzureOpenAIEmbeddingClient:
    """Thin HTTP client for an Azure OpenAI embeddings deployment."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        deployment: str,
        api_version: str = AZURE_OPENAI_API_VERSION,
        timeout: float = 30.0
    ):
        """
        Initialize the embeddings client.

        Args:
            endpoint: Azure OpenAI resource endpoint (https://<name>.openai.azure.com)
            api_key: Resource API key
            deployment: Embedding deployment name
            api_version: REST API version
            timeout: Request timeout in seconds
        """
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.deployment = deployment
        self.api_version = api_version
        self.timeout = timeout
        self.api_url = f"{self.endpoint}/openai/deployments/{deployment}/embeddings"

    def embed(self, text: str) -> ProviderResult:
        """
        Request one embedding.

        Returns:
            Ok(list of floats), RetryableError for 429/5xx/timeouts,
            FatalError for anything else
        """
        headers = {
            "api-key": self.api_key,
            "Content-Type": "application/json"
        }

        try:
            start_time = time.time()

            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    self.api_url,
                    params={"api-version": self.api_version},
                    headers=headers,
                    json={"input": [text]}
                )

            elapsed = time.time() - start_time

        except httpx.TimeoutException:
            return RetryableError(reason=f"Request timeout after {self.timeout}s", code="TIMEOUT_ERROR")
        except httpx.RequestError as e:
            return FatalError(reason=f"Network error: {str(e)}", code="NETWORK_ERROR")

        if response.status_code != 200:
            reason = f"API request failed with status {response.status_code}: {response.text}"
            if response.status_code == 429:
                return RetryableError(reason=reason, code="RATE_LIMIT_ERROR", status_code=429)
            if is_transient_status(response.status_code):
                return RetryableError(reason=reason, code="SERVER_ERROR", status_code=response.status_code)
            if response.status_code in (401, 403):
                return FatalError(reason=reason, code="AUTHENTICATION_ERROR", status_code=response.status_code)
            if response.status_code == 404:
                return FatalError(reason=reason, code="DEPLOYMENT_NOT_FOUND", status_code=404)
            return FatalError(reason=reason, code="API_ERROR", status_code=response.status_code)

        try:
            vector = response.json()["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError):
            return FatalError(reason="No embedding data returned from Azure OpenAI", code="INVALID_RESPONSE")

        if not vector:
            return FatalError(reason="Empty embedding returned from Azure OpenAI", code="INVALID_RESPONSE")

        logger.debug(f"Received embedding with {len(vector)} dimensions in {elapsed:.2f}s")
        return Ok(vector)


@dataclass(frozen=True)
class RealProvider:
    """Embeddings come from the configured deployment."""
    client: AzureOpenAIEmbeddingClient
    deployment: str


@dataclass(frozen=True)
class FallbackProvider:
    """Embeddings are derived from a hash of the text."""
    dimensions: int = FALLBACK_EMBEDDING_DIM


EmbeddingProvider = Union[RealProvider, FallbackProvider]


class ValidationStatus(str, Enum):
    SUCCESS = "success"
    NOT_CONFIGURED = "not_configured"
    DEPLOYMENT_NOT_FOUND = "deployment_not_found"
    UNAUTHORIZED = "unauthorized"
    TRANSIENT_ERROR = "transient_error"
    UNKNOWN_ERROR = "unknown_error"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of an embedding deployment check."""
    status: ValidationStatus
    message: str
    embedding_dimensions: Optional[int] = None
    deployment_name: Optional[str] = None


class EmbeddingGateway:
    """Produces byte-encoded embeddings, falling back to hash-derived vectors."""

    def __init__(
        self,
        use_real_embeddings: bool = USE_REAL_EMBEDDINGS,
        endpoint: Optional[str] = AZURE_OPENAI_ENDPOINT,
        api_key: Optional[str] = AZURE_OPENAI_API_KEY,
        deployment: Optional[str] = AZURE_OPENAI_EMBEDDING_DEPLOYMENT,
        api_version: str = AZURE_OPENAI_API_VERSION,
        fallback_dimensions: int = FALLBACK_EMBEDDING_DIM,
        max_retries: int = PROVIDER_MAX_RETRIES,
        retry_base_delay: float = PROVIDER_RETRY_BASE_DELAY
    ):
        """
        Initialize the gateway and pick its provider once.

        If real embeddings are requested but the endpoint or key is missing,
        the gateway logs the degradation and uses the fallback provider for
        its whole lifetime.

        Args:
            use_real_embeddings: Request the Azure OpenAI provider
            endpoint: Azure OpenAI endpoint
            api_key: Azure OpenAI API key
            deployment: Embedding deployment name
            api_version: REST API version
            fallback_dimensions: Dimension of fallback vectors
            max_retries: Attempts per embedding request
            retry_base_delay: Linear backoff unit in seconds
        """
        self.real_requested = use_real_embeddings
        self.fallback_dimensions = fallback_dimensions
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.provider: EmbeddingProvider = self._select_provider(
            use_real_embeddings, endpoint, api_key, deployment, api_version, fallback_dimensions
        )

    @staticmethod
    def _select_provider(
        use_real_embeddings: bool,
        endpoint: Optional[str],
        api_key: Optional[str],
        deployment: Optional[str],
        api_version: str,
        fallback_dimensions: int
    ) -> EmbeddingProvider:
        if not use_real_embeddings:
            logger.info("EmbeddingGateway: using fallback embeddings (set USE_REAL_EMBEDDINGS=true for real)")
            return FallbackProvider(dimensions=fallback_dimensions)

        missing = [
            name for name, value in (
                ("AZURE_OPENAI_ENDPOINT", endpoint),
                ("AZURE_OPENAI_API_KEY", api_key),
            )
            if not value or not value.strip()
        ]
        if missing:
            logger.warning(
                f"Real embeddings requested but {', '.join(missing)} not configured; "
                f"falling back to deterministic embeddings"
            )
            return FallbackProvider(dimensions=fallback_dimensions)

        if not deployment or not deployment.strip():
            logger.warning("AZURE_OPENAI_EMBEDDING_DEPLOYMENT not configured, using default: text-embedding-3-large")
            deployment = "text-embedding-3-large"

        client = AzureOpenAIEmbeddingClient(endpoint, api_key, deployment, api_version)
        logger.info(f"EmbeddingGateway: using Azure OpenAI deployment {deployment} at {client.endpoint}")
        return RealProvider(client=client, deployment=deployment)

    @property
    def is_real(self) -> bool:
        return isinstance(self.provider, RealProvider)

    def embed(self, text: str) -> bytes:
        """
        Generate an embedding for text.

        Never fails because of the provider: exhausted retries or fatal
        provider errors produce the fallback embedding for this call.

        Args:
            text: Text to embed; blank text is replaced by a placeholder

        Returns:
            Embedding as float32 bytes

        Raises:
            ValueError: If text is None
        """
        if text is None:
            raise ValueError("Text cannot be None")

        if not text.strip():
            text = EMPTY_TEXT_PLACEHOLDER

        provider = self.provider
        if isinstance(provider, RealProvider):
            result = call_with_retry(
                lambda: provider.client.embed(text),
                max_attempts=self.max_retries,
                base_delay=self.retry_base_delay,
                operation=f"embedding request to {provider.deployment}"
            )
            if isinstance(result, Ok):
                return vector_to_bytes(result.value)

            logger.error(f"Failed to get real embedding, falling back to deterministic embedding: {result.reason}")
            return self.create_fallback_embedding(text, self.fallback_dimensions)

        return self.create_fallback_embedding(text, provider.dimensions)

    @staticmethod
    def create_fallback_embedding(text: str, dimensions: int = FALLBACK_EMBEDDING_DIM) -> bytes:
        """Deterministic pseudo-embedding with values in [-1, 1]."""
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        rng = np.random.default_rng(int.from_bytes(digest[:8], "little"))
        vector = rng.uniform(-1.0, 1.0, dimensions).astype(np.float32)
        return vector_to_bytes(vector)

    def validate_deployment(self) -> ValidationResult:
        """
        Check the configured deployment with a small embedding request.

        Returns:
            ValidationResult describing what is wrong, if anything
        """
        provider = self.provider
        if not isinstance(provider, RealProvider):
            if self.real_requested:
                message = ("Azure OpenAI client not initialized. Check that AZURE_OPENAI_ENDPOINT "
                           "and AZURE_OPENAI_API_KEY are configured.")
            else:
                message = "Real embeddings not enabled. Set USE_REAL_EMBEDDINGS=true"
            return ValidationResult(status=ValidationStatus.NOT_CONFIGURED, message=message)

        logger.info(f"Validating Azure OpenAI deployment '{provider.deployment}'...")
        result = call_with_retry(
            lambda: provider.client.embed("validate"),
            max_attempts=self.max_retries,
            base_delay=self.retry_base_delay,
            operation=f"deployment validation for {provider.deployment}"
        )

        if isinstance(result, Ok):
            dimensions = len(result.value)
            logger.info(f"Deployment '{provider.deployment}' is working. Embedding dimensions: {dimensions}")
            return ValidationResult(
                status=ValidationStatus.SUCCESS,
                message=f"Successfully validated deployment '{provider.deployment}'. Endpoint: {provider.client.endpoint}",
                embedding_dimensions=dimensions,
                deployment_name=provider.deployment
            )

        if isinstance(result, RetryableError):
            return ValidationResult(
                status=ValidationStatus.TRANSIENT_ERROR,
                message=(f"Validation failed after {self.max_retries} attempts due to transient errors. "
                         f"Last error: {result.reason}"),
                deployment_name=provider.deployment
            )

        if result.status_code == 404:
            logger.error(f"Deployment '{provider.deployment}' not found (HTTP 404)")
            return ValidationResult(
                status=ValidationStatus.DEPLOYMENT_NOT_FOUND,
                message=(f"Deployment '{provider.deployment}' not found. Verify the deployment name "
                         f"matches exactly (case-sensitive)."),
                deployment_name=provider.deployment
            )

        if result.status_code in (401, 403):
            logger.error(f"Authentication failed (HTTP {result.status_code})")
            return ValidationResult(
                status=ValidationStatus.UNAUTHORIZED,
                message=f"Authentication failed (HTTP {result.status_code}). Verify AZURE_OPENAI_API_KEY.",
                deployment_name=provider.deployment
            )

        return ValidationResult(
            status=ValidationStatus.UNKNOWN_ERROR,
            message=f"Validation failed with error: {result.reason}",
            deployment_name=provider.deployment
        )
