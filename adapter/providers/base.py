"""
Generative Model Providers
=========================

Abstract interface for generative model providers (Gemini, mock).

BOUNDARY ENFORCEMENT:
- A provider holds credentials only, no per-call state
- Failures are explicit ProviderResponse values, never raised
- Image results are data URIs, text results are plain strings
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class ProviderErrorCode(Enum):
    """Explicit failure codes for model invocations."""
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    INVALID_RESPONSE = "invalid_response"
    CONTENT_FILTERED = "content_filtered"
    API_ERROR = "api_error"
    NETWORK_ERROR = "network_error"
    NOT_CONFIGURED = "not_configured"


@dataclass(frozen=True)
class ProviderResponse:
    """
    Immutable response from a provider.

    A successful response carries content; a failed one carries an error code.
    """
    success: bool
    content: Optional[str] = None

    # Set only on failure
    error_code: Optional[ProviderErrorCode] = None
    error_message: Optional[str] = None

    # Invocation metadata
    provider_id: str = ""
    model_id: str = ""
    invoked_at: Optional[datetime] = None
    latency_ms: float = 0.0

    def __post_init__(self):
        if self.success and self.content is None:
            raise ValueError("success=True requires content")
        if not self.success and self.error_code is None:
            raise ValueError("success=False requires an error_code")


@dataclass(frozen=True)
class InvocationParams:
    """
    Per-call model selection and request options.

    `json_response` asks the provider for a JSON document instead of
    free text; `system_instruction` frames the model's role.
    """
    model: str
    system_instruction: Optional[str] = None
    json_response: bool = False
    temperature: Optional[float] = None
    timeout_seconds: float = 60.0


class LLMProvider(ABC):
    """
    Abstract provider interface.

    GUARANTEES:
    - Each call is independent of earlier calls
    - Transport and API failures map onto ProviderErrorCode
    - Both methods MUST return a ProviderResponse, never raise
    """

    @abstractmethod
    async def generate_text(self, prompt: str, params: InvocationParams) -> ProviderResponse:
        """Generate text (or a JSON document when params.json_response)."""

    @abstractmethod
    async def generate_image(self, prompt: str, params: InvocationParams) -> ProviderResponse:
        """Generate an image; content is a `data:image/...;base64,` URI."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Short name recorded in responses and audit entries."""
