"""
LLM Providers Package
=====================

Provider implementations for model invocation.

Available providers:
- MockProvider: Deterministic offline provider for testing
- GeminiProvider: Generative Language REST API (httpx)
"""

from .base import (
    LLMProvider,
    ProviderResponse,
    ProviderErrorCode,
    InvocationParams,
)
from .mock import MockProvider
from .gemini import GeminiProvider

__all__ = [
    'LLMProvider',
    'ProviderResponse',
    'ProviderErrorCode',
    'InvocationParams',
    'MockProvider',
    'GeminiProvider',
]
