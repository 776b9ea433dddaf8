"""
Model Adapter Package

ARCHITECTURAL BOUNDARY:
=======================
This package is the ONLY interface between the discovery session and
generative models. All model communication flows through it.

DIRECTION OF DEPENDENCY:
========================
discovery -> adapter -> provider

NEVER:
- Adapter importing from discovery or canvas
- Providers holding session state

DESIGN PRINCIPLES:
==================
1. Typed results only; failures are values, never exceptions
2. Canonical, hashable prompts
3. Model output is parsed and validated before it reaches the graph
"""

from .agents import (
    AgentService,
    AgentConfig,
    AgentResult,
    AgentError,
    AgentErrorCode,
    Topic,
    Elaboration,
    NodeSummary,
)
from .prompts import CanonicalPrompt, PromptTemplates
from .providers import (
    LLMProvider,
    ProviderResponse,
    ProviderErrorCode,
    InvocationParams,
    MockProvider,
    GeminiProvider,
)

__all__ = [
    # Agents
    'AgentService', 'AgentConfig', 'AgentResult', 'AgentError', 'AgentErrorCode',
    'Topic', 'Elaboration', 'NodeSummary',
    # Prompts
    'CanonicalPrompt', 'PromptTemplates',
    # Providers
    'LLMProvider', 'ProviderResponse', 'ProviderErrorCode', 'InvocationParams',
    'MockProvider', 'GeminiProvider',
]
