"""
Discovery Configuration
=======================

Unified configuration for one discovery deployment.

Environment:
    SYNAPSE_PROVIDER       "gemini" or "mock" (default: gemini when a key is set)
    GEMINI_API_KEY         API key for the Generative Language API
    SYNAPSE_TEXT_MODEL     model for distillation, brainstorm, elaboration
    SYNAPSE_IMAGE_MODEL    model for concept images
    SYNAPSE_REPORT_MODEL   model for the synthesis report
    SYNAPSE_TICK_MS        frame loop cadence in milliseconds
"""

from __future__ import annotations
from dataclasses import dataclass
import os
from typing import Mapping, Optional

from adapter.agents import AgentConfig
from adapter.providers import GeminiProvider, LLMProvider, MockProvider
from canvas.interaction import InteractionConfig
from canvas.layout import ForceConfig
from canvas.view import ViewConfig, ViewportSize


PROVIDERS = ("gemini", "mock")


@dataclass
class ProviderConfig:
    provider: str = "mock"
    api_key: str = ""
    base_url: Optional[str] = None

    def __post_init__(self):
        if self.provider not in PROVIDERS:
            raise ValueError(f"Unknown provider {self.provider!r}; expected one of {PROVIDERS}")

    def create_provider(self) -> LLMProvider:
        if self.provider == "gemini":
            if self.base_url:
                return GeminiProvider(self.api_key, base_url=self.base_url)
            return GeminiProvider(self.api_key)
        return MockProvider()


@dataclass
class CanvasConfig:
    viewport_width: float = 1280.0
    viewport_height: float = 800.0
    tick_ms: float = 16.0

    def __post_init__(self):
        if self.viewport_width <= 0 or self.viewport_height <= 0:
            raise ValueError("Viewport dimensions must be positive")
        if self.tick_ms <= 0:
            raise ValueError("tick_ms must be positive")

    @property
    def viewport(self) -> ViewportSize:
        return ViewportSize(self.viewport_width, self.viewport_height)


@dataclass
class DiscoveryConfig:
    """Unified configuration for the whole application."""
    provider: ProviderConfig = None
    agents: AgentConfig = None
    canvas: CanvasConfig = None
    forces: ForceConfig = None
    view: ViewConfig = None
    interaction: InteractionConfig = None

    def __post_init__(self):
        self.provider = self.provider or ProviderConfig()
        self.agents = self.agents or AgentConfig()
        self.canvas = self.canvas or CanvasConfig()
        self.forces = self.forces or ForceConfig()
        self.view = self.view or ViewConfig()
        self.interaction = self.interaction or InteractionConfig()

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> DiscoveryConfig:
        env = os.environ if environ is None else environ
        api_key = env.get("GEMINI_API_KEY", "")
        provider = env.get("SYNAPSE_PROVIDER") or ("gemini" if api_key else "mock")

        agents = AgentConfig()
        agents.text_model = env.get("SYNAPSE_TEXT_MODEL", agents.text_model)
        agents.image_model = env.get("SYNAPSE_IMAGE_MODEL", agents.image_model)
        agents.report_model = env.get("SYNAPSE_REPORT_MODEL", agents.report_model)

        canvas = CanvasConfig()
        tick_ms = env.get("SYNAPSE_TICK_MS")
        if tick_ms:
            canvas = CanvasConfig(tick_ms=float(tick_ms))

        return DiscoveryConfig(
            provider=ProviderConfig(provider=provider.lower(), api_key=api_key),
            agents=agents,
            canvas=canvas
        )
