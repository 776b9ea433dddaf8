"""
Mock LLM Provider
=================

Deterministic offline provider for tests and demo sessions.

GUARANTEES:
- Same prompt -> identical response
- Explicit failure modes can be triggered, per modality
- No external dependencies
"""

from __future__ import annotations
import asyncio
import base64
import hashlib
import json
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from .base import (
    InvocationParams,
    LLMProvider,
    ProviderErrorCode,
    ProviderResponse,
)


Responder = Callable[[str, InvocationParams], Optional[str]]


class MockProvider(LLMProvider):
    """
    Deterministic mock provider.

    Responses are derived from the prompt's `TASK:` header and a hash
    of the prompt. A `responder` may script replies; returning None
    falls back to the default reply.
    """

    def __init__(
        self,
        responder: Optional[Responder] = None,
        failure_mode: Optional[ProviderErrorCode] = None,
        image_failure_mode: Optional[ProviderErrorCode] = None,
        latency_ms: float = 0.0
    ):
        """
        Args:
            responder: Optional scripted replies for text calls
            failure_mode: If set, all text invocations fail with this error
            image_failure_mode: If set, all image invocations fail with this error
            latency_ms: Simulated latency per call
        """
        self._responder = responder
        self._failure_mode = failure_mode
        self._image_failure_mode = image_failure_mode
        self._latency_ms = latency_ms
        self.calls: List[Tuple[str, str, InvocationParams]] = []

    @property
    def provider_id(self) -> str:
        return "mock"

    async def generate_text(self, prompt: str, params: InvocationParams) -> ProviderResponse:
        invoked_at = datetime.now(timezone.utc)
        self.calls.append(("text", prompt, params))
        await asyncio.sleep(self._latency_ms / 1000.0)

        if self._failure_mode is not None:
            return self._failure(self._failure_mode, params, invoked_at)

        content = self._responder(prompt, params) if self._responder else None
        if content is None:
            content = self._default_text(prompt)
        return ProviderResponse(
            success=True,
            content=content,
            provider_id=self.provider_id,
            model_id=params.model,
            invoked_at=invoked_at,
            latency_ms=self._latency_ms
        )

    async def generate_image(self, prompt: str, params: InvocationParams) -> ProviderResponse:
        invoked_at = datetime.now(timezone.utc)
        self.calls.append(("image", prompt, params))
        await asyncio.sleep(self._latency_ms / 1000.0)

        if self._image_failure_mode is not None:
            return self._failure(self._image_failure_mode, params, invoked_at)

        digest = hashlib.sha256(prompt.encode()).digest()
        return ProviderResponse(
            success=True,
            content="data:image/png;base64," + base64.b64encode(digest).decode("ascii"),
            provider_id=self.provider_id,
            model_id=params.model,
            invoked_at=invoked_at,
            latency_ms=self._latency_ms
        )

    def _failure(self, code: ProviderErrorCode, params: InvocationParams, invoked_at: datetime) -> ProviderResponse:
        return ProviderResponse(
            success=False,
            error_code=code,
            error_message=f"Mock provider configured to fail: {code.value}",
            provider_id=self.provider_id,
            model_id=params.model,
            invoked_at=invoked_at,
            latency_ms=self._latency_ms
        )

    # =========================================================================
    # DEFAULT REPLIES
    # =========================================================================

    @staticmethod
    def _task(prompt: str) -> str:
        first = prompt.splitlines()[0] if prompt else ""
        return first[len("TASK:"):].strip() if first.startswith("TASK:") else ""

    def _default_text(self, prompt: str) -> str:
        task = self._task(prompt)
        tag = hashlib.sha256(prompt.encode()).hexdigest()[:8]

        if task == "Expert Brainstorm":
            return json.dumps({
                "topics": [
                    {
                        "title": f"Mock Topic {i + 1} [{tag}]",
                        "context": f"Deterministic context {i + 1} for prompt {tag}."
                    }
                    for i in range(3)
                ]
            })
        if task == "Topic Elaboration":
            return json.dumps({
                "title": f"Mock Concept [{tag}]",
                "explanation": f"Deterministic explanation for prompt {tag}.",
                "imagePrompt": f"Abstract diagram {tag}"
            })
        if task == "Research Synthesis":
            return (
                "## Research Objective\nMock objective.\n\n"
                "## Methodology\nMock methodology.\n\n"
                "## Potential Impact\nMock impact."
            )
        if task == "Principle Distillation":
            return f"Mock principle [{tag}]."
        if task == "Specialist Persona":
            return f"Mock persona [{tag}]."
        if task == "Connection Analysis":
            return f"Mock connection analysis [{tag}]."
        return f"Mock response [{tag}]."
