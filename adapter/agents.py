"""
Agent Service
=============

The six agent interfaces the discovery session calls, plus specialist
persona generation.

BOUNDARY ENFORCEMENT:
- Every call returns an AgentResult and NEVER raises
- Provider failures and malformed output become degraded results with
  a usable fallback value
- Structured outputs (brainstorm list, elaboration) are parsed here

EXPLICIT FAILURE STATES:
- Provider failure (timeout, rate limit, network, API) -> AGENT_CALL_FAILURE
- Output that is not the expected JSON shape -> MALFORMED_OUTPUT
- Empty text output -> EMPTY_OUTPUT
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
import json
import time
from typing import Any, Generic, List, Optional, Sequence, Tuple, TypeVar

from .prompts import (
    BRAINSTORM_TOPICS, CONCEPT_IMAGE, DISTILL_PRINCIPLE, ELABORATE_CONNECTION,
    ELABORATE_TOPIC, SPECIALIST_PERSONA, SYNTHESIZE_REPORT, CanonicalPrompt,
)
from .providers.base import InvocationParams, LLMProvider, ProviderErrorCode, ProviderResponse


T = TypeVar("T")


class AgentErrorCode(Enum):
    AGENT_CALL_FAILURE = "agent_call_failure"
    MALFORMED_OUTPUT = "malformed_output"
    EMPTY_OUTPUT = "empty_output"


@dataclass(frozen=True)
class AgentError:
    code: AgentErrorCode
    message: str
    task_type: str
    provider_error: Optional[ProviderErrorCode] = None


@dataclass(frozen=True)
class AgentResult(Generic[T]):
    """
    Outcome of one agent call.

    INVARIANT: degraded is True exactly when error is set; value is
    always usable (a fallback when degraded).
    """
    value: T
    degraded: bool = False
    error: Optional[AgentError] = None
    prompt_hash: str = ""
    latency_ms: float = 0.0

    def __post_init__(self):
        if self.degraded != (self.error is not None):
            raise ValueError("degraded must be set exactly when error is set")


@dataclass(frozen=True)
class Topic:
    title: str
    context: str


@dataclass(frozen=True)
class Elaboration:
    title: str
    explanation: str
    image_prompt: str


@dataclass(frozen=True)
class NodeSummary:
    """Input to report synthesis: one selected node."""
    label: str
    role: str
    content: str


@dataclass
class AgentConfig:
    """Model choice per task family."""
    text_model: str = "gemini-2.5-flash"
    image_model: str = "gemini-2.5-flash-image"
    report_model: str = "gemini-3-pro-preview"
    brainstorm_count: int = 3
    timeout_seconds: float = 60.0
    temperature: Optional[float] = None

    def __post_init__(self):
        if self.brainstorm_count < 1:
            raise ValueError("brainstorm_count must be at least 1")


class MalformedOutput(ValueError):
    """Model output did not have the expected structure."""


class AgentService:
    """
    Agent calls over one provider.

    GUARANTEES:
    ===========
    1. No method raises; failures are AgentResult(degraded=True)
    2. Prompts are canonical (same inputs -> same prompt_hash)
    3. Image generation returning nothing is a valid, non-degraded None
    """

    def __init__(self, provider: LLMProvider, config: Optional[AgentConfig] = None):
        self._provider = provider
        self._config = config or AgentConfig()

    @property
    def provider(self) -> LLMProvider:
        return self._provider

    @property
    def config(self) -> AgentConfig:
        return self._config

    # =========================================================================
    # AGENT INTERFACES
    # =========================================================================

    async def distill_principle(self, role_context: str, topic_text: str) -> AgentResult[str]:
        """Gatekeeper: abstract the topic into one core principle."""
        prompt = CanonicalPrompt.create(DISTILL_PRINCIPLE, role_context=role_context, topic_text=topic_text)
        fallback = f"Could not extract a principle. Working directly from the topic: {topic_text}"
        return await self._text_call(prompt, self._config.text_model, fallback)

    async def brainstorm_related_topics(
        self,
        principle: str,
        expert_role: str,
        expert_persona: str
    ) -> AgentResult[List[Topic]]:
        count = self._config.brainstorm_count
        prompt = CanonicalPrompt.create(
            BRAINSTORM_TOPICS,
            principle=principle,
            expert_role=expert_role,
            expert_persona=expert_persona,
            count=count
        )

        def placeholder(reason: str) -> List[Topic]:
            return [Topic(
                title=f"{expert_role}: brainstorm unavailable",
                context=f"The {expert_role} agent could not propose topics ({reason})."
            )]

        def parse(content: str) -> List[Topic]:
            data = _load_json(content)
            items = data.get("topics") if isinstance(data, dict) else data
            if not isinstance(items, list):
                raise MalformedOutput("Expected a list of topics")
            topics = []
            for item in items:
                if not isinstance(item, dict) or not item.get("title"):
                    raise MalformedOutput("Topic entries need a title")
                topics.append(Topic(title=str(item["title"]), context=str(item.get("context", ""))))
            if not topics:
                raise MalformedOutput("No topics returned")
            return topics[:count]

        return await self._structured_call(prompt, self._config.text_model, parse, placeholder)

    async def elaborate_topic(self, title: str, context: str, expert_role: str) -> AgentResult[Elaboration]:
        prompt = CanonicalPrompt.create(ELABORATE_TOPIC, title=title, context=context, expert_role=expert_role)

        def fallback(reason: str) -> Elaboration:
            return Elaboration(title=title, explanation=context or f"Elaboration unavailable ({reason}).", image_prompt="")

        def parse(content: str) -> Elaboration:
            data = _load_json(content)
            if not isinstance(data, dict):
                raise MalformedOutput("Expected an object")
            missing = [key for key in ("title", "explanation") if not data.get(key)]
            if missing:
                raise MalformedOutput(f"Missing fields: {', '.join(missing)}")
            return Elaboration(
                title=str(data["title"]),
                explanation=str(data["explanation"]),
                image_prompt=str(data.get("imagePrompt") or data.get("image_prompt") or "")
            )

        return await self._structured_call(prompt, self._config.text_model, parse, fallback)

    async def render_concept_image(self, prompt_text: str) -> AgentResult[Optional[str]]:
        """Data URI of a concept image, or None."""
        if not prompt_text.strip():
            return AgentResult(value=None)
        prompt = CanonicalPrompt.create(CONCEPT_IMAGE, prompt_text=prompt_text)
        start_time = time.time()
        response = await self._invoke(prompt, self._config.image_model, image=True)
        latency_ms = (time.time() - start_time) * 1000
        if response.success:
            return AgentResult(value=response.content, prompt_hash=prompt.prompt_hash, latency_ms=latency_ms)
        if response.error_code == ProviderErrorCode.INVALID_RESPONSE:
            # No image part
            return AgentResult(value=None, prompt_hash=prompt.prompt_hash, latency_ms=latency_ms)
        return AgentResult(
            value=None,
            degraded=True,
            error=self._call_failure(prompt, response),
            prompt_hash=prompt.prompt_hash,
            latency_ms=latency_ms
        )

    async def synthesize_report(
        self,
        role_context: str,
        principle: str,
        selected_node_summaries: Sequence[NodeSummary]
    ) -> AgentResult[str]:
        prompt = CanonicalPrompt.create(
            SYNTHESIZE_REPORT,
            role_context=role_context,
            principle=principle,
            summaries=[(s.role or s.label, s.content) for s in selected_node_summaries]
        )
        fallback = "Could not synthesize a research roadmap."
        return await self._text_call(prompt, self._config.report_model, fallback)

    async def elaborate_connection(
        self,
        role_context: str,
        topic_context: str,
        concept_title: str,
        concept_body: str,
        expert_role: str
    ) -> AgentResult[str]:
        prompt = CanonicalPrompt.create(
            ELABORATE_CONNECTION,
            role_context=role_context,
            topic_context=topic_context,
            concept_title=concept_title,
            concept_body=concept_body,
            expert_role=expert_role
        )
        fallback = "Connection analysis is unavailable right now."
        return await self._text_call(prompt, self._config.text_model, fallback)

    async def generate_persona(self, role: str) -> AgentResult[str]:
        prompt = CanonicalPrompt.create(SPECIALIST_PERSONA, role=role)
        fallback = f"A specialist {role} who approaches problems from first principles of the field."
        return await self._text_call(prompt, self._config.text_model, fallback)

    # =========================================================================
    # INVOCATION
    # =========================================================================

    async def _invoke(self, prompt: CanonicalPrompt, model: str, image: bool = False, json_response: bool = False) -> ProviderResponse:
        params = InvocationParams(
            model=model,
            system_instruction=prompt.system_instruction,
            json_response=json_response,
            temperature=self._config.temperature,
            timeout_seconds=self._config.timeout_seconds
        )
        try:
            if image:
                return await self._provider.generate_image(prompt.prompt_text, params)
            return await self._provider.generate_text(prompt.prompt_text, params)
        except Exception as e:
            # Providers must not raise; a broken one still yields a failure value
            return ProviderResponse(
                success=False,
                error_code=ProviderErrorCode.API_ERROR,
                error_message=f"{type(e).__name__}: {e}",
                provider_id=self._provider.provider_id,
                model_id=model
            )

    async def _text_call(self, prompt: CanonicalPrompt, model: str, fallback: str) -> AgentResult[str]:
        start_time = time.time()
        response = await self._invoke(prompt, model)
        latency_ms = (time.time() - start_time) * 1000

        if not response.success:
            error = self._call_failure(prompt, response)
        elif not response.content.strip():
            error = AgentError(AgentErrorCode.EMPTY_OUTPUT, "Model returned no text", prompt.task_type)
        else:
            return AgentResult(value=response.content.strip(), prompt_hash=prompt.prompt_hash, latency_ms=latency_ms)

        return AgentResult(
            value=fallback,
            degraded=True,
            error=error,
            prompt_hash=prompt.prompt_hash,
            latency_ms=latency_ms
        )

    async def _structured_call(self, prompt: CanonicalPrompt, model: str, parse, fallback) -> AgentResult:
        start_time = time.time()
        response = await self._invoke(prompt, model, json_response=True)
        latency_ms = (time.time() - start_time) * 1000

        if not response.success:
            error = self._call_failure(prompt, response)
            return AgentResult(
                value=fallback(error.message),
                degraded=True,
                error=error,
                prompt_hash=prompt.prompt_hash,
                latency_ms=latency_ms
            )

        try:
            value = parse(response.content)
        except ValueError as e:
            # Parse errors become explicit failures
            error = AgentError(
                AgentErrorCode.MALFORMED_OUTPUT,
                f"Failed to parse model output: {e}",
                prompt.task_type
            )
            return AgentResult(
                value=fallback("malformed output"),
                degraded=True,
                error=error,
                prompt_hash=prompt.prompt_hash,
                latency_ms=latency_ms
            )
        return AgentResult(value=value, prompt_hash=prompt.prompt_hash, latency_ms=latency_ms)

    @staticmethod
    def _call_failure(prompt: CanonicalPrompt, response: ProviderResponse) -> AgentError:
        return AgentError(
            code=AgentErrorCode.AGENT_CALL_FAILURE,
            message=response.error_message or "Provider error",
            task_type=prompt.task_type,
            provider_error=response.error_code
        )


def _load_json(content: str) -> Any:
    """Parse a JSON document, tolerating a surrounding markdown fence."""
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedOutput(f"Response is not valid JSON: {e}")

