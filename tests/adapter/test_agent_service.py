"""
Agent Service Tests
===================

Tests verifying the agent boundary.

INVARIANTS TESTED:
1. Prompt is a pure function of its inputs (stable prompt_hash)
2. Provider failure -> degraded result with a usable fallback, never raised
3. Malformed structured output -> MALFORMED_OUTPUT, not a crash
4. A missing image is a valid, non-degraded None
"""

import asyncio
import json

import pytest

from adapter.agents import AgentConfig, AgentErrorCode, AgentResult, AgentService, NodeSummary
from adapter.prompts import (
    BRAINSTORM_TOPICS, CONCEPT_IMAGE, DISTILL_PRINCIPLE, SYNTHESIZE_REPORT,
    CanonicalPrompt, PromptTemplates,
)
from adapter.providers.base import LLMProvider, ProviderErrorCode
from adapter.providers.mock import MockProvider


def run(coro):
    return asyncio.run(coro)


def scripted(reply: str):
    """Provider answering every text call with `reply`."""
    return MockProvider(responder=lambda prompt, params: reply)


class TestPromptDeterminism:

    def test_same_inputs_same_hash(self):
        hashes = {
            CanonicalPrompt.create(DISTILL_PRINCIPLE, role_context="Biologist", topic_text="Ants").prompt_hash
            for _ in range(10)
        }
        assert len(hashes) == 1

    def test_different_inputs_different_hash(self):
        first = CanonicalPrompt.create(DISTILL_PRINCIPLE, role_context="Biologist", topic_text="Ants")
        second = CanonicalPrompt.create(DISTILL_PRINCIPLE, role_context="Biologist", topic_text="Bees")
        assert first.prompt_hash != second.prompt_hash

    def test_task_header(self):
        prompt = CanonicalPrompt.create(
            BRAINSTORM_TOPICS, principle="p", expert_role="Physicist", expert_persona="", count=3
        )
        assert prompt.prompt_text.startswith("TASK: Expert Brainstorm")
        assert "exactly 3" in prompt.prompt_text

    def test_image_prompt_passes_through(self):
        prompt = CanonicalPrompt.create(CONCEPT_IMAGE, prompt_text="A glowing lattice")
        assert prompt.prompt_text == "A glowing lattice"
        assert prompt.system_instruction is None

    def test_synthesis_lists_every_summary(self):
        prompt = CanonicalPrompt.create(
            SYNTHESIZE_REPORT,
            role_context="Engineer",
            principle="Feedback stabilizes",
            summaries=[("Biologist", "Homeostasis"), ("Economist", "Price signals")]
        )
        assert "- Biologist: Homeostasis" in prompt.prompt_text
        assert "- Economist: Price signals" in prompt.prompt_text

    def test_unknown_task_rejected(self):
        with pytest.raises(ValueError):
            PromptTemplates.render("unknown_task")


class TestTextAgents:

    def test_distill_principle(self):
        service = AgentService(MockProvider())
        result = run(service.distill_principle("Biologist", "Ant colonies"))

        assert not result.degraded
        assert result.value.startswith("Mock principle")
        assert result.prompt_hash == CanonicalPrompt.create(
            DISTILL_PRINCIPLE, role_context="Biologist", topic_text="Ant colonies"
        ).prompt_hash

    def test_distill_failure_falls_back_to_topic(self):
        service = AgentService(MockProvider(failure_mode=ProviderErrorCode.TIMEOUT))
        result = run(service.distill_principle("", "Ant colonies"))

        assert result.degraded
        assert result.error.code == AgentErrorCode.AGENT_CALL_FAILURE
        assert result.error.provider_error == ProviderErrorCode.TIMEOUT
        assert "Ant colonies" in result.value

    def test_empty_output_is_degraded(self):
        service = AgentService(scripted("   "))
        result = run(service.generate_persona("Chemist"))

        assert result.degraded
        assert result.error.code == AgentErrorCode.EMPTY_OUTPUT
        assert "Chemist" in result.value

    def test_output_is_stripped(self):
        service = AgentService(scripted("  Trimmed.\n"))
        assert run(service.elaborate_connection("r", "t", "c", "b", "e")).value == "Trimmed."

    def test_report_uses_report_model(self):
        provider = MockProvider()
        service = AgentService(provider, AgentConfig(report_model="report-model"))

        result = run(service.synthesize_report("Engineer", "p", [NodeSummary("Concept", "Biologist", "x")]))

        assert "## Research Objective" in result.value
        assert provider.calls[-1][2].model == "report-model"

    def test_raising_provider_is_contained(self):
        class BrokenProvider(LLMProvider):
            provider_id = "broken"

            async def generate_text(self, prompt, params):
                raise RuntimeError("boom")

            async def generate_image(self, prompt, params):
                raise RuntimeError("boom")

        service = AgentService(BrokenProvider())
        result = run(service.distill_principle("", "topic"))

        assert result.degraded
        assert result.error.provider_error == ProviderErrorCode.API_ERROR
        assert "boom" in result.error.message


class TestStructuredAgents:

    def test_brainstorm_parses_topics(self):
        service = AgentService(MockProvider())
        result = run(service.brainstorm_related_topics("principle", "Physicist", "persona"))

        assert not result.degraded
        assert len(result.value) == 3
        assert all(t.title.startswith("Mock Topic") for t in result.value)

    def test_brainstorm_requests_json(self):
        provider = MockProvider()
        run(AgentService(provider).brainstorm_related_topics("p", "Physicist", ""))
        assert provider.calls[-1][2].json_response is True

    def test_brainstorm_truncates_to_count(self):
        reply = json.dumps({"topics": [{"title": f"T{i}", "context": "c"} for i in range(5)]})
        service = AgentService(scripted(reply), AgentConfig(brainstorm_count=2))

        result = run(service.brainstorm_related_topics("p", "Physicist", ""))

        assert [t.title for t in result.value] == ["T0", "T1"]

    def test_brainstorm_accepts_fenced_json(self):
        reply = "```json\n" + json.dumps({"topics": [{"title": "Fenced", "context": "c"}]}) + "\n```"
        result = run(AgentService(scripted(reply)).brainstorm_related_topics("p", "Physicist", ""))

        assert not result.degraded
        assert result.value[0].title == "Fenced"

    @pytest.mark.parametrize("reply", [
        "not json at all",
        json.dumps({"topics": "nope"}),
        json.dumps({"topics": []}),
        json.dumps({"topics": [{"context": "missing title"}]}),
    ])
    def test_malformed_brainstorm_degrades(self, reply):
        result = run(AgentService(scripted(reply)).brainstorm_related_topics("p", "Physicist", ""))

        assert result.degraded
        assert result.error.code == AgentErrorCode.MALFORMED_OUTPUT
        assert len(result.value) == 1
        assert "Physicist" in result.value[0].title

    def test_elaborate_topic(self):
        result = run(AgentService(MockProvider()).elaborate_topic("Swarm", "context", "Biologist"))

        assert not result.degraded
        assert result.value.title.startswith("Mock Concept")
        assert result.value.image_prompt.startswith("Abstract diagram")

    def test_elaborate_accepts_snake_case_image_prompt(self):
        reply = json.dumps({"title": "T", "explanation": "E", "image_prompt": "I"})
        result = run(AgentService(scripted(reply)).elaborate_topic("Swarm", "context", "Biologist"))
        assert result.value.image_prompt == "I"

    def test_elaborate_missing_fields_falls_back(self):
        reply = json.dumps({"title": "Only a title"})
        result = run(AgentService(scripted(reply)).elaborate_topic("Swarm", "ctx", "Biologist"))

        assert result.degraded
        assert result.value.title == "Swarm"
        assert result.value.explanation == "ctx"
        assert result.value.image_prompt == ""


class TestImageAgent:

    def test_image_data_uri(self):
        result = run(AgentService(MockProvider()).render_concept_image("A lattice"))

        assert not result.degraded
        assert result.value.startswith("data:image/png;base64,")

    def test_empty_prompt_skips_call(self):
        provider = MockProvider()
        result = run(AgentService(provider).render_concept_image("  "))

        assert result.value is None
        assert not result.degraded
        assert provider.calls == []

    def test_no_image_part_is_valid_none(self):
        provider = MockProvider(image_failure_mode=ProviderErrorCode.INVALID_RESPONSE)
        result = run(AgentService(provider).render_concept_image("A lattice"))

        assert result.value is None
        assert not result.degraded

    def test_image_transport_failure_degrades(self):
        provider = MockProvider(image_failure_mode=ProviderErrorCode.RATE_LIMITED)
        result = run(AgentService(provider).render_concept_image("A lattice"))

        assert result.value is None
        assert result.degraded


class TestContracts:

    def test_degraded_requires_error(self):
        with pytest.raises(ValueError):
            AgentResult(value="x", degraded=True)

    def test_brainstorm_count_validated(self):
        with pytest.raises(ValueError):
            AgentConfig(brainstorm_count=0)

    def test_mock_is_deterministic(self):
        service = AgentService(MockProvider())
        first = run(service.distill_principle("r", "t"))
        second = run(service.distill_principle("r", "t"))
        assert first.value == second.value
