"""
Canonical Prompt Generation
===========================

Pure functions for generating agent prompts.

INVARIANT: Same task_type + same inputs -> same prompt_hash

Every text prompt starts with a `TASK: <name>` header line so invocations
can be identified in traces (and by the mock provider).
"""

from __future__ import annotations
from dataclasses import dataclass
import hashlib
from typing import Dict, Optional, Sequence, Tuple


DISTILL_PRINCIPLE = "distill_principle"
BRAINSTORM_TOPICS = "brainstorm_related_topics"
ELABORATE_TOPIC = "elaborate_topic"
CONCEPT_IMAGE = "render_concept_image"
SYNTHESIZE_REPORT = "synthesize_report"
ELABORATE_CONNECTION = "elaborate_connection"
SPECIALIST_PERSONA = "specialist_persona"


@dataclass(frozen=True)
class CanonicalPrompt:
    """
    Frozen prompt with hash for tracking.

    INVARIANT: Same task_type + inputs -> same prompt_hash
    """
    task_type: str
    prompt_text: str
    system_instruction: Optional[str]
    prompt_hash: str

    @staticmethod
    def create(task_type: str, **inputs) -> 'CanonicalPrompt':
        """
        Factory method for creating canonical prompts.

        This is the ONLY way to create prompts.
        """
        prompt_text, system_instruction = PromptTemplates.render(task_type, **inputs)
        prompt_hash = hashlib.sha256(
            f"{system_instruction or ''}\n{prompt_text}".encode()
        ).hexdigest()
        return CanonicalPrompt(
            task_type=task_type,
            prompt_text=prompt_text,
            system_instruction=system_instruction,
            prompt_hash=prompt_hash
        )


class PromptTemplates:
    """
    Prompt templates for each agent task.

    Each renderer returns (prompt_text, system_instruction).
    """

    @staticmethod
    def render(task_type: str, **inputs) -> Tuple[str, Optional[str]]:
        renderer = _RENDERERS.get(task_type)
        if renderer is None:
            raise ValueError(f"Unknown task type: {task_type}")
        return renderer(**inputs)

    @staticmethod
    def _distill(role_context: str, topic_text: str) -> Tuple[str, Optional[str]]:
        return f"""TASK: Principle Distillation
RESEARCHER_ROLE: {role_context}

TOPIC:
{topic_text}

INSTRUCTIONS:
Abstract the topic above (a hypothesis, observation or question) into a single,
fundamental, universal scientific or mathematical principle.
Keep it concise (1-2 sentences).""", (
            "You are the Gatekeeper Agent of a discovery engine. "
            "You are a scientific abstractor. Ignore fluff, find the core mechanism."
        )

    @staticmethod
    def _brainstorm(principle: str, expert_role: str, expert_persona: str, count: int = 3) -> Tuple[str, Optional[str]]:
        return f"""TASK: Expert Brainstorm
EXPERT_ROLE: {expert_role}

CORE_PRINCIPLE:
{principle}

INSTRUCTIONS:
Propose exactly {count} novel, non-obvious research topics in your field that
connect to the core principle above.

OUTPUT FORMAT (JSON):
{{
  "topics": [
    {{
      "title": "<short catchy title>",
      "context": "<one sentence on how it relates to the principle>"
    }}
  ]
}}""", f"You are a highly specialized {expert_role} Expert Agent. {expert_persona}".strip()

    @staticmethod
    def _elaborate(title: str, context: str, expert_role: str) -> Tuple[str, Optional[str]]:
        return f"""TASK: Topic Elaboration
EXPERT_ROLE: {expert_role}
TOPIC_TITLE: {title}

TOPIC_CONTEXT:
{context}

INSTRUCTIONS:
Develop this topic into a concrete analogy or research idea specific to your field.

OUTPUT FORMAT (JSON):
{{
  "title": "<short catchy title>",
  "explanation": "<2-3 sentences explaining the connection>",
  "imagePrompt": "<a highly specific visual description for an image generator, no text in the image>"
}}""", f"You are a highly specialized {expert_role} Expert Agent."

    @staticmethod
    def _image(prompt_text: str) -> Tuple[str, Optional[str]]:
        return prompt_text, None

    @staticmethod
    def _synthesize(role_context: str, principle: str, summaries: Sequence[Tuple[str, str]]) -> Tuple[str, Optional[str]]:
        lines = "\n".join(f"- {role}: {content}" for role, content in summaries)
        return f"""TASK: Research Synthesis
RESEARCHER_ROLE: {role_context}

CORE_PRINCIPLE:
{principle}

CROSS_FIELD_CONCEPTS:
{lines}

INSTRUCTIONS:
Create a structured, actionable research roadmap that fuses these concepts.""", (
            "You are the Synthesis Agent. Output Markdown formatted text with headings "
            "for 'Research Objective', 'Methodology', and 'Potential Impact'."
        )

    @staticmethod
    def _connection(
        role_context: str,
        topic_context: str,
        concept_title: str,
        concept_body: str,
        expert_role: str
    ) -> Tuple[str, Optional[str]]:
        return f"""TASK: Connection Analysis
RESEARCHER_ROLE: {role_context}
EXPERT_ROLE: {expert_role}

ORIGINAL_TOPIC:
{topic_context}

CONCEPT: {concept_title}
{concept_body}

INSTRUCTIONS:
Explain in depth how this concept connects back to the original topic, which
mechanisms transfer, and which experiment would test the connection first.""", (
            f"You are a {expert_role} advising a {role_context}. Be specific and practical."
        )

    @staticmethod
    def _persona(role: str) -> Tuple[str, Optional[str]]:
        return f"""TASK: Specialist Persona
ROLE: {role}

INSTRUCTIONS:
Describe in one or two sentences the expertise, methods and way of thinking of a
leading {role}, written as a persona for an expert agent.""", None


_RENDERERS: Dict[str, object] = {
    DISTILL_PRINCIPLE: PromptTemplates._distill,
    BRAINSTORM_TOPICS: PromptTemplates._brainstorm,
    ELABORATE_TOPIC: PromptTemplates._elaborate,
    CONCEPT_IMAGE: PromptTemplates._image,
    SYNTHESIZE_REPORT: PromptTemplates._synthesize,
    ELABORATE_CONNECTION: PromptTemplates._connection,
    SPECIALIST_PERSONA: PromptTemplates._persona,
}
