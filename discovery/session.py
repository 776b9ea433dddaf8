"""
Discovery Session
=================

Application flows on top of the canvas core: hypothesis intake,
expert invocation, brainstorming, synthesis and deep dives.

FLOW:
=====
1. start()        Hypothesis node + distilled Core Principle (Gatekeeper)
2. add_expert()   Expert node; connect mode is switched on
3. connect()      Gatekeeper <-> Expert link triggers a brainstorm:
                  N topics, each elaborated and illustrated concurrently,
                  one Concept node per topic linked from the expert
4. toggle_selection() / synthesize()   Research Roadmap from selected nodes
5. deep_dive()    Connection analysis appended to a Concept

GUARANTEES:
===========
1. Agent failures never raise; they degrade content and set the status
2. Rejected store mutations are recorded in the audit log
3. Store mutations for one outcome are published as one snapshot
4. A flow still awaiting an agent when reset() runs discards its result
"""

from __future__ import annotations
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from itertools import count
from typing import AsyncIterator, Awaitable, Optional, Set, Tuple

from adapter.agents import AgentResult, AgentService, Elaboration, NodeSummary, Topic
from canvas.contracts import Error, ErrorCode, Result
from canvas.facade import GraphCanvas
from canvas.store import GraphNode, GraphStore, GraphTopology, NodeKind, Point

from .observability import (
    AGENT_CALLS, AGENT_FAILURES, AGENT_LATENCY_MS, INVARIANT_VIOLATIONS, STORE_MUTATIONS,
    AuditEventType, AuditLog, MetricsCollector,
)


USER_INPUT_ID = "user-input"
GATEKEEPER_ID = "gatekeeper-1"

# Offset of freshly generated nodes from the node they grow out of
SPAWN_OFFSET = 100.0


@dataclass(frozen=True)
class ExpertDefinition:
    expert_id: str
    role: str
    persona: str
    color: str = "bg-purple-500"


AVAILABLE_EXPERTS: Tuple[ExpertDefinition, ...] = (
    ExpertDefinition(
        "biologist", "Biologist",
        "Thinks in terms of evolution, adaptation and self-organizing living systems.",
        "bg-emerald-500"
    ),
    ExpertDefinition(
        "physicist", "Physicist",
        "Reduces phenomena to conserved quantities, fields and minimal models.",
        "bg-sky-500"
    ),
    ExpertDefinition(
        "economist", "Economist",
        "Looks for incentives, scarcity, equilibria and emergent market behaviour.",
        "bg-amber-500"
    ),
    ExpertDefinition(
        "computer-scientist", "Computer Scientist",
        "Frames problems as algorithms, information flow and computational complexity.",
        "bg-indigo-500"
    ),
    ExpertDefinition(
        "architect", "Architect",
        "Reasons about structure, load, space and how form follows function.",
        "bg-rose-500"
    ),
)


class DiscoverySession:
    """
    One user's discovery graph and the agent flows that grow it.

    The session owns the GraphStore; a GraphCanvas may be attached to
    route connect gestures here and to receive connect-mode changes.
    """

    def __init__(
        self,
        agents: AgentService,
        store: Optional[GraphStore] = None,
        audit: Optional[AuditLog] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self._agents = agents
        self._store = store or GraphStore()
        self._audit = audit or AuditLog()
        self._metrics = metrics or MetricsCollector()
        self._canvas: Optional[GraphCanvas] = None

        self._ids = count(1)
        # Bumped by reset(); a flow that outlives its generation writes nothing
        self._generation = 0
        self._in_flight = 0
        self._status = ""
        self._role_context = ""
        self._topic = ""
        self._tasks: Set[asyncio.Task] = set()
        self._store.subscribe(lambda snapshot: self._metrics.increment(STORE_MUTATIONS))

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def store(self) -> GraphStore:
        return self._store

    @property
    def audit(self) -> AuditLog:
        return self._audit

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def canvas(self) -> Optional[GraphCanvas]:
        return self._canvas

    @property
    def is_processing(self) -> bool:
        return self._in_flight > 0

    @property
    def status_message(self) -> str:
        return self._status

    @property
    def role_context(self) -> str:
        return self._role_context

    @property
    def topic(self) -> str:
        return self._topic

    @property
    def has_gatekeeper(self) -> bool:
        return any(n.kind == NodeKind.GATEKEEPER for n in self._store.nodes())

    @property
    def has_experts(self) -> bool:
        return any(n.kind == NodeKind.EXPERT for n in self._store.nodes())

    @property
    def pending_tasks(self) -> Set[asyncio.Task]:
        return set(self._tasks)

    def available_experts(self) -> Tuple[ExpertDefinition, ...]:
        return AVAILABLE_EXPERTS

    # =========================================================================
    # CANVAS WIRING
    # =========================================================================

    def attach(self, canvas: GraphCanvas):
        """Route the canvas's connect gestures through this session."""
        if canvas.store is not self._store:
            raise ValueError("Canvas must observe the session's store")
        self._canvas = canvas
        canvas.set_connect_handler(self._on_connect_gesture)
        canvas.on_violation(self._violation)

    def detach(self):
        if self._canvas is not None:
            self._canvas.set_connect_handler(None)
            self._canvas = None

    def _on_connect_gesture(self, source_id: str, target_id: str):
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._set_status("Connection requires a running event loop.")
            return
        self.spawn(self.connect(source_id, target_id))

    def spawn(self, flow: Awaitable) -> asyncio.Task:
        """Run a flow in the background, keeping a reference until done."""
        task = asyncio.ensure_future(flow)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self):
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================================================================
    # FLOWS
    # =========================================================================

    async def start(self, role_context: str, topic: str) -> Result:
        """Hypothesis node, then the Gatekeeper's core principle."""
        if not topic.strip():
            return self._reject(ErrorCode.FLOW_PRECONDITION, "A topic is required to start.")
        if self.is_processing:
            return self._reject(ErrorCode.SESSION_BUSY, "Another operation is still running.")
        if len(self._store):
            return self._reject(ErrorCode.FLOW_PRECONDITION, "Reset the session before starting a new topic.")

        generation = self._generation
        self._role_context = role_context.strip()
        self._topic = topic.strip()
        self._check(self._store.add_node(GraphNode(
            node_id=USER_INPUT_ID,
            kind=NodeKind.USER_INPUT,
            label="Hypothesis",
            content=self._topic,
            role=self._role_context or None,
            position=Point(0.0, 0.0)
        )))

        async with self._processing("Gatekeeper is analyzing input..."):
            result = await self._call("distill_principle", self._agents.distill_principle(self._role_context, self._topic))
        if self._generation != generation:
            return self._discarded("distill_principle")

        with self._store.batch():
            self._check(self._store.add_node(GraphNode(
                node_id=GATEKEEPER_ID,
                kind=NodeKind.GATEKEEPER,
                label="Core Principle",
                content=result.value,
                position=Point(SPAWN_OFFSET, 0.0)
            )))
            self._check(self._store.add_link(USER_INPUT_ID, GATEKEEPER_ID))

        if result.degraded:
            self._set_status("Error processing input. Using the topic as the principle.")
        else:
            self._set_status("Principle extracted. Ready for experts.")
        return Result.success(GATEKEEPER_ID)

    def add_expert(self, expert: ExpertDefinition) -> Result:
        """Expert node waiting for a connection; switches connect mode on."""
        node_id = self._next_id("expert")
        result = self._check(self._store.add_node(GraphNode(
            node_id=node_id,
            kind=NodeKind.EXPERT,
            label=expert.role,
            content=expert.persona,
            role=expert.role,
            position=self._near(GATEKEEPER_ID)
        )))
        if result.is_failure:
            return result
        self._set_status(f"{expert.role} added. Connect to Principle to activate.")
        if self._canvas is not None:
            self._canvas.set_connect_mode(True)
        return Result.success(node_id)

    async def generate_specialist(self, role: str) -> Result:
        """Custom expert whose persona is generated for the given role."""
        role = role.strip()
        if not role:
            return self._reject(ErrorCode.FLOW_PRECONDITION, "A role is required for a specialist.")
        generation = self._generation
        async with self._processing(f"Recruiting a {role}..."):
            persona = await self._call("generate_persona", self._agents.generate_persona(role))
        if self._generation != generation:
            return self._discarded("generate_persona")
        expert_id = role.lower().replace(" ", "-")
        return self.add_expert(ExpertDefinition(expert_id, role, persona.value))

    async def connect(self, source_id: str, target_id: str) -> Result:
        """
        Link two nodes. A Gatekeeper <-> Expert link (either order)
        triggers the expert's brainstorm.
        """
        link = self._check(self._store.add_link(source_id, target_id))
        if link.is_failure:
            self._set_status("Those nodes are already connected." if link.error.code == ErrorCode.DUPLICATE_LINK
                             else "Could not connect those nodes.")
            return link

        pair = self._gatekeeper_expert_pair(source_id, target_id)
        if pair is None:
            self._set_status("Nodes connected.")
            return link

        gatekeeper, expert = pair
        outcome = await self._brainstorm(gatekeeper, expert)
        return link if outcome is None else outcome

    def toggle_selection(self, node_id: str) -> Result:
        node = self._store.node(node_id)
        if node is None:
            return self._check(Result.failure(Error.create(
                ErrorCode.NODE_NOT_FOUND, f"Node not found: {node_id}", node_id=node_id
            )))
        if node.kind not in (NodeKind.CONCEPT, NodeKind.GATEKEEPER):
            return self._reject(
                ErrorCode.FLOW_PRECONDITION,
                "Only concepts and the core principle can be selected for the roadmap.",
                node_id=node_id
            )
        return self._check(self._store.update_node(node_id, selected_for_roadmap=not node.selected_for_roadmap))

    async def synthesize(self) -> Result:
        """Research Roadmap from every node selected for the roadmap."""
        if self.is_processing:
            return self._reject(ErrorCode.SESSION_BUSY, "Another operation is still running.")
        principle = self._store.node(GATEKEEPER_ID)
        selected = [n for n in self._store.nodes() if n.selected_for_roadmap]
        if principle is None or not selected:
            return self._reject(
                ErrorCode.FLOW_PRECONDITION,
                "Need a principle and at least one selected node to synthesize."
            )

        summaries = [NodeSummary(label=n.label, role=n.role or "General", content=n.content) for n in selected]
        generation = self._generation
        async with self._processing("Synthesizing Research Roadmap..."):
            report = await self._call(
                "synthesize_report",
                self._agents.synthesize_report(self._role_context, principle.content, summaries)
            )
        if self._generation != generation:
            return self._discarded("synthesize_report")

        roadmap_id = self._next_id("roadmap")
        with self._store.batch():
            self._check(self._store.add_node(GraphNode(
                node_id=roadmap_id,
                kind=NodeKind.ROADMAP,
                label="Research Roadmap",
                content=report.value,
                position=Point(0.0, 3 * SPAWN_OFFSET)
            )))
            for node in selected:
                self._check(self._store.add_link(node.node_id, roadmap_id))

        self._set_status("Error during synthesis." if report.degraded else "Roadmap created successfully.")
        return Result.success(roadmap_id)

    async def deep_dive(self, node_id: str) -> Result:
        """Analyze how a concept connects back to the original topic."""
        node = self._store.node(node_id)
        if node is None or node.kind != NodeKind.CONCEPT:
            return self._reject(ErrorCode.FLOW_PRECONDITION, "Deep dives are available on concepts only.", node_id=node_id)
        if node.deep_dive_completed:
            return self._reject(ErrorCode.FLOW_PRECONDITION, "Deep dive already completed.", node_id=node_id)

        topology = GraphTopology(self._store.snapshot())
        expert_id = topology.nearest_of_kind(node_id, NodeKind.EXPERT)
        expert = self._store.node(expert_id) if expert_id else None
        expert_role = (expert.role if expert else None) or node.role or "Expert"

        generation = self._generation
        async with self._processing(f"{expert_role} is analyzing the connection..."):
            analysis = await self._call(
                "elaborate_connection",
                self._agents.elaborate_connection(
                    self._role_context, self._topic, node.label, node.content, expert_role
                )
            )
        if self._generation != generation:
            return self._discarded("elaborate_connection")

        if analysis.degraded:
            self._set_status("Error during deep dive.")
            return Result.failure(Error.create(
                ErrorCode.AGENT_DEGRADED, analysis.error.message, node_id=node_id
            ))

        current = self._store.node(node_id)
        if current is None:
            return self._reject(ErrorCode.NODE_NOT_FOUND, "Concept was removed during the deep dive.", node_id=node_id)
        result = self._check(self._store.update_node(
            node_id,
            content=f"{current.content}\n\n## Deep Dive\n{analysis.value}",
            deep_dive_completed=True
        ))
        self._set_status("Deep dive complete.")
        return result

    def reset(self):
        self._generation += 1
        for task in list(self._tasks):
            task.cancel()
        self._store.clear()
        self._role_context = ""
        self._topic = ""
        if self._canvas is not None:
            self._canvas.set_connect_mode(False)
        self._audit.record(AuditEventType.SYSTEM, "reset")
        self._set_status("")

    # =========================================================================
    # BRAINSTORM
    # =========================================================================

    async def _brainstorm(self, gatekeeper: GraphNode, expert: GraphNode) -> Optional[Result]:
        """Concept nodes for the expert; a Result only when the work was discarded."""
        role = expert.role or expert.label
        generation = self._generation
        async with self._processing(f"{role} is brainstorming related topics..."):
            topics = await self._call(
                "brainstorm_related_topics",
                self._agents.brainstorm_related_topics(gatekeeper.content, role, expert.content)
            )
            if self._generation != generation:
                return self._discarded("brainstorm_related_topics")
            if topics.degraded:
                developed = [(Elaboration(t.title, t.context, ""), None) for t in topics.value]
            else:
                self._set_status(f"{role} is developing {len(topics.value)} concepts...")
                developed = await asyncio.gather(*(self._develop(topic, role) for topic in topics.value))
        if self._generation != generation:
            return self._discarded("elaborate_topic")

        origin = self._near(expert.node_id)
        with self._store.batch():
            for i, (elaboration, image) in enumerate(developed):
                concept_id = self._next_id("concept")
                position = Point(origin.x + SPAWN_OFFSET * (i - 1), origin.y + SPAWN_OFFSET) if origin else None
                self._check(self._store.add_node(GraphNode(
                    node_id=concept_id,
                    kind=NodeKind.CONCEPT,
                    label=elaboration.title,
                    content=elaboration.explanation,
                    role=role,
                    image=image,
                    position=position
                )))
                self._check(self._store.add_link(expert.node_id, concept_id))

        if topics.degraded:
            self._set_status("Error generating expert content.")
        else:
            self._set_status(f"{role} generated {len(developed)} concepts.")

    async def _develop(self, topic: Topic, role: str) -> Tuple[Elaboration, Optional[str]]:
        elaboration = await self._call(
            "elaborate_topic",
            self._agents.elaborate_topic(topic.title, topic.context, role)
        )
        image = await self._call(
            "render_concept_image",
            self._agents.render_concept_image(elaboration.value.image_prompt)
        )
        return elaboration.value, image.value

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _gatekeeper_expert_pair(self, a: str, b: str) -> Optional[Tuple[GraphNode, GraphNode]]:
        first, second = self._store.node(a), self._store.node(b)
        if first is None or second is None:
            return None
        if first.kind == NodeKind.GATEKEEPER and second.kind == NodeKind.EXPERT:
            return first, second
        if first.kind == NodeKind.EXPERT and second.kind == NodeKind.GATEKEEPER:
            return second, first
        return None

    def _near(self, node_id: str) -> Optional[Point]:
        """Live position of a node plus the spawn offset, when known."""
        if self._canvas is None:
            return None
        position = self._canvas.simulation.position_of(node_id)
        if position is None:
            return None
        return Point(position.x + SPAWN_OFFSET, position.y + SPAWN_OFFSET)

    def _next_id(self, prefix: str) -> str:
        while True:
            node_id = f"{prefix}-{next(self._ids)}"
            if node_id not in self._store:
                return node_id

    async def _call(self, name: str, call: Awaitable[AgentResult]) -> AgentResult:
        result = await call
        self._metrics.increment(AGENT_CALLS, {"call": name})
        self._metrics.record(AGENT_LATENCY_MS, result.latency_ms, {"call": name})
        if result.degraded:
            self._metrics.increment(AGENT_FAILURES, {"call": name})
            self._audit.record(
                AuditEventType.AGENT_FAILURE,
                name,
                code=result.error.code.value,
                message=result.error.message
            )
        else:
            self._audit.record(AuditEventType.AGENT_CALL, name, prompt_hash=result.prompt_hash)
        return result

    @asynccontextmanager
    async def _processing(self, status: str) -> AsyncIterator[None]:
        """Mark a flow in flight for `is_processing` and set its status."""
        self._in_flight += 1
        self._set_status(status)
        try:
            yield
        finally:
            self._in_flight -= 1

    def _set_status(self, message: str):
        self._status = message
        self._audit.record(AuditEventType.STATUS, "status", message=message)

    def _check(self, result: Result) -> Result:
        if result.is_failure:
            self._violation(result.error)
        return result

    def _violation(self, error: Error):
        self._metrics.increment(INVARIANT_VIOLATIONS, {"code": error.code.name})
        self._audit.record_error(error)

    def _discarded(self, call: str) -> Result:
        """Reject the late result of a flow that started before reset(); status is left alone."""
        return self._check(Result.failure(Error.create(
            ErrorCode.SESSION_RESET,
            "Session was reset while the agent was working; result discarded.",
            call=call
        )))

    def _reject(self, code: ErrorCode, message: str, **context: str) -> Result:
        self._set_status(message)
        return self._check(Result.failure(Error.create(code, message, **context)))

