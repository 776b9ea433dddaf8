"""
Graph Canvas Tests
==================

End-to-end tests of one mounted canvas: store -> simulation -> scene,
pointer input -> outcomes, lifecycle.
"""

import asyncio
import math

import pytest

from canvas import ErrorCode, GraphCanvas, GraphNode, GraphStore, NodeKind, Point
from canvas.interaction import Dragging, Idle
from canvas.render import UpdateNode


def concept(node_id: str, x: float = 0.0, y: float = 0.0) -> GraphNode:
    return GraphNode(node_id, NodeKind.CONCEPT, node_id.upper(), position=Point(x, y))


def screen_of(canvas: GraphCanvas, node_id: str) -> Point:
    return canvas.view.world_to_screen(canvas.simulation.position_of(node_id))


@pytest.fixture
def store():
    return GraphStore()


@pytest.fixture
def canvas(store):
    c = GraphCanvas(store, clock=lambda: 0.0)
    c.mount()
    yield c
    c.dispose()


class TestDataFlow:

    def test_zero_to_two_nodes_scenario(self, store, canvas):
        store.add_node(concept("a", 0.0, 0.0))
        canvas.step()
        with store.batch():
            store.add_node(concept("b", 50.0, 50.0))
            store.add_link("a", "b")

        for _ in range(100):
            canvas.step()

        a = canvas.simulation.position_of("a")
        b = canvas.simulation.position_of("b")
        assert math.isfinite(a.x) and math.isfinite(b.y)
        assert abs(math.hypot(a.x - b.x, a.y - b.y) - 180.0) <= 10.0
        assert set(canvas.scene.links) == {"a->b"}

    def test_snapshot_applied_only_at_frame_start(self, store, canvas):
        store.add_node(concept("a"))

        assert canvas.has_pending
        assert canvas.scene.nodes == {}

        canvas.step()

        assert not canvas.has_pending
        assert set(canvas.scene.nodes) == {"a"}
        assert canvas.snapshot.version == store.version

    def test_content_update_does_not_reheat(self, store, canvas):
        store.add_node(concept("a"))
        store.add_node(concept("b", 200.0, 0.0))
        canvas.step()
        canvas.simulation.run_until_idle()

        store.update_node("a", selected_for_roadmap=True)
        canvas.step()

        assert not canvas.simulation.is_running
        assert canvas.scene.nodes["a"].appearance.roadmap_badge

    def test_scene_follows_ticks(self, store, canvas):
        store.add_node(concept("a"))
        store.add_node(concept("b", 10.0, 0.0))
        for _ in range(5):
            canvas.step()

        position = canvas.simulation.position_of("b")
        cx, cy = canvas.scene.nodes["b"].center
        assert cx == pytest.approx(position.x)
        assert cy == pytest.approx(position.y)

    def test_step_reports_idle(self, store, canvas):
        store.add_node(concept("a"))
        while canvas.step():
            pass

        assert not canvas.simulation.is_running
        assert canvas.step() is False


class TestPointerInput:

    def test_hit_test_finds_card(self, store, canvas):
        store.add_node(concept("a"))
        canvas.step()

        assert canvas.hit_test(screen_of(canvas, "a")) == "a"
        assert canvas.hit_test(Point(0.0, 0.0)) is None

    def test_click_notifies_listeners(self, store, canvas):
        store.add_node(concept("a"))
        canvas.step()
        clicks = []
        canvas.on_node_click(clicks.append)

        point = screen_of(canvas, "a")
        canvas.pointer_down(point)
        canvas.pointer_up(point)

        assert clicks == ["a"]

    def test_unknown_node_id_is_empty_canvas(self, store, canvas):
        canvas.step()
        canvas.pointer_down(Point(10.0, 10.0), "ghost")

        assert canvas.interaction.state == Idle()
        assert canvas.interaction.is_panning

    def test_connect_gesture_adds_link(self, store, canvas):
        store.add_node(concept("a", -300.0, 0.0))
        store.add_node(concept("b", 300.0, 0.0))
        canvas.step()

        canvas.set_connect_mode(True)
        for node_id in ("a", "b"):
            canvas.pointer_down(Point(0.0, 0.0), node_id)
            canvas.pointer_up(Point(0.0, 0.0))

        assert store.has_link("a", "b")
        assert not canvas.connect_mode

    def test_connect_mode_click_sequence(self, store, canvas):
        store.add_node(concept("a", -300.0, 0.0))
        store.add_node(concept("b", 300.0, 0.0))
        canvas.step()

        def click(node_id):
            point = screen_of(canvas, node_id)
            canvas.pointer_down(point)
            canvas.pointer_up(point)

        canvas.set_connect_mode(True)

        click("a")
        assert canvas.pending_source == "a"

        click("a")
        assert canvas.pending_source is None
        assert canvas.connect_mode
        assert store.links() == []

        click("a")
        click("b")
        assert [link.key for link in store.links()] == ["a->b"]
        assert not canvas.connect_mode
        assert canvas.pending_source is None

        click("a")
        click("b")
        assert [link.key for link in store.links()] == ["a->b"]

        canvas.step()
        assert set(canvas.scene.links) == {"a->b"}

    def test_duplicate_connect_reported_as_violation(self, store, canvas):
        store.add_node(concept("a"))
        store.add_node(concept("b", 300.0, 0.0))
        store.add_link("a", "b")
        canvas.step()
        violations = []
        canvas.on_violation(violations.append)

        canvas.set_connect_mode(True)
        for node_id in ("a", "b"):
            canvas.pointer_down(Point(0.0, 0.0), node_id)
            canvas.pointer_up(Point(0.0, 0.0))

        assert [v.code for v in violations] == [ErrorCode.DUPLICATE_LINK]
        assert len(store.links()) == 1

    def test_connect_handler_replaces_default(self, store, canvas):
        store.add_node(concept("a"))
        store.add_node(concept("b", 300.0, 0.0))
        canvas.step()
        requested = []
        canvas.set_connect_handler(lambda s, t: requested.append((s, t)))

        canvas.set_connect_mode(True)
        for node_id in ("a", "b"):
            canvas.pointer_down(Point(0.0, 0.0), node_id)
            canvas.pointer_up(Point(0.0, 0.0))

        assert requested == [("a", "b")]
        assert store.links() == []

    def test_pending_source_ring_rendered(self, store, canvas):
        store.add_node(concept("a"))
        canvas.step()

        canvas.toggle_connect_mode()
        canvas.pointer_down(Point(0.0, 0.0), "a")
        canvas.pointer_up(Point(0.0, 0.0))

        assert canvas.pending_source == "a"
        assert canvas.scene.nodes["a"].appearance.source_ring
        assert [op.key for op in canvas.last_plan.of_type(UpdateNode)] == ["a"]

    def test_removed_dragged_node_resets_interaction(self, store, canvas):
        store.add_node(concept("a"))
        canvas.step()
        canvas.pointer_down(Point(0.0, 0.0), "a")
        assert isinstance(canvas.interaction.state, Dragging)

        store.remove_node("a")
        canvas.step()

        assert canvas.interaction.state == Idle()
        assert "a" not in canvas.scene.nodes


class TestViewCommands:

    def test_fit_with_single_node_is_noop(self, store, canvas):
        store.add_node(concept("a"))
        canvas.step()
        before = canvas.transform

        result = canvas.fit_to_view()

        assert result.is_failure
        assert canvas.transform == before

    def test_fit_spread_graph(self, store, canvas):
        store.add_node(concept("a", -200.0, -100.0))
        store.add_node(concept("b", 200.0, 100.0))
        canvas.flush()

        result = canvas.fit_to_view()

        assert result.is_success
        assert result.value.is_finite

    def test_zoom_commands_do_not_touch_data(self, store, canvas):
        store.add_node(concept("a"))
        canvas.step()
        version = store.version

        canvas.zoom_in()
        canvas.zoom_out()

        assert store.version == version


class TestLifecycle:

    def test_dispose_detaches(self, store, canvas):
        canvas.dispose()
        store.add_node(concept("a"))

        assert not canvas.has_pending
        assert canvas.step() is False
        assert not canvas.is_mounted

    def test_disposed_canvas_cannot_remount(self, canvas):
        canvas.dispose()
        with pytest.raises(RuntimeError):
            canvas.mount()

    def test_mount_is_idempotent(self, store, canvas):
        canvas.mount()
        received = []
        store.subscribe(received.append)
        store.add_node(concept("a"))

        assert len(received) == 1
        canvas.step()
        assert len(canvas.scene.nodes) == 1

    def test_loop_renders_store_changes(self, store):
        async def scenario():
            canvas = GraphCanvas(store)
            canvas.mount()
            loop = canvas.start_loop(0.001)
            store.add_node(concept("a"))
            await asyncio.sleep(0.05)
            nodes = set(canvas.scene.nodes)
            frames = loop.frames
            canvas.dispose()
            await asyncio.sleep(0)
            return nodes, frames

        nodes, frames = asyncio.run(scenario())
        assert nodes == {"a"}
        assert frames > 0

    def test_failing_frame_reported_and_rendering_resumes(self, store):
        async def scenario():
            canvas = GraphCanvas(store)
            canvas.mount()
            violations = []
            canvas.on_violation(violations.append)
            calls = []

            def flaky(event):
                calls.append(event.tick)
                if len(calls) == 1:
                    raise RuntimeError("tick listener broke")

            canvas.simulation.on_tick(flaky)
            task = canvas.start_loop(0.001).start()
            store.add_node(concept("a"))
            await asyncio.sleep(0.02)
            alive = not task.done()

            store.add_node(concept("b", 300.0, 0.0))
            await asyncio.sleep(0.05)
            nodes = set(canvas.scene.nodes)
            canvas.dispose()
            await asyncio.sleep(0)
            return violations, alive, nodes, len(calls)

        violations, alive, nodes, ticks = asyncio.run(scenario())
        assert [v.code for v in violations] == [ErrorCode.FRAME_FAILED]
        assert dict(violations[0].context)["error_type"] == "RuntimeError"
        assert alive is True
        assert nodes == {"a", "b"}
        assert ticks > 1
