"""
Force Layout Tests
==================

Tests for the force simulation and its frame loop.

VERIFICATION:
=============
1. Linked pairs settle near the link distance; unlinked nodes spread out
2. Replacing node records under the same id keeps position and pin
3. Pinned nodes sit exactly on their pin after every tick
4. Only topology changes reheat; content-only updates do not
5. Coordinates never become NaN
6. The frame loop parks when idle and never loses a wake
"""

import asyncio
import itertools
import math
from dataclasses import replace

import pytest

from canvas.layout import ForceConfig, ForceSimulation, SimulationLoop
from canvas.store import GraphLink, GraphNode, NodeKind, Point


def node(node_id: str, position: Point = None, **fields) -> GraphNode:
    return GraphNode(node_id=node_id, kind=NodeKind.CONCEPT, label=node_id, position=position, **fields)


def distance(a: Point, b: Point) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def all_finite(positions) -> bool:
    return all(math.isfinite(p.x) and math.isfinite(p.y) for p in positions.values())


class TestConvergence:

    def test_linked_pair_settles_near_link_distance(self):
        sim = ForceSimulation()
        sim.set_graph([node("a", Point(0.0, 0.0))], [])
        sim.set_graph(
            [node("a", Point(0.0, 0.0)), node("b", Point(50.0, 50.0))],
            [GraphLink("a", "b")]
        )

        for _ in range(100):
            sim.step()

        positions = sim.positions()
        assert all_finite(positions)
        assert abs(distance(positions["a"], positions["b"]) - 180.0) <= 10.0

    def test_unlinked_nodes_spread_without_overlap(self):
        sim = ForceSimulation()
        sim.set_graph([node(f"n{i}") for i in range(10)], [])

        sim.run_until_idle()

        positions = list(sim.positions().values())
        closest = min(distance(a, b) for a, b in itertools.combinations(positions, 2))
        assert closest >= sim.config.collision_radius

    def test_cools_to_idle(self):
        sim = ForceSimulation()
        sim.set_graph([node("a"), node("b")], [GraphLink("a", "b")])

        ticks = sim.run_until_idle()

        assert not sim.is_running
        assert sim.alpha < sim.config.alpha_min
        # 1 - alpha_min ** (1 / 300) reaches alpha_min in about 300 ticks
        assert 250 <= ticks <= 350

    def test_coincident_seeds_stay_finite(self):
        sim = ForceSimulation()
        sim.set_graph([node("a", Point(5.0, 5.0)), node("b", Point(5.0, 5.0))], [GraphLink("a", "b")])

        for _ in range(20):
            sim.step()

        assert all_finite(sim.positions())
        assert sim.position_of("a") != sim.position_of("b")

    @pytest.mark.parametrize("offset", [Point(0.0, 1e-200), Point(1e-200, 1e-200), Point(-1e-170, 0.0)])
    def test_nearly_coincident_seeds_separate(self, offset):
        sim = ForceSimulation()
        sim.set_graph([node("a", Point(0.0, 0.0)), node("b", offset)], [])

        sim.run_until_idle()

        assert all_finite(sim.positions())
        assert distance(sim.position_of("a"), sim.position_of("b")) >= sim.config.collision_radius

    def test_phyllotaxis_seeds_are_distinct(self):
        sim = ForceSimulation()
        sim.set_graph([node(f"n{i}") for i in range(5)], [])

        seeded = list(sim.positions().values())
        assert len(set(seeded)) == 5


class TestIdentityAcrossUpdates:

    def test_replaced_record_keeps_position(self):
        sim = ForceSimulation()
        nodes = [node("a"), node("b")]
        sim.set_graph(nodes, [GraphLink("a", "b")])
        for _ in range(30):
            sim.step()
        before = sim.positions()

        renamed = [replace(nodes[0], label="Renamed", position=Point(999.0, 999.0)), nodes[1]]
        sim.set_graph(renamed, [GraphLink("a", "b")])

        assert sim.positions() == before

    def test_content_only_update_does_not_reheat(self):
        sim = ForceSimulation()
        nodes = [node("a"), node("b")]
        sim.set_graph(nodes, [])
        sim.run_until_idle()

        changed = sim.set_graph([replace(nodes[0], content="more"), nodes[1]], [])

        assert changed is False
        assert not sim.is_running

    def test_new_node_reheats(self):
        sim = ForceSimulation()
        sim.set_graph([node("a")], [])
        sim.run_until_idle()

        changed = sim.set_graph([node("a"), node("b")], [])

        assert changed is True
        assert sim.is_running
        assert sim.alpha == 1.0

    def test_new_link_reheats(self):
        sim = ForceSimulation()
        sim.set_graph([node("a"), node("b")], [])
        sim.run_until_idle()

        assert sim.set_graph([node("a"), node("b")], [GraphLink("a", "b")]) is True

    def test_pin_survives_record_replacement(self):
        sim = ForceSimulation()
        sim.set_graph([node("a"), node("b")], [])
        sim.pin("a", 40.0, -20.0)

        sim.set_graph([replace(node("a"), content="x"), node("b")], [])

        assert sim.is_pinned("a")
        assert sim.position_of("a") == Point(40.0, -20.0)

    def test_removed_node_leaves_simulation(self):
        sim = ForceSimulation()
        sim.set_graph([node("a"), node("b")], [GraphLink("a", "b")])
        sim.set_graph([node("a")], [])

        assert sim.position_of("b") is None
        assert sim.node_ids() == ("a",)

    def test_dangling_links_are_dropped_not_simulated(self):
        sim = ForceSimulation()
        dangling = GraphLink("a", "ghost")
        sim.set_graph([node("a")], [dangling])

        assert sim.dropped_links == (dangling,)
        sim.step()
        assert all_finite(sim.positions())


class TestPinning:

    def test_pinned_node_sits_on_pin_after_every_tick(self):
        sim = ForceSimulation()
        sim.set_graph([node("a"), node("b"), node("c")], [GraphLink("a", "b"), GraphLink("b", "c")])
        sim.pin("b", 12.5, -7.25)

        for _ in range(50):
            sim.step()
            assert sim.position_of("b") == Point(12.5, -7.25)
            assert sim.velocity_of("b") == (0.0, 0.0)

    def test_unpin_releases_node(self):
        sim = ForceSimulation()
        sim.set_graph([node("a"), node("b")], [GraphLink("a", "b")])
        sim.pin("a", 0.0, 0.0)
        sim.unpin("a")

        assert not sim.is_pinned("a")

    def test_pin_unknown_node(self):
        sim = ForceSimulation()
        assert sim.pin("ghost") is False
        assert sim.unpin("ghost") is False

    def test_alpha_target_keeps_simulation_warm(self):
        sim = ForceSimulation()
        sim.set_graph([node("a"), node("b")], [])
        sim.set_alpha_target(0.3)

        for _ in range(1000):
            sim.step()

        assert sim.is_running
        assert sim.alpha == pytest.approx(0.3, abs=1e-3)


class TestListeners:

    def test_tick_event_carries_positions(self):
        sim = ForceSimulation()
        events = []
        sim.on_tick(events.append)
        sim.set_graph([node("a")], [])

        sim.step()

        assert len(events) == 1
        assert set(events[0].positions) == {"a"}
        assert events[0].tick == 1

    def test_restart_always_wakes(self):
        sim = ForceSimulation()
        wakes = []
        sim.on_wake(lambda: wakes.append(True))
        sim.set_graph([node("a")], [])

        sim.restart()
        sim.restart()

        assert len(wakes) == 3

    def test_disposed_simulation_stays_silent(self):
        sim = ForceSimulation()
        wakes = []
        sim.on_wake(lambda: wakes.append(True))
        sim.dispose()

        sim.restart()

        assert wakes == []
        assert not sim.is_running

    def test_default_alpha_decay(self):
        config = ForceConfig()
        assert config.alpha_decay == pytest.approx(1 - 0.001 ** (1 / 300))

    def test_velocity_decay_validated(self):
        with pytest.raises(ValueError):
            ForceConfig(velocity_decay=1.5)


class TestSimulationLoop:

    def test_parks_when_frame_reports_idle(self):
        async def scenario():
            frames = []

            def frame():
                frames.append(1)
                return len(frames) < 3

            loop = SimulationLoop(frame, interval_seconds=0.001)
            task = loop.start()
            await asyncio.sleep(0.05)
            parked_after = len(frames)
            parked = loop.is_parked

            loop.wake()
            await asyncio.sleep(0.02)
            woken_after = len(frames)

            loop.stop()
            await task
            return parked_after, parked, woken_after

        parked_after, parked, woken_after = asyncio.run(scenario())
        assert parked_after == 3
        assert parked is True
        assert woken_after == 4

    def test_wake_during_frame_is_not_lost(self):
        async def scenario():
            frames = []
            loop = None

            def frame():
                frames.append(1)
                if len(frames) == 1:
                    loop.wake()
                return False

            loop = SimulationLoop(frame, interval_seconds=0.001)
            task = loop.start()
            await asyncio.sleep(0.02)
            loop.stop()
            await task
            return len(frames)

        assert asyncio.run(scenario()) == 2

    def test_stop_ends_task(self):
        async def scenario():
            loop = SimulationLoop(lambda: True, interval_seconds=0.001)
            task = loop.start()
            await asyncio.sleep(0.01)
            loop.stop()
            await asyncio.wait_for(task, timeout=1.0)
            return task.done()

        assert asyncio.run(scenario()) is True

    def test_failing_frame_is_reported_and_loop_survives(self):
        async def scenario():
            frames = []
            errors = []

            def frame():
                frames.append(1)
                if len(frames) == 1:
                    raise RuntimeError("listener broke")
                return False

            loop = SimulationLoop(frame, interval_seconds=0.001, on_error=errors.append)
            task = loop.start()
            await asyncio.sleep(0.02)
            alive = not task.done()

            loop.wake()
            await asyncio.sleep(0.02)
            loop.stop()
            await task
            return len(frames), errors, alive, loop.failures

        frames, errors, alive, failures = asyncio.run(scenario())
        assert alive is True
        assert frames == 2
        assert [str(e) for e in errors] == ["listener broke"]
        assert failures == 1
