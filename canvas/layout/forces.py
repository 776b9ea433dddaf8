"""
Layout Forces
=============

Each force reads positions from SimulationState and accumulates into
the velocity arrays. Integration (velocity decay, pinning) happens in
the simulation, never here.

FORCES:
=======
- LinkForce:      spring toward a target separation for linked pairs
- ManyBodyForce:  pairwise repulsion, |k| * alpha / d
- CollideForce:   hard minimum separation, not scaled by alpha
- CenteringForce: weak spring toward the layout center
"""

from __future__ import annotations
from abc import ABC, abstractmethod

import numpy as np

from .state import SimulationState


def _jiggle(rng: np.random.Generator, size) -> np.ndarray:
    """Tiny random offsets used to separate coincident nodes."""
    return (rng.random(size) - 0.5) * 1e-6


def _separate(dx: np.ndarray, dy: np.ndarray, rng: np.random.Generator, mask=None):
    """
    Jiggle pairs whose squared distance is zero, in place.

    Also catches nearly coincident pairs whose offsets are nonzero but
    whose dx * dx + dy * dy underflows to 0.
    """
    degenerate = dx * dx + dy * dy == 0
    if mask is not None:
        degenerate &= mask
    if degenerate.any():
        count = int(degenerate.sum())
        dx[degenerate] = _jiggle(rng, count)
        dy[degenerate] = _jiggle(rng, count)


class Force(ABC):
    """Base force. `initialize` runs after every topology rebuild."""

    def initialize(self, state: SimulationState):
        pass

    @abstractmethod
    def apply(self, state: SimulationState, alpha: float, rng: np.random.Generator):
        pass


class LinkForce(Force):
    """
    Pull linked pairs toward `distance`.

    Strength per link is 1 / min(degree(source), degree(target)) so that
    hub nodes are not yanked around by many springs at once. The bias
    moves the lower-degree endpoint further.
    """

    def __init__(self, distance: float = 180.0):
        self.distance = distance
        self._strength = np.zeros(0)
        self._bias = np.zeros(0)

    def initialize(self, state: SimulationState):
        source, target = state.link_source, state.link_target
        if len(source) == 0:
            self._strength = np.zeros(0)
            self._bias = np.zeros(0)
            return
        count = np.bincount(np.concatenate([source, target]), minlength=len(state))
        self._strength = 1.0 / np.minimum(count[source], count[target])
        self._bias = count[source] / (count[source] + count[target])

    def apply(self, state, alpha, rng):
        source, target = state.link_source, state.link_target
        if len(source) == 0:
            return
        dx = state.x[target] + state.vx[target] - state.x[source] - state.vx[source]
        dy = state.y[target] + state.vy[target] - state.y[source] - state.vy[source]
        _separate(dx, dy, rng)
        length = np.sqrt(dx * dx + dy * dy)
        scale = (length - self.distance) / length * alpha * self._strength
        dx *= scale
        dy *= scale
        np.add.at(state.vx, target, -dx * self._bias)
        np.add.at(state.vy, target, -dy * self._bias)
        np.add.at(state.vx, source, dx * (1 - self._bias))
        np.add.at(state.vy, source, dy * (1 - self._bias))


class ManyBodyForce(Force):
    """
    All-pairs repulsion (negative strength) or attraction (positive).

    Exact O(n^2); discovery graphs stay in the tens of nodes.
    """

    def __init__(self, strength: float = -500.0, distance_min: float = 1.0):
        self.strength = strength
        self.distance_min = distance_min

    def apply(self, state, alpha, rng):
        n = len(state)
        if n < 2:
            return
        dx = state.x[None, :] - state.x[:, None]
        dy = state.y[None, :] - state.y[:, None]
        off_diagonal = ~np.eye(n, dtype=bool)

        _separate(dx, dy, rng, mask=off_diagonal)

        d2 = dx * dx + dy * dy
        min2 = self.distance_min * self.distance_min
        close = d2 < min2
        d2[close] = np.sqrt(min2 * d2[close])
        d2[~off_diagonal] = np.inf

        w = self.strength * alpha / d2
        state.vx += (dx * w).sum(axis=1)
        state.vy += (dy * w).sum(axis=1)


class CollideForce(Force):
    """
    Resolve overlap between circles of `radius` around each node.

    Uses predicted positions (x + vx) and splits the correction by
    relative area. Applied at full strength regardless of alpha.
    """

    def __init__(self, radius: float = 70.0, strength: float = 1.0, iterations: int = 1):
        self.radius = radius
        self.strength = strength
        self.iterations = iterations

    def apply(self, state, alpha, rng):
        n = len(state)
        if n < 2:
            return
        radii = np.full(n, self.radius)
        i, j = np.triu_indices(n, k=1)
        for _ in range(self.iterations):
            px = state.x + state.vx
            py = state.y + state.vy
            dx = px[i] - px[j]
            dy = py[i] - py[j]
            reach = radii[i] + radii[j]
            d2 = dx * dx + dy * dy
            overlap = d2 < reach * reach
            if not overlap.any():
                continue

            oi, oj = i[overlap], j[overlap]
            dx, dy, reach = dx[overlap], dy[overlap], reach[overlap]
            _separate(dx, dy, rng)

            length = np.sqrt(dx * dx + dy * dy)
            push = (reach - length) / length * self.strength
            dx *= push
            dy *= push
            ri2 = radii[oi] ** 2
            rj2 = radii[oj] ** 2
            share = rj2 / (ri2 + rj2)
            np.add.at(state.vx, oi, dx * share)
            np.add.at(state.vy, oi, dy * share)
            np.add.at(state.vx, oj, -dx * (1 - share))
            np.add.at(state.vy, oj, -dy * (1 - share))


class CenteringForce(Force):
    """Spring of `strength` pulling every node toward (cx, cy)."""

    def __init__(self, strength: float = 0.05, cx: float = 0.0, cy: float = 0.0):
        self.strength = strength
        self.cx = cx
        self.cy = cy

    def apply(self, state, alpha, rng):
        if len(state) == 0:
            return
        state.vx += (self.cx - state.x) * self.strength * alpha
        state.vy += (self.cy - state.y) * self.strength * alpha
