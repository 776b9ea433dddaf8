"""
Force Layout Layer

Responsibility:
Position nodes by link, repulsion, collision and centering forces.
Owns live node positions and pins; never touches node content.
"""

from .forces import Force, LinkForce, ManyBodyForce, CollideForce, CenteringForce
from .simulation import ForceConfig, ForceSimulation, TickEvent, TickListener
from .state import SimulationState
from .loop import SimulationLoop

__all__ = [
    'Force', 'LinkForce', 'ManyBodyForce', 'CollideForce', 'CenteringForce',
    'ForceConfig', 'ForceSimulation', 'TickEvent', 'TickListener',
    'SimulationState', 'SimulationLoop',
]
