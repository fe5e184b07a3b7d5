"""Engine layer: world loop, mediation, physics and the director."""

from habitat.engine.director import Director, Intervention
from habitat.engine.mediator import MediationResult, Mediator, PriorityMediator
from habitat.engine.world_loop import WorldLoop

__all__ = ["Director", "Intervention", "MediationResult", "Mediator", "PriorityMediator", "WorldLoop"]
