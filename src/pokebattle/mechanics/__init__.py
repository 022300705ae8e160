"""Battle mechanics: the engine protocol and the bundled Gen-1 rules."""

from .gen1 import Gen1Engine
from .interface import MechanicsEngine
from .typechart import effectiveness

__all__ = ["Gen1Engine", "MechanicsEngine", "effectiveness"]
