"""Per-tick entry points and registries of the intel core."""

from .espionage import start_mission, tick_missions
from .heartland import recalculate_all
from .intelligence import decay_all
from .tick_loop import TickCadenceConfig, TickReport, step_tick
from .trust import tick_trust_decay

__all__ = [
    "TickCadenceConfig",
    "TickReport",
    "decay_all",
    "recalculate_all",
    "start_mission",
    "step_tick",
    "tick_missions",
    "tick_trust_decay",
]
