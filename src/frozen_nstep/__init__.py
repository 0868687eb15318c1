"""
Package init - expose a clean, minimal API for end users.

Usage
-----
from frozen_nstep import GridWorld, WorldSettings, Action
from frozen_nstep import AgentConfig, LearningEngine, EpisodeController
from frozen_nstep import utils    # Optional: evaluation, plots, etc.
"""

from .errors import ConfigError, FrozenNStepError, InvariantViolation
from .gridworld import Action, Cell, GridWorld, WorldSettings
from .trajectory import TrajectoryBuffer
from .tables import PolicyTable, ValueTable
from .rl_algorithms import AgentConfig, LearningEngine, LearnResult, Snapshot, train
from .controller import EpisodeController, Mode

# Expose utils as a module so users can do: from frozen_nstep import utils
from . import utils

__all__ = [
    "Action",
    "AgentConfig",
    "Cell",
    "ConfigError",
    "EpisodeController",
    "FrozenNStepError",
    "GridWorld",
    "InvariantViolation",
    "LearnResult",
    "LearningEngine",
    "Mode",
    "PolicyTable",
    "Snapshot",
    "TrajectoryBuffer",
    "ValueTable",
    "WorldSettings",
    "train",
    "utils",
]

__version__ = "0.1.0"
