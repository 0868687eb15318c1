"""
GridWorld: the 4x4 "frozen lake" environment the n-step learner runs on.

- Fixed layout of ice, holes and a goal; start in the top-left cell
- Optional "slippery" ice that resamples the executed action from the
  intended action and its two rotational neighbours
- Gym-like API: reset(), step(), render()
- States are flat cell indices; (row, col) with (0, 0) at the top-left cell.

This file exposes:
    - Action: the four moves
    - Cell: cell types of the map
    - WorldSettings: dataclass with environment configuration
    - GridWorld: the environment class
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum, IntEnum
from typing import Tuple, Dict, Optional

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.colors import ListedColormap, BoundaryNorm

from .errors import ConfigError, InvariantViolation
from .utils import set_seed, wrap_index

logger = logging.getLogger(__name__)


class Action(IntEnum):
    UP = 0
    RIGHT = 1
    DOWN = 2
    LEFT = 3


# Grid-relative (row, col) offset of each action
MOVES: Dict[int, Tuple[int, int]] = {
    Action.UP: (-1, 0),
    Action.RIGHT: (0, 1),
    Action.DOWN: (1, 0),
    Action.LEFT: (0, -1),
}


class Cell(Enum):
    ICE = "F"
    HOLE = "H"
    GOAL = "G"

    @property
    def is_goal(self) -> bool:
        return self is Cell.GOAL

    @property
    def is_terminal(self) -> bool:
        return self is not Cell.ICE


FROZEN_LAKE_4X4: Tuple[str, ...] = (
    "FFFF",
    "FHHH",
    "FFFF",
    "FFFG",
)


@dataclass(frozen=True)
class WorldSettings:
    """
    WorldSettings
    -------------
    Immutable configuration for the GridWorld environment.

    Parameters
    ----------
    size : int
        Number of rows (and columns) of the square grid.
    layout : tuple[str, ...]
        One string per row, using 'F' (ice), 'H' (hole) and 'G' (goal).
    start : int
        Flat index of the start cell.
    is_slippery : bool
        If True the executed action is drawn uniformly from the intended
        action and its two neighbours.
    goal_reward : float
        Reward for reaching the goal.
    hole_reward : float
        Reward for falling into a hole (0.0 by default, -1.0 is the other
        common variant).
    illegal_move_reward : float
        Reward for a move that would leave the grid.
    seed : int or None
        Seed for the RNG used by the slip model.
    """
    size: int = 4
    layout: Tuple[str, ...] = FROZEN_LAKE_4X4
    start: int = 0
    is_slippery: bool = False
    goal_reward: float = 1.0
    hole_reward: float = 0.0
    illegal_move_reward: float = 0.0
    seed: Optional[int] = 0


class GridWorld:
    """
    The frozen-lake grid world.

    The agent starts on the top-left cell and moves up, right, down or left.
    Moving off the grid leaves it in place. Stepping onto a hole or the goal
    ends the episode; only the goal pays a positive reward.

    Notes
    -----
    - Actions are encoded as: 0=Up, 1=Right, 2=Down, 3=Left.
    - The environment never references the learner; all communication is
      by value through step() and reset().
    """

    num_actions: int = len(Action)

    def __init__(self, settings: WorldSettings = WorldSettings()) -> None:
        """
        Initialize a GridWorld instance.

        Parameters
        ----------
        settings : WorldSettings
            Immutable configuration for the environment. See `WorldSettings`.

        Raises
        ------
        ConfigError
            If the layout does not match `size`, has no single goal, or the
            start cell is not ice.
        """
        self._cells = self._parse_layout(settings)
        self.settings: WorldSettings = settings
        self.rng: np.random.Generator = set_seed(settings.seed)

        self.rows: int = settings.size
        self.cols: int = settings.size
        self.num_states: int = self.rows * self.cols

        self.state: int = settings.start
        self.terminal: bool = False
        # action actually executed by the last step (differs when slipping)
        self.last_action: Optional[int] = None

    @staticmethod
    def _parse_layout(settings: WorldSettings) -> Tuple[Cell, ...]:
        size = settings.size
        if size <= 0 or len(settings.layout) != size or any(len(row) != size for row in settings.layout):
            raise ConfigError(f"Layout must be {size}x{size}: {settings.layout}")
        try:
            cells = tuple(Cell(ch) for row in settings.layout for ch in row)
        except ValueError as exc:
            raise ConfigError(f"Unknown cell in layout {settings.layout}") from exc
        if cells.count(Cell.GOAL) != 1:
            raise ConfigError("Layout must contain exactly one goal.")
        if not (0 <= settings.start < len(cells)):
            raise ConfigError(f"Start out of range: {settings.start}")
        if cells[settings.start] is not Cell.ICE:
            raise ConfigError("Start must be an ice cell.")
        return cells

    # --------------------------------------------------------
    # Indexing Helpers
    # --------------------------------------------------------

    def _to_index(self, pos: Tuple[int, int]) -> int:
        """Convert (row, col) to a flat index = row * cols + col."""
        r, c = pos
        return r * self.cols + c

    def _to_pos(self, index: int) -> Tuple[int, int]:
        """
        Convert a flat index back to (row, col).

        Raises
        ------
        InvariantViolation
            If the index is not in [0, num_states).
        """
        self._check_state(index)
        return (index // self.cols, index % self.cols)

    def _in_bounds(self, pos: Tuple[int, int]) -> bool:
        r, c = pos
        return 0 <= r < self.rows and 0 <= c < self.cols

    def _check_state(self, s: int) -> None:
        if not (0 <= s < self.num_states):
            raise InvariantViolation(f"State outside state space: {s}")

    def _check_action(self, a: int) -> None:
        if int(a) != a or not (0 <= a < self.num_actions):
            raise InvariantViolation(f"Action outside action space: {a}")

    def cell_at(self, s: int) -> Cell:
        self._check_state(s)
        return self._cells[s]

    def is_terminal(self, s: int) -> bool:
        """True iff `s` is a hole or the goal."""
        return self.cell_at(s).is_terminal

    def is_legal(self, s: int, action: int) -> bool:
        """
        False for moves that would leave the grid: Up from row 0, Down from
        the last row, Left from column 0, Right from the last column.
        """
        r, c = self._to_pos(s)
        dr, dc = MOVES[action]
        return self._in_bounds((r + dr, c + dc))

    # --------------------------------------------------------
    # Public API
    # -------------------------------------------------------

    def reset(self) -> int:
        """
        Put the agent back on the start cell and clear the terminal flag.

        Returns
        -------
        int
            The start index.
        """
        self.state = self.settings.start
        self.terminal = False
        self.last_action = None
        return self.state

    def slip(self, action: int) -> int:
        """
        Resample the executed action uniformly from
        {action - 1, action, action + 1} (mod 4).
        """
        offset = int(self.rng.integers(-1, 2))
        return wrap_index(action + offset, self.num_actions)

    def step(self, action: int) -> Tuple[int, float, bool]:
        """
        Execute one action in the environment.

        Parameters
        ----------
        action : int
            Action encoded as 0=Up, 1=Right, 2=Down, 3=Left.

        Returns
        -------
        next_state : int
            Flat index of the next state.
        reward : float
            Reward for this transition.
        terminal : bool
            True iff the agent is on a hole or the goal.

        Raises
        ------
        InvariantViolation
            If `action` is not in {0,1,2,3}.
        """
        self._check_action(action)

        if self.terminal:
            logger.warning(
                "Environment has terminated in state %d; call reset() before stepping again.",
                self.state,
            )
            return self.state, 0.0, True

        executed = self.slip(action) if self.settings.is_slippery else int(action)
        self.last_action = executed

        if not self.is_legal(self.state, executed):
            return self.state, self.settings.illegal_move_reward, False

        r, c = self._to_pos(self.state)
        dr, dc = MOVES[executed]
        self.state = self._to_index((r + dr, c + dc))

        cell = self._cells[self.state]
        reward = 0.0
        if cell is Cell.GOAL:
            reward = self.settings.goal_reward
        elif cell is Cell.HOLE:
            reward = self.settings.hole_reward
        self.terminal = cell.is_terminal
        return self.state, reward, self.terminal

    def sample_action(self) -> int:
        """Sample a random action uniformly from {0, 1, 2, 3}."""
        return int(self.rng.integers(0, self.num_actions))

    def seed(self, seed: Optional[int] = None) -> None:
        """Reseed the slip RNG. None draws fresh OS entropy."""
        self.rng = set_seed(seed)

    def set_slippery(self, is_slippery: bool) -> None:
        self.settings = replace(self.settings, is_slippery=is_slippery)

    def state_index(self) -> int:
        return self.state

    # ---------------------------------------------------------------------
    # Rendering (matplotlib)
    # ---------------------------------------------------------------------

    def render(self, values: Optional[np.ndarray] = None,
               show_agent: bool = True,
               title: str = "Frozen Lake",
               show: bool = True):
        """
        Render the lake with matplotlib.

        Parameters
        ----------
        values : np.ndarray or None
            Optional Q-table of shape (S, A); max_a Q(s, a) is written in
            every cell.
        show_agent : bool
            If True, draws the current agent position.
        title : str
            Figure title.
        show : bool
            Call plt.show(); pass False to keep drawing on the returned Axes.

        Returns
        -------
        matplotlib.axes.Axes
        """
        codes = {Cell.ICE: 0, Cell.HOLE: 1, Cell.GOAL: 2}
        grid = np.array([codes[c] for c in self._cells]).reshape(self.rows, self.cols)

        cmap = ListedColormap([
            '#a8dadc',  # ice
            '#457b9d',  # hole
            '#e3b23c',  # goal
        ])
        norm = BoundaryNorm([0, 1, 2, 3], cmap.N)

        fig, ax = plt.subplots(figsize=(6, 6))
        ax.imshow(grid, cmap=cmap, norm=norm, origin='upper',
                  extent=[0, self.cols, self.rows, 0], interpolation="none")

        ax.set_xticks(np.arange(0, self.cols + 1, 1))
        ax.set_yticks(np.arange(0, self.rows + 1, 1))
        ax.grid(True, color='k', linewidth=0.4, alpha=0.3)
        ax.tick_params(labelbottom=False, labelleft=False, length=0)
        ax.set_aspect('equal')

        if values is not None:
            V = np.max(np.asarray(values), axis=1)
            for s in range(self.num_states):
                r, c = self._to_pos(s)
                ax.text(c + 0.5, r + 0.8, f"{V[s]:.3f}", ha='center', va='center', fontsize=9)

        if show_agent:
            ar, ac = self._to_pos(self.state)
            ax.scatter(ac + 0.5, ar + 0.5, s=400, marker='o',
                       facecolors='red', edgecolors='black', zorder=5)

        ax.set_title(title)
        fig.tight_layout()
        if show:
            plt.show()
        return ax
