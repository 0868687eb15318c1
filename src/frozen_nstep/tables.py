"""
tables.py - Tabular Q(s, a) and the epsilon-greedy policy derived from it.

Both tables are dense (S, A) NumPy arrays, so every state-action pair has an
entry from construction on. Indexing outside the declared spaces raises
`InvariantViolation` instead of silently reading a default.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from .errors import InvariantViolation
from .utils import argmax_random_tie_break, sample_from_weights


def _check_index(table: np.ndarray, s: int, a: Optional[int] = None) -> None:
    S, A = table.shape
    if not (0 <= s < S):
        raise InvariantViolation(f"State outside state space: {s}")
    if a is not None and not (0 <= a < A):
        raise InvariantViolation(f"Action outside action space: {a}")


class ValueTable:
    """
    State-action values Q(s, a).

    Parameters
    ----------
    num_states, num_actions : int
        Table shape.
    init_value : float
        Initial value of every entry.
    """

    def __init__(self, num_states: int, num_actions: int, init_value: float = 0.0) -> None:
        self.values: np.ndarray = np.full((num_states, num_actions), init_value, dtype=float)

    @property
    def shape(self):
        return self.values.shape

    def get(self, s: int, a: int) -> float:
        _check_index(self.values, s, a)
        return float(self.values[s, a])

    def set(self, s: int, a: int, value: float) -> None:
        _check_index(self.values, s, a)
        self.values[s, a] = value

    def row(self, s: int) -> np.ndarray:
        _check_index(self.values, s)
        return self.values[s]

    def copy(self) -> "ValueTable":
        other = ValueTable.__new__(ValueTable)
        other.values = self.values.copy()
        return other


class PolicyTable:
    """
    Action probabilities pi(s, a); every row sums to 1.

    Build it with `PolicyTable.epsilon_greedy(Q, epsilon, rng)`.
    """

    def __init__(self, probs: np.ndarray) -> None:
        probs = np.asarray(probs, dtype=float)
        if probs.ndim != 2 or not np.allclose(probs.sum(axis=1), 1.0):
            raise InvariantViolation("Policy rows must sum to 1.")
        self.probs: np.ndarray = probs

    @classmethod
    def uniform(cls, num_states: int, num_actions: int) -> "PolicyTable":
        return cls(np.full((num_states, num_actions), 1.0 / num_actions))

    @classmethod
    def epsilon_greedy(cls, Q: ValueTable, epsilon: float,
                       rng: np.random.Generator) -> "PolicyTable":
        """
        Epsilon-greedy policy w.r.t. Q, swept over every state.

        For each state one action is drawn uniformly among the argmax ties;
        it gets 1 - eps + eps/|A|, every other action eps/|A|.
        """
        S, A = Q.shape
        probs = np.full((S, A), epsilon / A)
        for s in range(S):
            best = argmax_random_tie_break(Q.row(s), rng)
            probs[s, best] = 1.0 - epsilon + epsilon / A
        return cls(probs)

    @property
    def shape(self):
        return self.probs.shape

    def prob(self, s: int, a: int) -> float:
        _check_index(self.probs, s, a)
        return float(self.probs[s, a])

    def sample(self, s: int, rng: np.random.Generator) -> int:
        """Draw an action at state `s` from pi(s, .)."""
        _check_index(self.probs, s)
        return sample_from_weights(self.probs[s], rng)

    def greedy(self) -> np.ndarray:
        """Most probable action per state, shape (S,)."""
        return np.argmax(self.probs, axis=1)

    def copy(self) -> "PolicyTable":
        return PolicyTable(self.probs.copy())
