"""
trajectory.py - Fixed-capacity ring storage for the n-step learner.

The learner addresses states, actions and rewards by their *logical* time
index; the buffer maps them onto `n + 1` slots with `index mod (n + 1)`.
Only the newest `n + 1` logical indices are readable. Anything older has been
overwritten, and reading it raises `InvariantViolation`.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from .errors import InvariantViolation
from .utils import wrap_index


class _Ring:
    """One ring of values that fills slot by slot, then wraps."""

    def __init__(self, capacity: int, name: str) -> None:
        self.capacity = capacity
        self.name = name
        self.slots: List = []
        self.head: Optional[int] = None   # newest logical index written

    def put(self, i: int, value) -> None:
        if i < 0:
            raise InvariantViolation(f"{self.name}[{i}]: negative time index")
        k = wrap_index(i, self.capacity)
        if k == len(self.slots):
            self.slots.append(value)
        elif k < len(self.slots):
            self.slots[k] = value
        else:
            raise InvariantViolation(f"{self.name}[{i}]: slots must be filled in order")
        if self.head is None or i > self.head:
            self.head = i

    def get(self, i: int):
        if self.head is None or not (max(0, self.head - self.capacity + 1) <= i <= self.head):
            raise InvariantViolation(
                f"{self.name}[{i}] read outside window ending at {self.head}"
            )
        return self.slots[wrap_index(i, self.capacity)]

    def copy(self) -> "_Ring":
        other = _Ring(self.capacity, self.name)
        other.slots = list(self.slots)
        other.head = self.head
        return other


class TrajectoryBuffer:
    """
    Parallel S, A, R rings of capacity `n + 1`.

    Parameters
    ----------
    n : int
        Number of steps of the n-step return (>= 0).
    """

    def __init__(self, n: int) -> None:
        if n < 0:
            raise ValueError(f"n must be >= 0, got {n}")
        self.n = n
        self.capacity = n + 1
        self._S = _Ring(self.capacity, "S")
        self._A = _Ring(self.capacity, "A")
        self._R = _Ring(self.capacity, "R")

    @classmethod
    def seeded(cls, n: int, state: int, action: int) -> "TrajectoryBuffer":
        """A fresh buffer holding S[0]=state, A[0]=action, R[0]=0."""
        buf = cls(n)
        buf.put_state(0, state)
        buf.put_action(0, action)
        buf.put_reward(0, 0.0)
        return buf

    def put_state(self, i: int, s: int) -> None:
        self._S.put(i, int(s))

    def put_action(self, i: int, a: int) -> None:
        self._A.put(i, int(a))

    def put_reward(self, i: int, r: float) -> None:
        self._R.put(i, float(r))

    def state(self, i: int) -> int:
        return self._S.get(i)

    def action(self, i: int) -> int:
        return self._A.get(i)

    def reward(self, i: int) -> float:
        return self._R.get(i)

    def copy(self) -> "TrajectoryBuffer":
        other = TrajectoryBuffer.__new__(TrajectoryBuffer)
        other.n = self.n
        other.capacity = self.capacity
        other._S = self._S.copy()
        other._A = self._A.copy()
        other._R = self._R.copy()
        return other

    def contents(self) -> Tuple[Tuple[int, ...], Tuple[int, ...], Tuple[float, ...]]:
        """Raw slot contents (S, A, R) in slot order, for display."""
        return tuple(self._S.slots), tuple(self._A.slots), tuple(self._R.slots)
