"""
rl_algorithms.py - n-step on-policy TD control (n-step Sarsa) for GridWorld.

Implements the learning engine driven by the controller and the CLI:

- AgentConfig     : hyperparameters, validated eagerly
- LearningEngine  : one `learn()` call == one timestep of n-step Sarsa
- train           : batch loop over episodes with per-episode logs and
                    periodic Q snapshots for later visualization

The engine keeps all per-episode state (Q, pi, the S/A/R rings and the
t / T / tau counters) in a single private value. A tick works on copies and
publishes them only once the whole tick has succeeded, so callers never see
a half-updated engine.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple, Any

import numpy as np

from .errors import ConfigError, InvariantViolation
from .tables import PolicyTable, ValueTable
from .trajectory import TrajectoryBuffer
from .utils import set_seed

logger = logging.getLogger(__name__)


# =====================================================================
# Configuration
# =====================================================================

@dataclass(frozen=True)
class AgentConfig:
    """
    Hyperparameters for the n-step learner and its controller.

    Parameters
    ----------
    n : int
        Number of rewards in the n-step return (>= 0).
    alpha : float
        Learning rate in [0, 1].
    epsilon : float
        Exploration rate of the epsilon-greedy policy, in [0, 1].
    discount : float
        Discount factor gamma in [0, 1].
    is_slippery : bool
        Applied to the environment by the controller.
    speed : int
        Tick interval (and deferred-reset delay) in milliseconds.
    reset_q_on_init : bool
        If False, `init()` keeps the current Q-table (when its shape still
        matches) instead of zeroing it.
    seed : int or None
        Seed of the engine's RNG (action sampling and tie-breaking).
    """
    n: int = 5
    alpha: float = 0.1
    epsilon: float = 0.2
    discount: float = 0.9
    is_slippery: bool = False
    speed: int = 150
    reset_q_on_init: bool = True
    seed: Optional[int] = 0

    def validate(self) -> "AgentConfig":
        """Return self, or raise ConfigError naming the first bad field."""
        if isinstance(self.n, bool) or not isinstance(self.n, (int, np.integer)) or self.n < 0:
            raise ConfigError(f"n must be an integer >= 0, got {self.n!r}")
        for name in ("alpha", "epsilon", "discount"):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise ConfigError(f"{name} must be in [0, 1], got {value!r}")
        if self.speed <= 0:
            raise ConfigError(f"speed must be positive, got {self.speed!r}")
        return self


# =====================================================================
# Snapshots
# =====================================================================

@dataclass(frozen=True)
class Snapshot:
    """Read-only copy of the engine state, for display and tests."""
    t: int
    T: float
    tau: int
    Q: np.ndarray
    pi: np.ndarray
    S: Tuple[int, ...]
    A: Tuple[int, ...]
    R: Tuple[float, ...]


@dataclass(frozen=True)
class LearnResult:
    """
    Outcome of one tick. `reward` is the reward observed from the
    environment on this tick, or None when the tick only made a delayed
    update (t >= T).
    """
    done: bool
    snapshot: Snapshot
    reward: Optional[float] = None


@dataclass
class _EpisodeState:
    Q: ValueTable
    pi: PolicyTable
    buffer: TrajectoryBuffer
    t: int = 0
    T: float = math.inf
    tau: int = 0
    complete: bool = False

    def copy(self) -> "_EpisodeState":
        return replace(self, Q=self.Q.copy(), pi=self.pi.copy(), buffer=self.buffer.copy())


# =====================================================================
# n-step return
# =====================================================================

def n_step_return(buffer: TrajectoryBuffer, Q: ValueTable, tau: int, n: int,
                  T: float, discount: float) -> float:
    """
    G = sum_{i=tau+1}^{min(tau+n, T)} discount^(i-tau-1) * R[i]
        (+ discount^n * Q(S[tau+n], A[tau+n])  if tau + n < T)
    """
    G = 0.0
    last = int(min(tau + n, T))
    for i in range(tau + 1, last + 1):
        G += discount ** (i - tau - 1) * buffer.reward(i)
    if tau + n < T:
        G += discount ** n * Q.get(buffer.state(tau + n), buffer.action(tau + n))
    return G


# =====================================================================
# Engine
# =====================================================================

class LearningEngine:
    """
    n-step Sarsa against a GridWorld, one timestep per `learn()`.

    Parameters
    ----------
    env : GridWorld-like environment
        Must expose `num_states`, `num_actions`, `settings.start` and
        `step(a)` -> (int, float, bool).
    config : AgentConfig
        Hyperparameters; validated here.
    rng : np.random.Generator or None
        Source of randomness for action sampling and tie-breaking. Defaults
        to a generator seeded with `config.seed`.
    """

    def __init__(self, env, config: AgentConfig = AgentConfig(),
                 rng: Optional[np.random.Generator] = None) -> None:
        self.env = env
        self.config: AgentConfig = config.validate()
        self.rng: np.random.Generator = rng if rng is not None else set_seed(config.seed)
        self._state: Optional[_EpisodeState] = None

    # ---------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------

    def configure(self, config: AgentConfig) -> Snapshot:
        """
        Replace the hyperparameters and fully re-initialize.

        Raises
        ------
        ConfigError
            If `config` is invalid; the previous config stays active.
        """
        config.validate()
        if config.seed != self.config.seed:
            self.rng = set_seed(config.seed)
        self.config = config
        logger.info("Engine configured: %s", config)
        return self.init()

    def init(self) -> Snapshot:
        """
        Zero Q (unless `reset_q_on_init` is off), derive the epsilon-greedy
        policy, seed the trajectory rings and reset the counters.
        """
        S, A = self.env.num_states, self.env.num_actions
        keep = (
            not self.config.reset_q_on_init
            and self._state is not None
            and self._state.Q.shape == (S, A)
        )
        Q = self._state.Q.copy() if keep else ValueTable(S, A, 0.0)
        pi = PolicyTable.epsilon_greedy(Q, self.config.epsilon, self.rng)
        self._state = self._fresh_episode(Q, pi)
        return self.snapshot

    def new_episode(self) -> Snapshot:
        """
        Reseed S=[start], A=[pi(start)], R=[0], t=0, tau=0, T=inf.
        Q and pi carry over. The environment is not touched.
        """
        state = self._require_state()
        self._state = self._fresh_episode(state.Q, state.pi)
        return self.snapshot

    def _fresh_episode(self, Q: ValueTable, pi: PolicyTable) -> _EpisodeState:
        start = self.env.settings.start
        a0 = pi.sample(start, self.rng)
        return _EpisodeState(
            Q=Q,
            pi=pi,
            buffer=TrajectoryBuffer.seeded(self.config.n, start, a0),
        )

    def _require_state(self) -> _EpisodeState:
        if self._state is None:
            raise InvariantViolation("Engine used before init().")
        return self._state

    # ---------------------------------------------------------------
    # One timestep
    # ---------------------------------------------------------------

    def learn(self) -> LearnResult:
        """
        Run one timestep of n-step Sarsa.

        Returns
        -------
        LearnResult
            `done` is True once the update for tau == T - 1 has been made;
            the caller then starts a new episode.

        Raises
        ------
        InvariantViolation
            On any out-of-space state/action or an uninitialized engine.
            The published engine state is left as it was before the tick.
        """
        current = self._require_state()
        if current.complete:
            logger.warning("Episode already complete; call new_episode() before learning again.")
            return LearnResult(done=True, snapshot=self.snapshot)

        cfg = self.config
        n = cfg.n
        st = current.copy()
        buf = st.buffer
        t = st.t
        rew = None

        if t < st.T:
            obs, rew, terminal = self.env.step(buf.action(t))
            buf.put_state(t + 1, obs)
            buf.put_reward(t + 1, rew)
            if terminal:
                st.T = t + 1
            else:
                buf.put_action(t + 1, st.pi.sample(obs, self.rng))

        st.tau = t - n + 1
        if 0 <= st.tau < st.T:
            G = n_step_return(buf, st.Q, st.tau, n, st.T, cfg.discount)
            s_tau, a_tau = buf.state(st.tau), buf.action(st.tau)
            old = st.Q.get(s_tau, a_tau)
            st.Q.set(s_tau, a_tau, old + cfg.alpha * (G - old))
            st.pi = PolicyTable.epsilon_greedy(st.Q, cfg.epsilon, self.rng)
            logger.debug("t=%d tau=%d G=%.4f Q(%d,%d): %.4f -> %.4f",
                         t, st.tau, G, s_tau, a_tau, old, st.Q.get(s_tau, a_tau))

        done = st.tau >= st.T - 1
        if done:
            st.complete = True
        else:
            st.t = t + 1

        self._state = st
        return LearnResult(done=done, snapshot=self.snapshot,
                           reward=None if rew is None else float(rew))

    # ---------------------------------------------------------------
    # Read access
    # ---------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._state is not None

    @property
    def snapshot(self) -> Snapshot:
        st = self._require_state()
        S, A, R = st.buffer.contents()
        return Snapshot(
            t=st.t, T=st.T, tau=st.tau,
            Q=st.Q.values.copy(), pi=st.pi.probs.copy(),
            S=S, A=A, R=R,
        )

    def pi_action(self, s: int) -> int:
        """Sample an action at state `s` from the current policy."""
        return self._require_state().pi.sample(s, self.rng)

    def greedy_policy(self) -> np.ndarray:
        """Greedy action per state, shape (S,)."""
        return self._require_state().pi.greedy()


# =====================================================================
# Batch training
# =====================================================================

def train(engine: LearningEngine, episodes: int, max_ticks: int = 1000,
          snapshot_every: int = 50) -> Dict[str, Any]:
    """
    Drive `engine` for `episodes` episodes without a timer.

    The engine starts a fresh episode and the environment is reset before the
    first episode and right after each one. Episodes that have
    not terminated after `max_ticks` ticks are truncated.

    Returns
    -------
    logs : dict
        Dictionary with keys:
          - "returns": np.ndarray of undiscounted episodic returns
          - "steps":   np.ndarray of episodic lengths (environment steps)
          - "truncated": number of truncated episodes
          - "snapshots": list of {"episode": int, "Q": np.ndarray}
    """
    returns: List[float] = []
    steps: List[int] = []
    snapshots: List[Dict] = []
    truncated = 0

    if engine.initialized:
        engine.new_episode()
    else:
        engine.init()
    engine.env.reset()

    for ep in range(episodes):
        G, env_steps = 0.0, 0
        for _ in range(max_ticks):
            result = engine.learn()
            if result.reward is not None:
                env_steps += 1
                G += result.reward
            if result.done:
                break
        else:
            truncated += 1
            logger.info("Episode %d truncated after %d ticks", ep + 1, max_ticks)

        returns.append(G)
        steps.append(env_steps)
        engine.new_episode()
        engine.env.reset()

        if ep == 0 or (ep + 1) % snapshot_every == 0 or ep == episodes - 1:
            snapshots.append({"episode": ep + 1, "Q": engine.snapshot.Q})

    return {
        "returns": np.array(returns),
        "steps": np.array(steps),
        "truncated": truncated,
        "snapshots": snapshots,
    }
