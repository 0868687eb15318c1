"""
utils.py - Small, reusable helpers for the tabular n-step learner.

Includes:
- Seeding and RNG utilities
- Sign-correct modulo for ring indexing and the slip neighbourhood
- Argmax with random tie-breaking and weighted action sampling
- Greedy evaluation harness (mean return / success rate over N episodes)
- Simple smoothing & plotting for learning curves and value overlays
"""

from __future__ import annotations
from typing import List, Optional, Sequence, Tuple

import numpy as np
import matplotlib.pyplot as plt


# -----------------------------
# Reproducibility / RNG
# -----------------------------

def set_seed(seed: Optional[int] = None) -> np.random.Generator:
    """
    Create a NumPy Generator seeded with `seed`.

    Parameters
    ----------
    seed : int or None
        If None, uses unpredictable entropy; else deterministic.

    Returns
    -------
    np.random.Generator
    """
    return np.random.default_rng(seed)


# -----------------------------
# Indexing
# -----------------------------

def wrap_index(i: int, size: int) -> int:
    """
    Modulo that always lands in [0, size), also for negative `i`.

    wrap_index(-1, 4) == 3, which is what the slip neighbourhood of Up needs.
    """
    if size <= 0:
        raise ValueError(f"size must be positive, got {size}")
    return ((i % size) + size) % size


# -----------------------------
# Action selection
# -----------------------------

def argmax_random_tie_break(x: np.ndarray, rng: np.random.Generator) -> int:
    """
    Argmax with uniform tie-breaking.

    Parameters
    ----------
    x : np.ndarray shape (A,)
    rng : np.random.Generator

    Returns
    -------
    int
        Index of the chosen maximum
    """
    maxv = np.max(x)
    ties = np.flatnonzero(x == maxv)
    return int(rng.choice(ties))


def sample_from_weights(weights: Sequence[float], rng: np.random.Generator) -> int:
    """
    Draw an index with probability proportional to `weights`.

    Raises
    ------
    ValueError
        If the weights are empty, negative or sum to zero.
    """
    w = np.asarray(weights, dtype=float)
    if w.size == 0 or np.any(w < 0):
        raise ValueError(f"Invalid weights: {weights}")
    total = w.sum()
    if total <= 0:
        raise ValueError(f"Weights sum to {total}")
    return int(rng.choice(w.size, p=w / total))


# -----------------------------
# Evaluation harness
# -----------------------------

def run_greedy_episode(env, Q: np.ndarray, max_steps: int = 100,
                       rng: Optional[np.random.Generator] = None) -> Tuple[float, List[int]]:
    """
    Roll out one greedy episode using Q on the given env.

    Returns
    -------
    G : float
        Cumulative return.
    traj : List[int]
        List of visited states (indices).
    """
    rng = rng if rng is not None else set_seed(None)
    s = env.reset()
    G = 0.0
    traj = [s]
    for _ in range(max_steps):
        a = argmax_random_tie_break(Q[s], rng)
        s, r, done = env.step(a)
        G += r
        traj.append(s)
        if done:
            break
    return G, traj


def evaluate_policy(env,
                    Q: np.ndarray,
                    episodes: int = 20,
                    max_steps: int = 100,
                    seed: Optional[int] = 123) -> Tuple[float, float]:
    """
    Evaluate the greedy policy induced by Q on `env`.

    Parameters
    ----------
    env : GridWorld
        Must support reset() -> s, step(a) -> (s', r, done) and seed().
    Q : np.ndarray
        Table of shape (S, A).
    episodes : int
        Number of test rollouts.
    max_steps : int
        Safety cap per episode
    seed : int or None
        If provided, reseeds env rng for reproducibility.

    Returns
    -------
    mean_return : float
    success_rate : float
        Fraction of rollouts that reached the goal.
    """
    rng = set_seed(seed)
    returns = []
    successes = 0
    for _ in range(episodes):
        env.seed(int(rng.integers(0, 10_000_000)))
        G, traj = run_greedy_episode(env, Q, max_steps=max_steps, rng=rng)
        returns.append(G)
        if env.cell_at(traj[-1]).is_goal:
            successes += 1
    env.reset()
    return float(np.mean(returns)), successes / episodes


# -----------------------------
# Smoothing / plotting
# -----------------------------

def rolling(x, k: int = 25) -> np.ndarray:
    """
    Rolling average:
    - uses 'valid' convolution
    - pads the front with the first smoothed value.

    This keeps the length equal to len(x).
    """
    x = np.asarray(x, dtype=float)
    if len(x) == 0:
        return np.array([])
    k = max(1, min(k, len(x)))
    y = np.convolve(x, np.ones(k)/k, mode="valid")
    pad = np.full(k-1, y[0])
    return np.concatenate([pad, y])


def plot_learning_curve(returns: List[float], window: int = 21,
                        title: str = "Learning Curve", show: bool = True):
    """
    Plot raw and smoothed episode returns. Returns the Axes.
    """
    fig, ax = plt.subplots(figsize=(7.5, 4))
    r = np.asarray(returns, dtype=float)
    ax.plot(r, alpha=0.35, label="Return (raw)")
    ax.plot(rolling(r, window), linewidth=2.0, label=f"Return (MA{window})")
    ax.set_xlabel("Episode")
    ax.set_ylabel("Return")
    ax.set_title(title)
    ax.legend()
    fig.tight_layout()
    if show:
        plt.show()
    return ax


def value_grid(env, Q: np.ndarray) -> np.ndarray:
    """
    Map V(s) = max_a Q(s,a) onto a (size x size) grid.
    """
    V = np.max(Q, axis=1)
    G = np.zeros((env.rows, env.cols))
    for s in range(env.num_states):
        r, c = env._to_pos(s)
        G[r, c] = V[s]
    return G


def plot_value_and_policy(env, Q: np.ndarray,
                          title: str = "Value & Greedy Policy", show: bool = True):
    """
    Visualize V(s) as a heatmap with greedy-policy arrows.
    Terminal cells (holes, goal) get no arrow. Returns the Axes.
    """
    H, W = env.rows, env.cols
    Vg = value_grid(env, Q)

    fig, ax = plt.subplots(figsize=(6.6, 6.6))
    im = ax.imshow(Vg, origin='upper')
    fig.colorbar(im, ax=ax, label="V(s) = maxₐ Q(s,a)")
    ax.set_title(title)
    ax.set_xticks(range(W))
    ax.set_yticks(range(H))

    # arrows (0:Up, 1:Right, 2:Down, 3:Left); y axis points down
    action_to_vec = {0: (0, 1), 1: (1, 0), 2: (0, -1), 3: (-1, 0)}
    X, Y, U, V = [], [], [], []
    for s in range(env.num_states):
        if env.is_terminal(s):
            continue
        r, c = env._to_pos(s)
        dx, dy = action_to_vec[int(np.argmax(Q[s]))]
        X.append(c)
        Y.append(r)
        U.append(dx)
        V.append(dy)

    ax.quiver(X, Y, U, V, scale=2, angles='uv', scale_units='xy', width=0.006)
    ax.grid(False)
    fig.tight_layout()
    if show:
        plt.show()
    return ax
