"""
tests/test_gridworld.py

Unit tests for the frozen-lake GridWorld.

These tests verify:
- Dimensions, indexing and the fixed map layout
- Deterministic transitions when slip is disabled
- Boundary no-ops, holes and the goal
- The warning path when stepping a terminated environment
- Slip neighbourhood and reproducibility under seeding
- Layout validation and rendering
"""

import logging

import numpy as np
import pytest

from frozen_nstep import Action, Cell, ConfigError, GridWorld, InvariantViolation, WorldSettings


def make_world(is_slippery=False, seed=0, **kwargs) -> GridWorld:
    return GridWorld(WorldSettings(is_slippery=is_slippery, seed=seed, **kwargs))


def place(env: GridWorld, s: int) -> None:
    env.reset()
    env.state = s


# =====================================================================
# Layout & indexing
# =====================================================================

def test_basic_dimensions_and_state_count():
    env = make_world()
    assert env.rows == 4 and env.cols == 4
    assert env.num_states == 16
    assert env.num_actions == 4


def test_map_cells():
    env = make_world()
    assert env.cell_at(0) is Cell.ICE
    assert [s for s in range(16) if env.cell_at(s) is Cell.HOLE] == [5, 6, 7]
    assert env.cell_at(15) is Cell.GOAL
    assert env.is_terminal(15) and env.is_terminal(6)
    assert not env.is_terminal(14)


def test_to_index_and_back_roundtrip():
    env = make_world()
    for pos in [(0, 0), (0, 3), (3, 0), (2, 2), (3, 3)]:
        assert env._to_pos(env._to_index(pos)) == pos


def test_to_pos_out_of_bounds_raises():
    env = make_world()
    with pytest.raises(InvariantViolation):
        env._to_pos(-1)
    with pytest.raises(InvariantViolation):
        env._to_pos(env.num_states)


def test_reset_returns_start_and_clears_terminal():
    env = make_world()
    place(env, 14)
    env.step(Action.RIGHT)
    assert env.terminal

    assert env.reset() == 0
    assert env.state == 0
    assert env.terminal is False


# =====================================================================
# Step dynamics (no slip)
# =====================================================================

def test_step_is_deterministic_without_slip():
    for a in Action:
        results = set()
        for _ in range(10):
            env = make_world(seed=None)
            place(env, 9)
            results.add(env.step(a))
        assert len(results) == 1


@pytest.mark.parametrize("action,expected", [
    (Action.UP, 5), (Action.RIGHT, 10), (Action.DOWN, 13), (Action.LEFT, 8),
])
def test_step_moves_by_offset(action, expected):
    env = make_world()
    place(env, 9)
    s, _, _ = env.step(action)
    assert s == expected
    assert env.last_action == action


def test_boundary_moves_from_start_are_noops():
    env = make_world()
    env.reset()
    for action in (Action.UP, Action.LEFT):
        s, r, done = env.step(action)
        assert (s, r, done) == (0, 0.0, False)
        assert env.state == 0


@pytest.mark.parametrize("state,action", [
    (3, Action.RIGHT), (12, Action.DOWN), (12, Action.LEFT), (2, Action.UP),
])
def test_boundary_moves_on_edges_are_noops(state, action):
    env = make_world()
    place(env, state)
    s, r, done = env.step(action)
    assert s == state and r == 0.0 and done is False


def test_illegal_move_reward_is_configurable():
    env = make_world(illegal_move_reward=-1.0)
    env.reset()
    _, r, _ = env.step(Action.UP)
    assert r == -1.0


def test_reaching_goal_gives_reward_and_terminates():
    env = make_world()
    place(env, 14)
    assert env.step(Action.RIGHT) == (15, 1.0, True)
    assert env.terminal


def test_falling_in_hole_terminates_with_zero_reward():
    env = make_world()
    place(env, 1)
    assert env.step(Action.DOWN) == (5, 0.0, True)


def test_hole_reward_is_configurable():
    env = make_world(hole_reward=-1.0)
    place(env, 1)
    _, r, done = env.step(Action.DOWN)
    assert r == -1.0 and done is True


def test_step_after_terminal_warns_and_does_not_move(caplog):
    env = make_world()
    place(env, 14)
    env.step(Action.RIGHT)

    with caplog.at_level(logging.WARNING, logger="frozen_nstep.gridworld"):
        s, r, done = env.step(Action.LEFT)

    assert (s, r, done) == (15, 0.0, True)
    assert env.state == 15
    assert "reset()" in caplog.text


@pytest.mark.parametrize("bad", [-1, 4, 7])
def test_action_outside_space_is_fatal(bad):
    env = make_world()
    env.reset()
    with pytest.raises(InvariantViolation):
        env.step(bad)


@pytest.mark.parametrize("slippery", [False, True])
def test_non_integral_action_is_fatal(slippery):
    env = make_world(is_slippery=slippery)
    env.reset()
    with pytest.raises(InvariantViolation):
        env.step(1.5)
    assert env.state == 0


# =====================================================================
# Slip
# =====================================================================

@pytest.mark.parametrize("action", list(Action))
def test_slip_stays_in_neighbourhood(action):
    env = make_world(is_slippery=True, seed=3)
    allowed = {(action - 1) % 4, int(action), (action + 1) % 4}
    seen = {env.slip(action) for _ in range(300)}
    assert seen == allowed


def test_slip_from_up_wraps_to_left():
    env = make_world(is_slippery=True, seed=1)
    seen = {env.slip(Action.UP) for _ in range(200)}
    assert Action.LEFT in seen
    assert all(0 <= a < 4 for a in seen)


def test_seed_reproducibility_with_slip():
    env1 = make_world(is_slippery=True, seed=123)
    env2 = make_world(is_slippery=True, seed=123)
    actions = [1, 2, 1, 2, 0, 3, 2, 1]
    traj1, traj2 = [], []
    for a in actions:
        if env1.terminal:
            env1.reset()
            env2.reset()
        traj1.append(env1.step(a))
        traj2.append(env2.step(a))
    assert traj1 == traj2


def test_no_randomness_consumed_without_slip():
    env = make_world(seed=5)
    before = env.rng.bit_generator.state
    env.reset()
    env.step(Action.RIGHT)
    assert env.rng.bit_generator.state == before


def test_set_slippery_toggles_settings():
    env = make_world()
    env.set_slippery(True)
    assert env.settings.is_slippery is True


# =====================================================================
# Validation & rendering
# =====================================================================

def test_bad_layout_rejected():
    with pytest.raises(ConfigError):
        GridWorld(WorldSettings(layout=("FFF", "FFF", "FFG")))
    with pytest.raises(ConfigError):
        GridWorld(WorldSettings(layout=("FFFF", "FHHH", "FFFF", "FFFF")))
    with pytest.raises(ConfigError):
        GridWorld(WorldSettings(start=5))


def test_render_returns_axes_with_values():
    env = make_world()
    Q = np.zeros((16, 4))
    Q[14, 1] = 0.5
    ax = env.render(values=Q, show=False)
    texts = [t.get_text() for t in ax.texts]
    assert len(texts) == 16
    assert "0.500" in texts
