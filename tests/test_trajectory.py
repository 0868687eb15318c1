"""
tests/test_trajectory.py

Unit tests for the ring-indexed trajectory buffer.

These tests verify:
- Ring slots fill in order, then wrap modulo n + 1
- Reads outside the live window are rejected
- Copies do not share slots with the original
"""

import pytest

from frozen_nstep import InvariantViolation, TrajectoryBuffer


def test_seeded_buffer_contents():
    buf = TrajectoryBuffer.seeded(n=3, state=0, action=2)
    assert buf.capacity == 4
    assert buf.contents() == ((0,), (2,), (0.0,))


def test_ring_wraps_modulo_capacity():
    buf = TrajectoryBuffer.seeded(n=2, state=0, action=1)
    for i in range(1, 6):
        buf.put_state(i, 10 + i)
        buf.put_reward(i, float(i))
    S, _, R = buf.contents()
    # slots: 3->0, 4->1, 5->2
    assert S == (13, 14, 15)
    assert R == (3.0, 4.0, 5.0)
    assert buf.state(5) == 15
    assert buf.state(3) == 13


def test_read_outside_window_raises():
    buf = TrajectoryBuffer.seeded(n=2, state=0, action=1)
    for i in range(1, 5):
        buf.put_state(i, i)
    with pytest.raises(InvariantViolation):
        buf.state(1)          # overwritten by index 4
    with pytest.raises(InvariantViolation):
        buf.state(5)          # not written yet


def test_slots_must_fill_in_order():
    buf = TrajectoryBuffer(n=3)
    with pytest.raises(InvariantViolation):
        buf.put_state(2, 7)


def test_copy_is_independent():
    buf = TrajectoryBuffer.seeded(n=1, state=0, action=0)
    other = buf.copy()
    other.put_state(1, 4)
    assert buf.contents()[0] == (0,)
    assert other.contents()[0] == (0, 4)


def test_zero_step_buffer_has_one_slot():
    buf = TrajectoryBuffer.seeded(n=0, state=0, action=3)
    buf.put_state(1, 4)
    assert buf.contents()[0] == (4,)
    assert buf.state(1) == 4
