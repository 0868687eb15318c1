"""
controller.py - Decides when the learning engine ticks.

Two triggers exist: a manual `step()` request and a periodic timer
("simulate"). Only one is live at a time. Everything runs on a single
asyncio-style event loop (anything with `call_later(delay, cb)` returning a
handle with `cancel()`), so no two ticks ever overlap.
"""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import Optional

from .rl_algorithms import AgentConfig, LearningEngine, LearnResult, Snapshot

logger = logging.getLogger(__name__)


class Mode(Enum):
    MANUAL = auto()
    SIMULATING = auto()


class EpisodeController:
    """
    Schedules `LearningEngine.learn()` and starts new episodes.

    Parameters
    ----------
    engine : LearningEngine
        The engine to drive; its environment is reset through `engine.env`.
    loop : asyncio.AbstractEventLoop-like
        Provides `call_later(delay_seconds, callback)`.
    """

    def __init__(self, engine: LearningEngine, loop) -> None:
        self.engine = engine
        self.env = engine.env
        self.loop = loop
        self.mode: Mode = Mode.MANUAL
        self.episodes: int = 0
        self.last_result: Optional[LearnResult] = None
        self._timer = None
        self._pending_reset = None

        self.env.set_slippery(engine.config.is_slippery)
        if not engine.initialized:
            engine.init()

    @property
    def speed(self) -> int:
        return self.engine.config.speed

    @property
    def simulating(self) -> bool:
        return self.mode is Mode.SIMULATING

    # -----------------------------------------------------------
    # Triggers
    # -----------------------------------------------------------

    def step(self) -> Optional[LearnResult]:
        """Run exactly one tick, unless the timer is driving the engine."""
        if self.simulating:
            logger.debug("Ignoring manual step while simulating")
            return None
        return self._tick()

    def start_simulation(self) -> None:
        if self.simulating:
            return
        self.mode = Mode.SIMULATING
        logger.info("Simulation started (every %d ms)", self.speed)
        self._arm()

    def stop_simulation(self) -> None:
        """Cancel the pending tick before anything else can happen."""
        self._cancel_timer()
        if self.simulating:
            self.mode = Mode.MANUAL
            logger.info("Simulation stopped after %d episodes", self.episodes)

    def toggle_simulation(self) -> bool:
        """Flip between manual and timer-driven mode; returns `simulating`."""
        if self.simulating:
            self.stop_simulation()
        else:
            self.start_simulation()
        return self.simulating

    # -----------------------------------------------------------
    # Configuration
    # -----------------------------------------------------------

    def configure(self, config: AgentConfig) -> Snapshot:
        """
        Apply new hyperparameters: stop the timer, validate and install the
        config (ConfigError keeps the old one), then fully reset.
        """
        self.stop_simulation()
        snapshot = self.engine.configure(config)
        self.env.set_slippery(config.is_slippery)
        self._clear_run()
        return snapshot

    def full_reset(self) -> Snapshot:
        """Clear Q and pi, reset the environment and the episode counter."""
        self.stop_simulation()
        self._clear_run()
        return self.engine.init()

    # -----------------------------------------------------------
    # Internals
    # -----------------------------------------------------------

    def _clear_run(self) -> None:
        self._cancel_pending_reset()
        self.episodes = 0
        self.last_result = None
        self.env.reset()
        logger.info("Full reset")

    def _tick(self) -> LearnResult:
        self._flush_pending_reset()
        result = self.engine.learn()
        self.last_result = result
        if result.done:
            self.episodes += 1
            logger.info("Episode %d complete (T=%s)", self.episodes, result.snapshot.T)
            self._new_episode()
        return result

    def _new_episode(self) -> None:
        self.engine.new_episode()
        # leave the agent on the terminal cell for one interval
        self._pending_reset = self.loop.call_later(self.speed / 1000.0, self._deferred_reset)

    def _deferred_reset(self) -> None:
        self._pending_reset = None
        self.env.reset()

    def _flush_pending_reset(self) -> None:
        if self._pending_reset is not None:
            self._pending_reset.cancel()
            self._deferred_reset()

    def _cancel_pending_reset(self) -> None:
        if self._pending_reset is not None:
            self._pending_reset.cancel()
            self._pending_reset = None

    def _arm(self) -> None:
        self._timer = self.loop.call_later(self.speed / 1000.0, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        if not self.simulating:
            return
        try:
            self._tick()
        except Exception:
            self.stop_simulation()
            raise
        if self.simulating:
            self._arm()
