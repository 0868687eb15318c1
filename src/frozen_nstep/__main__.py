"""
Command line entry point.

    python -m frozen_nstep train --episodes 500 --n 5 --plot
    python -m frozen_nstep simulate --episodes 3 --speed 50 --log-level INFO
"""

import argparse
import asyncio
import logging
import sys

import numpy as np

from .errors import ConfigError
from .gridworld import GridWorld, WorldSettings
from .rl_algorithms import AgentConfig, LearningEngine, train
from .controller import EpisodeController
from .utils import evaluate_policy, plot_learning_curve, plot_value_and_policy

logger = logging.getLogger("frozen_nstep")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="frozen-nstep",
                                     description="n-step Sarsa on the 4x4 frozen lake")
    parser.add_argument("mode", nargs="?", choices=("train", "simulate"), default="train")
    parser.add_argument("--episodes", type=int, default=500)
    parser.add_argument("--n", type=int, default=5)
    parser.add_argument("--alpha", type=float, default=0.1)
    parser.add_argument("--epsilon", type=float, default=0.2)
    parser.add_argument("--discount", type=float, default=0.9)
    parser.add_argument("--slippery", action="store_true")
    parser.add_argument("--speed", type=int, default=150, help="tick interval in ms")
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--max-ticks", type=int, default=1000)
    parser.add_argument("--keep-q", action="store_true",
                        help="keep Q across re-initialization")
    parser.add_argument("--plot", action="store_true")
    parser.add_argument("--log-level", default="WARNING")
    return parser


def config_from_args(args: argparse.Namespace) -> AgentConfig:
    return AgentConfig(
        n=args.n,
        alpha=args.alpha,
        epsilon=args.epsilon,
        discount=args.discount,
        is_slippery=args.slippery,
        speed=args.speed,
        reset_q_on_init=not args.keep_q,
        seed=args.seed,
    ).validate()


def run_train(env: GridWorld, engine: LearningEngine, args: argparse.Namespace) -> None:
    logs = train(engine, episodes=args.episodes, max_ticks=args.max_ticks)
    Q = engine.snapshot.Q
    mean_ret, success = evaluate_policy(env, Q, episodes=50, seed=args.seed)
    print(f"Episodes: {args.episodes} (truncated: {logs['truncated']})")
    print(f"Mean training return: {np.mean(logs['returns']):.3f}")
    print(f"Greedy policy: mean return {mean_ret:.3f}, success rate {success:.2%}")
    if args.plot:
        plot_learning_curve(logs["returns"], title=f"{engine.config.n}-step Sarsa")
        plot_value_and_policy(env, Q)


async def run_simulate(engine: LearningEngine, args: argparse.Namespace) -> None:
    loop = asyncio.get_running_loop()
    controller = EpisodeController(engine, loop)
    controller.start_simulation()
    while controller.episodes < args.episodes:
        await asyncio.sleep(controller.speed / 1000.0)
        if not controller.simulating:
            break
    controller.stop_simulation()
    print(f"Simulated {controller.episodes} episodes")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(),
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    try:
        cfg = config_from_args(args)
    except ConfigError as exc:
        logger.error("%s", exc)
        return 2

    env = GridWorld(WorldSettings(is_slippery=cfg.is_slippery, seed=args.seed))
    engine = LearningEngine(env, cfg)
    engine.init()

    if args.mode == "simulate":
        asyncio.run(run_simulate(engine, args))
    else:
        run_train(env, engine, args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
