#!/usr/bin/env python3
"""
球道模拟脚本

Usage:
    python scripts/simulate.py --rolls 10,7,3,9,0,10   # 按给定击倒数投球
    python scripts/simulate.py --random --seed 42      # 随机投完一局
    python scripts/simulate.py --random --games 5 --json
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

# 添加项目根目录到路径
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

import numpy as np

from lane import LaneConfig, LaneEvent, ScriptedLane, TurnController, GameMode

logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
)
logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Ten-pin lane simulator")

    parser.add_argument("--rolls", type=str, help="Comma separated pins knocked per ball")
    parser.add_argument("--random", action="store_true", help="Play random balls until game over")
    parser.add_argument("--games", type=int, default=1, help="Number of games")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--dt", type=float, default=1.0 / 30.0, help="Tick length in seconds")
    parser.add_argument(
        "--invalid-rate",
        type=float,
        default=0.0,
        help="Probability that a random throw never reaches the lane",
    )
    parser.add_argument("--config", type=str, help="LaneConfig JSON file")
    parser.add_argument("--json", action="store_true", help="Print final sessions as JSON")
    parser.add_argument("--verbose", action="store_true", help="Show per-ball scoreboard")

    return parser.parse_args()


def parse_rolls(text: str) -> List[int]:
    """解析击倒数列表"""
    rolls = []
    for item in text.split(","):
        item = item.strip()
        if not item:
            continue
        if item.upper() == "X":
            rolls.append(10)
        else:
            rolls.append(int(item))
    return rolls


def play_scripted(lane: ScriptedLane, rolls: List[int], verbose: bool):
    """按给定击倒数投球"""
    for knock in rolls:
        if lane.controller.session.is_game_over:
            logger.info("Game already over, remaining balls ignored")
            break
        result = lane.throw(knock)[-1]
        if verbose:
            logger.info(lane.controller.render_text())
        if LaneEvent.GAME_OVER in result.events:
            break


def play_random(
    lane: ScriptedLane,
    rng: np.random.Generator,
    invalid_rate: float,
    verbose: bool,
):
    """随机投球直到比赛结束"""
    while not lane.controller.session.is_game_over:
        if invalid_rate > 0 and rng.random() < invalid_rate:
            lane.throw(touch_lane=False)
            logger.info("Throw missed the lane")
            continue

        standing = len(lane.standing)
        knock = int(rng.integers(0, standing + 1))
        gutter = knock == 0 and rng.random() < 0.5
        lane.throw(knock, gutter=gutter)
        if verbose:
            logger.info(lane.controller.render_text())


def run_game(args, config: LaneConfig, seed: Optional[int]) -> dict:
    controller = TurnController(config, mode=GameMode.SCORING)
    lane = ScriptedLane(controller, dt=args.dt, seed=seed)

    if args.rolls:
        play_scripted(lane, parse_rolls(args.rolls), args.verbose)
    else:
        rng = np.random.default_rng(seed)
        play_random(lane, rng, args.invalid_rate, args.verbose)

    logger.info(controller.snapshot().render_text())
    return controller.session.to_dict()


def main():
    args = parse_args()

    if not args.rolls and not args.random:
        logger.error("Either --rolls or --random is required")
        sys.exit(2)

    config = LaneConfig.from_json(args.config) if args.config else LaneConfig()

    sessions = []
    for game_idx in range(args.games):
        logger.info("=" * 60)
        logger.info(f"Game {game_idx + 1}/{args.games}")
        logger.info("=" * 60)
        seed = None if args.seed is None else args.seed + game_idx
        session = run_game(args, config, seed)
        logger.info(f"Final score: {session['total_score']}")
        sessions.append(session)

    if args.json:
        print(json.dumps(sessions, indent=2))


if __name__ == "__main__":
    main()
